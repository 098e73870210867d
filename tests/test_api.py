"""Tests for the public API and the optional macro-expansion collaborator."""

import pytest

from inkwell import (
    AnalysisConfig,
    InstrumentationState,
    ReportStatus,
    analyze_file,
    analyze_source,
    instrument_source,
)
from inkwell.exceptions import ParseError
from inkwell.syntax.expansion import CargoExpandExpander, NoExpansion, find_crate_dir


class FixedExpander:
    """Expander returning canned text."""

    def __init__(self, expanded):
        self.expanded = expanded
        self.calls = 0

    def expand(self, source, file_path):
        self.calls += 1
        return self.expanded


class TestAnalyzeSource:
    def test_defaults(self, token_source):
        report = analyze_source(token_source)
        assert report.file_path == "src/lib.rs"
        assert report.status == ReportStatus.OK

    def test_config_is_used(self, token_source):
        report = analyze_source(token_source, config=AnalysisConfig(include_other=False))
        kinds = {op.kind.value for op in report.units["transfer"].operations}
        assert "other" not in kinds

    def test_parse_error(self):
        with pytest.raises(ParseError):
            analyze_source("impl C { fn f( }")


class TestExpansion:
    """Expanded source is used only when it is usable."""

    def test_expanded_source_is_analyzed(self, token_source, make_contract):
        expanded = make_contract("    pub fn only(&self) {\n        let x = self.a.get();\n    }\n")
        expander = FixedExpander(expanded)
        report = analyze_source(token_source, expander=expander)
        assert expander.calls == 1
        assert list(report.units) == ["only"]

    def test_unavailable_expansion_falls_back(self, token_source):
        report = analyze_source(token_source, expander=NoExpansion())
        assert "transfer" in report.units

    def test_unparseable_expansion_falls_back(self, token_source):
        report = analyze_source(token_source, expander=FixedExpander("fn broken( {"))
        assert "transfer" in report.units

    def test_expansion_without_units_falls_back(self, token_source):
        report = analyze_source(token_source, expander=FixedExpander("fn main() {}\n"))
        assert "transfer" in report.units

    def test_cargo_expand_without_crate(self, tmp_path):
        """No Cargo.toml means expansion is unavailable, never an error."""
        expander = CargoExpandExpander(tmp_path)
        assert expander.expand("fn main() {}", str(tmp_path / "lib.rs")) is None

    def test_find_crate_dir(self, tmp_path):
        crate = tmp_path / "crate"
        (crate / "src").mkdir(parents=True)
        (crate / "Cargo.toml").write_text('[package]\nname = "c"\n')
        assert find_crate_dir(crate / "src" / "lib.rs") == crate.resolve()


class TestAnalyzeFile:
    def test_reads_file(self, vault_path):
        report = analyze_file(vault_path)
        assert report.contract_name == "Vault"
        assert report.file_path == str(vault_path)

    def test_project_config_discovered(self, vault_path, tmp_path, monkeypatch):
        (tmp_path / "inkwell.toml").write_text("hotspot_limit = 1\n")
        monkeypatch.chdir(tmp_path)
        report = analyze_file(vault_path)
        assert all(len(unit.hotspots) <= 1 for unit in report.units.values())

    def test_missing_file(self, tmp_path):
        with pytest.raises(OSError):
            analyze_file(tmp_path / "absent.rs")


class TestInstrumentSource:
    def test_instrument(self, token_source):
        result = instrument_source(token_source, unit="transfer")
        assert result.state == InstrumentationState.DONE
        assert len(result.probes) == 5
