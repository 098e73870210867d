"""Tests for the dip and instrument CLI commands."""

import json

import pytest
from typer.testing import CliRunner

from inkwell import __version__
from inkwell.cli import app
from inkwell.instrumentation.runtime_module import RUNTIME_MARKER

runner = CliRunner()


@pytest.fixture
def empty_contract(tmp_path):
    path = tmp_path / "empty.rs"
    path.write_text("fn main() {}\n")
    return path


@pytest.fixture
def broken_contract(tmp_path):
    path = tmp_path / "broken.rs"
    path.write_text("#[public]\nimpl C {\n    pub fn f(&self) {\n")
    return path


class TestVersion:
    def test_version_flag(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output


class TestDipCommand:
    """inkwell dip FILE."""

    def test_json_output(self, token_path):
        result = runner.invoke(app, ["dip", str(token_path), "--output", "json"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["contract_name"] == "Token"
        assert list(data["functions"]) == ["total_supply", "transfer", "approve", "allowance"]
        assert data["functions"]["transfer"]["total_ink"] == 6_100_000

    def test_function_filter(self, token_path):
        result = runner.invoke(app, ["dip", str(token_path), "-f", "approve", "-o", "json"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert list(data["functions"]) == ["approve"]
        assert data["requested_function"] == "approve"

    def test_compact_output(self, vault_path):
        result = runner.invoke(app, ["dip", str(vault_path)])
        assert result.exit_code == 0, result.output
        assert "Vault" in result.output
        assert "Hotspots:" in result.output

    def test_detailed_output(self, vault_path):
        result = runner.invoke(app, ["dip", str(vault_path), "-o", "detailed"])
        assert result.exit_code == 0, result.output
        assert "Categories" in result.output

    def test_unknown_function(self, token_path):
        result = runner.invoke(app, ["dip", str(token_path), "--function", "burn"])
        assert result.exit_code == 1
        assert "no public function named 'burn'" in result.output

    def test_no_eligible_units(self, empty_contract):
        result = runner.invoke(app, ["dip", str(empty_contract)])
        assert result.exit_code == 0
        assert "no #[public] or #[external] functions found" in result.output

    def test_parse_error(self, broken_contract):
        result = runner.invoke(app, ["dip", str(broken_contract)])
        assert result.exit_code == 1
        assert "Parse error" in result.output

    def test_bad_config_file(self, token_path, tmp_path):
        config = tmp_path / "inkwell.toml"
        config.write_text("hotspot_limit = -3\n")
        result = runner.invoke(app, ["dip", str(token_path), "--config", str(config)])
        assert result.exit_code == 1
        assert "Error" in result.output

    def test_config_file_applies(self, token_path, tmp_path):
        config = tmp_path / "inkwell.toml"
        config.write_text("[costs]\nstorage_read = 1\n")
        result = runner.invoke(
            app, ["dip", str(token_path), "-c", str(config), "-f", "total_supply", "-o", "json"]
        )
        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout)["functions"]["total_supply"]["total_ink"] == 1

    def test_missing_file(self, tmp_path):
        result = runner.invoke(app, ["dip", str(tmp_path / "absent.rs")])
        assert result.exit_code != 0


class TestInstrumentCommand:
    """inkwell instrument FILE."""

    def test_write_to_file(self, token_path, tmp_path):
        out = tmp_path / "lib.instrumented.rs"
        result = runner.invoke(app, ["instrument", str(token_path), "--output", str(out)])
        assert result.exit_code == 0, result.output
        text = out.read_text()
        assert RUNTIME_MARKER in text
        assert text.count("crate::ink_probe!(") == 10
        assert "Injected 10 probe(s)" in result.output

    def test_write_to_stdout(self, vault_path):
        result = runner.invoke(app, ["instrument", str(vault_path), "-f", "commit"])
        assert result.exit_code == 0, result.output
        assert 'crate::ink_probe!(0, "crypto", keccak(secret))' in result.stdout
        assert RUNTIME_MARKER in result.stdout

    def test_unknown_function(self, token_path):
        result = runner.invoke(app, ["instrument", str(token_path), "-f", "burn"])
        assert result.exit_code == 1
        assert "no public function named 'burn'" in result.output

    def test_nothing_to_instrument(self, empty_contract):
        result = runner.invoke(app, ["instrument", str(empty_contract)])
        assert result.exit_code == 0
        assert "nothing to instrument" in result.output

    def test_already_instrumented(self, token_path, tmp_path):
        out = tmp_path / "once.rs"
        runner.invoke(app, ["instrument", str(token_path), "-o", str(out)])
        result = runner.invoke(app, ["instrument", str(out)])
        assert result.exit_code == 1
        assert "Instrumentation failed" in result.output

    def test_parse_error(self, broken_contract):
        result = runner.invoke(app, ["instrument", str(broken_contract)])
        assert result.exit_code == 1
        assert "Parse error" in result.output
