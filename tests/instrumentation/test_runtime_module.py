"""Tests for the generated Rust profiling runtime."""

from inkwell.config import AnalysisConfig
from inkwell.instrumentation.runtime_module import RUNTIME_MARKER, render_runtime_module


class TestRuntimeModule:
    """Rendered runtime text."""

    def test_marker_first(self):
        text = render_runtime_module()
        assert text.lstrip("\n").startswith(RUNTIME_MARKER)

    def test_feature_gated_macro_pair(self):
        """One macro per feature state; the disabled one is the bare expression."""
        text = render_runtime_module()
        assert text.count("macro_rules! ink_probe") == 2
        assert '#[cfg(feature = "ink-profiling")]' in text
        assert '#[cfg(not(feature = "ink-profiling"))]' in text

    def test_custom_feature_name(self):
        text = render_runtime_module(AnalysisConfig(profiling_feature="gas-probe"))
        assert '#[cfg(feature = "gas-probe")]' in text
        assert "ink-profiling" not in text

    def test_registry_lifecycle(self):
        """Explicit init/reset and a non-destructive dump."""
        text = render_runtime_module()
        assert "pub fn init()" in text
        assert "pub fn reset()" in text
        assert "pub fn dump_report() -> String" in text
        assert "static REGISTRY: Mutex<Option<Registry>>" in text

    def test_constants_follow_config(self):
        config = AnalysisConfig(
            buffer_allocation_bytes=32, min_fair_cost=5_000, runtime_overcharge_tolerance=7
        )
        text = render_runtime_module(config)
        assert "pub const BUFFER_ALLOCATION_BYTES: usize = 32;" in text
        assert "pub const MIN_FAIR_COST: u64 = 5000;" in text
        assert "pub const OVERCHARGE_TOLERANCE: u64 = 7;" in text

    def test_no_unfilled_placeholders(self):
        text = render_runtime_module()
        assert "@" not in text

    def test_runtime_parses_as_rust(self, parser):
        tree = parser.parse(render_runtime_module())
        assert tree.root.kind == "source_file"
