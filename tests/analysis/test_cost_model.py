"""Tests for the static ink cost table and type widths."""

import pytest

from inkwell.analysis.cost_model import estimate, gas_equivalent, severity_for
from inkwell.analysis.models import OperationKind, Severity
from inkwell.analysis.type_widths import context_width, type_width, value_type
from inkwell.config import CostPolicy


class TestEstimate:
    """estimate() against the default policy."""

    @pytest.mark.parametrize(
        "kind,expected",
        [
            (OperationKind.STORAGE_READ, 1_200_000),
            (OperationKind.STORAGE_WRITE, 1_500_000),
            (OperationKind.STORAGE_WRITE_EMBEDDED, 2_700_000),
            (OperationKind.EVENT_EMIT, 350_000),
            (OperationKind.EXTERNAL_CALL, 2_500_000),
            (OperationKind.CRYPTO, 500_000),
            (OperationKind.OTHER, 50_000),
        ],
    )
    def test_base_costs(self, kind, expected):
        """Every kind maps to its table entry."""
        assert estimate(kind) == expected

    def test_embedded_is_write_plus_read(self):
        """An embedded write charges one write and one read."""
        policy = CostPolicy(storage_read=7, storage_write=11)
        assert estimate(OperationKind.STORAGE_WRITE_EMBEDDED, policy=policy) == 18

    def test_nested_scales_with_depth(self):
        """Nested access costs one read per intermediate hop."""
        assert estimate(OperationKind.NESTED_MAP_ACCESS, nesting_depth=1) == 1_200_000
        assert estimate(OperationKind.NESTED_MAP_ACCESS, nesting_depth=2) == 2_400_000
        assert estimate(OperationKind.NESTED_MAP_ACCESS, nesting_depth=3) == 3_600_000

    def test_depth_below_one_is_clamped(self):
        """Nonsensical depths never make a cost zero or negative."""
        assert estimate(OperationKind.NESTED_MAP_ACCESS, nesting_depth=0) == 1_200_000
        assert estimate(OperationKind.NESTED_MAP_ACCESS, nesting_depth=-4) == 1_200_000

    def test_depth_ignored_for_flat_kinds(self):
        """Only nested access uses the depth."""
        assert estimate(OperationKind.STORAGE_READ, nesting_depth=5) == 1_200_000

    def test_context_sub_kinds(self):
        """Context calls are priced per primitive family."""
        assert estimate(OperationKind.CONTEXT_CALL, sub_kind="msg_sender") == 300_000
        assert estimate(OperationKind.CONTEXT_CALL, sub_kind="msg_value") == 350_000
        assert estimate(OperationKind.CONTEXT_CALL, sub_kind="block") == 250_000

    def test_context_default(self):
        """Unknown or missing sub-kinds use the default entry."""
        assert estimate(OperationKind.CONTEXT_CALL) == 200_000
        assert estimate(OperationKind.CONTEXT_CALL, sub_kind="tx") == 200_000

    def test_custom_policy(self):
        """A policy table overrides the defaults."""
        policy = CostPolicy(storage_read=10, context_call={"default": 3, "block": 4})
        assert estimate(OperationKind.NESTED_MAP_ACCESS, 2, policy=policy) == 20
        assert estimate(OperationKind.CONTEXT_CALL, sub_kind="block", policy=policy) == 4
        assert estimate(OperationKind.CONTEXT_CALL, sub_kind="msg_sender", policy=policy) == 3


class TestSeverityAndGas:
    """Display severity and the gas conversion."""

    def test_storage_and_external_are_high(self):
        for kind in (
            OperationKind.STORAGE_READ,
            OperationKind.STORAGE_WRITE,
            OperationKind.STORAGE_WRITE_EMBEDDED,
            OperationKind.NESTED_MAP_ACCESS,
            OperationKind.EXTERNAL_CALL,
        ):
            assert severity_for(kind) == Severity.HIGH

    def test_event_and_crypto_are_medium(self):
        assert severity_for(OperationKind.EVENT_EMIT) == Severity.MEDIUM
        assert severity_for(OperationKind.CRYPTO) == Severity.MEDIUM

    def test_context_and_other_are_low(self):
        assert severity_for(OperationKind.CONTEXT_CALL) == Severity.LOW
        assert severity_for(OperationKind.OTHER) == Severity.LOW

    def test_gas_equivalent_floors(self):
        """Gas is ink divided by 10,000, rounded down."""
        assert gas_equivalent(6_100_000) == 610
        assert gas_equivalent(9_999) == 0
        assert gas_equivalent(0) == 0


class TestTypeWidths:
    """Byte widths of declared storage types."""

    @pytest.mark.parametrize(
        "type_text,width",
        [
            ("uint256", 32),
            ("address", 20),
            ("bool", 1),
            ("StorageU256", 32),
            ("StorageU64", 8),
            ("StorageBool", 1),
            ("StorageAddress", 20),
            ("u16", 2),
            ("uint8", 1),
            ("FixedBytes<4>", 4),
            ("StorageFixedBytes<32>", 32),
            ("bytes20", 20),
        ],
    )
    def test_scalar_widths(self, type_text, width):
        assert type_width(type_text) == width

    def test_map_layers_are_unwrapped(self):
        """Maps and vectors resolve to their value type."""
        assert type_width("StorageMap<Address, StorageU64>") == 8
        assert type_width("StorageMap<Address, StorageMap<U256, StorageBool>>") == 1
        assert type_width("mapping(address => uint8)") == 1
        assert type_width("mapping(address => mapping(address => uint256))") == 32
        assert type_width("StorageVec<StorageU16>") == 2

    def test_value_type(self):
        assert value_type("mapping(address => mapping(uint256 => bool))") == "bool"
        assert value_type("StorageMap<Address, StorageMap<U256, StorageU64>>") == "StorageU64"
        assert value_type("address[]") == "address"

    def test_unknown_uses_default(self):
        """Composite or unknown types fall back to the default width."""
        assert type_width("MyStruct") == 32
        assert type_width("MyStruct", default=48) == 48
        assert type_width(None, default=16) == 16
        assert type_width("") == 32

    def test_context_widths(self):
        """Host primitive return widths by callee."""
        assert context_width("msg::sender") == 20
        assert context_width("block_timestamp") == 8
        assert context_width("msg_value") == 32
        assert context_width("mystery", default=12) == 12
