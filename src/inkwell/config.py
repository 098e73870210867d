"""Configuration loading and management for Inkwell.

Configuration sources are merged in priority order:
    1. Defaults (defined in AnalysisConfig / CostPolicy)
    2. Global config (~/.inkwell.toml)
    3. Project config (./inkwell.toml)
    4. Explicit config file
    5. Environment variables (INKWELL_* prefix)
    6. CLI overrides (passed as kwargs)

Example:
    >>> config = load_config(hotspot_limit=3)
    >>> config.hotspot_limit
    3
    >>> config.costs.storage_read
    1200000
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal, Optional, get_type_hints

from .exceptions import ConfigFileError, InvalidConfigError

Verbosity = Literal["quiet", "normal", "verbose"]

# 1 gas ~ 10,000 ink on Stylus; not a policy knob.
GAS_DIVISOR = 10_000


def _default_context_costs() -> dict[str, int]:
    return {
        "msg_sender": 300_000,
        "msg_value": 350_000,
        "block": 250_000,
        "default": 200_000,
    }


@dataclass(frozen=True)
class CostPolicy:
    """Base ink charge per operation kind.

    The published guidance for host I/O costs disagrees with itself, so the
    numbers here are a policy table rather than protocol constants. Override
    any of them from the ``[costs]`` table of a config file.

    Attributes:
        storage_read: One storage slot load through a host call
        storage_write: One storage slot store through a host call
        event_emit: One ``evm::log`` emission
        external_call: One cross-contract call
        crypto: One hash/signature primitive
        other: Any unclassified call inside an analyzed unit
        context_call: Sub-kind -> ink for msg/block/tx/contract metadata
            reads. ``default`` covers sub-kinds with no entry.
    """

    storage_read: int = 1_200_000
    storage_write: int = 1_500_000
    event_emit: int = 350_000
    external_call: int = 2_500_000
    crypto: int = 500_000
    other: int = 50_000
    context_call: dict[str, int] = field(default_factory=_default_context_costs)

    def __post_init__(self) -> None:
        for name in ("storage_read", "storage_write", "event_emit", "external_call", "crypto", "other"):
            value = getattr(self, name)
            if not isinstance(value, int) or value < 0:
                raise InvalidConfigError(f"costs.{name}", value, "must be a non-negative integer")
        if "default" not in self.context_call:
            raise InvalidConfigError("costs.context_call", self.context_call, "needs a 'default' entry")
        for sub_kind, value in self.context_call.items():
            if not isinstance(value, int) or value < 0:
                raise InvalidConfigError(
                    f"costs.context_call.{sub_kind}", value, "must be a non-negative integer"
                )


DEFAULT_COSTS = CostPolicy()


@dataclass(frozen=True)
class AnalysisConfig:
    """Configuration for analysis and instrumentation runs.

    Attributes:
        Cost model:
            costs: Base ink table (see CostPolicy)

        Walker:
            include_other: Keep unclassified calls as ``other`` operations
            ignored_calls: Plain constructors that are never operations

        Aggregation:
            hotspot_limit: How many operations to rank per unit

        Dry-nib detector:
            expensive_fields: Storage fields always checked for overcharge
            dry_nib_depth_threshold: Nesting depth that triggers a check
            dry_nib_ink_threshold: Ink estimate that triggers a check
            high_severity_overcharge: Overcharge above which severity is high
            buffer_allocation_bytes: Host-call return buffer allocation unit
            default_return_size_bytes: Width assumed for unknown/composite types
            min_fair_cost: Floor for the fair cost of a flagged operation

        Redundant-read detector:
            redundant_read_window: Statements within which repeated reads
                of one field are considered cacheable

        Instrumentation:
            profiling_feature: Cargo feature that switches probes on
            runtime_overcharge_tolerance: Observed overcharge below this is
                not reported by the generated runtime tracker

        Output control:
            verbosity: Logging verbosity level
    """

    costs: CostPolicy = field(default_factory=CostPolicy)

    include_other: bool = True
    ignored_calls: tuple[str, ...] = ("Ok", "Err", "Some")

    hotspot_limit: int = 5

    expensive_fields: tuple[str, ...] = ("balances", "allowances")
    dry_nib_depth_threshold: int = 2
    dry_nib_ink_threshold: int = 3_000_000
    high_severity_overcharge: int = 2_000_000
    buffer_allocation_bytes: int = 64
    default_return_size_bytes: int = 32
    min_fair_cost: int = 100_000

    redundant_read_window: int = 3

    profiling_feature: str = "ink-profiling"
    runtime_overcharge_tolerance: int = 250_000

    verbosity: Verbosity = "normal"

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if self.hotspot_limit < 0:
            raise InvalidConfigError("hotspot_limit", self.hotspot_limit, "must be non-negative")
        if self.dry_nib_depth_threshold < 1:
            raise InvalidConfigError(
                "dry_nib_depth_threshold", self.dry_nib_depth_threshold, "must be at least 1"
            )
        if self.buffer_allocation_bytes < 1:
            raise InvalidConfigError(
                "buffer_allocation_bytes", self.buffer_allocation_bytes, "must be at least 1"
            )
        if self.default_return_size_bytes < 0:
            raise InvalidConfigError(
                "default_return_size_bytes", self.default_return_size_bytes, "must be non-negative"
            )
        if self.min_fair_cost < 0:
            raise InvalidConfigError("min_fair_cost", self.min_fair_cost, "must be non-negative")
        if self.redundant_read_window < 0:
            raise InvalidConfigError(
                "redundant_read_window", self.redundant_read_window, "must be non-negative"
            )
        if not self.profiling_feature or '"' in self.profiling_feature:
            raise InvalidConfigError(
                "profiling_feature", self.profiling_feature, "must be a plain Cargo feature name"
            )
        if self.verbosity not in ("quiet", "normal", "verbose"):
            raise InvalidConfigError("verbosity", self.verbosity, "expected quiet/normal/verbose")


DEFAULT_CONFIG = AnalysisConfig()


def load_config(config_file: Optional[Path] = None, **overrides) -> AnalysisConfig:
    """Load configuration with auto-discovery and merging.

    Args:
        config_file: Optional explicit config file path
        **overrides: Direct overrides (typically from CLI flags)

    Returns:
        Validated AnalysisConfig instance

    Raises:
        ConfigFileError: If a config file is missing or not valid TOML
        InvalidConfigError: If a merged value fails validation
    """
    merged: dict = {}

    global_config = Path.home() / ".inkwell.toml"
    if global_config.exists():
        merged.update(_load_toml_file(global_config))

    project_config = Path.cwd() / "inkwell.toml"
    if project_config.exists():
        merged.update(_load_toml_file(project_config))

    if config_file is not None:
        if not config_file.exists():
            raise ConfigFileError(config_file, "file not found")
        merged.update(_load_toml_file(config_file))

    merged.update(_load_env_vars())

    if "verbose" in overrides:
        if overrides["verbose"]:
            overrides["verbosity"] = "verbose"
        del overrides["verbose"]
    if "quiet" in overrides:
        if overrides["quiet"]:
            overrides["verbosity"] = "quiet"
        del overrides["quiet"]

    merged.update(overrides)

    costs = merged.pop("costs", None)
    if costs is not None:
        if isinstance(costs, dict):
            context_costs = dict(_default_context_costs())
            context_costs.update(costs.pop("context_call", {}))
            try:
                merged["costs"] = CostPolicy(context_call=context_costs, **costs)
            except TypeError as e:
                raise InvalidConfigError("costs", costs, str(e))
        elif isinstance(costs, CostPolicy):
            merged["costs"] = costs
        else:
            raise InvalidConfigError("costs", costs, "expected a [costs] table")

    # TOML arrays arrive as lists
    for key in ("expensive_fields", "ignored_calls"):
        if isinstance(merged.get(key), list):
            merged[key] = tuple(merged[key])

    try:
        return AnalysisConfig(**merged)
    except TypeError as e:
        raise InvalidConfigError("config", sorted(merged), str(e))


def _load_env_vars() -> dict[str, Any]:
    """Load configuration from INKWELL_* environment variables.

    Scalar fields only (ints, bools, strings); tuple fields such as
    ``expensive_fields`` accept a comma-separated list.

    Returns:
        Dict of field_name -> parsed_value for any INKWELL_* vars found.
    """
    type_hints = get_type_hints(AnalysisConfig)
    result: dict[str, Any] = {}

    for field_name in AnalysisConfig.__dataclass_fields__:
        env_key = f"INKWELL_{field_name.upper()}"
        env_value = os.environ.get(env_key)
        if env_value is None:
            continue

        type_hint = type_hints.get(field_name)
        try:
            parsed = _parse_env_value(env_value, type_hint)
        except ValueError as e:
            raise InvalidConfigError(env_key, env_value, str(e))
        if parsed is not None:
            result[field_name] = parsed

    return result


def _parse_env_value(value: str, type_hint: Any) -> Any:
    """Parse an environment variable string to the field's type.

    Returns:
        Parsed value, or None for fields that cannot come from the environment

    Raises:
        ValueError: If value can't be parsed to expected type
    """
    origin = getattr(type_hint, "__origin__", None)

    if type_hint is bool:
        lower = value.lower()
        if lower in ("true", "1", "yes", "on"):
            return True
        if lower in ("false", "0", "no", "off"):
            return False
        raise ValueError(f"expected true/false, got '{value}'")

    if type_hint is int:
        return int(value)

    if origin is tuple:
        return tuple(part.strip() for part in value.split(",") if part.strip())

    if type_hint is str or origin is Literal:
        return value

    return None


def _load_toml_file(path: Path) -> dict:
    """Load TOML file and return parsed dict.

    Raises:
        ConfigFileError: If the file cannot be read or parsed
    """
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigFileError(path, str(e))
