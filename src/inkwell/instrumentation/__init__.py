"""Source instrumentation: cfg-gated ink probes and the generated runtime."""

from .instrumentor import InstrumentationResult, InstrumentationState, Instrumentor, Probe
from .runtime_module import PROBE_MACRO, RUNTIME_MARKER, render_runtime_module

__all__ = [
    "Instrumentor",
    "InstrumentationResult",
    "InstrumentationState",
    "Probe",
    "PROBE_MACRO",
    "RUNTIME_MARKER",
    "render_runtime_module",
]
