"""Generated Rust runtime appended to instrumented contracts.

The runtime has two parts:
- a pair of ``ink_probe!`` macros selected by the profiling Cargo feature.
  Enabled, a probe brackets one expression with before/after ink readings;
  disabled, it expands to the bare expression.
- the ``__ink_profiling`` module: a mutex-guarded registry keyed by probe
  id, an observed dry-nib check, and a report dump that does not reset.

The Rust text uses ``$`` for macro metavariables, so the template
placeholders use ``@`` instead.
"""

from __future__ import annotations

from string import Template

from ..config import DEFAULT_CONFIG, AnalysisConfig

RUNTIME_MARKER = "// inkwell: generated ink profiling runtime"
PROBE_MACRO = "crate::ink_probe!"


class RustTemplate(Template):
    delimiter = "@"


RUNTIME_TEMPLATE = RustTemplate(
    """
@marker
// Build with `--features @feature` to record probes; without the feature
// every `ink_probe!` expands to the bare expression.

#[cfg(feature = "@feature")]
#[macro_export]
#[doc(hidden)]
macro_rules! ink_probe {
    ($id:expr, $kind:expr, $e:expr) => {{
        let __ink_before = $crate::__ink_profiling::probe_before($id, $kind);
        let __ink_value = $e;
        $crate::__ink_profiling::probe_after(
            $id,
            __ink_before,
            ::core::mem::size_of_val(&__ink_value),
        );
        __ink_value
    }};
}

#[cfg(not(feature = "@feature"))]
#[macro_export]
#[doc(hidden)]
macro_rules! ink_probe {
    ($id:expr, $kind:expr, $e:expr) => {
        $e
    };
}

#[cfg(feature = "@feature")]
#[doc(hidden)]
pub mod __ink_profiling {
    extern crate std;

    use std::collections::BTreeMap;
    use std::format;
    use std::string::String;
    use std::sync::Mutex;
    use std::vec::Vec;

    pub const BUFFER_ALLOCATION_BYTES: usize = @buffer_bytes;
    pub const MIN_FAIR_COST: u64 = @min_fair_cost;
    pub const OVERCHARGE_TOLERANCE: u64 = @tolerance;

    #[derive(Clone, Debug)]
    pub struct ProbeRecord {
        pub kind: &'static str,
        pub before: u64,
        pub delta: u64,
        pub hits: u64,
        pub last_return_size: usize,
    }

    #[derive(Clone, Debug)]
    pub struct ObservedDryNib {
        pub probe_id: u32,
        pub kind: &'static str,
        pub ink_charged: u64,
        pub return_size: usize,
        pub buffer_allocated: usize,
        pub expected_fair_cost: u64,
        pub overcharge: u64,
    }

    struct Registry {
        probes: BTreeMap<u32, ProbeRecord>,
        detections: Vec<ObservedDryNib>,
    }

    // One lock for every probe activation. It is never held while the
    // probed expression runs, so nested and reentrant probes cannot deadlock.
    static REGISTRY: Mutex<Option<Registry>> = Mutex::new(None);

    fn with_registry<R>(f: impl FnOnce(&mut Registry) -> R) -> Option<R> {
        let mut guard = REGISTRY.lock().unwrap_or_else(|poisoned| poisoned.into_inner());
        guard.as_mut().map(f)
    }

    /// Start recording. Probes that fire before `init` are not recorded.
    pub fn init() {
        let mut guard = REGISTRY.lock().unwrap_or_else(|poisoned| poisoned.into_inner());
        if guard.is_none() {
            *guard = Some(Registry {
                probes: BTreeMap::new(),
                detections: Vec::new(),
            });
        }
    }

    /// Drop every measurement; recording stays enabled.
    pub fn reset() {
        with_registry(|registry| {
            registry.probes.clear();
            registry.detections.clear();
        });
    }

    pub fn probe_before(id: u32, kind: &'static str) -> u64 {
        let now = read_ink();
        with_registry(|registry| {
            let record = registry.probes.entry(id).or_insert(ProbeRecord {
                kind,
                before: 0,
                delta: 0,
                hits: 0,
                last_return_size: 0,
            });
            record.before = now;
        });
        now
    }

    pub fn probe_after(id: u32, before: u64, return_size: usize) {
        let delta = read_ink().abs_diff(before);
        with_registry(|registry| {
            let mut kind = "other";
            if let Some(record) = registry.probes.get_mut(&id) {
                record.delta = record.delta.saturating_add(delta);
                record.hits += 1;
                record.last_return_size = return_size;
                kind = record.kind;
            }
            if let Some(found) = detect_dry_nib(id, kind, delta, return_size) {
                registry.detections.push(found);
            }
        });
    }

    /// Observed counterpart of the static dry-nib estimate.
    pub fn detect_dry_nib(
        probe_id: u32,
        kind: &'static str,
        ink_charged: u64,
        return_size: usize,
    ) -> Option<ObservedDryNib> {
        if kind == "other" || kind == "event_emit" {
            return None;
        }
        let units = core::cmp::max(
            1,
            (return_size + BUFFER_ALLOCATION_BYTES - 1) / BUFFER_ALLOCATION_BYTES,
        );
        let buffer_allocated = units * BUFFER_ALLOCATION_BYTES;
        let scaled = ink_charged.saturating_mul(return_size as u64) / buffer_allocated as u64;
        let expected_fair_cost =
            core::cmp::min(ink_charged, core::cmp::max(MIN_FAIR_COST, scaled));
        let overcharge = ink_charged - expected_fair_cost;
        if overcharge <= OVERCHARGE_TOLERANCE {
            return None;
        }
        Some(ObservedDryNib {
            probe_id,
            kind,
            ink_charged,
            return_size,
            buffer_allocated,
            expected_fair_cost,
            overcharge,
        })
    }

    /// Render the registry. Reading does not reset; call `reset` for that.
    pub fn dump_report() -> String {
        let rendered = with_registry(|registry| {
            let mut out = String::from("=== ink profile ===\\n");
            let mut total: u64 = 0;
            for (id, record) in registry.probes.iter() {
                total = total.saturating_add(record.delta);
                out.push_str(&format!(
                    "probe {:>4}  {:<24} hits={:<6} ink={:<12} return={}B\\n",
                    id, record.kind, record.hits, record.delta, record.last_return_size
                ));
            }
            out.push_str(&format!("total measured ink: {}\\n", total));
            if !registry.detections.is_empty() {
                out.push_str("--- dry nib (observed) ---\\n");
                for bug in registry.detections.iter() {
                    out.push_str(&format!(
                        "probe {:>4}  {:<24} charged={} fair={} overcharge={} ({}B in {}B buffer)\\n",
                        bug.probe_id,
                        bug.kind,
                        bug.ink_charged,
                        bug.expected_fair_cost,
                        bug.overcharge,
                        bug.return_size,
                        bug.buffer_allocated
                    ));
                }
            }
            out
        });
        rendered.unwrap_or_else(|| String::from("ink profiling registry not initialized\\n"))
    }

    #[cfg(target_arch = "wasm32")]
    fn read_ink() -> u64 {
        stylus_sdk::evm::ink_left()
    }

    #[cfg(not(target_arch = "wasm32"))]
    fn read_ink() -> u64 {
        std::time::SystemTime::now()
            .duration_since(std::time::UNIX_EPOCH)
            .map(|elapsed| elapsed.as_nanos() as u64)
            .unwrap_or(0)
    }
}
"""
)


def render_runtime_module(config: AnalysisConfig = DEFAULT_CONFIG) -> str:
    """Rust source of the probe macros and the profiling runtime."""
    return RUNTIME_TEMPLATE.substitute(
        marker=RUNTIME_MARKER,
        feature=config.profiling_feature,
        buffer_bytes=config.buffer_allocation_bytes,
        min_fair_cost=config.min_fair_cost,
        tolerance=config.runtime_overcharge_tolerance,
    )
