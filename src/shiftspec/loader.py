"""SpectrumLoader — one pass over the events, every hypothesis at once.

Register spectra, call :meth:`SpectrumLoader.run` once, read the
spectra.  Spectra are grouped by their :class:`ShiftSet`, so a ShiftSet
shared by N spectra is applied once per event, not N times:

::

    for event in source:
        for shift_set, spectra in plan:
            with shift_set.applied(event, rng[shift_set]) as w:
                for s in spectra:
                    s.observe(event, base_weight * w)
        # event is back in its original state here

State machine
-------------
``IDLE → RUNNING → FINALIZED``, or ``RUNNING → ABORTED`` on a fatal
error.  Registration is only legal while idle; ``run()`` is only legal
once.  After an abort every registered spectrum is discarded: its
partial contents are undefined.

Randomness
----------
Each distinct ShiftSet gets its own ``numpy.random.Generator`` seeded
from ``(config.seed, shift_set.seed_key())``.  A stochastic hypothesis
therefore sees the same draws whether it runs alone or alongside
others, and whatever order the spectra were registered in.

Usage
-----
>>> loader = SpectrumLoader(FileEventSource("cafs/CAF_FHC_90*.npz"),
...                         LoaderConfig(seed=42))
>>> s_cv = loader.book(axis, kHasCC0PiFinalState)
>>> s_up = loader.book(axis, kHasCC0PiFinalState,
...                    STANDARD_SYSTS.shift("muScale", +1))
>>> report = loader.run()
>>> report.summary()
"""

from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass, replace as dc_replace
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

import numpy as np

from .binning import HistAxis
from .errors import (
    AlreadyFinalized, AlreadyRunning, ConfigurationError,
)
from .shifts import NOMINAL, ShiftSet
from .source import EventSource
from .spectrum import Spectrum
from .var import Cut, Var, is_undefined

__all__ = [
    "LoaderState",
    "LoaderConfig",
    "RunReport",
    "SpectrumLoader",
]

logger = logging.getLogger(__name__)

WeightSpec = Union[float, Callable[[Mapping[str, Any]], float]]


class LoaderState(enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    FINALIZED = "finalized"
    ABORTED = "aborted"


# ═══════════════════════════════════════════════════════════════════
# LoaderConfig
# ═══════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class LoaderConfig:
    """Run settings for one :class:`SpectrumLoader`.

    Parameters
    ----------
    seed : int
        Root seed for the per-hypothesis random streams.
    base_weight : float or callable
        Event weight before systematic reweighting.  A callable is
        evaluated on the unshifted record.
    log_every : int
        Emit a progress log line every this many events (0 = never).
    max_events : int, optional
        Stop after this many events.
    """

    seed: int = 0
    base_weight: WeightSpec = 1.0
    log_every: int = 100_000
    max_events: Optional[int] = None

    def __post_init__(self):
        if self.seed < 0:
            raise ConfigurationError(f"seed must be >= 0, got {self.seed}")
        if self.log_every < 0:
            raise ConfigurationError(
                f"log_every must be >= 0, got {self.log_every}")
        if self.max_events is not None and self.max_events < 0:
            raise ConfigurationError(
                f"max_events must be >= 0, got {self.max_events}")
        if not callable(self.base_weight) and is_undefined(self.base_weight):
            raise ConfigurationError("base_weight must be defined")

    def replace(self, **overrides: Any) -> "LoaderConfig":
        """Return a new config with selected fields overridden."""
        return dc_replace(self, **overrides)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe dict; a callable weight is reported by name."""
        bw = self.base_weight
        return {
            "seed": self.seed,
            "base_weight": (getattr(bw, "__name__", repr(bw))
                            if callable(bw) else float(bw)),
            "log_every": self.log_every,
            "max_events": self.max_events,
        }


# ═══════════════════════════════════════════════════════════════════
# RunReport
# ═══════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class RunReport:
    """What one pass did.

    ``spectra_per_shift`` has one entry per ShiftSet in the plan.
    Distinct ShiftSets whose labels coincide are told apart by a ``#2``,
    ``#3`` ... suffix in plan order.
    """

    n_events: int
    n_spectra: int
    spectra_per_shift: Dict[str, int]
    shift_applications: int
    elapsed_s: float
    seed: int = 0

    @property
    def n_shift_sets(self) -> int:
        return len(self.spectra_per_shift)

    @property
    def events_per_second(self) -> float:
        return self.n_events / max(self.elapsed_s, 1e-9)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "n_events": self.n_events,
            "n_spectra": self.n_spectra,
            "n_shift_sets": self.n_shift_sets,
            "spectra_per_shift": dict(self.spectra_per_shift),
            "shift_applications": self.shift_applications,
            "elapsed_s": round(self.elapsed_s, 3),
            "seed": self.seed,
        }

    def summary(self) -> str:
        """One-line human-readable summary."""
        return (
            f"{self.n_events} events × {self.n_shift_sets} shift sets "
            f"→ {self.n_spectra} spectra in {self.elapsed_s:.2f}s "
            f"({self.events_per_second:.0f} ev/s)"
        )


# ═══════════════════════════════════════════════════════════════════
# SpectrumLoader
# ═══════════════════════════════════════════════════════════════════

class SpectrumLoader:
    """Fills every registered spectrum in a single pass over *source*.

    Parameters
    ----------
    source : EventSource
        Opened once, at the start of :meth:`run`.
    config : LoaderConfig, optional
    """

    def __init__(self, source: EventSource,
                 config: Optional[LoaderConfig] = None):
        self._source = source
        self._config = config or LoaderConfig()
        self._state = LoaderState.IDLE
        self._plan: Dict[ShiftSet, List[Spectrum]] = {}
        self._report: Optional[RunReport] = None

    # ── read ────────────────────────────────────────────────────

    @property
    def state(self) -> LoaderState:
        return self._state

    @property
    def config(self) -> LoaderConfig:
        return self._config

    @property
    def source(self) -> EventSource:
        return self._source

    @property
    def plan(self) -> Dict[ShiftSet, Tuple[Spectrum, ...]]:
        """``{shift_set: (spectrum, ...)}`` in registration order."""
        return {k: tuple(v) for k, v in self._plan.items()}

    @property
    def spectra(self) -> Tuple[Spectrum, ...]:
        return tuple(s for group in self._plan.values() for s in group)

    @property
    def report(self) -> Optional[RunReport]:
        return self._report

    def __repr__(self) -> str:
        return (f"SpectrumLoader({self._source!r}, {self._state.value}, "
                f"{len(self.spectra)} spectra, {len(self._plan)} shift sets)")

    # ── registration ────────────────────────────────────────────

    def _require_idle(self) -> None:
        if self._state is not LoaderState.IDLE:
            raise AlreadyRunning(
                f"Cannot register spectra: loader is {self._state.value}")

    def register_spectrum(self, spectrum: Spectrum) -> Spectrum:
        """Add *spectrum* to the plan under its ShiftSet.

        Raises
        ------
        AlreadyRunning
            If the loader is no longer idle.
        ConfigurationError
            If *spectrum* is already registered with a loader.
        """
        self._require_idle()
        if not isinstance(spectrum, Spectrum):
            raise ConfigurationError(
                f"Expected a Spectrum, got {type(spectrum).__name__}")
        if spectrum._owner is not None:
            where = "this" if spectrum._owner is self else "another"
            raise ConfigurationError(
                f"Spectrum {spectrum.name!r} is already registered with "
                f"{where} loader")
        spectrum._owner = self
        self._plan.setdefault(spectrum.shift, []).append(spectrum)
        return spectrum

    def book(
        self,
        axis: HistAxis,
        cut: Optional[Cut] = None,
        shift: ShiftSet = NOMINAL,
        *,
        weight: Optional[Var] = None,
        name: Optional[str] = None,
    ) -> Spectrum:
        """Create a :class:`Spectrum` and register it in one step."""
        return self.register_spectrum(
            Spectrum(axis, cut, shift, weight=weight, name=name))

    # ── the pass ────────────────────────────────────────────────

    def _rngs(self) -> Dict[ShiftSet, np.random.Generator]:
        seed = self._config.seed
        rngs: Dict[ShiftSet, np.random.Generator] = {}
        seen: Dict[int, ShiftSet] = {}
        for shift in self._plan:
            key = shift.seed_key()
            if key in seen and not shift.is_nominal:
                logger.warning(
                    f"Shift sets {seen[key].label!r} and {shift.label!r} "
                    f"share a random stream")
            seen.setdefault(key, shift)
            rngs[shift] = np.random.default_rng([seed, key])
        return rngs

    def _base_weight(self, record: Mapping[str, Any]) -> float:
        bw = self._config.base_weight
        return float(bw(record)) if callable(bw) else float(bw)

    def run(self) -> RunReport:
        """Stream the source once and fill every registered spectrum.

        Raises
        ------
        AlreadyRunning / AlreadyFinalized
            If called more than once.
        ConfigurationError
            If nothing is registered.
        SourceNotFound
            If the source's locator matches nothing.
        TransformFailure / RestoreMismatch
            Fatal; the pass is aborted and all spectra discarded.
        """
        if self._state is LoaderState.RUNNING:
            raise AlreadyRunning("run() is already in progress")
        if self._state is not LoaderState.IDLE:
            raise AlreadyFinalized(
                f"run() may only be called once (loader is {self._state.value})")
        if not self._plan:
            raise ConfigurationError("No spectra registered; nothing to fill")

        cfg = self._config
        groups = [(shift, tuple(spectra)) for shift, spectra in self._plan.items()]
        rngs = self._rngs()
        n_spectra = sum(len(g) for _, g in groups)

        # source resolution errors surface before the state changes
        stream = self._source.open()
        self._state = LoaderState.RUNNING
        logger.info(
            f"Starting pass over {self._source!r}: {n_spectra} spectra, "
            f"{len(groups)} shift sets (seed={cfg.seed})")

        n_events = 0
        n_applied = 0
        t0 = time.perf_counter()
        try:
            for record in stream:
                if cfg.max_events is not None and n_events >= cfg.max_events:
                    break
                base = self._base_weight(record)
                for shift, spectra in groups:
                    if shift.is_nominal:
                        for spectrum in spectra:
                            spectrum.observe(record, base)
                        continue
                    with shift.applied(record, rngs[shift]) as w:
                        n_applied += 1
                        weight = base * w
                        for spectrum in spectra:
                            spectrum.observe(record, weight)
                n_events += 1
                if cfg.log_every and n_events % cfg.log_every == 0:
                    elapsed = time.perf_counter() - t0
                    logger.info(
                        f"[{n_events} events] {elapsed:.1f}s elapsed, "
                        f"{n_events / max(elapsed, 1e-9):.0f} ev/s")
        except Exception as exc:
            self._abort(n_events, exc)
            raise

        elapsed = time.perf_counter() - t0
        self._state = LoaderState.FINALIZED
        self._report = RunReport(
            n_events=n_events,
            n_spectra=n_spectra,
            spectra_per_shift=dict(zip(
                _report_labels([s for s, _ in groups]),
                [len(g) for _, g in groups])),
            shift_applications=n_applied,
            elapsed_s=elapsed,
            seed=cfg.seed,
        )
        logger.info(f"Pass complete: {self._report.summary()}")
        return self._report

    def _abort(self, n_events: int, exc: BaseException) -> None:
        self._state = LoaderState.ABORTED
        for spectrum in self.spectra:
            spectrum.discard()
        logger.error(
            f"Pass aborted at event {n_events}: "
            f"{type(exc).__name__}: {exc}; all spectra discarded")


def _report_labels(shifts: List[ShiftSet]) -> List[str]:
    """Labels in plan order; repeats get a ``#2``, ``#3`` ... suffix."""
    counts: Dict[str, int] = {}
    labels = []
    for shift in shifts:
        n = counts.get(shift.label, 0) + 1
        counts[shift.label] = n
        labels.append(shift.label if n == 1 else f"{shift.label}#{n}")
    return labels
