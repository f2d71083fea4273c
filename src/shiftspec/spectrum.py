"""Spectrum — weighted, binned accumulation under one hypothesis.

A :class:`Spectrum` owns, immutably, an axis (binning + variable), a
selection cut, a :class:`~shiftspec.shifts.ShiftSet` and an optional
per-spectrum weight variable.  Mutable state is two numpy arrays,
``content`` (sum of weights) and ``sumw2`` (sum of squared weights),
plus the out-of-range and undefined-value tallies.

The loader fills spectra; everything else only reads them through
:meth:`Spectrum.snapshot`, which never changes internal state and may
be called mid-pass.

Usage
-----
>>> axis = HistAxis("Reconstructed E_mu (GeV)", Binning.simple(40, 0, 10),
...                 kRecoMuonEnergy)
>>> s_cv = Spectrum(axis, kHasCC0PiFinalState)
>>> s_up = Spectrum(axis, kHasCC0PiFinalState, STANDARD_SYSTS.shift("muScale", +1))
>>> loader.register_spectrum(s_cv); loader.register_spectrum(s_up)
>>> loader.run()
>>> h_cv = s_cv.snapshot(1e20 / dataset_pot)
"""

from __future__ import annotations

import math
from typing import Any, Mapping, Optional

import numpy as np

from .binning import OVERFLOW, UNDERFLOW, HistAxis
from .errors import ConfigurationError, DiscardedSpectrum
from .histogram import Histogram
from .shifts import NOMINAL, ShiftSet
from .var import Cut, Var, as_cut, as_var, is_undefined

__all__ = ["Spectrum"]


class Spectrum:
    """Binned accumulator for one (axis, cut, shift) combination.

    Parameters
    ----------
    axis : HistAxis
        Binning and the variable to histogram.
    cut : Cut or callable, optional
        Selection; ``None`` selects everything.
    shift : ShiftSet, optional
        Systematic hypothesis; defaults to :data:`NOMINAL`.
    weight : Var or callable, optional
        Per-spectrum weight, multiplied into the loader's event weight.
        Evaluated on the (possibly shifted) record.
    name : str, optional
        Label for reports; defaults to the shift label.
    """

    def __init__(
        self,
        axis: HistAxis,
        cut: Optional[Cut] = None,
        shift: ShiftSet = NOMINAL,
        *,
        weight: Optional[Var] = None,
        name: Optional[str] = None,
    ):
        if not isinstance(axis, HistAxis):
            raise ConfigurationError(
                f"Spectrum axis must be a HistAxis, got {type(axis).__name__}")
        if not isinstance(shift, ShiftSet):
            raise ConfigurationError(
                f"Spectrum shift must be a ShiftSet, got {type(shift).__name__}")

        self._axis = axis
        self._cut = as_cut(cut)
        self._shift = shift
        self._weight = None if weight is None else as_var(weight)
        self._name = name or shift.label

        n = axis.n_bins
        self._content = np.zeros(n, dtype=np.float64)
        self._sumw2 = np.zeros(n, dtype=np.float64)
        self._underflow = 0.0
        self._overflow = 0.0
        self._n_underflow = 0
        self._n_overflow = 0
        self._n_dropped = 0
        self._entries = 0
        self._discarded = False

        # set by SpectrumLoader.register_spectrum
        self._owner: Any = None

    # ── read ────────────────────────────────────────────────────

    @property
    def axis(self) -> HistAxis:
        return self._axis

    @property
    def binning(self):
        return self._axis.binning

    @property
    def var(self) -> Var:
        return self._axis.var

    @property
    def cut(self) -> Cut:
        return self._cut

    @property
    def shift(self) -> ShiftSet:
        return self._shift

    @property
    def name(self) -> str:
        return self._name

    @property
    def content(self) -> np.ndarray:
        """Copy of the raw per-bin weight sums."""
        return self._content.copy()

    @property
    def sumw2(self) -> np.ndarray:
        """Copy of the raw per-bin squared-weight sums."""
        return self._sumw2.copy()

    @property
    def underflow(self) -> float:
        return self._underflow

    @property
    def overflow(self) -> float:
        return self._overflow

    @property
    def n_underflow(self) -> int:
        return self._n_underflow

    @property
    def n_overflow(self) -> int:
        return self._n_overflow

    @property
    def n_dropped(self) -> int:
        """Selected records whose variable or weight was undefined."""
        return self._n_dropped

    @property
    def entries(self) -> int:
        """Selected records that landed in a finite bin."""
        return self._entries

    @property
    def is_discarded(self) -> bool:
        return self._discarded

    def integral(self) -> float:
        """Raw sum of in-range content."""
        return float(self._content.sum())

    # ── fill ────────────────────────────────────────────────────

    def observe(self, record: Mapping[str, Any], weight: float = 1.0) -> None:
        """Accumulate one record if it passes the cut.

        Undefined values (NaN, ``None``) are counted in
        :attr:`n_dropped` and otherwise ignored; out-of-range values go
        to the underflow/overflow tallies only.
        """
        if not self._cut(record):
            return

        x = self._axis.var(record)
        if is_undefined(x):
            self._n_dropped += 1
            return

        w = weight
        if self._weight is not None:
            extra = self._weight(record)
            if is_undefined(extra):
                self._n_dropped += 1
                return
            w = w * extra
        if is_undefined(w):
            self._n_dropped += 1
            return

        idx = self._axis.binning.bin_index(x)
        if idx == UNDERFLOW:
            self._underflow += w
            self._n_underflow += 1
        elif idx == OVERFLOW:
            self._overflow += w
            self._n_overflow += 1
        else:
            self._content[idx] += w
            self._sumw2[idx] += w * w
            self._entries += 1

    # ── read out ────────────────────────────────────────────────

    def snapshot(self, scale_factor: float = 1.0) -> Histogram:
        """Return a :class:`Histogram` scaled by *scale_factor*.

        Pure and repeatable; does not touch the accumulators.

        Raises
        ------
        ConfigurationError
            If *scale_factor* is not a positive finite number.
        DiscardedSpectrum
            If the pass that filled this spectrum was aborted.
        """
        if self._discarded:
            raise DiscardedSpectrum(
                f"Spectrum {self._name!r} belongs to an aborted pass; "
                f"its contents are undefined")
        if not (math.isfinite(scale_factor) and scale_factor > 0):
            raise ConfigurationError(
                f"Scale factor must be positive and finite, got {scale_factor}")

        return Histogram(
            edges=self._axis.binning.edges,
            values=self._content * scale_factor,
            errors=np.sqrt(self._sumw2) * scale_factor,
            underflow=self._underflow * scale_factor,
            overflow=self._overflow * scale_factor,
            label=self._axis.label,
            name=self._name,
        )

    # ── combine / reset ─────────────────────────────────────────

    def merge(self, other: "Spectrum") -> None:
        """Add *other*'s accumulators into this one, bin by bin.

        Used to combine partial results from workers that each filled
        a private copy over a slice of the events.
        """
        if other.binning != self.binning:
            raise ConfigurationError(
                f"Cannot merge {other.name!r} into {self._name!r}: "
                f"binning differs")
        if self._discarded or other._discarded:
            raise DiscardedSpectrum("Cannot merge a discarded spectrum")
        self._content += other._content
        self._sumw2 += other._sumw2
        self._underflow += other._underflow
        self._overflow += other._overflow
        self._n_underflow += other._n_underflow
        self._n_overflow += other._n_overflow
        self._n_dropped += other._n_dropped
        self._entries += other._entries

    def reset(self) -> None:
        """Zero every accumulator and clear the discarded flag."""
        self._content[:] = 0.0
        self._sumw2[:] = 0.0
        self._underflow = self._overflow = 0.0
        self._n_underflow = self._n_overflow = 0
        self._n_dropped = 0
        self._entries = 0
        self._discarded = False

    def discard(self) -> None:
        """Mark the contents as undefined after an aborted pass."""
        self._discarded = True

    def __repr__(self) -> str:
        return (f"Spectrum({self._name!r}, {self._axis!r}, "
                f"cut={self._cut.name!r}, entries={self._entries})")
