"""Binning — monotonic partitions of a numeric axis.

A :class:`Binning` is a pure value object: strictly increasing edges,
at least two of them.  Bins are half-open ``[lo, hi)``; anything below
the first edge is :data:`UNDERFLOW`, anything at or above the last edge
is :data:`OVERFLOW`.

Usage
-----
>>> from shiftspec.binning import Binning, HistAxis
>>> bins = Binning.simple(40, 0, 10)
>>> bins.bin_index(2.6)            # 10
>>> bins.bin_index(10.0)           # OVERFLOW
>>> axis = HistAxis("Reconstructed E_mu (GeV)", bins, kRecoMuonEnergy)
"""

from __future__ import annotations

import math
import numbers
from bisect import bisect_right
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from .errors import ConfigurationError
from .var import Var, as_var

__all__ = [
    "UNDERFLOW",
    "OVERFLOW",
    "Binning",
    "HistAxis",
]

UNDERFLOW: int = -1
"""Returned by :meth:`Binning.bin_index` for values below the first edge."""

OVERFLOW: int = -2
"""Returned by :meth:`Binning.bin_index` for values at or above the last edge."""


# ═══════════════════════════════════════════════════════════════════
# Binning
# ═══════════════════════════════════════════════════════════════════

class Binning:
    """Ordered bin edges with an underflow/overflow policy.

    Prefer the :meth:`simple` and :meth:`custom` constructors; they
    validate their arguments and raise :class:`ConfigurationError`.

    Parameters
    ----------
    edges : sequence of float
        Strictly increasing, finite, at least two entries.
    uniform : bool
        Enables the O(1) lookup path.  Only :meth:`simple` sets it.
    """

    def __init__(self, edges: Sequence[float], *, uniform: bool = False):
        arr = np.asarray(edges, dtype=np.float64)
        if arr.ndim != 1 or arr.size < 2:
            raise ConfigurationError(
                f"Binning needs at least 2 edges, got {arr.size}")
        if not np.all(np.isfinite(arr)):
            raise ConfigurationError("Bin edges must be finite")
        if not np.all(np.diff(arr) > 0):
            raise ConfigurationError("Bin edges must be strictly increasing")

        arr.setflags(write=False)
        self._edges = arr
        self._edge_list = arr.tolist()
        self._uniform = uniform
        self._lo = self._edge_list[0]
        self._hi = self._edge_list[-1]
        self._width = (self._hi - self._lo) / (arr.size - 1)

    # ── constructors ────────────────────────────────────────────

    @classmethod
    def simple(cls, n: int, lo: float, hi: float) -> "Binning":
        """*n* equal-width bins spanning ``[lo, hi)``."""
        if (not isinstance(n, numbers.Real) or not math.isfinite(n)
                or int(n) != n or n <= 0):
            raise ConfigurationError(
                f"Bin count must be a positive integer, got {n!r}")
        if not (math.isfinite(lo) and math.isfinite(hi)):
            raise ConfigurationError("Binning range must be finite")
        if lo >= hi:
            raise ConfigurationError(
                f"Low edge {lo} must be below high edge {hi}")
        return cls(np.linspace(lo, hi, int(n) + 1), uniform=True)

    @classmethod
    def custom(cls, edges: Sequence[float]) -> "Binning":
        """Arbitrary strictly increasing edges."""
        return cls(edges)

    # ── read ────────────────────────────────────────────────────

    @property
    def edges(self) -> np.ndarray:
        """Read-only edge array of length ``n_bins + 1``."""
        return self._edges

    @property
    def n_bins(self) -> int:
        return self._edges.size - 1

    @property
    def is_uniform(self) -> bool:
        return self._uniform

    @property
    def low(self) -> float:
        return self._lo

    @property
    def high(self) -> float:
        return self._hi

    @property
    def centers(self) -> np.ndarray:
        return 0.5 * (self._edges[:-1] + self._edges[1:])

    @property
    def widths(self) -> np.ndarray:
        return np.diff(self._edges)

    # ── lookup ──────────────────────────────────────────────────

    def bin_index(self, x: float) -> int:
        """Return the bin containing *x*, or UNDERFLOW / OVERFLOW.

        The uniform path computes the index arithmetically and then
        checks it against the stored edges, so both paths agree on
        values that land exactly on an edge.  NaN is not accepted here;
        callers filter undefined values first.
        """
        if x < self._lo:
            return UNDERFLOW
        if x >= self._hi:
            return OVERFLOW

        edges = self._edge_list
        if self._uniform:
            idx = int((x - self._lo) / self._width)
            last = len(edges) - 2
            if idx > last:
                idx = last
            if x < edges[idx]:
                idx -= 1
            elif x >= edges[idx + 1]:
                idx += 1
            return idx
        return bisect_right(edges, x) - 1

    # ── comparison ──────────────────────────────────────────────

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Binning):
            return NotImplemented
        return np.array_equal(self._edges, other._edges)

    def __hash__(self) -> int:
        return hash(tuple(self._edge_list))

    def __len__(self) -> int:
        return self.n_bins

    def __repr__(self) -> str:
        if self._uniform:
            return f"Binning.simple({self.n_bins}, {self._lo:g}, {self._hi:g})"
        return f"Binning.custom({self._edge_list})"


# ═══════════════════════════════════════════════════════════════════
# HistAxis: what to plot and how to bin it
# ═══════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class HistAxis:
    """Axis label, binning and the variable that fills it.

    *var* may be a :class:`~shiftspec.var.Var` or any plain callable
    ``(record) -> float``; it is wrapped on construction.
    """

    label: str
    binning: Binning
    var: Var

    def __post_init__(self):
        if not isinstance(self.binning, Binning):
            raise ConfigurationError(
                f"HistAxis binning must be a Binning, "
                f"got {type(self.binning).__name__}")
        object.__setattr__(self, "var", as_var(self.var))

    @property
    def n_bins(self) -> int:
        return self.binning.n_bins

    def __repr__(self) -> str:
        return f"HistAxis({self.label!r}, {self.binning!r})"

