"""Histogram — the immutable output handed to plotting code.

A :class:`Histogram` is what :meth:`Spectrum.snapshot` returns: bin
edges, scaled bin values, scaled statistical uncertainties and the
out-of-range tallies.  Rendering is someone else's job; this module
only offers the arithmetic that comparison plots need.

Fractional comparison
---------------------
:func:`fractional` computes ``(shifted - central) / central`` per bin.
Empty central bins give NaN rather than an error, so a sparse tail does
not stop the comparison of the populated bins.

Uncertainties follow uncorrelated propagation through
``d = shifted - central`` then ``d / central``:

.. math::

    \\sigma_d^2 = \\sigma_s^2 + \\sigma_c^2, \\qquad
    \\sigma_f^2 = \\frac{\\sigma_d^2 c^2 + \\sigma_c^2 d^2}{c^4}

Usage
-----
>>> h_cv = s_cv.snapshot(exposure_scale(1e20, dataset_pot))
>>> h_up = s_up.snapshot(exposure_scale(1e20, dataset_pot))
>>> frac = fractional(h_up, h_cv)
>>> frac.values          # per-bin fractional shift, NaN where h_cv is empty
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict

import numpy as np

from .errors import ConfigurationError

__all__ = [
    "Histogram",
    "fractional",
    "exposure_scale",
]


@dataclass(frozen=True, eq=False)
class Histogram:
    """Binned values with uncertainties.

    Attributes
    ----------
    edges : ndarray, shape (n + 1,)
    values : ndarray, shape (n,)
        ``content * scale``.
    errors : ndarray, shape (n,)
        ``sqrt(sumw2) * scale``.
    underflow, overflow : float
        Scaled weight that fell outside the edges.
    label : str
        Axis label.
    name : str
        Hypothesis label (e.g. ``"muScale(+1)"``).
    """

    edges: np.ndarray
    values: np.ndarray
    errors: np.ndarray
    underflow: float = 0.0
    overflow: float = 0.0
    label: str = ""
    name: str = ""

    def __post_init__(self):
        n = len(self.edges) - 1
        if len(self.values) != n or len(self.errors) != n:
            raise ConfigurationError(
                f"Histogram with {n} bins got {len(self.values)} values "
                f"and {len(self.errors)} errors")
        for attr in ("edges", "values", "errors"):
            arr = np.array(getattr(self, attr), dtype=np.float64)
            arr.setflags(write=False)
            object.__setattr__(self, attr, arr)

    @property
    def n_bins(self) -> int:
        return len(self.values)

    @property
    def centers(self) -> np.ndarray:
        return 0.5 * (self.edges[:-1] + self.edges[1:])

    def integral(self) -> float:
        """Sum of in-range bin values (NaN bins ignored)."""
        return float(np.nansum(self.values))

    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe representation (NaN and infinities become ``None``)."""
        return {
            "name": self.name,
            "label": self.label,
            "edges": self.edges.tolist(),
            "values": [_json_float(v) for v in self.values.tolist()],
            "errors": [_json_float(v) for v in self.errors.tolist()],
            "underflow": _json_float(self.underflow),
            "overflow": _json_float(self.overflow),
        }

    def __repr__(self) -> str:
        return (f"Histogram({self.name or 'unnamed'!r}, "
                f"{self.n_bins} bins, integral={self.integral():.6g})")


def _json_float(v: float):
    return float(v) if math.isfinite(v) else None


def fractional(shifted: Histogram, central: Histogram) -> Histogram:
    """Per-bin ``(shifted - central) / central``.

    Bins with ``central == 0`` are NaN in both values and errors.
    Under/overflow are compared the same way.

    Raises
    ------
    ConfigurationError
        If the two histograms have different edges.
    """
    if not np.array_equal(shifted.edges, central.edges):
        raise ConfigurationError(
            "Cannot compare histograms with different binning")

    s, c = shifted.values, central.values
    es, ec = shifted.errors, central.errors
    diff = s - c
    diff_err2 = es * es + ec * ec

    with np.errstate(divide="ignore", invalid="ignore"):
        empty = c == 0
        values = np.where(empty, np.nan, diff / c)
        err2 = (diff_err2 * c * c + ec * ec * diff * diff) / (c ** 4)
        errors = np.where(empty, np.nan, np.sqrt(err2))

    return Histogram(
        edges=central.edges,
        values=values,
        errors=errors,
        underflow=_frac_scalar(shifted.underflow, central.underflow),
        overflow=_frac_scalar(shifted.overflow, central.overflow),
        label=central.label,
        name=f"{shifted.name or 'shifted'}/{central.name or 'central'}",
    )


def _frac_scalar(s: float, c: float) -> float:
    if c == 0:
        return math.nan
    return (s - c) / c


def exposure_scale(target: float, dataset: float) -> float:
    """Scale factor taking a dataset of exposure *dataset* to *target*.

    Both are in the same unit (e.g. protons on target).
    """
    if not (target > 0 and dataset > 0):
        raise ConfigurationError(
            f"Exposures must be positive, got target={target}, "
            f"dataset={dataset}")
    if not (math.isfinite(target) and math.isfinite(dataset)):
        raise ConfigurationError("Exposures must be finite")
    return target / dataset
