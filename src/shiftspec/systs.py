"""Systematic transforms — scoped, exactly-reversible record perturbations.

A systematic transform is any object implementing the
:class:`SystematicTransform` protocol:

* ``name`` / ``description`` — for registries and reports
* ``apply(record, magnitude, rng)`` → ``(UndoToken, weight_multiplier)``
* ``undo(record, token)`` — exact inverse on the captured fields

There is no base class to inherit from.  The concrete transforms below
are frozen dataclasses; anything else that quacks the same way works
with :class:`~shiftspec.shifts.ShiftSet` and the loader.

Capturing and restoring
-----------------------
Before touching a field a transform saves it through a
:class:`Restorer`.  The restorer keeps the *original object*, not a
copy or a re-computation, so restoring reproduces the exact float bit
pattern.  :func:`restore` replays a token in reverse capture order and
raises :class:`~shiftspec.errors.RestoreMismatch` if a field has gone
missing.

Randomness
----------
Stochastic transforms draw only from the ``rng`` argument (a
``numpy.random.Generator``).  There is no module-level random state.

Usage
-----
>>> import numpy as np
>>> from shiftspec.systs import ScaleShift, SmearShift
>>> mu_scale = ScaleShift("muScale", "Elep_reco", 0.2,
...                       description="Muon energy scale")
>>> token, w = mu_scale.apply(record, +1.0, np.random.default_rng(1))
>>> record["Elep_reco"]          # 20 % higher
>>> mu_scale.undo(record, token) # bit-identical again
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import (
    Any, Callable, Dict, MutableMapping, Optional, Protocol, Tuple,
    runtime_checkable,
)

import numpy as np

from .errors import RestoreMismatch

__all__ = [
    "UndoToken",
    "Restorer",
    "restore",
    "SystematicTransform",
    "ScaleShift",
    "SmearShift",
    "OffsetShift",
    "ReweightShift",
    "FunctionShift",
]

Record = MutableMapping[str, Any]


# ═══════════════════════════════════════════════════════════════════
# UndoToken / Restorer
# ═══════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class UndoToken:
    """Fields touched by one transform application and their prior values.

    ``saved`` is in capture order; :func:`restore` walks it backwards.
    """

    saved: Tuple[Tuple[str, Any], ...] = ()

    @property
    def fields(self) -> Tuple[str, ...]:
        return tuple(f for f, _ in self.saved)

    def __len__(self) -> int:
        return len(self.saved)


EMPTY_TOKEN = UndoToken()


class Restorer:
    """Collects pre-mutation field values during one ``apply`` call.

    Saving the same field twice keeps the first value, so a transform
    may call :meth:`save` defensively before every write.
    """

    __slots__ = ("_saved",)

    def __init__(self):
        self._saved: Dict[str, Any] = {}

    def save(self, record: Record, field: str) -> None:
        if field in self._saved:
            return
        if field not in record:
            raise RestoreMismatch(field)
        self._saved[field] = record[field]

    def token(self) -> UndoToken:
        if not self._saved:
            return EMPTY_TOKEN
        return UndoToken(tuple(self._saved.items()))

    def __len__(self) -> int:
        return len(self._saved)


def restore(record: Record, token: UndoToken) -> None:
    """Put every field in *token* back to its saved value.

    All fields are checked before any is written, so a mismatch leaves
    the record as it was.
    """
    for name, _ in token.saved:
        if name not in record:
            raise RestoreMismatch(name)
    for name, value in reversed(token.saved):
        record[name] = value


# ═══════════════════════════════════════════════════════════════════
# SystematicTransform protocol
# ═══════════════════════════════════════════════════════════════════

@runtime_checkable
class SystematicTransform(Protocol):
    """Protocol for one named, parameterised perturbation.

    ``magnitude`` is a signed real; ±1.0 conventionally means one
    standard deviation.  ``apply`` returns the undo token and the
    multiplicative weight adjustment (1.0 when it does not reweight).
    """

    @property
    def name(self) -> str:
        ...

    @property
    def description(self) -> str:
        ...

    def apply(
        self,
        record: Record,
        magnitude: float,
        rng: Optional[np.random.Generator],
    ) -> Tuple[UndoToken, float]:
        ...

    def undo(self, record: Record, token: UndoToken) -> None:
        ...


def _require_rng(name: str, rng: Optional[np.random.Generator]) -> np.random.Generator:
    if rng is None:
        raise ValueError(
            f"{name} is stochastic and needs an explicit random generator")
    return rng


# ═══════════════════════════════════════════════════════════════════
# Concrete transforms
# ═══════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ScaleShift:
    """``x *= 1 + fraction * magnitude`` on one field.

    The muon energy scale systematic: ``ScaleShift("muScale",
    "Elep_reco", 0.2)`` moves the muon energy up 20 % at +1σ and down
    20 % at −1σ.
    """

    name: str
    field: str
    fraction: float
    description: str = ""

    def apply(self, record: Record, magnitude: float,
              rng: Optional[np.random.Generator] = None) -> Tuple[UndoToken, float]:
        restorer = Restorer()
        restorer.save(record, self.field)
        record[self.field] = record[self.field] * (1 + self.fraction * magnitude)
        return restorer.token(), 1.0

    def undo(self, record: Record, token: UndoToken) -> None:
        restore(record, token)


@dataclass(frozen=True)
class SmearShift:
    """Gaussian smearing of one field, drawn from the supplied generator.

    Relative mode (default): ``x *= 1 + magnitude * N(0, width)``.
    Absolute mode: ``x += magnitude * N(0, width)``.

    Smearing is one-sided in meaning; ``magnitude = -1`` draws from the
    same symmetric distribution and is rarely useful.
    """

    name: str
    field: str
    width: float
    relative: bool = True
    description: str = ""

    def apply(self, record: Record, magnitude: float,
              rng: Optional[np.random.Generator] = None) -> Tuple[UndoToken, float]:
        rng = _require_rng(self.name, rng)
        restorer = Restorer()
        restorer.save(record, self.field)
        draw = magnitude * float(rng.normal(0.0, self.width))
        if self.relative:
            record[self.field] = record[self.field] * (1 + draw)
        else:
            record[self.field] = record[self.field] + draw
        return restorer.token(), 1.0

    def undo(self, record: Record, token: UndoToken) -> None:
        restore(record, token)


@dataclass(frozen=True)
class OffsetShift:
    """``x += offset * magnitude`` on one field."""

    name: str
    field: str
    offset: float
    description: str = ""

    def apply(self, record: Record, magnitude: float,
              rng: Optional[np.random.Generator] = None) -> Tuple[UndoToken, float]:
        restorer = Restorer()
        restorer.save(record, self.field)
        record[self.field] = record[self.field] + self.offset * magnitude
        return restorer.token(), 1.0

    def undo(self, record: Record, token: UndoToken) -> None:
        restore(record, token)


@dataclass(frozen=True)
class ReweightShift:
    """Pure reweighting: fields untouched, weight multiplied.

    ``weight_fn(record, magnitude) -> float``.
    """

    name: str
    weight_fn: Callable[[Record, float], float]
    description: str = ""

    def apply(self, record: Record, magnitude: float,
              rng: Optional[np.random.Generator] = None) -> Tuple[UndoToken, float]:
        return EMPTY_TOKEN, float(self.weight_fn(record, magnitude))

    def undo(self, record: Record, token: UndoToken) -> None:
        restore(record, token)


@dataclass(frozen=True)
class FunctionShift:
    """Arbitrary shift written as a function.

    ``shift_fn(record, magnitude, restorer, rng)`` must call
    ``restorer.save(record, field)`` before writing *field*, and may
    return a weight multiplier (``None`` means 1.0).  If it raises, the
    fields saved so far are restored before the error propagates.

    >>> def theta_smear(sr, sigma, restore, rng):
    ...     restore.save(sr, "theta_reco")
    ...     sr["theta_reco"] += sigma * rng.normal(0, np.pi / 6)
    >>> FunctionShift("thetaSmear", theta_smear)
    """

    name: str
    shift_fn: Callable[..., Optional[float]]
    description: str = ""

    def apply(self, record: Record, magnitude: float,
              rng: Optional[np.random.Generator] = None) -> Tuple[UndoToken, float]:
        restorer = Restorer()
        try:
            weight = self.shift_fn(record, magnitude, restorer, rng)
        except Exception:
            restore(record, restorer.token())
            raise
        return restorer.token(), 1.0 if weight is None else float(weight)

    def undo(self, record: Record, token: UndoToken) -> None:
        restore(record, token)
