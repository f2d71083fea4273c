"""ShiftSet — one systematic hypothesis.

An ordered sequence of ``(transform, magnitude)`` pairs.  Two ShiftSets
are equal when their sequences are equal, order included: transforms
touching the same field do not commute.  The empty ShiftSet,
:data:`NOMINAL`, is the central-value hypothesis.

Applying a ShiftSet runs its members in order and multiplies their
weights; undoing it runs the members' undo in strict reverse order.
:meth:`ShiftSet.applied` packages both as a context manager so the
record is restored on every exit path.

Usage
-----
>>> from shiftspec.shifts import ShiftSet, NOMINAL
>>> up = ShiftSet.single(mu_scale, +1)
>>> both = ShiftSet([(mu_scale, +1), (mu_smear, +1)])
>>> with both.applied(record, rng) as weight:
...     spectrum.observe(record, weight)
>>> # record is back to its original state here
"""

from __future__ import annotations

import hashlib
import math
from contextlib import contextmanager
from dataclasses import dataclass, fields, is_dataclass
from typing import Any, Iterable, Iterator, List, MutableMapping, Optional, Sequence, Tuple

import numpy as np

from .errors import RestoreMismatch, TransformFailure
from .systs import SystematicTransform, UndoToken

__all__ = [
    "ShiftSet",
    "AppliedShift",
    "NOMINAL",
]

Record = MutableMapping[str, Any]


@dataclass(frozen=True)
class AppliedShift:
    """Undo tokens (in application order) and the net weight multiplier."""

    tokens: Tuple[UndoToken, ...]
    weight: float = 1.0


class ShiftSet:
    """Ordered ``(SystematicTransform, magnitude)`` pairs.

    Parameters
    ----------
    shifts : iterable of (transform, magnitude)
        Applied in this order.  Magnitudes must be finite.
    """

    __slots__ = ("_shifts",)

    def __init__(self, shifts: Iterable[Tuple[SystematicTransform, float]] = ()):
        pairs: List[Tuple[SystematicTransform, float]] = []
        for transform, magnitude in shifts:
            magnitude = float(magnitude)
            if not math.isfinite(magnitude):
                raise ValueError(
                    f"Shift magnitude for {transform.name} must be finite, "
                    f"got {magnitude}")
            pairs.append((transform, magnitude))
        self._shifts: Tuple[Tuple[SystematicTransform, float], ...] = tuple(pairs)

    @classmethod
    def single(cls, transform: SystematicTransform, magnitude: float) -> "ShiftSet":
        return cls([(transform, magnitude)])

    # ── read ────────────────────────────────────────────────────

    @property
    def shifts(self) -> Tuple[Tuple[SystematicTransform, float], ...]:
        return self._shifts

    @property
    def is_nominal(self) -> bool:
        return not self._shifts

    @property
    def label(self) -> str:
        """Readable identifier, e.g. ``"muScale(+1)+thetaSmear(+1)"``."""
        if not self._shifts:
            return "nominal"
        return "+".join(
            f"{t.name}({_format_magnitude(m)})" for t, m in self._shifts)

    def seed_key(self) -> int:
        """Stable 64-bit integer identifying this ShiftSet.

        Derived from each member's type and parameters plus the exact
        magnitude, not from :attr:`label`: two transforms may share a
        name, and labels round magnitudes.  Independent of registration
        order and of the interpreter's hash randomisation, so
        per-hypothesis random streams can be derived from it.

        Function-valued parameters are keyed by qualified name, so two
        anonymous functions in one module with otherwise equal
        parameters share a key.
        """
        text = "+".join(f"{_identity(t)}@{m!r}" for t, m in self._shifts)
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        return int.from_bytes(digest[:8], "little")

    def __len__(self) -> int:
        return len(self._shifts)

    def __iter__(self) -> Iterator[Tuple[SystematicTransform, float]]:
        return iter(self._shifts)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ShiftSet):
            return NotImplemented
        return self._shifts == other._shifts

    def __hash__(self) -> int:
        return hash(self._shifts)

    def __repr__(self) -> str:
        return f"ShiftSet({self.label})"

    def then(self, transform: SystematicTransform, magnitude: float) -> "ShiftSet":
        """Return a new ShiftSet with one more shift appended."""
        return ShiftSet(list(self._shifts) + [(transform, magnitude)])

    # ── apply / undo ────────────────────────────────────────────

    def apply(self, record: Record,
              rng: Optional[np.random.Generator] = None) -> AppliedShift:
        """Apply every member in order.

        If a member raises, the members already applied are undone in
        reverse and :class:`TransformFailure` is raised from the
        original error.  A :class:`RestoreMismatch` from a member is
        re-raised unchanged.
        """
        tokens: List[UndoToken] = []
        weight = 1.0
        for transform, magnitude in self._shifts:
            try:
                token, mult = transform.apply(record, magnitude, rng)
            except Exception as exc:
                self._undo_members(record, tokens)
                if isinstance(exc, (TransformFailure, RestoreMismatch)):
                    raise
                raise TransformFailure(
                    transform.name,
                    f"apply(magnitude={magnitude:+g}) failed: {exc}",
                ) from exc
            tokens.append(token)
            weight *= mult
        return AppliedShift(tuple(tokens), weight)

    def undo(self, record: Record, applied: AppliedShift) -> None:
        """Undo every member in strict reverse order."""
        if len(applied.tokens) != len(self._shifts):
            raise ValueError(
                f"{self.label}: expected {len(self._shifts)} undo tokens, "
                f"got {len(applied.tokens)}")
        self._undo_members(record, list(applied.tokens))

    def _undo_members(self, record: Record, tokens: Sequence[UndoToken]) -> None:
        for idx in range(len(tokens) - 1, -1, -1):
            transform, _ = self._shifts[idx]
            transform.undo(record, tokens[idx])

    @contextmanager
    def applied(self, record: Record,
                rng: Optional[np.random.Generator] = None) -> Iterator[float]:
        """Scoped application: yields the net weight, undoes on exit."""
        applied = self.apply(record, rng)
        try:
            yield applied.weight
        finally:
            self.undo(record, applied)


def _format_magnitude(m: float) -> str:
    text = f"{m:+g}"
    return text if float(text) == m else f"{m:+}"


def _identity(value: Any) -> str:
    if is_dataclass(value) and not isinstance(value, type):
        parts = ",".join(
            f"{f.name}={_identity(getattr(value, f.name))}"
            for f in fields(value) if f.name != "description"
        )
        return f"{type(value).__qualname__}({parts})"
    if callable(value):
        # repr of a function embeds its address
        return (f"{getattr(value, '__module__', '')}."
                f"{getattr(value, '__qualname__', type(value).__name__)}")
    return repr(value)


NOMINAL: ShiftSet = ShiftSet()
"""The central-value hypothesis: no shifts."""
