"""Var and Cut — derived variables and selection predicates.

A :class:`Var` wraps a pure function ``(record) -> float``; a
:class:`Cut` wraps a pure function ``(record) -> bool``.  Both are
immutable, compare by identity, and compose without subclassing:

* ``cut_a & cut_b``, ``cut_a | cut_b``, ``~cut`` — boolean combinators
* ``var > 0``, ``var <= 2.5`` … — comparisons of a Var produce a Cut

Combinators evaluate lazily and short-circuit, so ``cut & (var > 0)``
never evaluates *var* for records that fail *cut*.  A comparison against
an undefined (NaN or ``None``) value is ``False``.

Usage
-----
>>> from shiftspec.var import Var, Cut
>>> kRecoMuonEnergy = Var(lambda sr: sr["Elep_reco"], name="Elep_reco")
>>> kHasMuon = Cut(lambda sr: abs(sr["LepPDG"]) == 13, name="has_muon")
>>> sel = kHasMuon & (kRecoMuonEnergy > 0)
>>> sel(record)
True
"""

from __future__ import annotations

import math
import operator
from typing import Any, Callable, Mapping, Optional

__all__ = [
    "Var",
    "Cut",
    "NO_CUT",
    "as_var",
    "as_cut",
    "is_undefined",
]

Record = Mapping[str, Any]


def is_undefined(value: Any) -> bool:
    """``True`` for ``None`` and NaN — values a spectrum silently drops."""
    if value is None:
        return True
    try:
        return math.isnan(value)
    except TypeError:
        return False


# ═══════════════════════════════════════════════════════════════════
# Var
# ═══════════════════════════════════════════════════════════════════

class Var:
    """A derived scalar quantity computed from one record.

    Parameters
    ----------
    fn : callable
        ``(record) -> float``.  May return NaN or ``None`` for
        "undefined".  Must not keep a reference to the record.
    name : str, optional
        Label used in reprs and cut names.
    """

    __slots__ = ("_fn", "_name")

    def __init__(self, fn: Callable[[Record], Any], name: Optional[str] = None):
        if not callable(fn):
            raise TypeError(f"Var needs a callable, got {type(fn).__name__}")
        self._fn = fn
        self._name = name or getattr(fn, "__name__", "var")

    @classmethod
    def field(cls, field: str) -> "Var":
        """Var that reads one record field verbatim."""
        return cls(operator.itemgetter(field), name=field)

    @property
    def name(self) -> str:
        return self._name

    def __call__(self, record: Record) -> Any:
        return self._fn(record)

    def __repr__(self) -> str:
        return f"Var({self._name!r})"

    # ── comparisons → Cut ───────────────────────────────────────

    def _compare(self, op: Callable[[Any, Any], bool], symbol: str,
                 threshold: Any) -> "Cut":
        if isinstance(threshold, Var):
            other = threshold

            def fn(record: Record) -> bool:
                a, b = self(record), other(record)
                if is_undefined(a) or is_undefined(b):
                    return False
                return bool(op(a, b))

            label = f"{self._name} {symbol} {other.name}"
        else:
            def fn(record: Record) -> bool:
                a = self(record)
                if is_undefined(a):
                    return False
                return bool(op(a, threshold))

            label = f"{self._name} {symbol} {threshold!r}"
        return Cut(fn, name=label)

    def __gt__(self, threshold: Any) -> "Cut":
        return self._compare(operator.gt, ">", threshold)

    def __ge__(self, threshold: Any) -> "Cut":
        return self._compare(operator.ge, ">=", threshold)

    def __lt__(self, threshold: Any) -> "Cut":
        return self._compare(operator.lt, "<", threshold)

    def __le__(self, threshold: Any) -> "Cut":
        return self._compare(operator.le, "<=", threshold)

    def equals(self, value: Any) -> "Cut":
        """Cut passing where the variable equals *value*.

        A method rather than ``==`` so Vars keep identity equality and
        stay usable as dict keys.
        """
        return self._compare(operator.eq, "==", value)

    def between(self, lo: Any, hi: Any) -> "Cut":
        """``lo <= var < hi``."""
        return (self >= lo) & (self < hi)


# ═══════════════════════════════════════════════════════════════════
# Cut
# ═══════════════════════════════════════════════════════════════════

class Cut:
    """A selection predicate on one record.

    Parameters
    ----------
    fn : callable
        ``(record) -> bool``.  Must not keep a reference to the record.
    name : str, optional
        Label used in reprs and combinator names.
    """

    __slots__ = ("_fn", "_name")

    def __init__(self, fn: Callable[[Record], Any], name: Optional[str] = None):
        if not callable(fn):
            raise TypeError(f"Cut needs a callable, got {type(fn).__name__}")
        self._fn = fn
        self._name = name or getattr(fn, "__name__", "cut")

    @property
    def name(self) -> str:
        return self._name

    def __call__(self, record: Record) -> bool:
        return bool(self._fn(record))

    def __repr__(self) -> str:
        return f"Cut({self._name!r})"

    def __and__(self, other: "Cut") -> "Cut":
        other = as_cut(other)
        return Cut(lambda r: self(r) and other(r),
                   name=f"({self._name} && {other.name})")

    def __or__(self, other: "Cut") -> "Cut":
        other = as_cut(other)
        return Cut(lambda r: self(r) or other(r),
                   name=f"({self._name} || {other.name})")

    def __invert__(self) -> "Cut":
        return Cut(lambda r: not self(r), name=f"!{self._name}")

    # A Cut is not a bool; stop ``if cut:`` and ``cut and other`` early.
    def __bool__(self):
        raise TypeError(
            "Cut has no truth value; use & | ~ to combine cuts "
            "and call the cut on a record to evaluate it")


NO_CUT: Cut = Cut(lambda _r: True, name="no_cut")
"""Always-true selection."""


def as_var(obj: Any) -> Var:
    """Wrap a plain callable as a :class:`Var` (Vars pass through)."""
    if isinstance(obj, Var):
        return obj
    return Var(obj)


def as_cut(obj: Any) -> Cut:
    """Wrap a plain callable as a :class:`Cut`; ``None`` means :data:`NO_CUT`."""
    if obj is None:
        return NO_CUT
    if isinstance(obj, Cut):
        return obj
    return Cut(obj)
