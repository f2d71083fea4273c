"""SystRegistry — every systematic transform, looked up by name.

An immutable mapping of transform name → transform that can be:

* **inspected** — ``registry["muScale"]``
* **extended** — ``registry.with_syst(my_shift)``
* **overridden** — ``registry.replace({"muScale": ScaleShift(...)})``
* **diffed** — ``registry.diff(other)``

Names must be unique; the registry is what reports and labels use to
refer to a transform.

Usage
-----
>>> from shiftspec.registry import STANDARD_SYSTS
>>> kEMuScale = STANDARD_SYSTS["muScale"]
>>> up = STANDARD_SYSTS.shift("muScale", +1)     # ShiftSet
>>> STANDARD_SYSTS.names
('muScale', 'muSmear', 'thetaSmear')
"""

from __future__ import annotations

import math
from typing import Dict, Iterable, Iterator, Optional, Tuple

from .errors import ConfigurationError
from .shifts import ShiftSet
from .systs import ScaleShift, SmearShift, SystematicTransform

__all__ = [
    "SystRegistry",
    "STANDARD_SYSTS",
]


# ═══════════════════════════════════════════════════════════════════
# SystRegistry
# ═══════════════════════════════════════════════════════════════════

class SystRegistry:
    """Immutable name → :class:`SystematicTransform` mapping.

    Parameters
    ----------
    systs : iterable of SystematicTransform
        Registered under their own ``name``.  Duplicates raise
        :class:`ConfigurationError`.
    name : str, optional
        Human-readable label for the registry.

    Notes
    -----
    * Read-only: ``__setitem__`` raises ``TypeError``.
    * ``replace()`` and ``with_syst()`` return new registries.
    * Iteration yields names in registration order.
    """

    def __init__(self, systs: Iterable[SystematicTransform] = (), *,
                 name: str = "custom"):
        data: Dict[str, SystematicTransform] = {}
        for syst in systs:
            if syst.name in data:
                raise ConfigurationError(
                    f"Duplicate systematic name {syst.name!r}")
            data[syst.name] = syst
        self._data = data
        self._name = name

    # ── read ────────────────────────────────────────────────────

    @property
    def name(self) -> str:
        return self._name

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(self._data)

    def __getitem__(self, key: str) -> SystematicTransform:
        try:
            return self._data[key]
        except KeyError:
            raise KeyError(
                f"Unknown systematic {key!r}. "
                f"Registered: {sorted(self._data)}") from None

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __repr__(self) -> str:
        return f"SystRegistry({self._name!r}, {len(self._data)} systs)"

    def get(self, key: str,
            default: Optional[SystematicTransform] = None) -> Optional[SystematicTransform]:
        return self._data.get(key, default)

    def items(self):
        return self._data.items()

    def describe(self) -> Dict[str, str]:
        """``{name: description}`` for every registered transform."""
        return {k: getattr(v, "description", "") for k, v in self._data.items()}

    # ── shift sets ──────────────────────────────────────────────

    def shift(self, key: str, magnitude: float) -> ShiftSet:
        """Single-member :class:`ShiftSet` for the named transform."""
        return ShiftSet.single(self[key], magnitude)

    def shifts(self, pairs: Iterable[Tuple[str, float]]) -> ShiftSet:
        """:class:`ShiftSet` from ``[(name, magnitude), ...]`` in order."""
        return ShiftSet((self[k], m) for k, m in pairs)

    def up_down(self, key: str, sigma: float = 1.0) -> Tuple[ShiftSet, ShiftSet]:
        """``(+sigma, -sigma)`` ShiftSets for the named transform."""
        return self.shift(key, +sigma), self.shift(key, -sigma)

    # ── immutable mutation ──────────────────────────────────────

    def __setitem__(self, key: str, value: SystematicTransform):
        raise TypeError(
            "SystRegistry is immutable; use .replace() or .with_syst() instead")

    def with_syst(self, syst: SystematicTransform, *,
                  name: Optional[str] = None) -> "SystRegistry":
        """Return a new registry with *syst* appended."""
        return SystRegistry(
            list(self._data.values()) + [syst],
            name=name or (self._name + "+"),
        )

    def replace(
        self,
        overrides: Dict[str, SystematicTransform],
        *,
        name: Optional[str] = None,
    ) -> "SystRegistry":
        """Return a new registry with selected transforms swapped.

        Raises
        ------
        KeyError
            If a key in *overrides* is not registered.
        ConfigurationError
            If a replacement's own name differs from its key.
        """
        for k, v in overrides.items():
            if k not in self._data:
                raise KeyError(
                    f"Unknown systematic {k!r}. "
                    f"Registered: {sorted(self._data)}")
            if v.name != k:
                raise ConfigurationError(
                    f"Replacement for {k!r} is named {v.name!r}")
        merged = dict(self._data)
        merged.update(overrides)
        return SystRegistry(merged.values(), name=name or (self._name + "+"))

    # ── comparison ──────────────────────────────────────────────

    def diff(
        self, other: "SystRegistry",
    ) -> Dict[str, Tuple[Optional[SystematicTransform], Optional[SystematicTransform]]]:
        """Return ``{name: (self_syst, other_syst)}`` for differing names."""
        result = {}
        for k in sorted(set(self._data) | set(other._data)):
            mine = self._data.get(k)
            theirs = other._data.get(k)
            if mine != theirs:
                result[k] = (mine, theirs)
        return result

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SystRegistry):
            return NotImplemented
        return self._data == other._data


# ═══════════════════════════════════════════════════════════════════
# STANDARD_SYSTS: the reconstructed-muon systematics
# ═══════════════════════════════════════════════════════════════════
#
# Field names follow the flat reconstructed-event records:
#   Elep_reco   reconstructed lepton energy (GeV)
#   theta_reco  reconstructed lepton angle (radians)
# ═══════════════════════════════════════════════════════════════════

STANDARD_SYSTS: SystRegistry = SystRegistry(
    [
        ScaleShift("muScale", "Elep_reco", 0.2,
                   description="Muon energy scale"),
        SmearShift("muSmear", "Elep_reco", 0.2, relative=True,
                   description="Muon energy smearing"),
        SmearShift("thetaSmear", "theta_reco", math.pi / 6.0, relative=False,
                   description="Muon angle smearing"),
    ],
    name="standard",
)
"""Muon energy scale (±20 %), muon energy smear (20 %), angle smear (π/6)."""
