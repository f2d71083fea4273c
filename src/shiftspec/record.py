"""EventRecord — one detected or simulated interaction.

A mutable bag of typed fields whose *schema* (set of field names) is
fixed at construction.  Values may be reassigned; fields may not be
added or removed.  Systematic transforms rely on this: an undo token
names fields, and those fields must still exist when it is replayed.

The engine accepts any ``MutableMapping`` as a record, so plain dicts
work as well; :class:`EventRecord` only adds the schema guard.
"""

from __future__ import annotations

from collections.abc import MutableMapping
from typing import Any, Dict, Iterator, Mapping

__all__ = ["EventRecord"]


class EventRecord(MutableMapping):
    """Fixed-schema mutable mapping of field name → value.

    Parameters
    ----------
    fields : mapping
        Initial field values.  The key set becomes the schema.
    """

    __slots__ = ("_fields",)

    def __init__(self, fields: Mapping[str, Any] = (), **kwargs: Any):
        self._fields: Dict[str, Any] = dict(fields, **kwargs)

    def __getitem__(self, key: str) -> Any:
        return self._fields[key]

    def __setitem__(self, key: str, value: Any) -> None:
        if key not in self._fields:
            raise KeyError(
                f"EventRecord has no field {key!r}; "
                f"schema is fixed ({sorted(self._fields)})")
        self._fields[key] = value

    def __delitem__(self, key: str) -> None:
        raise TypeError("EventRecord fields cannot be removed")

    def __iter__(self) -> Iterator[str]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __contains__(self, key: object) -> bool:
        return key in self._fields

    def __getattr__(self, name: str) -> Any:
        # sr.Elep_reco reads like the record proxies physicists are used to
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self._fields[name]
        except KeyError:
            raise AttributeError(name) from None

    def to_dict(self) -> Dict[str, Any]:
        """Return a shallow copy of the fields."""
        return dict(self._fields)

    def copy(self) -> "EventRecord":
        return EventRecord(self._fields)

    def __repr__(self) -> str:
        return f"EventRecord({self._fields!r})"
