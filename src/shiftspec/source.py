"""Event sources — lazy, single-pass streams of event records.

The loader asks a source to :meth:`~EventSource.open` a fresh forward
pass and iterates it exactly once.  Decoding the on-disk format belongs
to the source, not the engine; three reference readers are provided:

``*.jsonl``
    one JSON object per line, one record per object
``*.json``
    a top-level array of objects, one record per element
``*.npz``
    a numpy archive of equal-length 1-D column arrays, one record per row

Locators are glob patterns.  ``FileEventSource("cafs/CAF_FHC_90*.npz")``
concatenates every matching file in sorted order and raises
:class:`~shiftspec.errors.SourceNotFound` if nothing matches.
"""

from __future__ import annotations

import glob
import json
import logging
from pathlib import Path
from typing import (
    Any, Callable, Dict, Iterable, Iterator, List, MutableMapping,
    Optional, Protocol, Sequence, runtime_checkable,
)

import numpy as np

from .errors import ConfigurationError, SourceNotFound
from .record import EventRecord

__all__ = [
    "EventSource",
    "MemoryEventSource",
    "FileEventSource",
    "read_jsonl",
    "read_json",
    "read_npz",
    "READERS",
]

logger = logging.getLogger(__name__)

Record = MutableMapping[str, Any]
Reader = Callable[[Path], Iterator[Record]]


@runtime_checkable
class EventSource(Protocol):
    """Anything that can start a fresh forward pass over its records."""

    def open(self) -> Iterator[Record]:
        ...


# ═══════════════════════════════════════════════════════════════════
# In-memory source
# ═══════════════════════════════════════════════════════════════════

class MemoryEventSource:
    """Yields the given records, in order, on every :meth:`open`.

    The records themselves are handed out (not copies), which is what
    lets tests check that a pass leaves them untouched.
    """

    def __init__(self, records: Iterable[Record]):
        self._records: List[Record] = list(records)

    @classmethod
    def from_dicts(cls, rows: Iterable[Dict[str, Any]]) -> "MemoryEventSource":
        return cls(EventRecord(row) for row in rows)

    @property
    def records(self) -> Sequence[Record]:
        return tuple(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def open(self) -> Iterator[Record]:
        return iter(self._records)

    def __repr__(self) -> str:
        return f"MemoryEventSource({len(self._records)} records)"


# ═══════════════════════════════════════════════════════════════════
# File readers
# ═══════════════════════════════════════════════════════════════════

def read_jsonl(path: Path) -> Iterator[EventRecord]:
    """One :class:`EventRecord` per non-blank line of a JSON-lines file."""
    with open(path, "r", encoding="utf-8") as fh:
        for lineno, line in enumerate(fh, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                row = json.loads(line)
            except json.JSONDecodeError as exc:
                raise ValueError(f"{path}:{lineno}: invalid JSON ({exc})") from exc
            if not isinstance(row, dict):
                raise ValueError(
                    f"{path}:{lineno}: expected a JSON object, "
                    f"got {type(row).__name__}")
            yield EventRecord(row)


def read_json(path: Path) -> Iterator[EventRecord]:
    """One :class:`EventRecord` per element of a top-level JSON array."""
    with open(path, "r", encoding="utf-8") as fh:
        try:
            rows = json.load(fh)
        except json.JSONDecodeError as exc:
            raise ValueError(f"{path}: invalid JSON ({exc})") from exc
    if not isinstance(rows, list):
        raise ValueError(
            f"{path}: expected a JSON array of objects, "
            f"got {type(rows).__name__}")
    for index, row in enumerate(rows):
        if not isinstance(row, dict):
            raise ValueError(
                f"{path}[{index}]: expected a JSON object, "
                f"got {type(row).__name__}")
        yield EventRecord(row)


def read_npz(path: Path) -> Iterator[EventRecord]:
    """One :class:`EventRecord` per row of a columnar ``.npz`` archive.

    Values are converted to native Python scalars so records behave the
    same whichever reader produced them.
    """
    with np.load(path, allow_pickle=False) as archive:
        columns = {name: archive[name] for name in archive.files}
    if not columns:
        return
    lengths = {name: arr.shape[0] for name, arr in columns.items()}
    if len(set(lengths.values())) != 1:
        raise ValueError(f"{path}: column lengths differ: {lengths}")
    names = list(columns)
    as_lists = [columns[n].tolist() for n in names]
    for row in zip(*as_lists):
        yield EventRecord(dict(zip(names, row)))


READERS: Dict[str, Reader] = {
    ".jsonl": read_jsonl,
    ".json": read_json,
    ".npz": read_npz,
}
"""Suffix → reader used when :class:`FileEventSource` has no explicit reader."""


# ═══════════════════════════════════════════════════════════════════
# Glob-expanded file source
# ═══════════════════════════════════════════════════════════════════

class FileEventSource:
    """Concatenated records from every file matching a glob locator.

    Parameters
    ----------
    locator : str or Path
        File path or glob pattern (``*``, ``?``, ``[...]``); ``~`` is
        expanded.  Matches are read in sorted order.
    reader : callable, optional
        ``(path) -> iterator of records``.  Defaults to :data:`READERS`
        by file suffix.
    """

    def __init__(self, locator: str | Path, reader: Optional[Reader] = None):
        self.locator = str(Path(str(locator)).expanduser())
        self._reader = reader

    def files(self) -> List[Path]:
        """Resolve the locator now.

        Raises
        ------
        SourceNotFound
            If no file matches.
        """
        matches = sorted(p for p in glob.glob(self.locator) if Path(p).is_file())
        if not matches:
            raise SourceNotFound(f"No files match {self.locator!r}")
        return [Path(p) for p in matches]

    def _reader_for(self, path: Path) -> Reader:
        if self._reader is not None:
            return self._reader
        try:
            return READERS[path.suffix.lower()]
        except KeyError:
            raise ConfigurationError(
                f"No reader for {path.name!r}; known suffixes: "
                f"{sorted(READERS)}") from None

    def open(self) -> Iterator[Record]:
        """Resolve the locator and return a lazy iterator over all files.

        The locator is resolved (and :class:`SourceNotFound` raised)
        eagerly, before the first record is requested.
        """
        paths = self.files()
        readers = [self._reader_for(p) for p in paths]
        logger.debug(f"{self.locator}: {len(paths)} file(s)")
        return self._iter(paths, readers)

    def _iter(self, paths: List[Path], readers: List[Reader]) -> Iterator[Record]:
        for path, reader in zip(paths, readers):
            logger.debug(f"Opening {path}")
            yield from reader(path)

    def __repr__(self) -> str:
        return f"FileEventSource({self.locator!r})"
