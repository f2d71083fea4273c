"""Error taxonomy for the shift-spectrum engine.

Every error derives from :class:`ShiftspecError` *and* from the closest
builtin, so callers can catch either ``ConfigurationError`` or plain
``ValueError``.

Recoverable conditions (undefined variable values, underflow, overflow)
are not exceptions at all: :class:`~shiftspec.spectrum.Spectrum` counts
them.
"""

from __future__ import annotations

__all__ = [
    "ShiftspecError",
    "ConfigurationError",
    "TransformFailure",
    "RestoreMismatch",
    "SourceNotFound",
    "AlreadyRunning",
    "AlreadyFinalized",
    "DiscardedSpectrum",
]


class ShiftspecError(Exception):
    """Base class for all engine errors."""


class ConfigurationError(ShiftspecError, ValueError):
    """Bad binning, empty plan, bad scale factor, duplicate registration.

    Raised while the pass is being set up, never mid-pass.
    """


class TransformFailure(ShiftspecError, RuntimeError):
    """A systematic transform raised while being applied.  Fatal."""

    def __init__(self, transform_name: str, message: str):
        super().__init__(f"{transform_name}: {message}")
        self.transform_name = transform_name


class RestoreMismatch(ShiftspecError, KeyError):
    """An undo token names a field the record no longer has.  Fatal."""

    def __init__(self, field: str):
        super().__init__(field)
        self.field = field

    def __str__(self) -> str:
        return (f"cannot restore field {self.field!r}: "
                f"not present in record (schema must be fixed for the run)")


class SourceNotFound(ShiftspecError, FileNotFoundError):
    """The event-source locator matched no files."""


class AlreadyRunning(ShiftspecError, RuntimeError):
    """Registration attempted after the loader left the idle state."""


class AlreadyFinalized(ShiftspecError, RuntimeError):
    """``run()`` called on a loader whose pass already ended."""


class DiscardedSpectrum(ShiftspecError, RuntimeError):
    """Snapshot requested from a spectrum whose pass was aborted."""
