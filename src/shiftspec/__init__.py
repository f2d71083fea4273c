"""shiftspec: single-pass systematic-shift spectra.

Fills binned spectra for every (variable, cut, systematic hypothesis)
combination from one forward pass over an event stream.  Each
hypothesis perturbs the event in place, every spectrum registered under
it observes the perturbed event, and the event is restored exactly
before the next hypothesis or event.

>>> from shiftspec import *
>>> loader = SpectrumLoader(FileEventSource("cafs/CAF_FHC_90*.npz"))
>>> axis = HistAxis("Reconstructed E_mu (GeV)", Binning.simple(40, 0, 10),
...                 Var.field("Elep_reco"))
>>> s_cv = loader.book(axis)
>>> s_up = loader.book(axis, shift=STANDARD_SYSTS.shift("muScale", +1))
>>> loader.run()
>>> frac = fractional(s_up.snapshot(), s_cv.snapshot())
"""
from .errors import (
    ShiftspecError, ConfigurationError, TransformFailure, RestoreMismatch,
    SourceNotFound, AlreadyRunning, AlreadyFinalized, DiscardedSpectrum,
)
from .binning import Binning, HistAxis, UNDERFLOW, OVERFLOW
from .record import EventRecord
from .var import Var, Cut, NO_CUT, is_undefined
from .systs import (
    UndoToken, Restorer, restore, SystematicTransform,
    ScaleShift, SmearShift, OffsetShift, ReweightShift, FunctionShift,
)
from .shifts import ShiftSet, AppliedShift, NOMINAL
from .registry import SystRegistry, STANDARD_SYSTS
from .histogram import Histogram, fractional, exposure_scale
from .spectrum import Spectrum
from .source import (
    EventSource, MemoryEventSource, FileEventSource, read_json, read_jsonl,
    read_npz,
)
from .loader import SpectrumLoader, LoaderConfig, LoaderState, RunReport

__version__ = "0.1.0"

__all__ = [
    # Errors
    "ShiftspecError", "ConfigurationError", "TransformFailure",
    "RestoreMismatch", "SourceNotFound", "AlreadyRunning",
    "AlreadyFinalized", "DiscardedSpectrum",
    # Binning
    "Binning", "HistAxis", "UNDERFLOW", "OVERFLOW",
    # Records, variables, cuts
    "EventRecord", "Var", "Cut", "NO_CUT", "is_undefined",
    # Systematics
    "UndoToken", "Restorer", "restore", "SystematicTransform",
    "ScaleShift", "SmearShift", "OffsetShift", "ReweightShift", "FunctionShift",
    "ShiftSet", "AppliedShift", "NOMINAL",
    "SystRegistry", "STANDARD_SYSTS",
    # Output
    "Histogram", "fractional", "exposure_scale", "Spectrum",
    # Sources and the loader
    "EventSource", "MemoryEventSource", "FileEventSource",
    "read_json", "read_jsonl", "read_npz",
    "SpectrumLoader", "LoaderConfig", "LoaderState", "RunReport",
]
