"""
Exceptions and the categorised warnings raised for recoverable conditions.

Recoverable conditions are both written to the PsychoPy log and issued as
Python warnings, so the operator sees them in experiment.log and tests can
assert on the category.
"""
from __future__ import annotations

import warnings

from psychopy import logging


class ExperimentAborted(Exception):
    """The quit key was pressed; the caller must flush the log and exit."""


class LogOrderError(RuntimeError):
    """A response record arrived out of event-number order."""


class SignallingWarning(UserWarning):
    """Base class for every recoverable condition in the task."""


class TrialLoadWarning(SignallingWarning):
    """A trial source row or file could not be used."""


class SequencingShortfallWarning(SignallingWarning):
    """Fewer attention tests were placed than were configured."""


class IndexResolutionWarning(SignallingWarning):
    """An event slot could not be mapped to its underlying record."""


class LookupFallbackWarning(SignallingWarning):
    """A localized string was missing and the fallback text was used."""


class RunConfigWarning(SignallingWarning):
    """The run size was invalid and has been clamped."""


def warn(category: type[SignallingWarning], message: str, error: bool = False) -> None:
    """
    Log message (at error level if error is set) and issue it as a warning of category.

    stacklevel=3 points the warning at the code that called the function calling warn().
    """
    if error:
        logging.error(message)
    else:
        logging.warning(message)
    warnings.warn(message, category, stacklevel=3)
