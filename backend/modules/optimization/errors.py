"""
modules/optimization/errors.py
--------------------------------
Exception hierarchy for the tour optimizer.

Messages carry an ``ERROR_<CODE>:`` prefix so they stay greppable in logs.

  TourOptimizationError
    TourNotFoundError              snapshot could not be built
    SuggestionError                AI adapter failures (never escape the adapter)
      CollaboratorUnavailableError   no AI text generator configured
      SuggestionTimeoutError         deadline exceeded
      SuggestionCancelledError       caller cancelled the request
      SuggestionParseError           no parser strategy accepted the output
      SuggestionValidationError      parsed, but unusable (missing fields, bad ids)
"""

from __future__ import annotations


class TourOptimizationError(RuntimeError):
    code = "ERROR_TOUR_OPTIMIZATION"

    def __init__(self, message: str) -> None:
        super().__init__(f"{self.code}: {message}")
        self.detail = message


class TourNotFoundError(TourOptimizationError):
    code = "ERROR_TOUR_NOT_FOUND"


class SuggestionError(TourOptimizationError):
    code = "ERROR_AI_SUGGESTION"


class CollaboratorUnavailableError(SuggestionError):
    code = "ERROR_AI_UNAVAILABLE"


class SuggestionTimeoutError(SuggestionError):
    code = "ERROR_AI_TIMEOUT"


class SuggestionCancelledError(SuggestionError):
    code = "ERROR_AI_CANCELLED"


class SuggestionParseError(SuggestionError):
    code = "ERROR_AI_UNPARSEABLE"


class SuggestionValidationError(SuggestionError):
    code = "ERROR_AI_INVALID"
