"""
EXAMINER Error Taxonomy
=======================
Every failure the core can surface carries an HTTP-equivalent status code so
the service boundary can answer with it directly.
"""

from typing import Optional


class ExaminerError(Exception):
    """Base error; `status_code` defaults to 500 for unclassified failures."""

    status_code: int = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class InputValidationError(ExaminerError):
    status_code = 400


class GatewayError(ExaminerError):
    """Upstream transcription / speech / completion failure."""


class TranscriptionError(GatewayError):
    pass


class SpeechError(GatewayError):
    pass


class CompletionError(GatewayError):
    pass


class EmptyResultError(GatewayError):
    """The upstream call succeeded but produced nothing usable."""


class StateIntegrityError(ExaminerError):
    pass


class TransitionError(ExaminerError, ValueError):
    """An event arrived in a phase whose transition table does not accept it."""


class CaptureError(ExaminerError):
    pass
