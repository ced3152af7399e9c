"""
Exception hierarchy for the assessment core.

Every domain error inherits from AssessmentError and carries:
- error_code: machine-readable string (e.g. "PARSE_FAILURE")
- status_code: HTTP status the API layer maps it to
- message: human-readable description
- context: optional structured metadata dict

Degraded essay grading is NOT an error; it is reported through feedback.
"""
from __future__ import annotations

from typing import Any, Optional


class AssessmentError(Exception):
    """Base exception for all assessment-core errors."""

    def __init__(
        self,
        message: str,
        error_code: str = "ASSESSMENT_ERROR",
        status_code: int = 500,
        context: Optional[dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.context = context or {}
        super().__init__(message)


class ServiceFailure(AssessmentError):
    """The text-completion service errored or timed out after all retries."""

    def __init__(self, phase: str, message: str, context: Optional[dict[str, Any]] = None):
        self.phase = phase
        super().__init__(
            f"Text service failed during {phase}: {message}",
            error_code="SERVICE_FAILURE",
            status_code=502,
            context={"phase": phase, **(context or {})},
        )


class ParseFailure(AssessmentError):
    """Response text lacked the required markers or fields. Never retried."""

    def __init__(
        self,
        message: str,
        missing: Optional[list[str]] = None,
        found: Optional[list[str]] = None,
    ):
        self.missing = list(missing or [])
        self.found = list(found or [])
        super().__init__(
            message,
            error_code="PARSE_FAILURE",
            status_code=422,
            context={"missing": self.missing, "found": self.found},
        )


class ValidationFailure(AssessmentError):
    """A parsed value fell outside a closed vocabulary (difficulty, type, topic)."""

    def __init__(self, message: str, field: str = "", value: str = ""):
        self.field = field
        self.value = value
        super().__init__(
            message,
            error_code="VALIDATION_FAILURE",
            status_code=422,
            context={"field": field, "value": value},
        )


class GenerationError(AssessmentError):
    """A generation run aborted; names the phase that failed."""

    def __init__(self, phase: str, cause: Exception, sequence: Optional[int] = None):
        self.phase = phase
        self.sequence = sequence
        self.cause = cause
        status = cause.status_code if isinstance(cause, AssessmentError) else 502
        super().__init__(
            f"Failed to {phase}: {cause}",
            error_code="GENERATION_FAILED",
            status_code=status,
            context={"phase": phase, "sequence": sequence},
        )
