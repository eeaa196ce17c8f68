"""
Error taxonomy for the Mitr pipeline.

Failures are caught at the narrowest stage that has a defined fallback;
stages without one let the error surface to the caller.
"""
from typing import Any, Dict, Optional


class MitrError(Exception):
    """Base class for all pipeline errors."""


class ValidationError(MitrError, ValueError):
    """Malformed input, rejected before any model call."""

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")

    def to_dict(self) -> Dict[str, str]:
        return {"field": self.field, "message": self.message}


class ModelCallError(MitrError):
    """The hosted model call failed (timeout, provider error, unusable output)."""


class MalformedResponseError(ModelCallError):
    """The model returned JSON that does not match the declared schema."""


class AnalyzerFailure(MitrError):
    """A degradable stage failed; the caller substitutes defaults and continues."""

    def __init__(self, stage: str, cause: Optional[BaseException] = None):
        self.stage = stage
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"{stage} failed{detail}")


class CriticalStageFailure(MitrError):
    """Safety assessment or response generation failed; the request fails."""

    def __init__(self,
                 stage: str,
                 cause: Optional[BaseException] = None,
                 crisis_screen: Optional[Any] = None):
        self.stage = stage
        self.cause = cause
        # Local crisis screen result, so the consuming layer can still show resources
        self.crisis_screen = crisis_screen
        detail = f": {cause}" if cause else ""
        super().__init__(f"{stage} failed{detail}")
