"""
Error taxonomy for the interview assistant.
"""
from typing import Optional


class InterviewError(Exception):
    """Base class for all interview domain errors."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class ValidationError(InterviewError):
    """A profile field value was missing or malformed."""

    def __init__(self, field: str, reason: str):
        super().__init__(reason)
        self.field = field


class NotFoundError(InterviewError):
    """Unknown session id."""

    def __init__(self, session_id: str):
        super().__init__(f"Candidate {session_id} not found")
        self.session_id = session_id


class InvalidStateError(InterviewError):
    """A workflow was invoked against an incompatible session status."""


class InvalidTransitionError(InterviewError):
    """Illegal status transition requested of the repository."""

    def __init__(self, current: str, target: str):
        super().__init__(f"Cannot move interview from '{current}' to '{target}'")
        self.current = current
        self.target = target


class UnsupportedFormatError(InterviewError):
    """Uploaded document is not a recognised kind."""

    def __init__(
        self,
        filename: str,
        content_type: Optional[str] = None,
        reason: str = "Only PDF or DOCX resumes are supported.",
    ):
        super().__init__(reason)
        self.filename = filename
        self.content_type = content_type


class GenerationFailure(InterviewError):
    """Remote question generation failed or returned a malformed set."""
