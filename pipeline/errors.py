"""
Error taxonomy for the lookup and submission workflow.
"""

from typing import Optional


class SubmissionError(Exception):
    """Base class for every failure the submission workflow reports."""


class InvalidAge(SubmissionError, ValueError):
    """Age is missing, non-numeric, or outside every category range."""


class RegistrationNotFound(SubmissionError):
    """No registration exists for the given email / child name."""


class SubmissionAlreadyComplete(SubmissionError):
    """The child's image was already submitted."""


class StorageMoveFailed(SubmissionError):
    """The staged upload could not be moved into its category directory."""


class LedgerUnreadable(SubmissionError):
    """The ledger file is missing or malformed."""


class LedgerWriteFailed(SubmissionError):
    """
    The ledger could not be rewritten. When raised from a submission the image
    is already stored at ``stored_path``.
    """

    def __init__(self, message: str, stored_path: Optional[str] = None):
        super().__init__(message)
        self.stored_path = stored_path
