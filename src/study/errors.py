"""Exceptions raised by study operations."""


class StudyError(Exception):
    """Base class for failures surfaced by the study workflow."""


class StudyValidationError(StudyError):
    """Raised when a request is rejected before touching storage."""


class StudyNotFoundError(StudyError):
    """Raised when the referenced card or topic does not exist."""


class StudyStorageError(StudyError):
    """Raised when the backing store fails; nothing from the operation is persisted."""
