"""Spaced-repetition study engine."""

from .errors import StudyError, StudyNotFoundError, StudyStorageError, StudyValidationError
from .srs import ReviewSchedule, calculate_next_schedule, calculate_recall_success_rate
from .workflow import ReviewOutcome, StudyWorkflow

__all__ = [
    "ReviewOutcome",
    "ReviewSchedule",
    "StudyError",
    "StudyNotFoundError",
    "StudyStorageError",
    "StudyValidationError",
    "StudyWorkflow",
    "calculate_next_schedule",
    "calculate_recall_success_rate",
]
