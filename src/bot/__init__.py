"""Telegram bot components for the Study Scheduler."""

from .agent import StudyAgent
from .telegram import build_application

__all__ = ["StudyAgent", "build_application"]
