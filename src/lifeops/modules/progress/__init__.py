"""Language-learning progress tracking."""

from lifeops.modules.progress.models import MonthlyProgress, ProgressEntry, ProgressKind
from lifeops.modules.progress.tracker import (
    get_monthly_progress,
    log_words_learned,
    set_monthly_goal,
)

__all__ = [
    "MonthlyProgress",
    "ProgressEntry",
    "ProgressKind",
    "get_monthly_progress",
    "log_words_learned",
    "set_monthly_goal",
]
