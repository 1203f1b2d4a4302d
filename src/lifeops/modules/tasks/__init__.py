"""Tasks, to-dos and study sessions, and their placement on the calendar."""

from lifeops.modules.tasks.manager import TaskManager
from lifeops.modules.tasks.models import ItemKind, StudySession, Task, TaskStatus, ToDo
from lifeops.modules.tasks.scheduler import TaskScheduler, suggest_slots
from lifeops.modules.tasks.store import PostgresTaskStore, TaskStore

__all__ = [
    "ItemKind",
    "PostgresTaskStore",
    "StudySession",
    "Task",
    "TaskManager",
    "TaskScheduler",
    "TaskStatus",
    "TaskStore",
    "ToDo",
    "suggest_slots",
]
