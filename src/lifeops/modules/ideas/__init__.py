"""Idea journal."""

from lifeops.modules.ideas.models import Idea, IdeaPatch, IdeaQuery
from lifeops.modules.ideas.store import delete_idea, log_idea, retrieve_ideas, update_idea

__all__ = [
    "Idea",
    "IdeaPatch",
    "IdeaQuery",
    "delete_idea",
    "log_idea",
    "retrieve_ideas",
    "update_idea",
]
