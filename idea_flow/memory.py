"""Simple in-memory store for generated business ideas."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Protocol

from .schemas import BusinessIdea


class IdeaStore(Protocol):
    """Persistence contract consumed by callers of the pipeline."""

    def save(self, idea: BusinessIdea) -> None: ...

    def get(self, idea_id: str) -> BusinessIdea | None: ...

    def list(self) -> List[BusinessIdea]: ...

    def delete(self, idea_id: str) -> None: ...

    def health_check(self) -> Dict[str, Any]: ...


@dataclass(frozen=True)
class StoredIdea:
    """An idea plus the write timestamp kept by the store."""

    idea: BusinessIdea
    updated_at: datetime


class InMemoryIdeaStore:
    """Keep ideas in a dict keyed by id; each write refreshes ``updated_at``."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._ideas: Dict[str, StoredIdea] = {}
        self._logger = logger or logging.getLogger(__name__)

    def save(self, idea: BusinessIdea) -> None:
        """Insert or replace an idea."""

        self._ideas[idea.id] = StoredIdea(idea=idea, updated_at=datetime.now(timezone.utc))
        self._logger.debug("Business idea saved: %s", idea.id)

    def get(self, idea_id: str) -> BusinessIdea | None:
        record = self._ideas.get(idea_id)
        return record.idea if record else None

    def updated_at(self, idea_id: str) -> datetime | None:
        record = self._ideas.get(idea_id)
        return record.updated_at if record else None

    def list(self) -> List[BusinessIdea]:
        """Return a snapshot of stored ideas in no particular order."""

        return [record.idea for record in list(self._ideas.values())]

    def delete(self, idea_id: str) -> None:
        """Remove an idea; unknown ids are ignored."""

        if self._ideas.pop(idea_id, None) is not None:
            self._logger.debug("Business idea deleted: %s", idea_id)

    def health_check(self) -> Dict[str, Any]:
        return {
            "status": "healthy",
            "details": {"type": "memory", "ideas": len(self._ideas)},
        }
