"""Authoritative store of consequences for one story."""
from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Dict, Iterator, List, Optional, Sequence

from .errors import AlreadyResolvedError, ConsequenceNotFoundError, InvalidInputError
from .models import Consequence, ConsequenceStatus, House
from .recorder import ConsequenceRecorder
from .store import ConsequenceStore, InMemoryConsequenceStore

logger = logging.getLogger(__name__)


class ConsequenceLedger:
    """Owns every :class:`Consequence` and serialises writes per consequence.

    All writes go through the injected :class:`ConsequenceStore`; reads are
    served from the in-process index loaded at construction.
    """

    def __init__(
        self,
        story_id: str = "default",
        store: ConsequenceStore | None = None,
        recorder: ConsequenceRecorder | None = None,
    ) -> None:
        self.story_id = story_id
        self.store = store or InMemoryConsequenceStore()
        self.recorder = recorder or ConsequenceRecorder()
        self._consequences: Dict[str, Consequence] = {
            consequence.id: consequence for consequence in self.store.load(story_id)
        }
        self._locks: Dict[str, threading.RLock] = {}
        self._registry_lock = threading.Lock()

    # Locking -----------------------------------------------------------
    def _lock_for(self, consequence_id: str) -> threading.RLock:
        with self._registry_lock:
            lock = self._locks.get(consequence_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[consequence_id] = lock
            return lock

    @contextmanager
    def transaction(self, consequence_id: str) -> Iterator[Consequence]:
        """Yield a consequence under its lock and persist it on clean exit."""

        with self._lock_for(consequence_id):
            consequence = self.require(consequence_id)
            yield consequence
            consequence.updated_at = datetime.now(timezone.utc)
            self.store.save(self.story_id, consequence)

    def _commit(self, consequence: Consequence) -> Consequence:
        with self._registry_lock:
            self._consequences[consequence.id] = consequence
        self.store.save(self.story_id, consequence)
        return consequence

    # Writes ------------------------------------------------------------
    def record(self, consequence: Consequence) -> Consequence:
        with self._lock_for(consequence.id):
            if consequence.id in self._consequences:
                raise InvalidInputError(f"Consequence {consequence.id} already recorded")
            self._commit(consequence)
        logger.info(
            "Recorded consequence %s (chapter %d, severity %d, window %s)",
            consequence.id,
            consequence.chapter_origin,
            consequence.severity,
            consequence.expected_window,
        )
        return consequence

    def record_from_choice(
        self,
        chapter: int,
        choice_id: str,
        choice_text: str,
        houses_affected: Sequence[House],
        description_hint: str | None = None,
    ) -> Consequence:
        consequence = self.recorder.create_from_choice(
            chapter, choice_id, choice_text, houses_affected, description_hint
        )
        while consequence.id in self._consequences:
            consequence.id = self.recorder.generate_id(chapter, choice_id)
        return self.record(consequence)

    def resolve(self, consequence_id: str, chapter: int, resolution: str) -> Consequence:
        with self._lock_for(consequence_id):
            current = self.require(consequence_id)
            if current.is_resolved:
                raise AlreadyResolvedError(consequence_id)
            if chapter < current.chapter_origin:
                raise InvalidInputError(
                    f"Consequence {consequence_id} cannot resolve in chapter {chapter}, "
                    f"before its origin chapter {current.chapter_origin}"
                )
            current.status = ConsequenceStatus.RESOLVED
            current.actual_resolution_chapter = chapter
            current.resolution_description = resolution
            current.narrative_debt = 0.0
            current.updated_at = datetime.now(timezone.utc)
            self._commit(current)
        logger.info("Resolved consequence %s in chapter %d", consequence_id, chapter)
        return current

    def escalate(self, consequence_id: str, reason: str, current_chapter: int) -> Consequence:
        with self._lock_for(consequence_id):
            current = self.require(consequence_id)
            escalated = self.recorder.escalate(current, reason, current_chapter)
            return self._commit(escalated)

    def escalate_if_overdue(
        self,
        consequence_id: str,
        reason: str,
        current_chapter: int,
        min_severity: int,
    ) -> Optional[Consequence]:
        """Escalate only if the consequence is still an unescalated overdue debt.

        The check and the escalation happen under the consequence lock, so a
        concurrent resolve or escalation turns this into a no-op returning None.
        """

        with self._lock_for(consequence_id):
            current = self.require(consequence_id)
            if (
                current.is_resolved
                or current.status == ConsequenceStatus.ESCALATED
                or current.severity < min_severity
                or not current.is_overdue(current_chapter)
            ):
                return None
            escalated = self.recorder.escalate(current, reason, current_chapter)
            return self._commit(escalated)

    def link(self, parent_id: str, child_id: str) -> None:
        """Record a cascading parent/child relationship between two consequences."""

        if parent_id == child_id:
            raise InvalidInputError("A consequence cannot be its own parent")
        first, second = sorted((parent_id, child_id))
        with self._lock_for(first), self._lock_for(second):
            parent = self.require(parent_id)
            child = self.require(child_id)
            if child.parent_id and child.parent_id != parent_id:
                raise InvalidInputError(
                    f"Consequence {child_id} already descends from {child.parent_id}"
                )
            child.parent_id = parent_id
            if child_id not in parent.child_ids:
                parent.child_ids.append(child_id)
            now = datetime.now(timezone.utc)
            parent.updated_at = now
            child.updated_at = now
            self.store.save_all(self.story_id, [parent, child])

    def refresh_debt(self, consequence_id: str, debt: float) -> None:
        with self._lock_for(consequence_id):
            consequence = self.require(consequence_id)
            if consequence.is_resolved or consequence.narrative_debt == debt:
                return
            consequence.narrative_debt = debt
            self.store.save(self.story_id, consequence)

    # Reads -------------------------------------------------------------
    def get(self, consequence_id: str) -> Optional[Consequence]:
        return self._consequences.get(consequence_id)

    def require(self, consequence_id: str) -> Consequence:
        consequence = self._consequences.get(consequence_id)
        if consequence is None:
            raise ConsequenceNotFoundError(consequence_id)
        return consequence

    def all(self) -> List[Consequence]:
        with self._registry_lock:
            return list(self._consequences.values())

    def active(self) -> List[Consequence]:
        return [c for c in self.all() if not c.is_resolved]

    def active_by_max_origin(self, chapter: int) -> List[Consequence]:
        return [c for c in self.active() if c.chapter_origin <= chapter]

    def overdue(self, current_chapter: int) -> List[Consequence]:
        return [c for c in self.active() if c.is_overdue(current_chapter)]

    def resolved_in_chapter(self, chapter: int) -> List[Consequence]:
        return [
            c for c in self.all() if c.actual_resolution_chapter == chapter
        ]

    def children_of(self, consequence_id: str) -> List[Consequence]:
        parent = self.require(consequence_id)
        return [self._consequences[i] for i in parent.child_ids if i in self._consequences]

    def __len__(self) -> int:
        return len(self._consequences)

    def __contains__(self, consequence_id: object) -> bool:
        return consequence_id in self._consequences


__all__ = ["ConsequenceLedger"]
