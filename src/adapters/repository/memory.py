"""
In-memory repository adapters - Implement the EntityStore protocol.

Thread-safe dict-backed stores for local runs (STORAGE_BACKEND=memory) and
tests. A single lock serializes writes, and atomic_update compares versions
under that lock, giving the same compare-and-set semantics as the
PostgreSQL adapter.
"""

import copy
import threading
from collections import Counter
from typing import Any

from src.domain.exceptions import NotFoundError, VersionConflictError
from src.domain.models import ListFilter, Report, VerificationRecord


class _InMemoryEntityStore:
    """Shared implementation; subclasses pick searchable fields and extra filters."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entities: dict[str, Any] = {}

    def get(self, entity_id: str) -> Any | None:
        with self._lock:
            entity = self._entities.get(entity_id)
            return copy.deepcopy(entity) if entity is not None else None

    def create(self, entity: Any) -> Any:
        with self._lock:
            if entity.entity_id in self._entities:
                raise VersionConflictError(f"Entity already exists: {entity.entity_id}")
            self._entities[entity.entity_id] = copy.deepcopy(entity)
            return copy.deepcopy(entity)

    def atomic_update(self, entity_id: str, mutator, expected_version: int) -> Any:
        with self._lock:
            current = self._entities.get(entity_id)
            if current is None:
                raise NotFoundError(f"Entity not found: {entity_id}")
            if current.version != expected_version:
                raise VersionConflictError(
                    f"Entity {entity_id} is at version {current.version}, "
                    f"expected {expected_version}"
                )
            updated = mutator(copy.deepcopy(current))
            updated.version = current.version + 1
            self._entities[entity_id] = updated
            return copy.deepcopy(updated)

    def list(
        self, filter: ListFilter, offset: int, limit: int, timeout_ms: int
    ) -> tuple[list[Any], int]:
        with self._lock:
            matches = [e for e in self._entities.values() if self._matches(e, filter)]
            matches.sort(key=lambda e: (e.created_at, e.entity_id))
            return [copy.deepcopy(e) for e in matches[offset : offset + limit]], len(matches)

    def count_by_status(self) -> dict[str, int]:
        with self._lock:
            return dict(Counter(e.status.value for e in self._entities.values()))

    def _matches(self, entity: Any, filter: ListFilter) -> bool:
        if filter.statuses and entity.status.value not in filter.statuses:
            return False
        if filter.created_from and entity.created_at < filter.created_from:
            return False
        if filter.created_before and entity.created_at >= filter.created_before:
            return False
        if filter.subject_id and entity.subject_id != filter.subject_id:
            return False
        if filter.search:
            needle = filter.search.lower()
            if not any(needle in (value or "").lower() for value in self._search_values(entity)):
                return False
        return self._matches_extra(entity, filter)

    def _search_values(self, entity: Any) -> tuple[str | None, ...]:
        raise NotImplementedError

    def _matches_extra(self, entity: Any, filter: ListFilter) -> bool:
        return True


class InMemoryVerificationStore(_InMemoryEntityStore):
    """VerificationRecord store keyed by breeder id."""

    def _search_values(self, entity: VerificationRecord) -> tuple[str | None, ...]:
        return (entity.subject_name, entity.subject_id)

    def _matches_extra(self, entity: VerificationRecord, filter: ListFilter) -> bool:
        if filter.deadline_before is not None:
            return (
                entity.review_deadline is not None
                and entity.review_deadline < filter.deadline_before
            )
        return True


class InMemoryReportStore(_InMemoryEntityStore):
    """Report store keyed by report id."""

    def _search_values(self, entity: Report) -> tuple[str | None, ...]:
        return (entity.description, entity.subject_id, entity.reported_user_id)

    def _matches_extra(self, entity: Report, filter: ListFilter) -> bool:
        if filter.reason and entity.reason.value != filter.reason:
            return False
        if filter.reported_user_id and entity.reported_user_id != filter.reported_user_id:
            return False
        if filter.reporter_id and entity.reporter_id != filter.reporter_id:
            return False
        return True
