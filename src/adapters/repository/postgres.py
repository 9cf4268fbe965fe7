"""
PostgreSQL repository adapters - Implement the EntityStore protocol.

This module provides the PostgreSQL implementation of the domain's entity
store port using psycopg3 with raw SQL.

Concurrency Design - Optimistic Compare-and-Set:
------------------------------------------------
Every row carries a ``version`` column. atomic_update reads the row, lets the
domain mutator compute the new state in Python, then writes with

    UPDATE ... SET ..., version = version + 1
    WHERE <key> = %s AND version = <version read>

A concurrent writer that committed first makes the WHERE clause miss, the
rowcount is 0 and VersionConflictError is raised. No row lock is held while
the engine runs side effects, and two admin decisions are never merged.

History is stored as an embedded JSONB array so it is always read and written
atomically with the entity it describes.

Listing queries run under ``statement_timeout`` (set transaction-locally via
set_config) and surface cancellation as ListingTimeoutError.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from psycopg import errors
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb
from psycopg_pool import ConnectionPool

from src.domain.exceptions import ListingTimeoutError, NotFoundError, VersionConflictError
from src.domain.models import Document, HistoryEntry, ListFilter, Report, VerificationRecord
from src.domain.ports import (
    ReportAction,
    ReportPriority,
    ReportReason,
    ReportStatus,
    ReportSubjectType,
    VerificationLevel,
    VerificationPlan,
    VerificationStatus,
)

logger = logging.getLogger(__name__)


class _PostgresEntityStore:
    """
    Shared SQL for both entity tables.

    Subclasses declare the table, key column, mutable columns, searchable
    columns and row mapping. Table and column names are class constants,
    never caller input; all values go through query parameters.
    """

    table: str
    key_column: str
    mutable_columns: tuple[str, ...]
    search_columns: tuple[str, ...]

    def __init__(self, pool: ConnectionPool) -> None:
        """
        Initialize repository with connection pool.

        Args:
            pool: psycopg3 ConnectionPool for database connections
        """
        self._pool = pool

    def get(self, entity_id: str) -> Any | None:
        sql = f"SELECT * FROM {self.table} WHERE {self.key_column} = %s"

        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(sql, (entity_id,))
            row = cursor.fetchone()
        return self._from_row(row) if row is not None else None

    def create(self, entity: Any) -> Any:
        """
        Insert a new entity.

        ON CONFLICT DO NOTHING keeps the insert atomic; a zero rowcount means
        another writer created the same key first.
        """
        values = self._to_row(entity)
        columns = ", ".join(values)
        placeholders = ", ".join(f"%({name})s" for name in values)
        sql = f"""
            INSERT INTO {self.table} ({columns})
            VALUES ({placeholders})
            ON CONFLICT ({self.key_column}) DO NOTHING
        """

        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, values)
            conn.commit()
            if cursor.rowcount != 1:
                raise VersionConflictError(f"Entity already exists: {entity.entity_id}")
        return entity

    def atomic_update(self, entity_id: str, mutator, expected_version: int) -> Any:
        """
        Compare-and-set update conditioned on ``expected_version``.

        Raises:
            NotFoundError: Row does not exist
            VersionConflictError: Row version moved on since the caller's read
        """
        select_sql = f"SELECT * FROM {self.table} WHERE {self.key_column} = %s"
        assignments = ", ".join(f"{name} = %({name})s" for name in self.mutable_columns)
        update_sql = f"""
            UPDATE {self.table}
            SET {assignments}, version = version + 1
            WHERE {self.key_column} = %(entity_id)s AND version = %(expected_version)s
        """

        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(select_sql, (entity_id,))
            row = cursor.fetchone()
            if row is None:
                conn.commit()
                raise NotFoundError(f"Entity not found: {entity_id}")

            current = self._from_row(row)
            if current.version != expected_version:
                conn.commit()
                raise VersionConflictError(
                    f"Entity {entity_id} is at version {current.version}, "
                    f"expected {expected_version}"
                )

            updated = mutator(current)
            values = self._to_row(updated)
            params = {name: values[name] for name in self.mutable_columns}
            params["entity_id"] = entity_id
            params["expected_version"] = expected_version
            cursor.execute(update_sql, params)

            if cursor.rowcount != 1:
                conn.rollback()
                raise VersionConflictError(
                    f"Entity {entity_id} was modified concurrently (expected version "
                    f"{expected_version})"
                )
            conn.commit()

        updated.version = expected_version + 1
        return updated

    # Kept above list(), whose name shadows the builtin for later annotations
    def _where(self, filter: ListFilter) -> tuple[list[str], list[Any]]:
        clauses: list[str] = []
        params: list[Any] = []

        if filter.statuses:
            clauses.append("status = ANY(%s)")
            params.append(list(filter.statuses))
        if filter.created_from is not None:
            clauses.append("created_at >= %s")
            params.append(filter.created_from)
        if filter.created_before is not None:
            clauses.append("created_at < %s")
            params.append(filter.created_before)
        if filter.subject_id:
            clauses.append("subject_id = %s")
            params.append(filter.subject_id)
        if filter.search:
            pattern = f"%{_escape_like(filter.search)}%"
            matches = " OR ".join(f"{column} ILIKE %s" for column in self.search_columns)
            clauses.append(f"({matches})")
            params.extend(pattern for _ in self.search_columns)

        return clauses, params

    def list(
        self, filter: ListFilter, offset: int, limit: int, timeout_ms: int
    ) -> tuple[list[Any], int]:
        clauses, params = self._where(filter)
        where = " AND ".join(clauses) if clauses else "TRUE"
        count_sql = f"SELECT COUNT(*) AS total FROM {self.table} WHERE {where}"
        page_sql = f"""
            SELECT * FROM {self.table}
            WHERE {where}
            ORDER BY created_at, {self.key_column}
            LIMIT %s OFFSET %s
        """

        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            try:
                # Transaction-local; reset when the connection returns to the pool
                cursor.execute(
                    "SELECT set_config('statement_timeout', %s, true)", (f"{timeout_ms}ms",)
                )
                cursor.execute(count_sql, params)
                total = cursor.fetchone()["total"]
                cursor.execute(page_sql, [*params, limit, offset])
                rows = cursor.fetchall()
            except errors.QueryCanceled as e:
                logger.warning(f"Listing on {self.table} exceeded {timeout_ms}ms")
                raise ListingTimeoutError(
                    f"Listing query exceeded {timeout_ms}ms; narrow the filter"
                ) from e
            conn.commit()

        return [self._from_row(row) for row in rows], total

    def count_by_status(self) -> dict[str, int]:
        sql = f"SELECT status, COUNT(*) FROM {self.table} GROUP BY status"

        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql)
            return {status: count for status, count in cursor.fetchall()}

    def _to_row(self, entity: Any) -> dict[str, Any]:
        raise NotImplementedError

    def _from_row(self, row: dict[str, Any]) -> Any:
        raise NotImplementedError


class PostgresVerificationStore(_PostgresEntityStore):
    """
    Implements EntityStore[VerificationRecord] via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    table = "verification_records"
    key_column = "subject_id"
    mutable_columns = (
        "subject_name",
        "status",
        "plan",
        "level",
        "documents",
        "submitted_at",
        "reviewed_at",
        "revoked_at",
        "rejection_reason",
        "reasons",
        "conditions",
        "required_documents",
        "review_deadline",
        "reapply_after",
        "admin_message",
        "reviewed_by",
        "history",
    )
    search_columns = ("subject_name", "subject_id")

    def _where(self, filter: ListFilter) -> tuple[list[str], list[Any]]:
        clauses, params = super()._where(filter)
        if filter.deadline_before is not None:
            clauses.append("review_deadline < %s")
            params.append(filter.deadline_before)
        return clauses, params

    def _to_row(self, record: VerificationRecord) -> dict[str, Any]:
        return {
            "subject_id": record.subject_id,
            "subject_name": record.subject_name,
            "status": record.status.value,
            "plan": record.plan.value,
            "level": record.level.value,
            "documents": Jsonb(
                [
                    {"type": d.type, "url": d.url, "uploaded_at": d.uploaded_at.isoformat()}
                    for d in record.documents
                ]
            ),
            "created_at": record.created_at,
            "submitted_at": record.submitted_at,
            "reviewed_at": record.reviewed_at,
            "revoked_at": record.revoked_at,
            "rejection_reason": record.rejection_reason,
            "reasons": Jsonb(record.reasons),
            "conditions": Jsonb(record.conditions),
            "required_documents": Jsonb(record.required_documents),
            "review_deadline": record.review_deadline,
            "reapply_after": record.reapply_after,
            "admin_message": record.admin_message,
            "reviewed_by": record.reviewed_by,
            "history": Jsonb(_dump_history(record.history)),
            "version": record.version,
        }

    def _from_row(self, row: dict[str, Any]) -> VerificationRecord:
        return VerificationRecord(
            subject_id=row["subject_id"],
            subject_name=row["subject_name"],
            status=VerificationStatus(row["status"]),
            plan=VerificationPlan(row["plan"]),
            level=VerificationLevel(row["level"]),
            documents=[
                Document(
                    type=d["type"],
                    url=d["url"],
                    uploaded_at=datetime.fromisoformat(d["uploaded_at"]),
                )
                for d in row["documents"]
            ],
            created_at=row["created_at"],
            submitted_at=row["submitted_at"],
            reviewed_at=row["reviewed_at"],
            revoked_at=row["revoked_at"],
            rejection_reason=row["rejection_reason"],
            reasons=list(row["reasons"]),
            conditions=list(row["conditions"]),
            required_documents=list(row["required_documents"]),
            review_deadline=row["review_deadline"],
            reapply_after=row["reapply_after"],
            admin_message=row["admin_message"],
            reviewed_by=row["reviewed_by"],
            history=_load_history(row["history"]),
            version=row["version"],
        )


class PostgresReportStore(_PostgresEntityStore):
    """
    Implements EntityStore[Report] via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    table = "reports"
    key_column = "id"
    mutable_columns = (
        "status",
        "action",
        "action_details",
        "report_valid",
        "rejection_reason",
        "internal_notes",
        "priority",
        "assigned_admin_id",
        "escalation_level",
        "escalation_reason",
        "escalation_notes",
        "escalated_at",
        "escalated_by",
        "resolved_at",
        "admin_message",
        "history",
    )
    search_columns = ("description", "subject_id", "reported_user_id")

    def _where(self, filter: ListFilter) -> tuple[list[str], list[Any]]:
        clauses, params = super()._where(filter)
        if filter.reason:
            clauses.append("reason = %s")
            params.append(filter.reason)
        if filter.reported_user_id:
            clauses.append("reported_user_id = %s")
            params.append(filter.reported_user_id)
        if filter.reporter_id:
            clauses.append("reporter_id = %s")
            params.append(filter.reporter_id)
        return clauses, params

    def _to_row(self, report: Report) -> dict[str, Any]:
        return {
            "id": report.id,
            "reporter_id": report.reporter_id,
            "subject_type": report.subject_type.value,
            "subject_id": report.subject_id,
            "reported_user_id": report.reported_user_id,
            "reason": report.reason.value,
            "description": report.description,
            "evidence_urls": Jsonb(report.evidence_urls),
            "status": report.status.value,
            "action": report.action.value if report.action else None,
            "action_details": Jsonb(report.action_details),
            "report_valid": report.report_valid,
            "rejection_reason": report.rejection_reason,
            "internal_notes": report.internal_notes,
            "priority": report.priority.value,
            "assigned_admin_id": report.assigned_admin_id,
            "escalation_level": report.escalation_level,
            "escalation_reason": report.escalation_reason,
            "escalation_notes": report.escalation_notes,
            "escalated_at": report.escalated_at,
            "escalated_by": report.escalated_by,
            "resolved_at": report.resolved_at,
            "admin_message": report.admin_message,
            "history": Jsonb(_dump_history(report.history)),
            "created_at": report.created_at,
            "version": report.version,
        }

    def _from_row(self, row: dict[str, Any]) -> Report:
        return Report(
            id=row["id"],
            reporter_id=row["reporter_id"],
            subject_type=ReportSubjectType(row["subject_type"]),
            subject_id=row["subject_id"],
            reported_user_id=row["reported_user_id"],
            reason=ReportReason(row["reason"]),
            description=row["description"],
            evidence_urls=list(row["evidence_urls"]),
            status=ReportStatus(row["status"]),
            action=ReportAction(row["action"]) if row["action"] else None,
            action_details=dict(row["action_details"]),
            report_valid=row["report_valid"],
            rejection_reason=row["rejection_reason"],
            internal_notes=row["internal_notes"],
            priority=ReportPriority(row["priority"]),
            assigned_admin_id=row["assigned_admin_id"],
            escalation_level=row["escalation_level"],
            escalation_reason=row["escalation_reason"],
            escalation_notes=row["escalation_notes"],
            escalated_at=row["escalated_at"],
            escalated_by=row["escalated_by"],
            resolved_at=row["resolved_at"],
            admin_message=row["admin_message"],
            history=_load_history(row["history"]),
            created_at=row["created_at"],
            version=row["version"],
        )


def _dump_history(history: list[HistoryEntry]) -> list[dict[str, str]]:
    return [
        {
            "from_status": entry.from_status,
            "to_status": entry.to_status,
            "actor_id": entry.actor_id,
            "message": entry.message,
            "timestamp": entry.timestamp.isoformat(),
        }
        for entry in history
    ]


def _load_history(raw: list[dict[str, str]]) -> list[HistoryEntry]:
    return [
        HistoryEntry(
            from_status=item["from_status"],
            to_status=item["to_status"],
            actor_id=item["actor_id"],
            message=item["message"],
            timestamp=datetime.fromisoformat(item["timestamp"]),
        )
        for item in raw
    ]


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def run_migrations(pool: ConnectionPool) -> None:
    """
    Execute all SQL migration files from the migrations directory.

    Migrations are executed in sorted order (alphabetically by filename).
    Each migration should be idempotent (use IF NOT EXISTS, etc.).

    Args:
        pool: psycopg3 ConnectionPool instance
    """
    # Structure: src/adapters/repository/postgres.py -> migrations/
    migrations_dir = Path(__file__).parent.parent.parent.parent / "migrations"

    if not migrations_dir.exists():
        logger.warning(f"Migrations directory not found: {migrations_dir}")
        return

    sql_files = sorted(migrations_dir.glob("*.sql"))

    if not sql_files:
        logger.info("No migration files found")
        return

    logger.info(f"Running {len(sql_files)} migration(s)")

    for sql_file in sql_files:
        logger.info(f"Executing migration: {sql_file.name}")
        try:
            sql_content = sql_file.read_text()

            with pool.connection() as conn:
                conn.execute(sql_content)

            logger.info(f"Migration complete: {sql_file.name}")
        except Exception as e:
            logger.error(f"Migration failed: {sql_file.name} - {e}")
            raise RuntimeError(f"Database migration failed: {sql_file.name}") from e
