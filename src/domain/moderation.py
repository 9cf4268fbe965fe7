"""
Moderation engine - Orchestrates trust pipeline transitions.

apply_transition() runs the whole decision path for both workflows:

    1. Reject malformed ids before any lookup
    2. Load the entity (NotFoundError on miss)
    3. Check the admin's per-kind permission
    4. Ask the TransitionValidator for a plan
    5. Commit status, disposition fields and one history entry through the
       store's version-checked atomic_update
    6. Apply account standing changes and dispatch notifications

Steps 1-5 are the only ones whose failure reaches the caller. Step 6 runs
after commit; its failures are logged as DownstreamSyncError and never undo
the recorded decision.

Version conflicts: when the caller pins expected_version the conflict is
surfaced as-is; otherwise the engine re-reads, re-validates and retries up to
version_conflict_retries times before surfacing it.
"""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from .exceptions import (
    AlreadyProcessedError,
    DownstreamSyncError,
    NotFoundError,
    PermissionDenied,
    ValidationError,
    VersionConflictError,
)
from .identifiers import new_id, normalize_id
from .models import (
    Document,
    HistoryEntry,
    ListFilter,
    Principal,
    Report,
    TransitionPayload,
    TransitionPlan,
    VerificationRecord,
)
from .ports import (
    AccountStatusMutator,
    ActorRole,
    EntityKind,
    EntityStore,
    EscalationLevel,
    NotificationDispatcher,
    ReportPriority,
    ReportReason,
    ReportStatus,
    ReportSubjectType,
    VerificationLevel,
    VerificationPlan,
    VerificationStatus,
)
from .transitions import OPEN_VERIFICATION_STATUSES, TransitionValidator

logger = logging.getLogger(__name__)

_HIGH_PRIORITY_REASONS = frozenset({ReportReason.ANIMAL_ABUSE, ReportReason.FRAUD})

OVERDUE_DOCUMENTS_MESSAGE = "Requested documents were not submitted before the deadline"
REAPPLICATION_MESSAGE = "Breeder reapplied after rejection"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ModerationEngine:
    """
    Domain service for verification and report moderation.

    Holds no per-request state; every call re-reads the entity it acts on.
    """

    verifications: EntityStore[VerificationRecord]
    reports: EntityStore[Report]
    account_status: AccountStatusMutator
    notifier: NotificationDispatcher
    validator: TransitionValidator = field(default_factory=TransitionValidator)
    clock: Callable[[], datetime] = utcnow
    version_conflict_retries: int = 1
    auto_reject_overdue_documents: bool = False

    def apply_transition(
        self,
        entity_kind: EntityKind,
        entity_id: str,
        requested_status: str,
        actor: Principal,
        payload: TransitionPayload,
        expected_version: int | None = None,
    ) -> VerificationRecord | Report:
        """
        Move an entity to ``requested_status`` on behalf of an admin.

        Args:
            entity_kind: Verification or report
            entity_id: Breeder id (verification) or report id
            requested_status: Raw target status
            actor: Resolved principal; its role is trusted, nothing in payload is
            payload: Message and disposition fields
            expected_version: Version the caller based its decision on, if any

        Returns:
            Updated entity snapshot

        Raises:
            ValidationError: Malformed id or invalid request
            NotFoundError: No entity with this id
            PermissionDenied: Actor is not an admin or lacks the permission
            AlreadyProcessedError: Entity already decided
            VersionConflictError: Concurrent write won
        """
        entity_id = normalize_id(entity_id, f"{entity_kind.value} id")
        store = self._store(entity_kind)
        retries_left = 0 if expected_version is not None else self.version_conflict_retries

        while True:
            entity = self._load(store, entity_kind, entity_id)
            self._check_permission(entity_kind, actor)
            if expected_version is not None and entity.version != expected_version:
                raise VersionConflictError(
                    f"{entity_kind.value.capitalize()} {entity_id} is at version "
                    f"{entity.version}, expected {expected_version}"
                )

            plan = self.validator.validate(
                entity_kind, entity, requested_status, actor.role, payload
            )
            now = self.clock()
            try:
                updated = store.atomic_update(
                    entity_id,
                    lambda current: self._apply_plan(current, plan, actor, now),
                    entity.version,
                )
            except VersionConflictError:
                if retries_left <= 0:
                    raise
                retries_left -= 1
                logger.info(
                    "Version conflict on %s %s, retrying", entity_kind.value, entity_id
                )
                continue
            break

        logger.info(
            "%s %s: %s -> %s by %s",
            entity_kind.value.capitalize(),
            entity_id,
            plan.from_status,
            plan.to_status,
            actor.id,
        )
        self._run_side_effects(plan)
        return updated

    def create_verification(
        self,
        subject_id: str,
        plan: VerificationPlan = VerificationPlan.BASIC,
        level: VerificationLevel = VerificationLevel.NEW,
        subject_name: str | None = None,
        documents: Iterable[tuple[str, str]] = (),
    ) -> VerificationRecord:
        """
        Create the pending verification record of a newly registered breeder.

        Raises:
            ValidationError: Malformed subject id
            VersionConflictError: Record already exists
        """
        subject_id = normalize_id(subject_id, "breeder id")
        now = self.clock()
        record = VerificationRecord(
            subject_id=subject_id,
            status=VerificationStatus.PENDING,
            created_at=now,
            submitted_at=now,
            plan=plan,
            level=level,
            subject_name=subject_name,
            documents=_documents(documents, now),
        )
        created = self.verifications.create(record)
        logger.info("Verification record created for breeder %s", subject_id)
        return created

    def submit_documents(
        self,
        subject: Principal,
        documents: Iterable[tuple[str, str]],
        plan: VerificationPlan | None = None,
        subject_name: str | None = None,
    ) -> VerificationRecord:
        """
        Submit or resubmit verification documents as the breeder.

        Creates the record if the breeder has none. Otherwise appends documents
        while the record is still open (pending, reviewing or
        additional_documents_required); status and history are untouched, an
        admin moves a resubmission back to reviewing.

        A rejected breeder may reapply once reapply_after has passed (or at
        once when it is unset): the record returns to pending with a history
        entry, and the previous decision fields are cleared.

        Raises:
            PermissionDenied: Caller is not a breeder
            ValidationError: No documents given
            AlreadyProcessedError: Record already decided, or rejected and
                reapply_after not yet reached
        """
        if subject.role != ActorRole.BREEDER:
            raise PermissionDenied(
                f"Breeder role required to submit documents; current role: {subject.role.value}"
            )
        documents = list(documents)
        if not documents:
            raise ValidationError("At least one document is required")
        for doc_type, url in documents:
            if not doc_type.strip() or not url.strip():
                raise ValidationError("Documents need a type and a url")

        subject_id = normalize_id(subject.id, "breeder id")
        if self.verifications.get(subject_id) is None:
            try:
                return self.create_verification(
                    subject_id,
                    plan=plan or VerificationPlan.BASIC,
                    subject_name=subject_name,
                    documents=documents,
                )
            except VersionConflictError:
                logger.info("Verification for %s created concurrently, appending", subject_id)

        retries_left = self.version_conflict_retries
        while True:
            record = self._load(self.verifications, EntityKind.VERIFICATION, subject_id)
            now = self.clock()
            reapplying = record.status == VerificationStatus.REJECTED
            if reapplying:
                if record.reapply_after is not None and now < record.reapply_after:
                    raise AlreadyProcessedError(
                        "Verification rejected; reapplication opens at "
                        f"{record.reapply_after.isoformat()}"
                    )
            elif record.status not in OPEN_VERIFICATION_STATUSES:
                raise AlreadyProcessedError(
                    f"Verification already processed (status: {record.status.value})"
                )

            def append(current: VerificationRecord) -> VerificationRecord:
                if reapplying:
                    _restart_review(current, subject_id, now)
                current.documents.extend(_documents(documents, now))
                current.submitted_at = now
                if plan is not None:
                    current.plan = plan
                if subject_name:
                    current.subject_name = subject_name
                return current

            try:
                updated = self.verifications.atomic_update(subject_id, append, record.version)
            except VersionConflictError:
                if retries_left <= 0:
                    raise
                retries_left -= 1
                continue
            if reapplying:
                logger.info("Breeder %s reapplied after rejection", subject_id)
            logger.info("Breeder %s submitted %d document(s)", subject_id, len(documents))
            return updated

    def create_report(
        self,
        reporter: Principal,
        subject_type: str,
        subject_id: str,
        reason: str,
        description: str,
        reported_user_id: str | None = None,
        evidence_urls: Iterable[str] = (),
    ) -> Report:
        """
        File a complaint. Duplicate reports are allowed.

        ``reported_user_id`` is required for post and review reports; for
        breeder reports it defaults to the breeder.

        Raises:
            ValidationError: Malformed id, unknown subject type or reason,
                blank description, or reporting oneself
        """
        subject_type_value = _parse_enum(ReportSubjectType, subject_type, "subject type")
        reason_value = _parse_enum(ReportReason, reason, "report reason")
        subject_id = normalize_id(subject_id, "subject id")
        if reported_user_id is None:
            if subject_type_value != ReportSubjectType.BREEDER:
                raise ValidationError(
                    f"reported_user_id is required for {subject_type_value.value} reports"
                )
            reported_user_id = subject_id
        reported_user_id = normalize_id(reported_user_id, "reported user id")
        if not description or not description.strip():
            raise ValidationError("description is required")
        if reported_user_id == reporter.id:
            raise ValidationError("Users cannot report themselves")

        report = Report(
            id=new_id(),
            reporter_id=reporter.id,
            subject_type=subject_type_value,
            subject_id=subject_id,
            reported_user_id=reported_user_id,
            reason=reason_value,
            description=description.strip(),
            status=ReportStatus.PENDING,
            created_at=self.clock(),
            evidence_urls=[url for url in evidence_urls if url.strip()],
            priority=(
                ReportPriority.HIGH
                if reason_value in _HIGH_PRIORITY_REASONS
                else ReportPriority.NORMAL
            ),
        )
        created = self.reports.create(report)
        logger.info(
            "Report %s filed by %s against %s %s (%s)",
            created.id,
            reporter.id,
            subject_type_value.value,
            subject_id,
            reason_value.value,
        )
        return created

    def escalate_report(
        self,
        report_id: str,
        actor: Principal,
        escalation_level: str,
        reason: str,
        urgency: str,
        notes: str | None = None,
    ) -> Report:
        """
        Record escalation metadata on a report.

        Never changes status or history and is accepted on resolved and
        rejected reports; urgency becomes the report priority.

        Raises:
            ValidationError: Malformed id, unknown level or urgency, blank reason
            NotFoundError: No such report
            PermissionDenied: Actor cannot manage reports
        """
        report_id = normalize_id(report_id, "report id")
        level = _parse_enum(EscalationLevel, escalation_level, "escalation level")
        priority = _parse_enum(ReportPriority, urgency, "urgency")
        if not reason or not reason.strip():
            raise ValidationError("reason is required")
        if not actor.is_admin:
            raise PermissionDenied(
                f"Admin role required to escalate reports; current role: {actor.role.value}"
            )
        self._check_permission(EntityKind.REPORT, actor)

        retries_left = self.version_conflict_retries
        while True:
            report = self._load(self.reports, EntityKind.REPORT, report_id)
            now = self.clock()

            def escalate(current: Report) -> Report:
                current.escalation_level = level.value
                current.escalation_reason = reason.strip()
                current.escalation_notes = notes
                current.escalated_at = now
                current.escalated_by = actor.id
                current.priority = priority
                return current

            try:
                updated = self.reports.atomic_update(report_id, escalate, report.version)
            except VersionConflictError:
                if retries_left <= 0:
                    raise
                retries_left -= 1
                continue
            logger.info(
                "Report %s escalated to %s (%s) by %s",
                report_id,
                level.value,
                priority.value,
                actor.id,
            )
            return updated

    def expire_overdue_documents(
        self,
        actor: Principal,
        now: datetime | None = None,
        batch_size: int = 100,
        timeout_ms: int = 5000,
    ) -> list[str]:
        """
        Reject records left in additional_documents_required past their deadline.

        Entry point for an external scheduler; does nothing unless
        auto_reject_overdue_documents is enabled.

        Returns:
            Subject ids whose records were rejected by this sweep
        """
        if not self.auto_reject_overdue_documents:
            logger.debug("Overdue document sweep disabled")
            return []

        now = now or self.clock()
        overdue_filter = ListFilter(
            statuses=(VerificationStatus.ADDITIONAL_DOCUMENTS_REQUIRED.value,),
            deadline_before=now,
        )
        candidates: list[tuple[str, int]] = []
        offset = 0
        while True:
            batch, total = self.verifications.list(overdue_filter, offset, batch_size, timeout_ms)
            candidates.extend((record.subject_id, record.version) for record in batch)
            offset += len(batch)
            if not batch or offset >= total:
                break

        rejected: list[str] = []
        payload = TransitionPayload(
            message=OVERDUE_DOCUMENTS_MESSAGE,
            rejection_reason="additional_documents_overdue",
        )
        for subject_id, version in candidates:
            try:
                self.apply_transition(
                    EntityKind.VERIFICATION,
                    subject_id,
                    VerificationStatus.REJECTED.value,
                    actor,
                    payload,
                    expected_version=version,
                )
            except (AlreadyProcessedError, VersionConflictError) as e:
                logger.info("Skipping overdue verification %s: %s", subject_id, e)
                continue
            rejected.append(subject_id)

        logger.info("Overdue document sweep rejected %d record(s)", len(rejected))
        return rejected

    # ------------------------------------------------------------------

    def _store(self, entity_kind: EntityKind) -> EntityStore:
        if entity_kind == EntityKind.VERIFICATION:
            return self.verifications
        return self.reports

    def _load(self, store: EntityStore, entity_kind: EntityKind, entity_id: str):
        entity = store.get(entity_id)
        if entity is None:
            raise NotFoundError(f"{entity_kind.value.capitalize()} not found: {entity_id}")
        return entity

    def _check_permission(self, entity_kind: EntityKind, actor: Principal) -> None:
        if not actor.is_admin:
            return  # the validator reports the role problem
        if entity_kind == EntityKind.VERIFICATION and not actor.can_manage_breeders:
            raise PermissionDenied("Admin lacks permission to manage breeder verifications")
        if entity_kind == EntityKind.REPORT and not actor.can_manage_reports:
            raise PermissionDenied("Admin lacks permission to manage reports")

    def _apply_plan(self, entity, plan: TransitionPlan, actor: Principal, now: datetime):
        if plan.entity_kind == EntityKind.VERIFICATION:
            entity.status = VerificationStatus(plan.to_status)
            entity.reviewed_by = actor.id
        else:
            entity.status = ReportStatus(plan.to_status)
            if entity.status == ReportStatus.INVESTIGATING:
                entity.assigned_admin_id = actor.id

        for name, value in plan.updates.items():
            setattr(entity, name, value)
        for name in plan.cleared_fields:
            setattr(entity, name, None)
        if plan.timestamp_field is not None:
            setattr(entity, plan.timestamp_field, now)

        entity.history.append(
            HistoryEntry(
                from_status=plan.from_status,
                to_status=plan.to_status,
                actor_id=actor.id,
                message=plan.updates["admin_message"],
                timestamp=now,
            )
        )
        return entity

    def _run_side_effects(self, plan: TransitionPlan) -> None:
        if plan.account_change is not None:
            change = plan.account_change
            try:
                self.account_status.apply(change)
            except Exception as e:
                error = DownstreamSyncError(
                    f"Account sync {change.effect.value} failed for {change.subject_id}: {e}"
                )
                logger.error("[%s] %s", error.code, error.message, exc_info=True)

        for intent in plan.notifications:
            try:
                self.notifier.dispatch(intent)
            except Exception as e:
                error = DownstreamSyncError(
                    f"Notification {intent.template_key} to {intent.recipient_id} failed: {e}"
                )
                logger.error("[%s] %s", error.code, error.message, exc_info=True)


def _restart_review(record: VerificationRecord, actor_id: str, now: datetime) -> None:
    """Reopen a rejected record as pending, keeping its documents and history."""
    record.history.append(
        HistoryEntry(
            from_status=record.status.value,
            to_status=VerificationStatus.PENDING.value,
            actor_id=actor_id,
            message=REAPPLICATION_MESSAGE,
            timestamp=now,
        )
    )
    record.status = VerificationStatus.PENDING
    record.reviewed_at = None
    record.rejection_reason = None
    record.reasons = []
    record.required_documents = []
    record.review_deadline = None
    record.reapply_after = None


def _documents(documents: Iterable[tuple[str, str]], now: datetime) -> list[Document]:
    return [
        Document(type=doc_type.strip(), url=url.strip(), uploaded_at=now)
        for doc_type, url in documents
    ]


def _parse_enum(enum_cls, value: str, label: str):
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError(f"Invalid {label}: {value!r}") from None

