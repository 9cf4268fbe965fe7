"""
Transition validator - Legal moves and implied side effects.

Both workflows share one validator parameterized by per-kind transition
tables. ``validate`` either returns a TransitionPlan or raises the domain
error that classifies the failure.

Verification Transitions
========================

    PENDING                        -> REVIEWING, APPROVED, REJECTED,
                                      CONDITIONALLY_APPROVED,
                                      ADDITIONAL_DOCUMENTS_REQUIRED
    REVIEWING                      -> APPROVED, REJECTED, CONDITIONALLY_APPROVED,
                                      ADDITIONAL_DOCUMENTS_REQUIRED
    ADDITIONAL_DOCUMENTS_REQUIRED  -> REVIEWING, REJECTED
    APPROVED                       -> REVOKED
    REJECTED, CONDITIONALLY_APPROVED, REVOKED -> (none)

Report Transitions
==================

    PENDING        -> INVESTIGATING, RESOLVED, REJECTED
    INVESTIGATING  -> RESOLVED, REJECTED
    RESOLVED, REJECTED -> (none)

Check order is role, target status and message first, then staleness, then
disposition fields: a request missing its message fails with ValidationError
even against a decided entity, while any well-formed decision on a decided
entity is AlreadyProcessedError, so callers can tell a bad request from a
stale one.
"""

from typing import Any

from .exceptions import (
    AlreadyProcessedError,
    InvalidTransitionError,
    PermissionDenied,
    ValidationError,
)
from .models import (
    AccountStatusChange,
    NotificationIntent,
    Report,
    TransitionPayload,
    TransitionPlan,
    VerificationRecord,
)
from .ports import (
    AccountEffect,
    ActorRole,
    EntityKind,
    ReportAction,
    ReportStatus,
    VerificationStatus,
)

VERIFICATION_TRANSITIONS: dict[VerificationStatus, frozenset[VerificationStatus]] = {
    VerificationStatus.PENDING: frozenset(
        {
            VerificationStatus.REVIEWING,
            VerificationStatus.APPROVED,
            VerificationStatus.REJECTED,
            VerificationStatus.CONDITIONALLY_APPROVED,
            VerificationStatus.ADDITIONAL_DOCUMENTS_REQUIRED,
        }
    ),
    VerificationStatus.REVIEWING: frozenset(
        {
            VerificationStatus.APPROVED,
            VerificationStatus.REJECTED,
            VerificationStatus.CONDITIONALLY_APPROVED,
            VerificationStatus.ADDITIONAL_DOCUMENTS_REQUIRED,
        }
    ),
    VerificationStatus.ADDITIONAL_DOCUMENTS_REQUIRED: frozenset(
        {VerificationStatus.REVIEWING, VerificationStatus.REJECTED}
    ),
    VerificationStatus.APPROVED: frozenset({VerificationStatus.REVOKED}),
    VerificationStatus.REJECTED: frozenset(),
    VerificationStatus.CONDITIONALLY_APPROVED: frozenset(),
    VerificationStatus.REVOKED: frozenset(),
}

REPORT_TRANSITIONS: dict[ReportStatus, frozenset[ReportStatus]] = {
    ReportStatus.PENDING: frozenset(
        {ReportStatus.INVESTIGATING, ReportStatus.RESOLVED, ReportStatus.REJECTED}
    ),
    ReportStatus.INVESTIGATING: frozenset({ReportStatus.RESOLVED, ReportStatus.REJECTED}),
    ReportStatus.RESOLVED: frozenset(),
    ReportStatus.REJECTED: frozenset(),
}

# An admin decision on these is final; APPROVED still admits revocation.
DECIDED_VERIFICATION_STATUSES = frozenset(
    {
        VerificationStatus.APPROVED,
        VerificationStatus.REJECTED,
        VerificationStatus.CONDITIONALLY_APPROVED,
        VerificationStatus.REVOKED,
    }
)
DECIDED_REPORT_STATUSES = frozenset({ReportStatus.RESOLVED, ReportStatus.REJECTED})

# reviewed_at is set iff the record is in one of these.
REVIEWED_STATUSES = frozenset(
    {
        VerificationStatus.APPROVED,
        VerificationStatus.REJECTED,
        VerificationStatus.CONDITIONALLY_APPROVED,
    }
)

OPEN_VERIFICATION_STATUSES = frozenset(
    {
        VerificationStatus.PENDING,
        VerificationStatus.REVIEWING,
        VerificationStatus.ADDITIONAL_DOCUMENTS_REQUIRED,
    }
)

# Actions that notify the reported user.
_NOTIFIED_ACTIONS = frozenset(
    {ReportAction.WARNING, ReportAction.SUSPEND_ACCOUNT, ReportAction.CONTENT_REMOVED}
)


def is_decided(entity_kind: EntityKind, status: str) -> bool:
    """Return True if an admin decision on this status is final."""
    if entity_kind == EntityKind.VERIFICATION:
        return status in DECIDED_VERIFICATION_STATUSES
    return status in DECIDED_REPORT_STATUSES


def suspension_days_from(details: dict[str, Any]) -> int | None:
    """Read a suspension duration from action details (snake or camel case)."""
    value = details.get("suspension_days", details.get("suspensionDays"))
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError("suspension_days must be a positive integer")
    return value


class TransitionValidator:
    """
    Decides whether a requested status change is legal.

    Stateless; safe to share between requests.
    """

    def validate(
        self,
        entity_kind: EntityKind,
        entity: VerificationRecord | Report,
        requested_status: str,
        actor_role: ActorRole,
        payload: TransitionPayload,
    ) -> TransitionPlan:
        """
        Validate a transition of ``entity`` to ``requested_status``.

        Args:
            entity_kind: Which transition table applies
            entity: Current persisted entity (status and side effect targets)
            requested_status: Raw target status from the request
            actor_role: Role of the resolved principal
            payload: Admin message and disposition fields

        Returns:
            TransitionPlan describing updates and side effects

        Raises:
            PermissionDenied: Actor is not an admin
            ValidationError: Unknown status, missing message or disposition field
            InvalidTransitionError: Target not reachable from a non-terminal status
            AlreadyProcessedError: Entity already decided
        """
        if actor_role != ActorRole.ADMIN:
            raise PermissionDenied(
                f"Admin role required to change {entity_kind.value} status; "
                f"current role: {actor_role.value}"
            )

        if entity_kind == EntityKind.VERIFICATION:
            return self._validate_verification(entity, requested_status, payload)
        return self._validate_report(entity, requested_status, payload)

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def _validate_verification(
        self, record: VerificationRecord, requested_status: str, payload: TransitionPayload
    ) -> TransitionPlan:
        target = _parse_status(VerificationStatus, requested_status, "verification")
        message = _require_message(payload.message, "message")

        current = VerificationStatus(record.status)
        self._check_reachable(
            EntityKind.VERIFICATION, current, target, VERIFICATION_TRANSITIONS[current]
        )

        if target in (VerificationStatus.REJECTED, VerificationStatus.REVOKED):
            if not _has_text(payload.rejection_reason) and not _clean(payload.reasons):
                raise ValidationError(
                    f"rejection_reason or reasons is required to set status {target.value}"
                )
        if target == VerificationStatus.CONDITIONALLY_APPROVED and not _clean(
            payload.conditions
        ):
            raise ValidationError("conditions are required for a conditional approval")
        if target == VerificationStatus.ADDITIONAL_DOCUMENTS_REQUIRED and not _clean(
            payload.required_documents
        ):
            raise ValidationError("required_documents are required to request documents")

        updates: dict[str, Any] = {"admin_message": message}
        timestamp_field = None
        cleared: tuple[str, ...] = ()
        account_change = None

        if target in REVIEWED_STATUSES:
            timestamp_field = "reviewed_at"
        else:
            cleared = ("reviewed_at",)

        if target == VerificationStatus.APPROVED:
            account_change = AccountStatusChange(
                subject_id=record.subject_id,
                effect=AccountEffect.PUBLISH_VERIFIED_BREEDER,
            )
        elif target == VerificationStatus.REJECTED:
            updates.update(
                rejection_reason=_rejection_text(payload),
                reasons=_clean(payload.reasons),
                required_documents=_clean(payload.required_documents),
                reapply_after=payload.reapply_after,
            )
        elif target == VerificationStatus.CONDITIONALLY_APPROVED:
            updates.update(
                conditions=_clean(payload.conditions),
                review_deadline=payload.review_deadline,
            )
        elif target == VerificationStatus.ADDITIONAL_DOCUMENTS_REQUIRED:
            updates.update(
                required_documents=_clean(payload.required_documents),
                review_deadline=payload.review_deadline,
            )
        elif target == VerificationStatus.REVOKED:
            timestamp_field = "revoked_at"
            rejection_reason = _rejection_text(payload)
            updates.update(rejection_reason=rejection_reason, reasons=_clean(payload.reasons))
            account_change = AccountStatusChange(
                subject_id=record.subject_id,
                effect=AccountEffect.REVOKE_BREEDER_VERIFICATION,
                reason=rejection_reason,
            )

        notification = NotificationIntent(
            recipient_id=record.subject_id,
            template_key=f"verification.{target.value}",
            payload={
                "subject_id": record.subject_id,
                "status": target.value,
                "message": message,
                **{k: v for k, v in updates.items() if k != "admin_message" and v},
            },
        )

        return TransitionPlan(
            entity_kind=EntityKind.VERIFICATION,
            from_status=current.value,
            to_status=target.value,
            updates=updates,
            timestamp_field=timestamp_field,
            cleared_fields=cleared,
            account_change=account_change,
            notifications=(notification,),
        )

    # ------------------------------------------------------------------
    # Report
    # ------------------------------------------------------------------

    def _validate_report(
        self, report: Report, requested_status: str, payload: TransitionPayload
    ) -> TransitionPlan:
        target = _parse_status(ReportStatus, requested_status, "report")
        message = _require_message(payload.message, "adminMessage")
        action = _parse_action(payload.action)
        suspension_days = suspension_days_from(payload.action_details)

        current = ReportStatus(report.status)
        self._check_reachable(EntityKind.REPORT, current, target, REPORT_TRANSITIONS[current])

        if target == ReportStatus.RESOLVED and action is None:
            raise ValidationError("action is required to resolve a report")
        if target == ReportStatus.REJECTED:
            if not _has_text(payload.rejection_reason):
                raise ValidationError("rejection_reason is required to reject a report")
            if action not in (None, ReportAction.NO_ACTION):
                raise ValidationError("a rejected report can only carry action no_action")
        if target == ReportStatus.INVESTIGATING and action is not None:
            raise ValidationError("action can only be set when resolving or rejecting")

        updates: dict[str, Any] = {"admin_message": message}
        if payload.internal_notes is not None:
            updates["internal_notes"] = payload.internal_notes
        timestamp_field = None
        account_change = None
        notifications = [
            NotificationIntent(
                recipient_id=report.reporter_id,
                template_key=f"report.{target.value}",
                payload={"report_id": report.id, "status": target.value, "message": message},
            )
        ]

        if target == ReportStatus.RESOLVED:
            timestamp_field = "resolved_at"
            updates.update(
                action=action,
                action_details=dict(payload.action_details),
                report_valid=True if payload.report_valid is None else payload.report_valid,
            )
            if action == ReportAction.SUSPEND_ACCOUNT:
                reason = payload.action_details.get(
                    "suspension_reason", payload.action_details.get("suspensionReason")
                )
                account_change = AccountStatusChange(
                    subject_id=report.reported_user_id,
                    effect=AccountEffect.SUSPEND_ACCOUNT,
                    reason=reason if _has_text(reason) else message,
                    suspension_days=suspension_days,
                )
            if action in _NOTIFIED_ACTIONS:
                action_payload: dict[str, Any] = {
                    "report_id": report.id,
                    "subject_type": report.subject_type.value,
                    "subject_id": report.subject_id,
                    "action": action.value,
                    "message": message,
                }
                if suspension_days is not None:
                    action_payload["suspension_days"] = suspension_days
                notifications.append(
                    NotificationIntent(
                        recipient_id=report.reported_user_id,
                        template_key=f"report.action.{action.value}",
                        payload=action_payload,
                    )
                )
        elif target == ReportStatus.REJECTED:
            timestamp_field = "resolved_at"
            updates.update(
                action=ReportAction.NO_ACTION,
                rejection_reason=payload.rejection_reason,
                report_valid=False if payload.report_valid is None else payload.report_valid,
            )

        return TransitionPlan(
            entity_kind=EntityKind.REPORT,
            from_status=current.value,
            to_status=target.value,
            updates=updates,
            timestamp_field=timestamp_field,
            account_change=account_change,
            notifications=tuple(notifications),
        )

    # ------------------------------------------------------------------

    def _check_reachable(self, entity_kind, current, target, allowed) -> None:
        if target in allowed:
            return
        if is_decided(entity_kind, current):
            raise AlreadyProcessedError(
                f"{entity_kind.value.capitalize()} already processed (status: {current.value})"
            )
        raise InvalidTransitionError(
            f"Cannot change {entity_kind.value} status from {current.value} to {target.value}"
        )


def _parse_status(enum_cls, value: str, label: str):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(
            f"Invalid {label} status: {value!r} (expected one of: {allowed})"
        ) from None


def _parse_action(value: str | None) -> ReportAction | None:
    if value is None:
        return None
    try:
        return ReportAction(value)
    except ValueError:
        raise ValidationError(f"Invalid report action: {value!r}") from None


def _require_message(value: str | None, field_name: str) -> str:
    if not _has_text(value):
        raise ValidationError(f"{field_name} is required")
    return value.strip()


def _has_text(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _clean(values: list[str]) -> list[str]:
    return [v.strip() for v in values if _has_text(v)]


def _rejection_text(payload: TransitionPayload) -> str:
    if _has_text(payload.rejection_reason):
        return payload.rejection_reason.strip()
    return "; ".join(_clean(payload.reasons))
