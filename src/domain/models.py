"""
Domain models - Records, plans and value objects of the trust pipeline.

Plain dataclasses with no framework imports. Entities carry their own
append-only ``history`` and an integer ``version`` used for optimistic
concurrency by the entity stores.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .ports import (
    AccountEffect,
    ActorRole,
    EntityKind,
    ReportAction,
    ReportPriority,
    ReportReason,
    ReportStatus,
    ReportSubjectType,
    VerificationLevel,
    VerificationPlan,
    VerificationStatus,
)


@dataclass(frozen=True)
class Document:
    """Opaque reference to an uploaded verification document."""

    type: str
    url: str
    uploaded_at: datetime


@dataclass(frozen=True)
class HistoryEntry:
    """One committed status transition."""

    from_status: str
    to_status: str
    actor_id: str
    message: str
    timestamp: datetime


@dataclass
class VerificationRecord:
    """
    Verification state of one breeder.

    Attributes:
        subject_id: Owning breeder, also the record key
        status: Current verification status
        plan: Subscription plan (informational)
        level: Breeder level (informational)
        documents: Submitted documents, append-only until approval
        created_at: Creation time, immutable, used for listing order
        submitted_at: Time of the latest document submission
        reviewed_at: Set iff status is approved, rejected or conditionally_approved
        revoked_at: Set when an approval was revoked
        rejection_reason: Free-text reason for rejection or revocation
        reasons: Itemized rejection reasons
        conditions: Conditions attached to a conditional approval
        required_documents: Documents requested from the breeder
        review_deadline: Deadline for conditions or additional documents
        reapply_after: Earliest reapplication time after rejection
        admin_message: Message of the latest admin decision
        reviewed_by: Admin who made the latest decision
        history: Append-only transition log
        version: Write counter for optimistic concurrency
    """

    subject_id: str
    status: VerificationStatus
    created_at: datetime
    submitted_at: datetime
    plan: VerificationPlan = VerificationPlan.BASIC
    level: VerificationLevel = VerificationLevel.NEW
    subject_name: str | None = None
    documents: list[Document] = field(default_factory=list)
    reviewed_at: datetime | None = None
    revoked_at: datetime | None = None
    rejection_reason: str | None = None
    reasons: list[str] = field(default_factory=list)
    conditions: list[str] = field(default_factory=list)
    required_documents: list[str] = field(default_factory=list)
    review_deadline: datetime | None = None
    reapply_after: datetime | None = None
    admin_message: str | None = None
    reviewed_by: str | None = None
    history: list[HistoryEntry] = field(default_factory=list)
    version: int = 1

    @property
    def entity_id(self) -> str:
        return self.subject_id


@dataclass
class Report:
    """
    A user complaint against a breeder, post or review.

    Attributes:
        id: Report identifier
        reporter_id: User who submitted the report
        subject_type: Kind of reported entity
        subject_id: Reported entity
        reported_user_id: Account that account-level side effects target
        reason: Complaint category
        description: Free-text complaint
        status: Current moderation status
        action: Disposition recorded on resolution
        action_details: Action parameters (suspension_days, suspension_reason, ...)
        resolved_at: Set when the report reaches resolved or rejected
        escalation_level: Set by escalation, the only field that may change
            after a terminal status together with the other escalation fields
    """

    id: str
    reporter_id: str
    subject_type: ReportSubjectType
    subject_id: str
    reported_user_id: str
    reason: ReportReason
    description: str
    status: ReportStatus
    created_at: datetime
    evidence_urls: list[str] = field(default_factory=list)
    action: ReportAction | None = None
    action_details: dict[str, Any] = field(default_factory=dict)
    report_valid: bool | None = None
    rejection_reason: str | None = None
    internal_notes: str | None = None
    priority: ReportPriority = ReportPriority.NORMAL
    assigned_admin_id: str | None = None
    escalation_level: str | None = None
    escalation_reason: str | None = None
    escalation_notes: str | None = None
    escalated_at: datetime | None = None
    escalated_by: str | None = None
    resolved_at: datetime | None = None
    admin_message: str | None = None
    history: list[HistoryEntry] = field(default_factory=list)
    version: int = 1

    @property
    def entity_id(self) -> str:
        return self.id


@dataclass(frozen=True)
class Principal:
    """Authenticated caller, resolved before any engine call."""

    id: str
    role: ActorRole
    display_name: str = ""
    can_manage_breeders: bool = False
    can_manage_reports: bool = False

    @property
    def is_admin(self) -> bool:
        return self.role == ActorRole.ADMIN


@dataclass
class TransitionPayload:
    """
    Admin-supplied fields accompanying a transition request.

    ``message`` is the verification ``message`` or the report ``adminMessage``.
    Fields irrelevant to the entity kind are ignored.
    """

    message: str | None = None
    rejection_reason: str | None = None
    reasons: list[str] = field(default_factory=list)
    conditions: list[str] = field(default_factory=list)
    required_documents: list[str] = field(default_factory=list)
    review_deadline: datetime | None = None
    reapply_after: datetime | None = None
    action: str | None = None
    action_details: dict[str, Any] = field(default_factory=dict)
    report_valid: bool | None = None
    internal_notes: str | None = None


@dataclass(frozen=True)
class AccountStatusChange:
    """Account standing change implied by a transition."""

    subject_id: str
    effect: AccountEffect
    reason: str | None = None
    suspension_days: int | None = None


@dataclass(frozen=True)
class NotificationIntent:
    """Request to notify a user; delivery is someone else's problem."""

    recipient_id: str
    template_key: str
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TransitionPlan:
    """
    Validator output: the state change and everything it implies.

    Attributes:
        updates: Entity attribute values to set alongside the status
        timestamp_field: Attribute to stamp with the commit time, if any
        cleared_fields: Attributes reset to None by this transition
        account_change: Account standing side effect, if any
        notifications: Notification intents to dispatch after commit
    """

    entity_kind: EntityKind
    from_status: str
    to_status: str
    updates: dict[str, Any] = field(default_factory=dict)
    timestamp_field: str | None = None
    cleared_fields: tuple[str, ...] = ()
    account_change: AccountStatusChange | None = None
    notifications: tuple[NotificationIntent, ...] = ()


@dataclass(frozen=True)
class ListFilter:
    """
    Store-level listing filter. All criteria are ANDed.

    ``created_before`` is exclusive; ``search`` is a case-insensitive
    substring match over the store's whitelisted text fields.
    """

    statuses: tuple[str, ...] = ()
    created_from: datetime | None = None
    created_before: datetime | None = None
    search: str | None = None
    subject_id: str | None = None
    reason: str | None = None
    reported_user_id: str | None = None
    reporter_id: str | None = None
    deadline_before: datetime | None = None


@dataclass
class Page:
    """One page of a listing."""

    items: list[Any]
    total: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.page_size) if self.total else 0

    @property
    def has_next_page(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev_page(self) -> bool:
        return self.page > 1


@dataclass(frozen=True)
class ReportStatistics:
    total_reports: int
    pending_reports: int
    investigating_reports: int
    resolved_reports: int
    rejected_reports: int
