"""
API request and response models.

Pydantic models for FastAPI endpoint validation and OpenAPI schema generation.
JSON bodies use camelCase; Python attributes stay snake_case.

Request models keep workflow fields loosely typed (plain strings, optional
message). The domain validator owns those rules so that a missing message or
an unknown status is a 400 with a domain error code, not a 422.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.domain.models import (
    Document,
    HistoryEntry,
    Page,
    Report,
    ReportStatistics,
    VerificationRecord,
)
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


class ApiModel(BaseModel):
    """Base model with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ----------------------------------------------------------------------
# Requests
# ----------------------------------------------------------------------


class VerificationDecisionRequest(ApiModel):
    """Request model for an admin verification decision."""

    status: str = Field(..., description="Target verification status")
    message: str | None = Field(
        None, description="Decision message shown to the breeder (required)"
    )
    conditions: list[str] = Field(default_factory=list)
    reasons: list[str] = Field(default_factory=list)
    rejection_reason: str | None = None
    required_documents: list[str] = Field(default_factory=list)
    review_deadline: datetime | None = None
    reapply_after: datetime | None = None
    expected_version: int | None = Field(
        None, ge=1, description="Version the decision was based on; mismatch returns 409"
    )


class ReportDecisionRequest(ApiModel):
    """Request model for an admin report decision."""

    status: str = Field(..., description="Target report status")
    admin_message: str | None = Field(None, description="Decision message (required)")
    action: str | None = None
    action_details: dict[str, Any] = Field(default_factory=dict)
    report_valid: bool | None = None
    rejection_reason: str | None = None
    internal_notes: str | None = None
    expected_version: int | None = Field(None, ge=1)


class EscalationRequest(ApiModel):
    """Request model for report escalation (metadata only)."""

    escalation_level: str
    reason: str
    urgency: str
    additional_notes: str | None = None


class DocumentIn(ApiModel):
    type: str = Field(..., description="Document type, e.g. business_license")
    url: str = Field(..., description="URL of the already uploaded file")


class DocumentSubmissionRequest(ApiModel):
    """Request model for a breeder submitting verification documents."""

    documents: list[DocumentIn]
    plan: VerificationPlan | None = None
    subject_name: str | None = None


class ReportCreateRequest(ApiModel):
    """Request model for filing a report."""

    subject_type: str = "breeder"
    subject_id: str
    reported_user_id: str | None = None
    reason: str
    description: str
    evidence_urls: list[str] = Field(default_factory=list)


# ----------------------------------------------------------------------
# Responses
# ----------------------------------------------------------------------


class DocumentOut(ApiModel):
    type: str
    url: str
    uploaded_at: datetime

    @classmethod
    def from_domain(cls, document: Document) -> "DocumentOut":
        return cls(type=document.type, url=document.url, uploaded_at=document.uploaded_at)


class HistoryEntryOut(ApiModel):
    from_status: str
    to_status: str
    actor_id: str
    message: str
    timestamp: datetime

    @classmethod
    def from_domain(cls, entry: HistoryEntry) -> "HistoryEntryOut":
        return cls(
            from_status=entry.from_status,
            to_status=entry.to_status,
            actor_id=entry.actor_id,
            message=entry.message,
            timestamp=entry.timestamp,
        )


class VerificationOut(ApiModel):
    """Full verification record including history."""

    subject_id: str
    subject_name: str | None
    status: VerificationStatus
    plan: VerificationPlan
    level: VerificationLevel
    documents: list[DocumentOut]
    created_at: datetime
    submitted_at: datetime
    reviewed_at: datetime | None
    revoked_at: datetime | None
    rejection_reason: str | None
    reasons: list[str]
    conditions: list[str]
    required_documents: list[str]
    review_deadline: datetime | None
    reapply_after: datetime | None
    admin_message: str | None
    reviewed_by: str | None
    history: list[HistoryEntryOut]
    version: int

    @classmethod
    def from_domain(cls, record: VerificationRecord) -> "VerificationOut":
        return cls(
            subject_id=record.subject_id,
            subject_name=record.subject_name,
            status=record.status,
            plan=record.plan,
            level=record.level,
            documents=[DocumentOut.from_domain(d) for d in record.documents],
            created_at=record.created_at,
            submitted_at=record.submitted_at,
            reviewed_at=record.reviewed_at,
            revoked_at=record.revoked_at,
            rejection_reason=record.rejection_reason,
            reasons=record.reasons,
            conditions=record.conditions,
            required_documents=record.required_documents,
            review_deadline=record.review_deadline,
            reapply_after=record.reapply_after,
            admin_message=record.admin_message,
            reviewed_by=record.reviewed_by,
            history=[HistoryEntryOut.from_domain(h) for h in record.history],
            version=record.version,
        )


class VerificationSummary(ApiModel):
    """Listing row for the admin verification queue."""

    subject_id: str
    subject_name: str | None
    status: VerificationStatus
    plan: VerificationPlan
    level: VerificationLevel
    document_urls: list[str]
    created_at: datetime
    submitted_at: datetime
    review_deadline: datetime | None
    version: int

    @classmethod
    def from_domain(cls, record: VerificationRecord) -> "VerificationSummary":
        return cls(
            subject_id=record.subject_id,
            subject_name=record.subject_name,
            status=record.status,
            plan=record.plan,
            level=record.level,
            document_urls=[d.url for d in record.documents],
            created_at=record.created_at,
            submitted_at=record.submitted_at,
            review_deadline=record.review_deadline,
            version=record.version,
        )


class ReportOut(ApiModel):
    """Full report including history."""

    id: str
    reporter_id: str
    subject_type: ReportSubjectType
    subject_id: str
    reported_user_id: str
    reason: ReportReason
    description: str
    evidence_urls: list[str]
    status: ReportStatus
    action: ReportAction | None
    action_details: dict[str, Any]
    report_valid: bool | None
    rejection_reason: str | None
    priority: ReportPriority
    assigned_admin_id: str | None
    escalation_level: str | None
    escalation_reason: str | None
    escalated_at: datetime | None
    created_at: datetime
    resolved_at: datetime | None
    admin_message: str | None
    history: list[HistoryEntryOut]
    version: int

    @classmethod
    def from_domain(cls, report: Report) -> "ReportOut":
        return cls(
            id=report.id,
            reporter_id=report.reporter_id,
            subject_type=report.subject_type,
            subject_id=report.subject_id,
            reported_user_id=report.reported_user_id,
            reason=report.reason,
            description=report.description,
            evidence_urls=report.evidence_urls,
            status=report.status,
            action=report.action,
            action_details=report.action_details,
            report_valid=report.report_valid,
            rejection_reason=report.rejection_reason,
            priority=report.priority,
            assigned_admin_id=report.assigned_admin_id,
            escalation_level=report.escalation_level,
            escalation_reason=report.escalation_reason,
            escalated_at=report.escalated_at,
            created_at=report.created_at,
            resolved_at=report.resolved_at,
            admin_message=report.admin_message,
            history=[HistoryEntryOut.from_domain(h) for h in report.history],
            version=report.version,
        )


class ReportSummary(ApiModel):
    """Listing row for the admin report queue."""

    id: str
    reporter_id: str
    subject_type: ReportSubjectType
    subject_id: str
    reported_user_id: str
    reason: ReportReason
    description: str
    status: ReportStatus
    priority: ReportPriority
    escalation_level: str | None
    created_at: datetime
    resolved_at: datetime | None
    version: int

    @classmethod
    def from_domain(cls, report: Report) -> "ReportSummary":
        return cls(
            id=report.id,
            reporter_id=report.reporter_id,
            subject_type=report.subject_type,
            subject_id=report.subject_id,
            reported_user_id=report.reported_user_id,
            reason=report.reason,
            description=report.description,
            status=report.status,
            priority=report.priority,
            escalation_level=report.escalation_level,
            created_at=report.created_at,
            resolved_at=report.resolved_at,
            version=report.version,
        )


class PaginationOut(ApiModel):
    current_page: int
    page_size: int
    total_items: int
    total_pages: int
    has_next_page: bool
    has_prev_page: bool

    @classmethod
    def from_page(cls, page: Page) -> "PaginationOut":
        return cls(
            current_page=page.page,
            page_size=page.page_size,
            total_items=page.total,
            total_pages=page.total_pages,
            has_next_page=page.has_next_page,
            has_prev_page=page.has_prev_page,
        )


class ReportStatisticsOut(ApiModel):
    total_reports: int
    pending_reports: int
    investigating_reports: int
    resolved_reports: int
    rejected_reports: int

    @classmethod
    def from_domain(cls, stats: ReportStatistics) -> "ReportStatisticsOut":
        return cls(
            total_reports=stats.total_reports,
            pending_reports=stats.pending_reports,
            investigating_reports=stats.investigating_reports,
            resolved_reports=stats.resolved_reports,
            rejected_reports=stats.rejected_reports,
        )


class VerificationListResponse(ApiModel):
    items: list[VerificationSummary]
    pagination: PaginationOut


class ReportListResponse(ApiModel):
    items: list[ReportSummary]
    pagination: PaginationOut
    statistics: ReportStatisticsOut


class VerificationActionResponse(ApiModel):
    """Response model for an admin verification decision."""

    message: str
    item: VerificationOut


class ReportActionResponse(ApiModel):
    """Response model for an admin report decision or escalation."""

    message: str
    item: ReportOut


class OverdueSweepResponse(ApiModel):
    rejected_subject_ids: list[str]


class ErrorDetail(BaseModel):
    code: str
    message: str


class ErrorResponse(BaseModel):
    """Standard error response model."""

    detail: ErrorDetail
