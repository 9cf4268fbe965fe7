"""
Report endpoints.

Admin moderation queue, decisions and escalation, plus filing and reading
one's own reports.
"""

from datetime import date

from fastapi import APIRouter, Depends, Query, status

from src.api.dependencies import (
    get_current_principal,
    get_listing_service,
    get_moderation_engine,
    require_admin,
)
from src.api.models import (
    ErrorResponse,
    EscalationRequest,
    PaginationOut,
    ReportActionResponse,
    ReportCreateRequest,
    ReportDecisionRequest,
    ReportListResponse,
    ReportOut,
    ReportStatisticsOut,
    ReportSummary,
)
from src.api.errors import to_http_exception
from src.api.v1.params import page_size_or_default, split_statuses
from src.domain.exceptions import ModerationError
from src.domain.listing import ListingQuery, ListingService
from src.domain.models import Principal, TransitionPayload
from src.domain.moderation import ModerationEngine
from src.domain.ports import EntityKind

router = APIRouter()

_ERRORS = {
    400: {"model": ErrorResponse, "description": "Validation error or report already processed"},
    401: {"model": ErrorResponse, "description": "Missing or invalid credentials"},
    403: {"model": ErrorResponse, "description": "Role or permission missing"},
}
_NOT_FOUND = {404: {"model": ErrorResponse, "description": "No such report"}}


@router.get(
    "/admin/reports",
    response_model=ReportListResponse,
    responses={**_ERRORS, 503: {"model": ErrorResponse, "description": "Listing timed out"}},
    summary="List reports with queue statistics",
)
def list_reports(
    page: int = Query(1),
    limit: int | None = Query(None),
    status_filter: str | None = Query(None, alias="status"),
    reason: str | None = Query(None),
    date_from: date | None = Query(None, alias="dateFrom"),
    date_to: date | None = Query(None, alias="dateTo"),
    search: str | None = Query(None),
    reported_user_id: str | None = Query(None, alias="reportedUserId"),
    admin: Principal = Depends(require_admin),
    listing: ListingService = Depends(get_listing_service),
) -> ReportListResponse:
    query = ListingQuery(
        statuses=split_statuses(status_filter),
        date_from=date_from,
        date_to=date_to,
        search=search,
        reason=reason,
        reported_user_id=reported_user_id,
    )
    try:
        result = listing.list(EntityKind.REPORT, query, page, page_size_or_default(limit))
        statistics = listing.report_statistics()
    except ModerationError as e:
        raise to_http_exception(e) from None
    return ReportListResponse(
        items=[ReportSummary.from_domain(report) for report in result.items],
        pagination=PaginationOut.from_page(result),
        statistics=ReportStatisticsOut.from_domain(statistics),
    )


@router.get(
    "/admin/reports/{report_id}",
    response_model=ReportOut,
    responses={**_ERRORS, **_NOT_FOUND},
    summary="Get a report",
)
def get_report_as_admin(
    report_id: str,
    admin: Principal = Depends(require_admin),
    listing: ListingService = Depends(get_listing_service),
) -> ReportOut:
    try:
        report = listing.get_report(report_id, admin)
    except ModerationError as e:
        raise to_http_exception(e) from None
    return ReportOut.from_domain(report)


@router.put(
    "/admin/reports/{report_id}",
    response_model=ReportActionResponse,
    responses={
        **_ERRORS,
        **_NOT_FOUND,
        409: {"model": ErrorResponse, "description": "Report changed concurrently"},
    },
    summary="Decide on a report",
)
def decide_report(
    report_id: str,
    request_data: ReportDecisionRequest,
    admin: Principal = Depends(require_admin),
    engine: ModerationEngine = Depends(get_moderation_engine),
) -> ReportActionResponse:
    """
    Move a report to a new status.

    - **status**: investigating, resolved or rejected
    - **adminMessage**: required
    - **action**: required when resolving; suspend_account suspends the
      reported user (actionDetails.suspensionDays sets a duration)
    - **expectedVersion**: optional; a stale version returns 409
    """
    payload = TransitionPayload(
        message=request_data.admin_message,
        rejection_reason=request_data.rejection_reason,
        action=request_data.action,
        action_details=request_data.action_details,
        report_valid=request_data.report_valid,
        internal_notes=request_data.internal_notes,
    )
    try:
        report = engine.apply_transition(
            EntityKind.REPORT,
            report_id,
            request_data.status,
            admin,
            payload,
            expected_version=request_data.expected_version,
        )
    except ModerationError as e:
        raise to_http_exception(e) from None
    return ReportActionResponse(
        message=f"Report {report.status.value}",
        item=ReportOut.from_domain(report),
    )


@router.post(
    "/admin/reports/{report_id}/escalate",
    response_model=ReportActionResponse,
    responses={**_ERRORS, **_NOT_FOUND},
    summary="Escalate a report",
    description="Records escalation metadata only; status and history are unchanged.",
)
def escalate_report(
    report_id: str,
    request_data: EscalationRequest,
    admin: Principal = Depends(require_admin),
    engine: ModerationEngine = Depends(get_moderation_engine),
) -> ReportActionResponse:
    try:
        report = engine.escalate_report(
            report_id,
            admin,
            escalation_level=request_data.escalation_level,
            reason=request_data.reason,
            urgency=request_data.urgency,
            notes=request_data.additional_notes,
        )
    except ModerationError as e:
        raise to_http_exception(e) from None
    return ReportActionResponse(message="Report escalated", item=ReportOut.from_domain(report))


@router.post(
    "/reports",
    response_model=ReportOut,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: _ERRORS[400],
        401: _ERRORS[401],
    },
    summary="File a report",
)
def create_report(
    request_data: ReportCreateRequest,
    principal: Principal = Depends(get_current_principal),
    engine: ModerationEngine = Depends(get_moderation_engine),
) -> ReportOut:
    """
    File a report against a breeder, post or review.

    - **subjectType**: breeder (default), post or review
    - **reportedUserId**: required for post and review reports
    """
    try:
        report = engine.create_report(
            principal,
            subject_type=request_data.subject_type,
            subject_id=request_data.subject_id,
            reason=request_data.reason,
            description=request_data.description,
            reported_user_id=request_data.reported_user_id,
            evidence_urls=request_data.evidence_urls,
        )
    except ModerationError as e:
        raise to_http_exception(e) from None
    return ReportOut.from_domain(report)


@router.get(
    "/reports/{report_id}",
    response_model=ReportOut,
    responses={400: _ERRORS[400], 401: _ERRORS[401], **_NOT_FOUND},
    summary="Get one of the caller's reports",
)
def get_own_report(
    report_id: str,
    principal: Principal = Depends(get_current_principal),
    listing: ListingService = Depends(get_listing_service),
) -> ReportOut:
    try:
        report = listing.get_report(report_id, principal)
    except ModerationError as e:
        raise to_http_exception(e) from None
    return ReportOut.from_domain(report)
