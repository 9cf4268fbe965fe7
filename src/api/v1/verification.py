"""
Verification endpoints.

Admin review queue and decisions, plus the breeder's own submission and
status lookup.
"""

from datetime import date

from fastapi import APIRouter, Depends, Query

from src.api.dependencies import (
    get_listing_service,
    get_moderation_engine,
    require_admin,
    require_breeder,
)
from src.api.models import (
    DocumentSubmissionRequest,
    ErrorResponse,
    OverdueSweepResponse,
    PaginationOut,
    VerificationActionResponse,
    VerificationDecisionRequest,
    VerificationListResponse,
    VerificationOut,
    VerificationSummary,
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
    400: {"model": ErrorResponse, "description": "Validation error or entity already processed"},
    401: {"model": ErrorResponse, "description": "Missing or invalid credentials"},
    403: {"model": ErrorResponse, "description": "Role or permission missing"},
}


@router.get(
    "/admin/verification/pending",
    response_model=VerificationListResponse,
    responses={**_ERRORS, 503: {"model": ErrorResponse, "description": "Listing timed out"}},
    summary="List verification requests awaiting review",
)
def list_pending_verifications(
    page: int = Query(1),
    limit: int | None = Query(None),
    status_filter: str | None = Query(None, alias="status"),
    date_from: date | None = Query(None, alias="dateFrom"),
    date_to: date | None = Query(None, alias="dateTo"),
    search: str | None = Query(None),
    admin: Principal = Depends(require_admin),
    listing: ListingService = Depends(get_listing_service),
) -> VerificationListResponse:
    """
    Paginated verification queue ordered by creation time.

    Without a status filter only open records (pending, reviewing,
    additional_documents_required) are listed.
    """
    query = ListingQuery(
        statuses=split_statuses(status_filter),
        date_from=date_from,
        date_to=date_to,
        search=search,
    )
    try:
        result = listing.list(
            EntityKind.VERIFICATION, query, page, page_size_or_default(limit)
        )
    except ModerationError as e:
        raise to_http_exception(e) from None
    return VerificationListResponse(
        items=[VerificationSummary.from_domain(record) for record in result.items],
        pagination=PaginationOut.from_page(result),
    )


@router.post(
    "/admin/verification/sweeps/overdue-documents",
    response_model=OverdueSweepResponse,
    responses=_ERRORS,
    summary="Reject records whose additional documents are overdue",
    description="Intended for an external scheduler. Does nothing unless "
    "AUTO_REJECT_OVERDUE_DOCUMENTS is enabled.",
)
def sweep_overdue_documents(
    admin: Principal = Depends(require_admin),
    engine: ModerationEngine = Depends(get_moderation_engine),
) -> OverdueSweepResponse:
    try:
        rejected = engine.expire_overdue_documents(admin)
    except ModerationError as e:
        raise to_http_exception(e) from None
    return OverdueSweepResponse(rejected_subject_ids=rejected)


@router.get(
    "/admin/verification/{subject_id}",
    response_model=VerificationOut,
    responses={**_ERRORS, 404: {"model": ErrorResponse, "description": "No such record"}},
    summary="Get a breeder's verification record",
)
def get_verification(
    subject_id: str,
    admin: Principal = Depends(require_admin),
    listing: ListingService = Depends(get_listing_service),
) -> VerificationOut:
    try:
        record = listing.get_verification(subject_id)
    except ModerationError as e:
        raise to_http_exception(e) from None
    return VerificationOut.from_domain(record)


@router.put(
    "/admin/verification/{subject_id}",
    response_model=VerificationActionResponse,
    responses={
        **_ERRORS,
        404: {"model": ErrorResponse, "description": "No such record"},
        409: {"model": ErrorResponse, "description": "Record changed concurrently"},
    },
    summary="Decide on a verification request",
)
def decide_verification(
    subject_id: str,
    request_data: VerificationDecisionRequest,
    admin: Principal = Depends(require_admin),
    engine: ModerationEngine = Depends(get_moderation_engine),
) -> VerificationActionResponse:
    """
    Move a verification record to a new status.

    - **status**: reviewing, approved, rejected, conditionally_approved,
      additional_documents_required or revoked
    - **message**: required; shown to the breeder
    - **expectedVersion**: optional; a stale version returns 409
    """
    payload = TransitionPayload(
        message=request_data.message,
        rejection_reason=request_data.rejection_reason,
        reasons=request_data.reasons,
        conditions=request_data.conditions,
        required_documents=request_data.required_documents,
        review_deadline=request_data.review_deadline,
        reapply_after=request_data.reapply_after,
    )
    try:
        record = engine.apply_transition(
            EntityKind.VERIFICATION,
            subject_id,
            request_data.status,
            admin,
            payload,
            expected_version=request_data.expected_version,
        )
    except ModerationError as e:
        raise to_http_exception(e) from None
    return VerificationActionResponse(
        message=f"Breeder verification {record.status.value}",
        item=VerificationOut.from_domain(record),
    )


@router.post(
    "/verification",
    response_model=VerificationOut,
    responses=_ERRORS,
    summary="Submit verification documents",
    description="Creates the caller's verification request, or adds documents "
    "to it while it is still open.",
)
def submit_documents(
    request_data: DocumentSubmissionRequest,
    breeder: Principal = Depends(require_breeder),
    engine: ModerationEngine = Depends(get_moderation_engine),
) -> VerificationOut:
    try:
        record = engine.submit_documents(
            breeder,
            [(doc.type, doc.url) for doc in request_data.documents],
            plan=request_data.plan,
            subject_name=request_data.subject_name,
        )
    except ModerationError as e:
        raise to_http_exception(e) from None
    return VerificationOut.from_domain(record)


@router.get(
    "/verification/me",
    response_model=VerificationOut,
    responses={**_ERRORS, 404: {"model": ErrorResponse, "description": "Nothing submitted yet"}},
    summary="Get the caller's verification status",
)
def my_verification(
    breeder: Principal = Depends(require_breeder),
    listing: ListingService = Depends(get_listing_service),
) -> VerificationOut:
    try:
        record = listing.verification_status(breeder)
    except ModerationError as e:
        raise to_http_exception(e) from None
    return VerificationOut.from_domain(record)
