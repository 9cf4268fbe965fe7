"""
Test data factories.

Well-known ids and builders for entities in any status.
"""

from datetime import datetime, timedelta, timezone

from src.domain.models import Report, VerificationRecord
from src.domain.ports import ReportReason, ReportStatus, ReportSubjectType, VerificationStatus

ADMIN_ID = "00000000-0000-4000-8000-000000000001"
BREEDER_ID = "00000000-0000-4000-8000-000000000002"
ADOPTER_ID = "00000000-0000-4000-8000-000000000003"
REPORT_ID = "00000000-0000-4000-8000-0000000000aa"

FIXED_NOW = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)


def make_verification(
    subject_id: str = BREEDER_ID,
    status: VerificationStatus = VerificationStatus.PENDING,
    created_at: datetime = FIXED_NOW - timedelta(days=1),
    **overrides,
) -> VerificationRecord:
    """Build a verification record in any status."""
    record = VerificationRecord(
        subject_id=subject_id,
        status=status,
        created_at=created_at,
        submitted_at=created_at,
        **overrides,
    )
    if status in (
        VerificationStatus.APPROVED,
        VerificationStatus.REJECTED,
        VerificationStatus.CONDITIONALLY_APPROVED,
    ) and "reviewed_at" not in overrides:
        record.reviewed_at = created_at
    return record


def make_report(
    report_id: str = REPORT_ID,
    status: ReportStatus = ReportStatus.PENDING,
    created_at: datetime = FIXED_NOW - timedelta(days=1),
    reporter_id: str = ADOPTER_ID,
    reported_user_id: str = BREEDER_ID,
    **overrides,
) -> Report:
    """Build a breeder report in any status."""
    values = {
        "subject_type": ReportSubjectType.BREEDER,
        "subject_id": reported_user_id,
        "reason": ReportReason.NO_CONTRACT,
        "description": "Refused to sign an adoption contract",
    }
    values.update(overrides)
    return Report(
        id=report_id,
        reporter_id=reporter_id,
        reported_user_id=reported_user_id,
        status=status,
        created_at=created_at,
        **values,
    )
