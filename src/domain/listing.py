"""
Query/listing service - Paginated admin listings and subject lookups.

Listings are the only read path admins use to discover pending work, so
out-of-range input is rejected rather than clamped and ordering uses
(created_at, id), which never change, instead of status.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone

from .exceptions import NotFoundError, ValidationError
from .identifiers import normalize_id
from .models import ListFilter, Page, Principal, Report, ReportStatistics, VerificationRecord
from .ports import EntityKind, EntityStore, ReportReason, ReportStatus, VerificationStatus
from .transitions import OPEN_VERIFICATION_STATUSES

MAX_SEARCH_LENGTH = 100


@dataclass(frozen=True)
class ListingQuery:
    """Caller-facing listing filter; dates are inclusive calendar days in UTC."""

    statuses: tuple[str, ...] = ()
    date_from: date | None = None
    date_to: date | None = None
    search: str | None = None
    subject_id: str | None = None
    reason: str | None = None
    reported_user_id: str | None = None
    reporter_id: str | None = None


@dataclass
class ListingService:
    """Read side of the trust pipeline."""

    verifications: EntityStore[VerificationRecord]
    reports: EntityStore[Report]
    max_page_size: int = 100
    timeout_ms: int = 5000
    default_verification_statuses: tuple[str, ...] = field(
        default_factory=lambda: tuple(
            sorted(status.value for status in OPEN_VERIFICATION_STATUSES)
        )
    )

    def list(
        self, entity_kind: EntityKind, query: ListingQuery, page: int, page_size: int
    ) -> Page:
        """
        Return one page of verification records or reports.

        Verification listings default to open statuses when none is given.

        Raises:
            ValidationError: Page below 1, page size outside 1..max_page_size,
                date_to before date_from, unknown status or reason, malformed ids
            ListingTimeoutError: Query exceeded the server-side timeout
        """
        if page < 1:
            raise ValidationError(f"page must be 1 or greater, got {page}")
        if page_size < 1 or page_size > self.max_page_size:
            raise ValidationError(
                f"limit must be between 1 and {self.max_page_size}, got {page_size}"
            )

        store_filter = self._build_filter(entity_kind, query)
        store = self.verifications if entity_kind == EntityKind.VERIFICATION else self.reports
        items, total = store.list(
            store_filter, (page - 1) * page_size, page_size, self.timeout_ms
        )
        return Page(items=items, total=total, page=page, page_size=page_size)

    def report_statistics(self) -> ReportStatistics:
        counts = self.reports.count_by_status()
        return ReportStatistics(
            total_reports=sum(counts.values()),
            pending_reports=counts.get(ReportStatus.PENDING.value, 0),
            investigating_reports=counts.get(ReportStatus.INVESTIGATING.value, 0),
            resolved_reports=counts.get(ReportStatus.RESOLVED.value, 0),
            rejected_reports=counts.get(ReportStatus.REJECTED.value, 0),
        )

    def get_verification(self, subject_id: str) -> VerificationRecord:
        subject_id = normalize_id(subject_id, "breeder id")
        record = self.verifications.get(subject_id)
        if record is None:
            raise NotFoundError(f"Verification not found: {subject_id}")
        return record

    def verification_status(self, subject: Principal) -> VerificationRecord:
        """Return the caller's own verification record."""
        return self.get_verification(subject.id)

    def get_report(self, report_id: str, principal: Principal) -> Report:
        """
        Return a report to an admin or to its reporter.

        Other callers get NotFoundError, so report ids cannot be probed.
        """
        report_id = normalize_id(report_id, "report id")
        report = self.reports.get(report_id)
        if report is None or (not principal.is_admin and report.reporter_id != principal.id):
            raise NotFoundError(f"Report not found: {report_id}")
        return report

    def _build_filter(self, entity_kind: EntityKind, query: ListingQuery) -> ListFilter:
        if query.date_from and query.date_to and query.date_to < query.date_from:
            raise ValidationError("dateTo must not be earlier than dateFrom")

        status_enum = VerificationStatus if entity_kind == EntityKind.VERIFICATION else ReportStatus
        statuses = tuple(_check_value(status_enum, s, "status") for s in query.statuses)
        if not statuses and entity_kind == EntityKind.VERIFICATION:
            statuses = self.default_verification_statuses

        reason = None
        if query.reason is not None:
            if entity_kind != EntityKind.REPORT:
                raise ValidationError("reason filter only applies to reports")
            reason = _check_value(ReportReason, query.reason, "reason")

        search = query.search.strip() if query.search else None
        if search and len(search) > MAX_SEARCH_LENGTH:
            raise ValidationError(f"search must be at most {MAX_SEARCH_LENGTH} characters")

        return ListFilter(
            statuses=statuses,
            created_from=_day_start(query.date_from) if query.date_from else None,
            created_before=_day_end(query.date_to) if query.date_to else None,
            search=search or None,
            subject_id=_optional_id(query.subject_id, "subject id"),
            reason=reason,
            reported_user_id=_optional_id(query.reported_user_id, "reported user id"),
            reporter_id=_optional_id(query.reporter_id, "reporter id"),
        )


def _check_value(enum_cls, value: str, label: str) -> str:
    try:
        return enum_cls(value).value
    except ValueError:
        raise ValidationError(f"Invalid {label} filter: {value!r}") from None


def _optional_id(value: str | None, label: str) -> str | None:
    return normalize_id(value, label) if value else None


def _day_start(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def _day_end(day: date) -> datetime | None:
    """Exclusive upper bound for an inclusive day; None for the last representable day."""
    if day == date.max:
        return None
    return _day_start(day + timedelta(days=1))
