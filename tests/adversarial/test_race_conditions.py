"""
Adversarial tests for concurrent moderation decisions.

Verifies that concurrent admin decisions on the same entity are serialized
by the store's compare-and-set, so that:
- Exactly one decision on a pending entity wins
- Losers never overwrite the winner's status, disposition or history
- Two admins cannot both approve and reject the same breeder

Every test runs against the in-memory store and PostgreSQL.
"""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from src.domain.exceptions import AlreadyProcessedError, ModerationError, VersionConflictError
from src.domain.models import Principal, TransitionPayload
from src.domain.moderation import ModerationEngine
from src.domain.ports import EntityKind, ReportAction, ReportStatus, VerificationStatus
from tests.factories import BREEDER_ID

# Apply adversarial marker to all tests in this module
pytestmark = pytest.mark.adversarial


def run_concurrently(num_workers: int, action) -> list[object]:
    """Run ``action(i)`` on ``num_workers`` threads released at the same time."""
    barrier = threading.Barrier(num_workers)
    results: list[object] = []
    results_lock = threading.Lock()

    def worker(i: int) -> None:
        barrier.wait()
        try:
            outcome: object = action(i)
        except ModerationError as e:
            outcome = e
        with results_lock:
            results.append(outcome)

    with ThreadPoolExecutor(max_workers=num_workers) as executor:
        futures = [executor.submit(worker, i) for i in range(num_workers)]
        for f in futures:
            f.result()
    return results


def successes(results: list[object]) -> list[object]:
    return [r for r in results if not isinstance(r, ModerationError)]


class TestConcurrentVerificationDecisions:
    """Concurrent admin decisions on one verification record."""

    def test_pinned_decisions_exactly_one_succeeds(
        self, race_engine: ModerationEngine, admin: Principal
    ) -> None:
        """
        Admins who all read version 1 race to approve.

        Expected defense: compare-and-set lets exactly one write through; the
        rest see a version conflict.
        """
        race_engine.create_verification(BREEDER_ID)
        num_admins = 5

        results = run_concurrently(
            num_admins,
            lambda i: race_engine.apply_transition(
                EntityKind.VERIFICATION,
                BREEDER_ID,
                "approved",
                admin,
                TransitionPayload(message=f"approved by admin {i}"),
                expected_version=1,
            ),
        )

        assert len(successes(results)) == 1, (
            f"Race condition: {len(successes(results))} decisions succeeded (expected 1)"
        )
        losers = [r for r in results if isinstance(r, ModerationError)]
        assert all(isinstance(e, VersionConflictError) for e in losers)

        record = race_engine.verifications.get(BREEDER_ID)
        assert record.status == VerificationStatus.APPROVED
        assert record.version == 2
        assert len(record.history) == 1

    def test_conflicting_decisions_never_both_apply(
        self, race_engine: ModerationEngine, admin: Principal
    ) -> None:
        """
        One admin approves while another rejects, without pinning a version.

        Expected defense: the loser's retry re-reads the decided record and
        is refused as already processed; the history holds one decision.
        """
        race_engine.create_verification(BREEDER_ID)
        decisions = [
            ("approved", TransitionPayload(message="Looks good")),
            ("rejected", TransitionPayload(message="Fake", rejection_reason="fraud")),
        ]

        results = run_concurrently(
            2,
            lambda i: race_engine.apply_transition(
                EntityKind.VERIFICATION, BREEDER_ID, decisions[i][0], admin, decisions[i][1]
            ),
        )

        assert len(successes(results)) == 1
        loser = next(r for r in results if isinstance(r, ModerationError))
        assert isinstance(loser, (AlreadyProcessedError, VersionConflictError))

        record = race_engine.verifications.get(BREEDER_ID)
        winner = successes(results)[0]
        assert record.status == winner.status
        assert [h.to_status for h in record.history] == [winner.status.value]
        if record.status == VerificationStatus.APPROVED:
            assert record.rejection_reason is None

    def test_high_volume_decisions_keep_history_consistent(
        self, race_engine: ModerationEngine, admin: Principal
    ) -> None:
        """Many admins moving pending to reviewing leave one history entry."""
        race_engine.create_verification(BREEDER_ID)
        num_admins = 20

        results = run_concurrently(
            num_admins,
            lambda i: race_engine.apply_transition(
                EntityKind.VERIFICATION,
                BREEDER_ID,
                "reviewing",
                admin,
                TransitionPayload(message="Taking this one"),
                expected_version=1,
            ),
        )

        assert len(successes(results)) == 1
        record = race_engine.verifications.get(BREEDER_ID)
        assert record.status == VerificationStatus.REVIEWING
        assert len(record.history) == 1


class TestConcurrentReportDecisions:
    """Concurrent admin decisions on one report."""

    def test_resolve_and_reject_race_exactly_one_succeeds(
        self, race_engine: ModerationEngine, admin: Principal, adopter: Principal
    ) -> None:
        report = race_engine.create_report(
            adopter, "breeder", BREEDER_ID, "no_contract", "No contract was offered"
        )
        decisions = [
            ("resolved", TransitionPayload(message="Confirmed", action="warning")),
            ("rejected", TransitionPayload(message="Unfounded", rejection_reason="no_evidence")),
        ]

        results = run_concurrently(
            2,
            lambda i: race_engine.apply_transition(
                EntityKind.REPORT,
                report.id,
                decisions[i][0],
                admin,
                decisions[i][1],
                expected_version=1,
            ),
        )

        assert len(successes(results)) == 1
        stored = race_engine.reports.get(report.id)
        assert stored.status in (ReportStatus.RESOLVED, ReportStatus.REJECTED)
        assert stored.resolved_at is not None
        assert len(stored.history) == 1
        if stored.status == ReportStatus.REJECTED:
            assert stored.action == ReportAction.NO_ACTION
        else:
            assert stored.action == ReportAction.WARNING
