"""Tests for the compliance decision service.

Covers the end-to-end ledger flows:
- Recording, idempotent resubmission, replacement and expiry (Scenarios A-D)
- Duplicate window and policy-version boundaries
- Lifecycle scanning
- Query summaries
"""

import asyncio
from datetime import timedelta

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from compliance_ledger.common.exceptions import (
    DecisionNotFoundError,
    PolicyEngineUnavailableError,
    ValidationError,
)
from compliance_ledger.decisions import (
    ComplianceDecisionService,
    DecisionOutcome,
    DecisionQuery,
    DuplicateDetector,
    InMemoryDecisionRepository,
    LifecycleScanner,
    OnboardingStep,
    summarize_decisions,
)
from conftest import BASE_TIME, FakeClock, StubPolicyEngine, build_request

KYC = OnboardingStep.KYC_KYB_VERIFICATION


# ============================================================================
# SCENARIOS
# ============================================================================


class TestLedgerScenarios:
    """Create, resubmit, replace and expire a KYC/KYB decision."""

    @pytest.mark.asyncio
    async def test_scenario_a_created_decision_is_active(self, decision_service, make_request):
        result = await decision_service.create_decision(make_request(), actor="ADDR1")

        assert result.is_duplicate is False
        assert result.decision.outcome == DecisionOutcome.APPROVED
        assert result.decision.decision_maker == "ADDR1"

        active = await decision_service.get_active_decision("ACME", KYC)
        assert active.id == result.decision.id

    @pytest.mark.asyncio
    async def test_scenario_b_resubmission_returns_same_decision(
        self, decision_service, repository, clock, make_request
    ):
        first = await decision_service.create_decision(make_request(), actor="ADDR1")
        clock.advance(minutes=5)

        second = await decision_service.create_decision(make_request(), actor="ADDR1")

        assert second.is_duplicate is True
        assert second.decision.id == first.decision.id
        assert await repository.count() == 1

    @pytest.mark.asyncio
    async def test_scenario_c_replacement_supersedes_previous(
        self, decision_service, policy_engine, clock, make_request
    ):
        d1 = (await decision_service.create_decision(make_request(), actor="ADDR1")).decision

        clock.advance(minutes=10)
        policy_engine.outcome = DecisionOutcome.REJECTED
        result = await decision_service.update_decision(
            d1.id, make_request(evidence_ids=["E2"]), actor="ADDR1"
        )
        d2 = result.decision

        assert d2.outcome == DecisionOutcome.REJECTED
        assert d2.previous_decision_id == d1.id
        assert result.superseded_decision_id == d1.id

        active = await decision_service.get_active_decision("ACME", KYC)
        assert active.id == d2.id

        stored_d1 = await decision_service.get_decision(d1.id)
        assert stored_d1.is_superseded is True
        assert stored_d1.superseded_by_id == d2.id
        assert stored_d1.outcome == DecisionOutcome.APPROVED

    @pytest.mark.asyncio
    async def test_scenario_d_expired_decision_leaves_slot_empty(
        self, decision_service, clock, make_request
    ):
        d1 = (await decision_service.create_decision(make_request(), actor="ADDR1")).decision
        clock.advance(minutes=10)
        d2 = (
            await decision_service.update_decision(
                d1.id, make_request(evidence_ids=["E2"], expiration_days=1), actor="ADDR1"
            )
        ).decision

        clock.advance(days=2)

        expired = await decision_service.expired_decisions()
        assert [d.id for d in expired] == [d2.id]
        assert await decision_service.get_active_decision("ACME", KYC) is None


# ============================================================================
# CREATE
# ============================================================================


class TestCreateDecision:

    @pytest.mark.asyncio
    async def test_blank_organization_rejected(self, decision_service, make_request):
        with pytest.raises(ValidationError):
            await decision_service.create_decision(make_request(organization_id="  "), actor="A")

    @pytest.mark.asyncio
    async def test_policy_context_carries_submission(self, decision_service, policy_engine, make_request):
        request = make_request(evidence_ids=["E1", "E2"], correlation_id="corr-1")
        result = await decision_service.create_decision(request, actor="ADDR1")

        context = policy_engine.contexts[-1]
        assert context.organization_id == "ACME"
        assert context.initiator == "ADDR1"
        assert [e.reference_id for e in context.evidence] == ["E1", "E2"]
        assert result.decision.correlation_id == "corr-1"
        assert result.decision.policy_rule_ids == ["KYC-001"]
        assert result.decision.policy_version == "1.0.0"

    @pytest.mark.asyncio
    async def test_expiry_and_review_dates(self, decision_service, clock, make_request):
        request = make_request(expiration_days=365, requires_review=True, review_interval_days=90)
        decision = (await decision_service.create_decision(request, actor="A")).decision

        assert decision.decision_timestamp == clock.now
        assert decision.expires_at == clock.now + timedelta(days=365)
        assert decision.next_review_date == clock.now + timedelta(days=90)

    @pytest.mark.asyncio
    async def test_update_unknown_decision_raises(self, decision_service, make_request):
        with pytest.raises(DecisionNotFoundError):
            await decision_service.update_decision("missing", make_request(), actor="A")

    @pytest.mark.asyncio
    async def test_update_with_same_evidence_resolves_to_previous(
        self, decision_service, clock, make_request
    ):
        d1 = (await decision_service.create_decision(make_request(), actor="A")).decision
        clock.advance(minutes=1)

        result = await decision_service.update_decision(d1.id, make_request(), actor="A")

        assert result.is_duplicate is True
        assert result.decision.id == d1.id
        assert result.superseded_decision_id is None
        assert (await decision_service.get_decision(d1.id)).is_superseded is False

    @pytest.mark.asyncio
    async def test_without_policy_engine_reads_work_and_writes_fail(
        self, decision_service, repository, clock, make_request
    ):
        created = (await decision_service.create_decision(make_request(), actor="A")).decision
        reader = ComplianceDecisionService(repository, clock=clock)

        assert (await reader.get_decision(created.id)).id == created.id
        assert (await reader.get_active_decision("ACME", KYC)).id == created.id
        with pytest.raises(PolicyEngineUnavailableError):
            await reader.create_decision(make_request(evidence_ids=["E9"]), actor="A")
        assert await repository.count() == 1


# ============================================================================
# DUPLICATE DETECTION
# ============================================================================


class TestDuplicateDetector:

    @pytest.mark.asyncio
    async def test_evidence_order_does_not_matter(self, repository, decision_service, clock, make_request):
        first = await decision_service.create_decision(make_request(evidence_ids=["E1", "E2"]), actor="A")
        detector = DuplicateDetector(repository, clock=clock)

        found = await detector.find_duplicate("acme", KYC, "1.0.0", ["E2", "E1"])
        assert found.id == first.decision.id

    @pytest.mark.asyncio
    async def test_outside_window_is_not_a_duplicate(self, repository, decision_service, clock, make_request):
        await decision_service.create_decision(make_request(), actor="A")
        detector = DuplicateDetector(repository, clock=clock)

        clock.advance(minutes=61)
        assert await detector.find_duplicate("ACME", KYC, "1.0.0", ["E1"]) is None

    @pytest.mark.asyncio
    async def test_window_is_configurable(self, repository, decision_service, clock, make_request):
        await decision_service.create_decision(make_request(), actor="A")
        detector = DuplicateDetector(repository, window=timedelta(minutes=5), clock=clock)

        clock.advance(minutes=6)
        assert detector.window == timedelta(minutes=5)
        assert await detector.find_duplicate("ACME", KYC, "1.0.0", ["E1"]) is None

    @pytest.mark.asyncio
    async def test_policy_version_and_evidence_must_match(
        self, repository, decision_service, clock, make_request
    ):
        await decision_service.create_decision(make_request(evidence_ids=["E1", "E2"]), actor="A")
        detector = DuplicateDetector(repository, clock=clock)

        assert await detector.find_duplicate("ACME", KYC, "2.0.0", ["E1", "E2"]) is None
        assert await detector.find_duplicate("ACME", KYC, "1.0.0", ["E1"]) is None
        assert await detector.find_duplicate("ACME", KYC, "1.0.0", ["E1", "E2", "E3"]) is None

    @pytest.mark.asyncio
    async def test_new_policy_version_creates_new_decision(
        self, decision_service, policy_engine, repository, make_request
    ):
        first = await decision_service.create_decision(make_request(), actor="A")
        policy_engine.version = "2.0.0"

        second = await decision_service.create_decision(make_request(), actor="A")
        assert second.is_duplicate is False
        assert second.decision.id != first.decision.id
        assert await repository.count() == 2

    @given(
        evidence=st.lists(
            st.text(alphabet="ABCDEF0123456789", min_size=1, max_size=6),
            min_size=0,
            max_size=6,
            unique=True,
        ),
        data=st.data(),
    )
    @settings(max_examples=40, deadline=None)
    def test_resubmission_in_any_order_is_idempotent(self, evidence, data):
        """Same evidence set, any order, inside the window: one decision, same id."""
        reordered = data.draw(st.permutations(evidence))
        delay = data.draw(st.integers(min_value=0, max_value=59))

        async def scenario():
            clock = FakeClock()
            repo = InMemoryDecisionRepository(clock=clock)
            service = ComplianceDecisionService(repo, StubPolicyEngine(), clock=clock)

            first = await service.create_decision(build_request(evidence_ids=evidence), actor="A")
            clock.advance(minutes=delay)
            second = await service.create_decision(build_request(evidence_ids=list(reordered)), actor="A")

            assert second.decision.id == first.decision.id
            assert second.is_duplicate is True
            assert await repo.count() == 1

        asyncio.run(scenario())


class YieldingPolicyEngine(StubPolicyEngine):
    """Gives up the event loop mid-evaluation, like a remote rules service."""

    async def evaluate(self, context):
        await asyncio.sleep(0)
        return await super().evaluate(context)


class TestConcurrentSubmission:
    """Retries that overlap in time still record one decision."""

    @pytest.mark.asyncio
    async def test_concurrent_retries_share_one_decision(self, repository, clock):
        service = ComplianceDecisionService(repository, YieldingPolicyEngine(), clock=clock)

        a, b = await asyncio.gather(
            service.create_decision(build_request(), actor="X"),
            service.create_decision(build_request(), actor="X"),
        )

        assert a.decision.id == b.decision.id
        assert sorted([a.is_duplicate, b.is_duplicate]) == [False, True]
        assert await repository.count() == 1

    @pytest.mark.asyncio
    async def test_many_concurrent_retries_across_service_instances(self, repository, clock):
        engine = YieldingPolicyEngine()
        services = [ComplianceDecisionService(repository, engine, clock=clock) for _ in range(5)]

        results = await asyncio.gather(
            *(s.create_decision(build_request(evidence_ids=["E2", "E1"]), actor="X") for s in services)
        )

        assert len({r.decision.id for r in results}) == 1
        assert sum(not r.is_duplicate for r in results) == 1
        assert await repository.count() == 1

    @pytest.mark.asyncio
    async def test_concurrent_distinct_submissions_are_all_recorded(self, repository, clock):
        service = ComplianceDecisionService(repository, YieldingPolicyEngine(), clock=clock)

        results = await asyncio.gather(
            service.create_decision(build_request(evidence_ids=["E1"]), actor="X"),
            service.create_decision(build_request(evidence_ids=["E2"]), actor="X"),
        )

        assert all(not r.is_duplicate for r in results)
        assert await repository.count() == 2


# ============================================================================
# LIFECYCLE
# ============================================================================


class TestLifecycleScanner:

    @pytest.mark.asyncio
    async def test_scan_reports_review_and_expiry(self, repository, decision_service, clock, make_request):
        review = (
            await decision_service.create_decision(
                make_request(organization_id="ACME", requires_review=True, review_interval_days=30),
                actor="A",
            )
        ).decision
        expiring = (
            await decision_service.create_decision(
                make_request(organization_id="Globex", expiration_days=10), actor="A"
            )
        ).decision
        await decision_service.create_decision(make_request(organization_id="Initech"), actor="A")

        clock.advance(days=31)
        report = await LifecycleScanner(repository, clock=clock).scan()

        assert report.scanned_at == clock.now
        assert [d.id for d in report.due_for_review] == [review.id]
        assert [d.id for d in report.expired] == [expiring.id]

    @pytest.mark.asyncio
    async def test_review_defaults_to_now(self, decision_service, clock, make_request):
        await decision_service.create_decision(
            make_request(requires_review=True, review_interval_days=30), actor="A"
        )

        assert await decision_service.decisions_requiring_review() == []
        assert len(await decision_service.decisions_requiring_review(BASE_TIME + timedelta(days=30))) == 1


# ============================================================================
# QUERY SUMMARY
# ============================================================================


class TestQuerySummary:

    @pytest.mark.asyncio
    async def test_query_page_carries_summary(self, decision_service, policy_engine, clock, make_request):
        await decision_service.create_decision(make_request(organization_id="A1"), actor="A")
        clock.advance(hours=2)
        policy_engine.outcome = DecisionOutcome.REJECTED
        policy_engine.reason = "Sanctions hit"
        await decision_service.create_decision(make_request(organization_id="A2"), actor="A")
        clock.advance(hours=2)
        await decision_service.create_decision(make_request(organization_id="A3"), actor="A")

        page = await decision_service.query_decisions(DecisionQuery(page_size=500))

        assert page.total_count == 3
        assert page.page_size == 100
        assert page.total_pages == 1
        assert page.summary.approved_count == 1
        assert page.summary.rejected_count == 2
        assert page.summary.average_decision_time_hours == pytest.approx(2.0)
        assert page.summary.common_rejection_reasons == ["Sanctions hit"]

    def test_summary_of_empty_page(self):
        summary = summarize_decisions([])
        assert summary.approved_count == 0
        assert summary.average_decision_time_hours is None
        assert summary.common_rejection_reasons == []
