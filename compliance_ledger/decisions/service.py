"""
Compliance Decision Service.

Orchestrates the decision lifecycle:

    submission -> duplicate check -> policy evaluation -> ledger write (re-checked)
                                                       -> supersede previous

Usage:
    service = ComplianceDecisionService(repository, policy_engine)

    result = await service.create_decision(request, actor="ADDR...")
    if result.is_duplicate:
        ...  # a retry resolved to the existing decision

    result = await service.update_decision(old_id, request, actor="ADDR...")
"""

from collections import Counter
from datetime import datetime, timedelta
from typing import List, Optional
import time
import uuid

import structlog

from compliance_ledger.common import metrics
from compliance_ledger.common.clock import Clock, as_utc, utcnow
from compliance_ledger.common.exceptions import (
    DecisionNotFoundError,
    PolicyEngineUnavailableError,
    ValidationError,
)
from compliance_ledger.common.pagination import clamp_page, total_pages
from compliance_ledger.decisions.duplicates import DuplicateDetector
from compliance_ledger.decisions.lifecycle import LifecycleScanner
from compliance_ledger.decisions.policy import PolicyEngine
from compliance_ledger.decisions.repository import DecisionRepository
from compliance_ledger.decisions.schemas import (
    ComplianceDecision,
    CreateComplianceDecisionRequest,
    DecisionOutcome,
    DecisionPage,
    DecisionQuery,
    DecisionResult,
    DecisionSummary,
    OnboardingStep,
    PolicyEvaluationContext,
)

logger = structlog.get_logger(__name__)


def summarize_decisions(decisions: List[ComplianceDecision]) -> DecisionSummary:
    """Outcome counts, mean spacing between decisions, top rejection reasons."""
    outcomes = Counter(d.outcome for d in decisions)
    summary = DecisionSummary(
        approved_count=outcomes[DecisionOutcome.APPROVED],
        rejected_count=outcomes[DecisionOutcome.REJECTED],
        requires_review_count=outcomes[DecisionOutcome.REQUIRES_MANUAL_REVIEW],
        pending_count=outcomes[DecisionOutcome.PENDING],
        conditional_approval_count=outcomes[DecisionOutcome.CONDITIONAL_APPROVAL],
        expired_count=outcomes[DecisionOutcome.EXPIRED],
    )

    if len(decisions) > 1:
        times = sorted(d.decision_timestamp for d in decisions)
        span_hours = (times[-1] - times[0]).total_seconds() / 3600
        summary.average_decision_time_hours = span_hours / (len(times) - 1)

    reasons = Counter(d.reason for d in decisions if d.outcome == DecisionOutcome.REJECTED)
    summary.common_rejection_reasons = [reason for reason, _ in reasons.most_common(5)]
    return summary


class ComplianceDecisionService:
    """
    Business logic for creating, superseding and querying decisions.

    Reads work without a policy engine; creating or updating a decision
    raises PolicyEngineUnavailableError until one is supplied.
    """

    def __init__(
        self,
        repository: DecisionRepository,
        policy_engine: Optional[PolicyEngine] = None,
        duplicate_detector: Optional[DuplicateDetector] = None,
        clock: Optional[Clock] = None,
    ):
        self._repo = repository
        self._policy = policy_engine
        self._clock = clock or utcnow
        self._duplicates = duplicate_detector or DuplicateDetector(repository, clock=self._clock)
        self._scanner = LifecycleScanner(repository, clock=self._clock)

    def _now(self) -> datetime:
        return as_utc(self._clock())

    # =========================================================================
    # CREATE / UPDATE
    # =========================================================================

    async def create_decision(
        self,
        request: CreateComplianceDecisionRequest,
        actor: str,
    ) -> DecisionResult:
        """
        Evaluate a submission and record the decision.

        A retried submission inside the duplicate window returns the existing
        decision with is_duplicate=True instead of writing a new one.

        Raises:
            ValidationError: organization_id is blank
            PolicyEngineUnavailableError: no policy engine was supplied
        """
        return await self._create(request, actor, previous_decision_id=None)

    async def update_decision(
        self,
        previous_decision_id: str,
        request: CreateComplianceDecisionRequest,
        actor: str,
    ) -> DecisionResult:
        """
        Record a new decision that replaces an existing one.

        The new decision links back through previous_decision_id and the old
        one is marked superseded. The old record itself is never rewritten
        beyond the supersession fields.

        Raises:
            DecisionNotFoundError: the previous decision does not exist
        """
        logger.info(
            "decision_update_requested",
            previous_decision_id=previous_decision_id,
            actor=actor,
        )

        previous = await self._repo.get_decision_by_id(previous_decision_id)
        if previous is None:
            raise DecisionNotFoundError(previous_decision_id)

        result = await self._create(request, actor, previous_decision_id=previous_decision_id)
        if result.decision.id == previous_decision_id:
            return result

        applied = await self._repo.supersede_decision(previous_decision_id, result.decision.id)
        metrics.record_supersession(applied)
        if applied:
            result.superseded_decision_id = previous_decision_id
            logger.info(
                "decision_updated",
                new_decision_id=result.decision.id,
                previous_decision_id=previous_decision_id,
            )
        return result

    async def _create(
        self,
        request: CreateComplianceDecisionRequest,
        actor: str,
        previous_decision_id: Optional[str],
    ) -> DecisionResult:
        start = time.perf_counter()

        if not request.organization_id or not request.organization_id.strip():
            raise ValidationError("OrganizationId is required", field="organization_id")

        if self._policy is None:
            raise PolicyEngineUnavailableError()

        logger.info(
            "decision_create_requested",
            organization_id=request.organization_id,
            step=request.step.value,
            actor=actor,
        )

        config = await self._policy.get_policy_configuration()
        evidence_ids = [e.reference_id for e in request.evidence_references]

        duplicate = await self._duplicates.find_duplicate(
            organization_id=request.organization_id,
            step=request.step,
            policy_version=config.version,
            evidence_reference_ids=evidence_ids,
        )
        if duplicate is not None:
            metrics.record_duplicate(request.step.value)
            logger.info("decision_idempotent_response", decision_id=duplicate.id)
            return DecisionResult(decision=duplicate, is_duplicate=True)

        context = PolicyEvaluationContext(
            organization_id=request.organization_id,
            onboarding_session_id=request.onboarding_session_id,
            step=request.step,
            evidence=request.evidence_references,
            additional_data=request.evaluation_context,
            initiator=actor,
            correlation_id=request.correlation_id or str(uuid.uuid4()),
        )
        evaluation = await self._policy.evaluate(context)

        now = self._now()
        expires_at = None
        if request.expiration_days and request.expiration_days > 0:
            expires_at = now + timedelta(days=request.expiration_days)

        next_review_date = None
        if request.requires_review and request.review_interval_days and request.review_interval_days > 0:
            next_review_date = now + timedelta(days=request.review_interval_days)

        decision = ComplianceDecision(
            id=str(uuid.uuid4()),
            organization_id=request.organization_id,
            onboarding_session_id=request.onboarding_session_id,
            step=request.step,
            outcome=evaluation.outcome,
            policy_rule_ids=[r.rule_id for r in evaluation.rule_evaluations],
            decision_maker=actor,
            decision_timestamp=now,
            evidence_references=request.evidence_references,
            reason=evaluation.reason,
            policy_version=config.version,
            correlation_id=context.correlation_id,
            previous_decision_id=previous_decision_id,
            expires_at=expires_at,
            requires_review=request.requires_review,
            next_review_date=next_review_date,
        )

        # A concurrent retry may have written while the policy was evaluated
        existing = await self._repo.create_decision_once(decision, since=now - self._duplicates.window)
        if existing is not None:
            metrics.record_duplicate(request.step.value)
            logger.info("decision_idempotent_response", decision_id=existing.id)
            return DecisionResult(decision=existing, is_duplicate=True)

        duration = time.perf_counter() - start
        metrics.record_decision_created(decision.step.value, decision.outcome.value, duration)

        logger.info(
            "compliance_decision_recorded",
            decision_id=decision.id,
            outcome=decision.outcome.value,
            duration_ms=round(duration * 1000, 2),
        )
        return DecisionResult(decision=decision, evaluation_result=evaluation)

    # =========================================================================
    # READS
    # =========================================================================

    async def get_decision(self, decision_id: str) -> Optional[ComplianceDecision]:
        return await self._repo.get_decision_by_id(decision_id)

    async def get_active_decision(
        self,
        organization_id: str,
        step: OnboardingStep,
    ) -> Optional[ComplianceDecision]:
        return await self._repo.get_active_decision(organization_id, step)

    async def query_decisions(self, query: DecisionQuery) -> DecisionPage:
        """Paginated query with a summary over the returned page."""
        decisions, total_count = await self._repo.query_decisions(query)
        page, page_size = clamp_page(query.page, query.page_size)

        return DecisionPage(
            decisions=decisions,
            total_count=total_count,
            page=page,
            page_size=page_size,
            total_pages=total_pages(total_count, page_size),
            summary=summarize_decisions(decisions),
        )

    async def decisions_requiring_review(
        self,
        before_date: Optional[datetime] = None,
    ) -> List[ComplianceDecision]:
        return await self._scanner.decisions_requiring_review(before_date)

    async def expired_decisions(self) -> List[ComplianceDecision]:
        return await self._scanner.expired_decisions()
