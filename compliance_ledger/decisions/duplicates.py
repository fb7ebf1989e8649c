"""
Duplicate Detector - idempotent decision submission.

A client retry (network retry, double-click, at-least-once delivery) must
resolve to the decision already in the ledger instead of writing a second one.

Two submissions are equivalent when they share organization, step and policy
version, and their evidence reference ids are equal as sorted sequences.
The search only covers a short recency window: idempotency protects against
retries, not against a legitimate re-evaluation of stale evidence.
"""

from datetime import timedelta
from typing import Iterable, Optional

import structlog

from compliance_ledger.common.clock import Clock, as_utc, utcnow
from compliance_ledger.core.config import settings
from compliance_ledger.decisions.repository import DecisionRepository
from compliance_ledger.decisions.schemas import ComplianceDecision, OnboardingStep, evidence_key

logger = structlog.get_logger(__name__)


class DuplicateDetector:
    """Finds a recent equivalent decision for a submission."""

    def __init__(
        self,
        repository: DecisionRepository,
        window: Optional[timedelta] = None,
        clock: Optional[Clock] = None,
    ):
        self._repo = repository
        self._window = window or timedelta(minutes=settings.duplicate_window_minutes)
        self._clock = clock or utcnow

    @property
    def window(self) -> timedelta:
        return self._window

    async def find_duplicate(
        self,
        organization_id: str,
        step: OnboardingStep,
        policy_version: str,
        evidence_reference_ids: Iterable[str],
    ) -> Optional[ComplianceDecision]:
        """
        Return the equivalent decision made inside the window, if any.

        Args:
            organization_id: Organization being evaluated
            step: Onboarding step
            policy_version: Policy configuration version the decision used
            evidence_reference_ids: Evidence ids of the submission, any order
        """
        wanted = evidence_key(evidence_reference_ids)
        since = as_utc(self._clock()) - self._window

        candidates = await self._repo.list_candidates(
            organization_id=organization_id,
            step=step,
            policy_version=policy_version,
            since=since,
        )

        for decision in candidates:
            if evidence_key(decision.evidence_reference_ids) == wanted:
                logger.info(
                    "duplicate_decision_found",
                    decision_id=decision.id,
                    organization_id=organization_id,
                    step=step.value,
                )
                return decision

        return None
