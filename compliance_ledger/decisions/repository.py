"""
Decision Repository - Storage for Compliance Decisions.

Provides:
- Create-once semantics keyed by decision id
- Point lookup, filtered/paginated query
- Active decision per (organization, step) slot
- Supersession through a single dedicated write path
- Review and expiry scans for the lifecycle scanner

The ledger is append-only: records are never deleted, and the only field
group ever rewritten is the supersession triple.
"""

from datetime import datetime
from typing import List, Optional, Protocol
import asyncio

import structlog

from compliance_ledger.common.clock import Clock, as_utc, utcnow
from compliance_ledger.common.exceptions import DecisionConflictError
from compliance_ledger.common.pagination import clamp_page, paginate
from compliance_ledger.decisions.schemas import (
    ComplianceDecision,
    DecisionQuery,
    OnboardingStep,
    SupersessionPatch,
    evidence_key,
)

logger = structlog.get_logger(__name__)


def _same(a: Optional[str], b: str) -> bool:
    return a is not None and a.casefold() == b.casefold()


def _copy(decision: ComplianceDecision) -> ComplianceDecision:
    # Frozen models still expose mutable lists and dicts
    return decision.model_copy(deep=True)


def _equivalent(stored: ComplianceDecision, decision: ComplianceDecision, since: datetime) -> bool:
    return (
        _same(stored.organization_id, decision.organization_id)
        and stored.step == decision.step
        and stored.policy_version == decision.policy_version
        and stored.decision_timestamp >= since
        and not stored.is_superseded
        and evidence_key(stored.evidence_reference_ids) == evidence_key(decision.evidence_reference_ids)
    )


class DecisionRepository(Protocol):
    """Contract every decision store implements."""

    async def create_decision(self, decision: ComplianceDecision) -> None: ...

    async def create_decision_once(
        self,
        decision: ComplianceDecision,
        since: datetime,
    ) -> Optional[ComplianceDecision]: ...

    async def get_decision_by_id(self, decision_id: str) -> Optional[ComplianceDecision]: ...

    async def query_decisions(
        self,
        query: DecisionQuery,
    ) -> tuple[List[ComplianceDecision], int]: ...

    async def get_active_decision(
        self,
        organization_id: str,
        step: OnboardingStep,
    ) -> Optional[ComplianceDecision]: ...

    async def supersede_decision(self, decision_id: str, superseded_by_id: str) -> bool: ...

    async def list_candidates(
        self,
        organization_id: str,
        step: OnboardingStep,
        policy_version: str,
        since: datetime,
    ) -> List[ComplianceDecision]: ...

    async def get_decisions_requiring_review(
        self,
        before_date: Optional[datetime] = None,
    ) -> List[ComplianceDecision]: ...

    async def get_expired_decisions(self) -> List[ComplianceDecision]: ...


class InMemoryDecisionRepository:
    """
    In-memory decision repository.

    NOT FOR PRODUCTION USE - data is lost on restart. A durable store must
    index by id, by (organization, step) and by review/expiry date while
    keeping the same contract.

    Thread Safety:
    - One asyncio lock serialises writers and gives readers a consistent view
    """

    def __init__(self, clock: Optional[Clock] = None):
        self._decisions: dict[str, ComplianceDecision] = {}
        # Insertion order, used as the stable tiebreak for equal timestamps
        self._order: dict[str, int] = {}
        self._lock = asyncio.Lock()
        self._clock = clock or utcnow

    def _now(self) -> datetime:
        return as_utc(self._clock())

    def _sorted(self, decisions, key, reverse: bool = False) -> List[ComplianceDecision]:
        # Python's sort is stable; pre-sorting by insertion order fixes ties
        ordered = sorted(decisions, key=lambda d: self._order[d.id])
        return sorted(ordered, key=key, reverse=reverse)

    # =========================================================================
    # WRITES
    # =========================================================================

    async def create_decision(self, decision: ComplianceDecision) -> None:
        """
        Append a decision to the ledger.

        Raises:
            DecisionConflictError: a decision with this id is already stored
        """
        async with self._lock:
            self._append(decision)

        self._log_created(decision)

    async def create_decision_once(
        self,
        decision: ComplianceDecision,
        since: datetime,
    ) -> Optional[ComplianceDecision]:
        """
        Append a decision unless an equivalent one was recorded since a cutoff.

        The equivalence check and the append run under the same lock, so
        concurrent retries of one submission store a single decision.

        Returns:
            The already stored equivalent decision, or None when the new
            decision was appended.

        Raises:
            DecisionConflictError: a decision with this id is already stored
        """
        since = as_utc(since)
        async with self._lock:
            existing = [d for d in self._decisions.values() if _equivalent(d, decision, since)]
            if existing:
                winner = self._sorted(existing, key=lambda d: d.decision_timestamp, reverse=True)[0]
                logger.info(
                    "decision_create_collapsed",
                    decision_id=winner.id,
                    discarded_id=decision.id,
                )
                return _copy(winner)

            self._append(decision)

        self._log_created(decision)
        return None

    def _append(self, decision: ComplianceDecision) -> None:
        # Caller holds self._lock
        if decision.id in self._decisions:
            logger.error("decision_duplicate_id", decision_id=decision.id)
            raise DecisionConflictError(decision.id)

        self._decisions[decision.id] = _copy(decision)
        self._order[decision.id] = len(self._order)

    def _log_created(self, decision: ComplianceDecision) -> None:
        logger.info(
            "decision_created",
            decision_id=decision.id,
            organization_id=decision.organization_id,
            step=decision.step.value,
            outcome=decision.outcome.value,
        )

    async def supersede_decision(self, decision_id: str, superseded_by_id: str) -> bool:
        """
        Mark a decision as superseded by a newer one.

        Best-effort link: returns False instead of raising when the link
        cannot be recorded. Supersession is write-once and forward-only.
        """
        async with self._lock:
            target = self._decisions.get(decision_id)
            if target is None:
                logger.warning("supersede_target_not_found", decision_id=decision_id)
                return False

            if decision_id == superseded_by_id:
                logger.warning("supersede_self_reference", decision_id=decision_id)
                return False

            if target.is_superseded:
                logger.warning(
                    "supersede_already_superseded",
                    decision_id=decision_id,
                    superseded_by_id=target.superseded_by_id,
                )
                return False

            replacement = self._decisions.get(superseded_by_id)
            if replacement is not None and (
                replacement.decision_timestamp <= target.decision_timestamp
            ):
                logger.warning(
                    "supersede_not_forward",
                    decision_id=decision_id,
                    superseded_by_id=superseded_by_id,
                )
                return False

            patch = SupersessionPatch(
                superseded_at=self._now(),
                superseded_by_id=superseded_by_id,
            )
            self._decisions[decision_id] = patch.apply_to(target)

        logger.info(
            "decision_superseded",
            decision_id=decision_id,
            superseded_by_id=superseded_by_id,
        )
        return True

    # =========================================================================
    # READS
    # =========================================================================

    async def get_decision_by_id(self, decision_id: str) -> Optional[ComplianceDecision]:
        async with self._lock:
            decision = self._decisions.get(decision_id)
        return _copy(decision) if decision is not None else None

    async def query_decisions(
        self,
        query: DecisionQuery,
    ) -> tuple[List[ComplianceDecision], int]:
        """
        Filter, order by decision time descending, and paginate.

        Returns:
            (page of decisions, total matching count before pagination)
        """
        async with self._lock:
            decisions = list(self._decisions.values())

        now = self._now()

        if query.organization_id:
            decisions = [d for d in decisions if _same(d.organization_id, query.organization_id)]
        if query.onboarding_session_id:
            decisions = [
                d for d in decisions
                if _same(d.onboarding_session_id, query.onboarding_session_id)
            ]
        if query.step is not None:
            decisions = [d for d in decisions if d.step == query.step]
        if query.outcome is not None:
            decisions = [d for d in decisions if d.outcome == query.outcome]
        if query.decision_maker:
            decisions = [d for d in decisions if _same(d.decision_maker, query.decision_maker)]
        if query.from_date is not None:
            decisions = [d for d in decisions if d.decision_timestamp >= query.from_date]
        if query.to_date is not None:
            decisions = [d for d in decisions if d.decision_timestamp <= query.to_date]
        if not query.include_superseded:
            decisions = [d for d in decisions if not d.is_superseded]
        if not query.include_expired:
            decisions = [d for d in decisions if not d.is_expired(now)]

        ordered = self._sorted(decisions, key=lambda d: d.decision_timestamp, reverse=True)
        total_count = len(ordered)

        page, page_size = clamp_page(query.page, query.page_size)
        result = [_copy(d) for d in paginate(ordered, page, page_size)]

        logger.info(
            "decisions_queried",
            count=len(result),
            total_count=total_count,
            page=page,
            page_size=page_size,
        )
        return result, total_count

    async def get_active_decision(
        self,
        organization_id: str,
        step: OnboardingStep,
    ) -> Optional[ComplianceDecision]:
        """Most recent non-superseded, non-expired decision of the slot."""
        async with self._lock:
            decisions = list(self._decisions.values())

        now = self._now()
        candidates = [
            d for d in decisions
            if _same(d.organization_id, organization_id)
            and d.step == step
            and d.is_active(now)
        ]
        if not candidates:
            return None
        return _copy(self._sorted(candidates, key=lambda d: d.decision_timestamp, reverse=True)[0])

    async def list_candidates(
        self,
        organization_id: str,
        step: OnboardingStep,
        policy_version: str,
        since: datetime,
    ) -> List[ComplianceDecision]:
        """Non-superseded decisions of a slot and policy version made since a cutoff."""
        since = as_utc(since)
        async with self._lock:
            decisions = list(self._decisions.values())

        matches = [
            d for d in decisions
            if _same(d.organization_id, organization_id)
            and d.step == step
            and d.policy_version == policy_version
            and d.decision_timestamp >= since
            and not d.is_superseded
        ]
        return [_copy(d) for d in self._sorted(matches, key=lambda d: d.decision_timestamp, reverse=True)]

    async def get_decisions_requiring_review(
        self,
        before_date: Optional[datetime] = None,
    ) -> List[ComplianceDecision]:
        target = as_utc(before_date) or self._now()
        async with self._lock:
            decisions = list(self._decisions.values())

        due = [
            d for d in decisions
            if d.requires_review
            and not d.is_superseded
            and d.next_review_date is not None
            and d.next_review_date <= target
        ]
        return [_copy(d) for d in self._sorted(due, key=lambda d: d.next_review_date)]

    async def get_expired_decisions(self) -> List[ComplianceDecision]:
        now = self._now()
        async with self._lock:
            decisions = list(self._decisions.values())

        expired = [
            d for d in decisions
            if d.expires_at is not None
            and d.expires_at <= now
            and not d.is_superseded
        ]
        return [_copy(d) for d in self._sorted(expired, key=lambda d: d.expires_at)]

    async def count(self) -> int:
        async with self._lock:
            return len(self._decisions)
