"""
Lifecycle Scanner.

Read-only queries used by an external periodic job:
- decisions whose next review date has passed
- decisions whose expiry has passed

The scanner never mutates the ledger. Renewal is done by the onboarding
workflow, which writes a new decision and supersedes the old one.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field
import structlog

from compliance_ledger.common.clock import Clock, as_utc, utcnow
from compliance_ledger.decisions.repository import DecisionRepository
from compliance_ledger.decisions.schemas import ComplianceDecision

logger = structlog.get_logger(__name__)


class LifecycleScanReport(BaseModel):
    scanned_at: datetime
    due_for_review: List[ComplianceDecision] = Field(default_factory=list)
    expired: List[ComplianceDecision] = Field(default_factory=list)


class LifecycleScanner:
    """Surfaces decisions needing review or renewal."""

    def __init__(self, repository: DecisionRepository, clock: Optional[Clock] = None):
        self._repo = repository
        self._clock = clock or utcnow

    async def decisions_requiring_review(
        self,
        before_date: Optional[datetime] = None,
    ) -> List[ComplianceDecision]:
        """Non-superseded decisions due for review, most overdue first."""
        target = as_utc(before_date) or as_utc(self._clock())
        return await self._repo.get_decisions_requiring_review(target)

    async def expired_decisions(self) -> List[ComplianceDecision]:
        """Non-superseded decisions past expiry, earliest expiry first."""
        return await self._repo.get_expired_decisions()

    async def scan(self, before_date: Optional[datetime] = None) -> LifecycleScanReport:
        scanned_at = as_utc(self._clock())
        due = await self.decisions_requiring_review(before_date or scanned_at)
        expired = await self.expired_decisions()

        logger.info(
            "lifecycle_scan_completed",
            due_for_review=len(due),
            expired=len(expired),
        )
        return LifecycleScanReport(
            scanned_at=scanned_at,
            due_for_review=due,
            expired=expired,
        )
