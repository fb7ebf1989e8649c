"""
Pytest Configuration and Fixtures.

Provides reusable fixtures for the decision ledger and the enterprise audit
aggregator:
- A controllable UTC clock
- A stub policy engine
- Ledger repository / service wired to the clock
- In-memory audit logs and an aggregator over them
"""

import os
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import pytest

os.environ["ENVIRONMENT"] = "testing"

from compliance_ledger.audit import (  # noqa: E402
    AuditAggregator,
    EnterpriseAuditService,
    InMemoryComplianceAuditLog,
    InMemoryTokenIssuanceAuditLog,
    InMemoryWhitelistAuditLog,
)
from compliance_ledger.decisions import (  # noqa: E402
    ComplianceDecisionService,
    CreateComplianceDecisionRequest,
    DecisionOutcome,
    EvidenceReference,
    InMemoryDecisionRepository,
    OnboardingStep,
    PolicyConfiguration,
    PolicyEvaluationContext,
    PolicyEvaluationResult,
    PolicyRuleEvaluation,
)

BASE_TIME = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


# ============================================================================
# TEST DOUBLES
# ============================================================================


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime = BASE_TIME):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class StubPolicyEngine:
    """Returns a fixed outcome and records every evaluation context."""

    def __init__(
        self,
        outcome: DecisionOutcome = DecisionOutcome.APPROVED,
        version: str = "1.0.0",
        reason: str = "All required checks passed",
    ):
        self.outcome = outcome
        self.version = version
        self.reason = reason
        self.contexts: List[PolicyEvaluationContext] = []

    async def get_policy_configuration(self) -> PolicyConfiguration:
        return PolicyConfiguration(version=self.version)

    async def evaluate(self, context: PolicyEvaluationContext) -> PolicyEvaluationResult:
        self.contexts.append(context)
        return PolicyEvaluationResult(
            outcome=self.outcome,
            reason=self.reason,
            rule_evaluations=[
                PolicyRuleEvaluation(rule_id="KYC-001", passed=self.outcome == DecisionOutcome.APPROVED),
            ],
        )


def build_request(
    organization_id: str = "ACME",
    step: OnboardingStep = OnboardingStep.KYC_KYB_VERIFICATION,
    evidence_ids: Optional[List[str]] = None,
    evidence_type: str = "ID_DOCUMENT",
    **kwargs,
) -> CreateComplianceDecisionRequest:
    ids = evidence_ids if evidence_ids is not None else ["E1"]
    return CreateComplianceDecisionRequest(
        organization_id=organization_id,
        step=step,
        evidence_references=[
            EvidenceReference(evidence_type=evidence_type, reference_id=ref, submitted_at=BASE_TIME)
            for ref in ids
        ],
        **kwargs,
    )


# ============================================================================
# LEDGER FIXTURES
# ============================================================================


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def policy_engine() -> StubPolicyEngine:
    return StubPolicyEngine()


@pytest.fixture
def repository(clock) -> InMemoryDecisionRepository:
    return InMemoryDecisionRepository(clock=clock)


@pytest.fixture
def decision_service(repository, policy_engine, clock) -> ComplianceDecisionService:
    return ComplianceDecisionService(repository, policy_engine, clock=clock)


@pytest.fixture
def make_request():
    """Factory for decision submissions (defaults: ACME, KYC/KYB, evidence E1)."""
    return build_request


# ============================================================================
# AUDIT FIXTURES
# ============================================================================


@pytest.fixture
def whitelist_log() -> InMemoryWhitelistAuditLog:
    return InMemoryWhitelistAuditLog()


@pytest.fixture
def compliance_log() -> InMemoryComplianceAuditLog:
    return InMemoryComplianceAuditLog()


@pytest.fixture
def token_log() -> InMemoryTokenIssuanceAuditLog:
    return InMemoryTokenIssuanceAuditLog()


@pytest.fixture
def aggregator(whitelist_log, compliance_log, token_log) -> AuditAggregator:
    return AuditAggregator(whitelist_log, compliance_log, token_log, timeout=5.0)


@pytest.fixture
def audit_service(aggregator) -> EnterpriseAuditService:
    return EnterpriseAuditService(aggregator)
