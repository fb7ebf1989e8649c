"""
Compliance Decision Ledger.

Immutable, idempotent record of policy-driven decisions for onboarding steps
and token-issuance authorization:
- Create-once decisions with forward-only supersession
- Duplicate detection for retried submissions
- Review and expiry scans

Usage:
    from compliance_ledger.decisions import (
        ComplianceDecisionService,
        InMemoryDecisionRepository,
    )

    service = ComplianceDecisionService(InMemoryDecisionRepository(), policy_engine)
    result = await service.create_decision(request, actor="ADDR...")
"""

from compliance_ledger.decisions.schemas import (
    ComplianceDecision,
    CreateComplianceDecisionRequest,
    DecisionOutcome,
    DecisionPage,
    DecisionQuery,
    DecisionResult,
    DecisionSummary,
    EvidenceReference,
    EvidenceVerificationStatus,
    OnboardingStep,
    PolicyConfiguration,
    PolicyEvaluationContext,
    PolicyEvaluationResult,
    PolicyRule,
    PolicyRuleEvaluation,
    RuleSeverity,
    SupersessionPatch,
)
from compliance_ledger.decisions.repository import (
    DecisionRepository,
    InMemoryDecisionRepository,
)
from compliance_ledger.decisions.duplicates import DuplicateDetector
from compliance_ledger.decisions.lifecycle import LifecycleScanner, LifecycleScanReport
from compliance_ledger.decisions.policy import PolicyEngine
from compliance_ledger.decisions.service import ComplianceDecisionService, summarize_decisions

__all__ = [
    # Schemas
    "ComplianceDecision",
    "CreateComplianceDecisionRequest",
    "DecisionOutcome",
    "DecisionPage",
    "DecisionQuery",
    "DecisionResult",
    "DecisionSummary",
    "EvidenceReference",
    "EvidenceVerificationStatus",
    "OnboardingStep",
    "PolicyConfiguration",
    "PolicyEvaluationContext",
    "PolicyEvaluationResult",
    "PolicyRule",
    "PolicyRuleEvaluation",
    "RuleSeverity",
    "SupersessionPatch",
    # Storage
    "DecisionRepository",
    "InMemoryDecisionRepository",
    # Lifecycle
    "DuplicateDetector",
    "LifecycleScanner",
    "LifecycleScanReport",
    # Service
    "PolicyEngine",
    "ComplianceDecisionService",
    "summarize_decisions",
]
