"""
API dependencies.

Process-wide in-memory singletons for the decision ledger and the three audit
logs. The policy engine is deployment-specific and must be installed with
set_policy_engine() or overridden through app.dependency_overrides.
"""

from typing import Optional

from fastapi import Depends

from compliance_ledger.audit import (
    AuditAggregator,
    EnterpriseAuditService,
    InMemoryComplianceAuditLog,
    InMemoryTokenIssuanceAuditLog,
    InMemoryWhitelistAuditLog,
)
from compliance_ledger.common.exceptions import PolicyEngineUnavailableError
from compliance_ledger.decisions import (
    ComplianceDecisionService,
    InMemoryDecisionRepository,
    PolicyEngine,
)

_decision_repository: Optional[InMemoryDecisionRepository] = None
_whitelist_log: Optional[InMemoryWhitelistAuditLog] = None
_compliance_log: Optional[InMemoryComplianceAuditLog] = None
_token_issuance_log: Optional[InMemoryTokenIssuanceAuditLog] = None
_policy_engine: Optional[PolicyEngine] = None


def set_policy_engine(engine: Optional[PolicyEngine]) -> None:
    global _policy_engine
    _policy_engine = engine


def reset_state() -> None:
    """Drop every in-memory singleton (used between tests)."""
    global _decision_repository, _whitelist_log, _compliance_log, _token_issuance_log
    _decision_repository = None
    _whitelist_log = None
    _compliance_log = None
    _token_issuance_log = None


# ============================================================================
# LEDGER
# ============================================================================


def get_decision_repository() -> InMemoryDecisionRepository:
    global _decision_repository
    if _decision_repository is None:
        _decision_repository = InMemoryDecisionRepository()
    return _decision_repository


def get_policy_engine() -> PolicyEngine:
    if _policy_engine is None:
        raise PolicyEngineUnavailableError()
    return _policy_engine


def get_decision_service(
    repository: InMemoryDecisionRepository = Depends(get_decision_repository),
    policy_engine: PolicyEngine = Depends(get_policy_engine),
) -> ComplianceDecisionService:
    return ComplianceDecisionService(repository, policy_engine)


def get_decision_reader(
    repository: InMemoryDecisionRepository = Depends(get_decision_repository),
) -> ComplianceDecisionService:
    """Service for read-only routes; does not require a policy engine."""
    return ComplianceDecisionService(repository)


# ============================================================================
# ENTERPRISE AUDIT
# ============================================================================


def get_whitelist_log() -> InMemoryWhitelistAuditLog:
    global _whitelist_log
    if _whitelist_log is None:
        _whitelist_log = InMemoryWhitelistAuditLog()
    return _whitelist_log


def get_compliance_log() -> InMemoryComplianceAuditLog:
    global _compliance_log
    if _compliance_log is None:
        _compliance_log = InMemoryComplianceAuditLog()
    return _compliance_log


def get_token_issuance_log() -> InMemoryTokenIssuanceAuditLog:
    global _token_issuance_log
    if _token_issuance_log is None:
        _token_issuance_log = InMemoryTokenIssuanceAuditLog()
    return _token_issuance_log


def get_audit_service(
    whitelist_log: InMemoryWhitelistAuditLog = Depends(get_whitelist_log),
    compliance_log: InMemoryComplianceAuditLog = Depends(get_compliance_log),
    token_log: InMemoryTokenIssuanceAuditLog = Depends(get_token_issuance_log),
) -> EnterpriseAuditService:
    return EnterpriseAuditService(AuditAggregator(whitelist_log, compliance_log, token_log))
