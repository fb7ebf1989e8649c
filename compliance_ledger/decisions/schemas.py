"""
Compliance Decision Schemas.

A ComplianceDecision is a ledger entry: the judgment recorded for one
onboarding step of one organization, with the policy rules and evidence that
drove it.

CRITICAL: Decisions are IMMUTABLE once created. The only post-creation change
is the supersession triple, applied through SupersessionPatch by the
repository's dedicated supersede path.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Iterable, Optional
import uuid

from pydantic import BaseModel, Field, field_validator, model_validator

from compliance_ledger.common.clock import as_utc, utcnow


# ============================================================================
# ENUMS
# ============================================================================


class OnboardingStep(str, Enum):
    """Onboarding checkpoints that require a compliance decision."""

    ORGANIZATION_IDENTITY_VERIFICATION = "OrganizationIdentityVerification"
    BUSINESS_REGISTRATION_VERIFICATION = "BusinessRegistrationVerification"
    BENEFICIAL_OWNERSHIP_VERIFICATION = "BeneficialOwnershipVerification"
    KYC_KYB_VERIFICATION = "KycKybVerification"
    AML_SCREENING = "AmlScreening"
    JURISDICTIONAL_COMPLIANCE = "JurisdictionalCompliance"
    TOKEN_ISSUANCE_AUTHORIZATION = "TokenIssuanceAuthorization"
    WALLET_CUSTODY_VERIFICATION = "WalletCustodyVerification"
    TERMS_ACCEPTANCE = "TermsAcceptance"
    FINAL_APPROVAL = "FinalApproval"


class DecisionOutcome(str, Enum):
    """Outcome assigned once, at creation, by the policy engine."""

    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    REQUIRES_MANUAL_REVIEW = "RequiresManualReview"
    CONDITIONAL_APPROVAL = "ConditionalApproval"
    EXPIRED = "Expired"


class EvidenceVerificationStatus(str, Enum):
    SUBMITTED = "Submitted"
    IN_REVIEW = "InReview"
    VERIFIED = "Verified"
    REJECTED = "Rejected"
    EXPIRED = "Expired"


class RuleSeverity(str, Enum):
    """Severity of a failed policy rule, ordered Info < Critical."""

    INFO = "Info"
    WARNING = "Warning"
    ERROR = "Error"
    CRITICAL = "Critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    RuleSeverity.INFO: 0,
    RuleSeverity.WARNING: 1,
    RuleSeverity.ERROR: 2,
    RuleSeverity.CRITICAL: 3,
}


# ============================================================================
# EVIDENCE
# ============================================================================


class EvidenceReference(BaseModel):
    """Pointer to supporting evidence (never the document itself)."""

    model_config = {"frozen": True}

    evidence_type: str = Field(
        description="Type of evidence, e.g. ID_DOCUMENT, BUSINESS_LICENSE",
    )
    reference_id: str = Field(
        description="File id, URL or document number",
    )
    submitted_at: datetime = Field(default_factory=utcnow)
    verification_status: EvidenceVerificationStatus = EvidenceVerificationStatus.SUBMITTED
    data_hash: Optional[str] = Field(
        default=None,
        description="Hash of the evidence content for integrity checks",
    )
    metadata: Optional[dict[str, Any]] = None

    @field_validator("submitted_at")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return as_utc(v)


def evidence_key(reference_ids: Iterable[str]) -> tuple[str, ...]:
    """Order-independent comparison key for a set of evidence ids."""
    return tuple(sorted(reference_ids))


# ============================================================================
# POLICY (produced by the external policy engine)
# ============================================================================


class PolicyRule(BaseModel):
    """Versioned, opaque rule configuration carried with decisions."""

    rule_id: str
    rule_name: str = ""
    description: str = ""
    applicable_step: OnboardingStep
    category: str = ""
    severity: RuleSeverity = RuleSeverity.ERROR
    is_required: bool = True
    version: str = "1.0.0"
    is_active: bool = True
    effective_from: datetime = Field(default_factory=utcnow)
    effective_to: Optional[datetime] = None
    required_evidence_types: list[str] = Field(default_factory=list)
    configuration: Optional[dict[str, Any]] = None
    pass_message: str = ""
    fail_message: str = ""
    remediation_actions: list[str] = Field(default_factory=list)

    @field_validator("effective_from", "effective_to")
    @classmethod
    def _utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)

    def is_effective(self, at: Optional[datetime] = None) -> bool:
        """Active and inside its effective window at the given instant."""
        at = as_utc(at) or utcnow()
        if not self.is_active or self.effective_from > at:
            return False
        return self.effective_to is None or self.effective_to > at


class PolicyRuleEvaluation(BaseModel):
    rule_id: str
    rule_name: str = ""
    passed: bool
    message: str = ""
    severity: Optional[RuleSeverity] = None
    evidence_ids: list[str] = Field(default_factory=list)


class PolicyEvaluationResult(BaseModel):
    outcome: DecisionOutcome
    rule_evaluations: list[PolicyRuleEvaluation] = Field(default_factory=list)
    reason: str = ""
    required_actions: list[str] = Field(default_factory=list)
    estimated_resolution_time: Optional[str] = None


class PolicyEvaluationContext(BaseModel):
    organization_id: str
    onboarding_session_id: Optional[str] = None
    step: OnboardingStep
    evidence: list[EvidenceReference] = Field(default_factory=list)
    additional_data: Optional[dict[str, Any]] = None
    initiator: str = ""
    correlation_id: Optional[str] = None


class PolicyConfiguration(BaseModel):
    version: str = "1.0.0"
    rules_by_step: dict[OnboardingStep, list[PolicyRule]] = Field(default_factory=dict)

    def applicable_rules(
        self,
        step: OnboardingStep,
        at: Optional[datetime] = None,
    ) -> list[PolicyRule]:
        return [r for r in self.rules_by_step.get(step, []) if r.is_effective(at)]


# ============================================================================
# COMPLIANCE DECISION - THE LEDGER ENTRY
# ============================================================================


class ComplianceDecision(BaseModel):
    """
    Immutable compliance decision.

    Every decision belongs to exactly one (organization_id, step) slot. The
    active decision of a slot is the most recent one that is neither
    superseded nor expired.
    """

    model_config = {"frozen": True}

    # Identity
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))

    # Subject
    organization_id: str
    onboarding_session_id: Optional[str] = None
    step: OnboardingStep

    # Outcome
    outcome: DecisionOutcome

    # Provenance
    policy_rule_ids: list[str] = Field(default_factory=list)
    decision_maker: str = ""
    decision_timestamp: datetime = Field(default_factory=utcnow)
    evidence_references: list[EvidenceReference] = Field(default_factory=list)
    reason: str = ""
    policy_version: str = "1.0.0"
    correlation_id: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None

    # Lifecycle
    previous_decision_id: Optional[str] = None
    is_superseded: bool = False
    superseded_at: Optional[datetime] = None
    superseded_by_id: Optional[str] = None
    expires_at: Optional[datetime] = None
    requires_review: bool = False
    next_review_date: Optional[datetime] = None

    @field_validator(
        "decision_timestamp",
        "superseded_at",
        "expires_at",
        "next_review_date",
    )
    @classmethod
    def _utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)

    @model_validator(mode="after")
    def _check_lifecycle(self) -> "ComplianceDecision":
        if self.expires_at is not None and self.expires_at < self.decision_timestamp:
            raise ValueError("expires_at must not be earlier than decision_timestamp")
        if self.next_review_date is not None and not self.requires_review:
            raise ValueError("next_review_date requires requires_review=True")
        if self.superseded_by_id is not None and self.superseded_by_id == self.id:
            raise ValueError("a decision cannot supersede itself")
        return self

    @property
    def evidence_reference_ids(self) -> list[str]:
        return [e.reference_id for e in self.evidence_references]

    def is_expired(self, at: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return self.expires_at <= (as_utc(at) or utcnow())

    def is_active(self, at: Optional[datetime] = None) -> bool:
        return not self.is_superseded and not self.is_expired(at)


class SupersessionPatch(BaseModel):
    """The only change a stored decision may ever receive."""

    model_config = {"frozen": True}

    is_superseded: bool = True
    superseded_at: datetime
    superseded_by_id: str

    @field_validator("superseded_at")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return as_utc(v)

    def apply_to(self, decision: ComplianceDecision) -> ComplianceDecision:
        """Return a copy of the decision carrying the supersession triple."""
        return decision.model_copy(update=self.model_dump())


# ============================================================================
# REQUESTS / QUERIES
# ============================================================================


class CreateComplianceDecisionRequest(BaseModel):
    organization_id: str
    onboarding_session_id: Optional[str] = None
    step: OnboardingStep
    evidence_references: list[EvidenceReference] = Field(default_factory=list)
    evaluation_context: Optional[dict[str, Any]] = None
    correlation_id: Optional[str] = None
    expiration_days: Optional[int] = Field(default=None, description="Time-limited approval")
    requires_review: bool = False
    review_interval_days: Optional[int] = None


class DecisionQuery(BaseModel):
    """Filter set for QueryDecisions. Pagination is clamped, not rejected."""

    organization_id: Optional[str] = None
    onboarding_session_id: Optional[str] = None
    step: Optional[OnboardingStep] = None
    outcome: Optional[DecisionOutcome] = None
    decision_maker: Optional[str] = None
    from_date: Optional[datetime] = None
    to_date: Optional[datetime] = None
    include_superseded: bool = False
    include_expired: bool = False
    page: int = 1
    page_size: int = 50

    @field_validator("from_date", "to_date")
    @classmethod
    def _utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)


class DecisionSummary(BaseModel):
    approved_count: int = 0
    rejected_count: int = 0
    requires_review_count: int = 0
    pending_count: int = 0
    conditional_approval_count: int = 0
    expired_count: int = 0
    average_decision_time_hours: Optional[float] = None
    common_rejection_reasons: list[str] = Field(default_factory=list)


class DecisionPage(BaseModel):
    decisions: list[ComplianceDecision] = Field(default_factory=list)
    total_count: int = 0
    page: int = 1
    page_size: int = 50
    total_pages: int = 0
    summary: Optional[DecisionSummary] = None


class DecisionResult(BaseModel):
    """Outcome of a create/update call on the decision service."""

    decision: ComplianceDecision
    evaluation_result: Optional[PolicyEvaluationResult] = None
    is_duplicate: bool = False
    superseded_decision_id: Optional[str] = None
