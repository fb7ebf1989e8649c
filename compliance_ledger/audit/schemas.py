"""
Enterprise Audit Schemas.

Three independently owned logs feed the enterprise audit view:
- Whitelist / transfer-validation log
- Compliance-metadata log
- Token-issuance log

Each source keeps its native entry shape. The aggregator maps every native
entry into one canonical EnterpriseAuditLogEntry whose payload_hash is fixed
at mapping time and used to detect tampering of exported or archived entries.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
import uuid

from pydantic import BaseModel, Field, field_validator

from compliance_ledger.common.clock import as_utc, utcnow


def _new_id() -> str:
    return str(uuid.uuid4())


# ============================================================================
# CATEGORIES
# ============================================================================


class AuditEventCategory(str, Enum):
    WHITELIST = "Whitelist"
    BLACKLIST = "Blacklist"
    COMPLIANCE = "Compliance"
    TRANSFER_VALIDATION = "TransferValidation"
    TOKEN_ISSUANCE = "TokenIssuance"


# ============================================================================
# WHITELIST SOURCE
# ============================================================================


class WhitelistActionType(str, Enum):
    ADD = "Add"
    UPDATE = "Update"
    REMOVE = "Remove"
    TRANSFER_VALIDATION = "TransferValidation"


class WhitelistStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"
    REVOKED = "Revoked"


class WhitelistRole(str, Enum):
    ADMIN = "Admin"
    OPERATOR = "Operator"


class WhitelistAuditLogEntry(BaseModel):
    """Whitelist change or transfer validation. Failures are not logged."""

    id: str = Field(default_factory=_new_id)
    asset_id: int
    address: str
    action_type: WhitelistActionType
    performed_by: str
    performed_at: datetime = Field(default_factory=utcnow)
    old_status: Optional[WhitelistStatus] = None
    new_status: Optional[WhitelistStatus] = None
    notes: Optional[str] = None
    to_address: Optional[str] = None
    transfer_allowed: Optional[bool] = None
    denial_reason: Optional[str] = None
    amount: Optional[int] = None
    network: Optional[str] = None
    role: WhitelistRole = WhitelistRole.ADMIN

    @field_validator("performed_at")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return as_utc(v)


class WhitelistAuditLogFilter(BaseModel):
    asset_id: Optional[int] = None
    address: Optional[str] = None
    action_type: Optional[WhitelistActionType] = None
    performed_by: Optional[str] = None
    network: Optional[str] = None
    from_date: Optional[datetime] = None
    to_date: Optional[datetime] = None


# ============================================================================
# COMPLIANCE-METADATA SOURCE
# ============================================================================


class ComplianceActionType(str, Enum):
    CREATE = "Create"
    UPDATE = "Update"
    DELETE = "Delete"
    READ = "Read"
    LIST = "List"
    EXPORT = "Export"


class ComplianceStatus(str, Enum):
    UNDER_REVIEW = "UnderReview"
    COMPLIANT = "Compliant"
    NON_COMPLIANT = "NonCompliant"
    SUSPENDED = "Suspended"
    EXEMPT = "Exempt"


class VerificationStatus(str, Enum):
    PENDING = "Pending"
    IN_PROGRESS = "InProgress"
    VERIFIED = "Verified"
    FAILED = "Failed"
    EXPIRED = "Expired"


class ComplianceAuditLogEntry(BaseModel):
    id: str = Field(default_factory=_new_id)
    asset_id: Optional[int] = None
    network: Optional[str] = None
    action_type: ComplianceActionType
    performed_by: str
    performed_at: datetime = Field(default_factory=utcnow)
    success: bool = True
    error_message: Optional[str] = None
    old_compliance_status: Optional[ComplianceStatus] = None
    new_compliance_status: Optional[ComplianceStatus] = None
    old_verification_status: Optional[VerificationStatus] = None
    new_verification_status: Optional[VerificationStatus] = None
    notes: Optional[str] = None
    item_count: Optional[int] = None
    filter_criteria: Optional[str] = None

    @field_validator("performed_at")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return as_utc(v)


class ComplianceAuditLogFilter(BaseModel):
    asset_id: Optional[int] = None
    network: Optional[str] = None
    action_type: Optional[ComplianceActionType] = None
    performed_by: Optional[str] = None
    success: Optional[bool] = None
    from_date: Optional[datetime] = None
    to_date: Optional[datetime] = None


# ============================================================================
# TOKEN-ISSUANCE SOURCE
# ============================================================================


class TokenIssuanceAuditLogEntry(BaseModel):
    """Token deployment record."""

    id: str = Field(default_factory=_new_id)
    asset_identifier: Optional[str] = None
    asset_id: Optional[int] = None
    contract_address: Optional[str] = None
    network: str = ""
    token_type: str = ""
    token_name: Optional[str] = None
    token_symbol: Optional[str] = None
    total_supply: Optional[str] = None
    decimals: Optional[int] = None
    deployed_by: str
    deployed_at: datetime = Field(default_factory=utcnow)
    success: bool = True
    error_message: Optional[str] = None
    transaction_hash: Optional[str] = None
    confirmed_round: Optional[int] = None
    notes: Optional[str] = None
    correlation_id: Optional[str] = None

    @field_validator("deployed_at")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return as_utc(v)


class TokenIssuanceAuditLogFilter(BaseModel):
    asset_id: Optional[int] = None
    contract_address: Optional[str] = None
    network: Optional[str] = None
    token_type: Optional[str] = None
    deployed_by: Optional[str] = None
    success: Optional[bool] = None
    from_date: Optional[datetime] = None
    to_date: Optional[datetime] = None


# ============================================================================
# CANONICAL ENTRY
# ============================================================================


class EnterpriseAuditLogEntry(BaseModel):
    """
    Source-agnostic audit record.

    IMMUTABLE: payload_hash is computed once by the mapping layer and never
    recomputed on read.
    """

    model_config = {"frozen": True}

    # Identity
    id: str

    # Classification
    category: AuditEventCategory
    action_type: str

    # Who / when / result
    asset_id: Optional[int] = None
    network: Optional[str] = None
    performed_by: str = ""
    performed_at: datetime
    success: bool = True
    error_message: Optional[str] = None

    # Domain payload (sparse)
    affected_address: Optional[str] = None
    to_address: Optional[str] = None
    old_status: Optional[str] = None
    new_status: Optional[str] = None
    notes: Optional[str] = None
    transfer_allowed: Optional[bool] = None
    denial_reason: Optional[str] = None
    amount: Optional[int] = None
    role: Optional[str] = None
    item_count: Optional[int] = None
    source_system: str = "compliance-ledger"
    correlation_id: Optional[str] = None

    # Integrity
    payload_hash: str = ""

    @field_validator("performed_at")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return as_utc(v)


# ============================================================================
# QUERY / RESPONSE
# ============================================================================


class AuditLogQuery(BaseModel):
    asset_id: Optional[int] = None
    network: Optional[str] = None
    category: Optional[AuditEventCategory] = None
    action_type: Optional[str] = None
    affected_address: Optional[str] = None
    performed_by: Optional[str] = None
    success: Optional[bool] = None
    from_date: Optional[datetime] = None
    to_date: Optional[datetime] = None
    page: int = 1
    page_size: int = 50

    @field_validator("from_date", "to_date")
    @classmethod
    def _utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)


class AuditDateRange(BaseModel):
    earliest_event: Optional[datetime] = None
    latest_event: Optional[datetime] = None


class AuditLogSummary(BaseModel):
    whitelist_events: int = 0
    blacklist_events: int = 0
    compliance_events: int = 0
    token_issuance_events: int = 0
    successful_operations: int = 0
    failed_operations: int = 0
    date_range: Optional[AuditDateRange] = None
    networks: list[str] = Field(default_factory=list)
    assets: list[int] = Field(default_factory=list)


class AuditRetentionPolicy(BaseModel):
    minimum_retention_years: int = 7
    regulatory_framework: str = "MICA"
    immutable_entries: bool = True
    description: str = ""


class AuditLogPage(BaseModel):
    entries: list[EnterpriseAuditLogEntry] = Field(default_factory=list)
    total_count: int = 0
    page: int = 1
    page_size: int = 50
    total_pages: int = 0


class EnterpriseAuditLogResponse(AuditLogPage):
    summary: Optional[AuditLogSummary] = None
    retention_policy: Optional[AuditRetentionPolicy] = None
