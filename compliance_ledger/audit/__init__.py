"""
Enterprise Audit.

Unified, tamper-evident view over the whitelist, compliance and
token-issuance audit logs:
- Canonical EnterpriseAuditLogEntry with a payload hash fixed at mapping time
- All-or-nothing fan-out across sources
- Summary statistics, retention policy, CSV/JSON export
"""

from compliance_ledger.audit.schemas import (
    AuditDateRange,
    AuditEventCategory,
    AuditLogPage,
    AuditLogQuery,
    AuditLogSummary,
    AuditRetentionPolicy,
    ComplianceActionType,
    ComplianceAuditLogEntry,
    ComplianceAuditLogFilter,
    ComplianceStatus,
    EnterpriseAuditLogEntry,
    EnterpriseAuditLogResponse,
    TokenIssuanceAuditLogEntry,
    TokenIssuanceAuditLogFilter,
    VerificationStatus,
    WhitelistActionType,
    WhitelistAuditLogEntry,
    WhitelistAuditLogFilter,
    WhitelistRole,
    WhitelistStatus,
)
from compliance_ledger.audit.hashing import compute_payload_hash, verify_payload_hash
from compliance_ledger.audit.sources import (
    ComplianceAuditSource,
    InMemoryComplianceAuditLog,
    InMemoryTokenIssuanceAuditLog,
    InMemoryWhitelistAuditLog,
    TokenIssuanceAuditSource,
    WhitelistAuditSource,
)
from compliance_ledger.audit.mapping import (
    map_compliance_entry,
    map_token_issuance_entry,
    map_whitelist_entry,
)
from compliance_ledger.audit.aggregator import AuditAggregator, summarize_entries
from compliance_ledger.audit.service import EnterpriseAuditService

__all__ = [
    # Schemas
    "AuditDateRange",
    "AuditEventCategory",
    "AuditLogPage",
    "AuditLogQuery",
    "AuditLogSummary",
    "AuditRetentionPolicy",
    "ComplianceActionType",
    "ComplianceAuditLogEntry",
    "ComplianceAuditLogFilter",
    "ComplianceStatus",
    "EnterpriseAuditLogEntry",
    "EnterpriseAuditLogResponse",
    "TokenIssuanceAuditLogEntry",
    "TokenIssuanceAuditLogFilter",
    "VerificationStatus",
    "WhitelistActionType",
    "WhitelistAuditLogEntry",
    "WhitelistAuditLogFilter",
    "WhitelistRole",
    "WhitelistStatus",
    # Hashing
    "compute_payload_hash",
    "verify_payload_hash",
    # Sources
    "ComplianceAuditSource",
    "InMemoryComplianceAuditLog",
    "InMemoryTokenIssuanceAuditLog",
    "InMemoryWhitelistAuditLog",
    "TokenIssuanceAuditSource",
    "WhitelistAuditSource",
    # Mapping
    "map_compliance_entry",
    "map_token_issuance_entry",
    "map_whitelist_entry",
    # Aggregation
    "AuditAggregator",
    "summarize_entries",
    "EnterpriseAuditService",
]
