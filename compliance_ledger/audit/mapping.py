"""
Per-source mapping into the canonical EnterpriseAuditLogEntry.

The payload hash is computed here, once, right after mapping.

Category rules:
- whitelist entries: TransferValidation for transfer validations, else Whitelist
- compliance entries: Blacklist when the action is Create and the notes
  mention "blacklist" (case-insensitive), else Compliance
- token-issuance entries: always TokenIssuance
"""

from typing import Optional

from compliance_ledger.audit.hashing import hash_fields
from compliance_ledger.audit.schemas import (
    AuditEventCategory,
    ComplianceActionType,
    ComplianceAuditLogEntry,
    ComplianceStatus,
    EnterpriseAuditLogEntry,
    TokenIssuanceAuditLogEntry,
    VerificationStatus,
    WhitelistActionType,
    WhitelistAuditLogEntry,
)
from compliance_ledger.core.config import settings

TOKEN_DEPLOY_ACTION = "Deploy"


def _finalize(fields: dict) -> EnterpriseAuditLogEntry:
    fields.setdefault("source_system", settings.source_system)
    fields["payload_hash"] = hash_fields(fields)
    return EnterpriseAuditLogEntry(**fields)


def map_whitelist_entry(entry: WhitelistAuditLogEntry) -> EnterpriseAuditLogEntry:
    if entry.action_type == WhitelistActionType.TRANSFER_VALIDATION:
        category = AuditEventCategory.TRANSFER_VALIDATION
    else:
        category = AuditEventCategory.WHITELIST

    return _finalize({
        "id": entry.id,
        "asset_id": entry.asset_id,
        "network": entry.network,
        "category": category,
        "action_type": entry.action_type.value,
        "performed_by": entry.performed_by,
        "performed_at": entry.performed_at,
        # Failed whitelist operations are never written to the source log
        "success": True,
        "affected_address": entry.address,
        "old_status": entry.old_status.value if entry.old_status else None,
        "new_status": entry.new_status.value if entry.new_status else None,
        "notes": entry.notes,
        "to_address": entry.to_address,
        "transfer_allowed": entry.transfer_allowed,
        "denial_reason": entry.denial_reason,
        "amount": entry.amount,
        "role": entry.role.value,
    })


def is_blacklist_operation(entry: ComplianceAuditLogEntry) -> bool:
    # TODO: have the compliance log record blacklist writes as their own action
    # type so this text match on notes can be removed.
    return (
        entry.action_type == ComplianceActionType.CREATE
        and entry.notes is not None
        and "blacklist" in entry.notes.casefold()
    )


def compliance_status_string(
    compliance_status: Optional[ComplianceStatus],
    verification_status: Optional[VerificationStatus],
) -> Optional[str]:
    """e.g. "Compliance: Compliant, Verification: Verified"."""
    parts = []
    if compliance_status is not None:
        parts.append(f"Compliance: {compliance_status.value}")
    if verification_status is not None:
        parts.append(f"Verification: {verification_status.value}")
    return ", ".join(parts) if parts else None


def map_compliance_entry(entry: ComplianceAuditLogEntry) -> EnterpriseAuditLogEntry:
    category = (
        AuditEventCategory.BLACKLIST if is_blacklist_operation(entry)
        else AuditEventCategory.COMPLIANCE
    )

    return _finalize({
        "id": entry.id,
        "asset_id": entry.asset_id,
        "network": entry.network,
        "category": category,
        "action_type": entry.action_type.value,
        "performed_by": entry.performed_by,
        "performed_at": entry.performed_at,
        "success": entry.success,
        "error_message": entry.error_message,
        "old_status": compliance_status_string(
            entry.old_compliance_status, entry.old_verification_status
        ),
        "new_status": compliance_status_string(
            entry.new_compliance_status, entry.new_verification_status
        ),
        "notes": entry.notes,
        "item_count": entry.item_count,
    })


def _supply_as_int(total_supply: Optional[str]) -> Optional[int]:
    if total_supply is None:
        return None
    value = total_supply.strip()
    return int(value) if value.isdigit() else None


def map_token_issuance_entry(entry: TokenIssuanceAuditLogEntry) -> EnterpriseAuditLogEntry:
    return _finalize({
        "id": entry.id,
        "asset_id": entry.asset_id,
        "network": entry.network or None,
        "category": AuditEventCategory.TOKEN_ISSUANCE,
        "action_type": TOKEN_DEPLOY_ACTION,
        "performed_by": entry.deployed_by,
        "performed_at": entry.deployed_at,
        "success": entry.success,
        "error_message": entry.error_message,
        "affected_address": entry.contract_address,
        "notes": entry.notes,
        "amount": _supply_as_int(entry.total_supply),
        "correlation_id": entry.correlation_id,
    })
