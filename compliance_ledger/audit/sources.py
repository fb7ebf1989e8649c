"""
Audit Source Adapters.

Each subsystem owns its audit log and exposes one filtered read. The
aggregator talks to them only through these protocols. The in-memory logs
are reference implementations: append-only, newest entries first on read.
"""

from typing import List, Optional, Protocol

import asyncio

from compliance_ledger.audit.schemas import (
    ComplianceAuditLogEntry,
    ComplianceAuditLogFilter,
    TokenIssuanceAuditLogEntry,
    TokenIssuanceAuditLogFilter,
    WhitelistAuditLogEntry,
    WhitelistAuditLogFilter,
)


def _eq(a: Optional[str], b: str) -> bool:
    return a is not None and a.casefold() == b.casefold()


# ============================================================================
# PROTOCOLS
# ============================================================================


class WhitelistAuditSource(Protocol):
    async def read_audit_log(
        self,
        filter: WhitelistAuditLogFilter,
    ) -> List[WhitelistAuditLogEntry]: ...


class ComplianceAuditSource(Protocol):
    async def read_audit_log(
        self,
        filter: ComplianceAuditLogFilter,
    ) -> List[ComplianceAuditLogEntry]: ...


class TokenIssuanceAuditSource(Protocol):
    async def read_audit_log(
        self,
        filter: TokenIssuanceAuditLogFilter,
    ) -> List[TokenIssuanceAuditLogEntry]: ...


# ============================================================================
# IN-MEMORY REFERENCE LOGS
# ============================================================================


class _InMemoryLog:
    """Append-only list guarded by an asyncio lock."""

    def __init__(self):
        self._entries: list = []
        self._lock = asyncio.Lock()

    async def add_entry(self, entry) -> None:
        async with self._lock:
            self._entries.append(entry)

    async def _snapshot(self) -> list:
        async with self._lock:
            return list(self._entries)


class InMemoryWhitelistAuditLog(_InMemoryLog):
    """Whitelist and transfer-validation audit log."""

    async def read_audit_log(
        self,
        filter: WhitelistAuditLogFilter,
    ) -> List[WhitelistAuditLogEntry]:
        entries = await self._snapshot()

        if filter.asset_id is not None:
            entries = [e for e in entries if e.asset_id == filter.asset_id]
        if filter.address:
            entries = [
                e for e in entries
                if _eq(e.address, filter.address) or _eq(e.to_address, filter.address)
            ]
        if filter.action_type is not None:
            entries = [e for e in entries if e.action_type == filter.action_type]
        if filter.performed_by:
            entries = [e for e in entries if _eq(e.performed_by, filter.performed_by)]
        if filter.network:
            entries = [e for e in entries if _eq(e.network, filter.network)]
        if filter.from_date is not None:
            entries = [e for e in entries if e.performed_at >= filter.from_date]
        if filter.to_date is not None:
            entries = [e for e in entries if e.performed_at <= filter.to_date]

        return sorted(entries, key=lambda e: e.performed_at, reverse=True)


class InMemoryComplianceAuditLog(_InMemoryLog):
    """Compliance-metadata change log."""

    async def read_audit_log(
        self,
        filter: ComplianceAuditLogFilter,
    ) -> List[ComplianceAuditLogEntry]:
        entries = await self._snapshot()

        if filter.asset_id is not None:
            entries = [e for e in entries if e.asset_id == filter.asset_id]
        if filter.network:
            entries = [e for e in entries if _eq(e.network, filter.network)]
        if filter.action_type is not None:
            entries = [e for e in entries if e.action_type == filter.action_type]
        if filter.performed_by:
            entries = [e for e in entries if _eq(e.performed_by, filter.performed_by)]
        if filter.success is not None:
            entries = [e for e in entries if e.success == filter.success]
        if filter.from_date is not None:
            entries = [e for e in entries if e.performed_at >= filter.from_date]
        if filter.to_date is not None:
            entries = [e for e in entries if e.performed_at <= filter.to_date]

        return sorted(entries, key=lambda e: e.performed_at, reverse=True)


class InMemoryTokenIssuanceAuditLog(_InMemoryLog):
    """Token deployment log."""

    async def read_audit_log(
        self,
        filter: TokenIssuanceAuditLogFilter,
    ) -> List[TokenIssuanceAuditLogEntry]:
        entries = await self._snapshot()

        if filter.asset_id is not None:
            entries = [e for e in entries if e.asset_id == filter.asset_id]
        if filter.contract_address:
            entries = [e for e in entries if _eq(e.contract_address, filter.contract_address)]
        if filter.network:
            entries = [e for e in entries if _eq(e.network, filter.network)]
        if filter.token_type:
            entries = [e for e in entries if _eq(e.token_type, filter.token_type)]
        if filter.deployed_by:
            entries = [e for e in entries if _eq(e.deployed_by, filter.deployed_by)]
        if filter.success is not None:
            entries = [e for e in entries if e.success == filter.success]
        if filter.from_date is not None:
            entries = [e for e in entries if e.deployed_at >= filter.from_date]
        if filter.to_date is not None:
            entries = [e for e in entries if e.deployed_at <= filter.to_date]

        return sorted(entries, key=lambda e: e.deployed_at, reverse=True)
