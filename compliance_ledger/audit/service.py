"""
Enterprise Audit Service.

Reporting facade over the AuditAggregator: paged log with summary and
retention policy, CSV/JSON export, and hash verification for archived entries.
"""

from typing import Optional

import structlog

from compliance_ledger.audit.aggregator import AuditAggregator, summarize_entries
from compliance_ledger.audit.export import (
    document_to_json,
    effective_max_records,
    entries_to_csv,
)
from compliance_ledger.audit.hashing import verify_payload_hash
from compliance_ledger.audit.schemas import (
    AuditLogQuery,
    AuditLogSummary,
    AuditRetentionPolicy,
    EnterpriseAuditLogEntry,
    EnterpriseAuditLogResponse,
)
from compliance_ledger.common.exceptions import DataIntegrityError
from compliance_ledger.core.config import settings

logger = structlog.get_logger(__name__)


class EnterpriseAuditService:
    """Enterprise audit reporting over the aggregated audit view."""

    def __init__(self, aggregator: AuditAggregator):
        self._aggregator = aggregator

    def get_retention_policy(self) -> AuditRetentionPolicy:
        return AuditRetentionPolicy(
            minimum_retention_years=settings.retention_years,
            regulatory_framework=settings.regulatory_framework,
            immutable_entries=True,
            description=(
                f"Audit logs are retained for a minimum of {settings.retention_years} "
                f"years to comply with {settings.regulatory_framework} reporting "
                "requirements. All entries are immutable and cannot be modified "
                "or deleted."
            ),
        )

    async def get_audit_log(self, query: AuditLogQuery) -> EnterpriseAuditLogResponse:
        """Page, summary and retention policy from a single fan-out."""
        page, summary = await self._aggregator.get_audit_log_report(query)

        logger.info(
            "enterprise_audit_log_retrieved",
            returned=len(page.entries),
            total_count=page.total_count,
            page=page.page,
        )

        return EnterpriseAuditLogResponse(
            entries=page.entries,
            total_count=page.total_count,
            page=page.page,
            page_size=page.page_size,
            total_pages=page.total_pages,
            summary=summary,
            retention_policy=self.get_retention_policy(),
        )

    async def get_audit_log_summary(self, query: AuditLogQuery) -> AuditLogSummary:
        return await self._aggregator.get_audit_log_summary(query)

    async def export_csv(
        self,
        query: AuditLogQuery,
        max_records: Optional[int] = None,
    ) -> str:
        limit = effective_max_records(max_records or settings.export_max_records)
        entries = (await self._aggregator.collect(query))[:limit]

        logger.info("enterprise_audit_exported", format="csv", record_count=len(entries))
        return entries_to_csv(entries)

    async def export_json(
        self,
        query: AuditLogQuery,
        max_records: Optional[int] = None,
    ) -> str:
        limit = effective_max_records(max_records or settings.export_max_records)
        entries = await self._aggregator.collect(query)
        exported = entries[:limit]

        document = {
            "entries": [e.model_dump(mode="json") for e in exported],
            "total_count": len(entries),
            "summary": summarize_entries(entries).model_dump(mode="json"),
            "retention_policy": self.get_retention_policy().model_dump(mode="json"),
        }

        logger.info("enterprise_audit_exported", format="json", record_count=len(exported))
        return document_to_json(document)

    def verify_entry(self, entry: EnterpriseAuditLogEntry, strict: bool = False) -> bool:
        """
        Recompute the payload hash of an archived entry.

        Returns False when the entry was altered after it was mapped.

        Raises:
            DataIntegrityError: strict=True and the hash does not match
        """
        valid = verify_payload_hash(entry)
        if not valid:
            logger.warning("audit_entry_hash_mismatch", entry_id=entry.id)
            if strict:
                raise DataIntegrityError(
                    f"Payload hash mismatch for audit entry {entry.id}",
                    details={"entry_id": entry.id, "payload_hash": entry.payload_hash},
                )
        return valid
