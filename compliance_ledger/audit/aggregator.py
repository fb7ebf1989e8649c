"""
Enterprise Audit Aggregator.

Joins the whitelist, compliance and token-issuance audit logs into one
canonical, hash-stamped, time-ordered view.

Every read is a single fan-out over the sources selected by the category
filter. All selected reads must succeed: a failed or timed-out source fails
the whole aggregation, since summary totals feed regulatory reporting and a
partial result would misstate them.
"""

from typing import Awaitable, Callable, List, Optional, Tuple
import asyncio

import structlog

from compliance_ledger.audit.mapping import (
    map_compliance_entry,
    map_token_issuance_entry,
    map_whitelist_entry,
)
from compliance_ledger.audit.schemas import (
    AuditDateRange,
    AuditEventCategory,
    AuditLogPage,
    AuditLogQuery,
    AuditLogSummary,
    ComplianceAuditLogFilter,
    EnterpriseAuditLogEntry,
    TokenIssuanceAuditLogFilter,
    WhitelistAuditLogFilter,
)
from compliance_ledger.audit.sources import (
    ComplianceAuditSource,
    TokenIssuanceAuditSource,
    WhitelistAuditSource,
)
from compliance_ledger.common.exceptions import ErrorCode, LedgerError, UpstreamAuditSourceError
from compliance_ledger.common.metrics import (
    AUDIT_AGGREGATION_DURATION,
    AUDIT_AGGREGATIONS,
    AUDIT_SOURCE_FAILURES,
    track_time,
)
from compliance_ledger.common.pagination import clamp_page, paginate, total_pages
from compliance_ledger.core.config import settings

logger = structlog.get_logger(__name__)

WHITELIST_SOURCE = "whitelist"
COMPLIANCE_SOURCE = "compliance"
TOKEN_ISSUANCE_SOURCE = "token_issuance"

_SOURCES_BY_CATEGORY = {
    AuditEventCategory.WHITELIST: (WHITELIST_SOURCE,),
    AuditEventCategory.TRANSFER_VALIDATION: (WHITELIST_SOURCE,),
    AuditEventCategory.COMPLIANCE: (COMPLIANCE_SOURCE,),
    AuditEventCategory.BLACKLIST: (COMPLIANCE_SOURCE,),
    AuditEventCategory.TOKEN_ISSUANCE: (TOKEN_ISSUANCE_SOURCE,),
}

_ALL_SOURCES = (WHITELIST_SOURCE, COMPLIANCE_SOURCE, TOKEN_ISSUANCE_SOURCE)


def sources_for_category(category: Optional[AuditEventCategory]) -> Tuple[str, ...]:
    """Names of the sources able to produce entries of the given category."""
    if category is None:
        return _ALL_SOURCES
    return _SOURCES_BY_CATEGORY[category]


def summarize_entries(entries: List[EnterpriseAuditLogEntry]) -> AuditLogSummary:
    """
    Summary statistics over a filtered entry set.

    whitelist_events counts Whitelist and TransferValidation entries together,
    so the four category counts partition the set.
    """
    categories = [e.category for e in entries]
    whitelist_events = sum(
        1 for c in categories
        if c in (AuditEventCategory.WHITELIST, AuditEventCategory.TRANSFER_VALIDATION)
    )
    successful = sum(1 for e in entries if e.success)

    date_range = None
    if entries:
        timestamps = [e.performed_at for e in entries]
        date_range = AuditDateRange(
            earliest_event=min(timestamps),
            latest_event=max(timestamps),
        )

    return AuditLogSummary(
        whitelist_events=whitelist_events,
        blacklist_events=categories.count(AuditEventCategory.BLACKLIST),
        compliance_events=categories.count(AuditEventCategory.COMPLIANCE),
        token_issuance_events=categories.count(AuditEventCategory.TOKEN_ISSUANCE),
        successful_operations=successful,
        failed_operations=len(entries) - successful,
        date_range=date_range,
        networks=sorted({e.network for e in entries if e.network}),
        assets=sorted({e.asset_id for e in entries if e.asset_id is not None}),
    )


class AuditAggregator:
    """
    Fan-out/join over the three audit sources.

    Usage:
        aggregator = AuditAggregator(whitelist_log, compliance_log, token_log)
        page = await aggregator.get_audit_log(AuditLogQuery(network="mainnet"))
    """

    def __init__(
        self,
        whitelist_source: WhitelistAuditSource,
        compliance_source: ComplianceAuditSource,
        token_source: TokenIssuanceAuditSource,
        timeout: Optional[float] = None,
    ):
        self._whitelist = whitelist_source
        self._compliance = compliance_source
        self._token = token_source
        self._timeout = timeout if timeout is not None else settings.audit_source_timeout_seconds

    # ========================================================================
    # FAN-OUT
    # ========================================================================

    async def _read_whitelist(self, query: AuditLogQuery) -> List[EnterpriseAuditLogEntry]:
        entries = await self._whitelist.read_audit_log(
            WhitelistAuditLogFilter(
                asset_id=query.asset_id,
                address=query.affected_address,
                performed_by=query.performed_by,
                network=query.network,
                from_date=query.from_date,
                to_date=query.to_date,
            )
        )
        return [map_whitelist_entry(e) for e in entries]

    async def _read_compliance(self, query: AuditLogQuery) -> List[EnterpriseAuditLogEntry]:
        entries = await self._compliance.read_audit_log(
            ComplianceAuditLogFilter(
                asset_id=query.asset_id,
                network=query.network,
                performed_by=query.performed_by,
                success=query.success,
                from_date=query.from_date,
                to_date=query.to_date,
            )
        )
        return [map_compliance_entry(e) for e in entries]

    async def _read_token_issuance(self, query: AuditLogQuery) -> List[EnterpriseAuditLogEntry]:
        entries = await self._token.read_audit_log(
            TokenIssuanceAuditLogFilter(
                asset_id=query.asset_id,
                network=query.network,
                deployed_by=query.performed_by,
                success=query.success,
                from_date=query.from_date,
                to_date=query.to_date,
            )
        )
        return [map_token_issuance_entry(e) for e in entries]

    async def _guarded(
        self,
        source: str,
        read: Callable[[AuditLogQuery], Awaitable[List[EnterpriseAuditLogEntry]]],
        query: AuditLogQuery,
    ) -> List[EnterpriseAuditLogEntry]:
        try:
            if self._timeout is None:
                return await read(query)
            return await asyncio.wait_for(read(query), timeout=self._timeout)
        except asyncio.TimeoutError:
            AUDIT_SOURCE_FAILURES.labels(source=source).inc()
            logger.error("audit_source_timeout", source=source, timeout_seconds=self._timeout)
            raise UpstreamAuditSourceError(
                source,
                f"timed out after {self._timeout}s",
                details={"timeout_seconds": self._timeout},
                code=ErrorCode.TIMEOUT_ERROR,
            )
        except LedgerError:
            AUDIT_SOURCE_FAILURES.labels(source=source).inc()
            raise
        except Exception as e:
            AUDIT_SOURCE_FAILURES.labels(source=source).inc()
            logger.error("audit_source_failed", source=source, error=str(e))
            raise UpstreamAuditSourceError(source, str(e)) from e

    async def _fan_out(self, query: AuditLogQuery) -> List[EnterpriseAuditLogEntry]:
        readers = {
            WHITELIST_SOURCE: self._read_whitelist,
            COMPLIANCE_SOURCE: self._read_compliance,
            TOKEN_ISSUANCE_SOURCE: self._read_token_issuance,
        }
        selected = sources_for_category(query.category)

        tasks = [
            asyncio.ensure_future(self._guarded(name, readers[name], query))
            for name in selected
        ]
        try:
            results = await asyncio.gather(*tasks)
        except BaseException:
            # All-or-nothing: stop the remaining reads and retrieve their outcomes
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        merged: List[EnterpriseAuditLogEntry] = []
        for entries in results:
            merged.extend(entries)
        return merged

    # ========================================================================
    # READ OPERATIONS
    # ========================================================================

    @track_time(AUDIT_AGGREGATION_DURATION)
    async def collect(self, query: AuditLogQuery) -> List[EnterpriseAuditLogEntry]:
        """
        Full filtered, time-ordered entry set for a query (no pagination).

        Raises:
            UpstreamAuditSourceError: If any selected source fails or times out
        """
        try:
            entries = await self._fan_out(query)
        except LedgerError:
            AUDIT_AGGREGATIONS.labels(status="failed").inc()
            raise

        if query.category is not None:
            entries = [e for e in entries if e.category == query.category]
        if query.action_type:
            wanted = query.action_type.casefold()
            entries = [e for e in entries if e.action_type.casefold() == wanted]
        if query.success is not None:
            entries = [e for e in entries if e.success == query.success]

        # sorted() is stable, so equal timestamps keep source order
        entries = sorted(entries, key=lambda e: e.performed_at, reverse=True)

        AUDIT_AGGREGATIONS.labels(status="success").inc()

        logger.debug(
            "audit_log_collected",
            category=query.category.value if query.category else None,
            count=len(entries),
        )
        return entries

    async def get_audit_log(self, query: AuditLogQuery) -> AuditLogPage:
        entries = await self.collect(query)
        return self._page(entries, query)

    async def get_audit_log_summary(self, query: AuditLogQuery) -> AuditLogSummary:
        """Summary over the full filtered set; page and page_size are ignored."""
        entries = await self.collect(query)
        return summarize_entries(entries)

    async def get_audit_log_report(
        self,
        query: AuditLogQuery,
    ) -> Tuple[AuditLogPage, AuditLogSummary]:
        """Page and summary built from one fan-out, so their totals agree."""
        entries = await self.collect(query)
        return self._page(entries, query), summarize_entries(entries)

    @staticmethod
    def _page(entries: List[EnterpriseAuditLogEntry], query: AuditLogQuery) -> AuditLogPage:
        page, page_size = clamp_page(query.page, query.page_size)
        return AuditLogPage(
            entries=paginate(entries, page, page_size),
            total_count=len(entries),
            page=page,
            page_size=page_size,
            total_pages=total_pages(len(entries), page_size),
        )
