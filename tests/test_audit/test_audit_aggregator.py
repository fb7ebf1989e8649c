"""Tests for the enterprise audit aggregator.

These tests verify:
1. Fan-out only to the sources able to produce the requested category
2. Merge, cross-source filtering and descending time order
3. All-or-nothing failure semantics (errors and timeouts)
4. Summary statistics reconcile with the filtered result set
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import List

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from compliance_ledger.audit import (
    AuditAggregator,
    AuditEventCategory,
    AuditLogQuery,
    ComplianceActionType,
    ComplianceAuditLogEntry,
    InMemoryComplianceAuditLog,
    InMemoryTokenIssuanceAuditLog,
    InMemoryWhitelistAuditLog,
    TokenIssuanceAuditLogEntry,
    WhitelistActionType,
    WhitelistAuditLogEntry,
    WhitelistStatus,
)
from compliance_ledger.audit.aggregator import sources_for_category
from compliance_ledger.common.exceptions import ErrorCode, UpstreamAuditSourceError

T0 = datetime(2026, 3, 2, 8, 0, tzinfo=timezone.utc)


def at(minutes: int) -> datetime:
    return T0 + timedelta(minutes=minutes)


class FailingSource:
    """Audit source whose read always fails."""

    def __init__(self):
        self.calls = 0

    async def read_audit_log(self, filter) -> List:
        self.calls += 1
        raise ConnectionError("audit store unreachable")


class SlowSource:
    async def read_audit_log(self, filter) -> List:
        await asyncio.sleep(1)
        return []


class HangingSource:
    """Audit source that never answers on its own and notes when it is cancelled."""

    def __init__(self):
        self.cancelled = False

    async def read_audit_log(self, filter) -> List:
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        return []


class RecordingSource(InMemoryWhitelistAuditLog):
    """Whitelist log that remembers the filters it was asked for."""

    def __init__(self):
        super().__init__()
        self.filters = []

    async def read_audit_log(self, filter):
        self.filters.append(filter)
        return await super().read_audit_log(filter)


async def seed_scenario_e(whitelist_log, compliance_log, token_log):
    await whitelist_log.add_entry(
        WhitelistAuditLogEntry(
            asset_id=42, address="ADDR_A", action_type=WhitelistActionType.ADD,
            performed_by="ADMIN", performed_at=at(0), new_status=WhitelistStatus.ACTIVE,
            network="mainnet-v1.0",
        )
    )
    await whitelist_log.add_entry(
        WhitelistAuditLogEntry(
            asset_id=42, address="ADDR_A", action_type=WhitelistActionType.UPDATE,
            performed_by="ADMIN", performed_at=at(20), old_status=WhitelistStatus.ACTIVE,
            new_status=WhitelistStatus.REVOKED, network="mainnet-v1.0",
        )
    )
    await whitelist_log.add_entry(
        WhitelistAuditLogEntry(
            asset_id=42, address="ADDR_A", to_address="ADDR_B",
            action_type=WhitelistActionType.TRANSFER_VALIDATION, performed_by="ADDR_A",
            performed_at=at(10), transfer_allowed=True, amount=500, network="mainnet-v1.0",
        )
    )
    await compliance_log.add_entry(
        ComplianceAuditLogEntry(
            asset_id=42, action_type=ComplianceActionType.CREATE, performed_by="REGULATOR",
            performed_at=at(15), notes="Address added to blacklist", network="mainnet-v1.0",
        )
    )
    # Different asset, must be filtered out
    await token_log.add_entry(
        TokenIssuanceAuditLogEntry(
            asset_id=7, contract_address="APP7", network="testnet-v1.0",
            deployed_by="ISSUER", deployed_at=at(5), total_supply="100",
        )
    )


# ============================================================================
# SCENARIO
# ============================================================================


class TestScenarioE:

    @pytest.mark.asyncio
    async def test_scenario_e_cross_source_view_for_asset(
        self, aggregator, whitelist_log, compliance_log, token_log
    ):
        await seed_scenario_e(whitelist_log, compliance_log, token_log)

        page = await aggregator.get_audit_log(AuditLogQuery(asset_id=42))

        assert page.total_count == 4
        categories = sorted(e.category.value for e in page.entries)
        assert categories == sorted(["TransferValidation", "Whitelist", "Whitelist", "Blacklist"])

        timestamps = [e.performed_at for e in page.entries]
        assert timestamps == sorted(timestamps, reverse=True)
        assert all(e.payload_hash for e in page.entries)


# ============================================================================
# FAN-OUT AND FILTERS
# ============================================================================


class TestFanOut:

    @pytest.mark.parametrize(
        "category, expected",
        [
            (None, ("whitelist", "compliance", "token_issuance")),
            (AuditEventCategory.WHITELIST, ("whitelist",)),
            (AuditEventCategory.TRANSFER_VALIDATION, ("whitelist",)),
            (AuditEventCategory.COMPLIANCE, ("compliance",)),
            (AuditEventCategory.BLACKLIST, ("compliance",)),
            (AuditEventCategory.TOKEN_ISSUANCE, ("token_issuance",)),
        ],
    )
    def test_source_selection(self, category, expected):
        assert sources_for_category(category) == expected

    @pytest.mark.asyncio
    async def test_unselected_source_is_not_queried(self, compliance_log, token_log):
        failing = FailingSource()
        aggregator = AuditAggregator(failing, compliance_log, token_log)

        page = await aggregator.get_audit_log(AuditLogQuery(category=AuditEventCategory.TOKEN_ISSUANCE))

        assert page.total_count == 0
        assert failing.calls == 0

    @pytest.mark.asyncio
    async def test_category_filter(self, aggregator, whitelist_log, compliance_log, token_log):
        await seed_scenario_e(whitelist_log, compliance_log, token_log)

        page = await aggregator.get_audit_log(
            AuditLogQuery(category=AuditEventCategory.TRANSFER_VALIDATION)
        )
        assert [e.category for e in page.entries] == [AuditEventCategory.TRANSFER_VALIDATION]

        page = await aggregator.get_audit_log(AuditLogQuery(category=AuditEventCategory.BLACKLIST))
        assert [e.performed_by for e in page.entries] == ["REGULATOR"]

    @pytest.mark.asyncio
    async def test_action_type_filter_is_case_insensitive(
        self, aggregator, whitelist_log, compliance_log, token_log
    ):
        await seed_scenario_e(whitelist_log, compliance_log, token_log)

        page = await aggregator.get_audit_log(AuditLogQuery(action_type="deploy"))
        assert [e.affected_address for e in page.entries] == ["APP7"]

    @pytest.mark.asyncio
    async def test_success_filter(self, aggregator, compliance_log, token_log):
        await compliance_log.add_entry(
            ComplianceAuditLogEntry(
                asset_id=1, action_type=ComplianceActionType.UPDATE, performed_by="A",
                performed_at=at(1), success=False, error_message="boom",
            )
        )
        await token_log.add_entry(
            TokenIssuanceAuditLogEntry(asset_id=1, deployed_by="B", deployed_at=at(2))
        )

        failed = await aggregator.get_audit_log(AuditLogQuery(success=False))
        assert [e.error_message for e in failed.entries] == ["boom"]

    @pytest.mark.asyncio
    async def test_affected_address_reaches_whitelist_source(self, compliance_log, token_log):
        recording = RecordingSource()
        aggregator = AuditAggregator(recording, compliance_log, token_log)

        await aggregator.get_audit_log(AuditLogQuery(affected_address="ADDR_A", network="mainnet-v1.0"))

        assert recording.filters[0].address == "ADDR_A"
        assert recording.filters[0].network == "mainnet-v1.0"

    @pytest.mark.asyncio
    async def test_date_range(self, aggregator, whitelist_log, compliance_log, token_log):
        await seed_scenario_e(whitelist_log, compliance_log, token_log)

        page = await aggregator.get_audit_log(AuditLogQuery(from_date=at(10), to_date=at(15)))
        assert sorted(e.performed_at for e in page.entries) == [at(10), at(15)]

    @pytest.mark.asyncio
    async def test_pagination_is_clamped(self, aggregator, token_log):
        for i in range(120):
            await token_log.add_entry(
                TokenIssuanceAuditLogEntry(asset_id=i, deployed_by="ISSUER", deployed_at=at(i))
            )

        page = await aggregator.get_audit_log(AuditLogQuery(page=0, page_size=1000))
        assert page.page == 1
        assert page.page_size == 100
        assert len(page.entries) == 100
        assert page.total_count == 120
        assert page.total_pages == 2

        last = await aggregator.get_audit_log(AuditLogQuery(page=2, page_size=100))
        assert len(last.entries) == 20
        assert last.entries[-1].asset_id == 0


# ============================================================================
# FAILURE SEMANTICS
# ============================================================================


class TestUpstreamFailure:

    @pytest.mark.asyncio
    async def test_any_source_failure_fails_aggregation(self, whitelist_log, token_log):
        await whitelist_log.add_entry(
            WhitelistAuditLogEntry(
                asset_id=1, address="A", action_type=WhitelistActionType.ADD, performed_by="X"
            )
        )
        aggregator = AuditAggregator(whitelist_log, FailingSource(), token_log)

        with pytest.raises(UpstreamAuditSourceError) as exc_info:
            await aggregator.get_audit_log(AuditLogQuery())

        assert exc_info.value.source == "compliance"
        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_summary_fails_too(self, whitelist_log, compliance_log):
        aggregator = AuditAggregator(whitelist_log, compliance_log, FailingSource())

        with pytest.raises(UpstreamAuditSourceError):
            await aggregator.get_audit_log_summary(AuditLogQuery())

    @pytest.mark.asyncio
    async def test_timeout_is_an_upstream_failure(self, whitelist_log, compliance_log):
        aggregator = AuditAggregator(whitelist_log, compliance_log, SlowSource(), timeout=0.05)

        with pytest.raises(UpstreamAuditSourceError) as exc_info:
            await aggregator.get_audit_log(AuditLogQuery())

        assert exc_info.value.source == "token_issuance"
        assert "timed out" in exc_info.value.message
        assert exc_info.value.code == ErrorCode.TIMEOUT_ERROR

    @pytest.mark.asyncio
    async def test_failure_cancels_the_remaining_reads(self, token_log):
        hanging = HangingSource()
        aggregator = AuditAggregator(FailingSource(), hanging, token_log, timeout=30.0)

        with pytest.raises(UpstreamAuditSourceError) as exc_info:
            await aggregator.get_audit_log(AuditLogQuery())

        assert exc_info.value.source == "whitelist"
        assert hanging.cancelled is True

    @pytest.mark.asyncio
    async def test_several_failing_sources_raise_once(self, token_log):
        first, second = FailingSource(), FailingSource()
        aggregator = AuditAggregator(first, second, token_log)

        with pytest.raises(UpstreamAuditSourceError) as exc_info:
            await aggregator.get_audit_log(AuditLogQuery())

        assert exc_info.value.source in ("whitelist", "compliance")
        assert first.calls == 1
        assert second.calls == 1


# ============================================================================
# SUMMARY
# ============================================================================


class TestSummary:

    @pytest.mark.asyncio
    async def test_summary_for_scenario(self, aggregator, whitelist_log, compliance_log, token_log):
        await seed_scenario_e(whitelist_log, compliance_log, token_log)

        summary = await aggregator.get_audit_log_summary(AuditLogQuery())

        assert summary.whitelist_events == 3
        assert summary.blacklist_events == 1
        assert summary.compliance_events == 0
        assert summary.token_issuance_events == 1
        assert summary.successful_operations == 5
        assert summary.failed_operations == 0
        assert summary.networks == ["mainnet-v1.0", "testnet-v1.0"]
        assert summary.assets == [7, 42]
        assert summary.date_range.earliest_event == at(0)
        assert summary.date_range.latest_event == at(20)

    @pytest.mark.asyncio
    async def test_empty_summary_has_no_date_range(self, aggregator):
        summary = await aggregator.get_audit_log_summary(AuditLogQuery())
        assert summary.date_range is None
        assert summary.networks == []

    @pytest.mark.asyncio
    async def test_report_page_and_summary_agree(
        self, aggregator, whitelist_log, compliance_log, token_log
    ):
        await seed_scenario_e(whitelist_log, compliance_log, token_log)

        page, summary = await aggregator.get_audit_log_report(AuditLogQuery(page_size=2))

        assert len(page.entries) == 2
        assert summary.successful_operations + summary.failed_operations == page.total_count

    @given(
        whitelist=st.lists(st.sampled_from(list(WhitelistActionType)), max_size=8),
        compliance=st.lists(
            st.tuples(st.sampled_from(list(ComplianceActionType)), st.booleans(), st.booleans()),
            max_size=8,
        ),
        tokens=st.lists(st.booleans(), max_size=8),
        category=st.one_of(st.none(), st.sampled_from(list(AuditEventCategory))),
    )
    @settings(max_examples=40, deadline=None)
    def test_category_counts_partition_total(self, whitelist, compliance, tokens, category):
        """whitelist + blacklist + compliance + token issuance == total_count."""

        async def scenario():
            wl = InMemoryWhitelistAuditLog()
            cl = InMemoryComplianceAuditLog()
            tl = InMemoryTokenIssuanceAuditLog()
            for i, action in enumerate(whitelist):
                await wl.add_entry(
                    WhitelistAuditLogEntry(
                        asset_id=1, address="A", action_type=action, performed_by="X", performed_at=at(i)
                    )
                )
            for i, (action, blacklist, success) in enumerate(compliance):
                await cl.add_entry(
                    ComplianceAuditLogEntry(
                        asset_id=1, action_type=action, performed_by="Y", performed_at=at(i),
                        notes="blacklist" if blacklist else None, success=success,
                    )
                )
            for i, success in enumerate(tokens):
                await tl.add_entry(
                    TokenIssuanceAuditLogEntry(deployed_by="Z", deployed_at=at(i), success=success)
                )

            query = AuditLogQuery(category=category)
            page, summary = await AuditAggregator(wl, cl, tl).get_audit_log_report(query)

            categorized = (
                summary.whitelist_events
                + summary.blacklist_events
                + summary.compliance_events
                + summary.token_issuance_events
            )
            assert categorized == page.total_count
            assert summary.successful_operations + summary.failed_operations == page.total_count

        asyncio.run(scenario())
