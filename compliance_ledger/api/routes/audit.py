"""
Enterprise Audit API Routes.

Unified audit log across whitelist, compliance and token-issuance sources.

IMPORTANT: These endpoints feed regulatory reporting. A failing source fails
the request with 502 rather than returning partial data.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response

from compliance_ledger.api.deps import get_audit_service
from compliance_ledger.audit import (
    AuditEventCategory,
    AuditLogQuery,
    AuditLogSummary,
    AuditRetentionPolicy,
    EnterpriseAuditLogResponse,
    EnterpriseAuditService,
)
from compliance_ledger.core.config import settings

router = APIRouter()


def audit_log_query(
    asset_id: Optional[int] = Query(default=None),
    network: Optional[str] = Query(default=None),
    category: Optional[AuditEventCategory] = Query(default=None),
    action_type: Optional[str] = Query(default=None),
    affected_address: Optional[str] = Query(default=None),
    performed_by: Optional[str] = Query(default=None),
    success: Optional[bool] = Query(default=None),
    from_date: Optional[datetime] = Query(default=None),
    to_date: Optional[datetime] = Query(default=None),
    page: int = Query(default=1),
    page_size: int = Query(default=50),
) -> AuditLogQuery:
    return AuditLogQuery(
        asset_id=asset_id,
        network=network,
        category=category,
        action_type=action_type,
        affected_address=affected_address,
        performed_by=performed_by,
        success=success,
        from_date=from_date,
        to_date=to_date,
        page=page,
        page_size=page_size,
    )


@router.get(
    "/logs",
    response_model=EnterpriseAuditLogResponse,
    summary="Unified audit log",
)
async def get_audit_log(
    query: AuditLogQuery = Depends(audit_log_query),
    service: EnterpriseAuditService = Depends(get_audit_service),
) -> EnterpriseAuditLogResponse:
    return await service.get_audit_log(query)


@router.get(
    "/summary",
    response_model=AuditLogSummary,
    summary="Audit log summary statistics",
)
async def get_audit_log_summary(
    query: AuditLogQuery = Depends(audit_log_query),
    service: EnterpriseAuditService = Depends(get_audit_service),
) -> AuditLogSummary:
    return await service.get_audit_log_summary(query)


@router.get(
    "/retention-policy",
    response_model=AuditRetentionPolicy,
    summary="Audit retention policy",
)
async def get_retention_policy(
    service: EnterpriseAuditService = Depends(get_audit_service),
) -> AuditRetentionPolicy:
    return service.get_retention_policy()


@router.get(
    "/export/csv",
    response_class=Response,
    summary="Export the audit log as CSV",
)
async def export_csv(
    query: AuditLogQuery = Depends(audit_log_query),
    max_records: int = Query(default=settings.export_max_records, ge=1),
    service: EnterpriseAuditService = Depends(get_audit_service),
) -> Response:
    content = await service.export_csv(query, max_records=max_records)
    filename = f"enterprise-audit-{datetime.now().strftime('%Y%m%d%H%M%S')}.csv"
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get(
    "/export/json",
    response_class=Response,
    summary="Export the audit log as JSON",
)
async def export_json(
    query: AuditLogQuery = Depends(audit_log_query),
    max_records: int = Query(default=settings.export_max_records, ge=1),
    service: EnterpriseAuditService = Depends(get_audit_service),
) -> Response:
    content = await service.export_json(query, max_records=max_records)
    filename = f"enterprise-audit-{datetime.now().strftime('%Y%m%d%H%M%S')}.json"
    return Response(
        content=content,
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
