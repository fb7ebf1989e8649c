"""API Routes.

Aggregates the versioned API routers. Health and metrics are mounted at the
root by the application factory.
"""

from fastapi import APIRouter

from compliance_ledger.api.routes.audit import router as audit_router
from compliance_ledger.api.routes.decisions import router as decisions_router
from compliance_ledger.api.routes.health import router as health_router

router = APIRouter()

router.include_router(
    decisions_router,
    prefix="/compliance-decisions",
    tags=["Compliance Decisions"],
)
router.include_router(
    audit_router,
    prefix="/enterprise-audit",
    tags=["Enterprise Audit"],
)

__all__ = ["router", "health_router"]
