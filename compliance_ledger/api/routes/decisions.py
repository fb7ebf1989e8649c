"""
Compliance Decision API Routes.

Provides endpoints for:
- Recording decisions (idempotent within the duplicate window)
- Replacing a decision with a newer one
- Decision lookup, query, active decision per slot
- Review and expiry scans
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, Query, status

from compliance_ledger.api.deps import get_decision_reader, get_decision_service
from compliance_ledger.common.exceptions import DecisionNotFoundError, NotFoundError
from compliance_ledger.decisions import (
    ComplianceDecision,
    ComplianceDecisionService,
    CreateComplianceDecisionRequest,
    DecisionOutcome,
    DecisionPage,
    DecisionQuery,
    DecisionResult,
    OnboardingStep,
)

router = APIRouter()


# ============================================================================
# WRITES
# ============================================================================


@router.post(
    "",
    response_model=DecisionResult,
    status_code=status.HTTP_200_OK,
    summary="Record a compliance decision",
    description="Evaluates the submitted evidence and records the decision. "
                "A retry with the same evidence inside the duplicate window "
                "returns the existing decision.",
)
async def create_decision(
    request: CreateComplianceDecisionRequest,
    actor: str = Header(default="anonymous", alias="X-Actor-Address"),
    service: ComplianceDecisionService = Depends(get_decision_service),
) -> DecisionResult:
    return await service.create_decision(request, actor)


@router.post(
    "/{decision_id}/update",
    response_model=DecisionResult,
    summary="Replace a compliance decision",
    description="Records a new decision and marks the given one as superseded.",
)
async def update_decision(
    decision_id: str,
    request: CreateComplianceDecisionRequest,
    actor: str = Header(default="anonymous", alias="X-Actor-Address"),
    service: ComplianceDecisionService = Depends(get_decision_service),
) -> DecisionResult:
    return await service.update_decision(decision_id, request, actor)


# ============================================================================
# READS
# ============================================================================


@router.get(
    "",
    response_model=DecisionPage,
    summary="Query compliance decisions",
)
async def query_decisions(
    organization_id: Optional[str] = Query(default=None),
    onboarding_session_id: Optional[str] = Query(default=None),
    step: Optional[OnboardingStep] = Query(default=None),
    outcome: Optional[DecisionOutcome] = Query(default=None),
    decision_maker: Optional[str] = Query(default=None),
    from_date: Optional[datetime] = Query(default=None),
    to_date: Optional[datetime] = Query(default=None),
    include_superseded: bool = Query(default=False),
    include_expired: bool = Query(default=False),
    page: int = Query(default=1),
    page_size: int = Query(default=50),
    service: ComplianceDecisionService = Depends(get_decision_reader),
) -> DecisionPage:
    query = DecisionQuery(
        organization_id=organization_id,
        onboarding_session_id=onboarding_session_id,
        step=step,
        outcome=outcome,
        decision_maker=decision_maker,
        from_date=from_date,
        to_date=to_date,
        include_superseded=include_superseded,
        include_expired=include_expired,
        page=page,
        page_size=page_size,
    )
    return await service.query_decisions(query)


@router.get(
    "/active",
    response_model=ComplianceDecision,
    summary="Active decision for an organization and step",
)
async def get_active_decision(
    organization_id: str = Query(...),
    step: OnboardingStep = Query(...),
    service: ComplianceDecisionService = Depends(get_decision_reader),
) -> ComplianceDecision:
    decision = await service.get_active_decision(organization_id, step)
    if decision is None:
        raise NotFoundError("ActiveDecision", f"{organization_id}/{step.value}")
    return decision


@router.get(
    "/review",
    response_model=List[ComplianceDecision],
    summary="Decisions due for review",
)
async def get_decisions_requiring_review(
    before_date: Optional[datetime] = Query(default=None),
    service: ComplianceDecisionService = Depends(get_decision_reader),
) -> List[ComplianceDecision]:
    return await service.decisions_requiring_review(before_date)


@router.get(
    "/expired",
    response_model=List[ComplianceDecision],
    summary="Expired decisions",
)
async def get_expired_decisions(
    service: ComplianceDecisionService = Depends(get_decision_reader),
) -> List[ComplianceDecision]:
    return await service.expired_decisions()


@router.get(
    "/{decision_id}",
    response_model=ComplianceDecision,
    summary="Get a compliance decision",
)
async def get_decision(
    decision_id: str,
    service: ComplianceDecisionService = Depends(get_decision_reader),
) -> ComplianceDecision:
    decision = await service.get_decision(decision_id)
    if decision is None:
        raise DecisionNotFoundError(decision_id)
    return decision
