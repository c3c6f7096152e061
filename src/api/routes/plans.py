"""
Plan catalogue endpoints.

Every authenticated role can read plans; only admins can change them.
"""

import logging
from decimal import Decimal
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from ...core.billing.patches import PlanPatch
from ..dependencies import PageDep, PlanDirectoryDep, require_permission
from ..schemas import MessageResponse, PlanResponse, patch_from

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class CreatePlanRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    duration_days: int = Field(gt=0)
    features: Optional[dict[str, Any]] = None
    is_active: bool = True
    description: Optional[str] = None


class UpdatePlanRequest(BaseModel):
    """
    Only the fields sent are changed.

    price=0 and is_active=false are ordinary values and are applied.
    """
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    duration_days: Optional[int] = Field(None, gt=0)
    features: Optional[dict[str, Any]] = None
    is_active: Optional[bool] = None
    description: Optional[str] = None


class PlanListResponse(BaseModel):
    total: int
    page: int
    pages: int
    plans: list[PlanResponse]


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=PlanListResponse,
    summary="List plans",
    dependencies=[Depends(require_permission("plans.read"))],
)
def list_plans(
    directory: PlanDirectoryDep,
    page: PageDep,
    is_active: Optional[bool] = Query(None),
    search: Optional[str] = Query(None),
) -> PlanListResponse:
    result = directory.list(page, is_active=is_active, search=search)
    return PlanListResponse(
        total=result.total,
        page=result.page,
        pages=result.pages,
        plans=[PlanResponse.from_domain(plan) for plan in result.items],
    )


@router.post(
    "",
    response_model=PlanResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a plan",
    dependencies=[Depends(require_permission("plans.write"))],
)
def create_plan(request: CreatePlanRequest, directory: PlanDirectoryDep) -> PlanResponse:
    plan = directory.create(
        name=request.name,
        price=request.price,
        duration_days=request.duration_days,
        features=request.features,
        is_active=request.is_active,
        description=request.description,
    )
    return PlanResponse.from_domain(plan)


@router.get(
    "/{plan_id}",
    response_model=PlanResponse,
    summary="Get a plan",
    dependencies=[Depends(require_permission("plans.read"))],
)
def get_plan(plan_id: int, directory: PlanDirectoryDep) -> PlanResponse:
    return PlanResponse.from_domain(directory.get(plan_id))


@router.put(
    "/{plan_id}",
    response_model=PlanResponse,
    summary="Update a plan",
    dependencies=[Depends(require_permission("plans.write"))],
)
def update_plan(plan_id: int, request: UpdatePlanRequest, directory: PlanDirectoryDep) -> PlanResponse:
    plan = directory.update(plan_id, patch_from(request, PlanPatch))
    return PlanResponse.from_domain(plan)


@router.delete(
    "/{plan_id}",
    response_model=MessageResponse,
    summary="Delete a plan",
    description="Refused with 409 while any active subscription uses the plan.",
    dependencies=[Depends(require_permission("plans.delete"))],
)
def delete_plan(plan_id: int, directory: PlanDirectoryDep) -> MessageResponse:
    directory.delete(plan_id)
    return MessageResponse(message="Plan removed successfully")
