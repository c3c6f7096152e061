"""
Coach endpoints.

Coaches are the paying side of the system. Sales can browse them;
only admins can change them.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, EmailStr, Field

from ...core.billing.patches import CoachPatch
from ..dependencies import CoachDirectoryDep, PageDep, require_permission
from ..schemas import CoachResponse, MessageResponse, SubscriptionResponse, patch_from

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class CreateCoachRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(min_length=1, max_length=72)
    phone: Optional[str] = Field(None, max_length=64)
    profile_photo_url: Optional[str] = None
    bio: Optional[str] = None
    specialization: Optional[str] = Field(None, max_length=255)
    status: Optional[str] = Field(None, description="active, inactive or suspended")


class UpdateCoachRequest(BaseModel):
    """Only the fields sent are changed. phone, photo, bio and specialization can be cleared with null."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=1, max_length=72)
    phone: Optional[str] = Field(None, max_length=64)
    profile_photo_url: Optional[str] = None
    bio: Optional[str] = None
    specialization: Optional[str] = Field(None, max_length=255)
    status: Optional[str] = None


class CoachListResponse(BaseModel):
    total: int
    page: int
    pages: int
    coaches: list[CoachResponse]


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=CoachListResponse,
    summary="List coaches",
    description="Newest first. search matches name or email.",
    dependencies=[Depends(require_permission("coaches.read"))],
)
def list_coaches(
    directory: CoachDirectoryDep,
    page: PageDep,
    status_filter: Optional[str] = Query(None, alias="status"),
    search: Optional[str] = Query(None),
) -> CoachListResponse:
    result = directory.list(page, status=status_filter, search=search)
    return CoachListResponse(
        total=result.total,
        page=result.page,
        pages=result.pages,
        coaches=[CoachResponse.from_domain(coach) for coach in result.items],
    )


@router.post(
    "",
    response_model=CoachResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a coach",
    dependencies=[Depends(require_permission("coaches.write"))],
)
def create_coach(request: CreateCoachRequest, directory: CoachDirectoryDep) -> CoachResponse:
    coach = directory.create(
        name=request.name,
        email=request.email,
        password=request.password,
        phone=request.phone,
        profile_photo_url=request.profile_photo_url,
        bio=request.bio,
        specialization=request.specialization,
        status=request.status,
    )
    return CoachResponse.from_domain(coach)


@router.get(
    "/{coach_id}",
    response_model=CoachResponse,
    summary="Get a coach",
    dependencies=[Depends(require_permission("coaches.read"))],
)
def get_coach(coach_id: int, directory: CoachDirectoryDep) -> CoachResponse:
    return CoachResponse.from_domain(directory.get(coach_id))


@router.put(
    "/{coach_id}",
    response_model=CoachResponse,
    summary="Update a coach",
    dependencies=[Depends(require_permission("coaches.write"))],
)
def update_coach(
    coach_id: int,
    request: UpdateCoachRequest,
    directory: CoachDirectoryDep,
) -> CoachResponse:
    coach = directory.update(coach_id, patch_from(request, CoachPatch))
    return CoachResponse.from_domain(coach)


@router.delete(
    "/{coach_id}",
    response_model=MessageResponse,
    summary="Delete a coach",
    description="Refused with 409 while the coach has an active subscription.",
    dependencies=[Depends(require_permission("coaches.delete"))],
)
def delete_coach(coach_id: int, directory: CoachDirectoryDep) -> MessageResponse:
    directory.delete(coach_id)
    return MessageResponse(message="Coach removed successfully")


@router.get(
    "/{coach_id}/subscriptions",
    response_model=list[SubscriptionResponse],
    summary="List a coach's subscriptions",
    description="Every subscription of the coach, latest start date first.",
    dependencies=[Depends(require_permission("coaches.read"))],
)
def list_coach_subscriptions(coach_id: int, directory: CoachDirectoryDep) -> list[SubscriptionResponse]:
    return [SubscriptionResponse.from_detail(detail) for detail in directory.subscriptions(coach_id)]
