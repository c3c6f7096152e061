"""
Admin account endpoints.

Login is the only unauthenticated route in the API. Registering new
admins requires an existing admin; the very first account is created
with scripts/create_admin.py.
"""

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, EmailStr, Field

from ...core.billing.models import Admin
from ...core.billing.patches import AdminPatch
from ..dependencies import AdminDirectoryDep, TokenServiceDep, require_permission
from ..schemas import AdminResponse, MessageResponse, patch_from

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class RegisterAdminRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(min_length=1, max_length=72)
    role: Optional[str] = Field(None, description="admin, finance or sales. Defaults to admin.")


class LoginRequest(BaseModel):
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)


class UpdateAdminRequest(BaseModel):
    """Only the fields sent are changed."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    role: Optional[str] = None
    password: Optional[str] = Field(None, min_length=1, max_length=72)


class AuthResponse(BaseModel):
    """The admin plus a Bearer token for subsequent requests."""
    id: int
    name: str
    email: str
    role: str
    token: str


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new admin",
)
def register_admin(
    request: RegisterAdminRequest,
    directory: AdminDirectoryDep,
    tokens: TokenServiceDep,
    actor: Annotated[Admin, Depends(require_permission("admins.register"))],
) -> AuthResponse:
    admin = directory.register(
        name=request.name,
        email=request.email,
        password=request.password,
        role=request.role,
    )
    logger.info("Admin registered via API", extra={"admin_id": admin.id, "actor_id": actor.id})
    return AuthResponse(
        id=admin.id,
        name=admin.name,
        email=admin.email,
        role=admin.role.value,
        token=tokens.create_access_token(admin.id, admin.role.value),
    )


@router.post(
    "/login",
    response_model=AuthResponse,
    summary="Log in",
    description="Exchange email and password for a Bearer token valid for 30 days.",
)
def login(
    request: LoginRequest,
    directory: AdminDirectoryDep,
    tokens: TokenServiceDep,
) -> AuthResponse:
    admin = directory.authenticate(request.email, request.password)
    return AuthResponse(
        id=admin.id,
        name=admin.name,
        email=admin.email,
        role=admin.role.value,
        token=tokens.create_access_token(admin.id, admin.role.value),
    )


@router.get(
    "",
    response_model=list[AdminResponse],
    summary="List admins",
    dependencies=[Depends(require_permission("admins.read"))],
)
def list_admins(directory: AdminDirectoryDep) -> list[AdminResponse]:
    return [AdminResponse.from_domain(admin) for admin in directory.list()]


@router.get(
    "/{admin_id}",
    response_model=AdminResponse,
    summary="Get an admin",
    dependencies=[Depends(require_permission("admins.read"))],
)
def get_admin(admin_id: int, directory: AdminDirectoryDep) -> AdminResponse:
    return AdminResponse.from_domain(directory.get(admin_id))


@router.put(
    "/{admin_id}",
    response_model=AdminResponse,
    summary="Update an admin",
    description="An admin can't change their own role.",
)
def update_admin(
    admin_id: int,
    request: UpdateAdminRequest,
    directory: AdminDirectoryDep,
    actor: Annotated[Admin, Depends(require_permission("admins.write"))],
) -> AdminResponse:
    admin = directory.update(actor, admin_id, patch_from(request, AdminPatch))
    return AdminResponse.from_domain(admin)


@router.delete(
    "/{admin_id}",
    response_model=MessageResponse,
    summary="Delete an admin",
    description="An admin can't delete their own account.",
)
def delete_admin(
    admin_id: int,
    directory: AdminDirectoryDep,
    actor: Annotated[Admin, Depends(require_permission("admins.delete"))],
) -> MessageResponse:
    directory.delete(actor, admin_id)
    return MessageResponse(message="Admin removed successfully")
