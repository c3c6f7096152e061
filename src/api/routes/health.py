"""
Health check endpoints.

Health checks are used by:
- Load balancers to know if the service is alive
- Deployment systems to verify rollouts

We provide two endpoints:
- /health: Basic liveness check (is the process running?)
- /health/ready: Readiness check (can we serve traffic?)

Neither requires authentication.
"""

import logging
from typing import Any

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ... import __version__
from ...infrastructure.database.client import mask_url
from ..dependencies import DatabaseDep, SettingsDep

logger = logging.getLogger(__name__)

router = APIRouter()


class HealthResponse(BaseModel):
    """
    Health check response.

    Standardized format makes it easy for monitoring tools to parse.
    """
    status: str
    version: str
    details: dict[str, Any] = {}


class ReadinessCheck(BaseModel):
    """Individual readiness check result."""
    name: str
    status: str  # "ok" or "error"
    error: str | None = None


class ReadinessResponse(BaseModel):
    """Readiness check response with details."""
    status: str  # "ready" or "not_ready"
    version: str
    checks: list[ReadinessCheck]


@router.get(
    "",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Basic health check",
    description="Returns 200 if the service is running. Does not check the database.",
)
def health_check(settings: SettingsDep) -> HealthResponse:
    """
    Liveness check - is the process alive?

    Must stay fast and must not touch the database; orchestrators use it
    to decide whether to restart the process.
    """
    return HealthResponse(
        status="ok",
        version=__version__,
        details={
            "environment": settings.environment,
            "api_version": settings.api_version,
        }
    )


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    status_code=status.HTTP_200_OK,
    summary="Readiness check",
    description="Returns 200 if the service can handle traffic, 503 otherwise.",
    responses={
        503: {
            "description": "Service not ready",
            "model": ReadinessResponse,
        }
    },
)
def readiness_check(settings: SettingsDep, database: DatabaseDep):
    """
    Readiness check - can we serve traffic?

    Checks that the configuration is acceptable for the environment and
    that the database answers a trivial query. Returns 503 if any check
    fails, which tells load balancers not to route traffic here.
    """
    checks: list[ReadinessCheck] = []

    problems = settings.validate_required_fields()
    if problems:
        checks.append(ReadinessCheck(
            name="configuration",
            status="error",
            error=f"Invalid configuration: {', '.join(problems)}"
        ))
    else:
        checks.append(ReadinessCheck(name="configuration", status="ok"))

    if database.check_connection():
        checks.append(ReadinessCheck(name="database", status="ok"))
    else:
        checks.append(ReadinessCheck(
            name="database",
            status="error",
            error=f"Cannot reach {mask_url(database.url)}"
        ))

    all_ok = all(check.status == "ok" for check in checks)
    response = ReadinessResponse(
        status="ready" if all_ok else "not_ready",
        version=__version__,
        checks=checks,
    )

    if not all_ok:
        logger.warning(
            "Readiness check failed",
            extra={"checks": [c.model_dump() for c in checks if c.status != "ok"]}
        )
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=response.model_dump(),
        )

    return response
