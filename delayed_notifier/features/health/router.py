"""Health check endpoints.

- /health/live   The process is up and serving requests
- /health/ready  Redis answers and, when the pipeline runs, RabbitMQ is connected
"""

from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Response, status
from pydantic import BaseModel, Field

from delayed_notifier.features.notifications.dependencies import (  # noqa: TC001
    NotificationRuntimeDep,
)

router = APIRouter(prefix="/health", tags=["health"])


class LivenessResponse(BaseModel):
    status: Literal["alive"] = "alive"


class ReadinessResponse(BaseModel):
    ready: bool
    checks: dict[str, bool] = Field(default_factory=dict)


@router.get(
    "/live",
    response_model=LivenessResponse,
    summary="Liveness probe",
)
async def liveness_check() -> LivenessResponse:
    return LivenessResponse()


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    status_code=status.HTTP_200_OK,
    responses={503: {"description": "A backing service is unavailable"}},
    summary="Readiness probe",
    description="Returns 200 when every backing service is reachable, 503 otherwise",
)
async def readiness_check(response: Response, runtime: NotificationRuntimeDep) -> ReadinessResponse:
    checks = await runtime.health()
    if not runtime.pipeline_running:
        # API-only replicas never connect to RabbitMQ
        checks.pop("rabbitmq", None)

    ready = all(checks.values())
    if not ready:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return ReadinessResponse(ready=ready, checks=checks)
