import time

from fastapi import APIRouter, HTTPException

from app.core.config import settings
from app.core.database import check_db_health, get_connection_state
from app.log.logging import logger
from app.schemas.health_schemas import (
    HealthCheckResponse, HealthStatus, ComponentHealth, ServiceStatus,
    ReadinessResponse, LivenessResponse
)

SERVICE_VERSION = "1.0.0"

# Flipped by the lifespan handler so the readiness check drains traffic
_is_shutting_down = False


def set_shutdown_state(shutting_down: bool):
    global _is_shutting_down
    _is_shutting_down = shutting_down


router = APIRouter(tags=["Health"])

_service_start_time = time.time()


@router.get(
    "/healthcheck",
    response_model=HealthCheckResponse,
    description="Health of the service and its dependencies",
    responses={
        200: {"description": "Service is healthy or degraded"},
        503: {"description": "Service is unhealthy"}
    }
)
async def health_check():
    """
    Database connectivity plus payment gateway configuration.

    The gateway itself is not called so health checks cannot eat into the
    provider's rate limits.
    """
    start_time = time.time()
    components = []
    overall_status = HealthStatus.HEALTHY

    db_start = time.time()
    db_health = await check_db_health()
    db_time = round((time.time() - db_start) * 1000, 2)

    if db_health.get("status") == "healthy":
        db_status = ServiceStatus.UP
    elif db_health.get("status") == "degraded":
        db_status = ServiceStatus.DEGRADED
        overall_status = HealthStatus.DEGRADED
    else:
        db_status = ServiceStatus.DOWN
        overall_status = HealthStatus.UNHEALTHY

    components.append(ComponentHealth(
        name="database",
        status=db_status,
        response_time_ms=db_time,
        message="Connection successful" if db_status == ServiceStatus.UP else db_health.get("error"),
        details=get_connection_state()
    ))

    paystack_configured = bool(settings.PAYSTACK_SECRET_KEY)
    components.append(ComponentHealth(
        name="paystack",
        status=ServiceStatus.UP if paystack_configured else ServiceStatus.DEGRADED,
        message="Configured" if paystack_configured else "Not configured"
    ))
    if not paystack_configured and overall_status == HealthStatus.HEALTHY:
        overall_status = HealthStatus.DEGRADED

    response = HealthCheckResponse(
        status=overall_status,
        version=SERVICE_VERSION,
        uptime_seconds=round(time.time() - _service_start_time, 2),
        check_time_ms=round((time.time() - start_time) * 1000, 2),
        components=components
    )

    if overall_status == HealthStatus.UNHEALTHY:
        logger.warning(
            "Health check failed",
            event_type="healthcheck_failed",
            components=[c.model_dump(mode="json") for c in components]
        )
        raise HTTPException(status_code=503, detail="Service is unhealthy")

    return response


@router.get(
    "/healthcheck/db",
    description="Database health check with connection tracking details",
)
async def db_health_check():
    start_time = time.time()
    db_health = await check_db_health()
    check_time_ms = round((time.time() - start_time) * 1000, 2)
    connection_state = get_connection_state()

    if db_health.get("status") == "healthy":
        logger.info(
            "Database health check passed",
            event_type="db_healthcheck_success",
            response_time_ms=db_health.get("response_time_ms", 0),
            check_time_ms=check_time_ms
        )
    else:
        logger.warning(
            "Database health check returned non-healthy status",
            event_type="db_healthcheck_degraded",
            status=db_health.get("status"),
            error=db_health.get("error", "Unknown error"),
            check_time_ms=check_time_ms
        )

    return {
        **db_health,
        "check_time_ms": check_time_ms,
        "service_state": "degraded" if connection_state["in_degraded_mode"] else "normal",
        "recent_connection_errors": connection_state["recent_connection_errors"],
    }


@router.get(
    "/healthcheck/ready",
    response_model=ReadinessResponse,
    summary="Kubernetes readiness check",
    responses={503: {"description": "Service is not ready"}}
)
async def readiness_check():
    """Ready when not shutting down, the database answers and the secrets are set."""
    checks = {
        "not_shutting_down": not _is_shutting_down,
    }

    db_health = await check_db_health()
    checks["database"] = db_health.get("status") == "healthy"
    checks["configuration"] = bool(settings.secret_key and settings.database_url)

    if not all(checks.values()):
        logger.warning(
            "Readiness check failed",
            event_type="readiness_check_failed",
            checks=checks
        )
        raise HTTPException(status_code=503, detail="Service is not ready")

    return ReadinessResponse(ready=True, checks=checks)


@router.get(
    "/healthcheck/live",
    response_model=LivenessResponse,
    summary="Kubernetes liveness check",
)
async def liveness_check():
    """Process is up; dependencies are not checked."""
    uptime = round(time.time() - _service_start_time, 2)
    return LivenessResponse(alive=True, uptime_seconds=uptime)
