"""Health check response schemas."""

from typing import Optional, Dict, Any, List
from enum import Enum
from pydantic import BaseModel, Field


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class ServiceStatus(str, Enum):
    UP = "up"
    DOWN = "down"
    DEGRADED = "degraded"


class ComponentHealth(BaseModel):
    """Health status of an individual component."""
    name: str = Field(..., description="Component name")
    status: ServiceStatus = Field(..., description="Component status")
    response_time_ms: Optional[float] = Field(None, description="Response time in milliseconds")
    message: Optional[str] = Field(None, description="Additional status message")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional details")


class HealthCheckResponse(BaseModel):
    """Overall service health with one entry per dependency."""
    status: HealthStatus = Field(..., description="Overall service health status")
    version: str = Field(..., description="Service version")
    uptime_seconds: Optional[float] = Field(None, description="Service uptime in seconds")
    check_time_ms: float = Field(..., description="Total health check duration in milliseconds")
    components: List[ComponentHealth] = Field(default_factory=list)

    model_config = {
        "json_schema_extra": {
            "example": {
                "status": "healthy",
                "version": "1.0.0",
                "uptime_seconds": 3600.5,
                "check_time_ms": 15.3,
                "components": [
                    {"name": "database", "status": "up", "response_time_ms": 5.2},
                    {"name": "paystack", "status": "up", "message": "Configured"}
                ]
            }
        }
    }


class ReadinessResponse(BaseModel):
    """Kubernetes-style readiness check response."""
    ready: bool = Field(..., description="Whether the service is ready to accept traffic")
    checks: Dict[str, bool] = Field(default_factory=dict, description="Individual readiness checks")


class LivenessResponse(BaseModel):
    """Kubernetes-style liveness check response."""
    alive: bool = Field(..., description="Whether the service is alive")
    uptime_seconds: Optional[float] = Field(None, description="Service uptime in seconds")
