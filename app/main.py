"""FastAPI application entry point for the AI Credits Service."""

import asyncio
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from app.core.config import settings, validate_payment_config, validate_internal_api_key
from app.core.exceptions import ServiceException
from app.core.error_handlers import (validation_exception_handler, service_exception_handler,
                                   http_exception_handler, generic_exception_handler,
                                   database_exception_handler, sqlalchemy_exception_handler,
                                   credit_service_exception_handler)
from app.core.database import engine
from app.log.logging import logger, InterceptHandler
from app.core.db_exceptions import DatabaseException
from app.middleware.rate_limit import setup_rate_limiting
from app.middleware.request_id import setup_request_id_middleware
from app.middleware.security_headers import setup_security_headers
from app.middleware.timeout import setup_timeout_middleware
from app.core.versioning import APIVersion, include_versioned_router
from app.routers.healthcheck_router import router as healthcheck_router, set_shutdown_state
from app.routers.credit_router import router as credit_router
from app.routers.payment_router import router as payment_router
from app.services.credit.exceptions import CreditServiceError

# Route uvicorn and SQLAlchemy logging through loguru
logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)


def _log_validation(component: str, valid: bool, details: dict) -> None:
    if not valid:
        logger.warning(
            f"{component} configuration is invalid or incomplete",
            event_type="startup_warning",
            component=component,
            issues=details["issues"]
        )
    else:
        logger.info(
            f"{component} configuration validated successfully",
            event_type="startup_info",
            component=component,
            warnings=details.get("warnings", [])
        )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Validate configuration on startup; drain traffic and release the pool on shutdown."""
    logger.info("Starting application", status="starting", event_type="service_startup")

    payment_valid, payment_details = validate_payment_config()
    _log_validation("payments", payment_valid, payment_details)

    api_key_valid, api_key_details = validate_internal_api_key()
    _log_validation("internal_service_auth", api_key_valid, api_key_details)

    logger.info("Application startup complete", status="running", event_type="service_ready")

    yield

    logger.info("Initiating graceful shutdown", status="stopping", event_type="service_shutdown_start")

    # Readiness check starts failing so the load balancer stops routing here
    set_shutdown_state(True)

    if settings.SHUTDOWN_GRACE_SECONDS > 0:
        logger.info(
            f"Waiting {settings.SHUTDOWN_GRACE_SECONDS}s for load balancer to drain traffic",
            event_type="shutdown_drain",
            grace_seconds=settings.SHUTDOWN_GRACE_SECONDS
        )
        await asyncio.sleep(settings.SHUTDOWN_GRACE_SECONDS)

    await engine.dispose()
    logger.info("Application shutdown complete", status="stopped", event_type="service_shutdown_complete")


tags_metadata = [
    {
        "name": "payments",
        "description": "Credit pack catalog, Paystack checkout, payment verification and webhooks."
    },
    {
        "name": "credits",
        "description": "Credit balance, AI usage gate and purchase history."
    },
    {
        "name": "Health",
        "description": "Service health check endpoints."
    },
]

app = FastAPI(
    title="AI Credits Service API",
    description="""
## AI Credits Service

Tracks the AI generation credits of every user:

* **Daily allowance** - 3 free credits, refilled on the first use of each day
* **Credit packs** - purchased through Paystack, never expire
* **Exactly-once fulfillment** - each payment reference grants credits once,
  whether it is confirmed by the webhook, the verify endpoint, or both

### Authentication

User endpoints require a JWT Bearer token issued by the auth service:
```
Authorization: Bearer <access_token>
```

Internal service endpoints (the AI feature gate) require:
```
api-key: <internal_api_key>
```

The Paystack webhook is authenticated by its `X-Paystack-Signature` header.

### Request Tracking

All requests include a unique request ID for tracing:
- Sent in `X-Request-ID` response header
- Included in error responses for debugging
""",
    version="1.0.0",
    lifespan=lifespan,
    openapi_tags=tags_metadata,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

logger.info("Initializing application", event_type="app_init")

setup_security_headers(app)
logger.info("Security headers middleware configured", event_type="middleware_setup", middleware="security_headers")

setup_timeout_middleware(app, timeout_seconds=settings.REQUEST_TIMEOUT_SECONDS)
logger.info(
    "Timeout middleware configured",
    event_type="middleware_setup",
    middleware="timeout",
    timeout_seconds=settings.REQUEST_TIMEOUT_SECONDS
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=settings.cors_methods_list,
    allow_headers=settings.cors_headers_list,
    max_age=settings.CORS_MAX_AGE,
    expose_headers=["X-Request-ID"],
)
logger.info(
    "CORS configured",
    event_type="middleware_setup",
    origins=settings.cors_origins_list,
    methods=settings.cors_methods_list,
    credentials=settings.CORS_ALLOW_CREDENTIALS
)

setup_rate_limiting(app)

# Added last so it is the outermost middleware and every response carries the id
setup_request_id_middleware(app)

app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(CreditServiceError, credit_service_exception_handler)
app.add_exception_handler(DatabaseException, database_exception_handler)
app.add_exception_handler(ServiceException, service_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(SQLAlchemyError, sqlalchemy_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/")
async def root():
    """Root endpoint that returns service status"""
    logger.debug("Root endpoint accessed", event_type="endpoint_access", endpoint="root", method="GET")
    return {"message": "creditsService is up and running!"}


@app.get("/api/versions", tags=["API Info"])
async def get_api_versions():
    """Supported API versions and their base paths."""
    return {
        "current_version": APIVersion.latest().value,
        "supported_versions": [
            {
                "version": version.value,
                "status": "stable" if version == APIVersion.latest() else "supported",
                "base_path": f"/{version.value}"
            }
            for version in APIVersion.supported()
        ],
    }

# Routers carry their own /payments and /credits prefixes
include_versioned_router(app, payment_router, "", [APIVersion.V1])
include_versioned_router(app, credit_router, "", [APIVersion.V1])

# Unversioned mounts for existing clients and the Paystack dashboard URL
app.include_router(payment_router)
app.include_router(credit_router)

app.include_router(healthcheck_router)

logger.info(
    "API routes registered",
    event_type="routes_registered",
    api_version=APIVersion.latest().value,
    supported_versions=[v.value for v in APIVersion.supported()]
)
