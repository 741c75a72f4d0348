"""API versioning support for the credits service.

Routers are mounted under URL path prefixes (``/v1/credits/...``) and, for
existing clients, once more without a prefix.

Usage:
    include_versioned_router(app, payment_router, "payments", [APIVersion.V1])
"""

from enum import Enum
from typing import List, Optional
from fastapi import APIRouter, FastAPI

from app.log.logging import logger


class APIVersion(str, Enum):
    """Supported API versions.

    Version History:
    - V1 (1.0): Initial stable API release
    """
    V1 = "v1"

    @classmethod
    def latest(cls) -> "APIVersion":
        return cls.V1

    @classmethod
    def supported(cls) -> List["APIVersion"]:
        return list(cls)


def include_versioned_router(
    app: FastAPI,
    router: APIRouter,
    prefix: str,
    versions: Optional[List[APIVersion]] = None,
    **kwargs
) -> None:
    """
    Include a router once per API version.

    Args:
        app: The FastAPI application
        router: The router to include; its own prefix is appended
        prefix: The version-relative prefix, empty when the router carries its own
        versions: List of versions to include (defaults to all supported)
        **kwargs: Additional arguments passed to include_router
    """
    if versions is None:
        versions = APIVersion.supported()

    for version in versions:
        versioned_prefix = f"/{version.value}"
        if prefix.strip("/"):
            versioned_prefix = f"{versioned_prefix}/{prefix.strip('/')}"
        app.include_router(router, prefix=versioned_prefix, **kwargs)
        logger.debug(
            "Registered versioned router",
            event_type="router_registered",
            version=version.value,
            prefix=versioned_prefix
        )
