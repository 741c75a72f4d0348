"""Authentication dependencies for user-facing and internal routes."""

import hmac
import re
from dataclasses import dataclass
from typing import Optional, Dict, Any

from fastapi import Depends, HTTPException, status, Request, Header
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt

from app.core.config import settings
from app.core.exceptions import ServiceException
from app.log.logging import logger
from app.schemas.credit_schemas import USER_ID_PATTERN

# Tokens are issued by the auth service; this service only verifies them.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/token")


@dataclass(frozen=True)
class AuthenticatedUser:
    user_id: str
    email: Optional[str] = None


def decode_access_token(token: str) -> Dict[str, Any]:
    return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])


async def get_current_user(token: str = Depends(oauth2_scheme)) -> AuthenticatedUser:
    """
    Resolve the caller from the JWT bearer token.

    The ``sub`` claim is the user id; the optional ``email`` claim is used as
    the payer email when a checkout is opened.

    Raises:
        ServiceException: If the token is invalid, expired or has no subject
    """
    credentials_exception = ServiceException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
        context={"error_type": "AuthError"}
    )
    try:
        payload = decode_access_token(token)
    except jwt.ExpiredSignatureError:
        raise ServiceException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session expired. Please log in again.",
            headers={"WWW-Authenticate": "Bearer"},
            context={"error_type": "TokenExpired"}
        )
    except JWTError as e:
        logger.debug(
            "JWT validation error",
            event_type="auth_debug",
            error_details=str(e)
        )
        raise credentials_exception

    subject = payload.get("sub")
    if subject is None or not re.match(USER_ID_PATTERN, str(subject)):
        raise credentials_exception

    email = payload.get("email")
    return AuthenticatedUser(user_id=str(subject), email=email if isinstance(email, str) else None)


async def get_internal_service(
    request: Request,
    api_key: str = Header(..., description="API key for service-to-service communication")
) -> str:
    """
    Authenticate internal service based on API key.

    This dependency should be used for endpoints that are only accessible
    to other microservices, such as the AI feature gate.

    Raises:
        HTTPException: If the key is not configured (500) or does not match (403)
    """
    if not settings.INTERNAL_API_KEY:
        logger.error(
            "INTERNAL_API_KEY not configured in settings",
            event_type="config_error",
            endpoint=request.url.path
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal service authentication not configured"
        )

    if not hmac.compare_digest(api_key.encode("utf-8"), settings.INTERNAL_API_KEY.encode("utf-8")):
        logger.warning(
            "Invalid API key attempt for internal service",
            event_type="security_violation",
            endpoint=request.url.path
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid API key for internal service access"
        )

    return "internal_service"
