import os
from typing import Dict, Any, Tuple, List
from pydantic_settings import BaseSettings, SettingsConfigDict
from app.log.logging import logger


def parse_comma_list(value: str) -> List[str]:
    """Parse comma-separated settings string into a list."""
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    """
    Configuration class for environment variables and service settings.
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )
    debug: bool = os.getenv("DEBUG", "False").lower() == "true"

    # Database settings
    database_url: str = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./credits.db")
    test_database_url: str = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite:///./test_credits.db")

    # User token verification (tokens are issued by the auth service)
    secret_key: str = os.getenv("SECRET_KEY", "your-secret-key-here")
    algorithm: str = os.getenv("ALGORITHM", "HS256")

    # Service-to-service authentication
    INTERNAL_API_KEY: str = os.getenv("INTERNAL_API_KEY", "")

    # Paystack settings
    PAYSTACK_SECRET_KEY: str = os.getenv("PAYSTACK_SECRET_KEY", "")  # API bearer token and webhook HMAC key
    PAYSTACK_BASE_URL: str = os.getenv("PAYSTACK_BASE_URL", "https://api.paystack.co")
    PAYSTACK_TIMEOUT_SECONDS: float = float(os.getenv("PAYSTACK_TIMEOUT_SECONDS", "10"))
    CLIENT_URL: str = os.getenv("CLIENT_URL", "http://localhost:3000")

    # Credits
    DAILY_FREE_CREDITS: int = int(os.getenv("DAILY_FREE_CREDITS", "3"))

    # CORS settings
    CORS_ORIGINS: str = os.getenv("CORS_ORIGINS", "http://localhost:3000")
    CORS_ALLOW_CREDENTIALS: bool = os.getenv("CORS_ALLOW_CREDENTIALS", "true").lower() == "true"
    CORS_ALLOW_METHODS: str = os.getenv("CORS_ALLOW_METHODS", "GET,POST,OPTIONS")
    CORS_ALLOW_HEADERS: str = os.getenv("CORS_ALLOW_HEADERS", "Authorization,Content-Type,X-API-Key")
    CORS_MAX_AGE: int = int(os.getenv("CORS_MAX_AGE", "600"))

    # Rate limiting settings
    RATE_LIMIT_ENABLED: bool = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"
    RATE_LIMIT_DEFAULT: str = os.getenv("RATE_LIMIT_DEFAULT", "100/minute")
    RATE_LIMIT_PAYMENTS: str = os.getenv("RATE_LIMIT_PAYMENTS", "10/minute")
    RATE_LIMIT_STORAGE_URI: str = os.getenv("RATE_LIMIT_STORAGE_URI", "memory://")

    # Request handling
    REQUEST_TIMEOUT_SECONDS: float = float(os.getenv("REQUEST_TIMEOUT_SECONDS", "30"))
    SHUTDOWN_GRACE_SECONDS: float = float(os.getenv("SHUTDOWN_GRACE_SECONDS", "5"))

    @property
    def payment_callback_url(self) -> str:
        """Page the payer is sent back to once checkout completes."""
        return f"{self.CLIENT_URL.rstrip('/')}/buy-credits"

    @property
    def cors_origins_list(self) -> List[str]:
        return parse_comma_list(self.CORS_ORIGINS)

    @property
    def cors_methods_list(self) -> List[str]:
        return parse_comma_list(self.CORS_ALLOW_METHODS)

    @property
    def cors_headers_list(self) -> List[str]:
        return parse_comma_list(self.CORS_ALLOW_HEADERS)

settings = Settings()


def validate_payment_config() -> Tuple[bool, Dict[str, Any]]:
    """
    Validate payment provider configuration and log problems.

    A missing secret key disables both charge initialization and webhook
    authentication, so it is reported as an issue rather than a warning.

    Returns:
        Tuple[bool, Dict[str, Any]]:
            - Boolean indicating if configuration is valid
            - Dictionary with validation details
    """
    valid = True
    issues = []
    warnings = []

    if not settings.PAYSTACK_SECRET_KEY:
        issue = "Paystack secret key not configured (PAYSTACK_SECRET_KEY)"
        logger.error(
            issue,
            event_type="config_error",
            setting="PAYSTACK_SECRET_KEY"
        )
        issues.append(issue)
        valid = False
    elif not settings.PAYSTACK_SECRET_KEY.startswith(("sk_test_", "sk_live_")):
        warning = "Paystack secret key has an unexpected format (PAYSTACK_SECRET_KEY)"
        logger.warning(
            warning,
            event_type="config_warning",
            setting="PAYSTACK_SECRET_KEY"
        )
        warnings.append(warning)

    if settings.PAYSTACK_TIMEOUT_SECONDS <= 0:
        issue = "Gateway timeout must be positive (PAYSTACK_TIMEOUT_SECONDS)"
        logger.error(
            issue,
            event_type="config_error",
            setting="PAYSTACK_TIMEOUT_SECONDS"
        )
        issues.append(issue)
        valid = False
    elif settings.PAYSTACK_TIMEOUT_SECONDS >= settings.REQUEST_TIMEOUT_SECONDS:
        warning = "Gateway timeout is not below the request timeout (PAYSTACK_TIMEOUT_SECONDS)"
        logger.warning(
            warning,
            event_type="config_warning",
            setting="PAYSTACK_TIMEOUT_SECONDS"
        )
        warnings.append(warning)

    if not settings.CLIENT_URL:
        warning = "Client URL not configured (CLIENT_URL)"
        logger.warning(
            warning,
            event_type="config_warning",
            setting="CLIENT_URL"
        )
        warnings.append(warning)

    return valid, {
        "valid": valid,
        "issues": issues,
        "warnings": warnings
    }


def validate_internal_api_key() -> Tuple[bool, Dict[str, Any]]:
    """
    Validate internal service API key configuration.

    Returns:
        Tuple[bool, Dict[str, Any]]:
            - Boolean indicating if configuration is valid
            - Dictionary with validation details
    """
    valid = True
    issues = []
    warnings = []

    if not settings.INTERNAL_API_KEY:
        issue = "Internal API key not configured (INTERNAL_API_KEY)"
        logger.error(
            issue,
            event_type="config_error",
            setting="INTERNAL_API_KEY"
        )
        issues.append(issue)
        valid = False
    elif len(settings.INTERNAL_API_KEY) < 32:
        warning = "Internal API key may be too short for security (INTERNAL_API_KEY)"
        logger.warning(
            warning,
            event_type="config_warning",
            setting="INTERNAL_API_KEY"
        )
        warnings.append(warning)

    return valid, {
        "valid": valid,
        "issues": issues,
        "warnings": warnings
    }
