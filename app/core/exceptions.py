"""HTTP-level exceptions shared across routers and dependencies."""

from typing import Optional, Dict, Any

from fastapi import HTTPException


class ServiceException(HTTPException):
    """HTTPException carrying extra logging context for the error handlers."""

    def __init__(
        self,
        detail: Any,
        status_code: int = 401,
        headers: Optional[Dict[str, Any]] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.context = context or {}
        self.error_detail = detail
