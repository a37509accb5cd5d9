"""
Custom exception classes and error handling.

Provides consistent error responses across the API. main.py renders every
APIException as {"ok": false, "error": detail, **extra}.
"""
from fastapi import HTTPException, status
from typing import Optional, Dict, Any


class APIException(HTTPException):
    """Base API exception with consistent structure."""
    
    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: Optional[str] = None,
        headers: Optional[Dict[str, Any]] = None,
        extra: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code
        self.extra = extra or {}


class BadRequestError(APIException):
    """Malformed or invalid client input."""
    
    def __init__(self, detail: str, extra: Optional[Dict[str, Any]] = None):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            error_code="BAD_REQUEST",
            extra=extra,
        )


class UnauthorizedError(APIException):
    """Authentication required."""
    
    def __init__(self, detail: str = "Unauthorized"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            error_code="UNAUTHORIZED",
            headers={"WWW-Authenticate": "Bearer"}
        )


class RateLimitedError(APIException):
    """Too many attempts; retry after the given number of seconds."""
    
    def __init__(self, detail: str, retry_after_s: int):
        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=detail,
            error_code="RATE_LIMITED",
            headers={"Retry-After": str(retry_after_s)},
        )


class UpstreamError(APIException):
    """Garmin Connect call failed for a reason other than auth or timeout."""
    
    def __init__(self, detail: str = "Garmin request failed"):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=detail,
            error_code="UPSTREAM_ERROR",
        )


class GatewayTimeoutError(APIException):
    """Garmin Connect did not answer within the call budget."""
    
    def __init__(self, detail: str = "Garmin API timed out. Please try again."):
        super().__init__(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            detail=detail,
            error_code="GATEWAY_TIMEOUT",
        )
