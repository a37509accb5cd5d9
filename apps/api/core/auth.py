"""
API key authentication.

Every relay route except /health is called by a single trusted backend
holding a shared key, sent as "Authorization: Bearer <API_KEY>".
"""
import hmac
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional

from core.config import settings
from core.exceptions import UnauthorizedError

# Use auto_error=False to handle missing credentials manually and return 401 (not 403)
security = HTTPBearer(auto_error=False)


def require_api_key(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> None:
    """
    Reject the request unless the bearer token equals settings.API_KEY.

    With no API_KEY configured nothing is accepted.
    """
    expected = settings.API_KEY
    if not expected or not credentials:
        raise UnauthorizedError()
    if not hmac.compare_digest(credentials.credentials.encode(), expected.encode()):
        raise UnauthorizedError()
