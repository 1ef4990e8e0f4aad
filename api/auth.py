"""
Identity extraction and the identity cookie for the FastAPI API.
"""

from datetime import datetime
from typing import Optional

import structlog
from fastapi import Depends, Request, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from api.config import config as api_config
from bookshelf.exceptions import InvalidTokenError
from bookshelf.models import Identity, utcnow
from bookshelf.tokens import TokenService

logger = structlog.get_logger(__name__)

# Bearer header is the fallback for clients without cookies
security = HTTPBearer(auto_error=False)

# Set during application startup
token_service: Optional[TokenService] = None


def init_token_service(service: Optional[TokenService]) -> None:
    """Install the token service used by ``get_current_identity``."""
    global token_service
    token_service = service


def extract_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials]
) -> Optional[str]:
    """The identity cookie if present, otherwise the bearer token."""
    cookie_token = request.cookies.get(api_config.cookie_name)
    if cookie_token:
        return cookie_token
    if credentials and credentials.credentials:
        return credentials.credentials
    return None


async def get_current_identity(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Identity:
    """
    Dependency that requires a valid identity token.

    Raises:
        InvalidTokenError: no token, or a token that fails validation
    """
    token = extract_token(request, credentials)
    if not token:
        raise InvalidTokenError("Authentication required")

    if token_service is None:
        logger.error("Token service not initialised")
        raise RuntimeError("Token service not available")

    return token_service.validate(token)


def set_auth_cookie(response: Response, token: str, expires_at: datetime) -> None:
    """Attach the token as an HTTP-only, same-site cookie scoped to the API."""
    max_age = max(0, int((expires_at - utcnow()).total_seconds()))
    response.set_cookie(
        key=api_config.cookie_name,
        value=token,
        max_age=max_age,
        expires=expires_at,
        path=api_config.cookie_path,
        secure=api_config.cookie_secure,
        httponly=True,
        samesite="strict",
    )


def clear_auth_cookie(response: Response) -> None:
    response.delete_cookie(
        key=api_config.cookie_name,
        path=api_config.cookie_path,
        secure=api_config.cookie_secure,
        httponly=True,
        samesite="strict",
    )
