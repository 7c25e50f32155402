# /botengine/utils/dependencies.py

import secrets
import structlog
from jose import JWTError, jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from botengine.config.settings import settings
from botengine.utils.request_utils import get_remote_address

# Setup HTTPBearer for token extraction
security = HTTPBearer()
log = structlog.get_logger(__name__)


def _api_key_matches(request: Request, expected: str) -> bool:
    provided_key = request.headers.get("X-API-KEY")
    return bool(provided_key and secrets.compare_digest(provided_key, expected))


async def verify_intercept_api_key(request: Request):
    """Guards the intercept endpoint when INTERCEPT_API_KEY is configured."""
    if settings.intercept_api_key and not _api_key_matches(request, settings.intercept_api_key):
        log.warning("Rejected intercept call with invalid API key", client_ip=get_remote_address(request))
        raise HTTPException(status_code=403, detail="Invalid or missing API key")


async def verify_metrics_access(request: Request):
    if settings.api_key and not _api_key_matches(request, settings.api_key):
        raise HTTPException(status_code=403, detail="Invalid or missing API key")


def get_tenant_id(credentials: HTTPAuthorizationCredentials = Depends(security)) -> str:
    """
    Extract and validate tenant_id from JWT token.

    Args:
        credentials: HTTP Authorization credentials containing the Bearer token

    Returns:
        tenant_id string from the token payload

    Raises:
        HTTPException 401: If token is invalid or expired
        HTTPException 403: If tenant_id is missing in the token payload
    """
    token = credentials.credentials

    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm]
        )
    except JWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Token verification failed: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"}
        )

    tenant_id = payload.get("tenant_id")
    if isinstance(tenant_id, str):
        tenant_id = tenant_id.strip()

    if not tenant_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Tenant context missing"
        )

    return tenant_id
