import logging
from typing import Optional, Annotated
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from auth.auth_utils import AuthUtils
from models.auth_models import UserSession

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)

class AuthenticationError(HTTPException):
    def __init__(self, detail: str = "Authentication failed"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )

async def get_token_payload(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)]
) -> Optional[dict]:
    if not credentials:
        return None

    payload = AuthUtils.verify_token(credentials.credentials)

    if not payload:
        raise AuthenticationError("Invalid or expired token")

    if AuthUtils.is_token_expired(payload):
        raise AuthenticationError("Token has expired")

    return payload

async def get_current_user(
    payload: Annotated[Optional[dict], Depends(get_token_payload)]
) -> UserSession:
    if not payload:
        raise AuthenticationError("Authentication required")

    user_id = payload.get("sub")
    if not user_id:
        raise AuthenticationError("Invalid token: missing user ID")

    metadata = payload.get("user_metadata") or {}
    return UserSession(
        user_id=user_id,
        email=payload.get("email"),
        full_name=metadata.get("full_name"),
    )

CurrentUser = Annotated[UserSession, Depends(get_current_user)]
