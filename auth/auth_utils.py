import logging
from datetime import datetime, timezone
from typing import Optional, Dict, Any
from jose import JWTError, jwt

from utils.config import AppConfig

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"


class AuthUtils:
    """Verifies access tokens issued by the hosted auth service"""

    @staticmethod
    def verify_token(token: str) -> Optional[Dict[str, Any]]:
        try:
            payload = jwt.decode(
                token,
                AppConfig.SUPABASE_JWT_SECRET,
                algorithms=[ALGORITHM],
                audience=AppConfig.SUPABASE_JWT_AUDIENCE,
            )
            return payload
        except JWTError as e:
            logger.warning(f"JWT verification failed: {e}")
            return None

    @staticmethod
    def is_token_expired(token_payload: Dict[str, Any]) -> bool:
        exp = token_payload.get("exp")
        if not exp:
            return True

        try:
            exp_datetime = datetime.fromtimestamp(exp, tz=timezone.utc)
            return datetime.now(timezone.utc) > exp_datetime
        except (ValueError, TypeError):
            return True


def validate_auth_config():
    issues = []

    if not AppConfig.SUPABASE_JWT_SECRET:
        issues.append("SUPABASE_JWT_SECRET is not set - every authenticated request will be rejected")
    elif len(AppConfig.SUPABASE_JWT_SECRET) < 32:
        issues.append("SUPABASE_JWT_SECRET looks too short for the project's JWT secret")

    return issues
