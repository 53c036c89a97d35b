"""
Bearer token helpers.

The lending service does not log members in; it only verifies the HS256
access tokens it is handed and reads the member id from the ``sub`` claim.
``create_member_token`` exists for ``manage.py issue-token`` and the tests.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt

from lending.core.config import get_jwt_expiration_minutes, get_jwt_secret_key

JWT_ALGORITHM = "HS256"
ACCESS_TOKEN_TYPE = "access"


def create_access_token(
    claims: Dict[str, Any], expires_delta: Optional[timedelta] = None
) -> str:
    issued_at = datetime.now(timezone.utc)
    lifetime = expires_delta or timedelta(minutes=get_jwt_expiration_minutes())
    payload = {**claims, "iat": issued_at, "exp": issued_at + lifetime}
    return jwt.encode(payload, get_jwt_secret_key(), algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """Return the verified claims, or None for a bad signature or expired token."""
    try:
        return jwt.decode(token, get_jwt_secret_key(), algorithms=[JWT_ALGORITHM])
    except jwt.PyJWTError:
        return None


def create_member_token(member_id: str, email: str, role: str = "MEMBER") -> str:
    return create_access_token(
        {"sub": str(member_id), "email": email, "role": role, "type": ACCESS_TOKEN_TYPE}
    )


def get_member_id_from_token(token: str) -> Optional[str]:
    claims = decode_access_token(token)
    if not claims or claims.get("type", ACCESS_TOKEN_TYPE) != ACCESS_TOKEN_TYPE:
        return None
    return str(claims["sub"]) if claims.get("sub") else None
