"""
JWT token utilities for authentication.

Walk owners and walkers authenticate with bearer tokens issued here.
"""

from datetime import datetime, timedelta
from typing import Optional, Dict, Any
from jose import JWTError, jwt
from petwash.app.core.config import settings


def build_token_claims(user) -> Dict[str, Any]:
    """
    Claims carried by every access token.

    Example payload:
        {
            "sub": "dana",
            "user_id": 7,
            "role": "OWNER"
        }
    """
    return {
        "sub": user.username,
        "user_id": user.id,
        "role": user.role.value,
    }


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token.

    Args:
        data: Claims to encode (see build_token_claims)
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token string
    """
    to_encode = data.copy()
    expire = datetime.utcnow() + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Decode and validate a JWT access token.

    Returns:
        Decoded payload if valid, None otherwise
    """
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None
