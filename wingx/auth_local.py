from datetime import datetime, timedelta, timezone
import jwt
from typing import Optional
from .core_settings import get_settings

def token_expiry(expires_hours: Optional[int] = None) -> datetime:
    settings = get_settings()
    hours = expires_hours if expires_hours is not None else settings.JWT_EXPIRATION_HOURS
    return datetime.now(timezone.utc) + timedelta(hours=hours)

def create_access_token(
    subject: str,
    role: str,
    session_id: str,
    expires_hours: Optional[int] = None,
    expires_at: Optional[datetime] = None,
) -> str:
    settings = get_settings()
    payload = {
        "sub": subject,
        "role": role,
        "sid": session_id,
        "iat": datetime.now(timezone.utc),
        "exp": expires_at or token_expiry(expires_hours),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALG)

def decode_access_token(token: str) -> Optional[dict]:
    settings = get_settings()
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALG])
    except jwt.PyJWTError:
        return None
