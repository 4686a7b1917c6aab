from datetime import datetime, timedelta
from typing import Optional

from jose import jwt, JWTError

from core.config import settings


def create_access_token(user_id: str, expire_minutes: int = 60):
    """Issue a token in the identity provider's format (local development and tests)."""
    expire = datetime.utcnow() + timedelta(minutes=expire_minutes)
    payload = {"sub": str(user_id), "exp": expire}
    if settings.JWT_AUDIENCE:
        payload["aud"] = settings.JWT_AUDIENCE
    if settings.JWT_ISSUER:
        payload["iss"] = settings.JWT_ISSUER
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def verify_identity_token(token: str) -> Optional[str]:
    """Return the user id carried by a valid identity token, None otherwise."""
    options = {"verify_aud": bool(settings.JWT_AUDIENCE)}
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            audience=settings.JWT_AUDIENCE,
            issuer=settings.JWT_ISSUER,
            options=options,
        )
    except JWTError:
        return None

    user_id = payload.get("sub") or payload.get("user_id") or payload.get("uid")
    if not user_id:
        return None
    return str(user_id)
