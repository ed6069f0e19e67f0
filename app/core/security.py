from datetime import datetime, timedelta, timezone

from jose import jwt

from app.core.config import settings

ALGO = "HS256"


def create_access_token(subject: str, email: str = "", full_name: str = "", expires_minutes: int | None = None) -> str:
    """Mint a token shaped like the auth provider's (used by tooling and tests)."""
    if expires_minutes is None:
        expires_minutes = settings.ACCESS_TOKEN_EXPIRE_MINUTES
    exp = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
    payload = {
        "sub": subject,
        "email": email,
        "user_metadata": {"full_name": full_name},
        "type": "access",
        "exp": exp,
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=ALGO)


def decode_token(token: str) -> dict:
    # Provider tokens carry aud="authenticated"; audience is not pinned here.
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGO], options={"verify_aud": False})
