import logging
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.core.errors import AuthError
from app.core.security import decode_token
from app.models.user import User
from app.services.geoip_service import GeoIPCache

logger = logging.getLogger(__name__)

bearer = HTTPBearer(auto_error=False)


def get_current_user(
    creds: HTTPAuthorizationCredentials | None = Depends(bearer),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the bearer token to a local profile, creating it on first sight."""
    if not creds:
        raise AuthError()
    try:
        payload = decode_token(creds.credentials)
    except JWTError as e:
        logger.info("Rejected token: %s", e)
        raise AuthError()
    user_id = payload.get("sub")
    if not user_id:
        raise AuthError()

    email = (payload.get("email") or "").lower()
    full_name = (payload.get("user_metadata") or {}).get("full_name") or ""
    user = db.get(User, user_id)
    if not user:
        user = User(id=user_id, email=email, full_name=full_name)
        db.add(user)
        db.commit()
    elif email and user.email != email:
        user.email = email
        db.commit()
    return user


def get_geoip_cache(request: Request) -> GeoIPCache:
    return request.app.state.geoip_cache
