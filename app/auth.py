"""Session cookies, password hashing and the current-user dependencies."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Cookie, Depends, Response
from sqlalchemy import or_
from sqlalchemy.orm import Session
from werkzeug.security import check_password_hash, generate_password_hash

import models_sqlalchemy as models
from database import get_db
from errors import Forbidden, InvalidCredentials, Unauthenticated
from settings import Settings, get_settings

logger = logging.getLogger(__name__)

TOKEN_COOKIE = "token"
JWT_ALGORITHM = "HS256"


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(user: models.User, password: str) -> bool:
    return check_password_hash(user.hashed_password, password)


def create_session_token(user: models.User, settings: Settings) -> str:
    payload = {
        "data": {"id": user.id, "email": user.email, "username": user.username},
        "exp": datetime.now(timezone.utc) + timedelta(seconds=settings.jwt_expires_in),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=JWT_ALGORITHM)


def decode_session_token(token: str, settings: Settings) -> Optional[dict]:
    """Return the token's user data, or None if it is forged, malformed or expired."""
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[JWT_ALGORITHM])
    except jwt.InvalidTokenError:
        return None
    data = payload.get("data")
    return data if isinstance(data, dict) else None


def set_token_cookie(response: Response, user: models.User, settings: Settings) -> str:
    token = create_session_token(user, settings)
    response.set_cookie(
        TOKEN_COOKIE,
        token,
        max_age=settings.jwt_expires_in,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
    )
    return token


def clear_token_cookie(response: Response) -> None:
    response.delete_cookie(TOKEN_COOKIE)


def authenticate(db: Session, credential: str, password: str) -> models.User:
    user = db.query(models.User).filter(
        or_(models.User.username == credential, models.User.email == credential)
    ).first()
    if not user or not verify_password(user, password):
        logger.warning("Failed login for %r", credential)
        raise InvalidCredentials(errors={"credential": "The provided credentials were invalid."})
    return user


def get_current_user(
    token: Optional[str] = Cookie(None),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> Optional[models.User]:
    if not token:
        return None
    data = decode_session_token(token, settings)
    if data is None or "id" not in data:
        return None
    return db.get(models.User, data["id"])


def require_auth(user: Optional[models.User] = Depends(get_current_user)) -> models.User:
    if user is None:
        raise Unauthenticated()
    return user


def require_owner(owner_id: int, user: models.User,
                  message: str = "Current user is prohibited from accessing the selected data") -> None:
    if owner_id != user.id:
        logger.warning("User %s refused access to resource owned by %s", user.id, owner_id)
        raise Forbidden(message)
