"""Authentication: FastAPI dependencies resolving the calling Actor.

Public interface:
    ``require_actor``: returns the Actor or raises 401.

When ``auth_enabled`` is False the dependency returns an anonymous
administrator so the development workflow is unbroken.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .config import Settings
from .token_factory import decode_token
from ..database import get_db
from ..exceptions import AuthenticationError
from ..models.enums import Role

logger = logging.getLogger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Actor:
    """The identity a tree operation runs as: ``{id, role}``."""

    id: str
    role: Role
    is_active: bool = True


ANONYMOUS_ADMIN = Actor(id="anonymous", role=Role.ADMINISTRATOR)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def require_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
    settings: Settings = Depends(get_settings),
    db: Session = Depends(get_db),
) -> Actor:
    """Require a valid bearer token and return the caller's Actor."""
    if not settings.auth_enabled:
        return ANONYMOUS_ADMIN

    if credentials is None:
        raise AuthenticationError("Missing authentication token")

    return _resolve(credentials.credentials, settings, db)


def _resolve(token: str, settings: Settings, db: Session) -> Actor:
    """Load the actor's role from the users table given a bearer token."""
    from ..models.user import User

    payload = decode_token(token, settings.jwt_secret_key, settings.jwt_algorithm)
    if payload is None:
        raise AuthenticationError("Invalid or expired token")

    user = db.query(User).filter(User.user_id == payload.sub).first()
    if user is None:
        raise AuthenticationError("User not found")
    if not user.is_active:
        raise AuthenticationError("Account is deactivated")

    return Actor(id=user.user_id, role=user.role, is_active=user.is_active)
