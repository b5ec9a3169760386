import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
import structlog
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from ..config import settings
from ..db import get_db
from ..errors import AuthenticationError, PermissionDeniedError
from ..models.models import User


log = structlog.get_logger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
http_bearer = HTTPBearer(auto_error=False)

MANAGING_ROLES = ("admin", "manager")


@dataclass(frozen=True)
class Principal:
    """The authenticated caller, passed explicitly into every handler."""
    id: uuid.UUID
    username: str
    email: str
    role: str

    @property
    def is_manager(self) -> bool:
        return self.role in MANAGING_ROLES

    @classmethod
    def from_user(cls, user: User) -> "Principal":
        return cls(id=user.id, username=user.username, email=user.email, role=user.role)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return pwd_context.verify(plain, hashed)
    except (ValueError, TypeError):
        return False


def create_access_token(user_id: str, role: Optional[str] = None) -> str:
    now = datetime.now(tz=timezone.utc)
    payload = {
        "sub": str(user_id),
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=settings.jwt_ttl_seconds)).timestamp()),
        "jti": str(uuid.uuid4()),
        "role": role,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token expired")
    except jwt.InvalidTokenError:
        raise AuthenticationError("Not authorized to access this route")


def get_current_user(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
    db: Session = Depends(get_db),
) -> Principal:
    if creds is None:
        raise AuthenticationError("Not authorized to access this route")
    payload = decode_token(creds.credentials)
    try:
        user_uuid = uuid.UUID(str(payload.get("sub")))
    except ValueError:
        raise AuthenticationError("Not authorized to access this route")
    user = db.get(User, user_uuid)
    if user is None or not user.is_active:
        raise AuthenticationError("User not found or inactive")
    return Principal.from_user(user)


def require_roles(*roles: str):
    """Dependency factory: the caller must hold one of ``roles``."""
    def _dep(principal: Principal = Depends(get_current_user)) -> Principal:
        if principal.role not in roles:
            raise PermissionDeniedError(f"User role {principal.role} is not authorized to access this route")
        return principal

    return _dep


def ensure_owner_or_manager(principal: Principal, created_by: uuid.UUID, entity: str) -> None:
    if created_by != principal.id and not principal.is_manager:
        log.info("ownership_denied", entity=entity, user_id=str(principal.id))
        raise PermissionDeniedError(f"Not authorized to modify this {entity}")
