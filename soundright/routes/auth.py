from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Depends, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..db import get_db
from ..errors import AuthenticationError, ConflictError
from ..models.models import User
from ..schemas.auth import (
    RegisterRequest,
    LoginRequest,
    UpdatePasswordRequest,
    TokenResponse,
    MeResponse,
)
from ..auth.security import (
    Principal,
    get_password_hash,
    verify_password,
    create_access_token,
    get_current_user,
)


router = APIRouter(prefix="/auth", tags=["auth"])
log = structlog.get_logger(__name__)


def _token_response(user: User) -> dict:
    return {"success": True, "token": create_access_token(str(user.id), user.role), "user": user}


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
def register(req: RegisterRequest, db: Session = Depends(get_db)):
    existing = (
        db.query(User)
        .filter(or_(User.email == req.email.lower(), User.username == req.username))
        .first()
    )
    if existing:
        raise ConflictError("User already exists with this email or username")
    user = User(
        username=req.username,
        email=req.email.lower(),
        password_hash=get_password_hash(req.password),
        first_name=req.first_name,
        last_name=req.last_name,
        role=req.role,
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    log.info("user_registered", user_id=str(user.id), role=user.role)
    return _token_response(user)


@router.post("/login", response_model=TokenResponse)
def login(req: LoginRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == req.email.lower(), User.is_active == True).first()  # noqa: E712
    if not user or not verify_password(req.password, user.password_hash):
        log.info("login_failed", email=req.email)
        raise AuthenticationError("Invalid credentials")
    user.last_login_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(user)
    return _token_response(user)


@router.get("/me", response_model=MeResponse)
def me(principal: Principal = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"success": True, "user": db.get(User, principal.id)}


@router.put("/updatepassword", response_model=TokenResponse)
def update_password(
    req: UpdatePasswordRequest,
    principal: Principal = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    user = db.get(User, principal.id)
    if not verify_password(req.current_password, user.password_hash):
        raise AuthenticationError("Current password is incorrect")
    user.password_hash = get_password_hash(req.new_password)
    user.updated_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(user)
    log.info("password_updated", user_id=str(user.id))
    return _token_response(user)
