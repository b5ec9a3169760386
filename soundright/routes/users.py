import uuid
from datetime import datetime, timezone
from typing import Optional

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..db import get_db
from ..errors import ConflictError, NotFoundError, ValidationError
from ..auth.security import Principal, require_roles
from ..models.models import DeliveryNote, Invoice, Project, Quote, User
from ..schemas.auth import Role, UserResponse, UserUpdate, UserStats
from ..schemas.common import DataResponse, ListResponse, MessageResponse
from ..services.pagination import PageParams, apply_search, list_payload, page_params, paginate


router = APIRouter(prefix="/users", tags=["users"])
log = structlog.get_logger(__name__)

_OWNED_MODELS = (Project, Quote, Invoice, DeliveryNote)


def _get_user(db: Session, user_id: uuid.UUID) -> User:
    row = db.get(User, user_id)
    if not row:
        raise NotFoundError("User not found")
    return row


@router.get("/meta/stats", response_model=DataResponse[UserStats])
def user_stats(db: Session = Depends(get_db), _: Principal = Depends(require_roles("admin", "manager"))):
    total = db.query(func.count(User.id)).scalar() or 0
    active = db.query(func.count(User.id)).filter(User.is_active == True).scalar() or 0  # noqa: E712
    by_role = dict(db.query(User.role, func.count(User.id)).group_by(User.role).all())
    return {
        "success": True,
        "data": {
            "total": total,
            "active": active,
            "inactive": total - active,
            "admins": by_role.get("admin", 0),
            "managers": by_role.get("manager", 0),
            "users": by_role.get("user", 0),
        },
    }


@router.get("", response_model=ListResponse[UserResponse])
def list_users(
    role: Optional[Role] = None,
    active: Optional[bool] = None,
    search: Optional[str] = None,
    params: PageParams = Depends(page_params),
    db: Session = Depends(get_db),
    _: Principal = Depends(require_roles("admin", "manager")),
):
    q = db.query(User)
    if role:
        q = q.filter(User.role == role)
    if active is not None:
        q = q.filter(User.is_active == active)
    q = apply_search(q, search, [User.username, User.email, User.first_name, User.last_name])
    rows, total = paginate(q.order_by(User.created_at.desc()), params)
    return list_payload(rows, total, params)


@router.get("/{user_id}", response_model=DataResponse[UserResponse])
def get_user(user_id: uuid.UUID, db: Session = Depends(get_db), _: Principal = Depends(require_roles("admin", "manager"))):
    return {"success": True, "data": _get_user(db, user_id)}


@router.put("/{user_id}", response_model=DataResponse[UserResponse])
def update_user(
    user_id: uuid.UUID,
    body: UserUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_roles("admin", "manager")),
):
    row = _get_user(db, user_id)
    changes = body.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationError("No fields to update")
    if "username" in changes and changes["username"] != row.username:
        if db.query(User.id).filter(User.username == changes["username"], User.id != row.id).first():
            raise ConflictError("Username already exists")
    if "email" in changes:
        changes["email"] = changes["email"].lower()
        if db.query(User.id).filter(User.email == changes["email"], User.id != row.id).first():
            raise ConflictError("Email already exists")
    for key, value in changes.items():
        if value is not None:
            setattr(row, key, value)
    row.updated_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(row)
    log.info("user_updated", user_id=str(row.id), fields=sorted(changes), by=str(principal.id))
    return {"success": True, "data": row}


@router.delete("/{user_id}", response_model=MessageResponse)
def delete_user(
    user_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_roles("admin")),
):
    row = _get_user(db, user_id)
    if row.id == principal.id:
        raise ValidationError("Cannot delete your own account")
    for model in _OWNED_MODELS:
        if db.query(model.id).filter(model.created_by == row.id).first():
            raise ConflictError("Cannot delete a user who owns records; deactivate the account instead")
    db.delete(row)
    db.commit()
    log.info("user_deleted", user_id=str(user_id), by=str(principal.id))
    return {"success": True, "message": "User deleted successfully"}
