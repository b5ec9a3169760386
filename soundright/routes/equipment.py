import uuid
from datetime import datetime, timezone
from typing import List, Optional

import structlog
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..db import get_db
from ..errors import ConflictError, NotFoundError
from ..auth.security import Principal, get_current_user, require_roles
from ..models.models import CONDITION_STATUSES, DeliveryItem, Equipment, ProjectEquipment
from ..schemas.common import DataResponse, ListResponse, MessageResponse
from ..schemas.equipment import (
    ConditionStatus,
    EquipmentCreate,
    EquipmentUpdate,
    EquipmentResponse,
    EquipmentStats,
)
from ..services.allocation import equipment_in_use
from ..services.pagination import PageParams, apply_search, list_payload, page_params, paginate


router = APIRouter(prefix="/equipment", tags=["equipment"])
log = structlog.get_logger(__name__)


def _get_equipment(db: Session, equipment_id: uuid.UUID) -> Equipment:
    row = db.get(Equipment, equipment_id)
    if not row:
        raise NotFoundError("Equipment not found")
    return row


def _ensure_serial_free(db: Session, serial_number: Optional[str], exclude_id: Optional[uuid.UUID] = None) -> None:
    if not serial_number:
        return
    q = db.query(Equipment.id).filter(Equipment.serial_number == serial_number)
    if exclude_id:
        q = q.filter(Equipment.id != exclude_id)
    if q.first():
        raise ConflictError("Equipment with this serial number already exists")


# ---------- META ----------
@router.get("/meta/categories", response_model=DataResponse[List[str]])
def list_categories(db: Session = Depends(get_db), _: Principal = Depends(get_current_user)):
    rows = db.query(Equipment.category).distinct().order_by(Equipment.category).all()
    return {"success": True, "data": [r[0] for r in rows]}


@router.get("/meta/stats", response_model=DataResponse[EquipmentStats])
def equipment_stats(db: Session = Depends(get_db), _: Principal = Depends(get_current_user)):
    total = db.query(func.count(Equipment.id)).scalar() or 0
    available = db.query(func.count(Equipment.id)).filter(Equipment.is_available == True).scalar() or 0  # noqa: E712
    by_condition = dict(
        db.query(Equipment.condition_status, func.count(Equipment.id)).group_by(Equipment.condition_status).all()
    )
    data = {"total": total, "available": available, "allocated": total - available}
    for condition in CONDITION_STATUSES:
        data[condition] = by_condition.get(condition, 0)
    return {"success": True, "data": data}


# ---------- CRUD ----------
@router.get("", response_model=ListResponse[EquipmentResponse])
def list_equipment(
    category: Optional[str] = None,
    condition: Optional[ConditionStatus] = None,
    available: Optional[bool] = None,
    search: Optional[str] = Query(None),
    params: PageParams = Depends(page_params),
    db: Session = Depends(get_db),
    _: Principal = Depends(get_current_user),
):
    q = db.query(Equipment)
    if category:
        q = q.filter(Equipment.category == category)
    if condition:
        q = q.filter(Equipment.condition_status == condition.value)
    if available is not None:
        q = q.filter(Equipment.is_available == available)
    q = apply_search(q, search, [Equipment.name, Equipment.brand, Equipment.model, Equipment.description])
    rows, total = paginate(q.order_by(Equipment.name.asc(), Equipment.created_at.asc()), params)
    return list_payload(rows, total, params)


@router.get("/{equipment_id}", response_model=DataResponse[EquipmentResponse])
def get_equipment(equipment_id: uuid.UUID, db: Session = Depends(get_db), _: Principal = Depends(get_current_user)):
    return {"success": True, "data": _get_equipment(db, equipment_id)}


@router.post("", response_model=DataResponse[EquipmentResponse], status_code=status.HTTP_201_CREATED)
def create_equipment(
    body: EquipmentCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_roles("admin", "manager")),
):
    _ensure_serial_free(db, body.serial_number)
    row = Equipment(**body.model_dump())
    db.add(row)
    db.commit()
    db.refresh(row)
    log.info("equipment_created", equipment_id=str(row.id), user_id=str(principal.id))
    return {"success": True, "data": row}


@router.put("/{equipment_id}", response_model=DataResponse[EquipmentResponse])
def update_equipment(
    equipment_id: uuid.UUID,
    body: EquipmentUpdate,
    db: Session = Depends(get_db),
    _: Principal = Depends(require_roles("admin", "manager")),
):
    row = _get_equipment(db, equipment_id)
    _ensure_serial_free(db, body.serial_number, exclude_id=row.id)
    for key, value in body.model_dump().items():
        setattr(row, key, value)
    row.updated_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(row)
    return {"success": True, "data": row}


@router.delete("/{equipment_id}", response_model=MessageResponse)
def delete_equipment(
    equipment_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_roles("admin")),
):
    row = _get_equipment(db, equipment_id)
    if equipment_in_use(db, row.id):
        raise ConflictError("Cannot delete equipment that is allocated to active projects")
    if db.query(DeliveryItem.id).filter(DeliveryItem.equipment_id == row.id).first():
        raise ConflictError("Cannot delete equipment that is listed on delivery notes")
    # Closed (or orphaned-open on finished projects) allocation history goes with the unit
    db.query(ProjectEquipment).filter(ProjectEquipment.equipment_id == row.id).delete(synchronize_session=False)
    db.delete(row)
    db.commit()
    log.info("equipment_deleted", equipment_id=str(equipment_id), user_id=str(principal.id))
    return {"success": True, "message": "Equipment deleted successfully"}
