import uuid
from datetime import datetime, timezone
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session, selectinload

from ..db import get_db
from ..errors import NotFoundError
from ..auth.security import Principal, ensure_owner_or_manager, get_current_user, require_roles
from ..models.models import DeliveryItem, DeliveryNote, Equipment, Project
from ..schemas.common import DataResponse, ListResponse, MessageResponse
from ..schemas.delivery import (
    DeliveryStatus,
    DeliveryNoteCreate,
    DeliveryNoteUpdate,
    DeliveryNoteResponse,
    DeliveryNoteDetail,
    DeliveryItemCreate,
    DeliveryItemResponse,
)
from ..services.numbering import DELIVERY_PREFIX, next_document_number
from ..services.pagination import PageParams, apply_search, list_payload, page_params, paginate


router = APIRouter(prefix="/delivery", tags=["delivery"])
log = structlog.get_logger(__name__)


def _get_note(db: Session, note_id: uuid.UUID) -> DeliveryNote:
    row = db.get(DeliveryNote, note_id)
    if not row:
        raise NotFoundError("Delivery note not found")
    return row


def _ensure_project(db: Session, project_id: uuid.UUID) -> None:
    if db.get(Project, project_id) is None:
        raise NotFoundError("Project not found")


@router.get("", response_model=ListResponse[DeliveryNoteResponse])
def list_delivery_notes(
    status: Optional[DeliveryStatus] = None,
    search: Optional[str] = None,
    params: PageParams = Depends(page_params),
    db: Session = Depends(get_db),
    _: Principal = Depends(get_current_user),
):
    q = (
        db.query(DeliveryNote)
        .join(Project, Project.id == DeliveryNote.project_id)
        .options(selectinload(DeliveryNote.project), selectinload(DeliveryNote.creator))
    )
    if status:
        q = q.filter(DeliveryNote.status == status.value)
    q = apply_search(q, search, [DeliveryNote.delivery_number, Project.name])
    rows, total = paginate(q.order_by(DeliveryNote.delivery_date.desc(), DeliveryNote.created_at.desc()), params)
    return list_payload(rows, total, params)


@router.get("/{note_id}", response_model=DataResponse[DeliveryNoteDetail])
def get_delivery_note(note_id: uuid.UUID, db: Session = Depends(get_db), _: Principal = Depends(get_current_user)):
    return {"success": True, "data": _get_note(db, note_id)}


@router.post("", response_model=DataResponse[DeliveryNoteDetail], status_code=status.HTTP_201_CREATED)
def create_delivery_note(
    body: DeliveryNoteCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_user),
):
    _ensure_project(db, body.project_id)
    number = next_document_number(db, DELIVERY_PREFIX)
    row = DeliveryNote(**body.model_dump(), delivery_number=number, created_by=principal.id)
    db.add(row)
    db.commit()
    db.refresh(row)
    log.info("delivery_note_created", document_id=str(row.id), number=number, user_id=str(principal.id))
    return {"success": True, "data": row}


@router.put("/{note_id}", response_model=DataResponse[DeliveryNoteDetail])
def update_delivery_note(
    note_id: uuid.UUID,
    body: DeliveryNoteUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_user),
):
    row = _get_note(db, note_id)
    ensure_owner_or_manager(principal, row.created_by, "delivery note")
    _ensure_project(db, body.project_id)
    for key, value in body.model_dump(exclude_unset=True).items():
        setattr(row, key, value)
    row.updated_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(row)
    return {"success": True, "data": row}


@router.delete("/{note_id}", response_model=MessageResponse)
def delete_delivery_note(
    note_id: uuid.UUID,
    db: Session = Depends(get_db),
    _: Principal = Depends(require_roles("admin", "manager")),
):
    row = _get_note(db, note_id)
    db.delete(row)
    db.commit()
    return {"success": True, "message": "Delivery note deleted successfully"}


# ---------- ITEMS ----------
@router.post("/{note_id}/items", response_model=DataResponse[DeliveryItemResponse], status_code=status.HTTP_201_CREATED)
def add_delivery_item(
    note_id: uuid.UUID,
    body: DeliveryItemCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_user),
):
    note = _get_note(db, note_id)
    ensure_owner_or_manager(principal, note.created_by, "delivery note")
    if db.get(Equipment, body.equipment_id) is None:
        raise NotFoundError("Equipment not found")
    item = DeliveryItem(delivery_note_id=note.id, **body.model_dump())
    db.add(item)
    note.updated_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(item)
    return {"success": True, "data": item}


@router.delete("/{note_id}/items/{item_id}", response_model=MessageResponse)
def delete_delivery_item(
    note_id: uuid.UUID,
    item_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_user),
):
    note = _get_note(db, note_id)
    ensure_owner_or_manager(principal, note.created_by, "delivery note")
    item = (
        db.query(DeliveryItem)
        .filter(DeliveryItem.id == item_id, DeliveryItem.delivery_note_id == note.id)
        .first()
    )
    if not item:
        raise NotFoundError("Delivery item not found")
    db.delete(item)
    note.updated_at = datetime.now(timezone.utc)
    db.commit()
    return {"success": True, "message": "Delivery item deleted successfully"}
