import uuid
from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session, selectinload

from ..db import get_db
from ..auth.security import Principal, ensure_owner_or_manager, get_current_user, require_roles
from ..models.models import Quote
from ..schemas.common import DataResponse, ListResponse, MessageResponse
from ..schemas.documents import (
    QuoteStatus,
    QuoteCreate,
    QuoteUpdate,
    QuoteResponse,
    QuoteDetail,
    QuoteItemResponse,
    LineItemInput,
)
from ..services import documents
from ..services.documents import QUOTES
from ..services.pagination import PageParams, apply_search, list_payload, page_params, paginate


router = APIRouter(prefix="/quotes", tags=["quotes"])


@router.get("", response_model=ListResponse[QuoteResponse])
def list_quotes(
    status: Optional[QuoteStatus] = None,
    search: Optional[str] = None,
    params: PageParams = Depends(page_params),
    db: Session = Depends(get_db),
    _: Principal = Depends(get_current_user),
):
    q = db.query(Quote).options(selectinload(Quote.project), selectinload(Quote.creator))
    if status:
        q = q.filter(Quote.status == status.value)
    q = apply_search(q, search, [Quote.quote_number, Quote.client_name])
    rows, total = paginate(q.order_by(Quote.created_at.desc()), params)
    return list_payload(rows, total, params)


@router.get("/{quote_id}", response_model=DataResponse[QuoteDetail])
def get_quote(quote_id: uuid.UUID, db: Session = Depends(get_db), _: Principal = Depends(get_current_user)):
    return {"success": True, "data": documents.get_document_or_404(db, QUOTES, quote_id)}


@router.post("", response_model=DataResponse[QuoteDetail], status_code=status.HTTP_201_CREATED)
def create_quote(
    body: QuoteCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_user),
):
    documents.ensure_project_exists(db, body.project_id)
    row = documents.create_document(db, QUOTES, body.model_dump(), principal)
    db.commit()
    db.refresh(row)
    return {"success": True, "data": row}


@router.put("/{quote_id}", response_model=DataResponse[QuoteDetail])
def update_quote(
    quote_id: uuid.UUID,
    body: QuoteUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_user),
):
    row = documents.get_document_or_404(db, QUOTES, quote_id)
    ensure_owner_or_manager(principal, row.created_by, "quote")
    documents.ensure_project_exists(db, body.project_id)
    documents.update_document(db, QUOTES, row, body.model_dump(exclude_unset=True))
    db.commit()
    db.refresh(row)
    return {"success": True, "data": row}


@router.delete("/{quote_id}", response_model=MessageResponse)
def delete_quote(
    quote_id: uuid.UUID,
    db: Session = Depends(get_db),
    _: Principal = Depends(require_roles("admin", "manager")),
):
    row = documents.get_document_or_404(db, QUOTES, quote_id)
    db.delete(row)
    db.commit()
    return {"success": True, "message": "Quote deleted successfully"}


# ---------- ITEMS ----------
def _editable_quote(db: Session, quote_id: uuid.UUID, principal: Principal) -> Quote:
    row = documents.get_document_or_404(db, QUOTES, quote_id)
    ensure_owner_or_manager(principal, row.created_by, "quote")
    return row


@router.post("/{quote_id}/items", response_model=DataResponse[QuoteItemResponse], status_code=status.HTTP_201_CREATED)
def add_quote_item(
    quote_id: uuid.UUID,
    body: LineItemInput,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_user),
):
    quote = _editable_quote(db, quote_id, principal)
    item = documents.add_item(db, QUOTES, quote, body)
    db.commit()
    db.refresh(item)
    return {"success": True, "data": item}


@router.put("/{quote_id}/items/{item_id}", response_model=DataResponse[QuoteItemResponse])
def update_quote_item(
    quote_id: uuid.UUID,
    item_id: uuid.UUID,
    body: LineItemInput,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_user),
):
    quote = _editable_quote(db, quote_id, principal)
    item = documents.update_item(db, QUOTES, quote, item_id, body)
    db.commit()
    db.refresh(item)
    return {"success": True, "data": item}


@router.delete("/{quote_id}/items/{item_id}", response_model=MessageResponse)
def delete_quote_item(
    quote_id: uuid.UUID,
    item_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_user),
):
    quote = _editable_quote(db, quote_id, principal)
    documents.delete_item(db, QUOTES, quote, item_id)
    db.commit()
    return {"success": True, "message": "Quote item deleted successfully"}
