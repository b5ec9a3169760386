import uuid
from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session, selectinload

from ..db import get_db
from ..errors import NotFoundError
from ..auth.security import Principal, ensure_owner_or_manager, get_current_user, require_roles
from ..models.models import Invoice, Quote
from ..schemas.common import DataResponse, ListResponse, MessageResponse
from ..schemas.documents import (
    InvoiceStatus,
    InvoiceCreate,
    InvoiceUpdate,
    InvoiceResponse,
    InvoiceDetail,
    InvoiceItemResponse,
    LineItemInput,
)
from ..services import documents
from ..services.documents import INVOICES
from ..services.pagination import PageParams, apply_search, list_payload, page_params, paginate


router = APIRouter(prefix="/invoices", tags=["invoices"])


def _check_references(db: Session, body) -> None:
    documents.ensure_project_exists(db, body.project_id)
    if body.quote_id and db.get(Quote, body.quote_id) is None:
        raise NotFoundError("Quote not found")


@router.get("", response_model=ListResponse[InvoiceResponse])
def list_invoices(
    status: Optional[InvoiceStatus] = None,
    search: Optional[str] = None,
    params: PageParams = Depends(page_params),
    db: Session = Depends(get_db),
    _: Principal = Depends(get_current_user),
):
    q = db.query(Invoice).options(
        selectinload(Invoice.project),
        selectinload(Invoice.quote),
        selectinload(Invoice.creator),
    )
    if status:
        q = q.filter(Invoice.status == status.value)
    q = apply_search(q, search, [Invoice.invoice_number, Invoice.client_name])
    rows, total = paginate(q.order_by(Invoice.created_at.desc()), params)
    return list_payload(rows, total, params)


@router.get("/{invoice_id}", response_model=DataResponse[InvoiceDetail])
def get_invoice(invoice_id: uuid.UUID, db: Session = Depends(get_db), _: Principal = Depends(get_current_user)):
    return {"success": True, "data": documents.get_document_or_404(db, INVOICES, invoice_id)}


@router.post("", response_model=DataResponse[InvoiceDetail], status_code=status.HTTP_201_CREATED)
def create_invoice(
    body: InvoiceCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_user),
):
    _check_references(db, body)
    row = documents.create_document(db, INVOICES, body.model_dump(), principal)
    db.commit()
    db.refresh(row)
    return {"success": True, "data": row}


@router.put("/{invoice_id}", response_model=DataResponse[InvoiceDetail])
def update_invoice(
    invoice_id: uuid.UUID,
    body: InvoiceUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_user),
):
    row = documents.get_document_or_404(db, INVOICES, invoice_id)
    ensure_owner_or_manager(principal, row.created_by, "invoice")
    _check_references(db, body)
    documents.update_document(db, INVOICES, row, body.model_dump(exclude_unset=True))
    db.commit()
    db.refresh(row)
    return {"success": True, "data": row}


@router.delete("/{invoice_id}", response_model=MessageResponse)
def delete_invoice(
    invoice_id: uuid.UUID,
    db: Session = Depends(get_db),
    _: Principal = Depends(require_roles("admin", "manager")),
):
    row = documents.get_document_or_404(db, INVOICES, invoice_id)
    db.delete(row)
    db.commit()
    return {"success": True, "message": "Invoice deleted successfully"}


# ---------- ITEMS ----------
def _editable_invoice(db: Session, invoice_id: uuid.UUID, principal: Principal) -> Invoice:
    row = documents.get_document_or_404(db, INVOICES, invoice_id)
    ensure_owner_or_manager(principal, row.created_by, "invoice")
    return row


@router.post("/{invoice_id}/items", response_model=DataResponse[InvoiceItemResponse], status_code=status.HTTP_201_CREATED)
def add_invoice_item(
    invoice_id: uuid.UUID,
    body: LineItemInput,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_user),
):
    invoice = _editable_invoice(db, invoice_id, principal)
    item = documents.add_item(db, INVOICES, invoice, body)
    db.commit()
    db.refresh(item)
    return {"success": True, "data": item}


@router.put("/{invoice_id}/items/{item_id}", response_model=DataResponse[InvoiceItemResponse])
def update_invoice_item(
    invoice_id: uuid.UUID,
    item_id: uuid.UUID,
    body: LineItemInput,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_user),
):
    invoice = _editable_invoice(db, invoice_id, principal)
    item = documents.update_item(db, INVOICES, invoice, item_id, body)
    db.commit()
    db.refresh(item)
    return {"success": True, "data": item}


@router.delete("/{invoice_id}/items/{item_id}", response_model=MessageResponse)
def delete_invoice_item(
    invoice_id: uuid.UUID,
    item_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_user),
):
    invoice = _editable_invoice(db, invoice_id, principal)
    documents.delete_item(db, INVOICES, invoice, item_id)
    db.commit()
    return {"success": True, "message": "Invoice item deleted successfully"}
