"""
Shared behaviour for priced documents (quotes and invoices).

Every header or line-item mutation goes through here so the terminal-state
guard and the total recomputation cannot be skipped by a route.
"""
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

import structlog
from sqlalchemy.orm import Session

from ..auth.security import Principal
from ..errors import ConflictError, NotFoundError
from ..models.models import Equipment, Invoice, InvoiceItem, Project, Quote, QuoteItem
from ..schemas.documents import LineItemInput
from .numbering import INVOICE_PREFIX, QUOTE_PREFIX, next_document_number
from .totals import ensure_storable, line_total, recompute_document_totals, to_money


log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class DocumentKind:
    label: str
    model: type
    item_model: type
    item_fk: str
    number_attr: str
    prefix: str
    terminal_status: str

    @property
    def title(self) -> str:
        return self.label.capitalize()

    @property
    def terminal_message(self) -> str:
        return f"Cannot modify {self.terminal_status} {self.label}s"


QUOTES = DocumentKind(
    label="quote",
    model=Quote,
    item_model=QuoteItem,
    item_fk="quote_id",
    number_attr="quote_number",
    prefix=QUOTE_PREFIX,
    terminal_status="accepted",
)

INVOICES = DocumentKind(
    label="invoice",
    model=Invoice,
    item_model=InvoiceItem,
    item_fk="invoice_id",
    number_attr="invoice_number",
    prefix=INVOICE_PREFIX,
    terminal_status="paid",
)


def get_document_or_404(db: Session, kind: DocumentKind, document_id: uuid.UUID):
    document = db.get(kind.model, document_id)
    if document is None:
        raise NotFoundError(f"{kind.title} not found")
    return document


def ensure_mutable(kind: DocumentKind, document) -> None:
    if document.status == kind.terminal_status:
        raise ConflictError(kind.terminal_message)


def ensure_project_exists(db: Session, project_id) -> None:
    if project_id and db.get(Project, project_id) is None:
        raise NotFoundError("Project not found")


def ensure_equipment_exists(db: Session, equipment_id) -> None:
    # Linkage is informational only; availability is not checked for documents
    if equipment_id and db.get(Equipment, equipment_id) is None:
        raise NotFoundError("Equipment not found")


def create_document(db: Session, kind: DocumentKind, data: dict, principal: Principal):
    """Number and insert a document in the caller's transaction."""
    data = dict(data)
    data["tax_rate"] = to_money(data.get("tax_rate") or 0)
    number = next_document_number(db, kind.prefix)
    document = kind.model(**data, created_by=principal.id)
    setattr(document, kind.number_attr, number)
    db.add(document)
    db.flush()
    recompute_document_totals(db, kind.model, document.id)
    log.info(f"{kind.label}_created", document_id=str(document.id), number=number, user_id=str(principal.id))
    return document


def update_document(db: Session, kind: DocumentKind, document, data: dict):
    ensure_mutable(kind, document)
    data = dict(data)
    if "tax_rate" in data:
        data["tax_rate"] = to_money(data["tax_rate"] or 0)
    for key, value in data.items():
        setattr(document, key, value)
    document.updated_at = datetime.now(timezone.utc)
    recompute_document_totals(db, kind.model, document.id)
    return document


def _get_item_or_404(db: Session, kind: DocumentKind, document, item_id: uuid.UUID):
    item = (
        db.query(kind.item_model)
        .filter(kind.item_model.id == item_id, getattr(kind.item_model, kind.item_fk) == document.id)
        .first()
    )
    if item is None:
        raise NotFoundError(f"{kind.title} item not found")
    return item


def _apply_line(item, payload: LineItemInput) -> None:
    total = ensure_storable(line_total(payload.quantity, payload.unit_price), "Line total")
    item.equipment_id = payload.equipment_id
    item.description = payload.description
    item.quantity = payload.quantity
    item.unit_price = to_money(payload.unit_price)
    item.total_price = total


def _touch(document) -> None:
    document.updated_at = datetime.now(timezone.utc)


def add_item(db: Session, kind: DocumentKind, document, payload: LineItemInput):
    ensure_mutable(kind, document)
    ensure_equipment_exists(db, payload.equipment_id)
    item = kind.item_model(**{kind.item_fk: document.id})
    _apply_line(item, payload)
    db.add(item)
    _touch(document)
    recompute_document_totals(db, kind.model, document.id)
    return item


def update_item(db: Session, kind: DocumentKind, document, item_id: uuid.UUID, payload: LineItemInput):
    ensure_mutable(kind, document)
    item = _get_item_or_404(db, kind, document, item_id)
    ensure_equipment_exists(db, payload.equipment_id)
    _apply_line(item, payload)
    _touch(document)
    recompute_document_totals(db, kind.model, document.id)
    return item


def delete_item(db: Session, kind: DocumentKind, document, item_id: uuid.UUID) -> None:
    ensure_mutable(kind, document)
    item = _get_item_or_404(db, kind, document, item_id)
    db.delete(item)
    _touch(document)
    recompute_document_totals(db, kind.model, document.id)
