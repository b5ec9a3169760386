"""
Line-item and document total computation.

All amounts are ``Decimal`` quantized to cents with ROUND_HALF_UP. Tax is
computed on the already-rounded subtotal, and the total is the exact sum of
the rounded subtotal and rounded tax, so the three persisted fields always
reconcile to the cent.
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Union

import structlog
from sqlalchemy.orm import Session

from ..errors import ValidationError
from ..models.models import Quote, QuoteItem, Invoice, InvoiceItem


log = structlog.get_logger(__name__)

CENT = Decimal("0.01")
HUNDRED = Decimal("100")
# Largest value a Numeric(10, 2) money column holds
MAX_AMOUNT = Decimal("99999999.99")

Number = Union[Decimal, int, str]


def to_money(value: Number) -> Decimal:
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def ensure_storable(amount: Decimal, what: str) -> Decimal:
    if amount > MAX_AMOUNT:
        raise ValidationError(f"{what} exceeds the maximum amount of {MAX_AMOUNT}")
    return amount


def line_total(quantity: int, unit_price: Number) -> Decimal:
    """Extended price of a line: quantity x unit price, in cents."""
    return to_money(Decimal(quantity) * to_money(unit_price))


@dataclass(frozen=True)
class DocumentTotals:
    subtotal: Decimal
    tax_amount: Decimal
    total_amount: Decimal


def compute_totals(line_totals: Iterable[Number], tax_rate: Number) -> DocumentTotals:
    subtotal = to_money(sum((Decimal(str(t)) for t in line_totals), Decimal("0")))
    rate = Decimal(str(tax_rate))
    tax_amount = to_money(subtotal * rate / HUNDRED)
    return DocumentTotals(subtotal=subtotal, tax_amount=tax_amount, total_amount=subtotal + tax_amount)


_ITEM_MODELS = {
    Quote: (QuoteItem, QuoteItem.quote_id),
    Invoice: (InvoiceItem, InvoiceItem.invoice_id),
}


def recompute_document_totals(db: Session, document_model, document_id) -> DocumentTotals:
    """Re-sum a quote's or invoice's items and persist subtotal/tax/total.

    Callers validate that the document exists; a missing row here is a
    programming error and raises ``LookupError``.
    """
    item_model, fk_column = _ITEM_MODELS[document_model]
    db.flush()
    document = db.get(document_model, document_id)
    if document is None:
        raise LookupError(f"{document_model.__name__} {document_id} does not exist")

    line_totals = [
        row[0]
        for row in db.query(item_model.total_price).filter(fk_column == document_id).all()
    ]
    totals = compute_totals(line_totals, document.tax_rate or Decimal("0"))
    ensure_storable(totals.total_amount, "Document total")
    document.subtotal = totals.subtotal
    document.tax_amount = totals.tax_amount
    document.total_amount = totals.total_amount
    db.flush()
    log.info(
        "document_totals_recomputed",
        document_type=document_model.__tablename__,
        document_id=str(document_id),
        items=len(line_totals),
        subtotal=str(totals.subtotal),
        tax_amount=str(totals.tax_amount),
        total_amount=str(totals.total_amount),
    )
    return totals
