"""
Sequential, human-readable document numbers: ``<PREFIX><year>-<seq>``.

The sequence for each (prefix, year) lives in ``document_sequences`` and is
advanced with a single ``UPDATE ... SET last_value = last_value + 1`` inside
the caller's transaction, so two concurrent creators can never observe the
same value and a rolled-back creation leaves no gap.
"""
from datetime import datetime
from typing import Optional

import structlog
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..errors import ConflictError
from ..models.models import DocumentSequence, Quote, Invoice, DeliveryNote


log = structlog.get_logger(__name__)

QUOTE_PREFIX = "Q"
INVOICE_PREFIX = "INV"
DELIVERY_PREFIX = "DN"

_NUMBER_COLUMNS = {
    QUOTE_PREFIX: Quote.quote_number,
    INVOICE_PREFIX: Invoice.invoice_number,
    DELIVERY_PREFIX: DeliveryNote.delivery_number,
}

MAX_ATTEMPTS = 5


def format_document_number(prefix: str, year: int, seq: int) -> str:
    return f"{prefix}{year}-{seq:04d}"


def parse_sequence(number: str) -> Optional[int]:
    _, _, tail = (number or "").rpartition("-")
    return int(tail) if tail.isdigit() else None


def _highest_existing(db: Session, prefix: str, year: int) -> int:
    """Largest sequence already issued for prefix/year (numbers created before the counter row existed)."""
    column = _NUMBER_COLUMNS[prefix]
    numbers = db.query(column).filter(column.like(f"{prefix}{year}-%")).all()
    seqs = [parse_sequence(n[0]) for n in numbers]
    return max([s for s in seqs if s is not None], default=0)


def next_document_number(db: Session, prefix: str, year: Optional[int] = None) -> str:
    if prefix not in _NUMBER_COLUMNS:
        raise ValueError(f"Unknown document prefix {prefix!r}")
    year = year or datetime.now().year

    for attempt in range(1, MAX_ATTEMPTS + 1):
        result = db.execute(
            update(DocumentSequence)
            .where(DocumentSequence.prefix == prefix, DocumentSequence.year == year)
            .values(last_value=DocumentSequence.last_value + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount:
            value = (
                db.query(DocumentSequence.last_value)
                .filter(DocumentSequence.prefix == prefix, DocumentSequence.year == year)
                .scalar()
            )
            return format_document_number(prefix, year, value)

        # First number of the year for this prefix: seed the counter row.
        value = _highest_existing(db, prefix, year) + 1
        try:
            with db.begin_nested():
                db.add(DocumentSequence(prefix=prefix, year=year, last_value=value))
        except IntegrityError:
            log.warning("document_sequence_seed_conflict", prefix=prefix, year=year, attempt=attempt)
            continue
        return format_document_number(prefix, year, value)

    raise ConflictError("Could not allocate a document number, please retry")
