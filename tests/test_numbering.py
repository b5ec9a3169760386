import threading
from datetime import datetime

import pytest

from soundright.models.models import Quote
from soundright.services.numbering import (
    DELIVERY_PREFIX,
    INVOICE_PREFIX,
    QUOTE_PREFIX,
    format_document_number,
    next_document_number,
    parse_sequence,
)


def test_format_and_parse():
    assert format_document_number("Q", 2026, 1) == "Q2026-0001"
    assert format_document_number("INV", 2026, 12345) == "INV2026-12345"
    assert parse_sequence("DN2026-0042") == 42
    assert parse_sequence("garbage") is None


def test_serial_numbers_increase_per_prefix(session_factory):
    year = datetime.now().year
    with session_factory() as db:
        assert next_document_number(db, QUOTE_PREFIX) == f"Q{year}-0001"
        assert next_document_number(db, QUOTE_PREFIX) == f"Q{year}-0002"
        assert next_document_number(db, INVOICE_PREFIX) == f"INV{year}-0001"
        assert next_document_number(db, DELIVERY_PREFIX) == f"DN{year}-0001"
        db.commit()


def test_each_year_starts_at_one(session_factory):
    with session_factory() as db:
        assert next_document_number(db, QUOTE_PREFIX, year=2025) == "Q2025-0001"
        assert next_document_number(db, QUOTE_PREFIX, year=2026) == "Q2026-0001"
        assert next_document_number(db, QUOTE_PREFIX, year=2025) == "Q2025-0002"


def test_rolled_back_number_is_reissued(session_factory):
    with session_factory() as db:
        assert next_document_number(db, QUOTE_PREFIX, year=2026) == "Q2026-0001"
        db.rollback()
    with session_factory() as db:
        assert next_document_number(db, QUOTE_PREFIX, year=2026) == "Q2026-0001"


def test_counter_seeds_from_highest_existing_number(session_factory, principal):
    with session_factory() as db:
        # Numbers issued before the counter existed, with a gap left by a deletion
        for number in ("Q2026-0001", "Q2026-0003"):
            db.add(Quote(quote_number=number, client_name="Acme", created_by=principal.id))
        db.commit()

    with session_factory() as db:
        assert next_document_number(db, QUOTE_PREFIX, year=2026) == "Q2026-0004"


def test_unknown_prefix_is_rejected(session_factory):
    with session_factory() as db:
        with pytest.raises(ValueError):
            next_document_number(db, "XX")


def test_concurrent_allocation_never_duplicates(session_factory):
    workers = 8
    barrier = threading.Barrier(workers)
    numbers, errors = [], []
    lock = threading.Lock()

    def worker():
        barrier.wait()
        db = session_factory()
        try:
            number = next_document_number(db, INVOICE_PREFIX, year=2026)
            db.commit()
            with lock:
                numbers.append(number)
        except Exception as exc:  # surfaced by the assertion below
            db.rollback()
            with lock:
                errors.append(exc)
        finally:
            db.close()

    threads = [threading.Thread(target=worker) for _ in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert sorted(numbers) == [f"INV2026-{i:04d}" for i in range(1, workers + 1)]
