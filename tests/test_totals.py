import uuid
from decimal import Decimal

import pytest

from soundright.models.models import Quote, QuoteItem
from soundright.services.totals import compute_totals, line_total, recompute_document_totals, to_money


def test_line_total_is_quantity_times_unit_price():
    assert line_total(2, Decimal("50.00")) == Decimal("100.00")
    assert line_total(3, "19.99") == Decimal("59.97")


def test_money_rounds_half_up_to_cents():
    assert to_money(Decimal("0.005")) == Decimal("0.01")
    assert to_money(Decimal("2.675")) == Decimal("2.68")
    assert to_money(10) == Decimal("10.00")


def test_totals_reconcile_to_the_cent():
    totals = compute_totals([Decimal("33.33"), Decimal("33.33"), Decimal("33.34")], Decimal("7.25"))
    assert totals.subtotal == Decimal("100.00")
    assert totals.tax_amount == Decimal("7.25")
    assert totals.total_amount == totals.subtotal + totals.tax_amount


def test_tax_is_computed_on_rounded_subtotal():
    totals = compute_totals([Decimal("0.10")], Decimal("5"))
    # 0.10 * 5% = 0.005 -> 0.01 with ROUND_HALF_UP
    assert totals.tax_amount == Decimal("0.01")
    assert totals.total_amount == Decimal("0.11")


def test_no_items_means_zero_totals():
    totals = compute_totals([], Decimal("20"))
    assert (totals.subtotal, totals.tax_amount, totals.total_amount) == (Decimal("0.00"),) * 3


def test_recompute_persists_derived_fields(session_factory, principal):
    with session_factory() as db:
        quote = Quote(quote_number="Q2026-9001", client_name="Acme", tax_rate=Decimal("10.00"), created_by=principal.id)
        db.add(quote)
        db.flush()
        db.add(QuoteItem(quote_id=quote.id, description="Line array", quantity=2,
                         unit_price=Decimal("50.00"), total_price=Decimal("100.00")))
        totals = recompute_document_totals(db, Quote, quote.id)
        db.commit()

        assert totals.total_amount == Decimal("110.00")
        db.refresh(quote)
        assert quote.subtotal == Decimal("100.00")
        assert quote.tax_amount == Decimal("10.00")
        assert quote.total_amount == Decimal("110.00")


def test_recompute_missing_document_is_internal_error(session_factory):
    with session_factory() as db:
        with pytest.raises(LookupError):
            recompute_document_totals(db, Quote, uuid.uuid4())
