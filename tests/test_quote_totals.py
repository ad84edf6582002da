"""
Quote totals tests — aggregator, line item price linkage, quote lifecycle.

Tests:
1-4.   QuoteTotalsAggregator.recompute (sum, idempotence, empty, unknown quote)
5-8.   Line item pricing (quantity × unit, total-only edits, validation)
9-16.  Status lifecycle (editability, numbering, Sent stamps, Accepted is final, revise, expiry)
"""

from datetime import datetime, timedelta

import pytest

from quotecalc import models
from quotecalc.errors import InvalidStatusTransition, NotFoundError, PricingValidationError, QuoteLockedError
from quotecalc.quote_lifecycle import ensure_editable, expire_stale_quotes, generate_quote_number, revise, update_status
from quotecalc.quote_totals import QuoteTotalsAggregator, apply_calculated_price, price_line_item


def _make_quote(db, status=models.QuoteStatus.DRAFT, totals=()):
    customer = models.Customer(name="Northwind Fixtures")
    db.add(customer)
    db.flush()
    quote = models.Quote(
        quote_number=generate_quote_number(db),
        customer_id=customer.id,
        status=status,
    )
    db.add(quote)
    db.flush()
    for index, total in enumerate(totals):
        db.add(models.QuoteLineItem(
            quote_id=quote.id,
            name=f"Line {index + 1}",
            quantity=1,
            unit_price=total,
            total_price=total,
            sort_order=index,
        ))
    db.commit()
    return quote


# ============================================================
# Aggregator
# ============================================================

def test_recompute_sums_line_items(db):
    quote = _make_quote(db, totals=(100.0, 218.87))
    total = QuoteTotalsAggregator(db).recompute(quote.id)
    db.commit()
    assert total == pytest.approx(318.87)
    db.refresh(quote)
    assert quote.total == pytest.approx(318.87)
    assert quote.subtotal == pytest.approx(318.87)


def test_recompute_is_idempotent(db):
    quote = _make_quote(db, totals=(100.0, 218.87))
    aggregator = QuoteTotalsAggregator(db)
    first = aggregator.recompute(quote.id)
    second = aggregator.recompute(quote.id)
    assert first == second == pytest.approx(318.87)


def test_recompute_empty_quote_is_zero(db):
    quote = _make_quote(db)
    assert QuoteTotalsAggregator(db).recompute(quote.id) == 0.0


def test_recompute_unknown_quote(db):
    with pytest.raises(NotFoundError):
        QuoteTotalsAggregator(db).recompute(9999)


def test_recompute_sees_unflushed_line_item_edits(db):
    quote = _make_quote(db, totals=(50.0,))
    item = db.query(models.QuoteLineItem).filter(models.QuoteLineItem.quote_id == quote.id).first()
    item.total_price = 75.25
    assert QuoteTotalsAggregator(db).recompute(quote.id) == pytest.approx(75.25)


# ============================================================
# Line item pricing
# ============================================================

def test_quantity_times_unit_price():
    item = models.QuoteLineItem(quantity=1, unit_price=0.0, total_price=0.0)
    price_line_item(item, quantity=4, unit_price=12.5)
    assert item.total_price == 50.0

    price_line_item(item, quantity=6)
    assert item.unit_price == 12.5
    assert item.total_price == 75.0


def test_total_only_edit_derives_unit_price():
    item = models.QuoteLineItem(quantity=3, unit_price=10.0, total_price=30.0)
    price_line_item(item, total_price=100.0)
    assert item.total_price == 100.0
    assert item.unit_price == pytest.approx(33.33)


@pytest.mark.parametrize("kwargs, message", [
    ({"quantity": 0}, "Please enter a valid quantity"),
    ({"quantity": -2}, "Please enter a valid quantity"),
    ({"unit_price": -1.0}, "Please enter a valid price"),
    ({"total_price": -0.01}, "Please enter a valid price"),
])
def test_invalid_quantity_or_price_rejected(kwargs, message):
    item = models.QuoteLineItem(quantity=2, unit_price=5.0, total_price=10.0)
    with pytest.raises(PricingValidationError) as exc_info:
        price_line_item(item, **kwargs)
    assert exc_info.value.message == message
    # Nothing written on failure
    assert (item.quantity, item.unit_price, item.total_price) == (2, 5.0, 10.0)


def test_calculated_price_spreads_over_quantity():
    item = models.QuoteLineItem(quantity=4, unit_price=0.0, total_price=0.0)
    apply_calculated_price(item, 218.87)
    assert item.total_price == pytest.approx(218.87)
    assert item.unit_price == pytest.approx(54.72)

    empty = models.QuoteLineItem(quantity=0, unit_price=0.0, total_price=0.0)
    apply_calculated_price(empty, 100.0)
    assert empty.unit_price == 0.0
    assert empty.total_price == 100.0


# ============================================================
# Status lifecycle
# ============================================================

@pytest.mark.parametrize("status, editable", [
    (models.QuoteStatus.RFQ, True),
    (models.QuoteStatus.DRAFT, True),
    (models.QuoteStatus.SENT, False),
    (models.QuoteStatus.ACCEPTED, False),
    (models.QuoteStatus.REJECTED, False),
    (models.QuoteStatus.DROPPED, False),
    (models.QuoteStatus.EXPIRED, False),
    ("Draft", True),
    ("Nonsense", False),
    (None, False),
])
def test_is_editable(status, editable):
    assert models.is_editable(status) is editable


def test_quote_numbers_count_up(db):
    year = datetime.utcnow().year
    first = _make_quote(db)
    second = _make_quote(db)
    assert first.quote_number == f"Q-{year}-0001"
    assert second.quote_number == f"Q-{year}-0002"


def test_quote_numbers_skip_past_deleted_quotes(db):
    year = datetime.utcnow().year
    first = _make_quote(db)
    _make_quote(db)
    db.delete(first)
    db.commit()

    third = _make_quote(db)
    assert third.quote_number == f"Q-{year}-0003"
    # Other years and hand-typed numbers do not move the sequence
    db.add(models.Quote(quote_number=f"Q-{year - 1}-0042", customer_id=third.customer_id))
    db.add(models.Quote(quote_number=f"Q-{year}-rush", customer_id=third.customer_id))
    db.commit()
    assert generate_quote_number(db) == f"Q-{year}-0004"


def test_sending_stamps_dates_and_locks(db):
    quote = _make_quote(db)
    update_status(quote, models.QuoteStatus.SENT)
    db.commit()
    assert quote.sent_at is not None
    assert quote.valid_until - quote.sent_at == timedelta(days=14)
    with pytest.raises(QuoteLockedError):
        ensure_editable(quote)


def test_expiration_days_sets_valid_until(db):
    quote = _make_quote(db)
    quote.expiration_days = 30
    update_status(quote, models.QuoteStatus.SENT)
    assert quote.valid_until - quote.sent_at == timedelta(days=30)


def test_accepted_is_final(db):
    quote = _make_quote(db, status=models.QuoteStatus.SENT)
    update_status(quote, models.QuoteStatus.ACCEPTED)
    assert quote.accepted_at is not None
    with pytest.raises(InvalidStatusTransition):
        update_status(quote, models.QuoteStatus.DRAFT)
    with pytest.raises(InvalidStatusTransition):
        revise(quote)


@pytest.mark.parametrize("status", [
    models.QuoteStatus.SENT,
    models.QuoteStatus.REJECTED,
    models.QuoteStatus.DROPPED,
    models.QuoteStatus.EXPIRED,
])
def test_revise_returns_to_draft(db, status):
    quote = _make_quote(db, status=status)
    quote.sent_at = datetime.utcnow()
    quote.valid_until = datetime.utcnow() + timedelta(days=14)
    revise(quote)
    assert quote.status == models.QuoteStatus.DRAFT
    assert quote.sent_at is None
    assert quote.valid_until is None
    ensure_editable(quote)


def test_revise_draft_is_rejected(db):
    quote = _make_quote(db)
    with pytest.raises(InvalidStatusTransition):
        revise(quote)


def test_expire_stale_quotes(db):
    now = datetime.utcnow()
    stale = _make_quote(db, status=models.QuoteStatus.SENT)
    stale.valid_until = now - timedelta(days=1)
    fresh = _make_quote(db, status=models.QuoteStatus.SENT)
    fresh.valid_until = now + timedelta(days=5)
    db.commit()

    assert expire_stale_quotes(db, now=now) == 1
    db.refresh(stale)
    db.refresh(fresh)
    assert stale.status == models.QuoteStatus.EXPIRED
    assert stale.expired_at is not None
    assert fresh.status == models.QuoteStatus.SENT

    # Nothing left to expire
    assert expire_stale_quotes(db, now=now) == 0
