"""
Quote totals — keeps quote.total equal to the sum of its line items.

quote.total is written here and nowhere else. Callers that change a line item
price (line item edits, saved calculations) update the line item first, then
call recompute() in the same transaction and commit once.
"""

import logging

from sqlalchemy.orm import Session

from . import models
from .errors import NotFoundError, PricingValidationError

logger = logging.getLogger(__name__)


class QuoteTotalsAggregator:
    """Read line items → sum → write quote.subtotal/total. No intermediate state."""

    def __init__(self, db: Session):
        self.db = db

    def recompute(self, quote_id: int) -> float:
        """
        Sum total_price over the quote's line items and store it on the quote.

        Tax is handled outside this system, so subtotal == total.
        Flushes but does not commit; the caller owns the transaction.
        Returns the new total.
        """
        quote = self.db.query(models.Quote).filter(models.Quote.id == quote_id).first()
        if not quote:
            raise NotFoundError("Quote not found")

        # Pending line item changes must be visible to the sum below
        self.db.flush()

        items = self.db.query(models.QuoteLineItem).filter(
            models.QuoteLineItem.quote_id == quote_id
        ).all()
        total = round(sum(item.total_price or 0.0 for item in items), 2)

        quote.subtotal = total
        quote.total = total
        self.db.flush()

        logger.info("Quote %s total recomputed: %.2f (%d line items)", quote_id, total, len(items))
        return total

    def breakdown(self, quote: models.Quote) -> dict:
        """Per-line contribution to the total — for the quote summary panel."""
        lines = [
            {
                "line_item_id": item.id,
                "name": item.name,
                "quote_part_id": item.quote_part_id,
                "quantity": item.quantity,
                "unit_price": item.unit_price,
                "total_price": item.total_price,
            }
            for item in quote.line_items
        ]
        return {
            "quote_id": quote.id,
            "quote_number": quote.quote_number,
            "line_items": lines,
            "line_item_sum": round(sum(line["total_price"] or 0.0 for line in lines), 2),
            "subtotal": quote.subtotal,
            "total": quote.total,
        }


def apply_calculated_price(line_item: models.QuoteLineItem, final_price: float) -> None:
    """
    Write a calculator result onto its line item.

    final_price is the price for the whole line; unit price is derived
    from the line's quantity (0 when quantity is 0).
    """
    quantity = line_item.quantity or 0
    line_item.total_price = round(final_price, 2)
    line_item.unit_price = round(final_price / quantity, 2) if quantity > 0 else 0.0


def validate_quantity(quantity) -> int:
    if quantity is None or isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise PricingValidationError("Please enter a valid quantity")
    return quantity


def validate_price(price) -> float:
    if price is None or isinstance(price, bool) or not isinstance(price, (int, float)) or price < 0:
        raise PricingValidationError("Please enter a valid price")
    return float(price)


def price_line_item(line_item: models.QuoteLineItem, quantity=None, unit_price=None, total_price=None) -> None:
    """
    Apply an edit to a line item's quantity/price fields, keeping them consistent.

    - quantity changed:    total = quantity × unit price
    - unit price changed:  total = quantity × unit price
    - total price changed: unit price = total / quantity
    Validation happens before anything is written.
    """
    if quantity is not None:
        quantity = validate_quantity(quantity)
    if unit_price is not None:
        unit_price = validate_price(unit_price)
    if total_price is not None:
        total_price = validate_price(total_price)

    if quantity is not None:
        line_item.quantity = quantity

    if total_price is not None and unit_price is None:
        line_item.total_price = round(total_price, 2)
        qty = line_item.quantity or 0
        line_item.unit_price = round(total_price / qty, 2) if qty > 0 else 0.0
        return

    if unit_price is not None:
        line_item.unit_price = round(unit_price, 2)
    line_item.total_price = round((line_item.quantity or 0) * (line_item.unit_price or 0.0), 2)
