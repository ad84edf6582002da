"""
Quote line items — quantity × unit price rows that make up the quote total.

Every change is followed by a totals recompute in the same transaction.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from .. import models
from ..auth import get_current_user
from ..database import get_db
from ..quote_lifecycle import ensure_editable
from ..quote_totals import QuoteTotalsAggregator, price_line_item
from ..schemas import LineItemCreate, LineItemUpdate
from .quotes import get_quote_or_404, item_to_dict

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/quotes/{quote_id}/line-items", tags=["line-items"])


def _get_item_or_404(quote_id: int, item_id: int, db: Session) -> models.QuoteLineItem:
    item = db.query(models.QuoteLineItem).filter(
        models.QuoteLineItem.id == item_id,
        models.QuoteLineItem.quote_id == quote_id,
    ).first()
    if not item:
        raise HTTPException(status_code=404, detail="Line item not found")
    return item


@router.post("/")
def create_line_item(
    quote_id: int,
    request: LineItemCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    quote = get_quote_or_404(quote_id, db)
    ensure_editable(quote)

    if request.quote_part_id:
        part = db.query(models.QuotePart).filter(
            models.QuotePart.id == request.quote_part_id,
            models.QuotePart.quote_id == quote.id,
        ).first()
        if not part:
            raise HTTPException(status_code=404, detail="Quote part not found")

    item = models.QuoteLineItem(
        quote_id=quote.id,
        **request.model_dump(exclude={"quantity", "unit_price"}),
    )
    price_line_item(item, quantity=request.quantity, unit_price=request.unit_price)

    try:
        db.add(item)
        total = QuoteTotalsAggregator(db).recompute(quote.id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(item)
    logger.info("Line item %s added to quote %s: %d × %.2f",
                item.id, quote.quote_number, item.quantity, item.unit_price)
    return {"line_item": item_to_dict(item), "total": total}


@router.patch("/{item_id}")
def update_line_item(
    quote_id: int,
    item_id: int,
    update: LineItemUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    quote = get_quote_or_404(quote_id, db)
    ensure_editable(quote)
    item = _get_item_or_404(quote.id, item_id, db)

    changes = update.model_dump(exclude_unset=True)
    price_fields = {k: changes.pop(k) for k in ("quantity", "unit_price", "total_price") if k in changes}
    # Validate before touching anything else on the row
    price_line_item(item, **price_fields)
    for field, value in changes.items():
        setattr(item, field, value)

    try:
        total = QuoteTotalsAggregator(db).recompute(quote.id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(item)
    return {"line_item": item_to_dict(item), "total": total}


@router.delete("/{item_id}")
def delete_line_item(
    quote_id: int,
    item_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """Delete a line item. Its saved calculation, if any, is not cleaned up."""
    quote = get_quote_or_404(quote_id, db)
    ensure_editable(quote)
    item = _get_item_or_404(quote.id, item_id, db)

    try:
        db.delete(item)
        total = QuoteTotalsAggregator(db).recompute(quote.id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return {"ok": True, "total": total}
