"""
Quote parts — the manufactured items a quote prices.

Creating a part can also create its line item (quantity given), priced at 0
until the calculator saves a price for it.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from .. import models
from ..auth import get_current_user
from ..database import get_db
from ..pricing_engine import default_tolerance_multiplier
from ..quote_lifecycle import ensure_editable
from ..quote_totals import QuoteTotalsAggregator, validate_quantity
from ..schemas import QuotePartCreate, QuotePartUpdate
from .quotes import get_quote_or_404, item_to_dict, part_to_dict

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/quotes/{quote_id}/parts", tags=["quote-parts"])


def _get_part_or_404(quote_id: int, part_id: str, db: Session) -> models.QuotePart:
    part = db.query(models.QuotePart).filter(
        models.QuotePart.id == part_id,
        models.QuotePart.quote_id == quote_id,
    ).first()
    if not part:
        raise HTTPException(status_code=404, detail="Quote part not found")
    return part


def _part_with_pricing_hint(part: models.QuotePart) -> dict:
    data = part_to_dict(part)
    data["suggested_tolerance_multiplier"] = default_tolerance_multiplier(part.tolerance)
    return data


@router.get("/")
def list_parts(quote_id: int, db: Session = Depends(get_db)):
    quote = get_quote_or_404(quote_id, db)
    return [_part_with_pricing_hint(p) for p in quote.parts]


@router.post("/")
def create_part(
    quote_id: int,
    request: QuotePartCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    quote = get_quote_or_404(quote_id, db)
    ensure_editable(quote)
    if request.quantity is not None:
        validate_quantity(request.quantity)

    part = models.QuotePart(
        quote_id=quote.id,
        **request.model_dump(exclude={"quantity"}),
    )
    db.add(part)
    db.flush()

    line_item = None
    if request.quantity is not None:
        line_item = models.QuoteLineItem(
            quote_id=quote.id,
            quote_part_id=part.id,
            name=part.part_name,
            description=part.description,
            quantity=request.quantity,
            unit_price=0.0,
            total_price=0.0,
            sort_order=len(quote.line_items),
        )
        db.add(line_item)
        QuoteTotalsAggregator(db).recompute(quote.id)

    db.commit()
    db.refresh(part)
    logger.info("Part %s added to quote %s", part.part_number, quote.quote_number)

    result = _part_with_pricing_hint(part)
    result["line_item"] = item_to_dict(line_item) if line_item else None
    return result


@router.patch("/{part_id}")
def update_part(
    quote_id: int,
    part_id: str,
    update: QuotePartUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    quote = get_quote_or_404(quote_id, db)
    ensure_editable(quote)
    part = _get_part_or_404(quote.id, part_id, db)
    for field, value in update.model_dump(exclude_unset=True).items():
        setattr(part, field, value)
    db.commit()
    db.refresh(part)
    return _part_with_pricing_hint(part)


@router.delete("/{part_id}")
def delete_part(
    quote_id: int,
    part_id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """Remove a part and its line items. Saved calculations are left as they are."""
    quote = get_quote_or_404(quote_id, db)
    ensure_editable(quote)
    part = _get_part_or_404(quote.id, part_id, db)

    try:
        db.query(models.QuoteLineItem).filter(
            models.QuoteLineItem.quote_part_id == part.id
        ).delete(synchronize_session="fetch")
        db.delete(part)
        total = QuoteTotalsAggregator(db).recompute(quote.id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return {"ok": True, "total": total}
