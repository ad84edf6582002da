"""
Price calculator endpoints — save, fetch and pre-populate per-part calculations.

Saving a calculation reprices its line item and the quote total in one
transaction; see quotecalc.calculations for the flow.
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from .. import models
from ..auth import get_current_user
from ..calculations import (
    CalculationStore,
    calculation_to_dict,
    calculator_defaults,
    save_calculation,
    save_calculations_batch,
)
from ..database import get_db
from ..schemas import CalculationBatch, CalculationSave
from .quotes import get_quote_or_404

router = APIRouter(prefix="/quotes/{quote_id}", tags=["calculations"])


@router.post("/calculations")
def create_calculation(
    quote_id: int,
    request: CalculationSave,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """Save one part's calculation. Returns the stored record, the repriced line item and the quote total."""
    return save_calculation(db, quote_id, request.model_dump(), user_id=current_user.id)


@router.post("/calculations/batch")
def create_calculations_batch(
    quote_id: int,
    request: CalculationBatch,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """Save several parts at once. All or nothing."""
    items = [calc.model_dump() for calc in request.calculations]
    return save_calculations_batch(db, quote_id, items, user_id=current_user.id)


@router.get("/calculations")
def list_calculations(quote_id: int, db: Session = Depends(get_db)):
    """Current calculation for each part of the quote."""
    get_quote_or_404(quote_id, db)
    calcs = CalculationStore(db).get_latest_for_quote(quote_id)
    return [calculation_to_dict(c) for c in calcs]


@router.get("/parts/{part_id}/calculation")
def get_part_calculation(quote_id: int, part_id: str, db: Session = Depends(get_db)):
    get_quote_or_404(quote_id, db)
    calc = CalculationStore(db).find_slot(quote_id, part_id, None)
    if not calc:
        raise HTTPException(status_code=404, detail="No calculation saved for this part")
    return calculation_to_dict(calc)


@router.get("/parts/{part_id}/calculator-defaults")
def get_calculator_defaults(quote_id: int, part_id: str, db: Session = Depends(get_db)):
    """Saved configuration if there is one, otherwise defaults with the tolerance suggestion."""
    return calculator_defaults(db, quote_id, part_id)


@router.get("/line-items/{item_id}/calculation")
def get_line_item_calculation(quote_id: int, item_id: int, db: Session = Depends(get_db)):
    get_quote_or_404(quote_id, db)
    calc = CalculationStore(db).get_for_line_item(item_id)
    if not calc or calc.quote_id != quote_id:
        raise HTTPException(status_code=404, detail="No calculation saved for this line item")
    return calculation_to_dict(calc)
