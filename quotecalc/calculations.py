"""
Saved price calculations — one current calculation per part of a quote.

A calculation slot is keyed by quote_part_id, or by quote_line_item_id for
hand-entered line items with no part. Saving into an occupied slot replaces
the whole record (no partial patches) and bumps its version.

Save order for one request, one transaction:
    validate → price with engine → upsert calculation → write price onto the
    line item → recompute quote total → commit
Any failure rolls everything back so the calculator can retry the same part.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from . import models
from .config import settings
from .errors import (
    CalculationKeyError,
    NotFoundError,
    PricingValidationError,
    StaleCalculationError,
)
from .pricing_engine import PricingEngine, THREAD_SIZES, default_tolerance_multiplier, parse_tolerance
from .quote_lifecycle import ensure_editable
from .quote_totals import QuoteTotalsAggregator, apply_calculated_price

logger = logging.getLogger(__name__)

CONFIG_FIELDS = [
    "toolpath_grand_total",
    "lead_time_option",
    "lead_time_multiplier",
    "small_thread_count",
    "small_thread_rate",
    "medium_thread_count",
    "medium_thread_rate",
    "large_thread_count",
    "large_thread_rate",
    "complexity_multiplier",
    "tolerance_multiplier",
    "tooling_enabled",
    "tooling_cost",
    "notes",
]

DERIVED_FIELDS = [
    "total_thread_cost",
    "tooling_markup",
    "base_price",
    "adjusted_price",
    "final_price",
]

# Client and server may disagree by float noise; anything past half a cent is logged
PRICE_MISMATCH_TOLERANCE = 0.005


# --- Boundary validation ---

def _strict_number(value, message: str) -> Optional[float]:
    """None for blank input, a float for numbers, PricingValidationError for anything else."""
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    if isinstance(value, bool):
        raise PricingValidationError(message)
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise PricingValidationError(message)
    if number != number or number in (float("inf"), float("-inf")):
        raise PricingValidationError(message)
    return number


def validate_calculation_input(data: dict) -> None:
    """
    Reject input the engine would silently zero out but a person clearly got wrong.

    Blank fields pass (they mean 0 / default). Thread counts stay permissive.
    """
    toolpath = _strict_number(data.get("toolpath_grand_total"), "Please enter a valid toolpath grand total")
    if toolpath is not None and toolpath < 0:
        raise PricingValidationError("Please enter a valid toolpath grand total")

    lead = _strict_number(data.get("lead_time_multiplier"), "Please enter a valid lead time multiplier")
    if lead is not None and lead <= 0:
        raise PricingValidationError("Please enter a valid lead time multiplier")

    for size in THREAD_SIZES:
        rate = _strict_number(data.get(f"{size}_thread_rate"), f"Please enter a valid {size} thread rate")
        if rate is not None and rate < 0:
            raise PricingValidationError(f"Please enter a valid {size} thread rate")

    tooling = _strict_number(data.get("tooling_cost"), "Please enter a valid tooling cost")
    if tooling is not None and tooling < 0:
        raise PricingValidationError("Please enter a valid tooling cost")

    bounds = [
        ("complexity_multiplier", "Complexity multiplier",
         settings.COMPLEXITY_MULTIPLIER_MIN, settings.COMPLEXITY_MULTIPLIER_MAX),
        ("tolerance_multiplier", "Tolerance multiplier",
         settings.TOLERANCE_MULTIPLIER_MIN, settings.TOLERANCE_MULTIPLIER_MAX),
    ]
    for field, label, low, high in bounds:
        message = f"{label} must be between {low:.2f} and {high:.2f}"
        value = _strict_number(data.get(field), message)
        if value is not None and not (low <= value <= high):
            raise PricingValidationError(message)


# --- Store ---

class CalculationStore:
    """Upsert-by-part persistence for QuotePriceCalculation rows."""

    def __init__(self, db: Session):
        self.db = db

    def find_slot(self, quote_id: int, quote_part_id: Optional[str],
                  quote_line_item_id: Optional[int]) -> Optional[models.QuotePriceCalculation]:
        query = self.db.query(models.QuotePriceCalculation).filter(
            models.QuotePriceCalculation.quote_id == quote_id
        )
        if quote_part_id:
            query = query.filter(models.QuotePriceCalculation.quote_part_id == quote_part_id)
        elif quote_line_item_id is not None:
            query = query.filter(
                models.QuotePriceCalculation.quote_part_id.is_(None),
                models.QuotePriceCalculation.quote_line_item_id == quote_line_item_id,
            )
        else:
            raise CalculationKeyError("A calculation needs a quote part or a line item")
        return query.order_by(
            models.QuotePriceCalculation.updated_at.desc(),
            models.QuotePriceCalculation.id.desc(),
        ).first()

    def save(self, quote_id: int, record: dict, user_id: Optional[int] = None,
             expected_version: Optional[int] = None) -> models.QuotePriceCalculation:
        """
        Store a fully priced record in its part slot.

        record must hold every CONFIG_FIELDS and DERIVED_FIELDS value plus
        quote_part_id / quote_line_item_id. Flushes; the caller commits.
        """
        quote_part_id = record.get("quote_part_id")
        quote_line_item_id = record.get("quote_line_item_id")
        existing = self.find_slot(quote_id, quote_part_id, quote_line_item_id)

        if expected_version is not None:
            current = existing.version if existing else 0
            if current != expected_version:
                raise StaleCalculationError(
                    f"Calculation was changed by someone else (version {current}, expected {expected_version})"
                )

        if existing:
            calc = existing
            calc.version = (calc.version or 0) + 1
        else:
            calc = models.QuotePriceCalculation(quote_id=quote_id, version=1)
            self.db.add(calc)

        calc.quote_part_id = quote_part_id
        calc.quote_line_item_id = quote_line_item_id
        for field in CONFIG_FIELDS + DERIVED_FIELDS:
            setattr(calc, field, record[field])
        calc.calculated_by = user_id

        self.db.flush()
        return calc

    def get_latest_for_quote(self, quote_id: int) -> list:
        """Current calculation per part, in the quote's part order, then hand-entered lines."""
        calcs = self.db.query(models.QuotePriceCalculation).filter(
            models.QuotePriceCalculation.quote_id == quote_id
        ).order_by(
            models.QuotePriceCalculation.updated_at.desc(),
            models.QuotePriceCalculation.id.desc(),
        ).all()

        latest = {}
        for calc in calcs:
            key = calc.quote_part_id or f"line-item-{calc.quote_line_item_id}"
            if key not in latest:
                latest[key] = calc

        part_order = {
            part.id: index
            for index, part in enumerate(
                self.db.query(models.QuotePart).filter(
                    models.QuotePart.quote_id == quote_id
                ).order_by(models.QuotePart.created_at, models.QuotePart.id).all()
            )
        }

        def sort_key(calc):
            if calc.quote_part_id:
                return (0, part_order.get(calc.quote_part_id, len(part_order)), calc.quote_part_id)
            return (1, 0, str(calc.quote_line_item_id or 0).zfill(12))

        return sorted(latest.values(), key=sort_key)

    def get_for_part(self, quote_part_id: str) -> Optional[models.QuotePriceCalculation]:
        return self.db.query(models.QuotePriceCalculation).filter(
            models.QuotePriceCalculation.quote_part_id == quote_part_id
        ).order_by(
            models.QuotePriceCalculation.updated_at.desc(),
            models.QuotePriceCalculation.id.desc(),
        ).first()

    def get_for_line_item(self, quote_line_item_id: int) -> Optional[models.QuotePriceCalculation]:
        return self.db.query(models.QuotePriceCalculation).filter(
            models.QuotePriceCalculation.quote_line_item_id == quote_line_item_id
        ).order_by(
            models.QuotePriceCalculation.updated_at.desc(),
            models.QuotePriceCalculation.id.desc(),
        ).first()


def calculation_to_dict(calc: models.QuotePriceCalculation) -> dict:
    data = {
        "id": calc.id,
        "quote_id": calc.quote_id,
        "quote_part_id": calc.quote_part_id,
        "quote_line_item_id": calc.quote_line_item_id,
        "version": calc.version,
        "calculated_by": calc.calculated_by,
        "created_at": calc.created_at.isoformat() if calc.created_at else None,
        "updated_at": calc.updated_at.isoformat() if calc.updated_at else None,
    }
    for field in CONFIG_FIELDS + DERIVED_FIELDS:
        data[field] = getattr(calc, field)
    return data


def calculation_configuration(calc: models.QuotePriceCalculation) -> dict:
    """The stored inputs only: what gets fed back into the engine on revisit."""
    return {field: getattr(calc, field) for field in CONFIG_FIELDS}


# --- Save flow ---

def _get_quote(db: Session, quote_id: int) -> models.Quote:
    quote = db.query(models.Quote).filter(models.Quote.id == quote_id).first()
    if not quote:
        raise NotFoundError("Quote not found")
    return quote


def _resolve_targets(db: Session, quote: models.Quote, data: dict):
    """Check the part / line item belong to this quote; find the line item to price."""
    quote_part_id = data.get("quote_part_id") or None
    line_item_id = data.get("quote_line_item_id")

    if not quote_part_id and line_item_id is None:
        raise CalculationKeyError("A calculation needs a quote part or a line item")

    line_item = None
    if line_item_id is not None:
        line_item = db.query(models.QuoteLineItem).filter(
            models.QuoteLineItem.id == line_item_id,
            models.QuoteLineItem.quote_id == quote.id,
        ).first()
        if not line_item:
            raise NotFoundError("Line item not found on this quote")
        if quote_part_id and line_item.quote_part_id and line_item.quote_part_id != quote_part_id:
            raise CalculationKeyError("Line item belongs to a different quote part")
        if not quote_part_id and line_item.quote_part_id:
            # Same part, same slot, whichever id the caller sent
            quote_part_id = line_item.quote_part_id

    if quote_part_id:
        part = db.query(models.QuotePart).filter(
            models.QuotePart.id == quote_part_id,
            models.QuotePart.quote_id == quote.id,
        ).first()
        if not part:
            raise NotFoundError("Quote part not found on this quote")
        if line_item is None:
            line_item = db.query(models.QuoteLineItem).filter(
                models.QuoteLineItem.quote_id == quote.id,
                models.QuoteLineItem.quote_part_id == quote_part_id,
            ).order_by(models.QuoteLineItem.id).first()

    return quote_part_id, line_item


def _log_price_mismatch(data: dict, record: dict) -> None:
    for field in ("final_price", "adjusted_price", "base_price"):
        submitted = data.get(field)
        if submitted in (None, ""):
            continue
        try:
            submitted = float(submitted)
        except (TypeError, ValueError):
            continue
        if abs(submitted - record[field]) > PRICE_MISMATCH_TOLERANCE:
            logger.warning(
                "Submitted %s %.2f differs from calculated %.2f (part=%s, line_item=%s), storing calculated",
                field, submitted, record[field], record.get("quote_part_id"), record.get("quote_line_item_id"),
            )


def _save_one(db: Session, quote: models.Quote, data: dict, user_id: Optional[int],
              engine: PricingEngine):
    if data.get("quote_id") is not None and data["quote_id"] != quote.id:
        raise PricingValidationError("quoteId does not match the quote being priced")

    validate_calculation_input(data)
    quote_part_id, line_item = _resolve_targets(db, quote, data)

    record = engine.price({field: data.get(field) for field in CONFIG_FIELDS})
    # Stored to the cent; the engine itself does not round
    for field in DERIVED_FIELDS:
        record[field] = round(record[field], 2)
    record["quote_part_id"] = quote_part_id
    record["quote_line_item_id"] = line_item.id if line_item else data.get("quote_line_item_id")
    _log_price_mismatch(data, record)

    calc = CalculationStore(db).save(
        quote.id, record, user_id=user_id, expected_version=data.get("expected_version"),
    )

    if line_item is not None:
        apply_calculated_price(line_item, record["final_price"])

    return calc, line_item


def save_calculation(db: Session, quote_id: int, data: dict, user_id: Optional[int] = None,
                     engine: Optional[PricingEngine] = None) -> dict:
    """
    Save one part's calculation and bring the quote total up to date.

    Returns {calculation, line_item, total}.
    """
    engine = engine or PricingEngine()
    quote = _get_quote(db, quote_id)
    ensure_editable(quote)

    try:
        calc, line_item = _save_one(db, quote, data, user_id, engine)
        total = QuoteTotalsAggregator(db).recompute(quote.id)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(calc)
    logger.info(
        "Price calculated for quote %s part=%s line_item=%s: $%.2f (v%d)",
        quote.quote_number, calc.quote_part_id, calc.quote_line_item_id, calc.final_price, calc.version,
    )
    return {
        "calculation": calculation_to_dict(calc),
        "line_item": _line_item_price(line_item),
        "total": total,
    }


def save_calculations_batch(db: Session, quote_id: int, items: list, user_id: Optional[int] = None,
                            engine: Optional[PricingEngine] = None) -> dict:
    """Save several parts in submission order, then recompute the total once."""
    engine = engine or PricingEngine()
    quote = _get_quote(db, quote_id)
    ensure_editable(quote)
    if not items:
        raise PricingValidationError("No calculations to save")

    saved = []
    try:
        for data in items:
            saved.append(_save_one(db, quote, data, user_id, engine))
        total = QuoteTotalsAggregator(db).recompute(quote.id)
        db.commit()
    except Exception:
        db.rollback()
        raise

    for calc, _ in saved:
        db.refresh(calc)
    batch_value = round(sum(calc.final_price for calc, _ in saved), 2)
    logger.info("Batch price calculation for quote %s: %d items, $%.2f",
                quote.quote_number, len(saved), batch_value)
    return {
        "calculations": [calculation_to_dict(calc) for calc, _ in saved],
        "line_items": [_line_item_price(item) for _, item in saved if item is not None],
        "batch_value": batch_value,
        "total": total,
    }


def _line_item_price(line_item: Optional[models.QuoteLineItem]) -> Optional[dict]:
    if line_item is None:
        return None
    return {
        "id": line_item.id,
        "quantity": line_item.quantity,
        "unit_price": line_item.unit_price,
        "total_price": line_item.total_price,
    }


# --- Pre-population ---

def calculator_defaults(db: Session, quote_id: int, quote_part_id: str,
                        engine: Optional[PricingEngine] = None) -> dict:
    """
    What the calculator shows when a part is opened.

    A saved calculation wins outright, including a tolerance multiplier the
    user overrode. Otherwise start from defaults with the multiplier suggested
    by the part's tolerance.
    """
    engine = engine or PricingEngine()
    quote = _get_quote(db, quote_id)
    part = db.query(models.QuotePart).filter(
        models.QuotePart.id == quote_part_id,
        models.QuotePart.quote_id == quote.id,
    ).first()
    if not part:
        raise NotFoundError("Quote part not found on this quote")

    suggested = default_tolerance_multiplier(part.tolerance)
    existing = CalculationStore(db).find_slot(quote.id, part.id, None)
    if existing:
        configuration = engine.normalize(calculation_configuration(existing))
        source = "saved"
    else:
        configuration = engine.default_configuration(part.tolerance)
        source = "tolerance_default" if parse_tolerance(part.tolerance) is not None else "default"

    return {
        "quote_id": quote.id,
        "quote_part_id": part.id,
        "part_tolerance": part.tolerance,
        "suggested_tolerance_multiplier": suggested,
        "source": source,
        "version": existing.version if existing else 0,
        "configuration": configuration,
        "breakdown": engine.calculate(configuration),
        "editable": models.is_editable(quote.status),
    }
