"""
Stateless pricing — preview a calculation without saving it.

The calculator calls preview on every keystroke; nothing is written.
"""

from typing import Optional

from fastapi import APIRouter

from ..config import settings
from ..pricing_engine import (
    DEFAULT_LEAD_TIME_OPTION,
    TOOLING_MARKUP_FACTOR,
    PricingEngine,
    RateTable,
    default_tolerance_multiplier,
)
from ..schemas import PricingPreview

router = APIRouter(prefix="/pricing", tags=["pricing"])


@router.post("/preview")
def preview_price(request: PricingPreview):
    engine = PricingEngine(RateTable(lead_time_multipliers=request.lead_time_multipliers))
    configuration = engine.normalize(request.model_dump(exclude={"lead_time_multipliers"}))
    return {
        "configuration": configuration,
        "breakdown": engine.calculate(configuration),
    }


@router.get("/rate-table")
def get_rate_table(tolerance: Optional[str] = None):
    """Lead times, thread rates and slider bounds the calculator renders."""
    table = RateTable().to_dict()
    table.update({
        "default_lead_time_option": DEFAULT_LEAD_TIME_OPTION,
        "tooling_markup_factor": TOOLING_MARKUP_FACTOR,
        "complexity_multiplier": {
            "default": settings.DEFAULT_COMPLEXITY_MULTIPLIER,
            "min": settings.COMPLEXITY_MULTIPLIER_MIN,
            "max": settings.COMPLEXITY_MULTIPLIER_MAX,
        },
        "tolerance_multiplier": {
            "default": settings.DEFAULT_TOLERANCE_MULTIPLIER,
            "min": settings.TOLERANCE_MULTIPLIER_MIN,
            "max": settings.TOLERANCE_MULTIPLIER_MAX,
            "suggested": default_tolerance_multiplier(tolerance),
        },
    })
    return table
