"""
Calculation templates — named calculator presets.

A template carries lead time, thread counts and multipliers. Personal
templates are visible to their creator; global ones to everyone.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import or_
from sqlalchemy.orm import Session

from .. import models
from ..auth import get_current_user
from ..calculations import validate_calculation_input
from ..database import get_db
from ..pricing_engine import PricingEngine
from ..schemas import TemplateApply, TemplateCreate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/calculation-templates", tags=["calculation-templates"])

TEMPLATE_FIELDS = [
    "lead_time_option",
    "small_thread_count",
    "medium_thread_count",
    "large_thread_count",
    "complexity_multiplier",
    "tolerance_multiplier",
]


def template_to_dict(t: models.QuotePriceCalculationTemplate) -> dict:
    data = {
        "id": t.id,
        "name": t.name,
        "description": t.description,
        "is_global": t.is_global,
        "created_by": t.created_by,
        "created_at": t.created_at.isoformat() if t.created_at else None,
    }
    for field in TEMPLATE_FIELDS:
        data[field] = getattr(t, field)
    return data


def _visible_templates(db: Session, user: models.User):
    return db.query(models.QuotePriceCalculationTemplate).filter(
        or_(
            models.QuotePriceCalculationTemplate.is_global.is_(True),
            models.QuotePriceCalculationTemplate.created_by == user.id,
        )
    )


def _get_template_or_404(template_id: int, db: Session, user: models.User):
    template = _visible_templates(db, user).filter(
        models.QuotePriceCalculationTemplate.id == template_id
    ).first()
    if not template:
        raise HTTPException(status_code=404, detail="Template not found")
    return template


@router.get("/")
def list_templates(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    templates = _visible_templates(db, current_user).order_by(
        models.QuotePriceCalculationTemplate.name
    ).all()
    return [template_to_dict(t) for t in templates]


@router.post("/")
def create_template(
    request: TemplateCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    # Same slider bounds as saving a calculation
    validate_calculation_input({
        "complexity_multiplier": request.complexity_multiplier,
        "tolerance_multiplier": request.tolerance_multiplier,
    })
    template = models.QuotePriceCalculationTemplate(
        **request.model_dump(),
        created_by=current_user.id,
    )
    db.add(template)
    db.commit()
    db.refresh(template)
    logger.info("Calculation template '%s' created by user %s", template.name, current_user.id)
    return template_to_dict(template)


@router.delete("/{template_id}")
def delete_template(
    template_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """Delete a template you created, or any global one."""
    template = _get_template_or_404(template_id, db, current_user)
    db.delete(template)
    db.commit()
    return {"ok": True}


@router.post("/{template_id}/apply")
def apply_template(
    template_id: int,
    request: TemplateApply,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """Lay a template over the calculator's current state and price the result."""
    template = _get_template_or_404(template_id, db, current_user)
    config = request.configuration.model_dump()
    for field in TEMPLATE_FIELDS:
        value = getattr(template, field)
        if value is not None:
            config[field] = value
    # The multiplier must follow the newly applied lead time option
    if template.lead_time_option is not None:
        config["lead_time_multiplier"] = None

    engine = PricingEngine()
    configuration = engine.normalize(config)
    return {
        "template": template_to_dict(template),
        "configuration": configuration,
        "breakdown": engine.calculate(configuration),
    }
