from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import Optional
from .. import models
from ..auth import get_current_user
from ..database import get_db
from ..quote_lifecycle import expire_stale_quotes, generate_quote_number, revise, update_status
from ..quote_totals import QuoteTotalsAggregator
from ..schemas import QuoteCreate, QuoteUpdate, StatusUpdate

router = APIRouter(prefix="/quotes", tags=["quotes"])


def get_quote_or_404(quote_id: int, db: Session) -> models.Quote:
    quote = db.query(models.Quote).filter(models.Quote.id == quote_id).first()
    if not quote:
        raise HTTPException(status_code=404, detail="Quote not found")
    return quote


# --- Endpoints ---

@router.post("/")
def create_quote(
    request: QuoteCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    customer = db.query(models.Customer).filter(models.Customer.id == request.customer_id).first()
    if not customer:
        raise HTTPException(status_code=404, detail="Customer not found")
    if not models.is_editable(request.status):
        raise HTTPException(status_code=400, detail="New quotes start as RFQ or Draft")

    quote = models.Quote(
        quote_number=generate_quote_number(db),
        customer_id=request.customer_id,
        status=request.status,
        notes=request.notes,
        expiration_days=request.expiration_days,
        created_by_id=current_user.id,
        subtotal=0.0,
        total=0.0,
    )
    db.add(quote)
    db.commit()
    db.refresh(quote)
    return quote_to_dict(quote)


@router.get("/")
def list_quotes(
    status: Optional[models.QuoteStatus] = None,
    skip: int = 0,
    limit: int = 50,
    db: Session = Depends(get_db),
):
    query = db.query(models.Quote)
    if status:
        query = query.filter(models.Quote.status == status)
    quotes = query.order_by(models.Quote.created_at.desc(), models.Quote.id.desc()).offset(skip).limit(limit).all()
    return [_quote_summary(q) for q in quotes]


@router.post("/expire-check")
def run_expire_check(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """Expire Sent quotes whose valid_until has passed."""
    return {"expired": expire_stale_quotes(db)}


@router.get("/{quote_id}")
def get_quote(quote_id: int, db: Session = Depends(get_db)):
    return quote_to_dict(get_quote_or_404(quote_id, db))


@router.patch("/{quote_id}")
def update_quote(
    quote_id: int,
    update: QuoteUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    quote = get_quote_or_404(quote_id, db)
    if quote.status == models.QuoteStatus.ACCEPTED:
        raise HTTPException(status_code=409, detail="Accepted quotes cannot be changed")
    for field, value in update.model_dump(exclude_unset=True).items():
        setattr(quote, field, value)
    db.commit()
    db.refresh(quote)
    return quote_to_dict(quote)


@router.delete("/{quote_id}")
def delete_quote(
    quote_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    quote = get_quote_or_404(quote_id, db)
    if quote.status == models.QuoteStatus.ACCEPTED:
        raise HTTPException(status_code=409, detail="Accepted quotes cannot be deleted")
    db.delete(quote)
    db.commit()
    return {"ok": True}


@router.put("/{quote_id}/status")
def set_status(
    quote_id: int,
    request: StatusUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    quote = get_quote_or_404(quote_id, db)
    update_status(quote, request.status, rejection_reason=request.rejection_reason)
    db.commit()
    db.refresh(quote)
    return quote_to_dict(quote)


@router.post("/{quote_id}/revise")
def revise_quote(
    quote_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """Send a Sent/Rejected/Dropped/Expired quote back to Draft for editing."""
    quote = get_quote_or_404(quote_id, db)
    revise(quote)
    db.commit()
    db.refresh(quote)
    return quote_to_dict(quote)


@router.post("/{quote_id}/recompute")
def recompute_totals(quote_id: int, db: Session = Depends(get_db)):
    """Recalculate quote.total from line items. Safe to call repeatedly."""
    get_quote_or_404(quote_id, db)
    try:
        total = QuoteTotalsAggregator(db).recompute(quote_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return {"quote_id": quote_id, "total": total}


@router.get("/{quote_id}/breakdown")
def get_quote_breakdown(quote_id: int, db: Session = Depends(get_db)):
    """Line-by-line contribution to the quote total."""
    quote = get_quote_or_404(quote_id, db)
    return QuoteTotalsAggregator(db).breakdown(quote)


def _quote_summary(q: models.Quote) -> dict:
    return {
        "id": q.id,
        "quote_number": q.quote_number,
        "status": q.status.value if q.status else None,
        "customer_id": q.customer_id,
        "customer_name": q.customer.name if q.customer else None,
        "total": q.total,
        "editable": models.is_editable(q.status),
        "created_at": q.created_at.isoformat() if q.created_at else None,
    }


def quote_to_dict(q: models.Quote) -> dict:
    return {
        "id": q.id,
        "quote_number": q.quote_number,
        "status": q.status.value if q.status else None,
        "editable": models.is_editable(q.status),
        "notes": q.notes,
        "expiration_days": q.expiration_days,
        "valid_until": q.valid_until.isoformat() if q.valid_until else None,
        "sent_at": q.sent_at.isoformat() if q.sent_at else None,
        "accepted_at": q.accepted_at.isoformat() if q.accepted_at else None,
        "expired_at": q.expired_at.isoformat() if q.expired_at else None,
        "rejection_reason": q.rejection_reason,
        "subtotal": q.subtotal,
        "total": q.total,
        "created_by_id": q.created_by_id,
        "created_at": q.created_at.isoformat() if q.created_at else None,
        "updated_at": q.updated_at.isoformat() if q.updated_at else None,
        "customer": {
            "id": q.customer.id,
            "name": q.customer.name,
            "company": q.customer.company,
            "email": q.customer.email,
        } if q.customer else None,
        "customer_id": q.customer_id,
        "parts": [part_to_dict(p) for p in q.parts],
        "line_items": [item_to_dict(i) for i in q.line_items],
    }


def part_to_dict(p: models.QuotePart) -> dict:
    return {
        "id": p.id,
        "quote_id": p.quote_id,
        "part_number": p.part_number,
        "part_name": p.part_name,
        "description": p.description,
        "material": p.material,
        "finish": p.finish,
        "tolerance": p.tolerance,
    }


def item_to_dict(i: models.QuoteLineItem) -> dict:
    return {
        "id": i.id,
        "quote_id": i.quote_id,
        "quote_part_id": i.quote_part_id,
        "name": i.name,
        "description": i.description,
        "quantity": i.quantity,
        "unit_price": i.unit_price,
        "total_price": i.total_price,
        "lead_time_days": i.lead_time_days,
        "notes": i.notes,
        "sort_order": i.sort_order,
    }
