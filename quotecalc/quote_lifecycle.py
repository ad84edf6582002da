"""
Quote status lifecycle: RFQ → Draft → Sent → Accepted | Rejected | Dropped | Expired.

Pricing and line items are editable only in RFQ/Draft. Accepted quotes are
final. Revise sends Sent/Rejected/Dropped/Expired back to Draft.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from . import models
from .config import settings
from .errors import InvalidStatusTransition, QuoteLockedError

logger = logging.getLogger(__name__)


def generate_quote_number(db: Session) -> str:
    """Next number after the highest one issued this year; deleted quotes leave gaps."""
    prefix = f"{settings.QUOTE_NUMBER_PREFIX}-{datetime.utcnow().year}-"
    numbers = db.query(models.Quote.quote_number).filter(
        models.Quote.quote_number.startswith(prefix, autoescape=True)
    ).all()

    highest = 0
    for (number,) in numbers:
        sequence = number[len(prefix):]
        if sequence.isdigit():
            highest = max(highest, int(sequence))
    return f"{prefix}{str(highest + 1).zfill(4)}"


def ensure_editable(quote: models.Quote) -> None:
    """Raise QuoteLockedError unless the quote is still being priced."""
    if not models.is_editable(quote.status):
        raise QuoteLockedError(
            f"Quote {quote.quote_number} is {quote.status.value}; revise it to Draft before editing"
        )


def update_status(quote: models.Quote, new_status: models.QuoteStatus,
                  rejection_reason: Optional[str] = None) -> models.Quote:
    """
    Move a quote to new_status, stamping the lifecycle timestamps.

    Sent sets sent_at and, when missing, valid_until from expiration_days.
    Accepted sets accepted_at; Expired sets expired_at. Caller commits.
    """
    old_status = quote.status
    if old_status == models.QuoteStatus.ACCEPTED and new_status != old_status:
        raise InvalidStatusTransition("Accepted quotes cannot change status")

    now = datetime.utcnow()
    if new_status == models.QuoteStatus.SENT and old_status != models.QuoteStatus.SENT:
        quote.sent_at = now
        if not quote.valid_until:
            days = quote.expiration_days or settings.DEFAULT_EXPIRATION_DAYS
            quote.valid_until = now + timedelta(days=days)

    if new_status == models.QuoteStatus.ACCEPTED and old_status != models.QuoteStatus.ACCEPTED:
        quote.accepted_at = now

    if new_status == models.QuoteStatus.EXPIRED and old_status != models.QuoteStatus.EXPIRED:
        quote.expired_at = now

    quote.rejection_reason = rejection_reason if new_status == models.QuoteStatus.REJECTED else None
    quote.status = new_status

    if new_status != old_status:
        logger.info("Quote %s status changed from %s to %s",
                    quote.quote_number, old_status.value if old_status else None, new_status.value)
    return quote


def revise(quote: models.Quote) -> models.Quote:
    """Reopen a sent/closed quote for editing. Clears the send/expiry stamps."""
    if quote.status not in models.REVISABLE_STATUSES:
        raise InvalidStatusTransition(f"Cannot revise a quote in {quote.status.value} status")

    logger.info("Quote %s revised from %s back to Draft", quote.quote_number, quote.status.value)
    quote.status = models.QuoteStatus.DRAFT
    quote.sent_at = None
    quote.valid_until = None
    quote.expired_at = None
    quote.rejection_reason = None
    return quote


def expire_stale_quotes(db: Session, now: Optional[datetime] = None) -> int:
    """Mark Sent quotes past valid_until as Expired. Returns how many changed."""
    now = now or datetime.utcnow()
    stale = db.query(models.Quote).filter(
        models.Quote.status == models.QuoteStatus.SENT,
        models.Quote.valid_until.isnot(None),
        models.Quote.valid_until <= now,
        models.Quote.expired_at.is_(None),
    ).all()

    for quote in stale:
        quote.status = models.QuoteStatus.EXPIRED
        quote.expired_at = now
        logger.info("Quote %s expired (valid until %s)", quote.quote_number, quote.valid_until)

    db.commit()
    return len(stale)
