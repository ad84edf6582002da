from sqlalchemy import Column, Integer, String, Float, DateTime, Text, ForeignKey, Enum, Boolean
from sqlalchemy.orm import relationship
from datetime import datetime
from .database import Base
import enum
import uuid


class QuoteStatus(str, enum.Enum):
    RFQ = "RFQ"
    DRAFT = "Draft"
    SENT = "Sent"
    ACCEPTED = "Accepted"
    REJECTED = "Rejected"
    DROPPED = "Dropped"
    EXPIRED = "Expired"


# Pricing, parts and line items can only change while the quote is being built.
EDITABLE_STATUSES = {QuoteStatus.RFQ, QuoteStatus.DRAFT}

# "Revise" sends these back to Draft. Accepted is final.
REVISABLE_STATUSES = {
    QuoteStatus.SENT,
    QuoteStatus.REJECTED,
    QuoteStatus.DROPPED,
    QuoteStatus.EXPIRED,
}


def is_editable(status) -> bool:
    """True when line items and calculations on a quote in this status may change."""
    if status is None:
        return False
    try:
        status = QuoteStatus(status)
    except ValueError:
        return False
    return status in EDITABLE_STATUSES


def _uuid() -> str:
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, nullable=False)
    password_hash = Column(String, nullable=False)
    name = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class Customer(Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    company = Column(String)
    email = Column(String)
    phone = Column(String)
    notes = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)

    quotes = relationship("Quote", back_populates="customer")


class Quote(Base):
    __tablename__ = "quotes"

    id = Column(Integer, primary_key=True, index=True)
    quote_number = Column(String, unique=True, nullable=False)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False)
    status = Column(Enum(QuoteStatus), default=QuoteStatus.RFQ, nullable=False)
    notes = Column(Text)
    expiration_days = Column(Integer, nullable=True)
    valid_until = Column(DateTime, nullable=True)
    sent_at = Column(DateTime, nullable=True)
    accepted_at = Column(DateTime, nullable=True)
    expired_at = Column(DateTime, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    # Totals: written only by QuoteTotalsAggregator.recompute
    subtotal = Column(Float, default=0.0)
    total = Column(Float, default=0.0)
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    customer = relationship("Customer", back_populates="quotes")
    parts = relationship("QuotePart", back_populates="quote", cascade="all, delete-orphan",
                         order_by="QuotePart.created_at")
    line_items = relationship("QuoteLineItem", back_populates="quote", cascade="all, delete-orphan",
                              order_by=lambda: [QuoteLineItem.sort_order, QuoteLineItem.id])
    calculations = relationship("QuotePriceCalculation", back_populates="quote",
                                cascade="all, delete-orphan")


class QuotePart(Base):
    """A manufacturable part attached to a quote. Tolerance is free text ("±0.005")."""
    __tablename__ = "quote_parts"

    id = Column(String(36), primary_key=True, default=_uuid)
    quote_id = Column(Integer, ForeignKey("quotes.id"), nullable=False)
    part_number = Column(String, nullable=False)
    part_name = Column(String, nullable=False)
    description = Column(Text)
    material = Column(String)
    finish = Column(String)
    tolerance = Column(String)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    quote = relationship("Quote", back_populates="parts")
    line_items = relationship("QuoteLineItem", back_populates="quote_part")


class QuoteLineItem(Base):
    __tablename__ = "quote_line_items"
    # Never reuse a deleted line item's id; its saved calculation still points at it
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, index=True)
    quote_id = Column(Integer, ForeignKey("quotes.id"), nullable=False)
    quote_part_id = Column(String(36), ForeignKey("quote_parts.id", ondelete="CASCADE"), nullable=True)
    name = Column(String)
    description = Column(Text)
    quantity = Column(Integer, nullable=False, default=1)
    unit_price = Column(Float, nullable=False, default=0.0)
    total_price = Column(Float, nullable=False, default=0.0)
    lead_time_days = Column(Integer, nullable=True)
    notes = Column(Text)
    sort_order = Column(Integer, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    quote = relationship("Quote", back_populates="line_items")
    quote_part = relationship("QuotePart", back_populates="line_items")


class QuotePriceCalculation(Base):
    """
    Current calculator result for one part of a quote.

    One row per part slot: keyed by quote_part_id, or by quote_line_item_id for
    hand-entered line items with no part. Re-saving replaces the row and bumps version.
    """
    __tablename__ = "quote_price_calculations"

    id = Column(Integer, primary_key=True, index=True)
    quote_id = Column(Integer, ForeignKey("quotes.id"), nullable=False, index=True)
    quote_part_id = Column(String(36), ForeignKey("quote_parts.id", ondelete="CASCADE"), nullable=True)
    quote_line_item_id = Column(Integer, ForeignKey("quote_line_items.id", ondelete="CASCADE"), nullable=True)

    # Configuration
    toolpath_grand_total = Column(Float, nullable=False, default=0.0)
    lead_time_option = Column(String, nullable=False)
    lead_time_multiplier = Column(Float, nullable=False)
    small_thread_count = Column(Integer, nullable=False, default=0)
    small_thread_rate = Column(Float, nullable=False, default=0.90)
    medium_thread_count = Column(Integer, nullable=False, default=0)
    medium_thread_rate = Column(Float, nullable=False, default=0.75)
    large_thread_count = Column(Integer, nullable=False, default=0)
    large_thread_rate = Column(Float, nullable=False, default=1.10)
    complexity_multiplier = Column(Float, nullable=False)
    tolerance_multiplier = Column(Float, nullable=False)
    tooling_enabled = Column(Boolean, nullable=False, default=False)
    tooling_cost = Column(Float, nullable=True)
    notes = Column(Text)

    # Derived, always reproducible from the configuration above
    total_thread_cost = Column(Float, nullable=False, default=0.0)
    tooling_markup = Column(Float, nullable=True)
    base_price = Column(Float, nullable=False)
    adjusted_price = Column(Float, nullable=False)
    final_price = Column(Float, nullable=False)

    version = Column(Integer, nullable=False, default=1)
    calculated_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    quote = relationship("Quote", back_populates="calculations")


class QuotePriceCalculationTemplate(Base):
    """Saved calculator presets — per-user, or shared when is_global."""
    __tablename__ = "quote_price_calculation_templates"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text)
    lead_time_option = Column(String, nullable=True)
    small_thread_count = Column(Integer, nullable=True)
    medium_thread_count = Column(Integer, nullable=True)
    large_thread_count = Column(Integer, nullable=True)
    complexity_multiplier = Column(Float, nullable=True)
    tolerance_multiplier = Column(Float, nullable=True)
    is_global = Column(Boolean, default=False, nullable=False)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
