from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel
from typing import Optional, Dict, List, Union
from datetime import datetime
from .models import QuoteStatus

# Calculator form values arrive as numbers or as raw input strings ("", "12.50").
# The engine parses them permissively; the save boundary rejects the bad ones.
NumberInput = Optional[Union[float, str]]


class CustomerBase(BaseModel):
    name: str
    company: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    notes: Optional[str] = None

class CustomerCreate(CustomerBase):
    pass

class CustomerUpdate(BaseModel):
    name: Optional[str] = None
    company: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    notes: Optional[str] = None

class Customer(CustomerBase):
    id: int
    created_at: datetime
    class Config:
        from_attributes = True


# --- Auth ---

class RegisterRequest(BaseModel):
    email: str
    password: str = Field(min_length=8)
    name: Optional[str] = None

class LoginRequest(BaseModel):
    email: str
    password: str


# --- Quotes ---

class QuoteCreate(BaseModel):
    customer_id: int
    notes: Optional[str] = None
    expiration_days: Optional[int] = None
    status: QuoteStatus = QuoteStatus.RFQ

class QuoteUpdate(BaseModel):
    notes: Optional[str] = None
    expiration_days: Optional[int] = None
    valid_until: Optional[datetime] = None

class StatusUpdate(BaseModel):
    status: QuoteStatus
    rejection_reason: Optional[str] = None


class QuotePartCreate(BaseModel):
    part_number: str
    part_name: str
    description: Optional[str] = None
    material: Optional[str] = None
    finish: Optional[str] = None
    tolerance: Optional[str] = None
    # Add a priced line item for the part in the same request
    quantity: Optional[int] = None

class QuotePartUpdate(BaseModel):
    part_number: Optional[str] = None
    part_name: Optional[str] = None
    description: Optional[str] = None
    material: Optional[str] = None
    finish: Optional[str] = None
    tolerance: Optional[str] = None


class LineItemCreate(BaseModel):
    quote_part_id: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    quantity: int = 1
    unit_price: float = 0.0
    lead_time_days: Optional[int] = None
    notes: Optional[str] = None
    sort_order: int = 0

class LineItemUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    quantity: Optional[int] = None
    unit_price: Optional[float] = None
    total_price: Optional[float] = None
    lead_time_days: Optional[int] = None
    notes: Optional[str] = None
    sort_order: Optional[int] = None


# --- Price calculator ---

class PricingConfigurationIn(BaseModel):
    """
    Calculator inputs. Accepts the calculator's camelCase keys
    (toolpathGrandTotal, smallThreadCount, ...) as well as snake_case.
    """
    toolpath_grand_total: NumberInput = None
    lead_time_option: Optional[str] = None
    lead_time_multiplier: NumberInput = None
    small_thread_count: NumberInput = None
    small_thread_rate: NumberInput = None
    medium_thread_count: NumberInput = None
    medium_thread_rate: NumberInput = None
    large_thread_count: NumberInput = None
    large_thread_rate: NumberInput = None
    complexity_multiplier: NumberInput = None
    tolerance_multiplier: NumberInput = None
    tooling_enabled: Optional[bool] = None
    tooling_cost: NumberInput = None
    notes: Optional[str] = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class PricingPreview(PricingConfigurationIn):
    """Preview request — a configuration plus optional lead-time multiplier overrides."""
    lead_time_multipliers: Optional[Dict[str, float]] = None


class CalculationSave(PricingConfigurationIn):
    """Save-calculation request. Derived prices are recomputed server-side."""
    quote_id: Optional[int] = None
    quote_part_id: Optional[str] = None
    quote_line_item_id: Optional[int] = None
    # Client-side results: compared against the engine, never stored as-is
    total_thread_cost: NumberInput = None
    tooling_markup: NumberInput = None
    base_price: NumberInput = None
    adjusted_price: NumberInput = None
    final_price: NumberInput = None
    # Last version the client saw; omit for last-write-wins
    expected_version: Optional[int] = None


class CalculationBatch(BaseModel):
    calculations: List[CalculationSave]


class TemplateCreate(BaseModel):
    name: str
    description: Optional[str] = None
    lead_time_option: Optional[str] = None
    small_thread_count: Optional[int] = Field(default=None, ge=0)
    medium_thread_count: Optional[int] = Field(default=None, ge=0)
    large_thread_count: Optional[int] = Field(default=None, ge=0)
    complexity_multiplier: Optional[float] = None
    tolerance_multiplier: Optional[float] = None
    is_global: bool = False

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class TemplateApply(BaseModel):
    """Calculator state to apply a template over (template values win)."""
    configuration: PricingConfigurationIn = PricingConfigurationIn()
