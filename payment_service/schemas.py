from pydantic import BaseModel, Field, TypeAdapter, field_validator
from typing import List, Any, Optional
from decimal import Decimal
import json
from datetime import datetime
from payment_service.models import PaymentStatus

class LineItem(BaseModel):
    product_id: int = Field(..., gt=0, examples=[7])
    quantity: int = Field(..., gt=0, examples=[2])
    unit_price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2, examples=["50.00"])

_line_items_adapter = TypeAdapter(List[LineItem])

def dump_line_items(items: List[LineItem]) -> str:
    return json.dumps([item.model_dump(mode="json") for item in items])

def parse_line_items(raw: str) -> List[LineItem]:
    return _line_items_adapter.validate_json(raw)

class ShippingDetails(BaseModel):
    shipping_address: Optional[str] = Field(None, max_length=200)
    shipping_city: Optional[str] = Field(None, max_length=100)
    shipping_country: Optional[str] = Field(None, max_length=100)
    shipping_postal_code: Optional[str] = Field(None, max_length=20)
    shipping_phone: Optional[str] = Field(None, max_length=20)
    notes: Optional[str] = Field(None, max_length=1000)

class PaymentInitiate(ShippingDetails):
    # Amount sign and item presence are checked by the lifecycle service so they
    # surface as the service's own validation error kind.
    total_amount: Decimal = Field(..., max_digits=10, decimal_places=2, examples=["100.00"])
    tax_amount: Decimal = Field(Decimal("0"), ge=0, max_digits=10, decimal_places=2)
    shipping_cost: Decimal = Field(Decimal("0"), ge=0, max_digits=10, decimal_places=2)
    payment_method: str = Field(..., min_length=1, max_length=50, examples=["CREDIT_CARD"])
    items: List[LineItem]

class PaymentConfirm(ShippingDetails):
    card_number: str = Field(..., examples=["4111 1111 1111 1111"])
    card_holder_name: Optional[str] = None
    expiration_date: Optional[str] = None
    cvv: Optional[str] = None

class InitiationResult(BaseModel):
    payment_id: int
    payment_token: str
    status: PaymentStatus
    total_amount: Decimal
    expires_in: int

class ConfirmationResult(BaseModel):
    success: bool
    message: str
    transaction_id: Optional[str] = None
    status: PaymentStatus

class PaymentRead(BaseModel):
    id: int
    user_id: int
    user_email: str
    user_name: Optional[str] = None
    items: List[LineItem]
    total_amount: Decimal
    tax_amount: Decimal
    shipping_cost: Decimal
    payment_method: str
    card_last_four: Optional[str] = None
    card_type: Optional[str] = None
    transaction_id: Optional[str] = None
    status: PaymentStatus
    status_message: Optional[str] = None
    shipping_address: Optional[str] = None
    shipping_city: Optional[str] = None
    shipping_country: Optional[str] = None
    shipping_postal_code: Optional[str] = None
    shipping_phone: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    completed_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None

    @field_validator('items', mode='before')
    @classmethod
    def parse_items(cls, v: Any) -> List[LineItem]:
        if isinstance(v, str):
            return json.loads(v)
        return v

    class Config:
        from_attributes = True
