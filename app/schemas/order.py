from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List

from app.db.models import OrderStatus, PaymentStatus

class CheckoutRequest(BaseModel):
    # structure is free-form; non-emptiness is checked by the checkout service
    shipping_address: Dict[str, Any] = Field(..., description="Shipping address object")

class OrderItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    quantity: int
    unit_price: Decimal
    subtotal: Decimal

class OrderOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_group_id: int
    user_id: int
    store_id: int
    order_number: str
    status: OrderStatus
    subtotal: Decimal
    tax: Decimal
    discount: Decimal
    shipping_cost: Decimal
    total_amount: Decimal
    shipping_address: Dict[str, Any]
    created_at: datetime
    items: List[OrderItemOut]

class OrderGroupOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    group_number: str
    total_amount: Decimal
    payment_status: PaymentStatus
    created_at: datetime

class OrderGroupDetailOut(OrderGroupOut):
    orders: List[OrderOut]

class CheckoutSummaryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    order_group: OrderGroupOut
    orders: List[OrderOut]
