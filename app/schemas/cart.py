from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, ConfigDict, Field

from app.utils.validators import MAX_CART_QUANTITY, MIN_CART_QUANTITY

class CartItemAdd(BaseModel):
    product_id: int = Field(..., gt=0)
    quantity: int = Field(..., ge=MIN_CART_QUANTITY, le=MAX_CART_QUANTITY)

class CartItemQuantity(BaseModel):
    quantity: int = Field(..., ge=MIN_CART_QUANTITY, le=MAX_CART_QUANTITY)

class CartItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    product_id: int
    quantity: int
    added_at: datetime
    updated_at: datetime

class CartLineOut(BaseModel):
    """A cart line joined with the product's current name, price and store."""
    model_config = ConfigDict(from_attributes=True)

    cart_item_id: int
    product_id: int
    store_id: int
    store_name: str
    product_name: str
    unit_price: Decimal
    quantity: int
    line_total: Decimal
