from decimal import Decimal
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional

class ProductBase(BaseModel):
    sku: str = Field(..., min_length=3, max_length=100, description="Stock keeping unit, unique per store")
    name: str = Field(..., min_length=3, max_length=255, description="Product name")
    description: Optional[str] = Field(None, max_length=2000)
    price: Decimal = Field(..., gt=0, le=1_000_000, max_digits=10, decimal_places=2, description="Product price must be positive")
    stock_quantity: int = Field(default=0, ge=0, le=1_000_000, description="Stock quantity must be non-negative")
    category: Optional[str] = Field(None, max_length=100)

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError('Product name cannot be empty or whitespace only')
        return v.strip()

class ProductCreate(ProductBase):
    store_id: int = Field(..., gt=0, description="Store ID must be positive")

class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=3, max_length=255)
    description: Optional[str] = Field(None, max_length=2000)
    price: Optional[Decimal] = Field(None, gt=0, le=1_000_000, max_digits=10, decimal_places=2)
    stock_quantity: Optional[int] = Field(None, ge=0, le=1_000_000)
    category: Optional[str] = Field(None, max_length=100)
    is_active: Optional[bool] = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        if v is not None and (not v or not v.strip()):
            raise ValueError('Product name cannot be empty or whitespace only')
        return v.strip() if v else v

class ProductOut(ProductBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    store_id: int   # don't include the full store to avoid recursion
    is_active: bool
