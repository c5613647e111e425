from datetime import date, datetime
from decimal import Decimal
from pydantic import BaseModel, field_validator, ConfigDict, Field
from typing import List, Optional

from app.core.permissions import AccessLevel, MemberRole, Permission
from app.db.models import StoreStatus

class StoreBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=2000)
    logo_url: Optional[str] = Field(None, max_length=500)
    is_private: bool = False

    @field_validator('name')
    @classmethod
    def name_must_not_be_empty(cls, v):
        if not v or not v.strip():
            raise ValueError('Store name cannot be empty')
        return v.strip()

class StoreCreate(StoreBase):
    # owner_id comes from the current user; slug format is checked by the service
    slug: str = Field(..., min_length=3, max_length=64)

class StoreUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = Field(None, max_length=2000)
    logo_url: Optional[str] = Field(None, max_length=500)
    is_private: Optional[bool] = None
    status: Optional[StoreStatus] = None

    @field_validator('name')
    @classmethod
    def name_must_not_be_empty(cls, v):
        if v is not None and (not v or not v.strip()):
            raise ValueError('Store name cannot be empty')
        return v.strip() if v else v

class StoreOut(StoreBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    owner_id: int
    slug: str
    status: StoreStatus
    created_at: datetime


class MemberInvite(BaseModel):
    user_id: int = Field(..., gt=0)
    role: MemberRole = MemberRole.staff
    # None means "use the role's default set"
    permissions: Optional[List[Permission]] = None

class MemberUpdate(BaseModel):
    role: Optional[MemberRole] = None
    permissions: Optional[List[Permission]] = None

class MemberOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    store_id: int
    user_id: int
    role: MemberRole
    permissions: List[str]
    invited_by: Optional[int] = None
    is_active: bool
    joined_at: datetime


class AccessGrantCreate(BaseModel):
    user_id: int = Field(..., gt=0)
    access_level: AccessLevel = AccessLevel.view_and_buy
    expires_at: Optional[datetime] = None

class AccessGrantOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    store_id: int
    user_id: int
    granted_by: int
    access_level: AccessLevel
    granted_at: datetime
    expires_at: Optional[datetime] = None
    is_revoked: bool
    revoked_at: Optional[datetime] = None


class AnalyticsSummary(BaseModel):
    total_orders: int
    total_revenue: Decimal
    average_order_value: Decimal
    unique_customers: int
    timeframe_days: int

class SalesTrendPoint(BaseModel):
    day: date
    orders: int
    revenue: Decimal

class TopProduct(BaseModel):
    product_id: int
    name: str
    units_sold: int
    revenue: Decimal

class StoreAnalyticsOut(BaseModel):
    store_id: int
    summary: AnalyticsSummary
    sales_trend: List[SalesTrendPoint]
    top_products: List[TopProduct]
