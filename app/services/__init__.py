"""
Services package for business logic separation.
"""
from .permission_service import PermissionService
from .store_service import StoreService
from .product_service import ProductService
from .cart_service import CartService
from .order_service import OrderService
from .analytics_service import AnalyticsService
from .user_service import UserService

__all__ = [
    "PermissionService",
    "StoreService",
    "ProductService",
    "CartService",
    "OrderService",
    "AnalyticsService",
    "UserService",
]
