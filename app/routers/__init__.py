# app/routers/__init__.py

from .auth_router import router as auth_router
from .notifications_router import router as notifications_router
from .orders_router import router as orders_router
from .products_router import router as products_router
from .sales_router import router as sales_router
from .vouchers_router import router as vouchers_router

__all__ = [
    "auth_router",
    "notifications_router",
    "orders_router",
    "products_router",
    "sales_router",
    "vouchers_router",
]
