# app/models/__init__.py
from app.models.user_models import User, UserRole
from app.models.activity_models import UserActivity
from app.models.catalog_models import Category, Product
from app.models.sale_models import SaleOccasion, SaleProduct
from app.models.voucher_models import Voucher, DiscountType, voucher_excluded_products
from app.models.order_models import Order, OrderItem, OrderStatus, PaymentStatus, PaymentMethod
from app.models.notification_models import Notification
