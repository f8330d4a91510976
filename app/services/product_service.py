# --------------------------
# File: app/services/product_service.py
# Description: Catalog categories and products; every read goes through the pricing decorator
# --------------------------
import logging
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import select, or_, asc, desc, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.models.catalog_models import Category, Product
from app.schemas.catalog_schemas import CategoryCreate, ProductCreate, ProductUpdate, ProductView
from app.services.pricing_service import decorate_product, decorate_products
from app.utils.activity_helpers import log_user_activity
from app.utils.helpers import create_slug

logger = logging.getLogger(__name__)

# --------------------------
# Allowed fields for sorting
# --------------------------
ALLOWED_SORT_FIELDS = ["id", "name", "price", "quantity_sold", "created_at"]


# --------------------------
# CATEGORIES
# --------------------------
async def create_category(db: AsyncSession, data: CategoryCreate, current_user) -> Category:
    name = data.name.strip()
    slug = create_slug(name)
    if not slug:
        raise ValidationError("Category name must contain letters or digits")

    existing = await db.execute(
        select(Category.id).where(or_(Category.name == name, Category.slug == slug))
    )
    if existing.first():
        raise ConflictError(f"Category '{name}' already exists")

    category = Category(name=name, slug=slug)
    db.add(category)
    await log_user_activity(
        db,
        user_id=current_user.id,
        username=current_user.username,
        message=f"Created category '{name}'",
    )
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError(f"Category '{name}' already exists")
    await db.refresh(category)
    return category


async def list_categories(db: AsyncSession) -> List[Category]:
    result = await db.execute(select(Category).order_by(Category.name))
    return list(result.scalars().all())


async def _get_category(db: AsyncSession, category_id: int) -> Category:
    category = await db.get(Category, category_id)
    if not category:
        raise NotFoundError("Category not found")
    return category


# --------------------------
# PRODUCT LOOKUPS
# --------------------------
async def _get_live_product(db: AsyncSession, *conditions) -> Product:
    stmt = (
        select(Product)
        .where(Product.is_deleted == False, *conditions)
        .execution_options(populate_existing=True)
    )
    product = (await db.execute(stmt)).scalars().first()
    if not product:
        raise NotFoundError("Product not found")
    return product


async def _ensure_unique(db: AsyncSession, slug: str, sku: str, exclude_id: Optional[int] = None):
    stmt = select(Product.slug, Product.sku).where(
        Product.is_deleted == False,
        or_(Product.slug == slug, Product.sku == sku),
    )
    if exclude_id is not None:
        stmt = stmt.where(Product.id != exclude_id)
    row = (await db.execute(stmt)).first()
    if row:
        field = "sku" if row.sku == sku else "name"
        raise ConflictError(f"A product with this {field} already exists")


async def _commit_or_conflict(db: AsyncSession):
    # partial unique indexes on slug/sku are the real guard
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("A product with this name or sku already exists")


# --------------------------
# CREATE PRODUCT
# --------------------------
async def create_product(db: AsyncSession, data: ProductCreate, current_user, now: datetime) -> ProductView:
    """
    Create a new product and log the creation in the activity log.
    The slug is derived from the name.
    """
    slug = create_slug(data.name)
    if not slug:
        raise ValidationError("Product name must contain letters or digits")
    sku = data.sku.strip()
    if data.category_id is not None:
        await _get_category(db, data.category_id)
    await _ensure_unique(db, slug, sku)

    product = Product(**data.model_dump(exclude={"sku"}), sku=sku, slug=slug)
    db.add(product)
    await db.flush()  # ensures product.id is available

    await log_user_activity(
        db,
        user_id=current_user.id,
        username=current_user.username,
        message=f"{current_user.role.capitalize()} created product '{product.name}' (ID: {product.id})",
    )
    product_id = product.id
    await _commit_or_conflict(db)

    logger.info("Product %s created by %s", product_id, current_user.username)
    return await decorate_product(db, await _get_live_product(db, Product.id == product_id), now)


# --------------------------
# GET ALL PRODUCTS (with filters + pagination)
# --------------------------
async def get_all_products(
    db: AsyncSession,
    now: datetime,
    search: Optional[str] = None,
    category_id: Optional[int] = None,
    page: int = 1,
    page_size: int = 20,
    sort_by: str = "created_at",
    order: str = "desc",
) -> Tuple[int, List[ProductView]]:
    """
    Fetch live products with optional search, category filter, pagination,
    and sorting, priced for ``now``.
    """
    if sort_by not in ALLOWED_SORT_FIELDS:
        sort_by = "created_at"

    sort_column = getattr(Product, sort_by)
    sort_order = desc(sort_column) if order.lower() == "desc" else asc(sort_column)

    filters = [Product.is_deleted == False]
    if search:
        filters.append(or_(
            Product.name.ilike(f"%{search}%"),
            Product.sku.ilike(f"%{search}%"),
        ))
    if category_id:
        filters.append(Product.category_id == category_id)

    total = (await db.execute(select(func.count(Product.id)).where(*filters))).scalar() or 0

    stmt = (
        select(Product)
        .where(*filters)
        .order_by(sort_order, Product.id)
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    products = (await db.execute(stmt)).scalars().all()
    return total, await decorate_products(db, products, now)


# --------------------------
# GET SINGLE PRODUCT
# --------------------------
async def get_product(db: AsyncSession, product_id: int, now: datetime) -> ProductView:
    return await decorate_product(db, await _get_live_product(db, Product.id == product_id), now)


async def get_product_by_slug(db: AsyncSession, slug: str, now: datetime) -> ProductView:
    return await decorate_product(db, await _get_live_product(db, Product.slug == slug), now)


async def get_product_by_sku(db: AsyncSession, sku: str, now: datetime) -> ProductView:
    return await decorate_product(db, await _get_live_product(db, Product.sku == sku), now)


# --------------------------
# UPDATE PRODUCT
# --------------------------
async def update_product(
    db: AsyncSession,
    product_id: int,
    data: ProductUpdate,
    current_user,
    now: datetime,
) -> ProductView:
    product = await _get_live_product(db, Product.id == product_id)
    update_data = data.model_dump(exclude_unset=True)
    if not update_data:
        raise ValidationError("No data to update")

    if "name" in update_data:
        slug = create_slug(update_data["name"])
        if not slug:
            raise ValidationError("Product name must contain letters or digits")
        update_data["slug"] = slug
    if "sku" in update_data:
        update_data["sku"] = update_data["sku"].strip()
    if update_data.get("category_id") is not None:
        await _get_category(db, update_data["category_id"])

    if "slug" in update_data or "sku" in update_data:
        await _ensure_unique(
            db,
            update_data.get("slug", product.slug),
            update_data.get("sku", product.sku),
            exclude_id=product.id,
        )

    for key, value in update_data.items():
        setattr(product, key, value)

    await log_user_activity(
        db,
        user_id=current_user.id,
        username=current_user.username,
        message=f"{current_user.role.capitalize()} updated product '{product.name}' (ID: {product_id})",
    )
    await _commit_or_conflict(db)
    return await get_product(db, product_id, now)


# --------------------------
# SOFT DELETE PRODUCT
# --------------------------
async def delete_product(db: AsyncSession, product_id: int, current_user) -> None:
    """Soft delete: the row stays so orders and sale entries keep their references."""
    product = await _get_live_product(db, Product.id == product_id)
    product.is_deleted = True

    await log_user_activity(
        db,
        user_id=current_user.id,
        username=current_user.username,
        message=f"{current_user.role.capitalize()} deleted product '{product.name}' (ID: {product_id})",
    )
    await db.commit()
    logger.info("Product %s soft-deleted by %s", product_id, current_user.username)
