# app/routers/products_router.py

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import STAFF_ROLES
from app.core.db import get_db
from app.services.product_service import (
    create_category,
    list_categories,
    create_product,
    get_all_products,
    get_product,
    get_product_by_slug,
    get_product_by_sku,
    update_product,
    delete_product,
)
from app.schemas.catalog_schemas import (
    CategoryCreate,
    CategoryOut,
    ProductCreate,
    ProductUpdate,
    ProductView,
)
from app.schemas.response_schemas import ApiResponse, MessageResponse, Pagination, ok
from app.utils.get_user import get_current_user
from app.utils.check_roles import require_role
from app.utils.time_utils import get_now

router = APIRouter(prefix="/products", tags=["Products"])


# -----------------------------------------------------------
# CATEGORIES
# -----------------------------------------------------------
@router.get("/categories", response_model=ApiResponse[List[CategoryOut]])
async def list_categories_route(db: AsyncSession = Depends(get_db)):
    categories = await list_categories(db)
    return ok("Categories fetched successfully", [CategoryOut.model_validate(c) for c in categories])


@router.post("/categories", response_model=ApiResponse[CategoryOut], status_code=status.HTTP_201_CREATED)
@require_role(STAFF_ROLES)
async def create_category_route(
    data: CategoryCreate,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    category = await create_category(db, data, _user)
    return ok("Category created successfully", CategoryOut.model_validate(category))


# -----------------------------------------------------------
# CREATE PRODUCT
# -----------------------------------------------------------
@router.post("", response_model=ApiResponse[ProductView], status_code=status.HTTP_201_CREATED)
@require_role(STAFF_ROLES)
async def create_product_route(
    data: ProductCreate,
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_now),
    _user=Depends(get_current_user),
):
    """
    Create a new product. Restricted to staff roles.
    """
    return ok("Product created successfully", await create_product(db, data, _user, now))


# -----------------------------------------------------------
# LIST ALL PRODUCTS
# -----------------------------------------------------------
@router.get("", response_model=ApiResponse[List[ProductView]])
async def list_products(
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_now),
    search: Optional[str] = Query(None),
    category_id: Optional[int] = Query(None, ge=1),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    sort_by: str = Query("created_at"),
    order: str = Query("desc"),
):
    """
    List products with optional search, filters, pagination, and sorting.
    Prices reflect any sale running right now.
    """
    total, products = await get_all_products(
        db, now, search, category_id, page, limit, sort_by, order
    )
    return ok("Products fetched successfully", products, Pagination.build(page, limit, total))


# -----------------------------------------------------------
# GET PRODUCT BY SLUG / SKU / ID
# -----------------------------------------------------------
@router.get("/slug/{slug}", response_model=ApiResponse[ProductView])
async def get_product_by_slug_route(
    slug: str,
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_now),
):
    return ok("Product fetched successfully", await get_product_by_slug(db, slug, now))


@router.get("/sku/{sku}", response_model=ApiResponse[ProductView])
async def get_product_by_sku_route(
    sku: str,
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_now),
):
    return ok("Product fetched successfully", await get_product_by_sku(db, sku, now))


@router.get("/{product_id}", response_model=ApiResponse[ProductView])
async def get_product_by_id(
    product_id: int,
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_now),
):
    return ok("Product fetched successfully", await get_product(db, product_id, now))


# -----------------------------------------------------------
# UPDATE PRODUCT
# -----------------------------------------------------------
@router.put("/{product_id}", response_model=ApiResponse[ProductView])
@require_role(STAFF_ROLES)
async def update_product_route(
    product_id: int,
    data: ProductUpdate,
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_now),
    _user=Depends(get_current_user),
):
    return ok("Product updated successfully", await update_product(db, product_id, data, _user, now))


# -----------------------------------------------------------
# DELETE PRODUCT (soft)
# -----------------------------------------------------------
@router.delete("/{product_id}", response_model=MessageResponse)
@require_role(STAFF_ROLES)
async def delete_product_route(
    product_id: int,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    await delete_product(db, product_id, _user)
    return MessageResponse(message="Product deleted successfully")
