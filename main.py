# main.py
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.db import init_models
from app.core.exception_handlers import register_exception_handlers
from app.core.logging_config import setup_logging
from app.middleware.activity_logger import ActivityLoggerMiddleware
from app.routers import (
    auth_router,
    notifications_router,
    orders_router,
    products_router,
    sales_router,
    vouchers_router,
)

setup_logging()

app = FastAPI(
    title="Storefront Pricing API",
    description="FastAPI backend for catalog pricing, sale occasions, vouchers and orders",
    version="0.1.0"
)
# CORS setup
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # adjust for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(ActivityLoggerMiddleware)
register_exception_handlers(app)

# Health check endpoint
@app.get("/", tags=["Health"])
async def health_check():
    return {"status": "ok", "message": "Backend is running"}

# Register routers
app.include_router(auth_router)
app.include_router(products_router)
app.include_router(sales_router)
app.include_router(vouchers_router)
app.include_router(orders_router)
app.include_router(notifications_router)


@app.on_event("startup")
async def on_startup():
    await init_models()
