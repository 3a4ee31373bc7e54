import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from storefront.config import settings
from storefront.database import create_db_and_tables
from storefront.routes import (
    admin,
    admin_orders,
    cart,
    checkout,
    health,
    sandbox,
    user_orders,
    webhooks,
)

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Run DB creation ONLY in local, migrations elsewhere
    if settings.ENV == "local":
        create_db_and_tables()
    yield

app = FastAPI(title="Storefront Checkout API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",
        "http://localhost:3000",
        "http://127.0.0.1:5173",
        settings.frontend_url,
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(cart.router, prefix="/cart", tags=["Cart"])
app.include_router(checkout.router, prefix="/checkout", tags=["Checkout"])
app.include_router(webhooks.router, prefix="/webhooks", tags=["Payment Webhooks"])
app.include_router(sandbox.router, prefix="/sandbox", tags=["Sandbox Payments"])
app.include_router(user_orders.router, prefix="/orders", tags=["Orders"])
app.include_router(admin.router, prefix="/admin", tags=["Admin"])
app.include_router(admin_orders.router, prefix="/admin/orders", tags=["Admin Orders"])
app.include_router(health.router, prefix="/health", tags=["Health"])

@app.get("/")
def root():
    return {
        "cart": [
            "/cart", "/cart/add", "/cart/update/{product_id}",
            "/cart/remove/{product_id}", "/cart/clear"
        ],
        "checkout": [
            "/checkout/serviceability", "/checkout/summary",
            "/checkout/begin", "/checkout/razorpay/verify"
        ],
        "webhooks": [
            "/webhooks/razorpay", "/webhooks/shiprocket", "/webhooks/sandbox"
        ],
        "orders": ["/orders", "/orders/{order_id}"],
        "admin": ["/admin/login", "/admin/orders", "/admin/orders/{order_id}/status"],
    }
