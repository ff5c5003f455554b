"""
Main FastAPI application for the photo marketplace core.
Serves orders, payment/print webhooks, asset access and delivery, admin payouts, health and metrics.
"""
import logging
import time
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from marketplace.api.errors import register_exception_handlers
from marketplace.api.routes import assets, health, orders, payouts, webhooks
from marketplace.core.config import settings
from marketplace.core.logging import configure_logging
from marketplace.utils.metrics import router as metrics_router


configure_logging()
logger = logging.getLogger("marketplace.http")

app = FastAPI(
    title="Photo Marketplace Core",
    description="Orders, entitlements, protected previews and creator payouts",
    version="1.0.0",
)

# CORS
origins = settings.cors_origins_list or ["http://localhost:3000", "http://127.0.0.1:3000"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    request_id = request.headers.get("X-Request-Id") or uuid4().hex
    start = time.time()
    response = await call_next(request)
    response.headers["X-Request-Id"] = request_id
    logger.info(
        "http_request",
        extra={
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "latency_ms": int((time.time() - start) * 1000),
        },
    )
    return response


# Routers
app.include_router(health.router, tags=["health"])
app.include_router(orders.router)
app.include_router(webhooks.router)
app.include_router(assets.router)
app.include_router(payouts.router)
app.include_router(metrics_router)
