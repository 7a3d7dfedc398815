# main.py

"""FastAPI application for the order engine.

Services are built once at startup and stored on ``app.state``; tests call
:func:`init_services` with in-memory collaborators before the first request
so the startup hook leaves them alone.
"""

from __future__ import annotations

import logging
import os

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import Settings, get_settings

from . import db as app_db
from .catalog import Catalog
from .domain.errors import (
    ConflictError,
    Contention,
    InvalidSignature,
    InvalidTransition,
    NotFound,
    OrderError,
    PaymentGatewayUnavailable,
    PermissionDenied,
    StoreUnavailable,
    ValidationError,
)
from .middlewares import LoggingMiddleware, RequestIdMiddleware
from .numbering import OrderNumberGenerator
from .obs import capture_exception, init_sentry
from .obs.logging import configure_logging
from .payments.gateway import PaymentGateway, build_gateway
from .pricing.calculator import PricingPolicy
from .repos.orders_repo import OrdersRepo
from .repos_sqlalchemy import MenuRepoSQL, OrdersRepoSQL
from .routes_checkout_gateway import router as checkout_gateway_router
from .routes_metrics import http_requests_total
from .routes_metrics import router as metrics_router
from .routes_orders import router as orders_router
from .routes_pos import router as pos_router
from .services.order_service import OrderService
from .services.payment_service import PaymentService
from .utils.responses import err

logger = logging.getLogger("api")

ERROR_STATUS: dict[type[OrderError], int] = {
    ValidationError: 400,
    InvalidTransition: 400,
    InvalidSignature: 400,
    PermissionDenied: 403,
    NotFound: 404,
    ConflictError: 409,
    Contention: 409,
    PaymentGatewayUnavailable: 503,
    StoreUnavailable: 503,
}

app = FastAPI(title="Order Engine")
app.add_middleware(LoggingMiddleware)
app.add_middleware(RequestIdMiddleware)

configure_logging(get_settings().log_level)
init_sentry(get_settings().error_dsn, env=os.getenv("ENV"))


@app.middleware("http")
async def count_requests(request: Request, call_next):
    response = await call_next(request)
    route = request.scope.get("route")
    http_requests_total.labels(
        path=getattr(route, "path", "unmatched"),
        method=request.method,
        status=str(response.status_code),
    ).inc()
    return response


def status_for(exc: OrderError) -> int:
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS:
            return ERROR_STATUS[cls]
    return 400


@app.exception_handler(OrderError)
async def order_error_handler(request: Request, exc: OrderError):
    status_code = status_for(exc)
    log_fn = logger.warning if status_code >= 500 else logger.info
    log_fn(
        exc.message,
        extra={"status": status_code, "route": request.url.path, "reason": exc.code},
    )
    return JSONResponse(
        err(exc.code, exc.message, exc.details or None, retryable=exc.retryable),
        status_code=status_code,
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    logger.warning(
        exc.detail, extra={"status": exc.status_code, "route": request.url.path}
    )
    return JSONResponse(
        err(exc.status_code, str(exc.detail)),
        status_code=exc.status_code,
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    fields = [
        {"loc": list(e.get("loc", ())), "msg": e.get("msg", "")} for e in exc.errors()
    ]
    return JSONResponse(
        err(ValidationError.code, "invalid request", {"fields": fields}),
        status_code=400,
    )


@app.exception_handler(Exception)
async def general_error_handler(request: Request, exc: Exception):
    logger.exception(
        "unhandled_error", extra={"status": 500, "route": request.url.path}
    )
    capture_exception(exc)
    return JSONResponse(err("INTERNAL", "Internal Server Error"), status_code=500)


def init_services(
    target: FastAPI,
    *,
    repo: OrdersRepo,
    catalog: Catalog,
    gateway: PaymentGateway | None = None,
    settings: Settings | None = None,
) -> OrderService:
    """Wire the order and payment services onto ``target.state``."""

    settings = settings or get_settings()
    orders = OrderService(
        repo,
        catalog,
        PricingPolicy.from_settings(settings),
        max_attempts=settings.cas_max_attempts,
    )
    target.state.order_service = orders
    target.state.payment_service = PaymentService(
        orders, gateway or build_gateway(settings), currency=settings.currency
    )
    return orders


@app.on_event("startup")
async def start_services() -> None:
    """Create tables and build SQL backed services unless already wired."""
    if getattr(app.state, "order_service", None) is not None:
        return
    settings = get_settings()
    engine = app_db.get_engine()
    await app_db.create_all(engine)
    sessionmaker = app_db.get_sessionmaker()
    numbering = OrderNumberGenerator(
        settings.timezone, fallback=settings.order_number_fallback
    )
    init_services(
        app,
        repo=OrdersRepoSQL(sessionmaker, numbering),
        catalog=MenuRepoSQL(sessionmaker),
        settings=settings,
    )
    logger.info("order services ready", extra={"status": "startup"})


@app.on_event("shutdown")
async def stop_services() -> None:
    engine = getattr(app_db, "_engine", None)
    if engine is not None:
        await engine.dispose()


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}


app.include_router(orders_router)
app.include_router(pos_router)
app.include_router(checkout_gateway_router)
app.include_router(metrics_router)
