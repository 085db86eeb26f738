"""
Storefront Orders — FastAPI Application

Order finalization with PIX payment codes, an atomic stock ledger and
best-effort staff notifications (Telegram relay + web push).
"""
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi import HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from config import settings
from routes import health, orders, payment, products, push

# ── Logging ─────────────────────────────────────────────────────────

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# ── Lifespan ────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: create DB tables, build services. Shutdown: drain background work."""
    # Ensure the directory of a file-backed SQLite database exists
    if settings.database_url.startswith("sqlite") and ":memory:" not in settings.database_url:
        db_dir = os.path.dirname(settings.database_url.split("///", 1)[-1])
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

    settings.validate_production_settings()

    from database import async_session, engine, init_db
    await init_db()
    logger.info("Database initialized")

    from services import async_executor
    from services.notification_service import build_notifier
    from services.payment_service import PaymentService, QrcodeRenderer

    async_executor.configure(settings.executor_max_workers)

    # Merchant identity is frozen here; nothing reads it from settings later
    app.state.payment_service = PaymentService(settings.merchant_config(), QrcodeRenderer())
    app.state.notifier = build_notifier(settings, async_session)
    app.state.default_order_status = settings.default_order_status

    yield  # app runs here

    # Let in-flight notifications finish, then release the pool
    await async_executor.drain_detached(timeout=10.0)
    async_executor.shutdown_executor()
    await engine.dispose()

    logger.info("Shutting down")


# ── App Factory ─────────────────────────────────────────────────────

app = FastAPI(
    title="Storefront Orders API",
    description="Orders, PIX payment codes, stock ledger and staff notifications",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routes ──────────────────────────────────────────────────────────

app.include_router(health.router)
app.include_router(orders.router)
app.include_router(payment.router)
app.include_router(push.router)
app.include_router(products.router)

# ── Static Files (storefront pages) ────────────────────────────────

frontend_dir = os.path.join(os.path.dirname(os.path.dirname(__file__)), "public")
if os.path.exists(frontend_dir):
    app.mount("/static", StaticFiles(directory=frontend_dir), name="static")

# ── Exception Handlers ──────────────────────────────────────────────


def _error_body(code: str, message: str, details=None) -> dict:
    return {
        "success": False,
        "error": {
            "code": code,
            "message": message,
            "details": details,
        },
    }


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """
    Catch-all for unhandled exceptions.

    Never returns raw exception details to clients; the full traceback is
    logged server-side.
    """
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content=_error_body("internal_server_error", "Internal server error"),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request, exc: RequestValidationError):
    """Malformed bodies/params are client errors (400), same envelope as ValidationError."""
    errors = [
        {"loc": list(e.get("loc", [])), "msg": e.get("msg", "")}
        for e in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content=_error_body("validation_error", "Request validation failed", {"errors": errors}),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc: HTTPException):
    """
    Standardize HTTPException responses for frontend consumers.

    Keeps the original HTTP status code, but wraps the payload.
    """
    # DomainError (a subclass of HTTPException) carries structured error info
    if hasattr(exc, "message") and hasattr(exc, "details"):
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(getattr(exc, "code", "domain_error"), exc.message, exc.details),
        )

    detail = exc.detail
    message = detail if isinstance(detail, str) else "Request failed"
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body("http_error", message, detail if not isinstance(detail, str) else None),
        headers=getattr(exc, "headers", None),
    )


# ── Entrypoint ──────────────────────────────────────────────────────

if __name__ == "__main__":
    import uvicorn
    port = int(os.environ.get("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port, log_level="info")
