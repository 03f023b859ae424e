# agency_booking/main.py
import os
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .config import settings
from .database import init_db
from .errors import BookingError, SlotTakenError
from .jobs.dispatcher import shutdown_dispatcher, start_dispatcher
from .services.zoom import close_zoom_client

# Routers
from .routers.consultations import router as consultations_router
from .routers.admin import router as admin_router

# ──────────────────────────────────────────────────────────────────────────────
# LOGGING
# Levels come from env vars:
#   LOG_LEVEL, SQLA_LOG_LEVEL, UVICORN_LOG_LEVEL, HTTPX_LOG_LEVEL, APSCHEDULER_LOG_LEVEL
# ──────────────────────────────────────────────────────────────────────────────
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

logging.getLogger("sqlalchemy.engine").setLevel(
    getattr(logging, os.getenv("SQLA_LOG_LEVEL", "WARNING"), logging.WARNING)
)
logging.getLogger("uvicorn.error").setLevel(
    getattr(logging, os.getenv("UVICORN_LOG_LEVEL", "INFO"), logging.INFO)
)
# httpx logs every request line at INFO, including the token exchange
logging.getLogger("httpx").setLevel(
    getattr(logging, os.getenv("HTTPX_LOG_LEVEL", "WARNING"), logging.WARNING)
)
logging.getLogger("apscheduler").setLevel(
    getattr(logging, os.getenv("APSCHEDULER_LOG_LEVEL", "WARNING"), logging.WARNING)
)

logger = logging.getLogger(__name__)

# ──────────────────────────────────────────────────────────────────────────────
# FastAPI App
# ──────────────────────────────────────────────────────────────────────────────
app = FastAPI(title=settings.APP_NAME)

app.include_router(consultations_router)
app.include_router(admin_router, prefix="/admin")  # admin.py must not repeat /admin


# ──────────────────────────────────────────────────────────────────────────────
# Error bodies
# ──────────────────────────────────────────────────────────────────────────────
@app.exception_handler(BookingError)
def booking_error_handler(request: Request, exc: BookingError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    body = {"success": False, "message": exc.message}
    if isinstance(exc, SlotTakenError):
        body["availableSlots"] = exc.available_slots
    return JSONResponse(status_code=exc.status_code, content=body)


@app.exception_handler(RequestValidationError)
def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(p) for p in err.get("loc", ()) if p != "body"), "message": err.get("msg", "")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"success": False, "message": "Invalid request data", "errors": errors},
    )


# ──────────────────────────────────────────────────────────────────────────────
# Lifecycle
# ──────────────────────────────────────────────────────────────────────────────
@app.on_event("startup")
def on_startup():
    init_db()
    start_dispatcher()
    logger.info("Startup complete: %s (%s) tz=%s", settings.APP_NAME, settings.ENV, settings.TIMEZONE)


@app.on_event("shutdown")
def on_shutdown():
    shutdown_dispatcher()
    close_zoom_client()


@app.get("/")
def root():
    return {"ok": True, "app": settings.APP_NAME, "env": settings.ENV}
