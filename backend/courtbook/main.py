import logging
import os

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from courtbook.config import LOG_LEVEL, get_policy
from courtbook.database import engine, init_db
from courtbook.db_schema_patch import ensure_booking_columns, ensure_booking_indexes
from courtbook.routes import admin, bookings, slots
from courtbook.utils.http_errors import request_validation_handler

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

APP_NAME = "Court Booking API"

app = FastAPI(title=APP_NAME)
app.add_exception_handler(RequestValidationError, request_validation_handler)

_cors_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
_extra = os.getenv("CORS_ORIGINS", "")
if _extra:
    _cors_origins.extend(o.strip() for o in _extra.split(",") if o.strip())

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH"],
    allow_headers=["*"],
)

# Include routers
app.include_router(slots.router, prefix="/api", tags=["slots"])
app.include_router(bookings.router, prefix="/api", tags=["bookings"])
app.include_router(admin.router, prefix="/api", tags=["admin"])


@app.on_event("startup")
def on_startup():
    init_db()  # imports models and creates tables
    ensure_booking_columns(engine)
    if not ensure_booking_indexes(engine):
        logger.error("Active-slot unique index missing; slot exclusivity is not enforced by storage")

    policy = get_policy()
    logger.info(
        "Courts 1-%d open %02d:00-%02d:00 (%s), same-day policy %s, slot lock wait %dms",
        policy.court_count,
        policy.open_hour,
        policy.close_hour,
        policy.timezone_name,
        policy.same_day_policy,
        policy.lock_timeout_ms,
    )

    # Log registered routes (full path stack)
    for r in app.routes:
        methods = getattr(r, "methods", None)
        path = getattr(r, "path", None)
        if path:
            methods_str = ", ".join(sorted(methods)) if methods else "N/A"
            logger.info(f"{methods_str:20} {path}")


@app.get("/api/health")
def health_check():
    """Liveness probe"""
    return {"app_name": APP_NAME, "status": "healthy"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
