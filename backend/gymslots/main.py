"""
FastAPI app entrypoint.

Gym slot booking: weekly slot calendar, bookings, feedback, announcements, admin.
"""
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError

# Load .env from backend/ before any app code
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

from gymslots.api.routes import admin, announcements, auth, bookings, feedback, slots
from gymslots.config import settings
from gymslots.core.errors import GymSlotsError, UpstreamUnavailable, error_detail, status_for
from gymslots.db.session import init_db

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.create_tables_on_startup:
        init_db()
        logger.info("Tables created (create_tables_on_startup)")
    logger.info("Backend ready")
    yield


app = FastAPI(title="Gym Slots", version="0.1.0", lifespan=lifespan)

# CORS: dev origins + optional CORS_ORIGINS env (comma-separated) for the production frontend
_cors_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
_cors_extra = settings.cors_origins or os.getenv("CORS_ORIGINS", "")
if _cors_extra:
    _cors_origins.extend(o.strip() for o in _cors_extra.split(",") if o.strip())
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(GymSlotsError)
async def gymslots_error_handler(request: Request, exc: GymSlotsError):
    # Admission rejections and 4xx outcomes are expected; services already log them at INFO.
    headers = {"WWW-Authenticate": "Bearer"} if status_for(exc) == 401 else None
    return JSONResponse(status_code=status_for(exc), content={"detail": error_detail(exc)}, headers=headers)


@app.exception_handler(DBAPIError)
async def database_unavailable_handler(request: Request, exc: DBAPIError):
    # Lost or refused connections are 503; other driver errors (integrity, SQL) stay 500.
    if not isinstance(exc, (OperationalError, InterfaceError)) and not exc.connection_invalidated:
        raise exc
    logger.warning("Database unavailable on %s %s: %s", request.method, request.url.path, exc, exc_info=True)
    err = UpstreamUnavailable()
    return JSONResponse(status_code=status_for(err), content={"detail": error_detail(err)})


app.include_router(auth.router, prefix="/auth", tags=["auth"])
app.include_router(slots.router, prefix="/slots", tags=["slots"])
app.include_router(bookings.router, prefix="/bookings", tags=["bookings"])
app.include_router(feedback.router, prefix="/feedback", tags=["feedback"])
app.include_router(announcements.router, prefix="/announcements", tags=["announcements"])
app.include_router(admin.router, prefix="/admin", tags=["admin"])


@app.get("/", include_in_schema=False)
def root():
    """Root: point to API docs and health."""
    return {"message": "Gym Slots API", "docs": "/docs", "health": "/health"}


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
