import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

import app.models  # noqa: F401
from app.core.config import get_settings
from app.core.errors import EventServiceError
from app.core.logging_config import setup_logging
from app.database.db import Base, engine
from app.routes import events, messages, registrations
from app.services.container import build_services

setup_logging()
logger = logging.getLogger(__name__)

settings = get_settings()

app = FastAPI(title=settings.PROJECT_NAME)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Create all tables (in production, use migrations such as Alembic)
Base.metadata.create_all(bind=engine)

app.state.services = build_services(settings)

# Include the routers
app.include_router(events.router)
app.include_router(registrations.router)
app.include_router(messages.router)


@app.get("/healthz", tags=["health"])
def healthz():
    return {"status": "ok"}


@app.exception_handler(EventServiceError)
def handle_service_error(request: Request, exc: EventServiceError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "code": exc.code})


@app.exception_handler(IntegrityError)
def handle_integrity_error(request: Request, exc: IntegrityError):
    logger.warning("Integrity error on %s %s: %s", request.method, request.url.path, exc.orig)
    return JSONResponse(status_code=409, content={"detail": "Duplicate record", "code": "UNIQUE_VIOLATION"})
