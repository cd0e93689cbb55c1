"""FastAPI application entrypoint. No business logic; only wiring and middleware."""

from dotenv import load_dotenv

load_dotenv()

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from app.api.errors import register_exception_handlers
from app.api.middleware import JSONBodyLimitMiddleware
from app.api.v1 import router as v1_router
from app.core.config import settings
from app.core.logging_config import configure_logging

configure_logging(settings)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Accounts API",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(JSONBodyLimitMiddleware, max_bytes=settings.JSON_BODY_LIMIT_BYTES)


register_exception_handlers(app)

app.mount(
    settings.STATIC_URL_PATH,
    StaticFiles(directory=settings.STATIC_DIR, check_dir=False),
    name="static",
)

app.include_router(v1_router, prefix=settings.API_V1_PREFIX)


@app.get("/")
def root() -> dict[str, str]:
    """Root route; minimal payload for discovery."""
    return {"message": "Accounts API"}
