"""
Copyright © 2026 Vladimir Vaulin-Belskii. All rights reserved.

FastAPI application entrypoint wiring routers and middleware.
"""
from contextlib import asynccontextmanager
import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from .api import router as api_router
from .config import settings

# Configure logging handlers
handlers = [logging.StreamHandler()]
if settings.log_file:
    handlers.append(logging.FileHandler(settings.log_file))

logging.basicConfig(
    level=logging.INFO,
    handlers=handlers,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

# Set the application's specific log level from settings
logging.getLogger("chunkscribe").setLevel(settings.log_level.upper())
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log configuration on startup."""
    logger.info("Starting chunkscribe")
    logger.info("Loaded Configuration:")
    for key, value in settings.model_dump().items():
        if any(secret in key.lower() for secret in ["key", "secret", "token", "password"]):
            value = "***"
        logger.info("  %s: %s", key, value)
    if not settings.openai_api_key:
        logger.warning("OPENAI_API_KEY is not set; transcription requests will be rejected upstream")
    yield


app = FastAPI(title=settings.app_name, lifespan=lifespan)

origins = [origin.strip() for origin in settings.allowed_origins.split(",") if origin.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
    start = time.time()
    try:
        response = await call_next(request)
    except Exception:
        logger.exception("Unhandled error: %s %s", request.url.path, request.method)
        raise
    duration_ms = (time.time() - start) * 1000
    logger.info("Request completed: %s %s %s %.2fms", request.url.path, request.method, response.status_code, duration_ms)
    return response


app.include_router(api_router)
