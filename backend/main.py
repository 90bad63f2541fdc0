"""FastAPI backend for the requirement-to-supplier matching flows."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from backend.routes import genkit
from procmatch.config import get_settings

logger = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "Gateway credential %s; extraction model=%s, matching model=%s",
        "configured" if settings.openrouter_api_key else "NOT SET (flows will fail at call time)",
        settings.procmatch_extraction_model,
        settings.procmatch_matching_model,
    )
    yield
    if genkit.get_dispatcher.cache_info().currsize:
        gateway = genkit.get_dispatcher().gateway
        if hasattr(gateway, "aclose"):
            await gateway.aclose()


app = FastAPI(
    title="Procmatch API",
    description="AI-assisted requirement extraction and supplier matching.",
    version="0.1.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    lifespan=lifespan,
)


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------
cors_origins = settings.cors_origin_list
cors_origin_regex = settings.cors_origin_regex
logger.info("CORS configured for origins: %s", cors_origins)
if cors_origin_regex:
    logger.info("CORS origin regex: %s", cors_origin_regex)
cors_kw: dict = {
    "allow_origins": cors_origins,
    "allow_credentials": True,
    "allow_methods": ["*"],
    "allow_headers": ["*"],
}
if cors_origin_regex:
    cors_kw["allow_origin_regex"] = cors_origin_regex
app.add_middleware(CORSMiddleware, **cors_kw)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------
class HealthResponse(BaseModel):
    status: str
    gateway_configured: bool


@app.get("/health", response_model=HealthResponse)
@app.get("/api/health", response_model=HealthResponse)
async def health():
    """Health check endpoint."""
    return HealthResponse(status="ok", gateway_configured=bool(settings.openrouter_api_key))


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
app.include_router(genkit.router, prefix="/api", tags=["flows"])
