"""
Market Trainer - stock market training game backend
Simulates a small market of fictional companies under stochastic volatility,
agent demand, sentiment regimes and scripted news, and lets one player trade it.
"""
import logging
import json
import sys
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from config import GameSettings, get_settings
from routers import game_router
from routers.game import limiter
from services.event_catalog import load_event_catalog
from services.game_session import GameSession

settings = get_settings()


# ── Structured JSON Logging ─────────────────────────────────────────
class JSONFormatter(logging.Formatter):
    """Structured JSON log formatter for production observability."""
    def format(self, record):
        log = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[0]:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log)


def setup_logging(level: str = "INFO"):
    """Configure structured logging for all app loggers."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)
    # Quiet noisy libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


logger = logging.getLogger("market_trainer")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    setup_logging(settings.log_level)
    logger.info("Starting Market Trainer API")
    catalog = load_event_catalog(settings.event_catalog_source)
    app.state.session = GameSession(GameSettings(), catalog)
    logger.info("Game session ready with %d news events", len(catalog))
    yield
    await app.state.session.shutdown()
    logger.info("Shutting down Market Trainer API")


# ── OpenAPI metadata ────────────────────────────────────────────────
OPENAPI_TAGS = [
    {"name": "game", "description": "Market state, trading, news events, settings and the live SSE stream"},
    {"name": "ops", "description": "Health checks and operational endpoints"},
]

app = FastAPI(
    title="Market Trainer API",
    description=(
        "# Market Trainer\n\n"
        "A single-player stock market game. Prices follow a stochastic-volatility "
        "model nudged by synthetic trader demand, market sentiment and news events.\n\n"
        "Commands: pause/resume, acknowledge news, trade, reset, add funds."
    ),
    version="1.0.0",
    lifespan=lifespan,
    openapi_tags=OPENAPI_TAGS,
    license_info={"name": "MIT"},
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Rate limiter state (required by slowapi)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.include_router(game_router)


# ── Request logging middleware ───────────────────────────────────────
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log every request with method, path, and response time."""
    import time
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000
    if not request.url.path.startswith(("/health", "/api/game/stream")):
        logger.info(
            "%s %s %d %.0fms",
            request.method, request.url.path, response.status_code, duration_ms,
        )
    return response


@app.get("/", tags=["ops"])
async def root():
    """Root endpoint with API discovery links."""
    return {
        "name": "Market Trainer API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
    }


@app.get("/health", tags=["ops"])
async def health_check(request: Request):
    """Health check for readiness probes. Reports session and event catalog status."""
    session = getattr(request.app.state, "session", None)
    checks = {"api": "ok"}
    checks["session"] = "ok" if session is not None else "missing"
    checks["news_events"] = len(session.catalog) if session is not None else 0
    checks["running"] = session.running if session is not None else False
    overall = "healthy" if session is not None else "degraded"
    return {"status": overall, "service": "market-trainer-api", "version": "1.0.0", "checks": checks}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
