"""Coachboard: FastAPI application entry point."""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from coachboard.config import settings
from coachboard.database import engine, init_db
from coachboard.routers import activity, insights, actions, workflow, dashboards

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# ── CORS origins from env ────────────────────────────────────────────────────
_cors_origins = [o.strip() for o in settings.ALLOWED_ORIGINS.split(",") if o.strip()]

app = FastAPI(
    title="Coachboard",
    description="Insight lifecycle and teacher workflow engine.",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(activity.router)
app.include_router(insights.router)
app.include_router(actions.router)
app.include_router(workflow.router)
app.include_router(dashboards.router)


@app.on_event("startup")
def on_startup():
    """Create tables on first run."""
    init_db()
    logger.info("Coachboard started (database: %s)", engine.url.render_as_string(hide_password=True))


@app.get("/")
def root():
    return {"name": "Coachboard API", "version": "0.1.0", "docs": "/docs"}


@app.get("/health")
def health():
    return {"status": "ok"}
