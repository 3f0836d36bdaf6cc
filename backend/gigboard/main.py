"""
Gigboard API - FastAPI backend for freelancer proposals and quota accounting
"""

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Load environment variables from .env file
load_dotenv()

# Configure logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

from gigboard.routers import accounts, health, jobs, profiles, proposals  # noqa: E402
from gigboard.scheduler import shutdown_scheduler, start_scheduler  # noqa: E402
from gigboard.security import setup_security  # noqa: E402

ENABLE_SCHEDULER = os.getenv("ENABLE_SCHEDULER", "true").lower() == "true"


@asynccontextmanager
async def lifespan(app: FastAPI):
    if ENABLE_SCHEDULER:
        start_scheduler()
    yield
    shutdown_scheduler()


app = FastAPI(
    title="Gigboard API",
    description="Freelancer proposals, milestones and monthly proposal quotas",
    version="1.0.0",
    lifespan=lifespan,
)

# =============================================================================
# CORS Configuration
# =============================================================================
ENVIRONMENT = os.getenv("ENVIRONMENT", "development").lower()
_default_origins = (
    "" if ENVIRONMENT == "production" else "http://localhost:3000,http://localhost:5173"
)
ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv("ALLOWED_ORIGINS", _default_origins).split(",")
    if origin.strip()
]
if ENVIRONMENT == "production":
    ALLOWED_ORIGINS = [o for o in ALLOWED_ORIGINS if o.startswith("https://")]

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)
logger.info("CORS configured for %d origins (%s)", len(ALLOWED_ORIGINS), ENVIRONMENT)

setup_security(app)

# =============================================================================
# Routers
# =============================================================================
app.include_router(health.router)
app.include_router(profiles.router)
app.include_router(accounts.router)
app.include_router(jobs.router)
app.include_router(proposals.router)
