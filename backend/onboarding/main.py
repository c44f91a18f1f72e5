import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from onboarding.config import settings
from onboarding.middleware.exceptions import register_exception_handlers
from onboarding.routers import health, progress
from onboarding.services.scheduler import lifespan

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title="Merchant Onboarding",
    description="Store registration progress and draft lifecycle",
    version="0.1.0",
    lifespan=lifespan,
)

# ── Exception Handlers ───────────────────────────────────────
register_exception_handlers(app)

# ── Middleware ───────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routers ──────────────────────────────────────────────────
app.include_router(health.router)
app.include_router(progress.router, prefix="/api/register-store", tags=["register-store"])
