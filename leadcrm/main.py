from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from leadcrm.api.endpoints import (
    admin,
    auth,
    categories,
    commission_rates,
    health,
    incentive_config,
    incentives,
    leads,
    manager,
    offers,
    organization,
    owner,
    penalties,
    streaks,
    super_admin,
    targets,
    team,
    team_pool,
)
from leadcrm.core.config import settings
from leadcrm.core.exceptions import register_exception_handlers
from leadcrm.core.logging import setup_application_logging
from leadcrm.db.database import AsyncSessionLocal, create_tables
from leadcrm.db.init_data import init_database_data
from leadcrm.middleware.simple_performance import SimplePerformanceMiddleware

logger = logging.getLogger("leadcrm.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_application_logging(settings.LOG_LEVEL)
    logger.info("Starting LeadCRM API")

    try:
        await create_tables()
        async with AsyncSessionLocal() as db:
            await init_database_data(db)
    except Exception as e:
        # serve anyway; requests touching the database report their own errors
        logger.error(f"Database initialisation failed: {e}")

    logger.info("LeadCRM API ready")
    yield
    logger.info("LeadCRM API shutdown completed")


app = FastAPI(
    title="LeadCRM API",
    description="Lead tracking, sales incentives and approvals for retail sales teams",
    version="1.0.0",
    lifespan=lifespan,
)

register_exception_handlers(app)

app.add_middleware(SimplePerformanceMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
    allow_headers=[
        "Content-Type",
        "Authorization",
        "Accept",
        "Origin",
        "X-Requested-With",
        "X-User-Id",
        "X-User-Role",
        "X-Organization-Id",
        "X-User-Phone",
    ],
)

app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
app.include_router(categories.router, prefix="/api/categories", tags=["categories"])
app.include_router(leads.router, prefix="/api/leads", tags=["leads"])
app.include_router(admin.router, prefix="/api/admin", tags=["admin"])
app.include_router(team.router, prefix="/api/team", tags=["team"])
app.include_router(organization.router, prefix="/api/organization", tags=["organization"])
app.include_router(super_admin.router, prefix="/api/super-admin", tags=["super-admin"])
app.include_router(offers.router, prefix="/api/offers", tags=["offers"])
app.include_router(owner.router, prefix="/api/owner", tags=["owner"])

app.include_router(commission_rates.router, prefix="/api/earn/commission-rates", tags=["earn"])
app.include_router(incentive_config.router, prefix="/api/earn/incentive-config", tags=["earn"])
app.include_router(targets.router, prefix="/api/earn/targets", tags=["earn"])
app.include_router(penalties.router, prefix="/api/earn/penalties", tags=["earn"])
app.include_router(incentives.router, prefix="/api/earn/incentives", tags=["earn"])
app.include_router(manager.router, prefix="/api/earn/manager", tags=["earn"])
app.include_router(team_pool.router, prefix="/api/earn/team-pool", tags=["earn"])
app.include_router(streaks.router, prefix="/api/earn/streak", tags=["earn"])

app.include_router(health.router, prefix="/api/health", tags=["health"])


@app.get("/")
async def root():
    return {"message": "LeadCRM API", "version": "1.0.0", "docs": "/docs"}
