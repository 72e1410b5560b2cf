"""
Helpdesk SLA & Priority Engine - Main Application
==================================================

Ticket lifecycle, SLA tracking in business hours and automatic
prioritization for an internal helpdesk.

Modules:
- Tickets: Lifecycle state machine and status history
- SLA: Business calendar, SLA clock, pause/resume and the periodic sweep
- Priority: Weighted priority scoring and re-prioritization sweep

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services and DTOs
- Domain: Entities, value objects and business rules
- Infrastructure: Database, YAML config, Slack, scheduler
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

# Configuration and Core
from helpdesk.config import settings
from helpdesk.core import ApplicationException

# Infrastructure
from helpdesk.infrastructure.database import (
    close_database,
    create_tables,
    get_engine,
    get_session_context,
    init_database,
)

# SLA Module - External services
from helpdesk.sla.infrastructure.external import (
    EngineConfigManager,
    EngineJobs,
    EngineScheduler,
    LoggingNotificationSink,
    SlackNotificationSink,
)

# Module Routers
from helpdesk.priority.interfaces import priority_router
from helpdesk.sla.interfaces import sla_router
from helpdesk.tickets.interfaces import tickets_router

# Shared API and Logging
from helpdesk.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    application_exception_handler,
    global_exception_handler,
)
from helpdesk.shared.infrastructure.logging import get_logger, setup_logging

logger = get_logger(__name__)

SLA_MONITOR_JOB = "sla_monitor"
PRIORITY_SWEEP_JOB = "priority_sweep"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Initialize database and create tables
    3. Load engine configuration and watch it for changes
    4. Create the notification sink
    5. Start the SLA monitor and priority sweep jobs

    SHUTDOWN:
    1. Stop the scheduler
    2. Stop the config watcher
    3. Close the notification sink
    4. Close database connections
    """
    # === STARTUP ===
    setup_logging(settings.log_level, settings.environment)
    logger.info("Starting Helpdesk SLA Engine", extra={
        "version": settings.app_version,
        "environment": settings.environment
    })

    logger.info("Initializing database")
    init_database()

    # Tables are created here for development; production runs migrations
    try:
        await create_tables()
    except (SQLAlchemyError, OSError) as e:
        logger.warning(
            "Database not available - running in degraded mode",
            extra={"error": str(e)}
        )

    # Invalid configuration aborts startup
    logger.info("Loading engine configuration")
    config_manager = EngineConfigManager()
    config_manager.load(settings.engine_config_path)
    config_manager.start_watching()

    if settings.slack_webhook_url:
        notification_sink = SlackNotificationSink(
            settings.slack_webhook_url,
            channel=settings.slack_channel,
            timeout_seconds=settings.slack_timeout_seconds,
        )
    else:
        logger.info("Slack webhook not configured - notifications go to the log only")
        notification_sink = LoggingNotificationSink()

    jobs = EngineJobs(config_manager, get_session_context, notification_sink)
    scheduler = EngineScheduler()
    scheduler.add_interval_job(
        SLA_MONITOR_JOB, jobs.run_sla_monitor,
        settings.sla_monitor_interval_seconds, name="SLA compliance sweep"
    )
    scheduler.add_interval_job(
        PRIORITY_SWEEP_JOB, jobs.run_priority_sweep,
        settings.priority_sweep_interval_seconds, name="Priority recalculation"
    )
    await scheduler.start()

    # Store services in app state for dependency injection
    app.state.config_manager = config_manager
    app.state.notification_sink = notification_sink
    app.state.sla_monitor_lock = jobs.monitor_lock
    app.state.scheduler = scheduler

    logger.info("Helpdesk SLA Engine started successfully")

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Shutting down Helpdesk SLA Engine")

    await scheduler.stop()
    config_manager.stop_watching()
    await notification_sink.close()
    await close_database()

    logger.info("Helpdesk SLA Engine shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="Helpdesk SLA & Priority Engine",
    description="""
    ## Helpdesk SLA & Priority Engine

    Ticket lifecycle, SLA tracking in business hours and automatic
    prioritization. Every mutating call requires the `X-Actor-Id` header.

    ---

    ### Tickets

    - `POST /tickets` - Create a ticket
    - `GET /tickets/{id}` - Get a ticket
    - `POST /tickets/{id}/status` - Change status
    - `GET /tickets/{id}/history` - Status history

    ### SLA

    - `POST /tickets/{id}/sla/pause` - Pause the SLA clock
    - `POST /tickets/{id}/sla/resume` - Resume the SLA clock
    - `GET /tickets/{id}/sla` - Live SLA status
    - `GET /sla/business-hours` - Business calendar
    - `GET /sla/matrix` - SLA targets by priority and category
    - `POST /sla/evaluate` - Ad-hoc deadline calculation
    - `POST /sla/sweep` - Run the SLA sweep now

    ### Priority

    - `GET /tickets/{id}/priority` - Score a ticket
    - `POST /tickets/{id}/priority/recalculate` - Re-prioritize a ticket
    - `POST /priority/recalculate` - Re-prioritize all active tickets

    ---

    ### Configuration

    Business hours, SLA matrix, at-risk ratio and scoring weights live in
    `engine_config.yaml` and are reloaded on change.
    """,
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# === CORS Middleware ===
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# === Custom Middleware (from shared) ===
app.add_middleware(LoggingMiddleware)
app.add_middleware(CorrelationIDMiddleware)
app.add_exception_handler(ApplicationException, application_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

# === Include Module Routers ===
app.include_router(tickets_router)
app.include_router(sla_router)
app.include_router(priority_router)


# === Health Check Endpoint ===

@app.get("/health", tags=["Health"], responses={
    200: {
        "description": "Service status",
        "content": {
            "application/json": {
                "example": {
                    "status": "healthy",
                    "version": "1.0.0",
                    "environment": "development",
                    "checks": {
                        "database": "connected",
                        "engine_config": "loaded",
                        "scheduler": "running"
                    }
                }
            }
        }
    }
})
async def health_check(request: Request):
    """
    Health check endpoint for load balancers and orchestrators.

    Returns service health status including:
    - Database connectivity
    - Engine configuration status
    - Scheduler state
    """
    state = request.app.state
    scheduler = getattr(state, "scheduler", None)
    checks = {
        "database": "connected",
        "engine_config": "loaded" if getattr(state, "config_manager", None) else "not_loaded",
        "scheduler": "running" if scheduler and scheduler.is_running else "stopped",
    }

    try:
        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError, RuntimeError) as e:
        checks["database"] = f"error: {e}"

    healthy = checks["database"] == "connected" and checks["engine_config"] == "loaded"
    return {
        "status": "healthy" if healthy else "degraded",
        "version": settings.app_version,
        "environment": settings.environment,
        "checks": checks
    }


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "architecture": "Clean Architecture / Modular Monolith",
        "docs": "/docs",
        "health": "/health",
        "modules": ["tickets", "sla", "priority"]
    }


# === Development Entry Point ===

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "helpdesk.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level=settings.log_level.lower()
    )
