"""
AskSync Deadlines - Main Application
====================================

Recurring availability and expected-answer-time service.

Modules:
- Availability: Timeblocks, recurrence, availability queries, tags
- Deadlines: Expected answer times and their recalculation

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services and DTOs
- Domain: Entities, value objects, recurrence expansion
- Infrastructure: Database, scheduler, Slack, policy file
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from asksync.config import VALID_RECORD_KINDS, settings
from asksync.infrastructure.database import (
    init_database, close_database, create_tables, get_session_context
)
from asksync.deadlines.infrastructure import (
    PolicyConfigManager, RecalculationScheduler, SlackClient, SlackOverdueNotifier
)
from asksync.availability.interfaces import availability_router, tags_router
from asksync.deadlines.application import RecalculationService
from asksync.deadlines.interfaces import deadlines_router, build_recalculation_service
from asksync.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    install_exception_handlers,
)
from asksync.shared.infrastructure.logging import setup_logging, get_logger, get_context_logger

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Initialize database and create tables
    3. Load deadline policy and watch the file
    4. Start the recalculation scheduler

    SHUTDOWN:
    1. Stop the scheduler
    2. Stop the policy watcher
    3. Close the Slack client and the database
    """
    # === STARTUP ===
    setup_logging(level=settings.log_level, environment=settings.environment, service=settings.app_name)
    logger.info("Starting AskSync deadline service", extra={
        "version": settings.app_version,
        "environment": settings.environment
    })

    init_database()
    # Development convenience; production runs migrations
    await create_tables()

    policy_manager = PolicyConfigManager()
    policy = policy_manager.load(settings.deadline_policy_path)
    policy_manager.start_watching()
    logger.info("Deadline policy loaded", extra={"policy": policy.model_dump()})

    slack_client = SlackClient()
    notifier: Optional[SlackOverdueNotifier] = None
    if slack_client.is_configured:
        notifier = SlackOverdueNotifier(slack_client)
    else:
        logger.info("Slack webhook not configured, overdue notifications disabled")

    scheduler = RecalculationScheduler(interval_seconds=settings.recalculation_interval_seconds)

    async def sweep_batch_job(kind: str, cursor: Optional[str]) -> None:
        """One full-sweep batch in its own transaction."""
        job_logger = get_context_logger(__name__, f"sweep:{kind}")
        job_logger.debug("Running sweep batch", extra={"kind": kind, "has_cursor": cursor is not None})
        async with get_session_context() as session:
            service = build_recalculation_service(session, policy_manager, scheduler, notifier)
            # The next batch is scheduled only once this one is committed
            await service.run_full_sweep(kind, cursor, commit=session.commit)

    async def periodic_recalculation_job() -> None:
        """Start a full sweep for every record kind."""
        RecalculationService.schedule_full_sweeps(scheduler, VALID_RECORD_KINDS)

    await scheduler.start(sweep_batch_job, periodic_recalculation_job)

    # Store services in app state for dependency injection
    app.state.settings = settings
    app.state.policy_manager = policy_manager
    app.state.recalculation_scheduler = scheduler
    app.state.overdue_notifier = notifier

    logger.info("AskSync deadline service started")

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Shutting down AskSync deadline service")

    await scheduler.stop()
    policy_manager.stop_watching()
    await slack_client.close()
    await close_database()

    logger.info("AskSync deadline service shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="AskSync Deadlines API",
    description="""
    ## Recurring Availability & Expected Answer Times

    ### Availability
    - `GET /availability/{org_id}/{responder_id}` - Timeblocks at an instant or in a window
    - `POST /availability/timeblocks` - Create a timeblock (one-off or recurring)
    - `PATCH /availability/timeblocks/{id}` / `DELETE ...` - Edit or remove it
    - `POST /availability/timeblocks/{id}/exceptions` - Skip one occurrence

    ### Tags
    - `POST /tags`, `PATCH /tags/{id}`, `DELETE /tags/{id}`

    ### Deadlines
    - `GET /deadlines/{kind}/{record_id}` - Expected answer time of a record
    - `POST /deadlines/preview` - Deadline for a record about to be created
    - `POST /deadlines/recalculate` - Schedule a full recalculation
    - `POST /deadlines/recalculate/tags` - Recalculate records using tags

    **Answer modes:**
    - `on-demand`: answered within the tag's response time
    - `scheduled`: answered during the next matching availability of a responder

    The most urgent tag of a record decides its expected answer time.
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
app.add_middleware(CorrelationIDMiddleware)
app.add_middleware(LoggingMiddleware)
install_exception_handlers(app)

# === Include Module Routers ===
app.include_router(availability_router)
app.include_router(tags_router)
app.include_router(deadlines_router)


# === Health Check Endpoint ===

@app.get("/health", tags=["Health"], responses={
    200: {
        "description": "Service is healthy",
        "content": {
            "application/json": {
                "example": {
                    "status": "healthy",
                    "version": "1.0.0",
                    "environment": "development",
                    "checks": {
                        "deadline_policy": "loaded",
                        "recalculation_scheduler": "running",
                        "slack": "not_configured"
                    }
                }
            }
        }
    }
})
async def health_check():
    """Health check endpoint for load balancers and orchestrators."""
    scheduler = getattr(app.state, "recalculation_scheduler", None)
    checks = {
        "deadline_policy": "loaded" if getattr(app.state, "policy_manager", None) else "not_loaded",
        "recalculation_scheduler": "running" if scheduler and scheduler.is_running else "stopped",
        "slack": "configured" if getattr(app.state, "overdue_notifier", None) else "not_configured",
    }

    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
        "checks": checks
    }


# === Development Entry Point ===

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "asksync.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level="info"
    )
