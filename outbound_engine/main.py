"""
Outbound Engine - FastAPI Application Entry Point.

Campaign scheduling and call execution for AI outbound sales calls:
- Prospect research, scoring and call scheduling
- Rate-limited, retried call queue with a bounded worker pool
- Live tool calls from the voice platform

Run with:
    uvicorn outbound_engine.main:app --reload --port 8000
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from outbound_engine.agents.call_agent import CallAgent
from outbound_engine.api.campaigns import router as campaign_router, webhook_router
from outbound_engine.core.config import get_settings
from outbound_engine.integrations import (
    ActivityHistoryContextService,
    ApolloEnrichmentService,
    GoogleCalendarService,
    SupabaseCRMService,
    VapiTelephonyService,
)
from outbound_engine.intelligence.research import ResearchAgent
from outbound_engine.orchestration.orchestrator import CampaignOrchestrator
from outbound_engine.orchestration.supabase_queue import SupabaseJobQueue


# ===========================================
# Logging Configuration
# ===========================================

def setup_logging():
    """Configure application logging."""
    settings = get_settings()

    # Create formatter
    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)
    root_logger.addHandler(console_handler)

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("google").setLevel(logging.WARNING)
    logging.getLogger("googleapiclient").setLevel(logging.WARNING)

    return logging.getLogger(__name__)


logger = setup_logging()


def build_orchestrator() -> CampaignOrchestrator:
    """Wire the production collaborators into an orchestrator."""
    settings = get_settings()
    crm = SupabaseCRMService(settings=settings)
    telephony = VapiTelephonyService(settings=settings)
    agent = CallAgent(GoogleCalendarService(settings=settings), settings=settings)

    return CampaignOrchestrator(
        crm=crm,
        research=ResearchAgent(crm, ApolloEnrichmentService(settings=settings), settings=settings),
        agent=agent,
        telephony=telephony,
        context_service=ActivityHistoryContextService(crm),
        queue=SupabaseJobQueue(settings=settings),
        settings=settings,
    )


# ===========================================
# Application Lifespan
# ===========================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Application lifespan handler for startup/shutdown."""
    settings = get_settings()

    logger.info("=" * 50)
    logger.info("Outbound Engine Starting Up")
    logger.info("=" * 50)
    logger.info(f"Environment: {'Development' if settings.DEBUG else 'Production'}")
    logger.info(f"Workers: {settings.WORKER_CONCURRENCY}, max attempts: {settings.MAX_CALL_ATTEMPTS}")

    # Verify critical settings
    if not settings.SUPABASE_URL or not settings.SUPABASE_KEY:
        logger.warning("Supabase credentials not configured!")

    if not settings.OPENAI_API_KEY:
        logger.warning("OpenAI API key not configured!")

    if not settings.VAPI_API_KEY:
        logger.warning("Vapi API key not configured!")

    if getattr(app.state, "orchestrator", None) is None:
        app.state.orchestrator = build_orchestrator()

    orchestrator: CampaignOrchestrator = app.state.orchestrator
    recovered = await orchestrator.recover()
    logger.info(f"Recovered {recovered} pending call jobs")
    orchestrator.start()
    logger.info("Startup complete - call workers running")

    yield

    # Shutdown
    logger.info("Outbound Engine shutting down...")
    await orchestrator.stop()


# ===========================================
# FastAPI Application
# ===========================================

def create_app(orchestrator: Optional[CampaignOrchestrator] = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Outbound Engine",
        description="""
        Campaign scheduling and call execution for AI outbound sales.

        ## Campaigns

        - `POST /campaigns` - Launch a campaign
        - `POST /campaigns/{id}/pause|resume|cancel` - Control a campaign
        - `GET /campaigns/{id}/stats` - Job counts

        ## Webhooks

        - `POST /webhook/vapi` - Tool calls from live voice calls
        """,
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
    )
    app.state.orchestrator = orchestrator

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(campaign_router)
    app.include_router(webhook_router)

    @app.get("/health", tags=["health"])
    async def health():
        """Health check with worker status."""
        current = app.state.orchestrator
        return {
            "status": "healthy",
            "service": "outbound-engine",
            "workers_running": bool(current and current.running),
        }

    @app.exception_handler(Exception)
    async def global_exception_handler(request, exc):
        """Global exception handler for unhandled errors."""
        logger.error(f"Unhandled error: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "message": str(exc) if get_settings().DEBUG else "An error occurred"
            }
        )

    return app


# Create app instance
app = create_app()


# ===========================================
# Main Entry Point
# ===========================================

if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "outbound_engine.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info"
    )
