"""API module - FastAPI routers."""

from outbound_engine.api.campaigns import router as campaign_router, webhook_router

__all__ = [
    "campaign_router",
    "webhook_router",
]
