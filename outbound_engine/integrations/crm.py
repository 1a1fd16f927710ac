"""Supabase-backed CRM for prospects, activity history and opportunity stages."""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from supabase import create_client, Client
from supabase.lib.client_options import ClientOptions

from outbound_engine.core.config import get_settings
from outbound_engine.models import (
    AccountStatus,
    ActivityRecord,
    CRMData,
    Interaction,
    InteractionType,
    Prospect,
    ProspectFilters,
)

logger = logging.getLogger(__name__)

INTERACTION_HISTORY_LIMIT = 20


def create_supabase_client(settings) -> Client:
    """Build a Supabase client from the configured URL and service key."""
    if not settings.SUPABASE_URL or not settings.SUPABASE_KEY:
        raise ValueError("Supabase credentials not configured")

    client = create_client(
        settings.SUPABASE_URL,
        settings.SUPABASE_KEY,
        options=ClientOptions(
            postgrest_client_timeout=30,
            storage_client_timeout=30
        )
    )
    logger.info("Supabase client initialized")
    return client


class SupabaseCRMService:
    """
    CRM collaborator on top of Supabase tables.

    Prospects live in PROSPECTS_TABLE, every call attempt is appended to
    ACTIVITIES_TABLE and opportunity stages are kept in OPPORTUNITIES_TABLE.
    The Supabase client is synchronous, so each query runs in a worker thread.
    """

    def __init__(self, settings=None, client: Optional[Client] = None):
        self._settings = settings
        self._client = client

    @property
    def settings(self):
        """Lazy load settings."""
        if self._settings is None:
            self._settings = get_settings()
        return self._settings

    @property
    def client(self) -> Client:
        """Lazy initialization of Supabase client."""
        if self._client is None:
            self._client = create_supabase_client(self.settings)
        return self._client

    async def _execute(self, query) -> List[Dict[str, Any]]:
        response = await asyncio.to_thread(query.execute)
        return response.data or []

    # ===========================================
    # Read Operations
    # ===========================================

    async def query_prospects(self, filters: ProspectFilters) -> List[Prospect]:
        """Load prospects matching the campaign filters."""
        query = self.client.table(self.settings.PROSPECTS_TABLE).select("*")

        if filters.industries:
            query = query.in_("industry", filters.industries)
        if filters.company_size_min is not None:
            query = query.gte("company_size", filters.company_size_min)
        if filters.company_size_max is not None:
            query = query.lte("company_size", filters.company_size_max)
        if filters.roles:
            query = query.in_("role", filters.roles)
        if filters.account_status:
            query = query.in_("account_status", filters.account_status)
        for column, value in (filters.custom_query or {}).items():
            query = query.eq(column, value)

        try:
            rows = await self._execute(query)
        except Exception as e:
            logger.error(f"Failed to query prospects: {e}")
            raise

        prospects = [self._to_prospect(row) for row in rows]
        logger.info(f"Loaded {len(prospects)} prospects")
        return prospects

    async def fetch_prospect_data(self, crm_id: str) -> CRMData:
        """Fetch CRM signals and the recent interaction history of one prospect."""
        try:
            rows = await self._execute(
                self.client.table(self.settings.PROSPECTS_TABLE)
                .select("*")
                .eq("crm_id", crm_id)
                .limit(1)
            )
            if not rows:
                raise LookupError(f"Prospect not found in CRM: {crm_id}")
            record = rows[0]

            activities = await self._execute(
                self.client.table(self.settings.ACTIVITIES_TABLE)
                .select("*")
                .eq("prospect_id", record["id"])
                .order("timestamp", desc=True)
                .limit(INTERACTION_HISTORY_LIMIT)
            )
        except Exception as e:
            logger.error(f"Failed to fetch CRM data for {crm_id}: {e}")
            raise

        return CRMData(
            account_status=self._account_status(record.get("account_status")),
            past_interactions=[self._to_interaction(row) for row in activities],
            deal_value=record.get("deal_value"),
            industry=record.get("industry") or "Unknown",
            company_size=record.get("company_size"),
            last_contact_date=record.get("last_contact_date"),
        )

    async def get_activities(self, prospect_id: str, limit: int = 10) -> List[Dict[str, Any]]:
        """Most recent activity rows for a prospect, newest first."""
        return await self._execute(
            self.client.table(self.settings.ACTIVITIES_TABLE)
            .select("*")
            .eq("prospect_id", prospect_id)
            .order("timestamp", desc=True)
            .limit(limit)
        )

    # ===========================================
    # Write Operations
    # ===========================================

    async def log_activity(self, record: ActivityRecord) -> None:
        data = record.model_dump(mode="json", exclude_none=True)
        data["activity_type"] = record.activity_type.value

        try:
            await self._execute(self.client.table(self.settings.ACTIVITIES_TABLE).insert(data))
            await self._execute(
                self.client.table(self.settings.PROSPECTS_TABLE)
                .update({"last_contact_date": data["timestamp"]})
                .eq("id", record.prospect_id)
            )
        except Exception as e:
            logger.error(f"Failed to log activity for {record.prospect_id}: {e}")
            raise

        logger.info(f"Logged {record.activity_type.value} activity for {record.prospect_id}")

    async def update_stage(self, prospect_id: str, stage: str) -> None:
        """Move the prospect's open opportunity to a new stage."""
        try:
            await self._execute(
                self.client.table(self.settings.OPPORTUNITIES_TABLE)
                .update({"stage": stage, "updated_at": datetime.now(timezone.utc).isoformat()})
                .eq("prospect_id", prospect_id)
            )
        except Exception as e:
            logger.error(f"Failed to update stage for {prospect_id}: {e}")
            raise

        logger.info(f"Opportunity for {prospect_id} moved to '{stage}'")

    # ===========================================
    # Health Check
    # ===========================================

    async def health_check(self) -> bool:
        """Check database connectivity."""
        try:
            await self._execute(self.client.table(self.settings.PROSPECTS_TABLE).select("id").limit(1))
            return True
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return False

    # Row mapping
    @staticmethod
    def _to_prospect(row: Dict[str, Any]) -> Prospect:
        return Prospect(
            id=str(row["id"]),
            crm_id=str(row.get("crm_id") or row["id"]),
            name=row.get("name") or "",
            email=row.get("email") or "",
            phone=row.get("phone") or "",
            company=row.get("company") or "",
            role=row.get("role") or row.get("title") or "",
            timezone=row.get("timezone") or "UTC",
            linkedin_url=row.get("linkedin_url"),
        )

    @staticmethod
    def _to_interaction(row: Dict[str, Any]) -> Interaction:
        activity_type = row.get("activity_type")
        try:
            interaction_type = InteractionType(activity_type)
        except ValueError:
            interaction_type = InteractionType.CALL
        return Interaction(
            id=str(row.get("id")),
            type=interaction_type,
            date=row.get("timestamp"),
            summary=row.get("notes") or "",
            outcome=row.get("outcome"),
            sentiment=row.get("sentiment_score"),
        )

    @staticmethod
    def _account_status(value: Optional[str]) -> AccountStatus:
        try:
            return AccountStatus((value or AccountStatus.NEW.value).lower())
        except ValueError:
            logger.warning(f"Unknown account status '{value}', treating as new")
            return AccountStatus.NEW
