"""Campaign API Routes - campaign control and telephony tool-call webhook."""

import json
import logging
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from outbound_engine.core.errors import CampaignConfigError, CampaignNotFound, OutboundEngineError
from outbound_engine.models import CampaignConfig, CampaignStats, LaunchResult
from outbound_engine.orchestration.orchestrator import CampaignOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/campaigns", tags=["campaigns"])
webhook_router = APIRouter(prefix="/webhook", tags=["webhooks"])


class CampaignActionResponse(BaseModel):
    """Response for pause/resume/cancel."""
    campaign_id: str
    state: str
    removed_jobs: Optional[int] = None


class ToolCallResult(BaseModel):
    toolCallId: Optional[str] = None
    result: str


class ToolCallResponse(BaseModel):
    """Response shape expected by the telephony provider for tool calls."""
    results: List[ToolCallResult] = []


def get_orchestrator(request: Request) -> CampaignOrchestrator:
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(status_code=503, detail="Orchestrator not initialized")
    return orchestrator


# ===========================================
# Campaign Control
# ===========================================

@router.post(
    "",
    response_model=LaunchResult,
    status_code=201,
    summary="Launch a campaign"
)
async def launch_campaign(
    config: CampaignConfig,
    orchestrator: CampaignOrchestrator = Depends(get_orchestrator)
) -> LaunchResult:
    """Research, score and schedule the campaign's prospects."""
    try:
        return await orchestrator.launch(config)
    except CampaignConfigError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/{campaign_id}/pause", response_model=CampaignActionResponse)
async def pause_campaign(
    campaign_id: str,
    orchestrator: CampaignOrchestrator = Depends(get_orchestrator)
) -> CampaignActionResponse:
    """Pause dequeuing. Applies to the whole shared queue."""
    try:
        await orchestrator.pause(campaign_id)
    except CampaignNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return CampaignActionResponse(
        campaign_id=campaign_id,
        state=orchestrator.campaign_state(campaign_id).value
    )


@router.post("/{campaign_id}/resume", response_model=CampaignActionResponse)
async def resume_campaign(
    campaign_id: str,
    orchestrator: CampaignOrchestrator = Depends(get_orchestrator)
) -> CampaignActionResponse:
    try:
        await orchestrator.resume(campaign_id)
    except CampaignNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return CampaignActionResponse(
        campaign_id=campaign_id,
        state=orchestrator.campaign_state(campaign_id).value
    )


@router.post("/{campaign_id}/cancel", response_model=CampaignActionResponse)
async def cancel_campaign(
    campaign_id: str,
    orchestrator: CampaignOrchestrator = Depends(get_orchestrator)
) -> CampaignActionResponse:
    """Remove not-yet-started jobs; calls in progress finish."""
    try:
        removed = await orchestrator.cancel(campaign_id)
    except CampaignNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return CampaignActionResponse(
        campaign_id=campaign_id,
        state=orchestrator.campaign_state(campaign_id).value,
        removed_jobs=removed
    )


@router.get("/{campaign_id}/stats", response_model=CampaignStats)
async def campaign_stats(
    campaign_id: str,
    orchestrator: CampaignOrchestrator = Depends(get_orchestrator)
) -> CampaignStats:
    try:
        return await orchestrator.stats(campaign_id)
    except CampaignNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


# ===========================================
# Telephony Webhook - Tool Calls
# ===========================================

@webhook_router.post(
    "/vapi",
    response_model=ToolCallResponse,
    summary="Handle telephony tool-call events"
)
async def vapi_webhook(
    request: Request,
    orchestrator: CampaignOrchestrator = Depends(get_orchestrator)
) -> ToolCallResponse:
    """
    Dispatch tool calls to the live session of the call.

    Events other than tool calls are acknowledged with an empty result list.
    """
    raw_data = await request.json()
    message = raw_data.get("message") or {}

    if message.get("type") != "tool-calls":
        logger.debug(f"Ignoring webhook event: {message.get('type')}")
        return ToolCallResponse()

    call_id = (message.get("call") or {}).get("id")
    session = orchestrator.get_session(call_id) if call_id else None
    if session is None:
        logger.warning(f"Tool call for unknown call: {call_id}")
        raise HTTPException(status_code=404, detail=f"No active call: {call_id}")

    results = []
    for tool_call in message.get("toolCallList") or message.get("toolCalls") or []:
        tool_call_id = tool_call.get("id")
        function = tool_call.get("function") or {}
        results.append(ToolCallResult(
            toolCallId=tool_call_id,
            result=await _run_tool(session, function, tool_call_id)
        ))

    return ToolCallResponse(results=results)


async def _run_tool(session, function: Dict[str, Any], tool_call_id: Optional[str]) -> str:
    name = function.get("name") or ""
    arguments = function.get("arguments") or {}
    if isinstance(arguments, str):
        try:
            arguments = json.loads(arguments)
        except json.JSONDecodeError:
            return f"Error: arguments for {name} are not valid JSON"

    try:
        result = await session.handle_tool_call(name, arguments, tool_call_id=tool_call_id)
    except OutboundEngineError as e:
        logger.warning(f"Tool {name} failed on call {session.call_id}: {e}")
        return f"Error: {e}"

    return json.dumps(result, default=str)
