"""Vapi integration for outbound voice calls."""

import logging
from typing import Any, Dict, List, Optional
import httpx

from outbound_engine.core.config import get_settings, format_phone_number
from outbound_engine.core.errors import RemoteCallFailure
from outbound_engine.models import RemoteCallStatus, RemoteStatus

logger = logging.getLogger(__name__)

STATUS_MAP = {
    "queued": RemoteStatus.QUEUED,
    "scheduled": RemoteStatus.QUEUED,
    "ringing": RemoteStatus.RINGING,
    "in-progress": RemoteStatus.IN_PROGRESS,
    "forwarding": RemoteStatus.IN_PROGRESS,
    "ended": RemoteStatus.ENDED,
}

NO_ANSWER_REASONS = ("did-not-answer", "no-answer", "customer-busy")
FAILED_REASONS = ("error", "failed")


class VapiTelephonyService:
    """
    Service for Vapi API operations.

    Each call gets a transient assistant carrying the instructions and
    tool definitions; tool calls are delivered to the webhook server URL.
    """

    def __init__(self, settings=None, transport: Optional[httpx.AsyncBaseTransport] = None):
        """Initialize service with settings."""
        self._settings = settings
        self._transport = transport

    @property
    def settings(self):
        """Lazy load settings."""
        if self._settings is None:
            self._settings = get_settings()
        return self._settings

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.settings.VAPI_API_KEY}",
            "Content-Type": "application/json"
        }

    async def _request(self, method: str, path: str, json: Optional[Dict[str, Any]] = None,
                       call_id: Optional[str] = None) -> Dict[str, Any]:
        try:
            async with httpx.AsyncClient(timeout=30.0, transport=self._transport) as client:
                response = await client.request(
                    method,
                    f"{self.settings.VAPI_API_URL}{path}",
                    json=json,
                    headers=self.headers
                )
        except httpx.TimeoutException as e:
            logger.error(f"Vapi API timeout: {method} {path}")
            raise RemoteCallFailure(f"Vapi API timeout on {path}", call_id=call_id) from e
        except httpx.HTTPError as e:
            logger.error(f"Vapi API error: {e}")
            raise RemoteCallFailure(f"Vapi API error on {path}: {e}", call_id=call_id) from e

        if response.status_code >= 400:
            logger.error(f"Vapi API error: {response.status_code} - {response.text}")
            raise RemoteCallFailure(
                f"Vapi returned {response.status_code} on {path}",
                call_id=call_id,
            )

        if not response.content:
            return {}
        return response.json()

    async def start_call(
        self,
        phone_number: str,
        instructions: str,
        tools: List[Dict[str, Any]],
        metadata: Optional[Dict[str, Any]] = None,
        first_message: Optional[str] = None,
        voicemail_message: Optional[str] = None
    ) -> str:
        """
        Create an assistant and dial the prospect.

        Args:
            phone_number: Number to call (formatted to E.164)
            instructions: System prompt for the assistant
            tools: Tool definitions in OpenAI function format
            metadata: Attached to the call and echoed back in webhooks
            first_message: Opening line spoken when the call connects
            voicemail_message: Left when an answering machine picks up

        Returns:
            Provider call ID

        Raises:
            RemoteCallFailure: Invalid number or provider error
        """
        formatted_number = format_phone_number(phone_number)
        if not formatted_number:
            raise RemoteCallFailure(f"Invalid phone number: {phone_number}")

        assistant_config: Dict[str, Any] = {
            "name": f"Outbound call {formatted_number}",
            "model": {
                "provider": "openai",
                "model": self.settings.OPENAI_MODEL,
                "temperature": 0.7,
                "messages": [{"role": "system", "content": instructions}],
                "tools": tools,
            },
            "voice": {"provider": "openai", "voiceId": "alloy"},
            "transcriber": {"provider": "deepgram", "model": "nova-2", "language": "en"},
            "firstMessage": first_message,
            "serverUrl": f"{self.settings.WEBHOOK_BASE_URL}/webhook/vapi",
            "recordingEnabled": True,
            "endCallFunctionEnabled": False,
            "silenceTimeoutSeconds": 30,
            "maxDurationSeconds": self.settings.VAPI_MAX_CALL_SECONDS,
        }
        if voicemail_message:
            assistant_config["voicemailMessage"] = voicemail_message
            assistant_config["voicemailDetection"] = {"provider": "twilio"}

        assistant = await self._request("POST", "/assistant", json=assistant_config)

        payload: Dict[str, Any] = {
            "assistantId": assistant.get("id"),
            "phoneNumberId": self.settings.VAPI_PHONE_NUMBER_ID,
            "customer": {"number": formatted_number},
        }
        if metadata:
            payload["metadata"] = metadata

        call = await self._request("POST", "/call/phone", json=payload)
        call_id = call.get("id")
        if not call_id:
            raise RemoteCallFailure("Vapi did not return a call id")

        logger.info(f"Vapi call created: {call_id}")
        return call_id

    async def get_status(self, call_id: str) -> RemoteCallStatus:
        """Fetch and normalize the provider's view of a call."""
        call = await self._request("GET", f"/call/{call_id}", call_id=call_id)
        return self.normalize(call_id, call)

    async def end_call(self, call_id: str) -> None:
        await self._request("DELETE", f"/call/{call_id}", call_id=call_id)
        logger.info(f"Vapi call {call_id} ended")

    async def get_recording_url(self, call_id: str) -> Optional[str]:
        call = await self._request("GET", f"/call/{call_id}", call_id=call_id)
        return call.get("recordingUrl") or (call.get("artifact") or {}).get("recordingUrl")

    @staticmethod
    def normalize(call_id: str, call: Dict[str, Any]) -> RemoteCallStatus:
        """Map a Vapi call object onto RemoteCallStatus."""
        status = STATUS_MAP.get(call.get("status") or "", RemoteStatus.QUEUED)
        ended_reason = call.get("endedReason")

        if status == RemoteStatus.ENDED and ended_reason:
            reason = ended_reason.lower()
            if any(marker in reason for marker in NO_ANSWER_REASONS):
                status = RemoteStatus.NO_ANSWER
            elif any(marker in reason for marker in FAILED_REASONS):
                status = RemoteStatus.FAILED

        artifact = call.get("artifact") or {}
        duration = call.get("duration")
        if duration is None:
            duration = (call.get("analysis") or {}).get("duration") or 0

        return RemoteCallStatus(
            call_id=call_id,
            status=status,
            transcript=call.get("transcript") or artifact.get("transcript") or "",
            duration=int(duration),
            ended_reason=ended_reason,
            messages=call.get("messages") or artifact.get("messages") or [],
            recording_url=call.get("recordingUrl") or artifact.get("recordingUrl"),
        )
