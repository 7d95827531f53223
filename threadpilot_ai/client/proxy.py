from __future__ import annotations

import logging
from typing import Any, Dict, List, NamedTuple, Optional, Type

import httpx
from pydantic import BaseModel, TypeAdapter, ValidationError

from threadpilot_ai.capability_core.schemas.capabilities import (
    ActionItem,
    CalendarAvailability,
    CategorizeMessageParams,
    CheckCalendarParams,
    DecisionRecord,
    DetectSchedulingNeedParams,
    ExtractActionItemsParams,
    MeetingSlot,
    MessageCategory,
    SchedulingNeed,
    SearchMatch,
    SearchMessagesParams,
    SuggestMeetingTimesParams,
    SummarizeThreadParams,
    ThreadSummary,
    TrackDecisionsParams,
)
from threadpilot_ai.capability_core.schemas.domain import CapabilityName

from .errors import CapabilityClientError, ClientErrorCode

DEFAULT_SERVER_DEADLINE_SECONDS = 2.0
CLIENT_TIMEOUT_MARGIN_SECONDS = 3.0
EXECUTE_PATH = "/api/v1/capabilities/execute"


class ClientBinding(NamedTuple):
    method: str
    params_model: Type[BaseModel]
    result_type: Any


# One entry per catalogue capability; guarded against the server registry by a contract test.
CLIENT_CONTRACT: Dict[CapabilityName, ClientBinding] = {
    CapabilityName.search_messages: ClientBinding("search_messages", SearchMessagesParams, List[SearchMatch]),
    CapabilityName.summarize_thread: ClientBinding("summarize_thread", SummarizeThreadParams, ThreadSummary),
    CapabilityName.extract_action_items: ClientBinding(
        "extract_action_items", ExtractActionItemsParams, List[ActionItem]
    ),
    CapabilityName.track_decisions: ClientBinding("track_decisions", TrackDecisionsParams, List[DecisionRecord]),
    CapabilityName.categorize_message: ClientBinding("categorize_message", CategorizeMessageParams, MessageCategory),
    CapabilityName.detect_scheduling_need: ClientBinding(
        "detect_scheduling_need", DetectSchedulingNeedParams, Optional[SchedulingNeed]
    ),
    CapabilityName.check_calendar: ClientBinding("check_calendar", CheckCalendarParams, CalendarAvailability),
    CapabilityName.suggest_meeting_times: ClientBinding(
        "suggest_meeting_times", SuggestMeetingTimesParams, List[MeetingSlot]
    ),
}

_SERVER_CODES = {c.value for c in ClientErrorCode} - {
    ClientErrorCode.network.value,
    ClientErrorCode.client_timeout.value,
    ClientErrorCode.protocol.value,
}


class CapabilityClient:
    """
    Typed async proxy for the capability dispatcher.

    Responsibilities:
    - one coroutine per capability, taking the canonical parameter model and
      returning the canonical result type
    - a client-side timeout strictly longer than the server deadline, so a
      dropped connection becomes ``client_timeout`` instead of hanging
    - mapping every failure to ``CapabilityClientError``

    The caller identity is normally attached by the authentication gateway in
    front of the server; ``caller_id`` sets the trusted header directly for
    deployments (and tests) without such a gateway.
    """

    def __init__(
        self,
        base_url: str,
        *,
        caller_id: Optional[str] = None,
        caller_header: str = "X-Authenticated-User",
        auth_token: Optional[str] = None,
        server_deadline_seconds: float = DEFAULT_SERVER_DEADLINE_SECONDS,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.timeout = timeout if timeout is not None else server_deadline_seconds + CLIENT_TIMEOUT_MARGIN_SECONDS
        if self.timeout <= server_deadline_seconds:
            raise ValueError(
                f"client timeout ({self.timeout}s) must be longer than the server deadline ({server_deadline_seconds}s)"
            )
        self.base_url = base_url.rstrip("/")
        self.caller_id = caller_id
        self.caller_header = caller_header
        self.auth_token = auth_token
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=self.timeout)
        self._logger = logging.getLogger(__name__)

    async def __aenter__(self) -> "CapabilityClient":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _headers(self) -> Dict[str, str]:
        headers: Dict[str, str] = {"Content-Type": "application/json"}
        if self.auth_token:
            headers["Authorization"] = f"Bearer {self.auth_token}"
        if self.caller_id:
            headers[self.caller_header] = self.caller_id
        return headers

    async def invoke(self, name: CapabilityName, params: BaseModel) -> Any:
        """
        Invoke one capability and return its typed result.

        Raises:
            CapabilityClientError: On any server-side or client-side failure.
        """
        binding = CLIENT_CONTRACT[name]
        if not isinstance(params, binding.params_model):
            raise TypeError(f"{name.value} expects {binding.params_model.__name__}, got {type(params).__name__}")
        body = {
            "capabilityName": name.value,
            "parameters": params.model_dump(by_alias=True, mode="json", exclude_none=True),
        }
        self._logger.debug("CapabilityClient.invoke: POST %s%s capability=%s", self.base_url, EXECUTE_PATH, name.value)
        try:
            r = await self._client.post(
                f"{self.base_url}{EXECUTE_PATH}", json=body, headers=self._headers(), timeout=self.timeout
            )
        except httpx.TimeoutException as e:
            raise CapabilityClientError(
                ClientErrorCode.client_timeout, f"no response within {self.timeout:g}s"
            ) from e
        except httpx.HTTPError as e:
            raise CapabilityClientError(ClientErrorCode.network, f"transport failure: {type(e).__name__}") from e
        return self._parse_response(r, binding)

    def _parse_response(self, r: httpx.Response, binding: ClientBinding) -> Any:
        try:
            payload = r.json()
        except ValueError as e:
            raise CapabilityClientError(
                ClientErrorCode.protocol, "response is not JSON", status_code=r.status_code
            ) from e

        if r.status_code in (401, 403):
            raise CapabilityClientError(
                ClientErrorCode.permission_denied,
                "caller identity missing or rejected",
                status_code=r.status_code,
                details=payload,
            )
        if not isinstance(payload, dict) or payload.get("status") not in ("ok", "error"):
            raise CapabilityClientError(
                ClientErrorCode.protocol, "unexpected response envelope", status_code=r.status_code, details=payload
            )

        execution_id = payload.get("executionId")
        if payload["status"] == "error":
            code = payload.get("code")
            if code not in _SERVER_CODES:
                raise CapabilityClientError(
                    ClientErrorCode.protocol,
                    f"unknown error code {code!r}",
                    execution_id=execution_id,
                    status_code=r.status_code,
                )
            raise CapabilityClientError(
                ClientErrorCode(code),
                str(payload.get("message") or code),
                execution_id=execution_id,
                status_code=r.status_code,
                details=payload.get("details"),
            )

        try:
            return TypeAdapter(binding.result_type).validate_python(payload.get("data"))
        except ValidationError as e:
            raise CapabilityClientError(
                ClientErrorCode.protocol,
                f"result does not match {binding.method} contract",
                execution_id=execution_id,
                status_code=r.status_code,
                details={"errors": e.error_count()},
            ) from e

    async def list_capabilities(self) -> List[Dict[str, Any]]:
        """Function-calling definitions advertised by the server."""
        try:
            r = await self._client.get(f"{self.base_url}/api/v1/capabilities", headers=self._headers())
            r.raise_for_status()
        except httpx.TimeoutException as e:
            raise CapabilityClientError(ClientErrorCode.client_timeout, "no response") from e
        except httpx.HTTPStatusError as e:
            raise CapabilityClientError(
                ClientErrorCode.protocol, f"list_capabilities failed: {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise CapabilityClientError(ClientErrorCode.network, f"transport failure: {type(e).__name__}") from e
        try:
            data = r.json()
        except ValueError as e:
            raise CapabilityClientError(
                ClientErrorCode.protocol, "response is not JSON", status_code=r.status_code
            ) from e
        if not isinstance(data, dict) or not isinstance(data.get("capabilities"), list):
            raise CapabilityClientError(
                ClientErrorCode.protocol, "unexpected capability listing", status_code=r.status_code
            )
        return list(data["capabilities"])

    async def search_messages(self, params: SearchMessagesParams) -> List[SearchMatch]:
        return await self.invoke(CapabilityName.search_messages, params)

    async def summarize_thread(self, params: SummarizeThreadParams) -> ThreadSummary:
        return await self.invoke(CapabilityName.summarize_thread, params)

    async def extract_action_items(self, params: ExtractActionItemsParams) -> List[ActionItem]:
        return await self.invoke(CapabilityName.extract_action_items, params)

    async def track_decisions(self, params: TrackDecisionsParams) -> List[DecisionRecord]:
        return await self.invoke(CapabilityName.track_decisions, params)

    async def categorize_message(self, params: CategorizeMessageParams) -> MessageCategory:
        return await self.invoke(CapabilityName.categorize_message, params)

    async def detect_scheduling_need(self, params: DetectSchedulingNeedParams) -> Optional[SchedulingNeed]:
        return await self.invoke(CapabilityName.detect_scheduling_need, params)

    async def check_calendar(self, params: CheckCalendarParams) -> CalendarAvailability:
        return await self.invoke(CapabilityName.check_calendar, params)

    async def suggest_meeting_times(self, params: SuggestMeetingTimesParams) -> List[MeetingSlot]:
        return await self.invoke(CapabilityName.suggest_meeting_times, params)
