from __future__ import annotations

"""httpx adapters for the external collaborator services.

Each adapter is a thin async client over one service's REST API:

- ``HttpMessageStore``: ``GET /threads/{id}``, ``GET /messages/{id}``
- ``HttpMembershipService``: ``GET /threads/{id}/members/{userId}``,
  ``GET /relationships/scheduling``
- ``HttpRetrievalService``: ``POST /search``
- ``HttpCalendarSource``: ``GET /users/{id}/freebusy``,
  ``GET /users/{id}/non-meeting-hours``

Every request timeout is capped by the active dispatch deadline. Transport
errors, error statuses and undecodable bodies raise
``CollaboratorUnavailableError``; a 404 on a thread or message lookup raises
``ResourceNotFoundError``.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from ..runtime.deadline import request_timeout
from ..schemas.capabilities import SearchMatch, TimeInterval
from .errors import CollaboratorUnavailableError, ResourceNotFoundError
from .models import Message, NonMeetingWindow, Thread

M = TypeVar("M", bound=BaseModel)

DEFAULT_TIMEOUT_SECONDS = 5.0


class _HttpCollaborator:
    collaborator = "collaborator"

    def __init__(
        self,
        base_url: str,
        *,
        auth_token: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.auth_token = auth_token
        self._timeout = timeout
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)
        self._logger = logging.getLogger(__name__)

    def _headers(self) -> Dict[str, str]:
        headers: Dict[str, str] = {"Accept": "application/json"}
        if self.auth_token:
            headers["Authorization"] = f"Bearer {self.auth_token}"
        return headers

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
        not_found: Optional[Tuple[str, str]] = None,
    ) -> Any:
        url = f"{self.base_url}{path}"
        timeout = request_timeout(self._timeout)
        self._logger.debug("%s: %s %s timeout=%.3fs", type(self).__name__, method, url, timeout)
        try:
            r = await self._client.request(method, url, headers=self._headers(), params=params, json=json, timeout=timeout)
        except httpx.TimeoutException as e:
            raise CollaboratorUnavailableError(
                f"{self.collaborator} request timed out", collaborator=self.collaborator
            ) from e
        except httpx.HTTPError as e:
            raise CollaboratorUnavailableError(
                f"{self.collaborator} unreachable: {type(e).__name__}", collaborator=self.collaborator
            ) from e

        if r.status_code == 404 and not_found is not None:
            resource, resource_id = not_found
            raise ResourceNotFoundError(collaborator=self.collaborator, resource=resource, resource_id=resource_id)
        try:
            r.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise CollaboratorUnavailableError(
                f"{self.collaborator} request failed: {e.response.status_code}",
                collaborator=self.collaborator,
                status_code=e.response.status_code,
            ) from e
        try:
            return r.json()
        except ValueError as e:
            raise CollaboratorUnavailableError(
                f"{self.collaborator} returned a non-JSON body", collaborator=self.collaborator, status_code=r.status_code
            ) from e

    def _parse(self, model: Type[M], data: Any) -> M:
        if isinstance(data, dict):
            known = set(model.model_fields) | {f.alias for f in model.model_fields.values() if f.alias}
            data = {k: v for k, v in data.items() if k in known}
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise CollaboratorUnavailableError(
                f"Unexpected response shape from {self.collaborator}",
                collaborator=self.collaborator,
                details={"errors": e.error_count()},
            ) from e

    def _parse_list(self, model: Type[M], data: Any, key: str) -> List[M]:
        items = data.get(key) if isinstance(data, dict) else None
        if not isinstance(items, list):
            raise CollaboratorUnavailableError(
                f"Unexpected response shape from {self.collaborator}: missing '{key}'", collaborator=self.collaborator
            )
        return [self._parse(model, item) for item in items]


class HttpMessageStore(_HttpCollaborator):
    collaborator = "message_store"

    async def fetch_thread(self, thread_id: str) -> Thread:
        data = await self._request("GET", f"/threads/{thread_id}", not_found=("thread", thread_id))
        thread = self._parse(Thread, data)
        thread.messages.sort(key=lambda m: m.timestamp)
        return thread

    async def fetch_message(self, message_id: str) -> Message:
        data = await self._request("GET", f"/messages/{message_id}", not_found=("message", message_id))
        return self._parse(Message, data)


class HttpMembershipService(_HttpCollaborator):
    """Membership answers are returned as received; the permission checker rejects non-booleans."""

    collaborator = "membership"

    async def is_member(self, caller_id: str, thread_id: str) -> bool:
        data = await self._request("GET", f"/threads/{thread_id}/members/{caller_id}")
        return data.get("member") if isinstance(data, dict) else None

    async def has_scheduling_relationship(self, caller_id: str, user_id: str) -> bool:
        data = await self._request("GET", "/relationships/scheduling", params={"callerId": caller_id, "userId": user_id})
        return data.get("allowed") if isinstance(data, dict) else None


class HttpRetrievalService(_HttpCollaborator):
    collaborator = "retrieval"

    async def query_similar(self, text: str, filters: Dict[str, Any], limit: int) -> List[SearchMatch]:
        data = await self._request("POST", "/search", json={"text": text, "filters": filters, "limit": limit})
        return self._parse_list(SearchMatch, data, "matches")[:limit]


class HttpCalendarSource(_HttpCollaborator):
    collaborator = "calendar"

    async def free_busy(self, user_id: str, start: datetime, end: datetime) -> List[TimeInterval]:
        data = await self._request(
            "GET",
            f"/users/{user_id}/freebusy",
            params={"start": start.isoformat(), "end": end.isoformat()},
        )
        return self._parse_list(TimeInterval, data, "busy")

    async def non_meeting_hours(self, user_id: str) -> List[NonMeetingWindow]:
        data = await self._request("GET", f"/users/{user_id}/non-meeting-hours")
        return self._parse_list(NonMeetingWindow, data, "windows")
