from __future__ import annotations

"""Per-invocation permission decisions.

``PermissionChecker`` is the runtime authority the orchestrator consults after
validation and before any handler runs.

Rules
-----

- Thread-scoped capabilities require thread membership.
- ``categorizeMessage`` requires the caller to be the message sender or a
  member of the message's thread.
- Calendar capabilities require the target user to be the caller or to have a
  scheduling relationship with the caller (every participant, for meeting
  suggestions).

The checker fails closed: a collaborator error, a timeout, or an answer that is
not a plain boolean is a denial. Decisions are never cached.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable

from ..collaborators.errors import CollaboratorError, ResourceNotFoundError
from ..collaborators.interfaces import MembershipService, MessageStore
from ..schemas.domain import CapabilityName, PermissionDecision

logger = logging.getLogger(__name__)

_THREAD_SCOPED = frozenset(
    {
        CapabilityName.summarize_thread,
        CapabilityName.extract_action_items,
        CapabilityName.track_decisions,
        CapabilityName.detect_scheduling_need,
    }
)


class PermissionChecker:
    """Decide whether a caller may run a capability on the referenced resources."""

    def __init__(
        self,
        membership: MembershipService,
        message_store: MessageStore,
        *,
        timeout_seconds: float = 0.5,
    ) -> None:
        self._membership = membership
        self._message_store = message_store
        self._timeout = timeout_seconds

    async def check(self, caller_id: str, capability_name: CapabilityName, params: Any) -> PermissionDecision:
        """
        Decide access for one invocation.

        Args:
            caller_id: The verified caller.
            capability_name: The resolved capability.
            params: The normalized (typed) parameter model.

        Returns:
            ``PermissionDecision``; never raises.
        """
        try:
            return await asyncio.wait_for(self._decide(caller_id, capability_name, params), timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Permission check timed out: capability={capability_name.value}")
            return PermissionDecision.deny("permission check timed out")
        except ResourceNotFoundError as e:
            return PermissionDecision.deny(f"{e.resource} not accessible")
        except CollaboratorError as e:
            logger.warning(f"Permission check failed closed: capability={capability_name.value} error={e}")
            return PermissionDecision.deny("membership service unavailable")
        except Exception as e:
            logger.error(f"Unexpected permission check failure: capability={capability_name.value} error={e!r}")
            return PermissionDecision.deny("permission check failed")

    async def _decide(self, caller_id: str, name: CapabilityName, params: Any) -> PermissionDecision:
        if name in _THREAD_SCOPED:
            return await self._thread_member(caller_id, params.thread_id)

        if name == CapabilityName.search_messages:
            if params.chat_id is None:
                # unscoped search is limited to the caller's threads by the retrieval filter
                return PermissionDecision.allow()
            return await self._thread_member(caller_id, params.chat_id)

        if name == CapabilityName.categorize_message:
            message = await self._message_store.fetch_message(params.message_id)
            if message.sender_id == caller_id:
                return PermissionDecision.allow()
            return await self._thread_member(caller_id, message.thread_id)

        if name == CapabilityName.check_calendar:
            return await self._may_schedule_with(caller_id, params.user_id)

        if name == CapabilityName.suggest_meeting_times:
            for participant in params.participants:
                decision = await self._may_schedule_with(caller_id, participant)
                if not decision.allowed:
                    return decision
            return PermissionDecision.allow()

        return PermissionDecision.deny(f"no permission rule for {name.value}")

    async def _thread_member(self, caller_id: str, thread_id: str) -> PermissionDecision:
        allowed = await self._strict_bool(self._membership.is_member, caller_id, thread_id)
        if allowed:
            return PermissionDecision.allow()
        return PermissionDecision.deny("caller is not a member of the thread")

    async def _may_schedule_with(self, caller_id: str, user_id: str) -> PermissionDecision:
        if caller_id == user_id:
            return PermissionDecision.allow()
        allowed = await self._strict_bool(self._membership.has_scheduling_relationship, caller_id, user_id)
        if allowed:
            return PermissionDecision.allow()
        return PermissionDecision.deny("no scheduling relationship with the requested user")

    @staticmethod
    async def _strict_bool(fn: Callable[[str, str], Awaitable[Any]], *args: str) -> bool:
        answer = await fn(*args)
        if not isinstance(answer, bool):
            logger.warning(f"Ambiguous membership answer of type {type(answer).__name__}; denying")
            return False
        return answer
