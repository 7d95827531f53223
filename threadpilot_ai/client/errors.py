"""Error types raised by ``CapabilityClient``.

Purpose:
- Give callers one typed failure for every way an invocation can fail: the
  six server-side taxonomy codes plus the client-only ``network``,
  ``client_timeout`` and ``protocol`` codes.
- Expose the server's ``executionId``, HTTP status and details for diagnosis.

Usage:
- Catch ``CapabilityClientError`` and switch on ``code``.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional


class ClientErrorCode(str, Enum):
    invalid_capability = "invalid_capability"
    invalid_parameters = "invalid_parameters"
    permission_denied = "permission_denied"
    timeout = "timeout"
    upstream_unavailable = "upstream_unavailable"
    internal_error = "internal_error"
    # client-side only
    network = "network"
    client_timeout = "client_timeout"
    protocol = "protocol"


class CapabilityClientError(Exception):
    """Typed failure of a capability invocation.

    Args:
        code: Taxonomy code (server code or client-only code).
        message: Human-readable error description.
        execution_id: Server execution id, when the server answered.
        status_code: HTTP status code, when there was a response.
        details: Optional structured details from the server (e.g. violations).
    """

    def __init__(
        self,
        code: ClientErrorCode,
        message: str,
        *,
        execution_id: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[Any] = None,
    ) -> None:
        super().__init__(f"{code.value}: {message}")
        self.code = code
        self.message = message
        self.execution_id = execution_id
        self.status_code = status_code
        self.details = details
