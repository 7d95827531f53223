"""Typed client for the capability dispatcher.

``CapabilityClient`` mirrors the server catalogue one coroutine per
capability, using the same canonical parameter and result models as the
server registry.
"""

from .errors import CapabilityClientError, ClientErrorCode
from .proxy import CLIENT_CONTRACT, CapabilityClient

__all__ = [
    "CLIENT_CONTRACT",
    "CapabilityClient",
    "CapabilityClientError",
    "ClientErrorCode",
]
