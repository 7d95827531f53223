"""Sanitized parameter digests for the execution log.

Raw parameter values never reach the log. Numbers and booleans are kept,
strings become a length plus SHA-256 prefix fingerprint, arrays and objects
are reduced to their sizes. Keys are kept only when they are declared
parameter names of the capability; any other key is fingerprinted like a
string value and listed under ``_unknown``.
"""

from __future__ import annotations

import hashlib
from typing import Any, Collection, Dict, List, Mapping

FINGERPRINT_CHARS = 12
MAX_KEYS = 32
UNKNOWN_KEYS = "_unknown"


def fingerprint(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()[:FINGERPRINT_CHARS]


def digest_value(value: Any) -> Any:
    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        return {"type": "string", "length": len(value), "sha256": fingerprint(value)}
    if isinstance(value, (list, tuple)):
        return {"type": "array", "size": len(value)}
    if isinstance(value, Mapping):
        return {"type": "object", "size": len(value)}
    return {"type": type(value).__name__}


def digest_parameters(parameters: Any, declared: Collection[str] = ()) -> Dict[str, Any]:
    """
    Digest a (possibly invalid) parameter object.

    Args:
        parameters: The parameters exactly as received in the envelope.
        declared: Wire names of the capability's declared parameters. Empty
            for an unknown capability, in which case no key is kept verbatim.

    Returns:
        A JSON-compatible dict safe to persist.
    """
    if not isinstance(parameters, Mapping):
        return {"_parameters": digest_value(parameters)}
    digest: Dict[str, Any] = {}
    unknown: List[Any] = []
    for i, (key, value) in enumerate(parameters.items()):
        if i >= MAX_KEYS:
            digest["_truncated_keys"] = len(parameters) - MAX_KEYS
            break
        if isinstance(key, str) and key in declared:
            digest[key] = digest_value(value)
        else:
            unknown.append(digest_value(str(key)))
    if unknown:
        digest[UNKNOWN_KEYS] = unknown
    return digest
