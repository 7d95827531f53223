"""Capability catalogue and handlers.

A *capability* is one of the eight named operations the assistant can invoke.

- The registry maps each ``CapabilityName`` to its parameter model, result
  type and exactly one handler.
- The orchestrator resolves names through ``CapabilityRegistry`` and runs the
  handler with a ``CapabilityContext``.

This package exports:

- ``Capability``: protocol for async handlers.
- ``CapabilityContext``: per-call execution context.
- ``CapabilityExecutionError``: handler error carrying a taxonomy code.
- ``CapabilityRegistry``/``CapabilitySchema``: the immutable catalogue.
"""

from .base import Capability, CapabilityContext, CapabilityExecutionError
from .registry import (
    CapabilityRegistry,
    CapabilitySchema,
    FieldSpec,
    RegistryConfigurationError,
    build_default_registry,
    build_registry,
)

__all__ = [
    "Capability",
    "CapabilityContext",
    "CapabilityExecutionError",
    "CapabilityRegistry",
    "CapabilitySchema",
    "FieldSpec",
    "RegistryConfigurationError",
    "build_default_registry",
    "build_registry",
]
