"""ThreadPilot-AI.

This package lets a conversational assistant invoke a fixed catalogue of
server-side capabilities on behalf of an authenticated end user and turns each
loosely-typed request into a validated, permission-checked, time-bounded and
audited execution.

High-level architecture
-----------------------

A call flows through a single dispatcher:

- **Call envelope**: ``{capabilityName, parameters, callerId}``. The caller id
  is attached by the transport from an already-verified identity and is never
  read from the payload.
- **Registry**: a closed catalogue of exactly eight capabilities, validated for
  completeness at boot.
- **Validator** and **Permission Checker**: reject malformed or unauthorized
  calls before any handler runs.
- **Handlers**: one per capability; they talk to external collaborators
  (message store, retrieval, generation, calendar) and never hold state.
- **Execution log**: exactly one sanitized entry per call, written
  asynchronously so it never delays the response.

Core subpackages
----------------

- ``threadpilot_ai.capability_core``: schemas, registry, validator, permission
  checker, handlers, orchestrator, execution log and collaborator adapters.
- ``threadpilot_ai.client``: the typed client proxy that mirrors the registry
  over HTTP.
- ``threadpilot_ai.server``: the FastAPI wire boundary.
"""
