from __future__ import annotations

"""Capability registry.

The registry is the closed catalogue of the eight capabilities. Each entry
binds a ``CapabilityName`` to its canonical parameter model, its result type
and exactly one handler. It is built once at startup from the static
``CAPABILITY_DECLARATIONS`` and never changes afterwards.

The per-field ``parameter_spec`` used by the validator is derived from the
parameter model's JSON schema, so the model stays the single source of truth
for names, types, optionality and bounds.
"""

from dataclasses import dataclass, field
from functools import lru_cache
from types import MappingProxyType
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple, Type

from pydantic import TypeAdapter

from ..schemas.base import BaseSchema
from ..schemas.capabilities import (
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
from ..schemas.domain import CapabilityName
from .base import Capability
from .builtin import builtin_capabilities

PRIMITIVE_TYPES = frozenset({"string", "number", "integer", "boolean", "array", "object"})


class RegistryConfigurationError(RuntimeError):
    """Raised at startup when the catalogue is incomplete or inconsistent."""


@dataclass(frozen=True)
class FieldSpec:
    """Declared constraints of one parameter field (wire name)."""

    name: str
    type: Optional[str]
    required: bool
    nullable: bool = False
    description: Optional[str] = None
    pattern: Optional[str] = None
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    min_items: Optional[int] = None
    max_items: Optional[int] = None
    items: Optional["FieldSpec"] = None
    properties: Tuple["FieldSpec", ...] = ()

    def walk(self) -> Iterator["FieldSpec"]:
        yield self
        if self.items is not None:
            yield from self.items.walk()
        for prop in self.properties:
            yield from prop.walk()


def _resolve_ref(schema: Dict[str, Any], defs: Mapping[str, Any]) -> Dict[str, Any]:
    ref = schema.get("$ref")
    if ref is None:
        return schema
    target = dict(defs[ref.rsplit("/", 1)[-1]])
    target.update({k: v for k, v in schema.items() if k != "$ref"})
    return target


def _field_from_json_schema(name: str, schema: Dict[str, Any], *, required: bool, defs: Mapping[str, Any]) -> FieldSpec:
    schema = _resolve_ref(schema, defs)
    nullable = False
    if "anyOf" in schema:
        options = [_resolve_ref(o, defs) for o in schema["anyOf"]]
        concrete = [o for o in options if o.get("type") != "null"]
        nullable = len(concrete) < len(options)
        outer = {k: v for k, v in schema.items() if k != "anyOf"}
        schema = {**(concrete[0] if len(concrete) == 1 else {}), **outer}

    items = None
    if "items" in schema:
        items = _field_from_json_schema(f"{name}[]", schema["items"], required=True, defs=defs)

    nested_required = set(schema.get("required", ()))
    properties = tuple(
        _field_from_json_schema(key, sub, required=key in nested_required, defs=defs)
        for key, sub in schema.get("properties", {}).items()
    )

    return FieldSpec(
        name=name,
        type=schema.get("type"),
        required=required,
        nullable=nullable,
        description=schema.get("description"),
        pattern=schema.get("pattern"),
        minimum=schema.get("minimum"),
        maximum=schema.get("maximum"),
        min_length=schema.get("minLength"),
        max_length=schema.get("maxLength"),
        min_items=schema.get("minItems"),
        max_items=schema.get("maxItems"),
        items=items,
        properties=properties,
    )


def derive_parameter_spec(model: Type[BaseSchema]) -> Tuple[FieldSpec, ...]:
    """Build the per-field spec of a parameter model from its JSON schema."""
    schema = model.model_json_schema(by_alias=True)
    defs = schema.get("$defs", {})
    required = set(schema.get("required", ()))
    return tuple(
        _field_from_json_schema(key, sub, required=key in required, defs=defs)
        for key, sub in schema.get("properties", {}).items()
    )


@lru_cache(maxsize=None)
def _adapter(result_type: Any) -> TypeAdapter:
    return TypeAdapter(result_type)


@dataclass(frozen=True)
class CapabilityDeclaration:
    """Static declaration of one catalogue entry (without its handler)."""

    name: CapabilityName
    description: str
    params_model: Type[BaseSchema]
    result_type: Any


CAPABILITY_DECLARATIONS: Tuple[CapabilityDeclaration, ...] = (
    CapabilityDeclaration(
        CapabilityName.search_messages,
        "Perform semantic search across messages to find relevant conversations",
        SearchMessagesParams,
        List[SearchMatch],
    ),
    CapabilityDeclaration(
        CapabilityName.summarize_thread,
        "Condense a conversation thread to 2-3 sentences with key points, participants, and decision count",
        SummarizeThreadParams,
        ThreadSummary,
    ),
    CapabilityDeclaration(
        CapabilityName.extract_action_items,
        "Find tasks requiring action from a conversation thread",
        ExtractActionItemsParams,
        List[ActionItem],
    ),
    CapabilityDeclaration(
        CapabilityName.track_decisions,
        "Find and log decision patterns in a conversation thread",
        TrackDecisionsParams,
        List[DecisionRecord],
    ),
    CapabilityDeclaration(
        CapabilityName.categorize_message,
        "Detect priority level of a message (urgent, canWait, aiHandled)",
        CategorizeMessageParams,
        MessageCategory,
    ),
    CapabilityDeclaration(
        CapabilityName.detect_scheduling_need,
        "Identify meeting requests and scheduling needs in a thread",
        DetectSchedulingNeedParams,
        Optional[SchedulingNeed],
    ),
    CapabilityDeclaration(
        CapabilityName.check_calendar,
        "Fetch calendar availability for a user within a date range",
        CheckCalendarParams,
        CalendarAvailability,
    ),
    CapabilityDeclaration(
        CapabilityName.suggest_meeting_times,
        "Suggest optimal meeting times based on participant availability",
        SuggestMeetingTimesParams,
        List[MeetingSlot],
    ),
)


@dataclass(frozen=True)
class CapabilitySchema:
    """
    One immutable catalogue entry.

    Attributes:
        name: Unique capability name.
        description: Human/LLM-facing description.
        params_model: Canonical parameter model (shared with the client proxy).
        result_type: Canonical result type (shared with the client proxy).
        handler: The single handler bound to ``name``.
        parameter_spec: Per-field constraints derived from ``params_model``.
    """

    name: CapabilityName
    description: str
    params_model: Type[BaseSchema]
    result_type: Any
    handler: Capability
    parameter_spec: Tuple[FieldSpec, ...] = field(default=())

    def dump_result(self, data: Any) -> Any:
        """Serialize handler output to wire (camelCase, JSON-compatible) form."""
        return _adapter(self.result_type).dump_python(data, mode="json", by_alias=True)

    def load_result(self, raw: Any) -> Any:
        """Parse wire data back into the canonical result type."""
        return _adapter(self.result_type).validate_python(raw)

    def tool_definition(self) -> Dict[str, Any]:
        """Function-calling definition for a language model."""
        return {
            "name": self.name.value,
            "description": self.description,
            "parameters": self.params_model.model_json_schema(by_alias=True),
        }


class CapabilityRegistry:
    """
    Immutable mapping of capability names to their schema entries.

    This registry is the only lookup mechanism for resolving the capability
    name chosen by the assistant into an executable handler.

    Notes:
        - Built once from a list of ``CapabilitySchema``; there is no
          ``register`` after construction.
        - ``resolve`` returns ``None`` for unknown names instead of raising,
          the orchestrator maps that to ``invalid_capability``.
    """

    def __init__(self, schemas: Iterable[CapabilitySchema]) -> None:
        entries: Dict[str, CapabilitySchema] = {}
        for schema in schemas:
            if schema.name.value in entries:
                raise RegistryConfigurationError(f"Capability declared twice: {schema.name.value}")
            entries[schema.name.value] = schema
        self._entries: Mapping[str, CapabilitySchema] = MappingProxyType(entries)

    def resolve(self, name: str) -> Optional[CapabilitySchema]:
        """
        Look up a capability by its wire name.

        Args:
            name: The capability name as sent by the caller.

        Returns:
            The schema entry, or None if the name is not in the catalogue.
        """
        if not isinstance(name, str):
            return None
        return self._entries.get(name)

    def has(self, name: str) -> bool:
        return self.resolve(name) is not None

    def names(self) -> List[str]:
        return list(self._entries)

    def __iter__(self) -> Iterator[CapabilitySchema]:
        return iter(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    def tool_definitions(self) -> List[Dict[str, Any]]:
        return [schema.tool_definition() for schema in self]

    def self_check(self) -> None:
        """
        Verify the catalogue is complete and consistent.

        Raises:
            RegistryConfigurationError: If a capability has no entry, an entry is
                bound to a handler with another name, or a parameter field lacks a
                type or required flag.
        """
        missing = [n.value for n in CapabilityName if n.value not in self._entries]
        if missing:
            raise RegistryConfigurationError(f"Capabilities without a handler: {', '.join(missing)}")

        for key, schema in self._entries.items():
            handler = schema.handler
            if handler is None or not callable(getattr(handler, "execute", None)):
                raise RegistryConfigurationError(f"Capability {key} has no executable handler")
            if getattr(handler, "name", None) != schema.name:
                raise RegistryConfigurationError(
                    f"Capability {key} is bound to handler {getattr(handler, 'name', None)!r}"
                )
            if not schema.parameter_spec:
                raise RegistryConfigurationError(f"Capability {key} declares no parameters")
            for spec in schema.parameter_spec:
                for node in spec.walk():
                    if node.type not in PRIMITIVE_TYPES or not isinstance(node.required, bool):
                        raise RegistryConfigurationError(
                            f"Capability {key} field {node.name!r} lacks a primitive type or required flag"
                        )


def build_registry(handlers: Iterable[Capability]) -> CapabilityRegistry:
    """
    Bind the static declarations to handler instances.

    Raises:
        RegistryConfigurationError: If a declaration has no handler or a handler
            matches no declaration.
    """
    by_name: Dict[CapabilityName, Capability] = {}
    for handler in handlers:
        if handler.name in by_name:
            raise RegistryConfigurationError(f"Two handlers for capability {handler.name.value}")
        by_name[handler.name] = handler

    declared = {d.name for d in CAPABILITY_DECLARATIONS}
    unknown = [n.value for n in by_name if n not in declared]
    if unknown:
        raise RegistryConfigurationError(f"Handlers without a declaration: {', '.join(unknown)}")

    schemas = []
    for declaration in CAPABILITY_DECLARATIONS:
        handler = by_name.get(declaration.name)
        if handler is None:
            raise RegistryConfigurationError(f"No handler for capability {declaration.name.value}")
        schemas.append(
            CapabilitySchema(
                name=declaration.name,
                description=declaration.description,
                params_model=declaration.params_model,
                result_type=declaration.result_type,
                handler=handler,
                parameter_spec=derive_parameter_spec(declaration.params_model),
            )
        )
    registry = CapabilityRegistry(schemas)
    registry.self_check()
    return registry


def build_default_registry() -> CapabilityRegistry:
    """The production catalogue with the built-in handlers."""
    return build_registry(builtin_capabilities())
