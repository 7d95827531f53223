"""Parameter validation against a capability's declared spec.

``validate`` is pure: it never calls a collaborator, never raises for bad
input and reports every violation it can find in one pass.

Two stages run in order:

1. Field checks driven by ``CapabilitySchema.parameter_spec``: required
   fields, primitive types, string length and pattern, numeric bounds, array
   item counts, and the same checks on array items / nested objects.
2. If stage 1 is clean, the canonical parameter model is constructed with
   the known fields only, which applies defaults and runs the cross-field
   rules (date ranges, unique participants). Its errors become violations.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from pydantic import ValidationError

from ..capabilities.registry import CapabilitySchema, FieldSpec
from ..schemas.domain import ValidationResult, Violation

_TYPE_LABELS = {
    "string": "a string",
    "number": "a number",
    "integer": "an integer",
    "boolean": "a boolean",
    "array": "an array",
    "object": "an object",
}


@lru_cache(maxsize=None)
def _regex(pattern: str) -> "re.Pattern[str]":
    return re.compile(pattern)


def _type_matches(expected: Optional[str], value: Any) -> bool:
    if expected == "string":
        return isinstance(value, str)
    if expected == "boolean":
        return isinstance(value, bool)
    if expected == "number":
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if expected == "integer":
        if isinstance(value, bool):
            return False
        return isinstance(value, int) or (isinstance(value, float) and value.is_integer())
    if expected == "array":
        return isinstance(value, (list, tuple))
    if expected == "object":
        return isinstance(value, Mapping)
    return True


def _check(spec: FieldSpec, value: Any, path: str, out: List[Violation]) -> Any:
    """Check one value, append violations, return the value stripped of unknown nested keys."""
    if not _type_matches(spec.type, value):
        out.append(Violation(path, f"must be {_TYPE_LABELS.get(spec.type or '', spec.type)}"))
        return value

    if spec.type == "string":
        if spec.min_length is not None and len(value) < spec.min_length:
            out.append(Violation(path, f"must be at least {spec.min_length} characters"))
        if spec.max_length is not None and len(value) > spec.max_length:
            out.append(Violation(path, f"must be at most {spec.max_length} characters"))
        if spec.pattern is not None and not _regex(spec.pattern).search(value):
            out.append(Violation(path, f"does not match pattern {spec.pattern}"))
        return value

    if spec.type in ("number", "integer"):
        if spec.minimum is not None and value < spec.minimum:
            out.append(Violation(path, f"must be >= {spec.minimum:g}"))
        if spec.maximum is not None and value > spec.maximum:
            out.append(Violation(path, f"must be <= {spec.maximum:g}"))
        return value

    if spec.type == "array":
        if spec.min_items is not None and len(value) < spec.min_items:
            out.append(Violation(path, f"must contain at least {spec.min_items} items"))
        if spec.max_items is not None and len(value) > spec.max_items:
            out.append(Violation(path, f"must contain at most {spec.max_items} items"))
        if spec.items is None:
            return list(value)
        return [_check(spec.items, item, f"{path}[{i}]", out) for i, item in enumerate(value)]

    if spec.type == "object" and spec.properties:
        return _check_object(spec.properties, value, path, out)

    return value


def _check_object(properties: Sequence[FieldSpec], value: Mapping[str, Any], prefix: str, out: List[Violation]) -> Dict[str, Any]:
    cleaned: Dict[str, Any] = {}
    for prop in properties:
        path = f"{prefix}.{prop.name}" if prefix else prop.name
        present = prop.name in value and value[prop.name] is not None
        if not present:
            if prop.required:
                out.append(Violation(path, "is required"))
            continue
        cleaned[prop.name] = _check(prop, value[prop.name], path, out)
    return cleaned


def _loc_to_path(loc: Tuple[Any, ...]) -> str:
    path = ""
    for part in loc:
        if isinstance(part, int):
            path += f"[{part}]"
        else:
            path = f"{path}.{part}" if path else str(part)
    return path or "parameters"


def _model_violations(error: ValidationError) -> List[Violation]:
    violations = []
    for err in error.errors():
        reason = str(err.get("msg", "is invalid"))
        if reason.startswith("Value error, "):
            reason = reason[len("Value error, ") :]
        violations.append(Violation(_loc_to_path(tuple(err.get("loc", ()))), reason))
    return violations


def validate(schema: CapabilitySchema, raw_parameters: Any) -> ValidationResult:
    """
    Validate untyped parameters against a capability schema.

    Args:
        schema: The resolved capability schema.
        raw_parameters: The parameter object exactly as received.

    Returns:
        ``ValidationResult`` with the typed, default-filled parameter model when
        ``ok``; otherwise every violation found. Unknown fields are dropped.
    """
    if raw_parameters is None:
        raw_parameters = {}
    if not isinstance(raw_parameters, Mapping):
        return ValidationResult(ok=False, violations=[Violation("parameters", "must be an object")])

    violations: List[Violation] = []
    cleaned = _check_object(schema.parameter_spec, raw_parameters, "", violations)
    if violations:
        return ValidationResult(ok=False, violations=violations)

    try:
        model = schema.params_model.model_validate(cleaned)
    except ValidationError as e:
        return ValidationResult(ok=False, violations=_model_violations(e))
    return ValidationResult(ok=True, normalized_parameters=model)
