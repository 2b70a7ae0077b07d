"""Model input schemas: parsing provider OpenAPI documents and validating payloads.

Provider schemas arrive as OpenAPI documents whose ``Input`` component lists
the accepted parameters. They are reduced to :class:`SchemaField` entries,
stored on the route and later turned into a pydantic model to validate and
sanitize caller input before it reaches the provider.
"""

from __future__ import annotations

import json
from typing import Any, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, create_model

from ..exceptions import InvalidInputError
from .registry_models import FieldType, InputSchema, SchemaField

_OPENAPI_TYPES = {
    "string": FieldType.STRING,
    "number": FieldType.NUMBER,
    "integer": FieldType.INTEGER,
    "boolean": FieldType.BOOLEAN,
    "array": FieldType.ARRAY,
}

_FILE_FORMATS = {"uri", "data-url"}
# files are passed by reference: remote URL or inline data URL
_FILE_VALUE_PATTERN = r"^(https?://|data:)"


class _PassThroughInput(BaseModel):
    model_config = ConfigDict(extra="allow")


def parse_openapi_schema(openapi_schema: Mapping[str, Any] | None) -> InputSchema:
    """Extract the ``Input`` component of a provider OpenAPI schema."""
    components = (openapi_schema or {}).get("components") or {}
    input_component = (components.get("schemas") or {}).get("Input") or {}
    properties = input_component.get("properties")
    if not properties:
        raise ValueError("No input schema found in OpenAPI spec")

    required = set(input_component.get("required") or [])
    schema: InputSchema = {}
    for name, spec in properties.items():
        spec = spec or {}
        field = SchemaField(
            type=_map_openapi_type(spec),
            required=name in required,
            default=spec.get("default"),
            minimum=spec.get("minimum"),
            maximum=spec.get("maximum"),
            pattern=spec.get("pattern"),
            description=spec.get("description") or "",
        )
        if spec.get("enum"):
            field.options = list(spec["enum"])
        if field.type is FieldType.FILE:
            field.accept = _guess_accept(name)
        schema[name] = field
    return schema


def _map_openapi_type(spec: Mapping[str, Any]) -> FieldType:
    if spec.get("enum"):
        return FieldType.ENUM
    if spec.get("format") in _FILE_FORMATS:
        return FieldType.FILE
    return _OPENAPI_TYPES.get(spec.get("type", "string"), FieldType.STRING)


def _guess_accept(name: str) -> str | None:
    lowered = name.lower()
    for kind in ("audio", "image", "video"):
        if kind in lowered:
            return f"{kind}/*"
    return None


def schema_to_json(schema: InputSchema) -> str:
    return json.dumps({name: field.to_dict() for name, field in schema.items()})


def schema_from_json(raw: str | None) -> InputSchema:
    if not raw:
        return {}
    data = json.loads(raw)
    return {name: SchemaField.from_dict(spec or {}) for name, spec in data.items()}


def _annotation_for(field: SchemaField) -> Any:
    if field.type is FieldType.INTEGER:
        return int
    if field.type is FieldType.NUMBER:
        return float
    if field.type is FieldType.BOOLEAN:
        return bool
    if field.type is FieldType.ENUM and field.options:
        return Literal[tuple(field.options)]
    if field.type is FieldType.ARRAY:
        return list[Any]
    return str


def build_input_model(schema: InputSchema) -> type[BaseModel]:
    """Create a pydantic model for ``schema``; unknown keys pass through."""
    if not schema:
        return _PassThroughInput

    fields: dict[str, Any] = {}
    for name, spec in schema.items():
        annotation = _annotation_for(spec)
        constraints: dict[str, Any] = {"description": spec.description or None}
        if spec.type in (FieldType.INTEGER, FieldType.NUMBER):
            if spec.minimum is not None:
                constraints["ge"] = spec.minimum
            if spec.maximum is not None:
                constraints["le"] = spec.maximum
        if spec.type is FieldType.STRING and spec.pattern:
            constraints["pattern"] = spec.pattern
        if spec.type is FieldType.FILE:
            constraints["pattern"] = _FILE_VALUE_PATTERN

        if spec.required and spec.default is None:
            fields[name] = (annotation, Field(..., **constraints))
        else:
            fields[name] = (Optional[annotation], Field(spec.default, **constraints))

    return create_model(  # type: ignore[call-overload]
        "ModelInput",
        __config__=ConfigDict(extra="allow", protected_namespaces=()),
        **fields,
    )


def validate_input(schema: InputSchema, payload: Mapping[str, Any]) -> dict[str, Any]:
    """Validate ``payload`` and return it with defaults applied.

    Raises :class:`InvalidInputError` listing every offending field.
    """
    model = build_input_model(schema)
    try:
        validated = model.model_validate(dict(payload))
    except ValidationError as exc:
        errors = [
            {
                "field": ".".join(str(part) for part in error["loc"]),
                "message": error["msg"],
            }
            for error in exc.errors()
        ]
        summary = ", ".join(f"{item['field']}: {item['message']}" for item in errors)
        raise InvalidInputError(f"Invalid input: {summary}", errors=errors) from exc

    sanitized = validated.model_dump(mode="json", exclude_none=True)
    return sanitized


def coerce_input(schema: InputSchema, payload: Mapping[str, Any]) -> dict[str, Any]:
    """Convert string values to the primitive types the provider expects."""
    converted: dict[str, Any] = {}
    for key, value in payload.items():
        spec = schema.get(key)
        if spec is None or not isinstance(value, str):
            converted[key] = value
            continue
        try:
            if spec.type is FieldType.INTEGER:
                converted[key] = int(value)
            elif spec.type is FieldType.NUMBER:
                converted[key] = float(value)
            elif spec.type is FieldType.BOOLEAN:
                converted[key] = value.strip().lower() == "true"
            elif spec.type is FieldType.ENUM and spec.options:
                converted[key] = _match_option(spec.options, value)
            else:
                converted[key] = value
        except ValueError:
            converted[key] = value
    return converted


def _match_option(options: list[Any], value: str) -> Any:
    """Map a form string onto the typed enum option it spells, e.g. "2" -> 2."""
    if value in options:
        return value
    for option in options:
        if str(option) == value.strip():
            return option
    return value
