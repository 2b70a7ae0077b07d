"""Data structures describing routable models."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any


class ModelType(StrEnum):
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    TEXT = "text"
    UTILITY = "utility"


class FieldType(StrEnum):
    """Input field types understood by the validator."""

    STRING = "string"
    NUMBER = "number"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    ENUM = "enum"
    FILE = "file"
    ARRAY = "array"


@dataclass(slots=True)
class SchemaField:
    """Single input parameter of a model."""

    type: FieldType = FieldType.STRING
    required: bool = False
    default: Any = None
    minimum: float | None = None
    maximum: float | None = None
    options: list[Any] | None = None
    accept: str | None = None
    pattern: str | None = None
    description: str = ""

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["type"] = self.type.value
        return {key: value for key, value in data.items() if value not in (None, "")}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SchemaField":
        try:
            field_type = FieldType(data.get("type", "string"))
        except ValueError:
            field_type = FieldType.STRING
        return cls(
            type=field_type,
            required=bool(data.get("required", False)),
            default=data.get("default"),
            minimum=data.get("minimum", data.get("min")),
            maximum=data.get("maximum", data.get("max")),
            options=data.get("options"),
            accept=data.get("accept"),
            pattern=data.get("pattern"),
            description=data.get("description") or "",
        )


InputSchema = dict[str, SchemaField]


@dataclass(slots=True)
class ModelRoute:
    """Everything needed to route a request for ``identifier`` to a provider."""

    identifier: str
    provider: str
    model_type: ModelType = ModelType.IMAGE
    display_name: str = ""
    remote_model: str | None = None
    remote_version: str | None = None
    input_schema: InputSchema = field(default_factory=dict)
    supports_webhook: bool = True
    supports_cancel: bool = True
    webhook_events: list[str] = field(default_factory=list)
    is_enabled: bool = True
    cost_per_use: float | None = None
    avg_latency_seconds: float | None = None
    schema_synced_at: datetime | None = None
