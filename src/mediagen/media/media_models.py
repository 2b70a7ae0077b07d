"""Domain models for normalized media outputs."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class MediaKind(StrEnum):
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    UNKNOWN = "unknown"


@dataclass(slots=True)
class MediaDescriptor:
    """One output artifact of a successful job."""

    job_id: str
    ordinal: int
    url: str
    kind: MediaKind
    format: str = "unknown"
    name: str = ""
    id: str | None = None
