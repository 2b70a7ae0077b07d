"""Turn provider success payloads into media descriptors.

Providers return one of three shapes on success: a single URL string, a list
of URL strings, or an object carrying a ``url`` (or ``urls``) field. Anything
else is treated as an output without media (text models, embeddings) and
yields no descriptors.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from posixpath import splitext
from typing import Any
from urllib.parse import urlsplit

from ..exceptions import NormalizationError
from .media_models import MediaDescriptor, MediaKind

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = frozenset({"jpg", "jpeg", "png", "webp", "gif"})
VIDEO_EXTENSIONS = frozenset({"mp4", "mov", "avi", "webm"})
AUDIO_EXTENSIONS = frozenset({"mp3", "wav", "ogg", "m4a", "flac"})

_KIND_TABLES = (
    (MediaKind.IMAGE, IMAGE_EXTENSIONS),
    (MediaKind.VIDEO, VIDEO_EXTENSIONS),
    (MediaKind.AUDIO, AUDIO_EXTENSIONS),
)


def is_valid_url(value: str) -> bool:
    try:
        parts = urlsplit(value.strip())
    except ValueError:
        return False
    return parts.scheme in ("http", "https") and bool(parts.netloc)


def file_extension(url: str) -> str | None:
    """Return the lowercase extension of the URL path, without the dot."""
    try:
        path = urlsplit(url).path
    except ValueError:
        return None
    extension = splitext(path)[1]
    if len(extension) <= 1:
        return None
    return extension[1:].lower()


def infer_kind(url: str, input_payload: Mapping[str, Any] | None = None) -> MediaKind:
    extension = file_extension(url)
    if extension:
        for kind, extensions in _KIND_TABLES:
            if extension in extensions:
                return kind
    # Last resort: text-to-image requests carry a prompt and rarely say so in the URL.
    if isinstance(input_payload, Mapping) and "prompt" in input_payload:
        return MediaKind.IMAGE
    return MediaKind.UNKNOWN


def extract_urls(output: Any) -> list[str]:
    """Collect candidate URL strings from the recognized output shapes."""
    if isinstance(output, str):
        return [output]
    if isinstance(output, Mapping):
        return _urls_from_object(output)
    if isinstance(output, Sequence) and not isinstance(output, (bytes, bytearray)):
        candidates: list[str] = []
        for entry in output:
            if isinstance(entry, str):
                candidates.append(entry)
            elif isinstance(entry, Mapping) and isinstance(entry.get("url"), str):
                candidates.append(entry["url"])
        return candidates
    logger.debug("media.normalize.unrecognized_shape", extra={"output_type": type(output).__name__})
    return []


def _urls_from_object(output: Mapping[str, Any]) -> list[str]:
    if "url" in output:
        url = output["url"]
        if not isinstance(url, str):
            raise NormalizationError(f"Output 'url' field must be a string, got {type(url).__name__}")
        return [url]
    urls = output.get("urls")
    if isinstance(urls, Sequence) and not isinstance(urls, str):
        return [entry for entry in urls if isinstance(entry, str)]
    return []


def normalize_output(
    job_id: str,
    output: Any,
    input_payload: Mapping[str, Any] | None = None,
) -> list[MediaDescriptor]:
    """Build ordered descriptors for every URL-like entry in ``output``.

    Malformed entries are dropped individually so a single bad item never
    fails the whole batch. Raises :class:`NormalizationError` only when the
    url-bearing object itself is malformed.
    """
    descriptors: list[MediaDescriptor] = []
    for candidate in extract_urls(output):
        if not is_valid_url(candidate):
            logger.debug(
                "media.normalize.entry_dropped",
                extra={"job_id": job_id, "entry": candidate[:200]},
            )
            continue
        url = candidate.strip()
        ordinal = len(descriptors)
        kind = infer_kind(url, input_payload)
        base_name = f"Generated {kind.value}"
        descriptors.append(
            MediaDescriptor(
                job_id=job_id,
                ordinal=ordinal,
                url=url,
                kind=kind,
                format=file_extension(url) or "unknown",
                name=base_name if ordinal == 0 else f"{base_name} {ordinal + 1}",
            )
        )
    return descriptors
