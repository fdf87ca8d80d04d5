"""Knowledge document codec.

On-disk format (one file per topic):

    ---
    topic: swift-concurrency
    version: 2
    confidence: 0.8
    tags:
    - swift
    source: manual
    created: '2026-01-31T12:34:56.789012Z'
    updated: '2026-02-01T08:00:00.000000Z'
    ---

    <markdown body>

The metadata block is YAML. The id is never stored; decode_entry()
recomputes it from topic + content.
"""

from __future__ import annotations

import re
from typing import Optional, Union

import yaml

from knowledgeos.core.errors import MalformedDocumentError
from knowledgeos.core.models import KnowledgeEntry
from knowledgeos.core.time import iso_z, parse_time


DELIMITER = "---"
DOCUMENT_EXTENSION = ".md"

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def sanitize_topic(topic: str) -> str:
    """Filesystem-safe file stem for a topic.

    Path separators become '-', spaces become '_', anything else outside
    [A-Za-z0-9._-] becomes '_'.
    """
    safe = topic.replace("/", "-").replace("\\", "-").replace(" ", "_")
    return _UNSAFE_CHARS.sub("_", safe)


def document_filename(topic: str) -> str:
    return sanitize_topic(topic) + DOCUMENT_EXTENSION


def encode_entry(entry: KnowledgeEntry) -> bytes:
    """Serialize an entry to markdown with a YAML metadata block."""
    metadata = {
        "topic": entry.topic,
        "version": entry.version,
        "confidence": entry.confidence,
        "tags": list(entry.tags or []),
        "source": entry.source,
        "created": iso_z(entry.created_at),
        "updated": iso_z(entry.updated_at),
    }
    header = yaml.safe_dump(
        metadata,
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
    )
    text = f"{DELIMITER}\n{header}{DELIMITER}\n\n{entry.content}\n"
    return text.encode("utf-8")


def decode_entry(data: Union[bytes, str], path: Optional[str] = None) -> KnowledgeEntry:
    """Parse a document produced by encode_entry().

    Raises:
        MalformedDocumentError: missing delimiters, unparseable or
            incomplete metadata
    """
    if isinstance(data, bytes):
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedDocumentError(f"not valid UTF-8: {e}", path=path) from e
    else:
        text = data

    lines = text.split("\n")
    start = _find_delimiter(lines, 0)
    if start is None:
        raise MalformedDocumentError("no opening delimiter found", path=path)
    end = _find_delimiter(lines, start + 1)
    if end is None:
        raise MalformedDocumentError("no closing delimiter found", path=path)

    header = "\n".join(lines[start + 1:end])
    try:
        metadata = yaml.safe_load(header)
    except yaml.YAMLError as e:
        raise MalformedDocumentError(f"failed to parse metadata: {e}", path=path) from e

    if not isinstance(metadata, dict):
        raise MalformedDocumentError("metadata block is not a mapping", path=path)
    if not metadata.get("topic"):
        raise MalformedDocumentError("metadata has no topic", path=path)

    # Body: exactly one blank line after the delimiter and one trailing newline
    body = "\n".join(lines[end + 1:])
    if body.startswith("\n"):
        body = body[1:]
    if body.endswith("\n"):
        body = body[:-1]

    try:
        entry = KnowledgeEntry(
            topic=str(metadata["topic"]),
            content=body,
            source=str(metadata.get("source") or ""),
            confidence=float(metadata.get("confidence") or 0.0),
            tags=[str(t) for t in (metadata.get("tags") or [])],
            created_at=parse_time(metadata.get("created")),
            updated_at=parse_time(metadata.get("updated")),
            version=int(metadata.get("version") or 0),
        )
    except (TypeError, ValueError) as e:
        raise MalformedDocumentError(f"invalid metadata value: {e}", path=path) from e

    entry.id = entry.generate_id()
    return entry


def _find_delimiter(lines, start: int) -> Optional[int]:
    # Delimiter must start the line; indented "---" belongs to a quoted YAML scalar
    for i in range(start, len(lines)):
        if lines[i].rstrip() == DELIMITER:
            return i
    return None
