"""Manifest registry (MANIFEST.yaml).

The manifest is an index for fast enumeration, not a source of truth: it
can always be regenerated from the stored documents
(FileKnowledgeStore.rebuild_manifest()).
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Union

import yaml

from knowledgeos.core.errors import MalformedDocumentError, NotFoundError
from knowledgeos.core.models import Manifest, ManifestTopic
from knowledgeos.core.time import utc_now


logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "MANIFEST.yaml"

# Serializes read-modify-write cycles on manifest files within the process
_manifest_lock = threading.RLock()


def manifest_path(base_dir: Union[str, Path]) -> Path:
    return Path(base_dir) / MANIFEST_FILENAME


def load_manifest(base_dir: Union[str, Path]) -> Manifest:
    """Load MANIFEST.yaml; a missing file yields an empty manifest.

    Raises:
        MalformedDocumentError: if the file exists but is not valid YAML
    """
    path = manifest_path(base_dir)
    if not path.exists():
        return Manifest()

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise MalformedDocumentError(f"failed to parse manifest: {e}", path=str(path)) from e

    if data is None:
        return Manifest()
    if not isinstance(data, dict):
        raise MalformedDocumentError("manifest is not a mapping", path=str(path))

    try:
        return Manifest.from_dict(data)
    except (TypeError, ValueError) as e:
        raise MalformedDocumentError(f"invalid manifest value: {e}", path=str(path)) from e


def save_manifest(base_dir: Union[str, Path], manifest: Manifest) -> None:
    """Write MANIFEST.yaml, recomputing the derived fields first."""
    manifest.updated = utc_now()
    manifest.metadata.total_topics = len(manifest.topics)

    path = manifest_path(base_dir)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        yaml.safe_dump(manifest.to_dict(), sort_keys=False, allow_unicode=True),
        encoding="utf-8",
    )
    logger.debug(f"Manifest saved: {path} ({len(manifest.topics)} topics)")


def upsert_topic(base_dir: Union[str, Path], record: ManifestTopic) -> None:
    """Add a topic record, replacing an existing one with the same name in place."""
    with _manifest_lock:
        manifest = load_manifest(base_dir)
        for i, existing in enumerate(manifest.topics):
            if existing.name == record.name:
                manifest.topics[i] = record
                break
        else:
            manifest.topics.append(record)
        save_manifest(base_dir, manifest)


def remove_topic(base_dir: Union[str, Path], name: str) -> None:
    """Remove a topic record.

    Raises:
        NotFoundError: if no record has that name
    """
    with _manifest_lock:
        manifest = load_manifest(base_dir)
        for i, existing in enumerate(manifest.topics):
            if existing.name == name:
                del manifest.topics[i]
                save_manifest(base_dir, manifest)
                return
    raise NotFoundError("manifest topic", name)


def get_topic(base_dir: Union[str, Path], name: str) -> ManifestTopic:
    """Look up a topic record.

    Raises:
        NotFoundError: if no record has that name
    """
    record = load_manifest(base_dir).find(name)
    if record is None:
        raise NotFoundError("manifest topic", name)
    return record
