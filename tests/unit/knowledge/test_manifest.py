from __future__ import annotations

from pathlib import Path

import pytest

from knowledgeos.core.errors import MalformedDocumentError, NotFoundError
from knowledgeos.core.manifest import (
    get_topic,
    load_manifest,
    manifest_path,
    remove_topic,
    save_manifest,
    upsert_topic,
)
from knowledgeos.core.models import Manifest, ManifestTopic
from knowledgeos.core.time import utc_now


def _record(name: str, version: int = 1) -> ManifestTopic:
    return ManifestTopic(
        name=name,
        file=f"{name}.md",
        version=version,
        updated_at=utc_now(),
        confidence=0.8,
        tags=["swift"],
    )


def test_missing_manifest_loads_empty(tmp_path: Path) -> None:
    manifest = load_manifest(tmp_path)
    assert manifest.topics == []
    assert manifest.version == "1.0.0"


def test_save_and_load_round_trip(tmp_path: Path) -> None:
    manifest = Manifest(topics=[_record("a"), _record("b")])
    save_manifest(tmp_path, manifest)

    loaded = load_manifest(tmp_path)
    assert [t.name for t in loaded.topics] == ["a", "b"]
    assert loaded.topics[0].tags == ["swift"]
    assert loaded.metadata.total_topics == 2
    assert loaded.updated is not None


def test_upsert_replaces_in_place(tmp_path: Path) -> None:
    upsert_topic(tmp_path, _record("a"))
    upsert_topic(tmp_path, _record("b"))
    upsert_topic(tmp_path, _record("a", version=2))

    manifest = load_manifest(tmp_path)
    assert [t.name for t in manifest.topics] == ["a", "b"]
    assert manifest.topics[0].version == 2
    assert manifest.metadata.total_topics == 2


def test_remove_and_get(tmp_path: Path) -> None:
    upsert_topic(tmp_path, _record("a"))
    assert get_topic(tmp_path, "a").file == "a.md"

    remove_topic(tmp_path, "a")
    assert load_manifest(tmp_path).topics == []

    with pytest.raises(NotFoundError):
        remove_topic(tmp_path, "a")
    with pytest.raises(NotFoundError):
        get_topic(tmp_path, "a")


def test_unparseable_manifest_raises(tmp_path: Path) -> None:
    manifest_path(tmp_path).write_text("topics: [oops\n", encoding="utf-8")
    with pytest.raises(MalformedDocumentError):
        load_manifest(tmp_path)
