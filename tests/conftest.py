"""
Shared pytest fixtures for all tests.
"""

import json
import os
import shutil
import tempfile

import pytest

from anki_decoder.store import TabularStore
from builders import (
    build_archive,
    build_legacy_collection,
    build_modern_collection,
    field_config,
    legacy_model,
    media_manifest,
    notetype_config,
    template_config,
    zstd_compress,
)

LEGACY_MODEL_ID = "1342697561419"
MODERN_NOTETYPE_ID = "1700000000000"
CLOZE_NOTETYPE_ID = "1700000000001"


@pytest.fixture
def legacy_collection():
    """A legacy collection with one Basic note in a nested deck."""
    model = legacy_model(LEGACY_MODEL_ID, ["Front", "Back"])
    return build_legacy_collection(
        models={LEGACY_MODEL_ID: model},
        notes=[(1, LEGACY_MODEL_ID, "Hola\x1fHello", " vocab spanish ")],
        decks={
            "1": {"id": 1, "name": "Default"},
            "1500000000000": {"id": 1500000000000, "name": "Spanish::Greetings"},
        },
        cards=[(10, 1, 1500000000000, 0)],
    )


@pytest.fixture
def modern_collection():
    """A modern collection with a Basic and a Cloze notetype."""
    return build_modern_collection(
        notetypes=[
            (MODERN_NOTETYPE_ID, "Basic (and reversed card)", notetype_config(css=".card {}")),
            (CLOZE_NOTETYPE_ID, "Cloze", notetype_config(kind=1, latex_svg=True)),
        ],
        fields=[
            (MODERN_NOTETYPE_ID, 0, "Front", field_config()),
            (MODERN_NOTETYPE_ID, 1, "Back", field_config("Liberation Sans", 18)),
            (CLOZE_NOTETYPE_ID, 0, "Text", field_config()),
            (CLOZE_NOTETYPE_ID, 1, "Back Extra", field_config()),
        ],
        templates=[
            (MODERN_NOTETYPE_ID, 0, "Card 1", template_config("{{Front}}", "{{Back}}")),
            (MODERN_NOTETYPE_ID, 1, "Card 2", template_config("{{Back}}", "{{Front}}")),
            (CLOZE_NOTETYPE_ID, 0, "Cloze", template_config("{{cloze:Text}}", "{{cloze:Text}}")),
        ],
        notes=[
            (1, MODERN_NOTETYPE_ID, "Bonjour\x1fHello", " french "),
            (2, CLOZE_NOTETYPE_ID, "{{c1::Paris}} is in France\x1f", ""),
        ],
        decks=[(1, "Default"), (1600000000000, "French\x1fVocab")],
        cards=[
            (10, 1, 1600000000000, 0),
            (11, 1, 1600000000000, 1),
            (12, 2, 1600000000000, 0),
        ],
    )


@pytest.fixture
def legacy_store(legacy_collection):
    with TabularStore.from_bytes(legacy_collection) as store:
        yield store


@pytest.fixture
def modern_store(modern_collection):
    with TabularStore.from_bytes(modern_collection) as store:
        yield store


@pytest.fixture
def legacy_apkg(legacy_collection):
    """A legacy package with a JSON media manifest and one image."""
    return build_archive(
        {
            "collection.anki2": legacy_collection,
            "media": json.dumps({"0": "hola.png"}).encode("utf-8"),
            "0": b"\x89PNG\r\n\x1a\nfake image",
        }
    )


@pytest.fixture
def modern_apkg(modern_collection):
    """A modern package: zstd collection, protobuf manifest, zstd media."""
    return build_archive(
        {
            "collection.anki21b": zstd_compress(modern_collection),
            "media": zstd_compress(media_manifest(["bonjour.mp3", "paris.jpg"])),
            "0": zstd_compress(b"ID3 fake audio"),
            "1": zstd_compress(b"\xff\xd8\xff fake jpeg"),
        }
    )


@pytest.fixture
def temp_output_dir():
    """Create a temporary directory for media extraction."""
    temp_dir = tempfile.mkdtemp()
    yield temp_dir
    # Cleanup
    if os.path.exists(temp_dir):
        shutil.rmtree(temp_dir)
