"""
Anki Decoder - decode Anki packages into an immutable in-memory model.

Core entry points:
    decode_package - Decode .apkg / .colpkg bytes into an AnkiPackage
    read_package   - Same, from a file path

Modules:
    container   - ZIP container reader
    compression - Zstandard frame detection and decompression
    store       - Read-only SQLite access to the collection
    schema      - Legacy / modern schema resolution and identification
    protobuf    - Wire format readers and config blob schemas
    manifest    - Hand-rolled protobuf media manifest decoder
    legacy      - anki2 / anki21 extractor
    modern      - anki21b extractor
    media       - Media manifest reconciliation and loading
    decks       - Deck overview
    cli         - Command-line inspector
"""

from anki_decoder.decks import assemble_decks
from anki_decoder.errors import (
    AnkiDecodeError,
    ContainerError,
    DecompressionError,
    EntryNotFound,
    InvalidLegacyModelJson,
    MalformedConfigBlob,
    MalformedMediaManifest,
    ModelNotFound,
    NotAContainer,
    NotetypeNotFound,
    TemplateGroupNotFound,
    UnrecognizedCollection,
)
from anki_decoder.models import (
    AnkiPackage,
    Card,
    CollectionSchema,
    Deck,
    DeckInfo,
    Field,
    MediaFile,
    MediaManifestEntry,
    MediaResolution,
    Notetype,
    NotetypeKind,
    Template,
)
from anki_decoder.package import decode_package, read_package

__all__ = [
    "decode_package",
    "read_package",
    "assemble_decks",
    "AnkiPackage",
    "Card",
    "CollectionSchema",
    "Deck",
    "DeckInfo",
    "Field",
    "MediaFile",
    "MediaManifestEntry",
    "MediaResolution",
    "Notetype",
    "NotetypeKind",
    "Template",
    "AnkiDecodeError",
    "ContainerError",
    "DecompressionError",
    "EntryNotFound",
    "InvalidLegacyModelJson",
    "MalformedConfigBlob",
    "MalformedMediaManifest",
    "ModelNotFound",
    "NotAContainer",
    "NotetypeNotFound",
    "TemplateGroupNotFound",
    "UnrecognizedCollection",
]
