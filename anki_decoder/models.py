"""
Canonical data model produced by the decoder.

Every value here is created fresh for each decode and is immutable once
constructed. Identifiers (notetype, deck and note ids) are kept as strings
because Anki ids are 13-digit millisecond timestamps that are used as JSON
object keys in the legacy schema.
"""

import base64
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class CollectionSchema(Enum):
    """Which extraction pipeline a collection database needs."""

    LEGACY = "legacy"  # collection.anki2 / collection.anki21, JSON in col
    MODERN = "modern"  # collection.anki21b, normalized tables + protobuf


class NotetypeKind(Enum):
    """Notetype kind as stored in the notetype config (field 1)."""

    NORMAL = 0
    CLOZE = 1


@dataclass(frozen=True)
class ArchiveEntry:
    """Metadata for one member of the outer ZIP archive.

    :param name: Member name, e.g. ``collection.anki21b``, ``media`` or ``0``.
    :param is_directory: True for directory members.
    :param size: Uncompressed size in bytes.
    :param compressed_size: Size as stored in the archive.
    """

    name: str
    is_directory: bool
    size: int = 0
    compressed_size: int = 0

    @property
    def is_numbered(self) -> bool:
        """True for numbered media members (``0``, ``1``, ...)."""
        return not self.is_directory and self.name.isascii() and self.name.isdigit()


@dataclass(frozen=True)
class MediaManifestEntry:
    """One manifest row mapping a numbered archive member to its filename."""

    index: str
    filename: str


@dataclass(frozen=True)
class Notetype:
    """A note type (called a "model" in the legacy schema)."""

    id: str
    name: str
    css: str = ""
    latex_pre: str = ""
    latex_post: str = ""
    kind: NotetypeKind = NotetypeKind.NORMAL
    latex_svg: bool = False
    sort_field_index: int = 0
    original_id: str | None = None


@dataclass(frozen=True)
class Field:
    """A field definition of a notetype.

    :param notetype_id: Owning notetype.
    :param ordinal: Zero-based position in the note's raw field list.
    :param name: Field name, used as key in :attr:`Card.values`.
    :param font_config: Decoded field config (font, rtl, sticky, ...).
    """

    notetype_id: str
    ordinal: int
    name: str
    font_config: dict = field(default_factory=dict, compare=False)


@dataclass(frozen=True)
class Template:
    """A card template of a notetype."""

    notetype_id: str
    ordinal: int
    name: str
    question_format: str
    answer_format: str


@dataclass(frozen=True)
class Card:
    """A note projected into renderable form.

    :param values: Field name to value. Every field of the notetype is
        present; fields without a raw value map to None.
    :param tags: Note tags in stored order.
    :param templates: Every template of the note's notetype, by ordinal.
    :param deck_name: Name of the deck holding the note's first card, if any.
    :param note_id: Source note id.
    :param notetype_id: Source notetype (model) id.
    """

    values: dict[str, str | None]
    tags: tuple[str, ...] = ()
    templates: tuple[Template, ...] = ()
    deck_name: str | None = None
    note_id: str | None = None
    notetype_id: str | None = None


@dataclass(frozen=True)
class Deck:
    """A deck; ``name`` uses ``::`` as the hierarchy separator."""

    id: str
    name: str


@dataclass(frozen=True)
class MediaFile:
    """Resolved media content, already decompressed.

    :param name: Canonical filename, as referenced from card fields.
    :param content_type: MIME type guessed from the filename extension.
    :param data: File contents.
    """

    name: str
    content_type: str
    data: bytes = field(repr=False)

    @property
    def size(self) -> int:
        return len(self.data)

    def data_uri(self) -> str:
        """Return the content as a ``data:`` URI suitable for inlining in HTML."""
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.content_type};base64,{encoded}"

    def save(self, directory: str | Path) -> Path:
        """
        Write the file into a directory under its canonical name.

        :param directory: Destination directory (created if missing).
        :returns: Path of the written file.
        """
        os.makedirs(directory, exist_ok=True)
        path = Path(directory) / os.path.basename(self.name)
        path.write_bytes(self.data)
        return path


@dataclass(frozen=True)
class MediaResolution:
    """Outcome of reconciling the media manifest with the archive.

    :param files: Canonical filename to resolved file.
    :param missing: Manifest entries whose numbered member is absent.
    :param unreferenced: Numbered members that no manifest entry names.
    :param manifest_format: ``"json"``, ``"protobuf"`` or ``"none"``.
    """

    files: dict[str, MediaFile] = field(default_factory=dict)
    missing: tuple[MediaManifestEntry, ...] = ()
    unreferenced: tuple[str, ...] = ()
    manifest_format: str = "none"


@dataclass(frozen=True)
class SubDeckInfo:
    id: str
    name: str
    card_count: int
    template_count: int


@dataclass(frozen=True)
class DeckInfo:
    """Deck overview with per-deck counts and a display name."""

    name: str
    card_count: int
    template_count: int
    subdecks: tuple[SubDeckInfo, ...] = ()


@dataclass(frozen=True)
class AnkiPackage:
    """
    Root aggregate returned by :func:`anki_decoder.package.decode_package`.

    :param cards: One card projection per note, in ``notes`` table order.
    :param notetypes: Notetypes of a modern collection; None for the legacy
        schema, whose cards carry their templates inline.
    :param decks: Deck id to deck.
    :param deck_name: Common deck name of the package's cards.
    :param media_files: Canonical filename to resolved media.
    :param schema: Extraction pipeline that was used.
    :param collection_entry: Archive member the collection was read from.
    :param media: Full media reconciliation report.
    """

    cards: tuple[Card, ...]
    notetypes: tuple[Notetype, ...] | None
    decks: dict[str, Deck]
    deck_name: str
    media_files: dict[str, MediaFile]
    schema: CollectionSchema = CollectionSchema.LEGACY
    collection_entry: str = ""
    media: MediaResolution = field(default_factory=MediaResolution)

    def deck_info(self) -> DeckInfo:
        """Group cards into decks with counts (see :mod:`anki_decoder.decks`)."""
        from anki_decoder.decks import assemble_decks

        return assemble_decks(self.cards, self.decks, self.deck_name)
