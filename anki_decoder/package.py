"""
Decode Anki package (.apkg / .colpkg) files.

APKG Format Overview
--------------------
An .apkg file is a ZIP archive containing:
- collection.anki2 or collection.anki21 or collection.anki21b (SQLite database)
- media (JSON or protobuf mapping file IDs to filenames)
- 0, 1, 2, ... (media files named by numeric ID)

Decoding runs these stages in order; each consumes the complete output of
the one before it:

1. open the container (:mod:`anki_decoder.container`)
2. pick the collection member and undo its zstd framing
   (:mod:`anki_decoder.compression`)
3. open it read-only and resolve the schema (:mod:`anki_decoder.schema`)
4. run exactly one extractor (:mod:`anki_decoder.legacy` or
   :mod:`anki_decoder.modern`)
5. resolve media (:mod:`anki_decoder.media`)

Any failure propagates as an :class:`~anki_decoder.errors.AnkiDecodeError`
subclass; a partially decoded package is never returned.
"""

import logging
from pathlib import Path
from typing import Iterable

from anki_decoder.compression import is_zstd_frame, maybe_decompress
from anki_decoder.container import ContainerReader
from anki_decoder.decks import DEFAULT_DECK_NAME
from anki_decoder.errors import UnrecognizedCollection
from anki_decoder.legacy import extract_legacy
from anki_decoder.media import MANIFEST_ENTRY, resolve_media
from anki_decoder.models import AnkiPackage, Card, CollectionSchema
from anki_decoder.modern import extract_modern
from anki_decoder.schema import resolve, schema_for_tables, select_collection_entry
from anki_decoder.store import SQLITE_MAGIC, TabularStore

logger = logging.getLogger(__name__)


def find_collection_entry(reader: ContainerReader) -> str:
    """
    Find the archive member holding the collection database.

    Known collection names win. Otherwise the first other member that is
    an SQLite database (possibly zstd-compressed) is used.

    :raises UnrecognizedCollection: If no member qualifies.
    """
    try:
        return select_collection_entry(reader.names())
    except UnrecognizedCollection:
        pass

    for entry in reader.list_entries():
        if entry.is_directory or entry.is_numbered or entry.name == MANIFEST_ENTRY:
            continue
        data = reader.read(entry.name)
        if data.startswith(SQLITE_MAGIC):
            return entry.name
        if is_zstd_frame(data) and maybe_decompress(data).startswith(SQLITE_MAGIC):
            return entry.name

    raise UnrecognizedCollection("No collection database in archive")


def common_deck_name(cards: Iterable[Card]) -> str:
    """
    Longest ``::`` prefix shared by the decks of all cards.

    :returns: The shared prefix, or "Default" when the cards share none.
    """
    common: list[str] | None = None
    for card in cards:
        if card.deck_name is None:
            continue
        parts = card.deck_name.split("::")
        if common is None:
            common = parts
            continue
        shared = 0
        while shared < min(len(common), len(parts)) and common[shared] == parts[shared]:
            shared += 1
        common = common[:shared]

    if not common:
        return DEFAULT_DECK_NAME
    return "::".join(common)


def decode_package(data: bytes, *, max_workers: int | None = None) -> AnkiPackage:
    """
    Decode a complete Anki package.

    :param data: Contents of an .apkg / .colpkg file.
    :param max_workers: Thread count for media extraction.
    :returns: The decoded :class:`~anki_decoder.models.AnkiPackage`.
    :raises AnkiDecodeError: If any stage fails.

    :Example:

    >>> pkg = decode_package(Path("deck.apkg").read_bytes())
    >>> pkg.cards[0].values
    {'Front': 'Hola', 'Back': 'Hello'}
    """
    with ContainerReader.open(bytes(data)) as reader:
        entry_name = find_collection_entry(reader)
        logger.debug("Using collection entry %s", entry_name)
        collection = maybe_decompress(reader.read(entry_name))

        with TabularStore.from_bytes(collection) as store:
            schema = resolve([entry_name], store)
            if (
                schema is CollectionSchema.LEGACY
                and schema_for_tables(store.table_names()) is CollectionSchema.MODERN
            ):
                # A legacy file name holding the normalized tables
                schema = CollectionSchema.MODERN

            if schema is CollectionSchema.MODERN:
                result = extract_modern(store)
            else:
                result = extract_legacy(store)

        media = resolve_media(reader, max_workers=max_workers)

    return AnkiPackage(
        cards=result.cards,
        notetypes=result.notetypes,
        decks=result.decks,
        deck_name=common_deck_name(result.cards),
        media_files=media.files,
        schema=schema,
        collection_entry=entry_name,
        media=media,
    )


def read_package(path: str | Path, *, max_workers: int | None = None) -> AnkiPackage:
    """
    Decode an Anki package from a file.

    :param path: Path to the .apkg / .colpkg file.
    :param max_workers: Thread count for media extraction.
    :returns: The decoded package.
    """
    return decode_package(Path(path).read_bytes(), max_workers=max_workers)
