"""
Decide which extraction pipeline a collection needs.

Database Formats
----------------
- collection.anki2: Legacy Anki 2.0 format (plain SQLite)
- collection.anki21: Anki 2.1 format (plain SQLite, same schema as anki2)
- collection.anki21b: Anki 2.1.50+ format (zstd-compressed SQLite, new schema)

Packages exported for older clients carry several of these at once; the
newest one holds the real data and the others a placeholder note asking the
user to upgrade.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable

from anki_decoder.errors import UnrecognizedCollection
from anki_decoder.models import CollectionSchema
from anki_decoder.store import TabularStore

logger = logging.getLogger(__name__)

MODERN_ENTRY = "collection.anki21b"
LEGACY_ENTRIES = ("collection.anki21", "collection.anki2")
COLLECTION_ENTRY_NAMES = (MODERN_ENTRY, *LEGACY_ENTRIES)


def select_collection_entry(names: Iterable[str]) -> str:
    """
    Pick the archive member holding the collection database.

    :param names: Archive member names.
    :returns: The newest collection member present.
    :raises UnrecognizedCollection: If the archive has no collection member.
    """
    present = set(names)
    for name in COLLECTION_ENTRY_NAMES:
        if name in present:
            return name
    raise UnrecognizedCollection(
        f"No collection database in archive (expected one of {', '.join(COLLECTION_ENTRY_NAMES)})"
    )


def schema_for_tables(tables: Iterable[str]) -> CollectionSchema | None:
    """Classify a table layout; None when it is neither schema."""
    tables = set(tables)
    if "notetypes" in tables:
        return CollectionSchema.MODERN
    if {"notes", "col"} <= tables:
        return CollectionSchema.LEGACY
    return None


def resolve_store(store: TabularStore) -> CollectionSchema:
    """
    Classify a collection by the tables it contains.

    :raises UnrecognizedCollection: If neither table layout is present.
    """
    tables = store.table_names()
    schema = schema_for_tables(tables)
    if schema is not None:
        return schema
    raise UnrecognizedCollection(
        f"Unrecognized collection tables: {', '.join(sorted(tables)) or 'none'}"
    )


def resolve(names: Iterable[str], store: TabularStore | None = None) -> CollectionSchema:
    """
    Resolve the collection schema from entry names, then from the store.

    :param names: Archive member names.
    :param store: Open collection, consulted only when the names are
        inconclusive.
    :returns: The schema to extract with.
    :raises UnrecognizedCollection: If no signal resolves.
    """
    present = set(names)
    if MODERN_ENTRY in present:
        schema = CollectionSchema.MODERN
    elif present.intersection(LEGACY_ENTRIES):
        schema = CollectionSchema.LEGACY
    elif store is not None:
        schema = resolve_store(store)
    else:
        raise UnrecognizedCollection("Cannot determine collection schema")

    logger.debug("Resolved collection schema: %s", schema.value)
    return schema


# =============================================================================
# Identification (diagnostics)
# =============================================================================


@dataclass(frozen=True)
class CollectionInfo:
    """Descriptive classification of a collection database."""

    era: str
    version: int
    schema_mod_time: int
    tables: frozenset[str] = field(default_factory=frozenset)
    has_models_column: bool = False

    @property
    def schema(self) -> CollectionSchema | None:
        return schema_for_tables(self.tables)


def identify(store: TabularStore) -> CollectionInfo:
    """
    Classify a collection by its ``col.ver`` and table layout.

    :param store: Open collection.
    :returns: A :class:`CollectionInfo`.
    """
    tables = frozenset(store.table_names())

    if "facts" in tables and "notes" not in tables:
        return CollectionInfo("Anki 1.x", 0, 0, tables)

    version = 0
    schema_mod_time = 0
    has_models_column = False
    if "col" in tables:
        has_models_column = "models" in store.column_names("col")
        row = store.query_one("SELECT ver, scm FROM col LIMIT 1")
        if row is not None:
            version = row["ver"] or 0
            schema_mod_time = row["scm"] or 0

    if version == 11:
        era = "Anki 2.0/2.1 (Legacy)"
    elif 14 <= version <= 16:
        era = "Anki 2.1 (Modern)"
    elif version >= 18:
        era = "Anki 2.1+ (Current)"
    else:
        era = "Anki 2.0/2.1 (Legacy)"

    return CollectionInfo(era, version, schema_mod_time, tables, has_models_column)
