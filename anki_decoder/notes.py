"""
Helpers shared by the legacy and modern extractors.

Both schemas store a note's field values as one string joined by the ASCII
unit separator (0x1f), in field-ordinal order.
"""

import re

from anki_decoder.models import Deck
from anki_decoder.store import TabularStore

FIELD_SEPARATOR = "\x1f"

_TAG_SPLIT = re.compile(r"[\x1f\s]+")


def split_fields(flds: str | None) -> list[str]:
    """Split a raw ``notes.flds`` value into positional values."""
    if flds is None:
        return []
    return flds.split(FIELD_SEPARATOR)


def split_tags(tags: str | None) -> tuple[str, ...]:
    """
    Split a raw ``notes.tags`` value.

    Anki itself stores tags space-separated with surrounding spaces
    (``" vocab french "``); some exporters join them with 0x1f. Both are
    accepted and empty pieces are dropped.
    """
    if not tags:
        return ()
    return tuple(tag for tag in _TAG_SPLIT.split(tags) if tag)


def map_values(field_names: list[str], raw_values: list[str]) -> dict[str, str | None]:
    """
    Pair field names with positional values.

    Every field name is present in the result; names without a value map to
    None. Surplus values (more values than fields) are dropped.
    """
    return {
        name: raw_values[i] if i < len(raw_values) else None
        for i, name in enumerate(field_names)
    }


def normalize_deck_name(name: str) -> str:
    """Modern collections separate deck levels with 0x1f instead of ``::``."""
    return name.replace(FIELD_SEPARATOR, "::")


def read_note_decks(store: TabularStore, decks: dict[str, Deck]) -> dict[str, str]:
    """
    Map each note id to the name of the deck holding its first card.

    :param store: Open collection.
    :param decks: Deck id to deck.
    :returns: Note id to deck name. Notes without cards, or whose card
        points at an unknown deck, are absent.
    """
    if "cards" not in store.table_names():
        return {}

    note_decks = {}
    rows = store.query("SELECT nid, did FROM cards ORDER BY nid, ord, id")
    for row in rows:
        note_id = str(row["nid"])
        if note_id in note_decks:
            continue
        deck = decks.get(str(row["did"]))
        if deck is not None:
            note_decks[note_id] = deck.name
    return note_decks
