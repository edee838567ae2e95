"""
Extract cards from a modern (anki21b) collection.

Anki21b:
    - Decks stored in separate 'decks' table (id, name, ...)
    - Models stored in 'notetypes' table with 'fields' table for field definitions
    - Tables: col, notes, cards, revlog, graves, decks, notetypes, fields,
              templates, deck_config, config, tags

Every ``config`` column is a protobuf blob (see :mod:`anki_decoder.protobuf`).
Fields and templates are keyed by ``(ntid, ord)``; a note's ``mid`` is the
``ntid`` of its fields and templates.
"""

import logging
from dataclasses import dataclass

from anki_decoder.errors import TemplateGroupNotFound
from anki_decoder.models import Card, Deck, Field, Notetype, NotetypeKind, Template
from anki_decoder.notes import (
    map_values,
    normalize_deck_name,
    read_note_decks,
    split_fields,
    split_tags,
)
from anki_decoder.protobuf import (
    decode_field_config,
    decode_notetype_config,
    decode_template_config,
)
from anki_decoder.store import TabularStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModernResult:
    cards: tuple[Card, ...]
    decks: dict[str, Deck]
    notetypes: tuple[Notetype, ...]


def read_fields(store: TabularStore) -> dict[str, list[Field]]:
    """Fields grouped by notetype id, sorted by ordinal."""
    grouped: dict[str, list[Field]] = {}
    for row in store.query("SELECT ntid, ord, name, config FROM fields ORDER BY ntid, ord"):
        notetype_id = str(row["ntid"])
        grouped.setdefault(notetype_id, []).append(
            Field(
                notetype_id=notetype_id,
                ordinal=row["ord"],
                name=row["name"],
                font_config=decode_field_config(row["config"]),
            )
        )
    return grouped


def read_templates(store: TabularStore) -> dict[str, list[Template]]:
    """Templates grouped by notetype id, in table order."""
    grouped: dict[str, list[Template]] = {}
    for row in store.query("SELECT ntid, ord, name, config FROM templates"):
        notetype_id = str(row["ntid"])
        config = decode_template_config(row["config"])
        grouped.setdefault(notetype_id, []).append(
            Template(
                notetype_id=notetype_id,
                ordinal=row["ord"],
                name=row["name"],
                question_format=config["q_format"],
                answer_format=config["a_format"],
            )
        )
    return grouped


def read_notetypes(store: TabularStore) -> tuple[Notetype, ...]:
    notetypes = []
    for row in store.query("SELECT id, name, config FROM notetypes"):
        config = decode_notetype_config(row["config"])
        original_id = config["original_id"]
        notetypes.append(
            Notetype(
                id=str(row["id"]),
                name=row["name"],
                css=config["css"],
                latex_pre=config["latex_pre"],
                latex_post=config["latex_post"],
                kind=NotetypeKind.CLOZE if config["kind"] == 1 else NotetypeKind.NORMAL,
                latex_svg=config["latex_svg"],
                sort_field_index=config["sort_field_idx"],
                original_id=str(original_id) if original_id is not None else None,
            )
        )
    return tuple(notetypes)


def read_decks(store: TabularStore) -> dict[str, Deck]:
    if "decks" not in store.table_names():
        return {}
    return {
        str(row["id"]): Deck(str(row["id"]), normalize_deck_name(row["name"]))
        for row in store.query("SELECT id, name FROM decks")
    }


def extract_modern(store: TabularStore) -> ModernResult:
    """
    Extract cards, notetypes and decks from a modern collection.

    :param store: Open collection with ``notetypes``, ``fields``,
        ``templates`` and ``notes`` tables.
    :returns: A :class:`ModernResult`.
    :raises MalformedConfigBlob: If a config blob fails to decode.
    :raises TemplateGroupNotFound: If a note's ``mid`` has no templates.
    """
    fields = read_fields(store)
    templates = read_templates(store)
    notetypes = read_notetypes(store)
    decks = read_decks(store)
    logger.debug(
        "Modern collection: %d notetypes, %d field groups, %d template groups, %d decks",
        len(notetypes),
        len(fields),
        len(templates),
        len(decks),
    )

    note_decks = read_note_decks(store, decks)
    field_names = {
        notetype_id: [f.name for f in group] for notetype_id, group in fields.items()
    }

    cards = []
    for note in store.query("SELECT id, mid, flds, tags FROM notes ORDER BY id"):
        note_id = str(note["id"])
        notetype_id = str(note["mid"])
        template_group = templates.get(notetype_id)
        if template_group is None:
            raise TemplateGroupNotFound(note_id, notetype_id)

        cards.append(
            Card(
                values=map_values(field_names.get(notetype_id, []), split_fields(note["flds"])),
                tags=split_tags(note["tags"]),
                templates=tuple(template_group),
                deck_name=note_decks.get(note_id),
                note_id=note_id,
                notetype_id=notetype_id,
            )
        )

    logger.debug("Modern collection: %d notes", len(cards))
    return ModernResult(cards=tuple(cards), decks=decks, notetypes=notetypes)
