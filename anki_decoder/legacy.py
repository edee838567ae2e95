"""
Extract cards from a legacy (anki2 / anki21) collection.

Legacy (anki2/anki21):
    - Models stored as JSON in col.models column
    - Decks stored as JSON in col.decks column
    - Tables: col, notes, cards, revlog, graves

``col`` has a single row. ``col.models`` maps model id to a model with its
fields (``flds``) and card templates (``tmpls``); every note names its
model in ``notes.mid``.
"""

import json
import logging
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field as PydanticField, TypeAdapter, ValidationError

from anki_decoder.errors import InvalidLegacyModelJson, ModelNotFound, UnrecognizedCollection
from anki_decoder.models import Card, Deck, Template
from anki_decoder.notes import map_values, read_note_decks, split_fields, split_tags
from anki_decoder.store import TabularStore

logger = logging.getLogger(__name__)


# =============================================================================
# JSON schemas for col.models / col.decks
# =============================================================================


class LegacyFieldDef(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    ord: int | None = None


class LegacyTemplateDef(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    qfmt: str
    afmt: str
    ord: int


class LegacyModel(BaseModel):
    """One entry of ``col.models``."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: int | str
    name: str = ""
    css: str
    latex_pre: str = PydanticField("", alias="latexPre")
    latex_post: str = PydanticField("", alias="latexPost")
    flds: list[LegacyFieldDef]
    tmpls: list[LegacyTemplateDef]

    def field_names(self) -> list[str]:
        indexed = list(enumerate(self.flds))
        indexed.sort(key=lambda item: item[1].ord if item[1].ord is not None else item[0])
        return [f.name for _, f in indexed]


class LegacyDeck(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str


_MODELS = TypeAdapter(dict[str, LegacyModel])
_DECKS = TypeAdapter(dict[str, LegacyDeck])


def parse_models(models_json: str | bytes | None) -> dict[str, LegacyModel]:
    """
    Parse and validate ``col.models``.

    :raises InvalidLegacyModelJson: If the JSON is invalid or a model lacks
        ``id``, ``css``, ``flds[].name`` or ``tmpls[].{name, qfmt, afmt, ord}``.
    """
    try:
        return _MODELS.validate_python(json.loads(models_json or ""))
    except (json.JSONDecodeError, ValidationError) as exc:
        raise InvalidLegacyModelJson(f"Invalid col.models JSON: {exc}") from exc


def parse_decks(decks_json: str | bytes | None) -> dict[str, Deck]:
    """
    Parse ``col.decks`` into :class:`Deck` values.

    :raises InvalidLegacyModelJson: If the JSON is invalid.
    """
    if not decks_json:
        return {}
    try:
        decks = _DECKS.validate_python(json.loads(decks_json))
    except (json.JSONDecodeError, ValidationError) as exc:
        raise InvalidLegacyModelJson(f"Invalid col.decks JSON: {exc}") from exc
    return {deck_id: Deck(deck_id, deck.name) for deck_id, deck in decks.items()}


def model_templates(model_id: str, model: LegacyModel) -> tuple[Template, ...]:
    return tuple(
        Template(
            notetype_id=model_id,
            ordinal=t.ord,
            name=t.name,
            question_format=t.qfmt,
            answer_format=t.afmt,
        )
        for t in sorted(model.tmpls, key=lambda t: t.ord)
    )


# =============================================================================
# Extraction
# =============================================================================


@dataclass(frozen=True)
class LegacyResult:
    cards: tuple[Card, ...]
    decks: dict[str, Deck]
    notetypes: None = None


def extract_legacy(store: TabularStore) -> LegacyResult:
    """
    Extract cards and decks from a legacy collection.

    :param store: Open collection with ``col`` and ``notes`` tables.
    :returns: A :class:`LegacyResult`; its ``notetypes`` is always None and
        each card carries its model's templates.
    :raises UnrecognizedCollection: If ``col`` has no row.
    :raises InvalidLegacyModelJson: If ``col.models`` fails validation.
    :raises ModelNotFound: If a note's ``mid`` matches no model.
    """
    col = store.query_one("SELECT models, decks FROM col LIMIT 1")
    if col is None:
        raise UnrecognizedCollection("Legacy collection has an empty col table")

    models = parse_models(col["models"])
    decks = parse_decks(col["decks"])
    logger.debug("Legacy collection: %d models, %d decks", len(models), len(decks))

    field_names = {model_id: model.field_names() for model_id, model in models.items()}
    templates = {model_id: model_templates(model_id, model) for model_id, model in models.items()}
    note_decks = read_note_decks(store, decks)

    cards = []
    for note in store.query("SELECT id, mid, tags, flds FROM notes ORDER BY id"):
        note_id = str(note["id"])
        model_id = str(note["mid"])
        if model_id not in models:
            raise ModelNotFound(note_id, model_id)

        cards.append(
            Card(
                values=map_values(field_names[model_id], split_fields(note["flds"])),
                tags=split_tags(note["tags"]),
                templates=templates[model_id],
                deck_name=note_decks.get(note_id),
                note_id=note_id,
                notetype_id=model_id,
            )
        )

    logger.debug("Legacy collection: %d notes", len(cards))
    return LegacyResult(cards=tuple(cards), decks=decks)
