"""
Derive the deck overview shown for a decoded package.
"""

from typing import Iterable, Mapping

from anki_decoder.models import Card, Deck, DeckInfo, SubDeckInfo

DEFAULT_DECK_NAME = "Default"


def _template_count(cards: Iterable[Card]) -> int:
    return len({template.name for card in cards for template in card.templates})


def display_name(deck_name: str, subdecks: Iterable[SubDeckInfo]) -> str:
    """
    Replace the placeholder "Default" with a shared top-level deck name.

    Whole-collection exports are named after Anki's "Default" deck even when
    every card sits under one real deck (``Spanish::Verbs``,
    ``Spanish::Nouns``). If every nested deck shares one parent, that
    parent (``Spanish``) is the better name. Flat decks are ignored, and a
    package with no nested decks keeps its name.
    """
    subdecks = list(subdecks)
    if deck_name != DEFAULT_DECK_NAME or not subdecks:
        return deck_name

    parents = {subdeck.name.split("::")[0] for subdeck in subdecks if "::" in subdeck.name}
    if len(parents) == 1:
        return parents.pop()
    return deck_name


def assemble_decks(
    cards: Iterable[Card],
    decks: Mapping[str, Deck],
    deck_name: str,
) -> DeckInfo:
    """
    Group cards by deck and count cards and distinct templates per deck.

    :param cards: Decoded cards.
    :param decks: Deck id to deck.
    :param deck_name: Package deck name.
    :returns: A :class:`DeckInfo`; decks without cards are left out.
    """
    cards = list(cards)
    by_name: dict[str, list[Card]] = {}
    for card in cards:
        if card.deck_name is not None:
            by_name.setdefault(card.deck_name, []).append(card)

    subdecks = []
    for deck_id, deck in decks.items():
        deck_cards = by_name.get(deck.name, [])
        if not deck_cards:
            continue
        subdecks.append(
            SubDeckInfo(
                id=deck_id,
                name=deck.name,
                card_count=len(deck_cards),
                template_count=_template_count(deck_cards),
            )
        )

    return DeckInfo(
        name=display_name(deck_name, subdecks),
        card_count=len(cards),
        template_count=_template_count(cards),
        subdecks=tuple(subdecks),
    )
