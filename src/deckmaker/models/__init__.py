"""Data models for deckmaker."""

from deckmaker.models.card import DECK_SEPARATOR, Card, CardKind, ClozeNote, GenerationMode
from deckmaker.models.deck import DEFAULT_DECK_ID, Deck, DeckTree
from deckmaker.models.entry import ClozeEntry, GlossaryEntry, SourceFile, TsvHeader

__all__ = [
    "Card",
    "CardKind",
    "ClozeEntry",
    "ClozeNote",
    "DECK_SEPARATOR",
    "DEFAULT_DECK_ID",
    "Deck",
    "DeckTree",
    "GenerationMode",
    "GlossaryEntry",
    "SourceFile",
    "TsvHeader",
]
