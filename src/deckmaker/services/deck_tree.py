"""Deck hierarchy construction."""

import logging
from typing import Iterable, Optional, Union

from deckmaker.models.card import DECK_SEPARATOR, Card, ClozeNote
from deckmaker.models.deck import DEFAULT_DECK_NAME, Deck, DeckTree
from deckmaker.services.identity import DECK_ID_OFFSET, IdCounter, stable_numeric_id

LOGGER = logging.getLogger(__name__)


def deck_prefixes(deck_name: str) -> list[str]:
    """Every ancestor path of a deck, including the deck itself, shallowest first."""
    parts = deck_name.split(DECK_SEPARATOR)
    return [DECK_SEPARATOR.join(parts[:i]) for i in range(1, len(parts) + 1)]


def deck_sort_key(name: str) -> tuple[int, str]:
    """Parents sort before children; siblings sort by name."""
    return len(name.split(DECK_SEPARATOR)), name


class DeckTreeBuilder:
    """Derives every deck node needed by a list of cards or notes."""

    def __init__(self, namespace: str = "Vocabulary"):
        """Initialize the builder.

        Args:
            namespace: Key hashed into the first deck id, so runs with the same
                namespace number their decks from the same offset
        """
        self.namespace = namespace

    def first_deck_id(self) -> int:
        """First id handed out to a tree deck."""
        return stable_numeric_id(self.namespace, DECK_ID_OFFSET) + 1

    def build(
        self,
        items: Iterable[Union[Card, ClozeNote]],
        counter: Optional[IdCounter] = None,
    ) -> DeckTree:
        """Build the deck tree for all cards or notes of a run.

        Args:
            items: Cards or notes; only their ``deck`` attribute is used
            counter: Deck id source; a fresh one starting at ``first_deck_id``
                is created when omitted

        Returns:
            DeckTree holding every deck path and all of its ancestors
        """
        counter = counter or IdCounter(self.first_deck_id())
        tree = DeckTree()

        names: set[str] = set()
        for item in items:
            names.update(deck_prefixes(item.deck))

        for name in sorted(names, key=deck_sort_key):
            if name == DEFAULT_DECK_NAME:
                # Cards filed under "Default" share the reserved default deck.
                tree.decks[name] = tree.default
                continue
            tree.decks[name] = Deck(id=counter.next(), name=name)

        LOGGER.debug("Built %d decks", len(tree))
        return tree
