"""Deck hierarchy models for deckmaker."""

from dataclasses import dataclass, field
from typing import Iterator

DEFAULT_DECK_ID = 1
DEFAULT_DECK_NAME = "Default"
DEFAULT_DECK_CONF_ID = 1


@dataclass
class Deck:
    """A node in the deck hierarchy."""

    id: int
    name: str  # Fully qualified, "::" separated
    conf: int = DEFAULT_DECK_CONF_ID
    description: str = ""

    def to_json(self, mod: int) -> dict:
        """Deck definition as stored in the collection's decks blob."""
        return {
            "id": self.id,
            "name": self.name,
            "mod": mod,
            "usn": 0,
            "desc": self.description,
            "dyn": 0,
            "conf": self.conf,
            "collapsed": False,
            "browserCollapsed": False,
            "extendNew": 0,
            "extendRev": 50,
            "newToday": [0, 0],
            "revToday": [0, 0],
            "lrnToday": [0, 0],
            "timeToday": [0, 0],
        }


@dataclass
class DeckTree:
    """All decks of one generation run, keyed by full deck name."""

    decks: dict[str, Deck] = field(default_factory=dict)
    default: Deck = field(
        default_factory=lambda: Deck(id=DEFAULT_DECK_ID, name=DEFAULT_DECK_NAME)
    )

    def __contains__(self, name: str) -> bool:
        return name in self.decks

    def __len__(self) -> int:
        return len(self.decks)

    def __iter__(self) -> Iterator[Deck]:
        return iter(self.decks.values())

    def get(self, name: str) -> Deck:
        """Look up a deck by name, falling back to the default deck."""
        return self.decks.get(name, self.default)

    def id_for(self, name: str) -> int:
        """Deck id for a name, or the default deck id when unknown."""
        return self.get(name).id

    def all_decks(self) -> list[Deck]:
        """Default deck followed by every tree deck in id order."""
        tree = sorted(
            (d for d in self.decks.values() if d.id != self.default.id),
            key=lambda d: d.id,
        )
        return [self.default, *tree]
