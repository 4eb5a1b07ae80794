"""Card and note models for deckmaker."""

from dataclasses import dataclass, field
from enum import Enum

DECK_SEPARATOR = "::"


class GenerationMode(str, Enum):
    """Kind of package being generated."""

    GLOSSARY = "glossary"  # Two cards per entry, one per direction
    CLOZE = "cloze"  # One note per entry, one card per cloze marker


class CardKind(str, Enum):
    """Direction of a glossary card."""

    RECOGNITION = "recognition"  # term1 -> term2
    PRODUCTION = "production"  # term2 -> term1

    @property
    def deck_suffix(self) -> str:
        """Trailing deck segment used for cards of this kind."""
        return self.value.capitalize()


@dataclass
class Card:
    """A single glossary card. Each card becomes its own note in the package."""

    kind: CardKind
    deck: str
    front: str
    back: str
    uid: str
    tags: list[str] = field(default_factory=list)
    direction_label: str = ""

    def __post_init__(self) -> None:
        """Validate and convert fields after initialization."""
        if isinstance(self.kind, str):
            self.kind = CardKind(self.kind)

    def to_dict(self) -> dict:
        """Serialize for the debug dump."""
        return {
            "type": self.kind.value,
            "deck": self.deck,
            "front": self.front,
            "back": self.back,
            "uid": self.uid,
            "tags": list(self.tags),
            "directionLabel": self.direction_label,
        }


@dataclass
class ClozeNote:
    """A cloze note; expands into one card per distinct marker index."""

    deck: str
    text: str
    hint: str
    uid: str
    back: str = ""
    tags: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Serialize for the debug dump."""
        return {
            "type": "cloze",
            "deck": self.deck,
            "text": self.text,
            "hint": self.hint,
            "back": self.back,
            "uid": self.uid,
            "tags": list(self.tags),
        }
