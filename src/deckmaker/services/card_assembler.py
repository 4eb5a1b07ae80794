"""Turns parsed entries into glossary cards and cloze notes."""

import re
from typing import Optional

from deckmaker.models.card import DECK_SEPARATOR, Card, CardKind, ClozeNote
from deckmaker.models.entry import ClozeEntry, GlossaryEntry, SourceFile, TsvHeader
from deckmaker.services.identity import make_cloze_uid, make_uid

VOCABULARY_TAG = "vocabulary"
CLOZE_TAG = "cloze"
DIRECTION_ARROW = "→"

_WHITESPACE = re.compile(r"\s+")


def deck_tag(deck_name: str) -> str:
    """Flat tag for a deck; '::' in a tag would make Anki nest it."""
    tag = deck_name.replace(DECK_SEPARATOR, "-").replace("/", "-")
    return _WHITESPACE.sub("_", tag.strip())


class CardAssembler:
    """Builds cards (glossary mode) and notes (cloze mode) with deck paths and UIDs."""

    def __init__(self, root_deck_name: str = "Vocabulary"):
        """Initialize the assembler.

        Args:
            root_deck_name: Parent deck for files at the top level of the data dir
        """
        self.root_deck_name = root_deck_name

    def deck_name_for(self, source: SourceFile) -> str:
        """Deck for a source file: its folders and file stem joined by '::'."""
        if source.is_top_level:
            return f"{self.root_deck_name}{DECK_SEPARATOR}{source.file_name}"
        folders = [part for part in source.deck_path.split("/") if part]
        return DECK_SEPARATOR.join([*folders, source.file_name])

    @staticmethod
    def direction_labels(
        header: Optional[TsvHeader], enabled: bool
    ) -> tuple[str, str]:
        """Recognition and production labels, both empty unless enabled with a header."""
        if not enabled or header is None:
            return "", ""
        t1, t2 = header.term1_label, header.term2_label
        return f"{t1} {DIRECTION_ARROW} {t2}", f"{t2} {DIRECTION_ARROW} {t1}"

    def generate_cards(
        self,
        entries: list[GlossaryEntry],
        deck_name: str,
        header: Optional[TsvHeader] = None,
        include_direction_labels: bool = False,
    ) -> list[Card]:
        """Create a recognition and a production card for every entry.

        Args:
            entries: Parsed glossary rows, in file order
            deck_name: Deck of the source file
            header: Column labels from the file, if any
            include_direction_labels: Show "label1 → label2" on the cards

        Returns:
            Two cards per entry, recognition first
        """
        recognition_label, production_label = self.direction_labels(
            header, include_direction_labels
        )
        tag = deck_tag(deck_name)
        cards: list[Card] = []

        for entry in entries:
            for kind, front, back, label in (
                (CardKind.RECOGNITION, entry.term1, entry.term2, recognition_label),
                (CardKind.PRODUCTION, entry.term2, entry.term1, production_label),
            ):
                cards.append(
                    Card(
                        kind=kind,
                        deck=f"{deck_name}{DECK_SEPARATOR}{kind.deck_suffix}",
                        front=front,
                        back=back,
                        uid=make_uid(deck_name, kind.value, front, back, entry.id),
                        tags=[VOCABULARY_TAG, tag, kind.value],
                        direction_label=label,
                    )
                )

        return cards

    def generate_cloze_notes(
        self, entries: list[ClozeEntry], deck_name: str
    ) -> list[ClozeNote]:
        """Create one cloze note per entry."""
        tag = deck_tag(deck_name)
        return [
            ClozeNote(
                deck=deck_name,
                text=entry.text,
                hint=entry.hint,
                uid=make_cloze_uid(deck_name, entry.text, entry.hint, entry.id),
                tags=[CLOZE_TAG, tag],
            )
            for entry in entries
        ]
