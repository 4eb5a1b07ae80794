"""Writes cards or cloze notes into an importable .apkg package."""

import json
import logging
import os
import re
import tempfile
import time
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence, Union

from sqlalchemy.orm import Session

from deckmaker.database.schema import (
    SCHEMA_VERSION,
    Base,
    CardRecord,
    CollectionRecord,
    NoteRecord,
    get_engine,
    get_session_factory,
)
from deckmaker.models.card import Card, ClozeNote, GenerationMode
from deckmaker.models.deck import DeckTree
from deckmaker.services.deck_tree import DeckTreeBuilder
from deckmaker.services.identity import (
    NOTE_TYPE_ID_OFFSET,
    IdCounter,
    field_checksum,
    guid_from_uid,
    stable_numeric_id,
)
from deckmaker.services.note_types import (
    cloze_note_type,
    collection_config,
    default_deck_config,
    glossary_note_type,
)

LOGGER = logging.getLogger(__name__)

COLLECTION_ENTRY = "collection.anki2"
MEDIA_ENTRY = "media"
FIELD_SEPARATOR = "\x1f"

CLOZE_MARKER = re.compile(r"\{\{c(\d+)::")

# New-card sentinels
CARD_TYPE_NEW = 0
QUEUE_NEW = 0


def cloze_ordinals(text: str) -> list[int]:
    """Card ordinals (marker index - 1) for every distinct {{cN:: marker, ascending."""
    indexes = {int(n) for n in CLOZE_MARKER.findall(text or "")}
    return sorted(n - 1 for n in indexes if n > 0)


def _current_umask() -> int:
    umask = os.umask(0)
    os.umask(umask)
    return umask


def format_tags(tags: Sequence[str]) -> str:
    """Tags column format: space separated with a leading and trailing space."""
    cleaned = [t for t in tags if t]
    return f" {' '.join(cleaned)} " if cleaned else ""


@dataclass
class PackageStats:
    """What was written into a collection."""

    notes: int = 0
    cards: int = 0
    decks: int = 0
    skipped_notes: int = 0


class ApkgWriter:
    """Serializes one generation run into collection.anki2 and a zip package.

    Note and card ids come from counters created per call, so writing the same
    input twice yields identical rows apart from timestamps.
    """

    def __init__(
        self,
        mode: GenerationMode = GenerationMode.GLOSSARY,
        note_type_name: str = "DeckMaker::Glossary v1",
        deck_namespace: str = "Vocabulary",
    ):
        """Initialize the writer.

        Args:
            mode: Glossary (one note per card) or cloze (one card per marker)
            note_type_name: Name of the note type created in the package
            deck_namespace: Key for the first deck id, see DeckTreeBuilder
        """
        self.mode = GenerationMode(mode)
        self.note_type_name = note_type_name
        self.note_type_id = stable_numeric_id(note_type_name, NOTE_TYPE_ID_OFFSET)
        self.deck_builder = DeckTreeBuilder(namespace=deck_namespace)

    def note_type(self, mod: int) -> dict:
        """Note type definition for the current mode."""
        if self.mode == GenerationMode.CLOZE:
            return cloze_note_type(self.note_type_id, self.note_type_name, mod)
        return glossary_note_type(self.note_type_id, self.note_type_name, mod)

    def write_package(
        self,
        items: Sequence[Union[Card, ClozeNote]],
        output_path: Path,
        now: Optional[int] = None,
    ) -> PackageStats:
        """Write an .apkg to ``output_path``, replacing any existing file.

        The archive is assembled in a temporary file next to the target and
        renamed into place only once complete. Errors propagate unchanged.
        """
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with tempfile.TemporaryDirectory(prefix="deckmaker-") as tmpdir:
            collection_path = Path(tmpdir) / COLLECTION_ENTRY
            stats = self.write_collection(items, collection_path, now=now)

            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{output_path.name}.", suffix=".tmp", dir=output_path.parent
            )
            os.close(fd)
            try:
                with zipfile.ZipFile(tmp_name, "w", compression=zipfile.ZIP_DEFLATED) as zf:
                    zf.write(collection_path, COLLECTION_ENTRY)
                    zf.writestr(MEDIA_ENTRY, json.dumps({}))
                # mkstemp creates 0600; give the package the usual umask mode
                os.chmod(tmp_name, 0o666 & ~_current_umask())
                os.replace(tmp_name, output_path)
            finally:
                if os.path.exists(tmp_name):
                    os.remove(tmp_name)

        LOGGER.info(
            "Wrote %s (%d notes, %d cards, %d decks)",
            output_path,
            stats.notes,
            stats.cards,
            stats.decks,
        )
        return stats

    def write_collection(
        self,
        items: Sequence[Union[Card, ClozeNote]],
        collection_path: Path,
        now: Optional[int] = None,
    ) -> PackageStats:
        """Create a fresh collection database at ``collection_path``."""
        now = int(time.time()) if now is None else now
        tree = self.deck_builder.build(items)

        engine = get_engine(f"sqlite:///{collection_path}")
        try:
            Base.metadata.create_all(engine)
            session_factory = get_session_factory(engine)
            with session_factory() as session:
                session.add(self._collection_record(tree, now))
                if self.mode == GenerationMode.CLOZE:
                    stats = self._add_cloze_notes(session, items, tree, now)
                else:
                    stats = self._add_glossary_cards(session, items, tree, now)
                session.commit()
        finally:
            engine.dispose()

        stats.decks = len(tree.all_decks())
        return stats

    def _collection_record(self, tree: DeckTree, now: int) -> CollectionRecord:
        models = {str(self.note_type_id): self.note_type(now)}
        decks = {str(d.id): d.to_json(now) for d in tree.all_decks()}
        dconf = {"1": default_deck_config()}
        return CollectionRecord(
            id=1,
            crt=now,
            mod=now * 1000,
            scm=now * 1000,
            ver=SCHEMA_VERSION,
            dty=0,
            usn=0,
            ls=0,
            conf=json.dumps(collection_config(self.note_type_id)),
            models=json.dumps(models),
            decks=json.dumps(decks),
            dconf=json.dumps(dconf),
            tags=json.dumps({}),
        )

    def _deck_id(self, tree: DeckTree, deck_name: str) -> int:
        if deck_name not in tree:
            LOGGER.warning('Deck "%s" missing from deck tree, using default deck', deck_name)
        return tree.id_for(deck_name)

    def _new_card(
        self, card_id: int, note_id: int, deck_id: int, ord_: int, now: int
    ) -> CardRecord:
        return CardRecord(
            id=card_id,
            nid=note_id,
            did=deck_id,
            ord=ord_,
            mod=now,
            usn=-1,
            type=CARD_TYPE_NEW,
            queue=QUEUE_NEW,
            due=note_id,
            ivl=0,
            factor=0,
            reps=0,
            lapses=0,
            left=0,
            odue=0,
            odid=0,
            flags=0,
            data="",
        )

    def _add_glossary_cards(
        self,
        session: Session,
        cards: Sequence[Card],
        tree: DeckTree,
        now: int,
    ) -> PackageStats:
        note_ids, card_ids = IdCounter(), IdCounter()
        stats = PackageStats()

        for card in cards:
            note_id = note_ids.next()
            fields = [card.uid, card.front, card.back, card.direction_label]
            session.add(
                NoteRecord(
                    id=note_id,
                    guid=guid_from_uid(card.uid),
                    mid=self.note_type_id,
                    mod=now,
                    usn=-1,
                    tags=format_tags(card.tags),
                    flds=FIELD_SEPARATOR.join(fields),
                    sfld=card.front,
                    csum=field_checksum(card.uid),
                    flags=0,
                    data="",
                )
            )
            session.add(
                self._new_card(card_ids.next(), note_id, self._deck_id(tree, card.deck), 0, now)
            )
            stats.notes += 1
            stats.cards += 1

        return stats

    def _add_cloze_notes(
        self,
        session: Session,
        notes: Sequence[ClozeNote],
        tree: DeckTree,
        now: int,
    ) -> PackageStats:
        note_ids, card_ids = IdCounter(), IdCounter()
        stats = PackageStats()

        for note in notes:
            ordinals = cloze_ordinals(note.text)
            if not ordinals:
                LOGGER.warning("No cloze markers in note %s, skipping", note.uid)
                stats.skipped_notes += 1
                continue

            note_id = note_ids.next()
            session.add(
                NoteRecord(
                    id=note_id,
                    guid=guid_from_uid(note.uid),
                    mid=self.note_type_id,
                    mod=now,
                    usn=-1,
                    tags=format_tags(note.tags),
                    flds=FIELD_SEPARATOR.join([note.text, note.hint, note.back]),
                    sfld=note.text,
                    csum=field_checksum(note.text),
                    flags=0,
                    data="",
                )
            )
            deck_id = self._deck_id(tree, note.deck)
            for ord_ in ordinals:
                session.add(self._new_card(card_ids.next(), note_id, deck_id, ord_, now))
                stats.cards += 1
            stats.notes += 1

        return stats
