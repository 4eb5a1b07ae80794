"""Repository for reading and updating an existing Anki collection."""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from sqlalchemy import inspect, select, text, update
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from deckmaker.database.schema import (
    SCHEDULING_COLUMNS,
    CardRecord,
    CollectionRecord,
    NoteRecord,
    get_engine,
    get_session_factory,
)

LOGGER = logging.getLogger(__name__)

FIELD_SEPARATOR = "\x1f"


class CollectionNotFoundError(Exception):
    """The collection file does not exist."""

    pass


class CollectionLockedError(Exception):
    """The collection is locked, usually because Anki is running."""

    pass


@dataclass
class CardRow:
    """A card joined with the note fields needed to identify it."""

    cid: int
    nid: int
    did: int
    ord: int
    mid: int
    fields: list[str]
    tags: list[str]
    state: dict[str, Any]

    def field(self, index: int) -> str:
        """Field value at ``index``, or an empty string."""
        if 0 <= index < len(self.fields):
            return self.fields[index].strip()
        return ""


def _is_locked(exc: Exception) -> bool:
    msg = str(exc).lower()
    return "locked" in msg or "busy" in msg


class CollectionRepository:
    """Access to a live collection.anki2 for listing decks and moving scheduling state.

    Only scheduling columns of the cards table are ever written.
    """

    def __init__(self, collection_path: Path):
        """Open an existing collection.

        Raises:
            CollectionNotFoundError: If the file does not exist
        """
        self.collection_path = Path(collection_path)
        if not self.collection_path.is_file():
            raise CollectionNotFoundError(
                f"collection.anki2 not found at: {self.collection_path}"
            )
        self.engine = get_engine(f"sqlite:///{self.collection_path}")
        self.session_factory = get_session_factory(self.engine)

    def _get_session(self) -> Session:
        """Get a new database session."""
        return self.session_factory()

    def close(self) -> None:
        """Release all connections to the collection file."""
        self.engine.dispose()

    # ==================== Collection Metadata ====================

    def read_col_json(self, column: str) -> dict:
        """Parse one of the JSON columns of the col row (models, decks, dconf, conf)."""
        with self._get_session() as session:
            record = session.scalars(select(CollectionRecord)).first()
            if record is None:
                raise ValueError("Collection has no col row")
            raw = getattr(record, column) or ""
        return json.loads(raw) if raw.strip() else {}

    def _has_table(self, name: str) -> bool:
        return inspect(self.engine).has_table(name)

    def deck_names(self) -> dict[int, str]:
        """Deck id -> full deck name.

        Newer collections keep decks in their own table with names separated by
        \\x1f instead of the JSON blob in col.
        """
        decks = {
            int(deck["id"]): deck["name"]
            for deck in self.read_col_json("decks").values()
            if deck and deck.get("name")
        }
        if decks or not self._has_table("decks"):
            return decks

        with self.engine.connect() as conn:
            rows = conn.execute(text("SELECT id, name FROM decks")).all()
        return {int(row[0]): str(row[1]).replace(FIELD_SEPARATOR, "::") for row in rows}

    def note_type_names(self) -> dict[int, str]:
        """Note type id -> name, from col.models or the notetypes table."""
        models = {
            int(mid): model["name"]
            for mid, model in self.read_col_json("models").items()
            if model and model.get("name")
        }
        if models or not self._has_table("notetypes"):
            return models

        with self.engine.connect() as conn:
            rows = conn.execute(text("SELECT id, name FROM notetypes")).all()
        return {int(row[0]): str(row[1]) for row in rows}

    def deck_ids_by_prefix(self, prefix: str) -> list[int]:
        """Ids of the deck named ``prefix`` and all of its subdecks."""
        child_prefix = f"{prefix}::"
        return sorted(
            did
            for did, name in self.deck_names().items()
            if name == prefix or name.startswith(child_prefix)
        )

    def note_type_ids(self, name: str) -> list[int]:
        """Ids of note types called ``name``."""
        return sorted(mid for mid, mname in self.note_type_names().items() if mname == name)

    # ==================== Cards ====================

    def cards_with_notes(
        self,
        deck_ids: Optional[list[int]] = None,
        note_type_ids: Optional[list[int]] = None,
    ) -> list[CardRow]:
        """Cards joined with their notes, optionally limited to decks and note types.

        An empty list for a filter matches nothing; ``None`` disables the filter.
        """
        if deck_ids is not None and not deck_ids:
            return []
        if note_type_ids is not None and not note_type_ids:
            return []

        stmt = (
            select(CardRecord, NoteRecord.flds, NoteRecord.tags, NoteRecord.mid)
            .join(NoteRecord, NoteRecord.id == CardRecord.nid)
            .order_by(CardRecord.id)
        )
        if deck_ids is not None:
            stmt = stmt.where(CardRecord.did.in_(deck_ids))
        if note_type_ids is not None:
            stmt = stmt.where(NoteRecord.mid.in_(note_type_ids))

        with self._get_session() as session:
            return [
                CardRow(
                    cid=card.id,
                    nid=card.nid,
                    did=card.did,
                    ord=card.ord,
                    mid=mid,
                    fields=(flds or "").split(FIELD_SEPARATOR),
                    tags=(tags or "").split(),
                    state=self._card_state(card),
                )
                for card, flds, tags, mid in session.execute(stmt).all()
            ]

    @staticmethod
    def _card_state(card: CardRecord) -> dict[str, Any]:
        state = {column: getattr(card, column) for column in SCHEDULING_COLUMNS}
        state["data"] = state["data"] or ""
        return state

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=5),
        retry=retry_if_exception_type(CollectionLockedError),
        reraise=True,
    )
    def update_scheduling(self, updates: dict[int, dict[str, Any]], now: int) -> int:
        """Overwrite the scheduling columns of many cards in one transaction.

        Args:
            updates: Card id -> scheduling state (keys from SCHEDULING_COLUMNS)
            now: Modification time, seconds

        Returns:
            Number of cards updated

        Raises:
            CollectionLockedError: If the collection stays locked after retries
        """
        try:
            with self._get_session() as session:
                for cid, state in updates.items():
                    values = {c: state[c] for c in SCHEDULING_COLUMNS if c in state}
                    session.execute(
                        update(CardRecord)
                        .where(CardRecord.id == cid)
                        .values(mod=now, usn=-1, **values)
                    )
                session.commit()
        except OperationalError as e:
            if _is_locked(e):
                raise CollectionLockedError(
                    "Collection is locked. Quit Anki before restoring."
                ) from e
            raise
        return len(updates)
