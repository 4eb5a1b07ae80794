"""Scheduling snapshot models for the progress snapshot/restore tool."""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class CardState(BaseModel):
    """Scheduling columns of one card."""

    type: int
    queue: int
    due: int
    ivl: int
    factor: int
    reps: int
    lapses: int
    left: int
    odue: int
    odid: int
    flags: int = 0
    data: str = ""


class SnapshotMeta(BaseModel):
    """Where and how a snapshot was taken."""

    model_config = ConfigDict(populate_by_name=True)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc), alias="createdAt"
    )
    profile: Optional[str] = None
    collection_path: str = Field(default="", alias="collectionPath")
    deck: Optional[str] = None
    note_type: Optional[str] = Field(default=None, alias="noteType")
    tag: Optional[str] = None
    uid_field: int = Field(default=0, alias="uidField")


class SnapshotCounts(BaseModel):
    """Counters collected while taking a snapshot."""

    model_config = ConfigDict(populate_by_name=True)

    total_rows: int = Field(default=0, alias="totalRows")
    matched_cards: int = Field(default=0, alias="matchedCards")
    skipped_missing_uid: int = Field(default=0, alias="skippedMissingUid")
    skipped_tag_filter: int = Field(default=0, alias="skippedTagFilter")


class Snapshot(BaseModel):
    """Snapshot file: ``<uid>::ord=<ord>`` -> card scheduling state."""

    meta: SnapshotMeta = Field(default_factory=SnapshotMeta)
    cards: dict[str, CardState] = Field(default_factory=dict)
    counts: SnapshotCounts = Field(default_factory=SnapshotCounts)


def snapshot_key(uid: str, ord_: int) -> str:
    """Key of a card in a snapshot."""
    return f"{uid}::ord={ord_}"
