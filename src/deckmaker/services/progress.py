"""Snapshot and restore of card scheduling, keyed by note UID.

Regenerating a package from edited TSV files creates brand-new notes. To keep a
learner's progress, take a snapshot of the live collection before deleting the
old decks, import the new package, then restore: every card whose UID and
ordinal are found in the snapshot gets its scheduling state back.
"""

import logging
import os
import platform
import shutil
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from deckmaker.database.collection import CardRow, CollectionRepository
from deckmaker.models.progress import (
    CardState,
    Snapshot,
    SnapshotCounts,
    SnapshotMeta,
    snapshot_key,
)

LOGGER = logging.getLogger(__name__)

MAX_EXAMPLE_MATCHES = 10


class SnapshotError(Exception):
    """The snapshot file is missing or unreadable."""

    pass


@dataclass
class ProgressFilters:
    """Selection of cards considered by snapshot and restore."""

    deck: Optional[str] = None  # Deck name prefix, includes subdecks
    note_type: Optional[str] = None
    tag: Optional[str] = None  # Exact tag token
    uid_field: int = 0


@dataclass
class RestoreReport:
    """Outcome of a restore run."""

    scanned: int = 0
    eligible: int = 0
    matched: int = 0
    missing: int = 0
    skipped_missing_uid: int = 0
    skipped_tag_filter: int = 0
    unmatched_snapshot: int = 0  # Snapshot keys with no live card
    written: int = 0
    dry_run: bool = False
    backup_path: Optional[Path] = None
    examples: list[tuple[int, str]] = field(default_factory=list)


def default_anki_base_dir() -> Path:
    """Anki2 data folder for the current platform."""
    system = platform.system()
    home = Path.home()
    if system == "Darwin":
        return home / "Library" / "Application Support" / "Anki2"
    if system == "Windows":
        return Path(os.environ.get("APPDATA", home / "AppData" / "Roaming")) / "Anki2"
    xdg = os.environ.get("XDG_DATA_HOME")
    return (Path(xdg) if xdg else home / ".local" / "share") / "Anki2"


def default_collection_path(profile: str, base_dir: Optional[Path] = None) -> Path:
    """collection.anki2 of an Anki profile."""
    return (base_dir or default_anki_base_dir()) / profile / "collection.anki2"


def backup_file(path: Path) -> Path:
    """Copy ``path`` (and any -wal/-shm sidecar) to a timestamped .bak file."""
    stamp = datetime.now().strftime("%Y-%m-%dT%H-%M-%S-%f")
    backup_path = path.with_name(f"{path.name}.bak-{stamp}")
    shutil.copy2(path, backup_path)
    for suffix in ("-wal", "-shm"):
        sidecar = path.with_name(path.name + suffix)
        if sidecar.exists():
            shutil.copy2(sidecar, backup_path.with_name(backup_path.name + suffix))
    return backup_path


class ProgressService:
    """Moves scheduling state between a live collection and snapshot files."""

    def __init__(self, repository: CollectionRepository, profile: Optional[str] = None):
        """Initialize the service.

        Args:
            repository: Open collection
            profile: Profile name recorded in snapshot metadata
        """
        self.repository = repository
        self.profile = profile

    def list_decks(self) -> list[str]:
        """All deck names, sorted case-insensitively."""
        return sorted(self.repository.deck_names().values(), key=str.casefold)

    def _select_cards(self, filters: ProgressFilters) -> list[CardRow]:
        deck_ids = None
        note_type_ids = None
        if filters.deck:
            deck_ids = self.repository.deck_ids_by_prefix(filters.deck)
            if not deck_ids:
                LOGGER.warning('No deck matches "%s"', filters.deck)
        if filters.note_type:
            note_type_ids = self.repository.note_type_ids(filters.note_type)
            if not note_type_ids:
                LOGGER.warning('No note type named "%s"', filters.note_type)
        return self.repository.cards_with_notes(deck_ids, note_type_ids)

    def snapshot(self, filters: ProgressFilters) -> Snapshot:
        """Record the scheduling state of every selected card by UID and ordinal."""
        rows = self._select_cards(filters)
        snapshot = Snapshot(
            meta=SnapshotMeta(
                profile=self.profile,
                collection_path=str(self.repository.collection_path),
                deck=filters.deck,
                note_type=filters.note_type,
                tag=filters.tag,
                uid_field=filters.uid_field,
            ),
            counts=SnapshotCounts(total_rows=len(rows)),
        )

        for row in rows:
            if filters.tag and filters.tag not in row.tags:
                snapshot.counts.skipped_tag_filter += 1
                continue

            uid = row.field(filters.uid_field)
            if not uid:
                snapshot.counts.skipped_missing_uid += 1
                continue

            snapshot.cards[snapshot_key(uid, row.ord)] = CardState(**row.state)
            snapshot.counts.matched_cards += 1

        LOGGER.info(
            "Snapshot matched %d of %d cards",
            snapshot.counts.matched_cards,
            snapshot.counts.total_rows,
        )
        return snapshot

    def restore(
        self,
        snapshot: Snapshot,
        filters: ProgressFilters,
        dry_run: bool = False,
        backup: bool = True,
        now: Optional[int] = None,
    ) -> RestoreReport:
        """Write snapshotted scheduling state back onto matching cards.

        Args:
            snapshot: Previously taken snapshot
            filters: Selection of live cards to consider
            dry_run: Count matches without writing
            backup: Copy the collection file before writing
            now: Modification time for updated cards, seconds

        Returns:
            RestoreReport with match counters
        """
        report = RestoreReport(dry_run=dry_run)
        updates: dict[int, dict] = {}
        seen_keys: set[str] = set()

        for row in self._select_cards(filters):
            report.scanned += 1
            if filters.tag and filters.tag not in row.tags:
                report.skipped_tag_filter += 1
                continue

            uid = row.field(filters.uid_field)
            if not uid:
                report.skipped_missing_uid += 1
                continue

            report.eligible += 1
            key = snapshot_key(uid, row.ord)
            seen_keys.add(key)
            state = snapshot.cards.get(key)
            if state is None:
                report.missing += 1
                continue

            report.matched += 1
            if len(report.examples) < MAX_EXAMPLE_MATCHES:
                report.examples.append((row.cid, key))
            updates[row.cid] = state.model_dump()

        report.unmatched_snapshot = len(snapshot.cards.keys() - seen_keys)

        if dry_run or not updates:
            return report

        if backup:
            report.backup_path = backup_file(self.repository.collection_path)
            LOGGER.info("Backup created: %s", report.backup_path)

        now = int(time.time()) if now is None else now
        report.written = self.repository.update_scheduling(updates, now)
        return report


def save_snapshot(snapshot: Snapshot, path: Path) -> Path:
    """Write a snapshot as pretty-printed JSON, creating parent folders."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(snapshot.model_dump_json(indent=2, by_alias=True), encoding="utf-8")
    return path


def load_snapshot(path: Path) -> Snapshot:
    """Read a snapshot file.

    Raises:
        SnapshotError: If the file is missing, unreadable or not a valid snapshot
    """
    path = Path(path)
    if not path.is_file():
        raise SnapshotError(f"Snapshot file not found: {path}")
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise SnapshotError(f"Cannot read snapshot file {path}: {e}") from e
    try:
        return Snapshot.model_validate_json(content)
    except ValidationError as e:
        raise SnapshotError(f"Invalid snapshot file {path}: {e}") from e
