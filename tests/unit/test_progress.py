"""Unit tests for the collection repository and progress snapshot/restore."""

import json
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from deckmaker.database.collection import (
    CollectionLockedError,
    CollectionNotFoundError,
    CollectionRepository,
)
from deckmaker.models.card import GenerationMode
from deckmaker.models.entry import GlossaryEntry
from deckmaker.models.progress import CardState, Snapshot, snapshot_key
from deckmaker.services.apkg_writer import ApkgWriter
from deckmaker.services.card_assembler import CardAssembler
from deckmaker.services.progress import (
    ProgressFilters,
    ProgressService,
    SnapshotError,
    backup_file,
    default_collection_path,
    load_snapshot,
    save_snapshot,
)

REVIEWED = {
    "type": 2,
    "queue": 2,
    "due": 812,
    "ivl": 21,
    "factor": 2650,
    "reps": 9,
    "lapses": 1,
    "left": 0,
    "odue": 0,
    "odid": 0,
    "flags": 3,
    "data": "",
}


@pytest.fixture
def repository(collection_path):
    """Provide a repository on the generated collection."""
    repo = CollectionRepository(collection_path)
    yield repo
    repo.close()


@pytest.fixture
def service(repository):
    """Provide a ProgressService on the generated collection."""
    return ProgressService(repository, profile="User 1")


def regenerate(tmp_path, entries):
    """Helper to write a fresh collection as if the package was re-imported."""
    cards = CardAssembler().generate_cards(entries, "animals::pets")
    path = tmp_path / "regenerated" / "collection.anki2"
    path.parent.mkdir()
    ApkgWriter(mode=GenerationMode.GLOSSARY).write_collection(cards, path, now=1_700_000_500)
    return CollectionRepository(path)


class TestRepository:
    """Tests for CollectionRepository."""

    def test_missing_file(self, tmp_path):
        """Test a missing collection is a structural error."""
        with pytest.raises(CollectionNotFoundError):
            CollectionRepository(tmp_path / "nope.anki2")

    def test_deck_names(self, repository):
        """Test decks are read from the col row."""
        names = set(repository.deck_names().values())
        assert {"Default", "animals", "animals::pets", "animals::pets::Recognition"} <= names

    def test_deck_ids_by_prefix(self, repository):
        """Test a prefix matches the deck and its children only."""
        names = repository.deck_names()
        matched = {names[did] for did in repository.deck_ids_by_prefix("animals::pets")}
        assert matched == {
            "animals::pets",
            "animals::pets::Recognition",
            "animals::pets::Production",
        }
        assert repository.deck_ids_by_prefix("animals::pe") == []

    def test_note_type_ids(self, repository):
        """Test note types are found by exact name."""
        assert len(repository.note_type_ids("DeckMaker::Glossary v1")) == 1
        assert repository.note_type_ids("Basic") == []

    def test_cards_with_notes(self, repository, glossary_cards):
        """Test cards are joined with note fields and tags."""
        rows = repository.cards_with_notes()
        assert [row.field(0) for row in rows] == [c.uid for c in glossary_cards]
        assert rows[0].tags == ["vocabulary", "animals-pets", "recognition"]
        assert rows[0].state["type"] == 0
        assert rows[0].field(10) == ""

    def test_empty_filter_matches_nothing(self, repository):
        """Test an empty id list selects no cards."""
        assert repository.cards_with_notes(deck_ids=[]) == []
        assert repository.cards_with_notes(note_type_ids=[]) == []

    def test_split_deck_table(self, tmp_path, collection_path):
        """Test newer collections with a separate decks table."""
        repo = CollectionRepository(collection_path)
        try:
            with repo.engine.begin() as conn:
                conn.execute(text("UPDATE col SET decks = '{}'"))
                conn.execute(text("CREATE TABLE decks (id INTEGER PRIMARY KEY, name TEXT)"))
                conn.execute(text("INSERT INTO decks VALUES (5, :n)"), {"n": "a\x1fb"})
            assert repo.deck_names() == {5: "a::b"}
        finally:
            repo.close()

    def test_update_scheduling(self, repository):
        """Test scheduling columns are overwritten and bookkeeping updated."""
        cid = repository.cards_with_notes()[0].cid

        written = repository.update_scheduling({cid: REVIEWED}, now=1_800_000_000)

        assert written == 1
        row = repository.cards_with_notes()[0]
        assert row.state == REVIEWED
        with repository.engine.connect() as conn:
            mod, usn = conn.execute(text("SELECT mod, usn FROM cards WHERE id = :id"), {"id": cid}).one()
        assert (mod, usn) == (1_800_000_000, -1)

    def test_locked_collection_retries(self, repository):
        """Test a locked database is retried and then reported."""
        session = MagicMock()
        session.__enter__.return_value.execute.side_effect = OperationalError(
            "UPDATE cards", {}, Exception("database is locked")
        )

        with patch.object(repository, "_get_session", return_value=session) as get_session:
            with patch.object(CollectionRepository.update_scheduling.retry, "sleep", lambda _: None):
                with pytest.raises(CollectionLockedError):
                    repository.update_scheduling({1: REVIEWED}, now=0)

        assert get_session.call_count == 3


class TestSnapshot:
    """Tests for ProgressService.snapshot."""

    def test_keys_and_counts(self, service, glossary_cards):
        """Test every card is recorded under its UID and ordinal."""
        snapshot = service.snapshot(ProgressFilters())

        assert set(snapshot.cards) == {snapshot_key(c.uid, 0) for c in glossary_cards}
        assert snapshot.counts.total_rows == 4
        assert snapshot.counts.matched_cards == 4
        assert snapshot.meta.profile == "User 1"

    def test_tag_filter(self, service):
        """Test cards without the tag are skipped and counted."""
        snapshot = service.snapshot(ProgressFilters(tag="production"))
        assert snapshot.counts.matched_cards == 2
        assert snapshot.counts.skipped_tag_filter == 2

    def test_missing_uid(self, service):
        """Test an empty UID field is skipped and counted."""
        snapshot = service.snapshot(ProgressFilters(uid_field=9))
        assert snapshot.cards == {}
        assert snapshot.counts.skipped_missing_uid == 4

    def test_unknown_deck(self, service):
        """Test a deck filter with no match selects nothing."""
        snapshot = service.snapshot(ProgressFilters(deck="plants"))
        assert snapshot.counts.total_rows == 0

    def test_save_and_load(self, service, tmp_path):
        """Test the snapshot file uses camelCase metadata and reloads."""
        snapshot = service.snapshot(ProgressFilters(deck="animals"))
        path = save_snapshot(snapshot, tmp_path / "snaps" / "s.json")

        raw = json.loads(path.read_text())
        assert raw["meta"]["deck"] == "animals"
        assert "createdAt" in raw["meta"]
        assert raw["counts"]["matchedCards"] == 4
        assert load_snapshot(path) == snapshot


class TestLoadSnapshot:
    """Tests for load_snapshot errors."""

    def test_missing(self, tmp_path):
        """Test a missing file raises SnapshotError."""
        with pytest.raises(SnapshotError, match="not found"):
            load_snapshot(tmp_path / "none.json")

    def test_invalid(self, tmp_path):
        """Test malformed content raises SnapshotError."""
        path = tmp_path / "bad.json"
        path.write_text('{"cards": {"k": {"type": "x"}}}')
        with pytest.raises(SnapshotError, match="Invalid snapshot"):
            load_snapshot(path)

    def test_undecodable(self, tmp_path):
        """Test non-UTF-8 content raises SnapshotError."""
        path = tmp_path / "bad.json"
        path.write_bytes(b"\xff\xfe{}")
        with pytest.raises(SnapshotError, match="Cannot read snapshot"):
            load_snapshot(path)

    def test_unreadable(self, tmp_path):
        """Test an OS error while reading raises SnapshotError."""
        path = tmp_path / "s.json"
        path.write_text("{}")
        with patch("pathlib.Path.read_text", side_effect=PermissionError("denied")):
            with pytest.raises(SnapshotError, match="denied"):
                load_snapshot(path)


class TestRestore:
    """Tests for ProgressService.restore."""

    def _reviewed_snapshot(self, service, repository):
        cid = repository.cards_with_notes()[0].cid
        repository.update_scheduling({cid: REVIEWED}, now=1_700_000_100)
        return service.snapshot(ProgressFilters())

    def test_restore_onto_regenerated(self, tmp_path, service, repository):
        """Test progress follows UIDs into a regenerated collection."""
        snapshot = self._reviewed_snapshot(service, repository)
        target = regenerate(
            tmp_path,
            [GlossaryEntry("perro", "dog"), GlossaryEntry("gato", "cat", id="g1")],
        )
        try:
            report = ProgressService(target).restore(
                snapshot, ProgressFilters(), backup=False, now=1_700_000_900
            )
            rows = target.cards_with_notes()
        finally:
            target.close()

        assert (report.scanned, report.eligible, report.matched, report.missing) == (4, 4, 4, 0)
        assert report.written == 4
        assert rows[0].state == REVIEWED
        assert rows[1].state["type"] == 0

    def test_edited_rows_are_missing(self, tmp_path, service, repository):
        """Test rows whose content changed without a row id are not matched."""
        snapshot = self._reviewed_snapshot(service, repository)
        target = regenerate(
            tmp_path,
            [GlossaryEntry("perro", "hound"), GlossaryEntry("gato", "kitty", id="g1")],
        )
        try:
            report = ProgressService(target).restore(snapshot, ProgressFilters(), backup=False)
        finally:
            target.close()

        # Only gato recognition keeps its UID: row id hash, unchanged front
        assert report.matched == 1
        assert report.missing == 3
        assert report.unmatched_snapshot == 3

    def test_round_trip_is_noop(self, service, repository):
        """Test restoring what was just snapshotted keeps every card unchanged."""
        self._reviewed_snapshot(service, repository)
        before = [row.state for row in repository.cards_with_notes()]

        service.restore(service.snapshot(ProgressFilters()), ProgressFilters(), backup=False)

        assert [row.state for row in repository.cards_with_notes()] == before

    def test_dry_run(self, service, repository):
        """Test a dry run reports matches without writing."""
        snapshot = service.snapshot(ProgressFilters())
        snapshot.cards = {
            key: CardState(**REVIEWED) for key in snapshot.cards
        }

        report = service.restore(snapshot, ProgressFilters(), dry_run=True)

        assert report.dry_run
        assert report.matched == 4
        assert report.written == 0
        assert report.backup_path is None
        assert len(report.examples) == 4
        assert all(row.state["type"] == 0 for row in repository.cards_with_notes())

    def test_backup_before_write(self, service, repository, collection_path):
        """Test a timestamped copy is made before writing."""
        snapshot = self._reviewed_snapshot(service, repository)

        report = service.restore(snapshot, ProgressFilters())

        assert report.backup_path is not None
        assert report.backup_path.exists()
        assert report.backup_path.name.startswith("collection.anki2.bak-")

    def test_no_backup(self, service, repository, collection_path):
        """Test backups can be disabled."""
        snapshot = self._reviewed_snapshot(service, repository)

        report = service.restore(snapshot, ProgressFilters(), backup=False)

        assert report.backup_path is None
        assert not list(collection_path.parent.glob("*.bak-*"))

    def test_nothing_matched_writes_nothing(self, service, collection_path):
        """Test no backup or write happens when nothing matches."""
        report = service.restore(Snapshot(), ProgressFilters())

        assert report.missing == 4
        assert report.written == 0
        assert not list(collection_path.parent.glob("*.bak-*"))


class TestPaths:
    """Tests for default paths and backups."""

    def test_default_collection_path(self, tmp_path):
        """Test the profile folder layout."""
        assert default_collection_path("User 1", tmp_path) == tmp_path / "User 1" / "collection.anki2"

    def test_backup_copies_sidecars(self, tmp_path):
        """Test WAL and SHM files are copied along with the collection."""
        path = tmp_path / "collection.anki2"
        path.write_bytes(b"db")
        (tmp_path / "collection.anki2-wal").write_bytes(b"wal")

        backup = backup_file(path)

        assert backup.read_bytes() == b"db"
        assert (tmp_path / f"{backup.name}-wal").read_bytes() == b"wal"
