"""Unit tests for identity derivation."""

import base64
import hashlib

from deckmaker.services.identity import (
    DECK_ID_OFFSET,
    GUID_LENGTH,
    NOTE_TYPE_ID_OFFSET,
    IdCounter,
    canonical_key,
    field_checksum,
    guid_from_uid,
    make_cloze_uid,
    make_uid,
    normalize_row_id,
    short_hash_hex,
    slugify,
    stable_numeric_id,
)


class TestSlugify:
    """Tests for slugify."""

    def test_strips_accents_and_lowercases(self):
        """Test accents are removed and case folded."""
        assert slugify("Árbol Grande") == "arbol-grande"

    def test_collapses_other_characters(self):
        """Test runs of non-alphanumerics become one dash."""
        assert slugify("  to be / or  not!  ") == "to-be-or-not"

    def test_truncates(self):
        """Test slugs are capped at 24 characters."""
        assert len(slugify("a" * 50)) == 24

    def test_empty(self):
        """Test None and symbols yield an empty slug."""
        assert slugify(None) == ""
        assert slugify("¿?") == ""


class TestRowId:
    """Tests for row id normalization."""

    def test_blank_is_absent(self):
        """Test whitespace-only ids count as missing."""
        assert normalize_row_id("   ") is None
        assert normalize_row_id(None) is None

    def test_trimmed(self):
        """Test ids are trimmed."""
        assert normalize_row_id(" 42 ") == "42"


class TestCanonicalKey:
    """Tests for the canonical string."""

    def test_with_row_id(self):
        """Test the row id replaces the content fields."""
        assert canonical_key("deck", "recognition", "a", "b", "7") == "deck||recognition||id=7"

    def test_without_row_id(self):
        """Test content fields are used and trimmed."""
        assert (
            canonical_key(" deck ", "production", " a ", "b ", None)
            == "deck||production||a||b"
        )


class TestMakeUid:
    """Tests for glossary UIDs."""

    def test_format(self):
        """Test the readable prefix and hash suffix."""
        uid = make_uid("animals::pets", "recognition", "Perro", "dog")
        digest = short_hash_hex("animals::pets||recognition||Perro||dog")
        assert uid == f"dm:vocab:animals-pets:recognition:perro::h={digest}"
        assert len(digest) == 10

    def test_row_id_in_uid(self):
        """Test a row id is embedded and drives the hash."""
        uid = make_uid("animals::pets", "recognition", "perro", "dog", "p1")
        assert ":id=p1::h=" in uid
        assert uid.endswith(short_hash_hex("animals::pets||recognition||id=p1"))

    def test_row_id_survives_content_edits(self):
        """Test editing the terms keeps the UID hash when a row id is present."""
        before = make_uid("d", "recognition", "perro", "dog", "p1")
        after = make_uid("d", "recognition", "perro", "hound", "p1")
        assert before == after

    def test_row_id_change(self):
        """Test changing only the row id changes the UID."""
        assert make_uid("d", "recognition", "a", "b", "1") != make_uid(
            "d", "recognition", "a", "b", "2"
        )

    def test_content_change_without_id(self):
        """Test editing the back changes the UID when no row id is present."""
        assert make_uid("d", "recognition", "perro", "dog") != make_uid(
            "d", "recognition", "perro", "hound"
        )

    def test_kinds_differ(self):
        """Test recognition and production UIDs of one entry differ."""
        assert make_uid("d", "recognition", "a", "b") != make_uid("d", "production", "b", "a")


class TestMakeClozeUid:
    """Tests for cloze UIDs."""

    def test_hint_slug(self):
        """Test the hint feeds the readable part."""
        uid = make_cloze_uid("grammar::articles", "{{c1::El}} perro", "Article")
        assert uid.startswith("dm:cloze:grammar-articles:article::h=")

    def test_row_id(self):
        """Test the row id is embedded."""
        uid = make_cloze_uid("g", "text", "hint", "r9")
        assert ":id=r9::h=" in uid
        assert uid == make_cloze_uid("g", "other text", "hint", "r9")


class TestGuid:
    """Tests for the note GUID digest."""

    def test_deterministic_and_short(self):
        """Test the same UID always yields the same 16-character GUID."""
        uid = make_uid("d", "recognition", "a", "b")
        assert guid_from_uid(uid) == guid_from_uid(uid)
        assert len(guid_from_uid(uid)) == GUID_LENGTH

    def test_matches_urlsafe_sha1(self):
        """Test the GUID is URL-safe base64 of SHA-1 without padding."""
        expected = base64.urlsafe_b64encode(hashlib.sha1(b"x").digest()).decode()
        assert guid_from_uid("x") == expected.rstrip("=")[:16]
        assert "=" not in guid_from_uid("x")

    def test_distinct_uids(self):
        """Test different UIDs give different GUIDs."""
        assert guid_from_uid("a") != guid_from_uid("b")


class TestNumericIds:
    """Tests for stable numeric ids and checksums."""

    def test_stable_numeric_id_range(self):
        """Test ids fall inside the offset window and are stable."""
        value = stable_numeric_id("DeckMaker::Glossary v1", NOTE_TYPE_ID_OFFSET)
        assert NOTE_TYPE_ID_OFFSET <= value < NOTE_TYPE_ID_OFFSET + 1_000_000_000
        assert value == stable_numeric_id("DeckMaker::Glossary v1", NOTE_TYPE_ID_OFFSET)

    def test_offsets_differ(self):
        """Test deck and note type ids use different offsets."""
        assert stable_numeric_id("x", DECK_ID_OFFSET) - stable_numeric_id(
            "x", NOTE_TYPE_ID_OFFSET
        ) == DECK_ID_OFFSET - NOTE_TYPE_ID_OFFSET

    def test_field_checksum(self):
        """Test the checksum is the first 8 hex digits of SHA-1."""
        assert field_checksum("perro") == int(hashlib.sha1(b"perro").hexdigest()[:8], 16)


class TestIdCounter:
    """Tests for IdCounter."""

    def test_sequence(self):
        """Test ids are handed out sequentially."""
        counter = IdCounter(10)
        assert [counter.next(), counter.next(), counter.next()] == [10, 11, 12]

    def test_independent(self):
        """Test counters do not share state."""
        a, b = IdCounter(), IdCounter()
        a.next()
        assert b.next() == 1
