"""Stable identifiers for notes, cards, decks and note types.

Two independent one-way digests are involved:

* ``make_uid`` / ``make_cloze_uid`` build the human-readable UID stored in the
  note. It is derived from the deck, the card kind and either the row id or the
  row content, so regenerating a package from edited sources keeps the UID of
  every unchanged row.
* ``guid_from_uid`` hashes the UID into the short GUID that the collection
  schema requires for each note. Anki matches imported notes by GUID, so the
  GUID has to follow the UID exactly.
"""

import base64
import hashlib
import re
import unicodedata
from typing import Optional

UID_NAMESPACE = "dm"
UID_HASH_LENGTH = 10
SLUG_MAX_LENGTH = 24
GUID_LENGTH = 16

NOTE_TYPE_ID_OFFSET = 2_000_000_000
DECK_ID_OFFSET = 2_100_000_000

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(text: Optional[str], max_length: int = SLUG_MAX_LENGTH) -> str:
    """Lowercase ASCII slug with accents stripped and runs of other characters as '-'."""
    decomposed = unicodedata.normalize("NFD", str(text or ""))
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    slug = _NON_ALNUM.sub("-", stripped.lower()).strip("-")
    return slug[:max_length]


def normalize_row_id(row_id: Optional[str]) -> Optional[str]:
    """Trim a row id; blank ids count as absent."""
    if row_id is None:
        return None
    row_id = str(row_id).strip()
    return row_id or None


def short_hash_hex(text: str, length: int = UID_HASH_LENGTH) -> str:
    """First ``length`` hex characters of the SHA-1 of ``text``."""
    return hashlib.sha1(text.encode("utf-8")).hexdigest()[:length]


def canonical_key(
    group: str,
    kind: str,
    field1: str = "",
    field2: str = "",
    row_id: Optional[str] = None,
) -> str:
    """Canonical string hashed into a UID."""
    row_id = normalize_row_id(row_id)
    if row_id:
        return f"{group.strip()}||{kind.strip()}||id={row_id}"
    return f"{group.strip()}||{kind.strip()}||{str(field1).strip()}||{str(field2).strip()}"


def make_uid(
    deck: str,
    kind: str,
    front: str,
    back: str,
    row_id: Optional[str] = None,
) -> str:
    """UID for a glossary card.

    Args:
        deck: Logical deck of the entry (without the Recognition/Production suffix)
        kind: Card kind, e.g. "recognition"
        front: Text shown on the question side
        back: Text shown on the answer side
        row_id: Optional stable id from the source file

    Returns:
        A string such as ``dm:vocab:animals-pets:recognition:perro::h=1a2b3c4d5e``
    """
    row_id = normalize_row_id(row_id)
    digest = short_hash_hex(canonical_key(deck, kind, front, back, row_id))
    parts = [UID_NAMESPACE, "vocab", slugify(deck), kind, slugify(front)]
    if row_id:
        parts.append(f"id={row_id}")
    return ":".join(parts) + f"::h={digest}"


def make_cloze_uid(
    deck: str,
    text: str,
    hint: str,
    row_id: Optional[str] = None,
) -> str:
    """UID for a cloze note. The hint, not the text, feeds the readable slug."""
    row_id = normalize_row_id(row_id)
    digest = short_hash_hex(canonical_key(deck, "cloze", text, hint, row_id))
    parts = [UID_NAMESPACE, "cloze", slugify(deck), slugify(hint)]
    if row_id:
        parts.append(f"id={row_id}")
    return ":".join(parts) + f"::h={digest}"


def guid_from_uid(uid: str) -> str:
    """Note GUID derived from a UID (URL-safe base64 of its SHA-1, unpadded)."""
    digest = hashlib.sha1(str(uid).encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")[:GUID_LENGTH]


def stable_numeric_id(key: str, offset: int) -> int:
    """Numeric id stable across runs for the same key, in ``[offset, offset + 1e9)``."""
    n = int(hashlib.sha1(str(key).encode("utf-8")).hexdigest()[:8], 16)
    return offset + (n % 1_000_000_000)


def field_checksum(value: str) -> int:
    """Checksum Anki stores in ``notes.csum``: first 8 hex chars of SHA-1 as an int."""
    return int(hashlib.sha1(value.encode("utf-8")).hexdigest()[:8], 16)


class IdCounter:
    """Sequential id source passed explicitly through one generation run."""

    def __init__(self, start: int = 1):
        self.next_id = start

    def next(self) -> int:
        """Return the next id and advance."""
        value = self.next_id
        self.next_id += 1
        return value
