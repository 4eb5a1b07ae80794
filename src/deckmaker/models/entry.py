"""Source entry models for deckmaker."""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional


@dataclass(frozen=True)
class GlossaryEntry:
    """One glossary row: two terms and an optional stable row id."""

    term1: str
    term2: str
    id: Optional[str] = None
    line: int = 0  # 1-based line in the source file, for warnings


@dataclass(frozen=True)
class ClozeEntry:
    """One cloze row: text with {{cN::...}} markers plus a hint."""

    text: str
    hint: str = ""
    id: Optional[str] = None
    line: int = 0


@dataclass(frozen=True)
class TsvHeader:
    """Column labels taken from the first line of a glossary file."""

    term1_label: str
    term2_label: str
    has_id: bool = False


@dataclass(frozen=True)
class SourceFile:
    """A TSV file found under the data directory."""

    path: Path
    deck_path: str  # Folder relative to the data dir, "/" separated, "." at top level
    file_name: str  # File stem

    @property
    def is_top_level(self) -> bool:
        """True when the file sits directly in the data directory."""
        return self.deck_path in (".", "")

    @property
    def top_level_folder(self) -> Optional[str]:
        """First folder segment, or None for top-level files."""
        if self.is_top_level:
            return None
        return self.deck_path.split("/")[0]
