"""Configuration management for deckmaker."""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="DECKMAKER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Source and output locations
    data_dir: Path = Field(
        default=Path("data"),
        description="Root folder scanned for TSV source files",
    )
    output_dir: Path = Field(
        default=Path("output"),
        description="Folder receiving generated .apkg packages",
    )
    debug_dir: Path = Field(
        default=Path("debug"),
        description="Folder receiving the generated-cards.json debug dump",
    )
    source_extensions: list[str] = Field(
        default=[".tsv", ".txt"],
        description="File extensions treated as source files",
    )

    # Deck and note type naming
    root_deck_name: str = Field(
        default="Vocabulary",
        description="Deck used for source files at the top level of data_dir",
    )
    glossary_note_type: str = Field(
        default="DeckMaker::Glossary v1",
        description="Note type name for two-sided glossary notes",
    )
    cloze_note_type: str = Field(
        default="DeckMaker::Cloze v1",
        description="Note type name for cloze notes",
    )

    # Quality checks
    max_term_length: int = Field(
        default=120,
        ge=1,
        description="Terms longer than this are reported by 'deckmaker check'",
    )

    # Anki profile (progress snapshot/restore)
    anki_profile: str = Field(
        default="User 1",
        description="Anki profile folder name",
    )
    anki_base_dir: Optional[Path] = Field(
        default=None,
        description="Anki2 base folder (default: platform specific)",
    )
    snapshot_path: Path = Field(
        default=Path("debug/anki-progress-snapshot.json"),
        description="Default location of progress snapshots",
    )
    uid_field_index: int = Field(
        default=0,
        ge=0,
        description="Note field index holding the UID",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
