"""Services for deckmaker."""

from deckmaker.services.apkg_writer import ApkgWriter, PackageStats
from deckmaker.services.card_assembler import CardAssembler
from deckmaker.services.deck_generator import DeckGenerator, GenerationResult
from deckmaker.services.deck_tree import DeckTreeBuilder
from deckmaker.services.entry_validator import EntryValidator, IssueKind, QualityIssue
from deckmaker.services.progress import (
    ProgressFilters,
    ProgressService,
    RestoreReport,
    SnapshotError,
)
from deckmaker.services.tsv_reader import SourceFolderNotFoundError

__all__ = [
    "ApkgWriter",
    "CardAssembler",
    "DeckGenerator",
    "DeckTreeBuilder",
    "EntryValidator",
    "GenerationResult",
    "IssueKind",
    "PackageStats",
    "ProgressFilters",
    "ProgressService",
    "QualityIssue",
    "RestoreReport",
    "SnapshotError",
    "SourceFolderNotFoundError",
]
