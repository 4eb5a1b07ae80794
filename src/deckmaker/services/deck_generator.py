"""End-to-end generation: TSV sources -> cards/notes -> .apkg."""

import json
import logging
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional, Union

from deckmaker.models.card import Card, CardKind, ClozeNote, GenerationMode
from deckmaker.models.entry import SourceFile
from deckmaker.services.apkg_writer import ApkgWriter, PackageStats
from deckmaker.services.card_assembler import CardAssembler
from deckmaker.services.entry_validator import EntryValidator, QualityIssue
from deckmaker.services.tsv_reader import (
    DEFAULT_EXTENSIONS,
    find_source_files,
    read_cloze_tsv,
    read_glossary_tsv,
)

LOGGER = logging.getLogger(__name__)

DEBUG_FILENAME = "generated-cards.json"


@dataclass
class GenerationResult:
    """Everything produced by one generation run."""

    mode: GenerationMode
    files: list[SourceFile] = field(default_factory=list)
    total_entries: int = 0
    items: list[Union[Card, ClozeNote]] = field(default_factory=list)
    issues: list[QualityIssue] = field(default_factory=list)
    output_path: Optional[Path] = None
    debug_path: Optional[Path] = None
    stats: Optional[PackageStats] = None

    def count_kind(self, kind: CardKind) -> int:
        """Number of glossary cards of one kind."""
        return sum(1 for item in self.items if isinstance(item, Card) and item.kind == kind)

    @property
    def cloze_notes(self) -> int:
        """Number of cloze notes assembled (before marker expansion)."""
        return sum(1 for item in self.items if isinstance(item, ClozeNote))

    def deck_counts(self) -> dict[str, int]:
        """Cards or notes per deck, sorted by deck name."""
        counts = Counter(item.deck for item in self.items)
        return dict(sorted(counts.items()))


class DeckGenerator:
    """Runs the whole pipeline over a data directory.

    Sources are processed one after another in path order; all cards are
    collected before the deck tree and the package are built.
    """

    def __init__(
        self,
        data_dir: Path,
        output_dir: Path,
        debug_dir: Path,
        root_deck_name: str = "Vocabulary",
        glossary_note_type: str = "DeckMaker::Glossary v1",
        cloze_note_type: str = "DeckMaker::Cloze v1",
        extensions: Iterable[str] = DEFAULT_EXTENSIONS,
        max_term_length: int = 120,
    ):
        self.data_dir = Path(data_dir)
        self.output_dir = Path(output_dir)
        self.debug_dir = Path(debug_dir)
        self.root_deck_name = root_deck_name
        self.glossary_note_type = glossary_note_type
        self.cloze_note_type = cloze_note_type
        self.extensions = tuple(extensions)
        self.max_term_length = max_term_length
        self.assembler = CardAssembler(root_deck_name=root_deck_name)

    def collect(
        self,
        mode: GenerationMode,
        folder: Optional[str] = None,
        include_direction_labels: bool = False,
    ) -> GenerationResult:
        """Parse, check and assemble every source file without writing anything.

        Raises:
            SourceFolderNotFoundError: If ``folder`` does not exist
        """
        mode = GenerationMode(mode)
        if mode == GenerationMode.CLOZE:
            include_direction_labels = False

        result = GenerationResult(mode=mode)
        result.files = find_source_files(self.data_dir, folder, self.extensions)
        validator = EntryValidator(max_term_length=self.max_term_length)

        for source in result.files:
            deck_name = self.assembler.deck_name_for(source)
            LOGGER.info("Reading %s -> %s", source.path, deck_name)

            if mode == GenerationMode.CLOZE:
                parsed_cloze = read_cloze_tsv(source.path)
                entries_count = len(parsed_cloze.entries)
                result.issues.extend(validator.check_cloze(deck_name, parsed_cloze.entries))
                items = self.assembler.generate_cloze_notes(parsed_cloze.entries, deck_name)
            else:
                parsed = read_glossary_tsv(source.path)
                entries_count = len(parsed.entries)
                result.issues.extend(validator.check_glossary(deck_name, parsed.entries))
                items = self.assembler.generate_cards(
                    parsed.entries, deck_name, parsed.header, include_direction_labels
                )

            if not entries_count:
                LOGGER.warning("No entries found in %s, skipping", source.path)
                continue

            result.total_entries += entries_count
            result.items.extend(items)

        return result

    def output_filename(
        self, mode: GenerationMode, folder: Optional[str], files: list[SourceFile]
    ) -> str:
        """Package name: the requested folder, else the first file's top-level folder."""
        if folder:
            base = folder
        elif files and files[0].top_level_folder:
            base = files[0].top_level_folder
        else:
            base = self.root_deck_name
        suffix = "-cloze" if mode == GenerationMode.CLOZE else ""
        return f"{base}{suffix}.apkg"

    def write_debug(self, items: list[Union[Card, ClozeNote]]) -> Path:
        """Dump all assembled cards/notes as pretty-printed JSON."""
        self.debug_dir.mkdir(parents=True, exist_ok=True)
        path = self.debug_dir / DEBUG_FILENAME
        payload = [item.to_dict() for item in items]
        path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
        return path

    def run(
        self,
        mode: GenerationMode = GenerationMode.GLOSSARY,
        folder: Optional[str] = None,
        include_direction_labels: bool = False,
        now: Optional[int] = None,
    ) -> GenerationResult:
        """Generate a package.

        Args:
            mode: Glossary or cloze
            folder: Restrict to one top-level folder of the data dir
            include_direction_labels: Glossary only; needs a header row
            now: Timestamp written into the collection, seconds

        Returns:
            GenerationResult; ``output_path`` is None when there was nothing to write
        """
        result = self.collect(mode, folder, include_direction_labels)
        if not result.items:
            LOGGER.warning("No cards generated, no package written")
            return result

        if result.issues:
            LOGGER.warning(
                "%d quality issue(s) found; run 'deckmaker check' for details",
                len(result.issues),
            )

        result.debug_path = self.write_debug(result.items)

        writer = ApkgWriter(
            mode=result.mode,
            note_type_name=(
                self.cloze_note_type
                if result.mode == GenerationMode.CLOZE
                else self.glossary_note_type
            ),
            deck_namespace=self.root_deck_name,
        )
        output_path = self.output_dir / self.output_filename(result.mode, folder, result.files)
        result.stats = writer.write_package(result.items, output_path, now=now)
        result.output_path = output_path
        return result
