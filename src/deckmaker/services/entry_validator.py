"""Quality checks over parsed entries. Reports problems, never changes entries."""

from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from deckmaker.models.entry import ClozeEntry, GlossaryEntry
from deckmaker.services.apkg_writer import cloze_ordinals


class IssueKind(str, Enum):
    """Kind of quality issue."""

    DUPLICATE_TERM = "duplicate-term"  # Same term1 twice in one file
    DUPLICATE_ACROSS_FILES = "duplicate-across-files"
    DUPLICATE_ID = "duplicate-id"
    SAME_TERMS = "same-terms"  # term1 == term2
    TOO_LONG = "too-long"
    NO_CLOZE_MARKER = "no-cloze-marker"


@dataclass(frozen=True)
class QualityIssue:
    """One quality warning."""

    kind: IssueKind
    source: str  # Deck name of the file
    line: int
    message: str


def _key(term: str) -> str:
    return " ".join(term.casefold().split())


class EntryValidator:
    """Collects quality warnings for glossary and cloze sources."""

    def __init__(self, max_term_length: int = 120):
        self.max_term_length = max_term_length
        self._seen_terms: dict[str, list[str]] = defaultdict(list)

    def check_glossary(
        self, source: str, entries: Iterable[GlossaryEntry]
    ) -> list[QualityIssue]:
        """Check one glossary file; cross-file duplicates use earlier calls."""
        issues: list[QualityIssue] = []
        first_line: dict[str, int] = {}
        ids: dict[str, int] = {}

        for entry in entries:
            key = _key(entry.term1)

            if key in first_line:
                issues.append(
                    QualityIssue(
                        IssueKind.DUPLICATE_TERM,
                        source,
                        entry.line,
                        f'"{entry.term1}" already appears at line {first_line[key]}',
                    )
                )
            else:
                first_line[key] = entry.line
                others = [s for s in self._seen_terms[key] if s != source]
                if others:
                    issues.append(
                        QualityIssue(
                            IssueKind.DUPLICATE_ACROSS_FILES,
                            source,
                            entry.line,
                            f'"{entry.term1}" also appears in {", ".join(sorted(set(others)))}',
                        )
                    )
                self._seen_terms[key].append(source)

            if entry.id:
                if entry.id in ids:
                    issues.append(
                        QualityIssue(
                            IssueKind.DUPLICATE_ID,
                            source,
                            entry.line,
                            f'Row id "{entry.id}" already used at line {ids[entry.id]}',
                        )
                    )
                else:
                    ids[entry.id] = entry.line

            if key == _key(entry.term2):
                issues.append(
                    QualityIssue(
                        IssueKind.SAME_TERMS,
                        source,
                        entry.line,
                        f'Both sides read "{entry.term1}"',
                    )
                )

            issues.extend(self._length_issues(source, entry.line, entry.term1, entry.term2))

        return issues

    def check_cloze(self, source: str, entries: Iterable[ClozeEntry]) -> list[QualityIssue]:
        """Check one cloze file."""
        issues: list[QualityIssue] = []
        ids: dict[str, int] = {}

        for entry in entries:
            if not cloze_ordinals(entry.text):
                issues.append(
                    QualityIssue(
                        IssueKind.NO_CLOZE_MARKER,
                        source,
                        entry.line,
                        "No {{cN::...}} marker; this row produces no cards",
                    )
                )
            if entry.id:
                if entry.id in ids:
                    issues.append(
                        QualityIssue(
                            IssueKind.DUPLICATE_ID,
                            source,
                            entry.line,
                            f'Row id "{entry.id}" already used at line {ids[entry.id]}',
                        )
                    )
                else:
                    ids[entry.id] = entry.line

        return issues

    def _length_issues(self, source: str, line: int, *terms: str) -> list[QualityIssue]:
        return [
            QualityIssue(
                IssueKind.TOO_LONG,
                source,
                line,
                f"Term has {len(term)} characters (limit {self.max_term_length})",
            )
            for term in terms
            if len(term) > self.max_term_length
        ]
