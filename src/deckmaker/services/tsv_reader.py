"""TSV source discovery and parsing."""

import codecs
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

from deckmaker.models.entry import ClozeEntry, GlossaryEntry, SourceFile, TsvHeader
from deckmaker.services.identity import normalize_row_id

LOGGER = logging.getLogger(__name__)

DEFAULT_EXTENSIONS = (".tsv", ".txt")


class SourceFolderNotFoundError(Exception):
    """The requested top-level folder does not exist under the data directory."""

    pass


@dataclass
class GlossaryFile:
    """Parsed glossary file."""

    entries: list[GlossaryEntry] = field(default_factory=list)
    header: Optional[TsvHeader] = None


@dataclass
class ClozeFile:
    """Parsed cloze file."""

    entries: list[ClozeEntry] = field(default_factory=list)


def find_source_files(
    data_dir: Path,
    folder: Optional[str] = None,
    extensions: Iterable[str] = DEFAULT_EXTENSIONS,
) -> list[SourceFile]:
    """Recursively find source files and record their folder as deck path.

    Args:
        data_dir: Root of the source tree
        folder: Optional top-level folder to restrict the scan to
        extensions: File suffixes treated as sources

    Returns:
        Source files ordered by relative path

    Raises:
        SourceFolderNotFoundError: If ``folder`` is given but is not a directory
    """
    data_dir = Path(data_dir)
    suffixes = {ext.lower() for ext in extensions}

    if not data_dir.is_dir():
        LOGGER.warning("Data directory %s does not exist", data_dir)
        if folder:
            raise SourceFolderNotFoundError(f'Folder "{folder}" not found in {data_dir}')
        return []

    scan_root = data_dir
    if folder:
        scan_root = data_dir / folder
        if not scan_root.is_dir():
            raise SourceFolderNotFoundError(f'Folder "{folder}" not found in {data_dir}')

    files = []
    for path in sorted(scan_root.rglob("*")):
        if not path.is_file() or path.suffix.lower() not in suffixes:
            continue
        relative = path.relative_to(data_dir)
        deck_path = relative.parent.as_posix()
        files.append(SourceFile(path=path, deck_path=deck_path, file_name=path.stem))

    return files


def _read_lines(path: Path) -> Optional[list[str]]:
    if not path.exists():
        LOGGER.warning("%s not found, skipping", path)
        return None
    data = path.read_bytes()
    if data.startswith(codecs.BOM_UTF8):
        data = data[len(codecs.BOM_UTF8):]

    # Undecodable lines become blank so line numbers stay aligned
    lines = []
    for line_no, raw in enumerate(data.split(b"\n"), 1):
        try:
            lines.append(raw.decode("utf-8").rstrip("\r"))
        except UnicodeDecodeError as e:
            LOGGER.warning("Line %d in %s is not valid UTF-8, skipping: %s", line_no, path, e)
            lines.append("")
    return lines


def _parse_header(line: str, path: Path) -> Optional[TsvHeader]:
    parts = [p.strip() for p in line.split("\t")]
    if len(parts) == 2:
        return TsvHeader(term1_label=parts[0], term2_label=parts[1])
    if len(parts) == 3:
        return TsvHeader(term1_label=parts[1], term2_label=parts[2], has_id=True)
    LOGGER.warning(
        'Invalid header format in %s: "%s". Expected 2 or 3 columns.', path, line
    )
    return None


def _split_row(raw: str) -> tuple[Optional[str], str, str]:
    parts = raw.split("\t")
    if len(parts) == 3:
        row_id, first, second = parts
        return normalize_row_id(row_id), first.strip(), second.strip()
    first, second = parts
    return None, first.strip(), second.strip()


def read_glossary_tsv(path: Path) -> GlossaryFile:
    """Parse a glossary file: a header line followed by 2- or 3-column rows.

    Rows with the wrong column count or an empty term are logged and skipped.
    """
    path = Path(path)
    lines = _read_lines(path)
    if lines is None:
        return GlossaryFile()

    numbered = [(n, line) for n, line in enumerate(lines, 1) if line.strip()]
    if not numbered:
        LOGGER.warning("%s is empty", path)
        return GlossaryFile()

    _, header_line = numbered[0]
    result = GlossaryFile(header=_parse_header(header_line, path))

    for line_no, raw in numbered[1:]:
        columns = raw.count("\t") + 1
        if columns not in (2, 3):
            LOGGER.warning(
                "Line %d in %s has %d columns: %s", line_no, path, columns, raw
            )
            continue

        row_id, term1, term2 = _split_row(raw)
        if not term1:
            LOGGER.warning("Empty term1 at line %d in %s", line_no, path)
            continue
        if not term2:
            LOGGER.warning('Empty term2 for "%s" at line %d in %s', term1, line_no, path)
            continue

        result.entries.append(GlossaryEntry(term1=term1, term2=term2, id=row_id, line=line_no))

    return result


def read_cloze_tsv(path: Path) -> ClozeFile:
    """Parse a cloze file: every non-empty line is a 2- or 3-column row, no header."""
    path = Path(path)
    lines = _read_lines(path)
    if lines is None:
        return ClozeFile()

    result = ClozeFile()
    for line_no, raw in enumerate(lines, 1):
        if not raw.strip():
            continue

        columns = raw.count("\t") + 1
        if columns not in (2, 3):
            LOGGER.warning(
                "Line %d in %s has %d columns: %s", line_no, path, columns, raw
            )
            continue

        row_id, text, hint = _split_row(raw)
        if not text:
            LOGGER.warning("Empty text at line %d in %s", line_no, path)
            continue

        result.entries.append(ClozeEntry(text=text, hint=hint, id=row_id, line=line_no))

    return result
