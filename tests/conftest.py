"""Pytest fixtures for deckmaker tests."""

from pathlib import Path

import pytest

from deckmaker.config import get_settings
from deckmaker.models.card import GenerationMode
from deckmaker.models.entry import GlossaryEntry, TsvHeader
from deckmaker.services.apkg_writer import ApkgWriter
from deckmaker.services.card_assembler import CardAssembler

FIXED_NOW = 1_700_000_000


def _write_tsv(path: Path, lines: list[str]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


@pytest.fixture
def write_tsv():
    """Provide a helper that writes a TSV file, creating parent folders."""
    return _write_tsv


@pytest.fixture
def data_dir(tmp_path):
    """Provide a glossary source tree with nested folders and a top-level file."""
    root = tmp_path / "data"
    _write_tsv(
        root / "animals" / "pets.tsv",
        ["Spanish\tEnglish", "perro\tdog", "gato\tcat"],
    )
    _write_tsv(
        root / "animals" / "wild" / "big.tsv",
        ["id\tSpanish\tEnglish", "1\tleón\tlion"],
    )
    _write_tsv(root / "verbs.tsv", ["Spanish\tEnglish", "ser\tto be"])
    return root


@pytest.fixture
def cloze_data_dir(tmp_path):
    """Provide a cloze source tree."""
    root = tmp_path / "data"
    _write_tsv(
        root / "grammar" / "articles.tsv",
        [
            "{{c1::El}} perro come.\tarticle",
            "{{c1::La}} casa es {{c2::grande}}.\tarticle, adjective",
            "No marker here.\tnothing",
        ],
    )
    return root


@pytest.fixture
def glossary_cards():
    """Provide assembled cards for two entries in one deck."""
    entries = [
        GlossaryEntry(term1="perro", term2="dog", line=2),
        GlossaryEntry(term1="gato", term2="cat", id="g1", line=3),
    ]
    return CardAssembler().generate_cards(
        entries, "animals::pets", TsvHeader("Spanish", "English"), True
    )


@pytest.fixture
def collection_path(tmp_path, glossary_cards):
    """Provide a freshly written glossary collection.anki2."""
    path = tmp_path / "profile" / "collection.anki2"
    path.parent.mkdir(parents=True)
    ApkgWriter(mode=GenerationMode.GLOSSARY).write_collection(
        glossary_cards, path, now=FIXED_NOW
    )
    return path


@pytest.fixture
def clean_settings():
    """Clear cached settings before and after a test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
