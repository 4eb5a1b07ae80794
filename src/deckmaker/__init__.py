"""deckmaker - build Anki packages from TSV vocabulary and cloze files."""

__version__ = "0.3.0"
