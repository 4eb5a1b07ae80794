"""Anki collection schema and repository."""
