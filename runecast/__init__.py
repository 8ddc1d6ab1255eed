"""Runecast: rune readings with AI interpretation and a local journal."""

__version__ = "0.1.0"
