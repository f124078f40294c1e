"""Directus ⇄ Localazy content synchronization."""

__version__ = "0.1.0"
