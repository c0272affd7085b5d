"""Platform layer: the filesystem primitives the entry cache consumes."""

from .base import JournalPlatform
from .frontmatter import clean_excerpt, parse_frontmatter
from .local import ENTRY_FILENAME, LocalJournalPlatform

__all__ = [
    "ENTRY_FILENAME",
    "JournalPlatform",
    "LocalJournalPlatform",
    "clean_excerpt",
    "parse_frontmatter",
]
