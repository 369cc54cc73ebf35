"""BibTeX Librarian - Tools for maintaining a personal BibTeX reference library.

This package provides tools for:
- Generating citation keys from configurable parts (author, year, title, journal)
- Saving a library back to its .bib file without disturbing untouched text
- Formatting entries in a canonical, configurable field order
- Finding near-duplicate entries by fuzzy title similarity
- Abbreviating and expanding journal names

Example usage:
    from bib_librarian import AbbreviationIndex, KeyConfig, Session

    session = Session(config=KeyConfig(), index=AbbreviationIndex.default())
    session.load_file("refs.bib")
    session.regenerate_keys()
    groups = session.find_duplicates()
    session.save()
"""

from bib_librarian._version import __version__
from bib_librarian.abbreviations import AbbreviationIndex, load_layered
from bib_librarian.config import load_config, save_config
from bib_librarian.dedupe import DuplicateCandidate, DuplicateGroup, find_duplicates
from bib_librarian.formatter import format_entry
from bib_librarian.history import History
from bib_librarian.keygen import KeyConfig, KeyPart, ensure_unique_key, generate_key
from bib_librarian.merger import Span, generate_clean_bibliography, merge_into_source, scan_entry_spans
from bib_librarian.model import Chunk, ChunkKind, EntryInfo, Library, Record, RichText
from bib_librarian.session import Session
from bib_librarian.storage import BibLoader, BibParseError, create_backup, save_library

__all__ = [
    # Version
    "__version__",
    # Data model
    "Chunk",
    "ChunkKind",
    "EntryInfo",
    "Library",
    "Record",
    "RichText",
    # Keys
    "KeyConfig",
    "KeyPart",
    "ensure_unique_key",
    "generate_key",
    # Config
    "load_config",
    "save_config",
    # Formatting & merging
    "Span",
    "format_entry",
    "generate_clean_bibliography",
    "merge_into_source",
    "scan_entry_spans",
    # Duplicates
    "DuplicateCandidate",
    "DuplicateGroup",
    "find_duplicates",
    # Journal abbreviations
    "AbbreviationIndex",
    "load_layered",
    # IO
    "BibLoader",
    "BibParseError",
    "create_backup",
    "save_library",
    # Session
    "History",
    "Session",
]
