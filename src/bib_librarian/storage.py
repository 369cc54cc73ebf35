"""Reading and writing bibliography files.

Parsing is delegated to bibtexparser; writing goes through the
source-preserving merger and is done atomically (temp file + os.replace)
after a best-effort ``.bak`` copy of the previous file.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import tempfile
from pathlib import Path

import bibtexparser
from bibtexparser.bparser import BibTexParser

from bib_librarian.keygen import KeyConfig
from bib_librarian.merger import NON_RECORD_TYPES, iter_entry_spans, merge_into_source
from bib_librarian.model import Library, Record

logger = logging.getLogger(__name__)

_ENTRY_START_RE = re.compile(r"@\s*([A-Za-z]+)\s*[{(]")


class BibParseError(ValueError):
    """Raised when BibTeX text cannot be turned into records."""


# ------------- IO Helpers -------------
class BibLoader:
    """Parse BibTeX text into a Library using bibtexparser."""

    def _make_parser(self) -> BibTexParser:
        # bibtexparser accumulates into the parser's database, so use a fresh one per call
        parser = BibTexParser(common_strings=True)
        parser.customization = None
        parser.ignore_nonstandard_types = False
        parser.homogenize_fields = False
        return parser

    def loads(self, text: str) -> Library:
        """Parse ``text`` and return a new Library.

        Raises:
            BibParseError: if the parser fails, or if any entry block in the
                text could not be parsed. A partial library is never returned,
                since saving it would drop the skipped blocks from the file.
        """
        try:
            db = bibtexparser.loads(text, parser=self._make_parser())
        except Exception as e:
            raise BibParseError(str(e) or e.__class__.__name__) from e

        spans = list(iter_entry_spans(text))
        expected = len(spans)
        declared = sum(1 for m in _ENTRY_START_RE.finditer(text) if m.group(1).lower() not in NON_RECORD_TYPES)
        if (expected or declared) and not db.entries:
            raise BibParseError(f"No valid entries found ({max(expected, declared)} entry block(s) could not be parsed)")
        if len(db.entries) < expected:
            parsed = {entry.get("ID") for entry in db.entries}
            skipped = [span.key for span in spans if span.key not in parsed]
            raise BibParseError(
                f"Could not parse {expected - len(db.entries)} of {expected} entry block(s): {', '.join(skipped)}"
            )

        library = Library()
        for entry in db.entries:
            record = Record.from_bibtexparser(entry)
            if not record.key:
                continue
            stored = library.add(record)
            if stored != entry.get("ID"):
                logger.warning("Duplicate key %s renamed to %s", entry.get("ID"), stored)
        return library

    def load_file(self, path: str | Path) -> tuple[Library, str]:
        """Read a file and return (library, original text)."""
        try:
            text = read_text(path)
        except UnicodeDecodeError as e:
            raise BibParseError(f"{path} is not valid UTF-8: {e}") from e
        return self.loads(text), text


def read_text(path: str | Path) -> str:
    with open(path, encoding="utf-8") as f:
        return f.read()


def backup_path_for(path: str | Path) -> Path:
    """'refs.bib' -> 'refs.bib.bak'; 'refs' -> 'refs.bak'."""
    path = Path(path)
    if path.suffix:
        return path.with_suffix(path.suffix + ".bak")
    return path.with_suffix(".bak")


def create_backup(path: str | Path) -> Path | None:
    """Copy ``path`` next to itself with a ``.bak`` extension.

    Failure is logged and returns None; it never blocks the caller.
    """
    path = Path(path)
    if not path.exists():
        return None
    target = backup_path_for(path)
    try:
        shutil.copyfile(path, target)
    except OSError as e:
        logger.warning("Could not create backup %s: %s", target, e)
        return None
    logger.debug("Backup written to %s", target)
    return target


def atomic_write(path: str | Path, text: str) -> None:
    """Write ``text`` to ``path`` via a sibling temp file and os.replace."""
    path = Path(path)
    tmp = tempfile.NamedTemporaryFile(
        "w", delete=False, encoding="utf-8", dir=path.parent or ".", suffix=path.suffix, prefix=".tmp_"
    )
    try:
        try:
            tmp.write(text)
            tmp.flush()
            os.fsync(tmp.fileno())
        finally:
            tmp.close()
        if path.exists():
            shutil.copymode(path, tmp.name)
        os.replace(tmp.name, path)
    except OSError:
        if os.path.exists(tmp.name):
            os.unlink(tmp.name)
        raise


def save_library(path: str | Path, library: Library, config: KeyConfig, original_text: str = "") -> str:
    """Merge ``library`` into ``original_text`` and write it to ``path``.

    Returns the text written. Raises OSError if the write fails.
    """
    create_backup(path)
    output = merge_into_source(original_text, library, config).strip() + "\n"
    atomic_write(path, output)
    logger.info("Saved %d entries to %s", len(library), path)
    return output
