"""The editing session: one Library, its history, config and source file.

Every mutating operation snapshots the library first and drops the snapshot
again if nothing actually changed, so undo never steps through no-ops.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from bib_librarian.abbreviations import AbbreviationIndex
from bib_librarian.config import save_config
from bib_librarian.dedupe import DuplicateGroup, find_duplicates
from bib_librarian.history import History
from bib_librarian.keygen import KeyConfig, generate_key
from bib_librarian.merger import merge_into_source
from bib_librarian.model import Library, Record
from bib_librarian.storage import BibLoader, BibParseError, save_library

logger = logging.getLogger(__name__)


class Session:
    def __init__(
        self,
        config: KeyConfig | None = None,
        index: AbbreviationIndex | None = None,
        config_path: str | Path | None = None,
    ) -> None:
        self.config = config or KeyConfig()
        self.index = index or AbbreviationIndex.default()
        self.config_path = config_path
        self.library = Library()
        self.history = History()
        self.loader = BibLoader()
        self.path: Path | None = None
        self.source_text = ""
        self.dirty = False

    @contextmanager
    def _mutation(self) -> Iterator[None]:
        self.history.push(self.library)
        try:
            yield
        except Exception:
            self.history.discard_last()
            raise
        if self.library == self.history.undo_stack[-1]:
            self.history.discard_last()
        else:
            self.dirty = True

    # ------------- File Operations -------------

    def load_file(self, path: str | Path) -> int:
        """Replace the library with the contents of ``path``.

        On a read or parse error the current state is left untouched.
        Returns the number of records loaded.
        """
        library, text = self.loader.load_file(path)
        self.library = library
        self.source_text = text
        self.path = Path(path)
        self.history.clear()
        self.dirty = False
        logger.info("Loaded %d entries from %s", len(library), path)
        return len(library)

    def render(self) -> str:
        """The text ``save`` would write, without touching the disk."""
        return merge_into_source(self.source_text, self.library, self.config).strip() + "\n"

    def save(self, path: str | Path | None = None) -> Path:
        """Write the library, preserving untouched parts of the source file.

        Raises:
            ValueError: when no path is known.
            OSError: when the file cannot be written.
        """
        target = Path(path) if path else self.path
        if target is None:
            raise ValueError("No file path to save to")
        self.source_text = save_library(target, self.library, self.config, self.source_text)
        self.path = target
        self.dirty = False
        return target

    # ------------- Adding Records -------------

    def _prepare(self, record: Record, rekey: bool) -> Record:
        if self.config.abbreviate_journals:
            journal = record.get_plain("journal")
            if journal:
                record.set_field("journal", self.index.abbreviate(journal))
        if rekey or not record.key:
            record.key = generate_key(record, self.config)
        return record

    def add_record(self, record: Record, rekey: bool = False) -> str:
        """Add a copy of ``record`` and return the key it was stored under."""
        with self._mutation():
            key = self.library.add(self._prepare(record.copy(), rekey), self.config)
        logger.info("Added entry: %s", key)
        return key

    def add_records(self, records: Library, rekey: bool = False) -> list[str]:
        keys = []
        with self._mutation():
            for record in records:
                keys.append(self.library.add(self._prepare(record.copy(), rekey), self.config))
        logger.info("Added %d entries", len(keys))
        return keys

    def import_text(self, text: str) -> list[str]:
        """Add records pasted as BibTeX text, keeping their keys where free.

        Raises BibParseError without changing the library when the text is invalid.
        """
        if not text.strip():
            return []
        parsed = self.loader.loads(text)
        return self.add_records(parsed)

    def import_fetched(self, records: Library) -> list[str]:
        """Add records delivered by a network lookup; they get generated keys."""
        if not len(records):
            logger.info("Lookup returned no entries")
            return []
        return self.add_records(records, rekey=True)

    # ------------- Editing -------------

    def delete(self, key: str) -> bool:
        with self._mutation():
            removed = self.library.remove(key)
        if removed is None:
            logger.warning("No entry with key %s", key)
            return False
        logger.info("Deleted entry: %s", key)
        return True

    def replace_entry(self, original_key: str, text: str) -> str:
        """Replace one record with the first entry parsed from ``text``."""
        parsed = list(self.loader.loads(text))
        if not parsed:
            raise BibParseError("No entry found in edited text")
        record = parsed[0]
        with self._mutation():
            if original_key in self.library:
                self.library.replace(original_key, record)
                key = record.key
            else:
                key = self.library.add(record, self.config)
        logger.info("Entry updated: %s", key)
        return key

    def clear(self) -> None:
        with self._mutation():
            self.library.clear()
        logger.info("Library cleared.")

    def regenerate_keys(self) -> int:
        """Re-key every record from the current config, in library order."""
        records = list(self.library)
        with self._mutation():
            rebuilt = Library()
            for record in records:
                record.key = generate_key(record, self.config)
                rebuilt.add(record, self.config)
            self.library = rebuilt
        logger.info("Regenerated keys for %d entries.", len(records))
        return len(records)

    def abbreviate_all_journals(self) -> int:
        """Abbreviate every journal name; returns how many changed."""
        changed = 0
        with self._mutation():
            for record in self.library:
                journal = record.get_plain("journal")
                if not journal:
                    continue
                abbr = self.index.abbreviate(journal)
                if abbr and abbr != journal:
                    record.set_field("journal", abbr)
                    changed += 1
        logger.info("Abbreviated %d journal name(s).", changed)
        return changed

    def unabbreviate_all_journals(self) -> int:
        """Expand every journal abbreviation found in the dictionary."""
        changed = 0
        with self._mutation():
            for record in self.library:
                journal = record.get_plain("journal")
                if not journal:
                    continue
                full = self.index.unabbreviate(journal)
                if full and full != journal:
                    record.set_field("journal", full)
                    changed += 1
        logger.info("Expanded %d journal name(s).", changed)
        return changed

    def find_duplicates(self) -> list[DuplicateGroup]:
        groups = find_duplicates(self.library)
        if groups:
            logger.info("Found %d duplicate group(s).", len(groups))
        else:
            logger.info("Library clean. No duplicates found.")
        return groups

    # ------------- Config & History -------------

    def update_config(self, config: KeyConfig) -> None:
        self.config = config
        try:
            save_config(config, self.config_path)
        except OSError as e:
            logger.warning("Could not save preferences: %s", e)

    def undo(self) -> bool:
        previous = self.history.undo(self.library)
        if previous is None:
            return False
        self.library = previous
        self.dirty = True
        logger.info("Undo successful.")
        return True

    def redo(self) -> bool:
        following = self.history.redo(self.library)
        if following is None:
            return False
        self.library = following
        self.dirty = True
        logger.info("Redo successful.")
        return True
