"""Source-preserving merge of a Library back into bibliography text.

The span scanner finds where each record block lives in the original file.
The merger then rewrites only those blocks: records still in the library are
re-emitted through the formatter, removed records disappear, and everything
between blocks (comments, blank lines, @string definitions) is copied through
byte for byte. New records are appended at the end.

Known limitation: delimiter depth is counted lexically. A field value with an
unbalanced or quoted ``}`` (or ``)`` for parenthesised entries) will throw the
scan off for that block. Well-formed files are not affected.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass

from bib_librarian.formatter import format_entry
from bib_librarian.keygen import KeyConfig
from bib_librarian.model import Library, Record

logger = logging.getLogger(__name__)

__all__ = [
    "Span",
    "iter_entry_spans",
    "scan_entry_spans",
    "merge_into_source",
    "generate_clean_bibliography",
]

# Block types that are not records; their text is left alone
NON_RECORD_TYPES = frozenset({"comment", "string", "preamble"})

_DELIMITERS = {"{": "}", "(": ")"}


@dataclass(frozen=True)
class Span:
    """Half-open [start, end) range of one record block in a source text."""

    key: str
    start: int
    end: int


def iter_entry_spans(text: str) -> Iterator[Span]:
    """Yield record spans in file order.

    Blocks with an empty key or whose delimiters never balance are skipped.
    """
    n = len(text)
    pos = 0
    while True:
        start = text.find("@", pos)
        if start == -1:
            return
        i = start + 1

        # entry type
        while i < n and not text[i].isspace() and text[i] not in _DELIMITERS:
            i += 1
        entry_type = text[start + 1 : i].strip().lower()
        while i < n and text[i].isspace():
            i += 1

        if i >= n or text[i] not in _DELIMITERS:
            pos = start + 1
            continue
        open_delim = text[i]
        close_delim = _DELIMITERS[open_delim]
        i += 1

        # key
        while i < n and text[i].isspace():
            i += 1
        key_start = i
        while i < n and text[i] != "," and text[i] != close_delim and not text[i].isspace():
            i += 1
        key = text[key_start:i].strip()

        # matching close
        depth = 1
        end = None
        while i < n:
            ch = text[i]
            if ch == open_delim:
                depth += 1
            elif ch == close_delim:
                depth -= 1
                if depth == 0:
                    end = i + 1
                    break
            i += 1

        if end is None:
            logger.debug("Unbalanced block at offset %d dropped from span map", start)
            return
        pos = end
        if entry_type in NON_RECORD_TYPES or not key:
            continue
        yield Span(key, start, end)


def scan_entry_spans(text: str) -> dict[str, Span]:
    """Map each record key found in ``text`` to its span."""
    return {span.key: span for span in iter_entry_spans(text)}


def generate_clean_bibliography(library: Library, config: KeyConfig) -> str:
    """Format every record, one blank line apart."""
    if not len(library):
        return ""
    return "\n\n".join(format_entry(record, config) for record in library) + "\n"


def _match_record(key: str, library: Library, emitted: set[str]) -> Record | None:
    record = library.get(key)
    if record is not None:
        return record if key not in emitted else None
    lowered = key.lower()
    for candidate in library:
        if candidate.key not in emitted and candidate.key.lower() == lowered:
            return candidate
    return None


def merge_into_source(original: str, library: Library, config: KeyConfig) -> str:
    """Rewrite ``original`` so it holds exactly the records of ``library``.

    Text outside record spans is preserved verbatim and in order. Each span
    whose key (matched exactly, else case-insensitively) is still in the
    library is replaced by the formatted record; other spans are removed.
    Records not matched by any span are appended in library order.
    """
    spans = sorted(iter_entry_spans(original), key=lambda s: s.start)
    if not spans and len(library):
        return generate_clean_bibliography(library, config)
    logger.debug("Merging %d records into %d spans", len(library), len(spans))

    out: list[str] = []
    last = 0
    emitted: set[str] = set()
    for span in spans:
        out.append(original[last : span.start])
        record = _match_record(span.key, library, emitted)
        if record is not None:
            out.append(format_entry(record, config))
            emitted.add(record.key)
        last = span.end
    out.append(original[last:])

    output = "".join(out)
    for record in library:
        if record.key in emitted:
            continue
        if not output.endswith("\n"):
            output += "\n"
        output += format_entry(record, config)
    return output
