"""Canonical single-record BibTeX formatter."""

from __future__ import annotations

import re

from bib_librarian.keygen import KeyConfig
from bib_librarian.model import Record

# a line break plus the indentation around it, as the parser re-flows it
_LINE_BREAK_RE = re.compile(r"[ \t]*\r?\n\s*")


def normalize_value(value: str) -> str:
    """Strip a rendered field value and drop indentation around line breaks."""
    return _LINE_BREAK_RE.sub("\n", value.strip())


def format_entry(record: Record, config: KeyConfig) -> str:
    """Render ``record`` as one BibTeX block.

    Fields listed in ``config.field_order`` come first in that order; the rest
    follow sorted by name. Every field line ends with a comma. Values are
    written in the form the parser reads them back, so formatting, parsing
    and formatting again gives identical text.

        @article{Smith2024Quantum,
            author = {Smith, John},
            title = {Quantum},
        }
    """
    indent = config.indent
    lines = [f"@{record.entry_type.lower()}{{{record.key},"]

    names = [name for name in config.field_order if name in record.fields]
    names = list(dict.fromkeys(names))
    names += [name for name in sorted(record.fields) if name not in names]
    for name in names:
        lines.append(f"{indent}{name} = {{{normalize_value(record.fields[name].render())}}},")

    lines.append("}")
    return "\n".join(lines).strip()
