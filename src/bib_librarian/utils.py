"""Shared text utilities for the reference library.

Includes text normalization, BibTeX author-name handling, and the
title-case helper used when expanding journal abbreviations.
"""

from __future__ import annotations

import re

# ------------- Text Normalization -------------


def collapse_whitespace(text: str) -> str:
    """Collapse runs of whitespace into single spaces and strip the ends."""
    return re.sub(r"\s+", " ", text or "").strip()


def normalize_key(text: str) -> str:
    """Lowercase and keep only alphanumeric characters.

    'Phys. Rev. B' and 'phys rev b' both become 'physrevb'.
    """
    return "".join(c.lower() for c in text or "" if c.isalnum())


def keep_alphanumeric(text: str) -> str:
    """Drop every character that is not alphanumeric, keeping case."""
    return "".join(c for c in text or "" if c.isalnum())


def to_title_case(text: str) -> str:
    """Capitalize the first letter of each word, leaving the rest unchanged."""
    words = []
    for word in text.split():
        words.append(word[:1].upper() + word[1:])
    return " ".join(words)


# ------------- Author Handling -------------


def split_authors_bibtex(author_field: str) -> list[str]:
    """Split BibTeX 'A and B and C' author string into individual names.

    Only splits on ``and`` at brace depth zero, so corporate authors such as
    ``{Barnes and Noble}`` stay in one piece.
    """
    if not author_field:
        return []
    parts: list[str] = []
    depth = 0
    current: list[str] = []
    i = 0
    n = len(author_field)
    while i < n:
        ch = author_field[i]
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth = max(depth - 1, 0)
        elif depth == 0 and ch.isspace():
            m = re.match(r"\s+and\s+", author_field[i:], flags=re.IGNORECASE)
            if m:
                parts.append("".join(current))
                current = []
                i += m.end()
                continue
        current.append(ch)
        i += 1
    parts.append("".join(current))
    return [p.strip() for p in parts if p.strip()]


def last_name_from_person(name: str) -> str:
    """Extract the family name from a BibTeX person name, keeping its case.

    Handles both 'Family, Given' and 'Given Family' formats. Brace groups such
    as '{van Dyke}' are treated as a single token.
    """
    name = name.strip()
    if not name:
        return ""
    if "," in name:
        last = name.split(",", 1)[0].strip()
    else:
        toks = _split_top_level(name)
        last = toks[-1] if toks else ""
    return last.replace("{", "").replace("}", "").strip()


def _split_top_level(text: str) -> list[str]:
    toks: list[str] = []
    depth = 0
    current: list[str] = []
    for ch in text:
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth = max(depth - 1, 0)
        if ch.isspace() and depth == 0:
            if current:
                toks.append("".join(current))
                current = []
            continue
        current.append(ch)
    if current:
        toks.append("".join(current))
    return toks
