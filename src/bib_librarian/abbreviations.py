"""Journal-name abbreviation and expansion.

Two tiers:
1. Exact map: whole journal name -> official abbreviation
   ("Physical Review B" -> "Phys. Rev. B").
2. Word map (LTWA-style): single word -> abbreviation, applied word by word
   when the exact map has no entry. Function words are dropped.

Expansion only uses the exact map, looked up by lowercased abbreviation and by
its punctuation-free form, so "phys rev b" resolves too.

The tables are built once into an immutable AbbreviationIndex and passed to
whoever needs them.
"""

from __future__ import annotations

import csv
import io
import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType

from bib_librarian.utils import normalize_key, to_title_case

logger = logging.getLogger(__name__)

__all__ = [
    "STOPWORDS",
    "DEFAULT_JOURNALS",
    "STARTER_LTWA",
    "load_layered",
    "read_journal_file",
    "read_word_file",
    "parse_word_csv",
    "AbbreviationIndex",
]

STOPWORDS = frozenset({"of", "the", "and", "in", "for", "on", "to", "with", "a", "an", "at", "by", "from"})

DEFAULT_JOURNALS: dict[str, str] = {
    "Physical Review A": "Phys. Rev. A",
    "Physical Review B": "Phys. Rev. B",
    "Physical Review C": "Phys. Rev. C",
    "Physical Review D": "Phys. Rev. D",
    "Physical Review E": "Phys. Rev. E",
    "Physical Review Letters": "Phys. Rev. Lett.",
    "Physical Review X": "Phys. Rev. X",
    "Reviews of Modern Physics": "Rev. Mod. Phys.",
    "Journal of the American Chemical Society": "J. Am. Chem. Soc.",
    "Journal of Chemical Physics": "J. Chem. Phys.",
    "Journal of Physical Chemistry A": "J. Phys. Chem. A",
    "Journal of Physical Chemistry B": "J. Phys. Chem. B",
    "Journal of Physical Chemistry C": "J. Phys. Chem. C",
    "Journal of Physical Chemistry Letters": "J. Phys. Chem. Lett.",
    "Journal of Applied Physics": "J. Appl. Phys.",
    "Applied Physics Letters": "Appl. Phys. Lett.",
    "Angewandte Chemie International Edition": "Angew. Chem. Int. Ed.",
    "Chemical Reviews": "Chem. Rev.",
    "Chemical Society Reviews": "Chem. Soc. Rev.",
    "Nature": "Nature",
    "Nature Communications": "Nat. Commun.",
    "Nature Materials": "Nat. Mater.",
    "Nature Physics": "Nat. Phys.",
    "Nature Chemistry": "Nat. Chem.",
    "Nature Nanotechnology": "Nat. Nanotechnol.",
    "Science": "Science",
    "Science Advances": "Sci. Adv.",
    "Proceedings of the National Academy of Sciences": "Proc. Natl. Acad. Sci.",
    "Advanced Materials": "Adv. Mater.",
    "Advanced Functional Materials": "Adv. Funct. Mater.",
    "Nano Letters": "Nano Lett.",
    "ACS Nano": "ACS Nano",
    "Journal of Machine Learning Research": "J. Mach. Learn. Res.",
    "IEEE Transactions on Pattern Analysis and Machine Intelligence": "IEEE Trans. Pattern Anal. Mach. Intell.",
    "Communications of the ACM": "Commun. ACM",
    "Bioinformatics": "Bioinformatics",
    "Nucleic Acids Research": "Nucleic Acids Res.",
    "The New England Journal of Medicine": "N. Engl. J. Med.",
    "The Lancet": "Lancet",
}

STARTER_LTWA = """\
Word,Abbreviation
Journal,J.
American,Am.
Chemical,Chem.
Society,Soc.
Physics,Phys.
Physical,Phys.
Review,Rev.
Letters,Lett.
Nature,Nature
Science,Science
Communications,Commun.
Advanced,Adv.
Materials,Mater.
International,Int.
Research,Res.
Engineering,Eng.
Biomedical,Biomed.
Transactions,Trans.
Applied,Appl.
Proceedings,Proc.
Chemistry,Chem.
Biology,Biol.
Mathematics,Math.
Mathematical,Math.
European,Eur.
Annals,Ann.
"""


# ------------- Dictionary Loading -------------


def load_layered(embedded: Mapping[str, str], override: Mapping[str, str] | None = None) -> dict[str, str]:
    """Merge an embedded table with an optional override table.

    Keys are lowercased; override entries win on collision.
    """
    merged = {k.lower(): v for k, v in embedded.items()}
    for k, v in (override or {}).items():
        if k:
            merged[k.lower()] = v
    return merged


def parse_word_csv(text: str) -> dict[str, str]:
    """Parse a two-column ``Word,Abbreviation`` table (header row required)."""
    table: dict[str, str] = {}
    reader = csv.reader(io.StringIO(text))
    next(reader, None)
    for row in reader:
        if len(row) < 2:
            continue
        word = row[0].strip()
        if word:
            table[word] = row[1].strip()
    return table


def read_word_file(path: str | Path) -> dict[str, str] | None:
    """Read a word override table, or None when absent/unreadable."""
    path = Path(path)
    if not path.exists():
        return None
    try:
        with open(path, encoding="utf-8", newline="") as f:
            return parse_word_csv(f.read())
    except (OSError, csv.Error, UnicodeDecodeError) as e:
        logger.warning("Could not read word abbreviations %s: %s", path, e)
        return None


def read_journal_file(path: str | Path, seed: Mapping[str, str] | None = None) -> dict[str, str] | None:
    """Read a JSON journal table, or None when absent/invalid.

    When ``seed`` is given and the file does not exist, it is written first so
    the user has a file to edit.
    """
    path = Path(path)
    if not path.exists() and seed is not None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                json.dump(dict(seed), f, indent=2, ensure_ascii=False)
            logger.debug("Wrote default journal dictionary to %s", path)
        except OSError as e:
            logger.warning("Could not write journal dictionary %s: %s", path, e)
            return None
    if not path.exists():
        return None
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Could not read journal dictionary %s: %s", path, e)
        return None
    if not isinstance(data, dict):
        logger.warning("Journal dictionary %s is not a JSON object", path)
        return None
    return {str(k): str(v) for k, v in data.items()}


def _strip_non_alpha(token: str) -> str:
    start, end = 0, len(token)
    while start < end and not token[start].isalpha():
        start += 1
    while end > start and not token[end - 1].isalpha():
        end -= 1
    return token[start:end]


# ------------- Index -------------


@dataclass(frozen=True)
class AbbreviationIndex:
    """Read-only lookup tables for abbreviating and expanding journal names."""

    exact: Mapping[str, str]
    words: Mapping[str, str]
    reverse: Mapping[str, str] = field(repr=False)
    stopwords: frozenset[str] = STOPWORDS

    @classmethod
    def build(cls, exact: Mapping[str, str], words: Mapping[str, str]) -> AbbreviationIndex:
        exact_map = {k.lower(): v for k, v in exact.items()}
        reverse: dict[str, str] = {}
        for full, abbr in exact_map.items():
            reverse[abbr.lower()] = full
            reverse[normalize_key(abbr)] = full
        return cls(
            exact=MappingProxyType(exact_map),
            words=MappingProxyType({k.lower(): v for k, v in words.items()}),
            reverse=MappingProxyType(reverse),
        )

    @classmethod
    def default(cls) -> AbbreviationIndex:
        """Index built from the embedded tables only."""
        return cls.build(DEFAULT_JOURNALS, parse_word_csv(STARTER_LTWA))

    @classmethod
    def from_data_dir(cls, data_dir: str | Path) -> AbbreviationIndex:
        """Build from ``journals.json`` and ``ltwa.csv`` in ``data_dir``.

        The journal file replaces the embedded table as a whole (it is created
        from the embedded table on first run); the word file is layered over
        the embedded starter list.
        """
        data_dir = Path(data_dir)
        exact = read_journal_file(data_dir / "journals.json", seed=DEFAULT_JOURNALS)
        if exact is None:
            exact = DEFAULT_JOURNALS
        words = load_layered(parse_word_csv(STARTER_LTWA), read_word_file(data_dir / "ltwa.csv"))
        index = cls.build(exact, words)
        logger.debug("Abbreviation index: %d journals, %d words", len(index.exact), len(index.words))
        return index

    def abbreviate(self, title: str) -> str:
        """Abbreviate a journal name.

        Whole-name match first; otherwise word by word, dropping stopwords and
        keeping words that have no abbreviation. Not guaranteed reversible.
        """
        title = title.strip()
        if not title:
            return ""
        exact = self.exact.get(title.lower())
        if exact is not None:
            return exact

        out = []
        for token in title.split():
            word = _strip_non_alpha(token.lower())
            if word in self.stopwords:
                continue
            out.append(self.words.get(word, token))
        return " ".join(out)

    def unabbreviate(self, text: str) -> str | None:
        """Expand an abbreviation to the full journal name in title case."""
        full = self.reverse.get(text.lower())
        if full is None:
            full = self.reverse.get(normalize_key(text))
        if full is None:
            return None
        return to_title_case(full)
