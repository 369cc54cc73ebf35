"""Shared fixtures for bib_librarian tests."""

from __future__ import annotations

import pytest

from bib_librarian import AbbreviationIndex, BibLoader, KeyConfig, Library, Record, Session

ALPHA_BLOCK = """@article{Alpha2020,
    author = {Alpha, Ann},
    title = {First Paper on Graphs},
    year = {2020},
}"""

BETA_BLOCK = """@article{Beta2021,
    author = {Beta, Bob},
    title = {Second Paper on Trees},
    year = {2021},
}"""

GAMMA_BLOCK = """@book{Gamma2019,
    author = {Gamma, Gil},
    title = {Third Book on Forests},
    year = {2019},
}"""

SAMPLE_BIB = f"""% My library
{ALPHA_BLOCK}

% about beta
{BETA_BLOCK}

{GAMMA_BLOCK}
"""


@pytest.fixture
def make_record():
    """Factory fixture for creating records from raw field strings."""

    def _make_record(entry_type: str = "article", key: str = "testkey", **fields: str) -> Record:
        values = {
            "title": "Example Title",
            "author": "Doe, Jane and Smith, John",
            "year": "2020",
        }
        values.update(fields)
        return Record.from_fields(entry_type, key, **{k: v for k, v in values.items() if v is not None})

    return _make_record


@pytest.fixture
def key_config():
    """Default key and format configuration."""
    return KeyConfig()


@pytest.fixture
def index():
    """Abbreviation index built from the embedded tables."""
    return AbbreviationIndex.default()


@pytest.fixture
def loader():
    return BibLoader()


@pytest.fixture
def sample_bib():
    return SAMPLE_BIB


@pytest.fixture
def sample_path(tmp_path):
    """A three-entry .bib file with comments between entries."""
    path = tmp_path / "library.bib"
    path.write_text(SAMPLE_BIB, encoding="utf-8")
    return path


@pytest.fixture
def sample_library(loader):
    return loader.loads(SAMPLE_BIB)


@pytest.fixture
def session(tmp_path, key_config, index):
    """A session whose config file lives in tmp_path."""
    return Session(config=key_config, index=index, config_path=tmp_path / "config.yaml")


@pytest.fixture
def empty_library():
    return Library()


@pytest.fixture
def bib_blocks():
    """The individual entry blocks of the sample file, by name."""
    return {"alpha": ALPHA_BLOCK, "beta": BETA_BLOCK, "gamma": GAMMA_BLOCK}
