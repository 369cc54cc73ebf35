"""Tests for BibTeX loading, backups and atomic saves."""

from __future__ import annotations

import os
import stat
from unittest.mock import patch

import pytest

from bib_librarian import BibLoader, BibParseError, Library, create_backup, save_library
from bib_librarian.storage import atomic_write, backup_path_for


class TestBibLoader:
    """Tests for BibLoader.loads."""

    def test_loads_entries_in_order(self, loader, sample_bib):
        library = loader.loads(sample_bib)
        assert library.keys() == ["Alpha2020", "Beta2021", "Gamma2019"]
        gamma = library.get("Gamma2019")
        assert gamma.entry_type == "book"
        assert gamma.get_plain("author") == "Gamma, Gil"

    def test_protected_text_kept(self, loader):
        library = loader.loads("@article{k,\n  title = {The {DNA} of $\\alpha$-helices},\n}\n")
        assert library.get("k").fields["title"].render() == "The {DNA} of $\\alpha$-helices"

    def test_quoted_and_bare_values(self, loader):
        library = loader.loads('@article{k,\n  title = "Quoted Title",\n  year = 2020\n}\n')
        record = library.get("k")
        assert record.get_plain("title") == "Quoted Title"
        assert record.get_plain("year") == "2020"

    def test_fresh_parser_per_call(self, loader):
        loader.loads("@misc{a, title = {A}}\n")
        assert loader.loads("@misc{b, title = {B}}\n").keys() == ["b"]

    def test_duplicate_keys_are_renamed(self, loader, caplog):
        with caplog.at_level("WARNING"):
            library = loader.loads("@misc{k, title = {A}}\n\n@misc{k, title = {B}}\n")
        assert library.keys() == ["k", "ka"]
        assert "renamed" in caplog.text

    def test_no_entries(self, loader):
        assert len(loader.loads("% just a comment\n")) == 0
        assert len(loader.loads("")) == 0

    def test_truncated_entry_raises(self, loader):
        with pytest.raises(BibParseError):
            loader.loads("@article{broken, title = {oops")

    def test_partially_unparsable_text_raises(self, loader):
        text = "@article{good, title = {Good}}\n\n@article{bad, title {Broken}}\n"
        with pytest.raises(BibParseError, match="bad"):
            loader.loads(text)

    def test_load_file_returns_text(self, loader, sample_path, sample_bib):
        library, text = loader.load_file(sample_path)
        assert text == sample_bib
        assert len(library) == 3

    def test_load_missing_file(self, loader, tmp_path):
        with pytest.raises(OSError):
            loader.load_file(tmp_path / "missing.bib")

    def test_load_non_utf8_file(self, loader, tmp_path):
        path = tmp_path / "latin1.bib"
        path.write_bytes("@misc{k, title = {Caf\u00e9}}\n".encode("latin-1"))
        with pytest.raises(BibParseError, match="UTF-8"):
            loader.load_file(path)


class TestBackup:
    """Tests for .bak creation."""

    def test_backup_path(self, tmp_path):
        assert backup_path_for(tmp_path / "refs.bib") == tmp_path / "refs.bib.bak"
        assert backup_path_for(tmp_path / "refs") == tmp_path / "refs.bak"

    def test_create_backup(self, sample_path, sample_bib):
        backup = create_backup(sample_path)
        assert backup.read_text(encoding="utf-8") == sample_bib

    def test_create_backup_missing_source(self, tmp_path):
        assert create_backup(tmp_path / "missing.bib") is None

    def test_create_backup_failure_is_logged(self, sample_path, caplog):
        with patch("bib_librarian.storage.shutil.copyfile", side_effect=OSError("disk full")):
            with caplog.at_level("WARNING"):
                assert create_backup(sample_path) is None
        assert "Could not create backup" in caplog.text


class TestAtomicWrite:
    def test_writes_text(self, tmp_path):
        path = tmp_path / "out.bib"
        atomic_write(path, "hello\n")
        assert path.read_text(encoding="utf-8") == "hello\n"
        assert os.listdir(tmp_path) == ["out.bib"]

    def test_failure_leaves_target_and_no_temp(self, tmp_path):
        path = tmp_path / "out.bib"
        path.write_text("old\n", encoding="utf-8")
        with patch("bib_librarian.storage.os.replace", side_effect=OSError("nope")):
            with pytest.raises(OSError):
                atomic_write(path, "new\n")
        assert path.read_text(encoding="utf-8") == "old\n"
        assert os.listdir(tmp_path) == ["out.bib"]

    def test_keeps_permissions_of_existing_file(self, tmp_path):
        path = tmp_path / "out.bib"
        path.write_text("old\n", encoding="utf-8")
        path.chmod(0o644)
        atomic_write(path, "new\n")
        assert stat.S_IMODE(path.stat().st_mode) == 0o644


class TestSaveLibrary:
    """Tests for save_library."""

    def test_save_preserves_source_and_backs_up(self, sample_path, sample_bib, loader, key_config):
        library, text = loader.load_file(sample_path)
        library.remove("Beta2021")
        written = save_library(sample_path, library, key_config, text)
        assert sample_path.read_text(encoding="utf-8") == written
        assert "Beta2021" not in written
        assert "% about beta" in written
        assert (sample_path.parent / "library.bib.bak").read_text(encoding="utf-8") == sample_bib

    def test_save_new_file_ends_with_newline(self, tmp_path, make_record, key_config):
        path = tmp_path / "new.bib"
        written = save_library(path, Library([make_record(key="a")]), key_config)
        assert written.endswith("}\n")
        assert not written.endswith("\n\n")
        assert not (tmp_path / "new.bib.bak").exists()

    def test_save_keeps_file_mode(self, sample_path, loader, key_config):
        sample_path.chmod(0o644)
        library, text = loader.load_file(sample_path)
        library.remove("Alpha2020")
        save_library(sample_path, library, key_config, text)
        assert stat.S_IMODE(sample_path.stat().st_mode) == 0o644

    def test_save_survives_backup_failure(self, sample_path, loader, key_config):
        library, text = loader.load_file(sample_path)
        with patch("bib_librarian.storage.shutil.copyfile", side_effect=OSError("denied")):
            save_library(sample_path, library, key_config, text)
        assert "Alpha2020" in sample_path.read_text(encoding="utf-8")
