# test_sources_fs.py
# SPDX-License-Identifier: MIT
import os

import pytest

from docweave.core.errors import FileNotFound, FilePathError, FileReadError
from docweave.sources.fs import GlobFileLister, LocalFileReader


def _tree(root):
    (root / "docs" / "sub").mkdir(parents=True)
    (root / "docs" / "a.md").write_text("a")
    (root / "docs" / "sub" / "b.md").write_text("b")
    (root / "docs" / "note.txt").write_text("n")
    (root / "docs" / ".hidden.md").write_text("h")
    (root / "node_modules").mkdir()
    (root / "node_modules" / "c.md").write_text("c")


def test_glob_lister_recursive_sorted_and_deduped(tmp_path):
    _tree(tmp_path)
    lister = GlobFileLister(root_dir=tmp_path)
    files = lister.list_files(["**/*.md", "docs/*.md"])
    rel = [os.path.relpath(f, tmp_path).replace(os.sep, "/") for f in files]
    assert rel == ["docs/a.md", "docs/sub/b.md"]


def test_glob_lister_hidden_files_opt_in(tmp_path):
    _tree(tmp_path)
    files = GlobFileLister(root_dir=tmp_path, include_hidden=True).list_files("docs/*.md")
    assert any(f.endswith(".hidden.md") for f in files)


def test_glob_lister_relative_to_cwd(tmp_path, monkeypatch):
    _tree(tmp_path)
    monkeypatch.chdir(tmp_path)
    assert GlobFileLister().list_files(["docs/*.md"]) == ["docs/a.md"]


def test_glob_lister_no_matches_and_empty_pattern(tmp_path):
    lister = GlobFileLister(root_dir=tmp_path)
    assert lister.list_files(["*.md"]) == []
    with pytest.raises(FilePathError):
        lister.list_files([""])


def test_reader_reads_and_maps_errors(tmp_path):
    good = tmp_path / "a.md"
    good.write_text("héllo", encoding="utf-8")
    reader = LocalFileReader()
    assert reader.read_text(str(good)) == "héllo"

    with pytest.raises(FileNotFound):
        reader.read_text(str(tmp_path / "missing.md"))

    bad = tmp_path / "bad.md"
    bad.write_bytes(b"\xff\xfe\xfa")
    with pytest.raises(FileReadError):
        reader.read_text(str(bad))


def test_reader_size_limit(tmp_path):
    big = tmp_path / "big.md"
    big.write_text("x" * 20)
    with pytest.raises(FileReadError, match="exceeds"):
        LocalFileReader(max_bytes=10).read_text(str(big))
