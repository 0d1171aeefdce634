from __future__ import annotations

from pathlib import Path

import pytest

from mdwiki import discovery
from mdwiki.discovery import discover_sources
from mdwiki.errors import InputDirectoryError, ScanError


def test_discover_sources_finds_nested_markdown(tmp_path: Path) -> None:
    root = tmp_path / "input"
    (root / "a" / "b").mkdir(parents=True)
    top = root / "index.md"
    nested = root / "a" / "b" / "deep.MD"
    ignored = root / "a" / "notes.txt"
    for path in (top, nested, ignored):
        path.write_text("text", encoding="utf-8")

    documents = discover_sources(root)
    paths = [document.path for document in documents]

    assert top in paths
    assert nested in paths
    assert ignored not in paths
    assert all(document.content_hash == "" for document in documents)


def test_discover_sources_supports_multiple_suffixes(tmp_path: Path) -> None:
    root = tmp_path / "input"
    root.mkdir()
    (root / "a.md").write_text("a", encoding="utf-8")
    (root / "b.markdown").write_text("b", encoding="utf-8")

    documents = discover_sources(root, suffixes=(".md", ".markdown"))

    assert sorted(document.path.name for document in documents) == ["a.md", "b.markdown"]


def test_discover_sources_skips_excluded_directories(tmp_path: Path) -> None:
    root = tmp_path / "input"
    output = root / "output"
    output.mkdir(parents=True)
    (root / "page.md").write_text("page", encoding="utf-8")
    (output / "stale.md").write_text("stale", encoding="utf-8")

    documents = discover_sources(root, exclude=(output,))

    assert [document.path.name for document in documents] == ["page.md"]


def test_discover_sources_rejects_missing_root(tmp_path: Path) -> None:
    with pytest.raises(InputDirectoryError):
        discover_sources(tmp_path / "missing")


def test_discover_sources_rejects_file_root(tmp_path: Path) -> None:
    file_root = tmp_path / "file.md"
    file_root.write_text("x", encoding="utf-8")

    with pytest.raises(InputDirectoryError):
        discover_sources(file_root)


def test_discover_sources_reports_unreadable_directory(tmp_path: Path, monkeypatch) -> None:
    root = tmp_path / "input"
    root.mkdir()

    def fake_walk(top, onerror=None):
        onerror(PermissionError(13, "Permission denied", str(top / "locked")))
        return iter(())

    monkeypatch.setattr(discovery.os, "walk", fake_walk)

    with pytest.raises(ScanError) as exc:
        discover_sources(root)

    assert exc.value.path == root / "locked"
