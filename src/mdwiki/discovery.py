"""入力ディレクトリから Markdown ファイルを収集するユーティリティ。"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Sequence

from .errors import InputDirectoryError, ScanError

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SourceDocument:
    """変換対象となる入力ファイル 1 件。"""

    path: Path
    content_hash: str = ""


def discover_sources(
    root: Path,
    suffixes: Sequence[str] = (".md",),
    exclude: Iterable[Path] = (),
) -> list[SourceDocument]:
    """``root`` 以下を再帰的に走査し、対象拡張子のファイルを返します。

    並び順は表示用にソートしていますが、後続処理は順序に依存しません。
    ``exclude`` に含まれるディレクトリ (入力配下に置かれた出力先など) は走査しません。
    """

    if not root.exists():
        raise InputDirectoryError(f"入力ディレクトリが見つかりません: {root}", path=root)
    if not root.is_dir():
        raise InputDirectoryError(f"入力パスはディレクトリではありません: {root}", path=root)

    wanted = {suffix.lower() for suffix in suffixes}
    excluded = {_resolve_quietly(path) for path in exclude}

    def on_error(error: OSError) -> None:
        raise ScanError(
            f"ディレクトリを読み取れませんでした: {error.filename} ({error.strerror})",
            path=error.filename,
        ) from error

    documents: list[SourceDocument] = []
    for dirpath, dirnames, filenames in os.walk(root, onerror=on_error):
        current = Path(dirpath)
        if excluded:
            dirnames[:] = [
                name for name in dirnames if _resolve_quietly(current / name) not in excluded
            ]
        for name in filenames:
            path = current / name
            if path.suffix.lower() not in wanted:
                continue
            if not path.is_file():
                continue
            documents.append(SourceDocument(path=path))

    documents.sort(key=lambda document: document.path.as_posix())
    logger.debug("%s 以下で %d 件のファイルを検出しました。", root, len(documents))
    return documents


def _resolve_quietly(path: Path) -> Path:
    try:
        return path.resolve()
    except OSError:
        return path.absolute()
