"""mdwiki のビルド処理で送出される例外群。"""

from __future__ import annotations

from pathlib import Path
from typing import Any


class WikiError(RuntimeError):
    """mdwiki が送出する例外の基底クラス。"""

    def __init__(self, message: str, *, path: Path | str | None = None) -> None:
        self.path = Path(path) if path is not None else None
        super().__init__(message)


class InputDirectoryError(WikiError):
    """入力ディレクトリが存在しない、またはディレクトリではない場合の例外。"""


class ScanError(WikiError):
    """ディレクトリ走査中に読み取りへ失敗した場合の例外。"""


class EmptyInputError(WikiError):
    """処理対象の Markdown ファイルが 1 件も見つからなかった場合の例外。"""


class PathMappingError(WikiError):
    """入力パスから出力パスを導出できなかった場合の例外。"""


class RenderError(WikiError):
    """読み込み・変換・書き込みのいずれかに失敗した場合の例外。"""


class LedgerError(WikiError):
    """ハッシュ台帳を永続化できなかった場合の例外。

    ビルド後の保存で失敗した場合、``result`` には保存前に集計した BuildResult が入ります。
    """

    result: Any = None
