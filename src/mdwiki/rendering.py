"""Markdown を HTML へ変換し、出力ファイルを書き出すユーティリティ。"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Sequence

import markdown
from charset_normalizer import from_bytes as detect_charset

from .config import RenderConfig
from .discovery import SourceDocument
from .errors import RenderError
from .ledger import HashLedger, compute_hash, is_fresh
from .paths import OutputDocument, map_output_path, prepare_output_path

logger = logging.getLogger(__name__)


Renderer = Callable[[str], str]


@dataclass(slots=True)
class RenderOutcome:
    """1 ファイル分の処理結果。"""

    source: SourceDocument
    output: OutputDocument
    rendered: bool


class MarkdownRenderer:
    """Python-Markdown による副作用のない変換関数。"""

    def __init__(self, extensions: Sequence[str] = ("extra", "toc")) -> None:
        self._extensions = list(extensions)

    def __call__(self, text: str) -> str:
        # markdown.markdown は呼び出しごとに新しいインスタンスを作るためスレッド間で共有できる
        return markdown.markdown(text, extensions=self._extensions)


def decode_source(data: bytes) -> str:
    """入力ファイルのバイト列を文字列へ変換します。"""

    if not data:
        return ""
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        logger.debug("UTF-8 として解釈できないため文字コードを推定します。")
    encoding = "utf-8"
    try:
        result = detect_charset(data).best()
    except Exception:
        logger.debug("文字コード判定に失敗したため UTF-8 を使用します。", exc_info=True)
        result = None
    if result is not None and result.encoding:
        encoding = result.encoding
    try:
        return data.decode(encoding, errors="replace")
    except LookupError:
        logger.debug("未知のエンコーディング %s のため UTF-8 フォールバックを使用します。", encoding)
    return data.decode("utf-8", errors="replace")


class DocumentProcessor:
    """入力 1 件ごとに鮮度を判定し、必要な場合のみ変換して書き出します。"""

    def __init__(
        self,
        input_root: Path,
        output_root: Path,
        config: RenderConfig,
        renderer: Renderer | None = None,
    ) -> None:
        self._input_root = input_root
        self._output_root = output_root
        self._config = config
        self._renderer = renderer or MarkdownRenderer(config.markdown_extensions)
        self._logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def process(self, doc: SourceDocument, ledger: HashLedger) -> RenderOutcome:
        """``doc`` を処理します。

        読み込み・変換・書き込みの失敗は :class:`RenderError`、出力パスの導出失敗は
        :class:`PathMappingError` として送出され、他のファイルの処理には影響しません。
        ``ledger`` は読み取り専用で参照し、結果は ``doc.content_hash`` にのみ反映します。
        """

        try:
            data = doc.path.read_bytes()
        except OSError as exc:
            raise RenderError(f"入力ファイルを読み込めませんでした: {doc.path} ({exc})", path=doc.path) from exc

        output = map_output_path(
            doc.path, self._input_root, self._output_root, self._config.target_suffix
        )
        digest = compute_hash(data)
        stored = None if self._config.force else ledger.lookup(output.source_key)

        if is_fresh(stored, digest):
            if not self._config.verify_outputs or output.absolute_path.is_file():
                doc.content_hash = digest
                self._logger.debug("ハッシュが一致するため変換をスキップします: %s", doc.path)
                return RenderOutcome(source=doc, output=output, rendered=False)
            self._logger.info("出力ファイルが見つからないため再生成します: %s", output.relative_path)

        target = prepare_output_path(output)
        text = decode_source(data)
        try:
            html = self._renderer(text)
        except Exception as exc:
            raise RenderError(f"HTML への変換に失敗しました: {doc.path} ({exc})", path=doc.path) from exc
        try:
            target.write_text(html, encoding="utf-8")
        except OSError as exc:
            raise RenderError(f"出力ファイルを書き込めませんでした: {target} ({exc})", path=target) from exc

        doc.content_hash = digest
        self._logger.info("変換しました: %s -> %s", doc.path, output.relative_path)
        return RenderOutcome(source=doc, output=output, rendered=True)
