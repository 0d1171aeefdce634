"""index.html が生成されなかった場合に一覧ページを作成するユーティリティ。"""

from __future__ import annotations

import html
import logging
from pathlib import Path
from typing import Iterable

from .config import INDEX_NAME
from .errors import RenderError
from .paths import OutputDocument

logger = logging.getLogger(__name__)


INDEX_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<title>Index</title>
</head>
<body>
<h1>Index</h1>
<ul>
{entries}</ul>
</body>
</html>
"""


def build_index_html(outputs: Iterable[OutputDocument]) -> str:
    """出力ファイル 1 件につき 1 行のリンクを持つ一覧ページを組み立てます。"""

    ordered = sorted(outputs, key=lambda output: output.relative_path.as_posix())
    entries = "".join(
        '<li><a href="{href}">{name}</a></li>\n'.format(
            href=html.escape(output.relative_path.as_posix(), quote=True),
            name=html.escape(output.name),
        )
        for output in ordered
    )
    return INDEX_TEMPLATE.format(entries=entries)


def ensure_index(output_root: Path, outputs: Iterable[OutputDocument]) -> bool:
    """ルートに index.html が無い場合のみ生成し、生成したかどうかを返します。"""

    index_path = output_root / INDEX_NAME
    if index_path.exists():
        logger.debug("index.html が既に存在するため生成しません: %s", index_path)
        return False
    try:
        index_path.parent.mkdir(parents=True, exist_ok=True)
        index_path.write_text(build_index_html(outputs), encoding="utf-8")
    except OSError as exc:
        raise RenderError(f"index.html を書き込めませんでした: {index_path} ({exc})", path=index_path) from exc
    logger.info("index.html を生成しました: %s", index_path)
    return True
