"""前回ビルド時のコンテンツハッシュを保持する台帳。

台帳ファイルは 1 行 1 エントリで ``<hash>:<key>`` 形式です。ハッシュは 16 進数のみで
構成されるため、行は最初のコロンで分割します。これによりキーにコロンを含めても
読み戻せます。改行を含むキーは表現できないため保存対象から除外します。
"""

from __future__ import annotations

import contextlib
import hashlib
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

from .errors import LedgerError

logger = logging.getLogger(__name__)

_LINE_BREAKS = ("\n", "\r")


def compute_hash(data: bytes) -> str:
    """生のバイト列に対する SHA-256 を 64 桁の小文字 16 進数で返します。"""

    return hashlib.sha256(data).hexdigest()


def is_fresh(stored: str | None, computed: str) -> bool:
    """台帳の値と今回のハッシュが一致する場合のみ最新とみなします。"""

    return stored is not None and stored == computed


@dataclass(slots=True)
class HashLedger:
    """正規化済みの入力パスからハッシュへの対応表。"""

    entries: dict[str, str] = field(default_factory=dict)

    @classmethod
    def load(cls, path: Path) -> "HashLedger":
        """台帳ファイルを読み込みます。存在しない・読めない場合は空の台帳を返します。"""

        try:
            with path.open(encoding="utf-8", newline="") as stream:
                text = stream.read()
        except FileNotFoundError:
            logger.debug("台帳ファイルが存在しないため全件を再生成します: %s", path)
            return cls()
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("台帳ファイルを読み込めないため空の台帳として扱います: %s (%s)", path, exc)
            return cls()
        # str.splitlines は \x0c や \u2028 でも分割するため、区切りは \n のみとする
        return cls.from_lines(line.removesuffix("\r") for line in text.split("\n"))

    @classmethod
    def from_lines(cls, lines: Iterable[str]) -> "HashLedger":
        entries: dict[str, str] = {}
        for number, line in enumerate(lines, start=1):
            if not line.strip():
                continue
            digest, sep, key = line.partition(":")
            digest = digest.strip()
            if not sep or not digest or not key:
                logger.debug("台帳の %d 行目を解釈できないためスキップします: %r", number, line)
                continue
            entries[key] = digest
        return cls(entries)

    def lookup(self, key: str) -> str | None:
        return self.entries.get(key)

    def __len__(self) -> int:
        return len(self.entries)

    def to_lines(self) -> list[str]:
        lines: list[str] = []
        for key in sorted(self.entries):
            if any(mark in key for mark in _LINE_BREAKS):
                logger.warning("改行を含むパスは台帳に記録できないため除外します: %r", key)
                continue
            lines.append(f"{self.entries[key]}:{key}\n")
        return lines

    def save(self, path: Path) -> None:
        """台帳ファイルを一時ファイル経由で丸ごと置き換えます。"""

        content = "".join(self.to_lines())
        tmp_name: str | None = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=path.name + ".", suffix=".tmp", dir=path.parent)
            with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as stream:
                stream.write(content)
            os.replace(tmp_name, path)
        except OSError as exc:
            if tmp_name is not None:
                with contextlib.suppress(OSError):
                    os.unlink(tmp_name)
            raise LedgerError(f"台帳ファイルを書き込めませんでした: {path} ({exc})", path=path) from exc
        logger.debug("台帳を保存しました (%d 件): %s", len(self.entries), path)
