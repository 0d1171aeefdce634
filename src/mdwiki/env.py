"""環境変数および既定設定のローダー。"""

from __future__ import annotations

from dataclasses import dataclass
import logging
import os
from pathlib import Path
from typing import Mapping

DEFAULT_ENV_NAME = ".env"
OUTPUT_DIR_ENV = "MDWIKI_OUTPUT_DIR"
JOBS_ENV = "MDWIKI_JOBS"
HOST_ENV = "MDWIKI_HOST"
PORT_ENV = "MDWIKI_PORT"
DEFAULT_OUTPUT_DIR = "output"

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class WikiSettings:
    """コマンドライン引数の既定値として使う設定値。"""

    output_dir: str = DEFAULT_OUTPUT_DIR
    jobs: int | None = None
    host: str = "localhost"
    port: int = 5000


def load_env_file(path: str | Path | None = None) -> dict[str, str]:
    """`.env` を読み込み、まだ設定されていない ``MDWIKI_*`` 変数だけを環境へ反映します。

    ``path`` を省略した場合はカレントディレクトリの `.env` を参照します。
    """

    env_path = Path(path) if path is not None else Path.cwd() / DEFAULT_ENV_NAME
    if not env_path.is_file():
        return {}
    pairs = (_parse_assignment(line) for line in env_path.read_text(encoding="utf-8").split("\n"))
    loaded = dict(pair for pair in pairs if pair is not None)
    for key, value in loaded.items():
        os.environ.setdefault(key, value)
    return loaded


def current_settings(source: Mapping[str, str] | None = None) -> WikiSettings:
    """現在の環境変数から既定設定を読み取ります。不正な数値は無視します。"""

    env = source if source is not None else os.environ
    settings = WikiSettings()
    if env.get(OUTPUT_DIR_ENV):
        settings.output_dir = env[OUTPUT_DIR_ENV]
    if env.get(HOST_ENV):
        settings.host = env[HOST_ENV]
    jobs = _parse_positive_int(env.get(JOBS_ENV), JOBS_ENV)
    if jobs is not None:
        settings.jobs = jobs
    port = _parse_positive_int(env.get(PORT_ENV), PORT_ENV)
    if port is not None:
        settings.port = port
    return settings


def _parse_positive_int(raw: str | None, name: str) -> int | None:
    if raw is None or not raw.strip():
        return None
    try:
        value = int(raw.strip())
    except ValueError:
        logger.warning("%s の値 %r を整数として解釈できないため無視します。", name, raw)
        return None
    if value < 1:
        logger.warning("%s には 1 以上の整数を指定してください (値: %d)。", name, value)
        return None
    return value


def _parse_assignment(line: str) -> tuple[str, str] | None:
    """``KEY=VALUE`` 形式の 1 行を分解します。コメントや ``MDWIKI_`` 以外の変数は無視します。"""

    key, sep, value = line.strip().partition("=")
    key = key.strip()
    if not sep or not key.startswith("MDWIKI_"):
        return None
    value = value.strip()
    if value[:1] in {'"', "'"} and value.endswith(value[0]) and len(value) >= 2:
        value = value[1:-1]
    return key, value
