"""mdwiki パイプラインの設定モデル群。"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Optional, Sequence

LEDGER_NAME = ".files.sha"
SUMMARY_NAME = ".build_summary.jsonl"
INDEX_NAME = "index.html"


def _normalize_suffixes(suffixes: Iterable[str]) -> tuple[str, ...]:
    """拡張子をドット付きの小文字にそろえ、重複を除いて返します。"""

    seen: set[str] = set()
    normalized: list[str] = []
    for raw in suffixes:
        text = raw.strip().lower()
        if not text:
            continue
        if not text.startswith("."):
            text = "." + text
        if text in seen:
            continue
        seen.add(text)
        normalized.append(text)
    return tuple(normalized)


@dataclass(slots=True)
class RenderConfig:
    """Markdown から HTML への変換設定。"""

    source_suffixes: Sequence[str] = (".md",)
    target_suffix: str = ".html"
    markdown_extensions: Sequence[str] = ("extra", "toc")
    max_workers: int | None = None
    verify_outputs: bool = True
    force: bool = False


@dataclass(slots=True)
class OutputConfig:
    """出力ディレクトリの設定。"""

    root: Path
    ledger_path: Path = field(init=False)
    index_path: Path = field(init=False)
    summary_path: Path = field(init=False)

    def __post_init__(self) -> None:
        self.ledger_path = self.root / LEDGER_NAME
        self.index_path = self.root / INDEX_NAME
        self.summary_path = self.root / SUMMARY_NAME


@dataclass(slots=True)
class ServeConfig:
    """生成済みファイルを配信する HTTP サーバーの設定。"""

    root: Path
    host: str = "localhost"
    port: int = 5000


@dataclass(slots=True)
class BuildConfig:
    """ビルド全体を束ねる設定。"""

    input_dir: Path
    output: OutputConfig
    render: RenderConfig = field(default_factory=RenderConfig)

    @classmethod
    def from_args(
        cls,
        input_dir: Path,
        output_dir: Path,
        source_suffixes: Optional[Iterable[str]] = None,
        max_workers: Optional[int] = None,
        verify_outputs: bool = True,
        force: bool = False,
    ) -> "BuildConfig":
        render_kwargs: dict[str, Any] = {
            "verify_outputs": verify_outputs,
            "force": force,
        }
        normalized = _normalize_suffixes(source_suffixes or ())
        if normalized:
            render_kwargs["source_suffixes"] = normalized
        if max_workers is not None:
            render_kwargs["max_workers"] = max(1, max_workers)
        return cls(
            input_dir=input_dir,
            output=OutputConfig(output_dir),
            render=RenderConfig(**render_kwargs),
        )
