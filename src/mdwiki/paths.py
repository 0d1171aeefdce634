"""入力パスから出力パスを導出するユーティリティ。"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from .errors import PathMappingError


@dataclass(frozen=True, slots=True)
class OutputDocument:
    """変換結果として書き出される HTML ファイル。"""

    relative_path: PurePosixPath
    absolute_path: Path
    source_key: str

    @property
    def name(self) -> str:
        return self.relative_path.name


def source_key(source: Path, input_root: Path) -> str:
    """台帳のキーとして使う、入力ルートからの POSIX 形式相対パスを返します。"""

    return _relative_to_root(source, input_root).as_posix()


def map_output_path(
    source: Path,
    input_root: Path,
    output_root: Path,
    target_suffix: str = ".html",
) -> OutputDocument:
    """入力ファイルに対応する出力先を求めます。

    入力ルートの除去は文字列置換ではなくパス要素単位で行うため、ルートと同名の
    ディレクトリが途中に現れても誤った位置へ出力されません。拡張子は末尾のものだけを
    置き換えます。
    """

    relative = _relative_to_root(source, input_root)
    target = relative.with_suffix(target_suffix)
    return OutputDocument(
        relative_path=target,
        absolute_path=output_root.joinpath(*target.parts),
        source_key=relative.as_posix(),
    )


def prepare_output_path(output: OutputDocument) -> Path:
    """出力先の親ディレクトリを作成します。並行実行時に既に存在していても問題ありません。"""

    parent = output.absolute_path.parent
    try:
        parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise PathMappingError(
            f"出力ディレクトリを作成できませんでした: {parent} ({exc})", path=parent
        ) from exc
    return output.absolute_path


def _relative_to_root(source: Path, input_root: Path) -> PurePosixPath:
    try:
        canonical_source = source.resolve(strict=True)
        canonical_root = input_root.resolve(strict=True)
    except (OSError, RuntimeError) as exc:
        raise PathMappingError(f"パスを正規化できませんでした: {source} ({exc})", path=source) from exc
    try:
        relative = canonical_source.relative_to(canonical_root)
    except ValueError as exc:
        raise PathMappingError(
            f"入力ルート {input_root} の配下にないファイルです: {source}", path=source
        ) from exc
    if not relative.parts:
        raise PathMappingError(f"入力ルートそのものは変換できません: {source}", path=source)
    return PurePosixPath(*relative.parts)
