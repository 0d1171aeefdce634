"""mdwiki のコマンドラインインターフェース。"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Iterable

from .builder import BuildResult, build_wiki
from .config import BuildConfig, ServeConfig
from .env import current_settings, load_env_file
from .errors import LedgerError, WikiError
from .server import serve

EXIT_OK = 0
EXIT_BUILD_FAILED = 1
EXIT_USAGE = 2
EXIT_LEDGER_FAILED = 3


def _pre_parse_env_file(argv: list[str]) -> str | None:
    pre = argparse.ArgumentParser(add_help=False)
    pre.add_argument("--env-file", dest="env_file", default=None)
    known, _ = pre.parse_known_args(argv)
    return known.env_file


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    raw = list(argv) if argv is not None else sys.argv[1:]
    load_env_file(_pre_parse_env_file(raw))
    settings = current_settings()

    parser = argparse.ArgumentParser(description="Markdown ファイル群から静的 HTML Wiki を生成します")
    parser.add_argument("input_dir", metavar="INPUT", type=Path, help="Markdown ファイルを含むディレクトリ")
    parser.add_argument(
        "-o",
        "--output-directory",
        dest="output_dir",
        type=Path,
        default=Path(settings.output_dir),
        help="HTML を書き出すディレクトリ (既定: %(default)s)",
    )
    parser.add_argument("--verbose", dest="verbose", action="store_true", help="進捗ログを表示")
    parser.add_argument("--env-file", dest="env_file", default=None, help="読み込む .env ファイルのパス")

    build_group = parser.add_argument_group("ビルド設定")
    build_group.add_argument(
        "-j",
        "--jobs",
        dest="jobs",
        type=int,
        default=settings.jobs,
        help="並列変換数 (省略時は CPU 数から自動推定)",
    )
    build_group.add_argument(
        "--extension",
        dest="extensions",
        action="append",
        default=None,
        help="変換対象とする拡張子 (複数指定可、既定: .md)",
    )
    build_group.add_argument(
        "--force",
        dest="force",
        action="store_true",
        help="ハッシュ台帳を無視してすべてのファイルを変換する",
    )
    build_group.add_argument(
        "--no-verify-outputs",
        dest="no_verify_outputs",
        action="store_true",
        help="ハッシュが一致すれば出力ファイルの有無を確認せずにスキップする",
    )

    serve_group = parser.add_argument_group("配信設定")
    serve_group.add_argument("--serve", dest="serve", action="store_true", help="ビルド後に HTTP サーバーで配信する")
    serve_group.add_argument("--host", dest="host", default=settings.host, help="待ち受けるホスト名")
    serve_group.add_argument("--port", dest="port", type=int, default=settings.port, help="待ち受けるポート番号")
    return parser.parse_args(raw)


def main(argv: Iterable[str] | None = None) -> int:
    args = parse_args(argv)
    _validate_args(args)
    _configure_logging(args.verbose)
    config = BuildConfig.from_args(
        args.input_dir,
        args.output_dir,
        source_suffixes=args.extensions,
        max_workers=args.jobs,
        verify_outputs=not args.no_verify_outputs,
        force=args.force,
    )
    try:
        result = build_wiki(config)
    except LedgerError as exc:
        if exc.result is not None:
            _print_summary(exc.result, config)
        print(f"[エラー] ビルドは完了しましたが台帳を保存できませんでした: {exc}", file=sys.stderr)
        return EXIT_LEDGER_FAILED
    except WikiError as exc:
        print(f"[エラー] {exc}", file=sys.stderr)
        return EXIT_BUILD_FAILED

    _print_summary(result, config)
    if args.serve:
        serve(ServeConfig(root=config.output.root, host=args.host, port=args.port))
    return EXIT_OK


def _print_summary(result: BuildResult, config: BuildConfig) -> None:
    summary = result.to_summary()
    summary["output"] = str(config.output.root)
    if result.failures:
        summary["failures"] = [str(failure.path) for failure in result.failures]
        for failure in result.failures:
            print(f"[失敗] {failure.path}: {failure.message}", file=sys.stderr)
    print(json.dumps(summary, ensure_ascii=False))


def _validate_args(args: argparse.Namespace) -> None:
    errors: list[str] = []
    if not args.input_dir.exists():
        errors.append(f"[エラー] 入力ディレクトリが見つかりません: {args.input_dir}")
    elif not args.input_dir.is_dir():
        errors.append(f"[エラー] 入力パスはディレクトリではありません: {args.input_dir}")

    if args.output_dir.exists() and not args.output_dir.is_dir():
        errors.append(f"[エラー] 出力パスがディレクトリではありません: {args.output_dir}")

    if args.jobs is not None and args.jobs < 1:
        errors.append("[エラー] --jobs には 1 以上の整数を指定してください。")
    if not 0 <= args.port <= 65535:
        errors.append("[エラー] --port には 0 から 65535 の整数を指定してください。")
    if args.extensions is not None and not any(ext.strip(" .") for ext in args.extensions):
        errors.append("[エラー] --extension には空でない拡張子を指定してください。")

    if errors:
        for message in errors:
            print(message, file=sys.stderr)
        raise SystemExit(EXIT_USAGE)

    args.input_dir = args.input_dir.resolve()
    args.output_dir = args.output_dir.resolve()


def _configure_logging(verbose: bool) -> None:
    level = logging.INFO if verbose else logging.WARNING
    logging.basicConfig(level=level, format="%(asctime)s [%(levelname)s] %(message)s", datefmt="%Y-%m-%d %H:%M:%S")


def run() -> None:
    raise SystemExit(main())


if __name__ == "__main__":
    run()
