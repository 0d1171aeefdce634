from __future__ import annotations

import json
from pathlib import Path

import pytest

from mdwiki import cli
from mdwiki.errors import LedgerError
from mdwiki.ledger import HashLedger


@pytest.fixture(autouse=True)
def _isolate_env(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    # setenv を先に呼んで、load_env_file による書き込みもテスト後に元へ戻す
    for name in ("MDWIKI_OUTPUT_DIR", "MDWIKI_JOBS", "MDWIKI_HOST", "MDWIKI_PORT"):
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)


def test_parse_args_defaults(tmp_path: Path) -> None:
    args = cli.parse_args([str(tmp_path)])

    assert args.input_dir == tmp_path
    assert args.output_dir == Path("output")
    assert args.jobs is None
    assert args.force is False
    assert args.serve is False
    assert args.port == 5000


def test_parse_args_reads_defaults_from_env(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("MDWIKI_OUTPUT_DIR", "public")
    monkeypatch.setenv("MDWIKI_JOBS", "3")

    args = cli.parse_args([str(tmp_path)])

    assert args.output_dir == Path("public")
    assert args.jobs == 3


def test_parse_args_loads_env_file(tmp_path: Path) -> None:
    env_path = tmp_path / "custom.env"
    env_path.write_text("MDWIKI_PORT=8123\n", encoding="utf-8")

    args = cli.parse_args([str(tmp_path), "--env-file", str(env_path)])

    assert args.port == 8123


def test_main_builds_and_prints_summary(tmp_path: Path, capsys) -> None:
    input_dir = tmp_path / "docs"
    input_dir.mkdir()
    (input_dir / "page.md").write_text("# Page\n", encoding="utf-8")
    output_dir = tmp_path / "site"

    code = cli.main([str(input_dir), "-o", str(output_dir), "--jobs", "2"])

    summary = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert code == cli.EXIT_OK
    assert summary["succeeded"] == 1
    assert summary["failed"] == 0
    assert summary["output"] == str(output_dir.resolve())
    assert (output_dir / "page.html").exists()
    assert (output_dir / "index.html").exists()


def test_main_reports_document_failures_without_failing(tmp_path: Path, capsys, monkeypatch) -> None:
    input_dir = tmp_path / "docs"
    input_dir.mkdir()
    (input_dir / "ok.md").write_text("ok", encoding="utf-8")
    (input_dir / "bad.md").write_text("bad", encoding="utf-8")

    from mdwiki import rendering

    real_renderer = rendering.MarkdownRenderer.__call__

    def flaky(self, text: str) -> str:
        if text == "bad":
            raise ValueError("cannot render")
        return real_renderer(self, text)

    monkeypatch.setattr(rendering.MarkdownRenderer, "__call__", flaky)

    code = cli.main([str(input_dir), "-o", str(tmp_path / "site")])

    captured = capsys.readouterr()
    summary = json.loads(captured.out.strip().splitlines()[-1])
    assert code == cli.EXIT_OK
    assert summary["succeeded"] == 1
    assert summary["failed"] == 1
    assert "bad.md" in captured.err


def test_main_rejects_missing_input(tmp_path: Path, capsys) -> None:
    with pytest.raises(SystemExit) as exc:
        cli.main([str(tmp_path / "missing")])

    assert exc.value.code == cli.EXIT_USAGE
    assert "入力ディレクトリが見つかりません" in capsys.readouterr().err


def test_main_rejects_invalid_jobs(tmp_path: Path) -> None:
    with pytest.raises(SystemExit) as exc:
        cli.main([str(tmp_path), "--jobs", "0"])

    assert exc.value.code == cli.EXIT_USAGE


def test_main_returns_build_failure_for_empty_input(tmp_path: Path, capsys) -> None:
    input_dir = tmp_path / "docs"
    input_dir.mkdir()

    code = cli.main([str(input_dir), "-o", str(tmp_path / "site")])

    assert code == cli.EXIT_BUILD_FAILED
    assert "変換対象のファイルが見つかりません" in capsys.readouterr().err


def test_main_returns_distinct_code_when_ledger_cannot_be_saved(tmp_path: Path, monkeypatch, capsys) -> None:
    input_dir = tmp_path / "docs"
    input_dir.mkdir()
    (input_dir / "a.md").write_text("a", encoding="utf-8")

    def failing_save(self, path: Path) -> None:
        raise LedgerError("read-only", path=path)

    monkeypatch.setattr(HashLedger, "save", failing_save)

    code = cli.main([str(input_dir), "-o", str(tmp_path / "site")])

    assert code == cli.EXIT_LEDGER_FAILED
    captured = capsys.readouterr()
    summary = json.loads(captured.out.strip().splitlines()[-1])
    assert summary["succeeded"] == 1
    assert summary["failed"] == 0
    assert "台帳を保存できませんでした" in captured.err


def test_main_serves_after_build_when_requested(tmp_path: Path, monkeypatch) -> None:
    input_dir = tmp_path / "docs"
    input_dir.mkdir()
    (input_dir / "a.md").write_text("a", encoding="utf-8")
    served = []
    monkeypatch.setattr(cli, "serve", lambda config: served.append(config))

    code = cli.main([str(input_dir), "-o", str(tmp_path / "site"), "--serve", "--port", "8080"])

    assert code == cli.EXIT_OK
    assert served[0].root == (tmp_path / "site").resolve()
    assert served[0].port == 8080
