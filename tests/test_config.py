from __future__ import annotations

from pathlib import Path

from mdwiki.config import BuildConfig, OutputConfig, RenderConfig


def test_output_config_derives_hidden_ledger_path(tmp_path: Path) -> None:
    output = OutputConfig(tmp_path / "out")

    assert output.ledger_path == tmp_path / "out" / ".files.sha"
    assert output.index_path == tmp_path / "out" / "index.html"
    assert output.summary_path.name.startswith(".")


def test_from_args_normalizes_suffixes(tmp_path: Path) -> None:
    config = BuildConfig.from_args(
        input_dir=tmp_path,
        output_dir=tmp_path / "out",
        source_suffixes=["MD", ".markdown", " .md ", ""],
    )

    assert tuple(config.render.source_suffixes) == (".md", ".markdown")


def test_from_args_keeps_defaults_and_clamps_workers(tmp_path: Path) -> None:
    config = BuildConfig.from_args(input_dir=tmp_path, output_dir=tmp_path / "out", max_workers=0)

    assert config.render.max_workers == 1
    assert tuple(config.render.source_suffixes) == tuple(RenderConfig().source_suffixes)
    assert config.render.verify_outputs is True
    assert config.render.force is False


def test_from_args_passes_build_flags(tmp_path: Path) -> None:
    config = BuildConfig.from_args(
        input_dir=tmp_path,
        output_dir=tmp_path / "out",
        verify_outputs=False,
        force=True,
    )

    assert config.render.verify_outputs is False
    assert config.render.force is True
    assert config.output.root == tmp_path / "out"
