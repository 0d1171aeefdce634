"""Markdown ツリーを HTML ツリーへ増分変換するための中核オーケストレーター。"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any, Callable, Sequence

from .config import BuildConfig
from .discovery import SourceDocument, discover_sources
from .errors import EmptyInputError, LedgerError, PathMappingError, WikiError
from .index import ensure_index
from .ledger import HashLedger
from .paths import OutputDocument, map_output_path
from .rendering import DocumentProcessor, Renderer, RenderOutcome

ProgressCallback = Callable[[int, int, Path], None]


@dataclass(slots=True)
class DocumentFailure:
    """処理に失敗した入力ファイル 1 件の記録。"""

    path: Path
    kind: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"path": str(self.path), "kind": self.kind, "message": self.message}


@dataclass(slots=True)
class BuildResult:
    outputs: list[OutputDocument]
    failures: list[DocumentFailure]
    rendered: int
    skipped: int
    index_created: bool
    ledger_path: Path

    @property
    def succeeded(self) -> int:
        return len(self.outputs)

    def to_summary(self) -> dict[str, Any]:
        return {
            "succeeded": self.succeeded,
            "failed": len(self.failures),
            "rendered": self.rendered,
            "skipped": self.skipped,
            "index_created": self.index_created,
            "ledger": str(self.ledger_path),
        }


class WikiBuilder:
    """探索・鮮度判定・並列変換・台帳保存・一覧生成を統括する高レベルパイプライン。"""

    def __init__(
        self,
        config: BuildConfig,
        *,
        renderer: Renderer | None = None,
        logger: logging.Logger | None = None,
        progress: ProgressCallback | None = None,
    ) -> None:
        self.config = config
        self.processor = DocumentProcessor(
            config.input_dir, config.output.root, config.render, renderer=renderer
        )
        self._logger = logger or logging.getLogger(self.__class__.__module__ + "." + self.__class__.__name__)
        self._progress = progress
        self._summary_base = {
            "input_dir": str(config.input_dir),
            "output_dir": str(config.output.root),
        }
        self._summary_path = config.output.summary_path

    async def build(self) -> BuildResult:
        output = self.config.output
        documents = discover_sources(
            self.config.input_dir,
            self.config.render.source_suffixes,
            exclude=(output.root,),
        )
        total = len(documents)
        if total == 0:
            raise EmptyInputError(
                f"変換対象のファイルが見つかりません: {self.config.input_dir}",
                path=self.config.input_dir,
            )
        self._prepare_output_root()
        self._update_summary("discovered", total=total)
        self._logger.info("Markdown ファイルを %d 件検出しました。", total)

        ledger = HashLedger.load(output.ledger_path)
        if self.config.render.force:
            self._logger.info("--force が指定されたため台帳を無視して全件を変換します。")
        documents, collisions = self._reject_colliding_outputs(documents)
        outcomes, failures = await self._process_documents(documents, ledger)
        failures = collisions + failures

        rendered = sum(1 for outcome in outcomes if outcome.rendered)
        result = BuildResult(
            outputs=[outcome.output for outcome in outcomes],
            failures=failures,
            rendered=rendered,
            skipped=len(outcomes) - rendered,
            index_created=False,
            ledger_path=output.ledger_path,
        )

        # 全ワーカーの完了後に一度だけ台帳を書き込む
        updated = HashLedger(
            {
                outcome.output.source_key: outcome.source.content_hash
                for outcome in outcomes
                if outcome.source.content_hash
            }
        )
        try:
            updated.save(output.ledger_path)
        except LedgerError as exc:
            self._report_outcome(result)
            exc.result = result
            raise
        self._update_summary("ledger", entries=len(updated), ledger=str(output.ledger_path))

        result.index_created = ensure_index(output.root, result.outputs)
        self._report_outcome(result)
        self._update_summary(
            "completed",
            **result.to_summary(),
            failures=[failure.to_dict() for failure in failures],
        )
        return result

    def _reject_colliding_outputs(
        self, documents: Sequence[SourceDocument]
    ) -> tuple[list[SourceDocument], list[DocumentFailure]]:
        """同じ出力パスへ写像される入力 (a.md と a.MD など) は先頭の 1 件だけを処理します。"""

        render = self.config.render
        claimed: dict[PurePosixPath, Path] = {}
        accepted: list[SourceDocument] = []
        collisions: list[DocumentFailure] = []
        for doc in documents:
            try:
                mapped = map_output_path(
                    doc.path, self.config.input_dir, self.config.output.root, render.target_suffix
                )
            except PathMappingError:
                # 導出できない入力は DocumentProcessor 側で失敗として記録される
                accepted.append(doc)
                continue
            owner = claimed.get(mapped.relative_path)
            if owner is None:
                claimed[mapped.relative_path] = doc.path
                accepted.append(doc)
                continue
            error = PathMappingError(
                f"出力先 {mapped.relative_path} が {owner} と衝突するため変換しません: {doc.path}",
                path=doc.path,
            )
            self._logger.error("%s", error)
            collisions.append(
                DocumentFailure(path=doc.path, kind=error.__class__.__name__, message=str(error))
            )
        return accepted, collisions

    async def _process_documents(
        self, documents: Sequence[SourceDocument], ledger: HashLedger
    ) -> tuple[list[RenderOutcome], list[DocumentFailure]]:
        total = len(documents)
        worker_count = self._determine_workers(total)
        semaphore = asyncio.Semaphore(worker_count)
        progress_lock = asyncio.Lock()
        completed = 0
        results: list[RenderOutcome | None] = [None] * total
        failures: list[DocumentFailure | None] = [None] * total

        async def process(index: int, doc: SourceDocument) -> None:
            nonlocal completed
            outcome: RenderOutcome | None = None
            failure: DocumentFailure | None = None
            async with semaphore:
                try:
                    outcome = await asyncio.to_thread(self.processor.process, doc, ledger)
                except WikiError as exc:
                    failure = DocumentFailure(
                        path=doc.path, kind=exc.__class__.__name__, message=str(exc)
                    )
            async with progress_lock:
                completed += 1
                current = completed
            if failure is not None:
                failures[index] = failure
                self._logger.error("変換に失敗しました (%d/%d): %s", current, total, failure.message)
                self._update_summary(
                    "rendering",
                    total=total,
                    completed=current,
                    last_file=str(doc.path),
                    last_error=failure.message,
                )
            elif outcome is not None:
                results[index] = outcome
                self._update_summary(
                    "rendering",
                    total=total,
                    completed=current,
                    last_file=str(doc.path),
                    rendered=outcome.rendered,
                )
            if self._progress is not None:
                self._progress(current, total, doc.path)

        await asyncio.gather(*(process(index, doc) for index, doc in enumerate(documents)))

        return (
            [outcome for outcome in results if outcome is not None],
            [failure for failure in failures if failure is not None],
        )

    def _determine_workers(self, total: int) -> int:
        requested = self.config.render.max_workers
        if requested is not None and requested > 0:
            return max(1, min(total, requested))
        cpu_total = os.cpu_count() or 2
        return max(1, min(total, cpu_total))

    def _report_outcome(self, result: BuildResult) -> None:
        self._logger.info(
            "ビルドが完了しました: 成功 %d 件 (変換 %d 件 / スキップ %d 件)、失敗 %d 件",
            result.succeeded,
            result.rendered,
            result.skipped,
            len(result.failures),
        )
        if result.failures:
            samples = ", ".join(failure.path.name for failure in result.failures[:3])
            self._logger.warning(
                "変換に失敗したファイルが %d 件あります。サンプル: %s",
                len(result.failures),
                samples,
            )

    def _prepare_output_root(self) -> None:
        root = self.config.output.root
        if not root.exists():
            self._logger.info("HTML 出力用ディレクトリを作成します: %s", root)
        try:
            root.mkdir(parents=True, exist_ok=True)
            self._summary_path.write_text("", encoding="utf-8")
        except OSError as exc:
            raise WikiError(f"出力ディレクトリを準備できませんでした: {root} ({exc})", path=root) from exc

    def _update_summary(self, stage: str, **extra: Any) -> None:
        payload = dict(self._summary_base)
        payload.update(extra)
        payload["stage"] = stage
        try:
            with self._summary_path.open("a", encoding="utf-8") as stream:
                stream.write(json.dumps(payload, ensure_ascii=False))
                stream.write("\n")
        except OSError:
            self._logger.debug("ビルドサマリーを書き込めませんでした: %s", self._summary_path, exc_info=True)


def build_wiki(
    config: BuildConfig,
    *,
    renderer: Renderer | None = None,
    logger: logging.Logger | None = None,
    progress: ProgressCallback | None = None,
) -> BuildResult:
    builder = WikiBuilder(config, renderer=renderer, logger=logger, progress=progress)
    return asyncio.run(builder.build())
