"""完整任务：扫描、分组、合并，再把产物写入输出目录。"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from mosaic_merge.core.config import JobConfig
from mosaic_merge.core.exceptions import IncompleteGroupError
from mosaic_merge.core.models import BatchResult
from mosaic_merge.core.output_manager import ImageWriteError, OutputManager
from mosaic_merge.core.progress import ProgressCallback
from mosaic_merge.core.report import GroupOutcome, write_csv_report
from mosaic_merge.core.scanner import collect_raw_files
from mosaic_merge.core.session import BatchSession
from mosaic_merge.export.archive import archive_entries, build_zip_archive
from mosaic_merge.export.spreadsheet import build_workbook

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class JobSummary:
    """一次任务的汇总，供命令行展示。"""

    selection: str
    result: BatchResult
    incomplete: list[IncompleteGroupError] = field(default_factory=list)
    outcomes: list[GroupOutcome] = field(default_factory=list)
    report_path: Optional[Path] = None
    archive_path: Optional[Path] = None
    workbook_path: Optional[Path] = None


def process_job(
    config: JobConfig,
    progress_callback: ProgressCallback = None,
    session: Optional[BatchSession] = None,
) -> JobSummary:
    """任务入口：扫描输入、合并有效分组并写出图片、报告、ZIP 与 Excel。"""

    LOGGER.info("开始扫描输入路径")
    files = collect_raw_files(
        config.sources,
        include_patterns=config.include_patterns,
        exclude_patterns=config.exclude_patterns,
        recursive=config.allow_recursive,
    )

    session = session or BatchSession(config.mosaic)
    session.select(files)
    incomplete = session.incomplete_groups()
    for notice in incomplete:
        LOGGER.warning("%s，已忽略", notice)

    result = asyncio.run(session.run(progress_callback))
    summary = JobSummary(selection=session.index.describe(), result=result, incomplete=incomplete)

    output_manager = OutputManager(config.output)
    summary.outcomes = _write_artifacts(output_manager, result, config.output.write_images)
    summary.outcomes.extend(
        GroupOutcome(group_key=f.group_key, status=f.status, message=f.message) for f in result.failures
    )
    summary.outcomes.extend(
        GroupOutcome(group_key=n.group_key, status="skip-incomplete", message=str(n)) for n in incomplete
    )

    if result.artifacts and config.output.write_archive:
        summary.archive_path = _write_export(
            output_manager, config.output.archive_name, build_zip_archive(archive_entries(result.artifacts))
        )
    if result.artifacts and config.output.write_workbook:
        summary.workbook_path = _write_export(
            output_manager, config.output.workbook_name, build_workbook(result.artifacts)
        )

    try:
        summary.report_path = write_csv_report(summary.outcomes, output_manager.output_dir, config.report_filename)
    except OSError as exc:
        LOGGER.error("写入报告失败：%s", exc)
    return summary


def _write_artifacts(output_manager: OutputManager, result: BatchResult, write_images: bool) -> list[GroupOutcome]:
    outcomes: list[GroupOutcome] = []
    for artifact in result.artifacts:
        if not write_images:
            outcomes.append(GroupOutcome(group_key=artifact.group_key, status="merged", file_name=artifact.file_name))
            continue
        try:
            decision = output_manager.write_bytes(artifact.file_name, artifact.image_bytes)
        except ImageWriteError as exc:
            LOGGER.error("%s", exc)
            outcomes.append(
                GroupOutcome(
                    group_key=artifact.group_key,
                    status="error-write",
                    file_name=artifact.file_name,
                    message=str(exc),
                )
            )
            continue

        status = "merged" if decision.action == "write" else f"merged-{decision.action}"
        outcomes.append(
            GroupOutcome(
                group_key=artifact.group_key,
                status=status,
                file_name=artifact.file_name,
                output_path=decision.destination,
                message=decision.note,
            )
        )
    return outcomes


def _write_export(output_manager: OutputManager, file_name: str, data: bytes) -> Optional[Path]:
    try:
        decision = output_manager.write_bytes(file_name, data)
    except ImageWriteError as exc:
        LOGGER.error("%s", exc)
        return None
    if decision.action == "skip":
        return None
    return decision.destination
