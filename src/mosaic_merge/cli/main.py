"""命令行入口。"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)

from mosaic_merge.core.config import CONFLICT_STRATEGIES, JobConfig, MosaicConfig, OutputConfig
from mosaic_merge.core.exceptions import InvalidConfigurationError
from mosaic_merge.core.progress import ProgressUpdate
from mosaic_merge.processing.job import process_job
from mosaic_merge.utils.logging import setup_logging

app = typer.Typer(help="按文件名前缀把每 4 张图片合并为一张 2×2 拼图。")


def _build_progress_callback(progress: Progress):
    task_id: Optional[int] = None

    def callback(update: ProgressUpdate) -> None:
        nonlocal task_id
        if update.total == 0:
            return
        if task_id is None:
            task_id = progress.add_task("正在合并图片", total=update.total)
        progress.update(task_id, completed=update.completed)
        if update.status == "failed":
            progress.log(f"[red]分组 {update.message} 合并失败")

    return callback


@app.callback()
def main() -> None:
    """mosaic-merge 命令集合。"""


@app.command("run")
def run_cli(  # noqa: PLR0913
    source: List[Path] = typer.Argument(..., help="源图片文件或目录，可指定多个"),
    output: Path = typer.Option(..., "--output", "-o", help="输出目录"),
    quality: float = typer.Option(0.95, "--quality", help="JPEG 质量，0~1"),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="单个分组的处理时限（秒）"),
    background_color: str = typer.Option("#000000", "--background-color", help="画布背景色 (HEX)"),
    conflict_strategy: str = typer.Option("rename", "--on-conflict", help="文件名冲突策略 overwrite/skip/rename"),
    allow_recursive: bool = typer.Option(True, "--recursive/--no-recursive", help="是否递归扫描目录"),
    write_archive: bool = typer.Option(True, "--zip/--no-zip", help="是否打包 ZIP"),
    write_workbook: bool = typer.Option(True, "--excel/--no-excel", help="是否导出 Excel 报告"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="输出调试日志"),
) -> None:
    """扫描输入、合并有效分组并导出结果。"""

    setup_logging(logging.DEBUG if verbose else logging.INFO)

    if conflict_strategy not in CONFLICT_STRATEGIES:
        raise typer.BadParameter(f"冲突策略必须是 {', '.join(sorted(CONFLICT_STRATEGIES))} 之一")

    mosaic = MosaicConfig(quality=quality, background_color=background_color, group_timeout=timeout)
    try:
        mosaic.validate()
    except InvalidConfigurationError as exc:
        raise typer.BadParameter(str(exc)) from exc

    output_dir = output.expanduser().resolve()
    job = JobConfig(
        sources=[p.expanduser().resolve() for p in source],
        output=OutputConfig(
            output_dir=output_dir,
            conflict_strategy=conflict_strategy,
            write_archive=write_archive,
            write_workbook=write_workbook,
        ),
        mosaic=mosaic,
        allow_recursive=allow_recursive,
    )

    progress = Progress(
        SpinnerColumn(),
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
    )

    with progress:
        summary = process_job(job, progress_callback=_build_progress_callback(progress))

    typer.echo(summary.selection)
    result = summary.result
    if not result.artifacts and not result.failures:
        raise typer.Exit(code=1)

    typer.echo(f"合并完成：成功 {len(result.artifacts)} 组，失败 {len(result.failures)} 组。")
    for failure in result.failures:
        typer.echo(f"  失败分组 {failure.group_key}: {failure.message}")
    if summary.archive_path:
        typer.echo(f"ZIP 文件：{summary.archive_path}")
    if summary.workbook_path:
        typer.echo(f"Excel 报告：{summary.workbook_path}")
    if summary.report_path:
        typer.echo(f"报告文件：{summary.report_path}")


if __name__ == "__main__":
    app()
