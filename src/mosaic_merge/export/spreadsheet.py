"""生成嵌入拼图预览的 Excel 报告。"""

from __future__ import annotations

import io
import logging
from typing import Optional, Sequence

from openpyxl import Workbook
from openpyxl.drawing.image import Image as SheetImage

from mosaic_merge.core.models import MergedArtifact
from mosaic_merge.core.progress import ProgressCallback, ProgressUpdate
from mosaic_merge.processing.grouping import GROUP_SIZE

LOGGER = logging.getLogger(__name__)

SHEET_TITLE = "图片处理报告"
COLUMNS = (
    ("A", "图片编号", 30),
    ("B", "图片预览", 40),
    ("C", "原始图片数量", 20),
    ("D", "处理状态", 20),
)
MERGED_STATUS = "已合并"
ROW_HEIGHT = 160  # pt
PREVIEW_SIZE = (200, 200)  # px


def build_workbook(
    artifacts: Sequence[MergedArtifact],
    progress_callback: ProgressCallback = None,
) -> bytes:
    """每个拼图一行：编号、预览图、原始图片数量与状态。"""

    workbook = Workbook()
    sheet = workbook.active
    sheet.title = SHEET_TITLE

    for column, header, width in COLUMNS:
        sheet[f"{column}1"] = header
        sheet.column_dimensions[column].width = width

    total = len(artifacts)
    for row, artifact in enumerate(artifacts, start=2):
        sheet.cell(row=row, column=1, value=artifact.group_key)
        sheet.cell(row=row, column=3, value=GROUP_SIZE)
        sheet.cell(row=row, column=4, value=MERGED_STATUS)
        sheet.row_dimensions[row].height = ROW_HEIGHT

        preview = SheetImage(io.BytesIO(artifact.image_bytes))
        preview.width, preview.height = PREVIEW_SIZE
        sheet.add_image(preview, f"B{row}")

        _emit(progress_callback, row - 1, total, artifact.group_key)

    buffer = io.BytesIO()
    workbook.save(buffer)
    LOGGER.debug("Excel 报告包含 %d 行", total)
    return buffer.getvalue()


def _emit(callback: ProgressCallback, completed: int, total: int, message: Optional[str]) -> None:
    if callback:
        callback(ProgressUpdate(total=total, completed=completed, message=message))
