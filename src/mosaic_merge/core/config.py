"""合并任务的配置模型。"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence

from mosaic_merge.core.exceptions import InvalidConfigurationError
from mosaic_merge.utils.colors import parse_color

SUPPORTED_OUTPUT_FORMATS = {"JPEG": ".jpg", "PNG": ".png"}
CONFLICT_STRATEGIES = {"overwrite", "skip", "rename"}


@dataclass(slots=True)
class MosaicConfig:
    """2×2 拼图的合成与编码配置。"""

    quality: float = 0.95
    image_format: str = "JPEG"
    background_color: str = "#000000"
    group_timeout: Optional[float] = None  # 秒；None 表示不设截止时间

    def validate(self) -> None:
        """检查配置取值，非法时抛出 InvalidConfigurationError。"""

        if not 0 < self.quality <= 1:
            raise InvalidConfigurationError(f"quality 必须位于 (0, 1] 区间: {self.quality}")
        if self.image_format.upper() not in SUPPORTED_OUTPUT_FORMATS:
            raise InvalidConfigurationError(f"不支持的输出格式: {self.image_format}")
        if self.group_timeout is not None and self.group_timeout <= 0:
            raise InvalidConfigurationError("group_timeout 必须大于 0")
        parse_color(self.background_color)

    @property
    def jpeg_quality(self) -> int:
        """Pillow 使用 1-100 的整数质量。"""

        return max(1, min(100, int(round(self.quality * 100))))


@dataclass(slots=True)
class OutputConfig:
    """输出目录、冲突策略与导出产物配置。"""

    output_dir: Path
    conflict_strategy: str = "rename"  # overwrite | skip | rename
    archive_name: str = "merged-images.zip"
    workbook_name: str = "图片处理报告.xlsx"
    write_images: bool = True
    write_archive: bool = True
    write_workbook: bool = True

    def validate(self) -> None:
        if self.conflict_strategy not in CONFLICT_STRATEGIES:
            raise InvalidConfigurationError(f"未知的冲突策略: {self.conflict_strategy}")


@dataclass(slots=True)
class JobConfig:
    """单次批处理任务的配置集合。"""

    sources: Sequence[Path]
    output: OutputConfig
    mosaic: MosaicConfig = field(default_factory=MosaicConfig)
    allow_recursive: bool = True
    include_patterns: Sequence[str] = field(default_factory=lambda: ("*.jpg", "*.jpeg", "*.png"))
    exclude_patterns: Sequence[str] = field(default_factory=tuple)
    report_filename: str = "report.csv"
