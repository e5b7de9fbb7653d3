"""输出写入与冲突处理模块。"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from itertools import count
from pathlib import Path
from typing import Optional

from mosaic_merge.core.config import OutputConfig
from mosaic_merge.core.exceptions import InvalidConfigurationError, MosaicMergeError

LOGGER = logging.getLogger(__name__)


class ImageWriteError(MosaicMergeError):
    """输出写入失败。"""


@dataclass(slots=True)
class DestinationDecision:
    """封装输出文件决策。"""

    destination: Optional[Path]
    action: str
    note: Optional[str] = None


class OutputManager:
    """负责处理输出目录、冲突策略与文件写入。"""

    def __init__(self, config: OutputConfig) -> None:
        config.validate()
        self.config = config
        self.output_dir = config.output_dir.resolve()
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def decide_destination(self, file_name: str) -> DestinationDecision:
        """根据冲突策略确定输出路径。"""

        destination = self.output_dir / file_name

        if not destination.exists():
            return DestinationDecision(destination=destination, action="write")

        strategy = self.config.conflict_strategy
        existing_msg = f"目标已存在: {destination.name}"

        if strategy == "overwrite":
            return DestinationDecision(destination=destination, action="overwrite", note=existing_msg)
        if strategy == "skip":
            return DestinationDecision(destination=destination, action="skip", note=existing_msg)
        if strategy == "rename":
            new_destination = self._generate_renamed_path(destination)
            return DestinationDecision(
                destination=new_destination,
                action="rename",
                note=f"{existing_msg} -> 重命名为 {new_destination.name}",
            )

        raise InvalidConfigurationError(f"未知的冲突策略: {strategy}")

    def write_bytes(self, file_name: str, data: bytes) -> DestinationDecision:
        """按冲突策略写入文件，返回最终决策（skip 时不写入）。"""

        decision = self.decide_destination(file_name)
        if decision.action == "skip":
            LOGGER.info("跳过输出（已存在）：%s", decision.destination)
            return decision

        assert decision.destination is not None
        try:
            decision.destination.write_bytes(data)
        except OSError as exc:
            raise ImageWriteError(f"写入文件失败: {decision.destination}") from exc
        return decision

    def _generate_renamed_path(self, destination: Path) -> Path:
        """在 rename 策略下生成新的文件名。"""

        stem = destination.stem
        suffix = destination.suffix

        for idx in count(1):
            candidate = destination.with_name(f"{stem}_{idx}{suffix}")
            if not candidate.exists():
                return candidate

        # 理论上不会执行到此处
        return destination
