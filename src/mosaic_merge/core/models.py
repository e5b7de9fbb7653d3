"""核心数据模型定义。"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Tuple

from mosaic_merge.core.exceptions import (
    DecodeError,
    EncodeError,
    GroupTimeoutError,
    MosaicMergeError,
)


@dataclass(frozen=True, slots=True)
class RawFile:
    """用户选择的原始文件：文件名、字节内容与到达顺序。"""

    name: str
    data: bytes = field(repr=False)
    index: int = 0


@dataclass(slots=True)
class MergedArtifact:
    """一个有效分组合并后的产物。"""

    group_key: str
    image_bytes: bytes = field(repr=False)
    size: Tuple[int, int] = (0, 0)
    source_names: Tuple[str, ...] = ()
    extension: str = ".jpg"

    @property
    def file_name(self) -> str:
        """单独下载/写盘时使用的文件名。"""

        return f"{self.group_key}-merged{self.extension}"

    @property
    def archive_name(self) -> str:
        """打包进 ZIP 时使用的条目名。"""

        return f"{self.group_key}{self.extension}"


@dataclass(slots=True)
class GroupFailure:
    """记录合并失败的分组及其异常。"""

    group_key: str
    error: BaseException

    @property
    def message(self) -> str:
        return str(self.error) or type(self.error).__name__

    @property
    def status(self) -> str:
        if isinstance(self.error, DecodeError):
            return "error-decode"
        if isinstance(self.error, EncodeError):
            return "error-encode"
        if isinstance(self.error, GroupTimeoutError):
            return "error-timeout"
        if isinstance(self.error, MosaicMergeError):
            return "error-merge"
        return "error-unexpected"


@dataclass(slots=True)
class BatchResult:
    """一次批处理的产出：成功的拼图与失败的分组。"""

    artifacts: list[MergedArtifact] = field(default_factory=list)
    failures: list[GroupFailure] = field(default_factory=list)

    def succeeded_keys(self) -> list[str]:
        return [artifact.group_key for artifact in self.artifacts]

    def failed_keys(self) -> list[str]:
        return [failure.group_key for failure in self.failures]

    @property
    def total(self) -> int:
        return len(self.artifacts) + len(self.failures)
