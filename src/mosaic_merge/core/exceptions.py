"""项目内使用的自定义异常定义。"""

from __future__ import annotations


class MosaicMergeError(Exception):
    """基础异常类型。"""


class InvalidConfigurationError(MosaicMergeError):
    """配置不合法时抛出。"""


class ProcessingAborted(MosaicMergeError):
    """任务被用户中断时抛出。"""


class BatchInProgressError(MosaicMergeError):
    """同一会话中已有批处理在运行。"""


class DecodeError(MosaicMergeError):
    """分组中的某个文件无法解码。"""

    def __init__(self, file_name: str, message: str | None = None) -> None:
        super().__init__(message or f"无法解码图像: {file_name}")
        self.file_name = file_name


class EncodeError(MosaicMergeError):
    """合成画布无法编码为输出格式。"""


class GroupTimeoutError(MosaicMergeError):
    """单个分组的处理超过了截止时间。"""


class IncompleteGroupError(MosaicMergeError):
    """分组图片数量不是 4 张，仅用于提示，不参与合并。"""

    def __init__(self, group_key: str, size: int) -> None:
        super().__init__(f"分组 {group_key} 包含 {size} 张图片，需要恰好 4 张")
        self.group_key = group_key
        self.size = size
