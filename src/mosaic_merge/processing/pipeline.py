"""批处理流水线：逐个分组合并，隔离单组失败并汇报进度。"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Mapping, Optional, Sequence

from mosaic_merge.core.config import MosaicConfig
from mosaic_merge.core.exceptions import GroupTimeoutError, MosaicMergeError, ProcessingAborted
from mosaic_merge.core.models import BatchResult, GroupFailure, MergedArtifact, RawFile
from mosaic_merge.core.progress import ProgressCallback, ProgressUpdate
from mosaic_merge.processing.compositor import composite_group

LOGGER = logging.getLogger(__name__)


class CancellationToken:
    """可跨线程设置的取消标记，在分组之间检查。"""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


async def run_batch(
    groups: Mapping[str, Sequence[RawFile]],
    config: Optional[MosaicConfig] = None,
    progress_callback: ProgressCallback = None,
    cancel_token: Optional[CancellationToken] = None,
) -> BatchResult:
    """依次合并所有分组。

    分组之间严格串行，以限制同时占用的全尺寸画布数量。单个分组失败只会记录
    到结果中，不会中断批处理。每处理完一个分组恰好触发一次进度回调。

    分组超时后，会在 ``DECODE_GRACE_SECONDS`` 内等待其解码线程结束并释放图片，再开始
    下一个分组；超过该时限仍未结束的解码会与下一个分组重叠。
    """

    config = config or MosaicConfig()
    config.validate()

    total = len(groups)
    result = BatchResult()
    LOGGER.info("开始合并 %d 个分组", total)

    for completed, (group_key, files) in enumerate(groups.items(), start=1):
        if cancel_token is not None and cancel_token.cancelled:
            LOGGER.warning("批处理已取消，已完成 %d/%d 个分组", completed - 1, total)
            raise ProcessingAborted("批处理已被取消")

        try:
            artifact = await _composite_with_deadline(group_key, files, config)
        except MosaicMergeError as exc:
            LOGGER.error("处理分组 %s 时出错: %s", group_key, exc)
            result.failures.append(GroupFailure(group_key=group_key, error=exc))
            status = "failed"
        except Exception as exc:  # noqa: BLE001
            LOGGER.exception("处理分组 %s 时出现未预期的异常", group_key)
            result.failures.append(GroupFailure(group_key=group_key, error=exc))
            status = "failed"
        else:
            LOGGER.info("分组 %s 合并完成: %dx%d", group_key, *artifact.size)
            result.artifacts.append(artifact)
            status = "ok"

        _emit_progress(progress_callback, completed, total, group_key, status)

    LOGGER.info("合并结束：成功 %d 个，失败 %d 个", len(result.artifacts), len(result.failures))
    return result


async def _composite_with_deadline(
    group_key: str,
    files: Sequence[RawFile],
    config: MosaicConfig,
) -> MergedArtifact:
    if config.group_timeout is None:
        return await composite_group(group_key, files, config)
    try:
        return await asyncio.wait_for(composite_group(group_key, files, config), timeout=config.group_timeout)
    except asyncio.TimeoutError as exc:
        raise GroupTimeoutError(f"分组 {group_key} 处理超时（{config.group_timeout} 秒）") from exc


def _emit_progress(
    callback: ProgressCallback,
    completed: int,
    total: int,
    message: Optional[str] = None,
    status: str = "running",
) -> None:
    if not callback:
        return
    callback(ProgressUpdate(total=total, completed=completed, message=message, status=status))
