"""批处理会话：保存一次文件选择对应的分组与合并结果。"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from mosaic_merge.core.config import MosaicConfig
from mosaic_merge.core.exceptions import BatchInProgressError, IncompleteGroupError
from mosaic_merge.core.models import BatchResult, RawFile
from mosaic_merge.core.progress import ProgressCallback
from mosaic_merge.processing.grouping import GroupIndex
from mosaic_merge.processing.pipeline import CancellationToken, run_batch

LOGGER = logging.getLogger(__name__)


class BatchSession:
    """一次文件选择到一次合并结果的完整上下文。

    新的文件选择会先 ``reset()``，旧的分组和结果全部丢弃。同一会话同时只允许
    运行一个批处理。
    """

    def __init__(self, config: Optional[MosaicConfig] = None) -> None:
        self.config = config or MosaicConfig()
        self.index = GroupIndex()
        self.result: Optional[BatchResult] = None
        self._running = False
        self._cancel_token: Optional[CancellationToken] = None

    @property
    def running(self) -> bool:
        return self._running

    def reset(self) -> None:
        if self._running:
            raise BatchInProgressError("批处理运行中，无法重置会话")
        self.index = GroupIndex()
        self.result = None
        self._cancel_token = None

    def select(self, files: Iterable[RawFile]) -> dict[str, list[RawFile]]:
        """以新的文件选择替换当前状态，返回全部分组。"""

        self.reset()
        groups = self.index.accumulate(files)
        LOGGER.info("%s", self.index.describe())
        return groups

    def valid_groups(self) -> dict[str, list[RawFile]]:
        return self.index.valid_groups()

    def incomplete_groups(self) -> list[IncompleteGroupError]:
        return self.index.incomplete_groups()

    def cancel(self) -> None:
        if self._cancel_token is not None:
            self._cancel_token.cancel()

    async def run(self, progress_callback: ProgressCallback = None) -> BatchResult:
        if self._running:
            raise BatchInProgressError("已有批处理在运行")

        self._running = True
        self._cancel_token = CancellationToken()
        try:
            self.result = await run_batch(
                self.valid_groups(),
                self.config,
                progress_callback=progress_callback,
                cancel_token=self._cancel_token,
            )
        finally:
            self._running = False
        return self.result
