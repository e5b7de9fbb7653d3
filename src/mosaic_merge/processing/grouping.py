"""按文件名前缀分组，并提供组内排序键。"""

from __future__ import annotations

import re
from typing import Iterable

from mosaic_merge.core.exceptions import IncompleteGroupError
from mosaic_merge.core.models import RawFile

GROUP_SEPARATOR = "-"
GROUP_SIZE = 4

ORDER_KEY_RE = re.compile(r"-([0-9]+)\.")


def extract_group_key(name: str) -> str:
    """返回第一个 ``-`` 之前的部分；没有 ``-`` 时返回完整文件名。"""

    return name.split(GROUP_SEPARATOR, 1)[0]


def extract_order_key(name: str) -> int:
    """取最后一个 ``-<数字>.`` 中的数字，找不到时返回 0。"""

    matches = ORDER_KEY_RE.findall(name)
    if not matches:
        return 0
    try:
        return int(matches[-1])
    except ValueError:
        # 超过整数字符串转换长度上限
        return 0


def sort_by_order_key(files: Iterable[RawFile]) -> list[RawFile]:
    # sorted() 是稳定排序，排序键相同的文件保持原有相对顺序
    return sorted(files, key=lambda item: extract_order_key(item.name))


class GroupIndex:
    """按到达顺序累积文件分组，区分完整（4 张）与不完整的分组。"""

    def __init__(self) -> None:
        self._groups: dict[str, list[RawFile]] = {}
        self._file_count = 0

    @property
    def groups(self) -> dict[str, list[RawFile]]:
        return self._groups

    @property
    def file_count(self) -> int:
        return self._file_count

    def accumulate(self, files: Iterable[RawFile]) -> dict[str, list[RawFile]]:
        for raw in files:
            key = extract_group_key(raw.name)
            self._groups.setdefault(key, []).append(raw)
            self._file_count += 1
        return self._groups

    def valid_groups(self) -> dict[str, list[RawFile]]:
        return {key: members for key, members in self._groups.items() if len(members) == GROUP_SIZE}

    def incomplete_groups(self) -> list[IncompleteGroupError]:
        """不满 4 张或多于 4 张的分组，仅作提示用途。"""

        return [
            IncompleteGroupError(key, len(members))
            for key, members in self._groups.items()
            if len(members) != GROUP_SIZE
        ]

    def describe(self) -> str:
        valid_count = len(self.valid_groups())
        summary = (
            f"已选择 {self._file_count} 个文件，识别出 {len(self._groups)} 个分组，"
            f"其中 {valid_count} 个分组有效（包含{GROUP_SIZE}张图片）。"
        )
        if valid_count == 0:
            summary += " 没有找到有效的分组，请检查文件命名。"
        return summary
