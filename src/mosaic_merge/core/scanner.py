"""文件扫描与读取：把磁盘上的图片变成 RawFile 序列。"""

from __future__ import annotations

import logging
from fnmatch import fnmatch
from pathlib import Path
from typing import Iterable, Iterator, Sequence

from mosaic_merge.core.models import RawFile

LOGGER = logging.getLogger(__name__)

DEFAULT_PATTERNS = ("*.jpg", "*.jpeg", "*.png")


def _iter_candidate_files(path: Path, recursive: bool) -> Iterator[Path]:
    """遍历路径下的所有文件。"""

    if path.is_file():
        yield path
        return

    if not path.is_dir():
        LOGGER.warning("输入路径不存在: %s", path)
        return

    iterator = path.rglob("*") if recursive else path.glob("*")
    for candidate in iterator:
        if candidate.is_file():
            yield candidate


def _matches_any(name: str, patterns: Sequence[str]) -> bool:
    lowered = name.lower()
    return any(fnmatch(lowered, pattern.lower()) for pattern in patterns)


def raw_file_from_path(path: Path, index: int = 0) -> RawFile:
    """读取单个文件为 RawFile，文件名取自路径的最后一段。"""

    return RawFile(name=path.name, data=path.read_bytes(), index=index)


def collect_raw_files(
    sources: Iterable[Path],
    *,
    include_patterns: Sequence[str] = DEFAULT_PATTERNS,
    exclude_patterns: Sequence[str] = (),
    recursive: bool = True,
) -> list[RawFile]:
    """扫描源路径，按路径排序后读取匹配的图片文件。

    到达顺序 ``index`` 按排序后的位置分配，后续分组依赖这一顺序。
    """

    include_patterns = include_patterns or DEFAULT_PATTERNS
    seen_paths: set[Path] = set()
    candidates: list[Path] = []

    for root in sources:
        for candidate in _iter_candidate_files(root.resolve(), recursive):
            if candidate in seen_paths:
                continue
            seen_paths.add(candidate)

            name = candidate.name
            if not _matches_any(name, include_patterns):
                continue
            if exclude_patterns and _matches_any(name, exclude_patterns):
                continue
            candidates.append(candidate)

    candidates.sort(key=lambda x: str(x).lower())

    collected: list[RawFile] = []
    for path in candidates:
        try:
            collected.append(raw_file_from_path(path, index=len(collected)))
        except OSError as exc:
            LOGGER.warning("读取文件失败，已忽略 %s: %s", path, exc)
    return collected
