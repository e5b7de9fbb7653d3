"""ZIP 打包。"""

from __future__ import annotations

import io
import zipfile
from typing import Iterable, Iterator, Tuple

from mosaic_merge.core.models import MergedArtifact


def archive_entries(artifacts: Iterable[MergedArtifact]) -> Iterator[Tuple[str, bytes]]:
    for artifact in artifacts:
        yield artifact.archive_name, artifact.image_bytes


def build_zip_archive(entries: Iterable[Tuple[str, bytes]]) -> bytes:
    """把 ``(文件名, 内容)`` 序列打包为 ZIP 字节串。

    JPEG 本身已压缩，条目按 ZIP_STORED 存储。
    """

    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_STORED) as archive:
        for name, data in entries:
            archive.writestr(name, data)
    return buffer.getvalue()
