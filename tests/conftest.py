"""测试公用的图片构造工具。"""

from __future__ import annotations

import io

import pytest
from PIL import Image

from mosaic_merge.core.models import RawFile


def encode_png(size: tuple[int, int], color: str | tuple[int, int, int]) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def make_raw():
    counter = iter(range(10_000))

    def factory(name: str, size: tuple[int, int] = (32, 24), color="red") -> RawFile:
        return RawFile(name=name, data=encode_png(size, color), index=next(counter))

    return factory


@pytest.fixture
def corrupt_raw():
    def factory(name: str) -> RawFile:
        return RawFile(name=name, data=b"not an image", index=0)

    return factory
