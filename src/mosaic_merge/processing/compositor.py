"""2×2 拼图合成：排序、并发解码、按最大尺寸铺满四个象限并编码。"""

from __future__ import annotations

import asyncio
import io
import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from PIL import Image

from mosaic_merge.core.config import SUPPORTED_OUTPUT_FORMATS, MosaicConfig
from mosaic_merge.core.exceptions import DecodeError, EncodeError, IncompleteGroupError
from mosaic_merge.core.models import MergedArtifact, RawFile
from mosaic_merge.processing.grouping import GROUP_SIZE, sort_by_order_key
from mosaic_merge.processing.image_loader import decode_image
from mosaic_merge.utils.colors import parse_color

_RESAMPLING = getattr(Image, "Resampling", Image)

LOGGER = logging.getLogger(__name__)

# 超时或取消后，等待仍在线程中运行的解码结束的最长时间（秒）
DECODE_GRACE_SECONDS = 5.0


@dataclass(slots=True)
class MosaicLayout:
    """拼图几何：画布尺寸、单格尺寸与四个象限的左上角坐标（行优先）。"""

    canvas_size: Tuple[int, int]
    tile_size: Tuple[int, int]
    origins: Tuple[Tuple[int, int], ...]


def compute_layout(sizes: Sequence[Tuple[int, int]]) -> MosaicLayout:
    """以四张图中最大的宽和高作为单格尺寸。"""

    if len(sizes) != GROUP_SIZE:
        raise ValueError(f"需要 {GROUP_SIZE} 个尺寸，实际为 {len(sizes)}")

    tile_w = max(width for width, _ in sizes)
    tile_h = max(height for _, height in sizes)
    origins = ((0, 0), (tile_w, 0), (0, tile_h), (tile_w, tile_h))
    return MosaicLayout(canvas_size=(tile_w * 2, tile_h * 2), tile_size=(tile_w, tile_h), origins=origins)


def render_mosaic(images: Sequence[Image.Image], background: Tuple[int, int, int] = (0, 0, 0)) -> Image.Image:
    """把四张已排序的图片绘制到新画布上。

    每张图都被拉伸到单格尺寸，不保持宽高比。返回的画布由调用者负责关闭。
    """

    layout = compute_layout([img.size for img in images])
    canvas = Image.new("RGB", layout.canvas_size, background)
    for img, origin in zip(images, layout.origins):
        if img.size == layout.tile_size:
            canvas.paste(img, origin)
            continue
        stretched = img.resize(layout.tile_size, _RESAMPLING.LANCZOS)
        try:
            canvas.paste(stretched, origin)
        finally:
            stretched.close()
    return canvas


def encode_surface(surface: Image.Image, image_format: str = "JPEG", quality: int = 95) -> bytes:
    """将画布编码为字节串，失败时抛出 EncodeError。"""

    image_format = image_format.upper()
    save_params: dict = {"optimize": True}
    if image_format == "JPEG":
        save_params.update(quality=quality, subsampling=1)

    buffer = io.BytesIO()
    try:
        surface.save(buffer, format=image_format, **save_params)
    except (OSError, ValueError, KeyError) as exc:
        raise EncodeError(f"画布编码失败 ({image_format}): {exc}") from exc
    return buffer.getvalue()


async def decode_all(
    files: Sequence[RawFile],
    background: Tuple[int, int, int] = (0, 0, 0),
) -> list[Image.Image]:
    """并发解码一组文件。

    任何一个失败都会抛出 DecodeError；已解码的图片都会被关闭。被取消时，最多等待
    ``DECODE_GRACE_SECONDS`` 让线程中的解码结束并释放结果，之后才把取消继续向上抛出。
    """

    pending = asyncio.gather(
        *(asyncio.to_thread(decode_image, raw, background) for raw in files),
        return_exceptions=True,
    )
    try:
        outcomes = await asyncio.shield(pending)
    except asyncio.CancelledError:
        # 线程中的解码无法中断，等待其结束后再释放
        done, _ = await asyncio.wait({pending}, timeout=DECODE_GRACE_SECONDS)
        if done:
            _close_gathered(pending)
        else:
            LOGGER.warning("解码线程在 %.1f 秒内未结束，结果将在完成后释放", DECODE_GRACE_SECONDS)
            pending.add_done_callback(_close_gathered)
        raise

    errors = [outcome for outcome in outcomes if isinstance(outcome, BaseException)]
    if errors:
        _close_if_needed(*(outcome for outcome in outcomes if isinstance(outcome, Image.Image)))
        raise errors[0]
    return list(outcomes)


def _close_gathered(future: "asyncio.Future[list]") -> None:
    if future.cancelled():
        return
    _close_if_needed(*(outcome for outcome in future.result() if isinstance(outcome, Image.Image)))


async def composite_group(
    group_key: str,
    files: Sequence[RawFile],
    config: Optional[MosaicConfig] = None,
) -> MergedArtifact:
    """合并一个分组的四张图片，返回编码后的拼图产物。"""

    config = config or MosaicConfig()
    if len(files) != GROUP_SIZE:
        raise IncompleteGroupError(group_key, len(files))

    ordered = sort_by_order_key(files)
    LOGGER.debug("分组 %s 排序结果: %s", group_key, [raw.name for raw in ordered])

    background = parse_color(config.background_color)
    try:
        images = await decode_all(ordered, background)
    except DecodeError:
        LOGGER.debug("分组 %s 解码失败，放弃该分组", group_key)
        raise

    canvas: Optional[Image.Image] = None
    try:
        canvas = render_mosaic(images, background)
        image_bytes = encode_surface(canvas, config.image_format, config.jpeg_quality)
        size = canvas.size
    finally:
        _close_if_needed(canvas, *images)

    return MergedArtifact(
        group_key=group_key,
        image_bytes=image_bytes,
        size=size,
        source_names=tuple(raw.name for raw in ordered),
        extension=SUPPORTED_OUTPUT_FORMATS[config.image_format.upper()],
    )


def _close_if_needed(*images: Optional[Image.Image]) -> None:
    for img in images:
        if img is not None:
            img.close()
