"""图片解码与基础预处理实现。"""

from __future__ import annotations

import io
import logging
from typing import Tuple

from PIL import Image, ImageOps, UnidentifiedImageError

from mosaic_merge.core.exceptions import DecodeError
from mosaic_merge.core.models import RawFile

LOGGER = logging.getLogger(__name__)


def decode_image(raw: RawFile, background: Tuple[int, int, int] = (0, 0, 0)) -> Image.Image:
    """将原始字节解码为 RGB 图像，并执行 EXIF 旋转校正。

    透明区域与 ``background`` 混合，默认黑色。返回值为新的 Image 对象，调用者负责关闭。
    """

    try:
        with Image.open(io.BytesIO(raw.data)) as img:
            img.load()

            # EXIF Orientation 校正
            transposed = ImageOps.exif_transpose(img)

            if transposed.mode != "RGB":
                converted = _convert_to_rgb(transposed, background)
                if transposed is not img:
                    transposed.close()
                return converted

            return transposed.copy() if transposed is img else transposed
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
        LOGGER.debug("无法识别图像文件 %s: %s", raw.name, exc)
        raise DecodeError(raw.name) from exc


def _convert_to_rgb(img: Image.Image, background: Tuple[int, int, int]) -> Image.Image:
    """将任意模式图像转换为 RGB。"""

    if img.mode in {"RGBA", "LA", "PA"} or (img.mode == "P" and "transparency" in img.info):
        rgba = img.convert("RGBA")
        flattened = Image.new("RGB", img.size, background)
        flattened.paste(rgba, mask=rgba.split()[-1])
        rgba.close()
        return flattened

    return img.convert("RGB")
