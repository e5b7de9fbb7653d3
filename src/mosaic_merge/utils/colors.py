"""颜色工具函数。"""

from __future__ import annotations

import re
from typing import Tuple

from PIL import ImageColor

from mosaic_merge.core.exceptions import InvalidConfigurationError

HEX_COLOR_RE = re.compile(r"^#?([0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")

RGB = Tuple[int, int, int]


def parse_color(value: str) -> RGB:
    """将 HEX 字符串或颜色名（如 ``white``）解析为 RGB 三元组。"""

    if not value or not value.strip():
        raise InvalidConfigurationError("颜色值不能为空")

    text = value.strip()
    match = HEX_COLOR_RE.match(text)
    if match:
        hex_value = match.group(1)
        if len(hex_value) == 3:
            hex_value = "".join(ch * 2 for ch in hex_value)
        return int(hex_value[0:2], 16), int(hex_value[2:4], 16), int(hex_value[4:6], 16)

    try:
        rgb = ImageColor.getrgb(text)
    except ValueError as exc:
        raise InvalidConfigurationError(f"无法解析颜色值: {value}") from exc
    return rgb[0], rgb[1], rgb[2]
