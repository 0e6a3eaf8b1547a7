# tilemark/text_layout.py
"""文字测量：测量与绘制必须使用同一个字体对象"""
import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, Tuple

from PIL import ImageFont

logger = logging.getLogger(__name__)

FALLBACK_FONTS = (
    "arial.ttf",
    "msyh.ttc",
    "/System/Library/Fonts/PingFang.ttc",
    "/usr/share/fonts/opentype/noto/NotoSansCJK-Regular.ttc",
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
)


@dataclass(frozen=True)
class TextMetrics:
    line_widths: Tuple[float, ...]
    max_width: float


@lru_cache(maxsize=32)
def load_font(size: float, font_path: Optional[str] = None):
    """
    按字号加载字体。

    优先使用 font_path，其次依次尝试常见系统字体，最后退回 Pillow 自带字体。
    """
    candidates = ((font_path,) if font_path else ()) + FALLBACK_FONTS
    for path in candidates:
        try:
            return ImageFont.truetype(path, size)
        except OSError:
            if path == font_path:
                logger.warning("font %s could not be loaded, falling back", font_path)
            continue
    logger.debug("no truetype font found, using Pillow default font")
    return ImageFont.load_default(size)


def measure(lines, font) -> TextMetrics:
    """返回每行的排版宽度（advance width）以及最大宽度"""
    widths = tuple(float(font.getlength(line)) for line in lines)
    return TextMetrics(line_widths=widths, max_width=max(widths, default=0.0))
