# tilemark/watermark.py
"""
水印渲染

render() 每次都从已定向图片生成一张新的 RGBA 画布：
先按 EXIF 方向绘制底图，再在独立的水印层上绘制文字（铺满或居中），
水印层绕校正后画布的中心旋转，最后按透明度合成到底图上。
"""
import logging
import math
import re

from PIL import Image, ImageColor, ImageDraw

from tilemark.errors import SurfaceUnavailable
from tilemark.layout import (
    line_offsets,
    plan_centered,
    plan_tiled,
    rotate_about,
    scale_geometry,
)
from tilemark.orientation import apply_orientation
from tilemark.placeholders import substitute
from tilemark.text_layout import load_font, measure

logger = logging.getLogger(__name__)

_CSS_RGBA = re.compile(
    r"rgba\(\s*(\d+)\s*,\s*(\d+)\s*,\s*(\d+)\s*,\s*([0-9.]+)\s*\)$", re.IGNORECASE
)


def parse_color(value):
    """
    解析颜色为 (r, g, b, a)。

    支持 #RGB / #RRGGBB / #RRGGBBAA、颜色名、rgb()，以及透明度为 0..1 的 CSS rgba()。
    模板里保存的 [r, g, b, a] 列表也可以直接使用。
    """
    if isinstance(value, (tuple, list)):
        r, g, b, *rest = value
        return int(r), int(g), int(b), int(rest[0]) if rest else 255
    value = value.strip()
    match = _CSS_RGBA.match(value)
    if match:
        r, g, b = (int(match.group(i)) for i in (1, 2, 3))
        alpha = float(match.group(4))
        # 与 CSS 一致，alpha 截断到 [0, 1]
        return r, g, b, round(max(0.0, min(1.0, alpha)) * 255)
    return ImageColor.getcolor(value, "RGBA")


def new_surface(width, height):
    """创建透明画布，失败时抛出 SurfaceUnavailable"""
    if width <= 0 or height <= 0:
        raise SurfaceUnavailable(f"invalid surface size {width}x{height}")
    try:
        return Image.new("RGBA", (int(width), int(height)), (0, 0, 0, 0))
    except (ValueError, MemoryError) as exc:
        raise SurfaceUnavailable(f"cannot allocate {width}x{height} surface") from exc


def outline_width(scaled_stroke_width):
    # canvas 的 lineWidth 以轮廓为中心向两侧各延伸一半
    if scaled_stroke_width <= 0:
        return 0
    return max(1, round(scaled_stroke_width / 2))


def _colored(mask, rgba):
    # 颜色固定，透明度 = 字形覆盖率 × 颜色自身的 alpha
    r, g, b, a = rgba
    layer = Image.new("RGBA", mask.size, (r, g, b, 0))
    layer.putalpha(mask.point(lambda v: round(v * a / 255)))
    return layer


def render_text_block(lines, font, geometry, color, stroke_color, block_width):
    """
    在透明小图上绘制一个多行文字块，文字块中心即小图中心。
    描边层在下，填充层合成在描边层之上。
    """
    stroke = outline_width(geometry.stroke_width)
    # 行高可能小于字号，四周留出字形与描边的余量
    pad = math.ceil(geometry.font_size + stroke)
    width = math.ceil(block_width) + 2 * pad
    height = math.ceil(len(lines) * geometry.line_height) + 2 * pad
    tile = new_surface(width, height)

    fill_mask = Image.new("L", tile.size, 0)
    stroke_mask = Image.new("L", tile.size, 0) if stroke else None
    cx, cy = width / 2, height / 2
    for line, offset in zip(lines, line_offsets(len(lines), geometry.line_height)):
        xy = (cx, cy + offset)
        if stroke_mask is not None:
            ImageDraw.Draw(stroke_mask).text(xy, line, font=font, fill=255, anchor="mm",
                                             stroke_width=stroke, stroke_fill=255)
        ImageDraw.Draw(fill_mask).text(xy, line, font=font, fill=255, anchor="mm")

    if stroke_mask is not None:
        tile = Image.alpha_composite(tile, _colored(stroke_mask, parse_color(stroke_color)))
    return Image.alpha_composite(tile, _colored(fill_mask, parse_color(color)))


def _composite_at(layer, tile, left, top):
    """把 tile 合成到 layer 的 (left, top)，超出画布的部分裁掉"""
    source = (max(0, -left), max(0, -top))
    dest = (max(0, left), max(0, top))
    layer.alpha_composite(tile, dest=dest, source=source)


def _apply_opacity(layer, opacity):
    factor = max(0.0, min(100.0, float(opacity))) / 100
    if factor >= 1:
        return
    alpha = layer.getchannel("A").point(lambda v: round(v * factor))
    layer.putalpha(alpha)


def draw_watermark(surface, spec, now=None, font_path=None):
    """
    在 surface 上叠加水印，返回新的图片，不修改 surface。
    文字为空或只有空白时直接返回 surface。
    """
    width, height = surface.size
    text = substitute(spec.text, now)
    lines = [line for line in text.splitlines() if line.strip()]
    if not lines:
        return surface

    geometry = scale_geometry(spec, width, height)
    font = load_font(geometry.font_size, font_path)
    metrics = measure(lines, font)
    block_height = len(lines) * geometry.line_height

    if spec.tiled:
        plan = plan_tiled(width, height, metrics.max_width, block_height, geometry.spacing)
    else:
        plan = plan_centered(metrics.max_width, block_height)
    logger.debug(
        "watermark %dx%d scale=%.3f grid=%dx%d angle=%s",
        width, height, geometry.scale, plan.rows, plan.cols, spec.angle,
    )

    tile = render_text_block(lines, font, geometry, spec.color, spec.stroke_color,
                             metrics.max_width)
    if spec.angle % 360:
        # Image.rotate 为逆时针，canvas 的正角度为顺时针
        tile = tile.rotate(-spec.angle, resample=Image.Resampling.BICUBIC, expand=True)

    layer = new_surface(width, height)
    cx, cy = width / 2, height / 2
    for x, y in plan.cell_centers():
        px, py = rotate_about(x, y, cx, cy, spec.angle)
        left = round(px - tile.width / 2)
        top = round(py - tile.height / 2)
        if left >= width or top >= height or left + tile.width <= 0 or top + tile.height <= 0:
            continue
        _composite_at(layer, tile, left, top)

    _apply_opacity(layer, spec.opacity)
    return Image.alpha_composite(surface, layer)


def render(oriented, spec, now=None, font_path=None):
    """
    渲染一张带水印的图片。

    oriented: OrientedImage
    spec: WatermarkSpec
    now: 日期占位符使用的时间，整个渲染过程只取一次
    返回尺寸为校正后宽高的 RGBA 图片，调用方独占。
    """
    if oriented.width <= 0 or oriented.height <= 0:
        raise SurfaceUnavailable(f"invalid surface size {oriented.width}x{oriented.height}")
    try:
        surface = apply_orientation(oriented.source, oriented.orientation).convert("RGBA")
    except MemoryError as exc:
        raise SurfaceUnavailable("cannot allocate surface for base image") from exc
    return draw_watermark(surface, spec, now=now, font_path=font_path)
