# tilemark/layout.py
"""
水印布局规划：分辨率自适应缩放、铺满网格、文字块内的行位置。

坐标约定与 canvas 相同：y 轴向下，正角度为屏幕上的顺时针旋转。
"""
import math
from dataclasses import dataclass

# 低分辨率基准，短边不超过该值时不缩放
BASE_DIMENSION = 1280


def scale_factor(width, height):
    """短边 <= 1280 时为 1.0，超过后按比例线性增长（没有上限）"""
    return max(1.0, min(width, height) / BASE_DIMENSION)


@dataclass(frozen=True)
class ScaledGeometry:
    scale: float
    font_size: float
    spacing: float
    line_height: float
    stroke_width: float


def scale_geometry(spec, width, height):
    scale = scale_factor(width, height)
    return ScaledGeometry(
        scale=scale,
        font_size=spec.font_size * scale,
        spacing=spec.spacing * scale,
        line_height=spec.line_height * scale,
        stroke_width=spec.stroke_width * scale,
    )


@dataclass(frozen=True)
class TilePlan:
    """
    铺满网格。origin 为左上角单元格的坐标，相对于画布中心、旋转之前。
    每个单元格坐标是一个文字块的中心。
    """

    rows: int
    cols: int
    spacing_x: float
    spacing_y: float
    origin_x: float
    origin_y: float

    @property
    def cell_count(self):
        return self.rows * self.cols

    def cell_centers(self):
        for row in range(self.rows):
            y = self.origin_y + row * self.spacing_y
            for col in range(self.cols):
                yield self.origin_x + col * self.spacing_x, y


def plan_tiled(width, height, max_line_width, block_height, spacing):
    """
    计算足以覆盖任意旋转角度的网格。

    行列数都按画布对角线计算再各加 2，保证旋转后四角不露白。
    """
    spacing_x = max_line_width + spacing
    spacing_y = block_height + spacing
    if spacing_x <= 0 or spacing_y <= 0:
        raise ValueError("grid spacing must be positive")
    diagonal = math.hypot(width, height)
    cols = math.ceil(diagonal / spacing_x) + 2
    rows = math.ceil(diagonal / spacing_y) + 2
    return TilePlan(
        rows=rows,
        cols=cols,
        spacing_x=spacing_x,
        spacing_y=spacing_y,
        origin_x=-(cols * spacing_x) / 2,
        origin_y=-(rows * spacing_y) / 2,
    )


def plan_centered(max_line_width, block_height):
    """单个文字块，中心与画布中心重合"""
    return TilePlan(
        rows=1,
        cols=1,
        spacing_x=max_line_width,
        spacing_y=block_height,
        origin_x=0.0,
        origin_y=0.0,
    )


def line_offsets(n_lines, line_height):
    """第 i 行中心相对文字块中心的纵向偏移"""
    total = n_lines * line_height
    start = -total / 2 + line_height / 2
    return tuple(start + i * line_height for i in range(n_lines))


def rotate_about(x, y, cx, cy, angle_deg):
    """把相对于 (cx, cy) 的点 (x, y) 旋转后换算到画布坐标"""
    rad = math.radians(angle_deg)
    cos, sin = math.cos(rad), math.sin(rad)
    return cx + x * cos - y * sin, cy + x * sin + y * cos
