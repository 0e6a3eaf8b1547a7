# tilemark/orientation.py
"""
EXIF 方向校正

方向码 1..8 对应 8 种旋转/翻转组合。变换矩阵采用 canvas 约定 (a, b, c, d, e, f):
    x' = a*x + c*y + e
    y' = b*x + d*y + f
把原始图片坐标映射到校正后的坐标系 (宽 W, 高 H)。
"""
from enum import IntEnum

from PIL import Image

from tilemark.errors import InvalidOrientationCode


class Orientation(IntEnum):
    NORMAL = 1
    FLIP_HORIZONTAL = 2
    ROTATE_180 = 3
    FLIP_VERTICAL = 4
    TRANSPOSE = 5        # 逆时针 90° + 水平翻转
    ROTATE_90_CW = 6
    TRANSVERSE = 7       # 顺时针 90° + 水平翻转
    ROTATE_90_CCW = 8

    @property
    def swaps_dimensions(self):
        return self >= Orientation.TRANSPOSE


def to_orientation(code):
    """把整数方向码转换为 Orientation，非法输入抛出 InvalidOrientationCode"""
    if isinstance(code, Orientation):
        return code
    if isinstance(code, bool) or not isinstance(code, int):
        raise InvalidOrientationCode(code)
    try:
        return Orientation(code)
    except ValueError:
        raise InvalidOrientationCode(code) from None


def corrected_dimensions(raw_width, raw_height, code):
    """方向码 5..8 交换宽高，1..4 保持不变"""
    if to_orientation(code).swaps_dimensions:
        return raw_height, raw_width
    return raw_width, raw_height


def orientation_matrix(width, height, code):
    """
    返回把原始坐标映射到校正坐标系的仿射矩阵。

    width, height 为校正后的尺寸。
    """
    orientation = to_orientation(code)
    if orientation is Orientation.NORMAL:
        return (1, 0, 0, 1, 0, 0)
    if orientation is Orientation.FLIP_HORIZONTAL:
        return (-1, 0, 0, 1, width, 0)
    if orientation is Orientation.ROTATE_180:
        return (-1, 0, 0, -1, width, height)
    if orientation is Orientation.FLIP_VERTICAL:
        return (1, 0, 0, -1, 0, height)
    if orientation is Orientation.TRANSPOSE:
        return (0, 1, 1, 0, 0, 0)
    if orientation is Orientation.ROTATE_90_CW:
        return (0, 1, -1, 0, width, 0)
    if orientation is Orientation.TRANSVERSE:
        return (0, -1, -1, 0, width, height)
    # ROTATE_90_CCW
    return (0, -1, 1, 0, 0, height)


def map_point(matrix, x, y):
    a, b, c, d, e, f = matrix
    return a * x + c * y + e, b * x + d * y + f


# 与 ImageOps.exif_transpose 使用相同的对应关系
_TRANSPOSE_METHODS = {
    Orientation.FLIP_HORIZONTAL: Image.Transpose.FLIP_LEFT_RIGHT,
    Orientation.ROTATE_180: Image.Transpose.ROTATE_180,
    Orientation.FLIP_VERTICAL: Image.Transpose.FLIP_TOP_BOTTOM,
    Orientation.TRANSPOSE: Image.Transpose.TRANSPOSE,
    Orientation.ROTATE_90_CW: Image.Transpose.ROTATE_270,
    Orientation.TRANSVERSE: Image.Transpose.TRANSVERSE,
    Orientation.ROTATE_90_CCW: Image.Transpose.ROTATE_90,
}


def apply_orientation(image, code):
    """
    返回校正方向后的新图片，不修改输入。

    像素搬移结果与 orientation_matrix 给出的几何映射一致。
    """
    orientation = to_orientation(code)
    if orientation is Orientation.NORMAL:
        return image.copy()
    return image.transpose(_TRANSPOSE_METHODS[orientation])
