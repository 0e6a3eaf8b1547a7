# tilemark/errors.py
"""水印处理过程中的异常类型"""


class WatermarkError(RuntimeError):
    """所有水印相关错误的基类"""


class InvalidOrientationCode(WatermarkError, ValueError):
    """方向码不在 1..8 之间"""

    def __init__(self, code):
        super().__init__(f"invalid orientation code: {code!r}")
        self.code = code


class SurfaceUnavailable(WatermarkError):
    """无法创建绘图画布"""


class DecodeFailure(WatermarkError):
    """图片解码失败"""


class EncodeFailure(WatermarkError):
    """画布编码为图片字节失败"""


class EmptyArchive(WatermarkError):
    """打包时没有任何可导出的图片"""

    def __init__(self, message="no images to archive"):
        super().__init__(message)
