# tilemark/image_io.py
import io
import logging
import os

from PIL import ExifTags, Image, UnidentifiedImageError

from tilemark.errors import DecodeFailure
from tilemark.models import OrientedImage

logger = logging.getLogger(__name__)

SUPPORTED_EXTS = {'.jpg', '.jpeg', '.png', '.bmp', '.tif', '.tiff', '.webp', '.gif'}


def is_image_file(path):
    _, ext = os.path.splitext(str(path).lower())
    return ext in SUPPORTED_EXTS


def decode(file_bytes):
    """把文件字节解码为 Pillow 图片（不处理 EXIF 方向）"""
    try:
        img = Image.open(io.BytesIO(file_bytes))
        img.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError, ValueError) as exc:
        raise DecodeFailure(f"cannot decode image: {exc}") from exc
    return img


def read_orientation(file_bytes):
    """读取 EXIF 方向码，任何解析失败都返回 1"""
    try:
        with Image.open(io.BytesIO(file_bytes)) as img:
            code = img.getexif().get(ExifTags.Base.Orientation, 1)
    except Exception as exc:
        logger.debug("failed to read EXIF orientation: %s", exc)
        return 1
    if isinstance(code, int) and 1 <= code <= 8:
        return code
    return 1


def load_oriented(file_bytes, apply_exif_rotation=True):
    """
    解码并读取方向码，生成 OrientedImage。
    apply_exif_rotation 为 False 时保持图片原始方向（方向码视为 1）。
    """
    img = decode(file_bytes)
    code = read_orientation(file_bytes) if apply_exif_rotation else 1
    return OrientedImage.from_source(img, code)


def generate_thumbnail(img, max_size=1024):
    """返回缩略图副本，原图不变"""
    thumb = img.copy()
    thumb.thumbnail((max_size, max_size), Image.Resampling.LANCZOS)
    return thumb
