# tilemark/exporter.py
"""
导出：画布 -> 图片字节，多张图片 -> zip 字节。
"""
import io
import logging
import math
import pathlib
import zipfile

from PIL import Image

from tilemark.errors import EmptyArchive, EncodeFailure
from tilemark.placeholders import render_filename
from tilemark.watermark import render

logger = logging.getLogger(__name__)

# 压缩级别固定，兼顾速度与压缩率
ARCHIVE_COMPRESS_LEVEL = 6

_FORMATS = {
    'png': 'PNG',
    'image/png': 'PNG',
    'jpg': 'JPEG',
    'jpeg': 'JPEG',
    'image/jpeg': 'JPEG',
}

EXTENSIONS = {'PNG': '.png', 'JPEG': '.jpg'}


def normalize_format(fmt):
    try:
        return _FORMATS[fmt.lower()]
    except KeyError:
        raise EncodeFailure(f"unsupported output format: {fmt}") from None


def _jpeg_quality(quality):
    # 兼容 canvas.toBlob 的 0..1 写法
    if isinstance(quality, float) and 0 < quality <= 1:
        quality = quality * 100
    return max(1, min(100, int(round(quality))))


def encode(surface, fmt='png', quality=95):
    """
    把渲染结果编码为图片字节。
    fmt: 'png' / 'jpeg' 或对应的 MIME 类型
    quality: JPEG 质量，1..100 或 0..1
    """
    pil_format = normalize_format(fmt)
    buf = io.BytesIO()
    try:
        if pil_format == 'JPEG':
            rgb = surface.convert('RGB')
            rgb.save(buf, 'JPEG', quality=_jpeg_quality(quality), optimize=True)
        else:
            surface.save(buf, 'PNG', compress_level=6)
    except (OSError, ValueError, MemoryError) as exc:
        raise EncodeFailure(f"failed to encode {pil_format}: {exc}") from exc
    return buf.getvalue()


def archive(entries):
    """
    把 ExportArchiveEntry 序列打包为 zip 字节。
    文件名由调用方保证唯一，这里不做去重。
    """
    entries = list(entries)
    if not entries:
        raise EmptyArchive()
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, mode='w', compression=zipfile.ZIP_DEFLATED,
                         compresslevel=ARCHIVE_COMPRESS_LEVEL) as zf:
        for entry in entries:
            zf.writestr(entry.filename, entry.data)
    logger.info("archived %d images (%s)", len(entries), format_file_size(buf.tell()))
    return buf.getvalue()


def export_single(oriented, spec, original_name, fmt='png', quality=95,
                  template='{basename}_watermarked_{date}', now=None, font_path=None):
    """渲染并编码单张图片，返回 (bytes, 建议文件名)"""
    surface = render(oriented, spec, now=now, font_path=font_path)
    data = encode(surface, fmt, quality)
    ext = EXTENSIONS[normalize_format(fmt)]
    filename = render_filename(original_name, template, now=now, extension=ext)
    return data, filename


def resize_surface(surface, max_dimension):
    """等比缩小到长边不超过 max_dimension，不放大"""
    width, height = surface.size
    if width <= max_dimension and height <= max_dimension:
        return surface.copy()
    if width > height:
        size = (max_dimension, max(1, round(height / width * max_dimension)))
    else:
        size = (max(1, round(width / height * max_dimension)), max_dimension)
    return surface.resize(size, Image.Resampling.LANCZOS)


def format_file_size(num_bytes):
    if num_bytes == 0:
        return '0 B'
    units = ['B', 'KB', 'MB', 'GB']
    i = min(int(math.floor(math.log(num_bytes, 1024))), len(units) - 1)
    value = round(num_bytes / 1024 ** i, 2)
    return f"{value:g} {units[i]}"


def ensure_output_path(out_dir, filename):
    """写入磁盘时避免覆盖已有文件，冲突时追加序号"""
    dst = pathlib.Path(out_dir) / filename
    stem, suffix = dst.stem, dst.suffix
    i = 1
    while dst.exists():
        dst = pathlib.Path(out_dir) / f"{stem}_{i}{suffix}"
        i += 1
    return dst
