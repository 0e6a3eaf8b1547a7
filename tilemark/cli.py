# tilemark/cli.py
"""
命令行批量加水印

    tilemark photo.jpg -t "仅供办理XX业务使用" --angle 30
    tilemark photos/ --zip -o out/
"""
import argparse
import logging
import sys
from pathlib import Path

from tilemark.batch_worker import build_archive, new_item, process_batch
from tilemark.config import get_settings
from tilemark.errors import EmptyArchive, WatermarkError
from tilemark.exporter import ensure_output_path, export_single, format_file_size
from tilemark.image_io import is_image_file, load_oriented
from tilemark.logger_settings import setup_logging
from tilemark.models import WatermarkSpec
from tilemark.template_manager import TemplateManager
from tilemark.watermark import parse_color

logger = logging.getLogger(__name__)

# 可以从命令行覆盖的 WatermarkSpec 字段
_SPEC_FIELDS = (
    'text', 'spacing', 'line_height', 'font_size', 'opacity',
    'angle', 'color', 'stroke_width', 'stroke_color',
)


def _non_negative(value):
    number = float(value)
    if number < 0:
        raise argparse.ArgumentTypeError(f"must be >= 0: {value}")
    return number


def _positive(value):
    number = float(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be > 0: {value}")
    return number


def _percent(value):
    number = float(value)
    if not 0 <= number <= 100:
        raise argparse.ArgumentTypeError(f"must be within 0..100: {value}")
    return number


def _color(value):
    try:
        parse_color(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a colour: {value}") from None
    return value


def build_parser():
    settings = get_settings()
    parser = argparse.ArgumentParser(
        prog='tilemark',
        description='为图片添加平铺或居中的文字水印',
    )
    parser.add_argument('inputs', nargs='+', type=Path, help='图片文件或文件夹')
    parser.add_argument('-o', '--output', type=Path, default=Path('.'), help='输出文件夹')
    parser.add_argument('-p', '--preset', help='使用已保存的水印模板作为基础参数')

    wm = parser.add_argument_group('水印参数')
    wm.add_argument('-t', '--text', help='水印文字，\\n 表示换行，支持 {YYYY-MM-DD} 等日期占位符')
    layout = wm.add_mutually_exclusive_group()
    layout.add_argument('--tiled', dest='tiled', action='store_true', default=None, help='铺满模式')
    layout.add_argument('--centered', dest='tiled', action='store_false', default=None, help='居中单个水印')
    wm.add_argument('--spacing', type=_non_negative)
    wm.add_argument('--line-height', type=_positive)
    wm.add_argument('--font-size', type=_positive)
    wm.add_argument('--opacity', type=_percent, help='0..100')
    wm.add_argument('--angle', type=float, help='旋转角度（度）')
    wm.add_argument('--color', type=_color)
    wm.add_argument('--stroke-width', type=_non_negative)
    wm.add_argument('--stroke-color', type=_color)
    wm.add_argument('--font', default=settings.font_path, help='字体文件 (.ttf/.otf/.ttc)')

    out = parser.add_argument_group('导出')
    out.add_argument('-f', '--format', choices=['png', 'jpeg'], default=settings.output_format)
    out.add_argument('-q', '--quality', type=int, default=settings.jpeg_quality, help='JPEG 质量 1..100')
    out.add_argument('--name-template', default=settings.filename_template,
                     help='文件名模板，支持 {basename} {date} {time} {index}')
    out.add_argument('--zip', action='store_true', help='单张图片也打包为 zip')
    out.add_argument('--archive-name', default=settings.archive_name)
    rotation = out.add_mutually_exclusive_group()
    rotation.add_argument('--exif-rotation', dest='exif_rotation', action='store_true',
                          default=settings.apply_exif_rotation, help='根据 EXIF 信息校正图片方向')
    rotation.add_argument('--no-exif-rotation', dest='exif_rotation', action='store_false',
                          default=settings.apply_exif_rotation)
    parser.add_argument('--log-level', default=settings.log_level)
    return parser


def build_spec(args, template_manager=None):
    spec = WatermarkSpec()
    if args.preset:
        manager = template_manager or TemplateManager()
        preset = manager.load_template(args.preset)
        if preset is None:
            raise SystemExit(f"未找到模板: {args.preset}")
        spec = preset
    changes = {
        name: getattr(args, name)
        for name in _SPEC_FIELDS
        if getattr(args, name) is not None
    }
    if args.tiled is not None:
        changes['tiled'] = args.tiled
    if 'text' in changes:
        changes['text'] = changes['text'].replace('\\n', '\n')
    if 'angle' in changes:
        changes['angle'] = changes['angle'] % 360
    return spec.replace(**changes)


def collect_inputs(paths):
    found = []
    for p in paths:
        if p.is_dir():
            found.extend(sorted(f for f in p.rglob('*') if f.is_file() and is_image_file(f)))
        elif p.is_file():
            found.append(p)
        else:
            logger.warning("跳过不存在的路径: %s", p)
    return found


def _read(path):
    try:
        return path.read_bytes()
    except OSError as e:
        logger.warning("无法读取 %s: %s", path, e)
        return b''


def export_one(path, spec, args):
    try:
        oriented = load_oriented(path.read_bytes(), args.exif_rotation)
        data, filename = export_single(
            oriented, spec, path.name,
            fmt=args.format, quality=args.quality,
            template=args.name_template, font_path=args.font,
        )
    except (OSError, WatermarkError) as e:
        logger.error("导出失败 %s: %s", path, e)
        return 1
    dst = ensure_output_path(args.output, filename)
    dst.write_bytes(data)
    logger.info("已保存: %s (%s)", dst, format_file_size(len(data)))
    return 0


def export_many(paths, spec, args):
    items = [new_item(p.name, _read(p)) for p in paths]
    result = process_batch(
        items, spec,
        fmt=args.format, quality=args.quality,
        template=args.name_template, font_path=args.font,
        apply_exif_rotation=args.exif_rotation,
    )
    try:
        data = build_archive(result)
    except EmptyArchive:
        logger.error("没有可导出的图片")
        return 1
    dst = ensure_output_path(args.output, args.archive_name)
    dst.write_bytes(data)
    logger.info("成功导出 %d 张图片，失败 %d 张: %s",
                len(result.completed), len(result.failed), dst)
    return 0


def main(argv=None):
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)
    spec = build_spec(args)
    paths = collect_inputs(args.inputs)
    if not paths:
        logger.error("没有找到图片")
        return 1
    args.output.mkdir(parents=True, exist_ok=True)
    if len(paths) == 1 and not args.zip:
        return export_one(paths[0], spec, args)
    return export_many(paths, spec, args)


if __name__ == '__main__':
    sys.exit(main())
