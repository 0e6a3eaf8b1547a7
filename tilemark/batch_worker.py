# tilemark/batch_worker.py
"""
批量处理

条目按顺序逐个执行 render -> encode。单个条目失败只会把该条目标记为 error，
其余条目继续处理。条目记录不可变，每次状态变化都按 id 替换整条记录。
"""
import dataclasses
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Tuple

from tilemark.exporter import EXTENSIONS, archive, encode, normalize_format
from tilemark.image_io import generate_thumbnail, load_oriented
from tilemark.models import BatchItem, ExportArchiveEntry, ItemStatus
from tilemark.orientation import apply_orientation
from tilemark.placeholders import render_filename
from tilemark.watermark import render

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchResult:
    items: Tuple[BatchItem, ...]
    entries: Tuple[ExportArchiveEntry, ...]

    @property
    def completed(self):
        return [i for i in self.items if i.status is ItemStatus.COMPLETED]

    @property
    def failed(self):
        return [i for i in self.items if i.status is ItemStatus.ERROR]


def new_item(name, data):
    return BatchItem(name=name, data=data)


def load_item(item, apply_exif_rotation=True, thumb_size=None):
    """解码图片并生成预览；解码失败时条目进入 error"""
    try:
        oriented = load_oriented(item.data, apply_exif_rotation)
    except Exception as e:
        logger.warning("failed to load %s: %s", item.name, e)
        return item.transition(ItemStatus.ERROR, error=str(e))
    preview = None
    if thumb_size:
        upright = apply_orientation(oriented.source, oriented.orientation)
        preview = generate_thumbnail(upright, thumb_size)
    return item.transition(ItemStatus.PENDING, oriented=oriented, preview=preview)


def replace_item(items, item):
    return tuple(item if i.id == item.id else i for i in items)


def release_item(item):
    """释放预览等临时资源"""
    preview = item.preview
    if preview is not None and hasattr(preview, 'close'):
        preview.close()


def remove_item(items, item_id):
    kept = []
    for i in items:
        if i.id == item_id:
            release_item(i)
        else:
            kept.append(i)
    return tuple(kept)


def clear_items(items):
    for i in items:
        release_item(i)
    return ()


def reset_item(item):
    """显式把条目放回 pending，以便重新处理"""
    return dataclasses.replace(item, status=ItemStatus.PENDING, error=None, surface=None)


def process_batch(
    items,
    spec,
    fmt='png',
    quality=95,
    template='{basename}_watermarked_{date}',
    now=None,
    font_path=None,
    apply_exif_rotation=True,
    keep_surfaces=False,
    progress_callback=None,
):
    """
    顺序处理所有未结束的条目。
    progress_callback(idx, total, success, message)
    已经是 completed / error 的条目不会再次处理。
    """
    items = tuple(items)
    if now is None:
        now = datetime.now()
    ext = EXTENSIONS[normalize_format(fmt)]
    positions = {item.id: n for n, item in enumerate(items, start=1)}
    todo = [item for item in items if not item.status.is_terminal]
    total = len(todo)
    entries = []

    for done, item in enumerate(todo, start=1):
        item = item.transition(ItemStatus.PROCESSING)
        items = replace_item(items, item)
        try:
            oriented = item.oriented or load_oriented(item.data, apply_exif_rotation)
            surface = render(oriented, spec, now=now, font_path=font_path)
            data = encode(surface, fmt, quality)
        except Exception as e:
            logger.warning("batch item %s failed: %s", item.name, e)
            item = item.transition(ItemStatus.ERROR, error=str(e))
            message = f"{item.name}: {e}"
        else:
            filename = render_filename(item.name, template, index=positions[item.id],
                                       now=now, extension=ext)
            entries.append(ExportArchiveEntry(filename=filename, data=data))
            item = item.transition(
                ItemStatus.COMPLETED,
                oriented=oriented,
                surface=surface if keep_surfaces else None,
            )
            message = filename
        items = replace_item(items, item)
        logger.info("[%d/%d] %s", done, total, message)
        if progress_callback:
            progress_callback(done, total, item.status is ItemStatus.COMPLETED, message)

    return BatchResult(items=items, entries=tuple(entries))


def build_archive(result):
    """只打包 completed 的条目，没有可打包的条目时抛出 EmptyArchive"""
    unfinished = [i.name for i in result.items if not i.status.is_terminal]
    if unfinished:
        raise ValueError(f"batch still has unfinished items: {unfinished}")
    return archive(result.entries)
