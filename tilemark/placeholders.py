# tilemark/placeholders.py
"""
水印文字中的日期/时间占位符，以及导出文件名模板。

支持: {YYYY} {MM} {DD} {HH} {mm} {ss} {YYYY-MM-DD} {HH:mm} {YYYY-MM-DD HH:mm}
"""
import re
from datetime import datetime

_DATE_TOKENS = {
    "{YYYY-MM-DD HH:mm}": "%Y-%m-%d %H:%M",
    "{YYYY-MM-DD}": "%Y-%m-%d",
    "{HH:mm}": "%H:%M",
    "{YYYY}": "%Y",
    "{MM}": "%m",
    "{DD}": "%d",
    "{HH}": "%H",
    "{mm}": "%M",
    "{ss}": "%S",
}

# 最长的占位符优先匹配，避免 {YYYY-MM-DD} 被拆开
_DATE_PATTERN = re.compile(
    "|".join(re.escape(t) for t in sorted(_DATE_TOKENS, key=len, reverse=True))
)

_FILENAME_PATTERN = re.compile(r"\{(basename|date|time|index)\}")


def substitute(text, now=None):
    """替换 text 中的日期时间占位符，未识别的 {...} 原样保留"""
    if now is None:
        now = datetime.now()
    values = {token: now.strftime(fmt) for token, fmt in _DATE_TOKENS.items()}
    return _DATE_PATTERN.sub(lambda m: values[m.group(0)], text)


def split_name(filename):
    """拆分为 (basename, extension)，没有扩展名时 extension 为空串"""
    dot = filename.rfind(".")
    if dot <= 0:
        return filename, ""
    return filename[:dot], filename[dot:]


def render_filename(original, template="{basename}_watermarked_{date}", index=None,
                    now=None, extension=None):
    """
    根据模板生成导出文件名。

    index 从 1 开始，补零到 3 位；未提供时为 001。
    extension 未指定时沿用原文件的扩展名（没有则用 .png）。
    """
    if now is None:
        now = datetime.now()
    basename, ext = split_name(original)
    if extension is None:
        extension = ext or ".png"
    values = {
        "basename": basename,
        "date": now.strftime("%Y%m%d"),
        "time": now.strftime("%H%M%S"),
        "index": f"{index if index is not None else 1:03d}",
    }
    return _FILENAME_PATTERN.sub(lambda m: values[m.group(1)], template) + extension
