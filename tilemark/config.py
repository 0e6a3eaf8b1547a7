# tilemark/config.py
"""从环境变量读取应用配置，非法值记录警告并回退到默认值"""
import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

_TRUE = {'1', 'true', 'yes', 'on'}
_FALSE = {'0', 'false', 'no', 'off'}
_FORMATS = {'png', 'jpeg', 'jpg'}


def _read_int(name, default, minimum=1, maximum=None):
    value = os.getenv(name)
    if value is None:
        return default
    try:
        parsed = int(value)
        if parsed < minimum or (maximum is not None and parsed > maximum):
            raise ValueError
        return parsed
    except ValueError:
        logger.warning("Invalid value for %s: %s. Falling back to %s.", name, value, default)
        return default


def _read_bool(name, default):
    value = os.getenv(name)
    if value is None:
        return default
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    logger.warning("Invalid value for %s: %s. Falling back to %s.", name, value, default)
    return default


def _read_choice(name, default, choices):
    value = os.getenv(name)
    if value is None:
        return default
    if value.lower() not in choices:
        logger.warning("Invalid value for %s: %s. Falling back to %s.", name, value, default)
        return default
    return value.lower()


@dataclass(frozen=True)
class Settings:
    font_path: Optional[str]
    output_format: str
    jpeg_quality: int
    filename_template: str
    archive_name: str
    preview_debounce_ms: int
    preview_max_size: int
    apply_exif_rotation: bool
    log_level: str
    home: Path

    @property
    def templates_file(self):
        return self.home / 'templates.json'

    @classmethod
    def load(cls):
        return cls(
            font_path=os.getenv('TILEMARK_FONT_PATH') or None,
            output_format=_read_choice('TILEMARK_OUTPUT_FORMAT', 'png', _FORMATS),
            jpeg_quality=_read_int('TILEMARK_JPEG_QUALITY', 95, maximum=100),
            filename_template=os.getenv('TILEMARK_FILENAME_TEMPLATE') or '{basename}_watermarked_{date}',
            archive_name=os.getenv('TILEMARK_ARCHIVE_NAME') or 'watermarked_images.zip',
            preview_debounce_ms=_read_int('TILEMARK_PREVIEW_DEBOUNCE_MS', 150, minimum=0),
            preview_max_size=_read_int('TILEMARK_PREVIEW_MAX_SIZE', 1200),
            apply_exif_rotation=_read_bool('TILEMARK_APPLY_EXIF_ROTATION', False),
            log_level=(os.getenv('TILEMARK_LOG_LEVEL') or 'INFO').upper(),
            home=Path(os.getenv('TILEMARK_HOME') or Path.home() / '.tilemark'),
        )


@lru_cache(maxsize=1)
def get_settings():
    return Settings.load()
