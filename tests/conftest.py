import io
from datetime import datetime

import pytest
from PIL import ExifTags, Image

from tilemark.config import get_settings

FIXED_NOW = datetime(2024, 3, 5, 9, 7, 3)


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """每个测试使用独立的 TILEMARK_HOME，并清空配置缓存"""
    for name in ("TILEMARK_FONT_PATH", "TILEMARK_OUTPUT_FORMAT", "TILEMARK_JPEG_QUALITY",
                 "TILEMARK_FILENAME_TEMPLATE", "TILEMARK_ARCHIVE_NAME",
                 "TILEMARK_PREVIEW_DEBOUNCE_MS", "TILEMARK_PREVIEW_MAX_SIZE",
                 "TILEMARK_APPLY_EXIF_ROTATION", "TILEMARK_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("TILEMARK_HOME", str(tmp_path / "home"))
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def now():
    return FIXED_NOW


def image_bytes(size=(40, 30), color="white", fmt="PNG", orientation=None):
    img = Image.new("RGB", size, color)
    buf = io.BytesIO()
    if orientation is not None:
        exif = Image.Exif()
        exif[ExifTags.Base.Orientation] = orientation
        img.save(buf, fmt, exif=exif)
    else:
        img.save(buf, fmt)
    return buf.getvalue()


@pytest.fixture
def png_bytes():
    return image_bytes()


@pytest.fixture
def make_image_bytes():
    return image_bytes
