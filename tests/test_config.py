import logging

from tilemark.config import Settings, get_settings


def test_defaults(tmp_path):
    settings = get_settings()
    assert settings.output_format == "png"
    assert settings.jpeg_quality == 95
    assert settings.filename_template == "{basename}_watermarked_{date}"
    assert settings.archive_name == "watermarked_images.zip"
    assert settings.preview_debounce_ms == 150
    assert settings.apply_exif_rotation is False
    assert settings.font_path is None
    assert settings.log_level == "INFO"
    assert settings.templates_file == tmp_path / "home" / "templates.json"


def test_settings_are_cached():
    assert get_settings() is get_settings()


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("TILEMARK_OUTPUT_FORMAT", "JPEG")
    monkeypatch.setenv("TILEMARK_JPEG_QUALITY", "70")
    monkeypatch.setenv("TILEMARK_PREVIEW_DEBOUNCE_MS", "0")
    monkeypatch.setenv("TILEMARK_APPLY_EXIF_ROTATION", "yes")
    monkeypatch.setenv("TILEMARK_LOG_LEVEL", "debug")
    monkeypatch.setenv("TILEMARK_FONT_PATH", "/fonts/a.ttf")
    settings = Settings.load()
    assert settings.output_format == "jpeg"
    assert settings.jpeg_quality == 70
    assert settings.preview_debounce_ms == 0
    assert settings.apply_exif_rotation is True
    assert settings.log_level == "DEBUG"
    assert settings.font_path == "/fonts/a.ttf"


def test_invalid_values_fall_back(monkeypatch, caplog):
    monkeypatch.setenv("TILEMARK_OUTPUT_FORMAT", "gif")
    monkeypatch.setenv("TILEMARK_JPEG_QUALITY", "500")
    monkeypatch.setenv("TILEMARK_PREVIEW_MAX_SIZE", "big")
    monkeypatch.setenv("TILEMARK_APPLY_EXIF_ROTATION", "maybe")
    with caplog.at_level(logging.WARNING, logger="tilemark.config"):
        settings = Settings.load()
    assert settings.output_format == "png"
    assert settings.jpeg_quality == 95
    assert settings.preview_max_size == 1200
    assert settings.apply_exif_rotation is False
    assert caplog.text.count("Falling back") == 4
