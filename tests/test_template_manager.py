import json

import pytest

from tilemark.models import WatermarkSpec
from tilemark.template_manager import DEFAULT_TEMPLATE, TemplateManager, validate_spec


def test_default_template_is_created(tmp_path):
    manager = TemplateManager()
    path = tmp_path / "home" / "templates.json"
    assert manager.path == path
    assert path.exists()
    assert manager.load_template(DEFAULT_TEMPLATE) == WatermarkSpec()


def test_save_and_reload(tmp_path):
    path = tmp_path / "t.json"
    spec = WatermarkSpec(text="内部资料\n{YYYY-MM-DD}", tiled=False, angle=45, opacity=25)
    TemplateManager(path).save_template("内部", spec)

    reloaded = TemplateManager(path)
    assert reloaded.last_used == "内部"
    assert reloaded.load_template("内部") == spec
    assert "内部资料" in path.read_text(encoding="utf-8")


def test_unknown_template(tmp_path):
    assert TemplateManager(tmp_path / "t.json").load_template("missing") is None


def test_unknown_keys_are_ignored(tmp_path):
    path = tmp_path / "t.json"
    path.write_text(json.dumps({
        "templates": {"old": {"text": "x", "font_family": "Arial", "font_size": 12}},
        "last_used": "old",
    }), encoding="utf-8")
    spec = TemplateManager(path).load_template("old")
    assert spec == WatermarkSpec(text="x", font_size=12)


def test_corrupt_file_is_reset(tmp_path, caplog):
    path = tmp_path / "t.json"
    path.write_text("{not json", encoding="utf-8")
    manager = TemplateManager(path)
    assert list(manager.templates) == [DEFAULT_TEMPLATE]
    assert "t.json" in caplog.text


def test_delete_falls_back_to_default(tmp_path):
    manager = TemplateManager(tmp_path / "t.json")
    manager.save_template("tmp", WatermarkSpec(text="tmp"))
    manager.delete_template("tmp")
    assert "tmp" not in manager.templates
    assert manager.last_used == DEFAULT_TEMPLATE
    assert TemplateManager(tmp_path / "t.json").last_used == DEFAULT_TEMPLATE


@pytest.mark.parametrize("broken", [
    {"color": "not-a-colour"},
    {"stroke_color": [1, 2]},
    {"font_size": "large"},
    {"opacity": None},
    {"tiled": "yes"},
    "not a dict",
])
def test_invalid_template_falls_back_to_defaults(tmp_path, caplog, broken):
    path = tmp_path / "t.json"
    path.write_text(json.dumps({"templates": {"bad": broken}, "last_used": "bad"}),
                    encoding="utf-8")
    manager = TemplateManager(path)
    assert manager.load_template("bad") == WatermarkSpec()
    assert "bad" in caplog.text


def test_validate_spec_accepts_defaults():
    assert validate_spec(WatermarkSpec()) == WatermarkSpec()
