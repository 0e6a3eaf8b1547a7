import io
import zipfile

import pytest
from PIL import Image

from tilemark.cli import build_parser, build_spec, collect_inputs, main
from tilemark.models import WatermarkSpec
from tilemark.template_manager import TemplateManager


def parse(*argv):
    return build_parser().parse_args(["in.png", *argv])


def test_build_spec_defaults():
    assert build_spec(parse()) == WatermarkSpec()


def test_build_spec_overrides():
    args = parse("-t", "第一行\\n第二行", "--centered", "--angle", "370", "--opacity", "35",
                 "--stroke-width", "0")
    spec = build_spec(args)
    assert spec.text == "第一行\n第二行"
    assert spec.tiled is False
    assert spec.angle == pytest.approx(10)
    assert spec.opacity == 35
    assert spec.stroke_width == 0
    assert spec.font_size == WatermarkSpec().font_size


def test_invalid_opacity_is_rejected():
    with pytest.raises(SystemExit):
        parse("--opacity", "150")


def test_preset_is_used_as_base(tmp_path):
    manager = TemplateManager(tmp_path / "t.json")
    manager.save_template("hr", WatermarkSpec(text="HR only", angle=45, tiled=False))
    spec = build_spec(parse("-p", "hr", "--opacity", "10"), manager)
    assert spec == WatermarkSpec(text="HR only", angle=45, tiled=False, opacity=10)


def test_unknown_preset(tmp_path):
    with pytest.raises(SystemExit):
        build_spec(parse("-p", "nope"), TemplateManager(tmp_path / "t.json"))


def test_collect_inputs(tmp_path, png_bytes):
    (tmp_path / "sub").mkdir()
    (tmp_path / "b.png").write_bytes(png_bytes)
    (tmp_path / "sub" / "a.jpg").write_bytes(png_bytes)
    (tmp_path / "notes.txt").write_text("x")
    found = collect_inputs([tmp_path, tmp_path / "missing.png"])
    assert found == sorted([tmp_path / "b.png", tmp_path / "sub" / "a.jpg"])


def test_single_export(tmp_path, png_bytes):
    src = tmp_path / "photo.png"
    src.write_bytes(png_bytes)
    out = tmp_path / "out"
    assert main([str(src), "-o", str(out), "-t", "OK", "--font-size", "8",
                 "--name-template", "{basename}_wm"]) == 0
    assert Image.open(out / "photo_wm.png").size == (40, 30)


def test_single_export_never_overwrites(tmp_path, png_bytes):
    src = tmp_path / "photo.png"
    src.write_bytes(png_bytes)
    argv = [str(src), "-o", str(tmp_path), "--name-template", "{basename}", "-f", "jpeg"]
    assert main(argv) == 0
    assert main(argv) == 0
    assert (tmp_path / "photo.jpg").exists()
    assert (tmp_path / "photo_1.jpg").exists()


def test_batch_export_to_zip(tmp_path, png_bytes):
    folder = tmp_path / "in"
    folder.mkdir()
    (folder / "a.png").write_bytes(png_bytes)
    (folder / "b.png").write_bytes(b"corrupt")
    (folder / "c.png").write_bytes(png_bytes)
    out = tmp_path / "out"
    assert main([str(folder), "-o", str(out), "--archive-name", "marks.zip",
                 "--name-template", "{index}_{basename}"]) == 0
    with zipfile.ZipFile(out / "marks.zip") as zf:
        assert zf.namelist() == ["001_a.png", "003_c.png"]
        Image.open(io.BytesIO(zf.read("001_a.png"))).verify()


def test_batch_with_only_bad_images_fails(tmp_path):
    (tmp_path / "x.png").write_bytes(b"")
    (tmp_path / "y.png").write_bytes(b"bad")
    out = tmp_path / "out"
    assert main([str(tmp_path / "x.png"), str(tmp_path / "y.png"), "-o", str(out)]) == 1
    assert not (out / "watermarked_images.zip").exists()


def test_no_inputs(tmp_path):
    assert main([str(tmp_path / "missing")]) == 1


@pytest.mark.parametrize("option", ["--color", "--stroke-color"])
def test_invalid_colour_is_rejected(option):
    with pytest.raises(SystemExit):
        parse(option, "not-a-colour")


def test_broken_preset_uses_defaults(tmp_path):
    manager = TemplateManager(tmp_path / "t.json")
    manager.templates["bad"] = {"color": "???"}
    manager.save_templates()
    assert build_spec(parse("-p", "bad"), manager) == WatermarkSpec()
