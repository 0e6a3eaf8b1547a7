import io
import zipfile

import pytest
from PIL import Image

from tilemark.batch_worker import (
    build_archive,
    clear_items,
    load_item,
    new_item,
    process_batch,
    remove_item,
    reset_item,
)
from tilemark.errors import EmptyArchive
from tilemark.models import ItemStatus, WatermarkSpec

SPEC = WatermarkSpec(text="SAMPLE {YYYY}", font_size=10, line_height=14, spacing=6)


@pytest.fixture
def items(png_bytes):
    return [new_item("a.png", png_bytes), new_item("b.png", b"broken"), new_item("c.jpg", png_bytes)]


def test_one_failure_does_not_stop_the_batch(items, now):
    result = process_batch(items, SPEC, now=now)
    statuses = [i.status for i in result.items]
    assert statuses == [ItemStatus.COMPLETED, ItemStatus.ERROR, ItemStatus.COMPLETED]
    assert result.items[1].error
    assert [i.name for i in result.completed] == ["a.png", "c.jpg"]
    assert [i.name for i in result.failed] == ["b.png"]

    with zipfile.ZipFile(io.BytesIO(build_archive(result))) as zf:
        assert zf.namelist() == ["a_watermarked_20240305.png", "c_watermarked_20240305.png"]
        assert Image.open(io.BytesIO(zf.read("a_watermarked_20240305.png"))).size == (40, 30)


def test_items_are_replaced_not_mutated(items, now):
    result = process_batch(items, SPEC, now=now)
    assert all(i.status is ItemStatus.PENDING for i in items)
    assert [i.id for i in result.items] == [i.id for i in items]


def test_progress_is_reported_per_item(items, now):
    calls = []
    process_batch(items, SPEC, now=now, progress_callback=lambda *a: calls.append(a))
    assert [(done, total, ok) for done, total, ok, _ in calls] == [
        (1, 3, True), (2, 3, False), (3, 3, True),
    ]
    assert calls[0][3] == "a_watermarked_20240305.png"
    assert calls[1][3].startswith("b.png:")


def test_finished_items_are_not_processed_again(items, now):
    first = process_batch(items, SPEC, now=now)
    calls = []
    second = process_batch(first.items, SPEC, now=now, progress_callback=lambda *a: calls.append(a))
    assert calls == []
    assert second.entries == ()
    with pytest.raises(EmptyArchive):
        build_archive(second)


def test_terminal_items_reject_transitions(items, now):
    done = process_batch(items[:1], SPEC, now=now).items[0]
    with pytest.raises(ValueError):
        done.transition(ItemStatus.PROCESSING)


def test_reset_item_allows_reprocessing(items, now):
    done = process_batch(items[:1], SPEC, now=now).items[0]
    again = reset_item(done)
    assert again.status is ItemStatus.PENDING
    assert again.error is None
    assert process_batch([again], SPEC, now=now).items[0].status is ItemStatus.COMPLETED


def test_index_token_uses_position_in_list(items, now):
    result = process_batch(items, SPEC, template="{index}_{basename}", now=now)
    assert [e.filename for e in result.entries] == ["001_a.png", "003_c.png"]


def test_jpeg_batch_uses_jpeg_extension(items, now):
    result = process_batch(items, SPEC, fmt="jpeg", now=now)
    assert [e.filename for e in result.entries] == [
        "a_watermarked_20240305.jpg", "c_watermarked_20240305.jpg",
    ]
    assert all(e.data.startswith(b"\xff\xd8") for e in result.entries)


def test_all_failures_give_empty_archive(now):
    result = process_batch([new_item("x.png", b""), new_item("y.png", b"??")], SPEC, now=now)
    assert len(result.failed) == 2
    with pytest.raises(EmptyArchive):
        build_archive(result)


def test_unfinished_batch_cannot_be_archived(items, now):
    result = process_batch(items[:1], SPEC, now=now)
    pending = result.__class__(items=result.items + (items[2],), entries=result.entries)
    with pytest.raises(ValueError, match="unfinished"):
        build_archive(pending)


def test_surfaces_are_dropped_unless_requested(items, now):
    dropped = process_batch(items[:1], SPEC, now=now).items[0]
    kept = process_batch(items[:1], SPEC, now=now, keep_surfaces=True).items[0]
    assert dropped.surface is None
    assert kept.surface.size == (40, 30)
    assert kept.surface.mode == "RGBA"


def test_load_item(make_image_bytes):
    item = load_item(new_item("r.jpg", make_image_bytes(size=(40, 30), fmt="JPEG", orientation=6)),
                     thumb_size=20)
    assert item.status is ItemStatus.PENDING
    assert (item.oriented.width, item.oriented.height) == (30, 40)
    assert item.preview.size == (15, 20)


def test_load_item_failure():
    item = load_item(new_item("bad.png", b"nope"))
    assert item.status is ItemStatus.ERROR
    assert item.oriented is None


def test_preloaded_orientation_is_used(make_image_bytes, now):
    item = load_item(new_item("r.jpg", make_image_bytes(size=(40, 30), fmt="JPEG", orientation=6)))
    result = process_batch([item], SPEC, now=now, keep_surfaces=True)
    assert result.items[0].surface.size == (30, 40)


def test_remove_and_clear_release_previews(png_bytes):
    a = load_item(new_item("a.png", png_bytes), thumb_size=16)
    b = load_item(new_item("b.png", png_bytes), thumb_size=16)
    closed = []
    for item in (a, b):
        item.preview.close = lambda name=item.name: closed.append(name)

    remaining = remove_item((a, b), a.id)
    assert [i.id for i in remaining] == [b.id]
    assert closed == ["a.png"]

    assert clear_items(remaining) == ()
    assert closed == ["a.png", "b.png"]
