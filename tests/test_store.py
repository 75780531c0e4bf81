from __future__ import annotations

import pytest

from needlepoint.core.stitch_index import pattern_violations
from needlepoint.core.store import PatternStore
from needlepoint.models.pattern import CanvasConfig, Color, Layer, Pattern, Stitch
from tests.utils import BLUE, RED, cells, layer_stitches, make_store, stitch_at


def test_create_new_pattern_defaults():
    store = PatternStore()
    pattern = store.create_new_pattern("Rose", 30, 20, 18)
    assert pattern.canvas.width == 30 and pattern.canvas.height == 20
    assert pattern.canvas.meshCount == 18
    assert [layer.id for layer in pattern.layers] == ["layer-1"]
    assert store.active_layer_id == "layer-1"
    assert not store.has_unsaved_changes
    assert not store.can_undo()


def test_create_new_pattern_rejects_empty_canvas():
    with pytest.raises(ValueError):
        PatternStore().create_new_pattern("Bad", 0, 5)


def test_paint_repaint_and_undo_sequence():
    store = make_store()
    store.set_stitch(2, 3, "red")
    store.set_stitch(2, 3, "red")
    assert len(store.history.history) == 1, "identical stitch should not push history"

    store.set_stitch(2, 3, "blue")
    stitches = layer_stitches(store)
    assert len(stitches) == 1
    assert stitches[0].colorId == "blue"
    assert store.has_unsaved_changes

    store.undo()
    assert layer_stitches(store)[0].colorId == "red"


def test_exclusive_stitch_replaces_occupant():
    store = make_store()
    store.set_stitch(1, 1, "red", "half-tl")
    store.set_stitch(1, 1, "blue", "square")
    stitches = layer_stitches(store)
    assert len(stitches) == 1
    assert stitches[0].type is None and stitches[0].colorId == "blue"


def test_stackable_stitches_coexist_with_exclusive():
    store = make_store()
    store.set_stitch(1, 1, "red")
    store.set_stitch(1, 1, "blue", "border-top")
    store.set_stitch(1, 1, "blue", "cross-tlbr")
    store.set_stitch(1, 1, "red", "border-top")
    stitches = layer_stitches(store)
    assert len(stitches) == 3
    border = next(s for s in stitches if s.type == "border-top")
    assert border.colorId == "red"
    assert pattern_violations(store.pattern) == []


def test_circles_occupy_positions_independently():
    store = make_store()
    store.set_stitch(0, 0, "red", "circle", "top-left")
    store.set_stitch(0, 0, "blue", "circle", "center")
    store.set_stitch(0, 0, "red", "square")
    assert len(layer_stitches(store)) == 3


def test_locked_layer_ignores_edits():
    store = make_store()
    store.toggle_layer_lock("layer-1")
    before = store.pattern
    depth = len(store.history.history)

    store.set_stitch(0, 0, "red")
    store.fill_area(0, 0, "red")
    store.draw_rectangle(0, 0, 3, 3, "red", True)
    store.remove_stitch(0, 0)

    assert store.pattern is before
    assert len(store.history.history) == depth


def test_out_of_canvas_point_edits_are_ignored():
    store = make_store(5, 5)
    store.set_stitch(5, 0, "red")
    store.set_stitch(-1, 2, "red")
    store.fill_area(7, 7, "red")
    assert layer_stitches(store) == []
    assert not store.can_undo()


def test_remove_stitch_clears_whole_cell():
    store = make_store()
    store.set_stitch(3, 3, "red")
    store.set_stitch(3, 3, "blue", "border-left")
    store.remove_stitch(3, 3)
    assert layer_stitches(store) == []


def test_remove_stitch_at_point_hits_only_that_circle():
    store = make_store()
    store.set_stitch(1, 1, "red", "circle", "top-left")
    store.set_stitch(1, 1, "red", "circle", "bottom-right")
    # cell size 20: the top-left anchor of cell (1, 1) sits at (20, 20)
    store.remove_stitch_at_point(21, 21, cell_size=20)
    remaining = layer_stitches(store)
    assert [s.position for s in remaining] == ["bottom-right"]

    store.remove_stitch_at_point(30, 30, cell_size=20)
    assert len(layer_stitches(store)) == 1


def test_fill_area_replaces_region_and_keeps_stackables():
    store = make_store(5, 5)
    for i in range(5):
        store.set_stitch(2, i, "blue")
    store.set_stitch(0, 0, "red", "border-top")
    store.fill_area(0, 0, "red")

    stitches = layer_stitches(store)
    squares = [s for s in stitches if s.type is None and s.colorId == "red"]
    assert cells(squares) == [(x, y) for x in range(2) for y in range(5)]
    assert any(s.type == "border-top" for s in stitches)
    assert pattern_violations(store.pattern) == []


def test_fill_same_color_is_noop():
    store = make_store(3, 3)
    store.fill_area(0, 0, "red")
    depth = len(store.history.history)
    store.fill_area(1, 1, "red")
    assert len(store.history.history) == depth


def test_shapes_outside_canvas_do_not_touch_history():
    store = make_store(5, 5)
    store.draw_line(10, 10, 20, 20, "red")
    store.draw_ellipse(10, 10, 20, 20, "red", True)
    assert not store.can_undo()


def test_rectangle_is_clipped_to_canvas():
    store = make_store(5, 5)
    store.draw_rectangle(-2, -2, 10, 10, "red", True)
    assert len(layer_stitches(store)) == 25
    assert pattern_violations(store.pattern) == []


def test_progress_tracking_targets_top_visible_layer():
    store = make_store()
    store.set_stitch(4, 4, "red")
    top = store.add_layer("Top")
    store.set_stitch(4, 4, "blue")
    store.set_stitch(4, 4, "blue", "border-top")

    store.toggle_stitch_completed(4, 4)
    top_stitches = store.pattern.get_layer(top).stitches
    assert all(s.completed for s in top_stitches)
    assert not layer_stitches(store, 0)[0].completed
    assert store.get_stitch_completed(4, 4)

    store.toggle_layer_visibility(top)
    assert not store.get_stitch_completed(4, 4)


def test_set_stitch_completed_relies_on_stroke_for_undo():
    store = make_store()
    for x in range(3):
        store.set_stitch(x, 0, "red")
    depth = len(store.history.history)

    store.set_stitch_completed(0, 0, True)
    assert len(store.history.history) == depth
    store.set_stitch_completed(0, 0, False)

    store.begin_stroke()
    for x in range(3):
        store.set_stitch_completed(x, 0, True)
    store.end_stroke()
    assert len(store.history.history) == depth + 1
    assert all(s.completed for s in layer_stitches(store))


def test_import_pattern_drops_out_of_canvas_stitches():
    store = PatternStore()
    stitches = [Stitch(x=0, y=0, colorId="red"), Stitch(x=9, y=9, colorId="red")]
    pattern = store.import_pattern("Imported", 4, 4, 14, [RED, BLUE], stitches)
    assert cells(pattern.layers[0].stitches) == [(0, 0)]
    assert all(c.symbol for c in pattern.colorPalette)
    assert store.has_unsaved_changes


def test_load_pattern_fills_missing_pieces():
    store = PatternStore()
    raw = Pattern(fileId="", name="Loaded", canvas=CanvasConfig(width=3, height=3), colorPalette=[RED])
    loaded = store.load_pattern(raw, "patterns/loaded.json")
    assert loaded.fileId.startswith("file-")
    assert len(loaded.layers) == 1
    assert loaded.colorPalette[0].symbol
    assert store.current_file_path == "patterns/loaded.json"
    assert not store.has_unsaved_changes


def test_regenerate_file_id_and_mark_saved():
    store = make_store()
    old = store.pattern.fileId
    assert store.regenerate_file_id() != old
    store.set_stitch(0, 0, "red")
    store.mark_saved("out.json")
    assert not store.has_unsaved_changes
    assert store.current_file_path == "out.json"


def test_tool_defaults_are_used_when_type_omitted():
    store = make_store()
    store.set_stitch_type("circle", "bottom")
    store.set_stitch(0, 0, "red")
    stitch = stitch_at(layer_stitches(store), 0, 0)
    assert stitch.type == "circle" and stitch.position == "bottom"


def test_pattern_violations_reports_bad_data():
    pattern = Pattern(
        name="bad",
        canvas=CanvasConfig(width=2, height=2),
        colorPalette=[Color(id="red", name="Red", rgb=(255, 0, 0))],
        layers=[
            Layer(
                id="l",
                name="L",
                stitches=[
                    Stitch(x=0, y=0, colorId="red"),
                    Stitch(x=0, y=0, colorId="red", type="half-tl"),
                    Stitch(x=5, y=0, colorId="red"),
                ],
            )
        ],
    )
    problems = pattern_violations(pattern)
    assert any("outside" in p for p in problems)
    assert any("exclusive" in p for p in problems)
