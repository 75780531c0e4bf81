from __future__ import annotations

import logging

from needlepoint.core.collaborators import ProcessedImage, grid_to_stitches
from needlepoint.models.pattern import Color, Stitch, TextLayerMetadata
from needlepoint.models.selection import LayerSelection
from tests.utils import RED, block, cells, layer_stitches, make_store


def test_add_rename_and_remove_layer():
    store = make_store()
    layer_id = store.add_layer()
    assert store.active_layer_id == layer_id
    assert store.pattern.layers[-1].name == "Layer 2"

    store.rename_layer(layer_id, "Outline")
    assert store.pattern.get_layer(layer_id).name == "Outline"

    store.remove_layer(layer_id)
    assert store.pattern.get_layer(layer_id) is None
    assert store.active_layer_id == "layer-1"


def test_last_layer_cannot_be_removed():
    store = make_store()
    store.remove_layer("layer-1")
    assert len(store.pattern.layers) == 1
    assert not store.can_undo()


def test_reorder_layer_respects_edges():
    store = make_store()
    top = store.add_layer("Top")
    store.reorder_layer(top, "up")
    assert store.pattern.layers[-1].id == top
    store.reorder_layer(top, "down")
    assert store.pattern.layers[0].id == top


def test_merge_layers_source_wins():
    store = make_store()
    store.set_stitch(0, 0, "red")
    store.set_stitch(1, 0, "red")
    top = store.add_layer("Top")
    store.set_stitch(0, 0, "blue")

    store.merge_layers(top, "layer-1")
    assert len(store.pattern.layers) == 1
    merged = {(s.x, s.y): s.colorId for s in layer_stitches(store)}
    assert merged == {(0, 0): "blue", (1, 0): "red"}
    assert store.active_layer_id == "layer-1"


def test_duplicate_layer_inserts_copy_above():
    store = make_store()
    store.set_stitch(2, 2, "red")
    copy_id = store.duplicate_layer("layer-1")
    assert [layer.id for layer in store.pattern.layers] == ["layer-1", copy_id]
    assert store.pattern.get_layer(copy_id).name == "Layer 1 copy"
    assert cells(store.pattern.get_layer(copy_id).stitches) == [(2, 2)]


def test_hidden_layer_is_still_editable():
    store = make_store()
    store.toggle_layer_visibility("layer-1")
    store.set_stitch(0, 0, "red")
    assert len(layer_stitches(store)) == 1


def test_import_as_layer_reuses_thread_codes():
    store = make_store()
    incoming_red = Color(id="imported-321", name="Red", rgb=(199, 43, 59), threadBrand="DMC", threadCode="321")
    incoming_green = Color(id="imported-699", name="Green", rgb=(0, 92, 9), threadBrand="DMC", threadCode="699")
    stitches = [
        Stitch(x=0, y=0, colorId="imported-321"),
        Stitch(x=1, y=0, colorId="imported-699"),
        Stitch(x=50, y=0, colorId="imported-699"),
    ]
    layer_id = store.import_as_layer("Imported", [incoming_red, incoming_green], stitches)

    palette_ids = [c.id for c in store.pattern.colorPalette]
    assert "imported-321" not in palette_ids
    assert "imported-699" in palette_ids
    layer = store.pattern.get_layer(layer_id)
    assert {(s.x, s.colorId) for s in layer.stitches} == {(0, RED.id), (1, "imported-699")}
    assert all(c.symbol for c in store.pattern.colorPalette)


def test_import_processed_image_places_grid():
    store = make_store()
    result = ProcessedImage(
        width=3,
        height=2,
        colors=[Color(id="c1", name="Teal", rgb=(0, 128, 128), threadCode="3849")],
        pixelGrid=[["c1", None, "c1"], [None, "c1", None]],
    )
    layer_id = store.import_processed_image("Photo", result, position=(4, 5))
    assert cells(store.pattern.get_layer(layer_id).stitches) == [(4, 5), (5, 6), (6, 5)]


def test_grid_to_stitches_skips_transparent_cells():
    stitches = grid_to_stitches([["a", None], [None, "b"]])
    assert [(s.x, s.y, s.colorId) for s in stitches] == [(0, 0, "a"), (1, 1, "b")]
    assert grid_to_stitches([]) == []


def test_ragged_grid_is_reported_and_skipped(caplog):
    with caplog.at_level(logging.WARNING, logger="needlepoint.core.collaborators"):
        assert grid_to_stitches([["a", "b"], ["c"]]) == []
    assert "not rectangular" in caplog.text


def test_update_layer_with_text_refreshes_selection_bounds():
    store = make_store(20, 20)
    metadata = TextLayerMetadata(text="A", fontFamily="Sans", colorId="red")
    layer_id = store.import_as_layer("Text", [], block(0, 0, 2, 2), metadata=metadata)
    store.select_layer_for_transform(layer_id)

    updated = metadata.model_copy(update={"text": "AB"})
    store.update_layer_with_text(layer_id, block(0, 0, 4, 2), updated)
    assert store.pattern.get_layer(layer_id).metadata.text == "AB"
    assert isinstance(store.selection, LayerSelection)
    assert store.selection.bounds.width == 4


def test_multi_layer_move_shifts_unlocked_layers():
    store = make_store()
    store.set_stitch(1, 1, "red")
    middle = store.add_layer("Middle")
    store.set_stitch(2, 2, "blue")
    locked = store.add_layer("Locked")
    store.set_stitch(3, 3, "red")
    store.toggle_layer_lock(locked)
    depth = len(store.history.history)

    store.start_layers_move(["layer-1", middle, locked], (0.0, 0.0))
    assert store.is_moving_layers
    store.update_layers_move((2.2, 1.0))
    store.update_layers_move((3.0, 1.0))
    store.end_layers_move()
    assert not store.is_moving_layers

    assert cells(layer_stitches(store, 0)) == [(4, 2)]
    assert cells(store.pattern.get_layer(middle).stitches) == [(5, 3)]
    assert cells(store.pattern.get_layer(locked).stitches) == [(3, 3)]
    assert len(store.history.history) == depth + 1

    store.undo()
    assert cells(layer_stitches(store, 0)) == [(1, 1)]


def test_layers_move_can_return_stitches_dragged_past_edge():
    store = make_store(5, 5)
    store.set_stitch(4, 0, "red")
    store.start_layers_move(["layer-1"], (0, 0))
    store.update_layers_move((2, 0))
    assert layer_stitches(store) == []
    store.update_layers_move((0, 0))
    store.end_layers_move()
    assert cells(layer_stitches(store)) == [(4, 0)]


def test_nudge_layers():
    store = make_store()
    store.set_stitch(0, 0, "red")
    store.nudge_layers(["layer-1"], 1, 2)
    assert cells(layer_stitches(store)) == [(1, 2)]
    store.nudge_layers(["layer-1"], 0, 0)
    assert len(store.history.history) == 2


class FakeImageProcessor:
    def __init__(self, result: ProcessedImage) -> None:
        self.result = result
        self.calls = []

    def process_image(self, path, target_size, max_colors, dither_mode, background_removal):
        self.calls.append((path, target_size, max_colors, dither_mode, background_removal))
        return self.result


def test_import_image_runs_processor_and_adds_layer():
    store = make_store()
    result = ProcessedImage(
        width=2,
        height=1,
        colors=[Color(id="c1", name="Red", rgb=(199, 43, 59), threadBrand="DMC", threadCode="321")],
        pixelGrid=[["c1", "c1"]],
    )
    processor = FakeImageProcessor(result)
    layer_id = store.import_image(processor, "photo.png", target_size=40, max_colors=8)

    assert processor.calls == [("photo.png", 40, 8, "none", False)]
    layer = store.pattern.get_layer(layer_id)
    assert layer.name == "Image"
    assert {s.colorId for s in layer.stitches} == {RED.id}


def test_set_active_layer_ignores_unknown_ids():
    store = make_store()
    top = store.add_layer()
    store.set_active_layer("layer-1")
    assert store.active_layer_id == "layer-1"
    store.set_active_layer("missing")
    assert store.active_layer_id == "layer-1"
    store.set_active_layer(top)
    store.set_stitch(0, 0, "red")
    assert cells(store.pattern.get_layer(top).stitches) == [(0, 0)]
