from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from ..models.pattern import Color, Layer, Stitch, TextLayerMetadata
from ..models.selection import AreaSelection, LayerSelection
from .canvas_resize import ClipReport, detect_clipped_content, resize_pattern_canvas
from .collaborators import ImageProcessor, ProcessedImage, grid_to_stitches
from .geometry import calculate_bounds
from .stitch_index import merge_stitches
from .symbols import assign_missing_symbols
from .types import AnchorPosition, LayerDirection

logger = logging.getLogger(__name__)


@dataclass
class LayersMoveState:
    start: Tuple[float, float]
    originals: Dict[str, List[Stitch]] = field(default_factory=dict)
    delta: Tuple[int, int] = (0, 0)


class LayerOpsMixin:
    """Layer management, imports, canvas resize and multi-layer moves."""

    def _selection_touches(self, layer_id: str) -> bool:
        selection = self.selection
        if isinstance(selection, LayerSelection):
            return selection.layer_id == layer_id
        if isinstance(selection, AreaSelection):
            return layer_id in selection.sources
        return False

    # =================================================================
    #  Layer management
    # =================================================================

    def set_active_layer(self, layer_id: str) -> None:
        if self.pattern is not None and self.pattern.get_layer(layer_id) is not None:
            self.active_layer_id = layer_id

    def add_layer(self, name: Optional[str] = None) -> Optional[str]:
        if self.pattern is None:
            return None
        self.history.push_snapshot(self.pattern)
        layer = Layer(name=name or f"Layer {len(self.pattern.layers) + 1}")
        self._commit(self.pattern.model_copy(update={"layers": [*self.pattern.layers, layer]}))
        self.active_layer_id = layer.id
        return layer.id

    def remove_layer(self, layer_id: str) -> None:
        if self.pattern is None or len(self.pattern.layers) <= 1:
            return
        index = self.pattern.layer_index(layer_id)
        if index < 0:
            return

        self.history.push_snapshot(self.pattern)
        layers = [layer for layer in self.pattern.layers if layer.id != layer_id]
        self._commit(self.pattern.model_copy(update={"layers": layers}))
        if self.active_layer_id == layer_id:
            self.active_layer_id = layers[max(0, index - 1)].id
        if self._selection_touches(layer_id):
            self.selection = None

    def _update_layer(self, layer_id: str, **updates) -> None:
        if self.pattern is None:
            return
        index = self.pattern.layer_index(layer_id)
        if index < 0:
            return
        self.history.push_snapshot(self.pattern)
        self._commit(self.pattern.with_layer(index, **updates))

    def rename_layer(self, layer_id: str, name: str) -> None:
        self._update_layer(layer_id, name=name)

    def toggle_layer_visibility(self, layer_id: str) -> None:
        layer = self.pattern.get_layer(layer_id) if self.pattern else None
        if layer is not None:
            self._update_layer(layer_id, visible=not layer.visible)

    def toggle_layer_lock(self, layer_id: str) -> None:
        layer = self.pattern.get_layer(layer_id) if self.pattern else None
        if layer is not None:
            self._update_layer(layer_id, locked=not layer.locked)

    def reorder_layer(self, layer_id: str, direction: LayerDirection) -> None:
        if self.pattern is None:
            return
        index = self.pattern.layer_index(layer_id)
        if index < 0:
            return
        new_index = index + 1 if direction == "up" else index - 1
        if new_index < 0 or new_index >= len(self.pattern.layers):
            return

        self.history.push_snapshot(self.pattern)
        layers = list(self.pattern.layers)
        layers[index], layers[new_index] = layers[new_index], layers[index]
        self._commit(self.pattern.model_copy(update={"layers": layers}))

    def merge_layers(self, source_layer_id: str, target_layer_id: str) -> None:
        """Merge ``source`` into ``target``; source stitches win at shared keys."""

        if self.pattern is None or source_layer_id == target_layer_id:
            return
        source = self.pattern.get_layer(source_layer_id)
        target = self.pattern.get_layer(target_layer_id)
        if source is None or target is None:
            return

        self.history.push_snapshot(self.pattern)
        merged = merge_stitches(target.stitches, source.stitches)
        layers = [
            layer.model_copy(update={"stitches": merged, "metadata": None}) if layer.id == target_layer_id else layer
            for layer in self.pattern.layers
            if layer.id != source_layer_id
        ]
        self._commit(self.pattern.model_copy(update={"layers": layers}))
        if self.active_layer_id == source_layer_id:
            self.active_layer_id = target_layer_id
        if self._selection_touches(source_layer_id) or self._selection_touches(target_layer_id):
            self.selection = None

    def duplicate_layer(self, layer_id: str) -> Optional[str]:
        if self.pattern is None:
            return None
        index = self.pattern.layer_index(layer_id)
        if index < 0:
            return None

        self.history.push_snapshot(self.pattern)
        original = self.pattern.layers[index]
        copy = Layer(name=f"{original.name} copy", stitches=list(original.stitches))
        layers = list(self.pattern.layers)
        layers.insert(index + 1, copy)
        self._commit(self.pattern.model_copy(update={"layers": layers}))
        self.active_layer_id = copy.id
        return copy.id

    # =================================================================
    #  Imports
    # =================================================================

    def import_as_layer(
        self,
        name: str,
        colors: List[Color],
        stitches: List[Stitch],
        metadata: Optional[TextLayerMetadata] = None,
    ) -> Optional[str]:
        """Add imported content as a new layer, reusing palette entries by thread code."""

        if self.pattern is None:
            return None

        code_to_id = {c.threadCode: c.id for c in self.pattern.colorPalette if c.threadCode}
        remap: Dict[str, str] = {}
        new_colors: List[Color] = []
        for color in colors:
            if color.threadCode and color.threadCode in code_to_id:
                remap[color.id] = code_to_id[color.threadCode]
                continue
            new_colors.append(color)
            if color.threadCode:
                code_to_id[color.threadCode] = color.id

        canvas = self.pattern.canvas
        remapped = [
            s.model_copy(update={"colorId": remap[s.colorId]}) if s.colorId in remap else s
            for s in stitches
            if canvas.contains(s.x, s.y)
        ]

        self.history.push_snapshot(self.pattern)
        layer = Layer(name=name, stitches=merge_stitches([], remapped), metadata=metadata)
        palette = assign_missing_symbols([*self.pattern.colorPalette, *new_colors])
        self._commit(
            self.pattern.model_copy(update={"colorPalette": palette, "layers": [*self.pattern.layers, layer]})
        )
        self.active_layer_id = layer.id
        logger.info(
            "Imported layer %r: %d stitches, %d new colors, %d remapped colors",
            name,
            len(layer.stitches),
            len(new_colors),
            len(remap),
        )
        return layer.id

    def import_processed_image(
        self, name: str, result: ProcessedImage, position: Tuple[int, int] = (0, 0)
    ) -> Optional[str]:
        px, py = position
        stitches = [s.moved(px, py) for s in grid_to_stitches(result.pixelGrid)]
        return self.import_as_layer(name, result.colors, stitches)

    def import_image(
        self,
        processor: ImageProcessor,
        path: str,
        name: Optional[str] = None,
        *,
        target_size: int = 100,
        max_colors: int = 20,
        dither_mode: str = "none",
        background_removal: bool = False,
        position: Tuple[int, int] = (0, 0),
    ) -> Optional[str]:
        if self.pattern is None:
            return None
        result = processor.process_image(path, target_size, max_colors, dither_mode, background_removal)
        logger.info(
            "Processed image %s into %dx%d cells, %d colors", path, result.width, result.height, len(result.colors)
        )
        return self.import_processed_image(name or "Image", result, position)

    def update_layer_with_text(
        self, layer_id: str, stitches: List[Stitch], metadata: TextLayerMetadata
    ) -> None:
        if self.pattern is None:
            return
        index = self.pattern.layer_index(layer_id)
        if index < 0:
            return

        self.history.push_snapshot(self.pattern)
        canvas = self.pattern.canvas
        kept = merge_stitches([], (s for s in stitches if canvas.contains(s.x, s.y)))
        self._commit(self.pattern.with_layer(index, stitches=kept, metadata=metadata))

        selection = self.selection
        if isinstance(selection, LayerSelection) and selection.layer_id == layer_id:
            bounds = calculate_bounds(kept)
            if bounds is None:
                self.selection = None
            else:
                selection.bounds = bounds

    # =================================================================
    #  Canvas resize
    # =================================================================

    def detect_clipped_content(self, width: int, height: int, anchor: AnchorPosition) -> ClipReport:
        if self.pattern is None:
            return ClipReport()
        canvas = self.pattern.canvas
        return detect_clipped_content(self.pattern.layers, canvas.width, canvas.height, width, height, anchor)

    def resize_canvas(
        self,
        width: int,
        height: int,
        mesh_count: Optional[int] = None,
        anchor: AnchorPosition = "top-left",
    ) -> None:
        """Apply a canvas resize; run :meth:`detect_clipped_content` first."""

        if self.pattern is None:
            return
        canvas = self.pattern.canvas
        mesh = canvas.meshCount if mesh_count is None else mesh_count
        if (width, height, mesh) == (canvas.width, canvas.height, canvas.meshCount):
            return
        resized = resize_pattern_canvas(self.pattern, width, height, mesh, anchor)
        self.history.push_snapshot(self.pattern)
        self._commit(resized)
        self.selection = None
        self._layers_move = None

    # =================================================================
    #  Multi-layer move
    # =================================================================

    def _movable_layers(self, layer_ids: Iterable[str]) -> Dict[str, List[Stitch]]:
        originals: Dict[str, List[Stitch]] = {}
        for layer_id in layer_ids:
            layer = self.pattern.get_layer(layer_id)
            if layer is None or layer.locked:
                continue
            originals[layer_id] = list(layer.stitches)
        return originals

    def _apply_layers_offset(self, originals: Dict[str, List[Stitch]], dx: int, dy: int) -> None:
        pattern = self.pattern
        for layer_id, stitches in originals.items():
            index = pattern.layer_index(layer_id)
            if index < 0:
                continue
            moved = [s.moved(dx, dy) for s in stitches]
            pattern = pattern.with_layer(index, stitches=[s for s in moved if pattern.canvas.contains(s.x, s.y)])
        self._commit(pattern)

    def start_layers_move(self, layer_ids: Iterable[str], point: Tuple[float, float]) -> None:
        if self.pattern is None:
            return
        originals = self._movable_layers(layer_ids)
        if not originals:
            return
        self.history.push_snapshot(self.pattern)
        self.selection = None
        self._layers_move = LayersMoveState(start=point, originals=originals)

    def update_layers_move(self, point: Tuple[float, float]) -> None:
        state: Optional[LayersMoveState] = self._layers_move
        if state is None or self.pattern is None:
            return
        delta = (int(round(point[0] - state.start[0])), int(round(point[1] - state.start[1])))
        if delta == state.delta:
            return
        state.delta = delta
        self._apply_layers_offset(state.originals, *delta)

    def end_layers_move(self) -> None:
        self._layers_move = None

    @property
    def is_moving_layers(self) -> bool:
        return self._layers_move is not None

    def nudge_layers(self, layer_ids: Iterable[str], dx: int, dy: int) -> None:
        if self.pattern is None or (dx, dy) == (0, 0):
            return
        originals = self._movable_layers(layer_ids)
        if not originals:
            return
        self.history.push_snapshot(self.pattern)
        self._apply_layers_offset(originals, dx, dy)
