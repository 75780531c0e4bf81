"""Selection and transform state machine.

States: idle -> layer-selected | area-selecting | area-selected | floating.
A selection carries at most one interaction (drag, resize or rotate). Layer
selections write back to their layer when an interaction ends; floating
content only reaches the pattern through :meth:`commit_floating_selection`.
Area selections become floating content as soon as they are moved, resized
or rotated, after their stitches are cut from the source layers.
"""

from __future__ import annotations

import logging
import math
from typing import Dict, List, Optional, Tuple

from ..models.pattern import Layer, Stitch, TextLayerMetadata
from ..models.selection import (
    AreaSelection,
    DragState,
    FloatingSelection,
    LayerSelection,
    ResizeState,
    RotateState,
)
from .geometry import (
    Bounds,
    calculate_bounds,
    flip_stitch,
    normalized_rect,
    polar_angle,
    resample_stitches,
    rotate_stitch_90,
    rotate_stitches,
    rotated_bounds_90,
)
from .stitch_index import identity_key, merge_stitches
from .types import ResizeHandle

logger = logging.getLogger(__name__)

Point = Tuple[float, float]


def _cell(point: Point) -> Tuple[int, int]:
    return int(math.floor(point[0])), int(math.floor(point[1]))


def _delta(start: Point, point: Point) -> Tuple[int, int]:
    return int(round(point[0] - start[0])), int(round(point[1] - start[1]))


def resize_bounds(
    original: Bounds,
    handle: ResizeHandle,
    dx: int,
    dy: int,
    free: bool = False,
) -> Bounds:
    """New bounds after dragging ``handle`` by ``(dx, dy)`` cells.

    The aspect ratio is kept unless ``free``; edge handles grow the other
    axis around the centre, corner handles let the larger delta drive and
    hold the opposite corner fixed. Each axis is at least one cell.
    """

    left, top = original.x, original.y
    right, bottom = original.right, original.bottom
    if "n" in handle:
        top = min(top + dy, bottom - 1)
    if "s" in handle:
        bottom = max(bottom + dy, top + 1)
    if "w" in handle:
        left = min(left + dx, right - 1)
    if "e" in handle:
        right = max(right + dx, left + 1)

    x, y, width, height = left, top, right - left, bottom - top
    if free:
        return Bounds(x, y, width, height)

    ratio = original.width / original.height
    if handle in ("n", "s"):
        width = max(1, int(round(height * ratio)))
        x = original.x - int(round((width - original.width) / 2))
    elif handle in ("e", "w"):
        height = max(1, int(round(width / ratio)))
        y = original.y - int(round((height - original.height) / 2))
    elif abs(dx) > abs(dy):
        height = max(1, int(round(width / ratio)))
        if "n" in handle:
            y = original.bottom - height
    else:
        width = max(1, int(round(height * ratio)))
        if "w" in handle:
            x = original.right - width
    return Bounds(x, y, width, height)


class SelectionMixin:
    """Selection/transform operations of :class:`PatternStore`."""

    # =================================================================
    #  Helpers
    # =================================================================

    def _clip_to_canvas(self, stitches: List[Stitch]) -> List[Stitch]:
        canvas = self.pattern.canvas
        kept = [s for s in stitches if canvas.contains(s.x, s.y)]
        if len(kept) != len(stitches):
            logger.warning("Dropped %d stitches moved outside the canvas", len(stitches) - len(kept))
        return kept

    def _selected_layer(self) -> Optional[Tuple[int, Layer]]:
        if self.pattern is None or not isinstance(self.selection, LayerSelection):
            return None
        index = self.pattern.layer_index(self.selection.layer_id)
        if index < 0:
            return None
        return index, self.pattern.layers[index]

    def _write_layer(self, index: int, stitches: List[Stitch], **updates) -> List[Stitch]:
        kept = self._clip_to_canvas(stitches)
        self._commit(self.pattern.with_layer(index, stitches=merge_stitches([], kept), **updates))
        return kept

    def _excise_area(self, selection: AreaSelection) -> None:
        """Remove the area's stitches from the layers they were taken from."""

        pattern = self.pattern
        for layer_id, taken in selection.sources.items():
            index = pattern.layer_index(layer_id)
            if index < 0:
                continue
            keys = {identity_key(s) for s in taken}
            remaining = [s for s in pattern.layers[index].stitches if identity_key(s) not in keys]
            pattern = pattern.with_layer(index, stitches=remaining)
        self._commit(pattern)

    def _detach_area(self) -> Optional[FloatingSelection]:
        """Turn an area selection into floating content, cutting it out first."""

        selection = self.selection
        if not isinstance(selection, AreaSelection) or selection.selecting or not selection.stitches:
            return None
        self.history.push_snapshot(self.pattern)
        self._excise_area(selection)
        floating = FloatingSelection(bounds=selection.bounds, stitches=list(selection.stitches))
        self.selection = floating
        return floating

    def _interaction_source(self) -> Optional[Tuple[Bounds, List[Stitch]]]:
        """Bounds and stitches an interaction starts from, pushing history for layers."""

        if isinstance(self.selection, AreaSelection):
            self._detach_area()
        selection = self.selection
        if selection is None or selection.interaction is not None:
            return None
        if isinstance(selection, FloatingSelection):
            return selection.bounds, list(selection.stitches)
        target = self._selected_layer()
        if target is None or target[1].locked:
            return None
        self.history.push_snapshot(self.pattern)
        return selection.bounds, list(target[1].stitches)

    def _finish(self, stitches: List[Stitch], **layer_updates) -> None:
        """Install an interaction's result and recompute the bounds."""

        selection = self.selection
        if isinstance(selection, FloatingSelection):
            selection.stitches = stitches
            if "metadata" in layer_updates:
                selection.metadata = layer_updates["metadata"]
        else:
            target = self._selected_layer()
            if target is None:
                self.selection = None
                return
            stitches = self._write_layer(target[0], stitches, **layer_updates)

        bounds = calculate_bounds(stitches)
        if bounds is None:
            self.selection = None
            return
        selection.bounds = bounds
        selection.interaction = None

    # =================================================================
    #  Layer selection
    # =================================================================

    def get_layer_bounds(self, layer_id: str) -> Optional[Bounds]:
        if self.pattern is None:
            return None
        layer = self.pattern.get_layer(layer_id)
        return calculate_bounds(layer.stitches) if layer else None

    def select_layer_for_transform(self, layer_id: str) -> None:
        if self.pattern is None:
            return
        layer = self.pattern.get_layer(layer_id)
        bounds = calculate_bounds(layer.stitches) if layer else None
        if bounds is None:
            self.selection = None
            return
        self.active_layer_id = layer_id
        self.selection = LayerSelection(bounds=bounds, layer_id=layer_id)

    def clear_selection(self) -> None:
        self.selection = None

    # =================================================================
    #  Area selection
    # =================================================================

    def start_area_selection(self, point: Point) -> None:
        if self.pattern is None:
            return
        anchor = _cell(point)
        self.selection = AreaSelection(bounds=Bounds(anchor[0], anchor[1], 1, 1), anchor=anchor)

    def update_area_selection(self, point: Point) -> None:
        selection = self.selection
        if not isinstance(selection, AreaSelection) or not selection.selecting:
            return
        ax, ay = selection.anchor
        selection.bounds = normalized_rect(ax, ay, point[0], point[1])

    def end_area_selection(self) -> None:
        """Capture the stitches inside the rectangle; the topmost layer wins per cell."""

        selection = self.selection
        if not isinstance(selection, AreaSelection) or not selection.selecting:
            return

        claimed: Dict[Tuple[int, int], str] = {}
        sources: Dict[str, List[Stitch]] = {}
        for layer in reversed(self.pattern.layers):
            if not layer.visible or layer.locked:
                continue
            for stitch in layer.stitches:
                cell = (stitch.x, stitch.y)
                if not selection.bounds.contains(*cell):
                    continue
                owner = claimed.setdefault(cell, layer.id)
                if owner == layer.id:
                    sources.setdefault(layer.id, []).append(stitch)

        stitches = [s for taken in sources.values() for s in taken]
        if not stitches:
            self.selection = None
            return
        selection.selecting = False
        selection.stitches = stitches
        selection.sources = sources

    # =================================================================
    #  Floating content
    # =================================================================

    def create_floating_selection(
        self,
        stitches: List[Stitch],
        width: int,
        height: int,
        position: Tuple[int, int],
        *,
        commit_to_new_layer: bool = False,
        layer_name: Optional[str] = None,
        metadata: Optional[TextLayerMetadata] = None,
    ) -> None:
        if self.pattern is None or not stitches:
            return
        px, py = position
        self.selection = FloatingSelection(
            bounds=Bounds(px, py, max(1, width), max(1, height)),
            stitches=[s.moved(px, py) for s in stitches],
            commit_to_new_layer=commit_to_new_layer,
            new_layer_name=layer_name,
            metadata=metadata,
        )
        self.tools.active_tool = "select"

    def commit_floating_selection(self) -> None:
        selection = self.selection
        if self.pattern is None or not isinstance(selection, FloatingSelection):
            return
        stitches = self._clip_to_canvas(list(selection.stitches))

        if selection.commit_to_new_layer:
            self.history.push_snapshot(self.pattern)
            layer = Layer(
                name=selection.new_layer_name or f"Layer {len(self.pattern.layers) + 1}",
                stitches=merge_stitches([], stitches),
                metadata=selection.metadata,
            )
            self._commit(self.pattern.model_copy(update={"layers": [*self.pattern.layers, layer]}))
            self.active_layer_id = layer.id
            self.selection = None
            return

        layer_id = self.active_layer_id or self.pattern.layers[0].id
        index = self.pattern.layer_index(layer_id)
        if index < 0 or self.pattern.layers[index].locked:
            return
        self.history.push_snapshot(self.pattern)
        merged = merge_stitches(self.pattern.layers[index].stitches, stitches)
        self._commit(self.pattern.with_layer(index, stitches=merged))
        self.selection = None

    def cancel_floating_selection(self) -> None:
        if isinstance(self.selection, FloatingSelection):
            self.selection = None

    # =================================================================
    #  Drag
    # =================================================================

    def start_drag(self, point: Point) -> None:
        source = self._interaction_source()
        if source is None:
            return
        bounds, stitches = source
        self.selection.interaction = DragState(start=point, original_bounds=bounds, original_stitches=stitches)

    def update_drag(self, point: Point) -> None:
        selection = self.selection
        if selection is None or not isinstance(selection.interaction, DragState):
            return
        drag = selection.interaction
        selection.bounds = drag.original_bounds.translated(*_delta(drag.start, point))

    def end_drag(self) -> None:
        selection = self.selection
        if selection is None or not isinstance(selection.interaction, DragState):
            return
        drag = selection.interaction
        dx = selection.bounds.x - drag.original_bounds.x
        dy = selection.bounds.y - drag.original_bounds.y
        moved = [s.moved(dx, dy) for s in drag.original_stitches]
        if isinstance(selection, FloatingSelection):
            selection.stitches = moved
            selection.interaction = None
            return
        self._finish(moved)

    # =================================================================
    #  Resize
    # =================================================================

    def start_resize(self, handle: ResizeHandle, point: Point) -> None:
        source = self._interaction_source()
        if source is None:
            return
        bounds, stitches = source
        self.selection.interaction = ResizeState(
            handle=handle, start=point, original_bounds=bounds, original_stitches=stitches
        )

    def update_resize(self, point: Point, free: bool = False) -> None:
        selection = self.selection
        if selection is None or not isinstance(selection.interaction, ResizeState):
            return
        resize = selection.interaction
        dx, dy = _delta(resize.start, point)
        selection.bounds = resize_bounds(resize.original_bounds, resize.handle, dx, dy, free)

    def _text_metadata(self) -> Optional[TextLayerMetadata]:
        if isinstance(self.selection, FloatingSelection):
            return self.selection.metadata
        target = self._selected_layer()
        return target[1].metadata if target else None

    def end_resize(self) -> None:
        selection = self.selection
        if selection is None or not isinstance(selection.interaction, ResizeState):
            return
        resize = selection.interaction
        target = selection.bounds
        metadata = self._text_metadata()

        if metadata is not None and self.text_renderer is not None and target.height != resize.original_bounds.height:
            rendered = self.text_renderer.render_text(
                metadata.text,
                metadata.fontFamily,
                metadata.fontWeight,
                metadata.italic,
                target.height,
                metadata.colorId,
                metadata.boldness,
            )
            stitches = [s.moved(target.x, target.y) for s in rendered.stitches]
            logger.debug("Re-rendered text %r at height %d", metadata.text, target.height)
        else:
            stitches = resample_stitches(resize.original_stitches, resize.original_bounds, target)
        self._finish(stitches)

    # =================================================================
    #  Arbitrary-angle rotation
    # =================================================================

    def start_rotation(self, point: Point) -> None:
        source = self._interaction_source()
        if source is None:
            return
        bounds, stitches = source
        center = bounds.center
        self.selection.interaction = RotateState(
            center=center,
            start_angle=polar_angle(center, point),
            original_bounds=bounds,
            original_stitches=stitches,
        )

    def update_rotation(self, point: Point, snap_degrees: Optional[float] = None) -> None:
        selection = self.selection
        if selection is None or not isinstance(selection.interaction, RotateState):
            return
        rotate = selection.interaction
        angle = polar_angle(rotate.center, point) - rotate.start_angle
        if snap_degrees:
            step = math.radians(snap_degrees)
            angle = round(angle / step) * step
        rotate.angle = angle

    def end_rotation(self) -> None:
        selection = self.selection
        if selection is None or not isinstance(selection.interaction, RotateState):
            return
        rotate = selection.interaction
        if abs(rotate.angle) < 1e-9:
            selection.interaction = None
            return
        rotated = rotate_stitches(rotate.original_stitches, rotate.original_bounds, rotate.angle)
        self._finish(rotated, metadata=None)

    # =================================================================
    #  Lattice-exact transforms
    # =================================================================

    def _transform_selection(self, transform, new_bounds: Bounds) -> None:
        selection = self.selection
        if self.pattern is None or selection is None or selection.interaction is not None:
            return

        if isinstance(selection, FloatingSelection):
            selection.stitches = [transform(s) for s in selection.stitches]
            selection.bounds = new_bounds
            selection.metadata = None
            return

        if isinstance(selection, LayerSelection):
            target = self._selected_layer()
            if target is None or target[1].locked:
                return
            self.history.push_snapshot(self.pattern)
            kept = self._write_layer(target[0], [transform(s) for s in target[1].stitches], metadata=None)
            selection.bounds = calculate_bounds(kept) or new_bounds
            if not kept:
                self.selection = None
            return

        if selection.selecting or not selection.stitches:
            return
        self.history.push_snapshot(self.pattern)
        pattern = self.pattern
        sources: Dict[str, List[Stitch]] = {}
        for layer_id, taken in selection.sources.items():
            index = pattern.layer_index(layer_id)
            if index < 0:
                continue
            keys = {identity_key(s) for s in taken}
            untouched = [s for s in pattern.layers[index].stitches if identity_key(s) not in keys]
            moved = [s for s in (transform(s) for s in taken) if pattern.canvas.contains(s.x, s.y)]
            pattern = pattern.with_layer(index, stitches=merge_stitches(untouched, moved))
            sources[layer_id] = moved
        self._commit(pattern)
        selection.sources = sources
        selection.stitches = [s for moved in sources.values() for s in moved]
        selection.bounds = new_bounds

    def flip_selection(self, horizontal: bool = True) -> None:
        if self.selection is None:
            return
        bounds = self.selection.bounds
        self._transform_selection(lambda s: flip_stitch(s, bounds, horizontal), bounds)

    def flip_selection_horizontal(self) -> None:
        self.flip_selection(True)

    def flip_selection_vertical(self) -> None:
        self.flip_selection(False)

    def rotate_selection_90(self, clockwise: bool) -> None:
        if self.selection is None:
            return
        bounds = self.selection.bounds
        self._transform_selection(lambda s: rotate_stitch_90(s, bounds, clockwise), rotated_bounds_90(bounds))

    def rotate_selection_left(self) -> None:
        self.rotate_selection_90(clockwise=False)

    def rotate_selection_right(self) -> None:
        self.rotate_selection_90(clockwise=True)

    # =================================================================
    #  Context actions
    # =================================================================

    def delete_selection(self) -> None:
        selection = self.selection
        if self.pattern is None or selection is None or selection.interaction is not None:
            return
        if isinstance(selection, FloatingSelection):
            self.selection = None
            return
        if isinstance(selection, LayerSelection):
            target = self._selected_layer()
            if target is None or target[1].locked:
                return
            self.history.push_snapshot(self.pattern)
            self._commit(self.pattern.with_layer(target[0], stitches=[], metadata=None))
        else:
            if selection.selecting or not selection.stitches:
                return
            self.history.push_snapshot(self.pattern)
            self._excise_area(selection)
        self.selection = None

    def _selected_stitches(self) -> List[Stitch]:
        selection = self.selection
        if isinstance(selection, AreaSelection):
            return [] if selection.selecting else list(selection.stitches)
        if isinstance(selection, FloatingSelection):
            return list(selection.stitches)
        target = self._selected_layer()
        return list(target[1].stitches) if target else []

    def duplicate_selection(self) -> None:
        """Copy the selected stitches into floating content at the same place."""

        selection = self.selection
        if self.pattern is None or selection is None or selection.interaction is not None:
            return
        stitches = self._selected_stitches()
        if not stitches:
            return
        self.selection = FloatingSelection(bounds=selection.bounds, stitches=stitches)

    def selection_to_new_layer(self, name: Optional[str] = None) -> None:
        """Move an area selection's stitches into a brand-new layer."""

        selection = self.selection
        if self.pattern is None or not isinstance(selection, AreaSelection):
            return
        if selection.selecting or not selection.stitches or selection.interaction is not None:
            return
        self.history.push_snapshot(self.pattern)
        self._excise_area(selection)
        layer = Layer(
            name=name or f"Layer {len(self.pattern.layers) + 1}",
            stitches=merge_stitches([], selection.stitches),
        )
        self._commit(self.pattern.model_copy(update={"layers": [*self.pattern.layers, layer]}))
        self.active_layer_id = layer.id
        self.selection = LayerSelection(bounds=calculate_bounds(layer.stitches), layer_id=layer.id)
