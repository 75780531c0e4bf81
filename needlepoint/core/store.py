"""The pattern store: single owner of the current pattern and its history.

Every mutating entry point either applies fully (pushing at most one history
snapshot) or returns without touching anything. Guarded cases such as a
locked layer, an off-canvas origin or an edit that would not change a single
stitch are silent no-ops; callers compare state before and after when they
need to know.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from ..models.pattern import CanvasConfig, Color, Layer, Pattern, Stitch, generate_file_id
from ..models.selection import Selection
from ..settings import DEFAULT_CELL_SIZE, DEFAULT_MESH_COUNT, MAX_HISTORY_SIZE
from .collaborators import TextRenderer
from .geometry import stitch_hit
from .history import History
from .layers import LayerOpsMixin
from .palette import PaletteMixin
from .raster import (
    ellipse_cells,
    flood_fill_cells,
    line_cells,
    make_stitch,
    rectangle_cells,
    stitches_for_cells,
)
from .selection import SelectionMixin
from .stitch_index import (
    cell_color_map,
    find_by_key,
    merge_stitches,
    pattern_violations,
    place_stitch,
    same_appearance,
    stitch_key,
)
from .symbols import assign_missing_symbols
from .types import AnchorPosition, StitchType, Tool

logger = logging.getLogger(__name__)

DEFAULT_COLORS = [Color(id="color-black", name="Black", rgb=(0, 0, 0))]


@dataclass
class ToolConfig:
    """Tool defaults consulted when an operation is not given explicit values."""

    active_tool: Tool = "select"
    stitch_type: StitchType = "square"
    stitch_position: AnchorPosition = "center"
    selected_color_id: Optional[str] = None
    cell_size: float = DEFAULT_CELL_SIZE


class PatternStore(SelectionMixin, LayerOpsMixin, PaletteMixin):
    def __init__(
        self,
        *,
        max_history: int = MAX_HISTORY_SIZE,
        text_renderer: Optional[TextRenderer] = None,
        tools: Optional[ToolConfig] = None,
    ) -> None:
        self.pattern: Optional[Pattern] = None
        self.current_file_path: Optional[str] = None
        self.has_unsaved_changes = False
        self.history = History(max_history)
        self.tools = tools or ToolConfig()
        self.active_layer_id: Optional[str] = None
        self.selection: Optional[Selection] = None
        self.text_renderer = text_renderer
        self._layers_move = None

    # =================================================================
    #  Internal helpers
    # =================================================================

    def _commit(self, pattern: Pattern) -> None:
        self.pattern = pattern
        self.has_unsaved_changes = True

    def _editable_layer(self) -> Optional[Tuple[int, Layer]]:
        if self.pattern is None or self.active_layer_id is None:
            return None
        index = self.pattern.layer_index(self.active_layer_id)
        if index < 0:
            return None
        layer = self.pattern.layers[index]
        if layer.locked:
            return None
        return index, layer

    def _in_canvas(self, x: int, y: int) -> bool:
        return self.pattern is not None and self.pattern.canvas.contains(x, y)

    def _ensure_active_layer(self) -> None:
        if self.pattern is None:
            self.active_layer_id = None
        elif self.pattern.layer_index(self.active_layer_id) < 0:
            self.active_layer_id = self.pattern.layers[0].id if self.pattern.layers else None

    def _install(self, pattern: Pattern, file_path: Optional[str], unsaved: bool) -> None:
        self.pattern = pattern
        self.current_file_path = file_path
        self.has_unsaved_changes = unsaved
        self.active_layer_id = pattern.layers[0].id if pattern.layers else None
        self.selection = None
        self._layers_move = None
        self.history.clear()
        self.tools.selected_color_id = pattern.colorPalette[0].id if pattern.colorPalette else None

    # =================================================================
    #  Pattern lifecycle
    # =================================================================

    def create_new_pattern(
        self, name: str, width: int, height: int, mesh_count: int = DEFAULT_MESH_COUNT
    ) -> Pattern:
        if width < 1 or height < 1:
            raise ValueError("Canvas dimensions must be positive")
        pattern = Pattern(
            name=name,
            canvas=CanvasConfig(width=width, height=height, meshCount=mesh_count),
            colorPalette=[c.model_copy() for c in DEFAULT_COLORS],
            layers=[Layer(id="layer-1", name="Layer 1")],
        )
        self._install(pattern, None, unsaved=False)
        self.tools.selected_color_id = None
        logger.info("Created pattern %r (%dx%d)", name, width, height)
        return pattern

    def import_pattern(
        self,
        name: str,
        width: int,
        height: int,
        mesh_count: int,
        colors: List[Color],
        stitches: List[Stitch],
    ) -> Pattern:
        if width < 1 or height < 1:
            raise ValueError("Canvas dimensions must be positive")
        canvas = CanvasConfig(width=width, height=height, meshCount=mesh_count)
        kept = [s for s in stitches if canvas.contains(s.x, s.y)]
        if len(kept) != len(stitches):
            logger.warning("Import dropped %d stitches outside the canvas", len(stitches) - len(kept))
        pattern = Pattern(
            name=name,
            canvas=canvas,
            colorPalette=assign_missing_symbols(list(colors)),
            layers=[Layer(id="layer-1", name="Layer 1", stitches=merge_stitches([], kept))],
        )
        self._install(pattern, None, unsaved=True)
        logger.info("Imported pattern %r with %d stitches", name, len(kept))
        return pattern

    def load_pattern(self, pattern: Pattern, file_path: Optional[str] = None) -> Pattern:
        updates: dict = {"colorPalette": assign_missing_symbols(list(pattern.colorPalette))}
        if not pattern.fileId:
            updates["fileId"] = generate_file_id()
        if not pattern.layers:
            updates["layers"] = [Layer(id="layer-1", name="Layer 1")]
        loaded = pattern.model_copy(update=updates)
        for problem in pattern_violations(loaded):
            logger.warning("Loaded pattern %s: %s", loaded.fileId, problem)
        self._install(loaded, file_path, unsaved=False)
        return loaded

    def regenerate_file_id(self) -> str:
        if self.pattern is None:
            return ""
        file_id = generate_file_id()
        self.pattern = self.pattern.model_copy(update={"fileId": file_id})
        return file_id

    def mark_saved(self, file_path: Optional[str] = None) -> None:
        if file_path is not None:
            self.current_file_path = file_path
        self.has_unsaved_changes = False

    # =================================================================
    #  History
    # =================================================================

    def push_snapshot(self) -> None:
        self.history.push_snapshot(self.pattern)

    def undo(self) -> None:
        previous = self.history.undo(self.pattern)
        if previous is None:
            return
        self.pattern = previous
        self.has_unsaved_changes = True
        self.selection = None
        self._layers_move = None
        self._ensure_active_layer()

    def redo(self) -> None:
        following = self.history.redo(self.pattern)
        if following is None:
            return
        self.pattern = following
        self.has_unsaved_changes = True
        self.selection = None
        self._layers_move = None
        self._ensure_active_layer()

    def can_undo(self) -> bool:
        return self.history.can_undo()

    def can_redo(self) -> bool:
        return self.history.can_redo()

    def begin_stroke(self) -> None:
        self.history.begin_stroke(self.pattern)

    def end_stroke(self) -> None:
        self.history.end_stroke()

    def set_max_history_size(self, size: int) -> None:
        self.history.set_max_size(size)

    # =================================================================
    #  Tool state
    # =================================================================

    def select_color(self, color_id: Optional[str]) -> None:
        self.tools.selected_color_id = color_id

    def set_tool(self, tool: Tool) -> None:
        self.tools.active_tool = tool

    def set_stitch_type(self, stitch_type: StitchType, position: Optional[AnchorPosition] = None) -> None:
        self.tools.stitch_type = stitch_type
        if position is not None:
            self.tools.stitch_position = position

    # =================================================================
    #  Point edits (honour stroke batching)
    # =================================================================

    def set_stitch(
        self,
        x: int,
        y: int,
        color_id: str,
        stitch_type: Optional[StitchType] = None,
        position: Optional[AnchorPosition] = None,
    ) -> None:
        target = self._editable_layer()
        if target is None or not self._in_canvas(x, y):
            return
        index, layer = target

        kind = stitch_type or self.tools.stitch_type
        stitch = make_stitch(x, y, color_id, kind, position or self.tools.stitch_position)
        if same_appearance(find_by_key(layer.stitches, stitch_key(stitch)), stitch):
            return

        self.history.record(self.pattern)
        self._commit(self.pattern.with_layer(index, stitches=place_stitch(layer.stitches, stitch)))

    def remove_stitch(self, x: int, y: int) -> None:
        target = self._editable_layer()
        if target is None:
            return
        index, layer = target
        remaining = [s for s in layer.stitches if not (s.x == x and s.y == y)]
        if len(remaining) == len(layer.stitches):
            return

        self.history.record(self.pattern)
        self._commit(self.pattern.with_layer(index, stitches=remaining))

    def remove_stitch_at_point(self, px: float, py: float, cell_size: Optional[float] = None) -> None:
        """Erase whatever stitch footprint covers canvas point ``(px, py)``."""

        target = self._editable_layer()
        if target is None:
            return
        index, layer = target
        size = cell_size or self.tools.cell_size
        remaining = [s for s in layer.stitches if not stitch_hit(s, px, py, size)]
        if len(remaining) == len(layer.stitches):
            return

        self.history.record(self.pattern)
        self._commit(self.pattern.with_layer(index, stitches=remaining))

    # =================================================================
    #  Shape tools (one snapshot per call)
    # =================================================================

    def fill_area(self, x: int, y: int, color_id: str) -> None:
        target = self._editable_layer()
        if target is None or not self._in_canvas(x, y):
            return
        index, layer = target

        colors = cell_color_map(layer.stitches)
        if colors.get((x, y)) == color_id:
            return

        canvas = self.pattern.canvas
        region = flood_fill_cells(colors, (x, y), canvas.width, canvas.height)
        self.history.push_snapshot(self.pattern)

        kept = [s for s in layer.stitches if not (s.is_exclusive and (s.x, s.y) in region)]
        filled = [Stitch(x=cx, y=cy, colorId=color_id) for cx, cy in sorted(region, key=lambda c: (c[1], c[0]))]
        self._commit(self.pattern.with_layer(index, stitches=kept + filled))
        logger.debug("Flood fill from (%d, %d) covered %d cells", x, y, len(region))

    def _draw_cells(self, index: int, layer: Layer, cells, color_id: str, stitch_type: Optional[StitchType]) -> None:
        if not cells:
            return
        self.history.push_snapshot(self.pattern)
        new_stitches = stitches_for_cells(cells, color_id, stitch_type or self.tools.stitch_type)
        self._commit(self.pattern.with_layer(index, stitches=merge_stitches(layer.stitches, new_stitches)))

    def draw_line(
        self, x1: int, y1: int, x2: int, y2: int, color_id: str, stitch_type: Optional[StitchType] = None
    ) -> None:
        target = self._editable_layer()
        if target is None:
            return
        canvas = self.pattern.canvas
        self._draw_cells(*target, line_cells(x1, y1, x2, y2, canvas.width, canvas.height), color_id, stitch_type)

    def draw_rectangle(
        self,
        x1: int,
        y1: int,
        x2: int,
        y2: int,
        color_id: str,
        filled: bool,
        stitch_type: Optional[StitchType] = None,
    ) -> None:
        target = self._editable_layer()
        if target is None:
            return
        canvas = self.pattern.canvas
        cells = rectangle_cells(x1, y1, x2, y2, filled, canvas.width, canvas.height)
        self._draw_cells(*target, cells, color_id, stitch_type)

    def draw_ellipse(
        self,
        x1: int,
        y1: int,
        x2: int,
        y2: int,
        color_id: str,
        filled: bool,
        stitch_type: Optional[StitchType] = None,
    ) -> None:
        target = self._editable_layer()
        if target is None:
            return
        canvas = self.pattern.canvas
        cells = ellipse_cells(x1, y1, x2, y2, filled, canvas.width, canvas.height)
        self._draw_cells(*target, cells, color_id, stitch_type)

    # =================================================================
    #  Progress tracking
    # =================================================================

    def _top_stitches_at(self, x: int, y: int) -> Optional[Tuple[int, List[int]]]:
        if self.pattern is None:
            return None
        for layer_index in range(len(self.pattern.layers) - 1, -1, -1):
            layer = self.pattern.layers[layer_index]
            if not layer.visible:
                continue
            hits = [i for i, s in enumerate(layer.stitches) if s.x == x and s.y == y]
            if hits:
                return layer_index, hits
        return None

    def _mark_completed(self, x: int, y: int, completed: Optional[bool], *, snapshot: bool) -> None:
        found = self._top_stitches_at(x, y)
        if found is None:
            return
        layer_index, hits = found
        stitches = list(self.pattern.layers[layer_index].stitches)
        value = (not stitches[hits[0]].completed) if completed is None else completed
        if all(stitches[i].completed == value for i in hits):
            return

        if snapshot:
            self.history.push_snapshot(self.pattern)
        for i in hits:
            stitches[i] = stitches[i].model_copy(update={"completed": value})
        self._commit(self.pattern.with_layer(layer_index, stitches=stitches))

    def toggle_stitch_completed(self, x: int, y: int) -> None:
        self._mark_completed(x, y, None, snapshot=True)

    def set_stitch_completed(self, x: int, y: int, completed: bool) -> None:
        """Mark a cell during a progress drag; callers wrap the drag in a stroke for undo."""

        self._mark_completed(x, y, completed, snapshot=False)

    def get_stitch_completed(self, x: int, y: int) -> bool:
        found = self._top_stitches_at(x, y)
        if found is None:
            return False
        layer_index, hits = found
        return self.pattern.layers[layer_index].stitches[hits[0]].completed
