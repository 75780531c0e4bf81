"""Transient selection state; never part of a saved :class:`Pattern`."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Literal, Optional, Tuple, Union

from ..core.geometry import Bounds
from ..core.types import ResizeHandle
from .pattern import Stitch, TextLayerMetadata

Point = Tuple[float, float]


@dataclass
class DragState:
    start: Point
    original_bounds: Bounds
    original_stitches: List[Stitch]


@dataclass
class ResizeState:
    handle: ResizeHandle
    start: Point
    original_bounds: Bounds
    original_stitches: List[Stitch]


@dataclass
class RotateState:
    center: Tuple[float, float]
    start_angle: float
    original_bounds: Bounds
    original_stitches: List[Stitch]
    angle: float = 0.0


Interaction = Union[DragState, ResizeState, RotateState]


@dataclass
class _Selection:
    bounds: Bounds
    interaction: Optional[Interaction] = None

    @property
    def is_dragging(self) -> bool:
        return isinstance(self.interaction, DragState)

    @property
    def is_resizing(self) -> bool:
        return isinstance(self.interaction, ResizeState)

    @property
    def is_rotating(self) -> bool:
        return isinstance(self.interaction, RotateState)

    @property
    def resize_handle(self) -> Optional[ResizeHandle]:
        return self.interaction.handle if isinstance(self.interaction, ResizeState) else None


@dataclass
class LayerSelection(_Selection):
    layer_id: str = ""
    kind: Literal["layer"] = "layer"


@dataclass
class AreaSelection(_Selection):
    """Rectangle over the visible layers.

    ``sources`` maps each layer id to the stitches taken from it, so a later
    move can excise exactly those stitches.
    """

    anchor: Tuple[int, int] = (0, 0)
    selecting: bool = True
    stitches: List[Stitch] = field(default_factory=list)
    sources: Dict[str, List[Stitch]] = field(default_factory=dict)
    kind: Literal["area"] = "area"


@dataclass
class FloatingSelection(_Selection):
    stitches: List[Stitch] = field(default_factory=list)
    commit_to_new_layer: bool = False
    new_layer_name: Optional[str] = None
    metadata: Optional[TextLayerMetadata] = None
    kind: Literal["floating"] = "floating"


Selection = Union[LayerSelection, AreaSelection, FloatingSelection]

SelectionStateName = Literal["idle", "layer-selected", "area-selecting", "area-selected", "floating"]


def selection_state(selection: Optional[Selection]) -> SelectionStateName:
    if selection is None:
        return "idle"
    if isinstance(selection, LayerSelection):
        return "layer-selected"
    if isinstance(selection, AreaSelection):
        return "area-selecting" if selection.selecting else "area-selected"
    return "floating"


def selection_to_dict(selection: Optional[Selection]) -> Optional[dict]:
    if selection is None:
        return None
    data = {
        "kind": selection.kind,
        "state": selection_state(selection),
        "bounds": selection.bounds.to_dict(),
        "isDragging": selection.is_dragging,
        "isResizing": selection.is_resizing,
        "isRotating": selection.is_rotating,
        "resizeHandle": selection.resize_handle,
    }
    if isinstance(selection, LayerSelection):
        data["layerId"] = selection.layer_id
    elif isinstance(selection, AreaSelection):
        data["stitchCount"] = len(selection.stitches)
    else:
        data["stitchCount"] = len(selection.stitches)
        data["commitToNewLayer"] = selection.commit_to_new_layer
    return data
