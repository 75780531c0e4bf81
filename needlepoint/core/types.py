"""Common lightweight type aliases used across the edit engine."""

from typing import Literal, Tuple

StitchType = Literal[
    "square",
    "full-circle",
    "half-tl",
    "half-tr",
    "half-bl",
    "half-br",
    "quarter-tl",
    "quarter-tr",
    "quarter-bl",
    "quarter-br",
    "circle",
    "border-top",
    "border-right",
    "border-bottom",
    "border-left",
    "cross-tlbr",
    "cross-trbl",
]

AnchorPosition = Literal[
    "top-left",
    "top",
    "top-right",
    "left",
    "center",
    "right",
    "bottom-left",
    "bottom",
    "bottom-right",
]

ResizeHandle = Literal["nw", "n", "ne", "e", "se", "s", "sw", "w"]
Tool = Literal["pencil", "eraser", "fill", "pan", "select", "text", "line", "rectangle", "ellipse"]
SymbolAssignmentMode = Literal["usage", "lightness", "sequential"]
LayerDirection = Literal["up", "down"]
MatchMetric = Literal["euclidean", "lab"]

Point = Tuple[float, float]

EXCLUSIVE_TYPES = frozenset(
    {
        "square",
        "full-circle",
        "half-tl",
        "half-tr",
        "half-bl",
        "half-br",
        "quarter-tl",
        "quarter-tr",
        "quarter-bl",
        "quarter-br",
    }
)
STACKABLE_TYPES = frozenset(
    {"border-top", "border-right", "border-bottom", "border-left", "cross-tlbr", "cross-trbl"}
)

ANCHOR_POSITIONS: Tuple[AnchorPosition, ...] = (
    "top-left",
    "top",
    "top-right",
    "left",
    "center",
    "right",
    "bottom-left",
    "bottom",
    "bottom-right",
)

__all__ = [
    "StitchType",
    "AnchorPosition",
    "ResizeHandle",
    "Tool",
    "SymbolAssignmentMode",
    "LayerDirection",
    "MatchMetric",
    "Point",
    "EXCLUSIVE_TYPES",
    "STACKABLE_TYPES",
    "ANCHOR_POSITIONS",
]
