from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Tuple

from ..models.pattern import Layer, Pattern
from .geometry import anchor_components, axis_offset
from .types import AnchorPosition

logger = logging.getLogger(__name__)


@dataclass
class ClipReport:
    stitches_clipped: int = 0
    layers_affected: List[str] = field(default_factory=list)
    per_layer: Dict[str, int] = field(default_factory=dict)

    @property
    def has_clipping(self) -> bool:
        return self.stitches_clipped > 0

    def to_dict(self) -> dict:
        return {
            "stitchesClipped": self.stitches_clipped,
            "layersAffected": list(self.layers_affected),
            "perLayer": dict(self.per_layer),
        }


def resize_offsets(
    old_width: int,
    old_height: int,
    new_width: int,
    new_height: int,
    anchor: AnchorPosition,
) -> Tuple[int, int]:
    ax, ay = anchor_components(anchor)
    return axis_offset(old_width, new_width, ax), axis_offset(old_height, new_height, ay)


def detect_clipped_content(
    layers: Iterable[Layer],
    old_width: int,
    old_height: int,
    new_width: int,
    new_height: int,
    anchor: AnchorPosition,
) -> ClipReport:
    """Dry run of :func:`resize_pattern_canvas`; nothing is mutated."""

    dx, dy = resize_offsets(old_width, old_height, new_width, new_height, anchor)
    report = ClipReport()
    for layer in layers:
        clipped = sum(
            1
            for s in layer.stitches
            if not (0 <= s.x + dx < new_width and 0 <= s.y + dy < new_height)
        )
        if clipped:
            report.stitches_clipped += clipped
            report.layers_affected.append(layer.name)
            report.per_layer[layer.id] = clipped
    return report


def resize_pattern_canvas(
    pattern: Pattern,
    new_width: int,
    new_height: int,
    mesh_count: int,
    anchor: AnchorPosition,
) -> Pattern:
    if new_width < 1 or new_height < 1:
        raise ValueError("Canvas dimensions must be positive")

    canvas = pattern.canvas.model_copy(
        update={"width": new_width, "height": new_height, "meshCount": mesh_count}
    )
    dx, dy = resize_offsets(pattern.canvas.width, pattern.canvas.height, new_width, new_height, anchor)
    if (dx, dy) == (0, 0) and new_width >= pattern.canvas.width and new_height >= pattern.canvas.height:
        return pattern.model_copy(update={"canvas": canvas})

    layers: List[Layer] = []
    dropped = 0
    for layer in pattern.layers:
        moved = [s.moved(dx, dy) for s in layer.stitches]
        kept = [s for s in moved if canvas.contains(s.x, s.y)]
        dropped += len(moved) - len(kept)
        layers.append(layer.model_copy(update={"stitches": kept}))

    if dropped:
        logger.warning("Canvas resize dropped %d stitches outside %dx%d", dropped, new_width, new_height)
    logger.info(
        "Canvas resized %dx%d -> %dx%d (anchor=%s, offset=%d,%d)",
        pattern.canvas.width,
        pattern.canvas.height,
        new_width,
        new_height,
        anchor,
        dx,
        dy,
    )
    return pattern.model_copy(update={"canvas": canvas, "layers": layers})
