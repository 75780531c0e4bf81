"""Pure geometry helpers: bounds, resampling, rotation, flips and hit-testing."""

from __future__ import annotations

import math
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from ..models.pattern import Stitch
from .types import AnchorPosition

CIRCLE_RADIUS_RATIO = 0.28

Vector = Tuple[int, int]


@dataclass(frozen=True)
class Bounds:
    x: int
    y: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    @property
    def center(self) -> Tuple[float, float]:
        return (self.x + self.width / 2.0, self.y + self.height / 2.0)

    def contains(self, x: int, y: int) -> bool:
        return self.x <= x < self.right and self.y <= y < self.bottom

    def translated(self, dx: int, dy: int) -> "Bounds":
        return Bounds(self.x + dx, self.y + dy, self.width, self.height)

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


def calculate_bounds(stitches: Iterable[Stitch]) -> Optional[Bounds]:
    """Tight bounding box around ``stitches`` or ``None`` when empty."""

    min_x = min_y = math.inf
    max_x = max_y = -math.inf
    for stitch in stitches:
        min_x = min(min_x, stitch.x)
        min_y = min(min_y, stitch.y)
        max_x = max(max_x, stitch.x)
        max_y = max(max_y, stitch.y)
    if min_x is math.inf:
        return None
    return Bounds(int(min_x), int(min_y), int(max_x - min_x + 1), int(max_y - min_y + 1))


def normalized_rect(ax: float, ay: float, bx: float, by: float) -> Bounds:
    """Axis-aligned cell rectangle spanning two points in either order."""

    x0, x1 = sorted((int(math.floor(ax)), int(math.floor(bx))))
    y0, y1 = sorted((int(math.floor(ay)), int(math.floor(by))))
    return Bounds(x0, y0, x1 - x0 + 1, y1 - y0 + 1)


def group_by_cell(stitches: Iterable[Stitch]) -> Dict[Tuple[int, int], List[Stitch]]:
    cells: Dict[Tuple[int, int], List[Stitch]] = defaultdict(list)
    for stitch in stitches:
        cells[(stitch.x, stitch.y)].append(stitch)
    return cells


# =====================================================================
#  Resampling
# =====================================================================


def resample_stitches(stitches: List[Stitch], original: Bounds, target: Bounds) -> List[Stitch]:
    """Nearest-neighbour resample from ``original`` into ``target``.

    Every destination cell looks up its source cell, so upscaling never
    leaves gaps.
    """

    if not stitches or original.width <= 0 or original.height <= 0:
        return list(stitches)

    source = group_by_cell(stitches)
    result: List[Stitch] = []
    for rel_y in range(target.height):
        src_y = (rel_y * original.height) // target.height
        for rel_x in range(target.width):
            src_x = (rel_x * original.width) // target.width
            for stitch in source.get((original.x + src_x, original.y + src_y), ()):
                result.append(stitch.at(target.x + rel_x, target.y + rel_y))
    return result


# =====================================================================
#  Rotation
# =====================================================================


def polar_angle(center: Tuple[float, float], point: Tuple[float, float]) -> float:
    return math.atan2(point[1] - center[1], point[0] - center[0])


def rotated_extent(bounds: Bounds, angle: float) -> Bounds:
    """Cell box covering ``bounds`` rotated by ``angle``, padded by one cell."""

    cx, cy = bounds.center
    cos_a, sin_a = math.cos(angle), math.sin(angle)
    xs: List[float] = []
    ys: List[float] = []
    for px, py in (
        (bounds.x, bounds.y),
        (bounds.right, bounds.y),
        (bounds.x, bounds.bottom),
        (bounds.right, bounds.bottom),
    ):
        dx, dy = px - cx, py - cy
        xs.append(cx + dx * cos_a - dy * sin_a)
        ys.append(cy + dx * sin_a + dy * cos_a)
    min_x = int(math.floor(min(xs))) - 1
    min_y = int(math.floor(min(ys))) - 1
    max_x = int(math.ceil(max(xs))) + 1
    max_y = int(math.ceil(max(ys))) + 1
    return Bounds(min_x, min_y, max_x - min_x, max_y - min_y)


def rotate_stitches(stitches: List[Stitch], bounds: Bounds, angle: float) -> List[Stitch]:
    """Rotate by ``angle`` radians around the centre of ``bounds``.

    Inverse mapping: each output cell is rotated back by ``-angle`` and takes
    the stitches of the nearest source cell.
    """

    if not stitches:
        return []

    source = group_by_cell(stitches)
    cx, cy = bounds.center
    cos_a, sin_a = math.cos(-angle), math.sin(-angle)
    extent = rotated_extent(bounds, angle)

    result: List[Stitch] = []
    for out_y in range(extent.y, extent.bottom):
        for out_x in range(extent.x, extent.right):
            dx = out_x + 0.5 - cx
            dy = out_y + 0.5 - cy
            src_x = int(math.floor(cx + dx * cos_a - dy * sin_a + 1e-9))
            src_y = int(math.floor(cy + dx * sin_a + dy * cos_a + 1e-9))
            for stitch in source.get((src_x, src_y), ()):
                result.append(stitch.at(out_x, out_y))
    return result


# =====================================================================
#  Lattice-exact transforms
# =====================================================================

_CORNERS: Dict[str, Vector] = {"tl": (-1, -1), "tr": (1, -1), "bl": (-1, 1), "br": (1, 1)}
_SIDES: Dict[str, Vector] = {"top": (0, -1), "right": (1, 0), "bottom": (0, 1), "left": (-1, 0)}
_POSITIONS: Dict[str, Vector] = {
    "top-left": (-1, -1),
    "top": (0, -1),
    "top-right": (1, -1),
    "left": (-1, 0),
    "center": (0, 0),
    "right": (1, 0),
    "bottom-left": (-1, 1),
    "bottom": (0, 1),
    "bottom-right": (1, 1),
}


def _lookup(table: Dict[str, Vector], vector: Vector) -> str:
    return next(name for name, value in table.items() if value == vector)


def _reorient(stitch: Stitch, transform: Callable[[Vector], Vector]) -> dict:
    """New ``type``/``position`` for a stitch whose shape has a direction."""

    updates: dict = {}
    kind = stitch.type
    if kind:
        prefix, _, suffix = kind.partition("-")
        if prefix in ("half", "quarter") and suffix in _CORNERS:
            updates["type"] = f"{prefix}-{_lookup(_CORNERS, transform(_CORNERS[suffix]))}"
        elif prefix == "border" and suffix in _SIDES:
            updates["type"] = f"border-{_lookup(_SIDES, transform(_SIDES[suffix]))}"
        elif prefix == "cross":
            vx, vy = transform((1, 1) if suffix == "tlbr" else (1, -1))
            updates["type"] = "cross-tlbr" if vx * vy > 0 else "cross-trbl"
    if stitch.position:
        updates["position"] = _lookup(_POSITIONS, transform(_POSITIONS[stitch.position]))
    return updates


def flip_stitch(stitch: Stitch, bounds: Bounds, horizontal: bool) -> Stitch:
    if horizontal:
        x = 2 * bounds.x + bounds.width - 1 - stitch.x
        updates = _reorient(stitch, lambda v: (-v[0], v[1]))
        updates["x"] = x
    else:
        y = 2 * bounds.y + bounds.height - 1 - stitch.y
        updates = _reorient(stitch, lambda v: (v[0], -v[1]))
        updates["y"] = y
    return stitch.model_copy(update=updates)


def rotate_stitch_90(stitch: Stitch, bounds: Bounds, clockwise: bool) -> Stitch:
    rel_x = stitch.x - bounds.x
    rel_y = stitch.y - bounds.y
    if clockwise:
        new_x, new_y = bounds.height - 1 - rel_y, rel_x
        updates = _reorient(stitch, lambda v: (-v[1], v[0]))
    else:
        new_x, new_y = rel_y, bounds.width - 1 - rel_x
        updates = _reorient(stitch, lambda v: (v[1], -v[0]))
    updates.update(x=bounds.x + new_x, y=bounds.y + new_y)
    return stitch.model_copy(update=updates)


def rotated_bounds_90(bounds: Bounds) -> Bounds:
    return Bounds(bounds.x, bounds.y, bounds.height, bounds.width)


# =====================================================================
#  Anchors and hit-testing
# =====================================================================


def anchor_components(anchor: AnchorPosition) -> Tuple[int, int]:
    """Per-axis anchor value: -1 start, 0 centre, +1 end."""

    return _POSITIONS[anchor]


def axis_offset(old_size: int, new_size: int, anchor_value: int) -> int:
    if anchor_value < 0:
        return 0
    if anchor_value > 0:
        return new_size - old_size
    return (new_size - old_size) // 2


def position_anchor(x: int, y: int, position: Optional[str], cell_size: float) -> Tuple[float, float]:
    vx, vy = _POSITIONS[position or "center"]
    return ((x + (vx + 1) / 2.0) * cell_size, (y + (vy + 1) / 2.0) * cell_size)


def stitch_hit(stitch: Stitch, px: float, py: float, cell_size: float) -> bool:
    """Whether canvas point ``(px, py)`` falls inside the stitch's footprint."""

    if stitch.stitch_type == "circle":
        ax, ay = position_anchor(stitch.x, stitch.y, stitch.position, cell_size)
        radius = CIRCLE_RADIUS_RATIO * cell_size
        return (px - ax) ** 2 + (py - ay) ** 2 <= radius * radius
    left = stitch.x * cell_size
    top = stitch.y * cell_size
    return left <= px < left + cell_size and top <= py < top + cell_size
