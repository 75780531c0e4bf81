"""Rasterisation of tool gestures into cell coordinates and stitches."""

from __future__ import annotations

import math
from collections import deque
from typing import Dict, Iterable, List, Optional, Set, Tuple

from ..models.pattern import Stitch
from .types import ANCHOR_POSITIONS, AnchorPosition

Cell = Tuple[int, int]


def _in_bounds(x: int, y: int, width: int, height: int) -> bool:
    return 0 <= x < width and 0 <= y < height


def flood_fill_cells(
    colors: Dict[Cell, Optional[str]],
    start: Cell,
    width: int,
    height: int,
) -> Set[Cell]:
    """Maximal 4-connected region sharing the start cell's colour.

    Cells missing from ``colors`` count as the implicit colour ``None``.
    """

    if not _in_bounds(start[0], start[1], width, height):
        return set()

    target = colors.get(start)
    region: Set[Cell] = set()
    queue = deque([start])
    while queue:
        x, y = queue.popleft()
        if (x, y) in region or not _in_bounds(x, y, width, height):
            continue
        if colors.get((x, y)) != target:
            continue
        region.add((x, y))
        queue.extend(((x + 1, y), (x - 1, y), (x, y + 1), (x, y - 1)))
    return region


def _indices_within(
    first: float, step: int, count: int, intervals: Iterable[Tuple[float, float]]
) -> List[int]:
    """Step indices ``i`` in ``[0, count]`` with ``first + step * i`` inside one of ``intervals``."""

    indices: Set[int] = set()
    for lo, hi in intervals:
        if step > 0:
            start, stop = lo - first, hi - first
        else:
            start, stop = first - hi, first - lo
        indices.update(range(max(0, math.ceil(start)), min(count, math.floor(stop)) + 1))
    return sorted(indices)


def _minor_offset(i: int, major: int, minor: int) -> int:
    # minor-axis steps taken after ``i`` major steps of the error-accumulating walk
    return -((major - 2 * i * minor) // (2 * major))


def line_cells(x1: int, y1: int, x2: int, y2: int, width: int, height: int) -> List[Cell]:
    """Bresenham's line, keeping lattice points inside the canvas.

    Only the major-axis steps that fall on the canvas are evaluated, so the
    cost follows the canvas size however far the endpoints reach.
    """

    dx = abs(x2 - x1)
    dy = abs(y2 - y1)
    sx = 1 if x1 < x2 else -1
    sy = 1 if y1 < y2 else -1
    if dx == 0 and dy == 0:
        return [(x1, y1)] if _in_bounds(x1, y1, width, height) else []

    if dx >= dy:
        steps = _indices_within(x1, sx, dx, [(0, width - 1)])
        points = ((x1 + sx * i, y1 + sy * _minor_offset(i, dx, dy)) for i in steps)
    else:
        steps = _indices_within(y1, sy, dy, [(0, height - 1)])
        points = ((x1 + sx * _minor_offset(i, dy, dx), y1 + sy * i) for i in steps)
    return [(x, y) for x, y in points if _in_bounds(x, y, width, height)]


def rectangle_cells(
    x1: int, y1: int, x2: int, y2: int, filled: bool, width: int, height: int
) -> List[Cell]:
    min_x = max(0, min(x1, x2))
    max_x = min(width - 1, max(x1, x2))
    min_y = max(0, min(y1, y2))
    max_y = min(height - 1, max(y1, y2))
    if min_x > max_x or min_y > max_y:
        return []

    if filled:
        return [(x, y) for y in range(min_y, max_y + 1) for x in range(min_x, max_x + 1)]

    cells: List[Cell] = []
    for x in range(min_x, max_x + 1):
        cells.append((x, min_y))
        if max_y != min_y:
            cells.append((x, max_y))
    for y in range(min_y + 1, max_y):
        cells.append((min_x, y))
        if max_x != min_x:
            cells.append((max_x, y))
    return cells


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def ellipse_cells(
    x1: int, y1: int, x2: int, y2: int, filled: bool, width: int, height: int
) -> List[Cell]:
    cx = (x1 + x2) / 2.0
    cy = (y1 + y2) / 2.0
    rx = abs(x2 - x1) / 2.0
    ry = abs(y2 - y1) / 2.0

    cells: List[Cell] = []
    seen: Set[Cell] = set()

    def plot(px: int, py: int) -> None:
        if (px, py) in seen or not _in_bounds(px, py, width, height):
            return
        seen.add((px, py))
        cells.append((px, py))

    if filled:
        min_x = max(0, math.floor(cx - rx))
        max_x = min(width - 1, math.ceil(cx + rx))
        min_y = max(0, math.floor(cy - ry))
        max_y = min(height - 1, math.ceil(cy + ry))
        rx_eff = rx or 0.5
        ry_eff = ry or 0.5
        for y in range(min_y, max_y + 1):
            for x in range(min_x, max_x + 1):
                dx = (x + 0.5 - cx) / rx_eff
                dy = (y + 0.5 - cy) / ry_eff
                if dx * dx + dy * dy <= 1:
                    plot(x, y)
        if not cells:
            plot(_round_half_up(cx), _round_half_up(cy))
        return cells

    if rx < 0.5 or ry < 0.5:
        plot(_round_half_up(cx), _round_half_up(cy))
        return cells

    def plot_symmetric(x: float, y: float) -> None:
        for sx, sy in ((x, y), (-x, y), (x, -y), (-x, -y)):
            plot(_round_half_up(cx + sx), _round_half_up(cy + sy))

    def shallow_y(x: int) -> float:
        # midpoint test: keep the highest y whose lower midpoint is inside
        curve = ry * math.sqrt(max(0.0, 1 - (x / rx) ** 2))
        return ry - max(0, math.floor(ry - 0.5 - curve) + 1)

    def steep_x(y: float, x_start: int) -> int:
        # midpoint test: advance x while the right midpoint is still inside
        curve = rx * math.sqrt(max(0.0, 1 - (y / ry) ** 2))
        return x_start + max(0, math.floor(curve - 0.5 - x_start) + 1)

    def is_shallow(x: int) -> bool:
        return ry * ry * x < rx * rx * shallow_y(x)

    last_x, hi = 0, math.ceil(rx)
    while last_x < hi:
        mid = (last_x + hi + 1) // 2
        if is_shallow(mid):
            last_x = mid
        else:
            hi = mid - 1

    # offsets that can round onto the canvas from either side of the centre
    x_reach = [(-cx - 1, width - cx + 1), (cx - width - 1, cx + 1)]
    y_reach = [(-cy - 1, height - cy + 1), (cy - height - 1, cy + 1)]

    for x in _indices_within(0, 1, last_x, x_reach):
        plot_symmetric(x, shallow_y(x))

    x_start = last_x + 1
    y_start = shallow_y(x_start)
    for i in _indices_within(y_start, -1, math.floor(y_start), y_reach):
        y = y_start - i
        plot_symmetric(x_start if i == 0 else steep_x(y, x_start), y)
    return cells


def make_stitch(
    x: int,
    y: int,
    color_id: str,
    stitch_type: str = "square",
    position: Optional[AnchorPosition] = None,
) -> Stitch:
    if stitch_type == "square":
        return Stitch(x=x, y=y, colorId=color_id)
    if stitch_type == "circle":
        return Stitch(x=x, y=y, colorId=color_id, type="circle", position=position or "center")
    return Stitch(x=x, y=y, colorId=color_id, type=stitch_type)


def stitches_for_cells(cells: Iterable[Cell], color_id: str, stitch_type: str) -> List[Stitch]:
    """Stitches for a shape; circles cover all nine sub-cell positions."""

    stitches: List[Stitch] = []
    for x, y in cells:
        if stitch_type == "circle":
            stitches.extend(make_stitch(x, y, color_id, "circle", pos) for pos in ANCHOR_POSITIONS)
        else:
            stitches.append(make_stitch(x, y, color_id, stitch_type))
    return stitches
