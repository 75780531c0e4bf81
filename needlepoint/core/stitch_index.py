from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Tuple

from ..models.pattern import Stitch

StitchKey = Tuple


def stitch_key(stitch: Stitch) -> StitchKey:
    """Composite lookup key; which fields participate depends on the type family."""

    if stitch.is_exclusive:
        return (stitch.x, stitch.y)
    if stitch.stitch_type == "circle":
        return (stitch.x, stitch.y, "circle", stitch.position or "center")
    return (stitch.x, stitch.y, stitch.stitch_type)


def identity_key(stitch: Stitch) -> Tuple:
    return (stitch.x, stitch.y, stitch.colorId, stitch.stitch_type, stitch.position)


def build_index(stitches: Iterable[Stitch]) -> Dict[StitchKey, Stitch]:
    index: Dict[StitchKey, Stitch] = {}
    for stitch in stitches:
        index[stitch_key(stitch)] = stitch
    return index


def merge_stitches(existing: Iterable[Stitch], incoming: Iterable[Stitch]) -> List[Stitch]:
    """Merge ``incoming`` over ``existing``; stitches sharing a key are overwritten.

    Placing an exclusive stitch also evicts whatever exclusive stitch already
    occupies the cell, which the tuple key alone already guarantees.
    """

    index = build_index(existing)
    for stitch in incoming:
        index[stitch_key(stitch)] = stitch
    return list(index.values())


def place_stitch(existing: Iterable[Stitch], stitch: Stitch) -> List[Stitch]:
    return merge_stitches(existing, [stitch])


def find_by_key(stitches: Iterable[Stitch], key: StitchKey) -> Optional[Stitch]:
    for stitch in stitches:
        if stitch_key(stitch) == key:
            return stitch
    return None


def same_appearance(a: Optional[Stitch], b: Optional[Stitch]) -> bool:
    if a is None or b is None:
        return a is b
    return (
        a.x == b.x
        and a.y == b.y
        and a.colorId == b.colorId
        and a.stitch_type == b.stitch_type
        and a.position == b.position
    )


def cell_color_map(stitches: Iterable[Stitch]) -> Dict[Tuple[int, int], str]:
    """Colour shown by the exclusive occupant of each cell."""

    colors: Dict[Tuple[int, int], str] = {}
    for stitch in stitches:
        if stitch.is_exclusive:
            colors[(stitch.x, stitch.y)] = stitch.colorId
    return colors


def duplicate_exclusive_cells(stitches: Iterable[Stitch]) -> List[Tuple[int, int]]:
    seen: set[Tuple[int, int]] = set()
    duplicates: List[Tuple[int, int]] = []
    for stitch in stitches:
        if not stitch.is_exclusive:
            continue
        cell = (stitch.x, stitch.y)
        if cell in seen:
            duplicates.append(cell)
        seen.add(cell)
    return duplicates


def pattern_violations(pattern) -> List[str]:
    """Human-readable problems with a pattern's stitch data; empty when valid."""

    problems: List[str] = []
    canvas = pattern.canvas
    for layer in pattern.layers:
        outside = [s for s in layer.stitches if not canvas.contains(s.x, s.y)]
        if outside:
            problems.append(f"layer {layer.id}: {len(outside)} stitches outside the canvas")
        for x, y in duplicate_exclusive_cells(layer.stitches):
            problems.append(f"layer {layer.id}: more than one exclusive stitch at ({x}, {y})")
        keys = [stitch_key(s) for s in layer.stitches]
        if len(keys) != len(set(keys)):
            problems.append(f"layer {layer.id}: duplicate stitch keys")
    return problems
