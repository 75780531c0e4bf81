from __future__ import annotations

from collections import Counter
from typing import Dict, Iterable, Iterator, List, Optional

from ..models.pattern import Color, Stitch
from .types import SymbolAssignmentMode

TIER_1 = ["●", "■", "▲", "★", "◆", "✕", "♦", "♥"]
TIER_2 = ["○", "□", "△", "☆", "◇", "✚", "⬡", "♠"]
TIER_3 = list("ABCDEFGHIJKLMNOPQRSTUVWXYZ") + list("1234567890")
TIER_4 = ["◐", "◑", "◒", "◓", "⊕", "⊗", "⊞", "⊠"]
ALL_SYMBOLS = TIER_1 + TIER_2 + TIER_3 + TIER_4

FILLED_SYMBOLS = ["●", "■", "▲", "◆", "★"]
OUTLINE_SYMBOLS = ["○", "□", "△", "◇", "☆"]

MAX_PALETTE_SIZE = 400


def _symbol_generator(used: set[str]) -> Iterator[str]:
    for symbol in ALL_SYMBOLS:
        if symbol not in used:
            yield symbol
    idx = 1
    while True:
        candidate = f"#{idx}"
        if candidate not in used:
            yield candidate
        idx += 1


def color_lightness(rgb) -> float:
    """HSL lightness in percent."""

    r, g, b = (v / 255.0 for v in rgb)
    return (max(r, g, b) + min(r, g, b)) / 2.0 * 100.0


def count_stitches_by_color(stitches: Iterable[Stitch]) -> Dict[str, int]:
    return dict(Counter(stitch.colorId for stitch in stitches))


def next_available_symbol(colors: Iterable[Color]) -> str:
    used = {c.symbol for c in colors if c.symbol}
    return next(_symbol_generator(used))


def is_symbol_available(symbol: str, color_id: str, colors: Iterable[Color]) -> bool:
    return not any(c.id != color_id and c.symbol == symbol for c in colors)


def assign_missing_symbols(colors: List[Color]) -> List[Color]:
    used = {c.symbol for c in colors if c.symbol}
    generator = _symbol_generator(used)
    result: List[Color] = []
    for color in colors:
        if color.symbol:
            result.append(color)
            continue
        symbol = next(generator)
        used.add(symbol)
        result.append(color.model_copy(update={"symbol": symbol}))
    return result


def _lightness_symbol(lightness: float, used: set[str]) -> Optional[str]:
    candidates = FILLED_SYMBOLS if lightness < 50 else OUTLINE_SYMBOLS
    return next((s for s in candidates if s not in used), None)


def auto_assign_symbols(
    colors: List[Color],
    stitches: Iterable[Stitch],
    mode: SymbolAssignmentMode = "usage",
) -> List[Color]:
    """Give every colour a unique symbol, ordered by ``mode``.

    ``usage`` hands the first symbols to the most-stitched colours,
    ``lightness`` gives dark colours filled shapes and light colours outlines,
    ``sequential`` follows palette order. The palette order is preserved.
    """

    if len(colors) > MAX_PALETTE_SIZE:
        raise ValueError(f"Too many unique colors (max {MAX_PALETTE_SIZE})")

    if mode == "usage":
        counts = count_stitches_by_color(stitches)
        ordered = sorted(colors, key=lambda c: counts.get(c.id, 0), reverse=True)
    elif mode == "lightness":
        ordered = sorted(colors, key=lambda c: color_lightness(c.rgb))
    elif mode == "sequential":
        ordered = list(colors)
    else:
        raise ValueError(f"Unknown symbol assignment mode: {mode}")

    used: set[str] = set()
    assigned: Dict[str, str] = {}
    for color in ordered:
        symbol = _lightness_symbol(color_lightness(color.rgb), used) if mode == "lightness" else None
        if symbol is None:
            symbol = next(_symbol_generator(used))
        used.add(symbol)
        assigned[color.id] = symbol

    return [c.model_copy(update={"symbol": assigned[c.id]}) for c in colors]


def validate_symbols(colors: Iterable[Color]) -> dict:
    counts: Counter[str] = Counter()
    missing: List[str] = []
    for color in colors:
        if color.symbol:
            counts[color.symbol] += 1
        else:
            missing.append(color.id)
    duplicates = [symbol for symbol, count in counts.items() if count > 1]
    return {"valid": not duplicates and not missing, "duplicates": duplicates, "missing": missing}
