from __future__ import annotations

from typing import Iterable, List, Optional, Tuple

from needlepoint.core.collaborators import RenderedText
from needlepoint.core.store import PatternStore
from needlepoint.models.pattern import Color, Stitch

RED = Color(id="red", name="Red", rgb=(200, 30, 30), threadBrand="DMC", threadCode="321")
BLUE = Color(id="blue", name="Blue", rgb=(20, 60, 200), threadBrand="DMC", threadCode="797")
WHITE = Color(id="white", name="White", rgb=(255, 255, 255), threadBrand="DMC", threadCode="B5200")


def make_store(width: int = 10, height: int = 10, **kwargs) -> PatternStore:
    store = PatternStore(**kwargs)
    store.create_new_pattern("Test", width, height)
    for color in (RED, BLUE, WHITE):
        store.add_color(color)
    store.history.clear()
    return store


def cells(stitches: Iterable[Stitch]) -> List[Tuple[int, int]]:
    return sorted((s.x, s.y) for s in stitches)


def layer_stitches(store: PatternStore, index: int = 0) -> List[Stitch]:
    return list(store.pattern.layers[index].stitches)


def block(x: int, y: int, width: int, height: int, color_id: str = "red") -> List[Stitch]:
    return [Stitch(x=x + dx, y=y + dy, colorId=color_id) for dy in range(height) for dx in range(width)]


class FakeTextRenderer:
    """Renders text as a solid block, one column per character per row of height."""

    def __init__(self) -> None:
        self.calls: List[dict] = []

    def render_text(
        self,
        text: str,
        font_family: str,
        font_weight: int,
        italic: bool,
        target_height: int,
        color_id: str,
        boldness: int,
    ) -> RenderedText:
        self.calls.append({"text": text, "height": target_height, "font": font_family})
        width = len(text) * target_height
        return RenderedText(stitches=block(0, 0, width, target_height, color_id), width=width, height=target_height)


def stitch_at(stitches: Iterable[Stitch], x: int, y: int) -> Optional[Stitch]:
    return next((s for s in stitches if s.x == x and s.y == y), None)
