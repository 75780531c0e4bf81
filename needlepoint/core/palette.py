from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from ..models.pattern import Color
from .legend import build_legend
from .symbols import auto_assign_symbols, is_symbol_available, next_available_symbol
from .types import SymbolAssignmentMode

logger = logging.getLogger(__name__)


class PaletteMixin:
    """Palette entries and their chart symbols."""

    def _set_palette(self, palette: List[Color]) -> None:
        self.history.push_snapshot(self.pattern)
        self._commit(self.pattern.model_copy(update={"colorPalette": palette}))

    def add_color(self, color: Color) -> None:
        if self.pattern is None or self.pattern.get_color(color.id) is not None:
            return
        if not color.symbol or not is_symbol_available(color.symbol, color.id, self.pattern.colorPalette):
            color = color.model_copy(update={"symbol": next_available_symbol(self.pattern.colorPalette)})
        self._set_palette([*self.pattern.colorPalette, color])

    def remove_color(self, color_id: str) -> None:
        if self.pattern is None or self.pattern.get_color(color_id) is None:
            return
        self._set_palette([c for c in self.pattern.colorPalette if c.id != color_id])
        if self.tools.selected_color_id == color_id:
            self.tools.selected_color_id = None

    def update_color(
        self,
        color_id: str,
        *,
        name: Optional[str] = None,
        rgb: Optional[Tuple[int, int, int]] = None,
    ) -> None:
        if self.pattern is None:
            return
        color = self.pattern.get_color(color_id)
        if color is None:
            return
        updates = {key: value for key, value in (("name", name), ("rgb", rgb)) if value is not None}
        if not updates or all(getattr(color, key) == value for key, value in updates.items()):
            return
        self._set_palette([c.model_copy(update=updates) if c.id == color_id else c for c in self.pattern.colorPalette])

    def update_color_symbol(self, color_id: str, symbol: str) -> None:
        """Set a colour's chart symbol; a symbol taken by another colour is ignored."""

        if self.pattern is None or self.pattern.get_color(color_id) is None:
            return
        if not is_symbol_available(symbol, color_id, self.pattern.colorPalette):
            logger.debug("Symbol %r already used, %s keeps its own", symbol, color_id)
            return
        self._set_palette(
            [c.model_copy(update={"symbol": symbol}) if c.id == color_id else c for c in self.pattern.colorPalette]
        )

    def auto_assign_symbols(self, mode: SymbolAssignmentMode = "usage") -> None:
        if self.pattern is None:
            return
        palette = auto_assign_symbols(self.pattern.colorPalette, self.pattern.all_stitches(), mode)
        self._set_palette(palette)

    def clear_all_symbols(self) -> None:
        if self.pattern is None:
            return
        self._set_palette([c.model_copy(update={"symbol": None}) for c in self.pattern.colorPalette])

    def legend(self, include_unused: bool = False) -> List[dict]:
        if self.pattern is None:
            return []
        return build_legend(self.pattern, include_unused=include_unused)
