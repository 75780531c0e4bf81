"""Contracts for services the edit engine consumes but does not implement."""

from __future__ import annotations

import logging
from typing import List, Optional, Protocol, Sequence

import numpy as np
from pydantic import BaseModel, Field

from ..models.pattern import Color, Stitch

logger = logging.getLogger(__name__)


class RenderedText(BaseModel):
    stitches: List[Stitch]
    width: int
    height: int


class ProcessedImage(BaseModel):
    width: int
    height: int
    colors: List[Color]
    # Row-major grid of palette ids; ``None`` marks a transparent cell.
    pixelGrid: List[List[Optional[str]]] = Field(default_factory=list)


class TextRenderer(Protocol):
    def render_text(
        self,
        text: str,
        font_family: str,
        font_weight: int,
        italic: bool,
        target_height: int,
        color_id: str,
        boldness: int,
    ) -> RenderedText: ...


class ImageProcessor(Protocol):
    def process_image(
        self,
        path: str,
        target_size: int,
        max_colors: int,
        dither_mode: str,
        background_removal: bool,
    ) -> ProcessedImage: ...


def grid_to_stitches(grid: Sequence[Sequence[Optional[str]]]) -> List[Stitch]:
    cells = np.asarray(grid, dtype=object)
    if cells.ndim != 2:
        if len(grid):
            logger.warning("Ignoring pixel grid that is not rectangular (%d rows)", len(grid))
        return []
    ys, xs = np.nonzero(cells != None)  # noqa: E711 - element-wise comparison
    return [Stitch(x=int(x), y=int(y), colorId=str(cells[y, x])) for y, x in zip(ys, xs) if cells[y, x]]
