import time
from typing import List, Literal, Optional, Tuple
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from ..core.types import EXCLUSIVE_TYPES, STACKABLE_TYPES, AnchorPosition, StitchType


def generate_file_id() -> str:
    return f"file-{int(time.time() * 1000)}-{uuid4().hex[:7]}"


def generate_layer_id() -> str:
    return f"layer-{uuid4().hex[:8]}"


class Stitch(BaseModel):
    model_config = ConfigDict(frozen=True)

    x: int
    y: int
    colorId: str
    completed: bool = False
    type: Optional[StitchType] = None
    position: Optional[AnchorPosition] = None

    @property
    def stitch_type(self) -> str:
        return self.type or "square"

    @property
    def is_exclusive(self) -> bool:
        return self.stitch_type in EXCLUSIVE_TYPES

    @property
    def is_stackable(self) -> bool:
        return self.stitch_type in STACKABLE_TYPES

    def moved(self, dx: int, dy: int) -> "Stitch":
        return self.model_copy(update={"x": self.x + dx, "y": self.y + dy})

    def at(self, x: int, y: int) -> "Stitch":
        return self.model_copy(update={"x": x, "y": y})


class TextLayerMetadata(BaseModel):
    """Parameters needed to re-render a text layer at a new size."""

    type: Literal["text"] = "text"
    text: str
    fontFamily: str
    fontWeight: int = 400
    italic: bool = False
    colorId: str
    boldness: int = 0
    orientation: Literal["horizontal", "vertical"] = "horizontal"
    alignment: Literal["left", "center", "right"] = "left"


class Layer(BaseModel):
    id: str = Field(default_factory=generate_layer_id)
    name: str
    visible: bool = True
    locked: bool = False
    stitches: List[Stitch] = Field(default_factory=list)
    metadata: Optional[TextLayerMetadata] = None


class Color(BaseModel):
    id: str
    name: str
    rgb: Tuple[int, int, int]
    threadBrand: Optional[str] = None
    threadCode: Optional[str] = None
    symbol: Optional[str] = None


class CanvasConfig(BaseModel):
    width: int = Field(..., ge=1)
    height: int = Field(..., ge=1)
    meshCount: int = 14

    def contains(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height


class Pattern(BaseModel):
    fileId: str = Field(default_factory=generate_file_id)
    name: str
    canvas: CanvasConfig
    colorPalette: List[Color] = Field(default_factory=list)
    layers: List[Layer] = Field(default_factory=list)

    def layer_index(self, layer_id: Optional[str]) -> int:
        for index, layer in enumerate(self.layers):
            if layer.id == layer_id:
                return index
        return -1

    def get_layer(self, layer_id: Optional[str]) -> Optional[Layer]:
        index = self.layer_index(layer_id)
        return self.layers[index] if index >= 0 else None

    def get_color(self, color_id: str) -> Optional[Color]:
        return next((c for c in self.colorPalette if c.id == color_id), None)

    def all_stitches(self) -> List[Stitch]:
        return [stitch for layer in self.layers for stitch in layer.stitches]

    def with_layer(self, index: int, **updates) -> "Pattern":
        layers = list(self.layers)
        layers[index] = layers[index].model_copy(update=updates)
        return self.model_copy(update={"layers": layers})

    def snapshot(self) -> "Pattern":
        return self.model_copy(deep=True)

    def to_dict(self) -> dict:
        return self.model_dump(exclude_none=True)
