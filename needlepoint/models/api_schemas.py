from typing import List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from ..core.types import AnchorPosition, LayerDirection, MatchMetric, StitchType, SymbolAssignmentMode

# shape endpoints may lie off the canvas, up to this distance from the origin
SHAPE_COORD_LIMIT = 10_000


class NewPatternRequest(BaseModel):
    name: str = "Untitled"
    width: int = Field(..., ge=1, le=2000)
    height: int = Field(..., ge=1, le=2000)
    meshCount: int = 14


class FileRequest(BaseModel):
    path: str = Field(..., min_length=1)


class StitchRequest(BaseModel):
    x: int
    y: int
    colorId: str
    type: Optional[StitchType] = None
    position: Optional[AnchorPosition] = None


class StrokeRequest(BaseModel):
    colorId: str
    points: List[Tuple[int, int]] = Field(..., min_length=1)
    type: Optional[StitchType] = None
    position: Optional[AnchorPosition] = None


class FillRequest(BaseModel):
    x: int
    y: int
    colorId: str


class ShapeRequest(BaseModel):
    shape: Literal["line", "rectangle", "ellipse"]
    x1: int = Field(..., ge=-SHAPE_COORD_LIMIT, le=SHAPE_COORD_LIMIT)
    y1: int = Field(..., ge=-SHAPE_COORD_LIMIT, le=SHAPE_COORD_LIMIT)
    x2: int = Field(..., ge=-SHAPE_COORD_LIMIT, le=SHAPE_COORD_LIMIT)
    y2: int = Field(..., ge=-SHAPE_COORD_LIMIT, le=SHAPE_COORD_LIMIT)
    colorId: str
    filled: bool = False
    type: Optional[StitchType] = None


class CanvasResizeRequest(BaseModel):
    width: int = Field(..., ge=1, le=2000)
    height: int = Field(..., ge=1, le=2000)
    meshCount: Optional[int] = None
    anchor: AnchorPosition = "top-left"
    confirm: bool = False


class LayerCreateRequest(BaseModel):
    name: Optional[str] = None


class LayerUpdateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = None
    visible: Optional[bool] = None
    locked: Optional[bool] = None
    move: Optional[LayerDirection] = None


class LayerMergeRequest(BaseModel):
    targetLayerId: str


class SymbolAssignRequest(BaseModel):
    mode: SymbolAssignmentMode = "usage"


class ColorMatchRequest(BaseModel):
    rgb: Tuple[int, int, int]
    brand: str = "DMC"
    count: int = Field(5, ge=1, le=50)
    metric: MatchMetric = "euclidean"
