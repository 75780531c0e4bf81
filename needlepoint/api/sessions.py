import logging
from typing import Callable, Optional, TypeVar

from fastapi import APIRouter, HTTPException
from fastapi.responses import Response
from pydantic import ValidationError

from ..color.palette_loader import load_palette
from ..color.palette_matcher import find_closest_colors
from ..core.sessions import store as session_store
from ..core.store import PatternStore
from ..export.json_exporter import export_json
from ..models.api_schemas import (
    CanvasResizeRequest,
    ColorMatchRequest,
    FileRequest,
    FillRequest,
    LayerCreateRequest,
    LayerMergeRequest,
    LayerUpdateRequest,
    NewPatternRequest,
    ShapeRequest,
    StitchRequest,
    StrokeRequest,
    SymbolAssignRequest,
)
from ..storage import get_storage

logger = logging.getLogger(__name__)

router = APIRouter()

T = TypeVar("T")


def _run(session_id: str, action: Callable[[PatternStore], T], *, require_pattern: bool = True) -> T:
    def guarded(store: PatternStore) -> T:
        if require_pattern and store.pattern is None:
            raise HTTPException(status_code=404, detail="Session has no pattern")
        return action(store)

    try:
        record = session_store.get(session_id)
        if record is None:
            raise HTTPException(status_code=404, detail="Session not found")
        return session_store.run(session_id, guarded)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


def _state(session_id: str) -> dict:
    record = session_store.get(session_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return record.to_dict(include_pattern=True)


# =====================================================================
#   SESSIONS
# =====================================================================

@router.post("/sessions")
async def create_session(payload: NewPatternRequest):
    record = session_store.create()
    try:
        record.store.create_new_pattern(payload.name, payload.width, payload.height, payload.meshCount)
    except ValueError as exc:
        session_store.delete(record.session_id)
        raise HTTPException(status_code=400, detail=str(exc))
    logger.info("Session %s created (%dx%d)", record.session_id, payload.width, payload.height)
    return _state(record.session_id)


@router.get("/sessions")
async def list_sessions(query: Optional[str] = None):
    records = session_store.list(query=query)
    return {"items": [r.to_dict() for r in records], "total": len(records)}


@router.get("/sessions/{session_id}")
async def get_session(session_id: str):
    return _state(session_id)


@router.delete("/sessions/{session_id}")
async def delete_session(session_id: str):
    if not session_store.delete(session_id):
        raise HTTPException(status_code=404, detail="Session not found")
    return {"deleted": session_id}


@router.post("/sessions/{session_id}/load")
async def load_session_pattern(session_id: str, payload: FileRequest):
    storage = get_storage()
    try:
        if not storage.exists(payload.path):
            raise HTTPException(status_code=404, detail="Pattern file not found")
        pattern = storage.load_pattern(payload.path)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid pattern file: {exc.error_count()} errors")
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    _run(session_id, lambda store: store.load_pattern(pattern, payload.path), require_pattern=False)
    return _state(session_id)


@router.post("/sessions/{session_id}/save")
async def save_session_pattern(session_id: str, payload: FileRequest):
    def save(store: PatternStore) -> str:
        location = get_storage().save_pattern(payload.path, store.pattern)
        store.mark_saved(payload.path)
        return location

    return {"saved": _run(session_id, save)}


# =====================================================================
#   DRAWING
# =====================================================================

@router.post("/sessions/{session_id}/stitches")
async def set_stitch(session_id: str, payload: StitchRequest):
    _run(
        session_id,
        lambda store: store.set_stitch(payload.x, payload.y, payload.colorId, payload.type, payload.position),
    )
    return _state(session_id)


@router.delete("/sessions/{session_id}/stitches")
async def remove_stitch(session_id: str, x: int, y: int):
    _run(session_id, lambda store: store.remove_stitch(x, y))
    return _state(session_id)


@router.post("/sessions/{session_id}/strokes")
async def pencil_stroke(session_id: str, payload: StrokeRequest):
    def stroke(store: PatternStore) -> None:
        store.begin_stroke()
        try:
            for x, y in payload.points:
                store.set_stitch(x, y, payload.colorId, payload.type, payload.position)
        finally:
            store.end_stroke()

    _run(session_id, stroke)
    return _state(session_id)


@router.post("/sessions/{session_id}/fill")
async def fill_area(session_id: str, payload: FillRequest):
    _run(session_id, lambda store: store.fill_area(payload.x, payload.y, payload.colorId))
    return _state(session_id)


@router.post("/sessions/{session_id}/shapes")
async def draw_shape(session_id: str, payload: ShapeRequest):
    def draw(store: PatternStore) -> None:
        p = payload
        if p.shape == "line":
            store.draw_line(p.x1, p.y1, p.x2, p.y2, p.colorId, p.type)
        elif p.shape == "rectangle":
            store.draw_rectangle(p.x1, p.y1, p.x2, p.y2, p.colorId, p.filled, p.type)
        else:
            store.draw_ellipse(p.x1, p.y1, p.x2, p.y2, p.colorId, p.filled, p.type)

    _run(session_id, draw)
    return _state(session_id)


@router.post("/sessions/{session_id}/undo")
async def undo(session_id: str):
    _run(session_id, lambda store: store.undo())
    return _state(session_id)


@router.post("/sessions/{session_id}/redo")
async def redo(session_id: str):
    _run(session_id, lambda store: store.redo())
    return _state(session_id)


# =====================================================================
#   CANVAS
# =====================================================================

@router.post("/sessions/{session_id}/canvas/preview")
async def preview_canvas_resize(session_id: str, payload: CanvasResizeRequest):
    report = _run(
        session_id,
        lambda store: store.detect_clipped_content(payload.width, payload.height, payload.anchor),
    )
    return report.to_dict()


@router.post("/sessions/{session_id}/canvas")
async def resize_canvas(session_id: str, payload: CanvasResizeRequest):
    def resize(store: PatternStore):
        report = store.detect_clipped_content(payload.width, payload.height, payload.anchor)
        if report.has_clipping and not payload.confirm:
            return report
        store.resize_canvas(payload.width, payload.height, payload.meshCount, payload.anchor)
        return None

    blocked = _run(session_id, resize)
    if blocked is not None:
        logger.info(
            "Resize of session %s refused: %d stitches would be clipped", session_id, blocked.stitches_clipped
        )
        raise HTTPException(
            status_code=409,
            detail={"message": "Resize would clip content; resend with confirm=true", **blocked.to_dict()},
        )
    return _state(session_id)


# =====================================================================
#   LAYERS
# =====================================================================

@router.post("/sessions/{session_id}/layers")
async def add_layer(session_id: str, payload: LayerCreateRequest):
    _run(session_id, lambda store: store.add_layer(payload.name))
    return _state(session_id)


@router.patch("/sessions/{session_id}/layers/{layer_id}")
async def update_layer(session_id: str, layer_id: str, payload: LayerUpdateRequest):
    def update(store: PatternStore) -> None:
        layer = store.pattern.get_layer(layer_id)
        if layer is None:
            raise HTTPException(status_code=404, detail="Layer not found")
        if payload.name is not None and payload.name != layer.name:
            store.rename_layer(layer_id, payload.name)
        if payload.visible is not None and payload.visible != layer.visible:
            store.toggle_layer_visibility(layer_id)
        if payload.locked is not None and payload.locked != layer.locked:
            store.toggle_layer_lock(layer_id)
        if payload.move is not None:
            store.reorder_layer(layer_id, payload.move)

    _run(session_id, update)
    return _state(session_id)


@router.delete("/sessions/{session_id}/layers/{layer_id}")
async def remove_layer(session_id: str, layer_id: str):
    _run(session_id, lambda store: store.remove_layer(layer_id))
    return _state(session_id)


@router.post("/sessions/{session_id}/layers/{layer_id}/merge")
async def merge_layer(session_id: str, layer_id: str, payload: LayerMergeRequest):
    _run(session_id, lambda store: store.merge_layers(layer_id, payload.targetLayerId))
    return _state(session_id)


# =====================================================================
#   PALETTE
# =====================================================================

@router.get("/sessions/{session_id}/legend")
async def get_legend(session_id: str):
    return _run(session_id, lambda store: store.legend())


@router.post("/sessions/{session_id}/symbols/auto")
async def auto_assign_symbols(session_id: str, payload: SymbolAssignRequest):
    _run(session_id, lambda store: store.auto_assign_symbols(payload.mode))
    return _state(session_id)


@router.post("/colors/match")
async def match_color(payload: ColorMatchRequest):
    palette = load_palette(payload.brand)
    try:
        matches = find_closest_colors(payload.rgb, palette, payload.count, payload.metric)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return [
        {**m["color"].model_dump(exclude_none=True), "distance": m["distance"]}
        for m in matches
    ]


# =====================================================================
#   EXPORT
# =====================================================================

@router.get("/sessions/{session_id}/export/json")
async def export_pattern_json(session_id: str, legend: bool = False):
    payload = _run(session_id, lambda store: export_json(store.pattern, with_legend=legend))
    return Response(content=payload, media_type="application/json")
