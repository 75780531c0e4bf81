import json

import pytest
from fastapi.testclient import TestClient

import needlepoint.storage as storage_module
from needlepoint.main import app
from needlepoint.storage.fs_storage import FSStorage

client = TestClient(app)


@pytest.fixture
def session_id():
    response = client.post("/api/v1/sessions", json={"name": "API", "width": 6, "height": 6})
    assert response.status_code == 200
    data = response.json()
    yield data["session_id"]
    client.delete(f"/api/v1/sessions/{data['session_id']}")


@pytest.fixture
def tmp_storage(tmp_path, monkeypatch):
    monkeypatch.setattr(storage_module, "_storage_instance", FSStorage(str(tmp_path)))
    return tmp_path


def _stitches(state):
    return [s for layer in state["pattern"]["layers"] for s in layer["stitches"]]


def test_health():
    assert client.get("/health").json() == {"status": "ok"}


def test_create_session_returns_pattern(session_id):
    state = client.get(f"/api/v1/sessions/{session_id}").json()
    assert state["pattern"]["canvas"] == {"width": 6, "height": 6, "meshCount": 14}
    assert state["selection_state"] == "idle"
    assert not state["can_undo"]

    listing = client.get("/api/v1/sessions", params={"query": "API"}).json()
    assert session_id in [item["session_id"] for item in listing["items"]]


def test_unknown_session_is_404():
    assert client.get("/api/v1/sessions/missing").status_code == 404
    response = client.post("/api/v1/sessions/missing/undo")
    assert response.status_code == 404


def test_invalid_canvas_size_is_422():
    response = client.post("/api/v1/sessions", json={"name": "Bad", "width": 0, "height": 4})
    assert response.status_code == 422


def test_stroke_undoes_in_one_step(session_id):
    state = client.post(
        f"/api/v1/sessions/{session_id}/strokes",
        json={"colorId": "color-black", "points": [[0, 0], [1, 0], [2, 0]]},
    ).json()
    assert len(_stitches(state)) == 3

    state = client.post(f"/api/v1/sessions/{session_id}/undo").json()
    assert _stitches(state) == []
    assert state["can_redo"]


def test_shapes_fill_and_legend(session_id):
    base = f"/api/v1/sessions/{session_id}"
    client.post(
        f"{base}/shapes",
        json={"shape": "rectangle", "x1": 0, "y1": 0, "x2": 5, "y2": 5, "colorId": "color-black"},
    )
    state = client.post(f"{base}/fill", json={"x": 2, "y": 2, "colorId": "color-black"}).json()
    assert len(_stitches(state)) == 36

    legend = client.get(f"{base}/legend").json()
    assert legend[0]["id"] == "color-black"
    assert legend[0]["count"] == 36

    far = {"shape": "line", "x1": 0, "y1": 0, "x2": 20_000_000, "y2": 0, "colorId": "color-black"}
    assert client.post(f"{base}/shapes", json=far).status_code == 422


def test_resize_conflict_requires_confirmation(session_id):
    base = f"/api/v1/sessions/{session_id}"
    client.post(f"{base}/stitches", json={"x": 5, "y": 5, "colorId": "color-black"})

    preview = client.post(f"{base}/canvas/preview", json={"width": 3, "height": 3}).json()
    assert preview["stitchesClipped"] == 1

    response = client.post(f"{base}/canvas", json={"width": 3, "height": 3})
    assert response.status_code == 409
    assert response.json()["detail"]["stitchesClipped"] == 1

    state = client.post(f"{base}/canvas", json={"width": 3, "height": 3, "confirm": True}).json()
    assert state["pattern"]["canvas"]["width"] == 3
    assert _stitches(state) == []


def test_layer_endpoints(session_id):
    base = f"/api/v1/sessions/{session_id}"
    state = client.post(f"{base}/layers", json={"name": "Top"}).json()
    top = state["pattern"]["layers"][-1]["id"]
    assert state["active_layer_id"] == top

    state = client.patch(f"{base}/layers/{top}", json={"locked": True, "move": "down"}).json()
    assert state["pattern"]["layers"][0]["id"] == top
    assert state["pattern"]["layers"][0]["locked"] is True

    assert client.patch(f"{base}/layers/nope", json={"name": "x"}).status_code == 404

    state = client.post(f"{base}/layers/{top}/merge", json={"targetLayerId": "layer-1"}).json()
    assert [layer["id"] for layer in state["pattern"]["layers"]] == ["layer-1"]


def test_symbol_mode_errors_are_reported(session_id):
    base = f"/api/v1/sessions/{session_id}"
    assert client.post(f"{base}/symbols/auto", json={"mode": "usage"}).status_code == 200
    assert client.post(f"{base}/symbols/auto", json={"mode": "random"}).status_code == 422


def test_save_load_and_export(session_id, tmp_storage):
    base = f"/api/v1/sessions/{session_id}"
    client.post(f"{base}/stitches", json={"x": 1, "y": 2, "colorId": "color-black", "type": "half-tl"})

    saved = client.post(f"{base}/save", json={"path": "patterns/api.json"})
    assert saved.status_code == 200
    assert (tmp_storage / "patterns" / "api.json").is_file()
    assert client.get(base).json()["has_unsaved_changes"] is False

    other = client.post("/api/v1/sessions", json={"name": "Other", "width": 2, "height": 2}).json()
    loaded = client.post(f"/api/v1/sessions/{other['session_id']}/load", json={"path": "patterns/api.json"}).json()
    assert loaded["pattern"]["name"] == "API"
    assert _stitches(loaded) == [{"x": 1, "y": 2, "colorId": "color-black", "completed": False, "type": "half-tl"}]

    exported = json.loads(client.get(f"{base}/export/json", params={"legend": True}).text)
    assert exported["legend"][0]["count"] == 1

    missing = client.post(f"{base}/load", json={"path": "patterns/none.json"})
    assert missing.status_code == 404


def test_color_match():
    response = client.post("/api/v1/colors/match", json={"rgb": [5, 5, 5], "count": 2})
    matches = response.json()
    assert matches[0]["threadCode"] == "310"
    assert len(matches) == 2
    assert matches[0]["distance"] <= matches[1]["distance"]


def test_save_and_load_refuse_paths_outside_storage_root(session_id, tmp_path, monkeypatch):
    root = tmp_path / "data"
    monkeypatch.setattr(storage_module, "_storage_instance", FSStorage(str(root)))
    base = f"/api/v1/sessions/{session_id}"
    outside = tmp_path / "escaped.json"

    for path in ("../escaped.json", str(outside)):
        assert client.post(f"{base}/save", json={"path": path}).status_code == 400
        assert client.post(f"{base}/load", json={"path": path}).status_code == 400
    assert not outside.exists()
    assert client.get(base).json()["has_unsaved_changes"] is False
