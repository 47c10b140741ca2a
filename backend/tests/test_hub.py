"""
Tests for the collaboration hub and the notebook REST endpoints.
"""
import pytest
from fastapi.testclient import TestClient

from nbsync.api.deps import get_hub, get_storage_dependency
from nbsync.main import create_app
from nbsync.storage import FileStorage, NotebookUpdate
from nbsync.websocket.hub import COLOR_PALETTE, CollaborationHub, color_for_actor
from tests.test_utils import code_notebook


@pytest.fixture
def storage(tmp_path):
    return FileStorage(str(tmp_path))


@pytest.fixture
def hub(storage):
    return CollaborationHub(storage)


@pytest.fixture
def client(storage, hub, monkeypatch):
    # Lifespan reads the storage singleton directly
    monkeypatch.setattr("nbsync.storage._storage_backend", storage)
    app = create_app()
    app.dependency_overrides[get_hub] = lambda: hub
    app.dependency_overrides[get_storage_dependency] = lambda: storage
    with TestClient(app) as test_client:
        yield test_client


def _collab_url(actor_id, notebook_id="nb-1"):
    return f"/ws/notebooks/{notebook_id}/collab?actorId={actor_id}"


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_get_missing_notebook(client):
    response = client.get("/notebooks/nope")
    assert response.status_code == 404
    assert response.json() == {"error": "Notebook not found"}


def test_put_creates_then_get_returns(client):
    update = NotebookUpdate.from_notebook(code_notebook("c1").model_copy(update={"name": "Saved"}))
    response = client.put("/notebooks/nb-1", json=update.to_wire())
    assert response.status_code == 200
    saved = response.json()["data"]
    assert saved["id"] == "nb-1"
    assert saved["name"] == "Saved"
    assert [c["id"] for c in saved["cells"]] == ["c1"]

    fetched = client.get("/notebooks/nb-1").json()["data"]
    assert fetched["name"] == "Saved"
    assert fetched["updatedAt"] == saved["updatedAt"]


def test_delete_notebook(client):
    update = NotebookUpdate.from_notebook(code_notebook("c1"))
    client.put("/notebooks/nb-1", json=update.to_wire())

    assert client.delete("/notebooks/nb-1").status_code == 200
    assert client.get("/notebooks/nb-1").status_code == 404
    assert client.delete("/notebooks/nb-1").status_code == 404


def test_connect_sends_state_then_presence(client):
    with client.websocket_connect(_collab_url("actor-a")) as ws:
        state = ws.receive_json()
        assert state["type"] == "state"
        assert state["notebook"]["id"] == "nb-1"
        assert isinstance(state["version"], int)

        presence = ws.receive_json()
        assert presence["type"] == "presence"
        assert [p["userId"] for p in presence["participants"]] == ["actor-a"]
        assert presence["participants"][0]["color"] == color_for_actor("actor-a")


def test_update_is_saved_and_broadcast_with_actor(client):
    with client.websocket_connect(_collab_url("actor-a")) as ws_a:
        state = ws_a.receive_json()
        ws_a.receive_json()

        with client.websocket_connect(_collab_url("actor-b")) as ws_b:
            ws_b.receive_json()
            ws_b.receive_json()
            joined = ws_a.receive_json()
            assert {p["userId"] for p in joined["participants"]} == {"actor-a", "actor-b"}

            notebook = code_notebook("c1", "c2").model_copy(update={"name": "Edited by A"})
            ws_a.send_json({"type": "update", "notebook": notebook.to_wire()})

            for ws in (ws_a, ws_b):
                update = ws.receive_json()
                assert update["type"] == "update"
                assert update["actorId"] == "actor-a"
                assert update["version"] == state["version"] + 1
                assert update["notebook"]["name"] == "Edited by A"

    assert client.get("/notebooks/nb-1").json()["data"]["name"] == "Edited by A"


def test_request_state_returns_latest(client):
    with client.websocket_connect(_collab_url("actor-a")) as ws:
        ws.receive_json()
        ws.receive_json()
        ws.send_json({"type": "update", "notebook": code_notebook("c9").to_wire()})
        update = ws.receive_json()

        ws.send_json({"type": "request-state"})
        state = ws.receive_json()
        assert state["type"] == "state"
        assert state["version"] == update["version"]
        assert [c["id"] for c in state["notebook"]["cells"]] == ["c9"]


def test_presence_update_is_relayed(client):
    with client.websocket_connect(_collab_url("actor-a")) as ws:
        ws.receive_json()
        ws.receive_json()
        ws.send_json({"type": "presence", "presence": {"cellId": "c1"}})
        presence = ws.receive_json()
        assert presence["participants"][0]["presence"] == {"cellId": "c1"}


def test_malformed_and_mismatched_messages(client):
    with client.websocket_connect(_collab_url("actor-a")) as ws:
        ws.receive_json()
        ws.receive_json()

        ws.send_text("not json")
        assert ws.receive_json() == {"type": "error", "message": "Malformed message"}

        ws.send_json({"type": "update", "notebook": code_notebook("c1", notebook_id="nb-2").to_wire()})
        assert ws.receive_json() == {"type": "error", "message": "Notebook id mismatch"}


def test_put_refreshes_open_room(client, hub):
    with client.websocket_connect(_collab_url("actor-a")) as ws:
        ws.receive_json()
        ws.receive_json()

        update = NotebookUpdate.from_notebook(code_notebook("c1").model_copy(update={"name": "Via REST"}))
        client.put("/notebooks/nb-1", json=update.to_wire())
        assert hub.rooms["nb-1"].notebook.name == "Via REST"

        ws.send_json({"type": "request-state"})
        assert ws.receive_json()["notebook"]["name"] == "Via REST"


def test_color_for_actor_is_stable():
    assert color_for_actor("actor-a") == color_for_actor("actor-a")
    assert color_for_actor("actor-a") in COLOR_PALETTE
    assert color_for_actor("") == COLOR_PALETTE[0]
