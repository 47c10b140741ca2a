"""
Tests for the collaboration synchronizer: last-writer-wins replacement,
echo suppression and broadcast of local edits.
"""
import asyncio

import pytest

from nbsync.core.errors import NoticeKind
from nbsync.websocket.synchronizer import CollaborationSynchronizer
from tests.test_utils import code_notebook


def _synchronizer(store, collab_channels, notices, actor_id="actor-a"):
    return CollaborationSynchronizer("nb-1", actor_id, store, collab_channels, notices)


async def _flush():
    await asyncio.sleep(0)
    await asyncio.sleep(0)


@pytest.mark.asyncio
async def test_start_requests_state(store, collab_channels, notices):
    sync = _synchronizer(store, collab_channels, notices)
    await sync.start()

    channel = collab_channels.latest
    assert channel.key == "nb-1"
    assert channel.frames() == [{"type": "request-state"}]
    await sync.stop()


@pytest.mark.asyncio
async def test_presence_is_resent_on_connect(store, collab_channels, notices):
    sync = _synchronizer(store, collab_channels, notices)
    await sync.announce_presence("c2")
    await sync.start()

    assert collab_channels.latest.frames("presence") == [{"type": "presence", "presence": {"cellId": "c2"}}]
    await sync.stop()


@pytest.mark.asyncio
async def test_local_edit_is_broadcast(store, collab_channels, notices):
    sync = _synchronizer(store, collab_channels, notices)
    await sync.start()

    store.rename("Shared")
    await _flush()

    updates = collab_channels.latest.frames("update")
    assert len(updates) == 1
    assert updates[0]["notebook"]["name"] == "Shared"
    assert [c["id"] for c in updates[0]["notebook"]["cells"]] == ["c1", "c2", "c3"]
    await sync.stop()


@pytest.mark.asyncio
async def test_remote_update_replaces_document_without_rebroadcast(store, collab_channels, notices):
    sync = _synchronizer(store, collab_channels, notices)
    await sync.start()
    channel = collab_channels.latest

    remote = code_notebook("r1", "r2").model_copy(update={"name": "Remote"})
    await channel.receive({"type": "update", "version": 9, "notebook": remote.to_wire(), "actorId": "actor-b"})
    await _flush()

    assert store.current.name == "Remote"
    assert [c.id for c in store.current.cells] == ["r1", "r2"]
    assert store.dirty is False
    assert sync.version == 9
    assert channel.frames("update") == []
    await sync.stop()


@pytest.mark.asyncio
async def test_last_writer_wins_over_local_edits(store, collab_channels, notices):
    sync = _synchronizer(store, collab_channels, notices)
    await sync.start()

    store.update_cell("c1", lambda c: c.model_copy(update={"source": "local edit"}))
    remote = code_notebook("c1", "c2", "c3")
    await collab_channels.latest.receive({"type": "state", "version": 1, "notebook": remote.to_wire()})

    assert store.current.find_cell("c1").source == "print('c1')"
    await sync.stop()


@pytest.mark.asyncio
async def test_own_echo_keeps_local_cells(store, collab_channels, notices):
    """An update tagged with our actor id only refreshes top-level fields."""
    sync = _synchronizer(store, collab_channels, notices)
    await sync.start()
    channel = collab_channels.latest

    store.update_cell("c1", lambda c: c.model_copy(update={"source": "typed since"}))
    echo = code_notebook("c1").model_copy(update={"name": "Stamped", "updated_at": "2030-01-01T00:00:00.000Z"})
    await channel.receive({"type": "update", "version": 2, "notebook": echo.to_wire(), "actorId": "actor-a"})
    await _flush()

    assert store.current.name == "Stamped"
    assert store.current.updated_at == "2030-01-01T00:00:00.000Z"
    assert [c.id for c in store.current.cells] == ["c1", "c2", "c3"]
    assert store.current.find_cell("c1").source == "typed since"
    # Only the local edit itself went out
    assert len(channel.frames("update")) == 1
    await sync.stop()


@pytest.mark.asyncio
async def test_frames_for_other_notebook_are_ignored(store, collab_channels, notices):
    sync = _synchronizer(store, collab_channels, notices)
    await sync.start()
    before = store.current

    other = code_notebook("x", notebook_id="nb-2")
    await collab_channels.latest.receive({"type": "state", "version": 5, "notebook": other.to_wire()})
    assert store.current is before
    assert sync.version is None
    await sync.stop()


@pytest.mark.asyncio
async def test_presence_and_error_frames(store, collab_channels, notices):
    sync = _synchronizer(store, collab_channels, notices)
    await sync.start()
    channel = collab_channels.latest

    await channel.receive({
        "type": "presence",
        "participants": [
            {"userId": "actor-a", "color": "#FF6B6B", "presence": {"cellId": "c1"}},
            {"userId": "actor-b", "name": "Sam", "color": "#4D96FF"},
        ],
    })
    assert [p.user_id for p in sync.participants] == ["actor-a", "actor-b"]

    await channel.receive({"type": "error", "message": "Notebook id mismatch"})
    assert notices.get(NoticeKind.TRANSPORT).message == "Notebook id mismatch"

    await channel.drop()
    assert sync.participants == []
    await sync.stop()


@pytest.mark.asyncio
async def test_no_broadcast_after_stop(store, collab_channels, notices):
    sync = _synchronizer(store, collab_channels, notices)
    await sync.start()
    channel = collab_channels.latest
    await sync.stop()

    store.rename("After stop")
    await _flush()
    assert channel.frames("update") == []
    assert channel.closed_reason == "stop"
