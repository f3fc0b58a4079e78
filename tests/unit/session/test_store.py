"""
Unit Tests: SessionStore JSON persistence.
"""

import asyncio
import json

import pytest


@pytest.fixture
def state_file(tmp_path):
    return tmp_path / "state" / "sessions.json"


class TestSessionStoreCRUD:
    """Create, read and delete sessions."""

    @pytest.mark.asyncio
    async def test_create_and_get(self, state_file):
        from vibecord.session.store import SessionStore

        store = SessionStore(state_file)

        record = await store.create_session("/work/app", "user-1", "App work")

        assert len(record.id) == 8
        assert record.title == "App work"
        assert record.created_at.endswith("Z")
        assert record.codex_thread_id is None
        assert await store.get_session(record.id) == record
        assert state_file.exists()

    @pytest.mark.asyncio
    async def test_default_title_from_project(self, state_file):
        from vibecord.session.store import SessionStore

        record = await SessionStore(state_file).create_session("/work/app/", "user-1")

        assert record.title == "app session"
        assert record.project_path == "/work/app/"

    @pytest.mark.asyncio
    async def test_blank_project_rejected(self, state_file):
        from vibecord.errors import InvalidSessionInputError
        from vibecord.session.store import SessionStore

        with pytest.raises(InvalidSessionInputError):
            await SessionStore(state_file).create_session("   ", "user-1")

        with pytest.raises(ValueError):
            await SessionStore(state_file).create_session("", "user-1")

    @pytest.mark.asyncio
    async def test_missing_file_reads_empty(self, state_file):
        from vibecord.session.store import SessionStore

        store = SessionStore(state_file)

        assert await store.list_sessions() == []
        assert await store.get_session("nope") is None
        assert await store.get_focused_session_id("user-1") is None

    @pytest.mark.asyncio
    async def test_list_sorted_by_project(self, state_file):
        from vibecord.session.store import SessionStore

        store = SessionStore(state_file)
        await store.create_session("/b", "u")
        await store.create_session("/a", "u")

        sessions = await store.list_sessions()

        assert [s.project_path for s in sessions] == ["/a", "/b"]

    @pytest.mark.asyncio
    async def test_delete_clears_focus(self, state_file):
        from vibecord.session.store import SessionStore

        store = SessionStore(state_file)
        keep = await store.create_session("/a", "u1")
        doomed = await store.create_session("/b", "u1")
        await store.set_focused_session_id("u1", doomed.id)
        await store.set_focused_session_id("u2", keep.id)

        deleted = await store.delete_session(doomed.id)

        assert deleted.id == doomed.id
        assert await store.get_session(doomed.id) is None
        assert await store.get_focused_session_id("u1") is None
        assert await store.get_focused_session_id("u2") == keep.id

    @pytest.mark.asyncio
    async def test_delete_unknown_returns_none(self, state_file):
        from vibecord.session.store import SessionStore

        assert await SessionStore(state_file).delete_session("missing") is None


class TestSessionStoreUpdates:
    """Focus, channel and thread id updates."""

    @pytest.mark.asyncio
    async def test_focus_unknown_session(self, state_file):
        from vibecord.errors import SessionNotFoundError
        from vibecord.session.store import SessionStore

        with pytest.raises(SessionNotFoundError, match="Session missing does not exist."):
            await SessionStore(state_file).set_focused_session_id("u", "missing")

    @pytest.mark.asyncio
    async def test_set_thread_id_persists(self, state_file):
        from vibecord.session.store import SessionStore

        store = SessionStore(state_file)
        record = await store.create_session("/a", "u")

        await store.set_thread_id(record.id, "t-1")

        reloaded = await SessionStore(state_file).get_session(record.id)
        assert reloaded.codex_thread_id == "t-1"

    @pytest.mark.asyncio
    async def test_set_thread_id_unknown(self, state_file):
        from vibecord.errors import SessionNotFoundError
        from vibecord.session.store import SessionStore

        with pytest.raises(SessionNotFoundError):
            await SessionStore(state_file).set_thread_id("missing", "t-1")

    @pytest.mark.asyncio
    async def test_channel_lookup(self, state_file):
        from vibecord.session.store import SessionStore

        store = SessionStore(state_file)
        record = await store.create_session("/a", "u")
        await store.set_channel_id(record.id, "chan-9")

        found = await store.get_session_by_channel_id("chan-9")

        assert found.id == record.id
        assert await store.get_session_by_channel_id("other") is None

    @pytest.mark.asyncio
    async def test_concurrent_creates_all_persist(self, state_file):
        from vibecord.session.store import SessionStore

        store = SessionStore(state_file)

        await asyncio.gather(*(store.create_session(f"/p{i}", "u") for i in range(10)))

        assert len(await SessionStore(state_file).list_sessions()) == 10


class TestSessionStoreFileFormat:
    """On-disk camelCase JSON and tolerance of malformed content."""

    @pytest.mark.asyncio
    async def test_camel_case_keys(self, state_file):
        from vibecord.session.store import SessionStore

        store = SessionStore(state_file)
        record = await store.create_session("/a", "u")
        await store.set_thread_id(record.id, "t-1")
        await store.set_focused_session_id("u", record.id)

        data = json.loads(state_file.read_text())

        assert data["focusedSessionByUserId"] == {"u": record.id}
        stored = data["sessions"][0]
        assert stored["projectPath"] == "/a"
        assert stored["createdByUserId"] == "u"
        assert stored["codexThreadId"] == "t-1"
        assert "channelId" not in stored

    @pytest.mark.asyncio
    async def test_malformed_records_dropped(self, state_file):
        from vibecord.session.store import SessionStore

        state_file.parent.mkdir(parents=True)
        state_file.write_text(
            json.dumps(
                {
                    "sessions": [
                        {
                            "id": "good0001",
                            "projectPath": "/a",
                            "title": "A",
                            "createdByUserId": "u",
                            "createdAt": "2025-01-01T00:00:00Z",
                        },
                        {"id": "bad", "projectPath": 3},
                        "not a record",
                    ],
                    "focusedSessionByUserId": {"u": "good0001", "v": 5},
                }
            )
        )
        store = SessionStore(state_file)

        sessions = await store.list_sessions()

        assert [s.id for s in sessions] == ["good0001"]
        assert await store.get_focused_session_id("u") == "good0001"
        assert await store.get_focused_session_id("v") is None

    @pytest.mark.asyncio
    async def test_invalid_json_is_config_error(self, state_file):
        from vibecord.errors import ConfigError
        from vibecord.session.store import SessionStore

        state_file.parent.mkdir(parents=True)
        state_file.write_text("{not json")

        with pytest.raises(ConfigError, match="not valid JSON"):
            await SessionStore(state_file).list_sessions()
