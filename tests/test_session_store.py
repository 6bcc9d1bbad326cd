from __future__ import annotations

import json
from pathlib import Path

import pytest

from flowcode.errors import StorageError
from flowcode.models import Message, Role, Session
from flowcode.session_store import SessionStore


def test_create_persists_fresh_session(session_store: SessionStore) -> None:
    session = session_store.create("/work/app", "Trip Planner")

    assert session.id.startswith("session_")
    assert session.messages == []
    assert session.plan_generated is False
    assert session.plan_version == 0
    assert session.created_at <= session.updated_at

    path = session_store.sessions_dir / f"{session.id}.json"
    payload = json.loads(path.read_text())
    assert payload["projectName"] == "Trip Planner"
    assert payload["projectPath"] == "/work/app"
    assert set(payload) == {
        "id",
        "projectName",
        "projectPath",
        "createdAt",
        "updatedAt",
        "messages",
        "planGenerated",
        "planVersion",
    }


def test_create_generates_unique_ids(session_store: SessionStore) -> None:
    ids = {session_store.create("/p", f"n{index}").id for index in range(5)}
    assert len(ids) == 5


def test_round_trip(session_store: SessionStore) -> None:
    session = session_store.create("/work/app", "Demo")
    session.messages.append(Message(role=Role.USER, content="hello"))
    session_store.save(session)
    saved_at = session.updated_at

    loaded = session_store.get(session.id)
    assert loaded is not None
    assert loaded == session
    assert loaded.updated_at >= saved_at
    assert loaded.messages[0].role is Role.USER


def test_get_missing_returns_none(session_store: SessionStore) -> None:
    assert session_store.get("session_missing") is None


def test_save_never_moves_updated_at_backwards(session_store: SessionStore) -> None:
    session = session_store.create("/p", "n")
    future = session.updated_at + 10_000_000
    session.updated_at = future
    session_store.save(session)
    assert session.updated_at == future


def test_append_message_keeps_order(session_store: SessionStore) -> None:
    session = session_store.create("/p", "n")
    session_store.append_message(session.id, Message(role=Role.USER, content="one"))
    updated = session_store.append_message(
        session.id, Message(role=Role.ASSISTANT, content="two")
    )
    assert updated is not None
    assert [m.content for m in updated.messages] == ["one", "two"]
    assert updated.history() == [
        {"role": "user", "content": "one"},
        {"role": "assistant", "content": "two"},
    ]
    reloaded = session_store.get(session.id)
    assert reloaded is not None
    assert reloaded.messages == updated.messages


def test_append_message_to_missing_session_writes_nothing(session_store: SessionStore) -> None:
    before = sorted(session_store.sessions_dir.iterdir())
    result = session_store.append_message("session_nope", Message(role=Role.USER, content="x"))
    assert result is None
    assert sorted(session_store.sessions_dir.iterdir()) == before


def test_list_all_orders_by_recent_activity(session_store: SessionStore) -> None:
    first = session_store.create("/p", "first")
    second = session_store.create("/p", "second")
    third = session_store.create("/p", "third")
    for offset, session in ((300, first), (100, second), (200, third)):
        session.updated_at += offset * 1000
        session_store.save(session)

    names = [session.project_name for session in session_store.list_all()]
    assert names == ["first", "third", "second"]


def test_list_all_without_directory(tmp_path: Path) -> None:
    assert SessionStore(tmp_path / "absent").list_all() == []


def test_corrupt_document_is_not_masked(session_store: SessionStore) -> None:
    session = session_store.create("/p", "n")
    (session_store.sessions_dir / f"{session.id}.json").write_text("{not json")
    with pytest.raises(StorageError):
        session_store.get(session.id)
    with pytest.raises(StorageError):
        session_store.list_all()


def test_invalid_document_is_rejected(session_store: SessionStore) -> None:
    path = session_store.sessions_dir / "session_bad.json"
    path.write_text(json.dumps({"id": "session_bad", "messages": []}))
    with pytest.raises(StorageError) as excinfo:
        session_store.get("session_bad")
    assert excinfo.value.path == path


def test_unknown_role_is_rejected(session_store: SessionStore) -> None:
    session = session_store.create("/p", "n")
    payload = session.to_dict()
    payload["messages"] = [{"id": "m", "role": "system", "content": "x", "timestamp": 1}]
    (session_store.sessions_dir / f"{session.id}.json").write_text(json.dumps(payload))
    with pytest.raises(StorageError):
        session_store.get(session.id)


def test_reads_documents_written_by_other_tools(session_store: SessionStore) -> None:
    payload = {
        "id": "session_1700000000000_abc1234",
        "projectName": "Legacy",
        "projectPath": "/legacy",
        "createdAt": 1700000000000,
        "updatedAt": 1700000005000,
        "messages": [
            {"id": "msg_1", "role": "user", "content": "hi", "timestamp": 1700000001000},
            {"id": "msg_2", "role": "assistant", "content": "hey", "timestamp": 1700000002000},
        ],
        "planGenerated": True,
        "planVersion": 2,
    }
    (session_store.sessions_dir / f"{payload['id']}.json").write_text(json.dumps(payload))
    loaded = session_store.get(payload["id"])
    assert isinstance(loaded, Session)
    assert loaded.to_dict() == payload


def test_rejects_path_like_ids(session_store: SessionStore) -> None:
    with pytest.raises(ValueError):
        session_store.get("../config")
