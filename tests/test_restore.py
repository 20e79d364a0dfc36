"""Tests for session restore."""

import subprocess

import pytest

from conftest import BASE_TIME, create_session, leaf, minutes, split
from tessellate.core import spawner
from tessellate.core.errors import RestoreFailedError, SpawnFailedError
from tessellate.core.restore import (
    find_last_restorable,
    load_restorable_state,
    restore_session,
)
from tessellate.core.state import acquire_lock, ensure_store, release_lock


@pytest.fixture
def spawn_calls(monkeypatch):
    """Record spawn requests instead of starting processes."""
    calls = []

    def fake_spawn(session_id):
        calls.append(session_id)
        return 4242

    monkeypatch.setattr("tessellate.core.spawner.spawn_with_session", fake_spawn)
    return calls


def test_restore_spawns_host(data_dir, spawn_calls):
    create_session("20251217_205106_a7b3", split(leaf(), leaf()), leaf())

    pid = restore_session("20251217_205106_a7b3")

    assert pid == 4242
    assert spawn_calls == ["20251217_205106_a7b3"]


def test_restore_empty_tabs_is_valid(data_dir, spawn_calls):
    """A state with no tabs restores an empty workspace."""
    create_session("20251217_205106_a7b3")

    restore_session("20251217_205106_a7b3")

    assert spawn_calls == ["20251217_205106_a7b3"]


def test_restore_missing_state_never_spawns(data_dir, spawn_calls):
    create_session("20251217_205106_a7b3", with_state=False)

    with pytest.raises(RestoreFailedError, match="no saved state"):
        restore_session("20251217_205106_a7b3")

    assert spawn_calls == []


def test_restore_missing_session_never_spawns(data_dir, spawn_calls):
    ensure_store()

    with pytest.raises(RestoreFailedError, match="not found"):
        restore_session("20251217_205106_zzzz")

    assert spawn_calls == []


def test_restore_empty_id(data_dir, spawn_calls):
    with pytest.raises(RestoreFailedError, match="session id required"):
        restore_session("")
    assert spawn_calls == []


def test_restore_corrupt_state(data_dir, spawn_calls):
    create_session("20251217_205106_a7b3", leaf())
    (data_dir / "sessions" / "20251217_205106_a7b3" / "state.json").write_text("[1, 2")

    with pytest.raises(RestoreFailedError, match="unreadable"):
        restore_session("20251217_205106_a7b3")
    assert spawn_calls == []


def test_restore_malformed_tree(data_dir, spawn_calls):
    """Restore validates the tree strictly."""
    create_session("20251217_205106_a7b3", with_state=False)
    (data_dir / "sessions" / "20251217_205106_a7b3" / "state.json").write_text(
        '{"tabs": [{"workspace": {"root": {"id": "empty"}}}]}'
    )

    with pytest.raises(RestoreFailedError, match="invalid"):
        restore_session("20251217_205106_a7b3")
    assert spawn_calls == []


def test_restore_newer_version(data_dir, spawn_calls):
    create_session("20251217_205106_a7b3", with_state=False)
    (data_dir / "sessions" / "20251217_205106_a7b3" / "state.json").write_text(
        '{"version": 99, "tabs": []}'
    )

    with pytest.raises(RestoreFailedError, match="newer"):
        restore_session("20251217_205106_a7b3")
    assert spawn_calls == []


def test_load_restorable_state(data_dir):
    create_session("20251217_205106_a7b3", split(leaf(), leaf()))

    state = load_restorable_state("20251217_205106_a7b3")

    assert state.count_panes() == 2


def test_build_restore_command_uses_entry_point(monkeypatch):
    monkeypatch.setattr(spawner.shutil, "which", lambda name: "/usr/bin/tessellate")
    assert spawner.build_restore_command("20251217_205106_a7b3") == [
        "/usr/bin/tessellate",
        "browse",
        "--restore-session",
        "20251217_205106_a7b3",
    ]


def test_build_restore_command_falls_back_to_module(monkeypatch):
    monkeypatch.setattr(spawner.shutil, "which", lambda name: None)
    command = spawner.build_restore_command("20251217_205106_a7b3")
    assert command[1:] == ["-m", "tessellate", "browse", "--restore-session", "20251217_205106_a7b3"]


def test_spawn_is_detached(monkeypatch):
    """The host runs in its own session with no inherited streams."""
    captured = {}

    class FakeProcess:
        pid = 999

    def fake_popen(command, **kwargs):
        captured["command"] = command
        captured.update(kwargs)
        return FakeProcess()

    monkeypatch.setenv("TESSELLATE_SESSION_ID", "20251217_000000_self")
    monkeypatch.setattr(spawner.subprocess, "Popen", fake_popen)

    assert spawner.spawn_with_session("20251217_205106_a7b3") == 999
    assert captured["start_new_session"] is True
    assert captured["stdin"] is subprocess.DEVNULL
    assert captured["stdout"] is subprocess.DEVNULL
    assert captured["stderr"] is subprocess.DEVNULL
    assert "TESSELLATE_SESSION_ID" not in captured["env"]
    assert captured["command"][-2:] == ["--restore-session", "20251217_205106_a7b3"]


def test_spawn_failure(monkeypatch):
    def fake_popen(command, **kwargs):
        raise FileNotFoundError("no such file")

    monkeypatch.setattr(spawner.subprocess, "Popen", fake_popen)

    with pytest.raises(SpawnFailedError):
        spawner.spawn_with_session("20251217_205106_a7b3")


def test_find_last_restorable(data_dir):
    create_session("20251217_200000_old1", leaf(), started_at=BASE_TIME)
    create_session("20251217_200100_new1", leaf(), started_at=BASE_TIME + minutes(1))
    create_session("20251217_200200_none", started_at=BASE_TIME + minutes(2))

    session_id, state = find_last_restorable()

    assert session_id == "20251217_200100_new1"
    assert len(state.tabs) == 1


def test_find_last_restorable_skips_live_and_excluded(data_dir):
    create_session("20251217_200000_old1", leaf(), started_at=BASE_TIME)
    create_session("20251217_200100_live", leaf(), started_at=BASE_TIME + minutes(1))
    create_session("20251217_200200_self", leaf(), started_at=BASE_TIME + minutes(2))

    lock_file = acquire_lock("20251217_200100_live")
    try:
        found = find_last_restorable(exclude_session_id="20251217_200200_self")
    finally:
        release_lock("20251217_200100_live", lock_file)

    assert found[0] == "20251217_200000_old1"


def test_find_last_restorable_nothing(data_dir):
    assert find_last_restorable() is None
    create_session("20251217_200000_none")
    assert find_last_restorable() is None
