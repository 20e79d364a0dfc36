"""Tests for the browse command."""

import os

from click.testing import CliRunner

from conftest import create_session, leaf, split
from tessellate.cli import main
from tessellate.core.catalog import list_sessions
from tessellate.core.state import acquire_lock, load_session, release_lock


def _no_wait(monkeypatch, seen=None):
    """Replace the blocking wait with one that records the live session."""

    def fake_wait(browser, interval):
        if seen is not None:
            seen.append((browser.id, interval, list_sessions(browser.id)))

    monkeypatch.setattr("tessellate.commands.browse.wait_for_shutdown", fake_wait)


def test_browse_new_session(data_dir, monkeypatch):
    seen = []
    _no_wait(monkeypatch, seen)

    result = CliRunner().invoke(main, ["browse", "--snapshot-interval", "5"])

    assert result.exit_code == 0
    [(session_id, interval, infos)] = seen
    assert interval == 5.0
    assert [info.status for info in infos] == ["current"]
    assert load_session(session_id).is_ended
    assert "TESSELLATE_SESSION_ID" not in os.environ


def test_browse_restore_session(data_dir, monkeypatch):
    seen = []
    _no_wait(monkeypatch, seen)
    create_session("20251217_205106_a7b3", split(leaf(), leaf()))

    result = CliRunner().invoke(
        main, ["browse", "--restore-session", "20251217_205106_a7b3"]
    )

    assert result.exit_code == 0
    assert "Session 20251217_205106_a7b3 (1 tabs, 2 panes)" in result.output
    assert seen[0][0] == "20251217_205106_a7b3"


def test_browse_restore_missing(data_dir, monkeypatch):
    _no_wait(monkeypatch)

    result = CliRunner().invoke(
        main, ["browse", "--restore-session", "20251217_205106_zzzz"]
    )

    assert result.exit_code == 1
    assert "not found" in result.output


def test_browse_restore_locked(data_dir, monkeypatch):
    """A second host for the same session exits without taking it over."""
    _no_wait(monkeypatch)
    create_session("20251217_205106_a7b3", leaf())
    lock_file = acquire_lock("20251217_205106_a7b3")
    try:
        result = CliRunner().invoke(
            main, ["browse", "--restore-session", "20251217_205106_a7b3"]
        )
    finally:
        release_lock("20251217_205106_a7b3", lock_file)

    assert result.exit_code == 1
    assert "already open" in result.output


def test_browse_restore_last(data_dir, monkeypatch):
    seen = []
    _no_wait(monkeypatch, seen)
    create_session("20251217_205106_a7b3", leaf())

    result = CliRunner().invoke(main, ["browse", "--restore-last"])

    assert result.exit_code == 0
    assert seen[0][0] == "20251217_205106_a7b3"


def test_browse_restore_rejects_short_reference(data_dir, monkeypatch):
    """--restore-session wants a full ID; short IDs go through sessions restore."""
    seen = []
    _no_wait(monkeypatch, seen)
    create_session("20251217_205106_a7b3", leaf())

    result = CliRunner().invoke(main, ["browse", "--restore-session", "a7b3"])

    assert result.exit_code == 1
    assert "'a7b3' is not a session ID" in result.output
    assert "tessellate sessions restore a7b3" in result.output
    assert seen == []
    assert list_sessions()[0].status == "exited"
