"""Tests for the browser session lifecycle."""

import os

import pytest

from conftest import create_session, leaf, make_state, split
from tessellate.core.catalog import list_sessions
from tessellate.core.errors import (
    MalformedNodeError,
    SessionLockedError,
    SessionNotFoundError,
    StoreUnavailableError,
)
from tessellate.core.lifecycle import start_browser_session
from tessellate.core.session import is_valid_session_id, utc_now
from tessellate.core.state import (
    acquire_lock,
    is_live,
    load_session,
    load_state,
    mark_ended,
    release_lock,
)
from tessellate.core.workspace import Container


def test_start_new_session(data_dir):
    browser = start_browser_session()
    try:
        assert is_valid_session_id(browser.id)
        assert is_live(browser.id)
        assert os.environ["TESSELLATE_SESSION_ID"] == browser.id
        assert load_state(browser.id).tabs == []

        [info] = list_sessions(browser.id)
        assert info.is_current
    finally:
        browser.end()

    assert "TESSELLATE_SESSION_ID" not in os.environ
    assert not is_live(browser.id)
    assert load_session(browser.id).is_ended


def test_snapshot_persists_state(data_dir):
    with start_browser_session() as browser:
        browser.snapshot(make_state("ignored", split(leaf(), leaf()), leaf()))

        state = load_state(browser.id)
        assert state.session_id == browser.id
        assert state.count_panes() == 3
        assert state.saved_at is not None

    # Final snapshot on exit keeps the last state
    assert load_state(browser.id).count_panes() == 3


def test_end_is_idempotent(data_dir):
    browser = start_browser_session()
    browser.end()
    browser.end()
    assert not browser.is_open


def test_resume_session_keeps_state(data_dir):
    create_session("20251217_205106_a7b3", leaf(), leaf())
    mark_ended("20251217_205106_a7b3", utc_now())

    with start_browser_session("20251217_205106_a7b3") as browser:
        assert browser.id == "20251217_205106_a7b3"
        assert len(browser.state.tabs) == 2
        assert not load_session(browser.id).is_ended
        assert is_live(browser.id)

    assert load_session("20251217_205106_a7b3").is_ended


def test_resume_missing_session(data_dir):
    with pytest.raises(SessionNotFoundError):
        start_browser_session("20251217_205106_zzzz")


def test_resume_live_session_refused(data_dir):
    """Only one process may own a session; a second restore fails."""
    create_session("20251217_205106_a7b3", leaf())
    lock_file = acquire_lock("20251217_205106_a7b3")
    try:
        with pytest.raises(SessionLockedError):
            start_browser_session("20251217_205106_a7b3")
    finally:
        release_lock("20251217_205106_a7b3", lock_file)

    assert "TESSELLATE_SESSION_ID" not in os.environ


def test_snapshot_rejects_malformed_tree(data_dir):
    with start_browser_session() as browser:
        with pytest.raises(MalformedNodeError):
            browser.snapshot(make_state(browser.id, Container(children=())))
        assert load_state(browser.id).tabs == []


def test_resume_out_of_range_ratio(data_dir):
    """A stored split ratio outside [0, 1] doesn't stop snapshots or the exit record."""
    create_session("20251217_205106_a7b3", with_state=False)
    mark_ended("20251217_205106_a7b3", utc_now())
    state_path = data_dir / "sessions" / "20251217_205106_a7b3" / "state.json"
    state_path.write_text(
        '{"tabs":[{"workspace":{"root":'
        '{"children":[{"pane":{}},{"pane":{}}],"split_ratio":1.5}}}]}'
    )

    browser = start_browser_session("20251217_205106_a7b3")
    assert browser.state.count_panes() == 2
    browser.snapshot(browser.state)
    browser.end()

    assert load_session("20251217_205106_a7b3").is_ended
    assert load_state("20251217_205106_a7b3", strict=True).tabs[0].workspace.root.split_ratio == 0.0


def test_end_records_exit_when_final_snapshot_fails(data_dir, monkeypatch):
    browser = start_browser_session()

    def broken_save(state):
        raise StoreUnavailableError("disk full")

    monkeypatch.setattr("tessellate.core.state.save_state", broken_save)
    browser.end()

    assert not browser.is_open
    assert load_session(browser.id).is_ended
    assert not is_live(browser.id)
