"""Tests for intake_funnel.session.store."""

from __future__ import annotations

import re

from conftest import FakeClock

from intake_funnel.config import IntakeConfig
from intake_funnel.session.ids import generate_session_id
from intake_funnel.session.models import Session
from intake_funnel.session.storage import InMemorySessionStorage
from intake_funnel.session.store import SessionStore, crossed_scroll_quantile


def _store(clock: FakeClock, storage: InMemorySessionStorage | None = None) -> SessionStore:
    return SessionStore(
        storage if storage is not None else InMemorySessionStorage(),
        topic_names={"cardiology": "Cardiology", "emergency": "Emergency Care"},
        clock=clock,
    )


class TestSessionIds:
    def test_format(self):
        session_id = generate_session_id(1_700_000_000_000, fingerprint="test")
        assert re.fullmatch(r"1700000000000-[A-Za-z0-9]{16}", session_id)

    def test_unique(self):
        ids = {generate_session_id(1, fingerprint="x") for _ in range(50)}
        assert len(ids) == 50


class TestLoadOrCreate:
    def test_creates_and_persists(self, clock):
        storage = InMemorySessionStorage()
        store = _store(clock, storage)
        session = store.load_or_create()
        assert session.start_time == clock.now
        assert session.pages == []
        assert store.resumed is False
        raw = storage.read("mediflow_session")
        assert raw is not None
        assert '"sessionId"' in raw

    def test_resumes_within_ttl(self, clock):
        storage = InMemorySessionStorage()
        first = _store(clock, storage).load_or_create()
        clock.advance(minutes=29)
        again = _store(clock, storage)
        session = again.load_or_create()
        assert session.session_id == first.session_id
        assert again.resumed is True

    def test_replaces_after_ttl(self, clock):
        storage = InMemorySessionStorage()
        first = _store(clock, storage).load_or_create()
        clock.advance(minutes=31)
        session = _store(clock, storage).load_or_create()
        assert session.session_id != first.session_id
        assert session.start_time == clock.now

    def test_corrupt_snapshot_is_treated_as_absent(self, clock):
        storage = InMemorySessionStorage()
        storage.write("mediflow_session", "{not json")
        session = _store(clock, storage).load_or_create()
        assert session.pages == []
        assert Session.model_validate_json(storage.read("mediflow_session")).session_id == session.session_id

    def test_wrong_shape_snapshot_is_treated_as_absent(self, clock):
        storage = InMemorySessionStorage()
        storage.write("mediflow_session", '{"pages": "nope"}')
        session = _store(clock, storage).load_or_create()
        assert session.session_id.startswith(str(clock.now))

    def test_from_config_uses_storage_key_and_ttl(self, clock):
        storage = InMemorySessionStorage()
        config = IntakeConfig(storage_key="custom", session_ttl_seconds=60)
        store = SessionStore.from_config(config, storage, clock=clock)
        first = store.load_or_create()
        assert storage.read("custom") is not None
        clock.advance(seconds=61)
        assert SessionStore.from_config(config, storage, clock=clock).load_or_create().session_id != first.session_id

    def test_clear_starts_fresh(self, clock):
        store = _store(clock)
        first = store.load_or_create()
        store.record_page_view("home")
        clock.advance(1)
        second = store.clear()
        assert second.session_id != first.session_id
        assert second.pages == []


class TestPageViews:
    def test_topic_page_counts_interest_and_uses_display_name(self, clock):
        store = _store(clock)
        visit = store.record_page_view("cardiology", "department")
        assert visit.display_name == "Cardiology"
        store.record_page_view("cardiology", "department")
        assert store.session.department_interest == {"cardiology": 2}

    def test_general_page_does_not_count_interest(self, clock):
        store = _store(clock)
        visit = store.record_page_view("pricing")
        assert visit.display_name == "pricing"
        assert store.session.department_interest == {}

    def test_unknown_topic_keeps_id(self, clock):
        store = _store(clock)
        assert store.record_page_view("ent", "department").display_name == "ent"

    def test_new_view_does_not_close_open_visit(self, clock):
        store = _store(clock)
        first = store.record_page_view("home")
        store.record_page_view("about")
        assert first.is_open
        assert store.current_visit.page_id == "about"

    def test_close_accounts_time(self, clock):
        store = _store(clock)
        store.record_page_view("home")
        clock.advance(seconds=42)
        visit = store.close_current_page_view()
        assert visit.time_spent == 42_000
        assert visit.exit_time - visit.entry_time == visit.time_spent
        assert store.session.total_time_spent == 42_000

    def test_close_twice_does_not_double_count(self, clock):
        store = _store(clock)
        store.record_page_view("home")
        clock.advance(seconds=10)
        store.close_current_page_view()
        clock.advance(seconds=10)
        assert store.close_current_page_view() is None
        assert store.session.total_time_spent == 10_000

    def test_close_without_visit_is_noop(self, clock):
        store = _store(clock)
        assert store.close_current_page_view() is None

    def test_mutations_survive_reload(self, clock):
        storage = InMemorySessionStorage()
        store = _store(clock, storage)
        store.record_page_view("cardiology", "department")
        store.record_click("cta", "Book")
        clock.advance(seconds=5)
        session = _store(clock, storage).load_or_create()
        assert session.page_count == 1
        assert session.pages[0].display_name == "Cardiology"
        assert session.clicks[0].label == "Book"
        assert session.last_activity == clock.now - 5_000


class TestScroll:
    def test_quantile_crossing(self):
        assert crossed_scroll_quantile(0, 25)
        assert not crossed_scroll_quantile(26, 49)
        assert crossed_scroll_quantile(49, 50)
        assert not crossed_scroll_quantile(80, 60)

    def test_records_max_depth(self, clock):
        store = _store(clock)
        store.record_page_view("home")
        assert store.record_scroll(30) is True
        assert store.record_scroll(10) is False
        assert store.current_visit.scroll_depth == 30
        assert store.session.scroll_depth == {"home": 30}

    def test_clamps_and_rounds(self, clock):
        store = _store(clock)
        store.record_page_view("home")
        store.record_scroll(150)
        assert store.current_visit.scroll_depth == 100
        store.record_page_view("faq")
        store.record_scroll(24.5)
        assert store.current_visit.scroll_depth == 25

    def test_without_visit(self, clock):
        assert _store(clock).record_scroll(50) is False


class TestClicks:
    def test_attributed_to_current_visit(self, clock):
        store = _store(clock)
        store.record_page_view("home")
        store.record_click("button", "Call us")
        store.record_click("link", "Map")
        assert store.current_visit.interactions == 2
        assert store.session.total_interactions == 2
        assert [c.label for c in store.session.clicks] == ["Call us", "Map"]

    def test_without_visit_still_recorded(self, clock):
        store = _store(clock)
        store.record_click("button", "Call us")
        assert len(store.session.clicks) == 1
        assert store.session.total_interactions == 0
