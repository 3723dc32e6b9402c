# tests/test_calendar_sync.py
from datetime import datetime, timedelta

import pytest
from conftest import FakeCalendar, FakeDrive, make_event

from callintel.models import CalendarEvent, Call, DriveFile, User, FILE_IMPORTED
from callintel.routes.google_common import get_calendar_client, get_optional_drive_client
from callintel.main import app
from callintel.services.calendar_sync import (
    SYNC_FAILED, SYNC_SUCCESS, import_calendar_events, sync_user_calendar,
)

WINDOW = (datetime(2025, 3, 1), datetime(2025, 3, 8))


def _transcript_file(db, user, google_id="f-1", modified=datetime(2025, 3, 4, 11, 5)):
    f = DriveFile(
        user_id=user.id, google_file_id=google_id, name="Acme Roadmap transcript.txt",
        mime_type="text/plain", modified_time=modified, status=FILE_IMPORTED,
        raw_text="Jane: Our H2 roadmap priorities\nHost: Let's sequence them",
    )
    db.add(f)
    db.commit()
    return f


def _sync(db, user, events, drive=None, **kw):
    return sync_user_calendar(db, user, *WINDOW, calendar=FakeCalendar(events), drive=drive, **kw)


def test_external_event_with_transcript_is_imported(db, user, fake_llm, analysis_config):
    f = _transcript_file(db, user)
    result = _sync(db, user, [make_event()], config=analysis_config, auto_import=True)

    assert result.success is True
    assert result.new_events == 1
    assert result.imported_calls == 1

    ev = db.query(CalendarEvent).one()
    assert ev.is_external is True
    assert ev.external_domains == ["acme.com"]
    assert ev.has_transcript and ev.transcript_file_id == f.id
    assert ev.imported

    call = db.get(Call, ev.imported_call_id)
    assert call.title == "Acme Roadmap Review"
    assert call.meet_code == "abc-defg-hij"
    assert call.call_date == datetime(2025, 3, 4, 10, 0)
    assert call.is_external is True
    assert call.classification_source == "calendar"
    assert call.drive_file_id == f.id
    assert user.last_sync_status == SYNC_SUCCESS


@pytest.mark.parametrize(
    "event",
    [
        make_event(organizer=None, attendees=()),
        make_event(attendees_omitted=True),
    ],
)
def test_event_without_visible_attendees_is_never_searched_or_imported(db, user, fake_llm, analysis_config, event):
    _transcript_file(db, user)
    drive = FakeDrive()
    result = _sync(db, user, [event], drive=drive, config=analysis_config, auto_import=True)

    ev = db.query(CalendarEvent).one()
    assert ev.is_external is None
    assert ev.classification_source == "unknown"
    assert ev.has_transcript is False
    assert ev.imported is False
    assert result.imported_calls == 0
    assert drive.queries == []
    assert db.query(Call).count() == 0
    assert fake_llm.calls == []


def test_internal_event_is_synced_only(db, user, fake_llm, analysis_config):
    _transcript_file(db, user)
    internal = make_event(attendees=("host@scandiweb.com", "dev@scandipwa.com"))
    result = _sync(db, user, [internal], config=analysis_config, auto_import=True)

    ev = db.query(CalendarEvent).one()
    assert ev.is_external is False
    assert not ev.has_transcript
    assert result.imported_calls == 0


def test_second_user_gets_duplicate_marker(db, user, fake_llm, analysis_config):
    _transcript_file(db, user)
    _sync(db, user, [make_event()], config=analysis_config, auto_import=True)

    colleague = User(email="col@scandiweb.com", google_refresh_token="r2")
    db.add(colleague)
    db.commit()
    result = _sync(db, colleague, [make_event()], drive=FakeDrive(), config=analysis_config, auto_import=True)

    assert result.success
    dup = db.query(CalendarEvent).filter(CalendarEvent.user_id == colleague.id).one()
    assert dup.is_duplicate is True
    assert dup.primary_user_id == user.id
    assert dup.imported is False
    assert db.query(Call).count() == 1


def test_resync_updates_existing_event(db, user, fake_llm):
    _sync(db, user, [make_event()], auto_import=False)
    result = _sync(db, user, [make_event(summary="Acme Roadmap Review (moved)")], auto_import=False)
    assert result.new_events == 0 and result.updated_events == 1
    assert db.query(CalendarEvent).one().summary == "Acme Roadmap Review (moved)"


def test_without_auto_import_transcript_is_only_linked(db, user, fake_llm, analysis_config):
    _transcript_file(db, user)
    result = _sync(db, user, [make_event()], config=analysis_config, auto_import=False)
    ev = db.query(CalendarEvent).one()
    assert ev.has_transcript and not ev.imported
    assert result.imported_calls == 0
    assert fake_llm.calls == []


def test_disconnected_user_fails_cleanly(db, fake_llm):
    lonely = User(email="nobody@scandiweb.com")
    db.add(lonely)
    db.commit()
    result = _sync(db, lonely, [make_event()])
    assert result.success is False
    assert "No Google integration" in result.errors[0]
    assert lonely.last_sync_status == SYNC_FAILED


def test_calendar_errors_are_reported(db, user):
    result = sync_user_calendar(db, user, *WINDOW, calendar=FakeCalendar(error=RuntimeError("403 forbidden")))
    assert result.success is False
    assert result.errors == ["403 forbidden"]


def test_import_selected_events(db, user, fake_llm, analysis_config):
    _transcript_file(db, user)
    lonely_event = make_event(id="evt-2", summary="Acme follow-up", meet_code="xyz-abcd-efg",
                              start=datetime(2025, 3, 6, 15), end=datetime(2025, 3, 6, 16))
    _sync(db, user, [make_event(), lonely_event], auto_import=False)
    ids = [e.id for e in db.query(CalendarEvent).order_by(CalendarEvent.start_time).all()]

    result = import_calendar_events(db, user, ids, analysis_config)
    assert result.total == 2
    assert result.success == 1
    assert result.no_transcript == 1
    assert result.errors == ["Acme follow-up: No transcript file found"]

    again = import_calendar_events(db, user, ids[:1], analysis_config)
    assert again.failed == 1
    assert db.query(Call).count() == 1


def test_one_transcript_feeds_only_one_event(db, user, fake_llm, analysis_config):
    f = _transcript_file(db, user)
    follow_up = make_event(id="evt-2", summary="Acme follow-up", meet_code="xyz-abcd-efg",
                           start=datetime(2025, 3, 4, 11, 30), end=datetime(2025, 3, 4, 12, 0))
    _sync(db, user, [make_event(), follow_up], auto_import=False)
    rows = db.query(CalendarEvent).order_by(CalendarEvent.start_time).all()
    assert [r.transcript_file_id for r in rows] == [f.id, f.id]

    result = import_calendar_events(db, user, [r.id for r in rows], analysis_config)
    assert result.success == 1
    assert result.no_transcript == 1
    assert result.errors == ["Acme follow-up: No transcript file found"]

    call = db.query(Call).one()
    assert call.title == "Acme Roadmap Review"
    assert call.drive_file_id == f.id

    db.expire_all()
    second = db.query(CalendarEvent).filter(CalendarEvent.google_event_id == "evt-2").one()
    assert second.transcript_file_id is None
    assert second.has_transcript is False
    assert second.imported is False


def test_sync_route(client, db, user, fake_llm, prompt):
    f = _transcript_file(db, user)
    app.dependency_overrides[get_calendar_client] = lambda: FakeCalendar([make_event()])
    app.dependency_overrides[get_optional_drive_client] = lambda: None

    r = client.post(
        "/api/calendar/sync",
        json={"start": "2025-03-01T00:00:00Z", "end": "2025-03-08T00:00:00Z", "auto_import": True},
        headers={"X-User-Id": str(user.id)},
    )
    assert r.status_code == 200, r.text
    assert r.json()["imported_calls"] == 1

    events = client.get("/api/calendar/events", headers={"X-User-Id": str(user.id)}).json()
    assert events[0]["imported"] is True
    assert events[0]["is_external"] is True

    db.expire_all()
    assert db.query(Call).one().drive_file_id == f.id
