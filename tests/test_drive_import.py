# tests/test_drive_import.py
from datetime import datetime

from conftest import FakeCalendar, FakeDrive, make_event

from callintel.models import Call, DriveFile, DriveSource, FILE_ERROR, FILE_IMPORTED, FILE_SKIPPED
from callintel.services.drive_import import import_drive_files, pending_files
from callintel.services.google_drive import extract_folder_id, sync_folder

TRANSCRIPT = "Participants: Jane Doe, Host Person\nJane: We need a rough estimate for the proposal."


def _file(db, user, google_id, name, modified, text=TRANSCRIPT):
    f = DriveFile(
        user_id=user.id, google_file_id=google_id, name=name, mime_type="text/plain",
        modified_time=modified, status=FILE_IMPORTED, raw_text=text,
    )
    db.add(f)
    db.commit()
    db.refresh(f)
    return f


def test_extract_folder_id():
    assert extract_folder_id("https://drive.google.com/drive/folders/1AbC_d-9?usp=sharing") == "1AbC_d-9"
    assert extract_folder_id("https://drive.google.com/open?id=XYZ123") == "XYZ123"
    assert extract_folder_id("1AbCd") == "1AbCd"
    assert extract_folder_id("not a folder!") is None
    assert extract_folder_id("") is None


def test_import_builds_calls_from_files(db, user, fake_llm, analysis_config):
    _file(db, user, "g-1", "Transcript - Acme Budget.txt", datetime(2025, 3, 4, 11, 5))

    result = import_drive_files(db, user, analysis_config)
    assert result.total == 1 and result.success == 1

    call = db.query(Call).one()
    assert call.title == "Acme Budget"
    assert call.participants == ["Jane Doe", "Host Person"]
    assert call.organizer == "Host Person"
    assert call.is_external is None
    assert call.classification_source == "unknown"
    assert call.category_final.name == "Ballpark Proposal"
    assert pending_files(db, user) == []


def test_calendar_match_sets_external_and_meet_code(db, user, fake_llm, analysis_config):
    _file(db, user, "g-1", "acme.txt", datetime(2025, 3, 4, 11, 5))
    result = import_drive_files(db, user, analysis_config, calendar=FakeCalendar([make_event()]))
    assert result.success == 1

    call = db.query(Call).one()
    assert call.meet_code == "abc-defg-hij"
    assert call.call_date == datetime(2025, 3, 4, 10, 0)
    assert call.is_external is True
    assert call.external_domains == ["acme.com"]
    assert call.classification_source == "calendar"


def test_two_files_for_one_meeting_make_one_call(db, user, fake_llm, analysis_config):
    _file(db, user, "g-1", "acme transcript.txt", datetime(2025, 3, 4, 11, 5))
    second = _file(db, user, "g-2", "acme notes.txt", datetime(2025, 3, 4, 11, 20))

    result = import_drive_files(db, user, analysis_config, calendar=FakeCalendar([make_event()]))
    assert result.total == 2
    assert result.success == 1
    assert result.failed == 1
    assert "already exists" in result.errors[0]
    assert db.query(Call).count() == 1

    db.refresh(second)
    assert second.status == FILE_SKIPPED
    assert "already exists" in second.error_message


def test_selected_file_ids_only(db, user, fake_llm, analysis_config):
    a = _file(db, user, "g-1", "a.txt", datetime(2025, 3, 4))
    _file(db, user, "g-2", "b.txt", datetime(2025, 3, 5))
    result = import_drive_files(db, user, analysis_config, file_ids=[a.id])
    assert result.total == 1
    assert db.query(Call).one().drive_file_id == a.id


def test_failed_analysis_is_reported_and_file_stays_pending(db, user, fake_llm, analysis_config):
    _file(db, user, "g-1", "a.txt", datetime(2025, 3, 4))
    fake_llm.fail = {"analysis"}
    result = import_drive_files(db, user, analysis_config)
    assert result.failed == 1
    assert result.errors[0].startswith("a.txt: Call analysis failed")
    assert len(pending_files(db, user)) == 1


def test_sync_folder(db, user):
    db.add(DriveSource(user_id=user.id, folder_id="fold-1", folder_name="Transcripts"))
    db.commit()
    drive = FakeDrive(
        folder_files=[
            {"id": "g-1", "name": "one.txt", "mimeType": "text/plain", "modifiedTime": "2025-03-04T11:00:00Z"},
            {"id": "g-2", "name": "two.txt", "mimeType": "text/plain", "modifiedTime": "2025-03-04T12:00:00Z"},
            {"id": "sub", "name": "Archive", "mimeType": "application/vnd.google-apps.folder"},
        ],
        contents={"g-1": "Alice: hi", "g-2": RuntimeError("403 download forbidden")},
    )

    first = sync_folder(db, user, "fold-1", drive)
    assert first.synced == 1
    assert first.skipped == 1
    assert first.errors == ["two.txt: 403 download forbidden"]

    rows = {f.google_file_id: f for f in db.query(DriveFile).all()}
    assert rows["g-1"].status == FILE_IMPORTED and rows["g-1"].raw_text == "Alice: hi"
    assert rows["g-2"].status == FILE_ERROR
    assert db.query(DriveSource).one().last_sync is not None

    # unchanged imported files are left alone; failed ones are retried
    second = sync_folder(db, user, "fold-1", drive)
    assert second.synced == 0
    assert second.skipped == 2
    assert len(second.errors) == 1
