"""
Test the single-meeting constraint checks, through MeetingService.create.
"""
import pytest

from models.schemas import MeetingRequest
from service.errors import ValidationError
from service.meetings import MeetingService


def make_request(**overrides):
    data = {
        "subject_id": "s1",
        "teacher_id": "t1",
        "section_id": "sec1",
        "room_id": "r1",
        "days": "M",
        "start_time": "08:00",
        "end_time": "11:00",
    }
    data.update(overrides)
    return MeetingRequest(**data)


def test_valid_insert_updates_load(store):
    meeting, teacher = MeetingService(store).create(make_request())

    assert meeting.meeting_id
    assert meeting.academic_period_id == "p1"
    assert meeting.load_delta == 3
    assert teacher.current_load == 3
    assert store.get_teacher("t1").current_load == 3
    assert store.meetings_for("p1") == [meeting]


def test_room_double_booking_is_rejected(store):
    service = MeetingService(store)
    service.create(make_request())

    with pytest.raises(ValidationError) as exc_info:
        service.create(make_request(subject_id="s3", section_id="sec2", start_time="09:00", end_time="10:00"))

    assert "Room r1 already booked on M" in exc_info.value.message
    assert exc_info.value.entity_ids["room_id"] == "r1"
    assert len(store.meetings) == 1
    assert store.get_teacher("t1").current_load == 3


def test_unavailable_day_is_rejected(store):
    with pytest.raises(ValidationError) as exc_info:
        MeetingService(store).create(make_request(days="T", start_time="08:00", end_time="09:00"))

    assert "not available on Tuesday" in exc_info.value.message
    assert store.meetings == {}
    assert store.get_teacher("t1").current_load == 0


def test_load_check_runs_first(store):
    store.get_teacher("t1").max_load = 2

    # also outside the preferred window; load is still the reported reason
    with pytest.raises(ValidationError) as exc_info:
        MeetingService(store).create(make_request(start_time="13:00", end_time="14:00"))

    assert "exceeds allowed load (3/2 units)" in exc_info.value.message


def test_load_exactly_at_max_is_allowed(store):
    store.get_teacher("t1").max_load = 3
    _, teacher = MeetingService(store).create(make_request())
    assert teacher.current_load == 3


def test_specialization_is_required(store):
    with pytest.raises(ValidationError) as exc_info:
        MeetingService(store).create(make_request(teacher_id="t2"))

    assert "not specialized in Mathematics" in exc_info.value.message


def test_preferred_window_is_enforced(store):
    with pytest.raises(ValidationError) as exc_info:
        MeetingService(store).create(make_request(start_time="11:00", end_time="12:30"))

    assert "must be within preferred time window 08:00-12:00" in exc_info.value.message


def test_section_overlap_is_rejected(store):
    service = MeetingService(store)
    service.create(make_request())

    with pytest.raises(ValidationError) as exc_info:
        service.create(make_request(
            subject_id="s2", teacher_id="t2", room_id="r2", days="MW", start_time="10:00", end_time="12:00"
        ))

    assert "Section sec1 already has another subject on M" in exc_info.value.message


def test_teacher_overlap_is_rejected(store):
    service = MeetingService(store)
    service.create(make_request())

    with pytest.raises(ValidationError) as exc_info:
        service.create(make_request(subject_id="s3", section_id="sec2", room_id="r2", start_time="08:30", end_time="09:30"))

    assert "Ana Cruz already has another class on M" in exc_info.value.message


def test_duplicate_section_subject_days_is_rejected(store):
    service = MeetingService(store)
    service.create(make_request(start_time="08:00", end_time="09:00"))

    with pytest.raises(ValidationError) as exc_info:
        service.create(make_request(room_id="r2", start_time="10:00", end_time="11:00"))

    assert "has the same subject already on same day" in exc_info.value.message


def test_back_to_back_meetings_do_not_clash(store):
    service = MeetingService(store)
    service.create(make_request(start_time="08:00", end_time="09:00"))
    service.create(make_request(subject_id="s3", section_id="sec2", start_time="09:00", end_time="10:00"))

    assert len(store.meetings) == 2
    assert store.get_teacher("t1").current_load == 6


def test_meetings_of_other_periods_are_ignored(store):
    service = MeetingService(store)
    service.create(make_request())
    store.meetings["1"].academic_period_id = "p0"

    service.create(make_request(subject_id="s3", section_id="sec2"))
    assert len(store.meetings_for("p1")) == 1


def test_load_never_exceeds_max_after_accepted_inserts(store):
    store.get_teacher("t1").max_load = 6
    service = MeetingService(store)
    requests = [
        make_request(days="M", start_time="08:00", end_time="09:00"),
        make_request(subject_id="s3", days="W", start_time="08:00", end_time="09:00"),
        make_request(section_id="sec2", days="F", start_time="08:00", end_time="09:00"),
        make_request(subject_id="s3", section_id="sec2", days="M", start_time="10:00", end_time="11:00"),
    ]
    for request in requests:
        try:
            service.create(request)
        except ValidationError:
            pass
        teacher = store.get_teacher("t1")
        assert teacher.current_load <= teacher.max_load

    assert len(store.meetings) == 2
