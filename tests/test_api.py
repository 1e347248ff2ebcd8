"""
Test the timetable API end to end with self-contained test data.
"""


def get_meeting_request(**overrides):
    """Return a valid manual meeting request for the default catalog."""
    data = {
        "subject_id": "s1",
        "teacher_id": "t1",
        "section_id": "sec1",
        "room_id": "r1",
        "days": "MW",
        "start_time": "08:00",
        "end_time": "09:30",
        "actor_id": "coordinator-1",
    }
    data.update(overrides)
    return data


def load_catalog(client, catalog):
    response = client.put("/api/v1/catalog", json=catalog)
    assert response.status_code == 200, response.json()
    return response.json()


def test_root_endpoint(client):
    """Test root health check endpoint."""
    response = client.get("/")
    assert response.status_code == 200

    data = response.json()
    assert "service" in data
    assert data["status"] == "healthy"


def test_health_endpoint(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_load_catalog(client, catalog):
    summary = load_catalog(client, catalog)
    assert summary == {
        "active_period_id": "p1",
        "teachers": 2,
        "rooms": 3,
        "subjects": 4,
        "sections": 3,
        "meetings": 0,
    }


def test_load_catalog_with_unknown_active_period(client, catalog):
    catalog["active_period_id"] = "p404"

    response = client.put("/api/v1/catalog", json=catalog)
    assert response.status_code == 404
    assert response.json()["kind"] == "not_found"


def test_requests_before_catalog_fail_precondition(client):
    response = client.get("/api/v1/meetings")
    assert response.status_code == 412

    data = response.json()
    assert data["title"] == "Precondition Failed"
    assert data["message"] == "No active academic period is set."


def test_create_meeting(client, catalog):
    load_catalog(client, catalog)

    response = client.post("/api/v1/meetings", json=get_meeting_request())
    assert response.status_code == 201

    data = response.json()
    assert data["title"] == "Success"
    assert data["teacher_load"] == 3
    assert data["meeting"]["days"] == "MW"
    assert data["meeting"]["duration"] == "01:30"
    assert data["meeting"]["academic_period_id"] == "p1"

    meetings = client.get("/api/v1/meetings").json()
    assert [m["meeting_id"] for m in meetings] == [data["meeting"]["meeting_id"]]


def test_conflicting_meeting_is_rejected(client, catalog):
    load_catalog(client, catalog)
    client.post("/api/v1/meetings", json=get_meeting_request())

    response = client.post(
        "/api/v1/meetings",
        json=get_meeting_request(subject_id="s3", section_id="sec2", days="M", start_time="09:00", end_time="10:00"),
    )
    assert response.status_code == 409

    data = response.json()
    assert data["kind"] == "validation_error"
    assert "Room r1 already booked on M" in data["message"]
    assert data["entity_ids"]["room_id"] == "r1"


def test_unavailable_day_is_rejected(client, catalog):
    load_catalog(client, catalog)

    response = client.post("/api/v1/meetings", json=get_meeting_request(days="T"))
    assert response.status_code == 409
    assert "not available on Tuesday" in response.json()["message"]


def test_malformed_meeting_request(client, catalog):
    load_catalog(client, catalog)
    request = get_meeting_request(start_time="25:00")
    del request["room_id"]

    response = client.post("/api/v1/meetings", json=request)
    assert response.status_code == 422

    errors = response.json()["errors"]
    assert errors["Room Id"] == ["Room Id is required."]
    assert "Start Time" in errors


def test_reassign_and_remove_meeting(client, catalog):
    load_catalog(client, catalog)
    meeting_id = client.post("/api/v1/meetings", json=get_meeting_request()).json()["meeting"]["meeting_id"]

    response = client.put(f"/api/v1/meetings/{meeting_id}", json=get_meeting_request(days="F"))
    assert response.status_code == 200
    assert response.json()["meeting"]["days"] == "F"
    assert response.json()["teacher_load"] == 3

    response = client.delete(f"/api/v1/meetings/{meeting_id}", params={"actor_id": "coordinator-1"})
    assert response.status_code == 200
    assert response.json()["teacher_load"] == 0
    assert client.get("/api/v1/meetings").json() == []


def test_remove_unknown_meeting(client, catalog):
    load_catalog(client, catalog)

    response = client.delete("/api/v1/meetings/404")
    assert response.status_code == 404
    assert response.json()["message"] == "Meeting with id 404 not found."


def test_teacher_availability(client, catalog):
    load_catalog(client, catalog)
    client.post("/api/v1/meetings", json=get_meeting_request())

    response = client.get(
        "/api/v1/teachers/availability",
        params={"days": "M", "start_time": "09:00", "end_time": "10:00"},
    )
    assert response.status_code == 200
    assert [t["teacher_id"] for t in response.json()] == ["t2"]
    assert response.json()[0]["remaining_load"] == 18


def test_teacher_availability_bad_time(client, catalog):
    load_catalog(client, catalog)

    response = client.get(
        "/api/v1/teachers/availability",
        params={"days": "M", "start_time": "10:00", "end_time": "09:00"},
    )
    assert response.status_code == 400
    assert response.json()["kind"] == "invalid_range"


def test_auto_schedule_and_conflicts(client, catalog):
    load_catalog(client, catalog)

    response = client.post("/api/v1/schedule/auto", json={"seed": 7, "actor_id": "coordinator-1"})
    assert response.status_code == 200

    data = response.json()
    assert data["period_id"] == "p1"
    assert data["status"] in ["COMPLETE", "PARTIAL"]
    assert set(data["load_map"]) == {"t1", "t2"}
    assert "messages" in data
    assert len(data["messages"]["error_message"]) == len(data["unassigned"])
    for meetings in data["schedule"].values():
        for m in meetings:
            assert m["load_delta"] == 3

    report = client.get("/api/v1/conflicts").json()
    assert report["scope"] == "period"
    assert report["counts"]["room_conflict"] == 0
    assert report["counts"]["teacher_conflict"] == 0
    assert report["counts"]["section_conflict"] == 0


def test_auto_schedule_without_body(client, catalog):
    load_catalog(client, catalog)

    response = client.post("/api/v1/schedule/auto")
    assert response.status_code == 200
    assert response.json()["period_id"] == "p1"


def test_auto_schedule_needs_rooms(client, catalog):
    catalog["rooms"] = []
    load_catalog(client, catalog)

    response = client.post("/api/v1/schedule/auto", json={})
    assert response.status_code == 412
    assert "no rooms" in response.json()["message"]


def test_conflicts_all_periods(client, catalog):
    catalog["meetings"] = [
        {
            "meeting_id": "old-1", "subject_id": "s9", "teacher_id": "t1", "section_id": "sec9",
            "room_id": "r1", "days": "M", "start_time": "08:00", "end_time": "09:00",
            "academic_period_id": "p0",
        },
        {
            "meeting_id": "old-2", "subject_id": "s9", "teacher_id": "t2", "section_id": "sec9",
            "room_id": "r1", "days": "M", "start_time": "08:30", "end_time": "09:30",
            "academic_period_id": "p0",
        },
    ]
    load_catalog(client, catalog)

    assert client.get("/api/v1/conflicts").json()["counts"]["room_conflict"] == 0

    report = client.get("/api/v1/conflicts", params={"all_periods": True}).json()
    assert report["scope"] == "all"
    assert report["counts"]["room_conflict"] == 1
    assert report["counts"]["duplicate_section_subject_day"] == 1
