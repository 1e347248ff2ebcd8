import copy

import pytest
from fastapi.testclient import TestClient

from main import app
from models.schemas import CatalogSnapshot
from service.store import TimetableStore, get_store


def get_catalog():
    """Return a small but complete catalog for the current period."""
    return {
        "periods": [
            {"period_id": "p1", "semester": "1st", "school_year": "2025-2026", "is_current": True},
            {"period_id": "p0", "semester": "2nd", "school_year": "2024-2025"},
        ],
        "teachers": [
            {
                "teacher_id": "t1",
                "name": "Ana Cruz",
                "specializations": "Mathematics",
                "avail_days": "MWF",
                "pref_time": "08:00-12:00",
                "max_load": 18,
            },
            {
                "teacher_id": "t2",
                "name": "Ben Reyes",
                "specializations": ["Science"],
                "avail_days": "MTWThF",
                "pref_time": "08:00-17:00",
                "max_load": 18,
            },
        ],
        "rooms": [
            {"room_id": "r1", "name": "Room 101", "type": "Lecture"},
            {"room_id": "r2", "name": "Room 102", "type": "Lec"},
            {"room_id": "r3", "name": "Lab 1", "type": "Laboratory"},
        ],
        "subjects": [
            {
                "subject_id": "s1",
                "subject_code": "MATH101",
                "name": "College Algebra",
                "specialization": "Mathematics",
                "units": 3,
                "lec_hours": 3,
                "academic_period_id": "p1",
            },
            {
                "subject_id": "s2",
                "subject_code": "SCI101",
                "name": "General Science",
                "specialization": "Science",
                "units": 3,
                "lec_hours": 3,
                "semester": "1st",
                "school_year": "2025-2026",
            },
            {
                "subject_id": "s3",
                "subject_code": "MATH102",
                "name": "Trigonometry",
                "specialization": "Mathematics",
                "units": 3,
                "lec_hours": 3,
                "academic_period_id": "p1",
            },
            {
                "subject_id": "s9",
                "subject_code": "OLD100",
                "name": "Retired Subject",
                "specialization": "Mathematics",
                "units": 3,
                "lec_hours": 3,
                "academic_period_id": "p0",
            },
        ],
        "sections": [
            {"section_id": "sec1", "name": "BSIT 1-A", "academic_period_id": "p1"},
            {"section_id": "sec2", "name": "BSIT 1-B", "academic_period_id": "p1"},
            {"section_id": "sec9", "name": "BSIT 4-A", "academic_period_id": "p0"},
        ],
        "meetings": [],
    }


@pytest.fixture()
def catalog():
    return get_catalog()


@pytest.fixture()
def store_factory():
    """Build a store loaded from a catalog dict (defaults to get_catalog())."""
    def make(catalog=None):
        store = TimetableStore()
        store.load_snapshot(CatalogSnapshot(**copy.deepcopy(catalog or get_catalog())))
        return store
    return make


@pytest.fixture()
def store(store_factory):
    return store_factory()


@pytest.fixture()
def client():
    """API client backed by an empty store of its own."""
    fresh_store = TimetableStore()
    app.dependency_overrides[get_store] = lambda: fresh_store

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
