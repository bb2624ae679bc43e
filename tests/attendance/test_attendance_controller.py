from __future__ import annotations

from datetime import date
from types import SimpleNamespace

import pytest
from flask import Flask

from src.school_attendance.school_attendance.attendance import controller
from src.school_attendance.school_attendance.attendance import service as register_service
from src.school_attendance.school_attendance.core.enums import AttendanceStatus


@pytest.fixture
def app(attendance_service, report_service, settings_service, fixed_now, monkeypatch):
    # Requests carry no clock; pin both layers to the fixture time.
    monkeypatch.setattr(controller, "now_local", lambda: fixed_now)
    monkeypatch.setattr(register_service, "now_local", lambda: fixed_now)

    app = Flask(__name__)
    app.secret_key = "test-secret"
    app.config["TESTING"] = True
    container = SimpleNamespace(
        attendance_service=attendance_service,
        report_service=report_service,
        settings_service=settings_service,
    )
    controller.register(app, container)
    return app


def login(client, requester):
    with client.session_transaction() as sess:
        sess["user_id"] = requester.user_id
        sess["role"] = requester.role.value
        sess["name"] = requester.full_name


def test_requires_login(app):
    client = app.test_client()
    resp = client.get("/api/attendance?class_id=1&section_id=1")
    assert resp.status_code == 401
    assert resp.get_json()["error"] == "unauthenticated"


def test_get_roster_prefills_present(app, teacher):
    client = app.test_client()
    login(client, teacher)

    resp = client.get("/api/attendance?class_id=1&section_id=1&date=2025-01-10")

    assert resp.status_code == 200
    body = resp.get_json()
    assert [s["roll_number"] for s in body["students"]] == ["01", "02", "03", "04", "05"]
    assert all(s["status"] == "present" and not s["is_marked"] for s in body["students"])
    assert body["can_edit"] is True
    assert body["lock"]["locked"] is False


def test_submit_then_read_back(app, teacher, attendance_repo):
    client = app.test_client()
    login(client, teacher)

    resp = client.post(
        "/api/attendance",
        json={
            "class_id": 1,
            "section_id": 1,
            "date": "2025-01-10",
            "roster": [
                {"student_id": 101, "status": "absent", "remarks": "sick"},
                {"student_id": 102, "status": "late"},
            ],
        },
    )
    assert resp.status_code == 200
    assert resp.get_json() == {"success": True, "written": 2}
    assert attendance_repo.records[(101, date(2025, 1, 10))].status == AttendanceStatus.ABSENT

    body = client.get("/api/attendance?class_id=1&section_id=1&date=2025-01-10").get_json()
    first = body["students"][0]
    assert first["status"] == "absent"
    assert first["remarks"] == "sick"
    assert first["is_marked"] is True


def test_locked_date_returns_423_with_reason(app, teacher):
    client = app.test_client()
    login(client, teacher)

    resp = client.post(
        "/api/attendance",
        json={"class_id": 1, "section_id": 1, "date": "2025-01-08", "roster": [{"student_id": 101, "status": "present"}]},
    )

    assert resp.status_code == 423
    body = resp.get_json()
    assert body["reason"] == "time_window"
    assert body["dates"] == ["2025-01-08"]


def test_validation_errors_return_400(app, teacher):
    client = app.test_client()
    login(client, teacher)

    bad_status = client.post(
        "/api/attendance",
        json={"class_id": 1, "section_id": 1, "date": "2025-01-10", "roster": [{"student_id": 101, "status": "sleeping"}]},
    )
    no_roster = client.post("/api/attendance", json={"class_id": 1, "section_id": 1, "date": "2025-01-10"})
    bad_date = client.post(
        "/api/attendance", json={"class_id": 1, "section_id": 1, "date": "10/01/2025", "roster": []}
    )
    not_object = client.post("/api/attendance", json=[1, 2, 3])

    for resp in (bad_status, no_roster, bad_date, not_object):
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "validation"


def test_other_teacher_gets_403(app, other_teacher):
    client = app.test_client()
    login(client, other_teacher)

    resp = client.get("/api/attendance?class_id=1&section_id=1&date=2025-01-10")

    assert resp.status_code == 403


def test_admin_lock_round_trip(app, admin, teacher):
    admin_client = app.test_client()
    login(admin_client, admin)
    resp = admin_client.post("/api/attendance/lock", json={"class_id": 1, "section_id": 1, "date": "2025-01-10"})
    assert resp.status_code == 200
    assert resp.get_json()["locked_by"] == admin.user_id

    teacher_client = app.test_client()
    login(teacher_client, teacher)
    state = teacher_client.get("/api/attendance/lock?class_id=1&section_id=1&date=2025-01-10").get_json()
    assert state["locked"] is True
    assert state["reason"] == "admin_lock"
    assert state["can_edit"] is False

    blocked = teacher_client.post(
        "/api/attendance",
        json={"class_id": 1, "section_id": 1, "date": "2025-01-10", "roster": [{"student_id": 101, "status": "present"}]},
    )
    assert blocked.status_code == 423
    assert blocked.get_json()["reason"] == "admin_lock"

    resp = admin_client.delete("/api/attendance/lock", json={"class_id": 1, "section_id": 1, "date": "2025-01-10"})
    assert resp.get_json() == {"success": True, "removed": True}


def test_teacher_cannot_lock(app, teacher):
    client = app.test_client()
    login(client, teacher)

    resp = client.post("/api/attendance/lock", json={"class_id": 1, "section_id": 1, "date": "2025-01-10"})

    assert resp.status_code == 403


def test_student_sees_only_own_history(app, student, admin, attendance_service, fixed_now):
    attendance_service.submit_attendance(
        admin,
        class_id=1,
        section_id=1,
        work_date=date(2025, 1, 9),
        roster=[{"student_id": 101, "status": "late"}, {"student_id": 102, "status": "absent"}],
        now=fixed_now,
    )
    client = app.test_client()
    login(client, student)

    mine = client.get("/api/me/attendance")
    assert mine.status_code == 200
    body = mine.get_json()
    assert body["student_id"] == 101
    assert body["to"] == "2025-01-10"
    assert body["from"] == "2024-12-11"
    assert body["summary"]["late"] == 1
    assert body["summary"]["percentage"] == 100

    other = client.get("/api/students/102/attendance")
    assert other.status_code == 403


def test_me_endpoint_forbidden_for_teacher(app, teacher):
    client = app.test_client()
    login(client, teacher)

    assert client.get("/api/me/attendance").status_code == 403


def test_report_endpoint(app, admin, attendance_service, fixed_now):
    attendance_service.submit_attendance(
        admin,
        class_id=1,
        section_id=1,
        work_date=date(2025, 1, 9),
        roster=[{"student_id": sid, "status": "present"} for sid in (101, 102, 103, 104)]
        + [{"student_id": 105, "status": "absent"}],
        now=fixed_now,
    )
    client = app.test_client()
    login(client, admin)

    resp = client.get("/api/reports/attendance?class_id=1&section_id=1&from=2025-01-01&to=2025-01-10")

    assert resp.status_code == 200
    body = resp.get_json()
    assert len(body["students"]) == 5
    assert body["summary"]["average_percentage"] == 80
    assert body["summary"]["below_threshold_count"] == 1


def test_report_rejects_inverted_range(app, admin):
    client = app.test_client()
    login(client, admin)

    resp = client.get("/api/reports/attendance?class_id=1&section_id=1&from=2025-01-10&to=2025-01-01")

    assert resp.status_code == 400


def test_settings_admin_only_and_validated(app, admin, teacher, settings_repo):
    teacher_client = app.test_client()
    login(teacher_client, teacher)
    assert teacher_client.get("/api/settings").status_code == 403
    assert teacher_client.put("/api/settings", json={"attendance_lock_hours": 48}).status_code == 403

    admin_client = app.test_client()
    login(admin_client, admin)
    resp = admin_client.put("/api/settings", json={"attendance_lock_hours": "48"})
    assert resp.status_code == 200
    assert resp.get_json()["updated"] == {"attendance_lock_hours": 48}
    assert settings_repo.values["attendance_lock_hours"] == "48"

    assert admin_client.put("/api/settings", json={"attendance_lock_hours": -1}).status_code == 400
    assert admin_client.put("/api/settings", json={"unknown": 1}).status_code == 400


def test_broken_lock_setting_is_a_server_error(app, teacher, settings_repo):
    settings_repo.values["attendance_lock_hours"] = "soon"
    client = app.test_client()
    login(client, teacher)

    resp = client.post(
        "/api/attendance",
        json={"class_id": 1, "section_id": 1, "date": "2025-01-10", "roster": [{"student_id": 101, "status": "present"}]},
    )

    assert resp.status_code == 500
    assert resp.get_json()["error"] == "server"


def test_daily_overview_counts(app, admin, attendance_service, fixed_now):
    attendance_service.submit_attendance(
        admin,
        class_id=1,
        section_id=1,
        work_date=date(2025, 1, 10),
        roster=[
            {"student_id": 101, "status": "present"},
            {"student_id": 102, "status": "late"},
            {"student_id": 103, "status": "absent"},
        ],
        now=fixed_now,
    )
    client = app.test_client()
    login(client, admin)

    body = client.get("/api/reports/overview").get_json()

    assert body["date"] == "2025-01-10"
    assert (body["present"], body["late"], body["absent"]) == (1, 1, 1)
    assert body["percentage"] == 67


def test_mixed_settings_update_stores_nothing(app, admin, settings_repo):
    client = app.test_client()
    login(client, admin)

    resp = client.put("/api/settings", json={"attendance_lock_hours": 48, "unknown": 1})
    assert resp.status_code == 400
    resp = client.put("/api/settings", json={"attendance_lock_hours": 48, "low_attendance_threshold": 150})
    assert resp.status_code == 400

    assert settings_repo.values == {"attendance_lock_hours": "24", "low_attendance_threshold": "75"}


def test_admin_can_open_screens_with_broken_lock_setting(app, admin, settings_repo):
    settings_repo.values["attendance_lock_hours"] = "-3"
    client = app.test_client()
    login(client, admin)

    roster = client.get("/api/attendance?class_id=1&section_id=1&date=2025-01-10")
    state = client.get("/api/attendance/lock?class_id=1&section_id=1&date=2025-01-10")

    assert roster.status_code == 200
    assert roster.get_json()["can_edit"] is True
    assert state.status_code == 200
    assert state.get_json()["locks_at"] is None
    assert state.get_json()["locked"] is False

    fixed = client.put("/api/settings", json={"attendance_lock_hours": 24})
    assert fixed.status_code == 200
    assert settings_repo.values["attendance_lock_hours"] == "24"
