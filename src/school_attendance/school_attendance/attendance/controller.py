from __future__ import annotations

import logging
from datetime import date, timedelta
from functools import wraps

from flask import Flask, jsonify, request, session

from ..common.datetime_utils import now_local, parse_date_field
from ..core.enums import Role
from ..core.exceptions import (
    ConfigurationError,
    ConflictError,
    DomainError,
    ForbiddenError,
    LockedError,
    StorageError,
    ValidationError,
)
from ..users.model import Requester

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_DAYS = 30


def _error_response(exc: DomainError):
    if isinstance(exc, LockedError):
        return jsonify({
            "success": False,
            "error": "locked",
            "reason": exc.reason.value,
            "dates": [d.isoformat() for d in exc.dates],
            "message": str(exc),
        }), 423
    if isinstance(exc, ValidationError):
        return jsonify({"success": False, "error": "validation", "message": str(exc)}), 400
    if isinstance(exc, ForbiddenError):
        return jsonify({"success": False, "error": "forbidden", "message": str(exc)}), 403
    if isinstance(exc, ConflictError):
        return jsonify({"success": False, "error": "conflict", "message": str(exc)}), 409
    if isinstance(exc, (StorageError, ConfigurationError)):
        logger.error("Request failed: %s", exc)
        return jsonify({"success": False, "error": "server", "message": "Internal error, please try again"}), 500
    return jsonify({"success": False, "error": "domain", "message": str(exc)}), 400


def register(app: Flask, container) -> None:
    def current_requester() -> Requester:
        return Requester(
            user_id=int(session["user_id"]),
            role=Role(session.get("role")),
            full_name=session.get("name"),
        )

    def api_login_required(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            if "user_id" not in session or session.get("role") not in {r.value for r in Role}:
                return jsonify({"success": False, "error": "unauthenticated", "message": "Please sign in"}), 401
            try:
                return view(current_requester(), *args, **kwargs)
            except DomainError as e:
                return _error_response(e)

        return wrapper

    def _arg_date(name: str, default: date | None = None) -> date:
        raw = request.args.get(name)
        if not raw and default is not None:
            return default
        return parse_date_field(raw, name)

    def _json_body() -> dict:
        data = request.get_json(silent=True)
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ValidationError("Request body must be a JSON object")
        return data

    def _lock_payload(state, *, is_admin: bool) -> dict:
        return {
            "date": state.work_date.isoformat(),
            "locked": state.locked,
            "reason": state.reason.value if state.reason else None,
            "time_locked": state.time_locked,
            "admin_locked": state.admin_locked,
            "locks_at": state.locks_at.isoformat() if state.locks_at else None,
            "can_edit": state.writable_by(is_admin=is_admin),
        }

    @app.route("/api/attendance", methods=["POST"], endpoint="api_submit_attendance")
    @api_login_required
    def api_submit_attendance(requester: Requester):
        data = _json_body()
        roster = data.get("roster")
        if not isinstance(roster, list):
            raise ValidationError("roster must be a list")

        written = container.attendance_service.submit_attendance(
            requester,
            class_id=data.get("class_id"),
            section_id=data.get("section_id"),
            work_date=parse_date_field(data.get("date"), "date"),
            roster=[r if isinstance(r, dict) else {} for r in roster],
        )
        return jsonify({"success": True, "written": written}), 200

    @app.route("/api/attendance", methods=["GET"], endpoint="api_attendance_for_date")
    @api_login_required
    def api_attendance_for_date(requester: Requester):
        view = container.attendance_service.get_attendance_for_date(
            requester,
            class_id=request.args.get("class_id"),
            section_id=request.args.get("section_id"),
            work_date=_arg_date("date", now_local().date()),
        )
        return jsonify({
            "success": True,
            "class_id": view.class_id,
            "section_id": view.section_id,
            "date": view.attendance_date.isoformat(),
            "lock": _lock_payload(view.lock, is_admin=requester.is_admin),
            "can_edit": view.can_edit,
            "students": [e.to_dict() for e in view.entries],
        }), 200

    @app.route("/api/attendance/lock", methods=["GET"], endpoint="api_attendance_lock_state")
    @api_login_required
    def api_attendance_lock_state(requester: Requester):
        state = container.attendance_service.is_date_locked(
            requester,
            class_id=request.args.get("class_id"),
            section_id=request.args.get("section_id"),
            work_date=_arg_date("date"),
        )
        return jsonify({"success": True, **_lock_payload(state, is_admin=requester.is_admin)}), 200

    @app.route("/api/attendance/lock", methods=["POST"], endpoint="api_attendance_lock")
    @api_login_required
    def api_attendance_lock(requester: Requester):
        data = _json_body()
        lock = container.attendance_service.lock_date(
            requester,
            class_id=data.get("class_id"),
            section_id=data.get("section_id"),
            lock_date=parse_date_field(data.get("date"), "date"),
        )
        return jsonify({
            "success": True,
            "class_id": lock.class_id,
            "section_id": lock.section_id,
            "date": lock.lock_date.isoformat(),
            "locked_at": lock.locked_at.isoformat(),
            "locked_by": lock.locked_by,
        }), 200

    @app.route("/api/attendance/lock", methods=["DELETE"], endpoint="api_attendance_unlock")
    @api_login_required
    def api_attendance_unlock(requester: Requester):
        data = _json_body()
        removed = container.attendance_service.unlock_date(
            requester,
            class_id=data.get("class_id"),
            section_id=data.get("section_id"),
            lock_date=parse_date_field(data.get("date"), "date"),
        )
        return jsonify({"success": True, "removed": removed}), 200

    @app.route("/api/students/<int:student_id>/attendance", methods=["GET"], endpoint="api_student_history")
    @api_login_required
    def api_student_history(requester: Requester, student_id: int):
        return _history_response(requester, student_id)

    def _history_response(requester: Requester, student_id: int):
        today = now_local().date()
        end = _arg_date("to", today)
        start = _arg_date("from", end - timedelta(days=DEFAULT_HISTORY_DAYS))
        history = container.attendance_service.get_student_history(
            requester, student_id=student_id, start_date=start, end_date=end
        )
        return jsonify({
            "success": True,
            "student_id": history.student_id,
            "from": history.start_date.isoformat(),
            "to": history.end_date.isoformat(),
            "summary": history.summary.to_dict(),
            "records": [r.to_dict() for r in history.records],
        }), 200

    @app.route("/api/me/attendance", methods=["GET"], endpoint="api_my_attendance")
    @api_login_required
    def api_my_attendance(requester: Requester):
        student_id = container.attendance_service.resolve_student_id(requester)
        if student_id is None:
            raise ForbiddenError("Only students have a personal attendance history")
        return _history_response(requester, student_id)

    @app.route("/api/reports/attendance", methods=["GET"], endpoint="api_attendance_report")
    @api_login_required
    def api_attendance_report(requester: Requester):
        report = container.report_service.get_report(
            requester,
            class_id=request.args.get("class_id"),
            section_id=request.args.get("section_id"),
            start_date=_arg_date("from"),
            end_date=_arg_date("to"),
        )
        return jsonify({
            "success": True,
            "class_id": report.class_id,
            "section_id": report.section_id,
            "from": report.start_date.isoformat(),
            "to": report.end_date.isoformat(),
            "students": [row.to_dict() for row in report.rows],
            "summary": report.cohort.to_dict(),
        }), 200

    @app.route("/api/reports/overview", methods=["GET"], endpoint="api_daily_overview")
    @api_login_required
    def api_daily_overview(requester: Requester):
        overview = container.report_service.daily_overview(
            requester, attendance_date=_arg_date("date", now_local().date())
        )
        return jsonify({"success": True, **overview}), 200

    @app.route("/api/settings", methods=["GET"], endpoint="api_settings")
    @api_login_required
    def api_settings(requester: Requester):
        if not requester.is_admin:
            raise ForbiddenError("Only administrators can view settings")
        return jsonify({"success": True, "settings": container.settings_service.list_settings()}), 200

    @app.route("/api/settings", methods=["PUT"], endpoint="api_update_settings")
    @api_login_required
    def api_update_settings(requester: Requester):
        updated = container.settings_service.update_many(requester, _json_body())
        return jsonify({"success": True, "updated": updated}), 200
