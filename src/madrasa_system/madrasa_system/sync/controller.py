from __future__ import annotations

import logging

from flask import Flask, jsonify, request

from ..common.http import fail, json_body, query_arg
from ..container import Container
from .model import AttendanceOverwriteOptions

logger = logging.getLogger(__name__)


def _section_args(data: dict):
    return data.get("courseType"), data.get("year"), data.get("courseDivision"), data.get("section")


def register(app: Flask, container: Container) -> None:
    sync = container.sync_service

    @app.route("/api/attendance/overwrite", methods=["POST"], endpoint="attendance_overwrite")
    def attendance_overwrite():
        data = json_body()
        key = data.get("key")
        if not key or not isinstance(data.get("data"), dict):
            return fail("key and data are required")

        result = sync.handle_attendance_overwrite(key, data["data"], AttendanceOverwriteOptions.from_dict(data))
        status = 200 if result.success else 409
        return jsonify(result.to_dict()), status

    @app.route("/api/attendance/leave-conflicts", methods=["GET"], endpoint="attendance_leave_conflicts")
    def attendance_leave_conflicts():
        date = query_arg("date")
        course_type = query_arg("courseType")
        year = query_arg("year")
        section = query_arg("section")
        if not date or not course_type or not year or not section:
            return fail("date, courseType, year and section are required")

        check = sync.check_leave_conflicts(
            date, course_type, year, query_arg("courseDivision"), section, query_arg("period")
        )
        return jsonify({"success": True, **check.to_dict()}), 200

    @app.route("/api/leaves/sync-attendance", methods=["POST"], endpoint="leaves_sync_attendance")
    def leaves_sync_attendance():
        data = json_body()
        if data.get("studentId") is None or not data.get("fromDate") or not data.get("toDate"):
            return fail("studentId, fromDate and toDate are required")

        result = sync.sync_leave_with_past_attendance(
            data["studentId"],
            data["fromDate"],
            data["toDate"],
            data.get("reason") or "",
            data.get("approvedBy"),
        )
        return jsonify(result.to_dict()), 200 if result.success else 400

    @app.route("/api/notifications/refresh", methods=["POST"], endpoint="notifications_refresh")
    def notifications_refresh():
        count = sync.update_notification_counts()
        if count is None:
            return fail("Leave data unavailable", 503)
        return jsonify({"success": True, "alertCount": count}), 200

    # ===== SECTIONS =====

    @app.route("/api/sections/validate-deletion", methods=["POST"], endpoint="sections_validate_deletion")
    def sections_validate_deletion():
        data = json_body()
        course_type, year, division, section = _section_args(data)
        if not course_type or not year or not section:
            return fail("courseType, year and section are required")

        check = sync.validate_section_deletion(course_type, year, division, section)
        verdict = container.validation_service.validate_section_deletion(course_type, year, division, section)
        body = {"success": True, **check.to_dict()}
        if verdict.reason:
            body["message"] = verdict.reason
        return jsonify(body), 200

    @app.route("/api/sections/archive", methods=["POST"], endpoint="sections_archive")
    def sections_archive():
        data = json_body()
        course_type, year, division, section = _section_args(data)
        if not course_type or not year or not section:
            return fail("courseType, year and section are required")

        result = sync.archive_section_data(course_type, year, division, section)
        return jsonify(result.to_dict()), 200 if result.success else 502

    # ===== AUDIT =====

    @app.route("/api/audit", methods=["GET"], endpoint="audit_list")
    def audit_list():
        limit = request.args.get("limit", type=int)
        entries = sync.audit_trail(limit)
        return jsonify({"success": True, "entries": [e.to_dict() for e in entries]}), 200
