from __future__ import annotations

import logging

from flask import Flask, jsonify, request

from ..common.datetime_utils import parse_iso_date
from ..common.http import fail, json_body, query_arg
from ..common.validators import require_non_empty
from ..container import Container
from ..core.enums import LeaveStatus
from ..core.exceptions import ValidationError

logger = logging.getLogger(__name__)


def register(app: Flask, container: Container) -> None:
    storage = container.hybrid_storage

    # ===== SYNC STATUS =====

    @app.route("/api/sync/status", methods=["GET"], endpoint="sync_status")
    def sync_status():
        status = storage.get_status().to_dict()
        status["pending"] = [item.to_dict() for item in storage.pending_items()]
        return jsonify({"success": True, "status": status}), 200

    @app.route("/api/sync/force", methods=["POST"], endpoint="sync_force")
    def sync_force():
        try:
            report = storage.force_sync()
        except Exception:
            logger.exception("Forced sync failed")
            return fail("Sync failed", 500)
        if report.skipped and not storage.is_online:
            return jsonify({"success": False, "message": "Cannot sync while offline", "report": report.to_dict()}), 200
        return jsonify({"success": True, "report": report.to_dict()}), 200

    @app.route("/api/sync/connectivity", methods=["POST"], endpoint="sync_connectivity")
    def sync_connectivity():
        """Report a connectivity change, or ask for a health check.

        Body: {"online": bool} or {"healthCheck": true}.
        """
        data = json_body()
        if data.get("healthCheck"):
            container.connectivity.check_health()
        elif "online" in data:
            container.connectivity.set_online(bool(data["online"]))
        else:
            return fail("Either 'online' or 'healthCheck' is required")
        return jsonify({"success": True, "status": storage.get_status().to_dict()}), 200

    @app.route("/api/sync/local-data", methods=["DELETE"], endpoint="sync_clear_local")
    def sync_clear_local():
        removed = storage.clear_local_data()
        return jsonify({"success": True, "message": f"Removed {removed} cached entries", "removed": removed}), 200

    # ===== STUDENTS =====

    @app.route("/api/students", methods=["POST"], endpoint="students_create")
    def students_create():
        data = json_body()
        try:
            require_non_empty(data.get("name"), "name")
            require_non_empty(data.get("courseType"), "courseType")
            require_non_empty(data.get("year"), "year")
            storage.save_student(data)
            container.sync_service.sync_student_data()
            return jsonify({"success": True, "message": "Student saved"}), 201
        except ValidationError as e:
            return fail(str(e))
        except Exception:
            logger.exception("Saving student failed")
            return fail("System error while saving student", 500)

    @app.route("/api/students", methods=["GET"], endpoint="students_list")
    def students_list():
        course_type = query_arg("courseType")
        year = query_arg("year")
        if not course_type or not year:
            return fail("courseType and year are required")
        students = storage.get_students(course_type, year, query_arg("courseDivision"), query_arg("section"))
        return jsonify({"success": True, "students": students}), 200

    @app.route("/api/students/<int:student_id>", methods=["DELETE"], endpoint="students_delete")
    def students_delete(student_id: int):
        course_type = query_arg("courseType")
        year = query_arg("year")
        if not course_type or not year:
            return fail("courseType and year are required")
        try:
            storage.delete_student(student_id, course_type, year, query_arg("courseDivision"), query_arg("section"))
            container.sync_service.sync_student_data()
        except Exception:
            logger.exception("Deleting student %s failed", student_id)
            return fail("System error while deleting student", 500)
        return jsonify({"success": True, "message": "Student deleted"}), 200

    # ===== ATTENDANCE / NAMAZ READS & WRITES =====

    @app.route("/api/attendance", methods=["GET"], endpoint="attendance_list")
    def attendance_list():
        date = query_arg("date")
        course_type = query_arg("courseType")
        year = query_arg("year")
        if not date or not course_type or not year:
            return fail("date, courseType and year are required")
        records = storage.get_attendance(
            date,
            course_type,
            year,
            query_arg("courseDivision"),
            query_arg("section"),
            query_arg("period"),
        )
        return jsonify({"success": True, "records": records}), 200

    @app.route("/api/namaz-attendance", methods=["POST"], endpoint="namaz_create")
    def namaz_create():
        """Body: {"date", "prayer", "records": [{"studentId", "<prayer>": status, ...}]}."""
        data = json_body()
        records = data.get("records") or []
        check = container.validation_service.validate_namaz_attendance(
            str(data.get("date") or ""),
            str(data.get("prayer") or ""),
            [{"id": r.get("studentId")} for r in records],
        )
        if not check.valid:
            return fail(check.reason or "Invalid namaz attendance")

        try:
            for record in records:
                storage.save_namaz_record({**record, "date": data["date"]})
        except Exception:
            logger.exception("Saving namaz attendance failed")
            return fail("System error while saving namaz attendance", 500)
        return jsonify({"success": True, "message": f"Saved {len(records)} namaz records"}), 201

    @app.route("/api/namaz-attendance", methods=["GET"], endpoint="namaz_list")
    def namaz_list():
        date = query_arg("date")
        if not date:
            return fail("date is required")
        student_id = request.args.get("studentId", type=int)
        return jsonify({"success": True, "records": storage.get_namaz_records(date, student_id)}), 200

    # ===== LEAVES =====

    @app.route("/api/leaves", methods=["POST"], endpoint="leaves_create")
    def leaves_create():
        """Save a leave, then convert already-marked attendance inside it."""
        data = json_body()
        try:
            require_non_empty(data.get("reason"), "reason")
            from_date = require_non_empty(data.get("fromDate"), "fromDate")
            to_date = require_non_empty(data.get("toDate"), "toDate")
            if data.get("studentId") is None:
                raise ValidationError("studentId is required")
            try:
                window = parse_iso_date(from_date[:10]), parse_iso_date(to_date[:10])
            except ValueError:
                raise ValidationError("fromDate and toDate must be YYYY-MM-DD dates")
            if window[1] < window[0]:
                raise ValidationError("toDate must not be before fromDate")

            preview = container.validation_service.validate_leave_attendance_sync(data["studentId"], from_date, to_date)
            storage.save_leave({"status": LeaveStatus.ACTIVE.value, **data})
            result = container.sync_service.sync_leave_with_past_attendance(
                data["studentId"],
                from_date,
                to_date,
                data["reason"],
                data.get("approvedBy"),
            )
            container.sync_service.update_notification_counts()
        except ValidationError as e:
            return fail(str(e))
        except Exception:
            logger.exception("Saving leave failed")
            return fail("System error while saving leave", 500)

        return jsonify({"success": True, "warnings": preview.warnings, "sync": result.to_dict()}), 201

    @app.route("/api/leaves", methods=["GET"], endpoint="leaves_list")
    def leaves_list():
        student_id = request.args.get("studentId", type=int)
        return jsonify({"success": True, "leaves": storage.get_leaves(student_id)}), 200
