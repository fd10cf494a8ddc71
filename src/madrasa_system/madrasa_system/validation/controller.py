from __future__ import annotations

from flask import Flask, jsonify

from ..common.http import json_body
from ..container import Container
from .model import AttendanceValidationParams


def register(app: Flask, container: Container) -> None:
    @app.route("/api/attendance/validate", methods=["POST"], endpoint="attendance_validate")
    def attendance_validate():
        # Always 200: a failed check is a normal answer, not an HTTP error.
        params = AttendanceValidationParams.from_dict(json_body())
        result = container.validation_service.pre_attendance_checks(params)
        return jsonify({"success": result.valid, "result": result.to_dict()}), 200
