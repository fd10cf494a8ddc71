from __future__ import annotations

import logging

from flask import Flask, jsonify

from ..common.http import fail, json_body
from ..container import Container
from ..core.exceptions import OperationInProgressError, ValidationError
from ..validation.model import AttendanceValidationParams

logger = logging.getLogger(__name__)


def register(app: Flask, container: Container) -> None:
    @app.route("/api/attendance", methods=["POST"], endpoint="attendance_mark")
    def attendance_mark():
        """Mark one class for one date and period.

        Body: the class fields plus "students", "statuses" ({studentId: status}),
        optional "markedBy" and "confirmed".
        """
        data = json_body()
        params = AttendanceValidationParams.from_dict(data)
        try:
            outcome = container.attendance_service.mark_attendance(
                params,
                data.get("statuses") or {},
                marked_by=data.get("markedBy"),
                confirmed=bool(data.get("confirmed")),
            )
        except ValidationError as e:
            return fail(str(e))
        except OperationInProgressError as e:
            return fail(str(e), 409)
        except Exception:
            logger.exception("Marking attendance failed")
            return fail("System error while marking attendance", 500)

        return jsonify({"success": True, "message": "Attendance saved", "result": outcome.to_dict()}), 201
