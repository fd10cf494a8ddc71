from __future__ import annotations

from typing import Any, Dict, Optional

from flask import jsonify, request


def json_body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def query_arg(name: str) -> Optional[str]:
    value = request.args.get(name)
    return value if value not in (None, "") else None


def fail(message: str, status: int = 400):
    return jsonify({"success": False, "message": message}), status
