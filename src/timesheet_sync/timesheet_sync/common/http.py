from __future__ import annotations

from typing import Any, Dict

from flask import jsonify, request

from ..core.exceptions import ValidationError
from .serialization import to_jsonable


def json_body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def json_response(value: Any, status: int = 200):
    return jsonify(to_jsonable(value)), status


def query_int(name: str, default: int) -> int:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer")
