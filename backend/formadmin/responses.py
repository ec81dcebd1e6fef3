"""Response envelopes shared by both services."""
from typing import Any, Dict


def form_error_body(status_code: int, message: str, details: Any = None) -> Dict[str, Any]:
    body = {"success": False, "error": message}
    if details is not None:
        body["details"] = details
    return body


def registry_error_body(status_code: int, message: str, details: Any = None) -> Dict[str, Any]:
    body = {"success": False, "code": status_code, "message": message}
    if details is not None:
        body["details"] = details
    return body


def registry_ok(message: str, data: Any = None, code: int = 200, **extra) -> Dict[str, Any]:
    body = {"success": True, "code": code, "message": message}
    if data is not None:
        body["data"] = data
    body.update(extra)
    return body
