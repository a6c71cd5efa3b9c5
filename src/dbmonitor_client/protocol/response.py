from __future__ import annotations

from typing import Any, Callable

Response = dict[str, Any]
ResponseCallback = Callable[[Response], None]

STATUS_SUCCESS = 1
STATUS_FAILURE = -1


def failure_response(message: str, status: int = STATUS_FAILURE) -> Response:
    """Build a synthetic failure response in the server's JSON shape."""
    return {"status": status, "statusstring": message, "results": []}


def is_success(response: Any) -> bool:
    return isinstance(response, dict) and response.get("status") == STATUS_SUCCESS


def first_result(response: Response) -> Any:
    results = response.get("results") or []
    return results[0] if results else None
