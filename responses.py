"""Success envelopes shared by the routers."""

from typing import Any, Dict


def ok(data: Any = None, **extra: Any) -> Dict[str, Any]:
    """Return a success envelope."""
    body: Dict[str, Any] = {"success": True, "data": data}
    body.update(extra)
    return body


def listing(items: list, **extra: Any) -> Dict[str, Any]:
    return ok(items, count=len(items), **extra)
