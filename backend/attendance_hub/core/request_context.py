import time
import uuid
import contextvars
from typing import Optional

# Request-scoped correlation id (set by the HTTP middleware; falls back to '-')
_request_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("rid", default="-")


def set_request_id(rid: Optional[str] = None) -> str:
    """Allow middleware or tests to set the correlation id for downstream logs."""
    rid = rid or uuid.uuid4().hex
    _request_id_var.set(rid)
    return rid


def rid() -> str:
    """Current correlation id."""
    return _request_id_var.get()


def ms_since(t0: float) -> int:
    """Milliseconds elapsed since a perf_counter timestamp."""
    return int((time.perf_counter() - t0) * 1000)


def mask(s: Optional[str], keep_last: int = 2) -> str:
    if not s:
        return ""
    return "*" * max(0, len(s) - keep_last) + s[-keep_last:]
