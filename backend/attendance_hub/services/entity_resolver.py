# backend/attendance_hub/services/entity_resolver.py
import logging
from dataclasses import dataclass, field
from typing import Generic, List, Optional, TypeVar

from attendance_hub.core.errors import StoreUnavailable
from attendance_hub.core.request_context import rid
from attendance_hub.models.entities import Department, Employee
from attendance_hub.services.store.base import AttendanceStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

# shorter name fragments would match most of the table
MIN_NAME_TERM_LEN = 3


@dataclass
class Resolution(Generic[T]):
    """Best match (None when nothing matched) plus every candidate considered."""
    match: Optional[T] = None
    candidates: List[T] = field(default_factory=list)
    exact: bool = False

    def __bool__(self) -> bool:
        return self.match is not None


def _clean(token: Optional[str]) -> str:
    return (token or "").strip()


class EntityResolver:
    """
    Resolve free text or codes to departments and employees:
      1) exact case-insensitive natural key (dept_code / employee_id)
      2) substring search over code and name (email and position for employees),
         store-ordered by name; the first candidate wins
    Store failures are logged and reported as no match.
    """

    def __init__(self, store: AttendanceStore):
        self.store = store

    # ---------- departments ----------
    async def resolve_department(self, token: Optional[str]) -> Resolution[Department]:
        term = _clean(token)
        if not term:
            return Resolution()
        try:
            exact = await self.store.get_department_by_code(term.upper())
            if exact is not None:
                return Resolution(match=exact, candidates=[exact], exact=True)
            candidates = await self.store.search_departments(term)
        except StoreUnavailable as e:
            logger.warning("resolve_department FAIL rid=%s token=%r err=%s", rid(), term, e)
            return Resolution()
        except Exception:
            logger.exception("resolve_department unexpected error rid=%s term=%r", rid(), term)
            return Resolution()
        return self._pick(candidates, term, key=lambda d: d.dept_code)

    async def search_departments(self, term: Optional[str], limit: int = 10) -> List[Department]:
        term = _clean(term)
        if not term:
            return []
        try:
            return await self.store.search_departments(term, limit=limit)
        except StoreUnavailable as e:
            logger.warning("search_departments FAIL rid=%s term=%r err=%s", rid(), term, e)
            return []
        except Exception:
            logger.exception("search_departments unexpected error rid=%s term=%r", rid(), term)
            return []

    # ---------- employees ----------
    async def resolve_employee(self, token: Optional[str]) -> Resolution[Employee]:
        term = _clean(token)
        if not term:
            return Resolution()
        try:
            exact = await self.store.get_employee_by_code(term.upper())
            if exact is not None:
                return Resolution(match=exact, candidates=[exact], exact=True)
            if len(term) < MIN_NAME_TERM_LEN:
                logger.debug("resolve_employee skip rid=%s token=%r reason=too_short", rid(), term)
                return Resolution()
            candidates = await self.store.search_employees(term)
        except StoreUnavailable as e:
            logger.warning("resolve_employee FAIL rid=%s token=%r err=%s", rid(), term, e)
            return Resolution()
        except Exception:
            logger.exception("resolve_employee unexpected error rid=%s term=%r", rid(), term)
            return Resolution()
        return self._pick(candidates, term, key=lambda e: e.employee_id)

    async def search_employees(self, term: Optional[str], limit: int = 20) -> List[Employee]:
        term = _clean(term)
        if len(term) < MIN_NAME_TERM_LEN:
            return []
        try:
            return await self.store.search_employees(term, limit=limit)
        except StoreUnavailable as e:
            logger.warning("search_employees FAIL rid=%s term=%r err=%s", rid(), term, e)
            return []
        except Exception:
            logger.exception("search_employees unexpected error rid=%s term=%r", rid(), term)
            return []

    # ---------- helpers ----------
    @staticmethod
    def _pick(candidates: List[T], term: str, key) -> Resolution[T]:
        if not candidates:
            return Resolution()
        lowered = term.lower()
        for c in candidates:
            if (key(c) or "").lower() == lowered:
                return Resolution(match=c, candidates=candidates, exact=True)
        return Resolution(match=candidates[0], candidates=candidates)
