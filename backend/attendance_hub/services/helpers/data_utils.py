# backend/attendance_hub/services/helpers/data_utils.py
from __future__ import annotations

from dataclasses import asdict, is_dataclass
from decimal import ROUND_HALF_UP, Decimal
from datetime import date, datetime, time, timedelta
import uuid as _uuid
from typing import Any, Optional, Union

from attendance_hub.core.config import settings


def jsonable_value(v):
    """Convert various Python types (dataclasses included) to JSON-serializable values."""
    if v is None or isinstance(v, (str, int, float, bool)):
        return v
    if isinstance(v, Decimal):
        try:
            return int(v) if v == v.to_integral_value() else float(v)
        except Exception:
            return float(v)
    if isinstance(v, (datetime, date, time)):
        return v.isoformat()
    if isinstance(v, timedelta):
        return v.total_seconds()
    if isinstance(v, (bytes, bytearray)):
        return v.decode("utf-8", errors="replace")
    if isinstance(v, _uuid.UUID):
        return str(v)
    if is_dataclass(v) and not isinstance(v, type):
        return jsonable_value(asdict(v))
    if isinstance(v, dict):
        return {str(k): jsonable_value(x) for k, x in v.items()}
    if isinstance(v, (list, tuple, set)):
        return [jsonable_value(x) for x in v]
    return str(v)


def today() -> date:
    """Calendar 'today', allowing override for demos against historical data."""
    override = settings.ATTENDANCE_TODAY_OVERRIDE
    if override:
        return date.fromisoformat(override)
    return date.today()


def percent(numerator: Union[int, float], denominator: Union[int, float]) -> str:
    """
    One-decimal percentage string without the % sign.

    A zero denominator yields "0.0" instead of raising.
    """
    if not denominator:
        return "0.0"
    value = Decimal(str(numerator)) * 100 / Decimal(str(denominator))
    return str(value.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def format_currency(amount: Union[int, float, None]) -> str:
    """RM with thousands separators; whole amounts drop the decimals."""
    value = amount or 0
    if float(value).is_integer():
        return f"RM{int(value):,}"
    return f"RM{value:,.2f}"


def format_date(d: Optional[date]) -> str:
    return d.isoformat() if d else "N/A"


def format_long_date(d: date) -> str:
    """e.g. 'Monday, 06 January 2025'."""
    return d.strftime("%A, %d %B %Y")


def years_of_service(join_date: Optional[date], as_of: date) -> int:
    """Calendar-year difference, the way HR screens count service."""
    if join_date is None:
        return 0
    return max(0, as_of.year - join_date.year)


def or_na(v: Any) -> str:
    if v is None or v == "":
        return "N/A"
    return str(v)
