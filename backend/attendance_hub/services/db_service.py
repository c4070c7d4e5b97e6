# backend/attendance_hub/services/db_service.py

import time
import logging
from datetime import date
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

import pyodbc
from starlette.concurrency import run_in_threadpool

from attendance_hub.core.config import settings
from attendance_hub.core.errors import DuplicateKeyError, StoreUnavailable
from attendance_hub.core.request_context import mask, ms_since, rid
from attendance_hub.models.entities import AttendanceRecord, Department, Employee
from attendance_hub.services.store.base import AttendanceStore

# -----------------------------------------------------------------------------
# Logging setup
# -----------------------------------------------------------------------------
logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

SCHEMA_PATH = Path(__file__).resolve().parent / "store" / "schema.sql"

_DEPT_COLS = "id, dept_code, dept_name, parent_dept_id, created_at, updated_at"

_EMP_COLS = (
    "id, employee_id, name, department_code, position, grade, email, phone, join_date, "
    "nationality, religion, gender, native_status, education_level, salary, status, "
    "supervisor, work_location, emergency_contact_name, emergency_contact_relationship, "
    "emergency_contact_phone, created_at, updated_at"
)

_ATT_COLS = (
    "id, employee_id, [date], clock_in, clock_out, status, hours_worked, overtime_hours, "
    "location, notes, created_at, updated_at"
)

# Prefixed attendance columns for the attendance/employee join
_ATT_JOIN_COLS = ", ".join(
    f"a.{c.strip()} AS att_{c.strip().strip('[]')}" for c in _ATT_COLS.split(",")
)
_EMP_JOIN_COLS = ", ".join(f"e.{c.strip()}" for c in _EMP_COLS.split(","))


def split_join_row(row: Dict[str, Any]) -> Tuple[AttendanceRecord, Employee]:
    """Split an attendance/employee join row on the `att_` column prefix."""
    att = {k[len("att_"):]: v for k, v in row.items() if k.startswith("att_")}
    emp = {k: v for k, v in row.items() if not k.startswith("att_")}
    return AttendanceRecord.from_row(att), Employee.from_row(emp)


_EMP_INSERT_COLS = [
    "employee_id", "name", "department_code", "position", "grade", "email", "phone",
    "join_date", "nationality", "religion", "gender", "native_status", "education_level",
    "salary", "status", "supervisor", "work_location", "emergency_contact_name",
    "emergency_contact_relationship", "emergency_contact_phone",
]

_ATT_INSERT_COLS = [
    "employee_id", "date", "clock_in", "clock_out", "status", "hours_worked",
    "overtime_hours", "location", "notes",
]


def _in_clause(values: Sequence[Any]) -> str:
    return ", ".join("?" for _ in values)


# -----------------------------------------------------------------------------
# Service
# -----------------------------------------------------------------------------
class SQLServerAttendanceStore(AttendanceStore):
    """
    AttendanceStore backed by SQL Server over ODBC.

    pyodbc is blocking, so every public coroutine hands its work to the
    starlette threadpool. Each call opens its own connection.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        if config is None:
            config = {
                "server":   settings.DB_SERVER,
                "database": settings.DB_NAME,
                "username": settings.DB_USER,
                "password": settings.DB_PASSWORD,
                "driver":   settings.ODBC_DRIVER,
            }
        self.config = config
        self.connection_string = self._build_connection_string()

        logger.info(
            "DB init rid=%s driver=%s server=%s database=%s user=%s password=%s",
            rid(),
            self.config.get("driver"),
            self.config.get("server"),
            self.config.get("database"),
            self.config.get("username"),
            mask(self.config.get("password")),
        )

    # -------------------------------------------------------------------------
    # Connection
    # -------------------------------------------------------------------------
    def _build_connection_string(self) -> str:
        return (
            f"DRIVER={{{self.config['driver']}}};"
            f"SERVER={self.config['server']};"
            f"DATABASE={self.config['database']};"
            f"UID={self.config['username']};"
            f"PWD={self.config['password']};"
            "Trusted_Connection=no;"
            "Encrypt=no;"
        )

    def get_connection(self, connect_timeout: Optional[int] = None):
        start = time.perf_counter()
        try:
            kwargs: Dict[str, Any] = {}
            if connect_timeout is not None:
                # pyodbc uses 'timeout' for login/connect timeout (seconds)
                kwargs["timeout"] = int(connect_timeout)
            conn = pyodbc.connect(self.connection_string, **kwargs)
            logger.debug("DB connect OK rid=%s in %dms", rid(), ms_since(start))
            return conn
        except pyodbc.Error as e:
            logger.error("DB connect FAIL rid=%s in %dms err=%s", rid(), ms_since(start), repr(e))
            raise StoreUnavailable(f"Failed to connect to database: {e}", operation="connect")

    def test_connection(self, login_timeout: int = 3) -> bool:
        start = time.perf_counter()
        try:
            with self.get_connection(connect_timeout=login_timeout) as conn:
                cur = conn.cursor()
                cur.execute("SELECT 1")
                cur.fetchone()
            logger.info("DB ping OK rid=%s in %dms", rid(), ms_since(start))
            return True
        except (StoreUnavailable, pyodbc.Error) as e:
            logger.error("DB ping FAIL rid=%s in %dms err=%s", rid(), ms_since(start), repr(e))
            return False

    def apply_schema(self) -> None:
        """Create the three tables if they are missing."""
        script = SCHEMA_PATH.read_text(encoding="utf-8")
        statements = [s.strip() for s in script.split(";") if s.strip() and "CREATE" in s]
        with self.get_connection() as conn:
            cur = conn.cursor()
            for stmt in statements:
                cur.execute(stmt)
            conn.commit()
        logger.info("DB schema applied rid=%s statements=%d", rid(), len(statements))

    # -------------------------------------------------------------------------
    # Blocking primitives
    # -------------------------------------------------------------------------
    def _select(self, op: str, sql: str, params: Tuple[Any, ...] = ()) -> List[Dict[str, Any]]:
        if settings.DB_LOG_SQL:
            logger.debug("SQL rid=%s op=%s:\n%s params=%r", rid(), op, sql, params)

        t0 = time.perf_counter()
        try:
            with self.get_connection() as conn:
                t1 = time.perf_counter()
                cur = conn.cursor()
                cur.execute(sql, params)
                columns = [d[0] for d in cur.description] if cur.description else []
                rows = [dict(zip(columns, r)) for r in cur.fetchall()]
        except pyodbc.Error as e:
            logger.error("SQL exec FAIL rid=%s op=%s err=%s", rid(), op, repr(e))
            raise StoreUnavailable(f"Query execution failed: {e}", operation=op, sql=sql)

        logger.info(
            "SQL ok rid=%s op=%s rows=%d connect=%dms total=%dms",
            rid(), op, len(rows), int((t1 - t0) * 1000), ms_since(t0),
        )
        return rows

    def _insert_many(self, op: str, sql: str, rows: List[Tuple[Any, ...]],
                     tolerate_duplicates: bool) -> int:
        """Insert row by row inside one transaction; returns rows actually written."""
        if not rows:
            return 0
        if settings.DB_LOG_SQL:
            logger.debug("SQL rid=%s op=%s rows=%d:\n%s", rid(), op, len(rows), sql)

        t0 = time.perf_counter()
        written = 0
        try:
            with self.get_connection() as conn:
                cur = conn.cursor()
                for params in rows:
                    try:
                        cur.execute(sql, params)
                        written += max(cur.rowcount, 0)
                    except pyodbc.IntegrityError as e:
                        if not tolerate_duplicates:
                            conn.rollback()
                            raise DuplicateKeyError(str(e), operation=op, sql=sql)
                        logger.debug("SQL duplicate skipped rid=%s op=%s", rid(), op)
                conn.commit()
        except pyodbc.Error as e:
            logger.error("SQL write FAIL rid=%s op=%s err=%s", rid(), op, repr(e))
            raise StoreUnavailable(f"Write failed: {e}", operation=op, sql=sql)

        logger.info("SQL write ok rid=%s op=%s written=%d total=%dms", rid(), op, written, ms_since(t0))
        return written

    async def _fetch(self, op: str, sql: str, params: Tuple[Any, ...] = ()) -> List[Dict[str, Any]]:
        return await run_in_threadpool(self._select, op, sql, params)

    # -------------------------------------------------------------------------
    # Departments
    # -------------------------------------------------------------------------
    async def list_departments(self) -> List[Department]:
        rows = await self._fetch(
            "list_departments",
            f"SELECT {_DEPT_COLS} FROM dbo.departments ORDER BY dept_name",
        )
        return [Department.from_row(r) for r in rows]

    async def list_departments_with_employees(self) -> List[Department]:
        rows = await self._fetch(
            "list_departments_with_employees",
            f"""
            SELECT {_DEPT_COLS} FROM dbo.departments d
            WHERE EXISTS (SELECT 1 FROM dbo.employees e WHERE e.department_code = d.dept_code)
            ORDER BY dept_name
            """,
        )
        return [Department.from_row(r) for r in rows]

    async def get_department_by_code(self, dept_code: str) -> Optional[Department]:
        rows = await self._fetch(
            "get_department_by_code",
            f"SELECT {_DEPT_COLS} FROM dbo.departments WHERE dept_code = ?",
            (dept_code,),
        )
        return Department.from_row(rows[0]) if rows else None

    async def get_department_by_id(self, dept_id: Any) -> Optional[Department]:
        rows = await self._fetch(
            "get_department_by_id",
            f"SELECT {_DEPT_COLS} FROM dbo.departments WHERE id = ?",
            (dept_id,),
        )
        return Department.from_row(rows[0]) if rows else None

    async def search_departments(self, term: str, limit: int = 10) -> List[Department]:
        like = f"%{term}%"
        rows = await self._fetch(
            "search_departments",
            f"""
            SELECT TOP (?) {_DEPT_COLS} FROM dbo.departments
            WHERE dept_code LIKE ? OR dept_name LIKE ?
            ORDER BY dept_name
            """,
            (int(limit), like, like),
        )
        return [Department.from_row(r) for r in rows]

    async def count_sub_departments(self, dept_id: Any) -> int:
        rows = await self._fetch(
            "count_sub_departments",
            "SELECT COUNT(*) AS n FROM dbo.departments WHERE parent_dept_id = ?",
            (dept_id,),
        )
        return int(rows[0]["n"]) if rows else 0

    # -------------------------------------------------------------------------
    # Employees
    # -------------------------------------------------------------------------
    async def list_employees(self, dept_code: Optional[str] = None) -> List[Employee]:
        if dept_code is None:
            sql, params = f"SELECT {_EMP_COLS} FROM dbo.employees ORDER BY name", ()
        else:
            sql = f"SELECT {_EMP_COLS} FROM dbo.employees WHERE department_code = ? ORDER BY name"
            params = (dept_code,)
        rows = await self._fetch("list_employees", sql, params)
        return [Employee.from_row(r) for r in rows]

    async def get_employee_by_code(self, employee_code: str) -> Optional[Employee]:
        rows = await self._fetch(
            "get_employee_by_code",
            f"SELECT {_EMP_COLS} FROM dbo.employees WHERE employee_id = ?",
            (employee_code,),
        )
        return Employee.from_row(rows[0]) if rows else None

    async def search_employees(self, term: str, limit: int = 20) -> List[Employee]:
        like = f"%{term}%"
        rows = await self._fetch(
            "search_employees",
            f"""
            SELECT TOP (?) {_EMP_COLS} FROM dbo.employees
            WHERE employee_id LIKE ? OR name LIKE ? OR email LIKE ? OR position LIKE ?
            ORDER BY name
            """,
            (int(limit), like, like, like, like),
        )
        return [Employee.from_row(r) for r in rows]

    async def count_employees(self, dept_code: Optional[str] = None) -> int:
        if dept_code is None:
            sql, params = "SELECT COUNT(*) AS n FROM dbo.employees", ()
        else:
            sql, params = "SELECT COUNT(*) AS n FROM dbo.employees WHERE department_code = ?", (dept_code,)
        rows = await self._fetch("count_employees", sql, params)
        return int(rows[0]["n"]) if rows else 0

    # -------------------------------------------------------------------------
    # Attendance
    # -------------------------------------------------------------------------
    async def attendance_on(self, day: date,
                            employee_ids: Optional[Sequence[Any]] = None) -> List[AttendanceRecord]:
        sql = f"SELECT {_ATT_COLS} FROM dbo.attendance_records WHERE [date] = ?"
        params: Tuple[Any, ...] = (day,)
        if employee_ids is not None:
            if not employee_ids:
                return []
            ids = list(employee_ids)
            sql += f" AND employee_id IN ({_in_clause(ids)})"
            params += tuple(ids)
        rows = await self._fetch("attendance_on", sql, params)
        return [AttendanceRecord.from_row(r) for r in rows]

    async def attendance_for_employee(self, employee_pk: Any, limit: int = 30,
                                      statuses: Optional[Iterable[str]] = None,
                                      on_date: Optional[date] = None) -> List[AttendanceRecord]:
        sql = f"SELECT TOP (?) {_ATT_COLS} FROM dbo.attendance_records WHERE employee_id = ?"
        params: Tuple[Any, ...] = (int(limit), employee_pk)
        if statuses is not None:
            wanted = list(statuses)
            sql += f" AND status IN ({_in_clause(wanted)})"
            params += tuple(wanted)
        if on_date is not None:
            sql += " AND [date] = ?"
            params += (on_date,)
        sql += " ORDER BY [date] DESC"
        rows = await self._fetch("attendance_for_employee", sql, params)
        return [AttendanceRecord.from_row(r) for r in rows]

    async def attendance_between(self, start: date, end: date,
                                 dept_code: Optional[str] = None,
                                 employee_code: Optional[str] = None
                                 ) -> List[Tuple[AttendanceRecord, Employee]]:
        sql = f"""
            SELECT {_ATT_JOIN_COLS}, {_EMP_JOIN_COLS}
            FROM dbo.attendance_records a
            JOIN dbo.employees e ON e.id = a.employee_id
            WHERE a.[date] BETWEEN ? AND ?
        """
        params: Tuple[Any, ...] = (start, end)
        if dept_code:
            sql += " AND e.department_code = ?"
            params += (dept_code,)
        if employee_code:
            sql += " AND e.employee_id = ?"
            params += (employee_code,)
        sql += " ORDER BY a.[date] DESC"

        rows = await self._fetch("attendance_between", sql, params)
        return [split_join_row(r) for r in rows]

    # -------------------------------------------------------------------------
    # Seeding
    # -------------------------------------------------------------------------
    async def existing_department_codes(self) -> Set[str]:
        rows = await self._fetch("existing_department_codes", "SELECT dept_code FROM dbo.departments")
        return {r["dept_code"] for r in rows}

    async def existing_employee_codes(self) -> Set[str]:
        rows = await self._fetch("existing_employee_codes", "SELECT employee_id FROM dbo.employees")
        return {r["employee_id"] for r in rows}

    async def employee_keys(self) -> List[Tuple[Any, str]]:
        rows = await self._fetch("employee_keys", "SELECT id, employee_id FROM dbo.employees ORDER BY id")
        return [(r["id"], r["employee_id"]) for r in rows]

    async def insert_departments(self, rows: List[Dict[str, Any]]) -> int:
        # Parents precede children in seed order, so the subquery sees them.
        sql = """
            INSERT INTO dbo.departments (dept_code, dept_name, parent_dept_id)
            VALUES (?, ?, (SELECT id FROM dbo.departments WHERE dept_code = ?))
        """
        params = [(r["dept_code"], r["dept_name"], r.get("parent_dept_code")) for r in rows]
        return await run_in_threadpool(self._insert_many, "insert_departments", sql, params, False)

    async def insert_employees(self, rows: List[Dict[str, Any]]) -> int:
        sql = (
            f"INSERT INTO dbo.employees ({', '.join(_EMP_INSERT_COLS)}) "
            f"VALUES ({_in_clause(_EMP_INSERT_COLS)})"
        )
        params = [tuple(r.get(c) for c in _EMP_INSERT_COLS) for r in rows]
        return await run_in_threadpool(self._insert_many, "insert_employees", sql, params, False)

    async def upsert_attendance(self, rows: List[Dict[str, Any]]) -> int:
        cols = ", ".join("[date]" if c == "date" else c for c in _ATT_INSERT_COLS)
        sql = f"""
            INSERT INTO dbo.attendance_records ({cols})
            SELECT {_in_clause(_ATT_INSERT_COLS)}
            WHERE NOT EXISTS (
                SELECT 1 FROM dbo.attendance_records WHERE employee_id = ? AND [date] = ?
            )
        """
        params = [
            tuple(r.get(c) for c in _ATT_INSERT_COLS) + (r["employee_id"], r["date"])
            for r in rows
        ]
        return await run_in_threadpool(self._insert_many, "upsert_attendance", sql, params, True)

    # -------------------------------------------------------------------------
    # Health
    # -------------------------------------------------------------------------
    async def ping(self) -> bool:
        return await run_in_threadpool(self.test_connection)
