# backend/attendance_hub/tests/test_entity_resolver.py
import asyncio

from attendance_hub.models.entities import Department
from attendance_hub.services.entity_resolver import EntityResolver
from attendance_hub.services.store.memory_store import InMemoryAttendanceStore


def test_exact_code_outranks_fuzzy_name(store):
    # sorts ahead of "Jabatan..." and contains "11d" in its name
    store.add_department(Department(dept_code="AAA", dept_name="Annex 11D Office"))
    found = asyncio.run(EntityResolver(store).resolve_department("11D"))
    assert found.exact
    assert found.match.dept_code == "11D"


def test_department_code_is_case_insensitive(store):
    found = asyncio.run(EntityResolver(store).resolve_department("33j"))
    assert found.match.dept_code == "33J"


def test_department_fuzzy_name(store):
    found = asyncio.run(EntityResolver(store).resolve_department("kerja"))
    assert found
    assert not found.exact
    assert found.match.dept_code == "33J"


def test_employee_exact_then_fuzzy(store):
    r = EntityResolver(store)
    exact = asyncio.run(r.resolve_employee("sg000002"))
    assert exact.exact and exact.match.name == "Siti Nurhaliza"

    fuzzy = asyncio.run(r.resolve_employee("jurutera"))
    assert [e.employee_id for e in fuzzy.candidates] == ["SG000003", "SG000004"]
    assert fuzzy.match.employee_id == "SG000003"


def test_short_name_token_skips_search(store):
    r = EntityResolver(store)
    assert not asyncio.run(r.resolve_employee("li"))
    assert asyncio.run(r.search_employees("li")) == []
    assert store.calls["search_employees"] == 0


def test_empty_token_makes_no_store_call(store):
    r = EntityResolver(store)
    assert not asyncio.run(r.resolve_department("   "))
    assert not asyncio.run(r.resolve_employee(None))
    assert sum(store.calls.values()) == 0


def test_store_failure_is_not_found(store):
    store.fail_operations = {"get_employee_by_code"}
    found = asyncio.run(EntityResolver(store).resolve_employee("SG000001"))
    assert not found
    assert found.candidates == []


class BrokenSearchStore(InMemoryAttendanceStore):
    async def search_employees(self, term, limit=20):
        raise ValueError("bad row")

    async def search_departments(self, term, limit=10):
        raise ValueError("bad row")


def test_unexpected_search_error_is_not_found():
    resolver = EntityResolver(BrokenSearchStore())
    assert not asyncio.run(resolver.resolve_employee("Ahmad"))
    assert not asyncio.run(resolver.resolve_department("Kerja"))
    assert asyncio.run(resolver.search_employees("Ahmad")) == []
    assert asyncio.run(resolver.search_departments("Kerja")) == []
