# backend/attendance_hub/tests/test_settings_store.py
import json
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from attendance_hub.models.integrations import LLMConfig, LLMConfigUpdate
from attendance_hub.services.settings_store import (
    LLMS_KEY,
    MIRROR_API_KEY,
    MIRROR_MODEL,
    MIRROR_PROVIDER,
    InMemoryKeyValueStore,
    IntegrationSettings,
    JsonFileKeyValueStore,
)


def _cfg(llm_id, **kw):
    return LLMConfig(id=llm_id, name=llm_id.upper(), **kw)


def test_default_llm_seeded_on_first_read(kv):
    s = IntegrationSettings(kv)
    llms = s.list_llms()
    assert [c.id for c in llms] == ["deepseek-default"]
    assert s.default_llm().provider == "deepseek"
    assert kv.get(LLMS_KEY) is not None


def test_switching_default_leaves_exactly_one(kv):
    s = IntegrationSettings(kv)
    s.add_llm(_cfg("a", api_key="key-a", is_default=True))
    s.add_llm(_cfg("b", api_key="key-b", model="gpt-4o-mini"))

    s.set_default("b")
    defaults = [c.id for c in s.list_llms() if c.is_default]
    assert defaults == ["b"]
    assert kv.get(MIRROR_API_KEY) == "key-b"
    assert kv.get(MIRROR_PROVIDER) == "openai"
    assert kv.get(MIRROR_MODEL) == "gpt-4o-mini"


def test_adding_a_default_unflags_the_rest(kv):
    s = IntegrationSettings(kv)
    s.add_llm(_cfg("a", is_default=True, api_key="k"))
    assert [c.id for c in s.list_llms() if c.is_default] == ["a"]


def test_key_change_on_default_is_mirrored(kv):
    s = IntegrationSettings(kv)
    s.update_llm("deepseek-default", LLMConfigUpdate(api_key="sk-new"))
    assert kv.get(MIRROR_API_KEY) == "sk-new"
    assert s.default_llm().api_key == "sk-new"


def test_key_change_on_non_default_is_not_mirrored(kv):
    s = IntegrationSettings(kv)
    s.add_llm(_cfg("b", api_key="old"))
    s.update_llm("b", LLMConfigUpdate(api_key="changed"))
    assert kv.get(MIRROR_API_KEY) is None
    assert s.get_llm("b").api_key == "changed"


def test_duplicate_and_missing_ids(kv):
    s = IntegrationSettings(kv)
    with pytest.raises(ValueError):
        s.add_llm(_cfg("deepseek-default"))
    assert s.update_llm("nope", LLMConfigUpdate(name="x")) is None
    assert s.delete_llm("nope") is False
    assert s.delete_llm("deepseek-default") is True
    assert s.list_llms() == []
    assert s.default_llm() is None


def test_record_test_sets_status(kv):
    s = IntegrationSettings(kv)
    cfg = s.record_test("deepseek-default", ok=False)
    assert cfg.status == "inactive"
    assert cfg.last_used is not None
    assert s.record_test("deepseek-default", ok=True).status == "active"


def test_kind_lists_replace_whole(kv):
    s = IntegrationSettings(kv)
    assert s.list_kind("webhooks") == []
    saved = s.replace_kind("databases", [{"id": "db1", "type": "sqlserver", "port": 1433}])
    assert saved[0].host == "localhost"
    s.replace_kind("databases", [{"id": "db2"}])
    assert [d.id for d in s.list_kind("databases")] == ["db2"]


def test_corrupt_list_reads_as_empty(kv):
    kv.set(LLMS_KEY, "{not json")
    assert IntegrationSettings(kv).list_llms() == []


def test_json_file_store_persists(tmp_path):
    path = tmp_path / "settings.json"
    kv = JsonFileKeyValueStore(str(path))
    kv.set_many({"data_migrated": "true", "x": "1"})
    kv.delete("x")

    reopened = JsonFileKeyValueStore(str(path))
    assert reopened.get("data_migrated") == "true"
    assert reopened.get("x") is None
    assert json.loads(path.read_text(encoding="utf-8")) == {"data_migrated": "true"}


class SlowKeyValueStore(InMemoryKeyValueStore):
    """Widens the gap between reading a list and writing it back."""

    def get(self, key):
        value = super().get(key)
        time.sleep(0.01)
        return value


def test_concurrent_adds_keep_every_config():
    s = IntegrationSettings(SlowKeyValueStore())
    s.list_llms()
    ids = [f"llm-{n}" for n in range(8)]
    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(lambda llm_id: s.add_llm(_cfg(llm_id)), ids))
    assert sorted(c.id for c in s.list_llms()) == sorted(["deepseek-default", *ids])


def test_concurrent_tests_and_updates_are_not_lost():
    s = IntegrationSettings(SlowKeyValueStore())
    s.add_llm(_cfg("b"))
    with ThreadPoolExecutor(max_workers=2) as pool:
        pool.submit(s.record_test, "deepseek-default", True)
        pool.submit(s.update_llm, "b", LLMConfigUpdate(temperature=0.1))
    assert s.get_llm("deepseek-default").status == "active"
    assert s.get_llm("b").temperature == 0.1
