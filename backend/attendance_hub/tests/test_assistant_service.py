# backend/attendance_hub/tests/test_assistant_service.py
import asyncio

import pytest

from attendance_hub.core.errors import CompletionUnavailable
from attendance_hub.models.integrations import LLMConfigUpdate
from attendance_hub.services.assistant_service import AssistantService, build_system_prompt
from attendance_hub.services.llm.completion_client import CompletionClient
from attendance_hub.services.query_processor import LocalQueryProcessor, QuerySelection
from attendance_hub.services.response_formatter import AI_UNAVAILABLE_NOTE
from attendance_hub.services.settings_store import IntegrationSettings


class FakeCompletion(CompletionClient):
    def __init__(self, reply=None, error=None):
        super().__init__(timeout_seconds=1)
        self.reply, self.error = reply, error
        self.calls = []

    async def complete(self, system, prompt, config):
        self.calls.append((system, prompt, config))
        if self.error:
            raise self.error
        return self.reply


def _service(store, kv, completion=None):
    return AssistantService(LocalQueryProcessor(store), IntegrationSettings(kv), completion)


def test_no_default_llm_falls_back_with_note(store, kv):
    settings_store = IntegrationSettings(kv)
    settings_store.delete_llm("deepseek-default")
    svc = AssistantService(LocalQueryProcessor(store), settings_store)

    out = asyncio.run(svc.answer("Show employee SG000001"))
    assert out["success"] is True
    assert out["source"] == "local"
    assert out["category"] == "employee"
    assert out["answer"].endswith(AI_UNAVAILABLE_NOTE)
    assert "Ahmad Bin Abdullah" in out["answer"]
    assert out["provider"] is None


def test_default_llm_without_key_falls_back(store, kv):
    # seeded default has an empty key; the real client refuses before any network call
    out = asyncio.run(_service(store, kv).answer("purple elephants"))
    assert out["source"] == "local"
    assert out["category"] == "help"
    assert out["note"] == AI_UNAVAILABLE_NOTE


def test_provider_error_falls_back(store, kv):
    IntegrationSettings(kv).update_llm("deepseek-default", LLMConfigUpdate(api_key="sk-test"))
    fake = FakeCompletion(error=CompletionUnavailable("LLM request timed out", provider="deepseek"))
    out = asyncio.run(_service(store, kv, fake).answer("List all departments"))
    assert out["source"] == "local"
    assert out["category"] == "department"
    assert len(fake.calls) == 1


def test_llm_answer_passes_through(store, kv):
    IntegrationSettings(kv).update_llm("deepseek-default", LLMConfigUpdate(api_key="sk-test"))
    fake = FakeCompletion(reply="There are 4 employees.")
    out = asyncio.run(_service(store, kv, fake).answer(
        "  how big is the workforce? ", QuerySelection(department="11D")))

    assert out["answer"] == "There are 4 employees."
    assert out["source"] == "llm"
    assert out["note"] is None
    assert (out["provider"], out["model"]) == ("deepseek", "deepseek-chat")
    assert out["question"] == "how big is the workforce?"
    assert out["context"]["department"] == "11D"
    assert out["context"]["total_employees"] == 4

    system, prompt, config = fake.calls[0]
    assert "Selected Department: 11D - Jabatan Perkhidmatan Awam" in system
    assert prompt == "how big is the workforce?"
    assert config.id == "deepseek-default"


def test_system_prompt_defaults_to_all(store):
    ctx = asyncio.run(LocalQueryProcessor(store).build_context(QuerySelection()))
    prompt = build_system_prompt(ctx)
    assert "Selected Department: All Departments" in prompt
    assert "Selected Employee: All Employees" in prompt
    assert "Total Employees: 4" in prompt


@pytest.mark.parametrize("api_key", ["", None])
def test_completion_client_rejects_missing_credentials(api_key, kv):
    cfg = IntegrationSettings(kv).default_llm()
    if api_key is None:
        cfg = None
    with pytest.raises(CompletionUnavailable):
        asyncio.run(CompletionClient(timeout_seconds=1).complete("sys", "hi", cfg))
