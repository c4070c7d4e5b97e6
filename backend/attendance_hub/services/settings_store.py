# backend/attendance_hub/services/settings_store.py
from __future__ import annotations

import json
import logging
import os
import time
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from threading import Lock, RLock
from typing import Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from attendance_hub.core.request_context import mask, rid
from attendance_hub.models.integrations import (
    APIConfig,
    DatabaseConfig,
    LLMConfig,
    LLMConfigUpdate,
    WebhookConfig,
    default_llm,
)

logger = logging.getLogger(__name__)

# Key-value keys
MIGRATED_KEY = "data_migrated"
DATABASES_KEY = "attendance_databases"
APIS_KEY = "attendance_apis"
WEBHOOKS_KEY = "attendance_webhooks"
LLMS_KEY = "attendance_llms"
MIRROR_API_KEY = "chatbot_api_key"
MIRROR_PROVIDER = "chatbot_provider"
MIRROR_MODEL = "chatbot_model"

M = TypeVar("M", bound=BaseModel)


# -----------------------------------------------------------------------------
# Key-value port
# -----------------------------------------------------------------------------
class KeyValueStore(ABC):
    """Flat string key/value persistence. Writes are immediate."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]: ...

    @abstractmethod
    def set(self, key: str, value: str) -> None: ...

    @abstractmethod
    def delete(self, key: str) -> None: ...

    def set_many(self, values: Dict[str, str]) -> None:
        for k, v in values.items():
            self.set(k, v)


class InMemoryKeyValueStore(KeyValueStore):
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def delete(self, key: str) -> None:
        self.data.pop(key, None)


class JsonFileKeyValueStore(KeyValueStore):
    """
    One JSON object on disk. Every write rewrites a temp file and swaps it in
    with os.replace, so readers never see a half-written file.
    """

    def __init__(self, path: str):
        self.path = Path(path)
        self._lock = Lock()
        self._data: Dict[str, str] = self._load()

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("settings file unreadable path=%s err=%s; starting empty", self.path, e)
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def _flush(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(self._data, f, ensure_ascii=False, indent=2)
        os.replace(tmp, self.path)

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value
            self._flush()

    def set_many(self, values: Dict[str, str]) -> None:
        with self._lock:
            self._data.update(values)
            self._flush()

    def delete(self, key: str) -> None:
        with self._lock:
            if self._data.pop(key, None) is not None:
                self._flush()


# -----------------------------------------------------------------------------
# Integration settings
# -----------------------------------------------------------------------------
class IntegrationSettings:
    """
    Saved database/API/webhook/LLM descriptors.

    Lists are read and written whole. At most one LLM is the default; the
    default's credential, provider and model are mirrored to their own keys
    for the assistant.
    """

    _KINDS: Dict[str, tuple] = {
        "databases": (DATABASES_KEY, DatabaseConfig),
        "apis": (APIS_KEY, APIConfig),
        "webhooks": (WEBHOOKS_KEY, WebhookConfig),
    }

    def __init__(self, kv: KeyValueStore):
        self.kv = kv
        self._lock = RLock()  # held across each read-modify-write of a list

    # ---------- generic list io ----------
    def _read(self, key: str, model: Type[M]) -> Optional[List[M]]:
        raw = self.kv.get(key)
        if raw is None:
            return None
        try:
            items = json.loads(raw)
            return [model.model_validate(x) for x in items]
        except (json.JSONDecodeError, TypeError, ValidationError) as e:
            logger.warning("settings list unreadable key=%s err=%s", key, e)
            return []

    def _write(self, key: str, items: List[BaseModel], extra: Optional[Dict[str, str]] = None) -> None:
        payload = json.dumps([i.model_dump(mode="json") for i in items])
        values = {key: payload, **(extra or {})}
        self.kv.set_many(values)

    # ---------- database / api / webhook ----------
    def kinds(self) -> List[str]:
        return list(self._KINDS)

    def list_kind(self, kind: str) -> List[BaseModel]:
        key, model = self._KINDS[kind]
        return self._read(key, model) or []

    def replace_kind(self, kind: str, items: List[dict]) -> List[BaseModel]:
        key, model = self._KINDS[kind]
        parsed = [model.model_validate(x) for x in items]
        with self._lock:
            self._write(key, parsed)
        logger.info("settings replaced rid=%s kind=%s count=%d", rid(), kind, len(parsed))
        return parsed

    # ---------- llms ----------
    def list_llms(self) -> List[LLMConfig]:
        with self._lock:
            llms = self._read(LLMS_KEY, LLMConfig)
            if llms is None:
                llms = [default_llm()]
                self._write(LLMS_KEY, llms)
                logger.info("seeded default LLM config id=%s", llms[0].id)
            return llms

    def get_llm(self, llm_id: str) -> Optional[LLMConfig]:
        return next((c for c in self.list_llms() if c.id == llm_id), None)

    def default_llm(self) -> Optional[LLMConfig]:
        return next((c for c in self.list_llms() if c.is_default), None)

    def add_llm(self, config: LLMConfig) -> LLMConfig:
        with self._lock:
            llms = self.list_llms()
            if any(c.id == config.id for c in llms):
                raise ValueError(f"LLM config {config.id} already exists")
            if config.is_default:
                llms = [c.model_copy(update={"is_default": False}) for c in llms]
            llms.append(config)
            self._commit_llms(llms, mirror=config.is_default)
            return config

    def update_llm(self, llm_id: str, update: LLMConfigUpdate) -> Optional[LLMConfig]:
        with self._lock:
            llms = self.list_llms()
            idx = next((i for i, c in enumerate(llms) if c.id == llm_id), None)
            if idx is None:
                return None
            changes = update.model_dump(exclude_unset=True)
            was_default = llms[idx].is_default
            llms[idx] = llms[idx].model_copy(update=changes)

            if changes.get("is_default"):
                llms = [c.model_copy(update={"is_default": c.id == llm_id}) for c in llms]
            mirror = bool(changes.get("is_default")) or ("api_key" in changes and was_default)
            self._commit_llms(llms, mirror=mirror)
            return llms[idx]

    def set_default(self, llm_id: str) -> Optional[LLMConfig]:
        return self.update_llm(llm_id, LLMConfigUpdate(is_default=True))

    def delete_llm(self, llm_id: str) -> bool:
        with self._lock:
            llms = self.list_llms()
            kept = [c for c in llms if c.id != llm_id]
            if len(kept) == len(llms):
                return False
            self._commit_llms(kept, mirror=False)
            return True

    def record_test(self, llm_id: str, ok: bool) -> Optional[LLMConfig]:
        with self._lock:
            llms = self.list_llms()
            for i, c in enumerate(llms):
                if c.id == llm_id:
                    llms[i] = c.model_copy(update={
                        "status": "active" if ok else "inactive",
                        "last_used": datetime.now(),
                    })
                    self._commit_llms(llms, mirror=False)
                    return llms[i]
            return None

    def _commit_llms(self, llms: List[LLMConfig], mirror: bool) -> None:
        """Whole-list replace, plus the credential mirror in the same write."""
        extra: Dict[str, str] = {}
        if mirror:
            default = next((c for c in llms if c.is_default), None)
            if default is not None and default.api_key:
                extra = {
                    MIRROR_API_KEY: default.api_key,
                    MIRROR_PROVIDER: default.provider,
                    MIRROR_MODEL: default.model,
                }
                logger.info(
                    "default LLM mirrored rid=%s id=%s provider=%s key=%s",
                    rid(), default.id, default.provider, mask(default.api_key),
                )
        with self._lock:
            t0 = time.perf_counter()
            self._write(LLMS_KEY, llms, extra)
            logger.debug("llm list written rid=%s count=%d in %.1fms",
                         rid(), len(llms), (time.perf_counter() - t0) * 1000)
