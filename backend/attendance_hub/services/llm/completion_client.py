# ================================================================================
# backend/attendance_hub/services/llm/completion_client.py
from __future__ import annotations

import asyncio
import time
import logging
from typing import Optional

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from attendance_hub.core.config import settings
from attendance_hub.core.errors import CompletionUnavailable
from attendance_hub.core.request_context import mask, ms_since, rid
from attendance_hub.models.integrations import LLMConfig

logger = logging.getLogger(__name__)

HEALTH_CHECK_PROMPT = "Reply with the single word: ok"


class CompletionClient:
    """
    One (system, user) exchange against an OpenAI-compatible endpoint.

    Every failure mode (no key, provider error, timeout) surfaces as
    CompletionUnavailable so callers can fall back without inspecting
    transport errors.
    """

    def __init__(self, timeout_seconds: Optional[float] = None):
        self.timeout_seconds = timeout_seconds or settings.LLM_TIMEOUT_SECONDS

    def _build(self, config: LLMConfig) -> ChatOpenAI:
        return ChatOpenAI(
            model=config.model,
            api_key=config.api_key,
            base_url=config.resolved_base_url(),
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            timeout=self.timeout_seconds,
            max_retries=0,
        )

    async def complete(self, system: str, prompt: str, config: Optional[LLMConfig]) -> str:
        if config is None:
            raise CompletionUnavailable("No LLM configured")
        if not config.api_key:
            raise CompletionUnavailable("LLM has no API key", provider=config.provider)

        t0 = time.perf_counter()
        try:
            llm = self._build(config)
            msg = await asyncio.wait_for(
                llm.ainvoke([SystemMessage(content=system), HumanMessage(content=prompt)]),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "LLM timeout rid=%s provider=%s model=%s after=%ss",
                rid(), config.provider, config.model, self.timeout_seconds,
            )
            raise CompletionUnavailable("LLM request timed out", provider=config.provider)
        except Exception as e:
            logger.warning(
                "LLM FAIL rid=%s provider=%s model=%s key=%s err=%s",
                rid(), config.provider, config.model, mask(config.api_key), type(e).__name__,
            )
            raise CompletionUnavailable(f"LLM request failed: {type(e).__name__}",
                                        provider=config.provider) from e

        text = (getattr(msg, "content", "") or "").strip()
        if not text:
            raise CompletionUnavailable("LLM returned an empty completion", provider=config.provider)
        logger.info("LLM ok rid=%s provider=%s model=%s chars=%d in %dms",
                    rid(), config.provider, config.model, len(text), ms_since(t0))
        return text

    async def test(self, config: LLMConfig) -> bool:
        """Health check used by the settings screen."""
        try:
            await self.complete("You are a connectivity check.", HEALTH_CHECK_PROMPT, config)
            return True
        except CompletionUnavailable as e:
            logger.info("LLM test failed rid=%s id=%s reason=%s", rid(), config.id, e)
            return False
