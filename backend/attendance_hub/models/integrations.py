from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

LLMProvider = Literal["openai", "anthropic", "deepseek", "gemini", "cohere", "huggingface"]
ConfigStatus = Literal["active", "inactive", "testing"]

# Fallback endpoints when a config leaves base_url empty
PROVIDER_BASE_URLS: Dict[str, str] = {
    "deepseek": "https://api.deepseek.com",
    "openai": "https://api.openai.com/v1",
}


class LLMConfig(BaseModel):
    id: str
    name: str
    provider: LLMProvider = "openai"
    api_key: str = ""
    base_url: Optional[str] = None
    model: str = "gpt-3.5-turbo"
    temperature: float = Field(0.7, ge=0, le=2)
    max_tokens: int = Field(1000, gt=0)
    status: ConfigStatus = "inactive"
    is_default: bool = False
    last_used: Optional[datetime] = None

    def resolved_base_url(self) -> str:
        return self.base_url or PROVIDER_BASE_URLS.get(self.provider, PROVIDER_BASE_URLS["openai"])


class LLMConfigUpdate(BaseModel):
    """Partial update; unset fields keep their stored value."""
    name: Optional[str] = None
    provider: Optional[LLMProvider] = None
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    model: Optional[str] = None
    temperature: Optional[float] = Field(None, ge=0, le=2)
    max_tokens: Optional[int] = Field(None, gt=0)
    status: Optional[ConfigStatus] = None
    is_default: Optional[bool] = None


class DatabaseConfig(BaseModel):
    id: str
    name: str = "New Database"
    type: Literal["postgresql", "mysql", "mongodb", "supabase", "firebase", "sqlserver"] = "postgresql"
    host: str = "localhost"
    port: int = 5432
    database: str = ""
    username: str = ""
    password: str = ""
    ssl: bool = False
    status: Literal["connected", "disconnected", "testing"] = "disconnected"
    last_connected: Optional[datetime] = None


class APIConfig(BaseModel):
    id: str
    name: str = "New API"
    base_url: str = "https://api.example.com"
    api_key: str = ""
    headers: Dict[str, str] = Field(default_factory=lambda: {"Content-Type": "application/json"})
    timeout: int = 30000
    retries: int = 3
    status: ConfigStatus = "inactive"
    last_used: Optional[datetime] = None


class WebhookConfig(BaseModel):
    id: str
    name: str = "New Webhook"
    url: str = "https://example.com/webhook"
    method: Literal["GET", "POST", "PUT", "DELETE"] = "POST"
    headers: Dict[str, str] = Field(default_factory=lambda: {"Content-Type": "application/json"})
    secret: str = ""
    events: List[str] = Field(default_factory=lambda: ["attendance.created", "attendance.updated"])
    status: ConfigStatus = "inactive"
    last_triggered: Optional[datetime] = None


def default_llm() -> LLMConfig:
    return LLMConfig(
        id="deepseek-default",
        name="Bayu GPT (DeepSeek)",
        provider="deepseek",
        api_key="",
        base_url=PROVIDER_BASE_URLS["deepseek"],
        model="deepseek-chat",
        temperature=0.7,
        max_tokens=1500,
        status="inactive",
        is_default=True,
    )
