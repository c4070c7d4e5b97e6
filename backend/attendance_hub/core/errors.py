from typing import Optional


class StoreUnavailable(Exception):
    """Any failure reaching the persistent store. Carries the store operation name."""
    def __init__(self, message: str, operation: str = "", sql: str = ""):
        super().__init__(message)
        self.operation = operation
        self.sql = sql


class DuplicateKeyError(StoreUnavailable):
    """Natural-key conflict on insert; seeding treats this as already done."""


class CompletionUnavailable(Exception):
    """Text completion failed, timed out, or no usable LLM is configured."""
    def __init__(self, message: str, provider: Optional[str] = None):
        super().__init__(message)
        self.provider = provider


class SeedPhaseFailure(Exception):
    def __init__(self, phase: str, message: str):
        super().__init__(f"{phase}: {message}")
        self.phase = phase
