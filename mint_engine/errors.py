"""Error types raised across the mint pipeline."""

from __future__ import annotations

from typing import Sequence


class MintEngineError(RuntimeError):
    pass


class ConfigurationError(MintEngineError):
    """Missing credentials or an unknown component name."""


class ValidationError(MintEngineError):
    pass


class ProviderError(MintEngineError):
    def __init__(self, message: str, *, provider: str | None = None, status: int | None = None) -> None:
        super().__init__(message)
        self.provider = provider
        self.status = status


class ContentPolicyError(ProviderError):
    pass


class TransientProviderError(ProviderError):
    pass


class FatalProviderError(ProviderError):
    pass


class ProviderExhaustedError(MintEngineError):
    def __init__(self, attempted: Sequence[str], errors: Sequence[str]) -> None:
        self.attempted = list(attempted)
        self.errors = list(errors)
        if not self.attempted:
            message = "All image providers failed: no provider configured (0 attempted)"
        else:
            message = "All image providers failed: " + "; ".join(self.errors)
        super().__init__(message)


class StorageError(MintEngineError):
    pass


class ChainError(MintEngineError):
    pass


class InvalidTransitionError(MintEngineError):
    pass
