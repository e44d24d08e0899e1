"""Provider selection, fallback and per-provider retry."""

from __future__ import annotations

import time
from dataclasses import dataclass, replace
from typing import Any, Callable

from ..errors import (
    ConfigurationError,
    ContentPolicyError,
    ProviderError,
    ProviderExhaustedError,
    TransientProviderError,
)
from ..runs.events import EventWriter, emit
from . import PROVIDER_PRIORITY
from .base import Explicit, GeneratedImage, GenerationRequest, ImageProvider, ProviderCall, ProviderRegistry
from .prompts import build_call, rewrite_flagged_terms


AttemptListener = Callable[[dict[str, Any]], None]


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 2
    backoff_base_s: float = 2.0
    backoff_cap_s: float = 10.0

    @property
    def max_attempts(self) -> int:
        return 1 + max(0, self.max_retries)

    def backoff(self, attempt: int) -> float:
        return min(self.backoff_base_s * attempt, self.backoff_cap_s)


@dataclass(frozen=True)
class AttemptPlan:
    provider: str
    attempt: int
    prompt: str
    raw_prompt: bool
    rewrites: int = 0
    delay_s: float = 0.0


def first_attempt(provider: str, request: GenerationRequest) -> AttemptPlan:
    return AttemptPlan(provider=provider, attempt=1, prompt=request.prompt, raw_prompt=request.raw_prompt)


def next_attempt(plan: AttemptPlan, error: ProviderError, policy: RetryPolicy) -> AttemptPlan | None:
    """Return the plan for the following attempt, or None when the error is final."""
    if plan.attempt >= policy.max_attempts:
        return None
    if isinstance(error, ContentPolicyError):
        if plan.raw_prompt:
            return None
        return replace(
            plan,
            attempt=plan.attempt + 1,
            prompt=rewrite_flagged_terms(plan.prompt),
            rewrites=plan.rewrites + 1,
            delay_s=0.0,
        )
    if isinstance(error, TransientProviderError):
        return replace(plan, attempt=plan.attempt + 1, delay_s=policy.backoff(plan.attempt))
    return None


def call_for(plan: AttemptPlan, request: GenerationRequest) -> ProviderCall:
    call = build_call(plan.provider, plan.prompt, raw_prompt=plan.raw_prompt, options=request.options)
    if plan.rewrites:
        call = replace(call, prompt=rewrite_flagged_terms(call.prompt))
    return call


def _error_kind(error: ProviderError) -> str:
    if isinstance(error, ContentPolicyError):
        return "content_policy"
    if isinstance(error, TransientProviderError):
        return "transient"
    return "fatal"


class ProviderRouter:
    def __init__(
        self,
        registry: ProviderRegistry,
        *,
        default_provider: str = "dall-e",
        policy: RetryPolicy | None = None,
        events: EventWriter | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.registry = registry
        self.default_provider = default_provider
        self.policy = policy or RetryPolicy()
        self.events = events
        self._sleep = sleep

    def candidates(self, request: GenerationRequest) -> list[str]:
        selection = request.selection
        if isinstance(selection, Explicit):
            provider = self.registry.get(selection.provider)
            if provider is None:
                valid = ", ".join(self.registry.list())
                raise ConfigurationError(
                    f"Unknown image provider '{selection.provider}'. Valid options: {valid}"
                )
            if not provider.is_configured():
                raise ConfigurationError(
                    f"Cannot use requested provider '{selection.provider}': credentials are not configured."
                )
            return [selection.provider]
        ordered = [self.default_provider, *PROVIDER_PRIORITY, *self.registry.list()]
        names: list[str] = []
        for name in dict.fromkeys(ordered):
            provider = self.registry.get(name)
            if provider is not None and provider.is_configured():
                names.append(name)
        return names

    def generate(self, request: GenerationRequest, listener: AttemptListener | None = None) -> GeneratedImage:
        names = self.candidates(request)
        strict = isinstance(request.selection, Explicit)
        emit(
            self.events,
            "generation_started",
            breed=request.breed,
            mode="explicit" if strict else "auto",
            candidates=names,
        )
        attempted: list[str] = []
        errors: list[str] = []
        for name in names:
            provider = self.registry.get(name)
            if provider is None:
                raise ConfigurationError(f"Provider {name!r} was unregistered while routing.")
            attempted.append(name)
            try:
                image = self._generate_with_retries(provider, request, listener)
            except ProviderError as exc:
                errors.append(f"{name}: {exc}")
                emit(self.events, "provider_failed", provider=name, error=str(exc), kind=_error_kind(exc))
                if strict:
                    raise
                continue
            return image
        emit(self.events, "providers_exhausted", attempted=attempted, errors=errors)
        raise ProviderExhaustedError(attempted, errors)

    def _generate_with_retries(
        self,
        provider: ImageProvider,
        request: GenerationRequest,
        listener: AttemptListener | None,
    ) -> GeneratedImage:
        start = time.monotonic()
        plan = first_attempt(provider.name, request)
        while True:
            if plan.delay_s > 0:
                self._sleep(plan.delay_s)
            call = call_for(plan, request)
            try:
                image = provider.generate(call)
            except ProviderError as exc:
                following = next_attempt(plan, exc, self.policy)
                self._notify(
                    listener,
                    "attempt_failed",
                    provider=provider.name,
                    attempt=plan.attempt,
                    kind=_error_kind(exc),
                    error=str(exc),
                    retry_in=following.delay_s if following else None,
                )
                if following is None:
                    raise
                plan = following
                continue
            metadata = dict(image.metadata)
            metadata["attempts"] = plan.attempt
            metadata["prompt_rewrites"] = plan.rewrites
            metadata["total_time"] = round(time.monotonic() - start, 3)
            self._notify(
                listener,
                "attempt_succeeded",
                provider=provider.name,
                model=image.model,
                attempt=plan.attempt,
            )
            return replace(image, metadata=metadata)

    def _notify(self, listener: AttemptListener | None, event_type: str, **payload: Any) -> None:
        emit(self.events, event_type, **payload)
        if listener is not None:
            listener({"type": event_type, **payload})
