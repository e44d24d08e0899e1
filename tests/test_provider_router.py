from __future__ import annotations

from typing import Any

import pytest

from mint_engine.errors import (
    ConfigurationError,
    ContentPolicyError,
    FatalProviderError,
    ProviderExhaustedError,
    TransientProviderError,
)
from mint_engine.providers.base import (
    Auto,
    Explicit,
    GeneratedImage,
    GenerationRequest,
    ImageSource,
    ProviderCall,
    ProviderRegistry,
    selection_from_name,
)
from mint_engine.providers.router import AttemptPlan, ProviderRouter, RetryPolicy, next_attempt


class FakeProvider:
    def __init__(self, name: str, outcomes: list[Any] | None = None, configured: bool = True) -> None:
        self.name = name
        self.model = f"{name}-model"
        self.outcomes = list(outcomes or [])
        self.configured = configured
        self.calls: list[ProviderCall] = []

    def is_configured(self) -> bool:
        return self.configured

    def generate(self, call: ProviderCall) -> GeneratedImage:
        self.calls.append(call)
        outcome = self.outcomes.pop(0) if self.outcomes else None
        if isinstance(outcome, Exception):
            raise outcome
        return GeneratedImage(
            source=ImageSource("url", f"https://img.example/{self.name}.png"),
            provider=self.name,
            model=self.model,
            prompt=call.prompt,
            negative_prompt=call.negative_prompt,
        )


def _router(*providers: FakeProvider, default: str = "dall-e") -> tuple[ProviderRouter, list[float]]:
    slept: list[float] = []
    router = ProviderRouter(ProviderRegistry(providers), default_provider=default, sleep=slept.append)
    return router, slept


def test_selection_from_name() -> None:
    assert selection_from_name(None) == Auto()
    assert selection_from_name(" auto ") == Auto()
    assert selection_from_name("Stability") == Explicit("stability")


def test_explicit_unconfigured_provider_fails_before_any_call() -> None:
    stability = FakeProvider("stability", configured=False)
    dalle = FakeProvider("dall-e")
    router, _ = _router(stability, dalle)
    request = GenerationRequest(prompt="Tabby ninja cat", selection=Explicit("stability"))

    with pytest.raises(ConfigurationError, match="stability"):
        router.generate(request)
    assert stability.calls == []
    assert dalle.calls == []


def test_explicit_unknown_provider_lists_valid_names() -> None:
    router, _ = _router(FakeProvider("dall-e"))
    with pytest.raises(ConfigurationError, match="Valid options: dall-e"):
        router.generate(GenerationRequest(prompt="cat", selection=Explicit("midjourney")))


def test_no_configured_provider_reports_zero_attempts() -> None:
    router, _ = _router(FakeProvider("dall-e", configured=False))
    with pytest.raises(ProviderExhaustedError) as excinfo:
        router.generate(GenerationRequest(prompt="cat"))
    assert excinfo.value.attempted == []
    assert "0 attempted" in str(excinfo.value)


def test_auto_order_starts_with_default_provider() -> None:
    router, _ = _router(
        FakeProvider("dall-e"),
        FakeProvider("stability"),
        FakeProvider("huggingface", configured=False),
        FakeProvider("dryrun"),
    )
    assert router.candidates(GenerationRequest(prompt="cat")) == ["dall-e", "stability", "dryrun"]
    router.default_provider = "dryrun"
    assert router.candidates(GenerationRequest(prompt="cat"))[0] == "dryrun"


def test_transient_failure_retries_with_backoff() -> None:
    dalle = FakeProvider("dall-e", [TransientProviderError("503", provider="dall-e", status=503)])
    router, slept = _router(dalle)
    history: list[dict[str, Any]] = []

    image = router.generate(GenerationRequest(prompt="Tabby ninja cat"), listener=history.append)

    assert image.provider == "dall-e"
    assert image.metadata["attempts"] == 2
    assert slept == [2.0]
    assert [entry["type"] for entry in history] == ["attempt_failed", "attempt_succeeded"]
    assert history[0]["retry_in"] == 2.0
    assert len(dalle.calls) == 2


def test_auto_falls_through_after_retries_run_out() -> None:
    transient = [TransientProviderError("timeout", provider="dall-e") for _ in range(3)]
    dalle = FakeProvider("dall-e", transient)
    stability = FakeProvider("stability")
    router, slept = _router(dalle, stability)

    image = router.generate(GenerationRequest(prompt="Tabby ninja cat"))

    assert image.provider == "stability"
    assert len(dalle.calls) == 3
    assert slept == [2.0, 4.0]


def test_explicit_failure_does_not_fall_through() -> None:
    dalle = FakeProvider("dall-e", [FatalProviderError("bad request", provider="dall-e", status=400)])
    stability = FakeProvider("stability")
    router, slept = _router(dalle, stability)

    with pytest.raises(FatalProviderError):
        router.generate(GenerationRequest(prompt="cat", selection=Explicit("dall-e")))
    assert len(dalle.calls) == 1
    assert stability.calls == []
    assert slept == []


def test_content_policy_rewrites_prompt() -> None:
    stability = FakeProvider("stability", [ContentPolicyError("flagged", provider="stability")])
    router, slept = _router(stability, default="stability")

    image = router.generate(GenerationRequest(prompt="Tabby ninja cat wielding a deadly weapon"))

    assert image.metadata["prompt_rewrites"] == 1
    assert "ninja" in stability.calls[0].prompt
    assert "ninja" not in stability.calls[1].prompt
    assert "graceful tool" in stability.calls[1].prompt
    assert slept == []


def test_content_policy_with_raw_prompt_is_final() -> None:
    dalle = FakeProvider("dall-e", [ContentPolicyError("flagged", provider="dall-e")])
    router, _ = _router(dalle)
    request = GenerationRequest(prompt="ninja cat", selection=Explicit("dall-e"), raw_prompt=True)
    with pytest.raises(ContentPolicyError):
        router.generate(request)
    assert dalle.calls[0].prompt == "ninja cat"


def test_all_providers_failing_lists_every_error() -> None:
    router, _ = _router(
        FakeProvider("dall-e", [FatalProviderError("dall-e broke", provider="dall-e")]),
        FakeProvider("stability", [FatalProviderError("stability broke", provider="stability")]),
    )
    with pytest.raises(ProviderExhaustedError) as excinfo:
        router.generate(GenerationRequest(prompt="cat"))
    assert excinfo.value.attempted == ["dall-e", "stability"]
    message = str(excinfo.value)
    assert message.startswith("All image providers failed")
    assert "dall-e broke" in message and "stability broke" in message


def test_next_attempt_is_pure() -> None:
    policy = RetryPolicy(max_retries=2, backoff_base_s=2.0, backoff_cap_s=3.0)
    plan = AttemptPlan(provider="dall-e", attempt=1, prompt="ninja", raw_prompt=False)
    transient = TransientProviderError("x")

    second = next_attempt(plan, transient, policy)
    assert second is not None and second.attempt == 2 and second.delay_s == 2.0
    third = next_attempt(second, transient, policy)
    assert third is not None and third.delay_s == 3.0
    assert next_attempt(third, transient, policy) is None
    assert next_attempt(plan, FatalProviderError("x"), policy) is None
    assert plan.attempt == 1


class ShrinkingRegistry(ProviderRegistry):
    """Forgets a provider after its first lookup."""

    def __init__(self, providers: list[FakeProvider]) -> None:
        super().__init__(providers)
        self.lookups: dict[str, int] = {}

    def get(self, name: str):
        self.lookups[name] = self.lookups.get(name, 0) + 1
        if self.lookups[name] > 1:
            return None
        return super().get(name)


def test_provider_vanishing_mid_route_is_a_configuration_error() -> None:
    dalle = FakeProvider("dall-e")
    router = ProviderRouter(ShrinkingRegistry([dalle]), default_provider="dall-e", sleep=lambda s: None)

    with pytest.raises(ConfigurationError, match="dall-e"):
        router.generate(GenerationRequest(prompt="cat"))
    assert dalle.calls == []
