"""Stability AI image provider."""

from __future__ import annotations

import time
from typing import Any, Mapping

from ..errors import ConfigurationError, ContentPolicyError, FatalProviderError
from .base import GeneratedImage, ImageSource, ProviderCall
from .http import decode_json, post_json


_STYLE_PRESETS = {"pixel-art", "anime", "3d-model", "photographic", "digital-art"}


class StabilityProvider:
    name = "stability"

    def __init__(
        self,
        api_key: str | None,
        model: str = "stable-diffusion-xl-1024-v1-0",
        api_base: str | None = None,
        timeout_s: float = 120.0,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.api_base = (api_base or "https://api.stability.ai/v1").rstrip("/")
        self.timeout_s = timeout_s

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def generate(self, call: ProviderCall) -> GeneratedImage:
        if not self.api_key:
            raise ConfigurationError("Stability API key missing. Set STABILITY_API_KEY.")
        start = time.monotonic()
        payload = _build_payload(call)
        endpoint = f"{self.api_base}/generation/{self.model}/text-to-image"
        _, raw, _ = post_json(
            self.name,
            endpoint,
            payload,
            {"Authorization": f"Bearer {self.api_key}", "Accept": "application/json"},
            self.timeout_s,
        )
        response = decode_json(self.name, raw)
        blob = _extract_artifact(response)
        return GeneratedImage(
            source=ImageSource("base64", blob),
            provider=self.name,
            model=self.model,
            prompt=call.prompt,
            negative_prompt=call.negative_prompt,
            metadata={
                "generation_time": round(time.monotonic() - start, 3),
                "width": payload["width"],
                "height": payload["height"],
                "style_preset": payload.get("style_preset"),
            },
        )


def _build_payload(call: ProviderCall) -> dict[str, Any]:
    options = call.options
    text_prompts: list[dict[str, Any]] = [{"text": call.prompt, "weight": 1}]
    if call.negative_prompt:
        text_prompts.append({"text": call.negative_prompt, "weight": -1})
    payload: dict[str, Any] = {
        "text_prompts": text_prompts,
        "cfg_scale": float(options.get("cfg_scale", 9.5)),
        "steps": int(options.get("steps", 40)),
        "width": int(options.get("width", 1024)),
        "height": int(options.get("height", 1024)),
        "samples": 1,
    }
    preset = options.get("style_preset")
    if preset in _STYLE_PRESETS:
        payload["style_preset"] = preset
    return payload


def _extract_artifact(response: Mapping[str, Any]) -> str:
    artifacts = response.get("artifacts")
    if not isinstance(artifacts, list) or not artifacts or not isinstance(artifacts[0], Mapping):
        raise FatalProviderError("Stability API returned no artifacts.", provider="stability")
    first = artifacts[0]
    if first.get("finishReason") == "CONTENT_FILTERED":
        raise ContentPolicyError("Stability filtered the generated image.", provider="stability")
    blob = first.get("base64")
    if not isinstance(blob, str) or not blob:
        raise FatalProviderError("Stability artifact missing base64 data.", provider="stability")
    return blob
