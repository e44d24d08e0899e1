"""OpenAI (DALL-E) image provider."""

from __future__ import annotations

import time
from typing import Any, Mapping

from ..errors import ConfigurationError, ContentPolicyError, FatalProviderError
from .base import GeneratedImage, ImageSource, ProviderCall
from .http import decode_json, post_json


_ALLOWED_OPTIONS = {"quality", "style", "size"}
_SIZE_CHOICES = {"1024x1024", "1024x1792", "1792x1024", "512x512", "256x256"}


class DallEProvider:
    name = "dall-e"

    def __init__(
        self,
        api_key: str | None,
        model: str = "dall-e-3",
        api_base: str | None = None,
        timeout_s: float = 120.0,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.api_base = (api_base or "https://api.openai.com/v1").rstrip("/")
        self.timeout_s = timeout_s

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def generate(self, call: ProviderCall) -> GeneratedImage:
        if not self.api_key:
            raise ConfigurationError("OpenAI API key missing. Set OPENAI_API_KEY.")
        start = time.monotonic()
        payload = _build_payload(self.model, call)
        endpoint = f"{self.api_base}/images/generations"
        _, raw, _ = post_json(
            self.name,
            endpoint,
            payload,
            {"Authorization": f"Bearer {self.api_key}"},
            self.timeout_s,
        )
        response = decode_json(self.name, raw)
        source = _extract_source(response)
        width, height = _resolve_size(str(payload.get("size")))
        return GeneratedImage(
            source=source,
            provider=self.name,
            model=self.model,
            prompt=call.prompt,
            negative_prompt=call.negative_prompt,
            metadata={
                "generation_time": round(time.monotonic() - start, 3),
                "width": width,
                "height": height,
                "revised_prompt": _revised_prompt(response),
            },
        )


def _build_payload(model: str, call: ProviderCall) -> dict[str, Any]:
    payload: dict[str, Any] = {"model": model, "prompt": call.prompt, "n": 1}
    for key, value in call.options.items():
        if key not in _ALLOWED_OPTIONS or value is None:
            continue
        if key == "size" and str(value) not in _SIZE_CHOICES:
            continue
        if key in {"quality", "style"} and not model.startswith("dall-e-3"):
            continue
        payload[key] = value
    payload.setdefault("size", "1024x1024")
    return payload


def _extract_source(response: Mapping[str, Any]) -> ImageSource:
    data = response.get("data")
    if isinstance(data, list) and data and isinstance(data[0], Mapping):
        item = data[0]
        if isinstance(item.get("url"), str) and item["url"]:
            return ImageSource("url", item["url"])
        if isinstance(item.get("b64_json"), str) and item["b64_json"]:
            return ImageSource("base64", item["b64_json"])
    error = response.get("error")
    if isinstance(error, Mapping) and "content_policy" in str(error.get("code") or ""):
        raise ContentPolicyError(f"dall-e rejected the prompt: {error.get('message')}", provider="dall-e")
    raise FatalProviderError("OpenAI Images API returned no image data.", provider="dall-e")


def _revised_prompt(response: Mapping[str, Any]) -> str | None:
    data = response.get("data")
    if isinstance(data, list) and data and isinstance(data[0], Mapping):
        value = data[0].get("revised_prompt")
        return value if isinstance(value, str) else None
    return None


def _resolve_size(size: str) -> tuple[int, int]:
    try:
        width, height = size.lower().split("x", 1)
        return int(width), int(height)
    except ValueError:
        return 1024, 1024
