"""Hugging Face Inference API image provider."""

from __future__ import annotations

import tempfile
import time
from pathlib import Path
from typing import Any

from ..errors import ConfigurationError, FatalProviderError, TransientProviderError
from .base import GeneratedImage, ImageSource, ProviderCall
from .http import post_json


class HuggingFaceProvider:
    name = "huggingface"

    def __init__(
        self,
        token: str | None,
        model: str = "stabilityai/stable-diffusion-xl-base-1.0",
        api_base: str | None = None,
        out_dir: Path | None = None,
        timeout_s: float = 180.0,
    ) -> None:
        self.token = token
        self.model = model
        self.api_base = (api_base or "https://api-inference.huggingface.co/models").rstrip("/")
        self.out_dir = out_dir
        self.timeout_s = timeout_s

    def is_configured(self) -> bool:
        return bool(self.token)

    def generate(self, call: ProviderCall) -> GeneratedImage:
        if not self.token:
            raise ConfigurationError("Hugging Face token missing. Set HUGGING_FACE_TOKEN.")
        start = time.monotonic()
        payload = _build_payload(call)
        endpoint = f"{self.api_base}/{self.model}"
        _, raw, content_type = post_json(
            self.name,
            endpoint,
            payload,
            {"Authorization": f"Bearer {self.token}", "Accept": "image/png"},
            self.timeout_s,
        )
        if content_type.startswith("application/json") or raw[:1] == b"{":
            text = raw.decode("utf-8", errors="replace")
            if "loading" in text.lower():
                raise TransientProviderError(f"huggingface model is loading: {text[:200]}", provider=self.name)
            raise FatalProviderError(f"huggingface returned no image: {text[:200]}", provider=self.name)
        if not raw:
            raise FatalProviderError("huggingface returned an empty body.", provider=self.name)
        image_path = _build_image_path(self.out_dir)
        image_path.write_bytes(raw)
        return GeneratedImage(
            source=ImageSource("path", str(image_path)),
            provider=self.name,
            model=self.model,
            prompt=call.prompt,
            negative_prompt=call.negative_prompt,
            metadata={"generation_time": round(time.monotonic() - start, 3), "bytes": len(raw)},
        )


def _build_payload(call: ProviderCall) -> dict[str, Any]:
    parameters: dict[str, Any] = {
        "guidance_scale": float(call.options.get("guidance_scale", 8.5)),
        "num_inference_steps": int(call.options.get("num_inference_steps", 50)),
    }
    if call.negative_prompt:
        parameters["negative_prompt"] = call.negative_prompt
    return {"inputs": call.prompt, "parameters": parameters, "options": {"wait_for_model": True}}


def _build_image_path(out_dir: Path | None) -> Path:
    base_dir = out_dir or Path(tempfile.gettempdir()) / "mint_engine"
    base_dir.mkdir(parents=True, exist_ok=True)
    stamp = int(time.time() * 1000)
    return base_dir / f"huggingface-{stamp}.png"
