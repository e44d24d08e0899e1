"""Provider registry."""

from __future__ import annotations

from pathlib import Path

from ..config import MintSettings
from .base import ProviderRegistry
from .dryrun import DryRunProvider
from .huggingface import HuggingFaceProvider
from .openai import DallEProvider
from .stability import StabilityProvider


PROVIDER_PRIORITY = ("stability", "huggingface", "dall-e", "dryrun")


def default_registry(settings: MintSettings, out_dir: Path | None = None) -> ProviderRegistry:
    return ProviderRegistry(
        [
            DallEProvider(settings.openai_api_key, settings.dalle_model),
            StabilityProvider(settings.stability_api_key, settings.stability_model),
            HuggingFaceProvider(settings.hugging_face_token, settings.hf_model, out_dir=out_dir),
            DryRunProvider(enabled=settings.dryrun, out_dir=out_dir),
        ]
    )
