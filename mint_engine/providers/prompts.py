"""Provider-specific pixel-art prompt construction."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Mapping

from .base import ProviderCall


PIXEL_ART_ENHANCER = ", true pixel art, 16-bit style, limited color palette, no anti-aliasing, pixel perfect"
PIXEL_ART_NEGATIVE = (
    "blurry, anti-aliasing, smooth edges, high detail, realistic, 3D, shading, gradient, "
    "photorealistic, text, signature, watermark, blur, noise, grain, high-resolution detail"
)
NO_TEXT_PREFIX = "NO TEXT, NO LETTERS, NO NUMBERS: "


@dataclass(frozen=True)
class PromptProfile:
    prefix: str
    suffix: str
    enhancer: str
    defaults: Mapping[str, Any] = field(default_factory=dict)
    no_text_prefix: bool = False


PROFILES: dict[str, PromptProfile] = {
    "dall-e": PromptProfile(
        prefix="32x32 pixel art sprite of a ninja cat: ",
        suffix=(
            ". Simple retro game style, chunky pixels, extremely limited color palette, NO TEXT, NO LETTERS, "
            "NO NUMBERS, NO WORDS, cute, charming pixel art. NES/SNES era game graphics, no anti-aliasing, "
            "blocky pixel edges."
        ),
        enhancer=", clean edges, blocky style, NES/SNES era game sprite",
        defaults={"quality": "hd", "style": "vivid", "size": "1024x1024"},
        no_text_prefix=True,
    ),
    "stability": PromptProfile(
        prefix="32x32 pixel art sprite of a ninja cat: ",
        suffix=(
            ", retro game style, limited color palette (8-16 colors max), chunky pixels, no anti-aliasing, "
            "clean pixel art, NES/SNES aesthetic"
        ),
        enhancer=", crisp pixels, 8-16 colors maximum",
        defaults={"cfg_scale": 9.5, "steps": 40, "style_preset": "pixel-art", "width": 1024, "height": 1024},
    ),
    "huggingface": PromptProfile(
        prefix="32x32 pixel art of a ninja cat, ",
        suffix=", retro game style, limited color palette, charming, detailed pixel art, NES style",
        enhancer=", 32x32 resolution, gameboy style, pixel perfect",
        defaults={"guidance_scale": 9.0, "num_inference_steps": 60},
    ),
    "dryrun": PromptProfile(prefix="", suffix="", enhancer="", defaults={"size": "512x512"}),
}

# Neutral replacements applied after a content-policy rejection.
POLICY_REWRITES: tuple[tuple[str, str], ...] = (
    ("ninja", "skilled"),
    ("weapon", "tool"),
    ("battle", "adventure"),
    ("deadly", "graceful"),
    ("blood", "crimson"),
    ("kill", "defeat"),
    ("dagger", "charm"),
    ("sword", "staff"),
    ("blade", "fan"),
)


def build_call(
    provider: str,
    prompt: str,
    *,
    raw_prompt: bool = False,
    options: Mapping[str, Any] | None = None,
) -> ProviderCall:
    profile = PROFILES.get(provider)
    merged: dict[str, Any] = {}
    if profile is not None and not raw_prompt:
        merged.update(profile.defaults)
    if options:
        merged.update(options)
    if raw_prompt or profile is None:
        return ProviderCall(prompt=prompt, negative_prompt=merged.pop("negative_prompt", None), options=merged)
    text = f"{profile.prefix}{prompt}{PIXEL_ART_ENHANCER}{profile.enhancer}{profile.suffix}"
    if profile.no_text_prefix:
        text = f"{NO_TEXT_PREFIX}{text}"
    negative = merged.pop("negative_prompt", None) or PIXEL_ART_NEGATIVE
    return ProviderCall(prompt=text, negative_prompt=negative, options=merged)


def rewrite_flagged_terms(prompt: str) -> str:
    rewritten = prompt
    for term, replacement in POLICY_REWRITES:
        rewritten = re.sub(rf"\b{term}\b", replacement, rewritten, flags=re.IGNORECASE)
    return rewritten
