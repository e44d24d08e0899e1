"""Dry-run image provider (offline)."""

from __future__ import annotations

import hashlib
import tempfile
import time
from pathlib import Path

from PIL import Image, ImageDraw

from .base import GeneratedImage, ImageSource, ProviderCall


class DryRunProvider:
    name = "dryrun"
    model = "dryrun-pixel-1"

    def __init__(self, enabled: bool = True, out_dir: Path | None = None) -> None:
        self.enabled = enabled
        self.out_dir = out_dir

    def is_configured(self) -> bool:
        return self.enabled

    def generate(self, call: ProviderCall) -> GeneratedImage:
        start = time.monotonic()
        width, height = _resolve_size(str(call.options.get("size") or "512x512"))
        image_path = _build_image_path(self.out_dir)
        cell = max(1, width // 32)
        image = Image.new("RGB", (width, height), _color_from_prompt(call.prompt, 0))
        draw = ImageDraw.Draw(image)
        digest = hashlib.sha256(call.prompt.encode("utf-8")).digest()
        for idx, byte in enumerate(digest):
            x = (idx % 8) * cell * 2 + width // 4
            y = (idx // 8) * cell * 2 + height // 4
            if byte % 2:
                draw.rectangle([x, y, x + cell * 2 - 1, y + cell * 2 - 1], fill=_color_from_prompt(call.prompt, byte))
        image.save(image_path)
        return GeneratedImage(
            source=ImageSource("path", str(image_path)),
            provider=self.name,
            model=self.model,
            prompt=call.prompt,
            negative_prompt=call.negative_prompt,
            metadata={
                "generation_time": round(time.monotonic() - start, 3),
                "width": width,
                "height": height,
                "dryrun": True,
            },
        )


def _build_image_path(out_dir: Path | None) -> Path:
    base_dir = out_dir or Path(tempfile.gettempdir()) / "mint_engine"
    base_dir.mkdir(parents=True, exist_ok=True)
    stamp = int(time.time() * 1000)
    return base_dir / f"dryrun-{stamp}.png"


def _resolve_size(size: str) -> tuple[int, int]:
    normalized = (size or "").strip().lower()
    if "x" in normalized:
        parts = normalized.split("x", 1)
        try:
            return int(parts[0]), int(parts[1])
        except ValueError:
            return (512, 512)
    return (512, 512)


def _color_from_prompt(prompt: str, seed: int) -> tuple[int, int, int]:
    digest = hashlib.sha256(f"{prompt}:{seed}".encode("utf-8")).digest()
    return digest[0], digest[1], digest[2]
