"""Materialize generated images and apply best-effort pixel-art cleanup."""

from __future__ import annotations

import base64
import binascii
import shutil
import tempfile
from pathlib import Path

from PIL import Image, ImageChops

from ..errors import ValidationError
from ..providers.base import GeneratedImage
from ..providers.http import download_bytes
from ..runs.events import EventWriter, emit


class ImagePostProcessor:
    def __init__(
        self,
        *,
        enhance: bool = True,
        size: int = 512,
        colors: int = 16,
        events: EventWriter | None = None,
        work_root: Path | None = None,
        timeout_s: float = 60.0,
    ) -> None:
        self.enhance = enhance
        self.size = size
        self.colors = colors
        self.events = events
        self.work_root = work_root
        self.timeout_s = timeout_s
        self._work_dirs: list[Path] = []

    def refine(self, image: GeneratedImage) -> Path:
        raw_path = self.materialize(image)
        if not self.enhance:
            return raw_path
        try:
            return self._enhance(raw_path)
        except Exception as exc:
            emit(self.events, "postprocess_skipped", path=raw_path, error=str(exc))
            return raw_path

    def materialize(self, image: GeneratedImage) -> Path:
        work_dir = Path(tempfile.mkdtemp(prefix="ninjacat-", dir=self.work_root))
        self._work_dirs.append(work_dir)
        target = work_dir / "image.png"
        source = image.source
        if source.kind == "path":
            path = Path(source.value)
            if not path.is_file():
                raise ValidationError(f"Generated image file not found: {path}")
            shutil.copyfile(path, target)
        elif source.kind == "url":
            target.write_bytes(download_bytes(image.provider, source.value, self.timeout_s))
        else:
            try:
                target.write_bytes(base64.b64decode(source.value, validate=True))
            except (binascii.Error, ValueError) as exc:
                raise ValidationError("Generated image base64 payload is malformed.") from exc
        return target

    def cleanup(self) -> None:
        for work_dir in self._work_dirs:
            shutil.rmtree(work_dir, ignore_errors=True)
        self._work_dirs.clear()

    def _enhance(self, path: Path) -> Path:
        enhanced_path = path.with_name("enhanced.png")
        with Image.open(path) as source:
            image = trim_flat_margins(source.convert("RGB"))
        image = fit_nearest(image, self.size)
        image = image.quantize(colors=self.colors, method=Image.Quantize.MEDIANCUT)
        image.save(enhanced_path, optimize=True)
        emit(self.events, "postprocess_applied", path=enhanced_path, size=self.size, colors=self.colors)
        return enhanced_path


def trim_flat_margins(image: Image.Image) -> Image.Image:
    """Crop uniform borders that match the top-left pixel, such as a palette strip background."""
    background = Image.new(image.mode, image.size, image.getpixel((0, 0)))
    bbox = ImageChops.difference(image, background).getbbox()
    if not bbox:
        return image
    left, top, right, bottom = bbox
    if (right - left) < image.width // 4 or (bottom - top) < image.height // 4:
        return image
    return image.crop(bbox)


def fit_nearest(image: Image.Image, size: int) -> Image.Image:
    scale = min(size / image.width, size / image.height)
    width = max(1, int(image.width * scale))
    height = max(1, int(image.height * scale))
    resized = image.resize((width, height), Image.Resampling.NEAREST)
    canvas = Image.new("RGB", (size, size), resized.getpixel((0, 0)))
    canvas.paste(resized, ((size - width) // 2, (size - height) // 2))
    return canvas
