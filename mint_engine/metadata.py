"""Token metadata document assembly."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from .errors import ValidationError
from .providers.base import GeneratedImage
from .traits.engine import TraitAssignment
from .utils import now_utc_iso


METADATA_VERSION = "2.0"
MIN_ATTRIBUTES = 5
MAX_ATTRIBUTES = 20


def build_metadata(
    token_id: int,
    assignment: TraitAssignment,
    image_url: str,
    image: GeneratedImage,
) -> dict[str, Any]:
    attributes = [dict(attr) for attr in assignment.attributes]
    if not MIN_ATTRIBUTES <= len(attributes) <= MAX_ATTRIBUTES:
        raise ValidationError(
            f"Metadata for token {token_id} has {len(attributes)} attributes; "
            f"expected {MIN_ATTRIBUTES}-{MAX_ATTRIBUTES}."
        )
    return {
        "metadata_version": METADATA_VERSION,
        "name": f"Pixel Ninja Cat #{token_id}",
        "description": assignment.description,
        "image": image_url,
        "attributes": attributes,
        "generationInfo": {
            "prompt": image.prompt,
            "negativePrompt": image.negative_prompt,
            "provider": image.provider,
            "model": image.model,
            "rarity": {"score": assignment.rarity_score, "tier": assignment.tier},
            "background": assignment.background.name,
            "synergies": list(assignment.breakdown.synergies),
            "attempts": image.metadata.get("attempts"),
            "generationTime": image.metadata.get("total_time", image.metadata.get("generation_time")),
            "timestamp": now_utc_iso(),
        },
    }


def write_metadata_file(document: dict[str, Any], out_dir: Path, token_id: int) -> Path:
    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / f"{token_id}.json"
    path.write_text(json.dumps(document, indent=2), encoding="utf-8")
    return path
