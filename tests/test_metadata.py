from __future__ import annotations

import json
import random
from dataclasses import replace
from pathlib import Path

import pytest

from mint_engine.errors import ValidationError
from mint_engine.metadata import build_metadata, write_metadata_file
from mint_engine.providers.base import GeneratedImage, ImageSource
from mint_engine.traits.engine import TraitEngine


def _image() -> GeneratedImage:
    return GeneratedImage(
        source=ImageSource("url", "https://img.example/cat.png"),
        provider="stability",
        model="stable-diffusion-xl-1024-v1-0",
        prompt="32x32 pixel art sprite of a ninja cat: Tabby ninja cat",
        negative_prompt="blurry",
        metadata={"attempts": 1, "total_time": 3.2},
    )


def test_metadata_document(tmp_path: Path) -> None:
    assignment = TraitEngine(random.Random(11)).assign_traits("Tabby")
    document = build_metadata(42, assignment, "https://ipfs.io/ipfs/cid/image.png", _image())

    assert document["metadata_version"] == "2.0"
    assert document["name"] == "Pixel Ninja Cat #42"
    assert document["image"] == "https://ipfs.io/ipfs/cid/image.png"
    info = document["generationInfo"]
    assert info["provider"] == "stability"
    assert info["rarity"] == {"score": assignment.rarity_score, "tier": assignment.tier}
    assert info["generationTime"] == 3.2
    assert info["background"] == assignment.background.name

    path = write_metadata_file(document, tmp_path / "out", 42)
    assert path.name == "42.json"
    assert json.loads(path.read_text(encoding="utf-8"))["name"] == "Pixel Ninja Cat #42"


def test_attribute_count_is_bounded() -> None:
    assignment = TraitEngine(random.Random(11)).assign_traits("Tabby")
    trimmed = replace(assignment, attributes=assignment.attributes[:4])
    with pytest.raises(ValidationError):
        build_metadata(1, trimmed, "https://x/1.png", _image())
