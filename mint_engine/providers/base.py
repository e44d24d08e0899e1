"""Provider base classes."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Protocol, Union


@dataclass(frozen=True)
class Explicit:
    provider: str


@dataclass(frozen=True)
class Auto:
    pass


ProviderSelection = Union[Explicit, Auto]


def selection_from_name(name: str | None) -> ProviderSelection:
    if name is None or not name.strip() or name.strip().lower() == "auto":
        return Auto()
    return Explicit(name.strip().lower())


@dataclass(frozen=True)
class GenerationRequest:
    prompt: str
    breed: str | None = None
    selection: ProviderSelection = field(default_factory=Auto)
    raw_prompt: bool = False
    options: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "options", MappingProxyType(dict(self.options)))


@dataclass(frozen=True)
class ImageSource:
    kind: str
    value: str

    def __post_init__(self) -> None:
        if self.kind not in {"url", "path", "base64"}:
            raise ValueError(f"Unsupported image source kind: {self.kind}")


@dataclass(frozen=True)
class GeneratedImage:
    source: ImageSource
    provider: str
    model: str
    prompt: str
    negative_prompt: str | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ProviderCall:
    """One provider invocation: fully enhanced prompt plus provider options."""

    prompt: str
    negative_prompt: str | None
    options: Mapping[str, Any] = field(default_factory=dict)


class ImageProvider(Protocol):
    name: str
    model: str

    def is_configured(self) -> bool:
        ...

    def generate(self, call: ProviderCall) -> GeneratedImage:
        ...


class ProviderRegistry:
    def __init__(self, providers: Iterable[ImageProvider]) -> None:
        self._providers = {provider.name: provider for provider in providers}

    def get(self, name: str) -> ImageProvider | None:
        return self._providers.get(name)

    def list(self) -> list[str]:
        return sorted(self._providers.keys())
