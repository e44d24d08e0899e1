"""Environment-driven settings."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from .errors import ConfigurationError
from .utils import getenv_flag, getenv_float, getenv_int, getenv_str


DEFAULT_STATE_DIR = Path.home() / ".mint_engine"
DEFAULT_GATEWAY_HOST = "ipfs.io"
DEFAULT_BASE_URL = "http://localhost:5000"


@dataclass(frozen=True)
class MintSettings:
    rpc_url: str | None = None
    contract_address: str | None = None
    private_key: str | None = None
    chain_id: int | None = None
    placeholder_uri: str | None = None
    image_provider: str = "dall-e"
    openai_api_key: str | None = None
    dalle_model: str = "dall-e-3"
    stability_api_key: str | None = None
    stability_model: str = "stable-diffusion-xl-1024-v1-0"
    hugging_face_token: str | None = None
    hf_model: str = "stabilityai/stable-diffusion-xl-base-1.0"
    dryrun: bool = False
    pinata_api_key: str | None = None
    pinata_secret_key: str | None = None
    pinata_jwt: str | None = None
    gateway_host: str = DEFAULT_GATEWAY_HOST
    w3_cli: str = "w3"
    base_url: str = DEFAULT_BASE_URL
    public_dir: Path = Path("public")
    state_dir: Path = DEFAULT_STATE_DIR
    checkpoint_backend: str = "file"
    scan_chunk_size: int = 2000
    scan_lookback: int = 100
    provider_max_retries: int = 2
    provider_backoff_base_s: float = 2.0
    provider_backoff_cap_s: float = 10.0
    pixel_enhance: bool = True
    task_timeout_s: float | None = None

    @classmethod
    def from_env(cls) -> "MintSettings":
        chain_id_raw = getenv_str("CHAIN_ID")
        timeout = getenv_float("TASK_TIMEOUT_S", 0.0)
        return cls(
            rpc_url=getenv_str("RPC_URL"),
            contract_address=getenv_str("CONTRACT_ADDRESS"),
            private_key=getenv_str("PRIVATE_KEY"),
            chain_id=int(chain_id_raw) if chain_id_raw and chain_id_raw.isdigit() else None,
            placeholder_uri=getenv_str("PLACEHOLDER_URI"),
            image_provider=(getenv_str("IMAGE_PROVIDER", "dall-e") or "dall-e").lower(),
            openai_api_key=getenv_str("OPENAI_API_KEY"),
            dalle_model=getenv_str("DALLE_MODEL", "dall-e-3") or "dall-e-3",
            stability_api_key=getenv_str("STABILITY_API_KEY"),
            stability_model=getenv_str("STABILITY_MODEL", cls.stability_model) or cls.stability_model,
            hugging_face_token=getenv_str("HUGGING_FACE_TOKEN"),
            hf_model=getenv_str("HF_MODEL", cls.hf_model) or cls.hf_model,
            dryrun=getenv_flag("MINT_DRYRUN", False),
            pinata_api_key=getenv_str("PINATA_API_KEY"),
            pinata_secret_key=getenv_str("PINATA_SECRET_KEY"),
            pinata_jwt=getenv_str("PINATA_JWT"),
            gateway_host=getenv_str("IPFS_GATEWAY_HOST", DEFAULT_GATEWAY_HOST) or DEFAULT_GATEWAY_HOST,
            w3_cli=getenv_str("W3_CLI", "w3") or "w3",
            base_url=(getenv_str("BASE_URL", DEFAULT_BASE_URL) or DEFAULT_BASE_URL).rstrip("/"),
            public_dir=Path(getenv_str("PUBLIC_DIR", "public") or "public"),
            state_dir=Path(getenv_str("MINT_STATE_DIR") or DEFAULT_STATE_DIR).expanduser(),
            checkpoint_backend=(getenv_str("CHECKPOINT_BACKEND", "file") or "file").lower(),
            scan_chunk_size=max(1, getenv_int("SCAN_CHUNK_SIZE", 2000)),
            scan_lookback=max(0, getenv_int("SCAN_LOOKBACK", 100)),
            provider_max_retries=max(0, getenv_int("PROVIDER_MAX_RETRIES", 2)),
            provider_backoff_base_s=max(0.0, getenv_float("PROVIDER_BACKOFF_BASE_S", 2.0)),
            provider_backoff_cap_s=max(0.0, getenv_float("PROVIDER_BACKOFF_CAP_S", 10.0)),
            pixel_enhance=getenv_flag("MINT_PIXEL_ENHANCE", True),
            task_timeout_s=timeout if timeout > 0 else None,
        )

    def require_chain(self) -> None:
        missing = [
            name
            for name, value in (
                ("RPC_URL", self.rpc_url),
                ("CONTRACT_ADDRESS", self.contract_address),
                ("PRIVATE_KEY", self.private_key),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(f"Chain settings missing: {', '.join(missing)}.")

    def require_placeholder(self) -> str:
        if not self.placeholder_uri:
            raise ConfigurationError("PLACEHOLDER_URI is not set.")
        return self.placeholder_uri

    @property
    def events_path(self) -> Path:
        return self.state_dir / "events.jsonl"

    @property
    def tasks_path(self) -> Path:
        return self.state_dir / "tasks.json"

    @property
    def checkpoint_path(self) -> Path:
        suffix = "sqlite" if self.checkpoint_backend in {"sqlite", "db", "database"} else "json"
        return self.state_dir / f"checkpoint.{suffix}"
