"""Process-wide pipeline state and wiring."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from .chain.contract import ChainClient, Web3MintContract
from .chain.cursor import BlockCursor
from .config import MintSettings
from .imaging.postprocess import ImagePostProcessor
from .orchestrator import MintOrchestrator
from .providers import default_registry
from .providers.base import ProviderRegistry, selection_from_name
from .providers.router import ProviderRouter, RetryPolicy
from .runs.checkpoint import CheckpointStore, open_checkpoint_store
from .runs.events import EventWriter
from .runs.tasks import TaskRegistry
from .storage.uploader import LocalStaticTier, PinataTier, StorageUploader, W3CliTier
from .traits.engine import TraitEngine
from .utils import new_id


@dataclass
class PipelineContext:
    """Owns the event stream, task registry and checkpoint store for one process."""

    settings: MintSettings
    events: EventWriter
    tasks: TaskRegistry
    checkpoints: CheckpointStore
    _closed: bool = field(default=False, init=False, repr=False)

    @classmethod
    def open(cls, settings: MintSettings, *, persist: bool = True) -> "PipelineContext":
        events_path: Path | None = settings.events_path if persist else None
        return cls(
            settings=settings,
            events=EventWriter(events_path, new_id("proc")),
            tasks=TaskRegistry(
                settings.tasks_path if persist else None,
                default_timeout_s=settings.task_timeout_s,
            ),
            checkpoints=open_checkpoint_store(
                settings.checkpoint_backend if persist else "memory",
                settings.checkpoint_path,
            ),
        )

    def build_router(self, registry: ProviderRegistry | None = None) -> ProviderRouter:
        settings = self.settings
        return ProviderRouter(
            registry or default_registry(settings),
            default_provider=settings.image_provider,
            policy=RetryPolicy(
                max_retries=settings.provider_max_retries,
                backoff_base_s=settings.provider_backoff_base_s,
                backoff_cap_s=settings.provider_backoff_cap_s,
            ),
            events=self.events,
        )

    def build_uploader(self) -> StorageUploader:
        settings = self.settings
        return StorageUploader(
            [
                PinataTier(
                    settings.pinata_api_key,
                    settings.pinata_secret_key,
                    settings.pinata_jwt,
                    gateway_host=settings.gateway_host,
                ),
                W3CliTier(settings.w3_cli, gateway_host=settings.gateway_host),
                LocalStaticTier(settings.public_dir, settings.base_url),
            ],
            events=self.events,
        )

    def build_chain(self) -> ChainClient:
        settings = self.settings
        settings.require_chain()
        return Web3MintContract(
            str(settings.rpc_url),
            str(settings.contract_address),
            str(settings.private_key),
            chain_id=settings.chain_id,
        )

    def build_orchestrator(
        self,
        *,
        chain: ChainClient | None = None,
        registry: ProviderRegistry | None = None,
        uploader: StorageUploader | None = None,
        traits: TraitEngine | None = None,
        router: ProviderRouter | None = None,
        postprocessor: ImagePostProcessor | None = None,
        provider: str | None = None,
    ) -> MintOrchestrator:
        chain = chain or self.build_chain()
        settings = self.settings
        cursor = BlockCursor(
            chain,
            self.checkpoints,
            chunk_size=settings.scan_chunk_size,
            lookback=settings.scan_lookback,
            events=self.events,
        )
        return MintOrchestrator(
            chain=chain,
            cursor=cursor,
            tasks=self.tasks,
            traits=traits or TraitEngine(events=self.events),
            router=router or self.build_router(registry),
            postprocessor=postprocessor or ImagePostProcessor(enhance=settings.pixel_enhance, events=self.events),
            uploader=uploader or self.build_uploader(),
            placeholder_uri=settings.require_placeholder(),
            selection=selection_from_name(provider),
            events=self.events,
        )

    def close(self) -> None:
        if self._closed:
            return
        self.tasks.flush()
        self.events.emit("process_closed", tasks=self.tasks.metrics())
        self._closed = True

    def __enter__(self) -> "PipelineContext":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.close()
        return False
