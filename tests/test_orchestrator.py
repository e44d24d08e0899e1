from __future__ import annotations

import base64
import io
import json
import random
from pathlib import Path
from typing import Any

import pytest
from PIL import Image

from mint_engine.chain.contract import MintRequest
from mint_engine.chain.cursor import BlockCursor
from mint_engine.config import MintSettings
from mint_engine.context import PipelineContext
from mint_engine.errors import ChainError, FatalProviderError, TransientProviderError, ValidationError
from mint_engine.imaging.postprocess import ImagePostProcessor
from mint_engine.orchestrator import MintOrchestrator, MintState
from mint_engine.providers.base import GeneratedImage, ImageSource, ProviderCall, ProviderRegistry
from mint_engine.providers.router import ProviderRouter
from mint_engine.runs.checkpoint import Checkpoint, MemoryCheckpointStore
from mint_engine.runs.events import EventWriter
from mint_engine.runs.tasks import TaskRegistry
from mint_engine.storage.uploader import LocalStaticTier, StorageUploader
from mint_engine.traits.engine import TraitEngine


PLACEHOLDER = "ipfs://placeholder/pending.json"


def _png_b64() -> str:
    buffer = io.BytesIO()
    Image.new("RGB", (32, 32), (200, 100, 50)).save(buffer, format="PNG")
    return base64.b64encode(buffer.getvalue()).decode("ascii")


class FakeChain:
    def __init__(self, latest: int, requests: list[MintRequest]) -> None:
        self.latest = latest
        self.requests = list(requests)
        self.uris: dict[int, str] = {}
        self.writes: list[tuple[int, str]] = []
        self.fail_latest = False

    def latest_block(self) -> int:
        if self.fail_latest:
            raise ChainError("rpc unavailable")
        return self.latest

    def get_mint_requests(self, from_block: int, to_block: int) -> list[MintRequest]:
        return [req for req in self.requests if from_block <= req.block_number <= to_block]

    def token_uri(self, token_id: int) -> str:
        return self.uris.get(token_id, "")

    def set_token_uri(self, token_id: int, uri: str) -> str:
        self.uris[token_id] = uri
        self.writes.append((token_id, uri))
        return f"0xtx{len(self.writes)}"


class FakeProvider:
    def __init__(self, name: str, outcomes: list[Any] | None = None, configured: bool = True) -> None:
        self.name = name
        self.model = f"{name}-model"
        self.outcomes = list(outcomes or [])
        self.configured = configured
        self.calls = 0

    def is_configured(self) -> bool:
        return self.configured

    def generate(self, call: ProviderCall) -> GeneratedImage:
        self.calls += 1
        outcome = self.outcomes.pop(0) if self.outcomes else None
        if isinstance(outcome, Exception):
            raise outcome
        return GeneratedImage(
            source=ImageSource("base64", _png_b64()),
            provider=self.name,
            model=self.model,
            prompt=call.prompt,
            negative_prompt=call.negative_prompt,
        )


def _build(
    tmp_path: Path,
    chain: FakeChain,
    providers: list[FakeProvider],
    store: MemoryCheckpointStore | None = None,
    tasks: TaskRegistry | None = None,
) -> tuple[MintOrchestrator, MemoryCheckpointStore, TaskRegistry, EventWriter]:
    store = store or MemoryCheckpointStore()
    events = EventWriter(None, "test")
    tasks = tasks or TaskRegistry()
    orchestrator = MintOrchestrator(
        chain=chain,
        cursor=BlockCursor(chain, store, chunk_size=50, lookback=100, events=events),
        tasks=tasks,
        traits=TraitEngine(random.Random(42), events=events),
        router=ProviderRouter(ProviderRegistry(providers), events=events, sleep=lambda s: None),
        postprocessor=ImagePostProcessor(enhance=False, events=events, work_root=tmp_path),
        uploader=StorageUploader([LocalStaticTier(tmp_path / "public", "http://localhost:5000")], events=events),
        placeholder_uri=PLACEHOLDER,
        events=events,
    )
    return orchestrator, store, tasks, events


def test_end_to_end_with_transient_retry(tmp_path: Path) -> None:
    chain = FakeChain(latest=150, requests=[MintRequest(42, "0xbuyer", "Tabby", 120, tx_hash="0xmint")])
    dalle = FakeProvider("dall-e", [TransientProviderError("503 overloaded", provider="dall-e", status=503)])
    orchestrator, store, tasks, _ = _build(tmp_path, chain, [dalle, FakeProvider("stability")])

    summary = orchestrator.run_pass()

    assert summary["fromBlock"] == 50
    assert summary["toBlock"] == 150
    assert summary["newEventsFound"] == 1
    assert summary["tasksCompleted"] == 1
    assert summary["tasksFailed"] == 0
    result = summary["results"][0]
    assert result["state"] == "finalized"
    assert result["tokenURI"].startswith("http://localhost:5000/metadata/")

    status = tasks.get_status(result["taskId"])
    assert status["status"] == "completed"
    assert status["progress"] == 100
    assert status["result"]["provider"] == "dall-e"
    notes = [entry["note"] for entry in status["history"]]
    assert any("attempt 1 failed" in note for note in notes)
    assert any("succeeded" in note for note in notes)
    assert [entry["progress"] for entry in status["history"]] == sorted(
        entry["progress"] for entry in status["history"]
    )

    assert chain.writes[0] == (42, PLACEHOLDER)
    assert chain.uris[42] == result["tokenURI"]
    assert store.checkpoint == Checkpoint(150, {42})
    assert dalle.calls == 2

    metadata_files = list((tmp_path / "public" / "metadata").iterdir())
    document = json.loads(metadata_files[0].read_text(encoding="utf-8"))
    assert document["name"] == "Pixel Ninja Cat #42"
    assert document["image"].startswith("http://localhost:5000/images/")
    assert document["generationInfo"]["attempts"] == 2
    assert 5 <= len(document["attributes"]) <= 20


def test_replay_is_idempotent(tmp_path: Path) -> None:
    chain = FakeChain(latest=150, requests=[MintRequest(42, "0xbuyer", "Tabby", 120)])
    orchestrator, store, tasks, _ = _build(tmp_path, chain, [FakeProvider("dall-e")])
    orchestrator.run_pass()
    writes = list(chain.writes)

    orchestrator.cursor.reset(100)
    summary = orchestrator.run_pass()

    assert summary["newEventsFound"] == 1
    assert summary["skipped"] == 1
    assert summary["tasksCreated"] == 0
    assert chain.writes == writes
    assert tasks.metrics()["created"] == 1
    assert store.checkpoint.last_processed_block == 150


def test_duplicate_events_in_one_pass_dispatch_once(tmp_path: Path) -> None:
    chain = FakeChain(
        latest=150,
        requests=[
            MintRequest(7, "0xa", "Siamese", 110, log_index=0),
            MintRequest(7, "0xa", "Siamese", 111, log_index=0),
        ],
    )
    orchestrator, _, tasks, _ = _build(tmp_path, chain, [FakeProvider("dall-e")])
    summary = orchestrator.run_pass()
    assert summary["tasksCreated"] == 1
    assert summary["skipped"] == 1
    assert len(tasks.find_by_token(7)) == 1


def test_up_to_date_pass_does_nothing(tmp_path: Path) -> None:
    chain = FakeChain(latest=150, requests=[])
    orchestrator, store, _, _ = _build(tmp_path, chain, [FakeProvider("dall-e")], MemoryCheckpointStore(Checkpoint(150)))
    summary = orchestrator.run_pass()
    assert summary["fromBlock"] is None
    assert store.saves == 0


def test_failed_token_still_advances_checkpoint_and_can_be_redriven(tmp_path: Path) -> None:
    chain = FakeChain(latest=150, requests=[MintRequest(9, "0xbuyer", "Bengal", 140)])
    failing = FakeProvider("dall-e", [FatalProviderError("bad request", provider="dall-e", status=400)])
    orchestrator, store, tasks, events = _build(tmp_path, chain, [failing])

    summary = orchestrator.run_pass()

    assert summary["tasksFailed"] == 1
    result = summary["results"][0]
    assert result["state"] == "failed"
    assert result["failedIn"] == "generating"
    status = tasks.get_status(result["taskId"])
    assert status["status"] == "failed"
    assert status["message"].startswith("Failed while generating")
    assert "All image providers failed" in status["error"]
    assert store.checkpoint == Checkpoint(150, set())
    assert chain.uris[9] == PLACEHOLDER
    assert events.recent("mint_failed")

    outcome = orchestrator.redrive(9, "Bengal", buyer="0xbuyer")
    assert outcome.ok
    assert outcome.state is MintState.FINALIZED
    assert store.checkpoint == Checkpoint(150, {9})
    assert len(tasks.find_by_token(9)) == 2

    with pytest.raises(ValidationError):
        orchestrator.redrive(9, "Bengal")
    assert orchestrator.redrive(9, "Bengal", force=True).ok


def test_redrive_rejects_bad_token_ids(tmp_path: Path) -> None:
    orchestrator, _, _, _ = _build(tmp_path, FakeChain(0, []), [FakeProvider("dall-e")])
    with pytest.raises(ValidationError):
        orchestrator.redrive(-1, "Tabby")


def test_chain_error_aborts_pass_without_advancing(tmp_path: Path) -> None:
    chain = FakeChain(latest=150, requests=[MintRequest(42, "0xbuyer", "Tabby", 120)])
    store = MemoryCheckpointStore(Checkpoint(100))
    orchestrator, _, tasks, _ = _build(tmp_path, chain, [FakeProvider("dall-e")], store)
    chain.fail_latest = True

    with pytest.raises(ChainError):
        orchestrator.run_pass()
    assert store.saves == 0
    assert store.checkpoint.last_processed_block == 100
    assert tasks.metrics()["created"] == 0


def test_existing_uri_skips_placeholder(tmp_path: Path) -> None:
    chain = FakeChain(latest=150, requests=[MintRequest(5, "0xbuyer", "Tabby", 120)])
    chain.uris[5] = "ipfs://already-set"
    orchestrator, _, tasks, _ = _build(tmp_path, chain, [FakeProvider("dall-e")])

    summary = orchestrator.run_pass()

    assert len(chain.writes) == 1
    assert chain.writes[0][1] == summary["results"][0]["tokenURI"]
    notes = [entry["note"] for entry in tasks.get_status(summary["results"][0]["taskId"])["history"]]
    assert "Token URI already present; placeholder not written" in notes


def test_context_wires_dryrun_pipeline(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr("mint_engine.storage.uploader.shutil.which", lambda name: None)
    settings = MintSettings(
        placeholder_uri=PLACEHOLDER,
        image_provider="dryrun",
        dryrun=True,
        public_dir=tmp_path / "public",
        state_dir=tmp_path / "state",
    )
    chain = FakeChain(latest=20, requests=[MintRequest(1, "0xbuyer", "Persian", 10)])

    with PipelineContext.open(settings) as context:
        orchestrator = context.build_orchestrator(chain=chain)
        summary = orchestrator.run_pass()

    assert summary["tasksCompleted"] == 1
    assert summary["results"][0]["provider"] == "dryrun"
    saved = json.loads((tmp_path / "state" / "checkpoint.json").read_text(encoding="utf-8"))
    assert saved["lastBlock"] == 20
    assert saved["processedTokens"] == [1]
    tasks = json.loads((tmp_path / "state" / "tasks.json").read_text(encoding="utf-8"))
    assert len(tasks) == 1
    assert (tmp_path / "state" / "events.jsonl").exists()


class FakeClock:
    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class SlowFinalWriteChain(FakeChain):
    """Final URI write lands after the task deadline has passed."""

    def __init__(self, clock: FakeClock, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.clock = clock

    def set_token_uri(self, token_id: int, uri: str) -> str:
        if uri != PLACEHOLDER:
            self.clock.now += 120
        return super().set_token_uri(token_id, uri)


def test_final_write_after_deadline_still_finalizes(tmp_path: Path) -> None:
    clock = FakeClock()
    chain = SlowFinalWriteChain(clock, latest=150, requests=[MintRequest(42, "0xbuyer", "Tabby", 120)])
    tasks = TaskRegistry(default_timeout_s=60, clock=clock)
    orchestrator, store, _, events = _build(tmp_path, chain, [FakeProvider("dall-e")], tasks=tasks)

    summary = orchestrator.run_pass()

    result = summary["results"][0]
    assert result["state"] == "finalized"
    assert summary["tasksFailed"] == 0
    assert chain.uris[42] == result["tokenURI"]
    assert store.checkpoint == Checkpoint(150, {42})
    assert tasks.get_status(result["taskId"])["status"] == "timeout"
    assert events.recent("task_update_rejected")
    assert not events.recent("mint_failed")


class PlaceholderRejectingChain(FakeChain):
    def set_token_uri(self, token_id: int, uri: str) -> str:
        if uri == PLACEHOLDER:
            raise ChainError("execution reverted: not owner")
        return super().set_token_uri(token_id, uri)


def test_placeholder_failure_does_not_block_finalization(tmp_path: Path) -> None:
    chain = PlaceholderRejectingChain(latest=150, requests=[MintRequest(8, "0xbuyer", "Tabby", 120)])
    orchestrator, store, tasks, events = _build(tmp_path, chain, [FakeProvider("dall-e")])

    summary = orchestrator.run_pass()

    result = summary["results"][0]
    assert result["state"] == "finalized"
    status = tasks.get_status(result["taskId"])
    assert status["status"] == "completed"
    notes = [entry["note"] for entry in status["history"]]
    assert any(note.startswith("Placeholder step failed") for note in notes)
    assert chain.writes == [(8, result["tokenURI"])]
    assert store.checkpoint == Checkpoint(150, {8})
    assert events.recent("placeholder_failed")
