from __future__ import annotations

import json
from pathlib import Path

import pytest

from mint_engine.chain.contract import MintRequest
from mint_engine.chain.cursor import BlockCursor
from mint_engine.errors import ChainError, ConfigurationError, ValidationError
from mint_engine.runs.checkpoint import (
    Checkpoint,
    FileCheckpointStore,
    MemoryCheckpointStore,
    SqliteCheckpointStore,
    open_checkpoint_store,
)


class FakeChain:
    def __init__(self, latest: int = 0, requests: list[MintRequest] | None = None) -> None:
        self.latest = latest
        self.requests = list(requests or [])
        self.queries: list[tuple[int, int]] = []

    def latest_block(self) -> int:
        return self.latest

    def get_mint_requests(self, from_block: int, to_block: int) -> list[MintRequest]:
        self.queries.append((from_block, to_block))
        return [req for req in self.requests if from_block <= req.block_number <= to_block]

    def token_uri(self, token_id: int) -> str:
        return ""

    def set_token_uri(self, token_id: int, uri: str) -> str:
        return "0x0"


def test_file_store_round_trip(tmp_path: Path) -> None:
    path = tmp_path / "checkpoint.json"
    store = FileCheckpointStore(path)
    assert store.load() == Checkpoint()

    store.save(Checkpoint(120, {3, 1}))
    payload = json.loads(path.read_text(encoding="utf-8"))
    assert payload["lastBlock"] == 120
    assert payload["processedTokens"] == [1, 3]
    assert store.load() == Checkpoint(120, {1, 3})


def test_file_store_tolerates_garbage(tmp_path: Path) -> None:
    path = tmp_path / "checkpoint.json"
    path.write_text('{"lastBlock": "soon", "processedTokens": [1, "x", "2"]}', encoding="utf-8")
    assert FileCheckpointStore(path).load() == Checkpoint(0, {1, 2})


def test_sqlite_store_round_trip(tmp_path: Path) -> None:
    store = SqliteCheckpointStore(tmp_path / "state" / "checkpoint.sqlite")
    assert store.load() == Checkpoint()
    store.save(Checkpoint(10, {7}))
    store.save(Checkpoint(11, {7, 8}))
    assert SqliteCheckpointStore(store.path).load() == Checkpoint(11, {7, 8})


def test_open_checkpoint_store(tmp_path: Path) -> None:
    assert isinstance(open_checkpoint_store("json", tmp_path / "c.json"), FileCheckpointStore)
    assert isinstance(open_checkpoint_store("SQLite", tmp_path / "c.db"), SqliteCheckpointStore)
    assert isinstance(open_checkpoint_store("memory", tmp_path), MemoryCheckpointStore)
    with pytest.raises(ConfigurationError):
        open_checkpoint_store("redis", tmp_path)


def test_pending_range_uses_lookback_on_first_run() -> None:
    cursor = BlockCursor(FakeChain(), MemoryCheckpointStore(), lookback=100)
    assert cursor.pending_range(1_000) == (900, 1_000)
    assert cursor.pending_range(40) == (0, 40)


def test_pending_range_resumes_after_checkpoint() -> None:
    cursor = BlockCursor(FakeChain(), MemoryCheckpointStore(Checkpoint(500)))
    assert cursor.pending_range(510) == (501, 510)
    assert cursor.pending_range(500) is None


def test_scan_chunks_and_sorts() -> None:
    chain = FakeChain(
        requests=[
            MintRequest(3, "0xc", "Siamese", 25, log_index=0),
            MintRequest(2, "0xb", "Tabby", 12, log_index=1),
            MintRequest(1, "0xa", "Bengal", 12, log_index=0),
        ]
    )
    cursor = BlockCursor(chain, MemoryCheckpointStore(), chunk_size=10)

    found = cursor.scan(5, 30)

    assert chain.queries == [(5, 14), (15, 24), (25, 30)]
    assert [req.token_id for req in found] == [1, 2, 3]


def test_scan_rejects_bad_ranges() -> None:
    cursor = BlockCursor(FakeChain(), MemoryCheckpointStore())
    with pytest.raises(ValidationError):
        cursor.scan(10, 5)
    with pytest.raises(ValidationError):
        cursor.scan(-1, 5)


def test_chain_failures_become_chain_errors() -> None:
    class BrokenChain(FakeChain):
        def get_mint_requests(self, from_block: int, to_block: int) -> list[MintRequest]:
            raise ConnectionError("rpc down")

        def latest_block(self) -> int:
            raise TimeoutError("rpc slow")

    cursor = BlockCursor(BrokenChain(), MemoryCheckpointStore())
    with pytest.raises(ChainError, match="rpc down"):
        cursor.scan(1, 2)
    with pytest.raises(ChainError, match="rpc slow"):
        cursor.latest_block()


def test_advance_never_moves_backwards() -> None:
    store = MemoryCheckpointStore()
    cursor = BlockCursor(FakeChain(), store)
    cursor.mark_processed(9)
    cursor.advance(200)
    cursor.advance(150)

    assert cursor.last_processed_block == 200
    assert store.checkpoint == Checkpoint(200, {9})
    assert store.saves == 2
    assert cursor.is_processed(9)


def test_reset_can_lower_checkpoint(tmp_path: Path) -> None:
    store = FileCheckpointStore(tmp_path / "checkpoint.json")
    cursor = BlockCursor(FakeChain(), store)
    cursor.mark_processed(4)
    cursor.advance(300)

    cursor.reset(100)
    assert store.load() == Checkpoint(100, {4})
    cursor.reset(50, clear_processed=True)
    assert store.load() == Checkpoint(50, set())
    assert BlockCursor(FakeChain(), store).last_processed_block == 50
