"""Block-range scanning against a persisted checkpoint."""

from __future__ import annotations

from typing import Any

from ..errors import ChainError, ValidationError
from ..runs.checkpoint import Checkpoint, CheckpointStore
from ..runs.events import EventWriter, emit
from .contract import ChainClient, MintRequest


def _require_block(value: Any, label: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError(f"{label} must be a non-negative integer, got {value!r}.")
    return value


class BlockCursor:
    """Scans MintRequested logs and owns the checkpoint between passes.

    Processed token ids are tracked in memory during a pass and persisted
    together with the block number by ``advance``.
    """

    def __init__(
        self,
        chain: ChainClient,
        store: CheckpointStore,
        *,
        chunk_size: int = 2000,
        lookback: int = 100,
        events: EventWriter | None = None,
    ) -> None:
        self.chain = chain
        self.store = store
        self.chunk_size = max(1, chunk_size)
        self.lookback = max(0, lookback)
        self.events = events
        self.checkpoint: Checkpoint = store.load()

    @property
    def last_processed_block(self) -> int:
        return self.checkpoint.last_processed_block

    def latest_block(self) -> int:
        try:
            return int(self.chain.latest_block())
        except ChainError:
            raise
        except Exception as exc:
            raise ChainError(f"Failed to read latest block: {exc}") from exc

    def pending_range(self, latest: int) -> tuple[int, int] | None:
        latest = _require_block(latest, "latest block")
        if self.checkpoint.last_processed_block > 0:
            start = self.checkpoint.last_processed_block + 1
        else:
            start = max(0, latest - self.lookback)
        if start > latest:
            return None
        return start, latest

    def scan(self, from_block: int, to_block: int) -> list[MintRequest]:
        from_block = _require_block(from_block, "from_block")
        to_block = _require_block(to_block, "to_block")
        if from_block > to_block:
            raise ValidationError(f"from_block {from_block} is after to_block {to_block}.")
        found: list[MintRequest] = []
        start = from_block
        while start <= to_block:
            end = min(start + self.chunk_size - 1, to_block)
            try:
                chunk = self.chain.get_mint_requests(start, end)
            except ChainError:
                raise
            except Exception as exc:
                raise ChainError(f"Log query {start}-{end} failed: {exc}") from exc
            found.extend(chunk)
            start = end + 1
        found.sort(key=lambda item: (item.block_number, item.log_index))
        emit(self.events, "blocks_scanned", from_block=from_block, to_block=to_block, found=len(found))
        return found

    def is_processed(self, token_id: int) -> bool:
        return token_id in self.checkpoint.processed_token_ids

    def mark_processed(self, token_id: int) -> None:
        self.checkpoint.processed_token_ids.add(int(token_id))

    def advance(self, block: int) -> Checkpoint:
        block = _require_block(block, "block")
        if block < self.checkpoint.last_processed_block:
            emit(
                self.events,
                "checkpoint_advance_ignored",
                requested=block,
                current=self.checkpoint.last_processed_block,
            )
            block = self.checkpoint.last_processed_block
        self.checkpoint.last_processed_block = block
        self.store.save(self.checkpoint)
        emit(self.events, "checkpoint_advanced", last_block=block, processed=len(self.checkpoint.processed_token_ids))
        return self.checkpoint.copy()

    def reset(self, block: int, *, clear_processed: bool = False) -> Checkpoint:
        """Administrative reset; the only path that may lower the checkpoint."""
        block = _require_block(block, "block")
        previous = self.checkpoint.last_processed_block
        self.checkpoint.last_processed_block = block
        if clear_processed:
            self.checkpoint.processed_token_ids.clear()
        self.store.save(self.checkpoint)
        emit(self.events, "checkpoint_reset", previous=previous, last_block=block, cleared=clear_processed)
        return self.checkpoint.copy()
