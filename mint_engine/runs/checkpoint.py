"""Persisted block checkpoint stores."""

from __future__ import annotations

import json
import sqlite3
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

from ..errors import ConfigurationError
from ..utils import ensure_dir, now_utc_iso, read_json, write_json


@dataclass
class Checkpoint:
    last_processed_block: int = 0
    processed_token_ids: set[int] = field(default_factory=set)

    def to_payload(self) -> dict[str, Any]:
        return {
            "lastBlock": int(self.last_processed_block),
            "processedTokens": sorted(self.processed_token_ids),
        }

    @classmethod
    def from_payload(cls, payload: Any) -> "Checkpoint":
        if not isinstance(payload, dict):
            return cls()
        try:
            last_block = int(payload.get("lastBlock") or 0)
        except (TypeError, ValueError):
            last_block = 0
        tokens: set[int] = set()
        for raw in payload.get("processedTokens") or []:
            try:
                tokens.add(int(raw))
            except (TypeError, ValueError):
                continue
        return cls(last_processed_block=max(0, last_block), processed_token_ids=tokens)

    def copy(self) -> "Checkpoint":
        return Checkpoint(self.last_processed_block, set(self.processed_token_ids))


class CheckpointStore(Protocol):
    def load(self) -> Checkpoint:
        ...

    def save(self, checkpoint: Checkpoint) -> None:
        ...


@dataclass
class FileCheckpointStore:
    path: Path

    def load(self) -> Checkpoint:
        return Checkpoint.from_payload(read_json(self.path, {}))

    def save(self, checkpoint: Checkpoint) -> None:
        payload = checkpoint.to_payload()
        payload["updatedAt"] = now_utc_iso()
        write_json(self.path, payload)


@dataclass
class SqliteCheckpointStore:
    path: Path
    key: str = "default"

    def connect(self) -> sqlite3.Connection:
        ensure_dir(self.path.parent)
        conn = sqlite3.connect(self.path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        with self.connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS checkpoints (
                    key TEXT PRIMARY KEY,
                    payload_json TEXT,
                    updated_at TEXT
                );
                """
            )

    def load(self) -> Checkpoint:
        self.init_db()
        with self.connect() as conn:
            row = conn.execute("SELECT payload_json FROM checkpoints WHERE key = ?", (self.key,)).fetchone()
        if row is None:
            return Checkpoint()
        try:
            payload = json.loads(row["payload_json"])
        except (TypeError, ValueError):
            return Checkpoint()
        return Checkpoint.from_payload(payload)

    def save(self, checkpoint: Checkpoint) -> None:
        self.init_db()
        with self.connect() as conn:
            conn.execute(
                """
                INSERT INTO checkpoints (key, payload_json, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    payload_json=excluded.payload_json,
                    updated_at=excluded.updated_at
                """,
                (self.key, json.dumps(checkpoint.to_payload()), now_utc_iso()),
            )


@dataclass
class MemoryCheckpointStore:
    checkpoint: Checkpoint = field(default_factory=Checkpoint)
    saves: int = 0

    def load(self) -> Checkpoint:
        return self.checkpoint.copy()

    def save(self, checkpoint: Checkpoint) -> None:
        self.checkpoint = checkpoint.copy()
        self.saves += 1


def open_checkpoint_store(backend: str, path: Path) -> CheckpointStore:
    normalized = (backend or "file").strip().lower()
    if normalized in {"file", "json"}:
        return FileCheckpointStore(path)
    if normalized in {"sqlite", "db", "database"}:
        return SqliteCheckpointStore(path)
    if normalized == "memory":
        return MemoryCheckpointStore()
    raise ConfigurationError(f"Unknown checkpoint backend '{backend}'. Valid options: file, sqlite, memory.")
