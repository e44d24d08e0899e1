"""Shared utilities for the mint engine."""

from __future__ import annotations

import json
import os
import secrets
import time
from dataclasses import asdict, is_dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
import tomllib
from typing import Any, Mapping


def now_utc_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def now_ms() -> int:
    return int(time.time() * 1000)


def ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def new_id(prefix: str) -> str:
    return f"{prefix}_{now_ms()}_{secrets.token_hex(8)}"


def serialize(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, bytes):
        return f"<bytes:{len(value)}>"
    if is_dataclass(value):
        return {k: serialize(v) for k, v in asdict(value).items()}
    if isinstance(value, Mapping):
        return {str(k): serialize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [serialize(item) for item in value]
    return str(value)


def read_json(path: Path, default: Any) -> Any:
    if not path.exists():
        return default
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except Exception:
        return default


def write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    tmp_path.replace(path)


def getenv_flag(key: str, default: bool = False) -> bool:
    raw = os.getenv(key)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def getenv_int(key: str, default: int) -> int:
    raw = os.getenv(key)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def getenv_float(key: str, default: float) -> float:
    raw = os.getenv(key)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw.strip())
    except ValueError:
        return default


def getenv_str(key: str, default: str | None = None) -> str | None:
    raw = os.getenv(key)
    if raw is None:
        return default
    value = raw.strip()
    return value or default


def parse_env_line(raw_line: str) -> tuple[str, str] | None:
    line = raw_line.strip()
    if line.startswith("export "):
        line = line[len("export "):].lstrip()
    if not line or line.startswith("#") or "=" not in line:
        return None
    key, _, value = line.partition("=")
    key = key.strip()
    if not key:
        return None
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {'"', "'"}:
        value = value[1:-1]
    elif " #" in value:
        value = value.split(" #", 1)[0].rstrip()
    return key, value


def load_dotenv(path: Path | None = None, override: bool = False) -> bool:
    """Load KEY=VALUE pairs into os.environ; MINT_ENV_FILE points at an explicit file."""
    env_path = path or _env_file_candidate()
    if env_path is None or not env_path.is_file():
        return False
    entries = (parse_env_line(line) for line in env_path.read_text(encoding="utf-8").splitlines())
    for key, value in filter(None, entries):
        if override or key not in os.environ:
            os.environ[key] = value
    return True


def _env_file_candidate() -> Path | None:
    explicit = getenv_str("MINT_ENV_FILE")
    if explicit:
        return Path(explicit).expanduser()
    for start in (Path.cwd(), Path(__file__).resolve().parent):
        root = _find_project_root(start)
        if root is not None and (root / ".env").is_file():
            return root / ".env"
    return Path.cwd() / ".env"


def _find_project_root(start: Path) -> Path | None:
    for current in (start, *start.parents):
        if (current / "mint_engine").is_dir():
            return current
        pyproject = current / "pyproject.toml"
        if not pyproject.is_file():
            continue
        try:
            data = tomllib.loads(pyproject.read_text(encoding="utf-8"))
        except (OSError, tomllib.TOMLDecodeError):
            continue
        if data.get("project", {}).get("name") == "mint-engine":
            return current
    return None
