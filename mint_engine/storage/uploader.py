"""Tiered content-addressed upload with gateway URL normalization."""

from __future__ import annotations

import http.client
import json
import mimetypes
import re
import shutil
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Protocol
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from ..config import DEFAULT_GATEWAY_HOST
from ..errors import StorageError
from ..providers.http import build_multipart_body, new_boundary
from ..runs.events import EventWriter, emit


PINATA_ENDPOINT = "https://api.pinata.cloud/pinning/pinFileToIPFS"
_CID_RE = re.compile(r"^[A-Za-z0-9]{20,}$")
_GATEWAY_CID_RE = re.compile(r"/ipfs/([A-Za-z0-9]{20,})")


def normalize_to_gateway_url(
    uri: str | None,
    filename: str | None = None,
    gateway_host: str = DEFAULT_GATEWAY_HOST,
) -> str | None:
    if not uri:
        return uri
    if uri.startswith("https://"):
        return uri
    if uri.startswith("ipfs://"):
        cid = uri[len("ipfs://"):].strip("/")
        if cid.startswith("ipfs/"):
            cid = cid[len("ipfs/"):]
        url = f"https://{gateway_host}/ipfs/{cid}"
        return f"{url}/{filename}" if filename else url
    return uri


@dataclass(frozen=True)
class UploadResult:
    gateway_url: str
    tier: str
    cid: str | None = None


class StorageTier(Protocol):
    name: str

    def is_configured(self) -> bool:
        ...

    def upload(self, path: Path, label: str) -> UploadResult:
        ...


class PinataTier:
    name = "pinata"

    def __init__(
        self,
        api_key: str | None = None,
        secret_key: str | None = None,
        jwt: str | None = None,
        *,
        gateway_host: str = DEFAULT_GATEWAY_HOST,
        endpoint: str = PINATA_ENDPOINT,
        timeout_s: float = 120.0,
    ) -> None:
        self.api_key = api_key
        self.secret_key = secret_key
        self.jwt = jwt
        self.gateway_host = gateway_host
        self.endpoint = endpoint
        self.timeout_s = timeout_s

    def is_configured(self) -> bool:
        return bool(self.jwt) or bool(self.api_key and self.secret_key)

    def upload(self, path: Path, label: str) -> UploadResult:
        try:
            blob = path.read_bytes()
        except OSError as exc:
            raise StorageError(f"Pinata could not read {path}: {exc}") from exc
        boundary = new_boundary()
        mime_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        body = build_multipart_body(
            boundary,
            [
                ("pinataMetadata", json.dumps({"name": label})),
                ("pinataOptions", json.dumps({"wrapWithDirectory": True, "cidVersion": 1})),
            ],
            [("file", path.name, blob, mime_type)],
        )
        headers = {"Content-Type": f"multipart/form-data; boundary={boundary}"}
        if self.jwt:
            headers["Authorization"] = f"Bearer {self.jwt}"
        else:
            headers["pinata_api_key"] = str(self.api_key)
            headers["pinata_secret_api_key"] = str(self.secret_key)
        req = Request(self.endpoint, data=body, headers=headers, method="POST")
        try:
            with urlopen(req, timeout=self.timeout_s) as response:
                raw = response.read()
        except HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="replace") if exc.fp else str(exc)
            raise StorageError(f"Pinata upload failed ({exc.code}): {detail[:300]}") from exc
        except URLError as exc:
            raise StorageError(f"Pinata request failed: {exc}") from exc
        except (http.client.HTTPException, OSError) as exc:
            raise StorageError(f"Pinata connection failed: {exc!r}") from exc
        try:
            payload = json.loads(raw.decode("utf-8"))
        except ValueError as exc:
            raise StorageError("Pinata returned invalid JSON.") from exc
        cid = payload.get("IpfsHash") if isinstance(payload, dict) else None
        if not isinstance(cid, str) or not cid:
            raise StorageError("Pinata response missing IpfsHash.")
        url = normalize_to_gateway_url(f"ipfs://{cid}", path.name, self.gateway_host)
        return UploadResult(gateway_url=str(url), tier=self.name, cid=cid)


class W3CliTier:
    name = "w3"

    def __init__(self, command: str = "w3", *, gateway_host: str = DEFAULT_GATEWAY_HOST, timeout_s: float = 300.0) -> None:
        self.command = command
        self.gateway_host = gateway_host
        self.timeout_s = timeout_s

    def is_configured(self) -> bool:
        return shutil.which(self.command) is not None

    def upload(self, path: Path, label: str) -> UploadResult:
        cmd = [self.command, "up", str(path)]
        try:
            result = subprocess.run(
                cmd,
                text=True,
                capture_output=True,
                check=False,
                timeout=self.timeout_s,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            raise StorageError(f"w3 CLI failed to run: {exc}") from exc
        if result.returncode != 0:
            raise StorageError(f"w3 CLI exited with {result.returncode}: {result.stderr.strip()[:300]}")
        cid = parse_cli_cid(result.stdout)
        if cid is None:
            raise StorageError(f"w3 CLI output did not contain a CID for {label}.")
        url = normalize_to_gateway_url(f"ipfs://{cid}", path.name, self.gateway_host)
        return UploadResult(gateway_url=str(url), tier=self.name, cid=cid)


def parse_cli_cid(stdout: str) -> str | None:
    match = _GATEWAY_CID_RE.search(stdout)
    if match:
        return match.group(1)
    lines = [line.strip() for line in stdout.splitlines() if line.strip()]
    if lines and _CID_RE.match(lines[-1]):
        return lines[-1]
    return None


class LocalStaticTier:
    name = "local"

    def __init__(self, public_dir: Path, base_url: str) -> None:
        self.public_dir = public_dir
        self.base_url = base_url.rstrip("/")

    def is_configured(self) -> bool:
        return bool(self.base_url)

    def upload(self, path: Path, label: str) -> UploadResult:
        folder = "metadata" if path.suffix.lower() == ".json" else "images"
        filename = f"{int(time.time() * 1000)}-{path.name}"
        target = self.public_dir / folder / filename
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(path, target)
        except OSError as exc:
            raise StorageError(f"Local copy failed for {label}: {exc}") from exc
        return UploadResult(gateway_url=f"{self.base_url}/{folder}/{filename}", tier=self.name)


class StorageUploader:
    def __init__(self, tiers: Iterable[StorageTier], events: EventWriter | None = None) -> None:
        self.tiers = list(tiers)
        self.events = events

    def upload(self, path: Path, label: str) -> UploadResult:
        if not path.is_file():
            raise StorageError(f"Nothing to upload at {path}.")
        errors: list[str] = []
        for tier in self.tiers:
            if not tier.is_configured():
                emit(self.events, "storage_tier_skipped", tier=tier.name, label=label)
                continue
            try:
                result = tier.upload(path, label)
            except StorageError as exc:
                errors.append(f"{tier.name}: {exc}")
                emit(self.events, "storage_tier_failed", tier=tier.name, label=label, error=str(exc))
                continue
            emit(self.events, "storage_uploaded", tier=tier.name, label=label, url=result.gateway_url, cid=result.cid)
            if not result.gateway_url.startswith("https://"):
                emit(self.events, "storage_url_not_https", tier=tier.name, label=label, url=result.gateway_url)
            return result
        detail = "; ".join(errors) if errors else "no storage tier configured"
        raise StorageError(f"All storage tiers failed for {label}: {detail}")
