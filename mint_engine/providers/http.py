"""urllib helpers shared by the HTTP image providers."""

from __future__ import annotations

import http.client
import json
import socket
import time
from typing import Any, Mapping, Sequence
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from ..errors import ContentPolicyError, FatalProviderError, ProviderError, TransientProviderError


TRANSIENT_STATUS = {408, 425, 429, 500, 502, 503, 504}
_POLICY_MARKERS = (
    "content policy",
    "content_policy",
    "safety system",
    "content_filtered",
    "invalid_prompts",
    "nsfw",
)


def classify_http_error(provider: str, status: int, body: str) -> ProviderError:
    lowered = body.lower()
    message = f"{provider} API error ({status}): {body[:500]}"
    if status == 400 and any(marker in lowered for marker in _POLICY_MARKERS):
        return ContentPolicyError(message, provider=provider, status=status)
    if status in TRANSIENT_STATUS:
        return TransientProviderError(message, provider=provider, status=status)
    return FatalProviderError(message, provider=provider, status=status)


def post_json(
    provider: str,
    url: str,
    payload: Mapping[str, Any],
    headers: Mapping[str, str],
    timeout_s: float,
) -> tuple[int, bytes, str]:
    body = json.dumps(payload).encode("utf-8")
    req = Request(
        url,
        data=body,
        headers={"Content-Type": "application/json", **headers},
        method="POST",
    )
    return _send(provider, req, timeout_s)


def download_bytes(provider: str, url: str, timeout_s: float) -> bytes:
    req = Request(url, method="GET")
    _, raw, _ = _send(provider, req, timeout_s)
    return raw


def decode_json(provider: str, raw: bytes) -> dict[str, Any]:
    try:
        payload = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as exc:
        raise FatalProviderError(f"{provider} returned invalid JSON.", provider=provider) from exc
    if not isinstance(payload, dict):
        raise FatalProviderError(f"{provider} returned an unexpected payload.", provider=provider)
    return payload


def _send(provider: str, req: Request, timeout_s: float) -> tuple[int, bytes, str]:
    try:
        with urlopen(req, timeout=timeout_s) as response:
            status_code = int(getattr(response, "status", 200))
            raw = response.read()
            content_type = ""
            headers = getattr(response, "headers", None)
            if headers is not None:
                content_type = str(headers.get("Content-Type") or "")
    except HTTPError as exc:
        raw_error = exc.read().decode("utf-8", errors="replace") if exc.fp else str(exc)
        raise classify_http_error(provider, exc.code, raw_error) from exc
    except (URLError, socket.timeout, TimeoutError, ConnectionError, http.client.HTTPException) as exc:
        raise TransientProviderError(f"{provider} request failed: {exc}", provider=provider) from exc
    return status_code, raw, content_type


def build_multipart_body(
    boundary: str,
    fields: Sequence[tuple[str, Any]],
    files: Sequence[tuple[str, str, bytes, str | None]],
) -> bytes:
    boundary_bytes = boundary.encode("utf-8")
    payload = bytearray()
    for key, value in fields:
        if value is None:
            continue
        payload.extend(b"--")
        payload.extend(boundary_bytes)
        payload.extend(b"\r\n")
        disposition = f'Content-Disposition: form-data; name="{_multipart_quote(key)}"\r\n\r\n'
        payload.extend(disposition.encode("utf-8"))
        payload.extend(str(value).encode("utf-8"))
        payload.extend(b"\r\n")
    for field_name, filename, blob, mime_type in files:
        payload.extend(b"--")
        payload.extend(boundary_bytes)
        payload.extend(b"\r\n")
        disposition = (
            "Content-Disposition: form-data; "
            f'name="{_multipart_quote(field_name)}"; filename="{_multipart_quote(filename)}"\r\n'
        )
        payload.extend(disposition.encode("utf-8"))
        if mime_type:
            payload.extend(f"Content-Type: {mime_type}\r\n".encode("utf-8"))
        payload.extend(b"\r\n")
        payload.extend(blob)
        payload.extend(b"\r\n")
    payload.extend(b"--")
    payload.extend(boundary_bytes)
    payload.extend(b"--\r\n")
    return bytes(payload)


def new_boundary() -> str:
    return f"----MintBoundary{int(time.time() * 1000)}"


def _multipart_quote(value: str) -> str:
    return str(value).replace("\\", "\\\\").replace('"', '\\"')
