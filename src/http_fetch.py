"""HTTP collaborator for Static Maps URLs.

- `validate_api_key`: 1x1 request at 0,0; HTTP 200 means the key is live
- `fetch_image`: downloads map bytes and identifies the image type (Pillow)
- Writes one JSONL record per attempt; the API key is redacted from logged URLs
- No retries and no backoff: every failure is returned to the caller as a Result
"""

from __future__ import annotations

import datetime as dt
import json
import os
import re
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Any, Dict, Optional

import requests
from PIL import Image, UnidentifiedImageError

from map_errors import (  # type: ignore
    InvalidApiKeyError,
    InvalidImageError,
    Result,
    UpstreamRequestError,
)


DEFAULT_TIMEOUT_SECONDS = 15.0

_KEY_PARAM_RE = re.compile(r"([?&]key=)[^&]*")


@dataclass(frozen=True)
class FetchedImage:
    content: bytes
    mime_type: str
    extension: str


# Isolated for unit-test monkeypatching
def _http_get(url: str, timeout: float) -> requests.Response:
    return requests.get(url, timeout=timeout)


class JsonlLogger:
    def __init__(self, path: Optional[str]) -> None:
        self.path = path
        if path:
            Path(os.path.dirname(path) or ".").mkdir(parents=True, exist_ok=True)

    def write(self, rec: Dict[str, Any]) -> None:
        if not self.path:
            return
        line = json.dumps(rec, ensure_ascii=False)
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(line + "\n")


def redact_key(url: str) -> str:
    return _KEY_PARAM_RE.sub(r"\1REDACTED", url)


def detect_image_mime(content: bytes) -> Optional[str]:
    """Return the MIME type Pillow identifies for `content`, or None.

    Only the header is read; pixel data is not decoded.
    """
    try:
        with Image.open(BytesIO(content)) as img:
            fmt = img.format
    except (UnidentifiedImageError, OSError):
        return None
    return Image.MIME.get(fmt or "")


def _get(
    url: str,
    operation: str,
    timeout: float,
    logger: JsonlLogger,
    http_get,
) -> Result[requests.Response]:
    started = dt.datetime.now(dt.timezone.utc).isoformat()
    safe_url = redact_key(url)
    try:
        resp = http_get(url, timeout=timeout)
    except requests.RequestException as e:
        logger.write(
            {
                "ts": started,
                "operation": operation,
                "url": safe_url,
                "http_status": None,
                "outcome": f"EXC_{e.__class__.__name__}",
            }
        )
        return Result.failure(UpstreamRequestError(safe_url, cause=e))
    logger.write(
        {
            "ts": started,
            "operation": operation,
            "url": safe_url,
            "http_status": resp.status_code,
            "outcome": "OK" if resp.status_code == 200 else f"HTTP_{resp.status_code}",
        }
    )
    return Result.success(resp)


def validate_api_key(
    client,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    logger: Optional[JsonlLogger] = None,
    http_get=None,
) -> Result[bool]:
    """Check that the client's API key is accepted by the Static Maps endpoint."""
    built = client.location("0,0", {"size": "1x1"})
    if not built.ok:
        return Result.failure(built.error)

    got = _get(
        built.value,
        "validate_api_key",
        timeout,
        logger or JsonlLogger(None),
        http_get or _http_get,
    )
    if not got.ok:
        return Result.failure(got.error)

    status = got.value.status_code
    if status == 200:
        return Result.success(True)
    return Result.failure(InvalidApiKeyError(status))


def fetch_image(
    url: str,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    logger: Optional[JsonlLogger] = None,
    http_get=None,
) -> Result[FetchedImage]:
    """Download a map image; reject responses that are not a known image type."""
    logger = logger or JsonlLogger(None)
    got = _get(url, "fetch_image", timeout, logger, http_get or _http_get)
    if not got.ok:
        return Result.failure(got.error)

    resp = got.value
    if resp.status_code != 200:
        return Result.failure(
            UpstreamRequestError(redact_key(url), status_code=resp.status_code)
        )

    mime_type = detect_image_mime(resp.content)
    if not mime_type:
        logger.write(
            {
                "ts": dt.datetime.now(dt.timezone.utc).isoformat(),
                "operation": "fetch_image",
                "url": redact_key(url),
                "http_status": resp.status_code,
                "outcome": "INVALID_IMAGE",
            }
        )
        return Result.failure(
            InvalidImageError(redact_key(url), "content is not a recognized image type")
        )

    extension = mime_type.split("/")[1] if "/" in mime_type else "png"
    return Result.success(FetchedImage(resp.content, mime_type, extension))
