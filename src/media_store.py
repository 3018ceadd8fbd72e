"""Save fetched static maps into a local media folder.

- Layout: <base_dir>/<folder>/<filename>.<ext> plus <filename>.json
- The extension follows the detected image type (png, gif, jpeg)
- Title, description and alt text are passed through unchanged into the sidecar
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import http_fetch  # type: ignore
from map_errors import Result, StorageError  # type: ignore


DEFAULT_MEDIA_ARGS: Dict[str, str] = {
    "title": "Google Static Map",
    "filename": "",
    "description": "",
    "alt": "Google Static Map",
    "folder": "google-maps",
}


@dataclass(frozen=True)
class MediaItem:
    path: str
    metadata_path: str
    title: str
    description: str
    alt: str
    mime_type: str
    size_bytes: int


def _resolve_args(args: Optional[Mapping[str, Any]]) -> Dict[str, str]:
    merged = dict(DEFAULT_MEDIA_ARGS)
    for key, value in (args or {}).items():
        if key in merged and value is not None:
            merged[key] = str(value)
    if not merged["filename"]:
        merged["filename"] = f"google-map-{int(time.time())}"
    return merged


def save_to_folder(
    url: str,
    base_dir: str,
    args: Optional[Mapping[str, Any]] = None,
    timeout: float = http_fetch.DEFAULT_TIMEOUT_SECONDS,
    logger: Optional[http_fetch.JsonlLogger] = None,
    http_get=None,
) -> Result[MediaItem]:
    """Fetch `url` and store the image with its metadata sidecar."""
    opts = _resolve_args(args)

    fetched = http_fetch.fetch_image(
        url, timeout=timeout, logger=logger, http_get=http_get
    )
    if not fetched.ok:
        return Result.failure(fetched.error)
    image = fetched.value

    folder = Path(base_dir) / opts["folder"]
    image_path = folder / f"{opts['filename']}.{image.extension}"
    metadata_path = folder / f"{opts['filename']}.json"

    try:
        folder.mkdir(parents=True, exist_ok=True)
        image_path.write_bytes(image.content)
    except OSError as e:
        return Result.failure(StorageError(str(image_path), e))

    try:
        with open(metadata_path, "w", encoding="utf-8") as f:
            json.dump(
                {
                    "title": opts["title"],
                    "description": opts["description"],
                    "alt": opts["alt"],
                    "mime_type": image.mime_type,
                    "file": image_path.name,
                },
                f,
                ensure_ascii=False,
                indent=2,
            )
    except OSError as e:
        # No image without its sidecar
        image_path.unlink(missing_ok=True)
        return Result.failure(StorageError(str(metadata_path), e))

    return Result.success(
        MediaItem(
            path=str(image_path),
            metadata_path=str(metadata_path),
            title=opts["title"],
            description=opts["description"],
            alt=opts["alt"],
            mime_type=image.mime_type,
            size_bytes=len(image.content),
        )
    )
