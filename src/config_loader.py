"""YAML configuration loader with environment-based secret resolution.

Notes:
- Secrets are NOT stored in the YAML file; only the ENV VAR name of the API key is.
- `map_defaults` seeds the option store; resets restore these values.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

import yaml

import map_options  # type: ignore


@dataclass(frozen=True)
class APIConfig:
    google_maps_api_key_env: str
    endpoint: str

    def get_google_maps_api_key(self) -> str | None:
        return os.getenv(self.google_maps_api_key_env)


@dataclass(frozen=True)
class HttpPolicy:
    timeout_seconds: float


@dataclass(frozen=True)
class MapDefaults:
    size: str
    zoom: int
    scale: int
    format: str
    maptype: str
    language: str = ""
    region: str = ""
    heading: Optional[float] = None
    pitch: Optional[float] = None

    def to_map_options(self) -> map_options.MapOptions:
        return map_options.MapOptions(
            size=self.size,
            zoom=self.zoom,
            scale=self.scale,
            format=self.format,
            maptype=self.maptype,
            language=self.language,
            region=self.region,
            heading=self.heading,
            pitch=self.pitch,
        )


@dataclass(frozen=True)
class MediaDefaults:
    base_dir: str
    folder: str
    title: str
    alt: str


@dataclass(frozen=True)
class ImageTagDefaults:
    alt: str
    loading: str


@dataclass(frozen=True)
class Config:
    project_name: str
    project_version: str
    api: APIConfig
    http: HttpPolicy
    map_defaults: MapDefaults
    media: MediaDefaults
    image_tag: ImageTagDefaults

    def validate(self) -> None:
        if not self.api.endpoint.startswith("https://"):
            raise ValueError("api.endpoint must be an https:// URL.")
        if self.http.timeout_seconds <= 0:
            raise ValueError("http.timeout_seconds must be positive.")
        if not self.media.folder.strip():
            raise ValueError("media.folder must not be empty.")
        # Raises map_errors.ValidationError (a ValueError) on bad defaults.
        self.map_defaults.to_map_options()


def _require_key(d: Dict[str, Any], key: str) -> Any:
    if key not in d:
        raise KeyError(f"Missing required configuration key: {key}")
    return d[key]


def _optional_float(value: Any) -> Optional[float]:
    return None if value is None or value == "" else float(value)


def load_config(path: str) -> Config:
    """Load and validate YAML configuration from `path`.

    The API key itself is resolved lazily from the environment.
    """
    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    project = raw.get("project", {})
    api_raw = raw.get("api", {})
    http_raw = raw.get("http", {})
    map_raw = raw.get("map_defaults", {})
    media_raw = raw.get("media", {})
    tag_raw = raw.get("image_tag", {})

    cfg = Config(
        project_name=_require_key(project, "name"),
        project_version=str(_require_key(project, "version")),
        api=APIConfig(
            google_maps_api_key_env=_require_key(api_raw, "google_maps_api_key_env"),
            endpoint=api_raw.get(
                "endpoint", "https://maps.googleapis.com/maps/api/staticmap"
            ),
        ),
        http=HttpPolicy(
            timeout_seconds=float(_require_key(http_raw, "timeout_seconds")),
        ),
        map_defaults=MapDefaults(
            size=str(_require_key(map_raw, "size")),
            zoom=int(_require_key(map_raw, "zoom")),
            scale=int(_require_key(map_raw, "scale")),
            format=str(_require_key(map_raw, "format")),
            maptype=str(_require_key(map_raw, "maptype")),
            language=str(map_raw.get("language") or ""),
            region=str(map_raw.get("region") or ""),
            heading=_optional_float(map_raw.get("heading")),
            pitch=_optional_float(map_raw.get("pitch")),
        ),
        media=MediaDefaults(
            base_dir=str(media_raw.get("base_dir", "data/maps")),
            folder=str(media_raw.get("folder", "google-maps")),
            title=str(media_raw.get("title", "Google Static Map")),
            alt=str(media_raw.get("alt", "Google Static Map")),
        ),
        image_tag=ImageTagDefaults(
            alt=str(tag_raw.get("alt", "Google Map")),
            loading=str(tag_raw.get("loading", "lazy")),
        ),
    )

    cfg.validate()
    return cfg
