"""Option store for Google Maps Static API requests.

- Four option groups: map, marker, path, style
- Typed, frozen records; every bounded field is validated when it is set
- Validation policy: reject-with-error (`ValidationError`), never clamp
- A rejected value leaves the previously stored value untouched
- Setters return the store so calls can be chained:

    store.set_size(640, 320).set_zoom(12).set_map_type("terrain")

Field vocabulary follows the Static Maps API:
https://developers.google.com/maps/documentation/maps-static/start
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from map_errors import ValidationError  # type: ignore


VALID_MAP_TYPES = ("roadmap", "satellite", "terrain", "hybrid")
VALID_FORMATS = ("png", "png8", "png32", "gif", "jpg", "jpg-baseline")
VALID_SCALES = (1, 2, 4)
MIN_ZOOM = 0
MAX_ZOOM = 21

# Serialization order is fixed by these tuples
MARKER_STYLE_KEYS = ("size", "color", "label", "scale", "anchor", "icon")
PATH_STYLE_KEYS = ("weight", "color", "fillcolor", "geodesic")

_SIZE_RE = re.compile(r"^(\d+)x(\d+)$")


# ------------------------------
# Value helpers
# ------------------------------


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def format_value(value: Any) -> str:
    """Render a parameter value the way the Static Maps API expects it.

    None becomes the empty string (and is therefore dropped from URLs),
    booleans become `true`/`false`, and integral floats lose their `.0`.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def format_location(location: Any) -> str:
    """Return an address string unchanged, or `lat,lng` for a coordinate pair."""
    if isinstance(location, str):
        return location
    if (
        isinstance(location, (tuple, list))
        and len(location) == 2
        and all(_is_number(v) for v in location)
    ):
        return f"{format_value(location[0])},{format_value(location[1])}"
    raise ValidationError(
        "location", location, "an address string or a (lat, lng) pair"
    )


def as_locations(value: Any) -> Tuple[str, ...]:
    """Normalize one location or a sequence of locations to a tuple of strings."""
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    if isinstance(value, (tuple, list)) and len(value) == 2 and all(
        _is_number(v) for v in value
    ):
        return (format_location(value),)
    if not isinstance(value, (tuple, list)):
        raise ValidationError(
            "locations", value, "an address string, a (lat, lng) pair or a list of them"
        )
    return tuple(format_location(v) for v in value)


def as_items(value: Any, name: str) -> List[Any]:
    """List the entries of a markers or styles argument."""
    if isinstance(value, (str, bytes, Mapping)) or not isinstance(value, Iterable):
        raise ValidationError(name, value, f"a list of {name} entries")
    return list(value)


# ------------------------------
# Map option validators
# ------------------------------


def validate_size(value: Any) -> str:
    if value is None or value == "":
        return ""
    if isinstance(value, (tuple, list)) and len(value) == 2:
        width, height = value
        if _is_int(width) and _is_int(height) and width > 0 and height > 0:
            return f"{width}x{height}"
    elif isinstance(value, str):
        m = _SIZE_RE.match(value.strip())
        if m and int(m.group(1)) > 0 and int(m.group(2)) > 0:
            return f"{int(m.group(1))}x{int(m.group(2))}"
    raise ValidationError(
        "size", value, "'{width}x{height}' with positive integer width and height"
    )


def validate_zoom(value: Any) -> int:
    if not _is_int(value) or not MIN_ZOOM <= value <= MAX_ZOOM:
        raise ValidationError(
            "zoom", value, f"an integer between {MIN_ZOOM} and {MAX_ZOOM}"
        )
    return value


def validate_scale(value: Any) -> int:
    if not _is_int(value) or value not in VALID_SCALES:
        raise ValidationError(
            "scale", value, "one of: " + ", ".join(str(s) for s in VALID_SCALES)
        )
    return value


def validate_format(value: Any) -> str:
    if value not in VALID_FORMATS:
        raise ValidationError("format", value, "one of: " + ", ".join(VALID_FORMATS))
    return value


def validate_map_type(value: Any) -> str:
    if value not in VALID_MAP_TYPES:
        raise ValidationError(
            "maptype", value, "one of: " + ", ".join(VALID_MAP_TYPES)
        )
    return value


def _free_text(value: Any) -> str:
    return "" if value is None else str(value)


def _bounded_degrees(name: str, low: float, high: float) -> Callable[[Any], Optional[float]]:
    def check(value: Any) -> Optional[float]:
        if value is None:
            return None
        if not _is_number(value) or not low <= value <= high:
            raise ValidationError(
                name, value, f"a number between {format_value(low)} and {format_value(high)} degrees"
            )
        return float(value)

    return check


validate_heading = _bounded_degrees("heading", 0.0, 360.0)
validate_pitch = _bounded_degrees("pitch", -90.0, 90.0)

# Insertion order is the query-string order
_MAP_VALIDATORS: Dict[str, Callable[[Any], Any]] = {
    "size": validate_size,
    "zoom": validate_zoom,
    "scale": validate_scale,
    "format": validate_format,
    "maptype": validate_map_type,
    "language": _free_text,
    "region": _free_text,
    "heading": validate_heading,
    "pitch": validate_pitch,
}

MAP_OPTION_KEYS = tuple(_MAP_VALIDATORS)


# ------------------------------
# Option records
# ------------------------------


@dataclass(frozen=True)
class MapOptions:
    size: str = "600x300"
    zoom: int = 14
    scale: int = 1
    format: str = "png"
    maptype: str = "roadmap"
    language: str = ""
    region: str = ""
    heading: Optional[float] = None
    pitch: Optional[float] = None

    def __post_init__(self) -> None:
        for name, check in _MAP_VALIDATORS.items():
            object.__setattr__(self, name, check(getattr(self, name)))

    def with_overrides(self, overrides: Optional[Mapping[str, Any]]) -> "MapOptions":
        """Return a copy with `overrides` applied; unknown keys are rejected."""
        if not overrides:
            return self
        for key in overrides:
            if key not in _MAP_VALIDATORS:
                raise ValidationError(
                    "option name", key, "one of: " + ", ".join(MAP_OPTION_KEYS)
                )
        return replace(self, **dict(overrides))

    def to_params(self) -> Dict[str, str]:
        return {name: format_value(getattr(self, name)) for name in MAP_OPTION_KEYS}


@dataclass(frozen=True)
class MarkerStyle:
    size: str = ""
    color: str = ""
    label: str = ""
    scale: str = ""
    anchor: str = ""
    icon: str = ""

    def merged(self, style: Any) -> "MarkerStyle":
        """Overlay recognized keys from a mapping (or another MarkerStyle)."""
        if isinstance(style, MarkerStyle):
            style = style.as_dict()
        if not style:
            return self
        if not isinstance(style, Mapping):
            raise ValidationError("marker style", style, "a mapping of style keys")
        updates = {
            k: format_value(style[k])
            for k in MARKER_STYLE_KEYS
            if style.get(k) is not None
        }
        return replace(self, **updates)

    def as_dict(self) -> Dict[str, str]:
        return {k: getattr(self, k) for k in MARKER_STYLE_KEYS if getattr(self, k)}

    def pairs(self) -> List[str]:
        return [f"{k}:{v}" for k, v in self.as_dict().items()]


@dataclass(frozen=True)
class PathStyle:
    weight: Optional[float] = None
    color: str = ""
    fillcolor: str = ""
    geodesic: bool = False

    def __post_init__(self) -> None:
        if self.weight is not None and (
            not _is_number(self.weight)
            or not math.isfinite(self.weight)
            or self.weight <= 0
        ):
            raise ValidationError("path weight", self.weight, "a finite positive number")
        if not isinstance(self.geodesic, bool):
            raise ValidationError("path geodesic", self.geodesic, "a boolean")

    def merged(self, style: Any) -> "PathStyle":
        if isinstance(style, PathStyle):
            style = style.as_dict()
        if not style:
            return self
        if not isinstance(style, Mapping):
            raise ValidationError("path style", style, "a mapping of style keys")
        updates: Dict[str, Any] = {}
        for k in PATH_STYLE_KEYS:
            if style.get(k) is None:
                continue
            updates[k] = _free_text(style[k]) if k in ("color", "fillcolor") else style[k]
        return replace(self, **updates)

    def as_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        if self.weight is not None:
            out["weight"] = self.weight
        if self.color:
            out["color"] = self.color
        if self.fillcolor:
            out["fillcolor"] = self.fillcolor
        if self.geodesic:
            out["geodesic"] = True
        return out

    def pairs(self) -> List[str]:
        return [f"{k}:{format_value(v)}" for k, v in self.as_dict().items()]


@dataclass(frozen=True)
class MarkerSpec:
    locations: Tuple[str, ...] = ()
    style: MarkerStyle = field(default_factory=MarkerStyle)

    @classmethod
    def from_value(cls, value: Any) -> "MarkerSpec":
        """Accept a MarkerSpec or a mapping with `style` and `locations`."""
        if isinstance(value, MarkerSpec):
            return value
        if not isinstance(value, Mapping):
            raise ValidationError(
                "marker", value, "a MarkerSpec or a mapping with 'locations'"
            )
        return cls(
            locations=as_locations(value.get("locations")),
            style=MarkerStyle().merged(value.get("style")),
        )

    def to_param(self, base: Optional[MarkerStyle] = None) -> str:
        """`k:v|...|loc1|loc2`, or "" when there are no locations."""
        if not self.locations:
            return ""
        style = (base or MarkerStyle()).merged(self.style)
        return "|".join(style.pairs() + list(self.locations))


@dataclass(frozen=True)
class PathSpec:
    style: PathStyle = field(default_factory=PathStyle)
    points: Tuple[str, ...] = ()

    def to_param(self) -> str:
        return "|".join(self.style.pairs() + list(self.points))


@dataclass(frozen=True)
class StyleRule:
    feature: str = ""
    element: str = ""
    rules: Tuple[Tuple[str, str], ...] = ()

    def __post_init__(self) -> None:
        rules = self.rules
        if isinstance(rules, Mapping):
            rules = rules.items()
        object.__setattr__(
            self,
            "rules",
            tuple(
                (str(k), format_value(v)) for k, v in rules if format_value(v) != ""
            ),
        )

    @classmethod
    def from_value(cls, value: Any) -> "StyleRule":
        if isinstance(value, StyleRule):
            return value
        if not isinstance(value, Mapping):
            raise ValidationError(
                "style", value, "a StyleRule or a mapping with feature/element/rules"
            )
        rules = value.get("rules") or {}
        if not isinstance(rules, Mapping):
            raise ValidationError("style rules", rules, "a mapping of rule name to value")
        return cls(
            feature=_free_text(value.get("feature")),
            element=_free_text(value.get("element")),
            rules=tuple(rules.items()),
        )

    def to_param(self) -> str:
        segments: List[str] = []
        if self.feature:
            segments.append(f"feature:{self.feature}")
        if self.element:
            segments.append(f"element:{self.element}")
        segments.extend(f"{k}:{v}" for k, v in self.rules)
        return "|".join(segments)


# ------------------------------
# Store
# ------------------------------


class OptionStore:
    """Mutable holder of the four option groups, owned by one client."""

    def __init__(self, map_defaults: Optional[MapOptions] = None) -> None:
        self._map_defaults = map_defaults or MapOptions()
        self.reset_all_params()

    # Map options

    def set_size(self, width: int, height: int) -> "OptionStore":
        if not (_is_int(width) and _is_int(height) and width > 0 and height > 0):
            raise ValidationError(
                "size", (width, height), "positive integer width and height"
            )
        self._map = replace(self._map, size=f"{width}x{height}")
        return self

    def get_size(self) -> Dict[str, int]:
        m = _SIZE_RE.match(self._map.size)
        if not m:
            return {"width": 0, "height": 0}
        return {"width": int(m.group(1)), "height": int(m.group(2))}

    def set_zoom(self, level: int) -> "OptionStore":
        self._map = replace(self._map, zoom=level)
        return self

    def get_zoom(self) -> int:
        return self._map.zoom

    def set_map_type(self, map_type: str) -> "OptionStore":
        self._map = replace(self._map, maptype=map_type)
        return self

    def get_map_type(self) -> str:
        return self._map.maptype

    def set_format(self, fmt: str) -> "OptionStore":
        self._map = replace(self._map, format=fmt)
        return self

    def get_format(self) -> str:
        return self._map.format

    def set_scale(self, scale: int) -> "OptionStore":
        self._map = replace(self._map, scale=scale)
        return self

    def get_scale(self) -> int:
        return self._map.scale

    def set_language(self, language: str) -> "OptionStore":
        self._map = replace(self._map, language=language)
        return self

    def get_language(self) -> str:
        return self._map.language

    def set_region(self, region: str) -> "OptionStore":
        self._map = replace(self._map, region=region)
        return self

    def get_region(self) -> str:
        return self._map.region

    def set_heading(self, degrees: float) -> "OptionStore":
        if degrees is None:
            raise ValidationError("heading", degrees, "a number between 0 and 360 degrees")
        self._map = replace(self._map, heading=degrees)
        return self

    def get_heading(self) -> Optional[float]:
        return self._map.heading

    def set_pitch(self, degrees: float) -> "OptionStore":
        if degrees is None:
            raise ValidationError("pitch", degrees, "a number between -90 and 90 degrees")
        self._map = replace(self._map, pitch=degrees)
        return self

    def get_pitch(self) -> Optional[float]:
        return self._map.pitch

    # Marker / path / style groups

    def set_marker_style(self, style: Mapping[str, Any]) -> "OptionStore":
        self._marker = self._marker.merged(style)
        return self

    def get_marker_style(self) -> Dict[str, str]:
        return self._marker.as_dict()

    def set_path_style(self, style: Mapping[str, Any]) -> "OptionStore":
        self._path_style = self._path_style.merged(style)
        return self

    def get_path_style(self) -> Dict[str, Any]:
        return self._path_style.as_dict()

    def add_path_points(self, points: Iterable[Any]) -> "OptionStore":
        self._path_points = self._path_points + as_locations(points)
        return self

    def get_path_points(self) -> List[str]:
        return list(self._path_points)

    def add_style(self, rule: Any) -> "OptionStore":
        self._styles = self._styles + (StyleRule.from_value(rule),)
        return self

    def get_styles(self) -> List[StyleRule]:
        return list(self._styles)

    # Resets

    def reset_map_params(self) -> "OptionStore":
        self._map = self._map_defaults
        return self

    def reset_marker_params(self) -> "OptionStore":
        self._marker = MarkerStyle()
        return self

    def reset_path_params(self) -> "OptionStore":
        self._path_style = PathStyle()
        self._path_points: Tuple[str, ...] = ()
        return self

    def reset_style_params(self) -> "OptionStore":
        self._styles: Tuple[StyleRule, ...] = ()
        return self

    def reset_all_params(self) -> "OptionStore":
        self.reset_map_params()
        self.reset_marker_params()
        self.reset_path_params()
        self.reset_style_params()
        return self

    def get_all_params(self) -> Dict[str, Any]:
        """Snapshot of the current state; records are immutable."""
        return {
            "map": self._map,
            "marker": self._marker,
            "path": PathSpec(style=self._path_style, points=self._path_points),
            "style": self._styles,
        }
