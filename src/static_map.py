"""Google Maps Static API URL builder.

Four request shapes share one serializer:
    * location(location)  -> center=<address | lat,lng>
    * markers(markers)    -> markers=<...> repeated once per marker group
    * path(points)        -> path=<style pairs|points>, one per request
    * styled(styles)      -> style[0]=<...>&style[1]=<...> (indexed)

Parameter precedence, lowest to highest:
    built-in defaults < stored options < call overrides < computed fields < key

Every build call returns a `Result`; it never mutates the option store.
Empty values are omitted from the query string (unset language/region vanish).

CLI:
    python src/static_map.py --config config/config.yml location "Seattle, WA"
    python src/static_map.py markers "Seattle, WA" "Tacoma, WA" --color red --label A
    python src/static_map.py path "47.6,-122.3" "47.2,-122.4" --weight 4 --geodesic
    python src/static_map.py styled --styles styles.yml --center "Seattle, WA"
"""

from __future__ import annotations

import argparse
import sys
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union
from urllib.parse import quote_plus

import yaml

import config_loader  # type: ignore
import http_fetch  # type: ignore
import image_tag  # type: ignore
import media_store  # type: ignore
from map_errors import (  # type: ignore
    MissingApiKeyError,
    MissingRequiredParameterError,
    Result,
    ValidationError,
)
from map_options import (  # type: ignore
    MarkerSpec,
    OptionStore,
    PathSpec,
    StyleRule,
    as_items,
    as_locations,
    format_location,
)


API_ENDPOINT = "https://maps.googleapis.com/maps/api/staticmap"

ParamValue = Union[str, List[str]]


class StaticMapClient:
    def __init__(
        self,
        api_key: str = "",
        options: Optional[OptionStore] = None,
        endpoint: str = API_ENDPOINT,
    ) -> None:
        self._api_key = api_key or ""
        self.options = options if options is not None else OptionStore()
        self.endpoint = endpoint

    @classmethod
    def from_config(cls, cfg: config_loader.Config) -> "StaticMapClient":
        return cls(
            api_key=cfg.api.get_google_maps_api_key() or "",
            options=OptionStore(cfg.map_defaults.to_map_options()),
            endpoint=cfg.api.endpoint,
        )

    def set_api_key(self, api_key: str) -> "StaticMapClient":
        self._api_key = api_key or ""
        return self

    def get_api_key(self) -> str:
        return self._api_key

    # ------------------------------
    # Build operations
    # ------------------------------

    def location(
        self, location: Any, overrides: Optional[Mapping[str, Any]] = None
    ) -> Result[str]:
        return self._build(overrides, lambda snapshot: {"center": format_location(location)})

    def markers(
        self, markers: Iterable[Any], overrides: Optional[Mapping[str, Any]] = None
    ) -> Result[str]:
        def compute(snapshot: Dict[str, Any]) -> Dict[str, ParamValue]:
            values: List[str] = []
            for marker in as_items(markers, "markers"):
                value = MarkerSpec.from_value(marker).to_param(snapshot["marker"])
                if value:
                    values.append(value)
            return {"markers": values} if values else {}

        return self._build(overrides, compute)

    def path(
        self, points: Iterable[Any], overrides: Optional[Mapping[str, Any]] = None
    ) -> Result[str]:
        overrides = dict(overrides or {})
        path_style = overrides.pop("path_style", None)

        def compute(snapshot: Dict[str, Any]) -> Dict[str, ParamValue]:
            stored: PathSpec = snapshot["path"]
            spec = PathSpec(
                style=stored.style.merged(path_style),
                points=stored.points + as_locations(points),
            )
            return {"path": spec.to_param()}

        return self._build(overrides, compute)

    def styled(
        self, styles: Iterable[Any], overrides: Optional[Mapping[str, Any]] = None
    ) -> Result[str]:
        def compute(snapshot: Dict[str, Any]) -> Dict[str, ParamValue]:
            rules = list(snapshot["style"]) + [
                StyleRule.from_value(s) for s in as_items(styles, "styles")
            ]
            params: Dict[str, ParamValue] = {}
            for index, rule in enumerate(rules):
                value = rule.to_param()
                if value:
                    params[f"style[{index}]"] = value
            return params

        return self._build(overrides, compute)

    # ------------------------------
    # Serialization
    # ------------------------------

    def _build(
        self,
        overrides: Optional[Mapping[str, Any]],
        compute: Callable[[Dict[str, Any]], Dict[str, ParamValue]],
    ) -> Result[str]:
        if not self._api_key:
            return Result.failure(MissingApiKeyError())

        snapshot = self.options.get_all_params()
        overrides = dict(overrides or {})
        center = overrides.pop("center", None)

        try:
            params: Dict[str, ParamValue] = dict(
                snapshot["map"].with_overrides(overrides).to_params()
            )
            if center is not None:
                params["center"] = format_location(center)
            params.update(compute(snapshot))
        except ValidationError as e:
            return Result.failure(e)

        if not params.get("size"):
            return Result.failure(MissingRequiredParameterError("size"))

        params["key"] = self._api_key
        return Result.success(self._generate_url(params))

    def _generate_url(self, params: Mapping[str, ParamValue]) -> str:
        pairs: List[str] = []
        for key, value in params.items():
            if isinstance(value, list):
                for item in value:
                    pairs.append(f"{key}={quote_plus(item)}")
            elif value != "":
                pairs.append(f"{key}={quote_plus(value)}")
        return f"{self.endpoint}?{'&'.join(pairs)}"


# ------------------------------
# CLI
# ------------------------------


def _size_arg(value: str) -> tuple:
    try:
        width, height = (int(p) for p in value.lower().split("x"))
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected WIDTHxHEIGHT, got {value!r}")
    return width, height


def _apply_map_args(store: OptionStore, args: argparse.Namespace) -> None:
    if args.size:
        store.set_size(*args.size)
    if args.zoom is not None:
        store.set_zoom(args.zoom)
    if args.scale is not None:
        store.set_scale(args.scale)
    if args.format:
        store.set_format(args.format)
    if args.maptype:
        store.set_map_type(args.maptype)
    if args.language:
        store.set_language(args.language)
    if args.region:
        store.set_region(args.region)
    if args.heading is not None:
        store.set_heading(args.heading)
    if args.pitch is not None:
        store.set_pitch(args.pitch)


def _load_styles(path: str) -> Any:
    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or []
    if isinstance(raw, dict):
        raw = raw.get("styles", [])
    return raw


def _dispatch(client: StaticMapClient, args: argparse.Namespace) -> Result[str]:
    overrides: Dict[str, Any] = {}
    if getattr(args, "center", None):
        overrides["center"] = args.center

    if args.command == "location":
        return client.location(args.location)
    if args.command == "markers":
        style = {
            "color": args.color,
            "label": args.label,
            "size": args.marker_size,
            "icon": args.icon,
        }
        return client.markers(
            [{"style": style, "locations": args.locations}], overrides
        )
    if args.command == "path":
        overrides["path_style"] = {
            "weight": args.weight,
            "color": args.color,
            "fillcolor": args.fillcolor,
            "geodesic": args.geodesic or None,
        }
        return client.path(args.points, overrides)
    return client.styled(_load_styles(args.styles), overrides)


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Build Google Maps Static API URLs.")
    p.add_argument(
        "--config",
        required=False,
        default="config/config.yml",
        help="Path to config/config.yml (default: config/config.yml)",
    )
    p.add_argument(
        "--api-key",
        required=False,
        help="API key (default: read from the env var named in the config)",
    )
    p.add_argument("--size", type=_size_arg, help="Map size as WIDTHxHEIGHT")
    p.add_argument("--zoom", type=int, help="Zoom level (0-21)")
    p.add_argument("--scale", type=int, help="Scale (1, 2 or 4)")
    p.add_argument("--format", help="Image format (png, png8, png32, gif, jpg, jpg-baseline)")
    p.add_argument("--maptype", help="Map type (roadmap, satellite, terrain, hybrid)")
    p.add_argument("--language", help="Label language code")
    p.add_argument("--region", help="Region bias code")
    p.add_argument("--heading", type=float, help="Heading in degrees (0-360)")
    p.add_argument("--pitch", type=float, help="Pitch in degrees (-90 to 90)")
    p.add_argument(
        "--check-key",
        action="store_true",
        help="Verify the API key against the live endpoint before printing",
    )
    p.add_argument("--img-tag", action="store_true", help="Print an <img> tag instead of the URL")
    p.add_argument(
        "--save", action="store_true", help="Download the map into the configured media directory"
    )
    p.add_argument("--save-dir", help="Download the map into this media directory instead")
    p.add_argument(
        "--log",
        required=False,
        default="data/logs/static_map_api_log.jsonl",
        help="Path to JSONL API log (default: data/logs/static_map_api_log.jsonl)",
    )

    sub = p.add_subparsers(dest="command", required=True)

    loc = sub.add_parser("location", help="Map centered on an address or lat,lng")
    loc.add_argument("location")

    mk = sub.add_parser("markers", help="Map with one marker group")
    mk.add_argument("locations", nargs="+")
    mk.add_argument("--color")
    mk.add_argument("--label")
    mk.add_argument("--marker-size", choices=["tiny", "mid", "small"])
    mk.add_argument("--icon")
    mk.add_argument("--center")

    pa = sub.add_parser("path", help="Map with one path")
    pa.add_argument("points", nargs="+")
    pa.add_argument("--weight", type=float)
    pa.add_argument("--color")
    pa.add_argument("--fillcolor")
    pa.add_argument("--geodesic", action="store_true")
    pa.add_argument("--center")

    st = sub.add_parser("styled", help="Map with custom style rules")
    st.add_argument("--styles", required=True, help="YAML file with a list of style rules")
    st.add_argument("--center")

    return p


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    cfg = config_loader.load_config(args.config)

    client = StaticMapClient.from_config(cfg)
    if args.api_key:
        client.set_api_key(args.api_key)
    if not client.get_api_key():
        print(
            f"WARNING: {cfg.api.google_maps_api_key_env} is not set; URLs cannot be built.",
            flush=True,
        )

    try:
        _apply_map_args(client.options, args)
    except ValidationError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2

    try:
        result = _dispatch(client, args)
    except (OSError, yaml.YAMLError) as e:
        print(f"ERROR: cannot read styles file: {e}", file=sys.stderr)
        return 1
    if not result.ok:
        print(f"ERROR: {result.error}", file=sys.stderr)
        return 1
    url = result.value

    logger = None
    if args.check_key or args.save or args.save_dir:
        logger = http_fetch.JsonlLogger(args.log)
    if args.check_key:
        checked = http_fetch.validate_api_key(
            client, timeout=cfg.http.timeout_seconds, logger=logger
        )
        if not checked.ok:
            print(f"ERROR: {checked.error}", file=sys.stderr)
            return 1

    if args.save or args.save_dir:
        saved = media_store.save_to_folder(
            url,
            base_dir=args.save_dir or cfg.media.base_dir,
            args={
                "folder": cfg.media.folder,
                "title": cfg.media.title,
                "alt": cfg.media.alt,
            },
            timeout=cfg.http.timeout_seconds,
            logger=logger,
        )
        if not saved.ok:
            print(f"ERROR: {saved.error}", file=sys.stderr)
            return 1
        print(f"Saved map -> {saved.value.path}")
    elif args.img_tag:
        print(
            image_tag.generate_image_tag(
                url, {"alt": cfg.image_tag.alt, "loading": cfg.image_tag.loading}
            )
        )
    else:
        print(url)
    return 0


if __name__ == "__main__":
    sys.exit(main())
