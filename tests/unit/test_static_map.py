import pathlib
import sys
from urllib.parse import parse_qs, urlsplit

import pytest

# Ensure src/ is importable
REPO_ROOT = pathlib.Path(__file__).resolve().parents[2]
SRC_DIR = REPO_ROOT / "src"
sys.path.append(str(SRC_DIR))

import static_map as sm  # type: ignore
from map_errors import (  # type: ignore
    MissingApiKeyError,
    MissingRequiredParameterError,
    ValidationError,
)


CONFIG = str(REPO_ROOT / "config" / "config.yml")


def query(url):
    parts = urlsplit(url)
    return parse_qs(parts.query, keep_blank_values=True)


def raw_pairs(url):
    return urlsplit(url).query.split("&")


def test_location_with_defaults_exact_url():
    client = sm.StaticMapClient("K")
    result = client.location("Seattle, WA")
    assert result.ok
    assert result.value == (
        "https://maps.googleapis.com/maps/api/staticmap?"
        "size=600x300&zoom=14&scale=1&format=png&maptype=roadmap"
        "&center=Seattle%2C+WA&key=K"
    )
    for absent in ("language=", "region=", "heading=", "pitch="):
        assert absent not in result.value


def test_location_round_trip_recovers_defaults():
    url = sm.StaticMapClient("K").location("0,0").unwrap()
    assert query(url) == {
        "size": ["600x300"],
        "zoom": ["14"],
        "scale": ["1"],
        "format": ["png"],
        "maptype": ["roadmap"],
        "center": ["0,0"],
        "key": ["K"],
    }


def test_location_accepts_lat_lng_pair():
    url = sm.StaticMapClient("K").location((47.6062, -122.3321)).unwrap()
    assert query(url)["center"] == ["47.6062,-122.3321"]


@pytest.mark.parametrize("width,height", [(1, 1), (640, 640), (1280, 50)])
def test_size_appears_exactly_once(width, height):
    client = sm.StaticMapClient("K")
    client.options.set_size(width, height)
    pairs = raw_pairs(client.location("Paris").unwrap())
    assert pairs.count(f"size={width}x{height}") == 1
    assert sum(1 for p in pairs if p.startswith("size=")) == 1


def test_set_language_region_heading_pitch_appear_when_set():
    client = sm.StaticMapClient("K")
    client.options.set_language("es").set_region("MX").set_heading(90).set_pitch(-10.5)
    q = query(client.location("Mexico City").unwrap())
    assert q["language"] == ["es"]
    assert q["region"] == ["MX"]
    assert q["heading"] == ["90"]
    assert q["pitch"] == ["-10.5"]


def test_key_is_always_last():
    client = sm.StaticMapClient("K")
    url = client.styled([{"feature": "water", "rules": {"color": "0x000000"}}]).unwrap()
    assert raw_pairs(url)[-1] == "key=K"


def test_markers_repeat_parameter_per_group():
    client = sm.StaticMapClient("K")
    url = client.markers(
        [
            {"style": {"color": "red", "label": "A"}, "locations": ["Seattle, WA"]},
            {"locations": ["Tacoma, WA"]},
        ]
    ).unwrap()

    assert query(url)["markers"] == ["color:red|label:A|Seattle, WA", "Tacoma, WA"]
    assert "markers=color%3Ared%7Clabel%3AA%7CSeattle%2C+WA" in raw_pairs(url)
    assert "markers=Tacoma%2C+WA" in raw_pairs(url)


def test_markers_use_stored_style_as_base():
    client = sm.StaticMapClient("K")
    client.options.set_marker_style({"color": "blue", "size": "mid"})
    url = client.markers(
        [
            {"locations": "X"},
            {"style": {"color": "red"}, "locations": ["Y", (47.5, -122.25)]},
        ]
    ).unwrap()
    assert query(url)["markers"] == [
        "size:mid|color:blue|X",
        "size:mid|color:red|Y|47.5,-122.25",
    ]
    assert client.options.get_marker_style() == {"size": "mid", "color": "blue"}


def test_marker_without_locations_contributes_nothing():
    client = sm.StaticMapClient("K")
    url = client.markers([{"style": {"color": "red"}}]).unwrap()
    assert "markers" not in query(url)


def test_path_merges_stored_style_override_and_points():
    client = sm.StaticMapClient("K")
    client.options.set_path_style({"weight": 5, "color": "0x0000ff"})
    client.options.add_path_points(["Seattle, WA"])

    url = client.path(["Tacoma, WA"], {"path_style": {"geodesic": True}}).unwrap()
    assert query(url)["path"] == [
        "weight:5|color:0x0000ff|geodesic:true|Seattle, WA|Tacoma, WA"
    ]
    # Build calls do not mutate the store
    assert client.options.get_path_points() == ["Seattle, WA"]
    assert "geodesic" not in client.options.get_path_style()


def test_path_without_style():
    url = sm.StaticMapClient("K").path(["40.737102,-73.990318", "40.749825,-73.987963"]).unwrap()
    assert query(url)["path"] == ["40.737102,-73.990318|40.749825,-73.987963"]


def test_path_style_override_is_validated():
    result = sm.StaticMapClient("K").path(["A", "B"], {"path_style": {"weight": -1}})
    assert not result.ok
    assert isinstance(result.error, ValidationError)


def test_styled_uses_indexed_parameters():
    client = sm.StaticMapClient("K")
    url = client.styled(
        [
            {"feature": "water", "element": "geometry", "rules": {"color": "0x2c4d58"}},
            {"feature": "landscape", "rules": {"color": "0xeaead9"}},
        ],
        {"center": "Seattle, WA"},
    ).unwrap()

    q = query(url)
    assert q["style[0]"] == ["feature:water|element:geometry|color:0x2c4d58"]
    assert q["style[1]"] == ["feature:landscape|color:0xeaead9"]
    assert q["center"] == ["Seattle, WA"]
    assert "style[0]=feature%3Awater%7Celement%3Ageometry%7Ccolor%3A0x2c4d58" in raw_pairs(url)


def test_styled_skips_empty_rules_and_appends_after_stored_styles():
    client = sm.StaticMapClient("K")
    client.options.add_style({"feature": "poi", "rules": {"visibility": "off"}})
    url = client.styled([{"rules": {}}, {"element": "labels", "rules": {"visibility": "simplified"}}]).unwrap()
    q = query(url)
    assert q["style[0]"] == ["feature:poi|visibility:off"]
    assert "style[1]" not in q
    assert q["style[2]"] == ["element:labels|visibility:simplified"]
    assert len(client.options.get_styles()) == 1


@pytest.mark.parametrize(
    "call",
    [
        lambda c: c.location("Seattle, WA"),
        lambda c: c.markers([{"locations": ["Seattle, WA"]}]),
        lambda c: c.path(["A", "B"]),
        lambda c: c.styled([{"feature": "water", "rules": {"color": "0x000000"}}]),
    ],
)
def test_missing_api_key_for_every_build_operation(call):
    result = call(sm.StaticMapClient())
    assert not result.ok
    assert result.value is None
    assert isinstance(result.error, MissingApiKeyError)
    with pytest.raises(MissingApiKeyError):
        result.unwrap()


def test_missing_size_is_reported():
    result = sm.StaticMapClient("K").location("Seattle, WA", {"size": ""})
    assert isinstance(result.error, MissingRequiredParameterError)
    assert result.error.context["parameter"] == "size"


def test_overrides_take_precedence_over_stored_options_without_mutating():
    client = sm.StaticMapClient("K")
    client.options.set_zoom(5)
    url = client.location("Seattle, WA", {"zoom": 10, "maptype": "satellite", "center": "ignored"}).unwrap()
    q = query(url)
    assert q["zoom"] == ["10"]
    assert q["maptype"] == ["satellite"]
    # Computed center wins over an override
    assert q["center"] == ["Seattle, WA"]
    assert client.options.get_zoom() == 5


def test_invalid_or_unknown_override_is_a_validation_result():
    client = sm.StaticMapClient("K")
    bad_zoom = client.location("Seattle, WA", {"zoom": 30})
    assert isinstance(bad_zoom.error, ValidationError)
    assert bad_zoom.error.context["field"] == "zoom"

    unknown = client.location("Seattle, WA", {"visible": "Tacoma"})
    assert isinstance(unknown.error, ValidationError)


def test_reset_and_reapply_yields_identical_url():
    def configure(client):
        client.options.set_size(400, 400).set_zoom(12).set_map_type("terrain").set_language("de")
        client.options.add_style({"feature": "road", "rules": {"color": "0xffffff"}})

    client = sm.StaticMapClient("K")
    configure(client)
    first_url = client.styled([], {"center": "Berlin"}).unwrap()

    client.options.reset_all_params()
    configure(client)
    assert client.styled([], {"center": "Berlin"}).unwrap() == first_url


def test_custom_endpoint_and_api_key_setter():
    client = sm.StaticMapClient(endpoint="https://example.test/staticmap")
    assert client.set_api_key("abc") is client
    assert client.get_api_key() == "abc"
    assert client.location("X").unwrap().startswith("https://example.test/staticmap?")


@pytest.mark.parametrize(
    "call",
    [
        lambda c: c.location(5),
        lambda c: c.markers(None),
        lambda c: c.markers("Seattle, WA"),
        lambda c: c.markers([{"locations": 5}]),
        lambda c: c.markers([5]),
        lambda c: c.path(5),
        lambda c: c.styled(None),
        lambda c: c.styled({"feature": "water"}),
        lambda c: c.styled([None]),
    ],
)
def test_malformed_call_data_is_a_validation_result(call):
    result = call(sm.StaticMapClient("K"))
    assert not result.ok
    assert isinstance(result.error, ValidationError)


def test_non_finite_path_weight_override_is_a_validation_result():
    client = sm.StaticMapClient("K")
    for weight in (float("nan"), float("inf")):
        result = client.path(["A", "B"], {"path_style": {"weight": weight}})
        assert isinstance(result.error, ValidationError)
        assert result.error.context["field"] == "path weight"


def test_style_rule_with_unset_value_is_dropped():
    url = sm.StaticMapClient("K").styled(
        [{"feature": "water", "rules": {"color": None, "visibility": "off"}}]
    ).unwrap()
    assert query(url)["style[0]"] == ["feature:water|visibility:off"]
    assert "color%3A" not in url


# ------------------------------
# CLI
# ------------------------------


def test_cli_location(capsys):
    code = sm.main(["--config", CONFIG, "--api-key", "K", "--zoom", "10", "location", "Seattle, WA"])
    assert code == 0
    out = capsys.readouterr().out.strip()
    assert out == (
        "https://maps.googleapis.com/maps/api/staticmap?"
        "size=600x300&zoom=10&scale=1&format=png&maptype=roadmap"
        "&center=Seattle%2C+WA&key=K"
    )


def test_cli_markers_and_img_tag(capsys):
    code = sm.main(
        [
            "--config", CONFIG, "--api-key", "K", "--img-tag",
            "markers", "Seattle, WA", "Tacoma, WA", "--color", "red", "--label", "A",
        ]
    )
    assert code == 0
    out = capsys.readouterr().out.strip()
    assert out.startswith('<img src="https://maps.googleapis.com/maps/api/staticmap?')
    assert "markers=color%3Ared%7Clabel%3AA%7CSeattle%2C+WA%7CTacoma%2C+WA&amp;key=K" in out
    assert out.endswith('alt="Google Map" loading="lazy">')


def test_cli_styled_from_yaml(tmp_path, capsys):
    styles = tmp_path / "styles.yml"
    styles.write_text(
        """
styles:
  - feature: water
    element: geometry
    rules:
      color: "0x2c4d58"
  - feature: landscape
    rules:
      color: "0xeaead9"
""",
        encoding="utf-8",
    )
    code = sm.main(
        ["--config", CONFIG, "--api-key", "K", "styled", "--styles", str(styles), "--center", "Seattle, WA"]
    )
    assert code == 0
    q = query(capsys.readouterr().out.strip())
    assert q["style[0]"] == ["feature:water|element:geometry|color:0x2c4d58"]
    assert q["style[1]"] == ["feature:landscape|color:0xeaead9"]
    assert q["center"] == ["Seattle, WA"]


def test_cli_path(capsys):
    code = sm.main(
        ["--config", CONFIG, "--api-key", "K", "path", "A", "B", "--weight", "3", "--geodesic"]
    )
    assert code == 0
    q = query(capsys.readouterr().out.strip())
    assert q["path"] == ["weight:3|geodesic:true|A|B"]


def test_cli_missing_key(monkeypatch, capsys):
    monkeypatch.delenv("GOOGLE_MAPS_API_KEY", raising=False)
    code = sm.main(["--config", CONFIG, "location", "Seattle, WA"])
    assert code == 1
    captured = capsys.readouterr()
    assert "WARNING: GOOGLE_MAPS_API_KEY is not set" in captured.out
    assert "API key is required" in captured.err


def test_cli_invalid_option(capsys):
    code = sm.main(["--config", CONFIG, "--api-key", "K", "--zoom", "30", "location", "X"])
    assert code == 2
    assert "Invalid zoom 30" in capsys.readouterr().err


def test_cli_missing_styles_file(tmp_path, capsys):
    code = sm.main(
        ["--config", CONFIG, "--api-key", "K", "styled", "--styles", str(tmp_path / "nope.yml")]
    )
    assert code == 1
    assert "ERROR: cannot read styles file" in capsys.readouterr().err


def test_cli_malformed_styles_yaml(tmp_path, capsys):
    styles = tmp_path / "styles.yml"
    styles.write_text("styles: [unclosed\n", encoding="utf-8")
    code = sm.main(["--config", CONFIG, "--api-key", "K", "styled", "--styles", str(styles)])
    assert code == 1
    assert "ERROR: cannot read styles file" in capsys.readouterr().err


def test_cli_styles_file_without_a_list(tmp_path, capsys):
    styles = tmp_path / "styles.yml"
    styles.write_text("5\n", encoding="utf-8")
    code = sm.main(["--config", CONFIG, "--api-key", "K", "styled", "--styles", str(styles)])
    assert code == 1
    assert "Invalid styles 5" in capsys.readouterr().err
