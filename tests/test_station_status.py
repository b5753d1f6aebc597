"""Tests for the status endpoint fallback sequence and title parsing."""

from unittest.mock import patch

import pytest
import requests

from conftest import make_response
from station_status import (
    StationStatusError,
    extract_songtitle,
    fetch_station_status,
    parse_legacy_status,
    parse_shoutcast_xml,
    split_songtitle,
    status_endpoints,
)

BASE = "https://radio.example:8150"
JSON_A = "https://radio.example:8150/stats?json=1"
JSON_B = "https://radio.example:8150/status-json.xsl"
PLAIN_A = "http://radio.example:8150/stats?json=1"
LEGACY = "http://radio.example:8150/7.html"


def fake_upstream(responses):
    """requests.get replacement: dict url -> response or exception; unknown urls time out."""
    calls = []

    def _get(url, **kwargs):
        calls.append(url)
        result = responses.get(url, requests.exceptions.ConnectTimeout("timed out"))
        if isinstance(result, Exception):
            raise result
        return result

    return _get, calls


class TestStatusEndpoints:

    def test_order(self):
        urls = [e.url for e in status_endpoints(BASE)]
        assert urls == [JSON_A, JSON_B, PLAIN_A, LEGACY]

    def test_kinds(self):
        kinds = [e.kind for e in status_endpoints(BASE + "/")]
        assert kinds == ["json", "json", "json", "legacy"]


class TestFallbackSequence:

    def test_stops_at_first_success(self):
        get, calls = fake_upstream({JSON_A: make_response({"songtitle": "Queen - Bohemian Rhapsody"})})
        with patch("station_status.requests.get", side_effect=get):
            status = fetch_station_status(BASE, timeout=1, verify=False)

        assert status.songtitle == "Queen - Bohemian Rhapsody"
        assert status.endpoint == JSON_A
        assert status.payload == {"songtitle": "Queen - Bohemian Rhapsody"}
        assert calls == [JSON_A]

    def test_second_json_endpoint(self):
        icecast = {"icestats": {"source": {"title": "Daft Punk - One More Time"}}}
        get, calls = fake_upstream({
            JSON_A: make_response(status_code=404),
            JSON_B: make_response(icecast),
        })
        with patch("station_status.requests.get", side_effect=get):
            status = fetch_station_status(BASE, timeout=1, verify=False)

        assert status.songtitle == "Daft Punk - One More Time"
        assert status.payload == icecast
        assert calls == [JSON_A, JSON_B]

    def test_plain_http_fallback(self):
        get, calls = fake_upstream({
            JSON_A: requests.exceptions.SSLError("certificate verify failed"),
            JSON_B: make_response(text="<html>not json</html>"),
            PLAIN_A: make_response({"songtitle": "Marisa Monte - Ainda Bem"}),
        })
        with patch("station_status.requests.get", side_effect=get):
            status = fetch_station_status(BASE, timeout=1, verify=False)

        assert status.songtitle == "Marisa Monte - Ainda Bem"
        assert calls == [JSON_A, JSON_B, PLAIN_A]

    def test_legacy_line_is_last_resort(self):
        get, calls = fake_upstream({
            JSON_A: make_response({"songtitle": ""}),
            JSON_B: make_response({"icestats": {}}),
            PLAIN_A: make_response(status_code=500),
            LEGACY: make_response(text="<html><body>1,1,42,100,12,128,Tim Maia - Azul da Cor do Mar</body></html>"),
        })
        with patch("station_status.requests.get", side_effect=get):
            status = fetch_station_status(BASE, timeout=1, verify=False)

        assert status.songtitle == "Tim Maia - Azul da Cor do Mar"
        assert status.payload is None
        assert calls == [JSON_A, JSON_B, PLAIN_A, LEGACY]

    def test_all_endpoints_fail(self):
        get, calls = fake_upstream({LEGACY: make_response(text="<html><body>0,1</body></html>")})
        with patch("station_status.requests.get", side_effect=get):
            with pytest.raises(StationStatusError):
                fetch_station_status(BASE, timeout=1, verify=False)
        assert calls == [JSON_A, JSON_B, PLAIN_A, LEGACY]

    def test_shoutcast_xml_instead_of_json(self):
        xml = (
            "<SHOUTCASTSERVER><CURRENTLISTENERS>3</CURRENTLISTENERS>"
            "<SONGTITLE>Caetano Veloso - Sozinho</SONGTITLE></SHOUTCASTSERVER>"
        )
        get, calls = fake_upstream({JSON_A: make_response(text=xml)})
        with patch("station_status.requests.get", side_effect=get):
            status = fetch_station_status(BASE, timeout=1, verify=False)

        assert status.songtitle == "Caetano Veloso - Sozinho"
        assert status.payload is None

    def test_request_options(self):
        get, _ = fake_upstream({JSON_A: make_response({"songtitle": "A - B"})})
        with patch("station_status.requests.get", side_effect=get) as mocked:
            fetch_station_status(BASE, timeout=3, verify=True)

        kwargs = mocked.call_args.kwargs
        assert kwargs["timeout"] == 3
        assert kwargs["verify"] is True
        assert "Mozilla" in kwargs["headers"]["User-Agent"]


class TestExtractSongtitle:

    def test_shoutcast_v2_streams(self):
        payload = {"streams": [{"songtitle": ""}, {"songtitle": "Djavan - Oceano"}]}
        assert extract_songtitle(payload) == "Djavan - Oceano"

    def test_icecast_source_list(self):
        payload = {"icestats": {"source": [{"listeners": 0}, {"title": "Lulu Santos - Tempos Modernos"}]}}
        assert extract_songtitle(payload) == "Lulu Santos - Tempos Modernos"

    def test_icecast_separate_artist(self):
        payload = {"icestats": {"source": {"artist": "Legião Urbana", "title": "Tempo Perdido"}}}
        assert extract_songtitle(payload) == "Legião Urbana - Tempo Perdido"

    def test_flat_artist_title(self):
        assert extract_songtitle({"artist": "Skank", "title": "Garota Nacional"}) == "Skank - Garota Nacional"

    def test_unknown_shapes(self):
        assert extract_songtitle({"status": "ok"}) is None
        assert extract_songtitle(["songtitle"]) is None
        assert extract_songtitle(None) is None


class TestLegacyParsing:

    def test_seventh_field(self):
        assert parse_legacy_status("1,1,10,100,4,128,Artist - Song") == "Artist - Song"

    def test_title_with_commas(self):
        line = "<html><body>1,1,10,100,4,128,Earth, Wind & Fire - September</body></html>"
        assert parse_legacy_status(line) == "Earth, Wind & Fire - September"

    def test_too_few_fields(self):
        assert parse_legacy_status("<html><body>1,1,10</body></html>") is None
        assert parse_legacy_status("") is None

    def test_xml_without_server_element(self):
        assert parse_shoutcast_xml("<html></html>") is None


class TestSplitSongtitle:

    def test_artist_and_title(self):
        assert split_songtitle("Gilberto Gil - Aquele Abraço") == ("Gilberto Gil", "Aquele Abraço")

    def test_title_keeps_extra_separators(self):
        assert split_songtitle("Artist - Song - Live") == ("Artist", "Song - Live")

    def test_without_separator(self):
        assert split_songtitle("Vinheta da Rádio") == ("Vinheta da Rádio", "Vinheta da Rádio")
        assert split_songtitle("  Vinheta ") == ("Vinheta", "Vinheta")

    def test_blank_title_falls_back_to_station_name(self):
        assert split_songtitle("   ") == ("SoundPop", "")

    def test_html_entities(self):
        assert split_songtitle("Simon &amp; Garfunkel - The Boxer") == ("Simon & Garfunkel", "The Boxer")

    def test_empty_artist(self):
        assert split_songtitle(" - Song") == ("SoundPop", "Song")
