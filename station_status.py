"""
Station Status Retriever
------------------------
Reads the "now playing" title from the station's Shoutcast/Icecast status
server. The provider exposes several historical endpoints with different
response shapes, so they are tried in a fixed order and the first one that
yields a song title wins:

1. JSON status endpoint (``/stats?json=1``)
2. Icecast JSON status endpoint (``/status-json.xsl``)
3. the first endpoint again over plain HTTP
4. the legacy ``/7.html`` status line (comma-separated, 7th field)
"""

import html
import logging
import urllib.parse
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

import requests
import urllib3
from bs4 import BeautifulSoup

import soundpop_config as config

logger = logging.getLogger(__name__)

# Shoutcast v1 only answers 7.html to browser user agents, everything else gets the audio stream
_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
                  "AppleWebKit/537.36 (KHTML, like Gecko) "
                  "Chrome/120.0.0.0 Safari/537.36 SoundPopRadio/1.0",
    "Accept": "application/json, text/html, text/plain, */*",
    "Cache-Control": "no-cache",
}

LEGACY_FIELD_INDEX = 6  # 7th field: "Artist - Title"
TITLE_SEPARATOR = " - "


class StationStatusError(Exception):
    """Raised when no status endpoint produced a usable song title."""


@dataclass
class StatusEndpoint:
    url: str
    kind: str  # "json" or "legacy"


@dataclass
class StationStatus:
    songtitle: str
    endpoint: str
    payload: Optional[Any] = None  # upstream JSON document, if the endpoint answered with JSON


def _with_scheme(url: str, scheme: str) -> str:
    parsed = urllib.parse.urlsplit(url)
    return urllib.parse.urlunsplit((scheme,) + tuple(parsed[1:]))


def status_endpoints(base_url: str) -> List[StatusEndpoint]:
    """Return the status endpoints in the order they are tried."""
    base_url = base_url.rstrip("/")
    json_a = f"{base_url}/stats?json=1"
    return [
        StatusEndpoint(json_a, "json"),
        StatusEndpoint(f"{base_url}/status-json.xsl", "json"),
        StatusEndpoint(_with_scheme(json_a, "http"), "json"),
        StatusEndpoint(_with_scheme(f"{base_url}/7.html", "http"), "legacy"),
    ]


def _clean(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _icecast_title(source: Any) -> str:
    if isinstance(source, list):
        # Several mount points: first one that reports a title
        for entry in source:
            title = _icecast_title(entry)
            if title:
                return title
        return ""
    if not isinstance(source, dict):
        return ""
    title = _clean(source.get("title"))
    artist = _clean(source.get("artist"))
    if artist and title and TITLE_SEPARATOR not in title:
        return f"{artist}{TITLE_SEPARATOR}{title}"
    return title or _clean(source.get("yp_currently_playing"))


def extract_songtitle(payload: Any) -> Optional[str]:
    """
    Pull the "Artist - Title" string out of any known JSON status shape.

    Returns None when the document carries no title.
    """
    if not isinstance(payload, dict):
        return None

    # Shoutcast v1/v2: {"songtitle": "..."}
    songtitle = _clean(payload.get("songtitle"))
    if songtitle:
        return songtitle

    # Shoutcast v2 with several streams
    streams = payload.get("streams")
    if isinstance(streams, list):
        for stream in streams:
            if isinstance(stream, dict) and _clean(stream.get("songtitle")):
                return _clean(stream.get("songtitle"))

    # Icecast: {"icestats": {"source": {...} or [...]}}
    icestats = payload.get("icestats")
    if isinstance(icestats, dict):
        title = _icecast_title(icestats.get("source"))
        if title:
            return title

    # Flat {"artist": ..., "title": ...}
    title = _clean(payload.get("title"))
    artist = _clean(payload.get("artist"))
    if title:
        return f"{artist}{TITLE_SEPARATOR}{title}" if artist else title
    return None


def parse_shoutcast_xml(text: str) -> Optional[str]:
    """Read SONGTITLE from the XML document Shoutcast serves when it ignores ?json=1."""
    if not text or "SHOUTCASTSERVER" not in text:
        return None
    soup = BeautifulSoup(text, "lxml-xml")
    server = soup.find("SHOUTCASTSERVER")
    if server is None:
        return None
    node = server.find("SONGTITLE")
    if node is None:
        return None
    return _clean(node.text) or None


def parse_legacy_status(text: str) -> Optional[str]:
    """
    Parse the 7.html status line.

    The body looks like ``<html><body>1,1,45,100,12,128,Artist - Title</body></html>``;
    everything after the 6th comma is the title, so titles with commas survive.
    """
    if not text:
        return None
    line = BeautifulSoup(text, "lxml").get_text().strip()
    fields = line.split(",", LEGACY_FIELD_INDEX)
    if len(fields) <= LEGACY_FIELD_INDEX:
        return None
    return _clean(fields[LEGACY_FIELD_INDEX]) or None


def _read_endpoint(endpoint: StatusEndpoint, timeout: float, verify: bool) -> Optional[StationStatus]:
    response = requests.get(endpoint.url, headers=_HEADERS, timeout=timeout, verify=verify)
    response.raise_for_status()

    if endpoint.kind == "legacy":
        songtitle = parse_legacy_status(response.text)
        return StationStatus(songtitle, endpoint.url) if songtitle else None

    try:
        payload = response.json()
    except ValueError:
        songtitle = parse_shoutcast_xml(response.text)
        return StationStatus(songtitle, endpoint.url) if songtitle else None

    songtitle = extract_songtitle(payload)
    return StationStatus(songtitle, endpoint.url, payload) if songtitle else None


def fetch_station_status(base_url: Optional[str] = None, timeout: Optional[float] = None,
                         verify: Optional[bool] = None) -> StationStatus:
    """
    Walk the status endpoints in order and return the first usable answer.

    Raises StationStatusError when every endpoint failed.
    """
    base_url = base_url or config.STATUS_BASE_URL
    timeout = config.STATUS_TIMEOUT if timeout is None else timeout
    verify = config.STATUS_VERIFY_TLS if verify is None else verify

    if not verify:
        urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

    for endpoint in status_endpoints(base_url):
        try:
            status = _read_endpoint(endpoint, timeout, verify)
        except requests.exceptions.RequestException as e:
            logger.debug(f"Status endpoint {endpoint.url} failed: {e}")
            continue
        if status:
            logger.debug(f"Now playing from {endpoint.url}: {status.songtitle}")
            return status
        logger.debug(f"Status endpoint {endpoint.url} returned no song title")

    logger.warning(f"No status endpoint of {base_url} returned a song title")
    raise StationStatusError("Failed to fetch metadata")


def split_songtitle(songtitle: str, default_artist: str = config.DEFAULT_ARTIST) -> Tuple[str, str]:
    """
    Split "Artist - Title" into (artist, title); the title may itself contain " - ".

    Without a separator the whole string is used as both artist and title.
    """
    songtitle = html.unescape(songtitle or "")
    artist, sep, title = songtitle.partition(TITLE_SEPARATOR)
    if not sep:
        return songtitle.strip() or default_artist, songtitle.strip()
    artist = artist.strip() or default_artist
    title = title.strip() or songtitle.strip()
    return artist, title
