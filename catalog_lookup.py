"""
Cover art and lyrics lookups against public music catalogs.

iTunes is the primary cover source with Deezer as a fallback; lyrics come
from lyrics.ovh. Every lookup degrades to a placeholder instead of raising.
"""

import html
import logging
import urllib.parse
from dataclasses import dataclass
from typing import Optional

import requests

import soundpop_config as config
from station_status import TITLE_SEPARATOR, split_songtitle

logger = logging.getLogger(__name__)

LYRICS_NOT_FOUND = "Letra não encontrada para esta música. 😕"
LYRICS_ERROR = "Erro ao carregar a letra. Tente novamente mais tarde. 🛠️"


@dataclass
class LyricsResult:
    text: str
    found: bool


def _itunes_search(term: str, artwork_size: str) -> Optional[str]:
    response = requests.get(
        config.ITUNES_SEARCH_URL,
        params={"term": term, "media": "music", "limit": 1},
        timeout=config.CATALOG_TIMEOUT,
    )
    response.raise_for_status()
    results = response.json().get("results") or []
    if not results:
        return None
    artwork = results[0].get("artworkUrl100")
    if not artwork:
        return None
    return artwork.replace("100x100", artwork_size)


def _deezer_search(artist: str, title: str) -> Optional[str]:
    response = requests.get(
        config.DEEZER_SEARCH_URL,
        params={"q": f'artist:"{artist}" track:"{title}"', "limit": 1},
        timeout=config.CATALOG_TIMEOUT,
    )
    response.raise_for_status()
    data = response.json().get("data") or []
    if not data:
        return None
    return (data[0].get("album") or {}).get("cover_xl")


def find_cover(artist: str, title: str) -> Optional[str]:
    """Return a 600x600 cover URL from iTunes, falling back to Deezer's cover_xl."""
    try:
        cover = _itunes_search(f"{artist} {title}", "600x600")
    except (requests.exceptions.RequestException, ValueError) as e:
        logger.error(f"Error fetching cover for '{artist} - {title}': {e}")
        return None
    if cover:
        return cover

    try:
        return _deezer_search(artist, title)
    except (requests.exceptions.RequestException, ValueError) as e:
        logger.debug(f"Deezer fallback failed for '{artist} - {title}': {e}")
        return None


def fetch_lyrics(artist: str, title: str) -> LyricsResult:
    url = "{}/{}/{}".format(
        config.LYRICS_URL,
        urllib.parse.quote(artist, safe=""),
        urllib.parse.quote(title, safe=""),
    )
    try:
        response = requests.get(url, timeout=config.CATALOG_TIMEOUT)
        data = response.json()
    except (requests.exceptions.RequestException, ValueError) as e:
        logger.error(f"Lyrics fetch error for '{artist} - {title}': {e}")
        return LyricsResult(LYRICS_ERROR, False)

    lyrics = data.get("lyrics") if isinstance(data, dict) else None
    if lyrics:
        return LyricsResult(lyrics, True)
    return LyricsResult(LYRICS_NOT_FOUND, False)


def lookup_track(songtitle: str) -> dict:
    """Artist, title and iTunes cover (300x300) for a raw "Artist - Title" string."""
    if TITLE_SEPARATOR in songtitle:
        artist, title = split_songtitle(songtitle, default_artist="")
    else:
        artist, title = "", html.unescape(songtitle).strip()
    try:
        cover = _itunes_search(songtitle, "300x300")
    except (requests.exceptions.RequestException, ValueError) as e:
        logger.warning(f"iTunes lookup failed for '{songtitle}': {e}")
        cover = None
    return {"artist": artist, "title": title, "cover": cover}
