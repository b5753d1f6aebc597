"""
Player state: now-playing metadata, like flag and recent history.

The like flag and history are kept in a small key/value store with the same
semantics as the browser's localStorage (string keys, string values), saved
as a JSON file. ``MetadataPoller`` refreshes the metadata on a fixed interval.
"""

import json
import logging
import os
import tempfile
import threading
import time
from dataclasses import asdict, dataclass, replace
from typing import Callable, Dict, List, Optional

import soundpop_config as config
from catalog_lookup import fetch_lyrics, find_cover
from station_status import fetch_station_status, split_songtitle
from trivia import fetch_trivia

logger = logging.getLogger(__name__)


@dataclass
class TrackMetadata:
    songtitle: str
    artist: Optional[str] = None
    cover: Optional[str] = None
    status: str = "offline"  # "online" or "offline"


@dataclass
class HistoryItem:
    songtitle: str
    artist: str
    cover: Optional[str]
    timestamp: int  # milliseconds since the epoch

    @classmethod
    def from_dict(cls, data: Dict) -> "HistoryItem":
        return cls(
            songtitle=str(data["songtitle"]),
            artist=str(data.get("artist", "")),
            cover=data.get("cover"),
            timestamp=int(data.get("timestamp", 0)),
        )


class LocalStorage:
    """
    localStorage-like string store persisted to a JSON file.

    Usage:
        storage = LocalStorage("/tmp/radio.json")
        storage.set_item("radio_liked", "true")
        storage.get_item("radio_liked")  # "true"
    """

    def __init__(self, path: str):
        self.path = path
        self._lock = threading.Lock()
        self._items: Dict[str, str] = self._read()

    def _read(self) -> Dict[str, str]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Could not read storage file {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.error(f"Storage file {self.path} does not hold an object, ignoring it")
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def _write(self) -> bool:
        """Atomically save all items; on failure the in-memory values are kept."""
        directory = os.path.dirname(os.path.abspath(self.path))
        tmp = None
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=directory, prefix=".storage-", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self._items, f, ensure_ascii=False, indent=2)
            os.replace(tmp, self.path)
            return True
        except OSError as e:
            logger.error(f"Could not write storage file {self.path}: {e}")
            if tmp and os.path.exists(tmp):
                os.remove(tmp)
            return False

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            self._items[key] = str(value)
            self._write()

    def remove_item(self, key: str) -> None:
        with self._lock:
            if self._items.pop(key, None) is not None:
                self._write()


def push_history(history: List[HistoryItem], item: HistoryItem,
                 limit: int = config.HISTORY_LIMIT) -> List[HistoryItem]:
    """Prepend ``item`` unless it repeats the newest entry; keep at most ``limit`` entries."""
    if history:
        last = history[0]
        if last.songtitle == item.songtitle and last.artist == item.artist:
            return history
    return [item] + history[:limit - 1]


class RadioPlayer:
    """Now-playing state for the single station this server plays."""

    def __init__(self, storage: LocalStorage, history_limit: int = config.HISTORY_LIMIT):
        self.storage = storage
        self.history_limit = history_limit
        self.metadata = TrackMetadata(songtitle=config.LOADING_TITLE)
        self.liked = False
        self.history: List[HistoryItem] = []
        self._lyrics: Optional[str] = None
        self._trivia: Optional[str] = None
        self._lock = threading.Lock()

    def load(self) -> None:
        """Restore the like flag and history from storage."""
        self.liked = self.storage.get_item(config.LIKED_KEY) == "true"

        saved = self.storage.get_item(config.HISTORY_KEY)
        if not saved:
            return
        try:
            self.history = [HistoryItem.from_dict(e) for e in json.loads(saved)][:self.history_limit]
        except (ValueError, TypeError, KeyError) as e:
            logger.error(f"Failed to parse history: {e}")

    def toggle_like(self) -> bool:
        with self._lock:
            self.liked = not self.liked
            self.storage.set_item(config.LIKED_KEY, "true" if self.liked else "false")
            return self.liked

    def refresh(self) -> TrackMetadata:
        """Poll the station once and update metadata, cover and history."""
        try:
            status = fetch_station_status()
            artist, title = split_songtitle(status.songtitle)
            cover = find_cover(artist, title)
        except Exception as e:
            logger.error(f"Metadata fetch error: {e}")
            with self._lock:
                self.metadata = replace(
                    self.metadata,
                    songtitle=config.ERROR_TITLE,
                    artist=config.DEFAULT_ARTIST,
                    status="online",
                )
                return self.metadata

        with self._lock:
            if (title, artist) != (self.metadata.songtitle, self.metadata.artist):
                self._lyrics = None
                self._trivia = None
            self.metadata = TrackMetadata(songtitle=title, artist=artist, cover=cover, status="online")

            item = HistoryItem(songtitle=title, artist=artist, cover=cover,
                               timestamp=int(time.time() * 1000))
            updated = push_history(self.history, item, self.history_limit)
            if updated is not self.history:
                self.history = updated
                self.storage.set_item(config.HISTORY_KEY,
                                      json.dumps([asdict(h) for h in updated], ensure_ascii=False))
            return self.metadata

    def _current_track(self, cache_attr: str):
        """The playing track and its cached value of ``cache_attr``, or (None, None) while loading."""
        with self._lock:
            metadata = self.metadata
            cached = getattr(self, cache_attr)
        if not metadata.songtitle or metadata.songtitle == config.LOADING_TITLE:
            return None, None
        return metadata, cached

    def _same_track(self, metadata: TrackMetadata) -> bool:
        return (self.metadata.songtitle, self.metadata.artist) == (metadata.songtitle, metadata.artist)

    def lyrics(self) -> Optional[str]:
        metadata, cached = self._current_track("_lyrics")
        if metadata is None or not metadata.artist:
            return None
        if cached is not None:
            return cached
        result = fetch_lyrics(metadata.artist, metadata.songtitle)
        with self._lock:
            if self._same_track(metadata):
                self._lyrics = result.text
        return result.text

    def trivia(self) -> Optional[str]:
        metadata, cached = self._current_track("_trivia")
        if metadata is None:
            return None
        if cached is not None:
            return cached
        text = fetch_trivia(metadata.artist, metadata.songtitle)
        with self._lock:
            if self._same_track(metadata):
                self._trivia = text
        return text

    def snapshot(self) -> Dict:
        with self._lock:
            return {
                "metadata": asdict(self.metadata),
                "liked": self.liked,
                "history": [asdict(h) for h in self.history],
            }


class MetadataPoller(threading.Thread):
    """Calls ``refresh`` right away and then every ``interval`` seconds."""

    def __init__(self, refresh: Callable[[], object], interval: float = config.POLL_INTERVAL):
        super().__init__(name="metadata-poller", daemon=True)
        self.refresh = refresh
        self.interval = interval
        self._stop_event = threading.Event()

    def run(self) -> None:
        logger.info(f"Metadata polling every {self.interval}s")
        while not self._stop_event.is_set():
            try:
                self.refresh()
            except Exception as e:
                logger.error(f"Metadata poll failed: {e}")
            self._stop_event.wait(self.interval)

    def stop(self) -> None:
        self._stop_event.set()
