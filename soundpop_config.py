import os

# -------------------------------
# Configuration
# -------------------------------


def _env_flag(name, default):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# --- Stream and status server ---
STREAM_URL = os.environ.get("SOUNDPOP_STREAM_URL", "https://streaming.fox.srv.br:8150/;")
# Shoutcast status server, without trailing slash
STATUS_BASE_URL = os.environ.get("SOUNDPOP_STATUS_BASE_URL", "https://streaming.fox.srv.br:8150").rstrip("/")
STATUS_TIMEOUT = float(os.environ.get("SOUNDPOP_STATUS_TIMEOUT", "5"))
# The provider's certificate does not match its host name
STATUS_VERIFY_TLS = _env_flag("SOUNDPOP_STATUS_VERIFY_TLS", False)

# --- Polling ---
POLL_INTERVAL = float(os.environ.get("SOUNDPOP_POLL_INTERVAL", "10"))
BACKGROUND_POLLING = _env_flag("SOUNDPOP_BACKGROUND_POLLING", True)

# --- Local storage ---
STORAGE_PATH = os.environ.get("SOUNDPOP_STORAGE_PATH", os.path.expanduser("~/.soundpop_storage.json"))
LIKED_KEY = "radio_liked"
HISTORY_KEY = "radio_history"
HISTORY_LIMIT = 10

# --- Placeholders ---
DEFAULT_ARTIST = "SoundPop"
LOADING_TITLE = "Carregando..."
ERROR_TITLE = "Erro ao carregar metadados"

# --- Third-party catalogs ---
ITUNES_SEARCH_URL = "https://itunes.apple.com/search"
DEEZER_SEARCH_URL = "https://api.deezer.com/search"
LYRICS_URL = "https://api.lyrics.ovh/v1"
CATALOG_TIMEOUT = float(os.environ.get("SOUNDPOP_CATALOG_TIMEOUT", "10"))

# --- Trivia (Gemini) ---
GEMINI_API_KEY = os.environ.get("GEMINI_API_KEY")
GEMINI_MODEL = os.environ.get("SOUNDPOP_GEMINI_MODEL", "gemini-3-flash-preview")
GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
GEMINI_TIMEOUT = float(os.environ.get("SOUNDPOP_GEMINI_TIMEOUT", "20"))

# --- Web server ---
HOST = os.environ.get("SOUNDPOP_HOST", "127.0.0.1")
PORT = int(os.environ.get("SOUNDPOP_PORT", "3000"))
RATELIMIT_ENABLED = _env_flag("SOUNDPOP_RATELIMIT_ENABLED", True)
RATELIMIT_STORAGE_URI = os.environ.get("SOUNDPOP_RATELIMIT_STORAGE_URI", "memory://")
