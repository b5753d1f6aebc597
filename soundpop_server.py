import logging

from flask import Flask, jsonify, render_template_string, request
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from werkzeug.middleware.proxy_fix import ProxyFix

import soundpop_config as config
from catalog_lookup import lookup_track
from player_state import LocalStorage, MetadataPoller, RadioPlayer
from station_status import StationStatusError, fetch_station_status

# -------------------------------
# App Setup
# -------------------------------
app = Flask(__name__)
app.config["RATELIMIT_ENABLED"] = config.RATELIMIT_ENABLED
# Behind a reverse proxy only the host and scheme headers are trusted
app.wsgi_app = ProxyFix(app.wsgi_app, x_host=1, x_proto=1)

limiter = Limiter(
    app=app,
    key_func=get_remote_address,
    storage_uri=config.RATELIMIT_STORAGE_URI,
    default_limits=["100 per minute"],
    strategy="fixed-window",
)

player = RadioPlayer(LocalStorage(config.STORAGE_PATH))
player.load()
poller = None


def start_polling():
    """Start the background metadata poller once per process."""
    global poller
    if poller is None or not poller.is_alive():
        poller = MetadataPoller(player.refresh, config.POLL_INTERVAL)
        poller.start()
    return poller


# ----------------------------------
# HTML output
# ----------------------------------
PLAYER_TEMPLATE = """
<!DOCTYPE html>
<html lang="pt-BR">
<head>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1" />
    <title>Radio Online</title>
    <style>
        body { margin: 0; min-height: 100vh; display: flex; align-items: center; justify-content: center;
               background: #0a0a0a; color: #fff; font-family: system-ui, sans-serif; }
        .card { width: 22rem; padding: 1.5rem; border-radius: 2rem; background: #151515;
                box-shadow: 0 0 30px rgba(249, 115, 22, 0.15); }
        .card.playing { box-shadow: 0 0 40px rgba(249, 115, 22, 0.3); }
        header { display: flex; justify-content: space-between; align-items: center; }
        h1 { font-size: 0.8rem; letter-spacing: 0.3em; color: #f97316; }
        .cover { position: relative; width: 100%; aspect-ratio: 1; margin: 1rem 0; border-radius: 1.5rem;
                 overflow: hidden; background: #222; display: flex; align-items: center; justify-content: center; }
        .cover img { width: 100%; height: 100%; object-fit: cover; }
        .cover .placeholder { font-size: 4rem; opacity: 0.4; }
        #play { position: absolute; width: 4.5rem; height: 4.5rem; border-radius: 50%; border: 0;
                background: #f97316; color: #fff; font-size: 1.6rem; cursor: pointer; }
        h2 { margin: 0.2rem 0; font-size: 1.3rem; }
        .artist { margin: 0; opacity: 0.5; }
        .progress { height: 3px; background: #333; border-radius: 2px; margin: 1rem 0; }
        .progress div { height: 100%; width: 0; background: #f97316; transition: width 1s linear; }
        .controls { display: flex; align-items: center; gap: 0.6rem; }
        .controls input[type=range] { flex: 1; accent-color: #f97316; }
        button.icon { background: none; border: 0; color: #fff; font-size: 1.2rem; cursor: pointer; }
        button.icon.active { color: #f97316; }
        .panel { display: none; max-height: 14rem; overflow-y: auto; margin-top: 1rem; padding: 0.8rem;
                 border-radius: 1rem; background: #1d1d1d; white-space: pre-wrap; font-size: 0.85rem; }
        .panel.open { display: block; }
        .panel ul { list-style: none; margin: 0; padding: 0; }
        .panel li { display: flex; gap: 0.6rem; align-items: center; margin-bottom: 0.5rem; }
        .panel li img { width: 2.5rem; height: 2.5rem; border-radius: 0.4rem; object-fit: cover; }
        .insight { margin-top: 1rem; font-size: 0.85rem; opacity: 0.8; }
        .status { font-size: 0.7rem; opacity: 0.5; }
    </style>
</head>
<body>
    <div class="card" id="card">
        <header>
            <div>
                <button class="icon" id="history-toggle" title="Histórico">🎵</button>
                <button class="icon" id="lyrics-toggle" title="Letra">📄</button>
            </div>
            <h1>RADIO ONLINE</h1>
            <span class="status" id="status">{{ metadata.status }}</span>
        </header>

        <div class="cover">
            {% if metadata.cover %}
                <img id="cover" src="{{ metadata.cover }}" alt="{{ metadata.songtitle }}" referrerpolicy="no-referrer">
            {% else %}
                <img id="cover" alt="" referrerpolicy="no-referrer" hidden>
            {% endif %}
            <span class="placeholder" id="cover-placeholder" {% if metadata.cover %}hidden{% endif %}>📻</span>
            <button id="play" title="Play">▶</button>
        </div>

        <h2 id="songtitle">{{ metadata.songtitle }}</h2>
        <p class="artist" id="artist">{{ metadata.artist or "" }}</p>

        <div class="progress"><div id="progress"></div></div>

        <div class="controls">
            <button class="icon" id="mute" title="Mudo">🔊</button>
            <input type="range" id="volume" min="0" max="100" value="80">
            <button class="icon {% if liked %}active{% endif %}" id="like" title="Curtir">♥</button>
            <button class="icon" id="insight" title="Curiosidade">✨</button>
        </div>

        <p class="insight" id="insight-text" hidden></p>

        <div class="panel" id="history-panel"><ul id="history-list"></ul></div>
        <div class="panel" id="lyrics-panel"></div>
    </div>

    <script>
    const STREAM_URL = {{ stream_url|tojson }};
    const POLL_INTERVAL = {{ poll_interval_ms }};
    const $ = (id) => document.getElementById(id);

    const audio = new Audio();
    audio.volume = 0.8;
    let isPlaying = false;
    let isMuted = false;
    let progress = 0;
    let progressTimer = null;
    let lyricsLoaded = false;
    let currentKey = null;

    audio.addEventListener("canplay", () => { $("play").textContent = isPlaying ? "❚❚" : "▶"; });
    audio.addEventListener("error", () => {
        if (isPlaying) { $("status").textContent = "offline"; }
    });

    function togglePlay() {
        if (isPlaying) {
            audio.pause();
            // Live stream: drop the buffer so resuming starts at the live edge
            audio.src = "";
            $("play").textContent = "▶";
            clearInterval(progressTimer);
        } else {
            $("play").textContent = "…";
            audio.src = STREAM_URL;
            audio.load();
            audio.play().catch(err => console.error("Playback error:", err));
            progressTimer = setInterval(() => {
                progress = (progress + 0.5) % 100;
                $("progress").style.width = progress + "%";
            }, 1000);
        }
        isPlaying = !isPlaying;
        $("card").classList.toggle("playing", isPlaying);
    }

    function applyVolume() {
        audio.volume = isMuted ? 0 : $("volume").value / 100;
        $("mute").textContent = isMuted ? "🔇" : "🔊";
    }

    function renderHistory(history) {
        const list = $("history-list");
        list.innerHTML = "";
        history.forEach(item => {
            const li = document.createElement("li");
            if (item.cover) {
                const img = document.createElement("img");
                img.src = item.cover;
                img.referrerPolicy = "no-referrer";
                li.appendChild(img);
            }
            const text = document.createElement("span");
            const time = new Date(item.timestamp).toLocaleTimeString("pt-BR", {hour: "2-digit", minute: "2-digit"});
            text.textContent = item.songtitle + " · " + item.artist + " (" + time + ")";
            li.appendChild(text);
            list.appendChild(li);
        });
    }

    function render(state) {
        const m = state.metadata;
        $("songtitle").textContent = m.songtitle;
        $("artist").textContent = m.artist || "";
        $("status").textContent = m.status;
        if (m.cover) {
            $("cover").src = m.cover;
            $("cover").hidden = false;
            $("cover-placeholder").hidden = true;
        } else {
            $("cover").hidden = true;
            $("cover-placeholder").hidden = false;
        }
        const key = m.artist + " - " + m.songtitle;
        if (key !== currentKey) {
            currentKey = key;
            lyricsLoaded = false;
            $("lyrics-panel").classList.remove("open");
        }
        $("like").classList.toggle("active", state.liked);
        renderHistory(state.history);
    }

    async function fetchMetadata() {
        try {
            const response = await fetch("/api/now-playing");
            render(await response.json());
        } catch (error) {
            console.error("Metadata fetch error:", error);
        }
    }

    async function toggleLike() {
        try {
            const response = await fetch("/api/like", {method: "POST"});
            const data = await response.json();
            $("like").classList.toggle("active", data.liked);
        } catch (error) {
            console.error("Like error:", error);
        }
    }

    async function loadLyrics() {
        $("lyrics-panel").textContent = "Carregando...";
        try {
            const response = await fetch("/api/lyrics");
            const data = await response.json();
            $("lyrics-panel").textContent = data.lyrics || "";
            lyricsLoaded = Boolean(data.lyrics);
        } catch (error) {
            console.error("Lyrics fetch error:", error);
            $("lyrics-panel").textContent = "Erro ao carregar a letra. Tente novamente mais tarde. 🛠️";
        }
    }

    async function loadInsight() {
        const el = $("insight-text");
        el.hidden = false;
        el.textContent = "…";
        try {
            const response = await fetch("/api/trivia");
            const data = await response.json();
            el.textContent = data.trivia || "";
        } catch (error) {
            console.error("Trivia error:", error);
            el.textContent = "Ops! Ocorreu um erro ao buscar curiosidades. 🎸";
        }
    }

    $("play").addEventListener("click", togglePlay);
    $("volume").addEventListener("input", applyVolume);
    $("mute").addEventListener("click", () => { isMuted = !isMuted; applyVolume(); });
    $("like").addEventListener("click", toggleLike);
    $("insight").addEventListener("click", loadInsight);
    $("history-toggle").addEventListener("click", () => {
        $("history-panel").classList.toggle("open");
        $("lyrics-panel").classList.remove("open");
    });
    $("lyrics-toggle").addEventListener("click", () => {
        const open = $("lyrics-panel").classList.toggle("open");
        $("history-panel").classList.remove("open");
        if (open && !lyricsLoaded) { loadLyrics(); }
    });

    renderHistory({{ history|tojson }});
    fetchMetadata();
    setInterval(fetchMetadata, POLL_INTERVAL);
    </script>
</body>
</html>
"""


def render_player(state):
    return render_template_string(
        PLAYER_TEMPLATE,
        metadata=state["metadata"],
        liked=state["liked"],
        history=state["history"],
        stream_url=config.STREAM_URL,
        poll_interval_ms=int(config.POLL_INTERVAL * 1000),
    )


# -------------------------------
# Routes
# -------------------------------
@app.route("/")
def index():
    return render_player(player.snapshot())


@app.route("/health")
@limiter.exempt
def health():
    return jsonify({"status": "ok", "poller": bool(poller and poller.is_alive())})


# -------------------------------
# Proxy for the station status server (CORS / TLS)
# -------------------------------
@app.route("/api/radio-stats")
@limiter.limit("30 per minute")
def radio_stats():
    """
    Returns the upstream status JSON unchanged, or a normalized
    {"songtitle": ...} when only the legacy text endpoints answered.
    """
    try:
        status = fetch_station_status()
    except StationStatusError as e:
        app.logger.error(f"Proxy error: {e}")
        return jsonify({"error": "Failed to fetch metadata"}), 500

    if status.payload is not None:
        return jsonify(status.payload)
    return jsonify({"songtitle": status.songtitle})


@app.route("/api/track")
@limiter.limit("30 per minute")
def track_card():
    """Artist, title and cover of the current song in one call."""
    try:
        status = fetch_station_status()
    except StationStatusError as e:
        app.logger.error(f"API Error: {e}")
        return jsonify({"error": "Erro ao obter dados da rádio"}), 500
    return jsonify(lookup_track(status.songtitle))


# -------------------------------
# Player API
# -------------------------------
@app.route("/api/now-playing")
def now_playing():
    if request.args.get("refresh") == "1":
        player.refresh()
    return jsonify(player.snapshot())


@app.route("/api/history")
def history():
    return jsonify(player.snapshot()["history"])


@app.route("/api/like", methods=["GET", "POST"])
def like():
    if request.method == "POST":
        liked = player.toggle_like()
        app.logger.info(f"Like flag set to {liked}")
        return jsonify({"liked": liked})
    return jsonify({"liked": player.liked})


@app.route("/api/lyrics")
@limiter.limit("20 per minute")
def lyrics():
    return jsonify({"lyrics": player.lyrics()})


@app.route("/api/trivia")
@limiter.limit("10 per minute")
def trivia():
    return jsonify({"trivia": player.trivia()})


@app.errorhandler(429)
def rate_limited(error):
    return jsonify({"error": "Too many requests"}), 429


# -------------------------------
# Run Application
# -------------------------------
def main():
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
    if config.BACKGROUND_POLLING:
        start_polling()
    app.run(host=config.HOST, port=config.PORT, threaded=True)


if __name__ == "__main__":
    main()

else:
    # WSGI servers (gunicorn, uWSGI) import the module
    if config.BACKGROUND_POLLING:
        start_polling()
    application = app
