"""Short AI-generated trivia about the current song (Gemini REST API)."""

import logging

import requests

import soundpop_config as config

logger = logging.getLogger(__name__)

TRIVIA_EMPTY = "Não consegui encontrar curiosidades agora. 🎵"
TRIVIA_ERROR = "Ops! Ocorreu um erro ao buscar curiosidades. 🎸"


def build_prompt(artist, title):
    return (
        "Me conte uma curiosidade rápida, inédita e interessante (máximo 2 frases) "
        f'sobre a música ou artista: "{artist} - {title}". '
        "Tente não repetir fatos óbvios. Seja descontraído e use emojis."
    )


def _response_text(data):
    if not isinstance(data, dict):
        return ""
    candidates = data.get("candidates") or []
    if not candidates:
        return ""
    parts = (candidates[0].get("content") or {}).get("parts") or []
    return "".join(part.get("text", "") for part in parts).strip()


def fetch_trivia(artist, title, api_key=None, model=None):
    api_key = api_key or config.GEMINI_API_KEY
    model = model or config.GEMINI_MODEL
    if not api_key:
        logger.warning("GEMINI_API_KEY is not set, trivia is unavailable")
        return TRIVIA_ERROR

    try:
        response = requests.post(
            config.GEMINI_URL.format(model=model),
            headers={"x-goog-api-key": api_key, "Content-Type": "application/json"},
            json={"contents": [{"parts": [{"text": build_prompt(artist, title)}]}]},
            timeout=config.GEMINI_TIMEOUT,
        )
        response.raise_for_status()
        text = _response_text(response.json())
    except (requests.exceptions.RequestException, ValueError) as e:
        logger.error(f"Gemini error: {e}")
        return TRIVIA_ERROR

    return text or TRIVIA_EMPTY
