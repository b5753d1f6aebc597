"""Shared fixtures; the environment is set before any project module is imported."""

import os
import tempfile
from unittest.mock import MagicMock

import pytest
import requests

_STORAGE_DIR = tempfile.mkdtemp(prefix="soundpop-tests-")
os.environ["SOUNDPOP_STORAGE_PATH"] = os.path.join(_STORAGE_DIR, "storage.json")
os.environ["SOUNDPOP_BACKGROUND_POLLING"] = "0"
os.environ["SOUNDPOP_RATELIMIT_ENABLED"] = "0"
os.environ.pop("GEMINI_API_KEY", None)


def make_response(json_data=None, text="", status_code=200):
    """Fake requests.Response; json() raises ValueError when no JSON body is given."""
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    if json_data is None:
        response.json.side_effect = ValueError("No JSON object could be decoded")
    else:
        response.json.return_value = json_data
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(f"{status_code} Error")
    return response


@pytest.fixture
def storage(tmp_path):
    from player_state import LocalStorage
    return LocalStorage(str(tmp_path / "storage.json"))


@pytest.fixture
def player(storage):
    from player_state import RadioPlayer
    return RadioPlayer(storage)
