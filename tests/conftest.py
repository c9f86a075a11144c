import json

import pytest

from engine import config


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    """Point the config loader at a temporary JSON file built from a dict."""

    def _write(data):
        path = tmp_path / "engine.json"
        with path.open("w", encoding="utf-8") as handle:
            json.dump(data, handle)
        monkeypatch.setenv("MINERNAV_CONFIG", str(path))
        config.reload()
        return path

    yield _write
    config.reload()
