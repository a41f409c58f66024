import os
from pathlib import Path

import pytest

from cqbot.constants.network_constants import DEFAULT_API_BASE_URL
from cqbot.core.config import load_settings


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ("CQBOT_API_BASE_URL", "CQBOT_REQUEST_TIMEOUT_SECONDS", "CQBOT_DRAFT_DIR", "CQBOT_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)


def test_defaults(tmp_path):
    settings = load_settings(tmp_path / "missing.env")
    assert settings.api_base_url == DEFAULT_API_BASE_URL
    assert settings.request_timeout_seconds == 30.0
    assert settings.log_level == "INFO"


def test_env_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("CQBOT_API_BASE_URL", "https://cqbot.example.edu/cqbot/")
    monkeypatch.setenv("CQBOT_REQUEST_TIMEOUT_SECONDS", "5")
    monkeypatch.setenv("CQBOT_DRAFT_DIR", str(tmp_path / "drafts"))
    monkeypatch.setenv("CQBOT_LOG_LEVEL", "debug")

    settings = load_settings(tmp_path / "missing.env")

    assert settings.api_base_url == "https://cqbot.example.edu/cqbot"
    assert settings.request_timeout_seconds == 5.0
    assert settings.draft_dir == Path(tmp_path / "drafts")
    assert settings.log_level == "DEBUG"


def test_env_file_is_read(monkeypatch, tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("CQBOT_API_BASE_URL=http://localhost:9000/cqbot\n", encoding="utf-8")

    try:
        settings = load_settings(env_file)
    finally:
        # load_dotenv writes straight into os.environ
        os.environ.pop("CQBOT_API_BASE_URL", None)

    assert settings.api_base_url == "http://localhost:9000/cqbot"


def test_bad_timeout_rejected(monkeypatch, tmp_path):
    monkeypatch.setenv("CQBOT_REQUEST_TIMEOUT_SECONDS", "soon")
    with pytest.raises(ValueError):
        load_settings(tmp_path / "missing.env")
