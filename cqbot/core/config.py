"""Client settings read from the environment (and an optional .env file)."""

from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path

from dotenv import load_dotenv

from cqbot.constants.network_constants import DEFAULT_API_BASE_URL, DEFAULT_REQUEST_TIMEOUT_SECONDS

DEFAULT_DRAFT_DIR = Path.home() / ".cqbot" / "drafts"


@dataclass(frozen=True, slots=True)
class ClientSettings:
    api_base_url: str = DEFAULT_API_BASE_URL
    request_timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT_SECONDS
    draft_dir: Path = DEFAULT_DRAFT_DIR
    log_level: str = "INFO"


def load_settings(env_file: str | os.PathLike[str] | None = None) -> ClientSettings:
    """Build settings from CQBOT_* environment variables, falling back to defaults."""
    load_dotenv(env_file)

    timeout_raw = os.getenv("CQBOT_REQUEST_TIMEOUT_SECONDS")
    try:
        timeout = float(timeout_raw) if timeout_raw else DEFAULT_REQUEST_TIMEOUT_SECONDS
    except ValueError as exc:
        raise ValueError(f"CQBOT_REQUEST_TIMEOUT_SECONDS must be a number, got {timeout_raw!r}") from exc
    if timeout <= 0:
        raise ValueError("CQBOT_REQUEST_TIMEOUT_SECONDS must be positive.")

    draft_dir_raw = os.getenv("CQBOT_DRAFT_DIR")
    draft_dir = Path(draft_dir_raw).expanduser() if draft_dir_raw else DEFAULT_DRAFT_DIR

    return ClientSettings(
        api_base_url=os.getenv("CQBOT_API_BASE_URL", DEFAULT_API_BASE_URL).rstrip("/"),
        request_timeout_seconds=timeout,
        draft_dir=draft_dir,
        log_level=os.getenv("CQBOT_LOG_LEVEL", "INFO").upper(),
    )
