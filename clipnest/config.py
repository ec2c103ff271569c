"""Configuration objects and constants for the harvester."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)
DEFAULT_RELAY_HOST = "127.0.0.1"
DEFAULT_RELAY_PORT = 3000
DEFAULT_RELAY_URL = f"http://localhost:{DEFAULT_RELAY_PORT}/relay"
DEFAULT_DB_PATH = Path("~/.clipnest/clipnest.db")
SCHEMA_VERSION = 1

AFFORDANCE_CLASS = "clipnest-collect-btn"
AFFORDANCE_WIDTH = 120
AFFORDANCE_HEIGHT = 32
AFFORDANCE_MARGIN = 10
NOTIFICATION_SECONDS = 2.0


@dataclass
class HarvestConfig:
    """Top-level settings that control fetching, storage and capture."""

    db_path: Path = field(default_factory=lambda: DEFAULT_DB_PATH.expanduser())
    relay_url: str = DEFAULT_RELAY_URL
    request_timeout: float = 15.0
    user_agent: str = DEFAULT_USER_AGENT
    notification_seconds: float = NOTIFICATION_SECONDS
    navigation_timeout: float = 30.0
    wait_after_load: float = 1.0
