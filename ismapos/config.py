"""Client configuration and logging setup.

Settings live in a small JSON file next to the session file so the CLI and
any embedding application share them. Environment variables override the
file, which makes it easy to point a till at a staging backend.
"""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

DATA_DIR = Path("data")
CONFIG_FILE = DATA_DIR / "client_config.json"
SESSION_FILE = DATA_DIR / "session.json"
LOG_PATH = DATA_DIR / "client.log"

DEFAULT_API_URL = "http://localhost:5000/api"
DEFAULT_TIMEOUT = 10.0
LOG_FORMAT = "[%(levelname)s] %(name)s: %(message)s"

logger = logging.getLogger(__name__)


@dataclass
class ClientSettings:
    api_url: str = DEFAULT_API_URL
    timeout: float = DEFAULT_TIMEOUT
    log_level: str = "INFO"
    session_file: Path = SESSION_FILE
    log_file: Path | None = LOG_PATH
    extra: dict[str, Any] = field(default_factory=dict)


def read_config(path: Path | str = CONFIG_FILE) -> dict[str, Any]:
    path = Path(path)
    if path.exists():
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            logger.warning("Config file corrupted, using defaults")
            return {}
        if isinstance(data, dict):
            return data
        logger.warning("Config file %s does not hold an object, ignoring", path)
    return {}


def write_config(data: dict[str, Any], path: Path | str = CONFIG_FILE) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")


def _timeout(value: Any) -> float:
    try:
        timeout = float(value)
    except (TypeError, ValueError):
        logger.warning("Invalid timeout %r, falling back to %s", value, DEFAULT_TIMEOUT)
        return DEFAULT_TIMEOUT
    return timeout if timeout > 0 else DEFAULT_TIMEOUT


def load_settings(path: Path | str = CONFIG_FILE, env: dict[str, str] | None = None) -> ClientSettings:
    """Merge the config file with ``ISMA_*`` environment overrides."""

    env = os.environ if env is None else env
    cfg = read_config(path)
    known = {"api_url", "timeout", "log_level", "session_file", "log_file"}

    api_url = env.get("ISMA_API_URL") or cfg.get("api_url") or DEFAULT_API_URL
    timeout = _timeout(env.get("ISMA_TIMEOUT") or cfg.get("timeout", DEFAULT_TIMEOUT))
    log_level = str(env.get("ISMA_LOG_LEVEL") or cfg.get("log_level") or "INFO").upper()
    session_file = Path(cfg.get("session_file") or SESSION_FILE)
    log_file = cfg.get("log_file", str(LOG_PATH))

    return ClientSettings(
        api_url=str(api_url).rstrip("/"),
        timeout=timeout,
        log_level=log_level,
        session_file=session_file,
        log_file=Path(log_file) if log_file else None,
        extra={k: v for k, v in cfg.items() if k not in known},
    )


def configure_logging(level_name: str = "INFO", log_file: Path | str | None = LOG_PATH) -> None:
    level = getattr(logging, str(level_name).upper(), logging.INFO)
    handlers: list[logging.Handler] = []
    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(RotatingFileHandler(log_file, maxBytes=1_000_000, backupCount=3))
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers or None)
        return
    root.setLevel(level)
    for h in root.handlers:
        h.setLevel(level)
    if handlers and all(not isinstance(h, RotatingFileHandler) for h in root.handlers):
        handlers[0].setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handlers[0])
