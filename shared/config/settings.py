"""
Environment configuration loader.

Design rules:
- Import-safe (no side effects)
- Environment is authoritative (.env is loaded by the entrypoint)
- Missing required values are fatal
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from shared.errors import ConfigError
from shared.logging.logger import get_logger

log = get_logger("shared.config.settings")


# ------------------------------------------------------------
# Defaults
# ------------------------------------------------------------

DEFAULT_COMPLETION_URL = "https://api.openai.com/v1/chat/completions"
DEFAULT_MODEL = "gpt-3.5-turbo"
DEFAULT_DATABASE = "kirogpt"
DEFAULT_TIMEOUT_SECONDS = 120.0

REQUIRED_KEYS = ("DISCORD_TOKEN", "MONGO_URL", "GPT_TOKEN")


@dataclass(frozen=True)
class RelaySettings:
    discord_token: str
    mongo_url: str
    completion_token: str
    completion_url: str = DEFAULT_COMPLETION_URL
    model: str = DEFAULT_MODEL
    database: str = DEFAULT_DATABASE
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS

    def redacted(self) -> dict:
        """
        Settings view safe for logs (tokens reduced to presence flags).
        """
        return {
            "discord_token": bool(self.discord_token),
            "mongo_url": bool(self.mongo_url),
            "completion_token": bool(self.completion_token),
            "completion_url": self.completion_url,
            "model": self.model,
            "database": self.database,
            "timeout_seconds": self.timeout_seconds,
        }


# ------------------------------------------------------------
# Public API
# ------------------------------------------------------------

def load_settings(environ: Optional[Mapping[str, str]] = None) -> RelaySettings:
    """
    Build RelaySettings from the environment.

    Raises ConfigError naming every missing required key.
    """
    env = os.environ if environ is None else environ

    missing = [key for key in REQUIRED_KEYS if not (env.get(key) or "").strip()]
    if missing:
        raise ConfigError(
            f"Missing required environment values: {', '.join(missing)}"
        )

    raw_timeout = (env.get("GPT_TIMEOUT_SECONDS") or "").strip()
    timeout = DEFAULT_TIMEOUT_SECONDS
    if raw_timeout:
        try:
            timeout = float(raw_timeout)
        except ValueError as e:
            raise ConfigError(
                f"GPT_TIMEOUT_SECONDS must be a number, got {raw_timeout!r}"
            ) from e
        if timeout <= 0:
            raise ConfigError("GPT_TIMEOUT_SECONDS must be positive")

    settings = RelaySettings(
        discord_token=env["DISCORD_TOKEN"].strip(),
        mongo_url=env["MONGO_URL"].strip(),
        completion_token=env["GPT_TOKEN"].strip(),
        completion_url=(env.get("GPT_API_URL") or DEFAULT_COMPLETION_URL).strip(),
        model=(env.get("GPT_MODEL") or DEFAULT_MODEL).strip(),
        database=(env.get("MONGO_DATABASE") or DEFAULT_DATABASE).strip(),
        timeout_seconds=timeout,
    )

    log.info(f"Settings loaded: {settings.redacted()}")
    return settings
