"""Shared runtime settings for the merge-bot workflow and webhook server."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path


TRUTHY = {"1", "true", "yes", "on"}
FALSY = {"0", "false", "no", "off", ""}


@dataclass(frozen=True)
class Settings:
    """Timings, identities and file locations used by every workflow run."""

    config_path: Path
    settle_delay_s: float = 15.0
    poll_interval_s: float = 10.0
    poll_max_attempts: int = 12
    require_passing_conclusion: bool = False
    request_timeout_s: float = 15.0
    bot_login: str = "dependabot[bot]"
    bot_mention: str = "@dependabot"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env: dict[str, str] | None = None) -> "Settings":
        source = os.environ if env is None else env
        return cls(
            config_path=Path(source.get("MERGE_BOT_CONFIG_PATH", "config.yaml")),
            settle_delay_s=_parse_seconds(source, "MERGE_BOT_SETTLE_DELAY_S", 15.0),
            poll_interval_s=_parse_seconds(source, "MERGE_BOT_POLL_INTERVAL_S", 10.0),
            poll_max_attempts=_parse_attempts(source, "MERGE_BOT_POLL_MAX_ATTEMPTS", 12),
            require_passing_conclusion=_parse_flag(
                source, "MERGE_BOT_REQUIRE_PASSING_CONCLUSION", False
            ),
            request_timeout_s=_parse_seconds(source, "MERGE_BOT_REQUEST_TIMEOUT_S", 15.0),
            bot_login=(source.get("MERGE_BOT_BOT_LOGIN") or "dependabot[bot]").strip(),
            bot_mention=(source.get("MERGE_BOT_BOT_MENTION") or "@dependabot").strip(),
            log_level=(source.get("MERGE_BOT_LOG_LEVEL") or "INFO").strip().upper(),
        )

    @property
    def worst_case_poll_seconds(self) -> float:
        return self.poll_interval_s * self.poll_max_attempts


def get_settings(env: dict[str, str] | None = None) -> Settings:
    """Build settings from environment variables."""

    return Settings.from_env(env)


def _parse_seconds(source: Mapping[str, str], key: str, default: float) -> float:
    raw = (source.get(key) or "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ValueError(f"{key} must be a number of seconds, got {raw!r}") from exc
    if value < 0:
        raise ValueError(f"{key} must not be negative, got {raw!r}")
    return value


def _parse_attempts(source: Mapping[str, str], key: str, default: int) -> int:
    raw = (source.get(key) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{key} must be an integer, got {raw!r}") from exc
    if value < 1:
        raise ValueError(f"{key} must be at least 1, got {raw!r}")
    return value


def _parse_flag(source: Mapping[str, str], key: str, default: bool) -> bool:
    raw = source.get(key)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in TRUTHY:
        return True
    if value in FALSY:
        return False
    raise ValueError(f"{key} must be a boolean flag, got {raw!r}")
