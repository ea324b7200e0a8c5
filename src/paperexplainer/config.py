"""Environment-based configuration for the pipeline."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from .exceptions import ConfigError


@dataclass(frozen=True)
class Settings:
    openai_api_key: str
    openai_base_url: str
    openai_model: str
    openai_timeout_sec: int
    rewrite_max_input_chars: int

    biorxiv_api_base_url: str
    biorxiv_site_base_url: str
    biorxiv_timeout_sec: float

    cache_dir: Path
    image_allowed_hosts: tuple[str, ...]

    network_trust_env: bool
    log_level: str


_FALSE_VALUES = {"0", "false", "no", "off", ""}
DEFAULT_IMAGE_ALLOWED_HOSTS = ("biorxiv.org", "highwire.org")


def _read_env(*keys: str, default: str | None = None) -> str | None:
    for key in keys:
        value = os.getenv(key)
        if value is not None and value != "":
            return value
    return default


def _read_bool(*keys: str, default: bool) -> bool:
    raw = _read_env(*keys)
    if raw is None:
        return default
    return raw.strip().lower() not in _FALSE_VALUES


def _read_int(*keys: str, default: int) -> int:
    raw = _read_env(*keys)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"Invalid integer for {keys[0]}: {raw}") from exc


def _read_float(*keys: str, default: float) -> float:
    raw = _read_env(*keys)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigError(f"Invalid float for {keys[0]}: {raw}") from exc


def _read_list(*keys: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = _read_env(*keys)
    if raw is None:
        return default
    items = tuple(item.strip().lower() for item in raw.split(",") if item.strip())
    return items or default


def load_settings(dotenv_path: str | Path | None = None) -> Settings:
    """Load project settings from .env and OS env vars."""

    load_dotenv(dotenv_path=dotenv_path, override=False)

    openai_api_key = _read_env("OPENAI_API_KEY", "API_KEY")
    if not openai_api_key:
        raise ConfigError(
            "Missing required environment variables: OPENAI_API_KEY (or API_KEY)"
        )

    return Settings(
        openai_api_key=openai_api_key,
        openai_base_url=(
            _read_env(
                "OPENAI_BASE_URL", "BASE_URL", default="https://api.openai.com/v1"
            )
            or "https://api.openai.com/v1"
        ).rstrip("/"),
        openai_model=_read_env("OPENAI_MODEL", default="gpt-5-mini") or "gpt-5-mini",
        openai_timeout_sec=_read_int("OPENAI_TIMEOUT_SEC", default=120),
        rewrite_max_input_chars=_read_int("REWRITE_MAX_INPUT_CHARS", default=12_000),
        biorxiv_api_base_url=(
            _read_env("BIORXIV_API_BASE_URL", default="https://api.biorxiv.org")
            or "https://api.biorxiv.org"
        ).rstrip("/"),
        biorxiv_site_base_url=(
            _read_env("BIORXIV_SITE_BASE_URL", default="https://www.biorxiv.org")
            or "https://www.biorxiv.org"
        ).rstrip("/"),
        biorxiv_timeout_sec=_read_float("BIORXIV_TIMEOUT_SEC", default=30.0),
        cache_dir=Path(
            _read_env("CACHE_DIR", default="outputs/cache") or "outputs/cache"
        ),
        image_allowed_hosts=_read_list(
            "IMAGE_ALLOWED_HOSTS", default=DEFAULT_IMAGE_ALLOWED_HOSTS
        ),
        network_trust_env=_read_bool("NETWORK_TRUST_ENV", default=False),
        log_level=(_read_env("LOG_LEVEL", default="INFO") or "INFO").upper(),
    )
