"""Centralized configuration loaded from .env."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

KEY_MODES = ("link_media", "link")


def _load_env() -> None:
    env_path = Path.cwd() / ".env"
    if env_path.exists():
        load_dotenv(dotenv_path=env_path)
    else:
        load_dotenv()


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "")
    return float(raw) if raw else default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "")
    return int(raw) if raw else default


@dataclass(frozen=True)
class Settings:
    # Inference providers
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.0-flash-lite-001"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    default_provider: str = "gemini"
    temperature: float = 0.1

    # Extraction
    media_host: str = "pinimg.com"
    key_mode: str = "link_media"  # "link_media" or "link"

    # Harvest loop
    initial_delay: float = 2.0
    scroll_delay: float = 1.2
    settle_delay: float = 3.0
    scroll_fraction: float = 0.6
    bottom_tolerance: int = 4
    max_iterations: int = 400
    headless: bool = True
    page_timeout: int = 30  # seconds

    # Enrichment
    max_attempts: int = 3
    backoff_base: float = 2.0
    transport_pause: float = 2.0
    enrich_delay: float = 3.5
    fallback_delay: float = 2.5
    image_timeout: int = 30
    max_image_edge: int = 800
    jpeg_quality: int = 80

    # Preference hints
    target_audience: str = ""
    preferred_brands: str = ""

    def api_key_for(self, provider_name: str) -> str:
        return getattr(self, f"{provider_name}_api_key", "")

    @classmethod
    def from_env(cls) -> Settings:
        _load_env()
        key_mode = os.getenv("KEY_MODE", "link_media")
        if key_mode not in KEY_MODES:
            raise ValueError(
                f"KEY_MODE must be one of {', '.join(KEY_MODES)}, got '{key_mode}'"
            )
        return cls(
            gemini_api_key=os.getenv("GEMINI_API_KEY", ""),
            gemini_model=os.getenv("GEMINI_MODEL", "gemini-2.0-flash-lite-001"),
            openai_api_key=os.getenv("OPENAI_API_KEY", ""),
            openai_model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
            default_provider=os.getenv("DEFAULT_PROVIDER", "gemini"),
            media_host=os.getenv("MEDIA_HOST", "pinimg.com"),
            key_mode=key_mode,
            max_iterations=_env_int("MAX_SCROLL_ITERATIONS", 400),
            scroll_delay=_env_float("SCROLL_DELAY", 1.2),
            settle_delay=_env_float("SETTLE_DELAY", 3.0),
            enrich_delay=_env_float("ENRICH_DELAY", 3.5),
            max_attempts=_env_int("MAX_ATTEMPTS", 3),
            target_audience=os.getenv("TARGET_AUDIENCE", ""),
            preferred_brands=os.getenv("PREFERRED_BRANDS", ""),
        )
