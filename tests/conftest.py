"""Shared fixtures for Board Harvester tests."""

from __future__ import annotations

import io

import pytest
from PIL import Image

from board_harvester.config import Settings
from board_harvester.models import Record


@pytest.fixture()
def settings() -> Settings:
    """Settings with dummy keys and zero delays for testing."""
    return Settings(
        gemini_api_key="test-gemini-key",
        openai_api_key="test-openai-key",
        initial_delay=0.0,
        scroll_delay=0.0,
        settle_delay=0.0,
        enrich_delay=0.0,
        fallback_delay=0.0,
        transport_pause=0.0,
    )


@pytest.fixture()
def make_record():
    def _make(n: int = 1, **kwargs) -> Record:
        return Record(
            link=f"https://www.pinterest.com/pin/{1000 + n}/",
            media_url=f"https://i.pinimg.com/736x/{n}.jpg",
            title=f"Pin {n}",
            **kwargs,
        )

    return _make


@pytest.fixture()
def jpeg_bytes():
    def _make(width: int = 1600, height: int = 1200, mode: str = "RGB", fmt: str = "JPEG") -> bytes:
        buffer = io.BytesIO()
        Image.new(mode, (width, height), color=128 if mode == "L" else (200, 30, 30)).save(
            buffer, format=fmt
        )
        return buffer.getvalue()

    return _make
