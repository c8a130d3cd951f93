"""Provider registry and factory with lazy imports."""

from __future__ import annotations

import importlib

from board_harvester.config import Settings
from board_harvester.providers.base import VisionProvider

_PROVIDER_REGISTRY: dict[str, str] = {
    "gemini": "board_harvester.providers.gemini.GeminiProvider",
    "openai": "board_harvester.providers.openai.OpenAIProvider",
}


def get_provider(name: str, settings: Settings) -> VisionProvider:
    """Instantiate a vision provider by name. Uses lazy imports."""
    if name not in _PROVIDER_REGISTRY:
        available = ", ".join(sorted(_PROVIDER_REGISTRY))
        raise ValueError(f"Unknown provider '{name}'. Available: {available}")

    module_path, class_name = _PROVIDER_REGISTRY[name].rsplit(".", 1)
    module = importlib.import_module(module_path)
    provider_class = getattr(module, class_name)
    return provider_class(settings)


def list_providers() -> list[str]:
    return sorted(_PROVIDER_REGISTRY)
