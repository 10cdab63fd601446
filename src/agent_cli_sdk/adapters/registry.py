"""Adapter registry keyed by vendor name."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from agent_cli_sdk.adapters.base import BaseAdapter
from agent_cli_sdk.errors import ValidationError

AdapterFactory = Callable[..., BaseAdapter]
_ADAPTER_REGISTRY: dict[str, AdapterFactory] = {}


class AdapterRegistryError(ValidationError):
    """Raised when adapter registration or lookup fails."""


def register_adapter(key: str, factory: AdapterFactory, *, overwrite: bool = False) -> None:
    normalized_key = key.strip().lower()
    if not normalized_key:
        raise AdapterRegistryError("Adapter key cannot be empty.")
    if not overwrite and normalized_key in _ADAPTER_REGISTRY:
        raise AdapterRegistryError(f"Adapter '{normalized_key}' is already registered.")
    _ADAPTER_REGISTRY[normalized_key] = factory


def create_adapter(key: str, **config: Any) -> BaseAdapter:
    """Build the adapter registered under ``key``; ``config`` goes to its factory."""

    initialize_default_adapters()
    normalized_key = key.strip().lower()
    if normalized_key not in _ADAPTER_REGISTRY:
        known = ", ".join(list_adapter_keys())
        raise AdapterRegistryError(
            f"Adapter '{normalized_key}' is not registered (known: {known}).",
        )
    return _ADAPTER_REGISTRY[normalized_key](**config)


def list_adapter_keys() -> tuple[str, ...]:
    initialize_default_adapters()
    return tuple(sorted(_ADAPTER_REGISTRY))


def reset_adapter_registry() -> None:
    _ADAPTER_REGISTRY.clear()


def initialize_default_adapters(*, overwrite: bool = False) -> None:
    from agent_cli_sdk.adapters.claude import ClaudeAdapter  # noqa: PLC0415
    from agent_cli_sdk.adapters.codex import CodexAdapter  # noqa: PLC0415

    defaults: dict[str, type[BaseAdapter]] = {
        "claude": ClaudeAdapter,
        "codex": CodexAdapter,
    }
    for key, adapter_cls in defaults.items():
        if key in _ADAPTER_REGISTRY and not overwrite:
            continue
        register_adapter(key, adapter_cls, overwrite=True)
