"""Bridge settings: reconstruction policy, defaults, price table source."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ValidationError

from llm_bridge.errors import ConfigurationError

DEFAULT_PRICES_URL = (
    "https://raw.githubusercontent.com/AgentOps-AI/tokencost/main/tokencost/model_prices.json"
)


class BridgeSettings(BaseModel):
    """Knobs shared by every codec.

    ``original_policy`` decides what happens when a stored ``_original``
    fragment does not fit the target wire shape: ``"fallback"`` rebuilds the
    value from universal fields, ``"strict"`` raises
    :class:`~llm_bridge.errors.InvalidOriginalError`.
    """

    original_policy: Literal["fallback", "strict"] = "fallback"
    unknown_model: str = "unknown"
    anthropic_default_max_tokens: int = 1024
    default_output_tokens: int = 1000
    prices_url: str = DEFAULT_PRICES_URL
    prices_ttl_seconds: float = 60 * 60 * 24


DEFAULT_SETTINGS = BridgeSettings()


class SettingsLoader:
    """Load :class:`BridgeSettings` from a YAML file."""

    def __init__(self, path: Path) -> None:
        self._path = path

    def load(self) -> BridgeSettings:
        """Read YAML, interpolate env vars, and validate.

        Raises:
            ConfigurationError: On read, YAML parse, or validation failures.
        """
        try:
            raw = self._path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigurationError(f"Cannot read {self._path}: {exc}") from exc

        expanded = os.path.expandvars(raw)

        try:
            data: Any = yaml.safe_load(expanded)
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"YAML parse error: {exc}") from exc

        if data is None:
            return BridgeSettings()
        if not isinstance(data, dict):
            raise ConfigurationError("Settings YAML must be a mapping")

        try:
            return BridgeSettings.model_validate(data)
        except ValidationError as exc:
            raise ConfigurationError(str(exc)) from exc
