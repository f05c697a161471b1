"""Error types for llm-bridge."""

from __future__ import annotations


class BridgeError(Exception):
    """Base error for all translation failures."""


class ConfigurationError(BridgeError):
    """Settings could not be loaded or the bridge was misconfigured."""


class UnsupportedProviderError(ConfigurationError):
    """A vendor tag that no codec handles."""

    def __init__(self, provider: object) -> None:
        self.provider = provider
        super().__init__(f"Unsupported provider: {provider}")


class InvalidOriginalError(BridgeError):
    """A stored ``_original`` fragment does not fit the target wire shape."""

    def __init__(self, field: str, provider: str, detail: str = "") -> None:
        self.field = field
        self.provider = provider
        self.detail = detail
        msg = f"Invalid _original at {field} for {provider} provider"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)
