"""Tests for the llm-bridge error hierarchy."""

import pytest

from llm_bridge.errors import (
    BridgeError,
    ConfigurationError,
    InvalidOriginalError,
    UnsupportedProviderError,
)


class TestErrorHierarchy:
    def test_configuration_error_is_bridge_error(self) -> None:
        assert issubclass(ConfigurationError, BridgeError)

    def test_unsupported_provider_is_configuration_error(self) -> None:
        assert issubclass(UnsupportedProviderError, ConfigurationError)

    def test_invalid_original_is_bridge_error(self) -> None:
        assert issubclass(InvalidOriginalError, BridgeError)


class TestUnsupportedProviderError:
    def test_attributes(self) -> None:
        err = UnsupportedProviderError("cohere")
        assert err.provider == "cohere"
        assert "cohere" in str(err)

    def test_catchable_as_bridge_error(self) -> None:
        with pytest.raises(BridgeError):
            raise UnsupportedProviderError("mistral-native")


class TestInvalidOriginalError:
    def test_message_names_field_and_provider(self) -> None:
        err = InvalidOriginalError("system._original", "anthropic", "expected a list")
        assert err.field == "system._original"
        assert err.provider == "anthropic"
        assert "system._original" in str(err)
        assert "anthropic" in str(err)
        assert "expected a list" in str(err)

    def test_message_without_detail(self) -> None:
        err = InvalidOriginalError("tools[0]._original", "google")
        assert err.detail == ""
        assert str(err).endswith("for google provider")
