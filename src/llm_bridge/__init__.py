"""llm-bridge: translate LLM request payloads between vendor wire formats."""

from __future__ import annotations

from typing import TYPE_CHECKING

__version__ = "0.1.0"

if TYPE_CHECKING:
    from llm_bridge.core.interface.registry import from_universal as from_universal
    from llm_bridge.core.interface.registry import to_universal as to_universal
    from llm_bridge.core.interface.registry import translate as translate

_EXPORTS = {
    "to_universal": "llm_bridge.core.interface.registry",
    "from_universal": "llm_bridge.core.interface.registry",
    "from_universal_with_info": "llm_bridge.core.interface.registry",
    "translate": "llm_bridge.core.interface.registry",
    "detect_provider": "llm_bridge.core.interface.detector",
    "BridgeSettings": "llm_bridge.config",
}


def __getattr__(name: str) -> object:
    module_path = _EXPORTS.get(name)
    if module_path is not None:
        import importlib

        mod = importlib.import_module(module_path)
        return getattr(mod, name)
    raise AttributeError(f"module 'llm_bridge' has no attribute {name!r}")
