"""Token usage estimates and model pricing."""

from llm_bridge.core.usage.counter import (
    EstimatingCounter,
    TiktokenCounter,
    TokenCounter,
    UsageEstimate,
    count_universal_tokens,
)
from llm_bridge.core.usage.pricing import (
    ModelPrice,
    ObservabilityData,
    PriceTable,
    RemotePriceTable,
    StaticPriceTable,
    build_observability_data,
)

__all__ = [
    "EstimatingCounter",
    "ModelPrice",
    "ObservabilityData",
    "PriceTable",
    "RemotePriceTable",
    "StaticPriceTable",
    "TiktokenCounter",
    "TokenCounter",
    "UsageEstimate",
    "build_observability_data",
    "count_universal_tokens",
]
