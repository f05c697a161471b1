"""Model price tables and per-request cost records.

Prices are looked up through a :class:`PriceTable`, which callers inject.
:class:`RemotePriceTable` fetches the tokencost price map over HTTP and keeps
it for a configurable TTL; it is the only stateful object in the package and
guards its cache with a lock.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError

from llm_bridge.config import DEFAULT_SETTINGS, BridgeSettings

logger = logging.getLogger(__name__)

_COST_DIGITS = 4


class ModelPrice(BaseModel):
    """Price entry for one model (USD per token)."""

    model_config = ConfigDict(extra="allow")

    input_cost_per_token: float = 0.0
    output_cost_per_token: float = 0.0
    max_input_tokens: int | None = None


@runtime_checkable
class PriceTable(Protocol):
    """Protocol for model price lookups."""

    def get_price(self, model: str) -> ModelPrice | None:
        """Return the price entry for *model*, or None when unknown."""
        ...


class StaticPriceTable:
    """Price table backed by an in-memory mapping."""

    def __init__(self, prices: dict[str, ModelPrice | dict[str, Any]]) -> None:
        self._prices = {
            name: price if isinstance(price, ModelPrice) else ModelPrice.model_validate(price)
            for name, price in prices.items()
        }

    def get_price(self, model: str) -> ModelPrice | None:
        return self._prices.get(model)


class RemotePriceTable:
    """Price table fetched from a JSON URL and refreshed after a TTL.

    A failed fetch is logged and leaves the previous data (if any) in place;
    the next lookup retries.
    """

    def __init__(
        self,
        url: str | None = None,
        ttl_seconds: float | None = None,
        client: httpx.Client | None = None,
        settings: BridgeSettings | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        settings = settings or DEFAULT_SETTINGS
        self.url = url or settings.prices_url
        self.ttl_seconds = settings.prices_ttl_seconds if ttl_seconds is None else ttl_seconds
        self._client = client
        self._clock = clock
        self._lock = threading.Lock()
        self._data: dict[str, Any] | None = None
        self._fetched_at: float | None = None

    def _is_fresh(self) -> bool:
        return (
            self._data is not None
            and self._fetched_at is not None
            and self._clock() - self._fetched_at < self.ttl_seconds
        )

    def _fetch(self) -> dict[str, Any] | None:
        try:
            if self._client is not None:
                response = self._client.get(self.url)
            else:
                with httpx.Client(timeout=10.0) as client:
                    response = client.get(self.url)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Failed to fetch model prices from %s: %s", self.url, exc)
            return None
        if not isinstance(data, dict):
            logger.warning("Model prices at %s are not a JSON object", self.url)
            return None
        return data

    def refresh(self) -> bool:
        """Fetch the price map now; returns whether the fetch succeeded."""
        data = self._fetch()
        if data is None:
            return False
        with self._lock:
            self._data = data
            self._fetched_at = self._clock()
        return True

    def get_price(self, model: str) -> ModelPrice | None:
        with self._lock:
            fresh = self._is_fresh()
        if not fresh:
            self.refresh()
        with self._lock:
            entry = (self._data or {}).get(model)
        if not isinstance(entry, dict):
            return None
        try:
            return ModelPrice.model_validate(entry)
        except ValidationError:
            logger.warning("Ignoring malformed price entry for %s", model)
            return None


class ObservabilityData(BaseModel):
    """Token and cost figures for one translated request."""

    original_token_count: int
    final_token_count: int
    tokens_saved: int
    cost_saved_usd: float
    provider: str
    model: str
    context_modified: bool
    timestamp: float
    request_id: str | None = None
    multimodal_content_count: int = 0
    tool_calls_count: int = 0
    estimated_input_cost: float = 0.0
    estimated_output_cost: float = 0.0


def build_observability_data(
    original_tokens: int,
    final_tokens: int,
    provider: str,
    model: str,
    context_modified: bool,
    prices: PriceTable | None = None,
    *,
    multimodal_content_count: int = 0,
    tool_calls_count: int = 0,
    request_id: str | None = None,
    estimated_output_tokens: int | None = None,
) -> ObservabilityData:
    """Build the cost record for a request whose context may have been edited.

    Costs are zero when no price table is given or the model is unknown.
    """
    tokens_saved = max(0, original_tokens - final_tokens)
    price = prices.get_price(model) if prices is not None and model else None

    input_cost = output_cost = saved = 0.0
    if price is not None:
        input_cost = final_tokens * price.input_cost_per_token
        if estimated_output_tokens:
            output_cost = estimated_output_tokens * price.output_cost_per_token
        if context_modified and tokens_saved > 0:
            saved = tokens_saved * price.input_cost_per_token

    return ObservabilityData(
        original_token_count=original_tokens,
        final_token_count=final_tokens,
        tokens_saved=tokens_saved,
        cost_saved_usd=round(saved, _COST_DIGITS),
        provider=provider,
        model=model,
        context_modified=context_modified,
        timestamp=time.time(),
        request_id=request_id,
        multimodal_content_count=multimodal_content_count,
        tool_calls_count=tool_calls_count,
        estimated_input_cost=round(input_cost, _COST_DIGITS),
        estimated_output_cost=round(output_cost, _COST_DIGITS),
    )
