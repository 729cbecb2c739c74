from __future__ import annotations

import math
from typing import Any

from quote_board.errors import ProviderNoDataError
from quote_board.schemas.quote import Quote

GLOBAL_QUOTE_KEY = "Global Quote"
_NESTED_PRICE = "05. price"
_NESTED_CHANGE_PCT = "10. change percent"

# Alpha Vantage answers 200 with one of these instead of a quote
_PROVIDER_NOTICE_KEYS = ("Error Message", "Note", "Information")


def _to_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip().rstrip("%").strip()
        if value == "" or value.lower() == "none":
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def check_provider_payload(symbol: str, payload: Any) -> dict:
    """Raise ProviderNoDataError for the provider's own "no data" markers."""
    if not isinstance(payload, dict) or not payload:
        raise ProviderNoDataError(symbol, "empty_payload")

    if str(payload.get("status", "")).lower() == "error":
        raise ProviderNoDataError(symbol, f"provider_error code={payload.get('code')}")

    for key in _PROVIDER_NOTICE_KEYS:
        if key in payload:
            reason = "rate_limited" if key != "Error Message" else "invalid_symbol"
            raise ProviderNoDataError(symbol, reason)

    if GLOBAL_QUOTE_KEY in payload:
        nested = payload[GLOBAL_QUOTE_KEY]
        if not isinstance(nested, dict) or _to_float(nested.get(_NESTED_PRICE)) is None:
            raise ProviderNoDataError(symbol, "empty_quote")
        return nested

    return payload


def _is_nested_shape(body: dict) -> bool:
    return _NESTED_PRICE in body or _NESTED_CHANGE_PCT in body


def normalize_quote(symbol: str, payload: Any) -> Quote:
    """Build a Quote from either provider shape.

    Flat (Twelve Data): ``price`` wins over ``close``; 0 when neither parses.
    ``percent_change`` falls back to 0.

    Nested (Alpha Vantage): ``"Global Quote"`` or its bare contents, with
    ``"05. price"`` and ``"10. change percent"`` (``%`` suffix stripped).

    The quote is keyed by the requested symbol, not the echoed one.
    Raises ProviderNoDataError for provider markers and ValueError for a
    negative price.
    """
    body = check_provider_payload(symbol, payload)

    if _is_nested_shape(body):
        price = _to_float(body.get(_NESTED_PRICE))
        change_pct = _to_float(body.get(_NESTED_CHANGE_PCT))
    else:
        price = _to_float(body.get("price"))
        if price is None:
            price = _to_float(body.get("close"))
        change_pct = _to_float(body.get("percent_change"))

    return Quote(
        symbol=symbol,
        price=0.0 if price is None else price,
        change_percent=0.0 if change_pct is None else change_pct,
    )
