from __future__ import annotations

from typing import Any, Dict, Optional

import requests


class QuoteRestClient:
    """Single-shot quote GET against Twelve Data or Alpha Vantage."""

    _BASE_URLS = {
        "twelve_data": "https://api.twelvedata.com",
        "alpha_vantage": "https://www.alphavantage.co",
    }

    def __init__(
        self,
        provider: str = "twelve_data",
        session: Optional[Any] = None,
        base_url: Optional[str] = None,
        timeout: float = 10.0,
    ) -> None:
        if provider not in self._BASE_URLS:
            raise ValueError("provider must be one of: twelve_data, alpha_vantage")

        self.provider = provider
        self.base_url = (base_url or self._BASE_URLS[provider]).rstrip("/")
        self.session = session or requests
        self.timeout = timeout

    def _request(self, symbol: str, credential: str) -> tuple[str, Dict[str, str]]:
        if self.provider == "alpha_vantage":
            return (
                f"{self.base_url}/query",
                {"function": "GLOBAL_QUOTE", "symbol": symbol, "apikey": credential},
            )
        return f"{self.base_url}/quote", {"symbol": symbol, "apikey": credential}

    def get_quote(self, symbol: str, credential: str) -> Any:
        """Return the parsed JSON body; raises on transport errors, non-2xx or bad JSON."""
        url, params = self._request(symbol, credential)
        response = self.session.get(url, params=params, timeout=self.timeout)
        response.raise_for_status()
        return response.json()
