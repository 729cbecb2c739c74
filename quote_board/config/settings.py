import os
from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field

DEFAULT_SYMBOLS = ["AAPL", "MSFT", "GOOGL", "AMZN", "META", "NFLX", "PEP", "KO", "WMT", "BA"]


class FetcherConfig(BaseModel):
    provider: Literal["twelve_data", "alpha_vantage"] = "twelve_data"
    base_url: str | None = None
    credential: str | None = None
    request_delay_sec: float = Field(default=0.5, ge=0)
    timeout_sec: float = Field(default=10.0, gt=0)
    symbols: list[str] = Field(default_factory=lambda: list(DEFAULT_SYMBOLS))


class Settings(BaseModel):
    QUOTE_ENV: Literal["development", "production"] = "development"
    QUOTE_API_KEY_DEV: str | None = None
    QUOTE_API_KEY_PROD: str | None = None
    QUOTE_PROVIDER: Literal["twelve_data", "alpha_vantage"] = "twelve_data"
    QUOTE_PROVIDER_BASE_URL: str | None = None
    QUOTE_REQUEST_DELAY_MS: int = Field(default=500, ge=0)
    QUOTE_REQUEST_TIMEOUT_SEC: float = Field(default=10.0, gt=0)
    QUOTE_SYMBOLS: list[str] = Field(default_factory=lambda: list(DEFAULT_SYMBOLS))

    @classmethod
    def from_env(cls) -> "Settings":
        raw_symbols = os.getenv("QUOTE_SYMBOLS", ",".join(DEFAULT_SYMBOLS))
        symbols = [s.strip().upper() for s in raw_symbols.split(",") if s.strip()]
        if not symbols:
            symbols = list(DEFAULT_SYMBOLS)

        raw = {
            "QUOTE_ENV": os.getenv("QUOTE_ENV", "development"),
            "QUOTE_API_KEY_DEV": os.getenv("QUOTE_API_KEY_DEV") or None,
            "QUOTE_API_KEY_PROD": os.getenv("QUOTE_API_KEY_PROD") or None,
            "QUOTE_PROVIDER": os.getenv("QUOTE_PROVIDER", "twelve_data"),
            "QUOTE_PROVIDER_BASE_URL": os.getenv("QUOTE_PROVIDER_BASE_URL") or None,
            "QUOTE_SYMBOLS": symbols,
        }
        # unset numeric knobs fall back to model defaults
        if os.getenv("QUOTE_REQUEST_DELAY_MS"):
            raw["QUOTE_REQUEST_DELAY_MS"] = os.getenv("QUOTE_REQUEST_DELAY_MS")
        if os.getenv("QUOTE_REQUEST_TIMEOUT_SEC"):
            raw["QUOTE_REQUEST_TIMEOUT_SEC"] = os.getenv("QUOTE_REQUEST_TIMEOUT_SEC")
        return cls.model_validate(raw)

    @property
    def credential(self) -> str | None:
        if self.QUOTE_ENV == "production":
            return self.QUOTE_API_KEY_PROD
        return self.QUOTE_API_KEY_DEV

    def fetcher_config(self) -> FetcherConfig:
        return FetcherConfig(
            provider=self.QUOTE_PROVIDER,
            base_url=self.QUOTE_PROVIDER_BASE_URL,
            credential=self.credential,
            request_delay_sec=self.QUOTE_REQUEST_DELAY_MS / 1000.0,
            timeout_sec=self.QUOTE_REQUEST_TIMEOUT_SEC,
            symbols=list(self.QUOTE_SYMBOLS),
        )


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()
