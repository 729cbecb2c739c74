from __future__ import annotations

import math
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

SortKey = Literal["none", "price-desc", "change-desc"]
SORT_KEYS: tuple[str, ...] = ("none", "price-desc", "change-desc")


class Quote(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    symbol: str = Field(min_length=1)
    price: float = Field(ge=0)
    change_percent: float = Field(default=0.0, alias="changePercent")

    @field_validator("symbol")
    @classmethod
    def _upper_symbol(cls, value: str) -> str:
        symbol = value.strip().upper()
        if not symbol:
            raise ValueError("symbol must not be blank")
        return symbol

    @field_validator("price", "change_percent")
    @classmethod
    def _finite(cls, value: float) -> float:
        if not math.isfinite(value):
            raise ValueError("value must be finite")
        return value


class Snapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    quotes: tuple[Quote, ...] = ()
    generation: int = 0
    fetched_at: int = 0
    skipped: tuple[str, ...] = ()

    @property
    def symbols(self) -> list[str]:
        return [q.symbol for q in self.quotes]


class ViewState(BaseModel):
    search_text: str = ""
    sort_key: SortKey = "none"


class ViewUpdate(BaseModel):
    search_text: str | None = None
    sort_key: SortKey | None = None


class BoardStatus(BaseModel):
    loading: bool = False
    generation: int = 0
    error: str | None = None
    last_success_ts: int | None = None
    snapshot_size: int = 0
