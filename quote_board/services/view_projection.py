from __future__ import annotations

from typing import Callable, Iterable

from quote_board.schemas.quote import SORT_KEYS, Quote, Snapshot, ViewState


def _check_sort_key(sort_key: str) -> str:
    if sort_key not in SORT_KEYS:
        raise ValueError(f"unknown sort key: {sort_key!r}")
    return sort_key


def project(quotes: Snapshot | Iterable[Quote], search_text: str = "", sort_key: str = "none") -> list[Quote]:
    """Filter by case-insensitive symbol substring, then order by sort key.

    Python's sort is stable, so equal prices / changes keep snapshot order.
    """
    _check_sort_key(sort_key)
    rows = quotes.quotes if isinstance(quotes, Snapshot) else quotes
    needle = (search_text or "").casefold()
    filtered = [q for q in rows if needle in q.symbol.casefold()]

    if sort_key == "price-desc":
        filtered.sort(key=lambda q: q.price, reverse=True)
    elif sort_key == "change-desc":
        filtered.sort(key=lambda q: q.change_percent, reverse=True)
    return filtered


class ViewProjection:
    """Last snapshot + view state, with the derived rows kept current."""

    def __init__(self, on_view_change: Callable[[list[Quote]], None] | None = None) -> None:
        self._snapshot = Snapshot()
        self._state = ViewState()
        self._rows: list[Quote] = []
        self._on_view_change = on_view_change
        self.recomputes = 0

    @property
    def snapshot(self) -> Snapshot:
        return self._snapshot

    @property
    def state(self) -> ViewState:
        return self._state.model_copy()

    def _recompute(self) -> None:
        self._rows = project(self._snapshot, self._state.search_text, self._state.sort_key)
        self.recomputes += 1
        if self._on_view_change is not None:
            self._on_view_change(list(self._rows))

    def set_snapshot(self, snapshot: Snapshot) -> None:
        self._snapshot = snapshot
        self._recompute()

    def set_search_text(self, search_text: str) -> None:
        self._state = self._state.model_copy(update={"search_text": search_text or ""})
        self._recompute()

    def set_sort_key(self, sort_key: str) -> None:
        self._state = self._state.model_copy(update={"sort_key": _check_sort_key(sort_key)})
        self._recompute()

    def rows(self) -> list[Quote]:
        return list(self._rows)
