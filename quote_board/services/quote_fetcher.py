from __future__ import annotations

import threading
import time

import requests

from quote_board.config.settings import FetcherConfig
from quote_board.errors import MissingCredentialError, SymbolSkipError
from quote_board.schemas.quote import Quote, Snapshot
from quote_board.services.normalizer import normalize_quote
from quote_board.services.request_spacer import RequestSpacer


def unique_symbols(symbols: list[str]) -> list[str]:
    out: list[str] = []
    seen: set[str] = set()
    for symbol in symbols:
        value = str(symbol).strip().upper()
        if not value or value in seen:
            continue
        seen.add(value)
        out.append(value)
    return out


class QuoteFetcher:
    """Sequential, rate-limited watch-list fetch with per-symbol soft skips."""

    def __init__(
        self,
        *,
        config: FetcherConfig,
        rest_client,
        spacer: RequestSpacer | None = None,
    ) -> None:
        self.config = config
        self.rest_client = rest_client
        self.spacer = spacer or RequestSpacer(config.request_delay_sec)

        self.cycles_started = 0
        self.cycles_completed = 0
        self.cycles_failed = 0
        self.cycles_cancelled = 0
        self.requests_issued = 0
        self.symbols_skipped = 0
        self.last_batch_target = 0
        self.last_batch_final = 0

    def _fetch_one(self, symbol: str, credential: str) -> Quote:
        try:
            payload = self.rest_client.get_quote(symbol, credential)
        except requests.RequestException as exc:
            raise SymbolSkipError(symbol, f"transport_error {exc}") from exc
        except ValueError as exc:
            # requests' JSONDecodeError is a ValueError
            raise SymbolSkipError(symbol, "malformed_body") from exc

        try:
            return normalize_quote(symbol, payload)
        except SymbolSkipError:
            raise
        except ValueError as exc:
            raise SymbolSkipError(symbol, "unusable_quote") from exc

    def fetch_all(
        self,
        symbols: list[str] | None = None,
        *,
        generation: int = 0,
        cancel_event: threading.Event | None = None,
    ) -> Snapshot | None:
        """Run one fetch cycle.

        Returns the new Snapshot (possibly empty), or None when the cycle was
        cancelled before finishing. Raises MissingCredentialError when no
        credential is configured; per-symbol failures never raise.
        """
        self.cycles_started += 1
        credential = self.config.credential
        if not credential:
            self.cycles_failed += 1
            raise MissingCredentialError("quote provider credential is not configured")

        targets = unique_symbols(self.config.symbols if symbols is None else symbols)
        quotes: list[Quote] = []
        skipped: list[str] = []

        try:
            for symbol in targets:
                if not self.spacer.wait_turn(cancel_event):
                    self.cycles_cancelled += 1
                    print(
                        f"[QUOTE][cycle_cancelled] generation={generation} "
                        f"done={len(quotes) + len(skipped)} target_count={len(targets)}",
                        flush=True,
                    )
                    return None

                self.requests_issued += 1
                try:
                    quotes.append(self._fetch_one(symbol, credential))
                except SymbolSkipError as exc:
                    skipped.append(symbol)
                    self.symbols_skipped += 1
                    print(f"[QUOTE][symbol_skip] symbol={symbol} reason={exc.reason}", flush=True)
        except Exception:
            self.cycles_failed += 1
            raise

        self.cycles_completed += 1
        self.last_batch_target = len(targets)
        self.last_batch_final = len(quotes)
        print(
            "[QUOTE][batch_resolve] "
            f"generation={generation} target_count={len(targets)} "
            f"final_count={len(quotes)} skipped_count={len(skipped)}",
            flush=True,
        )

        return Snapshot(
            quotes=tuple(quotes),
            generation=generation,
            fetched_at=int(time.time()),
            skipped=tuple(skipped),
        )

    def metrics(self) -> dict[str, int]:
        return {
            "cycles_started": self.cycles_started,
            "cycles_completed": self.cycles_completed,
            "cycles_failed": self.cycles_failed,
            "cycles_cancelled": self.cycles_cancelled,
            "requests_issued": self.requests_issued,
            "symbols_skipped": self.symbols_skipped,
            "batch_target_count": self.last_batch_target,
            "batch_final_count": self.last_batch_final,
        }
