from __future__ import annotations

import threading
from contextlib import asynccontextmanager

from fastapi import FastAPI
from pydantic import ValidationError

from quote_board.api.routes import router
from quote_board.config.settings import FetcherConfig, get_settings
from quote_board.integrations.quote_rest import QuoteRestClient
from quote_board.services.quote_board import QuoteBoard
from quote_board.services.quote_fetcher import QuoteFetcher

_board_lock = threading.Lock()


def build_quote_board(config: FetcherConfig) -> QuoteBoard:
    rest_client = QuoteRestClient(
        provider=config.provider,
        base_url=config.base_url,
        timeout=config.timeout_sec,
    )
    return QuoteBoard(QuoteFetcher(config=config, rest_client=rest_client))


def _load_fetcher_config(app: FastAPI) -> FetcherConfig:
    try:
        return app.state.get_settings().fetcher_config()
    except ValidationError as exc:
        # no credential in the fallback config, so every cycle is a hard failure
        print(f"[BOARD][settings_error] errors={exc.error_count()} detail={exc.errors()[0]['msg']}", flush=True)
        return FetcherConfig(credential=None)


def get_quote_board(app: FastAPI) -> QuoteBoard:
    with _board_lock:
        if app.state.quote_board is None:
            app.state.quote_board = build_quote_board(_load_fetcher_config(app))
        return app.state.quote_board


@asynccontextmanager
async def lifespan(app: FastAPI):
    board = app.state.get_quote_board()
    # initial load; a missing credential or bad settings surface through board status
    board.trigger_refresh()
    try:
        yield
    finally:
        board.shutdown(timeout=1.0)


app = FastAPI(title="Watch-list Quote Board", version="0.1.0", lifespan=lifespan)
app.include_router(router, prefix="/v1")

# NOTE: lazy-loaded so app import does not require env during tests.
app.state.get_settings = get_settings
app.state.quote_board = None
app.state.get_quote_board = lambda: get_quote_board(app)
