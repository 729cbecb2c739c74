import os
import threading
import unittest
from unittest.mock import patch

from fastapi.testclient import TestClient

from quote_board.config.settings import FetcherConfig, get_settings
from quote_board.main import app
from quote_board.services.quote_board import QuoteBoard
from quote_board.services.quote_fetcher import QuoteFetcher


class StubRestClient:
    PRICES = {
        "AAPL": ("256.10", "1.20"),
        "MSFT": ("410.00", "-0.40"),
        "KO": ("61.20", "-0.35"),
        "BA": ("180.00", "2.50"),
    }

    def __init__(self) -> None:
        self.calls = 0
        self.release = threading.Event()
        self.release.set()

    def get_quote(self, symbol: str, credential: str) -> dict:
        self.calls += 1
        self.release.wait(2.0)
        if symbol not in self.PRICES:
            return {"status": "error", "code": 404}
        price, change = self.PRICES[symbol]
        return {"symbol": symbol, "price": price, "percent_change": change}


class QuoteApiTest(unittest.TestCase):
    def setUp(self):
        self.rest_client = StubRestClient()
        config = FetcherConfig(
            base_url="https://example.test",
            credential="key-1",
            request_delay_sec=0.0,
            symbols=["AAPL", "MSFT", "ZZZZ", "KO", "BA"],
        )
        self.board = QuoteBoard(QuoteFetcher(config=config, rest_client=self.rest_client))
        app.state.quote_board = self.board
        self.client = TestClient(app)

    def test_snapshot_not_ready_before_first_cycle(self):
        res = self.client.get('/v1/snapshot')
        self.assertEqual(res.status_code, 404)
        self.assertEqual(res.json(), {'detail': 'SNAPSHOT_NOT_READY'})

        res = self.client.get('/v1/quotes')
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.json(), [])

    def test_refresh_then_list_quotes(self):
        res = self.client.post('/v1/quotes/refresh')
        self.assertEqual(res.status_code, 202)
        self.assertEqual(res.json(), {'accepted': True, 'generation': 1})
        self.assertTrue(self.board.wait(2.0))

        rows = self.client.get('/v1/quotes').json()
        self.assertEqual([r['symbol'] for r in rows], ['AAPL', 'MSFT', 'KO', 'BA'])
        self.assertEqual(rows[2], {'symbol': 'KO', 'price': 61.2, 'changePercent': -0.35})

        snapshot = self.client.get('/v1/snapshot').json()
        self.assertEqual(snapshot['generation'], 1)
        self.assertEqual(snapshot['skipped'], ['ZZZZ'])

    def test_refresh_in_flight_returns_conflict(self):
        self.rest_client.release.clear()
        try:
            self.assertEqual(self.client.post('/v1/quotes/refresh').status_code, 202)
            res = self.client.post('/v1/quotes/refresh')
            self.assertEqual(res.status_code, 409)
            self.assertEqual(res.json(), {'detail': 'REFRESH_IN_PROGRESS'})
            self.assertTrue(self.client.get('/v1/board/status').json()['loading'])
        finally:
            self.rest_client.release.set()
        self.assertTrue(self.board.wait(2.0))

    def test_query_overrides_search_and_sort(self):
        self.board.refresh_now()

        rows = self.client.get('/v1/quotes', params={'sort': 'change-desc'}).json()
        self.assertEqual([r['symbol'] for r in rows], ['BA', 'AAPL', 'KO', 'MSFT'])

        rows = self.client.get('/v1/quotes', params={'search': 'a', 'sort': 'price-desc'}).json()
        self.assertEqual([r['symbol'] for r in rows], ['AAPL', 'BA'])

        state = self.client.get('/v1/view').json()['state']
        self.assertEqual(state, {'search_text': '', 'sort_key': 'none'})

    def test_update_view_state(self):
        self.board.refresh_now()
        calls = self.rest_client.calls

        res = self.client.put('/v1/view', json={'sort_key': 'price-desc'})
        self.assertEqual(res.status_code, 200)
        body = res.json()
        self.assertEqual(body['state'], {'search_text': '', 'sort_key': 'price-desc'})
        self.assertEqual([r['symbol'] for r in body['rows']], ['MSFT', 'AAPL', 'BA', 'KO'])

        body = self.client.put('/v1/view', json={'search_text': 'S'}).json()
        self.assertEqual([r['symbol'] for r in body['rows']], ['MSFT'])
        self.assertEqual(self.rest_client.calls, calls)

    def test_invalid_sort_key_is_rejected(self):
        self.assertEqual(self.client.put('/v1/view', json={'sort_key': 'symbol'}).status_code, 422)
        self.assertEqual(self.client.get('/v1/quotes', params={'sort': 'symbol'}).status_code, 422)

    def test_status_and_metrics_after_missing_credential(self):
        self.board.fetcher.config = self.board.fetcher.config.model_copy(update={'credential': None})
        self.board.refresh_now()

        status = self.client.get('/v1/board/status').json()
        self.assertEqual(status['error'], 'Failed to fetch stock data')
        self.assertFalse(status['loading'])
        self.assertEqual(status['snapshot_size'], 0)

        metrics = self.client.get('/v1/metrics/quote').json()
        self.assertEqual(metrics['cycles_failed'], 1)
        self.assertEqual(metrics['errors_published'], 1)
        self.assertEqual(metrics['requests_issued'], 0)
        self.assertIn('spacer_turns', metrics)


class QuoteBoardSettingsTest(unittest.TestCase):
    def setUp(self):
        self.original_board = app.state.quote_board
        app.state.quote_board = None
        get_settings.cache_clear()

    def tearDown(self):
        app.state.quote_board = self.original_board
        get_settings.cache_clear()

    def test_board_is_built_once_on_first_use(self):
        with patch.dict(os.environ, {'QUOTE_API_KEY_DEV': 'dev-key'}, clear=True):
            board = app.state.get_quote_board()

        self.assertIs(app.state.get_quote_board(), board)
        self.assertEqual(board.fetcher.config.credential, 'dev-key')

    def test_invalid_settings_surface_as_fetch_error(self):
        with patch.dict(os.environ, {'QUOTE_ENV': 'staging', 'QUOTE_API_KEY_DEV': 'dev-key'}, clear=True):
            client = TestClient(app)
            board = app.state.get_quote_board()
            board.refresh_now()
            status = client.get('/v1/board/status').json()

        self.assertEqual(status['error'], 'Failed to fetch stock data')
        self.assertEqual(status['snapshot_size'], 0)
        self.assertEqual(board.fetcher.metrics()['requests_issued'], 0)


if __name__ == '__main__':
    unittest.main()
