import unittest
from unittest.mock import MagicMock

import requests

from quote_board.integrations.quote_rest import QuoteRestClient


class TestQuoteRestClient(unittest.TestCase):
    def _session(self, body):
        session = MagicMock()
        response = MagicMock()
        response.json.return_value = body
        response.raise_for_status.return_value = None
        session.get.return_value = response
        return session

    def test_twelve_data_quote_contract(self):
        session = self._session({"symbol": "KO", "close": "61.2"})
        client = QuoteRestClient(session=session, base_url="https://example.test/", timeout=5)

        body = client.get_quote("KO", "key-1")

        self.assertEqual(body, {"symbol": "KO", "close": "61.2"})
        session.get.assert_called_once_with(
            "https://example.test/quote",
            params={"symbol": "KO", "apikey": "key-1"},
            timeout=5,
        )

    def test_alpha_vantage_uses_global_quote_function(self):
        session = self._session({"Global Quote": {}})
        client = QuoteRestClient(provider="alpha_vantage", session=session, base_url="https://example.test")

        client.get_quote("AAPL", "key-2")

        get_call_kwargs = session.get.call_args.kwargs
        self.assertEqual(session.get.call_args.args[0], "https://example.test/query")
        self.assertEqual(
            get_call_kwargs["params"],
            {"function": "GLOBAL_QUOTE", "symbol": "AAPL", "apikey": "key-2"},
        )

    def test_http_error_propagates(self):
        session = MagicMock()
        response = MagicMock()
        response.raise_for_status.side_effect = requests.HTTPError("500 Server Error")
        session.get.return_value = response
        client = QuoteRestClient(session=session)

        with self.assertRaises(requests.HTTPError):
            client.get_quote("KO", "key")
        response.json.assert_not_called()

    def test_unknown_provider_is_rejected(self):
        with self.assertRaises(ValueError):
            QuoteRestClient(provider="yahoo")


if __name__ == "__main__":
    unittest.main()
