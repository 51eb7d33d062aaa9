import os
import shutil
import tempfile
import unittest
from unittest import mock

import requests

from data import fetcher


def kline(open_ms, close=300.0):
    return [open_ms, "300.0", "301.0", "299.0", str(close), "12.5", open_ms + 299_999,
            "0", 10, "0", "0", "0"]


def response(batch, status=200):
    resp = mock.Mock()
    resp.json.return_value = batch
    if status >= 400:
        resp.raise_for_status.side_effect = requests.HTTPError(f"{status} error")
    else:
        resp.raise_for_status.return_value = None
    return resp


class FetchKlinesTests(unittest.TestCase):
    def test_single_page(self):
        session = mock.Mock()
        session.get.return_value = response([kline(0), kline(300_000, close=305.5)])

        df = fetcher.fetch_klines("BNBUSDT", "5m", start_ms=0, end_ms=600_000,
                                  session=session, pause=0)

        self.assertEqual(list(df.columns), fetcher.KEEP)
        self.assertEqual(len(df), 2)
        self.assertEqual(df["close"].iloc[1], 305.5)
        self.assertEqual(df["close_time"].iloc[0], 299_999)
        params = session.get.call_args.kwargs["params"]
        self.assertEqual(params["startTime"], 0)
        self.assertEqual(params["endTime"], 600_000)
        self.assertEqual(params["limit"], 1000)

    def test_pages_until_short_batch(self):
        first = [kline(i * 300_000) for i in range(1000)]
        second = [kline((1000 + i) * 300_000) for i in range(5)]
        session = mock.Mock()
        session.get.side_effect = [response(first), response(second)]

        df = fetcher.fetch_klines(start_ms=0, session=session, pause=0)

        self.assertEqual(len(df), 1005)
        self.assertEqual(session.get.call_count, 2)
        second_params = session.get.call_args_list[1].kwargs["params"]
        self.assertEqual(second_params["startTime"], 999 * 300_000 + 1)
        self.assertTrue(df["timestamp"].is_monotonic_increasing)

    def test_http_error_propagates(self):
        session = mock.Mock()
        session.get.return_value = response([], status=429)
        with self.assertRaises(requests.HTTPError):
            fetcher.fetch_klines(session=session, pause=0)


class CacheTests(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.mkdtemp()
        patcher = mock.patch.object(fetcher, "CACHE_DIR", self.tmp)
        patcher.start()
        self.addCleanup(patcher.stop)

    def tearDown(self):
        shutil.rmtree(self.tmp)

    def test_second_call_reads_cache(self):
        session = mock.Mock()
        session.get.return_value = response([kline(0), kline(300_000)])

        first = fetcher.load_or_fetch("BNBUSDT", "5m", 0, 600_000, session=session)
        second = fetcher.load_or_fetch("BNBUSDT", "5m", 0, 600_000, session=session)

        self.assertEqual(session.get.call_count, 1)
        self.assertTrue(os.path.exists(fetcher.cache_path("BNBUSDT", "5m", 0, 600_000)))
        self.assertEqual(list(first["close"]), list(second["close"]))

    def test_force_refresh_refetches(self):
        session = mock.Mock()
        session.get.return_value = response([kline(0)])
        fetcher.load_or_fetch("BNBUSDT", "5m", 0, 1, session=session)
        fetcher.load_or_fetch("BNBUSDT", "5m", 0, 1, force_refresh=True, session=session)
        self.assertEqual(session.get.call_count, 2)


if __name__ == "__main__":
    unittest.main()
