"""
Binance kline fetcher for the momentum signal.

Free public endpoint, no key needed. Binance caps one request at 1000
candles, so longer ranges are paged forward by open time. Results are
cached as CSV so repeated backtests don't hammer the API.
"""

import logging
import os
import time
from typing import Optional

import pandas as pd
import requests

from config import BINANCE_BASE, CACHE_DIR, KLINE_INTERVAL, PRICE_SYMBOL

logger = logging.getLogger(__name__)

KLINE_LIMIT = 1000
KLINE_COLUMNS = ["timestamp", "open", "high", "low", "close", "volume", "close_time",
                 "quote_volume", "num_trades", "taker_buy_volume",
                 "taker_buy_quote_volume", "ignore"]
KEEP = ["timestamp", "open", "high", "low", "close", "volume", "close_time"]


def fetch_klines(symbol: str = PRICE_SYMBOL, interval: str = KLINE_INTERVAL,
                 start_ms: Optional[int] = None, end_ms: Optional[int] = None,
                 session: Optional[requests.Session] = None,
                 pause: float = 0.1) -> pd.DataFrame:
    """
    Pull candles in [start_ms, end_ms] (both optional).

    timestamp / close_time stay as integer milliseconds; prices are floats.
    HTTP errors propagate as requests.HTTPError.
    """
    http = session or requests.Session()
    url = f"{BINANCE_BASE}/api/v3/klines"
    rows = []
    cursor = start_ms

    while True:
        params = {"symbol": symbol, "interval": interval, "limit": KLINE_LIMIT}
        if cursor is not None:
            params["startTime"] = cursor
        if end_ms is not None:
            params["endTime"] = end_ms

        resp = http.get(url, params=params, timeout=10)
        resp.raise_for_status()
        batch = resp.json()
        if not batch:
            break
        rows.extend(batch)

        if len(batch) < KLINE_LIMIT:
            break
        cursor = int(batch[-1][0]) + 1
        if end_ms is not None and cursor > end_ms:
            break
        time.sleep(pause)

    df = pd.DataFrame(rows, columns=KLINE_COLUMNS)[KEEP]
    df = df.astype({"timestamp": "int64", "close_time": "int64", "open": float,
                    "high": float, "low": float, "close": float, "volume": float})
    df = df.drop_duplicates(subset="timestamp").sort_values("timestamp").reset_index(drop=True)
    logger.info("[FETCH] %s %s: %d candles", symbol, interval, len(df))
    return df


def cache_path(symbol: str, interval: str, start_ms, end_ms) -> str:
    return os.path.join(CACHE_DIR, f"{symbol}_{interval}_{start_ms}_{end_ms}.csv")


def load_or_fetch(symbol: str = PRICE_SYMBOL, interval: str = KLINE_INTERVAL,
                  start_ms: Optional[int] = None, end_ms: Optional[int] = None,
                  force_refresh: bool = False,
                  session: Optional[requests.Session] = None) -> pd.DataFrame:
    """Cached fetch_klines."""
    path = cache_path(symbol, interval, start_ms, end_ms)
    if os.path.exists(path) and not force_refresh:
        logger.info("[FETCH] using cached candles %s", path)
        return pd.read_csv(path)

    df = fetch_klines(symbol, interval, start_ms, end_ms, session=session)
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    df.to_csv(path, index=False)
    return df
