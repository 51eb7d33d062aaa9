"""
Round loading — SQLite / CSV rows into RoundRecords.

The collector writes one row per epoch into a `rounds` table. Pool columns
come in snapshots (lock_*, t20s_*, t8s_*, ...) taken at different moments
before lock; `pool` picks which snapshot we treat as the betting pools.

Each round also gets a trailing window of close prices from the rounds
that locked BEFORE it, for the mean-reversion fallback.
"""

import logging
import os
import sqlite3
from collections import deque
from decimal import Decimal, InvalidOperation
from typing import List

import pandas as pd

from backtest.errors import DataError
from backtest.models import Momentum, RoundRecord, Winner
from config import CLOSE_PATH_LENGTH, POOL_SNAPSHOT

logger = logging.getLogger(__name__)

# Older collector builds used different column names.
COLUMN_ALIASES = {
    "lock_ts": "lock_timestamp",
    "winner_multiple": "winner_payout_multiple",
}

WINNER_MAP = {
    "up": Winner.UP, "bull": Winner.UP,
    "down": Winner.DOWN, "bear": Winner.DOWN,
    "draw": Winner.DRAW, "house": Winner.DRAW,
}

REQUIRED = ["epoch", "lock_timestamp", "winner"]


def pool_columns(pool: str):
    """Bull/bear wei column names for a snapshot ('final' = settled pools)."""
    if pool in ("final", ""):
        return "bull_amount_wei", "bear_amount_wei"
    return f"{pool}_bull_wei", f"{pool}_bear_wei"


def parse_wei(value) -> int:
    """Exact integer wei from TEXT / int / float cells. Missing = 0."""
    if value is None:
        return 0
    if isinstance(value, float) and value != value:  # NaN
        return 0
    try:
        amount = int(Decimal(str(value).strip()))
    except (InvalidOperation, ValueError) as e:
        raise DataError(f"bad wei amount {value!r}") from e
    if amount < 0:
        raise DataError(f"negative wei amount {value!r}")
    return amount


def parse_winner(value) -> Winner:
    if not isinstance(value, str):
        return Winner.UNKNOWN
    return WINNER_MAP.get(value.strip().lower(), Winner.UNKNOWN)


def parse_momentum(value) -> Momentum:
    if not isinstance(value, str):
        return Momentum.NEUTRAL
    try:
        return Momentum(value.strip().upper())
    except ValueError:
        return Momentum.NEUTRAL


def _optional_float(value):
    if value is None or pd.isna(value):
        return None
    return float(value)


def normalize_columns(frame: pd.DataFrame) -> pd.DataFrame:
    return frame.rename(columns=COLUMN_ALIASES)


def integer_column(frame: pd.DataFrame, column: str) -> pd.Series:
    """Whole-number column as int64; blank or non-numeric cells raise DataError."""
    values = pd.to_numeric(frame[column], errors="coerce")
    bad = values.isna() | (values % 1 != 0)
    if bad.any():
        row = values.index[bad][0]
        raise DataError(f"row {row}: bad {column} value {frame.at[row, column]!r}")
    return values.astype("int64")


def rounds_from_frame(frame: pd.DataFrame, pool: str = POOL_SNAPSHOT,
                      path_length: int = CLOSE_PATH_LENGTH) -> List[RoundRecord]:
    """Convert a `rounds` frame into lock-time ordered RoundRecords."""
    df = normalize_columns(frame)
    bull_col, bear_col = pool_columns(pool)
    missing = [c for c in REQUIRED + [bull_col, bear_col] if c not in df.columns]
    if missing:
        raise DataError(f"rounds data is missing column(s): {', '.join(missing)}")

    df = df.assign(epoch=integer_column(df, "epoch"),
                   lock_timestamp=integer_column(df, "lock_timestamp"))
    df = df.sort_values(["lock_timestamp", "epoch"], kind="stable")
    has_close = "close_price" in df.columns
    closes = deque(maxlen=path_length)
    records = []

    for row in df.to_dict("records"):
        winner = parse_winner(row["winner"])
        multiple = _optional_float(row.get("winner_payout_multiple"))
        gap = _optional_float(row.get("ema_gap"))
        records.append(RoundRecord(
            epoch=int(row["epoch"]),
            lock_timestamp=int(row["lock_timestamp"]),
            pool_bull_amount=parse_wei(row[bull_col]),
            pool_bear_amount=parse_wei(row[bear_col]),
            winner=winner,
            winner_payout_multiple=multiple if winner.tradable else None,
            momentum_signal=parse_momentum(row.get("ema_signal")),
            momentum_gap=gap if gap is not None else 0.0,
            close_price_path=tuple(closes),
        ))
        # this round's close only becomes known after its own lock
        if has_close:
            close = _optional_float(row["close_price"])
            if close is not None:
                closes.append(close)

    logger.info("[DATA] %d rounds loaded (%s pools)", len(records), pool or "final")
    return records


def read_rounds_frame(db_path: str, table: str = "rounds") -> pd.DataFrame:
    if not os.path.exists(db_path):
        raise DataError(f"database not found: {db_path}")
    conn = sqlite3.connect(db_path)
    try:
        return pd.read_sql_query(f"SELECT * FROM {table}", conn)
    except (sqlite3.Error, pd.errors.DatabaseError) as e:
        raise DataError(f"cannot read table {table!r} from {db_path}: {e}") from e
    finally:
        conn.close()


def load_rounds(db_path: str, pool: str = POOL_SNAPSHOT,
                path_length: int = CLOSE_PATH_LENGTH) -> List[RoundRecord]:
    """Load every round from the collector's SQLite database."""
    return rounds_from_frame(read_rounds_frame(db_path), pool=pool, path_length=path_length)


def read_rounds_csv(path: str, pool: str = POOL_SNAPSHOT) -> pd.DataFrame:
    if not os.path.exists(path):
        raise DataError(f"CSV not found: {path}")
    # wei amounts overflow int64; keep them as text
    bull_col, bear_col = pool_columns(pool)
    try:
        return pd.read_csv(path, dtype={bull_col: str, bear_col: str})
    except (pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        raise DataError(f"cannot parse {path}: {e}") from e


def load_rounds_csv(path: str, pool: str = POOL_SNAPSHOT,
                    path_length: int = CLOSE_PATH_LENGTH) -> List[RoundRecord]:
    """Same as load_rounds, from a CSV export of the rounds table."""
    return rounds_from_frame(read_rounds_csv(path, pool), pool=pool, path_length=path_length)
