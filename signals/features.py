"""
PRICE FEATURES — Momentum and Mean Reversion Inputs
====================================================

Two families of price features feed the strategy:

1. MOMENTUM (normal mode)
   - Fast/slow EMA crossover on 5-minute candles of the underlying
   - gap = (ema_fast - ema_slow) / ema_slow * 100   (percent of price)
   - |gap| below a small threshold is NEUTRAL: the averages are tangled
     and the trend is noise

2. MEAN REVERSION (cooldown fallback)
   - Bollinger %B on the last few round closes: where is price inside
     its band? 0 = lower band, 100 = upper band
   - Percent change over the last N rounds

IMPORTANT: every feature uses ONLY data available at the round's lock.
Candles are joined backward in time, never forward.
"""

from typing import Optional, Sequence

import numpy as np
import pandas as pd

from config import EMA_FAST, EMA_SLOW, EMA_NEUTRAL_GAP, BB_PERIOD, BB_STD, MOMENTUM_PERIOD


# ════════════════════════════════════════════════════════════════
# MEAN REVERSION INDICATORS
# ════════════════════════════════════════════════════════════════

def bollinger_pct_b(prices: Sequence[float], period: int = BB_PERIOD,
                    std_mult: float = BB_STD) -> Optional[float]:
    """
    Position of the latest price inside its Bollinger band, 0–100.

    Uses the population standard deviation of the last `period` prices.
    Returns None with too little history or a zero-width band.
    """
    if len(prices) < period:
        return None
    window = np.asarray(prices[-period:], dtype=float)
    mid = window.mean()
    std = window.std()  # ddof=0
    if std == 0:
        return None
    lower = mid - std_mult * std
    upper = mid + std_mult * std
    return float((window[-1] - lower) / (upper - lower) * 100)


def percent_momentum(prices: Sequence[float], period: int = MOMENTUM_PERIOD) -> Optional[float]:
    """Percent change from `period` rounds ago to the latest price."""
    if len(prices) < period + 1:
        return None
    old = float(prices[-period - 1])
    if old == 0:
        return None
    return (float(prices[-1]) - old) / old * 100


# ════════════════════════════════════════════════════════════════
# MOMENTUM — EMA CROSSOVER
# ════════════════════════════════════════════════════════════════

def ema_crossover(candles: pd.DataFrame, fast: int = EMA_FAST, slow: int = EMA_SLOW,
                  neutral_gap: float = EMA_NEUTRAL_GAP) -> pd.DataFrame:
    """
    Add ema_fast / ema_slow / ema_gap / ema_signal columns to a candle frame.

    Fast EMA above slow = bullish. The first `slow - 1` bars have no signal
    (the slow average hasn't seen enough history yet).
    """
    df = candles.copy()
    close = df["close"].astype(float)
    df["ema_fast"] = close.ewm(span=fast, adjust=False).mean()
    df["ema_slow"] = close.ewm(span=slow, adjust=False).mean()
    df["ema_gap"] = (df["ema_fast"] - df["ema_slow"]) / df["ema_slow"] * 100

    df["ema_signal"] = np.where(df["ema_gap"] > neutral_gap, "BULL",
                                np.where(df["ema_gap"] < -neutral_gap, "BEAR", "NEUTRAL"))
    warmup = df.index[:max(slow - 1, 0)]
    df.loc[warmup, "ema_gap"] = np.nan
    df.loc[warmup, "ema_signal"] = None
    return df


def annotate_rounds(rounds: pd.DataFrame, candles: pd.DataFrame,
                    fast: int = EMA_FAST, slow: int = EMA_SLOW,
                    neutral_gap: float = EMA_NEUTRAL_GAP) -> pd.DataFrame:
    """
    Attach ema_signal / ema_gap to each round from the last candle that
    had CLOSED at or before the round's lock time.

    `rounds` needs a lock_timestamp column (unix seconds); `candles` needs
    close_time (ms) and close. Existing ema columns are replaced.
    """
    ema = ema_crossover(candles, fast=fast, slow=slow, neutral_gap=neutral_gap)
    ema = ema.dropna(subset=["ema_gap"])
    ema = ema.assign(close_ts=(ema["close_time"].astype("int64") // 1000))
    ema = ema[["close_ts", "ema_signal", "ema_gap"]].sort_values("close_ts")

    left = rounds.drop(columns=[c for c in ("ema_signal", "ema_gap") if c in rounds.columns])
    left = left.assign(lock_timestamp=left["lock_timestamp"].astype("int64"))
    left = left.sort_values("lock_timestamp", kind="stable")
    merged = pd.merge_asof(left, ema, left_on="lock_timestamp",
                           right_on="close_ts", direction="backward")
    return merged.drop(columns=["close_ts"]).reset_index(drop=True)
