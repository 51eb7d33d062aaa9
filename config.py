"""
Configuration for the pool-imbalance / EMA-momentum round backtester.

This is the control center — every tunable parameter lives here.
Keeping config separate from strategy logic is what lets us run
parameter sweeps without touching the engine.

Paths and endpoints can be overridden from a `.env` file next to this
module (DB_PATH, BINANCE_BASE, CACHE_DIR).
"""

import os
from dataclasses import asdict, dataclass, replace
from typing import Optional

from dotenv import load_dotenv

from backtest.errors import ConfigError

load_dotenv(os.path.join(os.path.dirname(os.path.abspath(__file__)), ".env"))

# ── Data Source ──────────────────────────────────────────────────
# Rounds come from the collector's SQLite database. Candles for the
# momentum signal come from Binance (BNBUSDT, 5-minute bars).
DB_PATH = os.getenv("DB_PATH", "prediction.db")
POOL_SNAPSHOT = "lock"          # which pool columns to read: lock_*, t20s_*, ...
BINANCE_BASE = os.getenv("BINANCE_BASE", "https://api.binance.com")
PRICE_SYMBOL = "BNBUSDT"
KLINE_INTERVAL = "5m"
CACHE_DIR = os.getenv("CACHE_DIR", "cache")
CLOSE_PATH_LENGTH = 20          # trailing closes attached to each round

# ── Market Mechanics ─────────────────────────────────────────────
HOUSE_FEE = 0.03                # treasury cut taken from the pot

# ── Momentum Signal (EMA crossover) ──────────────────────────────
EMA_FAST = 3
EMA_SLOW = 7
EMA_NEUTRAL_GAP = 0.05          # |gap| below this (percent) = NEUTRAL

# ── Normal Strategy (contrarian) ─────────────────────────────────
MIN_PAYOUT = 1.45               # opposite pool must be thin enough to pay this

# ── Position Sizing ──────────────────────────────────────────────
BASE_POSITION_FRACTION = 0.045  # 4.5% of bankroll per bet
MOMENTUM_GAP_THRESHOLD = 0.15   # strong signal when |ema gap| >= 0.15%
MOMENTUM_MULTIPLIER = 1.889
RECOVERY_MULTIPLIER = 1.5       # after two losses in a row
BANKROLL_CAP = None             # e.g. 50.0 to stop stakes growing unbounded
STARTING_BANKROLL = 1.0         # BNB

# ── Circuit Breaker ──────────────────────────────────────────────
LOSS_THRESHOLD = 3              # consecutive normal-mode losses
COOLDOWN_MINUTES = 45

# ── Fallback Strategy (mean reversion during cooldown) ───────────
BB_PERIOD = 8
BB_STD = 2.0
BB_LOWER = 35.0                 # pct-b below this = oversold -> BULL
BB_UPPER = 65.0                 # pct-b above this = overbought -> BEAR
MOMENTUM_PERIOD = 10            # rounds for the percent-change indicator

# ── Output ──────────────────────────────────────────────────────
RESULTS_DIR = "results"


@dataclass(frozen=True)
class StrategyConfig:
    """One complete parameter set for a single run."""
    house_fee: float = HOUSE_FEE
    min_payout: float = MIN_PAYOUT
    base_position_fraction: float = BASE_POSITION_FRACTION
    momentum_gap_threshold: float = MOMENTUM_GAP_THRESHOLD
    momentum_multiplier: float = MOMENTUM_MULTIPLIER
    recovery_multiplier: float = RECOVERY_MULTIPLIER
    bankroll_cap: Optional[float] = BANKROLL_CAP
    starting_bankroll: float = STARTING_BANKROLL

    circuit_breaker: bool = True
    loss_threshold: int = LOSS_THRESHOLD
    cooldown_duration_seconds: int = COOLDOWN_MINUTES * 60

    fallback_enabled: bool = True
    fallback_min_payout: Optional[float] = None
    bb_period: int = BB_PERIOD
    bb_std: float = BB_STD
    bb_lower: float = BB_LOWER
    bb_upper: float = BB_UPPER
    momentum_period: int = MOMENTUM_PERIOD
    fallback_momentum_bull_threshold: Optional[float] = None
    fallback_momentum_bear_threshold: Optional[float] = None

    @property
    def effective_fallback_min_payout(self) -> float:
        if self.fallback_min_payout is None:
            return self.min_payout
        return self.fallback_min_payout

    def validate(self) -> "StrategyConfig":
        if self.base_position_fraction <= 0 or self.base_position_fraction > 1:
            raise ConfigError(
                f"base_position_fraction must be in (0, 1], got {self.base_position_fraction}")
        if self.momentum_multiplier <= 0:
            raise ConfigError(f"momentum_multiplier must be > 0, got {self.momentum_multiplier}")
        if self.recovery_multiplier <= 0:
            raise ConfigError(f"recovery_multiplier must be > 0, got {self.recovery_multiplier}")
        if self.loss_threshold <= 0:
            raise ConfigError(f"loss_threshold must be > 0, got {self.loss_threshold}")
        if self.cooldown_duration_seconds <= 0:
            raise ConfigError(
                f"cooldown_duration_seconds must be > 0, got {self.cooldown_duration_seconds}")
        if self.starting_bankroll <= 0:
            raise ConfigError(f"starting_bankroll must be > 0, got {self.starting_bankroll}")
        if not 0 <= self.house_fee < 1:
            raise ConfigError(f"house_fee must be in [0, 1), got {self.house_fee}")
        if self.bankroll_cap is not None and self.bankroll_cap <= 0:
            raise ConfigError(f"bankroll_cap must be > 0, got {self.bankroll_cap}")
        if self.bb_period < 2 or self.momentum_period < 1:
            raise ConfigError("bb_period must be >= 2 and momentum_period >= 1")
        if self.bb_std <= 0:
            raise ConfigError(f"bb_std must be > 0, got {self.bb_std}")
        if self.bb_lower >= self.bb_upper:
            raise ConfigError(
                f"bb_lower ({self.bb_lower}) must be below bb_upper ({self.bb_upper})")
        return self

    def with_overrides(self, **overrides) -> "StrategyConfig":
        unknown = set(overrides) - set(asdict(self))
        if unknown:
            raise ConfigError(f"unknown config option(s): {', '.join(sorted(unknown))}")
        return replace(self, **overrides)
