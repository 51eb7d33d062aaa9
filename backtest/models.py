"""
DATA MODEL — Rounds In, Trades Out
===================================

A ROUND is one 5-minute betting window on the prediction contract:

  - Players stake BNB on UP (bull pool) or DOWN (bear pool)
  - At lock time the entry window closes and the pools freeze
  - At close the oracle price decides the winner
  - The house takes its fee, the winning side splits the whole pot

PARIMUTUEL PAYOUT:
  payout(side) = total_pool * (1 - house_fee) / pool(side)

  A thin side pays a lot, a crowded side pays little. That is the
  "crowd sentiment" half of the signal.

Pool amounts are wei (1e18 per BNB). Python ints are arbitrary precision,
so we keep them exact all the way through the ratio and only turn the
final multiple into a float.
"""

from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from fractions import Fraction
from typing import Deque, Optional, Tuple


class Winner(str, Enum):
    UP = "UP"
    DOWN = "DOWN"
    DRAW = "DRAW"
    UNKNOWN = "UNKNOWN"

    @property
    def tradable(self) -> bool:
        return self in (Winner.UP, Winner.DOWN)


class Momentum(str, Enum):
    BULL = "BULL"
    BEAR = "BEAR"
    NEUTRAL = "NEUTRAL"


class Signal(str, Enum):
    BULL = "BULL"
    BEAR = "BEAR"

    def wins_on(self, winner: Winner) -> bool:
        if self is Signal.BULL:
            return winner is Winner.UP
        return winner is Winner.DOWN


class Mode(str, Enum):
    NORMAL = "normal"
    COOLDOWN = "cooldown"


def payout_multiple(total: int, side: int, house_fee: float) -> float:
    """Parimutuel multiple for one side; an empty side can't be priced."""
    if side <= 0:
        return float("inf")
    keep = 1 - Fraction(str(house_fee))
    return float(Fraction(total) * keep / side)


@dataclass(frozen=True)
class RoundRecord:
    epoch: int
    lock_timestamp: int
    pool_bull_amount: int
    pool_bear_amount: int
    winner: Winner
    winner_payout_multiple: Optional[float] = None
    momentum_signal: Momentum = Momentum.NEUTRAL
    momentum_gap: float = 0.0
    close_price_path: Tuple[float, ...] = ()

    @property
    def total_pool(self) -> int:
        return self.pool_bull_amount + self.pool_bear_amount

    def implied_payouts(self, house_fee: float) -> Tuple[float, float]:
        """(bull_payout, bear_payout) implied by the frozen pools."""
        total = self.total_pool
        return (payout_multiple(total, self.pool_bull_amount, house_fee),
                payout_multiple(total, self.pool_bear_amount, house_fee))


@dataclass(frozen=True)
class Trade:
    epoch: int
    lock_timestamp: int
    signal: Signal
    stake_fraction: float      # fraction of the (capped) bankroll
    stake_amount: float        # BNB risked
    mode: Mode
    won: bool
    realized_payout_multiple: float  # 0.0 on a loss
    profit: float
    bankroll_after: float
    reason: str = ""


@dataclass
class SimulationState:
    """Everything one run mutates. Created per run, never shared."""
    bankroll: float
    starting_bankroll: float
    peak_bankroll: float
    max_drawdown_pct: float = 0.0
    last_two_outcomes: Deque[bool] = field(default_factory=lambda: deque(maxlen=2))
    consecutive_losses: int = 0
    cooldown_until_timestamp: int = 0

    # bookkeeping
    circuit_breaker_triggers: int = 0
    rounds_seen: int = 0
    skipped_ineligible: int = 0
    skipped_no_signal: int = 0
    skipped_cooldown: int = 0
    last_timestamp: Optional[int] = None
    busted: bool = False

    @classmethod
    def start(cls, bankroll: float) -> "SimulationState":
        return cls(bankroll=bankroll, starting_bankroll=bankroll,
                   peak_bankroll=bankroll)

    @property
    def cooldown_active(self) -> bool:
        return self.cooldown_until_timestamp > 0

    @property
    def last_two_lost(self) -> bool:
        return (len(self.last_two_outcomes) == 2
                and not any(self.last_two_outcomes))

    def mark_to_market(self):
        """Refresh the high-water mark and worst drawdown (in percent)."""
        if self.bankroll > self.peak_bankroll:
            self.peak_bankroll = self.bankroll
        if self.peak_bankroll > 0:
            dd = (self.peak_bankroll - self.bankroll) / self.peak_bankroll * 100
            self.max_drawdown_pct = max(self.max_drawdown_pct, dd)
