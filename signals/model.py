"""
SIGNAL GENERATION — Crowd vs. Momentum
=======================================

Two strategy objects, one interface. The risk controller decides which
one is consulted for a round; they are never blended.

1. CONTRARIAN (normal mode)
   - Momentum picks a direction
   - We only take it when the OPPOSITE pool is thin enough to pay
     at least MIN_PAYOUT. A thin opposite side means the crowd is
     leaning against the momentum read, so the price of agreeing
     with momentum is attractive
   - NEUTRAL momentum never trades

2. MEAN REVERSION (cooldown fallback)
   - After a losing streak the trend read is suspect, so we switch to
     fading extremes: oversold (low %B) -> BULL, overbought -> BEAR
   - Still gated on the payout of the side we bet
"""

from typing import Optional, Protocol

from backtest.models import Momentum, RoundRecord, Signal, SimulationState
from config import StrategyConfig
from signals.features import bollinger_pct_b, percent_momentum


class SignalSource(Protocol):
    name: str

    def generate(self, round_: RoundRecord,
                 state: Optional[SimulationState] = None) -> Optional[Signal]:
        ...

    def describe(self, round_: RoundRecord, signal: Signal) -> str:
        ...


class ContrarianSignal:
    """Momentum direction, taken only against a thin opposite pool."""

    name = "contrarian"

    def __init__(self, house_fee: float, min_payout: float):
        self.house_fee = house_fee
        self.min_payout = min_payout

    @classmethod
    def from_config(cls, config: StrategyConfig) -> "ContrarianSignal":
        return cls(config.house_fee, config.min_payout)

    def generate(self, round_: RoundRecord,
                 state: Optional[SimulationState] = None) -> Optional[Signal]:
        if round_.total_pool == 0:
            return None
        if round_.momentum_signal is Momentum.NEUTRAL:
            return None

        bull_payout, bear_payout = round_.implied_payouts(self.house_fee)
        if round_.momentum_signal is Momentum.BULL and bear_payout >= self.min_payout:
            return Signal.BULL
        if round_.momentum_signal is Momentum.BEAR and bull_payout >= self.min_payout:
            return Signal.BEAR
        return None

    def describe(self, round_: RoundRecord, signal: Signal) -> str:
        bull_payout, bear_payout = round_.implied_payouts(self.house_fee)
        opposite = bear_payout if signal is Signal.BULL else bull_payout
        return (f"EMA {round_.momentum_signal.value} gap {round_.momentum_gap:+.3f}%, "
                f"opposite pool pays {opposite:.3f}x")


class MeanReversionSignal:
    """Fade Bollinger extremes while the circuit breaker is open."""

    name = "mean_reversion"

    def __init__(self, house_fee: float, min_payout: float,
                 bb_period: int = 8, bb_std: float = 2.0,
                 lower: float = 35.0, upper: float = 65.0,
                 momentum_period: int = 10,
                 momentum_bull_threshold: Optional[float] = None,
                 momentum_bear_threshold: Optional[float] = None):
        self.house_fee = house_fee
        self.min_payout = min_payout
        self.bb_period = bb_period
        self.bb_std = bb_std
        self.lower = lower
        self.upper = upper
        self.momentum_period = momentum_period
        self.momentum_bull_threshold = momentum_bull_threshold
        self.momentum_bear_threshold = momentum_bear_threshold

    @classmethod
    def from_config(cls, config: StrategyConfig) -> "MeanReversionSignal":
        return cls(
            house_fee=config.house_fee,
            min_payout=config.effective_fallback_min_payout,
            bb_period=config.bb_period,
            bb_std=config.bb_std,
            lower=config.bb_lower,
            upper=config.bb_upper,
            momentum_period=config.momentum_period,
            momentum_bull_threshold=config.fallback_momentum_bull_threshold,
            momentum_bear_threshold=config.fallback_momentum_bear_threshold,
        )

    def indicators(self, round_: RoundRecord):
        """(pct_b, momentum) over the round's trailing closes; either may be None."""
        prices = round_.close_price_path
        return (bollinger_pct_b(prices, self.bb_period, self.bb_std),
                percent_momentum(prices, self.momentum_period))

    def _candidate(self, round_: RoundRecord) -> Optional[Signal]:
        pct_b, momentum = self.indicators(round_)
        if pct_b is None:
            return None
        if pct_b < self.lower:
            return Signal.BULL
        if pct_b > self.upper:
            return Signal.BEAR

        # Optional second trigger: a sharp run over the momentum window
        if momentum is None:
            return None
        if self.momentum_bull_threshold is not None and momentum < self.momentum_bull_threshold:
            return Signal.BULL
        if self.momentum_bear_threshold is not None and momentum > self.momentum_bear_threshold:
            return Signal.BEAR
        return None

    def generate(self, round_: RoundRecord,
                 state: Optional[SimulationState] = None) -> Optional[Signal]:
        if round_.total_pool == 0:
            return None
        candidate = self._candidate(round_)
        if candidate is None:
            return None

        bull_payout, bear_payout = round_.implied_payouts(self.house_fee)
        payout = bull_payout if candidate is Signal.BULL else bear_payout
        if payout >= self.min_payout:
            return candidate
        return None

    def describe(self, round_: RoundRecord, signal: Signal) -> str:
        pct_b, momentum = self.indicators(round_)
        parts = [f"%B {pct_b:.1f}" if pct_b is not None else "%B n/a"]
        if momentum is not None:
            parts.append(f"mom {momentum:+.2f}%")
        side = "oversold" if signal is Signal.BULL else "overbought"
        return f"mean reversion ({side}): " + ", ".join(parts)
