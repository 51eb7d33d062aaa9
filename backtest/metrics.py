"""
METRICS — What Did the Run Actually Do?
========================================

Pure aggregation over a finished trade ledger. Nothing here looks at
rounds or mutates trades.

  - win rate, ROI, max drawdown over the whole run
  - the same counts split by mode (normal vs. cooldown), so the
    fallback strategy can be judged on its own
  - streaks: the longest losing run is what the circuit breaker exists for
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List

import numpy as np

from backtest.models import Mode, Trade


@dataclass(frozen=True)
class ModeStats:
    trades: int = 0
    wins: int = 0
    losses: int = 0
    profit: float = 0.0

    @property
    def win_rate(self) -> float:
        return self.wins / self.trades if self.trades else 0.0


@dataclass(frozen=True)
class Metrics:
    starting_bankroll: float
    final_bankroll: float
    total_trades: int
    wins: int
    losses: int
    max_drawdown_pct: float
    busted: bool = False
    by_mode: Dict[Mode, ModeStats] = field(default_factory=dict)
    longest_win_streak: int = 0
    longest_loss_streak: int = 0
    avg_win: float = 0.0
    avg_loss: float = 0.0
    avg_payout: float = 0.0
    profit_factor: float = 0.0

    @property
    def win_rate(self) -> float:
        return self.wins / self.total_trades if self.total_trades else 0.0

    @property
    def roi(self) -> float:
        return (self.final_bankroll - self.starting_bankroll) / self.starting_bankroll

    @property
    def total_profit(self) -> float:
        return self.final_bankroll - self.starting_bankroll


def _longest_run(outcomes: List[bool], value: bool) -> int:
    best = run = 0
    for o in outcomes:
        run = run + 1 if o is value else 0
        best = max(best, run)
    return best


def _max_drawdown_pct(starting_bankroll: float, equity: Iterable[float]) -> float:
    peak = starting_bankroll
    worst = 0.0
    for value in equity:
        peak = max(peak, value)
        if peak > 0:
            worst = max(worst, (peak - value) / peak * 100)
    return worst


class MetricsCollector:

    def __init__(self, starting_bankroll: float = 1.0):
        self.starting_bankroll = starting_bankroll

    def summarize(self, trades: List[Trade]) -> Metrics:
        return summarize(trades, self.starting_bankroll)


def summarize(trades: List[Trade], starting_bankroll: float = 1.0) -> Metrics:
    """Aggregate a trade ledger into run metrics."""
    outcomes = [t.won for t in trades]
    wins = sum(outcomes)
    final = trades[-1].bankroll_after if trades else starting_bankroll

    by_mode = {}
    for mode in Mode:
        subset = [t for t in trades if t.mode is mode]
        mode_wins = sum(1 for t in subset if t.won)
        by_mode[mode] = ModeStats(
            trades=len(subset),
            wins=mode_wins,
            losses=len(subset) - mode_wins,
            profit=float(sum(t.profit for t in subset)),
        )

    win_profits = [t.profit for t in trades if t.won]
    loss_profits = [t.profit for t in trades if not t.won]
    gross_loss = abs(sum(loss_profits))
    if gross_loss > 0:
        profit_factor = sum(win_profits) / gross_loss
    else:
        profit_factor = float("inf") if win_profits else 0.0

    return Metrics(
        starting_bankroll=starting_bankroll,
        final_bankroll=final,
        total_trades=len(trades),
        wins=wins,
        losses=len(trades) - wins,
        max_drawdown_pct=_max_drawdown_pct(starting_bankroll,
                                           (t.bankroll_after for t in trades)),
        busted=bool(trades) and final <= 0,
        by_mode=by_mode,
        longest_win_streak=_longest_run(outcomes, True),
        longest_loss_streak=_longest_run(outcomes, False),
        avg_win=float(np.mean(win_profits)) if win_profits else 0.0,
        avg_loss=float(np.mean(loss_profits)) if loss_profits else 0.0,
        avg_payout=float(np.mean([t.realized_payout_multiple for t in trades if t.won]))
        if win_profits else 0.0,
        profit_factor=profit_factor,
    )
