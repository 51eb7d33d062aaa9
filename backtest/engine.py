"""
BACKTESTING ENGINE — Replaying Rounds in Order
===============================================

QUANT FUNDAMENTAL: "If you can't backtest it, you can't trade it."

This engine replays historical rounds of the on-chain UP/DOWN
prediction market, one at a time, exactly in lock-time order.

ROUND MECHANICS:
  - You stake x BNB on BULL (UP) or BEAR (DOWN) before lock
  - If correct: you receive x * payout_multiple → profit = x * (multiple - 1)
  - If wrong: you lose the stake → profit = -x
  - DRAW / UNKNOWN rounds are never traded

PER ROUND:
  1. Reject time travel (a round locking before the previous one)
  2. Ask the circuit breaker which mode we're in
  3. Ask the matching strategy for a signal (or skip)
  4. Size the stake from recent results and momentum strength
  5. Resolve, update bankroll / peak / drawdown / streaks
  6. Stop dead if the bankroll is gone

WHAT WE TRACK:
  - Trade ledger (one frozen record per bet)
  - Equity curve, max drawdown from the running peak
  - Loss streaks and circuit breaker trips
  - Normal vs. cooldown performance
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple

from backtest.errors import OrderingError
from backtest.metrics import Metrics, summarize
from backtest.models import Mode, RoundRecord, SimulationState, Trade
from backtest.risk import RiskController
from backtest.sizing import PositionSizer
from config import StrategyConfig
from signals.model import ContrarianSignal, MeanReversionSignal, SignalSource

logger = logging.getLogger(__name__)


@dataclass
class BacktestResult:
    label: str
    config: StrategyConfig
    state: SimulationState
    trades: List[Trade] = field(default_factory=list)
    metrics: Optional[Metrics] = None

    @property
    def equity_curve(self) -> List[float]:
        return [self.config.starting_bankroll] + [t.bankroll_after for t in self.trades]


class SimulationEngine:
    """
    One engine = one parameter set. Every call to run() starts from a
    fresh SimulationState, so the same engine (and the same rounds) can
    be replayed as often as you like with identical results.
    """

    def __init__(self, config: Optional[StrategyConfig] = None,
                 signal_source: Optional[SignalSource] = None,
                 fallback_source: Optional[SignalSource] = None,
                 sizer: Optional[PositionSizer] = None):
        self.config = (config or StrategyConfig()).validate()
        self.signal_source = signal_source or ContrarianSignal.from_config(self.config)
        if fallback_source is None and self.config.fallback_enabled:
            fallback_source = MeanReversionSignal.from_config(self.config)
        # None = sit out the cooldown entirely
        self.fallback_source = fallback_source
        self.sizer = sizer or PositionSizer.from_config(self.config)

    def run(self, rounds: Iterable[RoundRecord]) -> Tuple[SimulationState, List[Trade]]:
        state = SimulationState.start(self.config.starting_bankroll)
        risk = RiskController.from_config(state, self.config)
        trades: List[Trade] = []

        for round_ in rounds:
            if state.last_timestamp is not None and round_.lock_timestamp < state.last_timestamp:
                raise OrderingError(state.last_timestamp, round_.epoch, round_.lock_timestamp)
            state.last_timestamp = round_.lock_timestamp
            state.rounds_seen += 1

            mode = risk.observe(round_)

            if not self._eligible(round_):
                state.skipped_ineligible += 1
                continue

            source = self.signal_source if mode is Mode.NORMAL else self.fallback_source
            if source is None:
                state.skipped_cooldown += 1
                continue

            signal = source.generate(round_, state)
            if signal is None:
                if mode is Mode.COOLDOWN:
                    state.skipped_cooldown += 1
                else:
                    state.skipped_no_signal += 1
                continue

            fraction = self.sizer.size(state, round_, signal, mode)
            stake = self.sizer.stake_amount(state, fraction)
            if stake <= 0:
                state.skipped_no_signal += 1
                continue

            won = signal.wins_on(round_.winner)
            multiple = round_.winner_payout_multiple
            profit = stake * (multiple - 1) if won else -stake

            state.bankroll += profit
            state.mark_to_market()
            state.last_two_outcomes.append(won)
            risk.record(round_, won, mode)

            trades.append(Trade(
                epoch=round_.epoch,
                lock_timestamp=round_.lock_timestamp,
                signal=signal,
                stake_fraction=fraction,
                stake_amount=stake,
                mode=mode,
                won=won,
                realized_payout_multiple=multiple if won else 0.0,
                profit=profit,
                bankroll_after=state.bankroll,
                reason=source.describe(round_, signal),
            ))

            if state.bankroll <= 0:
                state.busted = True
                logger.warning("[BACKTEST] bankroll busted at epoch %s after %d trades",
                               round_.epoch, len(trades))
                break

        return state, trades

    def _eligible(self, round_: RoundRecord) -> bool:
        if not round_.winner.tradable:
            logger.debug("skip epoch %s: winner %s", round_.epoch, round_.winner.value)
            return False
        if round_.total_pool == 0:
            logger.debug("skip epoch %s: empty pools", round_.epoch)
            return False
        if round_.winner_payout_multiple is None:
            logger.debug("skip epoch %s: no payout multiple for %s",
                         round_.epoch, round_.winner.value)
            return False
        return True


def run_backtest(rounds: Iterable[RoundRecord], config: Optional[StrategyConfig] = None,
                 label: str = "default") -> BacktestResult:
    """Run one configuration and attach its metrics."""
    engine = SimulationEngine(config)
    state, trades = engine.run(rounds)
    metrics = summarize(trades, engine.config.starting_bankroll)
    result = BacktestResult(label=label, config=engine.config, state=state,
                            trades=trades, metrics=metrics)

    logger.info("[BACKTEST] %s: %d rounds seen, %d trades (%d normal / %d cooldown), "
                "skipped %d ineligible, %d no signal, %d cooldown",
                label, state.rounds_seen, metrics.total_trades,
                metrics.by_mode[Mode.NORMAL].trades, metrics.by_mode[Mode.COOLDOWN].trades,
                state.skipped_ineligible, state.skipped_no_signal, state.skipped_cooldown)
    logger.info("[BACKTEST] %s: bankroll %.4f -> %.4f (ROI %+.2f%%, max DD %.1f%%, "
                "breaker tripped %d times)",
                label, metrics.starting_bankroll, metrics.final_bankroll,
                metrics.roi * 100, metrics.max_drawdown_pct, state.circuit_breaker_triggers)
    return result
