"""
POSITION SIZING — How Much to Risk on One Round
================================================

stake_fraction = base
               × momentum_multiplier   (normal mode, |ema gap| >= threshold)
               × recovery_multiplier   (any mode, last two trades both lost)

Multipliers compose multiplicatively. The stake is taken against
min(bankroll, bankroll_cap) so a large bankroll can't produce an
unbounded absolute bet.
"""

from backtest.models import Mode, RoundRecord, Signal, SimulationState
from config import StrategyConfig


class PositionSizer:

    def __init__(self, base_fraction: float, momentum_gap_threshold: float,
                 momentum_multiplier: float, recovery_multiplier: float,
                 bankroll_cap=None):
        self.base_fraction = base_fraction
        self.momentum_gap_threshold = momentum_gap_threshold
        self.momentum_multiplier = momentum_multiplier
        self.recovery_multiplier = recovery_multiplier
        self.bankroll_cap = bankroll_cap

    @classmethod
    def from_config(cls, config: StrategyConfig) -> "PositionSizer":
        return cls(
            base_fraction=config.base_position_fraction,
            momentum_gap_threshold=config.momentum_gap_threshold,
            momentum_multiplier=config.momentum_multiplier,
            recovery_multiplier=config.recovery_multiplier,
            bankroll_cap=config.bankroll_cap,
        )

    def size(self, state: SimulationState, round_: RoundRecord,
             signal: Signal, mode: Mode) -> float:
        """Fraction of the sizing bankroll to stake, in (0, 1]."""
        fraction = self.base_fraction

        if mode is Mode.NORMAL and abs(round_.momentum_gap) >= self.momentum_gap_threshold:
            fraction *= self.momentum_multiplier

        if state.last_two_lost:
            fraction *= self.recovery_multiplier

        return min(fraction, 1.0)

    def stake_amount(self, state: SimulationState, fraction: float) -> float:
        sizing_bankroll = state.bankroll
        if self.bankroll_cap is not None:
            sizing_bankroll = min(sizing_bankroll, self.bankroll_cap)
        stake = fraction * sizing_bankroll
        return max(0.0, min(stake, state.bankroll))
