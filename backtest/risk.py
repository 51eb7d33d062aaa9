"""
CIRCUIT BREAKER — Stop Digging After a Losing Streak
=====================================================

  NORMAL ──(loss_threshold consecutive losses)──▸ COOLDOWN
  COOLDOWN ──(a round locks at/after cooldown_until)──▸ NORMAL

While cooling down the engine asks the fallback strategy for signals.
Cooldown trades neither reset nor add to the loss streak, and the
streak starts from zero again once the breaker has tripped.
"""

import logging

from backtest.models import Mode, RoundRecord, SimulationState
from config import StrategyConfig

logger = logging.getLogger(__name__)


class RiskController:

    def __init__(self, state: SimulationState, loss_threshold: int,
                 cooldown_duration_seconds: int, enabled: bool = True):
        self.state = state
        self.loss_threshold = loss_threshold
        self.cooldown_duration_seconds = cooldown_duration_seconds
        self.enabled = enabled

    @classmethod
    def from_config(cls, state: SimulationState, config: StrategyConfig) -> "RiskController":
        return cls(state, config.loss_threshold, config.cooldown_duration_seconds,
                   enabled=config.circuit_breaker)

    @property
    def mode(self) -> Mode:
        return Mode.COOLDOWN if self.state.cooldown_active else Mode.NORMAL

    def observe(self, round_: RoundRecord) -> Mode:
        """Mode the given round is evaluated in; releases an expired cooldown."""
        state = self.state
        if state.cooldown_active and round_.lock_timestamp >= state.cooldown_until_timestamp:
            logger.info("[BREAKER] cooldown over at epoch %s (lock %s >= %s)",
                        round_.epoch, round_.lock_timestamp, state.cooldown_until_timestamp)
            state.cooldown_until_timestamp = 0
        return self.mode

    def record(self, round_: RoundRecord, won: bool, mode: Mode):
        if mode is not Mode.NORMAL:
            return

        state = self.state
        if won:
            state.consecutive_losses = 0
            return

        state.consecutive_losses += 1
        if self.enabled and state.consecutive_losses >= self.loss_threshold:
            state.cooldown_until_timestamp = round_.lock_timestamp + self.cooldown_duration_seconds
            state.consecutive_losses = 0
            state.circuit_breaker_triggers += 1
            logger.info("[BREAKER] %d losses in a row at epoch %s, cooling down until %s",
                        self.loss_threshold, round_.epoch, state.cooldown_until_timestamp)
