"""
Error taxonomy for the round replay.

  DataError      — something is wrong with the round data itself
  OrderingError  — rounds arrived out of lock-time order (aborts the run)
  ConfigError    — strategy parameters rejected before any round is read

A bankroll bust is NOT an error. It is a normal way for a run to end and
shows up as `busted` on the state and the metrics.
"""


class DataError(Exception):
    """A round (or a round source) cannot be used as-is."""


class OrderingError(DataError):
    """Rounds must be replayed forward in time, never backwards."""

    def __init__(self, previous_ts: int, epoch: int, lock_ts: int):
        self.previous_ts = previous_ts
        self.epoch = epoch
        self.lock_ts = lock_ts
        super().__init__(
            f"round {epoch} locks at {lock_ts}, before the previous "
            f"round's lock at {previous_ts}"
        )


class ConfigError(ValueError):
    """Invalid strategy configuration."""
