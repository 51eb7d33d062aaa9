"""
PARAMETER SWEEPS — Same Rounds, Many Configurations
====================================================

Each variant is an independent run with its own state. The round list
is read-only, so it is shared across all of them.

Results come back as a DataFrame ranked by ROI, the same comparison a
desk would put on one screen.
"""

from typing import Dict, List, Optional, Sequence, Tuple

import pandas as pd

from backtest.engine import BacktestResult, run_backtest
from backtest.models import Mode, RoundRecord
from config import StrategyConfig

Variant = Tuple[str, Dict[str, object]]


def circuit_breaker_grid() -> List[Variant]:
    """Baseline plus the loss-threshold / cooldown grid worth comparing."""
    grid: List[Variant] = [("baseline (no breaker)", {"circuit_breaker": False})]
    for losses, minutes in [(2, 15), (3, 15), (3, 30), (3, 45), (3, 60), (4, 30), (5, 30)]:
        grid.append((f"breaker {losses} losses / {minutes}m", {
            "circuit_breaker": True,
            "loss_threshold": losses,
            "cooldown_duration_seconds": minutes * 60,
        }))
    return grid


def cooldown_policy_grid() -> List[Variant]:
    """Sit out the cooldown vs. trade mean reversion through it."""
    return [
        ("baseline (no breaker)", {"circuit_breaker": False}),
        ("breaker, skip cooldown", {"circuit_breaker": True, "fallback_enabled": False}),
        ("breaker, mean reversion", {"circuit_breaker": True, "fallback_enabled": True}),
    ]


def run_sweep(rounds: Sequence[RoundRecord], variants: List[Variant],
              base_config: Optional[StrategyConfig] = None) -> Tuple[pd.DataFrame, List[BacktestResult]]:
    """Run every variant against the same rounds; rank by ROI."""
    base = base_config or StrategyConfig()
    rounds = tuple(rounds)
    results = []
    rows = []
    for name, overrides in variants:
        result = run_backtest(rounds, base.with_overrides(**overrides), label=name)
        m = result.metrics
        results.append(result)
        rows.append({
            "strategy": name,
            "roi_pct": m.roi * 100,
            "final_bankroll": m.final_bankroll,
            "win_rate": m.win_rate,
            "trades": m.total_trades,
            "normal_trades": m.by_mode[Mode.NORMAL].trades,
            "cooldown_trades": m.by_mode[Mode.COOLDOWN].trades,
            "cooldown_win_rate": m.by_mode[Mode.COOLDOWN].win_rate,
            "max_dd_pct": m.max_drawdown_pct,
            "longest_loss_streak": m.longest_loss_streak,
            "breaker_trips": result.state.circuit_breaker_triggers,
            "busted": m.busted,
        })

    table = pd.DataFrame(rows)
    if not table.empty:
        table = table.sort_values("roi_pct", ascending=False, kind="stable").reset_index(drop=True)
    return table, results
