"""
REPORTING & ANALYSIS — Understanding Your Results
===================================================

QUANT FUNDAMENTAL: "A strategy is only as good as its worst day."

METRICS THAT MATTER HERE:
  1. ROI and final bankroll — did compounding work for or against us?
  2. Max Drawdown — the worst peak-to-trough slide
  3. Longest loss streak — what the circuit breaker is there to cut short
  4. Normal vs. cooldown split — is the fallback strategy pulling its weight?
  5. Profit Factor — gross wins / gross losses (>1.5 is good)
"""

import os
from typing import List

import numpy as np
import pandas as pd

from backtest.models import Mode, Trade

TRADE_COLUMNS = ["epoch", "lock_timestamp", "signal", "mode", "stake_fraction",
                 "stake_amount", "won", "realized_payout_multiple", "profit",
                 "bankroll_after", "reason"]


def trades_frame(trades: List[Trade]) -> pd.DataFrame:
    """Trade ledger as a DataFrame (enums flattened to their values)."""
    rows = [{
        "epoch": t.epoch,
        "lock_timestamp": t.lock_timestamp,
        "signal": t.signal.value,
        "mode": t.mode.value,
        "stake_fraction": t.stake_fraction,
        "stake_amount": t.stake_amount,
        "won": t.won,
        "realized_payout_multiple": t.realized_payout_multiple,
        "profit": t.profit,
        "bankroll_after": t.bankroll_after,
        "reason": t.reason,
    } for t in trades]
    return pd.DataFrame(rows, columns=TRADE_COLUMNS)


def export_trades_csv(trades: List[Trade], path: str) -> str:
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    trades_frame(trades).to_csv(path, index=False)
    return path


def generate_report(result) -> str:
    """Generate a text report for one BacktestResult."""
    m = result.metrics
    state = result.state
    lines = []
    lines.append("=" * 70)
    lines.append(f"  BACKTEST REPORT: {result.label}")
    lines.append("=" * 70)

    # ── Overview ──
    lines.append(f"\n{'─' * 40}")
    lines.append("  OVERVIEW")
    lines.append(f"{'─' * 40}")
    lines.append(f"  Starting Bankroll:   {m.starting_bankroll:,.4f} BNB")
    lines.append(f"  Ending Bankroll:     {m.final_bankroll:,.4f} BNB")
    lines.append(f"  ROI:                 {m.roi:+.2%}")
    lines.append(f"  Peak Bankroll:       {state.peak_bankroll:,.4f} BNB")
    lines.append(f"  Rounds Seen:         {state.rounds_seen}")
    lines.append(f"  Total Trades:        {m.total_trades}")
    if m.busted:
        lines.append("  *** BUSTED — bankroll exhausted, run stopped early ***")

    if m.total_trades == 0:
        lines.append("\n  No trades executed. Payout threshold may be too high.")
        return "\n".join(lines)

    # ── Performance Metrics ──
    lines.append(f"\n{'─' * 40}")
    lines.append("  PERFORMANCE METRICS")
    lines.append(f"{'─' * 40}")
    lines.append(f"  Win Rate:            {m.win_rate:.1%} ({m.wins}W / {m.losses}L)")
    lines.append(f"  Avg Win:             {m.avg_win:+.4f}")
    lines.append(f"  Avg Loss:            {m.avg_loss:+.4f}")
    lines.append(f"  Avg Win Payout:      {m.avg_payout:.3f}x")
    lines.append(f"  Profit Factor:       {m.profit_factor:.2f}")
    lines.append(f"  Max Drawdown:        {m.max_drawdown_pct:.1f}%")
    lines.append(f"  Longest Win Streak:  {m.longest_win_streak}")
    lines.append(f"  Longest Loss Streak: {m.longest_loss_streak}")

    # ── Risk Control ──
    lines.append(f"\n{'─' * 40}")
    lines.append("  CIRCUIT BREAKER")
    lines.append(f"{'─' * 40}")
    lines.append(f"  Enabled:             {'yes' if result.config.circuit_breaker else 'no'}")
    lines.append(f"  Times Tripped:       {state.circuit_breaker_triggers}")
    lines.append(f"  Skipped (cooldown):  {state.skipped_cooldown}")
    lines.append(f"  Skipped (no signal): {state.skipped_no_signal}")
    lines.append(f"  Skipped (ineligible):{state.skipped_ineligible:>5}")
    for mode in Mode:
        s = m.by_mode[mode]
        lines.append(f"  {mode.value.capitalize():<9} trades:    {s.trades:>5}  "
                     f"WR={s.win_rate:.1%}  PnL={s.profit:+.4f}")

    # ── Trade Distribution ──
    lines.append(f"\n{'─' * 40}")
    lines.append("  TRADE DISTRIBUTION")
    lines.append(f"{'─' * 40}")
    for label in ("BULL", "BEAR"):
        side = [t for t in result.trades if t.signal.value == label]
        wr = sum(1 for t in side if t.won) / max(len(side), 1)
        lines.append(f"  {label} bets: {len(side)} (WR: {wr:.1%})")

    pnls = [t.profit for t in result.trades]
    lines.append("\n  PnL Distribution:")
    lines.append(f"    Min:     {min(pnls):+.4f}")
    lines.append(f"    P25:     {np.percentile(pnls, 25):+.4f}")
    lines.append(f"    Median:  {np.percentile(pnls, 50):+.4f}")
    lines.append(f"    P75:     {np.percentile(pnls, 75):+.4f}")
    lines.append(f"    Max:     {max(pnls):+.4f}")

    lines.append(f"\n{'─' * 40}")
    lines.append("  KEY TAKEAWAYS")
    lines.append(f"{'─' * 40}")

    if m.max_drawdown_pct > 30:
        lines.append("  [-] Drawdown >30% — too risky to run unattended")
    elif m.max_drawdown_pct > 15:
        lines.append("  [~] Drawdown 15-30% — acceptable but monitor closely")
    else:
        lines.append("  [+] Drawdown <15% — well controlled risk")

    if m.win_rate > 0.55:
        lines.append("  [+] Win rate >55% — meaningful predictive edge")
    elif m.win_rate > 0.50:
        lines.append("  [~] Win rate 50-55% — edge is thin, payouts matter")
    else:
        lines.append("  [-] Win rate <50% — needs high payouts to survive")

    cooldown = m.by_mode[Mode.COOLDOWN]
    if cooldown.trades:
        verdict = "[+]" if cooldown.profit > 0 else "[-]"
        lines.append(f"  {verdict} Cooldown fallback {'adds' if cooldown.profit > 0 else 'costs'} "
                     f"{abs(cooldown.profit):.4f} BNB over {cooldown.trades} trades")

    lines.append("\n" + "=" * 70)
    return "\n".join(lines)


def format_comparison(table: pd.DataFrame) -> str:
    """Sweep table as fixed-width text, best ROI first."""
    lines = [f"\n{'═' * 70}", "  STRATEGY COMPARISON", f"{'═' * 70}"]
    lines.append(f"  {'Strategy':<32} {'ROI':>9} {'WinRate':>8} {'MaxDD':>7} "
                 f"{'Trades':>7} {'CD':>5} {'Trips':>6}")
    lines.append(f"  {'─'*32} {'─'*9} {'─'*8} {'─'*7} {'─'*7} {'─'*5} {'─'*6}")
    for row in table.itertuples(index=False):
        flag = " BUST" if row.busted else ""
        lines.append(f"  {row.strategy[:32]:<32} {row.roi_pct:>+8.1f}% {row.win_rate:>7.1%} "
                     f"{row.max_dd_pct:>6.1f}% {row.trades:>7} {row.cooldown_trades:>5} "
                     f"{row.breaker_trips:>6}{flag}")
    return "\n".join(lines)


def format_equity_curve(result, width: int = 60, height: int = 12) -> str:
    """
    Bankroll after each trade as a block chart.

    Columns are the trade-by-trade bankroll (downsampled to `width`); the
    dotted row marks the starting bankroll, so everything under it is
    money lost. Cooldown stretches are shaded lighter.
    """
    curve = result.equity_curve
    if len(curve) < 2:
        return ""

    modes = [None] + [t.mode for t in result.trades]
    step = max(-(-len(curve) // width), 1)
    points = list(zip(curve[::step], modes[::step]))

    low, high = min(curve), max(curve)
    span = (high - low) or 1.0
    start = result.config.starting_bankroll
    start_row = round((start - low) / span * height)

    lines = [f"\n  Equity Curve ({result.label})"]
    for row in range(height, -1, -1):
        level = high if row == height else low + row / height * span
        cells = []
        for value, mode in points:
            if value >= level:
                cells.append("▒" if mode is Mode.COOLDOWN else "█")
            else:
                cells.append("┄" if row == start_row else " ")
        label = f"{level:,.3f}" if row in (height, start_row, 0) else ""
        lines.append(f"  {label:>9} │" + "".join(cells))

    lines.append(f"  {'':>9} └" + "─" * len(points))
    lines.append(f"  {'':>9}  trade 0" + f"trade {len(curve) - 1}".rjust(max(len(points) - 7, 1)))
    return "\n".join(lines)


def print_equity_curve_ascii(result, width: int = 60):
    chart = format_equity_curve(result, width=width)
    if chart:
        print(chart)
