#!/usr/bin/env python3
"""
PREDICTION ROUND BACKTESTER
============================

Main entry point. Runs the full pipeline:

  1. LOAD ROUNDS     — SQLite database (or CSV export) from the collector
  2. MOMENTUM        — optionally re-derive EMA signals from Binance candles
  3. REPLAY          — contrarian strategy + circuit breaker + fallback
  4. REPORT          — ROI, drawdown, streaks, normal vs. cooldown

  ┌─────────┐    ┌──────────┐    ┌──────────┐    ┌─────────┐    ┌────────┐
  │ ROUNDS  │───▸│ MOMENTUM │───▸│  SIGNAL  │───▸│ RISK /  │───▸│ REPORT │
  │ SQLite  │    │ EMA 3/7  │    │ crowd vs │    │ SIZING  │    │ ROI/DD │
  └─────────┘    └──────────┘    │ momentum │    └─────────┘    └────────┘
                                 └──────────┘

Usage:
  python run_backtest.py                            # default config on DB_PATH
  python run_backtest.py --db prediction.db --pool t20s
  python run_backtest.py --csv rounds.csv --annotate
  python run_backtest.py --sweep breaker            # circuit breaker grid
  python run_backtest.py --no-breaker --export results/trades.csv
"""

import argparse
import logging
import os
import sys
from typing import List

import pandas as pd
import requests

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

import config
from backtest.engine import run_backtest
from backtest.errors import ConfigError, DataError
from backtest.models import RoundRecord
from backtest.report import (export_trades_csv, format_comparison, generate_report,
                             print_equity_curve_ascii)
from backtest.sweep import circuit_breaker_grid, cooldown_policy_grid, run_sweep
from config import StrategyConfig
from data.fetcher import load_or_fetch
from data.loader import (integer_column, load_rounds, load_rounds_csv, normalize_columns,
                         read_rounds_csv, read_rounds_frame, rounds_from_frame)
from signals.features import annotate_rounds

SWEEPS = {
    "breaker": circuit_breaker_grid,
    "cooldown": cooldown_policy_grid,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Pool-imbalance / EMA round backtester")
    src = parser.add_mutually_exclusive_group()
    src.add_argument("--db", type=str, default=config.DB_PATH,
                     help=f"SQLite database (default: {config.DB_PATH})")
    src.add_argument("--csv", type=str, default=None, help="CSV export of the rounds table")
    parser.add_argument("--pool", type=str, default=config.POOL_SNAPSHOT,
                        help="pool snapshot columns to use: lock, t20s, t8s, final")
    parser.add_argument("--annotate", action="store_true",
                        help="recompute EMA momentum from Binance candles")
    parser.add_argument("--refresh", action="store_true", help="ignore the candle cache")

    strat = parser.add_argument_group("strategy")
    strat.add_argument("--min-payout", type=float, default=config.MIN_PAYOUT)
    strat.add_argument("--base-fraction", type=float, default=config.BASE_POSITION_FRACTION)
    strat.add_argument("--momentum-gap", type=float, default=config.MOMENTUM_GAP_THRESHOLD)
    strat.add_argument("--momentum-mult", type=float, default=config.MOMENTUM_MULTIPLIER)
    strat.add_argument("--recovery-mult", type=float, default=config.RECOVERY_MULTIPLIER)
    strat.add_argument("--loss-threshold", type=int, default=config.LOSS_THRESHOLD)
    strat.add_argument("--cooldown-minutes", type=int, default=config.COOLDOWN_MINUTES)
    strat.add_argument("--bankroll", type=float, default=config.STARTING_BANKROLL)
    strat.add_argument("--bankroll-cap", type=float, default=config.BANKROLL_CAP)
    strat.add_argument("--fallback-min-payout", type=float, default=None)
    strat.add_argument("--no-breaker", action="store_true", help="disable the circuit breaker")
    strat.add_argument("--no-fallback", action="store_true",
                       help="sit out cooldowns instead of trading mean reversion")

    parser.add_argument("--sweep", choices=sorted(SWEEPS), default=None,
                        help="run a parameter grid instead of a single config")
    parser.add_argument("--export", type=str, default=None, help="write the trade log to CSV")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser


def config_from_args(args) -> StrategyConfig:
    return StrategyConfig(
        min_payout=args.min_payout,
        base_position_fraction=args.base_fraction,
        momentum_gap_threshold=args.momentum_gap,
        momentum_multiplier=args.momentum_mult,
        recovery_multiplier=args.recovery_mult,
        loss_threshold=args.loss_threshold,
        cooldown_duration_seconds=args.cooldown_minutes * 60,
        starting_bankroll=args.bankroll,
        bankroll_cap=args.bankroll_cap,
        fallback_min_payout=args.fallback_min_payout,
        circuit_breaker=not args.no_breaker,
        fallback_enabled=not args.no_fallback,
    ).validate()


def load(args) -> List[RoundRecord]:
    if not args.annotate:
        if args.csv:
            return load_rounds_csv(args.csv, pool=args.pool)
        return load_rounds(args.db, pool=args.pool)

    frame = read_rounds_csv(args.csv, args.pool) if args.csv else read_rounds_frame(args.db)
    frame = annotate(normalize_columns(frame), args.refresh)
    return rounds_from_frame(frame, pool=args.pool)


def annotate(frame: pd.DataFrame, refresh: bool) -> pd.DataFrame:
    if "lock_timestamp" not in frame.columns or frame.empty:
        raise DataError("cannot annotate momentum: no lock_timestamp values")
    locks = integer_column(frame, "lock_timestamp")
    # one slow-EMA warmup of candles ahead of the first lock
    warmup_ms = config.EMA_SLOW * 5 * 60 * 1000 * 4
    start_ms = int(locks.min()) * 1000 - warmup_ms
    end_ms = int(locks.max()) * 1000
    candles = load_or_fetch(config.PRICE_SYMBOL, config.KLINE_INTERVAL,
                            start_ms, end_ms, force_refresh=refresh)
    frame = frame.assign(lock_timestamp=locks)
    return annotate_rounds(frame, candles)


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level),
                        format="%(asctime)s [%(levelname)s] %(message)s")

    try:
        strategy = config_from_args(args)
        rounds = load(args)
    except ConfigError as e:
        logging.error("invalid configuration: %s", e)
        return 2
    except (DataError, requests.RequestException) as e:
        logging.error("could not load rounds: %s", e)
        return 1

    print("╔══════════════════════════════════════════════════════════════╗")
    print("║   PREDICTION ROUND BACKTESTER                                ║")
    print("║   Contrarian EMA + Circuit Breaker + Mean Reversion          ║")
    print("╚══════════════════════════════════════════════════════════════╝")
    print(f"\n  Rounds:      {len(rounds)}")
    print(f"  Pools:       {args.pool}")
    print(f"  Bankroll:    {strategy.starting_bankroll:,.4f} BNB\n")

    try:
        if args.sweep:
            table, results = run_sweep(rounds, SWEEPS[args.sweep](), base_config=strategy)
            print(format_comparison(table))
            best = next(r for r in results if r.label == table.iloc[0]["strategy"])
        else:
            best = run_backtest(rounds, strategy, label="single run")
    except (ConfigError, DataError) as e:
        logging.error("backtest aborted: %s", e)
        return 2 if isinstance(e, ConfigError) else 1

    print(generate_report(best))
    print_equity_curve_ascii(best)

    if args.export:
        path = export_trades_csv(best.trades, args.export)
        print(f"\n  Trade log written to {path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
