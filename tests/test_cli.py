import io
import os
import shutil
import tempfile
import unittest
from contextlib import redirect_stdout
from unittest import mock

import pandas as pd

import run_backtest
from backtest.models import Momentum

WEI = 10 ** 18


class CliTests(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.mkdtemp()
        self.csv = os.path.join(self.tmp, "rounds.csv")
        n = 12
        pd.DataFrame({
            "epoch": range(1, n + 1),
            "lock_timestamp": [1_700_000_000 + i * 300 for i in range(1, n + 1)],
            "lock_bull_wei": [str(60 * WEI)] * n,
            "lock_bear_wei": [str(40 * WEI)] * n,
            "winner": ["UP" if i % 4 else "DOWN" for i in range(1, n + 1)],
            "winner_payout_multiple": [1.617 if i % 4 else 2.425 for i in range(1, n + 1)],
            "ema_signal": ["BEAR"] * n,
            "ema_gap": [-0.08] * n,
            "close_price": [600.0 + i for i in range(n)],
        }).to_csv(self.csv, index=False)

    def tearDown(self):
        shutil.rmtree(self.tmp)

    def run_main(self, *argv):
        out = io.StringIO()
        with redirect_stdout(out):
            code = run_backtest.main(list(argv))
        return code, out.getvalue()

    def test_single_run_with_export(self):
        export = os.path.join(self.tmp, "out", "trades.csv")
        code, out = self.run_main("--csv", self.csv, "--export", export, "--log-level", "ERROR")
        self.assertEqual(code, 0)
        self.assertIn("BACKTEST REPORT: single run", out)
        self.assertTrue(os.path.exists(export))

    def test_sweep(self):
        code, out = self.run_main("--csv", self.csv, "--sweep", "cooldown", "--log-level", "ERROR")
        self.assertEqual(code, 0)
        self.assertIn("STRATEGY COMPARISON", out)

    def test_invalid_config_exit_code(self):
        code, _ = self.run_main("--csv", self.csv, "--base-fraction", "0", "--log-level", "ERROR")
        self.assertEqual(code, 2)

    def test_missing_data_exit_code(self):
        missing = os.path.join(self.tmp, "missing.csv")
        code, _ = self.run_main("--csv", missing, "--log-level", "ERROR")
        self.assertEqual(code, 1)

    def test_blank_lock_time_exit_code(self):
        frame = pd.read_csv(self.csv, dtype=str)
        frame.loc[3, "lock_timestamp"] = ""
        frame.to_csv(self.csv, index=False)
        code, _ = self.run_main("--csv", self.csv, "--log-level", "ERROR")
        self.assertEqual(code, 1)

    def test_annotate_replaces_stored_momentum(self):
        start = (1_700_000_000 - 10 * 300) * 1000
        candles = pd.DataFrame({
            "timestamp": [start + i * 300_000 for i in range(30)],
            "close": [600.0 + i for i in range(30)],
            "close_time": [start + i * 300_000 + 299_999 for i in range(30)],
        })
        args = run_backtest.build_parser().parse_args(["--csv", self.csv, "--annotate"])
        with mock.patch.object(run_backtest, "load_or_fetch", return_value=candles) as fetch:
            rounds = run_backtest.load(args)

        fetch.assert_called_once()
        self.assertEqual(len(rounds), 12)
        self.assertTrue(all(r.momentum_signal is Momentum.BULL for r in rounds))
        self.assertTrue(all(r.momentum_gap > 0 for r in rounds))

    def test_config_from_args(self):
        args = run_backtest.build_parser().parse_args(
            ["--loss-threshold", "4", "--cooldown-minutes", "30", "--no-fallback"])
        config = run_backtest.config_from_args(args)
        self.assertEqual(config.loss_threshold, 4)
        self.assertEqual(config.cooldown_duration_seconds, 1800)
        self.assertFalse(config.fallback_enabled)


if __name__ == "__main__":
    unittest.main()
