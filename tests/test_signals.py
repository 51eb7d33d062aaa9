import math
import unittest
from dataclasses import replace

from backtest.models import Momentum, Signal, Winner
from signals.model import ContrarianSignal, MeanReversionSignal

from factories import make_round

FLAT_THEN_DROP = [100.0] * 7 + [90.0]
FLAT_THEN_POP = [100.0] * 7 + [110.0]


class PayoutTests(unittest.TestCase):
    def test_implied_payouts_from_pools(self):
        r = make_round(bull=60, bear=40)
        bull, bear = r.implied_payouts(0.03)
        self.assertAlmostEqual(bull, 100 * 0.97 / 60)
        self.assertAlmostEqual(bear, 2.425)

    def test_empty_side_is_infinite(self):
        r = make_round(bull=0, bear=40)
        bull, bear = r.implied_payouts(0.03)
        self.assertTrue(math.isinf(bull))
        self.assertAlmostEqual(bear, 0.97)

    def test_wei_scale_is_exact(self):
        r = replace(make_round(), pool_bull_amount=3 * 10 ** 30 + 1,
                    pool_bear_amount=10 ** 30)
        bull, _ = r.implied_payouts(0.0)
        self.assertAlmostEqual(bull, (4 * 10 ** 30 + 1) / (3 * 10 ** 30 + 1))


class ContrarianSignalTests(unittest.TestCase):
    def setUp(self):
        self.source = ContrarianSignal(house_fee=0.03, min_payout=1.45)

    def test_bear_momentum_with_rich_bull_payout(self):
        # bull pays ~1.617 >= 1.45
        self.assertIs(self.source.generate(make_round(momentum=Momentum.BEAR)), Signal.BEAR)

    def test_bull_momentum_with_rich_bear_payout(self):
        self.assertIs(self.source.generate(make_round(momentum=Momentum.BULL)), Signal.BULL)

    def test_opposite_pool_too_crowded(self):
        # bull pool 30 / bear 70: bear pays 0.97 * 100/70 = 1.386 < 1.45
        r = make_round(bull=30, bear=70, momentum=Momentum.BULL)
        self.assertIsNone(self.source.generate(r))

    def test_neutral_never_trades(self):
        r = make_round(bull=10, bear=90, momentum=Momentum.NEUTRAL)
        self.assertIsNone(self.source.generate(r))

    def test_empty_pool_is_no_trade(self):
        self.assertIsNone(self.source.generate(make_round(bull=0, bear=0)))

    def test_one_sided_pool_counts_as_infinite_payout(self):
        r = make_round(bull=0, bear=40, momentum=Momentum.BEAR)
        self.assertIs(self.source.generate(r), Signal.BEAR)

    def test_describe_mentions_momentum(self):
        r = make_round(momentum=Momentum.BEAR, gap=-0.2)
        self.assertIn("BEAR", self.source.describe(r, Signal.BEAR))


class MeanReversionSignalTests(unittest.TestCase):
    def setUp(self):
        self.source = MeanReversionSignal(house_fee=0.03, min_payout=1.45)

    def test_oversold_bets_bull(self):
        r = make_round(bull=40, bear=60, closes=FLAT_THEN_DROP)
        self.assertIs(self.source.generate(r), Signal.BULL)

    def test_overbought_bets_bear(self):
        r = make_round(bull=60, bear=40, closes=FLAT_THEN_POP)
        self.assertIs(self.source.generate(r), Signal.BEAR)

    def test_oversold_but_bull_payout_too_low(self):
        # bull pays 0.97 * 100/70 = 1.386
        r = make_round(bull=70, bear=30, closes=FLAT_THEN_DROP)
        self.assertIsNone(self.source.generate(r))

    def test_insufficient_history(self):
        r = make_round(closes=[100.0, 90.0, 80.0])
        self.assertIsNone(self.source.generate(r))

    def test_flat_prices_have_no_band(self):
        r = make_round(closes=[100.0] * 12)
        self.assertIsNone(self.source.generate(r))

    def test_middle_of_band_is_no_trade(self):
        r = make_round(closes=[100.0, 101.0, 99.0, 100.0, 101.0, 99.0, 101.0, 100.0])
        self.assertIsNone(self.source.generate(r))

    def test_ignores_ema_momentum(self):
        r = make_round(bull=40, bear=60, momentum=Momentum.NEUTRAL, closes=FLAT_THEN_DROP)
        self.assertIs(self.source.generate(r), Signal.BULL)

    def test_momentum_trigger_is_opt_in(self):
        # %B sits mid-band but price is up ~1% over ten rounds
        climb = [102.0, 102.5, 103.0, 103.5,
                 104.2, 103.9, 103.6, 103.3, 103.0, 103.4, 103.1, 103.5]
        r = make_round(bull=60, bear=40, closes=climb)
        pct_b, momentum = self.source.indicators(r)
        self.assertTrue(35 <= pct_b <= 65)
        self.assertGreater(momentum, 0.5)
        self.assertIsNone(self.source.generate(r))

        hybrid = MeanReversionSignal(house_fee=0.03, min_payout=1.45,
                                     momentum_bull_threshold=-0.5,
                                     momentum_bear_threshold=0.5)
        self.assertIs(hybrid.generate(r), Signal.BEAR)

    def test_describe_labels_side(self):
        r = make_round(bull=40, bear=60, closes=FLAT_THEN_DROP)
        self.assertIn("oversold", self.source.describe(r, Signal.BULL))


class SignalResolutionTests(unittest.TestCase):
    def test_signal_matches_winner(self):
        self.assertTrue(Signal.BULL.wins_on(Winner.UP))
        self.assertTrue(Signal.BEAR.wins_on(Winner.DOWN))
        self.assertFalse(Signal.BULL.wins_on(Winner.DOWN))
        self.assertFalse(Signal.BEAR.wins_on(Winner.DRAW))


if __name__ == "__main__":
    unittest.main()
