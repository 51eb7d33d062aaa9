from dataclasses import replace

from backtest.models import Momentum, RoundRecord, Winner

WEI = 10 ** 18


def make_round(epoch=1, lock_ts=None, bull=60, bear=40, winner=Winner.UP,
               multiple="auto", momentum=Momentum.BEAR, gap=0.0, closes=()):
    """Round with pools given in whole BNB; multiple defaults to the parimutuel one."""
    record = RoundRecord(
        epoch=epoch,
        lock_timestamp=lock_ts if lock_ts is not None else 1_700_000_000 + epoch * 300,
        pool_bull_amount=int(bull * WEI),
        pool_bear_amount=int(bear * WEI),
        winner=winner,
        momentum_signal=momentum,
        momentum_gap=gap,
        close_price_path=tuple(closes),
    )
    if multiple == "auto":
        if winner.tradable:
            bull_payout, bear_payout = record.implied_payouts(0.03)
            multiple = bull_payout if winner is Winner.UP else bear_payout
        else:
            multiple = None
    return replace(record, winner_payout_multiple=multiple)


def losing_round(epoch, lock_ts=None, gap=0.0):
    """Momentum BEAR passes the payout gate (bull pays ~1.62x) but UP wins."""
    return make_round(epoch=epoch, lock_ts=lock_ts, winner=Winner.UP,
                      momentum=Momentum.BEAR, gap=gap)


def winning_round(epoch, lock_ts=None, gap=0.0):
    return make_round(epoch=epoch, lock_ts=lock_ts, winner=Winner.DOWN,
                      momentum=Momentum.BEAR, gap=gap)
