"""Tests for liquidity zones and fair value gaps."""

from mtf_engine.strategy.liquidity import (
    detect_fair_value_gaps,
    detect_liquidity_zones,
    zone_tolerance_pct,
)
from mtf_engine.strategy.models import Candle, FairValueGap


def _make_candle(h: float, l: float, ts: int = 0) -> Candle:
    mid = (h + l) / 2
    return Candle(timestamp=ts, open=mid, high=h, low=l, close=mid, volume=100.0)


def _from_highs(highs: list[float], span: float = 2.0) -> list[Candle]:
    return [_make_candle(h, h - span, ts=i) for i, h in enumerate(highs)]


class TestLiquidityZones:
    def test_tolerance_by_window(self):
        assert zone_tolerance_pct(30) == 0.2
        assert zone_tolerance_pct(80) == 0.5

    def test_equal_highs_pair(self):
        candles = _from_highs([100.0, 110.0, 105.0, 110.1, 104.0, 103.0, 102.0])
        zones = detect_liquidity_zones(candles)
        assert len(zones) == 1
        zone = zones[0]
        assert zone.type == "equal_highs"
        assert zone.side == "sell"
        assert zone.touches == 2
        assert zone.strength == 40
        assert abs(zone.price - 110.05) < 1e-9

    def test_distant_highs_do_not_merge(self):
        candles = _from_highs([100.0, 110.0, 105.0, 115.0, 104.0, 103.0, 102.0])
        assert [z for z in detect_liquidity_zones(candles) if z.type == "equal_highs"] == []

    def test_repeated_touches_cap_strength(self):
        candles = _from_highs([100.0, 110.0] * 6 + [100.0])
        zones = detect_liquidity_zones(candles)
        highs = [z for z in zones if z.type == "equal_highs"]
        lows = [z for z in zones if z.type == "equal_lows"]
        assert len(highs) == 1
        assert highs[0].strength == 100
        assert highs[0].touches > 2
        assert len(lows) == 1
        assert lows[0].side == "buy"

    def test_short_window_returns_empty(self):
        assert detect_liquidity_zones(_from_highs([100.0, 110.0, 100.0])) == []


class TestFairValueGaps:
    def test_bullish_gap_unfilled(self):
        candles = [
            _make_candle(100.0, 98.0, 0),
            _make_candle(106.0, 99.0, 1),
            _make_candle(108.0, 105.0, 2),
        ]
        gaps = detect_fair_value_gaps(candles)
        assert len(gaps) == 1
        gap = gaps[0]
        assert gap.direction == "bullish"
        assert (gap.low, gap.high) == (100.0, 105.0)
        assert gap.filled is False

    def test_later_candle_fills_gap(self):
        candles = [
            _make_candle(100.0, 98.0, 0),
            _make_candle(106.0, 99.0, 1),
            _make_candle(108.0, 105.0, 2),
            _make_candle(107.0, 102.0, 3),
        ]
        gaps = detect_fair_value_gaps(candles)
        assert len(gaps) == 1
        assert gaps[0].filled is True

    def test_bearish_gap(self):
        candles = [
            _make_candle(112.0, 110.0, 0),
            _make_candle(111.0, 104.0, 1),
            _make_candle(105.0, 103.0, 2),
        ]
        gaps = detect_fair_value_gaps(candles)
        assert len(gaps) == 1
        assert gaps[0].direction == "bearish"
        assert (gaps[0].low, gaps[0].high) == (105.0, 110.0)

    def test_inverted_bounds_swapped(self):
        gap = FairValueGap(direction="bullish", low=105.0, high=100.0)
        assert gap.low == 100.0
        assert gap.high == 105.0

    def test_too_few_candles(self):
        assert detect_fair_value_gaps([_make_candle(100.0, 98.0)]) == []
