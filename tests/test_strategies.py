"""Tests for the individual strategy evaluators.

Each evaluator gets a hand-built snapshot: one happy path that fires, plus
the declines that matter.
"""

import pytest

from mtf_engine.config import thresholds_for
from mtf_engine.strategy.aggro_scalp_1h import AggroScalp1HStrategy
from mtf_engine.strategy.base import MarketSnapshot, StrategyProtocol
from mtf_engine.strategy.micro_scalp import MicroScalpStrategy, micro_stoch_valid
from mtf_engine.strategy.models import HTFBias, LiquidityZone, StochState, TimeframeError
from mtf_engine.strategy.scalp_1h import Scalp1HStrategy
from mtf_engine.strategy.swing import SwingStrategy
from mtf_engine.strategy.trend_4h import Trend4HStrategy, score_trend_confidence
from mtf_engine.strategy.trend_rider import TrendRiderStrategy

LONG_BIAS = HTFBias("long", 80, "4h")
SHORT_BIAS = HTFBias("short", 80, "4h")


def _assert_valid_long(signal):
    assert signal.valid is True
    assert signal.direction == "long"
    assert signal.entry_zone.min <= signal.entry_zone.max
    assert signal.stop_loss < signal.entry_zone.min
    assert all(t > signal.entry_zone.max for t in signal.targets)
    assert 0 <= signal.confidence <= 100


def _assert_valid_short(signal):
    assert signal.valid is True
    assert signal.direction == "short"
    assert signal.entry_zone.min <= signal.entry_zone.max
    assert signal.stop_loss > signal.entry_zone.max
    assert all(t < signal.entry_zone.min for t in signal.targets)
    assert 0 <= signal.confidence <= 100


class TestProtocol:
    @pytest.mark.parametrize(
        "strategy",
        [SwingStrategy(), Trend4HStrategy(), TrendRiderStrategy(), Scalp1HStrategy(), MicroScalpStrategy(),
         AggroScalp1HStrategy()],
    )
    def test_satisfies_protocol(self, strategy):
        assert isinstance(strategy, StrategyProtocol)


# ── Swing ────────────────────────────────────────────────────────────────


def _swing_snapshot(make_analysis, **d1_overrides):
    d1 = dict(timeframe="1d", price=98.0, ema21=100.0, trend="DOWNTREND",
              stoch_condition="BULLISH", stoch_k=30.0, swing_low=95.0, swing_high=115.0)
    d1.update(d1_overrides)
    return MarketSnapshot(
        analyses={
            "3d": make_analysis("3d", price=110.0, ema21=100.0, trend="UPTREND",
                                stoch_condition="OVERSOLD", swing_low=90.0),
            "1d": make_analysis(**d1),
            "4h": make_analysis("4h", price=99.5, ema21=99.3, trend="UPTREND"),
        },
        htf_bias=LONG_BIAS,
    )


class TestSwing:
    def test_fires_long(self, make_analysis):
        result = SwingStrategy().evaluate(_swing_snapshot(make_analysis))
        assert result.fired
        _assert_valid_long(result.signal)
        assert result.signal.setup_type == "Swing"
        assert len(result.signal.targets) == 3
        assert result.signal.confidence == 90

    def test_stop_behind_widest_swing(self, make_analysis):
        signal = SwingStrategy().evaluate(_swing_snapshot(make_analysis)).signal
        assert signal.stop_loss == pytest.approx(90.0 * 0.997)
        assert signal.invalidation_level == 90.0

    def test_flat_timeframe_not_eligible(self, make_analysis):
        snapshot = _swing_snapshot(make_analysis)
        analyses = dict(snapshot.analyses, **{"4h": make_analysis("4h", trend="FLAT")})
        result = SwingStrategy().evaluate(MarketSnapshot(analyses=analyses))
        assert not result.fired
        assert result.eligible is False
        assert result.missing == ("4H trend FLAT",)

    def test_missing_timeframe(self, make_analysis):
        snapshot = _swing_snapshot(make_analysis)
        analyses = dict(snapshot.analyses, **{"3d": TimeframeError()})
        result = SwingStrategy().evaluate(MarketSnapshot(analyses=analyses))
        assert result.missing == ("missing 3d data",)
        assert result.signal.selected_strategy == "SWING"

    def test_fires_short(self, make_analysis):
        snapshot = MarketSnapshot(
            analyses={
                "3d": make_analysis("3d", price=90.0, ema21=100.0, trend="DOWNTREND",
                                    stoch_condition="OVERBOUGHT", swing_high=110.0),
                "1d": make_analysis("1d", price=102.0, ema21=100.0, trend="UPTREND",
                                    stoch_condition="BEARISH", stoch_k=70.0,
                                    swing_high=105.0, swing_low=85.0),
                "4h": make_analysis("4h", price=100.5, ema21=100.7, trend="DOWNTREND"),
            },
            htf_bias=SHORT_BIAS,
        )
        result = SwingStrategy().evaluate(snapshot)
        assert result.fired
        _assert_valid_short(result.signal)
        assert result.signal.confidence == 90
        assert result.signal.stop_loss == pytest.approx(110.0 * 1.003)
        assert len(result.signal.targets) == 3

    def test_no_daily_pivot(self, make_analysis):
        result = SwingStrategy().evaluate(
            _swing_snapshot(make_analysis, stoch_condition="BEARISH", stoch_k=50.0)
        )
        assert not result.fired
        assert result.eligible is True
        assert result.checks["daily_pivot"] is False


# ── 4H Trend ─────────────────────────────────────────────────────────────


def _trend_snapshot(make_analysis, h4_price=100.4, h1_trend="UPTREND", curl="up"):
    return MarketSnapshot(
        analyses={
            "4h": make_analysis("4h", price=h4_price, ema21=100.0, trend="UPTREND",
                                swing_low=95.0, swing_high=110.0),
            "1h": make_analysis("1h", trend=h1_trend),
            "15m": make_analysis("15m", curl=curl),
            "5m": make_analysis("5m", curl=curl),
        },
        htf_bias=LONG_BIAS,
    )


class TestTrend4H:
    def test_fires_long(self, make_analysis):
        result = Trend4HStrategy().evaluate(_trend_snapshot(make_analysis))
        assert result.fired
        _assert_valid_long(result.signal)
        assert result.signal.risk_reward.tp1_rr == 1.0
        assert result.signal.risk_reward.tp2_rr == 2.0
        assert result.signal.confidence == 100

    def test_fires_short(self, make_analysis):
        snapshot = MarketSnapshot(
            analyses={
                "4h": make_analysis("4h", price=99.6, ema21=100.0, trend="DOWNTREND",
                                    swing_low=90.0, swing_high=105.0),
                "1h": make_analysis("1h", trend="DOWNTREND"),
                "15m": make_analysis("15m", curl="down"),
                "5m": make_analysis("5m", curl="down"),
            },
            htf_bias=SHORT_BIAS,
        )
        result = Trend4HStrategy().evaluate(snapshot)
        assert result.fired
        _assert_valid_short(result.signal)
        assert result.signal.confidence == 100
        assert result.signal.stop_loss == pytest.approx(105.0 * 1.003)

    def test_overextended_declines(self, make_analysis):
        result = Trend4HStrategy().evaluate(_trend_snapshot(make_analysis, h4_price=105.0))
        assert not result.fired
        assert result.eligible is True
        assert "price too far from 4H EMA21" in result.missing

    def test_counter_1h_declines(self, make_analysis):
        result = Trend4HStrategy().evaluate(_trend_snapshot(make_analysis, h1_trend="DOWNTREND"))
        assert not result.fired
        assert result.checks["h1_not_counter"] is False

    def test_ltf_stoch_against_declines(self, make_analysis):
        result = Trend4HStrategy().evaluate(_trend_snapshot(make_analysis, curl="down"))
        assert "15m and 5m stoch curling down" in result.missing

    def test_flat_4h_not_eligible(self, make_analysis):
        snapshot = MarketSnapshot(analyses={"4h": make_analysis("4h", trend="FLAT")})
        result = Trend4HStrategy().evaluate(snapshot)
        assert result.eligible is False
        assert result.signal.direction == "NO_TRADE"

    def test_confidence_scoring(self, make_analysis):
        h4 = make_analysis("4h", trend="UPTREND", price=100.4, ema21=100.0)
        assert score_trend_confidence("long", h4, None) == 50
        assert score_trend_confidence("short", h4, None) == 10


# ── Trend-Rider ──────────────────────────────────────────────────────────


def _rider_snapshot(make_analysis, h4_price=104.0, bias=LONG_BIAS, mode="STANDARD", zones=()):
    return MarketSnapshot(
        analyses={
            "4h": make_analysis("4h", price=h4_price, ema21=100.0, trend="UPTREND",
                                liquidity_zones=zones),
            "1h": make_analysis("1h", price=100.8, ema21=100.0, trend="UPTREND", swing_low=97.0),
        },
        htf_bias=bias,
        thresholds=thresholds_for(mode),
    )


class TestTrendRider:
    def test_fires_on_overextended_4h(self, make_analysis):
        result = TrendRiderStrategy().evaluate(_rider_snapshot(make_analysis))
        assert result.fired
        _assert_valid_long(result.signal)
        assert result.signal.setup_type == "TrendRider"
        assert result.signal.confidence == 50

    def test_liquidity_pool_becomes_extra_target(self, make_analysis):
        pool = LiquidityZone(type="equal_highs", price=120.0, tolerance_pct=0.1, strength=60, side="sell")
        result = TrendRiderStrategy().evaluate(_rider_snapshot(make_analysis, zones=(pool,)))
        assert result.signal.targets[-1] == 120.0
        assert len(result.signal.targets) == 3

    def test_fires_short_with_pool_below(self, make_analysis):
        pool = LiquidityZone(type="equal_lows", price=85.0, tolerance_pct=0.1, strength=60, side="buy")
        snapshot = MarketSnapshot(
            analyses={
                "4h": make_analysis("4h", price=96.0, ema21=100.0, trend="DOWNTREND",
                                    liquidity_zones=(pool,)),
                "1h": make_analysis("1h", price=99.2, ema21=100.0, trend="DOWNTREND", swing_high=103.0),
            },
            htf_bias=SHORT_BIAS,
        )
        result = TrendRiderStrategy().evaluate(snapshot)
        assert result.fired
        _assert_valid_short(result.signal)
        assert result.signal.confidence == 50
        assert result.signal.targets[-1] == 85.0
        assert len(result.signal.targets) == 3

    def test_bias_must_agree(self, make_analysis):
        result = TrendRiderStrategy().evaluate(_rider_snapshot(make_analysis, bias=HTFBias()))
        assert not result.fired
        assert result.missing == ("HTF bias neutral",)

    def test_extension_limit_depends_on_mode(self, make_analysis):
        standard = TrendRiderStrategy().evaluate(_rider_snapshot(make_analysis, h4_price=105.5))
        aggressive = TrendRiderStrategy().evaluate(
            _rider_snapshot(make_analysis, h4_price=105.5, mode="AGGRESSIVE")
        )
        assert not standard.fired
        assert aggressive.fired


# ── 1H Scalp ─────────────────────────────────────────────────────────────


def _scalp_snapshot(make_analysis, h1_price=101.0, volatility="normal", bias=LONG_BIAS, stoch="BULLISH",
                    h4_volatility="normal"):
    return MarketSnapshot(
        analyses={
            "4h": make_analysis("4h", trend="FLAT", volatility_state=h4_volatility),
            "1h": make_analysis("1h", price=h1_price, ema21=100.0, trend="UPTREND",
                                volatility_state=volatility),
            "15m": make_analysis("15m", price=101.0, ema21=100.5, stoch_condition=stoch),
            "5m": make_analysis("5m", price=101.0, ema21=100.9, swing_low=98.0),
        },
        htf_bias=bias,
    )


class TestScalp1H:
    def test_fires_with_bias_bonus(self, make_analysis):
        result = Scalp1HStrategy().evaluate(_scalp_snapshot(make_analysis))
        assert result.fired
        _assert_valid_long(result.signal)
        assert result.signal.confidence == 76
        assert result.signal.stop_loss == pytest.approx(98.0 * 0.997)

    def test_confidence_without_bias(self, make_analysis):
        result = Scalp1HStrategy().evaluate(_scalp_snapshot(make_analysis, bias=HTFBias()))
        assert result.signal.confidence == 60

    def test_ignores_flat_4h(self, make_analysis):
        assert Scalp1HStrategy().evaluate(_scalp_snapshot(make_analysis)).fired

    def test_too_far_from_ema(self, make_analysis):
        result = Scalp1HStrategy().evaluate(_scalp_snapshot(make_analysis, h1_price=102.5))
        assert not result.fired
        assert result.checks["near_ema"] is False

    def test_high_volatility_widens_tolerance(self, make_analysis):
        result = Scalp1HStrategy().evaluate(
            _scalp_snapshot(make_analysis, h1_price=102.5, volatility="high")
        )
        assert result.fired

    def test_4h_volatility_does_not_widen_tolerance(self, make_analysis):
        result = Scalp1HStrategy().evaluate(
            _scalp_snapshot(make_analysis, h1_price=102.5, h4_volatility="extreme")
        )
        assert not result.fired
        assert result.checks["near_ema"] is False

    def test_stoch_must_align(self, make_analysis):
        result = Scalp1HStrategy().evaluate(_scalp_snapshot(make_analysis, stoch="BEARISH"))
        assert "15m stoch BEARISH" in result.missing

    def test_fires_short(self, make_analysis):
        snapshot = MarketSnapshot(
            analyses={
                "4h": make_analysis("4h", trend="FLAT"),
                "1h": make_analysis("1h", price=99.0, ema21=100.0, trend="DOWNTREND"),
                "15m": make_analysis("15m", price=99.0, ema21=99.5, stoch_condition="BEARISH"),
                "5m": make_analysis("5m", price=99.0, ema21=99.1, swing_high=102.0),
            },
            htf_bias=SHORT_BIAS,
        )
        result = Scalp1HStrategy().evaluate(snapshot)
        assert result.fired
        _assert_valid_short(result.signal)
        assert result.signal.confidence == 76
        assert result.signal.stop_loss == pytest.approx(102.0 * 1.003)


# ── Micro-Scalp ──────────────────────────────────────────────────────────


def _micro_snapshot(make_analysis, m15_price=100.2, h1_price=101.0):
    return MarketSnapshot(
        analyses={
            "4h": make_analysis("4h", trend="FLAT"),
            "1h": make_analysis("1h", price=h1_price, ema21=100.0, trend="UPTREND"),
            "15m": make_analysis("15m", price=m15_price, ema21=100.0, stoch_k=20.0, stoch_d=30.0,
                                 stoch_condition="BEARISH", swing_low=99.0),
            "5m": make_analysis("5m", price=100.1, ema21=100.05, stoch_k=22.0, stoch_d=28.0,
                                stoch_condition="BEARISH", swing_low=99.5),
        },
    )


class TestMicroScalp:
    def test_fires_with_flat_4h(self, make_analysis):
        result = MicroScalpStrategy().evaluate(_micro_snapshot(make_analysis))
        assert result.eligible is True
        assert result.fired
        _assert_valid_long(result.signal)

    def test_targets_are_one_and_one_and_half_r(self, make_analysis):
        signal = MicroScalpStrategy().evaluate(_micro_snapshot(make_analysis)).signal
        entry = signal.entry_zone.mid
        assert entry == pytest.approx((100.0 + 100.05) / 2)
        risk = entry - signal.stop_loss
        assert signal.targets[0] == pytest.approx(entry + risk, abs=1e-6)
        assert signal.targets[1] == pytest.approx(entry + 1.5 * risk, abs=1e-6)

    def test_tightest_stop_used(self, make_analysis):
        signal = MicroScalpStrategy().evaluate(_micro_snapshot(make_analysis)).signal
        assert signal.invalidation_level == 99.5

    def test_confidence_range(self, make_analysis):
        signal = MicroScalpStrategy().evaluate(_micro_snapshot(make_analysis)).signal
        assert 60 <= signal.confidence <= 75

    def test_eligible_without_ltf_confluence(self, make_analysis):
        result = MicroScalpStrategy().evaluate(_micro_snapshot(make_analysis, m15_price=101.0))
        assert result.eligible is True
        assert not result.fired

    def test_overextended_1h_not_eligible(self, make_analysis):
        result = MicroScalpStrategy().evaluate(_micro_snapshot(make_analysis, h1_price=104.0))
        assert result.eligible is False
        assert not result.fired

    def test_fires_short(self, make_analysis):
        snapshot = MarketSnapshot(
            analyses={
                "4h": make_analysis("4h", trend="FLAT"),
                "1h": make_analysis("1h", price=99.0, ema21=100.0, trend="DOWNTREND"),
                "15m": make_analysis("15m", price=99.8, ema21=100.0, stoch_k=80.0, stoch_d=70.0,
                                     stoch_condition="BULLISH", swing_high=101.0),
                "5m": make_analysis("5m", price=99.9, ema21=99.95, stoch_k=78.0, stoch_d=72.0,
                                    stoch_condition="BULLISH", swing_high=100.5),
            },
        )
        result = MicroScalpStrategy().evaluate(snapshot)
        assert result.fired
        _assert_valid_short(result.signal)
        assert result.signal.invalidation_level == 100.5
        assert 60 <= result.signal.confidence <= 75

    def test_stoch_rule(self):
        stretched = StochState(k=20.0, d=30.0, condition="BEARISH")
        turning = StochState(k=35.0, d=30.0, condition="BULLISH")
        neutral = StochState(k=50.0, d=50.0)
        assert micro_stoch_valid("long", stretched, stretched)
        assert micro_stoch_valid("long", turning, turning)
        assert not micro_stoch_valid("long", stretched, neutral)
        assert not micro_stoch_valid("short", stretched, stretched)


# ── Aggressive 1H Scalp ──────────────────────────────────────────────────


def _aggro_snapshot(make_analysis, h1_trend="FLAT", m15_price=101.5, stoch_k=40.0,
                    swing_low=97.0, swing_high=0.0, h1_price=100.4):
    return MarketSnapshot(
        analyses={
            "4h": make_analysis("4h", trend="FLAT"),
            "1h": make_analysis("1h", price=h1_price, ema21=100.0, trend=h1_trend),
            "15m": make_analysis("15m", price=m15_price, ema21=100.0, stoch_k=stoch_k,
                                 swing_low=swing_low, swing_high=swing_high),
            "5m": make_analysis("5m"),
        },
        thresholds=thresholds_for("AGGRESSIVE"),
    )


class TestAggroScalp1H:
    def test_fires_long_on_flat_1h(self, make_analysis):
        result = AggroScalp1HStrategy().evaluate(_aggro_snapshot(make_analysis))
        assert result.fired
        signal = result.signal
        _assert_valid_long(signal)
        assert signal.setup_type == "AggroScalp"
        assert signal.confidence == 55
        assert signal.entry_zone.min == pytest.approx(99.7)
        assert signal.entry_zone.max == pytest.approx(100.3)
        assert signal.stop_loss == pytest.approx(97.0 * 0.997)

    def test_targets_are_one_and_half_and_three_r(self, make_analysis):
        signal = AggroScalp1HStrategy().evaluate(_aggro_snapshot(make_analysis)).signal
        risk = 100.0 - 97.0 * 0.997
        assert signal.targets[0] == pytest.approx(100.0 + 1.5 * risk)
        assert signal.targets[1] == pytest.approx(100.0 + 3.0 * risk)

    def test_anchor_is_mean_of_1h_and_15m_ema(self, make_analysis):
        snapshot = _aggro_snapshot(make_analysis)
        analyses = dict(snapshot.analyses, **{
            "15m": make_analysis("15m", price=101.5, ema21=101.0, stoch_k=40.0, swing_low=97.0),
        })
        signal = AggroScalp1HStrategy().evaluate(
            MarketSnapshot(analyses=analyses, thresholds=snapshot.thresholds)
        ).signal
        assert signal.entry_zone.mid == pytest.approx(100.5)

    def test_fires_short_on_flat_1h(self, make_analysis):
        result = AggroScalp1HStrategy().evaluate(
            _aggro_snapshot(make_analysis, m15_price=98.5, stoch_k=80.0, swing_low=0.0,
                            swing_high=104.0, h1_price=99.6)
        )
        assert result.fired
        _assert_valid_short(result.signal)
        assert result.signal.stop_loss == pytest.approx(104.0 * 1.003)

    def test_stoch_without_room_declines(self, make_analysis):
        result = AggroScalp1HStrategy().evaluate(
            _aggro_snapshot(make_analysis, h1_trend="UPTREND", stoch_k=80.0)
        )
        assert not result.fired
        assert result.eligible is True
        assert result.checks["stoch_room"] is False

    def test_overextended_15m_declines(self, make_analysis):
        result = AggroScalp1HStrategy().evaluate(_aggro_snapshot(make_analysis, m15_price=104.0))
        assert not result.fired
        assert "15m pullback OVEREXTENDED" in result.missing

    def test_stop_falls_back_to_fixed_distance(self, make_analysis):
        signal = AggroScalp1HStrategy().evaluate(
            _aggro_snapshot(make_analysis, swing_low=0.0)
        ).signal
        assert signal.invalidation_level == pytest.approx(97.0)
        assert signal.stop_loss == pytest.approx(97.0 * 0.997)

    def test_missing_15m(self, make_analysis):
        snapshot = MarketSnapshot(analyses={"1h": make_analysis("1h")})
        result = AggroScalp1HStrategy().evaluate(snapshot)
        assert result.missing == ("missing 1h/15m data",)
