"""Tests for the market analysis engine pipeline."""

import logging
import math

import pytest

from mtf_engine.engine import (
    TimeframeSummary,
    analyze_market,
    analyze_timeframes,
    build_timeframe_summary,
)
from mtf_engine.strategy.models import NO_TRADE, Candle, TimeframeAnalysis, TimeframeError

TIMEFRAMES = ("3d", "1d", "4h", "1h", "15m", "5m")


def _make_candles(count: int = 200, drift: float = 0.05, start: float = 100.0) -> list[Candle]:
    """Trending series with a sine wave on top so swings and pullbacks form."""
    candles = []
    for i in range(count):
        mid = start + drift * i + 2.0 * math.sin(i / 4.0)
        open_ = mid - 0.2
        close = mid + 0.2
        candles.append(
            Candle(
                timestamp=i * 60,
                open=open_,
                high=max(open_, close) + 0.3,
                low=min(open_, close) - 0.3,
                close=close,
                volume=1000.0 + 50.0 * (i % 7),
            )
        )
    return candles


def _full_market(**overrides) -> dict[str, list[Candle]]:
    market = {tf: _make_candles() for tf in TIMEFRAMES}
    market.update(overrides)
    return market


class TestAnalyzeTimeframes:
    def test_every_timeframe_analysed(self):
        analyses = analyze_timeframes(_full_market())
        assert set(analyses) == set(TIMEFRAMES)
        assert all(isinstance(a, TimeframeAnalysis) for a in analyses.values())

    def test_empty_timeframe_logged(self, caplog):
        with caplog.at_level(logging.WARNING, logger="mtf_engine"):
            analyses = analyze_timeframes({"4h": []})
        assert isinstance(analyses["4h"], TimeframeError)
        assert "No candle data for 4h" in caplog.text


class TestAnalyzeMarket:
    def test_missing_4h_still_returns_no_trade(self):
        result = analyze_market(_full_market(**{"4h": []}))
        assert isinstance(result.analyses["4h"], TimeframeError)
        assert result.to_dict()["analyses"]["4h"] == {"error": "No data"}
        assert result.signal is not None
        if not result.signal.valid:
            assert result.signal.direction == NO_TRADE
            assert result.signal.confidence == 0
            assert result.signal.stop_loss is None

    def test_all_empty(self):
        result = analyze_market({tf: [] for tf in TIMEFRAMES})
        assert result.signal.valid is False
        assert result.signal.direction == NO_TRADE
        assert result.htf_bias.direction == "neutral"
        assert result.readiness.trade_readiness_level == "DONT_BOTHER"

    def test_signal_is_well_formed(self):
        signal = analyze_market(_full_market()).signal
        assert 0 <= signal.confidence <= 100
        if signal.valid:
            assert signal.direction in ("long", "short")
            assert signal.entry_zone.min <= signal.entry_zone.max
            assert signal.targets
            if signal.direction == "long":
                assert signal.stop_loss < signal.entry_zone.min
            else:
                assert signal.stop_loss > signal.entry_zone.max
        else:
            assert signal.direction == NO_TRADE
            assert signal.reason

    def test_to_dict_shape(self):
        data = analyze_market(_full_market()).to_dict()
        for key in ("analyses", "confluence", "momentum", "htfBias", "signal", "readiness", "summary"):
            assert key in data
        assert set(data["signal"]["entryZone"]) == {"min", "max"}
        assert 0 <= data["readiness"]["tradeReadinessScore"] <= 100

    def test_single_strategy(self):
        signal = analyze_market(_full_market(), strategy="SWING").signal
        assert signal.strategies_checked == ("SWING",)

    def test_unknown_strategy(self):
        with pytest.raises(KeyError, match="Unknown strategy"):
            analyze_market(_full_market(), strategy="bogus")


class TestTimeframeSummary:
    def test_summary_fields(self, make_analysis):
        summary = build_timeframe_summary({"1h": make_analysis("1h", price=101.0, ema21=100.0, trend="UPTREND")})
        line = summary["1h"]
        assert isinstance(line, TimeframeSummary)
        assert line.trend == "UPTREND"
        assert line.price == 101.0
        assert line.volatility == "normal"

    def test_error_passes_through(self):
        error = TimeframeError()
        assert build_timeframe_summary({"4h": error})["4h"] is error
