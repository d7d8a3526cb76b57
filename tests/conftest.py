"""Shared fixtures: hand-built timeframe analyses for strategy-level tests."""

from typing import Optional

import pytest

from mtf_engine.strategy.models import (
    IndicatorSet,
    MarketStructure,
    StochState,
    SwingLevels,
    TimeframeAnalysis,
    Volatility,
    VolumeAnalysis,
    VolumeProfile,
)
from mtf_engine.strategy.trend import detect_pullback


def build_analysis(
    timeframe: str = "4h",
    price: float = 100.0,
    ema21: float = 100.0,
    ema50: float = 0.0,
    trend: str = "FLAT",
    stoch_k: float = 50.0,
    stoch_d: float = 50.0,
    stoch_condition: str = "NEUTRAL",
    curl: str = "flat",
    swing_high: float = 0.0,
    swing_low: float = 0.0,
    volatility_state: str = "normal",
    atr_pct: float = 1.0,
    market_structure: Optional[MarketStructure] = None,
    liquidity_zones: tuple = (),
    fair_value_gaps: tuple = (),
    divergences: tuple = (),
    volume_trend: str = "neutral",
    volume_profile: Optional[VolumeProfile] = None,
) -> TimeframeAnalysis:
    """A TimeframeAnalysis with only the fields a strategy reads filled in.

    The pullback state is derived from *price* and *ema21* exactly as the
    real pipeline does.
    """
    indicators = IndicatorSet(
        price=price,
        ema21=ema21,
        ema50=ema50,
        trend=trend,
        pullback=detect_pullback(price, ema21),
        stoch=StochState(k=stoch_k, d=stoch_d, condition=stoch_condition, curl=curl),
        volume=VolumeAnalysis(trend=volume_trend),
    )
    return TimeframeAnalysis(
        timeframe=timeframe,
        candle_count=250,
        indicators=indicators,
        structure=SwingLevels(swing_high=swing_high, swing_low=swing_low),
        market_structure=market_structure or MarketStructure(),
        volatility=Volatility(atr=price * atr_pct / 100, atr_pct=atr_pct, state=volatility_state),
        volume_profile=volume_profile or VolumeProfile(),
        liquidity_zones=tuple(liquidity_zones),
        fair_value_gaps=tuple(fair_value_gaps),
        divergences=tuple(divergences),
    )


@pytest.fixture
def make_analysis():
    return build_analysis
