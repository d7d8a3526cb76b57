"""Per-timeframe analysis — runs every detector over one candle window."""

from typing import Union

from mtf_engine.strategy.divergence import detect_divergences
from mtf_engine.strategy.indicators import (
    analyze_bollinger,
    analyze_stoch_rsi,
    analyze_volatility,
    analyze_volume,
    analyze_vwap,
    classify_ma_stack,
    latest_ema,
    latest_rsi,
)
from mtf_engine.strategy.liquidity import detect_fair_value_gaps, detect_liquidity_zones
from mtf_engine.strategy.models import (
    Candle,
    IndicatorSet,
    TimeframeAnalysis,
    TimeframeError,
)
from mtf_engine.strategy.normalize import normalize_timeframe_analysis
from mtf_engine.strategy.patterns import detect_patterns
from mtf_engine.strategy.structure import detect_market_structure, detect_swing_levels
from mtf_engine.strategy.trend import detect_pullback, detect_trend
from mtf_engine.strategy.volume_profile import calculate_volume_profile


def build_indicators(candles: list[Candle], timeframe: str) -> IndicatorSet:
    price = candles[-1].close
    ema21 = latest_ema(candles, 21)
    ema50 = latest_ema(candles, 50)
    ema200 = latest_ema(candles, 200)

    return IndicatorSet(
        price=price,
        ema21=ema21,
        ema50=ema50,
        ema200=ema200,
        rsi=round(latest_rsi(candles), 2),
        trend=detect_trend(candles).direction,
        ma_stack=classify_ma_stack(ema21, ema50, ema200),
        pullback=detect_pullback(price, ema21),
        stoch=analyze_stoch_rsi(candles),
        bollinger=analyze_bollinger(candles),
        vwap=analyze_vwap(candles, timeframe),
        volume=analyze_volume(candles),
        patterns=detect_patterns(candles),
    )


def analyze_timeframe(
    candles: list[Candle],
    timeframe: str,
    swing_lookback: int = 50,
    liquidity_lookback: int = 100,
    fvg_lookback: int = 50,
) -> Union[TimeframeAnalysis, TimeframeError]:
    """Build the full, normalised analysis for one timeframe.

    An empty window yields ``TimeframeError("No data")``.  Any shorter-than-
    needed window still produces a complete analysis with neutral defaults
    for the parts it cannot compute.
    """
    if not candles:
        return TimeframeError()

    indicators = build_indicators(candles, timeframe)
    analysis = TimeframeAnalysis(
        timeframe=timeframe,
        candle_count=len(candles),
        indicators=indicators,
        structure=detect_swing_levels(candles),
        market_structure=detect_market_structure(candles, indicators.trend, swing_lookback),
        volatility=analyze_volatility(candles),
        volume_profile=calculate_volume_profile(candles),
        liquidity_zones=tuple(detect_liquidity_zones(candles, liquidity_lookback)),
        fair_value_gaps=tuple(detect_fair_value_gaps(candles, fvg_lookback)),
        divergences=tuple(detect_divergences(candles)),
    )
    return normalize_timeframe_analysis(analysis)
