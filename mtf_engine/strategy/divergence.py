"""Regular RSI / StochRSI divergence detection on closing-price pivots."""

import math
from typing import Optional

from mtf_engine.strategy.indicators import (
    calculate_rsi,
    calculate_stoch_rsi,
    stoch_rsi_min_candles,
)
from mtf_engine.strategy.models import Candle, Divergence
from mtf_engine.strategy.structure import swing_depth

MIN_DIVERGENCE_CANDLES = 5


def find_close_pivots(closes: list[float], depth: int) -> tuple[list[int], list[int]]:
    """Indices of closing-price pivot highs and pivot lows."""
    highs: list[int] = []
    lows: list[int] = []
    for i in range(depth, len(closes) - depth):
        neighbours = closes[i - depth : i] + closes[i + 1 : i + depth + 1]
        if all(closes[i] > n for n in neighbours):
            highs.append(i)
        elif all(closes[i] < n for n in neighbours):
            lows.append(i)
    return highs, lows


def _usable(value: float) -> bool:
    return value is not None and math.isfinite(value)


def detect_divergence(
    candles: list[Candle],
    values: list[float],
    oscillator: str,
    depth: Optional[int] = None,
) -> list[Divergence]:
    """Compare *values* at the last two pivot highs and the last two pivot lows.

    Bearish: price pivot high rises while the oscillator falls.
    Bullish: price pivot low falls while the oscillator rises.
    """
    if len(candles) < MIN_DIVERGENCE_CANDLES or len(values) != len(candles):
        return []

    closes = [c.close for c in candles]
    if depth is None:
        depth = swing_depth(len(candles))
    pivot_highs, pivot_lows = find_close_pivots(closes, max(1, depth))

    found: list[Divergence] = []

    if len(pivot_highs) >= 2:
        first, second = pivot_highs[-2], pivot_highs[-1]
        if (
            _usable(values[first]) and _usable(values[second])
            and closes[second] > closes[first]
            and values[second] < values[first]
        ):
            found.append(Divergence(
                oscillator=oscillator, side="bearish", price_index=second,
                previous_price=closes[first], latest_price=closes[second],
                previous_value=values[first], latest_value=values[second],
            ))

    if len(pivot_lows) >= 2:
        first, second = pivot_lows[-2], pivot_lows[-1]
        if (
            _usable(values[first]) and _usable(values[second])
            and closes[second] < closes[first]
            and values[second] > values[first]
        ):
            found.append(Divergence(
                oscillator=oscillator, side="bullish", price_index=second,
                previous_price=closes[first], latest_price=closes[second],
                previous_value=values[first], latest_value=values[second],
            ))

    return found


def detect_divergences(candles: list[Candle]) -> list[Divergence]:
    """RSI and StochRSI-k divergences, each only when its series can be computed."""
    if len(candles) < MIN_DIVERGENCE_CANDLES:
        return []

    found: list[Divergence] = []
    if len(candles) >= 15:
        found.extend(detect_divergence(candles, calculate_rsi(candles), "RSI"))
    if len(candles) >= stoch_rsi_min_candles():
        k_series, _ = calculate_stoch_rsi(candles)
        found.extend(detect_divergence(candles, k_series, "StochRSI"))
    return found
