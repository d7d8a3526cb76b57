"""Trend detection — EMA-based direction and pullback classification.

- ``detect_trend()``: price vs EMA21 vs EMA200 ordering.
- ``detect_pullback()``: how far price has stretched from its EMA21.
"""

from dataclasses import dataclass
from typing import Literal

from mtf_engine.strategy.indicators import calculate_ema
from mtf_engine.strategy.models import Candle, PullbackState

ENTRY_ZONE_PCT = 0.5
OVEREXTENDED_PCT = 3.0


@dataclass(frozen=True)
class TrendState:
    """Snapshot of the current trend direction and EMA values."""

    direction: Literal["UPTREND", "DOWNTREND", "FLAT"]
    ema_fast_value: float
    ema_slow_value: float
    slope: float  # ema_fast - ema_slow (positive = bullish bias)


def detect_trend(
    candles: list[Candle],
    ema_fast: int = 21,
    ema_slow: int = 200,
) -> TrendState:
    """Classify trend direction from price and EMA ordering.

    Args:
        candles: Candle history, oldest-first.
        ema_fast: Fast EMA period (default 21).
        ema_slow: Slow EMA period (default 200).

    Rules:
        - **UPTREND**: price > EMA(fast) > EMA(slow).
        - **DOWNTREND**: price < EMA(fast) < EMA(slow).
        - **FLAT**: everything else, including windows shorter than *ema_slow*.
    """
    if len(candles) < ema_slow:
        return TrendState(
            direction="FLAT",
            ema_fast_value=0.0,
            ema_slow_value=0.0,
            slope=0.0,
        )

    ema_f = calculate_ema(candles, ema_fast)[-1]
    ema_s = calculate_ema(candles, ema_slow)[-1]
    price = candles[-1].close

    if price > ema_f > ema_s:
        direction = "UPTREND"
    elif price < ema_f < ema_s:
        direction = "DOWNTREND"
    else:
        direction = "FLAT"

    return TrendState(
        direction=direction,
        ema_fast_value=ema_f,
        ema_slow_value=ema_s,
        slope=ema_f - ema_s,
    )


def detect_pullback(price: float, ema21: float) -> PullbackState:
    """Bucket the percentage distance of *price* from *ema21*.

    ``|d| < 0.5`` → ENTRY_ZONE, ``|d| > 3`` → OVEREXTENDED, otherwise
    RETRACING.  UNKNOWN when no EMA is available.
    """
    if ema21 <= 0:
        return PullbackState()

    distance = (price - ema21) / ema21 * 100
    if abs(distance) < ENTRY_ZONE_PCT:
        state = "ENTRY_ZONE"
    elif abs(distance) > OVEREXTENDED_PCT:
        state = "OVEREXTENDED"
    else:
        state = "RETRACING"
    return PullbackState(state=state, distance_pct=round(distance, 4))


def trend_to_direction(trend: str) -> str:
    """UPTREND → long, DOWNTREND → short, anything else → neutral."""
    if trend == "UPTREND":
        return "long"
    if trend == "DOWNTREND":
        return "short"
    return "neutral"
