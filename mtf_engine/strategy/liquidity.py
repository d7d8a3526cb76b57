"""Liquidity zones (equal highs / equal lows) and fair value gaps."""

from mtf_engine.strategy.models import Candle, FairValueGap, LiquidityZone
from mtf_engine.strategy.structure import (
    find_swing_highs,
    find_swing_lows,
    swing_depth,
)

SHORT_SERIES_CANDLES = 50
SHORT_SERIES_TOLERANCE_PCT = 0.2
DEFAULT_TOLERANCE_PCT = 0.5

ZONE_BASE_STRENGTH = 40
ZONE_STRENGTH_STEP = 20


def zone_tolerance_pct(candle_count: int) -> float:
    if candle_count < SHORT_SERIES_CANDLES:
        return SHORT_SERIES_TOLERANCE_PCT
    return DEFAULT_TOLERANCE_PCT


def _cluster_equal_levels(
    levels: list[float],
    zone_type: str,
    side: str,
    tolerance_pct: float,
) -> list[LiquidityZone]:
    """Merge every pair of levels within *tolerance_pct* into zones.

    The first matching pair opens a zone with two touches; each further
    pair landing on the same zone adds a touch and 20 strength.
    """
    zones: list[dict] = []
    for i in range(len(levels)):
        for j in range(i + 1, len(levels)):
            avg_price = (levels[i] + levels[j]) / 2
            if avg_price <= 0:
                continue
            percent_diff = abs(levels[i] - levels[j]) / avg_price * 100
            if percent_diff > tolerance_pct:
                continue

            existing = next(
                (z for z in zones
                 if abs(z["price"] - avg_price) / avg_price * 100 <= tolerance_pct),
                None,
            )
            if existing is not None:
                existing["touches"] += 1
                existing["strength"] = min(100, existing["strength"] + ZONE_STRENGTH_STEP)
            else:
                zones.append({
                    "price": avg_price,
                    "tolerance_pct": round(percent_diff, 4),
                    "strength": ZONE_BASE_STRENGTH,
                    "touches": 2,
                })

    return [
        LiquidityZone(type=zone_type, side=side, **zone)
        for zone in zones
    ]


def detect_liquidity_zones(
    candles: list[Candle],
    lookback: int = 100,
) -> list[LiquidityZone]:
    """Detect equal-high (sell-side) and equal-low (buy-side) liquidity.

    Short windows use a tighter 0.2% tolerance and shallower swings so
    that sparse data still yields zones.
    """
    if len(candles) < 5:
        return []

    recent = candles[-lookback:] if len(candles) > lookback else candles
    depth = swing_depth(len(recent))
    tolerance = zone_tolerance_pct(len(recent))

    highs = [recent[i].high for i in find_swing_highs(recent, depth)]
    lows = [recent[i].low for i in find_swing_lows(recent, depth)]

    return (
        _cluster_equal_levels(highs, "equal_highs", "sell", tolerance)
        + _cluster_equal_levels(lows, "equal_lows", "buy", tolerance)
    )


# ── Fair value gaps ──────────────────────────────────────────────────────


def _is_filled(candles: list[Candle], start: int, low: float, high: float) -> bool:
    return any(c.low <= high and c.high >= low for c in candles[start:])


def detect_fair_value_gaps(
    candles: list[Candle],
    lookback: int = 50,
) -> list[FairValueGap]:
    """Scan every three-candle window for an imbalance.

    Bullish: ``c0.high < c2.low`` with bounds ``[c0.high, c2.low]``.
    Bearish: ``c0.low > c2.high`` with bounds ``[c2.high, c0.low]``.

    A gap is filled once any candle after the third one trades back
    into its bounds.
    """
    if len(candles) < 3:
        return []

    recent = candles[-lookback:] if len(candles) > lookback else candles
    gaps: list[FairValueGap] = []

    for i in range(len(recent) - 2):
        first, third = recent[i], recent[i + 2]

        if first.high < third.low:
            low, high = first.high, third.low
            gaps.append(FairValueGap(
                direction="bullish", low=low, high=high,
                filled=_is_filled(recent, i + 3, low, high), index=i + 1,
            ))
        elif first.low > third.high:
            low, high = third.high, first.low
            gaps.append(FairValueGap(
                direction="bearish", low=low, high=high,
                filled=_is_filled(recent, i + 3, low, high), index=i + 1,
            ))

    return gaps
