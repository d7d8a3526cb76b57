"""Swing-point detection and market structure (BOS / CHOCH) — pure functions."""

from typing import Optional

from mtf_engine.strategy.models import (
    Candle,
    MarketStructure,
    StructureBreak,
    Swing,
    SwingLevels,
)

MIN_STRUCTURE_CANDLES = 5


def swing_depth(candle_count: int) -> int:
    """Depth 2 when the window is long enough, else fall back to 1."""
    return 2 if candle_count >= 20 else 1


def find_swing_highs(candles: list[Candle], depth: int) -> list[int]:
    """Indices of candles whose high is strictly above the *depth* candles on each side."""
    indices: list[int] = []
    for i in range(depth, len(candles) - depth):
        high = candles[i].high
        is_swing = True
        for j in range(1, depth + 1):
            if candles[i - j].high >= high or candles[i + j].high >= high:
                is_swing = False
                break
        if is_swing:
            indices.append(i)
    return indices


def find_swing_lows(candles: list[Candle], depth: int) -> list[int]:
    indices: list[int] = []
    for i in range(depth, len(candles) - depth):
        low = candles[i].low
        is_swing = True
        for j in range(1, depth + 1):
            if candles[i - j].low <= low or candles[i + j].low <= low:
                is_swing = False
                break
        if is_swing:
            indices.append(i)
    return indices


def find_swings(candles: list[Candle], depth: Optional[int] = None) -> list[Swing]:
    """Detect and label swing points in chronological order.

    A swing high is labelled HH when it exceeds the previous swing high and
    LH otherwise; swing lows are HL above the previous swing low and LL
    otherwise.  The first swing of each kind takes the unrefined label
    (HH for highs, LL for lows).
    """
    if depth is None:
        depth = swing_depth(len(candles))
    depth = max(1, depth)

    raw: list[tuple[int, str, float]] = []
    raw.extend((i, "high", candles[i].high) for i in find_swing_highs(candles, depth))
    raw.extend((i, "low", candles[i].low) for i in find_swing_lows(candles, depth))
    raw.sort(key=lambda item: (item[0], item[1]))

    swings: list[Swing] = []
    last_high: Optional[float] = None
    last_low: Optional[float] = None
    for index, kind, price in raw:
        if kind == "high":
            label = "HH" if last_high is None or price > last_high else "LH"
            last_high = price
        else:
            label = "LL" if last_low is None or price < last_low else "HL"
            last_low = price
        swings.append(
            Swing(kind=kind, label=label, price=price, index=index,
                  timestamp=candles[index].timestamp)
        )
    return swings


def _detect_break(swings: list[Swing], break_type: str) -> StructureBreak:
    if len(swings) < 2:
        return StructureBreak()

    prev, last = swings[-2], swings[-1]
    if prev.label == "HL" and last.label == "HH":
        direction = "bullish"
    elif prev.label == "LH" and last.label == "LL":
        direction = "bearish"
    else:
        return StructureBreak()

    return StructureBreak(
        type=break_type,
        direction=direction,
        from_swing=prev.label,
        to_swing=last.label,
        price=last.price,
        timestamp=last.timestamp,
    )


def structure_from_trend(trend: str) -> str:
    if trend == "UPTREND":
        return "uptrend"
    if trend == "DOWNTREND":
        return "downtrend"
    return "flat"


def detect_market_structure(
    candles: list[Candle],
    trend: str = "FLAT",
    lookback: int = 50,
) -> MarketStructure:
    """Summarise swing structure over the last *lookback* candles.

    BOS is an HL→HH (bullish) or LH→LL (bearish) transition between the two
    most recent swings.  CHOCH is derived from the same transition.
    """
    if len(candles) < MIN_STRUCTURE_CANDLES:
        return MarketStructure()

    recent = candles[-lookback:] if len(candles) > lookback else candles
    swings = find_swings(recent)
    last_swings = tuple(swings[-4:])

    return MarketStructure(
        current_structure=structure_from_trend(trend),
        last_swings=last_swings,
        last_bos=_detect_break(list(last_swings), "BOS"),
        last_choch=_detect_break(list(last_swings), "CHOCH"),
    )


def detect_swing_levels(candles: list[Candle], lookback: int = 20) -> SwingLevels:
    """Highest high and lowest low of the last *lookback* candles."""
    if not candles:
        return SwingLevels()
    recent = candles[-lookback:]
    return SwingLevels(
        swing_high=max(c.high for c in recent),
        swing_low=min(c.low for c in recent),
    )
