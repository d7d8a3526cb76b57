"""Candlestick pattern detection on the most recent candles."""

from mtf_engine.strategy.models import Candle


def _body(candle: Candle) -> float:
    return abs(candle.close - candle.open)


def _upper_wick(candle: Candle) -> float:
    return candle.high - max(candle.open, candle.close)


def _lower_wick(candle: Candle) -> float:
    return min(candle.open, candle.close) - candle.low


def _is_bullish_engulfing(prev: Candle, curr: Candle) -> bool:
    """Return True if *curr* is a bullish engulfing relative to *prev*."""
    return (
        prev.close < prev.open  # previous was bearish
        and curr.close > curr.open  # current is bullish
        and curr.close > prev.open  # body engulfs prev body
        and curr.open <= prev.close
    )


def _is_bearish_engulfing(prev: Candle, curr: Candle) -> bool:
    """Return True if *curr* is a bearish engulfing relative to *prev*."""
    return (
        prev.close > prev.open
        and curr.close < curr.open
        and curr.close < prev.open
        and curr.open >= prev.close
    )


def _is_hammer(candle: Candle) -> bool:
    body = _body(candle)
    if body == 0:
        return False
    return _lower_wick(candle) >= 2 * body and _upper_wick(candle) <= body * 0.5


def _is_shooting_star(candle: Candle) -> bool:
    body = _body(candle)
    if body == 0:
        return False
    return _upper_wick(candle) >= 2 * body and _lower_wick(candle) <= body * 0.5


def _is_doji(candle: Candle) -> bool:
    total_range = candle.high - candle.low
    if total_range == 0:
        return False
    return _body(candle) <= 0.1 * total_range


def is_bullish_rejection(candle: Candle) -> bool:
    """Lower wick longer than twice the body and over half the range."""
    total_range = candle.high - candle.low
    if total_range == 0:
        return False
    wick = _lower_wick(candle)
    return wick > 2 * _body(candle) and wick > 0.5 * total_range


def is_bearish_rejection(candle: Candle) -> bool:
    total_range = candle.high - candle.low
    if total_range == 0:
        return False
    wick = _upper_wick(candle)
    return wick > 2 * _body(candle) and wick > 0.5 * total_range


def detect_patterns(candles: list[Candle]) -> tuple[str, ...]:
    """Name every pattern present on the last one or two candles.

    Bullish and bearish reversal names are mutually exclusive for a single
    candle: a candle is never both a hammer and a shooting star.
    """
    if not candles:
        return ()

    curr = candles[-1]
    found: list[str] = []

    if len(candles) >= 2:
        prev = candles[-2]
        if _is_bullish_engulfing(prev, curr):
            found.append("bullish_engulfing")
        elif _is_bearish_engulfing(prev, curr):
            found.append("bearish_engulfing")

    if _is_hammer(curr):
        found.append("hammer")
    elif _is_shooting_star(curr):
        found.append("shooting_star")

    if is_bullish_rejection(curr):
        found.append("bullish_rejection")
    elif is_bearish_rejection(curr):
        found.append("bearish_rejection")

    if _is_doji(curr):
        found.append("doji")

    return tuple(found)
