"""Technical indicators — EMA, RSI, Stochastic RSI, ATR, Bollinger Bands, VWAP
and volume aggregates.  Pure functions, no I/O.

The ``calculate_*`` primitives return full series aligned with the input
candles and raise ``ValueError`` when the window is too short.  The
``analyze_*`` wrappers summarise the latest bar and return a typed neutral
default instead of raising.
"""

import math

import numpy as np

from mtf_engine.strategy.models import (
    BollingerBands,
    Candle,
    StochState,
    Volatility,
    VolumeAnalysis,
    VWAPState,
)

NAN = float("nan")

# VWAP is only meaningful where a session resets within the window.
INTRADAY_TIMEFRAMES = frozenset({"5m", "15m", "1h"})

VOLATILITY_STATES = ("low", "normal", "high", "extreme")


def _is_nan(value: float) -> bool:
    return value != value


def _ema_values(values: list[float], period: int) -> list[float]:
    k = 2.0 / (period + 1)
    ema: list[float] = [NAN] * len(values)

    # Seed: SMA of first *period* values
    ema[period - 1] = sum(values[:period]) / period

    for i in range(period, len(values)):
        ema[i] = values[i] * k + ema[i - 1] * (1 - k)
    return ema


def _sma_values(values: list[float], period: int) -> list[float]:
    """Simple moving average that skips windows still containing NaN."""
    out: list[float] = [NAN] * len(values)
    for i in range(period - 1, len(values)):
        window = values[i - period + 1 : i + 1]
        if any(_is_nan(v) for v in window):
            continue
        out[i] = sum(window) / period
    return out


def _true_ranges(candles: list[Candle]) -> list[float]:
    return [
        max(
            candles[i].high - candles[i].low,
            abs(candles[i].high - candles[i - 1].close),
            abs(candles[i].low - candles[i - 1].close),
        )
        for i in range(1, len(candles))
    ]


# ── EMA ──────────────────────────────────────────────────────────────────


def calculate_ema(candles: list[Candle], period: int) -> list[float]:
    """Calculate an Exponential Moving Average series.

    Uses the standard EMA formula:
        ``EMA_today = close × k + EMA_yesterday × (1 - k)``
    where ``k = 2 / (period + 1)``.

    The first EMA value is seeded with the SMA of the first *period*
    closes.  Entries before the seed are ``float('nan')``.

    Raises ``ValueError`` if fewer than *period* candles are provided.
    """
    if len(candles) < period:
        raise ValueError(
            f"Need at least {period} candles for EMA({period}), "
            f"got {len(candles)}"
        )
    return _ema_values([c.close for c in candles], period)


def latest_ema(candles: list[Candle], period: int) -> float:
    """Last EMA value, or ``0.0`` when the window is too short."""
    if len(candles) < period:
        return 0.0
    return calculate_ema(candles, period)[-1]


# ── RSI ──────────────────────────────────────────────────────────────────


def calculate_rsi(candles: list[Candle], period: int = 14) -> list[float]:
    """RSI of the closes with Wilder smoothing, ``NaN`` before the first full window.

    The seed averages are the plain means of the first *period* up and down
    moves; each later bar folds in with weight ``1 / period``.  A stretch
    with no movement at all reads 50 so a dead market never looks stretched.
    Raises ``ValueError`` below ``period + 1`` candles.
    """
    if len(candles) < period + 1:
        raise ValueError(
            f"Need at least {period + 1} candles for RSI({period}), "
            f"got {len(candles)}"
        )

    moves = np.diff(np.array([c.close for c in candles], dtype=float))
    ups = np.clip(moves, 0.0, None)
    downs = np.clip(-moves, 0.0, None)

    def _strength(up: float, down: float) -> float:
        if down == 0:
            return 100.0 if up > 0 else 50.0
        return 100.0 - 100.0 / (1.0 + up / down)

    avg_up = float(ups[:period].mean())
    avg_down = float(downs[:period].mean())
    rsi: list[float] = [NAN] * len(candles)
    rsi[period] = _strength(avg_up, avg_down)

    # moves[i] closes candle i + 1
    for i in range(period, len(moves)):
        avg_up += (float(ups[i]) - avg_up) / period
        avg_down += (float(downs[i]) - avg_down) / period
        rsi[i + 1] = _strength(avg_up, avg_down)

    return rsi


def latest_rsi(candles: list[Candle], period: int = 14) -> float:
    if len(candles) < period + 1:
        return 50.0
    return calculate_rsi(candles, period)[-1]


# ── Stochastic RSI ───────────────────────────────────────────────────────


def stoch_rsi_min_candles(
    rsi_period: int = 14, stoch_period: int = 14, k_period: int = 3, d_period: int = 3
) -> int:
    return rsi_period + stoch_period + k_period + d_period - 2


def calculate_stoch_rsi(
    candles: list[Candle],
    rsi_period: int = 14,
    stoch_period: int = 14,
    k_period: int = 3,
    d_period: int = 3,
) -> tuple[list[float], list[float]]:
    """Calculate the Stochastic RSI ``(k, d)`` series.

    raw = (RSI − lowest RSI) / (highest RSI − lowest RSI) × 100 over
    *stoch_period*; ``k`` = SMA(raw, *k_period*); ``d`` = SMA(k, *d_period*).
    A flat RSI window reads 50.

    Raises ``ValueError`` on insufficient data.
    """
    min_candles = stoch_rsi_min_candles(rsi_period, stoch_period, k_period, d_period)
    if len(candles) < min_candles:
        raise ValueError(
            f"Need at least {min_candles} candles for StochRSI({rsi_period},"
            f"{stoch_period},{k_period},{d_period}), got {len(candles)}"
        )

    rsi = calculate_rsi(candles, rsi_period)
    raw: list[float] = [NAN] * len(candles)
    for i in range(rsi_period + stoch_period - 1, len(candles)):
        window = rsi[i - stoch_period + 1 : i + 1]
        lowest, highest = min(window), max(window)
        if highest == lowest:
            raw[i] = 50.0
        else:
            raw[i] = (rsi[i] - lowest) / (highest - lowest) * 100.0

    k = _sma_values(raw, k_period)
    d = _sma_values(k, d_period)
    return k, d


def classify_stoch(k: float, d: float) -> str:
    """Map a k/d pair to a condition, zone extremes taking precedence."""
    if k > 80 and d > 80:
        return "OVERBOUGHT"
    if k < 20 and d < 20:
        return "OVERSOLD"
    if k > d:
        return "BULLISH"
    if k < d:
        return "BEARISH"
    return "NEUTRAL"


def stoch_zone(k: float) -> str:
    if k < 20:
        return "oversold"
    if k > 80:
        return "overbought"
    return "neutral"


def stoch_curl(k_values: list[float]) -> str:
    recent = [v for v in k_values[-3:] if not _is_nan(v)]
    if len(recent) < 3:
        return "flat"
    if recent[2] > recent[1] > recent[0]:
        return "up"
    if recent[2] < recent[1] < recent[0]:
        return "down"
    return "flat"


def analyze_stoch_rsi(candles: list[Candle]) -> StochState:
    """Latest Stochastic RSI state; neutral default on short windows."""
    if len(candles) < stoch_rsi_min_candles():
        return StochState()
    k_series, d_series = calculate_stoch_rsi(candles)
    k, d = k_series[-1], d_series[-1]
    return StochState(
        k=round(k, 2),
        d=round(d, 2),
        condition=classify_stoch(k, d),
        zone=stoch_zone(k),
        curl=stoch_curl(k_series),
    )


# ── ATR ──────────────────────────────────────────────────────────────────


def calculate_atr(candles: list[Candle], period: int = 14) -> float:
    """Calculate the Average True Range with Wilder smoothing.

    TR = max(high - low, |high - prev_close|, |low - prev_close|)

    The first ATR is the SMA of the first *period* true ranges; each later
    value is ``(prev × (period-1) + TR) / period``.

    Raises ``ValueError`` if fewer than ``period + 1`` candles.
    """
    if len(candles) < period + 1:
        raise ValueError(
            f"Need at least {period + 1} candles for ATR({period}), "
            f"got {len(candles)}"
        )

    true_ranges = _true_ranges(candles)
    atr = sum(true_ranges[:period]) / period
    for tr in true_ranges[period:]:
        atr = (atr * (period - 1) + tr) / period
    return atr


def classify_volatility(atr_pct: float) -> str:
    if not math.isfinite(atr_pct) or atr_pct < 0:
        return "normal"
    if atr_pct > 5:
        return "extreme"
    if atr_pct > 2:
        return "high"
    if atr_pct < 0.5:
        return "low"
    return "normal"


def analyze_volatility(candles: list[Candle], period: int = 14) -> Volatility:
    if len(candles) < period + 1 or candles[-1].close <= 0:
        return Volatility()
    atr = calculate_atr(candles, period)
    atr_pct = atr / candles[-1].close * 100
    return Volatility(
        atr=round(atr, 8),
        atr_pct=round(atr_pct, 4),
        state=classify_volatility(atr_pct),
    )


# ── Bollinger Bands ──────────────────────────────────────────────────────


def calculate_bollinger(
    candles: list[Candle],
    period: int = 20,
    std_dev: float = 2.0,
) -> tuple[list[float], list[float], list[float]]:
    """Rolling close mean with bands *std_dev* population deviations either side.

    Returns ``(upper, middle, lower)`` aligned with *candles*, ``NaN`` until
    the first full window.  Raises ``ValueError`` below *period* candles.
    """
    if len(candles) < period:
        raise ValueError(
            f"Need at least {period} candles for Bollinger({period}), "
            f"got {len(candles)}"
        )

    closes = np.array([c.close for c in candles], dtype=float)
    windows = np.lib.stride_tricks.sliding_window_view(closes, period)
    means = windows.mean(axis=1)
    spread = std_dev * windows.std(axis=1)

    lead = [NAN] * (period - 1)
    middle = lead + means.tolist()
    upper = lead + (means + spread).tolist()
    lower = lead + (means - spread).tolist()
    return upper, middle, lower


def analyze_bollinger(candles: list[Candle], period: int = 20) -> BollingerBands:
    if len(candles) < period:
        return BollingerBands()

    upper, middle, lower = (series[-1] for series in calculate_bollinger(candles, period))
    price = candles[-1].close
    bandwidth = (upper - lower) / middle * 100 if middle > 0 else 0.0

    if upper == lower:
        position = 50.0
    else:
        position = min(100.0, max(0.0, (price - lower) / (upper - lower) * 100))

    return BollingerBands(
        middle=middle,
        upper=upper,
        lower=lower,
        bandwidth_pct=round(bandwidth, 4),
        squeeze=bandwidth < 2.0,
        position_pct=round(position, 2),
    )


# ── VWAP ─────────────────────────────────────────────────────────────────


def analyze_vwap(candles: list[Candle], timeframe: str) -> VWAPState:
    """Volume-weighted average of typical price over the window.

    Only computed for intraday timeframes with non-zero volume.
    """
    if timeframe not in INTRADAY_TIMEFRAMES or not candles:
        return VWAPState()

    volumes = np.array([max(c.volume, 0.0) for c in candles], dtype=float)
    total_volume = float(volumes.sum())
    if total_volume <= 0:
        return VWAPState()

    typical = np.array([(c.high + c.low + c.close) / 3 for c in candles], dtype=float)
    vwap = float((typical * volumes).sum() / total_volume)
    if vwap <= 0:
        return VWAPState()

    price = candles[-1].close
    distance = (price - vwap) / vwap * 100

    return VWAPState(
        available=True,
        value=vwap,
        distance_pct=round(distance, 4),
        above=price > vwap,
        at_vwap=abs(distance) < 0.2,
        reversion_zone=abs(distance) > 2.0,
        trapped_longs=distance < -0.5,
        trapped_shorts=distance > 0.5,
    )


# ── Volume ───────────────────────────────────────────────────────────────


def analyze_volume(candles: list[Candle], lookback: int = 20) -> VolumeAnalysis:
    """Current volume, rolling average and a last-5 vs previous-5 trend."""
    if not candles:
        return VolumeAnalysis()

    current = max(candles[-1].volume, 0.0)
    positive = [c.volume for c in candles[-lookback:] if c.volume > 0]
    average = sum(positive) / len(positive) if len(positive) >= 5 else 0.0

    trend = "neutral"
    if len(candles) >= 10:
        recent = sum(max(c.volume, 0.0) for c in candles[-5:])
        previous = sum(max(c.volume, 0.0) for c in candles[-10:-5])
        if previous > 0:
            ratio = recent / previous
            if ratio > 1.2:
                trend = "up"
            elif ratio < 0.8:
                trend = "down"

    return VolumeAnalysis(current=current, average=average, trend=trend)


def classify_ma_stack(ema21: float, ema50: float, ema200: float) -> str:
    if min(ema21, ema50, ema200) <= 0:
        return "flat"
    if ema21 > ema50 > ema200:
        return "bull"
    if ema21 < ema50 < ema200:
        return "bear"
    return "flat"
