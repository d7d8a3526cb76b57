"""Trade Readiness meter — a 0–100 "is this market worth watching" score.

Independent of whether any strategy fired.  Layers liquidity, volatility,
divergence and volume context on top of the HTF bias:

    (a) bias confidence + timeframe alignment      ≤ 35
    (b) EMA cleanliness + BOS/CHOCH                ≤ 15
    (c) liquidity on the target side, 1H at half   ≤ 15
    (d) fair value gaps, 1H at half                ±10
    (e) volatility state                           −8 … +7
    (f) divergences                                −7 … +5 each
    (g) volume trend + value area                  ≤ 5
"""

from dataclasses import dataclass, field
from typing import Mapping, Optional, Union

from mtf_engine.strategy.models import HTFBias, TimeframeAnalysis, TimeframeError, round_half_up
from mtf_engine.strategy.trend import trend_to_direction

ALIGNMENT_TIMEFRAMES = ("1d", "4h", "1h")

VOLATILITY_POINTS = {"low": -5, "normal": 7, "high": 3, "extreme": -8}

LOW_ATR_PCT = 0.4
HIGH_ATR_PCT = 3.0
LOW_ATR_CAP = 50
HIGH_ATR_CAP = 60
NEUTRAL_CAP = 60

BIAS_WEIGHT = 0.2
# 1H context counts at half the weight of the 4H
H1_WEIGHT = 0.5
FVG_LIMIT = 10


@dataclass(frozen=True)
class TradeReadiness:
    trade_readiness_score: int = 0
    trade_readiness_level: str = "DONT_BOTHER"
    direction_bias: str = "neutral"
    timeframe_alignment: dict = field(default_factory=dict)
    key_drivers: tuple[str, ...] = ()
    red_flags: tuple[str, ...] = ()
    quick_view: str = ""


def readiness_level(score: int) -> str:
    if score < 40:
        return "DONT_BOTHER"
    if score < 70:
        return "WATCH"
    return "PRIME"


def _ema_aligned(analysis: TimeframeAnalysis, direction: str) -> bool:
    ind = analysis.indicators
    if ind.ema21 <= 0 or ind.ema50 <= 0:
        return False
    if direction == "long":
        return ind.price > ind.ema21 > ind.ema50
    return ind.price < ind.ema21 < ind.ema50


def liquidity_delta(analysis: TimeframeAnalysis, direction: str) -> int:
    """+7 for pools on the target side, +3 for none behind, −3 when behind outweighs ahead 2:1."""
    price = analysis.price
    highs_above = [z for z in analysis.liquidity_zones if z.type == "equal_highs" and z.price > price]
    lows_below = [z for z in analysis.liquidity_zones if z.type == "equal_lows" and z.price < price]
    target, opposite = (highs_above, lows_below) if direction == "long" else (lows_below, highs_above)

    delta = 0
    if target:
        delta += 7
    if not opposite:
        delta += 3
    elif len(opposite) > 2 * len(target):
        delta -= 3
    return delta


def fvg_delta(analysis: TimeframeAnalysis, direction: str) -> tuple[int, bool, bool]:
    """Score unfilled gaps: a same-direction gap behind price supports, an opposing one around price traps."""
    price = analysis.price
    open_gaps = [g for g in analysis.fair_value_gaps if not g.filled]
    if direction == "long":
        supportive = any(g.direction == "bullish" and g.high < price for g in open_gaps)
        trapped = any(g.direction == "bearish" and g.contains(price) for g in open_gaps)
    else:
        supportive = any(g.direction == "bearish" and g.low > price for g in open_gaps)
        trapped = any(g.direction == "bullish" and g.contains(price) for g in open_gaps)

    delta = (7 if supportive else 0) - (5 if trapped else 0)
    return delta, supportive, trapped


def calculate_trade_readiness(
    bias: HTFBias,
    analyses: Mapping[str, Union[TimeframeAnalysis, TimeframeError]],
) -> TradeReadiness:
    """Score readiness for the bias direction using 1D/4H/1H context."""

    def _get(tf: str) -> Optional[TimeframeAnalysis]:
        analysis = analyses.get(tf)
        return analysis if isinstance(analysis, TimeframeAnalysis) else None

    h4, h1 = _get("4h"), _get("1h")
    direction = bias.direction if bias.direction in ("long", "short") else None
    drivers: list[str] = []
    flags: list[str] = []
    score = 0

    # (a) Bias and timeframe alignment
    score += round_half_up(bias.confidence * BIAS_WEIGHT)
    alignment: dict[str, str] = {}
    for tf in ALIGNMENT_TIMEFRAMES:
        analysis = _get(tf)
        if analysis is None:
            alignment[tf] = "unknown"
            continue
        tf_direction = trend_to_direction(analysis.trend)
        if tf_direction == "neutral":
            alignment[tf] = "flat"
        elif direction is None:
            alignment[tf] = tf_direction
        elif tf_direction == direction:
            alignment[tf] = "aligned"
        else:
            alignment[tf] = "against"

    aligned = sum(1 for state in alignment.values() if state == "aligned")
    if direction is not None:
        if aligned == len(ALIGNMENT_TIMEFRAMES):
            score += 10
            drivers.append("1D/4H/1H trends aligned")
        else:
            score += aligned * 3
        wanted_structure = "uptrend" if direction == "long" else "downtrend"
        if h4 is not None and h4.market_structure.current_structure == wanted_structure:
            score += 5
            drivers.append(f"4H structure {wanted_structure}")

    # (b) EMA and structure cleanliness
    if direction is not None and h4 is not None:
        if _ema_aligned(h4, direction):
            score += 7
            drivers.append("4H EMAs stacked with bias")
        bos, choch = h4.market_structure.last_bos, h4.market_structure.last_choch
        wanted_break = "bullish" if direction == "long" else "bearish"
        if bos.detected and bos.direction == wanted_break:
            score += 3
            drivers.append(f"4H {wanted_break} BOS")
        if choch.detected and choch.direction != wanted_break:
            score -= 5
            flags.append(f"4H {choch.direction} CHOCH against bias")
    if direction is not None and h1 is not None and _ema_aligned(h1, direction):
        score += 5
        drivers.append("1H EMAs stacked with bias")

    # (c) Liquidity
    if direction is not None and h4 is not None:
        delta_4h = liquidity_delta(h4, direction)
        delta_1h = liquidity_delta(h1, direction) if h1 is not None else 0
        score += delta_4h + round_half_up(delta_1h * H1_WEIGHT)
        if delta_4h >= 7:
            drivers.append("clean liquidity toward target")
        elif delta_4h < 0:
            flags.append("liquidity stacked against bias")

    # (d) Fair value gaps, 4H in full and 1H at reduced weight
    if direction is not None and h4 is not None:
        delta, supportive, trapped = fvg_delta(h4, direction)
        if h1 is not None:
            delta_1h, supportive_1h, trapped_1h = fvg_delta(h1, direction)
            delta += round_half_up(delta_1h * H1_WEIGHT)
            supportive = supportive or supportive_1h
            trapped = trapped or trapped_1h
        score += max(-FVG_LIMIT, min(FVG_LIMIT, delta))
        if supportive:
            drivers.append("supportive FVG behind price")
        if trapped:
            flags.append("price inside opposing FVG")

    # (e) Volatility
    atr_pct = 0.0
    if h4 is not None:
        state = h4.volatility.state
        atr_pct = h4.volatility.atr_pct
        score += VOLATILITY_POINTS.get(state, 0)
        if state == "normal":
            drivers.append("normal volatility")
        elif state in ("low", "extreme"):
            flags.append(f"{state} volatility")

    # (f) Divergences
    if direction is not None and h4 is not None:
        supportive_side = "bullish" if direction == "long" else "bearish"
        sides = {d.side for d in h4.divergences}
        if supportive_side in sides:
            score += 5
            drivers.append(f"{supportive_side} divergence")
        if sides - {supportive_side}:
            score -= 7
            flags.append("divergence against bias")

    # (g) Volume
    if h4 is not None:
        if h4.indicators.volume.trend == "up":
            score += 3
            drivers.append("rising volume")
        if h4.volume_profile.in_value_area(h4.price):
            score += 2

    if 0 < atr_pct < LOW_ATR_PCT:
        score = min(score, LOW_ATR_CAP)
    elif atr_pct > HIGH_ATR_PCT:
        score = min(score, HIGH_ATR_CAP)

    upper = NEUTRAL_CAP if direction is None else 100
    score = int(max(0, min(upper, score)))
    level = readiness_level(score)

    return TradeReadiness(
        trade_readiness_score=score,
        trade_readiness_level=level,
        direction_bias=bias.direction,
        timeframe_alignment=alignment,
        key_drivers=tuple(drivers),
        red_flags=tuple(flags),
        quick_view=f"{level} {score}/100 · bias {bias.direction} {bias.confidence}% · {aligned}/3 TF aligned",
    )
