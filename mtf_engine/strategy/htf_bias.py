"""Higher-timeframe bias — weighted 4H/1H vote instead of a hard 4H gate."""

from typing import Optional, Union

from mtf_engine.strategy.models import HTFBias, TimeframeAnalysis, TimeframeError, round_half_up

TREND_WEIGHTS = {"4h": 2.0, "1h": 1.0}
STOCH_WEIGHT = 0.5

TIE_BREAK_1H_CONFIDENCE = 60
TIE_BREAK_4H_CONFIDENCE = 50

MaybeAnalysis = Optional[Union[TimeframeAnalysis, TimeframeError]]


def _score(analysis: MaybeAnalysis, trend_weight: float) -> tuple[float, float]:
    if not isinstance(analysis, TimeframeAnalysis):
        return 0.0, 0.0

    long_score = short_score = 0.0
    if analysis.trend == "UPTREND":
        long_score += trend_weight
    elif analysis.trend == "DOWNTREND":
        short_score += trend_weight

    condition = analysis.indicators.stoch.condition
    if condition in ("BULLISH", "OVERSOLD"):
        long_score += STOCH_WEIGHT
    elif condition in ("BEARISH", "OVERBOUGHT"):
        short_score += STOCH_WEIGHT
    return long_score, short_score


def _trend_of(analysis: MaybeAnalysis) -> str:
    return analysis.trend if isinstance(analysis, TimeframeAnalysis) else "FLAT"


def compute_htf_bias(h4: MaybeAnalysis, h1: MaybeAnalysis) -> HTFBias:
    """Combine 4H and 1H trend and stochastic into one directional lean.

    4H trend is worth 2 points, 1H trend 1 point, each stochastic condition
    half a point.  Confidence is the winning share of the total.  Exact ties
    defer to 1H's trend, then 4H's, before settling on neutral/"mixed".
    """
    long_4h, short_4h = _score(h4, TREND_WEIGHTS["4h"])
    long_1h, short_1h = _score(h1, TREND_WEIGHTS["1h"])
    long_score = long_4h + long_1h
    short_score = short_4h + short_1h

    if long_score == 0 and short_score == 0:
        return HTFBias()

    trend_4h, trend_1h = _trend_of(h4), _trend_of(h1)

    if long_score == short_score:
        if trend_1h == "UPTREND":
            return HTFBias("long", TIE_BREAK_1H_CONFIDENCE, "1h")
        if trend_1h == "DOWNTREND":
            return HTFBias("short", TIE_BREAK_1H_CONFIDENCE, "1h")
        if trend_4h == "UPTREND":
            return HTFBias("long", TIE_BREAK_4H_CONFIDENCE, "4h")
        if trend_4h == "DOWNTREND":
            return HTFBias("short", TIE_BREAK_4H_CONFIDENCE, "4h")
        return HTFBias("neutral", 0, "mixed")

    total = long_score + short_score
    direction = "long" if long_score > short_score else "short"
    winning = max(long_score, short_score)
    source = "4h" if trend_4h != "FLAT" else "1h"
    return HTFBias(direction, round_half_up(winning / total * 100), source)
