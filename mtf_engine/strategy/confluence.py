"""Per-timeframe confluence scoring.

Five sub-scores on a 0–100 scale, blended with fixed weights:

    trend 30% · stochastic 20% · structure 25% · MA stack 15% · VWAP 10%
"""

from dataclasses import dataclass

from mtf_engine.strategy.models import TimeframeAnalysis

WEIGHTS = {
    "trend": 0.30,
    "stoch": 0.20,
    "structure": 0.25,
    "ma": 0.15,
    "vwap": 0.10,
}


@dataclass(frozen=True)
class ConfluenceScore:
    trend: int
    stoch: int
    structure: int
    ma: int
    vwap: int
    overall: int


def _trend_score(analysis: TimeframeAnalysis) -> int:
    ind = analysis.indicators
    if ind.trend == "UPTREND":
        return 100 if ind.price > ind.ema21 else 80
    if ind.trend == "DOWNTREND":
        return 100 if ind.price < ind.ema21 else 80
    return 30


def _stoch_score(analysis: TimeframeAnalysis) -> int:
    trend = analysis.indicators.trend
    condition = analysis.indicators.stoch.condition
    if (condition, trend) in (("OVERSOLD", "UPTREND"), ("OVERBOUGHT", "DOWNTREND")):
        return 100
    if (condition, trend) in (("BULLISH", "UPTREND"), ("BEARISH", "DOWNTREND")):
        return 70
    if condition == "NEUTRAL":
        return 40
    return 20


def _structure_score(analysis: TimeframeAnalysis) -> int:
    score = {
        "ENTRY_ZONE": 100,
        "RETRACING": 70,
        "OVEREXTENDED": 30,
    }.get(analysis.indicators.pullback.state, 50)

    patterns = analysis.indicators.patterns
    if "bullish_rejection" in patterns or "bearish_rejection" in patterns:
        score += 20
    if "bullish_engulfing" in patterns or "bearish_engulfing" in patterns:
        score += 15
    return min(100, score)


def _ma_score(analysis: TimeframeAnalysis) -> int:
    if analysis.indicators.ema200 <= 0:
        # Not enough history for the full stack; lean on trend instead.
        return round(_trend_score(analysis) * 0.8)
    return 100 if analysis.indicators.ma_stack in ("bull", "bear") else 20


def _vwap_score(analysis: TimeframeAnalysis) -> int:
    vwap = analysis.indicators.vwap
    trend = analysis.indicators.trend
    if not vwap.available:
        return 50
    if vwap.trapped_shorts and trend == "UPTREND":
        return 90
    if vwap.trapped_longs and trend == "DOWNTREND":
        return 90
    if vwap.above and trend == "UPTREND":
        return 70
    if not vwap.above and not vwap.at_vwap and trend == "DOWNTREND":
        return 70
    if vwap.at_vwap:
        return 50
    return 30


def calculate_confluence(analysis: TimeframeAnalysis) -> ConfluenceScore:
    """Score how many independent signals on *analysis* agree."""
    parts = {
        "trend": _trend_score(analysis),
        "stoch": _stoch_score(analysis),
        "structure": _structure_score(analysis),
        "ma": _ma_score(analysis),
        "vwap": _vwap_score(analysis),
    }
    overall = sum(parts[key] * weight for key, weight in WEIGHTS.items())
    return ConfluenceScore(overall=int(min(100, max(0, round(overall)))), **parts)
