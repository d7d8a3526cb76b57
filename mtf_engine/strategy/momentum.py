"""Multi-timeframe momentum alignment from Stochastic RSI readings."""

from dataclasses import dataclass, field
from typing import Mapping, Union

from mtf_engine.strategy.models import TimeframeAnalysis, TimeframeError

DEFAULT_TIMEFRAMES = ("1m", "5m", "15m", "1h", "4h")
BIAS_TIMEFRAMES = ("15m", "1h", "4h")

AnalysisMap = Mapping[str, Union[TimeframeAnalysis, TimeframeError]]


@dataclass(frozen=True)
class TimeframeMomentum:
    momentum: str  # BULLISH / BEARISH / NEUTRAL
    strength: float
    k: float
    d: float


@dataclass(frozen=True)
class MomentumAlignment:
    alignment: str = "UNKNOWN"
    alignment_score: float = 0.0
    bullish_count: int = 0
    bearish_count: int = 0
    neutral_count: int = 0
    timeframes: dict = field(default_factory=dict)

    @property
    def total(self) -> int:
        return self.bullish_count + self.bearish_count + self.neutral_count


@dataclass(frozen=True)
class MomentumScore:
    score: float
    alignment: str
    consensus_ratio: float
    breakdown: MomentumAlignment


def classify_momentum(k: float, d: float) -> TimeframeMomentum:
    """Overbought reads bearish and oversold reads bullish; otherwise k vs d around 50."""
    if k > 80 and d > 80:
        return TimeframeMomentum("BEARISH", min((k - 80) / 20, 1) * 100, k, d)
    if k < 20 and d < 20:
        return TimeframeMomentum("BULLISH", min((20 - k) / 20, 1) * 100, k, d)
    if k > d and k > 50:
        return TimeframeMomentum("BULLISH", (k - 50) / 50 * 100, k, d)
    if k < d and k < 50:
        return TimeframeMomentum("BEARISH", (50 - k) / 50 * 100, k, d)
    return TimeframeMomentum("NEUTRAL", 0.0, k, d)


def check_momentum_alignment(
    analyses: AnalysisMap,
    timeframes: tuple[str, ...] = DEFAULT_TIMEFRAMES,
) -> MomentumAlignment:
    """Classify each available timeframe and label the overall alignment.

    ≥60% agreement gives BULLISH/BEARISH (score = ratio × 100); a plain
    majority gives the ``_WEAK`` label (ratio × 70); a tie is NEUTRAL (50).
    No usable timeframe gives UNKNOWN with score 0.
    """
    per_tf: dict[str, TimeframeMomentum] = {}
    for tf in timeframes:
        analysis = analyses.get(tf)
        if not isinstance(analysis, TimeframeAnalysis):
            continue
        stoch = analysis.indicators.stoch
        per_tf[tf] = classify_momentum(stoch.k, stoch.d)

    if not per_tf:
        return MomentumAlignment()

    bullish = sum(1 for m in per_tf.values() if m.momentum == "BULLISH")
    bearish = sum(1 for m in per_tf.values() if m.momentum == "BEARISH")
    neutral = len(per_tf) - bullish - bearish
    bullish_ratio = bullish / len(per_tf)
    bearish_ratio = bearish / len(per_tf)

    if bullish_ratio >= 0.6:
        alignment, score = "BULLISH", bullish_ratio * 100
    elif bearish_ratio >= 0.6:
        alignment, score = "BEARISH", bearish_ratio * 100
    elif bullish_ratio > bearish_ratio:
        alignment, score = "BULLISH_WEAK", bullish_ratio * 70
    elif bearish_ratio > bullish_ratio:
        alignment, score = "BEARISH_WEAK", bearish_ratio * 70
    else:
        alignment, score = "NEUTRAL", 50.0

    return MomentumAlignment(
        alignment=alignment,
        alignment_score=round(score, 2),
        bullish_count=bullish,
        bearish_count=bearish,
        neutral_count=neutral,
        timeframes=per_tf,
    )


def calculate_momentum_score(
    analyses: AnalysisMap,
    timeframes: tuple[str, ...] = DEFAULT_TIMEFRAMES,
) -> MomentumScore:
    """Alignment score with a consensus bonus and a conflict penalty, clamped to [0, 100]."""
    alignment = check_momentum_alignment(analyses, timeframes)
    if alignment.total == 0:
        return MomentumScore(0.0, alignment.alignment, 0.0, alignment)

    score = alignment.alignment_score
    consensus = max(alignment.bullish_count, alignment.bearish_count) / alignment.total

    if consensus >= 0.8:
        score = min(score * 1.2, 100.0)
    elif consensus >= 0.6:
        score = min(score * 1.1, 100.0)

    if alignment.bullish_count > 0 and alignment.bearish_count > 0:
        conflict = min(alignment.bullish_count, alignment.bearish_count) / alignment.total
        score *= 1 - conflict * 0.3

    return MomentumScore(
        score=round(max(0.0, min(100.0, score)), 2),
        alignment=alignment.alignment,
        consensus_ratio=round(consensus, 2),
        breakdown=alignment,
    )


def momentum_bias(
    analyses: AnalysisMap,
    timeframes: tuple[str, ...] = BIAS_TIMEFRAMES,
) -> tuple[str, float]:
    """Collapse the alignment label to ``(BULLISH|BEARISH|NEUTRAL, strength)``."""
    alignment = check_momentum_alignment(analyses, timeframes)
    if alignment.alignment.startswith("BULLISH"):
        return "BULLISH", alignment.alignment_score
    if alignment.alignment.startswith("BEARISH"):
        return "BEARISH", alignment.alignment_score
    return "NEUTRAL", 0.0
