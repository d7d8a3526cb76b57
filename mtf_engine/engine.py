"""Market analysis engine — candles in, decision bundle out.

Runs the full pipeline for one symbol on one consistent snapshot:

    candles → per-timeframe analysis → confluence / momentum
            → HTF bias → strategy cascade → signal
            + trade readiness as a parallel annotation

Pure and stateless: nothing is fetched, cached or persisted here.
"""

import logging
from dataclasses import dataclass, field
from typing import Mapping, Optional, Sequence, Union

from mtf_engine.config import EngineConfig, default_config
from mtf_engine.strategy.base import MarketSnapshot
from mtf_engine.strategy.cascade import evaluate_cascade
from mtf_engine.strategy.confluence import ConfluenceScore, calculate_confluence
from mtf_engine.strategy.htf_bias import compute_htf_bias
from mtf_engine.strategy.models import (
    Candle,
    HTFBias,
    StrategySignal,
    TimeframeAnalysis,
    TimeframeError,
    to_dict,
)
from mtf_engine.strategy.momentum import MomentumScore, calculate_momentum_score, momentum_bias
from mtf_engine.strategy.readiness import TradeReadiness, calculate_trade_readiness
from mtf_engine.strategy.timeframe import analyze_timeframe

logger = logging.getLogger("mtf_engine")

AnalysisMap = dict[str, Union[TimeframeAnalysis, TimeframeError]]


@dataclass(frozen=True)
class TimeframeSummary:
    """Compact per-timeframe line for dashboards and logs."""

    trend: str
    pullback: str
    stoch: str
    price: float
    ema21: float
    volatility: str


@dataclass(frozen=True)
class MarketAnalysis:
    """Everything one evaluation produced for a symbol."""

    analyses: AnalysisMap
    confluence: dict = field(default_factory=dict)
    momentum: Optional[MomentumScore] = None
    momentum_bias: str = "NEUTRAL"
    momentum_strength: float = 0.0
    htf_bias: HTFBias = field(default_factory=HTFBias)
    signal: Optional[StrategySignal] = None
    readiness: TradeReadiness = field(default_factory=TradeReadiness)
    summary: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        """JSON-ready form with camelCase keys."""
        return to_dict(self)


def analyze_timeframes(
    candles_by_tf: Mapping[str, Sequence[Candle]],
    config: Optional[EngineConfig] = None,
) -> AnalysisMap:
    """Analyse every timeframe independently; empty ones become ``TimeframeError``."""
    config = config or default_config()
    analyses: AnalysisMap = {}
    for timeframe, candles in candles_by_tf.items():
        analysis = analyze_timeframe(
            list(candles),
            timeframe,
            swing_lookback=config.swing_lookback,
            liquidity_lookback=config.liquidity_lookback,
            fvg_lookback=config.fvg_lookback,
        )
        if isinstance(analysis, TimeframeError):
            logger.warning("No candle data for %s", timeframe)
        analyses[timeframe] = analysis
    return analyses


def build_timeframe_summary(analyses: Mapping[str, Union[TimeframeAnalysis, TimeframeError]]) -> dict:
    summary: dict = {}
    for timeframe, analysis in analyses.items():
        if not isinstance(analysis, TimeframeAnalysis):
            summary[timeframe] = analysis
            continue
        ind = analysis.indicators
        summary[timeframe] = TimeframeSummary(
            trend=ind.trend,
            pullback=ind.pullback.state,
            stoch=ind.stoch.condition,
            price=ind.price,
            ema21=ind.ema21,
            volatility=analysis.volatility.state,
        )
    return summary


def analyze_market(
    candles_by_tf: Mapping[str, Sequence[Candle]],
    strategy: Optional[str] = None,
    config: Optional[EngineConfig] = None,
) -> MarketAnalysis:
    """Run the full decision pipeline on one snapshot of candles.

    Args:
        candles_by_tf: Timeframe label → candles, oldest first.
        strategy: Optional registry name to evaluate on its own instead of
            the full cascade.
        config: Engine configuration; defaults to ``default_config()``.

    Returns:
        A ``MarketAnalysis`` whose ``signal`` is always well-formed: a
        valid trade or a NO_TRADE explaining what each strategy missed.

    Raises:
        KeyError: if *strategy* names no registered evaluator.
    """
    config = config or default_config()
    analyses = analyze_timeframes(candles_by_tf, config)

    confluence: dict[str, ConfluenceScore] = {
        tf: calculate_confluence(a) for tf, a in analyses.items() if isinstance(a, TimeframeAnalysis)
    }
    momentum = calculate_momentum_score(analyses, config.momentum_timeframes)
    mom_label, mom_strength = momentum_bias(analyses)

    bias = compute_htf_bias(analyses.get("4h"), analyses.get("1h"))
    snapshot = MarketSnapshot(analyses=analyses, htf_bias=bias, thresholds=config.thresholds)
    signal = evaluate_cascade(snapshot, strategy)
    readiness = calculate_trade_readiness(bias, analyses)

    if signal.valid:
        logger.info(
            "%s %s signal, confidence %d, entry %.5f–%.5f, stop %.5f",
            signal.selected_strategy, signal.direction, signal.confidence,
            signal.entry_zone.min, signal.entry_zone.max, signal.stop_loss,
        )
    else:
        logger.debug("No trade: %s", signal.reason)

    return MarketAnalysis(
        analyses=analyses,
        confluence=confluence,
        momentum=momentum,
        momentum_bias=mom_label,
        momentum_strength=mom_strength,
        htf_bias=bias,
        signal=signal,
        readiness=readiness,
        summary=build_timeframe_summary(analyses),
    )
