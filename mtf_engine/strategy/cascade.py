"""Strategy cascade — runs evaluators in priority order and picks the signal.

Every evaluator is attempted, even after an earlier one was structurally
ineligible, because the lower-timeframe strategies deliberately bypass the
4H gate.  An evaluator that raises is logged and treated as not eligible.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Optional

from mtf_engine.strategy.base import MarketSnapshot, StrategyProtocol, StrategyResult, decline
from mtf_engine.strategy.models import HTFBias, StrategySignal
from mtf_engine.strategy.registry import cascade_order, get_strategy

logger = logging.getLogger("mtf_engine.cascade")


@dataclass(frozen=True)
class StrategyEvaluation:
    """Every strategy's result plus the best valid signal among them."""

    results: dict = field(default_factory=dict)
    best_signal: Optional[StrategySignal] = None


def run_strategy(strategy: StrategyProtocol, snapshot: MarketSnapshot) -> StrategyResult:
    """Evaluate one strategy, converting an unexpected error into a decline."""
    try:
        result = strategy.evaluate(snapshot)
    except Exception as exc:
        logger.warning("Strategy %s failed: %s", strategy.name, exc)
        return decline(strategy.name, {}, [f"evaluation error: {exc}"])

    if not result.fired:
        logger.debug("%s declined: %s", strategy.name, "; ".join(result.missing))
    return result


def describe_bias(bias: HTFBias) -> str:
    return f"HTF bias: {bias.direction} ({bias.confidence}%, {bias.source})"


def _no_trade_reason(results: list[StrategyResult], bias: HTFBias) -> str:
    parts = [f"{r.name}: {'; '.join(r.missing) or 'no setup'}" for r in results]
    return f"No valid setup. {' | '.join(parts)}. {describe_bias(bias)}"


def evaluate_cascade(snapshot: MarketSnapshot, strategy: Optional[str] = None) -> StrategySignal:
    """Return the first valid signal in priority order, or a NO_TRADE.

    Args:
        snapshot: Analyses, HTF bias and thresholds for one symbol.
        strategy: Optional registry name; only that evaluator runs and a
            decline is reported as a NO_TRADE scoped to it.

    Raises:
        KeyError: if *strategy* names no registered evaluator.
    """
    if strategy is not None:
        evaluator = get_strategy(strategy)
        result = run_strategy(evaluator, snapshot)
        if result.fired:
            return result.signal
        return StrategySignal.no_trade(
            reason=_no_trade_reason([result], snapshot.htf_bias),
            strategies_checked=(evaluator.name,),
            selected_strategy=evaluator.name,
            conditions_required=result.signal.conditions_required,
        )

    checked: list[str] = []
    declined: list[StrategyResult] = []
    for name in cascade_order(snapshot.thresholds):
        result = run_strategy(get_strategy(name), snapshot)
        checked.append(name)
        if result.fired:
            return replace(result.signal, strategies_checked=tuple(checked))
        declined.append(result)

    return StrategySignal.no_trade(
        reason=_no_trade_reason(declined, snapshot.htf_bias),
        strategies_checked=tuple(checked),
    )


def evaluate_all_strategies(snapshot: MarketSnapshot) -> StrategyEvaluation:
    """Run every strategy and rank the ones that fired.

    The best signal has the highest confidence; ties go to the strategy
    earlier in the cascade.
    """
    order = cascade_order(snapshot.thresholds)
    results = {name: run_strategy(get_strategy(name), snapshot) for name in order}
    fired = [results[name] for name in order if results[name].fired]
    best = max(fired, key=lambda r: r.signal.confidence, default=None)
    # max() keeps the first of equal keys, which is the higher-priority one.
    return StrategyEvaluation(
        results=results,
        best_signal=best.signal if best is not None else None,
    )
