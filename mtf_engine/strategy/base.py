"""Strategy protocol, market snapshot and shared result type.

Defines the interface that all strategy evaluators implement, plus the
helpers they use to report a fired signal or a decline.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Optional, Protocol, Union, runtime_checkable

from mtf_engine.config import Thresholds, thresholds_for
from mtf_engine.risk.sl_tp import RiskLevels
from mtf_engine.strategy.models import (
    HTFBias,
    StrategySignal,
    TimeframeAnalysis,
    TimeframeError,
)


@dataclass(frozen=True)
class MarketSnapshot:
    """One consistent point-in-time view of every timeframe for a symbol."""

    analyses: Mapping[str, Union[TimeframeAnalysis, TimeframeError]]
    htf_bias: HTFBias = field(default_factory=HTFBias)
    thresholds: Thresholds = field(default_factory=lambda: thresholds_for("STANDARD"))

    def get(self, timeframe: str) -> Optional[TimeframeAnalysis]:
        """The analysis for *timeframe*, or ``None`` if missing or errored."""
        analysis = self.analyses.get(timeframe)
        return analysis if isinstance(analysis, TimeframeAnalysis) else None


@dataclass(frozen=True)
class StrategyResult:
    """Outcome of one evaluator run.

    ``signal`` is always a well-formed ``StrategySignal``: the trade when
    the strategy fired, a NO_TRADE scoped to the strategy otherwise.
    ``eligible`` reports whether the strategy's preconditions held, which
    may be true even when no signal fired.
    """

    name: str
    signal: StrategySignal
    eligible: bool
    checks: dict = field(default_factory=dict)
    missing: tuple[str, ...] = ()

    @property
    def fired(self) -> bool:
        return self.signal.valid


@runtime_checkable
class StrategyProtocol(Protocol):
    """Interface that all strategy evaluators must satisfy."""

    name: str

    def evaluate(self, snapshot: MarketSnapshot) -> StrategyResult:
        """Gate on *snapshot* and return a signal or a scoped decline."""
        ...


def decline(
    name: str,
    checks: dict,
    missing: list[str],
    eligible: bool = False,
    conditions_required: tuple[str, ...] = (),
) -> StrategyResult:
    reason = f"{name}: " + "; ".join(missing) if missing else f"{name}: no setup"
    return StrategyResult(
        name=name,
        signal=StrategySignal.no_trade(
            reason=reason,
            strategies_checked=(name,),
            selected_strategy=name,
            conditions_required=conditions_required,
        ),
        eligible=eligible,
        checks=checks,
        missing=tuple(missing),
    )


def build_trade_signal(
    name: str,
    setup_type: str,
    direction: str,
    levels: RiskLevels,
    confidence: int,
    reason: str,
    confluence: tuple[str, ...] = (),
    conditions_required: tuple[str, ...] = (),
) -> StrategySignal:
    """Assemble a valid signal; raises ``InvalidSignalError`` on bad geometry."""
    return StrategySignal(
        valid=True,
        direction=direction,
        setup_type=setup_type,
        selected_strategy=name,
        strategies_checked=(name,),
        confidence=int(min(100, max(0, round(confidence)))),
        entry_zone=levels.entry_zone,
        stop_loss=levels.stop_loss,
        invalidation_level=levels.invalidation_level,
        targets=levels.targets,
        risk_reward=levels.risk_reward,
        reason=reason,
        confluence=tuple(confluence),
        conditions_required=tuple(conditions_required),
    )


def bias_agrees(bias: HTFBias, direction: str) -> bool:
    return bias.direction == direction


def stoch_supports(condition: str, direction: str) -> bool:
    if direction == "long":
        return condition in ("BULLISH", "OVERSOLD")
    return condition in ("BEARISH", "OVERBOUGHT")
