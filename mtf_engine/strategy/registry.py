"""Strategy registry — maps strategy names to classes and fixes cascade priority."""

from mtf_engine.config import Thresholds
from mtf_engine.strategy.aggro_scalp_1h import AggroScalp1HStrategy
from mtf_engine.strategy.base import StrategyProtocol
from mtf_engine.strategy.micro_scalp import MicroScalpStrategy
from mtf_engine.strategy.scalp_1h import Scalp1HStrategy
from mtf_engine.strategy.swing import SwingStrategy
from mtf_engine.strategy.trend_4h import Trend4HStrategy
from mtf_engine.strategy.trend_rider import TrendRiderStrategy


STRATEGY_REGISTRY: dict[str, type] = {
    "SWING": SwingStrategy,
    "TREND_4H": Trend4HStrategy,
    "TREND_RIDER": TrendRiderStrategy,
    "SCALP_1H": Scalp1HStrategy,
    "MICRO_SCALP": MicroScalpStrategy,
    "AGGRO_SCALP_1H": AggroScalp1HStrategy,
}

# Highest priority first.
CASCADE_ORDER: tuple[str, ...] = ("SWING", "TREND_4H", "TREND_RIDER", "SCALP_1H", "MICRO_SCALP")

# Appended to the cascade only when the mode enables fallbacks.
AGGRESSIVE_FALLBACKS: tuple[str, ...] = ("AGGRO_SCALP_1H",)


def cascade_order(thresholds: Thresholds) -> tuple[str, ...]:
    """Strategy names to evaluate, in priority order, for *thresholds*' mode."""
    if thresholds.aggressive_fallbacks:
        return CASCADE_ORDER + AGGRESSIVE_FALLBACKS
    return CASCADE_ORDER


def get_strategy(name: str) -> StrategyProtocol:
    """Look up and instantiate a strategy by registry key (case-insensitive).

    Raises ``KeyError`` if the strategy name is not registered.
    """
    key = name.upper()
    if key not in STRATEGY_REGISTRY:
        raise KeyError(
            f"Unknown strategy '{name}'. "
            f"Available: {', '.join(STRATEGY_REGISTRY.keys())}"
        )
    return STRATEGY_REGISTRY[key]()
