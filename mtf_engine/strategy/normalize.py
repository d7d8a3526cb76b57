"""Schema normalisation — the single place where analysis entities are repaired.

Every detector hands its output through ``normalize_timeframe_analysis`` once,
at the stage boundary.  Repairs are clamps, swaps and enum fallbacks; entities
that cannot be repaired are dropped.  Normalising an already-normalised
analysis returns an equal object.
"""

import logging
import math
from dataclasses import fields, is_dataclass, replace
from typing import Optional

from mtf_engine.strategy.indicators import VOLATILITY_STATES
from mtf_engine.strategy.models import (
    Divergence,
    FairValueGap,
    IndicatorSet,
    LiquidityZone,
    MarketStructure,
    PullbackState,
    StochState,
    StructureBreak,
    TimeframeAnalysis,
    Volatility,
    VolumeProfile,
)

logger = logging.getLogger("mtf_engine.normalize")

TRENDS = ("UPTREND", "DOWNTREND", "FLAT")
PULLBACK_STATES = ("ENTRY_ZONE", "RETRACING", "OVEREXTENDED", "UNKNOWN")
STOCH_CONDITIONS = ("BULLISH", "BEARISH", "NEUTRAL", "OVERSOLD", "OVERBOUGHT")
STOCH_ZONES = ("oversold", "neutral", "overbought")
STRUCTURES = ("uptrend", "downtrend", "flat", "range", "unknown")
BREAK_TYPES = ("BOS", "CHOCH")
BREAK_DIRECTIONS = ("bullish", "bearish")
ZONE_SIDES = {"equal_highs": "sell", "equal_lows": "buy"}


def _finite(obj):
    """Replace NaN/inf float fields of a flat dataclass with 0.0."""
    changes = {}
    for f in fields(obj):
        value = getattr(obj, f.name)
        if isinstance(value, float) and not math.isfinite(value):
            changes[f.name] = 0.0
    if changes:
        logger.warning("Non-finite %s fields reset: %s", type(obj).__name__, sorted(changes))
        return replace(obj, **changes)
    return obj


def normalize_stoch(stoch: StochState) -> StochState:
    stoch = _finite(stoch)
    changes = {}
    if stoch.condition not in STOCH_CONDITIONS:
        changes["condition"] = "NEUTRAL"
    if stoch.zone not in STOCH_ZONES:
        changes["zone"] = "neutral"
    if stoch.curl not in ("up", "down", "flat"):
        changes["curl"] = "flat"
    if changes:
        logger.warning("Invalid stoch state repaired: %s", changes)
        return replace(stoch, **changes)
    return stoch


def normalize_pullback(pullback: PullbackState) -> PullbackState:
    pullback = _finite(pullback)
    if pullback.state not in PULLBACK_STATES:
        logger.warning("Invalid pullback state %r", pullback.state)
        return replace(pullback, state="UNKNOWN")
    return pullback


def normalize_indicators(indicators: IndicatorSet) -> IndicatorSet:
    indicators = _finite(indicators)
    trend = indicators.trend if indicators.trend in TRENDS else "FLAT"
    if trend != indicators.trend:
        logger.warning("Invalid trend %r replaced with FLAT", indicators.trend)
    ma_stack = indicators.ma_stack if indicators.ma_stack in ("bull", "bear", "flat") else "flat"
    return replace(
        indicators,
        trend=trend,
        ma_stack=ma_stack,
        pullback=normalize_pullback(indicators.pullback),
        stoch=normalize_stoch(indicators.stoch),
        bollinger=_finite(indicators.bollinger),
        vwap=_finite(indicators.vwap),
        volume=_finite(indicators.volume),
    )


def normalize_volatility(volatility: Volatility) -> Volatility:
    volatility = _finite(volatility)
    state = str(volatility.state).lower()
    if state not in VOLATILITY_STATES:
        logger.warning("Invalid volatility state %r replaced with normal", volatility.state)
        state = "normal"
    if state != volatility.state:
        return replace(volatility, state=state)
    return volatility


def normalize_structure_break(event: StructureBreak) -> StructureBreak:
    """``direction == "none"`` exactly when ``type == "none"``."""
    if event.type == "none" and event == StructureBreak():
        return event
    if event.type not in BREAK_TYPES or event.direction not in BREAK_DIRECTIONS:
        if event.type != "none":
            logger.warning("Inconsistent structure break %s/%s reset", event.type, event.direction)
        return StructureBreak()
    return event


def normalize_market_structure(structure: MarketStructure) -> MarketStructure:
    current = str(structure.current_structure).lower()
    if current not in STRUCTURES:
        logger.warning("Invalid market structure %r", structure.current_structure)
        current = "unknown"
    return replace(
        structure,
        current_structure=current,
        last_swings=tuple(structure.last_swings[-4:]),
        last_bos=normalize_structure_break(structure.last_bos),
        last_choch=normalize_structure_break(structure.last_choch),
    )


def normalize_liquidity_zone(zone: LiquidityZone) -> Optional[LiquidityZone]:
    if zone.type not in ZONE_SIDES or not math.isfinite(zone.price) or zone.price <= 0:
        logger.warning("Dropping malformed liquidity zone %s", zone)
        return None

    strength = int(min(100, max(0, zone.strength)))
    touches = max(1, int(zone.touches))
    side = ZONE_SIDES[zone.type]
    tolerance = zone.tolerance_pct if math.isfinite(zone.tolerance_pct) else 0.0
    tolerance = abs(tolerance)

    repaired = replace(zone, strength=strength, touches=touches, side=side, tolerance_pct=tolerance)
    if repaired != zone:
        logger.warning("Liquidity zone repaired at %.6g", zone.price)
    return repaired


def normalize_fair_value_gap(gap: FairValueGap) -> Optional[FairValueGap]:
    if gap.direction not in ("bullish", "bearish"):
        logger.warning("Dropping FVG with direction %r", gap.direction)
        return None
    if not (math.isfinite(gap.low) and math.isfinite(gap.high)) or gap.low >= gap.high:
        logger.warning("Dropping degenerate FVG [%s, %s]", gap.low, gap.high)
        return None
    return gap


def normalize_volume_profile(profile: VolumeProfile) -> VolumeProfile:
    profile = _finite(profile)
    if profile.value_area_low > profile.value_area_high:
        logger.warning("Value area bounds swapped")
        return replace(
            profile,
            value_area_low=profile.value_area_high,
            value_area_high=profile.value_area_low,
        )
    return profile


def normalize_divergence(divergence: Divergence) -> Optional[Divergence]:
    if divergence.side not in ("bullish", "bearish"):
        logger.warning("Dropping divergence with side %r", divergence.side)
        return None
    return divergence


def _kept(items) -> tuple:
    return tuple(item for item in items if item is not None)


def normalize_timeframe_analysis(analysis: TimeframeAnalysis) -> TimeframeAnalysis:
    """Validate and repair every entity of one timeframe's analysis."""
    if not is_dataclass(analysis):
        raise TypeError(f"Expected TimeframeAnalysis, got {type(analysis).__name__}")

    return replace(
        analysis,
        indicators=normalize_indicators(analysis.indicators),
        structure=_finite(analysis.structure),
        market_structure=normalize_market_structure(analysis.market_structure),
        volatility=normalize_volatility(analysis.volatility),
        volume_profile=normalize_volume_profile(analysis.volume_profile),
        liquidity_zones=_kept(normalize_liquidity_zone(z) for z in analysis.liquidity_zones),
        fair_value_gaps=_kept(normalize_fair_value_gap(g) for g in analysis.fair_value_gaps),
        divergences=_kept(normalize_divergence(d) for d in analysis.divergences),
    )
