"""Trend-Rider strategy — 4H/1H continuation with a relaxed extension limit.

Where the 4H Trend strategy refuses an OVEREXTENDED 4H, the rider keeps
following a trend that both 4H and 1H (and the HTF bias) agree on, entering
on the 1H EMA21 instead.  A resting liquidity pool beyond the last R target
becomes a third target.
"""

from typing import Optional

from mtf_engine.risk.sl_tp import calculate_risk_levels
from mtf_engine.strategy.base import (
    MarketSnapshot,
    StrategyResult,
    bias_agrees,
    build_trade_signal,
    decline,
)
from mtf_engine.strategy.models import InvalidSignalError, TimeframeAnalysis
from mtf_engine.strategy.trend_4h import score_trend_confidence

REQUIREMENTS = (
    "4H and 1H trending the same way",
    "HTF bias agrees with the trend",
    "4H extension within the rider limit",
    "1H pullback ENTRY_ZONE or RETRACING",
)


def nearest_liquidity_target(analysis: TimeframeAnalysis, direction: str, beyond: float) -> Optional[float]:
    """Closest equal-highs pool above *beyond* (long) or equal-lows pool below it (short)."""
    if direction == "long":
        pools = [z.price for z in analysis.liquidity_zones
                 if z.type == "equal_highs" and z.price > beyond]
        return min(pools) if pools else None
    pools = [z.price for z in analysis.liquidity_zones
             if z.type == "equal_lows" and z.price < beyond]
    return max(pools) if pools else None


class TrendRiderStrategy:
    """Continuation entries while 4H and 1H trend together."""

    name = "TREND_RIDER"
    setup_type = "TrendRider"

    TARGET_MULTIPLES: tuple[float, ...] = (1.5, 3.0)
    EXTENSION_PENALTY: int = 10

    def evaluate(self, snapshot: MarketSnapshot) -> StrategyResult:
        checks = {
            "trends_aligned": False,
            "bias_agrees": False,
            "extension_ok": False,
            "h1_pullback_ok": False,
            "risk_geometry": False,
        }
        h4, h1 = snapshot.get("4h"), snapshot.get("1h")
        if h4 is None or h1 is None:
            return decline(self.name, checks, ["missing 4h/1h data"], conditions_required=REQUIREMENTS)

        if h4.trend == "FLAT" or h1.trend != h4.trend:
            return decline(self.name, checks, [f"4H {h4.trend} / 1H {h1.trend} not aligned"],
                           conditions_required=REQUIREMENTS)
        checks["trends_aligned"] = True
        direction = "long" if h4.trend == "UPTREND" else "short"

        missing: list[str] = []
        if bias_agrees(snapshot.htf_bias, direction):
            checks["bias_agrees"] = True
        else:
            missing.append(f"HTF bias {snapshot.htf_bias.direction}")

        extension = abs(h4.indicators.pullback.distance_pct)
        limit = snapshot.thresholds.trend_rider_max_extension_pct
        if extension <= limit:
            checks["extension_ok"] = True
        else:
            missing.append(f"4H {extension:.2f}% from EMA21 (limit {limit}%)")

        if h1.indicators.pullback.state in ("ENTRY_ZONE", "RETRACING"):
            checks["h1_pullback_ok"] = True
        else:
            missing.append(f"1H pullback {h1.indicators.pullback.state}")

        if missing:
            return decline(self.name, checks, missing, eligible=True,
                           conditions_required=REQUIREMENTS)

        stop_level = h1.structure.swing_low if direction == "long" else h1.structure.swing_high
        anchor = h1.indicators.ema21
        levels = calculate_risk_levels(anchor, stop_level, direction, self.TARGET_MULTIPLES)
        if levels is None:
            return decline(self.name, checks, ["1H swing stop not beyond entry zone"],
                           eligible=True, conditions_required=REQUIREMENTS)

        pool = nearest_liquidity_target(h4, direction, levels.targets[-1])
        if pool is not None:
            levels = calculate_risk_levels(
                anchor, stop_level, direction, self.TARGET_MULTIPLES, extra_target=pool,
            )

        confidence = score_trend_confidence(direction, h4, h1, snapshot.get("15m"), snapshot.get("5m"))
        if h4.indicators.pullback.state == "OVEREXTENDED":
            confidence -= self.EXTENSION_PENALTY

        confluence = [f"4H+1H {h4.trend.lower()}", f"HTF bias {snapshot.htf_bias.confidence}%"]
        if pool is not None:
            confluence.append("liquidity target")

        try:
            signal = build_trade_signal(
                self.name, self.setup_type, direction, levels, confidence,
                reason=(
                    f"4H/1H {h4.trend.lower()} continuation from 1H EMA21; "
                    f"HTF bias {snapshot.htf_bias.direction} ({snapshot.htf_bias.confidence}%)"
                ),
                confluence=tuple(confluence),
                conditions_required=REQUIREMENTS,
            )
        except InvalidSignalError as exc:
            return decline(self.name, checks, [f"invalid risk geometry: {exc}"],
                           eligible=True, conditions_required=REQUIREMENTS)
        checks["risk_geometry"] = True

        return StrategyResult(self.name, signal, eligible=True, checks=checks)
