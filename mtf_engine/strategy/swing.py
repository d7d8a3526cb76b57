"""Swing strategy — 3D bias, 1D counter-pivot, 4H confirmation.

Trades the higher-timeframe trend after a daily pullback turns back in its
favour.  The entry zone is built around the 1D reclaim level (midpoint of
the 1D swing extreme and the 1D EMA21) and the stop hides behind the wider
of the 3D and 1D swing extremes.
"""

from mtf_engine.risk.sl_tp import calculate_risk_levels
from mtf_engine.strategy.base import (
    MarketSnapshot,
    StrategyResult,
    build_trade_signal,
    decline,
)
from mtf_engine.strategy.models import InvalidSignalError

REQUIREMENTS = (
    "3D, 1D and 4H trends non-flat",
    "3D pullback OVEREXTENDED or RETRACING",
    "1D pullback RETRACING or ENTRY_ZONE",
    "1D stoch pivot against the 1D trend",
    "4H price within 1% of 4H EMA21",
)


class SwingStrategy:
    """Multi-day swing setups anchored on the daily reclaim level."""

    name = "SWING"
    setup_type = "Swing"

    TARGET_MULTIPLES: tuple[float, ...] = (3.0, 4.0, 5.0)
    H4_CONFIRM_PCT: float = 1.0
    TIGHT_ENTRY_PCT: float = 0.5
    DEEP_EXTENSION_PCT: float = 10.0
    D1_PRICE_SLACK: float = 0.02
    CONFIDENCE_BASE: int = 70
    CONFIDENCE_CAP: int = 90

    def evaluate(self, snapshot: MarketSnapshot) -> StrategyResult:
        checks = {
            "timeframes_present": False,
            "trends_non_flat": False,
            "pullbacks_favourable": False,
            "daily_pivot": False,
            "price_position": False,
            "h4_confirmation": False,
            "risk_geometry": False,
        }

        d3, d1, h4 = snapshot.get("3d"), snapshot.get("1d"), snapshot.get("4h")
        absent = [tf for tf, a in (("3d", d3), ("1d", d1), ("4h", h4)) if a is None]
        if absent:
            return decline(self.name, checks, [f"missing {', '.join(absent)} data"],
                           conditions_required=REQUIREMENTS)
        checks["timeframes_present"] = True

        flat = [tf.upper() for tf, a in (("3d", d3), ("1d", d1), ("4h", h4)) if a.trend == "FLAT"]
        if flat:
            return decline(self.name, checks, [f"{', '.join(flat)} trend FLAT"],
                           conditions_required=REQUIREMENTS)
        checks["trends_non_flat"] = True

        pullback_3d = d3.indicators.pullback
        pullback_1d = d1.indicators.pullback
        if pullback_3d.state not in ("OVEREXTENDED", "RETRACING"):
            return decline(self.name, checks, [f"3D pullback {pullback_3d.state}"],
                           conditions_required=REQUIREMENTS)
        if pullback_1d.state not in ("RETRACING", "ENTRY_ZONE"):
            return decline(self.name, checks, [f"1D pullback {pullback_1d.state}"],
                           conditions_required=REQUIREMENTS)
        checks["pullbacks_favourable"] = True

        direction = "long" if d3.trend == "UPTREND" else "short"
        stoch_1d = d1.indicators.stoch
        stoch_3d = d3.indicators.stoch

        if direction == "long":
            pivot = d1.trend == "DOWNTREND" and (stoch_1d.condition == "BULLISH" or stoch_1d.k < 25)
        else:
            pivot = d1.trend == "UPTREND" and (stoch_1d.condition == "BEARISH" or stoch_1d.k > 75)
        if not pivot:
            return decline(self.name, checks, ["no 1D counter-trend stoch pivot"],
                           eligible=True, conditions_required=REQUIREMENTS)
        checks["daily_pivot"] = True

        price = h4.price
        if direction == "long":
            positioned = (
                price >= d1.structure.swing_low
                and price <= d1.indicators.ema21 * (1 + self.D1_PRICE_SLACK)
            )
        else:
            positioned = (
                price <= d1.structure.swing_high
                and price >= d1.indicators.ema21 * (1 - self.D1_PRICE_SLACK)
            )
        if not positioned:
            return decline(self.name, checks, ["price outside 1D reclaim range"],
                           eligible=True, conditions_required=REQUIREMENTS)
        checks["price_position"] = True

        h4_distance = abs(h4.indicators.pullback.distance_pct)
        h4_aligned = h4.trend == d3.trend
        if not h4_aligned or h4_distance > self.H4_CONFIRM_PCT:
            return decline(self.name, checks, ["no 4H confirmation near EMA21"],
                           eligible=True, conditions_required=REQUIREMENTS)
        checks["h4_confirmation"] = True

        if direction == "long":
            reclaim = (d1.structure.swing_low + d1.indicators.ema21) / 2
            stop_level = min(d3.structure.swing_low, d1.structure.swing_low)
        else:
            reclaim = (d1.structure.swing_high + d1.indicators.ema21) / 2
            stop_level = max(d3.structure.swing_high, d1.structure.swing_high)

        levels = calculate_risk_levels(reclaim, stop_level, direction, self.TARGET_MULTIPLES)
        if levels is None:
            return decline(self.name, checks, ["swing stop not beyond entry zone"],
                           eligible=True, conditions_required=REQUIREMENTS)

        confidence = self.CONFIDENCE_BASE
        confluence = [f"3D {d3.trend.lower()}", f"1D pivot ({stoch_1d.condition})"]
        strong_long = direction == "long" and stoch_3d.condition == "OVERSOLD" and stoch_1d.condition == "BULLISH"
        strong_short = direction == "short" and stoch_3d.condition == "OVERBOUGHT" and stoch_1d.condition == "BEARISH"
        if strong_long or strong_short:
            confidence += 10
            confluence.append("3D/1D stoch confluence")
        if h4_distance <= self.TIGHT_ENTRY_PCT:
            confidence += 5
            confluence.append("tight 4H entry")
        if abs(pullback_3d.distance_pct) >= self.DEEP_EXTENSION_PCT:
            confidence += 5
            confluence.append("deep 3D extension")
        confidence = min(confidence, self.CONFIDENCE_CAP)

        try:
            signal = build_trade_signal(
                self.name, self.setup_type, direction, levels, confidence,
                reason=(
                    f"3D {d3.trend.lower()} with 1D counter-pivot and 4H confirmation; "
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
