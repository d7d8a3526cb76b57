"""1H Scalp strategy — 1H trend pullback timed on 15m, ignoring the 4H."""

from mtf_engine.risk.sl_tp import calculate_risk_levels
from mtf_engine.strategy.base import (
    MarketSnapshot,
    StrategyResult,
    bias_agrees,
    build_trade_signal,
    decline,
    stoch_supports,
)
from mtf_engine.strategy.models import InvalidSignalError

REQUIREMENTS = (
    "1H trend UPTREND or DOWNTREND",
    "price near 1H and 15m EMA21",
    "1H and 15m pullback ENTRY_ZONE or RETRACING",
    "15m stoch aligned with 1H",
)

FAVOURABLE_PULLBACKS = ("ENTRY_ZONE", "RETRACING")


class Scalp1HStrategy:
    """Intraday scalp in the 1H trend direction."""

    name = "SCALP_1H"
    setup_type = "Scalp"

    TARGET_MULTIPLES: tuple[float, ...] = (1.5, 3.0)
    CONFIDENCE_BASE: int = 60
    CONFIDENCE_CAP: int = 85
    BIAS_BONUS_WEIGHT: float = 0.2
    VOLATILE_WIDENING: float = 1.5

    def evaluate(self, snapshot: MarketSnapshot) -> StrategyResult:
        checks = {
            "h1_trending": False,
            "near_ema": False,
            "pullbacks_favourable": False,
            "stoch_aligned": False,
            "risk_geometry": False,
        }
        h1, m15, m5 = snapshot.get("1h"), snapshot.get("15m"), snapshot.get("5m")
        if h1 is None or m15 is None:
            return decline(self.name, checks, ["missing 1h/15m data"], conditions_required=REQUIREMENTS)

        if h1.trend == "FLAT":
            return decline(self.name, checks, ["1H trend FLAT"], conditions_required=REQUIREMENTS)
        checks["h1_trending"] = True
        direction = "long" if h1.trend == "UPTREND" else "short"

        # Wider tolerance when the 1H is moving fast
        widen = self.VOLATILE_WIDENING if h1.volatility.state in ("high", "extreme") else 1.0
        max_1h = snapshot.thresholds.scalp_1h_ema_max_pct * widen
        max_15m = snapshot.thresholds.scalp_15m_ema_max_pct * widen

        missing: list[str] = []
        dist_1h = abs(h1.indicators.pullback.distance_pct)
        dist_15m = abs(m15.indicators.pullback.distance_pct)
        if h1.indicators.ema21 > 0 and m15.indicators.ema21 > 0 and dist_1h <= max_1h and dist_15m <= max_15m:
            checks["near_ema"] = True
        else:
            missing.append(f"price {dist_1h:.2f}% / {dist_15m:.2f}% from 1H/15m EMA21")

        states = (h1.indicators.pullback.state, m15.indicators.pullback.state)
        if all(s in FAVOURABLE_PULLBACKS for s in states):
            checks["pullbacks_favourable"] = True
        else:
            missing.append(f"pullback states {states[0]}/{states[1]}")

        if stoch_supports(m15.indicators.stoch.condition, direction):
            checks["stoch_aligned"] = True
        else:
            missing.append(f"15m stoch {m15.indicators.stoch.condition}")

        if missing:
            return decline(self.name, checks, missing, eligible=True,
                           conditions_required=REQUIREMENTS)

        structure = (m5 or m15).structure
        stop_level = structure.swing_low if direction == "long" else structure.swing_high
        levels = calculate_risk_levels(h1.indicators.ema21, stop_level, direction, self.TARGET_MULTIPLES)
        if levels is None:
            return decline(self.name, checks, ["scalp swing stop not beyond entry zone"],
                           eligible=True, conditions_required=REQUIREMENTS)

        bias = snapshot.htf_bias
        bonus = bias.confidence * self.BIAS_BONUS_WEIGHT if bias_agrees(bias, direction) else 0
        confidence = min(self.CONFIDENCE_CAP, round(self.CONFIDENCE_BASE + bonus))

        try:
            signal = build_trade_signal(
                self.name, self.setup_type, direction, levels, confidence,
                reason=(
                    f"1H {h1.trend.lower()} scalp with 15m pullback and stoch alignment "
                    f"(HTF bias {bias.direction}, {bias.confidence}%)"
                ),
                confluence=(f"1H {h1.trend.lower()}", f"15m stoch {m15.indicators.stoch.condition}"),
                conditions_required=REQUIREMENTS,
            )
        except InvalidSignalError as exc:
            return decline(self.name, checks, [f"invalid risk geometry: {exc}"],
                           eligible=True, conditions_required=REQUIREMENTS)
        checks["risk_geometry"] = True

        return StrategyResult(self.name, signal, eligible=True, checks=checks)
