"""Aggressive 1H scalp — fallback that still trades a flat 1H.

Only runs in AGGRESSIVE mode, after every standard strategy declined.
"""

from mtf_engine.risk.sl_tp import CHASE_BAND, calculate_risk_levels
from mtf_engine.strategy.base import (
    MarketSnapshot,
    StrategyResult,
    build_trade_signal,
    decline,
)
from mtf_engine.strategy.models import InvalidSignalError, TimeframeAnalysis

REQUIREMENTS = (
    "price near 1H and 15m EMA21 (1H may be FLAT)",
    "15m pullback ENTRY_ZONE or RETRACING",
    "15m stoch K < 75 for longs, > 25 for shorts",
)

FAVOURABLE_PULLBACKS = ("ENTRY_ZONE", "RETRACING")


class AggroScalp1HStrategy:
    """Loose 1H scalp anchored between the 1H and 15m EMA21."""

    name = "AGGRO_SCALP_1H"
    setup_type = "AggroScalp"

    TARGET_MULTIPLES: tuple[float, ...] = (1.5, 3.0)
    CONFIDENCE: int = 55
    LONG_STOCH_MAX: float = 75.0
    SHORT_STOCH_MIN: float = 25.0
    FALLBACK_STOP_PCT: float = 0.03

    def _candidates(self, h1: TimeframeAnalysis) -> tuple[str, ...]:
        if h1.trend == "UPTREND":
            return ("long",)
        if h1.trend == "DOWNTREND":
            return ("short",)
        return ("long", "short")

    def _stoch_room(self, k: float, direction: str) -> bool:
        if direction == "long":
            return k < self.LONG_STOCH_MAX
        return k > self.SHORT_STOCH_MIN

    def _stop_level(self, h1: TimeframeAnalysis, m15: TimeframeAnalysis, anchor: float, direction: str) -> float:
        attr = "swing_low" if direction == "long" else "swing_high"
        for analysis in (m15, h1):
            level = getattr(analysis.structure, attr)
            if level > 0:
                return level
        if direction == "long":
            return anchor * (1 - self.FALLBACK_STOP_PCT)
        return anchor * (1 + self.FALLBACK_STOP_PCT)

    def evaluate(self, snapshot: MarketSnapshot) -> StrategyResult:
        checks = {
            "near_ema": False,
            "pullback_favourable": False,
            "stoch_room": False,
            "risk_geometry": False,
        }
        h1, m15 = snapshot.get("1h"), snapshot.get("15m")
        if h1 is None or m15 is None:
            return decline(self.name, checks, ["missing 1h/15m data"], conditions_required=REQUIREMENTS)

        missing: list[str] = []
        dist_1h = abs(h1.indicators.pullback.distance_pct)
        dist_15m = abs(m15.indicators.pullback.distance_pct)
        if (
            h1.indicators.ema21 > 0
            and m15.indicators.ema21 > 0
            and dist_1h <= snapshot.thresholds.scalp_1h_ema_max_pct
            and dist_15m <= snapshot.thresholds.scalp_15m_ema_max_pct
        ):
            checks["near_ema"] = True
        else:
            missing.append(f"price {dist_1h:.2f}% / {dist_15m:.2f}% from 1H/15m EMA21")

        pullback = m15.indicators.pullback.state
        if pullback in FAVOURABLE_PULLBACKS:
            checks["pullback_favourable"] = True
        else:
            missing.append(f"15m pullback {pullback}")

        k = m15.indicators.stoch.k
        directions = [d for d in self._candidates(h1) if self._stoch_room(k, d)]
        if directions:
            checks["stoch_room"] = True
        else:
            missing.append(f"15m stoch K {k:.1f} leaves no room")

        if missing:
            return decline(self.name, checks, missing, eligible=True,
                           conditions_required=REQUIREMENTS)

        anchor = (h1.indicators.ema21 + m15.indicators.ema21) / 2
        for direction in directions:
            stop_level = self._stop_level(h1, m15, anchor, direction)
            levels = calculate_risk_levels(
                anchor, stop_level, direction, self.TARGET_MULTIPLES, give_back=CHASE_BAND,
            )
            if levels is None:
                continue
            try:
                signal = build_trade_signal(
                    self.name, self.setup_type, direction, levels, self.CONFIDENCE,
                    reason=(
                        f"Aggressive 1H {direction} scalp: 1H {h1.trend.lower()}, "
                        f"15m {pullback.lower()} with stoch K {k:.1f}"
                    ),
                    confluence=(f"1H {h1.trend.lower()}", f"15m pullback {pullback}"),
                    conditions_required=REQUIREMENTS,
                )
            except InvalidSignalError:
                continue
            checks["risk_geometry"] = True
            return StrategyResult(self.name, signal, eligible=True, checks=checks)

        return decline(self.name, checks, ["aggressive scalp stop not beyond entry zone"],
                       eligible=True, conditions_required=REQUIREMENTS)
