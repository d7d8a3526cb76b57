"""Micro-Scalp strategy — LTF mean reversion to the 15m/5m EMA21.

Runs whenever the 1H is trending with a healthy pullback, regardless of the
4H.  ``eligible`` reports that the 1H guardrails passed even when the
15m/5m confluence does not line up for a signal.
"""

from mtf_engine.risk.sl_tp import GIVE_BACK_BAND, calculate_risk_levels
from mtf_engine.strategy.base import (
    MarketSnapshot,
    StrategyResult,
    build_trade_signal,
    decline,
)
from mtf_engine.strategy.models import InvalidSignalError, StochState

REQUIREMENTS = (
    "1H trend UPTREND or DOWNTREND",
    "1H pullback ENTRY_ZONE or RETRACING",
    "15m and 5m within the EMA21 band",
    "15m and 5m stoch jointly oversold/overbought or momentum-aligned",
)

FAVOURABLE_PULLBACKS = ("ENTRY_ZONE", "RETRACING")


def micro_stoch_valid(direction: str, m15: StochState, m5: StochState) -> bool:
    """Both LTF stochs stretched toward the trade, or both turning with room to run."""
    if direction == "long":
        stretched = all(s.condition == "OVERSOLD" or s.k < 25 for s in (m15, m5))
        turning = all(s.condition == "BULLISH" and s.k < 40 for s in (m15, m5))
    else:
        stretched = all(s.condition == "OVERBOUGHT" or s.k > 75 for s in (m15, m5))
        turning = all(s.condition == "BEARISH" and s.k > 60 for s in (m15, m5))
    return stretched or turning


class MicroScalpStrategy:
    """Tight scalps where 15m and 5m both sit on their EMA21."""

    name = "MICRO_SCALP"
    setup_type = "MicroScalp"

    TARGET_MULTIPLES: tuple[float, ...] = (1.0, 1.5)
    CONFIDENCE_MAX: int = 75
    CONFIDENCE_MIN: int = 60
    DISTANCE_PENALTY: float = 60.0

    def evaluate(self, snapshot: MarketSnapshot) -> StrategyResult:
        checks = {
            "h1_trending": False,
            "h1_pullback_ok": False,
            "ltf_at_ema": False,
            "ltf_pullback_ok": False,
            "stoch_valid": False,
            "risk_geometry": False,
        }
        h1, m15, m5 = snapshot.get("1h"), snapshot.get("15m"), snapshot.get("5m")
        if h1 is None or m15 is None or m5 is None:
            return decline(self.name, checks, ["missing 1h/15m/5m data"],
                           conditions_required=REQUIREMENTS)

        # ── Guardrails (eligibility only) ────────────────────────────────
        if h1.trend == "FLAT":
            return decline(self.name, checks, ["1H trend FLAT"], conditions_required=REQUIREMENTS)
        checks["h1_trending"] = True
        if h1.indicators.pullback.state not in FAVOURABLE_PULLBACKS:
            return decline(self.name, checks, [f"1H pullback {h1.indicators.pullback.state}"],
                           conditions_required=REQUIREMENTS)
        checks["h1_pullback_ok"] = True

        direction = "long" if h1.trend == "UPTREND" else "short"

        # ── LTF confluence ───────────────────────────────────────────────
        band = snapshot.thresholds.micro_scalp_ema_band_pct
        dist_15m = abs(m15.indicators.pullback.distance_pct)
        dist_5m = abs(m5.indicators.pullback.distance_pct)
        missing: list[str] = []

        if m15.indicators.ema21 > 0 and m5.indicators.ema21 > 0 and dist_15m <= band and dist_5m <= band:
            checks["ltf_at_ema"] = True
        else:
            missing.append(f"15m/5m {dist_15m:.2f}%/{dist_5m:.2f}% from EMA21 (band {band}%)")

        states = (m15.indicators.pullback.state, m5.indicators.pullback.state)
        if all(s in FAVOURABLE_PULLBACKS for s in states):
            checks["ltf_pullback_ok"] = True
        else:
            missing.append(f"15m/5m pullback {states[0]}/{states[1]}")

        if micro_stoch_valid(direction, m15.indicators.stoch, m5.indicators.stoch):
            checks["stoch_valid"] = True
        else:
            missing.append(
                f"15m/5m stoch k {m15.indicators.stoch.k:.0f}/{m5.indicators.stoch.k:.0f}"
            )

        if missing:
            return decline(self.name, checks, missing, eligible=True,
                           conditions_required=REQUIREMENTS)

        # ── Levels: tightest structural stop that clears the zone ────────
        entry = (m15.indicators.ema21 + m5.indicators.ema21) / 2
        if direction == "long":
            candidates = sorted(
                (s.swing_low for s in (m15.structure, m5.structure) if s.swing_low > 0),
                reverse=True,
            )
        else:
            candidates = sorted(s.swing_high for s in (m15.structure, m5.structure) if s.swing_high > 0)

        levels = None
        for level in candidates:
            levels = calculate_risk_levels(
                entry, level, direction, self.TARGET_MULTIPLES, chase=GIVE_BACK_BAND,
            )
            if levels is not None:
                break
        if levels is None:
            return decline(self.name, checks, ["no 15m/5m swing stop beyond entry zone"],
                           eligible=True, conditions_required=REQUIREMENTS)

        avg_dist = (dist_15m + dist_5m) / 2
        confidence = max(
            self.CONFIDENCE_MIN,
            min(self.CONFIDENCE_MAX, self.CONFIDENCE_MAX - avg_dist * self.DISTANCE_PENALTY),
        )

        try:
            signal = build_trade_signal(
                self.name, self.setup_type, direction, levels, round(confidence),
                reason=(
                    f"1H {h1.trend.lower()}, 15m/5m at EMA21 "
                    f"({dist_15m:.2f}%/{dist_5m:.2f}%), stoch "
                    f"{m15.indicators.stoch.condition}/{m5.indicators.stoch.condition}"
                ),
                confluence=(f"1H {h1.trend.lower()}", "15m/5m EMA21 confluence"),
                conditions_required=REQUIREMENTS,
            )
        except InvalidSignalError as exc:
            return decline(self.name, checks, [f"invalid risk geometry: {exc}"],
                           eligible=True, conditions_required=REQUIREMENTS)
        checks["risk_geometry"] = True

        return StrategyResult(self.name, signal, eligible=True, checks=checks)
