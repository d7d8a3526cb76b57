"""4H Trend strategy — pullback to the 4H EMA21 in the direction of the 4H trend."""

from typing import Optional

from mtf_engine.risk.sl_tp import calculate_risk_levels
from mtf_engine.strategy.base import (
    MarketSnapshot,
    StrategyResult,
    build_trade_signal,
    decline,
)
from mtf_engine.strategy.models import InvalidSignalError, TimeframeAnalysis

REQUIREMENTS = (
    "4H trend UPTREND or DOWNTREND",
    "4H pullback not OVEREXTENDED",
    "1H not trending against 4H",
    "15m and 5m stoch not both curling against 4H",
)


def score_trend_confidence(
    direction: str,
    h4: TimeframeAnalysis,
    h1: Optional[TimeframeAnalysis],
    m15: Optional[TimeframeAnalysis] = None,
    m5: Optional[TimeframeAnalysis] = None,
) -> int:
    """Score a trend setup from 0 to 100.

    4H trend 40, 1H confirmation 20, lower-timeframe stoch curl 20,
    position within the 4H swing range 10, 4H pullback state 10.
    Counter-trend timeframes earn nothing; flat ones earn partial credit.
    """
    wanted = "UPTREND" if direction == "long" else "DOWNTREND"
    curl = "up" if direction == "long" else "down"
    score = 0

    if h4.trend == wanted:
        score += 40
    elif h4.trend == "FLAT":
        score += 10

    if h1 is not None and h1.trend == wanted:
        score += 20
    elif h1 is not None and h1.trend == "FLAT":
        score += 10

    if m15 is not None and m5 is not None:
        curls = (m15.indicators.stoch.curl, m5.indicators.stoch.curl)
        if curls == (curl, curl):
            score += 20
        elif curl in curls:
            score += 10

    swing_range = h4.structure.swing_high - h4.structure.swing_low
    if swing_range > 0:
        position = (h4.price - h4.structure.swing_low) / swing_range
        if (direction == "long" and position < 0.5) or (direction == "short" and position > 0.5):
            score += 10
        else:
            score += 5

    pullback = h4.indicators.pullback.state
    if pullback == "ENTRY_ZONE":
        score += 10
    elif pullback == "RETRACING":
        score += 5

    return min(score, 100)


class Trend4HStrategy:
    """Trend-following entries on the 4H EMA21."""

    name = "TREND_4H"
    setup_type = "4h"

    TARGET_MULTIPLES: tuple[float, ...] = (1.0, 2.0)

    def evaluate(self, snapshot: MarketSnapshot) -> StrategyResult:
        checks = {
            "h4_trending": False,
            "not_overextended": False,
            "h1_not_counter": False,
            "ltf_stoch_ok": False,
            "risk_geometry": False,
        }
        h4, h1 = snapshot.get("4h"), snapshot.get("1h")
        m15, m5 = snapshot.get("15m"), snapshot.get("5m")

        if h4 is None:
            return decline(self.name, checks, ["missing 4h data"], conditions_required=REQUIREMENTS)
        if h4.trend == "FLAT":
            return decline(self.name, checks, ["4H trend FLAT"], conditions_required=REQUIREMENTS)
        checks["h4_trending"] = True
        direction = "long" if h4.trend == "UPTREND" else "short"

        missing: list[str] = []
        if h4.indicators.pullback.state == "OVEREXTENDED":
            missing.append("price too far from 4H EMA21")
        else:
            checks["not_overextended"] = True

        counter = "DOWNTREND" if direction == "long" else "UPTREND"
        if h1 is not None and h1.trend == counter:
            missing.append(f"1H {h1.trend.lower()} against 4H")
        else:
            checks["h1_not_counter"] = True

        opposing_curl = "down" if direction == "long" else "up"
        if (
            m15 is not None and m5 is not None
            and m15.indicators.stoch.curl == opposing_curl
            and m5.indicators.stoch.curl == opposing_curl
        ):
            missing.append(f"15m and 5m stoch curling {opposing_curl}")
        else:
            checks["ltf_stoch_ok"] = True

        if missing:
            return decline(self.name, checks, missing, eligible=True,
                           conditions_required=REQUIREMENTS)

        stop_level = h4.structure.swing_low if direction == "long" else h4.structure.swing_high
        levels = calculate_risk_levels(h4.indicators.ema21, stop_level, direction, self.TARGET_MULTIPLES)
        if levels is None:
            return decline(self.name, checks, ["4H swing stop not beyond entry zone"],
                           eligible=True, conditions_required=REQUIREMENTS)

        confidence = score_trend_confidence(direction, h4, h1, m15, m5)
        try:
            signal = build_trade_signal(
                self.name, self.setup_type, direction, levels, confidence,
                reason=(
                    f"4H {h4.trend.lower()} pulling back to EMA21 "
                    f"({h4.indicators.pullback.state}); HTF bias "
                    f"{snapshot.htf_bias.direction} ({snapshot.htf_bias.confidence}%)"
                ),
                confluence=(f"4H {h4.trend.lower()}", f"pullback {h4.indicators.pullback.state}"),
                conditions_required=REQUIREMENTS,
            )
        except InvalidSignalError as exc:
            return decline(self.name, checks, [f"invalid risk geometry: {exc}"],
                           eligible=True, conditions_required=REQUIREMENTS)
        checks["risk_geometry"] = True

        return StrategyResult(self.name, signal, eligible=True, checks=checks)
