"""Strategy data models — typed, immutable records for every analysis stage.

Every entity carries a complete field set with typed defaults so downstream
stages never branch on missing data.  ``to_dict()`` converts any model to the
camelCase JSON contract consumed by the HTTP/UI collaborators.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, fields, is_dataclass
from typing import Any, Optional, Union


@dataclass(frozen=True)
class Candle:
    """A single OHLCV bar, oldest-first in every series."""

    timestamp: Union[int, float, str]
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0


# ── Indicator snapshots ──────────────────────────────────────────────────


@dataclass(frozen=True)
class StochState:
    """Latest Stochastic-RSI reading."""

    k: float = 50.0
    d: float = 50.0
    condition: str = "NEUTRAL"  # BULLISH/BEARISH/NEUTRAL/OVERSOLD/OVERBOUGHT
    zone: str = "neutral"  # oversold / neutral / overbought
    curl: str = "flat"  # up / down / flat over the last three k values


@dataclass(frozen=True)
class PullbackState:
    """Distance of price from its EMA21, bucketed."""

    state: str = "UNKNOWN"  # ENTRY_ZONE / RETRACING / OVEREXTENDED / UNKNOWN
    distance_pct: float = 0.0


@dataclass(frozen=True)
class BollingerBands:
    middle: float = 0.0
    upper: float = 0.0
    lower: float = 0.0
    bandwidth_pct: float = 0.0
    squeeze: bool = False
    position_pct: float = 50.0


@dataclass(frozen=True)
class VWAPState:
    available: bool = False
    value: float = 0.0
    distance_pct: float = 0.0
    above: bool = False
    at_vwap: bool = False
    reversion_zone: bool = False
    trapped_longs: bool = False
    trapped_shorts: bool = False


@dataclass(frozen=True)
class VolumeAnalysis:
    current: float = 0.0
    average: float = 0.0
    trend: str = "neutral"  # up / down / neutral


@dataclass(frozen=True)
class IndicatorSet:
    """Per-timeframe indicator values for the latest bar.

    ``pullback.state`` is the one canonical location of the pullback
    classification.
    """

    price: float = 0.0
    ema21: float = 0.0
    ema50: float = 0.0
    ema200: float = 0.0
    rsi: float = 50.0
    trend: str = "FLAT"  # UPTREND / DOWNTREND / FLAT
    ma_stack: str = "flat"  # bull / bear / flat
    pullback: PullbackState = field(default_factory=PullbackState)
    stoch: StochState = field(default_factory=StochState)
    bollinger: BollingerBands = field(default_factory=BollingerBands)
    vwap: VWAPState = field(default_factory=VWAPState)
    volume: VolumeAnalysis = field(default_factory=VolumeAnalysis)
    patterns: tuple[str, ...] = ()


@dataclass(frozen=True)
class Volatility:
    atr: float = 0.0
    atr_pct: float = 0.0
    state: str = "normal"  # low / normal / high / extreme


# ── Structure ────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class SwingLevels:
    """Highest high and lowest low of the recent window, used for stops."""

    swing_high: float = 0.0
    swing_low: float = 0.0


@dataclass(frozen=True)
class Swing:
    kind: str  # "high" or "low"
    label: str  # HH / HL / LH / LL
    price: float
    index: int
    timestamp: Union[int, float, str, None] = None


@dataclass(frozen=True)
class StructureBreak:
    """A BOS or CHOCH event.  ``type="none"`` is the not-detected sentinel."""

    type: str = "none"  # BOS / CHOCH / none
    direction: str = "none"  # bullish / bearish / none
    from_swing: Optional[str] = None
    to_swing: Optional[str] = None
    price: Optional[float] = None
    timestamp: Union[int, float, str, None] = None

    @property
    def detected(self) -> bool:
        return self.type != "none"


@dataclass(frozen=True)
class MarketStructure:
    current_structure: str = "unknown"  # uptrend/downtrend/flat/range/unknown
    last_swings: tuple[Swing, ...] = ()
    last_bos: StructureBreak = field(default_factory=StructureBreak)
    last_choch: StructureBreak = field(default_factory=StructureBreak)


@dataclass(frozen=True)
class LiquidityZone:
    """Cluster of equal highs or equal lows resting above/below price."""

    type: str  # equal_highs / equal_lows
    price: float
    tolerance_pct: float
    strength: int  # 0–100
    side: str  # sell for equal_highs, buy for equal_lows
    touches: int = 2


@dataclass(frozen=True)
class FairValueGap:
    """A three-candle imbalance.  Bounds are swapped on construction if inverted."""

    direction: str  # bullish / bearish
    low: float
    high: float
    filled: bool = False
    index: int = 0

    def __post_init__(self) -> None:
        if self.low > self.high:
            low, high = self.high, self.low
            object.__setattr__(self, "low", low)
            object.__setattr__(self, "high", high)

    def contains(self, price: float) -> bool:
        return self.low <= price <= self.high


@dataclass(frozen=True)
class VolumeProfile:
    point_of_control: float = 0.0
    value_area_high: float = 0.0
    value_area_low: float = 0.0
    high_volume_nodes: tuple[float, ...] = ()
    low_volume_nodes: tuple[float, ...] = ()

    def in_value_area(self, price: float) -> bool:
        if self.value_area_high <= 0:
            return False
        return self.value_area_low <= price <= self.value_area_high


@dataclass(frozen=True)
class Divergence:
    oscillator: str  # RSI / StochRSI
    side: str  # bullish / bearish
    price_index: int
    previous_price: float
    latest_price: float
    previous_value: float
    latest_value: float
    type: str = "regular"


@dataclass(frozen=True)
class TimeframeAnalysis:
    """Everything derived from one timeframe's candle window."""

    timeframe: str
    candle_count: int = 0
    indicators: IndicatorSet = field(default_factory=IndicatorSet)
    structure: SwingLevels = field(default_factory=SwingLevels)
    market_structure: MarketStructure = field(default_factory=MarketStructure)
    volatility: Volatility = field(default_factory=Volatility)
    volume_profile: VolumeProfile = field(default_factory=VolumeProfile)
    liquidity_zones: tuple[LiquidityZone, ...] = ()
    fair_value_gaps: tuple[FairValueGap, ...] = ()
    divergences: tuple[Divergence, ...] = ()

    @property
    def price(self) -> float:
        return self.indicators.price

    @property
    def trend(self) -> str:
        return self.indicators.trend


@dataclass(frozen=True)
class TimeframeError:
    """Placeholder analysis for a timeframe that could not be analysed."""

    error: str = "No data"


# ── Bias and signals ─────────────────────────────────────────────────────


def round_half_up(value: float) -> int:
    """Round to the nearest int with halves going up (62.5 -> 63, -2.5 -> -2)."""
    return int(math.floor(value + 0.5))


@dataclass(frozen=True)
class HTFBias:
    direction: str = "neutral"  # long / short / neutral
    confidence: int = 0
    source: str = "none"  # "4h", "1h", "mixed" or "none"


class InvalidSignalError(ValueError):
    """Raised when a StrategySignal would violate its own invariants."""


@dataclass(frozen=True)
class EntryZone:
    min: Optional[float] = None
    max: Optional[float] = None

    @property
    def mid(self) -> Optional[float]:
        if self.min is None or self.max is None:
            return None
        return (self.min + self.max) / 2


@dataclass(frozen=True)
class RiskReward:
    tp1_rr: Optional[float] = None
    tp2_rr: Optional[float] = None


NO_TRADE = "NO_TRADE"


@dataclass(frozen=True)
class StrategySignal:
    """Canonical decision record returned by every evaluator and the cascade.

    Invariants are checked here, at construction, so a signal that exists
    is always self-consistent:

    - ``valid=True``: direction is long/short, ``entry_zone.min <= max``,
      the stop sits beyond the zone on the losing side, at least one
      target is present and confidence is within ``[0, 100]``.
    - ``valid=False``: direction is ``NO_TRADE``, confidence is 0 and every
      price field is ``None``.

    Raises ``InvalidSignalError`` otherwise.
    """

    valid: bool
    direction: str
    setup_type: str = NO_TRADE
    selected_strategy: Optional[str] = None
    strategies_checked: tuple[str, ...] = ()
    confidence: int = 0
    entry_zone: EntryZone = field(default_factory=EntryZone)
    stop_loss: Optional[float] = None
    invalidation_level: Optional[float] = None
    targets: tuple[float, ...] = ()
    risk_reward: RiskReward = field(default_factory=RiskReward)
    reason: str = ""
    confluence: tuple[str, ...] = ()
    conditions_required: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.valid:
            self._check_trade()
        else:
            self._check_no_trade()

    def _check_trade(self) -> None:
        if self.direction not in ("long", "short"):
            raise InvalidSignalError(f"Invalid direction '{self.direction}' for a valid signal")
        if not isinstance(self.confidence, int) or not 0 <= self.confidence <= 100:
            raise InvalidSignalError(f"Confidence out of range: {self.confidence}")

        low, high, stop = self.entry_zone.min, self.entry_zone.max, self.stop_loss
        if low is None or high is None or stop is None:
            raise InvalidSignalError("Valid signal requires entry zone and stop loss")
        if not all(math.isfinite(v) for v in (low, high, stop)):
            raise InvalidSignalError("Non-finite price in signal")
        if low > high:
            raise InvalidSignalError(f"Entry zone inverted: {low} > {high}")
        if self.direction == "long" and stop >= low:
            raise InvalidSignalError(f"Long stop {stop} not below entry zone {low}")
        if self.direction == "short" and stop <= high:
            raise InvalidSignalError(f"Short stop {stop} not above entry zone {high}")

        targets = [t for t in self.targets if t is not None and math.isfinite(t)]
        if not targets:
            raise InvalidSignalError("Valid signal requires at least one target")

    def _check_no_trade(self) -> None:
        if self.direction != NO_TRADE:
            raise InvalidSignalError("Invalid signal must have direction NO_TRADE")
        if self.confidence != 0:
            raise InvalidSignalError("Invalid signal must have zero confidence")
        if (
            self.stop_loss is not None
            or self.invalidation_level is not None
            or self.entry_zone.min is not None
            or self.entry_zone.max is not None
            or self.targets
        ):
            raise InvalidSignalError("Invalid signal must not carry price levels")

    @classmethod
    def no_trade(
        cls,
        reason: str,
        strategies_checked: tuple[str, ...] = (),
        selected_strategy: Optional[str] = None,
        conditions_required: tuple[str, ...] = (),
    ) -> "StrategySignal":
        """Build the canonical, fully-typed NO_TRADE signal."""
        return cls(
            valid=False,
            direction=NO_TRADE,
            setup_type=NO_TRADE,
            selected_strategy=selected_strategy,
            strategies_checked=tuple(strategies_checked),
            reason=reason,
            conditions_required=tuple(conditions_required),
        )


# ── JSON boundary ────────────────────────────────────────────────────────

_KEY_OVERRIDES = {
    "tp1_rr": "tp1RR",
    "tp2_rr": "tp2RR",
}


def _camel(name: str) -> str:
    if name in _KEY_OVERRIDES:
        return _KEY_OVERRIDES[name]
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def to_dict(obj: Any) -> Any:
    """Convert a model (or nested containers of models) to plain JSON data.

    Keys become camelCase; non-finite floats become ``None``.
    """
    if is_dataclass(obj) and not isinstance(obj, type):
        return {_camel(f.name): to_dict(getattr(obj, f.name)) for f in fields(obj)}
    if isinstance(obj, dict):
        return {key: to_dict(value) for key, value in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [to_dict(item) for item in obj]
    if isinstance(obj, float) and not math.isfinite(obj):
        return None
    return obj
