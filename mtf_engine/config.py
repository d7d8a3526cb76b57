"""Engine configuration.

Loads .env variables into a typed config object and picks the threshold
set for the configured mode.  Validates values on load.
"""

import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

MODES = ("STANDARD", "AGGRESSIVE")


@dataclass(frozen=True)
class Thresholds:
    """Mode-dependent strategy tolerances (in percent) and switches."""

    mode: str
    scalp_1h_ema_max_pct: float  # max |price − 1H EMA21|
    scalp_15m_ema_max_pct: float  # max |price − 15m EMA21|
    micro_scalp_ema_band_pct: float  # 15m and 5m must sit this close to EMA21
    trend_rider_max_extension_pct: float  # max |price − 4H EMA21| for continuation
    aggressive_fallbacks: bool = False  # run the AGGRO_* strategies after the cascade


_THRESHOLDS = {
    "STANDARD": Thresholds(
        mode="STANDARD",
        scalp_1h_ema_max_pct=2.0,
        scalp_15m_ema_max_pct=1.5,
        micro_scalp_ema_band_pct=0.25,
        trend_rider_max_extension_pct=5.0,
    ),
    "AGGRESSIVE": Thresholds(
        mode="AGGRESSIVE",
        scalp_1h_ema_max_pct=2.5,
        scalp_15m_ema_max_pct=2.0,
        micro_scalp_ema_band_pct=0.75,
        trend_rider_max_extension_pct=6.0,
        aggressive_fallbacks=True,
    ),
}


def thresholds_for(mode: str) -> Thresholds:
    """Raises ``ValueError`` for an unknown mode."""
    key = mode.upper()
    if key not in _THRESHOLDS:
        raise ValueError(f"Unknown ENGINE_MODE '{mode}'. Available: {', '.join(MODES)}")
    return _THRESHOLDS[key]


@dataclass(frozen=True)
class EngineConfig:
    """Typed configuration loaded from environment variables."""

    mode: str
    log_level: str
    momentum_timeframes: tuple[str, ...]
    swing_lookback: int
    liquidity_lookback: int
    fvg_lookback: int

    @property
    def thresholds(self) -> Thresholds:
        return thresholds_for(self.mode)


def _int_var(name: str, default: str) -> int:
    raw = os.environ.get(name, default)
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got '{raw}'") from None
    if value < 3:
        raise ValueError(f"{name} must be at least 3, got {value}")
    return value


def load_config(env_path: str | None = None) -> EngineConfig:
    """Load configuration from environment variables.

    Raises ``ValueError`` naming the variable when a value is invalid.
    """
    load_dotenv(dotenv_path=env_path)

    mode = os.environ.get("ENGINE_MODE", "STANDARD").upper()
    if mode not in MODES:
        raise ValueError(f"ENGINE_MODE must be one of {', '.join(MODES)}, got '{mode}'")

    log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
    if not isinstance(logging.getLevelName(log_level), int):
        raise ValueError(f"LOG_LEVEL '{log_level}' is not a logging level")

    timeframes = tuple(
        tf.strip()
        for tf in os.environ.get("MOMENTUM_TIMEFRAMES", "1m,5m,15m,1h,4h").split(",")
        if tf.strip()
    )
    if not timeframes:
        raise ValueError("MOMENTUM_TIMEFRAMES must name at least one timeframe")

    return EngineConfig(
        mode=mode,
        log_level=log_level,
        momentum_timeframes=timeframes,
        swing_lookback=_int_var("SWING_LOOKBACK", "50"),
        liquidity_lookback=_int_var("LIQUIDITY_LOOKBACK", "100"),
        fvg_lookback=_int_var("FVG_LOOKBACK", "50"),
    )


def default_config() -> EngineConfig:
    """Configuration with every default, ignoring the environment."""
    return EngineConfig(
        mode="STANDARD",
        log_level="INFO",
        momentum_timeframes=("1m", "5m", "15m", "1h", "4h"),
        swing_lookback=50,
        liquidity_lookback=100,
        fvg_lookback=50,
    )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
