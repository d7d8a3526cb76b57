"""Candle ingestion — turns raw rows or DataFrames into clean ``Candle`` series.

Everything the analysis layer receives has passed through here:
non-finite prices dropped, high/low repaired to bracket open and close,
negative volume clamped to zero, oldest-first ordering.
"""

import logging
import math
from typing import Any, Iterable, Mapping, Optional, Union

import numpy as np
import pandas as pd

from mtf_engine.strategy.models import Candle

logger = logging.getLogger("mtf_engine.data")

REQUIRED_COLUMNS = ("timestamp", "open", "high", "low", "close")

# Short keys used by exchange-style payloads.
_ALIASES = {
    "t": "timestamp",
    "time": "timestamp",
    "o": "open",
    "h": "high",
    "l": "low",
    "c": "close",
    "v": "volume",
}


def sanitize_candle(candle: Candle) -> Optional[Candle]:
    """Repair a single candle, or return ``None`` if its prices are unusable."""
    prices = (candle.open, candle.high, candle.low, candle.close)
    if not all(isinstance(p, (int, float)) and math.isfinite(p) for p in prices):
        return None

    high = max(prices)
    low = min(prices)
    volume = candle.volume if isinstance(candle.volume, (int, float)) and math.isfinite(candle.volume) else 0.0
    if high == candle.high and low == candle.low and volume == candle.volume and volume >= 0:
        return candle
    return Candle(
        timestamp=candle.timestamp,
        open=float(candle.open),
        high=float(high),
        low=float(low),
        close=float(candle.close),
        volume=float(max(0.0, volume)),
    )


def _row_to_candle(row: Mapping[str, Any]) -> Candle:
    values = {_ALIASES.get(key, key): value for key, value in row.items()}
    missing = [col for col in REQUIRED_COLUMNS if col not in values]
    if missing:
        raise ValueError(f"Candle row missing fields: {', '.join(missing)}")

    def _num(value: Any) -> float:
        try:
            return float(value)
        except (TypeError, ValueError):
            return math.nan

    return Candle(
        timestamp=values["timestamp"],
        open=_num(values["open"]),
        high=_num(values["high"]),
        low=_num(values["low"]),
        close=_num(values["close"]),
        volume=_num(values.get("volume", 0.0)),
    )


def to_candles(rows: Iterable[Union[Candle, Mapping[str, Any]]]) -> list[Candle]:
    """Convert dicts (long or ``o/h/l/c/v`` keys) or candles into a clean series.

    Raises:
        ValueError: if a row lacks a required field.
    """
    candles: list[Candle] = []
    dropped = 0
    for row in rows:
        candle = row if isinstance(row, Candle) else _row_to_candle(row)
        clean = sanitize_candle(candle)
        if clean is None:
            dropped += 1
            continue
        candles.append(clean)

    if dropped:
        logger.warning("Dropped %d candle(s) with non-finite prices", dropped)
    return candles


def candles_from_frame(df: pd.DataFrame) -> list[Candle]:
    """Clean an OHLCV DataFrame and convert it to candles.

    1. Drop rows with NaN/inf prices.
    2. Drop duplicated timestamps (keep the last bar).
    3. Sort oldest-first.
    4. Repair high/low so they bracket open and close; clamp volume ≥ 0.

    Raises:
        ValueError: if a required column is missing.
    """
    df = df.rename(columns={k: v for k, v in _ALIASES.items() if k in df.columns and v not in df.columns})
    missing = [col for col in REQUIRED_COLUMNS if col not in df.columns]
    if missing:
        raise ValueError(f"DataFrame missing columns: {', '.join(missing)}")

    if df.empty:
        return []

    df = df.copy()
    if "volume" not in df.columns:
        df["volume"] = 0.0

    price_cols = ["open", "high", "low", "close"]
    df[price_cols + ["volume"]] = df[price_cols + ["volume"]].apply(pd.to_numeric, errors="coerce")

    # 1 ── Non-finite prices
    finite = np.isfinite(df[price_cols].to_numpy(dtype=float)).all(axis=1)
    if not finite.all():
        logger.warning("Dropped %d row(s) with non-finite prices", int((~finite).sum()))
    df = df[finite]

    # 2, 3 ── Duplicates and ordering
    df = df.drop_duplicates(subset="timestamp", keep="last").sort_values("timestamp")

    # 4 ── Repairs
    df["high"] = df[price_cols].max(axis=1)
    df["low"] = df[price_cols].min(axis=1)
    df["volume"] = df["volume"].replace([np.inf, -np.inf], np.nan).fillna(0.0).clip(lower=0.0)

    return [
        Candle(
            timestamp=_timestamp(row.timestamp),
            open=float(row.open),
            high=float(row.high),
            low=float(row.low),
            close=float(row.close),
            volume=float(row.volume),
        )
        for row in df.itertuples(index=False)
    ]


def _timestamp(value: Any) -> Union[int, float, str]:
    if isinstance(value, pd.Timestamp):
        return value.isoformat()
    if isinstance(value, np.integer):
        return int(value)
    if isinstance(value, np.floating):
        return float(value)
    return value
