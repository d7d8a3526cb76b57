"""Entry zone, stop-loss and target construction — pure math, no I/O.

Every strategy shares the same geometry:
    - Entry zone: a band around an anchor level, 0.5% on the give-back side
      and 0.3% on the chase side.
    - Stop-loss: a structural swing level pushed 0.3% further away.
    - Targets: entry ± R × multiple, where R = |entry_mid − stop|.
"""

from dataclasses import dataclass
from typing import Optional

from mtf_engine.strategy.models import EntryZone, RiskReward

GIVE_BACK_BAND = 0.005
CHASE_BAND = 0.003
STOP_BUFFER = 0.003


def round_price(value: float) -> float:
    return round(value, 8)


@dataclass(frozen=True)
class RiskLevels:
    """Computed entry zone, stop-loss and targets for a trade."""

    entry_zone: EntryZone
    entry: float
    stop_loss: float
    invalidation_level: float
    targets: tuple[float, ...]
    risk: float
    risk_reward: RiskReward


def _check_direction(direction: str) -> None:
    if direction not in ("long", "short"):
        raise ValueError(f"direction must be 'long' or 'short', got '{direction}'")


def calculate_entry_zone(
    anchor: float,
    direction: str,
    give_back: float = GIVE_BACK_BAND,
    chase: float = CHASE_BAND,
) -> EntryZone:
    """Band around *anchor*, *give_back* wide against the trade and *chase* wide with it."""
    _check_direction(direction)
    if direction == "long":
        return EntryZone(
            min=round_price(anchor * (1 - give_back)),
            max=round_price(anchor * (1 + chase)),
        )
    return EntryZone(
        min=round_price(anchor * (1 - chase)),
        max=round_price(anchor * (1 + give_back)),
    )


def calculate_stop(swing_level: float, direction: str, buffer: float = STOP_BUFFER) -> float:
    """Place the stop *buffer* beyond the swing level on the losing side."""
    _check_direction(direction)
    if direction == "long":
        return round_price(swing_level * (1 - buffer))
    return round_price(swing_level * (1 + buffer))


def calculate_targets(
    entry: float,
    stop: float,
    direction: str,
    multiples: tuple[float, ...],
) -> tuple[float, ...]:
    _check_direction(direction)
    risk = abs(entry - stop)
    sign = 1 if direction == "long" else -1
    return tuple(round_price(entry + sign * risk * m) for m in multiples)


def calculate_risk_levels(
    anchor: float,
    swing_level: float,
    direction: str,
    multiples: tuple[float, ...],
    extra_target: Optional[float] = None,
    chase: float = CHASE_BAND,
    give_back: float = GIVE_BACK_BAND,
) -> Optional[RiskLevels]:
    """Build the full entry/stop/target triple around *anchor*.

    Args:
        anchor: EMA21 or reclaim level the entry zone is centred on.
        swing_level: Structural level the stop hides behind.
        direction: ``"long"`` or ``"short"``.
        multiples: R multiples for the targets, nearest first.
        extra_target: Optional structural target appended after the R
            targets when it lies beyond the last one.
        chase: Width of the zone on the trade side; pass ``GIVE_BACK_BAND``
            for a symmetric zone centred on *anchor*.
        give_back: Width of the zone on the losing side; pass ``CHASE_BAND``
            for a tight symmetric zone.

    Returns:
        ``RiskLevels``, or ``None`` when the stop does not sit beyond the
        entry zone (no valid geometry).
    """
    _check_direction(direction)
    if anchor <= 0 or swing_level <= 0 or not multiples:
        return None

    zone = calculate_entry_zone(anchor, direction, give_back=give_back, chase=chase)
    stop = calculate_stop(swing_level, direction)
    if direction == "long" and stop >= zone.min:
        return None
    if direction == "short" and stop <= zone.max:
        return None

    entry = zone.mid
    risk = abs(entry - stop)
    targets = calculate_targets(entry, stop, direction, multiples)

    if extra_target is not None:
        beyond = extra_target > targets[-1] if direction == "long" else extra_target < targets[-1]
        if beyond:
            targets = targets + (round_price(extra_target),)

    rr = RiskReward(
        tp1_rr=round(multiples[0], 2),
        tp2_rr=round(multiples[1], 2) if len(multiples) > 1 else None,
    )
    return RiskLevels(
        entry_zone=zone,
        entry=round_price(entry),
        stop_loss=stop,
        invalidation_level=round_price(swing_level),
        targets=targets,
        risk=round_price(risk),
        risk_reward=rr,
    )
