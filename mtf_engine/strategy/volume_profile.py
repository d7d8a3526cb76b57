"""Volume profile — volume-weighted histogram of typical price."""

import numpy as np

from mtf_engine.strategy.models import Candle, VolumeProfile

VALUE_AREA_SHARE = 0.70
NODE_COUNT = 3


def profile_bins(candle_count: int) -> int:
    return min(24, max(3, candle_count // 3))


def calculate_volume_profile(candles: list[Candle]) -> VolumeProfile:
    """Bucket typical price ``(H+L+C)/3`` into volume-weighted bins.

    Returns the point of control, the three heaviest and three lightest
    populated bins (by centre price), and the value area that holds 70% of
    volume, grown from the heaviest bins outward.  Windows without volume
    return the empty default.
    """
    if len(candles) < 3:
        return VolumeProfile()

    volumes = np.array([max(c.volume, 0.0) for c in candles], dtype=float)
    total = float(volumes.sum())
    if total <= 0:
        return VolumeProfile()

    typical = np.array([(c.high + c.low + c.close) / 3 for c in candles], dtype=float)
    lo = min(c.low for c in candles)
    hi = max(c.high for c in candles)
    if hi <= lo:
        return VolumeProfile(point_of_control=lo, value_area_high=lo, value_area_low=lo)

    hist, edges = np.histogram(typical, bins=profile_bins(len(candles)), range=(lo, hi), weights=volumes)
    centers = (edges[:-1] + edges[1:]) / 2

    populated = [i for i in range(len(hist)) if hist[i] > 0]
    by_volume = sorted(populated, key=lambda i: hist[i], reverse=True)

    selected: list[int] = []
    cumulative = 0.0
    for i in by_volume:
        selected.append(i)
        cumulative += float(hist[i])
        if cumulative >= total * VALUE_AREA_SHARE:
            break

    value_area_low = float(min(edges[i] for i in selected))
    value_area_high = float(max(edges[i + 1] for i in selected))
    if value_area_low > value_area_high:
        value_area_low, value_area_high = value_area_high, value_area_low

    return VolumeProfile(
        point_of_control=float(centers[by_volume[0]]),
        value_area_high=value_area_high,
        value_area_low=value_area_low,
        high_volume_nodes=tuple(float(centers[i]) for i in by_volume[:NODE_COUNT]),
        low_volume_nodes=tuple(float(centers[i]) for i in reversed(by_volume[-NODE_COUNT:])),
    )
