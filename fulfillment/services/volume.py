"""
Volume and pallet-position calculations.

Pure functions: no I/O, no rounding.
"""
from math import ceil
from typing import Iterable, Optional, Protocol


# Packaging buffer applied to every measured volume
VOLUME_BUFFER = 1.05

# Standard pallet footprint 120 x 80 cm
STANDARD_PALLET_WIDTH_CM = 120
STANDARD_PALLET_LENGTH_CM = 80
STANDARD_PALLET_AREA_CM2 = STANDARD_PALLET_WIDTH_CM * STANDARD_PALLET_LENGTH_CM

# Pallets under this many positions are billed with a surcharge
PALLET_ROUNDING_THRESHOLD = 1.5
SMALL_PALLET_MULTIPLIER = 1.33


class Dimensioned(Protocol):
    width_cm: Optional[float]
    length_cm: Optional[float]
    height_cm: Optional[float]


def volume_cbm(width_cm: float, length_cm: float, height_cm: float) -> float:
    """Billable volume in m3: (w/100 * l/100 * h/100) * 1.05."""
    return (width_cm / 100 * length_cm / 100 * height_cm / 100) * VOLUME_BUFFER


def has_dimensions(item: Dimensioned) -> bool:
    return all(
        getattr(item, attr, None) is not None
        for attr in ("width_cm", "length_cm", "height_cm")
    )


def total_volume(items: Iterable[Dimensioned]) -> float:
    """Sum of item volumes; items without full dimensions (pallets) count as zero."""
    total = 0.0
    for item in items:
        if has_dimensions(item):
            total += volume_cbm(item.width_cm, item.length_cm, item.height_cm)
    return total


# ==================== PALLET POSITIONS ====================

def pallet_positions(width_cm: float, length_cm: float) -> float:
    """Standard 120x80 positions a pallet footprint occupies (fractional)."""
    width = max(width_cm, length_cm)
    length = min(width_cm, length_cm)
    return (width * length) / STANDARD_PALLET_AREA_CM2


def pallet_pricing_multiplier(positions: float) -> float:
    """>= 1.5 positions rounds up to whole positions; smaller pallets bill as 1.33."""
    if positions >= PALLET_ROUNDING_THRESHOLD:
        return float(ceil(positions))
    return SMALL_PALLET_MULTIPLIER


def total_pricing_positions(pallets: Iterable[Dimensioned]) -> float:
    """Sum of pricing multipliers; pallets without a footprint count as one position."""
    total = 0.0
    for pallet in pallets:
        if pallet.width_cm and pallet.length_cm:
            total += pallet_pricing_multiplier(pallet_positions(pallet.width_cm, pallet.length_cm))
        else:
            total += 1.0
    return total
