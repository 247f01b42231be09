"""
Floor color palettes

Cosmetic only. Uses its own unseeded generator so colors never consume
draws from the structural placement RNG.
"""

import colorsys
import random
from typing import List, Optional

from ..models import IntendedUse, UtilityType

# (hue degrees, saturation %, lightness %) per intended use
MATERIALS = {
    IntendedUse.RESIDENTIAL: (30, 40, 70),
    IntendedUse.COMMERCIAL: (220, 60, 60),
    IntendedUse.MIXED_USE: (280, 40, 65),
    IntendedUse.INDUSTRIAL: (0, 0, 50),
    IntendedUse.PUBLIC: (15, 50, 60),
    IntendedUse.UTILITY: (0, 0, 40),
}

UTILITY_COLORS = {
    UtilityType.HVAC: "#7f8c8d",
    UtilityType.ELECTRICAL: "#f1c40f",
    UtilityType.STP: "#8e6e53",
    UtilityType.WTP: "#3498db",
    UtilityType.WATER: "#5dade2",
    UtilityType.FIRE: "#e74c3c",
    UtilityType.GAS: "#e67e22",
    UtilityType.ROADS: "#4d4d4d",
}

PARKING_COLOR = "#555b63"

_cosmetic_rng = random.Random()


def hsl_to_hex(h: float, s: float, l: float) -> str:
    r, g, b = colorsys.hls_to_rgb((h % 360) / 360.0, l / 100.0, s / 100.0)
    return "#{:02x}{:02x}{:02x}".format(round(r * 255), round(g * 255), round(b * 255))


def floor_colors(count: int, intended_use: IntendedUse = IntendedUse.RESIDENTIAL) -> List[str]:
    """Vertical gradient, lighter at the bottom, with slight hue jitter"""
    hue, saturation, lightness = MATERIALS.get(intended_use, MATERIALS[IntendedUse.RESIDENTIAL])
    colors = []
    for i in range(count):
        ratio = i / (count - 1) if count > 1 else 0.0
        level_lightness = max(40.0, min(80.0, lightness - 12.0 * ratio))
        jitter = (_cosmetic_rng.random() - 0.5) * 10.0
        colors.append(hsl_to_hex(hue + jitter, saturation, level_lightness))
    return colors


def utility_color(utility_type: Optional[UtilityType]) -> str:
    return UTILITY_COLORS.get(utility_type, "#95a5a6")
