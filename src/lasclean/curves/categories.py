# src/lasclean/curves/categories.py
from __future__ import annotations

from enum import Enum
from typing import Dict


class CurveCategory(str, Enum):
    DEPTH = "depth"
    GAMMA_RAY = "gamma_ray"
    RESISTIVITY = "resistivity"
    POROSITY = "porosity"
    DENSITY = "density"
    SONIC = "sonic"
    CALIPER = "caliper"
    SP = "sp"
    PHOTOELECTRIC = "photoelectric"
    GENERIC = "generic"


# Canonical mnemonic -> category. Looked up once per curve at parse time.
CATEGORY_BY_MNEMONIC: Dict[str, CurveCategory] = {
    "DEPT": CurveCategory.DEPTH,
    "GR": CurveCategory.GAMMA_RAY,
    "RT": CurveCategory.RESISTIVITY,
    "RXO": CurveCategory.RESISTIVITY,
    "ILM": CurveCategory.RESISTIVITY,
    "LLS": CurveCategory.RESISTIVITY,
    "NPHI": CurveCategory.POROSITY,
    "DPHI": CurveCategory.POROSITY,
    "SPHI": CurveCategory.POROSITY,
    "RHOB": CurveCategory.DENSITY,
    "DRHO": CurveCategory.DENSITY,
    "DT": CurveCategory.SONIC,
    "DTS": CurveCategory.SONIC,
    "CALI": CurveCategory.CALIPER,
    "SP": CurveCategory.SP,
    "PEF": CurveCategory.PHOTOELECTRIC,
}

_PALETTE = (
    "#3B82F6", "#EF4444", "#10B981", "#F59E0B", "#8B5CF6",
    "#EC4899", "#06B6D4", "#84CC16", "#F97316", "#6366F1",
)


def classify_mnemonic(canonical: str) -> CurveCategory:
    return CATEGORY_BY_MNEMONIC.get((canonical or "").strip().upper(), CurveCategory.GENERIC)


def display_track(category: CurveCategory, index: int) -> int:
    """
    Track number for log display. Generic curves are packed three per track
    after the named tracks.
    """
    if category is CurveCategory.DEPTH:
        return 0
    if category is CurveCategory.GAMMA_RAY or category is CurveCategory.SP or category is CurveCategory.CALIPER:
        return 1
    if category is CurveCategory.RESISTIVITY:
        return 2
    if category is CurveCategory.POROSITY or category is CurveCategory.DENSITY or category is CurveCategory.PHOTOELECTRIC:
        return 3
    if category is CurveCategory.SONIC:
        return 4
    if category is CurveCategory.GENERIC:
        return 5 + int(index) // 3
    raise ValueError(f"Unhandled curve category: {category!r}")


def display_scale(category: CurveCategory) -> str:
    if category is CurveCategory.RESISTIVITY:
        return "logarithmic"
    return "linear"


def display_color(index: int) -> str:
    return _PALETTE[int(index) % len(_PALETTE)]
