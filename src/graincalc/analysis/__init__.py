"""Analysis modules - grain drying calculations."""

from graincalc.analysis.shrink import (
    ShrinkResult,
    calculate_shrink,
    factor_shrink_percent,
    water_shrink_percent,
)

__all__ = [
    "ShrinkResult",
    "calculate_shrink",
    "factor_shrink_percent",
    "water_shrink_percent",
]
