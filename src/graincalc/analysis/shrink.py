"""
Grain drying shrink calculation.

When wet grain is dried down to a target (market) moisture it loses
weight. Two ways of estimating that loss are in common use:

1. Water shrink (exact water loss):

       shrink % = (M_wet - M_target) / (100 - M_target) * 100

2. Shrink factor (elevator convention, includes handling loss):

       shrink % = (M_wet - M_target) * factor

   where factor is the percent lost per point of moisture removed,
   typically 1.3-1.5 for corn.

If a manual shrink factor is given it takes precedence over water shrink.
Grain at or below target moisture is not shrunk.

Bushels are weight bushels: dry weight / test weight (56 lb for corn).
"""

from dataclasses import asdict, dataclass

from graincalc.core.config import settings
from graincalc.core.units import pounds_to_bushels, to_pounds


@dataclass(frozen=True)
class ShrinkResult:
    """Outcome of a shrink calculation (weights in lb)."""

    wet_weight: float
    moisture_content: float
    target_moisture: float
    shrink_percent: float
    calculated_wet_bushels: float
    calculated_dry_weight: float
    calculated_dry_bushels: float

    def to_dict(self) -> dict:
        return asdict(self)


def water_shrink_percent(moisture: float, target: float) -> float:
    """Percent of wet weight lost as water when drying from moisture to target."""
    if moisture <= target:
        return 0.0
    return (moisture - target) / (100.0 - target) * 100.0


def factor_shrink_percent(moisture: float, target: float, factor: float) -> float:
    """Percent of wet weight lost using a per-point shrink factor."""
    if moisture <= target:
        return 0.0
    return (moisture - target) * factor


def calculate_shrink(
    wet_weight: float,
    moisture: float,
    target_moisture: float | None = None,
    manual_shrink_factor: float = 0.0,
    test_weight: float | None = None,
    unit: str = "lb",
) -> ShrinkResult:
    """Calculate dry weight and bushels for a load of wet grain.

    Args:
        wet_weight: Net weight of the load, in `unit`
        moisture: Measured moisture content (percent, wet basis)
        target_moisture: Moisture to dry down to (default from settings, 15.5)
        manual_shrink_factor: Percent shrink per point of moisture; 0 uses water shrink
        test_weight: Pounds per bushel (default from settings, 56)
        unit: Any pint mass unit for wet_weight ("lb", "kg", "metric_ton")

    Returns:
        ShrinkResult with weights in pounds

    Raises:
        ValueError: For out-of-range inputs
    """
    if target_moisture is None:
        target_moisture = settings.default_target_moisture
    if test_weight is None:
        test_weight = settings.default_test_weight

    if wet_weight < 0:
        raise ValueError("Wet weight cannot be negative")
    if not 0 <= moisture < 100:
        raise ValueError("Moisture must be between 0 and 100 percent")
    if not 0 <= target_moisture < 100:
        raise ValueError("Target moisture must be between 0 and 100 percent")
    if manual_shrink_factor < 0:
        raise ValueError("Shrink factor cannot be negative")
    if test_weight <= 0:
        raise ValueError("Test weight must be positive")

    wet_lb = to_pounds(wet_weight, unit)

    if manual_shrink_factor > 0:
        shrink = factor_shrink_percent(moisture, target_moisture, manual_shrink_factor)
    else:
        shrink = water_shrink_percent(moisture, target_moisture)
    # A large factor can't shrink a load below nothing
    shrink = min(shrink, 100.0)

    dry_lb = wet_lb * (1 - shrink / 100.0)

    return ShrinkResult(
        wet_weight=round(wet_lb, 2),
        moisture_content=moisture,
        target_moisture=target_moisture,
        shrink_percent=round(shrink, 3),
        calculated_wet_bushels=round(pounds_to_bushels(wet_lb, test_weight), 2),
        calculated_dry_weight=round(dry_lb, 2),
        calculated_dry_bushels=round(pounds_to_bushels(dry_lb, test_weight), 2),
    )
