"""Unit conversion utilities using pint.

Grain is weighed in pounds internally. Scale tickets may come in kg or
metric tonnes, so weights are converted on the way in.

Bushels here are *weight* bushels (a standard test weight per bushel,
56 lb for shelled corn), not the volumetric bushel pint knows about.
"""

import pint

# Create a unit registry (lazily initialized)
_ureg: pint.UnitRegistry | None = None

# Standard test weights (lb per bushel)
TEST_WEIGHTS: dict[str, float] = {
    "corn": 56.0,
    "soybeans": 60.0,
    "wheat": 60.0,
    "sorghum": 56.0,
    "barley": 48.0,
    "oats": 32.0,
}


def get_ureg() -> pint.UnitRegistry:
    """Get the pint unit registry (lazily initialized)."""
    global _ureg
    if _ureg is None:
        _ureg = pint.UnitRegistry()
    return _ureg


def to_pounds(value: float, unit: str = "lb") -> float:
    """Convert a mass in any pint mass unit ("lb", "kg", "metric_ton", ...) to pounds.

    Raises:
        ValueError: If the unit is unknown or not a mass
    """
    ureg = get_ureg()
    try:
        quantity = ureg.Quantity(value, unit)
        return quantity.to(ureg.pound).magnitude
    except (pint.UndefinedUnitError, pint.DimensionalityError) as e:
        raise ValueError(f"Not a mass unit: {unit}") from e


def pounds_to(value_lb: float, unit: str) -> float:
    """Convert pounds to another mass unit."""
    ureg = get_ureg()
    try:
        return ureg.Quantity(value_lb, ureg.pound).to(unit).magnitude
    except (pint.UndefinedUnitError, pint.DimensionalityError) as e:
        raise ValueError(f"Not a mass unit: {unit}") from e


def pounds_to_bushels(weight_lb: float, test_weight: float = TEST_WEIGHTS["corn"]) -> float:
    """Convert a weight in pounds to weight bushels."""
    if test_weight <= 0:
        raise ValueError("Test weight must be positive")
    return weight_lb / test_weight


def format_bushels(bushels: float, decimals: int = 2) -> str:
    """Format bushels for display, e.g. "1,234.57 bu"."""
    return f"{bushels:,.{decimals}f} bu"


def format_weight(weight_lb: float, decimals: int = 0) -> str:
    """Format a weight in pounds for display, e.g. "56,000 lb"."""
    return f"{weight_lb:,.{decimals}f} lb"
