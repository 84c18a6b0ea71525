"""Record services - farms, fields, calculations, equipment, soil moisture, users."""

from graincalc.data.calculations import CalculationService
from graincalc.data.equipment import EquipmentService
from graincalc.data.farms import FarmAccessError, FarmService
from graincalc.data.fields import FieldService
from graincalc.data.models import (
    Calculation,
    Equipment,
    Farm,
    Field,
    SoilMoistureField,
    SoilMoistureReading,
    UserProfile,
)
from graincalc.data.soil_moisture import SoilMoistureService
from graincalc.data.users import UserService

__all__ = [
    "FarmAccessError",
    # Services
    "FarmService",
    "FieldService",
    "CalculationService",
    "EquipmentService",
    "SoilMoistureService",
    "UserService",
    # Records
    "Farm",
    "Field",
    "Calculation",
    "Equipment",
    "SoilMoistureField",
    "SoilMoistureReading",
    "UserProfile",
]
