# Module: src/agcoats/models.py
# Description: Column and field layouts for displaying the loosely-typed API entities.

from dataclasses import dataclass
from typing import List


@dataclass(frozen=True)
class Column:
    """A labeled field of an entity, shown as a table column or a detail line."""
    label: str
    key: str
    is_date: bool = False


EQUIPMENT_COLUMNS: List[Column] = [
    Column("ID", "id"),
    Column("Serial Number", "serialNumber"),
    Column("Model", "model"),
    Column("Type", "type"),
    Column("Status", "status"),
]

EQUIPMENT_DETAIL: List[Column] = [
    Column("ID", "id"),
    Column("Serial Number", "serialNumber"),
    Column("Model", "model"),
    Column("Type", "type"),
    Column("Status", "status"),
    Column("Owner", "ownerId"),
    Column("Manufactured", "manufacturerDate", is_date=True),
    Column("Created", "createdAt", is_date=True),
    Column("Updated", "updatedAt", is_date=True),
]

FIELD_COLUMNS: List[Column] = [
    Column("ID", "id"),
    Column("Name", "name"),
    Column("Area", "area"),
    Column("Unit", "areaUnit"),
    Column("Crop", "cropType"),
    Column("Farm", "farmId"),
]

FIELD_DETAIL: List[Column] = FIELD_COLUMNS + [
    Column("Created", "createdAt", is_date=True),
    Column("Updated", "updatedAt", is_date=True),
]

SENSOR_COLUMNS: List[Column] = [
    Column("ID", "id"),
    Column("Type", "type"),
    Column("Status", "status"),
    Column("Equipment", "equipmentId"),
    Column("Field", "fieldId"),
]

SENSOR_DETAIL: List[Column] = SENSOR_COLUMNS + [
    Column("Name", "name"),
    Column("Unit", "unit"),
    Column("Created", "createdAt", is_date=True),
]

READING_COLUMNS: List[Column] = [
    Column("Timestamp", "timestamp", is_date=True),
    Column("Value", "value"),
    Column("Unit", "unit"),
    Column("Quality", "quality"),
]

READING_DETAIL: List[Column] = [Column("Sensor", "sensorId")] + READING_COLUMNS

# Keys whose values are secrets and are masked in human-readable config output
SECRET_CONFIG_KEYS = {"token", "apiKey"}
