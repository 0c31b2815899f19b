import math
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class Category(str, Enum):
    BUILDING = "Building"
    VEHICLE = "Vehicle"
    GARE = "Gare"
    RESTAURANT = "Restaurant"
    HOPITAL = "Hopital"
    UNKNOWN = "unknown"

    @classmethod
    def of(cls, value: str) -> "Category":
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


class SubUnitKind(str, Enum):
    WAGON = "wagon"
    FLOOR = "floor"


class SensorRecord(BaseModel):
    """One normalized feed row. Read-only once built."""

    model_config = ConfigDict(frozen=True)

    id: Optional[int] = None
    name: str = Field(min_length=1)
    type: str = ""
    latitude: Optional[float] = None    # NaN when the cell was not a number
    longitude: Optional[float] = None
    co2: Optional[Tuple[float, ...]] = None
    temperature: Optional[Tuple[float, ...]] = None
    occupancy_sub_units: Optional[Tuple[float, ...]] = None
    sub_unit_kind: Optional[SubUnitKind] = None
    occupancy_scalar: Optional[int] = None
    extra: Dict[str, str] = Field(default_factory=dict)

    @property
    def placeable(self) -> bool:
        return (
            self.latitude is not None
            and self.longitude is not None
            and math.isfinite(self.latitude)
            and math.isfinite(self.longitude)
        )

    @property
    def position(self) -> Optional[Tuple[float, float]]:
        if not self.placeable:
            return None
        return (self.latitude, self.longitude)

    @property
    def category(self) -> Category:
        return Category.of(self.type)


class HSLColor(BaseModel):
    model_config = ConfigDict(frozen=True)

    hue: float
    saturation: float = 75
    lightness: float = 45

    @property
    def css(self) -> str:
        return f"hsl({self.hue:g}, {self.saturation:g}%, {self.lightness:g}%)"


class MarkerEntry(BaseModel):
    record: SensorRecord = Field(frozen=True)
    aggregate_occupancy: int = Field(frozen=True)
    visible: bool = True
    # owned by the map layer, never interpreted here
    handle: Any = Field(default=None, exclude=True)

    @property
    def name(self) -> str:
        return self.record.name

    @property
    def type(self) -> str:
        return self.record.type

    @property
    def color(self) -> HSLColor:
        from .occupancy import occupancy_color
        return occupancy_color(self.aggregate_occupancy)
