"""
Domain models for farm boundaries, band samples and vegetation indices.

These models represent the core domain entities and should be independent
of any infrastructure concerns (API clients, tile servers, etc.).
"""
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


class Point(BaseModel):
    """Geographic coordinate of a farm boundary vertex."""
    lat: float = Field(description="Latitude in degrees")
    lng: float = Field(description="Longitude in degrees")


class VegetationIndex(str, Enum):
    """Indices the calculator and the request builder know about."""
    NDVI = "ndvi"
    SAVI = "savi"
    NDRE = "ndre"
    GNDVI = "gndvi"
    NDMI = "ndmi"
    LAI = "lai"

    @classmethod
    def _missing_(cls, value):
        # "moisture" is what the dashboards call NDMI
        if isinstance(value, str):
            lowered = value.lower()
            if lowered == "moisture":
                return cls.NDMI
            for member in cls:
                if member.value == lowered:
                    return member
        return None


class HealthLabel(str, Enum):
    """Qualitative vegetation health derived from NDVI."""
    WATER_SHADOW = "Water/Shadow"
    BARE_SOIL = "Bare Soil"
    SPARSE = "Sparse"
    MODERATE = "Moderate"
    HEALTHY = "Healthy"
    VERY_HEALTHY = "Very Healthy"
    NO_DATA = "No Data"


class CloudQuality(str, Enum):
    """Scene quality bucket derived from cloud cover percentage."""
    EXCELLENT = "excellent"
    GOOD = "good"
    MODERATE = "moderate"
    POOR = "poor"


class BandSample(BaseModel):
    """
    Reflectance values for one pixel or area mean, keyed by band identity.

    A band left unset, or set to the no-data sentinel, excludes every index
    that depends on it.
    """
    blue: Optional[float] = None
    green: Optional[float] = None
    red: Optional[float] = None
    red_edge: Optional[float] = None
    nir: Optional[float] = None
    swir: Optional[float] = None


class VegetationIndexResult(BaseModel):
    """A computed index value with its optional qualitative label."""
    index: VegetationIndex
    value: Optional[float] = Field(
        default=None,
        description="Index value, or None when an input band had no data"
    )
    label: Optional[str] = None


class TimeRange(BaseModel):
    """Inclusive acquisition window in UTC ISO-8601 form."""
    from_: str = Field(alias="from")
    to: str

    class Config:
        populate_by_name = True

    def as_dict(self) -> dict:
        return {"from": self.from_, "to": self.to}


class IndexStatistics(BaseModel):
    """Aggregated statistics for one index over a polygon and interval."""
    mean: Optional[float] = None
    min: Optional[float] = None
    max: Optional[float] = None
    std_dev: Optional[float] = None
    median: Optional[float] = None
    p25: Optional[float] = None
    p75: Optional[float] = None
    acquisition_date: Optional[str] = None


class AvailableDate(BaseModel):
    """A day with imagery and the clearest scene's cloud cover."""
    date: str
    cloud_cover: float
    quality: CloudQuality


class HistoryPoint(BaseModel):
    """One interval of an index time series."""
    date: str
    timestamp: float
    mean: Optional[float] = None
    min: Optional[float] = None
    max: Optional[float] = None
    median: Optional[float] = None
