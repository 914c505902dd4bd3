"""
API response models using Pydantic.
"""
from typing import Dict, List, Optional
from pydantic import BaseModel, Field

from agripay.domain.models import (
    AvailableDate,
    HistoryPoint,
    IndexStatistics,
    Point,
    VegetationIndexResult,
)


class PolygonResponse(BaseModel):
    """GeoJSON geometry and derived viewport data for a boundary."""
    geometry: dict = Field(description="GeoJSON Polygon with a closed ring")
    bbox: List[float] = Field(description="[min_lng, min_lat, max_lng, max_lat]")
    center: Point = Field(description="Bounding box midpoint for map centering")
    area_hectares: float = Field(description="Geodesic area on WGS84")

    class Config:
        json_schema_extra = {
            "example": {
                "geometry": {
                    "type": "Polygon",
                    "coordinates": [[[72.4501, 30.1201], [72.4562, 30.1201],
                                     [72.4562, 30.1248], [72.4501, 30.1201]]],
                },
                "bbox": [72.4501, 30.1201, 72.4562, 30.1248],
                "center": {"lat": 30.12245, "lng": 72.45315},
                "area_hectares": 15.4,
            }
        }


class StaticMapResponse(BaseModel):
    url: str


class IndexComputeResponse(BaseModel):
    """Computed indices; value None means a band had no data."""
    results: List[VegetationIndexResult]


class IndexStatsOutcome(BaseModel):
    """Statistics for one index, or the error that prevented them."""
    statistics: Optional[IndexStatistics] = None
    error: Optional[str] = None
    status: Optional[int] = None


class VegetationStatsResponse(BaseModel):
    """Per-index results; failed indices carry an error instead of statistics."""
    indices: Dict[str, IndexStatsOutcome]


class AvailableDatesResponse(BaseModel):
    dates: List[AvailableDate]


class PointStatsResponse(BaseModel):
    lat: float
    lng: float
    values: Dict[str, Optional[float]]
    health: str
    errors: Dict[str, str] = Field(default_factory=dict)


class DroneLayerResponse(BaseModel):
    layer: str
    name: str
    tile_url: str = Field(description="XYZ template with {z}/{x}/{y} placeholders")
    preview_url: str


class TransitionOption(BaseModel):
    value: str
    label: str


class MilestoneTransitionsResponse(BaseModel):
    """Normalized status and what the caller's role may change it to."""
    status: str
    display: str
    role: str
    is_terminal: bool
    is_completed_for_reporting: bool
    options: List[TransitionOption]


class VegetationHistoryResponse(BaseModel):
    """Per-index series; indices that failed appear in errors instead."""
    series: Dict[str, List[HistoryPoint]]
    errors: Dict[str, str] = Field(default_factory=dict)


class GridStatsResponse(BaseModel):
    index: str
    statistics: Optional[IndexStatistics] = Field(
        default=None,
        description="None when every pixel is no-data"
    )
    valid_pixels: int


class DroneBoundsResponse(BaseModel):
    bounds: List[float] = Field(description="[min_lng, min_lat, max_lng, max_lat]")


class DronePointResponse(BaseModel):
    lat: float
    lng: float
    value: Optional[float]


class TileServerHealthResponse(BaseModel):
    configured: bool
    healthy: bool
