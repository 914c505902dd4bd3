"""
API request models using Pydantic.
"""
from typing import Dict, List, Optional
from pydantic import BaseModel, Field

from agripay.domain.models import BandSample, Point, VegetationIndex


class BoundaryRequest(BaseModel):
    """A farm boundary drawn on the map or imported from KML."""
    points: List[Point] = Field(
        description="Boundary vertices in drawing order"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "points": [
                    {"lat": 30.1201, "lng": 72.4501},
                    {"lat": 30.1201, "lng": 72.4562},
                    {"lat": 30.1248, "lng": 72.4562},
                    {"lat": 30.1248, "lng": 72.4501},
                ]
            }
        }


class StaticMapRequest(BoundaryRequest):
    """Boundary plus thumbnail options."""
    width: Optional[int] = Field(default=None, gt=0)
    height: Optional[int] = Field(default=None, gt=0)
    padding: Optional[int] = Field(default=None, ge=0)
    style: Optional[str] = None


class IndexComputeRequest(BaseModel):
    """Band sample and the indices to compute from it."""
    sample: BandSample
    indices: List[VegetationIndex] = Field(
        default_factory=lambda: list(VegetationIndex),
        description="Indices to compute; defaults to all"
    )


class VegetationStatsRequest(BoundaryRequest):
    """Statistics request for a farm."""
    indices: List[VegetationIndex] = Field(
        default_factory=lambda: [
            VegetationIndex.NDVI,
            VegetationIndex.SAVI,
            VegetationIndex.NDMI,
            VegetationIndex.LAI,
        ]
    )
    date: Optional[str] = Field(
        default=None,
        description="Acquisition day (YYYY-MM-DD); most recent when omitted",
        examples=["2026-09-14"],
    )
    days: Optional[int] = Field(default=None, gt=0, le=365)


class AvailableDatesRequest(BoundaryRequest):
    """Imagery date search for a farm."""
    days: Optional[int] = Field(default=None, gt=0, le=365)


class PointStatsRequest(BaseModel):
    """Click-to-value request."""
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)
    date: Optional[str] = None


class VegetationHistoryRequest(BoundaryRequest):
    """Time series request for a farm."""
    indices: List[VegetationIndex] = Field(
        default_factory=lambda: [VegetationIndex.NDVI]
    )
    days: Optional[int] = Field(default=None, gt=0, le=365)


class IndexGridRequest(BaseModel):
    """Band rasters as nested lists, keyed by semantic band name."""
    index: VegetationIndex
    bands: Dict[str, List[List[float]]] = Field(
        description="Band name (red, nir, red_edge, ...) -> 2-D pixel grid"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "index": "ndvi",
                "bands": {
                    "nir": [[0.5, 0.6], [0.55, 65535]],
                    "red": [[0.1, 0.08], [0.12, 0.1]],
                },
            }
        }


class SatelliteImageRequest(BoundaryRequest):
    """Colorized Sentinel-2 image of a farm."""
    layer: str = Field(
        default="ndvi",
        description="Index name, 'moisture' or 'true_color'",
        examples=["ndvi", "true_color"],
    )
    date: Optional[str] = Field(
        default=None,
        description="Acquisition day (YYYY-MM-DD); last 30 days when omitted",
    )
    width: int = Field(default=512, gt=0, le=2500)
    height: int = Field(default=512, gt=0, le=2500)
