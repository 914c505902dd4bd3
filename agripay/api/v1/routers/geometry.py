"""
API router for farm boundary geometry.
"""
from fastapi import APIRouter

from agripay.api.v1.models.requests import BoundaryRequest, StaticMapRequest
from agripay.api.v1.models.responses import PolygonResponse, StaticMapResponse
from agripay.config import settings
from agripay.utils.geometry import (
    bounding_box,
    centroid,
    points_to_static_map_url,
    polygon_area_hectares,
    to_polygon_geometry,
)


router = APIRouter(
    prefix="/geometry",
    tags=["geometry"],
)


@router.post(
    "/polygon",
    response_model=PolygonResponse,
    summary="Convert a boundary to GeoJSON",
    responses={
        400: {"description": "Fewer than 3 boundary points"},
        429: {"description": "Rate limit exceeded"},
    },
)
async def create_polygon(request: BoundaryRequest) -> PolygonResponse:
    """
    Convert drawn boundary points to a closed GeoJSON Polygon with its
    bounding box, map center and area.
    """
    geometry = to_polygon_geometry(request.points)
    return PolygonResponse(
        geometry=geometry,
        bbox=bounding_box(request.points),
        center=centroid(geometry),
        area_hectares=round(polygon_area_hectares(geometry), 4),
    )


@router.post(
    "/static-map",
    response_model=StaticMapResponse,
    summary="Farm thumbnail URL",
    responses={429: {"description": "Rate limit exceeded"}},
)
async def create_static_map(request: StaticMapRequest) -> StaticMapResponse:
    """
    Static map image URL for a boundary. Returns a placeholder image URL
    when no map token is configured.
    """
    url = points_to_static_map_url(
        request.points,
        settings.mapbox_access_token,
        width=request.width or settings.static_map_width,
        height=request.height or settings.static_map_height,
        padding=request.padding if request.padding is not None else settings.static_map_padding,
        style=request.style or settings.static_map_style,
    )
    return StaticMapResponse(url=url)
