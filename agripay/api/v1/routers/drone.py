"""
API router for drone orthomosaic layers served by TiTiler.
"""
from fastapi import APIRouter, Query

from agripay.api.dependencies import TiTilerClientDep, VegetationServiceDep
from agripay.api.v1.models.responses import (
    DroneBoundsResponse,
    DroneLayerResponse,
    DronePointResponse,
    TileServerHealthResponse,
)
from agripay.infrastructure.request_builder import LAYER_CATALOG


router = APIRouter(
    prefix="/drone",
    tags=["drone"],
)

RasterQuery = Query(
    ...,
    min_length=1,
    description="Raster filename under the data prefix, or an absolute URL",
    examples=["farm_42_2026-09-01.tif"],
)


@router.get(
    "/layers/{layer}",
    response_model=DroneLayerResponse,
    summary="Tile URLs for a drone layer",
    description=(
        "XYZ tile template and preview image URL for one of the drone layers: "
        f"{', '.join(LAYER_CATALOG)}.\n\n"
        "Band math uses the MicaSense RedEdge-MX band order."
    ),
    responses={
        400: {"description": "Unknown layer"},
        503: {"description": "TiTiler not configured"},
    },
)
async def get_drone_layer(
    layer: str,
    service: VegetationServiceDep,
    raster: str = RasterQuery,
) -> DroneLayerResponse:
    result = service.get_drone_layer(raster, layer)
    return DroneLayerResponse(
        layer=result.layer,
        name=result.name,
        tile_url=result.tile_url,
        preview_url=result.preview_url,
    )


@router.get(
    "/bounds",
    response_model=DroneBoundsResponse,
    summary="Raster bounds for fitting the map",
    responses={
        502: {"description": "TiTiler request failed"},
        503: {"description": "TiTiler not configured"},
    },
)
async def get_drone_bounds(
    client: TiTilerClientDep,
    raster: str = RasterQuery,
) -> DroneBoundsResponse:
    return DroneBoundsResponse(bounds=await client.get_bounds(raster))


@router.get(
    "/point",
    response_model=DronePointResponse,
    summary="Raster value at a coordinate",
    responses={
        502: {"description": "TiTiler request failed"},
        503: {"description": "TiTiler not configured"},
    },
)
async def get_drone_point(
    client: TiTilerClientDep,
    raster: str = RasterQuery,
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
) -> DronePointResponse:
    """First band value at a point; null where the raster has no data."""
    value = await client.get_point_value(raster, lat, lng)
    return DronePointResponse(lat=lat, lng=lng, value=value)


@router.get(
    "/health",
    response_model=TileServerHealthResponse,
    summary="Tile server health",
)
async def get_tile_server_health(client: TiTilerClientDep) -> TileServerHealthResponse:
    return TileServerHealthResponse(
        configured=client.is_configured,
        healthy=await client.check_health(),
    )
