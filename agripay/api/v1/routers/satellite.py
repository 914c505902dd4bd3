"""
API router for Sentinel-2 vegetation data.
"""
from dataclasses import asdict

from fastapi import APIRouter, Response

from agripay.api.dependencies import VegetationServiceDep
from agripay.api.v1.models.requests import (
    AvailableDatesRequest,
    PointStatsRequest,
    SatelliteImageRequest,
    VegetationHistoryRequest,
    VegetationStatsRequest,
)
from agripay.api.v1.models.responses import (
    AvailableDatesResponse,
    IndexStatsOutcome,
    PointStatsResponse,
    VegetationHistoryResponse,
    VegetationStatsResponse,
)


router = APIRouter(
    prefix="/satellite",
    tags=["satellite"],
)

ERROR_RESPONSES = {
    400: {"description": "Invalid boundary or date"},
    429: {"description": "Rate limit exceeded"},
    502: {"description": "Sentinel Hub request failed"},
    503: {"description": "Sentinel Hub credentials not configured"},
}


@router.post(
    "/available-dates",
    response_model=AvailableDatesResponse,
    summary="List imagery dates",
    responses=ERROR_RESPONSES,
)
async def get_available_dates(
    request: AvailableDatesRequest,
    service: VegetationServiceDep,
) -> AvailableDatesResponse:
    """
    Acquisition days over the farm with the clearest scene's cloud cover
    and a quality rating, newest first.
    """
    dates = await service.get_available_dates(request.points, request.days)
    return AvailableDatesResponse(dates=dates)


@router.post(
    "/vegetation-stats",
    response_model=VegetationStatsResponse,
    summary="Vegetation index statistics",
    description="""
    Mean, min, max, standard deviation and quartiles per requested index.

    Indices are fetched independently: a failed index reports its error
    while the others still return statistics.
    """,
    responses=ERROR_RESPONSES,
)
async def get_vegetation_stats(
    request: VegetationStatsRequest,
    service: VegetationServiceDep,
) -> VegetationStatsResponse:
    outcomes = await service.get_vegetation_stats(
        request.points,
        request.indices,
        date=request.date,
        days=request.days,
    )
    return VegetationStatsResponse(
        indices={index: IndexStatsOutcome(**asdict(outcome)) for index, outcome in outcomes.items()}
    )


@router.post(
    "/point-stats",
    response_model=PointStatsResponse,
    summary="Index values at a point",
    responses=ERROR_RESPONSES,
)
async def get_point_stats(
    request: PointStatsRequest,
    service: VegetationServiceDep,
) -> PointStatsResponse:
    """NDVI, SAVI and moisture around a clicked point with a health label."""
    stats = await service.get_point_stats(request.lat, request.lng, request.date)
    return PointStatsResponse(**asdict(stats))


@router.post(
    "/history",
    response_model=VegetationHistoryResponse,
    summary="Vegetation time series",
    responses=ERROR_RESPONSES,
)
async def get_vegetation_history(
    request: VegetationHistoryRequest,
    service: VegetationServiceDep,
) -> VegetationHistoryResponse:
    """Five-day mean, min, max and median per index for trend charts."""
    results = await service.get_vegetation_history(request.points, request.indices, request.days)
    response = VegetationHistoryResponse(series={})
    for index, result in results.items():
        if isinstance(result, str):
            response.errors[index] = result
        else:
            response.series[index] = result
    return response


@router.post(
    "/image",
    response_class=Response,
    summary="Colorized imagery",
    description="""
    PNG of the farm's bounding box from Sentinel-2, colored with the
    index's threshold ramp. Layers: any index, moisture or true_color.
    """,
    responses={200: {"content": {"image/png": {}}}, **ERROR_RESPONSES},
)
async def get_satellite_image(
    request: SatelliteImageRequest,
    service: VegetationServiceDep,
) -> Response:
    image = await service.get_index_image(
        request.points,
        request.layer,
        date=request.date,
        width=request.width,
        height=request.height,
    )
    return Response(content=image, media_type="image/png")
