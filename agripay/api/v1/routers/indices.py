"""
API router for vegetation index computation from band samples.
"""
import numpy as np
from fastapi import APIRouter

from agripay.api.dependencies import IndexCalculatorDep
from agripay.api.v1.models.requests import IndexComputeRequest, IndexGridRequest
from agripay.api.v1.models.responses import GridStatsResponse, IndexComputeResponse
from agripay.utils.raster_rendering import compute_index_array, summarize


router = APIRouter(
    prefix="/indices",
    tags=["indices"],
)


@router.post(
    "/compute",
    response_model=IndexComputeResponse,
    summary="Compute vegetation indices",
    description="""
    Compute NDVI, SAVI, NDRE, GNDVI, NDMI and LAI from reflectance values.

    Any index that depends on a band carrying the no-data value (65535 by
    default) is returned with a null value and the "No Data" label.
    """,
    responses={429: {"description": "Rate limit exceeded"}},
)
async def compute_indices(
    request: IndexComputeRequest,
    calculator: IndexCalculatorDep,
) -> IndexComputeResponse:
    return IndexComputeResponse(results=calculator.compute(request.sample, request.indices))


@router.post(
    "/grid-stats",
    response_model=GridStatsResponse,
    summary="Index statistics over a pixel grid",
    responses={
        400: {"description": "Missing band or mismatched grid shapes"},
        429: {"description": "Rate limit exceeded"},
    },
)
async def compute_grid_stats(
    request: IndexGridRequest,
    calculator: IndexCalculatorDep,
) -> GridStatsResponse:
    """
    Compute an index over band grids and summarize the valid pixels.

    No-data pixels are excluded from the statistics.
    """
    shapes = {np.shape(grid) for grid in request.bands.values()}
    if len(shapes) > 1:
        raise ValueError(f"Band grids must share one shape, got {sorted(shapes)}")

    config = calculator.config
    values = compute_index_array(
        request.index,
        {name: np.asarray(grid, dtype=np.float64) for name, grid in request.bands.items()},
        nodata=config.nodata,
        soil_factor=config.soil_factor,
        lai_k=config.lai_k,
    )
    return GridStatsResponse(
        index=request.index.value,
        statistics=summarize(values),
        valid_pixels=int(np.count_nonzero(~np.isnan(values))),
    )
