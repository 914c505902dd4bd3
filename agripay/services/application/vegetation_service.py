"""
Application service: Orchestration layer for satellite and drone vegetation data.
"""
import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

from agripay.config import settings
from agripay.domain.errors import RemoteServiceError
from agripay.domain.models import (
    AvailableDate,
    HistoryPoint,
    IndexStatistics,
    Point,
    VegetationIndex,
)
from agripay.infrastructure.band_maps import BandMap, MICASENSE_REDEDGE_MX
from agripay.infrastructure.request_builder import (
    build_catalog_search_request,
    build_preview_url,
    build_process_request,
    build_statistics_request,
    build_tile_url_template,
    build_time_range,
    max_cloud_coverage_for,
    resolve_layer,
)
from agripay.infrastructure.sentinel_hub_client import (
    SentinelHubClient,
    parse_available_dates,
    parse_history,
    parse_latest_statistics,
)
from agripay.services.domain.vegetation_indices import health_label
from agripay.utils.geometry import bounding_box, point_buffer_bbox, to_polygon_geometry
from agripay.utils.settle import Settled, settle_all

logger = logging.getLogger(__name__)

POINT_STATS_INDICES = (VegetationIndex.NDVI, VegetationIndex.SAVI, VegetationIndex.NDMI)


@dataclass
class IndexOutcome:
    """Statistics for one index, or why they could not be obtained."""
    statistics: Optional[IndexStatistics] = None
    error: Optional[str] = None
    status: Optional[int] = None


@dataclass
class PointStats:
    """Index means around a clicked point."""
    lat: float
    lng: float
    values: dict[str, Optional[float]] = field(default_factory=dict)
    health: str = "No Data"
    errors: dict[str, str] = field(default_factory=dict)


@dataclass
class DroneLayer:
    """URLs for rendering one drone layer."""
    layer: str
    name: str
    tile_url: str
    preview_url: str


def _outcome(settled: Settled) -> IndexOutcome:
    if settled.ok:
        return IndexOutcome(statistics=settled.value)
    error = settled.error
    return IndexOutcome(
        error=getattr(error, "message", str(error)),
        status=getattr(error, "status", None),
    )


class VegetationService:
    """
    Application service for vegetation monitoring.

    Orchestrates request building, remote calls and response parsing.
    Each index is requested independently so one failing extraction does
    not hide the others.
    """

    def __init__(
        self,
        sentinel_client: SentinelHubClient,
        band_map: BandMap = MICASENSE_REDEDGE_MX,
    ):
        """
        Initialize the service with dependencies.

        Args:
            sentinel_client: Sentinel Hub client for satellite data
            band_map: Sensor profile for drone layers
        """
        self.sentinel_client = sentinel_client
        self.band_map = band_map

    async def get_available_dates(
        self,
        points: Sequence[Point],
        days: Optional[int] = None,
    ) -> list[AvailableDate]:
        """
        List acquisition days with their cloud cover for a farm.

        Args:
            points: Farm boundary
            days: Days to look back

        Returns:
            Available dates, newest first

        Raises:
            InvalidGeometryError: If the boundary is empty
            ConfigurationError: If Sentinel Hub is not configured
            RemoteServiceError: If the catalog search fails
        """
        bbox = bounding_box(points)
        time_range = build_time_range(None, days or settings.available_dates_lookback_days)
        body = build_catalog_search_request(bbox, time_range)

        data = await self.sentinel_client.search_catalog(body)
        dates = parse_available_dates(data)
        logger.info(f"Found {len(dates)} imagery dates")
        return dates

    async def _fetch_statistics(self, body: dict, index: str) -> IndexStatistics:
        data = await self.sentinel_client.get_statistics(body)
        stats = parse_latest_statistics(data, index)
        if stats is None:
            raise RemoteServiceError(f"No {index} statistics in response")
        return stats

    async def get_vegetation_stats(
        self,
        points: Sequence[Point],
        indices: Iterable[VegetationIndex],
        date: Optional[str] = None,
        days: Optional[int] = None,
    ) -> dict[str, IndexOutcome]:
        """
        Fetch statistics for several indices over a farm.

        Args:
            points: Farm boundary
            indices: Indices to fetch; duplicates are ignored
            date: Specific acquisition day, or None for most recent
            days: Lookback when no date is given

        Returns:
            Index name -> statistics or error

        Raises:
            InvalidGeometryError: If the boundary has fewer than 3 points
            ConfigurationError: If Sentinel Hub is not configured
        """
        self.sentinel_client.ensure_configured()

        geometry = to_polygon_geometry(points)
        time_range = build_time_range(date, days or settings.default_lookback_days)
        requests = build_statistics_request(
            geometry,
            time_range,
            indices,
            max_cloud_coverage=max_cloud_coverage_for(date, settings.default_max_cloud_coverage),
            soil_factor=settings.savi_soil_factor,
            lai_k=settings.lai_extinction_coefficient,
        )

        settled = await settle_all({
            index: self._fetch_statistics(body, index)
            for index, body in requests.items()
        })

        outcomes = {index: _outcome(result) for index, result in settled.items()}
        failed = [index for index, outcome in outcomes.items() if outcome.error]
        logger.info(f"Vegetation stats: {len(outcomes) - len(failed)} ok, failed={failed}")
        return outcomes

    async def get_point_stats(
        self,
        lat: float,
        lng: float,
        date: Optional[str] = None,
    ) -> PointStats:
        """
        Mean NDVI, SAVI and moisture in a few pixels around a point.

        Missing values stay None and the health label becomes "No Data".

        Raises:
            ConfigurationError: If Sentinel Hub is not configured
        """
        self.sentinel_client.ensure_configured()

        bbox = point_buffer_bbox(Point(lat=lat, lng=lng))
        time_range = build_time_range(date, settings.default_lookback_days)
        requests = build_statistics_request(
            bbox,
            time_range,
            POINT_STATS_INDICES,
            aggregation_interval="P1D",
            max_cloud_coverage=None,
            mosaicking_order="leastRecent",
            soil_factor=settings.savi_soil_factor,
        )

        settled = await settle_all({
            index: self._fetch_statistics(body, index)
            for index, body in requests.items()
        })

        result = PointStats(lat=lat, lng=lng)
        for index, outcome in settled.items():
            if outcome.ok and outcome.value.mean is not None:
                result.values[index] = round(outcome.value.mean, 3)
            else:
                result.values[index] = None
                if outcome.error is not None:
                    result.errors[index] = str(outcome.error)

        result.health = health_label(result.values.get(VegetationIndex.NDVI.value)).value
        return result

    async def get_vegetation_history(
        self,
        points: Sequence[Point],
        indices: Iterable[VegetationIndex],
        days: Optional[int] = None,
    ) -> dict[str, list[HistoryPoint] | str]:
        """
        Five-day interval time series per index.

        Returns:
            Index name -> series, or the error message for failed indices
        """
        self.sentinel_client.ensure_configured()

        geometry = to_polygon_geometry(points)
        time_range = build_time_range(None, days or settings.history_lookback_days)
        requests = build_statistics_request(
            geometry,
            time_range,
            indices,
            aggregation_interval="P5D",
            max_cloud_coverage=50,
            percentiles=(50,),
            soil_factor=settings.savi_soil_factor,
            lai_k=settings.lai_extinction_coefficient,
        )

        async def fetch(body: dict, index: str) -> list[HistoryPoint]:
            return parse_history(await self.sentinel_client.get_statistics(body), index)

        settled = await settle_all({index: fetch(body, index) for index, body in requests.items()})
        return {
            index: outcome.value if outcome.ok else str(outcome.error)
            for index, outcome in settled.items()
        }

    async def get_index_image(
        self,
        points: Sequence[Point],
        layer: str,
        date: Optional[str] = None,
        width: int = 512,
        height: int = 512,
    ) -> bytes:
        """
        Colorized PNG of one layer over the farm's bounding box.

        Raises:
            ValueError: If the layer is unknown
            InvalidGeometryError: If the boundary is empty
            ConfigurationError: If Sentinel Hub is not configured
            RemoteServiceError: If the Process API request fails
        """
        self.sentinel_client.ensure_configured()

        body = build_process_request(
            bounding_box(points),
            build_time_range(date, settings.default_lookback_days),
            layer,
            width=width,
            height=height,
            max_cloud_coverage=max_cloud_coverage_for(date, settings.default_max_cloud_coverage),
            soil_factor=settings.savi_soil_factor,
            lai_k=settings.lai_extinction_coefficient,
        )
        image = await self.sentinel_client.get_image(body)
        logger.info(f"Rendered {layer} image ({len(image)} bytes)")
        return image

    def get_drone_layer(self, raster_ref: str, layer: str) -> DroneLayer:
        """
        Tile template and preview URL for a drone orthomosaic layer.

        Raises:
            ValueError: If the layer is unknown
            ConfigurationError: If TiTiler is not configured
        """
        options = resolve_layer(layer, self.band_map)
        kwargs = dict(
            colormap=options.colormap,
            rescale=options.rescale,
            band_indexes=options.band_indexes,
            expression=options.expression,
            nodata=options.nodata,
            data_prefix=settings.titiler_data_prefix,
        )
        return DroneLayer(
            layer=layer,
            name=options.name,
            tile_url=build_tile_url_template(raster_ref, settings.titiler_base_url, **kwargs),
            preview_url=build_preview_url(raster_ref, settings.titiler_base_url, **kwargs),
        )
