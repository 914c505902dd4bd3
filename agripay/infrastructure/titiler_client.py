"""
Infrastructure layer: TiTiler client for drone COG metadata and values.
"""
import logging
from typing import Any, Dict, List, Optional

import httpx

from agripay.config import settings
from agripay.domain.errors import ConfigurationError, RemoteServiceError
from agripay.infrastructure.api_constants import APIConstants, TiTilerEndpoints
from agripay.infrastructure.request_builder import resolve_raster_url

logger = logging.getLogger(__name__)


class TiTilerClient:
    """
    Client for a TiTiler server hosting drone orthomosaics.

    Tile and preview URLs are built by the request builder and fetched by
    the map client directly; this client covers the JSON endpoints.
    """

    def __init__(self, base_url: Optional[str] = None, data_prefix: Optional[str] = None):
        self.base_url = (base_url if base_url is not None else settings.titiler_base_url).rstrip("/")
        self.data_prefix = data_prefix or settings.titiler_data_prefix
        self.client = httpx.AsyncClient(timeout=APIConstants.DEFAULT_TIMEOUT)

    async def __aenter__(self) -> "TiTilerClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    @property
    def is_configured(self) -> bool:
        return bool(self.base_url)

    @property
    def is_local(self) -> bool:
        return "localhost" in self.base_url

    def ensure_configured(self) -> None:
        """
        Raises:
            ConfigurationError: If no TiTiler URL is configured
        """
        if not self.is_configured:
            raise ConfigurationError("TiTiler is not configured: missing TITILER_BASE_URL")

    async def _get(self, endpoint: str, raster_ref: str) -> Dict[str, Any]:
        self.ensure_configured()
        params = {"url": resolve_raster_url(raster_ref, self.data_prefix)}

        try:
            response = await self.client.get(f"{self.base_url}{endpoint}", params=params)
        except httpx.RequestError as e:
            raise RemoteServiceError(f"TiTiler request error: {str(e)}") from e

        if response.is_error:
            logger.error(f"TiTiler error {response.status_code} for {endpoint}: {response.text}")
            raise RemoteServiceError(
                f"TiTiler request failed: {response.text}",
                status=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise RemoteServiceError("TiTiler returned a malformed JSON body", status=response.status_code) from e

    async def get_info(self, raster_ref: str) -> Dict[str, Any]:
        """Raster metadata: CRS, dimensions, bands and bounds."""
        return await self._get(TiTilerEndpoints.INFO, raster_ref)

    async def get_bounds(self, raster_ref: str) -> List[float]:
        """
        Raster bounds for fitting the map view.

        TiTiler has no separate bounds endpoint; they come with the info
        response.

        Returns:
            [min_lng, min_lat, max_lng, max_lat]
        """
        info = await self.get_info(raster_ref)
        bounds = info.get("bounds")
        if not bounds or len(bounds) != 4:
            raise RemoteServiceError("TiTiler info response has no bounds")
        return list(bounds)

    async def get_statistics(self, raster_ref: str) -> Dict[str, Any]:
        """Per-band min, max, mean, std and percentiles."""
        return await self._get(TiTilerEndpoints.STATISTICS, raster_ref)

    async def get_point_value(self, raster_ref: str, lat: float, lon: float) -> Optional[float]:
        """
        First band value at a coordinate.

        Returns:
            The value, or None where the raster has no data
        """
        data = await self._get(TiTilerEndpoints.get_point(lat, lon), raster_ref)
        values = data.get("values") or []
        if not values or values[0] is None:
            return None
        return float(values[0])

    async def check_health(self) -> bool:
        """Whether the tile server answers its health endpoint."""
        if not self.is_configured:
            return False
        try:
            response = await self.client.get(
                f"{self.base_url}{TiTilerEndpoints.HEALTH}",
                timeout=settings.titiler_health_timeout,
            )
        except httpx.RequestError as e:
            logger.warning(f"TiTiler health check failed: {e}")
            return False
        return response.is_success


# Singleton instance
_titiler_client: Optional[TiTilerClient] = None


def get_titiler_client() -> TiTilerClient:
    """
    Get or create the shared TiTiler client instance.

    Returns:
        TiTilerClient instance
    """
    global _titiler_client
    if _titiler_client is None:
        _titiler_client = TiTilerClient()
    return _titiler_client
