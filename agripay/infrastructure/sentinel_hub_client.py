"""
Infrastructure layer: Sentinel Hub API client with retry logic.
"""
import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import httpx
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

from agripay.config import settings
from agripay.domain.errors import ConfigurationError, RemoteServiceError
from agripay.domain.models import AvailableDate, HistoryPoint, IndexStatistics
from agripay.infrastructure.api_constants import APIConstants, SentinelHubEndpoints
from agripay.infrastructure.token_cache import AccessTokenCache
from agripay.services.domain.vegetation_indices import quality_from_cloud_cover

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_LIFETIME = 3600


class SentinelHubClient:
    """
    Client for the Sentinel Hub Catalog, Statistical and Process APIs.

    Transport errors and 5xx responses are retried with exponential
    backoff; everything else that fails becomes a RemoteServiceError.
    The OAuth token lives in this instance's AccessTokenCache.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        token_url: Optional[str] = None,
        token_cache: Optional[AccessTokenCache] = None,
    ):
        """
        Initialize the API client with configuration.

        Args:
            base_url: Sentinel Hub services URL (defaults to settings)
            client_id: OAuth client id (defaults to settings)
            client_secret: OAuth client secret (defaults to settings)
            token_url: OAuth token endpoint (defaults to settings)
            token_cache: Token cache; a private one is created if omitted
        """
        self.base_url = base_url or settings.sentinel_hub_base_url
        self.client_id = client_id if client_id is not None else settings.sentinel_hub_client_id
        self.client_secret = (
            client_secret if client_secret is not None else settings.sentinel_hub_client_secret
        )
        self.token_url = token_url or settings.sentinel_hub_token_url
        self.token_cache = token_cache or AccessTokenCache(
            safety_buffer=timedelta(seconds=settings.token_safety_buffer_seconds)
        )
        self._token_lock = asyncio.Lock()
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={"accept": APIConstants.CONTENT_TYPE_JSON},
            timeout=APIConstants.DEFAULT_TIMEOUT,
        )

    async def __aenter__(self) -> "SentinelHubClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    def ensure_configured(self) -> None:
        """
        Fail before any network attempt when credentials are missing.

        Raises:
            ConfigurationError: If base URL, client id or secret is empty
        """
        missing = [
            name for name, value in (
                ("SENTINEL_HUB_BASE_URL", self.base_url),
                ("SENTINEL_HUB_CLIENT_ID", self.client_id),
                ("SENTINEL_HUB_CLIENT_SECRET", self.client_secret),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(f"Sentinel Hub is not configured: missing {', '.join(missing)}")

    @retry(
        stop=stop_after_attempt(settings.max_retry_attempts),
        wait=wait_exponential(
            multiplier=settings.retry_backoff_multiplier,
            min=settings.retry_min_wait,
            max=settings.retry_max_wait,
        ),
        retry=retry_if_exception_type((httpx.HTTPStatusError, httpx.RequestError)),
        reraise=True,
    )
    async def _send(self, method: str, endpoint: str, **kwargs) -> httpx.Response:
        response = await self.client.request(method, endpoint, **kwargs)
        # Retry on server errors (5xx) only
        if response.status_code >= 500:
            response.raise_for_status()
        return response

    async def _request(self, method: str, endpoint: str, **kwargs) -> httpx.Response:
        """
        Send a request with retry logic and return the successful response.

        Raises:
            RemoteServiceError: If the request fails after retries or
                returns a client error
        """
        try:
            response = await self._send(method, endpoint, **kwargs)
        except httpx.HTTPStatusError as e:
            raise RemoteServiceError(
                f"API request failed: {e.response.text}",
                status=e.response.status_code,
            ) from e
        except httpx.RequestError as e:
            raise RemoteServiceError(f"API request error: {str(e)}") from e

        if response.is_error:
            logger.error(f"Sentinel Hub error {response.status_code} for {endpoint}: {response.text}")
            raise RemoteServiceError(
                f"API request failed: {response.text}",
                status=response.status_code,
            )
        return response

    async def _make_request(
        self,
        method: str,
        endpoint: str,
        **kwargs
    ) -> Dict[str, Any]:
        """
        Make an HTTP request with retry logic.

        Args:
            method: HTTP method (GET, POST, etc.)
            endpoint: API endpoint path or absolute URL
            **kwargs: Additional arguments for the request

        Returns:
            Response data as dictionary

        Raises:
            RemoteServiceError: If the request fails after retries, returns
                a client error, or the body is not JSON
        """
        response = await self._request(method, endpoint, **kwargs)
        try:
            return response.json()
        except ValueError as e:
            raise RemoteServiceError(
                "API returned a malformed JSON body",
                status=response.status_code,
            ) from e

    async def get_access_token(self) -> str:
        """
        Get a bearer token, fetching a new one when the cached one is stale.

        Returns:
            Access token

        Raises:
            ConfigurationError: If credentials are missing
            RemoteServiceError: If the token endpoint fails
        """
        self.ensure_configured()

        token = self.token_cache.get()
        if token:
            return token

        async with self._token_lock:
            # Another request may have refreshed it while we waited
            token = self.token_cache.get()
            if token:
                return token

            data = await self._make_request(
                "POST",
                self.token_url,
                data={
                    "grant_type": "client_credentials",
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                },
            )
            if not data.get("access_token"):
                raise RemoteServiceError("Token response did not contain an access token")

            self.token_cache.store(
                data["access_token"],
                data.get("expires_in", DEFAULT_TOKEN_LIFETIME),
            )
            logger.info("Obtained new Sentinel Hub access token")
            return data["access_token"]

    async def _authorized_post(self, endpoint: str, body: Dict[str, Any]) -> Dict[str, Any]:
        token = await self.get_access_token()
        return await self._make_request(
            "POST",
            endpoint,
            json=body,
            headers={
                "Authorization": f"Bearer {token}",
                "Content-Type": APIConstants.CONTENT_TYPE_JSON,
            },
        )

    async def search_catalog(self, body: Dict[str, Any]) -> Dict[str, Any]:
        """
        Search Sentinel-2 scenes.

        Args:
            body: Catalog search body from build_catalog_search_request

        Returns:
            GeoJSON FeatureCollection of scenes
        """
        return await self._authorized_post(SentinelHubEndpoints.CATALOG_SEARCH, body)

    async def get_statistics(self, body: Dict[str, Any]) -> Dict[str, Any]:
        """
        Run a Statistical API request.

        Args:
            body: Request body from build_statistics_request

        Returns:
            Raw statistics response
        """
        return await self._authorized_post(SentinelHubEndpoints.STATISTICS, body)

    async def get_image(self, body: Dict[str, Any]) -> bytes:
        """
        Render an image with the Process API.

        Args:
            body: Request body from build_process_request

        Returns:
            PNG bytes
        """
        token = await self.get_access_token()
        response = await self._request(
            "POST",
            SentinelHubEndpoints.PROCESS,
            json=body,
            headers={
                "Authorization": f"Bearer {token}",
                "Content-Type": APIConstants.CONTENT_TYPE_JSON,
                "Accept": APIConstants.ACCEPT_PNG,
            },
            timeout=APIConstants.LONG_TIMEOUT,
        )
        return response.content


# ============================================================
# Response Parsing
# ============================================================

def parse_available_dates(data: Dict[str, Any]) -> List[AvailableDate]:
    """
    Reduce catalog features to one entry per acquisition day.

    Keeps the clearest scene per day, rounds cloud cover to one decimal
    and sorts newest first. Scenes without cloud metadata count as fully
    clouded.

    Args:
        data: Catalog search response

    Returns:
        Available dates
    """
    by_day: Dict[str, float] = {}
    for feature in data.get("features") or []:
        properties = (feature or {}).get("properties") or {}
        acquired = properties.get("datetime")
        if not acquired:
            continue
        day = acquired.split("T")[0]
        cloud_cover = properties.get("eo:cloud_cover")
        if cloud_cover is None:
            cloud_cover = 100.0
        if day not in by_day or cloud_cover < by_day[day]:
            by_day[day] = cloud_cover

    dates = [
        AvailableDate(
            date=day,
            cloud_cover=round(cloud_cover, 1),
            quality=quality_from_cloud_cover(cloud_cover),
        )
        for day, cloud_cover in by_day.items()
    ]
    dates.sort(key=lambda d: d.date, reverse=True)
    return dates


def _band_stats(interval: Dict[str, Any], output_id: str) -> Optional[Dict[str, Any]]:
    try:
        return interval["outputs"][output_id]["bands"]["B0"]["stats"]
    except (KeyError, TypeError):
        return None


def _finite(value: Any) -> Optional[float]:
    # The Statistical API reports "NaN" for intervals with no valid pixels
    if value is None or isinstance(value, str):
        return None
    return float(value)


def parse_latest_statistics(data: Dict[str, Any], output_id: str) -> Optional[IndexStatistics]:
    """
    Extract statistics for one output from the most recent interval.

    Args:
        data: Statistical API response
        output_id: Evalscript output id (the index name)

    Returns:
        IndexStatistics, or None when no interval carries that output

    Raises:
        RemoteServiceError: If the response has no 'data' list
    """
    intervals = data.get("data")
    if not isinstance(intervals, list):
        raise RemoteServiceError("Statistics response is missing 'data'")

    for interval in reversed(intervals):
        stats = _band_stats(interval, output_id)
        if stats is None:
            continue
        percentiles = stats.get("percentiles") or {}
        return IndexStatistics(
            mean=_finite(stats.get("mean")),
            min=_finite(stats.get("min")),
            max=_finite(stats.get("max")),
            std_dev=_finite(stats.get("stDev")),
            median=_finite(percentiles.get("p50")),
            p25=_finite(percentiles.get("p25")),
            p75=_finite(percentiles.get("p75")),
            acquisition_date=(interval.get("interval") or {}).get("from"),
        )
    return None


def parse_history(data: Dict[str, Any], output_id: str) -> List[HistoryPoint]:
    """
    Turn every interval of a Statistical API response into a time series point.

    Intervals without a mean for the output are skipped.
    """
    history = []
    for interval in data.get("data") or []:
        start = (interval.get("interval") or {}).get("from")
        stats = _band_stats(interval, output_id)
        if not start or stats is None or _finite(stats.get("mean")) is None:
            continue
        percentiles = stats.get("percentiles") or {}
        timestamp = datetime.fromisoformat(start.replace("Z", "+00:00")).timestamp()
        history.append(HistoryPoint(
            date=start,
            timestamp=timestamp,
            mean=_finite(stats.get("mean")),
            min=_finite(stats.get("min")),
            max=_finite(stats.get("max")),
            median=_finite(percentiles.get("p50")),
        ))
    return history


# Singleton instance
_sentinel_client: Optional[SentinelHubClient] = None


def get_sentinel_hub_client() -> SentinelHubClient:
    """
    Get or create the shared Sentinel Hub client instance.

    Returns:
        SentinelHubClient instance
    """
    global _sentinel_client
    if _sentinel_client is None:
        _sentinel_client = SentinelHubClient()
    return _sentinel_client
