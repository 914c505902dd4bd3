"""
API endpoint constants and configuration.

This module contains all external API endpoint paths and related constants.
Centralizing these values makes it easy to swap out endpoints or update API versions.
"""


# Sentinel Hub API Endpoints
class SentinelHubEndpoints:
    """Sentinel Hub endpoint paths, relative to the configured base URL."""

    CATALOG_SEARCH = "/api/v1/catalog/1.0.0/search"
    PROCESS = "/api/v1/process"
    STATISTICS = "/api/v1/statistics"

    # Collection and CRS identifiers used in request bodies
    COLLECTION = "sentinel-2-l2a"
    CRS_WGS84 = "http://www.opengis.net/def/crs/EPSG/0/4326"


# TiTiler API Endpoints
class TiTilerEndpoints:
    """TiTiler COG endpoint paths."""

    COG_BASE = "/cog"

    # TiTiler requires the TileMatrixSetId in the tile path
    TILES = f"{COG_BASE}/tiles/WebMercatorQuad/{{z}}/{{x}}/{{y}}"
    PREVIEW = f"{COG_BASE}/preview"
    INFO = f"{COG_BASE}/info"
    STATISTICS = f"{COG_BASE}/statistics"
    POINT = f"{COG_BASE}/point/{{lon}},{{lat}}"
    HEALTH = "/healthz"

    @classmethod
    def get_point(cls, lat: float, lon: float) -> str:
        """
        Get the point-value endpoint for a coordinate.

        Args:
            lat: Latitude in degrees
            lon: Longitude in degrees

        Returns:
            Formatted endpoint path
        """
        return cls.POINT.format(lon=lon, lat=lat)


# Mapbox Static Images
class MapboxEndpoints:
    """Static map URL templates."""

    STATIC_IMAGE = (
        "https://api.mapbox.com/styles/v1/mapbox/{style}/static/geojson({geojson})"
        "/auto/{width}x{height}?padding={padding}&access_token={token}"
    )
    PLACEHOLDER = "https://via.placeholder.com/{width}x{height}?text={text}"


# API Configuration Constants
class APIConstants:
    """General API configuration constants."""

    # HTTP Headers
    CONTENT_TYPE_JSON = "application/json"
    ACCEPT_PNG = "image/png"

    # Timeouts (in seconds)
    DEFAULT_TIMEOUT = 30.0
    LONG_TIMEOUT = 60.0

    # Catalog search page sizes
    DATES_SEARCH_LIMIT = 100

    # Statistical API sampling resolution (meters, Sentinel-2 native)
    RESOLUTION_M = 10

    # Default preview size (pixels)
    PREVIEW_MAX_SIZE = 512
