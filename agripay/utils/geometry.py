"""
Geometry conversion utilities for farm boundaries.

Converts between the point-list representation used by map clients
([{lat, lng}, ...]) and GeoJSON geometry ({"type": "Polygon",
"coordinates": [[[lng, lat], ...]]}), and derives bounding boxes,
centroids, WKT and static map thumbnails from them.
"""
import json
import logging
from typing import Any, Mapping, Optional, Sequence, Union
from urllib.parse import quote

from pyproj import Geod
from shapely.geometry import Polygon, shape

from agripay.domain.errors import InvalidGeometryError
from agripay.domain.models import Point
from agripay.infrastructure.api_constants import MapboxEndpoints

logger = logging.getLogger(__name__)

PointLike = Union[Point, Mapping[str, float], Sequence[float]]

_WGS84 = Geod(ellps="WGS84")


def _as_point(value: PointLike) -> Point:
    """
    Accept Point models, {lat, lng} mappings or (lat, lng) pairs.

    Raises:
        InvalidGeometryError: If the value is none of those
    """
    if isinstance(value, Point):
        return value
    try:
        if isinstance(value, Mapping):
            return Point(lat=value["lat"], lng=value["lng"])
        lat, lng = value
        return Point(lat=lat, lng=lng)
    except (KeyError, TypeError, ValueError) as e:
        raise InvalidGeometryError(f"Malformed boundary point {value!r}: {e}") from e


def is_valid_polygon(points: Optional[Sequence[Any]]) -> bool:
    """
    Check whether a coordinate list has enough points for a polygon.

    Args:
        points: Points in either point-list or GeoJSON position form

    Returns:
        True if at least 3 points are present
    """
    if not points or not isinstance(points, (list, tuple)):
        return False
    return len(points) >= 3


def to_polygon_geometry(points: Sequence[PointLike]) -> dict:
    """
    Convert a boundary point list to a GeoJSON Polygon geometry.

    Args:
        points: Boundary vertices as (lat, lng)

    Returns:
        GeoJSON Polygon with a closed [lng, lat] ring

    Raises:
        InvalidGeometryError: If fewer than 3 points are supplied
    """
    if not points or len(points) < 3:
        raise InvalidGeometryError("A polygon requires at least 3 points")

    # GeoJSON is lng,lat order
    ring = [[p.lng, p.lat] for p in map(_as_point, points)]

    first, last = ring[0], ring[-1]
    if first[0] != last[0] or first[1] != last[1]:
        ring.append(list(first))

    return {"type": "Polygon", "coordinates": [ring]}


def _outer_ring(geometry: Optional[Mapping[str, Any]]) -> list:
    """First ring of a Polygon, or of the first polygon of a MultiPolygon."""
    if not geometry or not isinstance(geometry, Mapping):
        return []
    coordinates = geometry.get("coordinates")
    if not coordinates:
        return []
    try:
        if geometry.get("type") == "MultiPolygon":
            return list(coordinates[0][0])
        return list(coordinates[0])
    except (IndexError, TypeError, KeyError):
        return []


def to_point_list(geometry: Optional[Mapping[str, Any]]) -> list[Point]:
    """
    Convert GeoJSON Polygon/MultiPolygon geometry to a boundary point list.

    The closing position of a closed ring is dropped so the result matches
    the points the polygon was built from.

    Args:
        geometry: GeoJSON geometry, or None

    Returns:
        Boundary points as (lat, lng); empty for missing or malformed input
    """
    ring = _outer_ring(geometry)
    try:
        points = [Point(lat=position[1], lng=position[0]) for position in ring]
    except (IndexError, TypeError, ValueError):
        logger.debug("Ignoring malformed polygon coordinates")
        return []

    if len(points) > 1 and points[0] == points[-1]:
        points = points[:-1]
    return points


def bounding_box(points: Sequence[PointLike]) -> list[float]:
    """
    Compute the bounding box of a point list.

    Args:
        points: Points as (lat, lng)

    Returns:
        [min_lng, min_lat, max_lng, max_lat]

    Raises:
        InvalidGeometryError: If no points are supplied
    """
    if not points:
        raise InvalidGeometryError("Cannot compute a bounding box of no points")

    resolved = [_as_point(p) for p in points]
    lngs = [p.lng for p in resolved]
    lats = [p.lat for p in resolved]
    return [min(lngs), min(lats), max(lngs), max(lats)]


def centroid(geometry: Mapping[str, Any]) -> Point:
    """
    Center of a polygon for map viewport fitting.

    This is the midpoint of the coordinate bounding box, not an
    area-weighted centroid. Use polygon_area_hectares or shapely for
    anything that needs geometric precision.

    Args:
        geometry: GeoJSON Polygon or MultiPolygon

    Returns:
        Bounding box midpoint

    Raises:
        InvalidGeometryError: If the geometry has no coordinates
    """
    min_lng, min_lat, max_lng, max_lat = bounding_box(to_point_list(geometry))
    return Point(lat=(min_lat + max_lat) / 2, lng=(min_lng + max_lng) / 2)


def point_buffer_bbox(point: PointLike, buffer_deg: float = 0.0002) -> list[float]:
    """Small bbox around a point, roughly 22m at the equator."""
    p = _as_point(point)
    return [p.lng - buffer_deg, p.lat - buffer_deg, p.lng + buffer_deg, p.lat + buffer_deg]


def to_wkt(points: Sequence[PointLike]) -> str:
    """
    Format a boundary as closed WKT POLYGON text.

    Raises:
        InvalidGeometryError: If fewer than 3 points are supplied
    """
    geometry = to_polygon_geometry(points)
    return shape(geometry).wkt


def polygon_area_hectares(geometry: Mapping[str, Any]) -> float:
    """
    Geodesic area of a polygon on the WGS84 ellipsoid.

    Args:
        geometry: GeoJSON Polygon or MultiPolygon

    Returns:
        Area in hectares

    Raises:
        InvalidGeometryError: If the geometry has fewer than 3 points
    """
    points = to_point_list(geometry)
    if len(points) < 3:
        raise InvalidGeometryError("A polygon requires at least 3 points")

    polygon = Polygon([(p.lng, p.lat) for p in points])
    area, _ = _WGS84.geometry_area_perimeter(polygon)
    return abs(area) / 10_000


def extract_polygon_from_feature_collection(
    feature_collection: Optional[Mapping[str, Any]],
) -> Optional[dict]:
    """
    Pick the first Polygon or MultiPolygon geometry out of a FeatureCollection.

    KML imports are converted to FeatureCollections that may also carry
    placemark points and paths.

    Returns:
        The geometry, or None if no polygon feature exists
    """
    if not feature_collection or not feature_collection.get("features"):
        return None

    for feature in feature_collection["features"]:
        geometry = (feature or {}).get("geometry")
        if geometry and geometry.get("type") in ("Polygon", "MultiPolygon"):
            return geometry
    return None


def _placeholder_url(width: int, height: int, text: str) -> str:
    return MapboxEndpoints.PLACEHOLDER.format(width=width, height=height, text=text)


def static_map_image_url(
    geometry: Optional[Mapping[str, Any]],
    access_token: Optional[str],
    width: int = 350,
    height: int = 150,
    padding: int = 20,
    style: str = "satellite-v9",
) -> str:
    """
    Build a Mapbox Static Images URL that draws the farm boundary.

    No request is made. Without a token or geometry a placeholder image URL
    is returned instead of raising.

    Args:
        geometry: GeoJSON geometry to overlay
        access_token: Mapbox access token
        width: Image width in pixels
        height: Image height in pixels
        padding: Padding around the auto-fitted geometry
        style: Mapbox style id

    Returns:
        Static image URL
    """
    if not geometry or not access_token:
        return _placeholder_url(width, height, "Map+Unavailable")

    try:
        payload = json.dumps(geometry, separators=(",", ":"))
    except (TypeError, ValueError):
        logger.error("Geometry could not be serialized for static map URL")
        return _placeholder_url(width, height, "Map+Error")

    encoded = quote(payload, safe="!'()*-._~")
    return MapboxEndpoints.STATIC_IMAGE.format(
        style=style,
        geojson=encoded,
        width=width,
        height=height,
        padding=padding,
        token=access_token,
    )


def points_to_static_map_url(
    points: Sequence[PointLike],
    access_token: Optional[str],
    width: int = 350,
    height: int = 150,
    padding: int = 20,
    style: str = "satellite-v9",
) -> str:
    """Static map URL straight from boundary points; placeholder if invalid."""
    try:
        geometry = to_polygon_geometry(points)
    except InvalidGeometryError as e:
        logger.warning(f"Cannot build static map URL: {e}")
        return _placeholder_url(width, height, "Map+Error")
    return static_map_image_url(geometry, access_token, width, height, padding, style)
