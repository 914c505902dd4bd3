"""
Infrastructure layer: Request construction for remote-sensing APIs.

Builds, without performing any I/O:
- Acquisition time ranges and cloud-cover constraints
- Band-math expressions from per-sensor band maps
- TiTiler tile and preview URLs for drone COGs
- Sentinel Hub Catalog, Statistical and Process API request bodies
"""
import logging
from dataclasses import dataclass
from datetime import date as date_type, datetime, timedelta, timezone
from typing import Iterable, Mapping, Optional, Sequence, Union

import httpx

from agripay.domain.errors import ConfigurationError
from agripay.domain.models import TimeRange, VegetationIndex
from agripay.infrastructure.api_constants import (
    APIConstants,
    SentinelHubEndpoints,
    TiTilerEndpoints,
)
from agripay.infrastructure.band_maps import (
    BandMap,
    MICASENSE_REDEDGE_MX,
    SENTINEL_2_L2A,
)
from agripay.services.domain.vegetation_indices import LAI_MAX
from agripay.utils.raster_rendering import COLOR_RAMPS

logger = logging.getLogger(__name__)

DateLike = Union[str, date_type]

# Semantic bands each index reads
INDEX_BANDS = {
    VegetationIndex.NDVI: ("nir", "red"),
    VegetationIndex.SAVI: ("nir", "red"),
    VegetationIndex.NDRE: ("nir", "red_edge"),
    VegetationIndex.GNDVI: ("nir", "green"),
    VegetationIndex.NDMI: ("nir", "swir"),
    VegetationIndex.LAI: ("nir", "red"),
}

NORMALIZED_DIFFERENCE_TEMPLATE = "({a}-{b})/({a}+{b})"
SAVI_TEMPLATE = "(({nir}-{red})/({nir}+{red}+{soil}))*{gain}"


# ============================================================
# Time Ranges
# ============================================================

def _utc_iso(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def build_time_range(
    date: Optional[DateLike] = None,
    fallback_days: int = 30,
    now: Optional[datetime] = None,
) -> TimeRange:
    """
    Build the acquisition window for an imagery request.

    Args:
        date: Specific acquisition day (YYYY-MM-DD), or None for most recent
        fallback_days: Days to look back when no date is given
        now: Current time, for tests

    Returns:
        The whole UTC day when a date is given, else [now - fallback_days, now]

    Raises:
        ValueError: If date is not a valid ISO calendar date
    """
    if date:
        if isinstance(date, datetime):
            # Only the UTC calendar day counts, never the time of day
            day = date.astimezone(timezone.utc).date() if date.tzinfo else date.date()
        elif isinstance(date, date_type):
            day = date
        else:
            day = date_type.fromisoformat(date)
        day_str = day.isoformat()
        return TimeRange(**{"from": f"{day_str}T00:00:00Z", "to": f"{day_str}T23:59:59Z"})

    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    start = now - timedelta(days=fallback_days)
    return TimeRange(**{"from": _utc_iso(start), "to": _utc_iso(now)})


def max_cloud_coverage_for(date: Optional[DateLike], default: int = 30) -> int:
    """
    Cloud-cover ceiling for a request.

    A user who picked a specific date gets that scene whatever its cloud
    cover; otherwise cloudy scenes are filtered out.
    """
    return 100 if date else default


# ============================================================
# Band Math
# ============================================================

def _format_number(value: float) -> str:
    return f"{value:g}"


def build_band_math_expression(
    index: Union[VegetationIndex, str],
    band_map: BandMap,
    soil_factor: float = 0.5,
) -> str:
    """
    Build a band-math expression for an index on a given sensor.

    Args:
        index: Index to express
        band_map: Sensor profile that resolves semantic band names
        soil_factor: SAVI soil correction L

    Returns:
        Expression string, e.g. '(b5-b3)/(b5+b3)' for NDVI on MicaSense

    Raises:
        ValueError: If the index is derived (LAI) or the sensor lacks a band
    """
    index = VegetationIndex(index)

    if index is VegetationIndex.LAI:
        raise ValueError("LAI is derived from NDVI and has no band-math expression")

    if index is VegetationIndex.SAVI:
        return SAVI_TEMPLATE.format(
            nir=band_map.token("nir"),
            red=band_map.token("red"),
            soil=_format_number(soil_factor),
            gain=_format_number(1 + soil_factor),
        )

    a, b = INDEX_BANDS[index]
    return NORMALIZED_DIFFERENCE_TEMPLATE.format(a=band_map.token(a), b=band_map.token(b))


# ============================================================
# TiTiler URLs
# ============================================================

@dataclass
class TileOptions:
    """Rendering options for a TiTiler layer."""
    name: str = ""
    description: str = ""
    colormap: Optional[str] = None
    rescale: Optional[str] = None
    band_indexes: Optional[Sequence[int]] = None
    expression: Optional[str] = None
    nodata: Optional[float] = None


# Drone layer catalogue. Composites and single bands name semantic bands;
# index layers name the index and get their expression from the band map.
LAYER_CATALOG = {
    "rgb": {"name": "True Color (RGB)", "description": "Red, Green, Blue composite",
            "bands": ("red", "green", "blue"), "rescale": "0,10000", "nodata": 65535},
    "cir": {"name": "False Color (CIR)", "description": "Color Infrared - vegetation appears red",
            "bands": ("nir", "red", "green"), "rescale": "0,15000", "nodata": 65535},
    "nrg": {"name": "NIR-RedEdge-Green", "description": "Highlights vegetation stress",
            "bands": ("nir", "red_edge", "green"), "rescale": "0,15000", "nodata": 65535},
    "blue": {"name": "Blue Band", "description": "475nm - Coastal/Aerosol",
             "bands": ("blue",), "rescale": "500,5000", "colormap": "blues", "nodata": 65535},
    "green": {"name": "Green Band", "description": "560nm - Visible Green",
              "bands": ("green",), "rescale": "500,5000", "colormap": "greens", "nodata": 65535},
    "red": {"name": "Red Band", "description": "668nm - Visible Red",
            "bands": ("red",), "rescale": "500,8000", "colormap": "reds", "nodata": 65535},
    "rededge": {"name": "Red Edge Band", "description": "717nm - Vegetation stress",
                "bands": ("red_edge",), "rescale": "500,10000", "colormap": "oranges", "nodata": 65535},
    "nir": {"name": "NIR Band", "description": "840nm - Vegetation health",
            "bands": ("nir",), "rescale": "500,15000", "colormap": "purples", "nodata": 65535},
    "ndvi": {"name": "NDVI", "description": "Normalized Difference Vegetation Index",
             "index": VegetationIndex.NDVI, "rescale": "-0.5,1", "colormap": "rdylgn"},
    "ndre": {"name": "NDRE", "description": "Normalized Difference Red Edge Index",
             "index": VegetationIndex.NDRE, "rescale": "-0.5,1", "colormap": "rdylgn"},
    "gndvi": {"name": "GNDVI", "description": "Green Normalized Difference Vegetation Index",
              "index": VegetationIndex.GNDVI, "rescale": "-0.5,1", "colormap": "rdylgn"},
    # Pre-computed single-band products
    "moisture": {"name": "Moisture", "rescale": "0,1", "colormap": "blues"},
    "thermal": {"name": "Thermal", "rescale": "20,45", "colormap": "inferno"},
    "lai": {"name": "LAI", "rescale": "0,8", "colormap": "greens"},
}


def resolve_layer(layer: str, band_map: BandMap = MICASENSE_REDEDGE_MX) -> TileOptions:
    """
    Resolve a named drone layer into tile options for a sensor.

    Args:
        layer: Layer key from LAYER_CATALOG
        band_map: Sensor profile used for band numbers and expressions

    Returns:
        TileOptions for build_tile_url_template / build_preview_url

    Raises:
        ValueError: If the layer is unknown
    """
    try:
        config = LAYER_CATALOG[layer]
    except KeyError:
        raise ValueError(f"Unknown layer '{layer}'") from None

    band_indexes = None
    if "bands" in config:
        band_indexes = [int(band_map.band(b)) for b in config["bands"]]

    expression = None
    if "index" in config:
        # TiTiler takes the mask from the source for expressions
        expression = build_band_math_expression(config["index"], band_map)

    return TileOptions(
        name=config["name"],
        description=config.get("description", ""),
        colormap=config.get("colormap"),
        rescale=config.get("rescale"),
        band_indexes=band_indexes,
        expression=expression,
        nodata=config.get("nodata"),
    )


def resolve_raster_url(raster_ref: str, data_prefix: str = "file:///data/") -> str:
    """Bare filenames live in the tile server's data directory."""
    if "://" in raster_ref:
        return raster_ref
    return f"{data_prefix}{raster_ref}"


def _tile_params(
    raster_ref: str,
    data_prefix: str,
    colormap: Optional[str],
    rescale: Optional[Union[str, Sequence[float]]],
    band_indexes: Optional[Union[str, Sequence[int]]],
    expression: Optional[str],
    nodata: Optional[float],
) -> list[tuple[str, str]]:
    params = [("url", resolve_raster_url(raster_ref, data_prefix))]

    if colormap:
        params.append(("colormap_name", colormap))

    if rescale:
        if not isinstance(rescale, str):
            rescale = ",".join(_format_number(v) for v in rescale)
        params.append(("rescale", rescale))

    # TiTiler expects one bidx param per band
    if band_indexes:
        if isinstance(band_indexes, str):
            band_indexes = [b.strip() for b in band_indexes.split(",") if b.strip()]
        params.extend(("bidx", str(band)) for band in band_indexes)

    if expression:
        params.append(("expression", expression))

    if nodata is not None:
        params.append(("nodata", _format_number(nodata)))

    return params


def _require_base_url(base_url: Optional[str]) -> str:
    if not base_url:
        raise ConfigurationError("TiTiler base URL is not configured")
    return base_url.rstrip("/")


def build_tile_url_template(
    raster_ref: str,
    base_url: str,
    colormap: Optional[str] = None,
    rescale: Optional[Union[str, Sequence[float]]] = None,
    band_indexes: Optional[Union[str, Sequence[int]]] = None,
    expression: Optional[str] = None,
    nodata: Optional[float] = None,
    data_prefix: str = "file:///data/",
) -> str:
    """
    Build a TiTiler XYZ tile URL template for a COG.

    Every option is optional; omitted options fall back to the tile
    server's defaults.

    Args:
        raster_ref: Filename in the data directory, or a full raster URL
        base_url: TiTiler server URL
        colormap: Named colormap for single-band output
        rescale: 'min,max' string or (min, max) pair
        band_indexes: Bands to render, as '3,2,1' or [3, 2, 1]
        expression: Band-math expression for computed indices
        nodata: Value rendered transparent
        data_prefix: Prefix for bare filenames

    Returns:
        URL template with literal {z}/{x}/{y} placeholders

    Raises:
        ConfigurationError: If no base URL is configured
    """
    base = _require_base_url(base_url)
    params = _tile_params(raster_ref, data_prefix, colormap, rescale, band_indexes, expression, nodata)
    return f"{base}{TiTilerEndpoints.TILES}?{httpx.QueryParams(params)}"


def build_preview_url(
    raster_ref: str,
    base_url: str,
    max_size: int = APIConstants.PREVIEW_MAX_SIZE,
    colormap: Optional[str] = None,
    rescale: Optional[Union[str, Sequence[float]]] = None,
    band_indexes: Optional[Union[str, Sequence[int]]] = None,
    expression: Optional[str] = None,
    nodata: Optional[float] = None,
    data_prefix: str = "file:///data/",
) -> str:
    """
    Build a TiTiler preview image URL for a COG.

    Raises:
        ConfigurationError: If no base URL is configured
    """
    base = _require_base_url(base_url)
    params = _tile_params(raster_ref, data_prefix, colormap, rescale, band_indexes, expression, nodata)
    params.insert(1, ("max_size", str(max_size)))
    return f"{base}{TiTilerEndpoints.PREVIEW}?{httpx.QueryParams(params)}"


# ============================================================
# Sentinel Hub Request Bodies
# ============================================================

def _evalscript_inputs(semantic_bands: Iterable[str], band_map: BandMap) -> str:
    bands = [str(band_map.band(b)) for b in semantic_bands]
    return ", ".join(f'"{b}"' for b in bands + ["dataMask"])


def _index_value_script(
    index: VegetationIndex,
    band_map: BandMap,
    soil_factor: float,
    lai_k: float,
) -> str:
    """Evalscript lines assigning the index for one pixel to `value`."""
    if index is VegetationIndex.LAI:
        ndvi_expression = build_band_math_expression(VegetationIndex.NDVI, band_map)
        return (
            f"  let ndvi = {ndvi_expression};\n"
            "  let value = 0;\n"
            "  if (ndvi > 0.1) {\n"
            f"    value = Math.max(0, Math.min(8, -Math.log((0.69 - ndvi) / 0.59) / {_format_number(lai_k)}));\n"
            "  }\n"
        )
    expression = build_band_math_expression(index, band_map, soil_factor)
    return f"  let value = {expression};\n"


def build_evalscript(
    index: Union[VegetationIndex, str],
    band_map: BandMap = SENTINEL_2_L2A,
    soil_factor: float = 0.5,
    lai_k: float = 0.91,
) -> str:
    """
    Statistical API evalscript producing one FLOAT32 output named after the index.

    Args:
        index: Index to compute per pixel
        band_map: Sensor profile with 'sample.<band>' tokens
        soil_factor: SAVI soil correction L
        lai_k: LAI divisor

    Returns:
        Evalscript source (VERSION=3)
    """
    index = VegetationIndex(index)
    inputs = _evalscript_inputs(INDEX_BANDS[index], band_map)
    body = _index_value_script(index, band_map, soil_factor, lai_k)

    return (
        "//VERSION=3\n"
        "function setup() {\n"
        "  return {\n"
        f"    input: [{{ bands: [{inputs}] }}],\n"
        "    output: [\n"
        f'      {{ id: "{index.value}", bands: 1, sampleType: "FLOAT32" }},\n'
        '      { id: "dataMask", bands: 1 }\n'
        "    ]\n"
        "  };\n"
        "}\n"
        "\n"
        "function evaluatePixel(sample) {\n"
        f"{body}"
        f"  return {{ {index.value}: [value], dataMask: [sample.dataMask] }};\n"
        "}\n"
    )


def _bounds(area: Union[Mapping, Sequence[float]]) -> dict:
    """Polygon geometry or [min_lng, min_lat, max_lng, max_lat] bbox bounds."""
    if isinstance(area, Mapping):
        return {"geometry": dict(area), "properties": {"crs": SentinelHubEndpoints.CRS_WGS84}}
    return {"bbox": list(area), "properties": {"crs": SentinelHubEndpoints.CRS_WGS84}}


def unique_indices(indices: Iterable[Union[VegetationIndex, str]]) -> list[VegetationIndex]:
    """Distinct indices in first-seen order."""
    result = []
    for index in indices:
        index = VegetationIndex(index)
        if index not in result:
            result.append(index)
    return result


def build_statistics_request(
    area: Union[Mapping, Sequence[float]],
    time_range: TimeRange,
    indices: Iterable[Union[VegetationIndex, str]],
    band_map: BandMap = SENTINEL_2_L2A,
    aggregation_interval: str = "P30D",
    max_cloud_coverage: Optional[int] = 30,
    mosaicking_order: str = "leastCC",
    percentiles: Sequence[int] = (25, 50, 75),
    soil_factor: float = 0.5,
    lai_k: float = 0.91,
) -> dict[str, dict]:
    """
    Build one Statistical API request body per distinct index.

    Each body is self-contained so callers can issue them independently
    and collect results with settle_all; one failing index does not block
    the others.

    Args:
        area: GeoJSON polygon geometry or bbox
        time_range: Acquisition window
        indices: Requested indices; duplicates are dropped
        band_map: Sensor profile for evalscripts
        aggregation_interval: ISO-8601 duration per statistics interval
        max_cloud_coverage: Scene cloud ceiling, or None for no filter
        mosaicking_order: Scene preference when several overlap
        percentiles: Percentiles to compute
        soil_factor: SAVI soil correction L
        lai_k: LAI divisor

    Returns:
        Mapping of index name -> request body, in request order
    """
    window = time_range.as_dict()

    data_filter = {"timeRange": window, "mosaickingOrder": mosaicking_order}
    if max_cloud_coverage is not None:
        data_filter["maxCloudCoverage"] = max_cloud_coverage

    requests = {}
    for index in unique_indices(indices):
        requests[index.value] = {
            "input": {
                "bounds": _bounds(area),
                "data": [{"type": SentinelHubEndpoints.COLLECTION, "dataFilter": dict(data_filter)}],
            },
            "aggregation": {
                "timeRange": window,
                "aggregationInterval": {"of": aggregation_interval},
                "evalscript": build_evalscript(index, band_map, soil_factor, lai_k),
                "resx": APIConstants.RESOLUTION_M,
                "resy": APIConstants.RESOLUTION_M,
            },
            "calculations": {
                "default": {
                    "statistics": {
                        "default": {"percentiles": {"k": list(percentiles)}},
                    },
                },
            },
        }

    logger.debug(f"Built statistics requests for {list(requests)}")
    return requests


def build_catalog_search_request(
    bbox: Sequence[float],
    time_range: TimeRange,
    limit: int = APIConstants.DATES_SEARCH_LIMIT,
    max_cloud_cover: Optional[float] = None,
) -> dict:
    """
    Build a Catalog API search body for Sentinel-2 scenes over a bbox.

    Args:
        bbox: [min_lng, min_lat, max_lng, max_lat]
        time_range: Acquisition window
        limit: Maximum scenes returned
        max_cloud_cover: Optional cloud ceiling filter

    Returns:
        Request body
    """
    window = time_range.as_dict()
    body = {
        "bbox": list(bbox),
        "datetime": f"{window['from']}/{window['to']}",
        "collections": [SentinelHubEndpoints.COLLECTION],
        "limit": limit,
        "fields": {"include": ["properties.datetime", "properties.eo:cloud_cover"]},
    }
    if max_cloud_cover is not None:
        body["filter"] = {
            "op": "<=",
            "args": [{"property": "eo:cloud_cover"}, max_cloud_cover],
        }
        body["filter-lang"] = "cql2-json"
    return body


# ============================================================
# Sentinel Hub Process API (colorized imagery)
# ============================================================

TRUE_COLOR = "true_color"
TRUE_COLOR_GAIN = 2.5


def _ramp_script(ramp: Sequence) -> str:
    """Threshold ramp as evalscript returns; each bound is exclusive."""
    lines = []
    for bound, rgb in ramp[:-1]:
        color = ", ".join(_format_number(c) for c in rgb)
        lines.append(f"  if (value < {_format_number(bound)}) return [{color}, sample.dataMask];\n")
    color = ", ".join(_format_number(c) for c in ramp[-1][1])
    lines.append(f"  return [{color}, sample.dataMask];\n")
    return "".join(lines)


def build_colorized_evalscript(
    layer: Union[VegetationIndex, str],
    band_map: BandMap = SENTINEL_2_L2A,
    soil_factor: float = 0.5,
    lai_k: float = 0.91,
) -> str:
    """
    Process API evalscript rendering a layer as RGBA.

    Index layers are colored with the same threshold ramps used for local
    raster rendering; LAI fades from red to green over [0, 8]; true color
    is a brightened RGB composite. No-data pixels are transparent.

    Args:
        layer: An index (or 'moisture') or TRUE_COLOR
        band_map: Sensor profile with 'sample.<band>' tokens
        soil_factor: SAVI soil correction L
        lai_k: LAI divisor

    Returns:
        Evalscript source (VERSION=3)

    Raises:
        ValueError: If the layer is unknown
    """
    if layer == TRUE_COLOR:
        semantic_bands = ("red", "green", "blue")
        gain = _format_number(TRUE_COLOR_GAIN)
        body = "  return [{}, sample.dataMask];\n".format(
            ", ".join(f"{gain} * {band_map.token(b)}" for b in semantic_bands)
        )
    else:
        index = VegetationIndex(layer)
        semantic_bands = INDEX_BANDS[index]
        body = _index_value_script(index, band_map, soil_factor, lai_k)
        if index is VegetationIndex.LAI:
            body += (
                f"  let norm = value / {_format_number(LAI_MAX)};\n"
                "  return [1 - norm, norm, 0.2, sample.dataMask];\n"
            )
        else:
            body += _ramp_script(COLOR_RAMPS[index])

    return (
        "//VERSION=3\n"
        "function setup() {\n"
        "  return {\n"
        f"    input: [{{ bands: [{_evalscript_inputs(semantic_bands, band_map)}] }}],\n"
        "    output: { bands: 4 }\n"
        "  };\n"
        "}\n"
        "\n"
        "function evaluatePixel(sample) {\n"
        f"{body}"
        "}\n"
    )


def build_process_request(
    area: Union[Mapping, Sequence[float]],
    time_range: TimeRange,
    layer: Union[VegetationIndex, str],
    width: int = APIConstants.PREVIEW_MAX_SIZE,
    height: int = APIConstants.PREVIEW_MAX_SIZE,
    band_map: BandMap = SENTINEL_2_L2A,
    max_cloud_coverage: Optional[int] = 30,
    soil_factor: float = 0.5,
    lai_k: float = 0.91,
) -> dict:
    """
    Build a Process API body for a colorized PNG of one layer.

    Args:
        area: GeoJSON polygon geometry or bbox
        time_range: Acquisition window
        layer: Index name, 'moisture' or TRUE_COLOR
        width: Image width in pixels
        height: Image height in pixels
        band_map: Sensor profile for the evalscript
        max_cloud_coverage: Scene cloud ceiling, or None for no filter
        soil_factor: SAVI soil correction L
        lai_k: LAI divisor

    Returns:
        Request body

    Raises:
        ValueError: If the layer is unknown
    """
    data_filter = {"timeRange": time_range.as_dict()}
    if max_cloud_coverage is not None:
        data_filter["maxCloudCoverage"] = max_cloud_coverage

    return {
        "input": {
            "bounds": _bounds(area),
            "data": [{
                "type": SentinelHubEndpoints.COLLECTION,
                "dataFilter": data_filter,
            }],
        },
        "output": {
            "width": width,
            "height": height,
            "responses": [
                {"identifier": "default", "format": {"type": APIConstants.ACCEPT_PNG}},
            ],
        },
        "evalscript": build_colorized_evalscript(layer, band_map, soil_factor, lai_k),
    }
