"""
Raster helpers for rendering vegetation indices from band arrays.

Provides utilities for:
- Vectorized index computation with no-data masking
- Threshold color ramps and RGBA colorization
- Summary statistics over valid pixels
"""
from typing import Mapping, Optional, Sequence
import logging

import numpy as np

from agripay.domain.models import IndexStatistics, VegetationIndex
from agripay.services.domain.vegetation_indices import (
    EPSILON,
    LAI_A,
    LAI_B,
    LAI_MAX,
    LAI_MIN_NDVI,
    NODATA_VALUE,
)

logger = logging.getLogger(__name__)

# (upper bound exclusive, RGB in 0..1); the last entry catches everything above
NDVI_RAMP = [
    (-0.2, (0.05, 0.05, 0.05)),  # water / shadow
    (0.0, (0.75, 0.75, 0.75)),   # bare soil
    (0.1, (0.86, 0.78, 0.55)),
    (0.2, (0.93, 0.91, 0.71)),
    (0.3, (0.78, 0.89, 0.55)),
    (0.4, (0.55, 0.80, 0.38)),
    (0.5, (0.30, 0.70, 0.24)),
    (0.6, (0.16, 0.58, 0.14)),
    (np.inf, (0.04, 0.45, 0.04)),
]

SAVI_RAMP = [
    (0.0, (0.5, 0.5, 0.5)),
    (0.1, (0.86, 0.78, 0.55)),
    (0.2, (0.78, 0.89, 0.55)),
    (0.3, (0.55, 0.80, 0.38)),
    (0.4, (0.30, 0.70, 0.24)),
    (np.inf, (0.04, 0.50, 0.04)),
]

# Red for dry, blue for wet
NDMI_RAMP = [
    (-0.4, (0.8, 0.2, 0.1)),
    (-0.2, (0.9, 0.5, 0.2)),
    (0.0, (0.95, 0.8, 0.4)),
    (0.2, (0.8, 0.9, 0.6)),
    (0.4, (0.4, 0.7, 0.9)),
    (np.inf, (0.1, 0.4, 0.8)),
]

COLOR_RAMPS = {
    VegetationIndex.NDVI: NDVI_RAMP,
    VegetationIndex.NDRE: NDVI_RAMP,
    VegetationIndex.GNDVI: NDVI_RAMP,
    VegetationIndex.SAVI: SAVI_RAMP,
    VegetationIndex.NDMI: NDMI_RAMP,
}


def _masked(bands: Sequence[np.ndarray], nodata: float) -> tuple[list[np.ndarray], np.ndarray]:
    arrays = [np.asarray(b, dtype=np.float64) for b in bands]
    invalid = np.zeros(arrays[0].shape, dtype=bool)
    for array in arrays:
        invalid |= (array == nodata) | np.isnan(array)
    return arrays, invalid


def normalized_difference_array(
    a: np.ndarray,
    b: np.ndarray,
    nodata: float = NODATA_VALUE,
) -> np.ndarray:
    """
    Per-pixel (a - b) / (a + b), with epsilon added only where the sum is
    near zero.

    Args:
        a: First band
        b: Second band
        nodata: Pixels equal to this in either band become NaN

    Returns:
        Float array with NaN where either input has no data
    """
    (a, b), invalid = _masked([a, b], nodata)
    denominator = a + b
    denominator = np.where(np.abs(denominator) < EPSILON, denominator + EPSILON, denominator)
    with np.errstate(divide="ignore", invalid="ignore"):
        result = (a - b) / denominator
    result[invalid] = np.nan
    return result


def savi_array(
    nir: np.ndarray,
    red: np.ndarray,
    soil_factor: float = 0.5,
    nodata: float = NODATA_VALUE,
) -> np.ndarray:
    """Per-pixel SAVI with NaN where either band has no data."""
    (nir, red), invalid = _masked([nir, red], nodata)
    with np.errstate(divide="ignore", invalid="ignore"):
        result = ((nir - red) / (nir + red + soil_factor)) * (1 + soil_factor)
    result[invalid] = np.nan
    return result


def lai_array(ndvi: np.ndarray, k: float = 0.91) -> np.ndarray:
    """
    Per-pixel LAI from an NDVI array, clamped to [0, 8].

    NaN NDVI stays NaN; NDVI at or above 0.69 saturates at 8.
    """
    ndvi = np.asarray(ndvi, dtype=np.float64)
    result = np.zeros(ndvi.shape, dtype=np.float64)

    growing = (ndvi > LAI_MIN_NDVI) & (ndvi < LAI_A)
    result[growing] = -np.log((LAI_A - ndvi[growing]) / LAI_B) / k
    result[ndvi >= LAI_A] = LAI_MAX
    result = np.clip(result, 0.0, LAI_MAX)
    result[np.isnan(ndvi)] = np.nan
    return result


def compute_index_array(
    index: VegetationIndex,
    bands: Mapping[str, np.ndarray],
    nodata: float = NODATA_VALUE,
    soil_factor: float = 0.5,
    lai_k: float = 0.91,
) -> np.ndarray:
    """
    Compute an index raster from semantic band arrays.

    Args:
        index: Index to compute
        bands: Semantic band name (red, nir, ...) -> array
        nodata: No-data sentinel
        soil_factor: SAVI soil correction L
        lai_k: LAI divisor

    Returns:
        Float array with NaN for no-data pixels

    Raises:
        ValueError: If a band required by the index is missing
    """
    index = VegetationIndex(index)
    pairs = {
        VegetationIndex.NDVI: ("nir", "red"),
        VegetationIndex.SAVI: ("nir", "red"),
        VegetationIndex.LAI: ("nir", "red"),
        VegetationIndex.NDRE: ("nir", "red_edge"),
        VegetationIndex.GNDVI: ("nir", "green"),
        VegetationIndex.NDMI: ("nir", "swir"),
    }
    first, second = pairs[index]
    missing = [name for name in (first, second) if name not in bands]
    if missing:
        raise ValueError(f"{index.value} needs bands {missing}")

    if index is VegetationIndex.SAVI:
        return savi_array(bands[first], bands[second], soil_factor, nodata)

    values = normalized_difference_array(bands[first], bands[second], nodata)
    if index is VegetationIndex.LAI:
        return lai_array(values, lai_k)
    return values


def colorize(
    values: np.ndarray,
    ramp: Sequence[tuple[float, tuple[float, float, float]]] = NDVI_RAMP,
) -> np.ndarray:
    """
    Map index values to RGBA pixels with a threshold ramp.

    Args:
        values: 2-D index array, NaN for no data
        ramp: (exclusive upper bound, RGB) pairs in ascending order

    Returns:
        uint8 array of shape (rows, cols, 4); NaN pixels are transparent
    """
    values = np.asarray(values, dtype=np.float64)
    rgba = np.zeros(values.shape + (4,), dtype=np.uint8)
    valid = ~np.isnan(values)

    bounds = np.array([upper for upper, _ in ramp])
    colors = (np.array([rgb for _, rgb in ramp]) * 255).round().astype(np.uint8)

    # First ramp entry whose upper bound exceeds the value
    bucket = np.searchsorted(bounds, values[valid], side="right")
    bucket = np.clip(bucket, 0, len(ramp) - 1)

    rgba[valid, :3] = colors[bucket]
    rgba[valid, 3] = 255
    return rgba


def colorize_index(index: VegetationIndex, values: np.ndarray) -> np.ndarray:
    """Colorize with the ramp registered for an index (NDVI ramp by default)."""
    return colorize(values, COLOR_RAMPS.get(VegetationIndex(index), NDVI_RAMP))


def summarize(values: np.ndarray) -> Optional[IndexStatistics]:
    """
    Statistics over valid (non-NaN) pixels.

    Returns:
        IndexStatistics, or None when no pixel is valid
    """
    values = np.asarray(values, dtype=np.float64)
    valid = values[~np.isnan(values)]
    if valid.size == 0:
        logger.debug("No valid pixels to summarize")
        return None

    p25, p50, p75 = np.percentile(valid, [25, 50, 75])
    return IndexStatistics(
        mean=float(valid.mean()),
        min=float(valid.min()),
        max=float(valid.max()),
        std_dev=float(valid.std()),
        median=float(p50),
        p25=float(p25),
        p75=float(p75),
    )
