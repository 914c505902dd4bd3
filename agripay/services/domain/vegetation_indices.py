"""
Domain service: Vegetation index calculation from reflectance bands.

This module provides pure functions for:
- Normalized-difference indices (NDVI, NDRE, GNDVI, NDMI)
- Soil-adjusted NDVI (SAVI)
- Leaf Area Index estimated from NDVI
- Qualitative health and cloud-cover quality buckets

Every function returns None instead of a number when an input band is
missing or carries the no-data sentinel.
"""
import math
import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from agripay.domain.models import (
    BandSample,
    CloudQuality,
    HealthLabel,
    VegetationIndex,
    VegetationIndexResult,
)
from agripay.config import settings

logger = logging.getLogger(__name__)

NODATA_VALUE = 65535
EPSILON = 1e-4

# LAI = -ln((LAI_A - ndvi) / LAI_B) / k
LAI_A = 0.69
LAI_B = 0.59
LAI_MIN_NDVI = 0.1
LAI_MAX = 8.0

HEALTH_COLORS = {
    HealthLabel.VERY_HEALTHY: "#22c55e",
    HealthLabel.HEALTHY: "#65a30d",
    HealthLabel.MODERATE: "#eab308",
    HealthLabel.SPARSE: "#f97316",
    HealthLabel.BARE_SOIL: "#dc2626",
    HealthLabel.WATER_SHADOW: "#0ea5e9",
}
DEFAULT_HEALTH_COLOR = "#94a3b8"

CLOUD_QUALITY_COLORS = {
    CloudQuality.EXCELLENT: "#22c55e",
    CloudQuality.GOOD: "#eab308",
    CloudQuality.MODERATE: "#f97316",
    CloudQuality.POOR: "#ef4444",
}


def _has_no_data(*bands: Optional[float], nodata: float = NODATA_VALUE) -> bool:
    for band in bands:
        if band is None or band == nodata:
            return True
        if isinstance(band, float) and math.isnan(band):
            return True
    return False


def normalized_difference(
    a: Optional[float],
    b: Optional[float],
    nodata: float = NODATA_VALUE,
) -> Optional[float]:
    """
    (a - b) / (a + b), guarded against a zero denominator.

    The epsilon is only added when the bands sum to almost zero, so two
    zero bands give 0 instead of a division error. Any other input keeps
    its exact ratio.
    """
    if _has_no_data(a, b, nodata=nodata):
        return None
    denominator = a + b
    if abs(denominator) < EPSILON:
        denominator += EPSILON
    return (a - b) / denominator


def ndvi(nir: Optional[float], red: Optional[float], nodata: float = NODATA_VALUE) -> Optional[float]:
    """Normalized Difference Vegetation Index."""
    return normalized_difference(nir, red, nodata)


def ndre(nir: Optional[float], red_edge: Optional[float], nodata: float = NODATA_VALUE) -> Optional[float]:
    """Normalized Difference Red Edge index."""
    return normalized_difference(nir, red_edge, nodata)


def gndvi(nir: Optional[float], green: Optional[float], nodata: float = NODATA_VALUE) -> Optional[float]:
    """Green Normalized Difference Vegetation Index."""
    return normalized_difference(nir, green, nodata)


def ndmi(nir: Optional[float], swir: Optional[float], nodata: float = NODATA_VALUE) -> Optional[float]:
    """Normalized Difference Moisture Index (plant water content)."""
    return normalized_difference(nir, swir, nodata)


moisture = ndmi


def savi(
    nir: Optional[float],
    red: Optional[float],
    soil_factor: float = 0.5,
    nodata: float = NODATA_VALUE,
) -> Optional[float]:
    """
    Soil-Adjusted Vegetation Index.

    Args:
        nir: Near-infrared reflectance
        red: Red reflectance
        soil_factor: Soil brightness correction L (0.5 for intermediate cover)
        nodata: No-data sentinel

    Returns:
        ((nir - red) / (nir + red + L)) * (1 + L), or None
    """
    if _has_no_data(nir, red, nodata=nodata):
        return None
    denominator = nir + red + soil_factor
    if denominator == 0:
        return None
    return ((nir - red) / denominator) * (1 + soil_factor)


def lai(ndvi_value: Optional[float], k: float = 0.91) -> Optional[float]:
    """
    Simplified Leaf Area Index estimate from NDVI.

    LAI = -ln((0.69 - ndvi) / 0.59) / k, clamped to [0, 8]. NDVI at or
    below 0.1 gives 0; NDVI at or above 0.69 saturates at 8.

    Args:
        ndvi_value: NDVI, or None
        k: Extinction coefficient divisor

    Returns:
        LAI in [0, 8], or None when NDVI is unavailable
    """
    if ndvi_value is None or math.isnan(ndvi_value):
        return None
    if ndvi_value <= LAI_MIN_NDVI:
        return 0.0
    if ndvi_value >= LAI_A:
        return LAI_MAX

    value = -math.log((LAI_A - ndvi_value) / LAI_B) / k
    return max(0.0, min(LAI_MAX, value))


def health_label(ndvi_value: Optional[float]) -> HealthLabel:
    """
    Bucket an NDVI value into a qualitative health label.

    Thresholds are lower-inclusive: -0.1, 0.1, 0.2, 0.4, 0.6.
    """
    if ndvi_value is None or math.isnan(ndvi_value):
        return HealthLabel.NO_DATA
    if ndvi_value < -0.1:
        return HealthLabel.WATER_SHADOW
    if ndvi_value < 0.1:
        return HealthLabel.BARE_SOIL
    if ndvi_value < 0.2:
        return HealthLabel.SPARSE
    if ndvi_value < 0.4:
        return HealthLabel.MODERATE
    if ndvi_value < 0.6:
        return HealthLabel.HEALTHY
    return HealthLabel.VERY_HEALTHY


def health_color(label: Optional[HealthLabel]) -> str:
    """Badge color for a health label."""
    return HEALTH_COLORS.get(label, DEFAULT_HEALTH_COLOR)


def quality_from_cloud_cover(percent: float) -> CloudQuality:
    """Scene quality: <=15 excellent, <=30 good, <=50 moderate, else poor."""
    if percent <= 15:
        return CloudQuality.EXCELLENT
    if percent <= 30:
        return CloudQuality.GOOD
    if percent <= 50:
        return CloudQuality.MODERATE
    return CloudQuality.POOR


def cloud_quality_color(quality: CloudQuality) -> str:
    """Badge color for a cloud quality bucket."""
    return CLOUD_QUALITY_COLORS[quality]


@dataclass
class IndexConfig:
    """Configuration for vegetation index calculation."""

    nodata: float = NODATA_VALUE
    """Band value meaning 'no data'"""

    lai_k: float = 0.91
    """Divisor in the LAI formula"""

    soil_factor: float = 0.5
    """SAVI soil brightness correction L"""

    @classmethod
    def from_settings(cls) -> "IndexConfig":
        return cls(
            nodata=settings.nodata_value,
            lai_k=settings.lai_extinction_coefficient,
            soil_factor=settings.savi_soil_factor,
        )


class VegetationIndexCalculator:
    """
    Computes index results for band samples with a fixed configuration.
    """

    def __init__(self, config: Optional[IndexConfig] = None):
        self.config = config or IndexConfig.from_settings()

    def value(self, index: VegetationIndex, sample: BandSample) -> Optional[float]:
        """
        Compute a single index for a band sample.

        Args:
            index: Index to compute
            sample: Reflectance values

        Returns:
            Index value, or None if a required band has no data
        """
        nodata = self.config.nodata
        index = VegetationIndex(index)

        if index is VegetationIndex.NDVI:
            return ndvi(sample.nir, sample.red, nodata)
        if index is VegetationIndex.SAVI:
            return savi(sample.nir, sample.red, self.config.soil_factor, nodata)
        if index is VegetationIndex.NDRE:
            return ndre(sample.nir, sample.red_edge, nodata)
        if index is VegetationIndex.GNDVI:
            return gndvi(sample.nir, sample.green, nodata)
        if index is VegetationIndex.NDMI:
            return ndmi(sample.nir, sample.swir, nodata)
        return lai(ndvi(sample.nir, sample.red, nodata), self.config.lai_k)

    def compute(
        self,
        sample: BandSample,
        indices: Iterable[VegetationIndex] = tuple(VegetationIndex),
    ) -> list[VegetationIndexResult]:
        """
        Compute several indices for one sample.

        NDVI results carry a health label; every index whose value could
        not be computed is labelled "No Data".

        Args:
            sample: Reflectance values
            indices: Indices to compute, duplicates ignored

        Returns:
            One result per distinct index, in request order
        """
        results = []
        seen = set()
        for index in indices:
            index = VegetationIndex(index)
            if index in seen:
                continue
            seen.add(index)

            value = self.value(index, sample)
            label = None
            if value is None:
                label = HealthLabel.NO_DATA.value
            elif index is VegetationIndex.NDVI:
                label = health_label(value).value

            results.append(VegetationIndexResult(index=index, value=value, label=label))

        skipped = [r.index.value for r in results if r.value is None]
        if skipped:
            logger.debug(f"Skipped indices with no-data bands: {skipped}")
        return results
