"""
Per-sensor band maps.

A band map resolves a semantic band name (red, nir, ...) to the identifier a
given backend uses for it, and knows how that backend spells a band inside
a band-math expression. Resolve one profile per sensor and pass it to the
request builder instead of writing band numbers into expressions.
"""
from dataclasses import dataclass, field
from typing import Mapping, Union

BandId = Union[int, str]


@dataclass(frozen=True)
class BandMap:
    """Semantic band name -> sensor band identifier."""

    name: str
    bands: Mapping[str, BandId] = field(default_factory=dict)
    token_format: str = "b{band}"
    """How a band is referenced inside an expression"""

    def band(self, semantic_name: str) -> BandId:
        """
        Look up a band identifier.

        Raises:
            ValueError: If this sensor has no such band
        """
        try:
            return self.bands[semantic_name]
        except KeyError:
            raise ValueError(
                f"Sensor profile '{self.name}' has no '{semantic_name}' band"
            ) from None

    def token(self, semantic_name: str) -> str:
        """Expression token for a band, e.g. 'b5' or 'sample.B08'."""
        return self.token_format.format(band=self.band(semantic_name))


# MicaSense RedEdge-MX multispectral drone camera, as served by TiTiler
MICASENSE_REDEDGE_MX = BandMap(
    name="micasense-rededge-mx",
    bands={"blue": 1, "green": 2, "red": 3, "red_edge": 4, "nir": 5},
)

# Sentinel-2 L2A, as referenced inside Sentinel Hub evalscripts
SENTINEL_2_L2A = BandMap(
    name="sentinel-2-l2a",
    bands={
        "blue": "B02",
        "green": "B03",
        "red": "B04",
        "red_edge": "B05",
        "nir": "B08",
        "nir_narrow": "B8A",
        "swir": "B11",
    },
    token_format="sample.{band}",
)

BAND_MAPS = {
    profile.name: profile
    for profile in (MICASENSE_REDEDGE_MX, SENTINEL_2_L2A)
}


def get_band_map(name: str) -> BandMap:
    """
    Get a registered sensor profile by name.

    Raises:
        ValueError: If the profile is unknown
    """
    try:
        return BAND_MAPS[name]
    except KeyError:
        raise ValueError(f"Unknown sensor profile '{name}'") from None
