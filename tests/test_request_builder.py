"""
Unit tests for remote-sensing request construction.
"""
from datetime import date, datetime, timedelta, timezone
from urllib.parse import parse_qs, urlsplit

import pytest

from agripay.domain.errors import ConfigurationError
from agripay.domain.models import TimeRange, VegetationIndex
from agripay.infrastructure.band_maps import (
    MICASENSE_REDEDGE_MX,
    SENTINEL_2_L2A,
    BandMap,
    get_band_map,
)
from agripay.infrastructure.request_builder import (
    build_band_math_expression,
    TRUE_COLOR,
    build_catalog_search_request,
    build_colorized_evalscript,
    build_evalscript,
    build_preview_url,
    build_process_request,
    build_statistics_request,
    build_tile_url_template,
    build_time_range,
    max_cloud_coverage_for,
    resolve_layer,
    resolve_raster_url,
    unique_indices,
)
from agripay.utils.geometry import to_polygon_geometry


TITILER = "http://tiles.example.com"


def query(url: str) -> dict:
    return parse_qs(urlsplit(url).query)


# ============================================================
# Time Ranges
# ============================================================

class TestBuildTimeRange:
    """Tests for acquisition windows."""

    def test_specific_date_is_whole_utc_day(self):
        time_range = build_time_range("2026-09-14", fallback_days=30)

        assert time_range.as_dict() == {
            "from": "2026-09-14T00:00:00Z",
            "to": "2026-09-14T23:59:59Z",
        }

    def test_datetime_uses_its_day(self):
        moment = datetime(2026, 9, 14, 10, 30, 0, tzinfo=timezone.utc)

        time_range = build_time_range(moment)

        assert time_range.as_dict() == {
            "from": "2026-09-14T00:00:00Z",
            "to": "2026-09-14T23:59:59Z",
        }

    def test_aware_datetime_uses_utc_day(self):
        moment = datetime(2026, 9, 15, 1, 0, 0, tzinfo=timezone(timedelta(hours=5)))

        assert build_time_range(moment).from_ == "2026-09-14T00:00:00Z"

    def test_date_object(self):
        assert build_time_range(date(2026, 9, 14)).to == "2026-09-14T23:59:59Z"

    def test_fallback_window(self):
        now = datetime(2026, 10, 18, 12, 30, 0, tzinfo=timezone.utc)

        time_range = build_time_range(None, fallback_days=30, now=now)

        assert time_range.from_ == "2026-09-18T12:30:00Z"
        assert time_range.to == "2026-10-18T12:30:00Z"

    def test_naive_now_treated_as_utc(self):
        time_range = build_time_range(None, fallback_days=1, now=datetime(2026, 1, 2))

        assert time_range.as_dict() == {"from": "2026-01-01T00:00:00Z", "to": "2026-01-02T00:00:00Z"}

    def test_invalid_date_raises(self):
        with pytest.raises(ValueError):
            build_time_range("14/09/2026")

    def test_cloud_ceiling_lifted_for_chosen_date(self):
        assert max_cloud_coverage_for("2026-09-14") == 100
        assert max_cloud_coverage_for(None) == 30
        assert max_cloud_coverage_for(None, default=20) == 20


# ============================================================
# Band Math
# ============================================================

class TestBandMathExpression:
    """Tests for band-math template substitution."""

    def test_ndvi_micasense(self):
        assert build_band_math_expression("ndvi", MICASENSE_REDEDGE_MX) == "(b5-b3)/(b5+b3)"

    def test_ndre_and_gndvi_micasense(self):
        assert build_band_math_expression("ndre", MICASENSE_REDEDGE_MX) == "(b5-b4)/(b5+b4)"
        assert build_band_math_expression("gndvi", MICASENSE_REDEDGE_MX) == "(b5-b2)/(b5+b2)"

    def test_savi(self):
        expression = build_band_math_expression("savi", MICASENSE_REDEDGE_MX)

        assert expression == "((b5-b3)/(b5+b3+0.5))*1.5"

    def test_band_numbers_follow_the_band_map(self):
        """Another sensor profile changes the expression, not the code."""
        alternate = BandMap(name="alt", bands={"red": 1, "nir": 4})

        assert build_band_math_expression("ndvi", alternate) == "(b4-b1)/(b4+b1)"

    def test_sentinel_tokens(self):
        expression = build_band_math_expression("ndvi", SENTINEL_2_L2A)

        assert expression == "(sample.B08-sample.B04)/(sample.B08+sample.B04)"

    def test_lai_has_no_expression(self):
        with pytest.raises(ValueError):
            build_band_math_expression("lai", MICASENSE_REDEDGE_MX)

    def test_missing_band_raises(self):
        """MicaSense has no SWIR band."""
        with pytest.raises(ValueError, match="swir"):
            build_band_math_expression("ndmi", MICASENSE_REDEDGE_MX)

    def test_get_band_map(self):
        assert get_band_map("sentinel-2-l2a") is SENTINEL_2_L2A
        with pytest.raises(ValueError):
            get_band_map("landsat")


# ============================================================
# TiTiler URLs
# ============================================================

class TestTileUrls:
    """Tests for tile and preview URL construction."""

    def test_template_keeps_placeholders(self):
        url = build_tile_url_template("farm.tif", TITILER)

        assert url.startswith(f"{TITILER}/cog/tiles/WebMercatorQuad/{{z}}/{{x}}/{{y}}?")

    def test_bare_filename_gets_data_prefix(self):
        url = build_tile_url_template("farm.tif", TITILER)

        assert query(url) == {"url": ["file:///data/farm.tif"]}

    def test_absolute_url_is_kept(self):
        assert resolve_raster_url("s3://bucket/farm.tif") == "s3://bucket/farm.tif"

    def test_all_options(self):
        url = build_tile_url_template(
            "farm.tif",
            TITILER,
            colormap="rdylgn",
            rescale=(-0.5, 1),
            band_indexes=[3, 2, 1],
            expression="(b5-b3)/(b5+b3)",
            nodata=65535,
        )

        params = query(url)
        assert params["colormap_name"] == ["rdylgn"]
        assert params["rescale"] == ["-0.5,1"]
        assert params["bidx"] == ["3", "2", "1"]
        assert params["expression"] == ["(b5-b3)/(b5+b3)"]
        assert params["nodata"] == ["65535"]

    def test_band_indexes_from_string(self):
        url = build_tile_url_template("farm.tif", TITILER, band_indexes="3, 2,1")

        assert query(url)["bidx"] == ["3", "2", "1"]

    def test_trailing_slash_in_base_url(self):
        url = build_tile_url_template("farm.tif", TITILER + "/")

        assert "//cog" not in url

    def test_missing_base_url_raises(self):
        with pytest.raises(ConfigurationError):
            build_tile_url_template("farm.tif", "")

    def test_preview_url(self):
        url = build_preview_url("farm.tif", TITILER, colormap="greens")

        assert urlsplit(url).path == "/cog/preview"
        params = query(url)
        assert params["max_size"] == ["512"]
        assert params["colormap_name"] == ["greens"]


class TestResolveLayer:
    """Tests for the drone layer catalogue."""

    def test_rgb_layer_uses_band_numbers(self):
        options = resolve_layer("rgb")

        assert options.band_indexes == [3, 2, 1]
        assert options.expression is None
        assert options.nodata == 65535

    def test_index_layer_uses_expression(self):
        options = resolve_layer("ndvi")

        assert options.expression == "(b5-b3)/(b5+b3)"
        assert options.band_indexes is None
        assert options.colormap == "rdylgn"

    def test_precomputed_layer(self):
        options = resolve_layer("thermal")

        assert options.band_indexes is None
        assert options.expression is None
        assert options.rescale == "20,45"

    def test_unknown_layer_raises(self):
        with pytest.raises(ValueError, match="Unknown layer"):
            resolve_layer("infrared-hd")


# ============================================================
# Sentinel Hub Request Bodies
# ============================================================

class TestStatisticsRequest:
    """Tests for Statistical API request bodies."""

    @pytest.fixture
    def time_range(self) -> TimeRange:
        return build_time_range("2026-09-14")

    def test_one_body_per_distinct_index(self, sample_points, time_range):
        geometry = to_polygon_geometry(sample_points)

        requests = build_statistics_request(geometry, time_range, ["ndvi", "savi", "NDVI", "moisture"])

        assert list(requests) == ["ndvi", "savi", "ndmi"]

    def test_body_structure(self, sample_points, time_range):
        geometry = to_polygon_geometry(sample_points)

        body = build_statistics_request(geometry, time_range, ["ndvi"])["ndvi"]

        assert body["input"]["bounds"]["geometry"] == geometry
        data_filter = body["input"]["data"][0]["dataFilter"]
        assert data_filter["timeRange"] == {"from": "2026-09-14T00:00:00Z", "to": "2026-09-14T23:59:59Z"}
        assert data_filter["maxCloudCoverage"] == 30
        assert data_filter["mosaickingOrder"] == "leastCC"
        assert body["aggregation"]["aggregationInterval"] == {"of": "P30D"}
        assert body["aggregation"]["resx"] == 10
        assert body["calculations"]["default"]["statistics"]["default"]["percentiles"]["k"] == [25, 50, 75]

    def test_bbox_area(self, time_range):
        body = build_statistics_request([1.0, 2.0, 3.0, 4.0], time_range, ["ndvi"])["ndvi"]

        assert body["input"]["bounds"]["bbox"] == [1.0, 2.0, 3.0, 4.0]
        assert "geometry" not in body["input"]["bounds"]

    def test_no_cloud_filter(self, time_range):
        body = build_statistics_request([1, 2, 3, 4], time_range, ["ndvi"], max_cloud_coverage=None)["ndvi"]

        assert "maxCloudCoverage" not in body["input"]["data"][0]["dataFilter"]

    def test_evalscript_output_named_after_index(self):
        script = build_evalscript("savi")

        assert script.startswith("//VERSION=3")
        assert 'id: "savi"' in script
        assert '"B08", "B04", "dataMask"' in script
        assert "((sample.B08-sample.B04)/(sample.B08+sample.B04+0.5))*1.5" in script

    def test_lai_evalscript_uses_coefficient(self):
        script = build_evalscript("lai", lai_k=2.13)

        assert "/ 2.13" in script
        assert "ndvi > 0.1" in script

    def test_unique_indices(self):
        assert unique_indices(["lai", "ndvi", "lai"]) == [VegetationIndex.LAI, VegetationIndex.NDVI]


class TestCatalogSearchRequest:
    """Tests for Catalog API search bodies."""

    def test_basic_body(self):
        time_range = build_time_range("2026-09-14")

        body = build_catalog_search_request([1, 2, 3, 4], time_range)

        assert body["datetime"] == "2026-09-14T00:00:00Z/2026-09-14T23:59:59Z"
        assert body["collections"] == ["sentinel-2-l2a"]
        assert body["limit"] == 100
        assert "filter" not in body

    def test_cloud_filter(self):
        body = build_catalog_search_request([1, 2, 3, 4], build_time_range("2026-09-14"), max_cloud_cover=20)

        assert body["filter"]["args"][1] == 20
        assert body["filter-lang"] == "cql2-json"


class TestProcessRequest:
    """Tests for colorized Process API request bodies."""

    def test_body_structure(self):
        time_range = build_time_range("2026-09-14")

        body = build_process_request([1.0, 2.0, 3.0, 4.0], time_range, "ndvi", width=256, height=128)

        assert body["input"]["bounds"]["bbox"] == [1.0, 2.0, 3.0, 4.0]
        data = body["input"]["data"][0]
        assert data["type"] == "sentinel-2-l2a"
        assert data["dataFilter"]["timeRange"]["from"] == "2026-09-14T00:00:00Z"
        assert data["dataFilter"]["maxCloudCoverage"] == 30
        assert body["output"]["width"] == 256
        assert body["output"]["height"] == 128
        assert body["output"]["responses"] == [
            {"identifier": "default", "format": {"type": "image/png"}},
        ]
        assert body["evalscript"] == build_colorized_evalscript("ndvi")

    def test_no_cloud_filter(self):
        body = build_process_request([1, 2, 3, 4], build_time_range("2026-09-14"), "ndvi", max_cloud_coverage=None)

        assert "maxCloudCoverage" not in body["input"]["data"][0]["dataFilter"]

    def test_ndvi_ramp_thresholds(self):
        script = build_colorized_evalscript("ndvi")

        assert "output: { bands: 4 }" in script
        assert "if (value < -0.2) return [0.05, 0.05, 0.05, sample.dataMask];" in script
        assert "if (value < 0.6) return [0.16, 0.58, 0.14, sample.dataMask];" in script
        assert script.rstrip().endswith("return [0.04, 0.45, 0.04, sample.dataMask];\n}")

    def test_savi_and_moisture_use_their_ramps(self):
        savi_script = build_colorized_evalscript(VegetationIndex.SAVI)
        moisture_script = build_colorized_evalscript("moisture")

        assert "if (value < 0) return [0.5, 0.5, 0.5, sample.dataMask];" in savi_script
        assert "+0.5))*1.5" in savi_script
        assert '"B08", "B11", "dataMask"' in moisture_script
        assert "if (value < -0.4) return [0.8, 0.2, 0.1, sample.dataMask];" in moisture_script

    def test_lai_fades_over_its_range(self):
        script = build_colorized_evalscript("lai", lai_k=2.13)

        assert "/ 2.13" in script
        assert "let norm = value / 8;" in script

    def test_true_color(self):
        script = build_colorized_evalscript(TRUE_COLOR)

        assert '"B04", "B03", "B02", "dataMask"' in script
        assert "return [2.5 * sample.B04, 2.5 * sample.B03, 2.5 * sample.B02, sample.dataMask];" in script

    def test_unknown_layer_raises(self):
        with pytest.raises(ValueError):
            build_process_request([1, 2, 3, 4], build_time_range("2026-09-14"), "evi")
