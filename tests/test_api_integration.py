"""
Integration tests for API endpoints.

Tests the full HTTP request/response cycle with mocked external dependencies.
"""
import pytest
from unittest.mock import AsyncMock, patch

from agripay.api.dependencies import get_vegetation_service
from agripay.config import settings
from agripay.domain.errors import ConfigurationError, RemoteServiceError
from agripay.infrastructure.titiler_client import TiTilerClient, get_titiler_client
from agripay.main import app
from agripay.services.application.vegetation_service import VegetationService


@pytest.fixture
def vegetation_service(mock_sentinel_client) -> VegetationService:
    """Real service over a mocked Sentinel Hub client, injected into the app."""
    service = VegetationService(mock_sentinel_client)
    app.dependency_overrides[get_vegetation_service] = lambda: service
    return service


@pytest.fixture
def mock_titiler_client() -> AsyncMock:
    client = AsyncMock(spec=TiTilerClient)
    app.dependency_overrides[get_titiler_client] = lambda: client
    return client


# ============================================================
# Health Check Tests
# ============================================================

class TestHealthEndpoints:
    """Tests for health check endpoints."""

    def test_root_endpoint(self, test_client):
        """Root endpoint should return healthy status."""
        response = test_client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "service" in data
        assert "version" in data

    def test_health_endpoint(self, test_client):
        """Health endpoint should return healthy status."""
        response = test_client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


# ============================================================
# Geometry Endpoint Tests
# ============================================================

class TestGeometryEndpoints:
    """Tests for boundary conversion endpoints."""

    def test_polygon_response_structure(self, test_client, sample_points_payload):
        response = test_client.post("/api/v1/geometry/polygon", json={"points": sample_points_payload})

        assert response.status_code == 200
        data = response.json()
        ring = data["geometry"]["coordinates"][0]
        assert ring[0] == ring[-1]
        assert data["bbox"] == [72.4501, 30.1201, 72.4562, 30.1248]
        assert data["center"]["lat"] == pytest.approx(30.12245)
        assert data["area_hectares"] > 0

    def test_too_few_points_is_bad_request(self, test_client, sample_points_payload):
        response = test_client.post("/api/v1/geometry/polygon", json={"points": sample_points_payload[:2]})

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid request"
        assert "at least 3 points" in response.json()["detail"]

    def test_invalid_point_payload(self, test_client):
        response = test_client.post("/api/v1/geometry/polygon", json={"points": [{"lat": "north"}]})

        assert response.status_code == 422

    def test_static_map_placeholder_without_token(self, test_client, sample_points_payload):
        with patch.object(settings, "mapbox_access_token", ""):
            response = test_client.post("/api/v1/geometry/static-map", json={"points": sample_points_payload})

        assert response.status_code == 200
        assert response.json()["url"].endswith("text=Map+Unavailable")

    def test_static_map_with_token(self, test_client, sample_points_payload):
        with patch.object(settings, "mapbox_access_token", "pk.test"):
            response = test_client.post(
                "/api/v1/geometry/static-map",
                json={"points": sample_points_payload, "width": 600},
            )

        url = response.json()["url"]
        assert url.startswith("https://api.mapbox.com/")
        assert "/auto/600x150?" in url
        assert url.endswith("access_token=pk.test")


# ============================================================
# Index Endpoint Tests
# ============================================================

class TestIndexEndpoints:
    """Tests for index computation endpoints."""

    def test_compute_with_no_data_band(self, test_client):
        response = test_client.post("/api/v1/indices/compute", json={
            "sample": {"red": 2000, "nir": 8000, "red_edge": 65535},
            "indices": ["ndvi", "ndre"],
        })

        assert response.status_code == 200
        results = {r["index"]: r for r in response.json()["results"]}
        assert results["ndvi"]["value"] == pytest.approx(0.6, abs=1e-6)
        assert results["ndvi"]["label"] == "Very Healthy"
        assert results["ndre"]["value"] is None
        assert results["ndre"]["label"] == "No Data"

    def test_compute_defaults_to_all_indices(self, test_client):
        response = test_client.post("/api/v1/indices/compute", json={"sample": {"red": 0.1, "nir": 0.5}})

        assert len(response.json()["results"]) == 6

    def test_unknown_index(self, test_client):
        response = test_client.post("/api/v1/indices/compute", json={"sample": {}, "indices": ["evi"]})

        assert response.status_code == 422

    def test_grid_stats(self, test_client):
        response = test_client.post("/api/v1/indices/grid-stats", json={
            "index": "ndvi",
            "bands": {
                "nir": [[8000, 6000], [65535, 5000]],
                "red": [[2000, 2000], [2000, 5000]],
            },
        })

        assert response.status_code == 200
        data = response.json()
        assert data["index"] == "ndvi"
        assert data["valid_pixels"] == 3
        assert data["statistics"]["max"] == pytest.approx(0.6, abs=1e-6)

    def test_grid_stats_all_no_data(self, test_client):
        response = test_client.post("/api/v1/indices/grid-stats", json={
            "index": "ndvi",
            "bands": {"nir": [[65535]], "red": [[2000]]},
        })

        assert response.json()["statistics"] is None
        assert response.json()["valid_pixels"] == 0

    def test_grid_stats_shape_mismatch(self, test_client):
        response = test_client.post("/api/v1/indices/grid-stats", json={
            "index": "ndvi",
            "bands": {"nir": [[1, 2]], "red": [[1], [2]]},
        })

        assert response.status_code == 400

    def test_grid_stats_missing_band(self, test_client):
        response = test_client.post("/api/v1/indices/grid-stats", json={
            "index": "ndmi",
            "bands": {"nir": [[1.0]], "red": [[1.0]]},
        })

        assert response.status_code == 400
        assert "swir" in response.json()["detail"]


# ============================================================
# Satellite Endpoint Tests
# ============================================================

class TestSatelliteEndpoints:
    """Tests for Sentinel-2 endpoints."""

    def test_vegetation_stats_partial_failure(
        self, test_client, vegetation_service, mock_sentinel_client,
        sample_points_payload, statistics_response_factory,
    ):
        async def fake_statistics(body):
            if 'id: "savi"' in body["aggregation"]["evalscript"]:
                raise RemoteServiceError("Bad evalscript", status=400)
            return statistics_response_factory("ndvi", [("2026-09-01T00:00:00Z", 0.62)])

        mock_sentinel_client.get_statistics.side_effect = fake_statistics

        response = test_client.post("/api/v1/satellite/vegetation-stats", json={
            "points": sample_points_payload,
            "indices": ["ndvi", "savi"],
        })

        assert response.status_code == 200
        indices = response.json()["indices"]
        assert indices["ndvi"]["statistics"]["mean"] == 0.62
        assert indices["ndvi"]["error"] is None
        assert indices["savi"]["statistics"] is None
        assert indices["savi"]["status"] == 400

    def test_not_configured_is_service_unavailable(
        self, test_client, vegetation_service, mock_sentinel_client, sample_points_payload,
    ):
        mock_sentinel_client.ensure_configured.side_effect = ConfigurationError(
            "Sentinel Hub is not configured: missing SENTINEL_HUB_CLIENT_ID"
        )

        response = test_client.post("/api/v1/satellite/vegetation-stats", json={"points": sample_points_payload})

        assert response.status_code == 503
        assert "SENTINEL_HUB_CLIENT_ID" in response.json()["detail"]

    def test_available_dates(
        self, test_client, vegetation_service, mock_sentinel_client,
        sample_points_payload, sample_catalog_response,
    ):
        mock_sentinel_client.search_catalog.return_value = sample_catalog_response

        response = test_client.post("/api/v1/satellite/available-dates", json={"points": sample_points_payload})

        assert response.status_code == 200
        dates = response.json()["dates"]
        assert dates[0] == {"date": "2026-09-15", "cloud_cover": 3.0, "quality": "excellent"}

    def test_remote_failure_without_status_is_bad_gateway(
        self, test_client, vegetation_service, mock_sentinel_client, sample_points_payload,
    ):
        mock_sentinel_client.search_catalog.side_effect = RemoteServiceError("connection refused")

        response = test_client.post("/api/v1/satellite/available-dates", json={"points": sample_points_payload})

        assert response.status_code == 502
        assert response.json()["detail"] == "connection refused"

    def test_remote_client_error_status_passes_through(
        self, test_client, vegetation_service, mock_sentinel_client, sample_points_payload,
    ):
        mock_sentinel_client.search_catalog.side_effect = RemoteServiceError("invalid_client", status=401)

        response = test_client.post("/api/v1/satellite/available-dates", json={"points": sample_points_payload})

        assert response.status_code == 401

    def test_point_stats(
        self, test_client, vegetation_service, mock_sentinel_client, statistics_response_factory,
    ):
        async def fake_statistics(body):
            script = body["aggregation"]["evalscript"]
            index = script.split('id: "')[1].split('"')[0]
            return statistics_response_factory(index, [("2026-09-01T00:00:00Z", 0.25)])

        mock_sentinel_client.get_statistics.side_effect = fake_statistics

        response = test_client.post("/api/v1/satellite/point-stats", json={"lat": 30.12, "lng": 72.45})

        assert response.status_code == 200
        data = response.json()
        assert data["values"] == {"ndvi": 0.25, "savi": 0.25, "ndmi": 0.25}
        assert data["health"] == "Moderate"

    def test_point_stats_out_of_range(self, test_client, vegetation_service):
        response = test_client.post("/api/v1/satellite/point-stats", json={"lat": 95, "lng": 72.45})

        assert response.status_code == 422

    def test_history(
        self, test_client, vegetation_service, mock_sentinel_client,
        sample_points_payload, statistics_response_factory,
    ):
        mock_sentinel_client.get_statistics.return_value = statistics_response_factory(
            "ndvi", [("2026-09-01T00:00:00Z", 0.4), ("2026-09-06T00:00:00Z", 0.5)]
        )

        response = test_client.post("/api/v1/satellite/history", json={"points": sample_points_payload})

        assert response.status_code == 200
        data = response.json()
        assert [p["mean"] for p in data["series"]["ndvi"]] == [0.4, 0.5]
        assert data["errors"] == {}

    def test_invalid_date(self, test_client, vegetation_service, sample_points_payload):
        response = test_client.post("/api/v1/satellite/vegetation-stats", json={
            "points": sample_points_payload,
            "date": "14/09/2026",
        })

        assert response.status_code == 400

    def test_image_is_png(self, test_client, vegetation_service, mock_sentinel_client, sample_points_payload):
        mock_sentinel_client.get_image.return_value = b"\x89PNG\r\n\x1a\n"

        response = test_client.post("/api/v1/satellite/image", json={
            "points": sample_points_payload,
            "layer": "true_color",
        })

        assert response.status_code == 200
        assert response.headers["content-type"] == "image/png"
        assert response.content == b"\x89PNG\r\n\x1a\n"
        body = mock_sentinel_client.get_image.call_args.args[0]
        assert "2.5 * sample.B04" in body["evalscript"]

    def test_image_unknown_layer(self, test_client, vegetation_service, sample_points_payload):
        response = test_client.post("/api/v1/satellite/image", json={
            "points": sample_points_payload,
            "layer": "evi",
        })

        assert response.status_code == 400


# ============================================================
# Drone Endpoint Tests
# ============================================================

class TestDroneEndpoints:
    """Tests for TiTiler-backed drone endpoints."""

    def test_layer_urls(self, test_client, vegetation_service):
        with patch("agripay.services.application.vegetation_service.settings") as mock_settings:
            mock_settings.titiler_base_url = "http://tiles.example.com"
            mock_settings.titiler_data_prefix = "file:///data/"
            response = test_client.get("/api/v1/drone/layers/rgb", params={"raster": "farm.tif"})

        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "True Color (RGB)"
        assert "bidx=3&bidx=2&bidx=1" in data["tile_url"]

    def test_unknown_layer(self, test_client, vegetation_service):
        with patch("agripay.services.application.vegetation_service.settings") as mock_settings:
            mock_settings.titiler_base_url = "http://tiles.example.com"
            response = test_client.get("/api/v1/drone/layers/xray", params={"raster": "farm.tif"})

        assert response.status_code == 400

    def test_tile_server_not_configured(self, test_client, vegetation_service):
        with patch("agripay.services.application.vegetation_service.settings") as mock_settings:
            mock_settings.titiler_base_url = ""
            mock_settings.titiler_data_prefix = "file:///data/"
            response = test_client.get("/api/v1/drone/layers/ndvi", params={"raster": "farm.tif"})

        assert response.status_code == 503

    def test_raster_is_required(self, test_client, vegetation_service):
        response = test_client.get("/api/v1/drone/layers/ndvi")

        assert response.status_code == 422

    def test_layer_description_lists_catalog(self, test_client):
        schema = test_client.get("/openapi.json").json()

        description = schema["paths"]["/api/v1/drone/layers/{layer}"]["get"]["description"]
        assert "moisture" in description
        assert "thermal" in description
        assert "savi" not in description

    def test_bounds(self, test_client, mock_titiler_client):
        mock_titiler_client.get_bounds.return_value = [72.45, 30.12, 72.46, 30.13]

        response = test_client.get("/api/v1/drone/bounds", params={"raster": "farm.tif"})

        assert response.json() == {"bounds": [72.45, 30.12, 72.46, 30.13]}
        mock_titiler_client.get_bounds.assert_awaited_once_with("farm.tif")

    def test_point_value(self, test_client, mock_titiler_client):
        mock_titiler_client.get_point_value.return_value = None

        response = test_client.get(
            "/api/v1/drone/point",
            params={"raster": "farm.tif", "lat": 30.12, "lng": 72.45},
        )

        assert response.status_code == 200
        assert response.json()["value"] is None

    def test_health(self, test_client, mock_titiler_client):
        mock_titiler_client.is_configured = True
        mock_titiler_client.check_health.return_value = False

        response = test_client.get("/api/v1/drone/health")

        assert response.json() == {"configured": True, "healthy": False}


# ============================================================
# Milestone Endpoint Tests
# ============================================================

class TestMilestoneEndpoints:
    """Tests for milestone transition endpoint."""

    def test_reviewer_options_for_legacy_completed(self, test_client):
        response = test_client.get(
            "/api/v1/milestones/transitions",
            params={"status": "Completed", "role": "reviewer"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "pending_verification"
        assert data["display"] == "Pending Verification"
        assert data["is_completed_for_reporting"] is True
        assert [o["value"] for o in data["options"]] == ["verified", "rejected"]

    def test_farmer_has_no_options_after_verification(self, test_client):
        response = test_client.get(
            "/api/v1/milestones/transitions",
            params={"status": "verified", "role": "farmer"},
        )

        data = response.json()
        assert data["is_terminal"] is True
        assert data["options"] == []

    def test_empty_status_defaults_to_not_started(self, test_client):
        response = test_client.get("/api/v1/milestones/transitions")

        data = response.json()
        assert data["status"] == "not_started"
        assert data["role"] == "farmer"
        assert [o["value"] for o in data["options"]] == ["in_progress", "pending_verification"]

    def test_unknown_status_is_echoed(self, test_client):
        response = test_client.get("/api/v1/milestones/transitions", params={"status": "on_hold"})

        data = response.json()
        assert data["status"] == "on_hold"
        assert data["options"] == []

    def test_invalid_role(self, test_client):
        response = test_client.get("/api/v1/milestones/transitions", params={"role": "admin"})

        assert response.status_code == 422


# ============================================================
# Response Format Tests
# ============================================================

class TestResponseFormats:
    """Tests for API response formats."""

    def test_openapi_schema_available(self, test_client):
        """OpenAPI schema should be available."""
        response = test_client.get("/openapi.json")

        assert response.status_code == 200
        paths = response.json()["paths"]
        for path in (
            "/api/v1/geometry/polygon",
            "/api/v1/indices/compute",
            "/api/v1/satellite/vegetation-stats",
            "/api/v1/satellite/image",
            "/api/v1/drone/layers/{layer}",
            "/api/v1/milestones/transitions",
        ):
            assert path in paths

    def test_docs_endpoint_available(self, test_client):
        """Swagger docs should be available."""
        response = test_client.get("/docs")

        assert response.status_code == 200

    def test_rate_limit_documented_in_openapi(self, test_client):
        """Rate limit should be documented in OpenAPI."""
        data = test_client.get("/openapi.json").json()

        assert "429" in data["paths"]["/api/v1/satellite/vegetation-stats"]["post"]["responses"]


# ============================================================
# CORS Tests
# ============================================================

class TestCORS:
    """Tests for CORS configuration."""

    def test_cors_headers_present(self, test_client):
        response = test_client.options(
            "/api/v1/geometry/polygon",
            headers={
                "Origin": "http://example.com",
                "Access-Control-Request-Method": "POST",
            }
        )

        assert response.status_code == 200
        assert "access-control-allow-origin" in response.headers
