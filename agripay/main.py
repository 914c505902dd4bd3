"""
FastAPI application entry point.
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded

from agripay.config import settings
from agripay.middleware.error_handler import ErrorHandlerMiddleware
from agripay.api.v1.routers import drone, geometry, indices, milestones, satellite

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

# Rate limiter
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[f"{settings.rate_limit_requests}/minute"],
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.

    Logs the effective configuration on startup and closes the shared
    HTTP clients on shutdown.
    """
    # Startup
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Log level: {settings.log_level}")
    logger.info(f"Index config: nodata={settings.nodata_value}, "
                f"lai_k={settings.lai_extinction_coefficient}, savi_l={settings.savi_soil_factor}")
    logger.info(f"Sentinel Hub configured: {bool(settings.sentinel_hub_client_id)}, "
                f"TiTiler configured: {bool(settings.titiler_base_url)}")
    logger.info(f"Rate limit: {settings.rate_limit_requests} requests/minute")

    yield

    # Shutdown
    from agripay.infrastructure.sentinel_hub_client import get_sentinel_hub_client
    from agripay.infrastructure.titiler_client import get_titiler_client
    logger.info("Shutting down application...")
    await get_sentinel_hub_client().close()
    await get_titiler_client().close()
    logger.info("Shutdown complete")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    Geospatial core for the AgriPay farm monitoring and milestone payment platform

    ## Features

    - **Farm Boundaries**: Convert drawn or imported boundaries to GeoJSON, with
      bounding box, map center, geodesic area and static map thumbnails
    - **Vegetation Indices**: NDVI, SAVI, NDRE, GNDVI, NDMI and LAI from band
      samples or pixel grids, with no-data handling and health labels
    - **Sentinel-2 Imagery**: Available acquisition dates, per-index statistics,
      point values and time series from the Sentinel Hub APIs
    - **Drone Layers**: TiTiler tile and preview URLs with band math for
      MicaSense RedEdge-MX orthomosaics
    - **Milestone Status**: Legacy status normalization and role-based transitions
    - **Robust Error Handling**: Automatic retries with exponential backoff for
      external API calls; one failing index never hides the others
    - **Rate Limiting**: Protects the API from abuse
    """,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# Add rate limiter to app state
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

# Add CORS middleware with configurable origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add global error handling middleware
app.add_middleware(ErrorHandlerMiddleware)

# Include routers
for module in (geometry, indices, satellite, drone, milestones):
    app.include_router(module.router, prefix="/api/v1")


@app.get("/", tags=["health"])
async def root():
    """
    Root endpoint for health check.

    Returns:
        Status message
    """
    return {
        "status": "healthy",
        "service": settings.app_name,
        "version": settings.app_version,
    }


@app.get("/health", tags=["health"])
async def health_check():
    """
    Health check endpoint.

    Returns:
        Health status
    """
    return {
        "status": "healthy",
        "service": settings.app_name,
    }
