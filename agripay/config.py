"""
Application configuration using Pydantic settings.
"""
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Sentinel Hub Configuration
    sentinel_hub_base_url: str = Field(
        default="https://services.sentinel-hub.com",
        description="Base URL for the Sentinel Hub APIs"
    )
    sentinel_hub_token_url: str = Field(
        default="https://services.sentinel-hub.com/auth/realms/main/protocol/openid-connect/token",
        description="OAuth2 token endpoint for Sentinel Hub"
    )
    sentinel_hub_client_id: str = Field(
        default="",
        description="OAuth2 client id for Sentinel Hub"
    )
    sentinel_hub_client_secret: str = Field(
        default="",
        description="OAuth2 client secret for Sentinel Hub"
    )
    token_safety_buffer_seconds: int = Field(
        default=300,
        description="Cached access tokens are refreshed this many seconds before expiry"
    )

    # TiTiler Configuration
    titiler_base_url: str = Field(
        default="",
        description="Base URL of the TiTiler server serving drone COGs"
    )
    titiler_data_prefix: str = Field(
        default="file:///data/",
        description="Prefix prepended to bare raster filenames"
    )
    titiler_health_timeout: float = Field(
        default=3.0,
        description="Timeout in seconds for the TiTiler health check"
    )

    # Static Map Configuration
    mapbox_access_token: str = Field(
        default="",
        description="Mapbox access token for static farm thumbnails"
    )
    static_map_width: int = Field(default=350, description="Static map width in pixels")
    static_map_height: int = Field(default=150, description="Static map height in pixels")
    static_map_padding: int = Field(default=20, description="Static map padding in pixels")
    static_map_style: str = Field(default="satellite-v9", description="Mapbox style id")

    # Vegetation Index Parameters
    nodata_value: float = Field(
        default=65535,
        description="Band value meaning 'no data' (MicaSense fill value)"
    )
    lai_extinction_coefficient: float = Field(
        default=0.91,
        description="Divisor k in LAI = -ln((0.69 - NDVI) / 0.59) / k"
    )
    savi_soil_factor: float = Field(
        default=0.5,
        description="Soil brightness correction factor L for SAVI"
    )

    # Imagery Selection
    default_lookback_days: int = Field(
        default=30,
        description="Days to look back when no acquisition date is selected"
    )
    available_dates_lookback_days: int = Field(
        default=180,
        description="Days to look back when listing available imagery dates"
    )
    history_lookback_days: int = Field(
        default=60,
        description="Days to look back for vegetation time series"
    )
    default_max_cloud_coverage: int = Field(
        default=30,
        description="Maximum cloud cover percentage when no date is selected"
    )

    # Retry Configuration
    max_retry_attempts: int = Field(
        default=3,
        description="Maximum number of retry attempts for API calls"
    )
    retry_backoff_multiplier: int = Field(
        default=1,
        description="Multiplier for exponential backoff"
    )
    retry_min_wait: int = Field(
        default=4,
        description="Minimum wait time in seconds between retries"
    )
    retry_max_wait: int = Field(
        default=10,
        description="Maximum wait time in seconds between retries"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )

    # CORS Configuration
    cors_origins: list[str] = Field(
        default=["*"],
        description="Allowed CORS origins (use specific origins in production)"
    )

    # Rate Limiting
    rate_limit_requests: int = Field(
        default=100,
        description="Maximum requests per minute per client"
    )

    # Application Settings
    app_name: str = Field(
        default="AgriPay Geo Core",
        description="Application name"
    )
    app_version: str = Field(
        default="1.0.0",
        description="Application version"
    )
    debug: bool = Field(
        default=False,
        description="Debug mode"
    )

    class Config:
        env_file = ".env"
        case_sensitive = False


# Global settings instance
settings = Settings()
