"""Configuration management using Pydantic settings."""

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Facade defaults loaded from environment variables (GEOFACADE_*)."""

    model_config = SettingsConfigDict(
        env_prefix="GEOFACADE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Logging
    log_level: str = "INFO"

    # Initial view used when MapOptions leaves center/zoom unset.
    default_center_lng: float = 116.397428
    default_center_lat: float = 39.90923
    default_height: float = 1000.0  # meters, globe camera only
    default_zoom: float = 12.0

    # Vector-tile engine
    vector_tile_token: str = ""
    vector_tile_style: str = "mapbox://styles/mapbox/light-v11"

    # Tiled 2D engine
    tiled2d_projection: str = "EPSG:3857"

    # Commercial 2D engine (GCJ02 native)
    commercial_key: str = ""
    commercial_version: str = "2.0"
    commercial_plugins: list[str] = ["AMap.Scale", "AMap.Zoom", "AMap.Geolocation", "AMap.MapType"]
    convert_service_url: str = "https://restapi.amap.com/v3/assistant/coordinate/convert"
    convert_timeout: float = 10.0

    # None = wait for the backend forever (a stalled load hangs init).
    init_timeout: Optional[float] = None


settings = Settings()
