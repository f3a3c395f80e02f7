from pathlib import Path
from typing import List

from dotenv import dotenv_values
from pydantic import Field
from pydantic_settings import BaseSettings

import os

from .core.coordinator import FlightTimeMap
from .core.options import (
    DEFAULT_BOUNDARY_SAMPLING,
    DEFAULT_DAMPING,
    DEFAULT_GRID_SPACING,
    DEFAULT_INTERPOLATION_POWER,
    DEFAULT_PADDING,
    DEFAULT_TIME_SCALE_EXPONENT,
    DEFAULT_UNREACHABLE_FACTOR,
    EngineOptions,
    LayoutStrategy,
    Viewport,
)

# Explicitly load .env for local/dev environments only if values are missing from the environment
BASE_DIR = Path(__file__).resolve().parent.parent
env_file = BASE_DIR / ".env"

if env_file.exists():
    file_env = dotenv_values(env_file)
    missing_keys = {k: v for k, v in file_env.items() if k not in os.environ and v is not None}
    for k, v in missing_keys.items():
        os.environ[k] = v


class Settings(BaseSettings):
    """Application settings pulled from environment variables."""

    # API Configuration
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, description="API port")
    allowed_origins: str = Field(default="http://localhost:3000,http://localhost:8080", description="CORS allowed origins")

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="json", description="Logging format (plain or json)")

    # Viewport Configuration
    map_width: float = Field(default=975, description="Map width in screen units")
    map_height: float = Field(default=610, description="Map height in screen units")
    map_padding: float = Field(default=DEFAULT_PADDING, description="Padding used when fitting layouts")
    max_map_width: float = Field(default=2000, description="Max allowed viewport width")
    max_map_height: float = Field(default=2000, description="Max allowed viewport height")

    # Distortion Configuration
    layout_strategy: LayoutStrategy = Field(default=LayoutStrategy.RADIAL, description="radial or mds")
    damping: float = Field(default=DEFAULT_DAMPING, ge=0, le=1, description="Radial distortion damping")
    time_scale_exponent: float = Field(default=DEFAULT_TIME_SCALE_EXPONENT, gt=0, description="Exponent applied to times before MDS")
    unreachable_factor: float = Field(default=DEFAULT_UNREACHABLE_FACTOR, ge=1, description="Multiple of the longest time used for unreachable routes")

    # Rubber-sheet Configuration
    interpolation_power: float = Field(default=DEFAULT_INTERPOLATION_POWER, gt=0, description="Inverse-distance weighting power")
    grid_spacing: float = Field(default=DEFAULT_GRID_SPACING, gt=0, description="Interior mesh grid spacing")
    boundary_sampling: float = Field(default=DEFAULT_BOUNDARY_SAMPLING, gt=0, description="Viewport edge sampling interval")
    min_mesh_spacing: float = Field(default=5, gt=0, description="Smallest grid or edge spacing a request may ask for")

    # Display Configuration
    default_airport_count: int = Field(default=30, ge=1, description="Airports shown initially")
    transition_duration_ms: float = Field(default=1500, ge=0, description="Transition length in milliseconds")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @property
    def cors_origins(self) -> List[str]:
        return [o.strip() for o in self.allowed_origins.split(",") if o.strip()]

    def viewport(self) -> Viewport:
        return Viewport(self.map_width, self.map_height, self.map_padding)

    def engine_options(self) -> EngineOptions:
        """Explicit options struct for engine calls."""
        return EngineOptions(
            damping=self.damping,
            interpolation_power=self.interpolation_power,
            time_scale_exponent=self.time_scale_exponent,
            unreachable_factor=self.unreachable_factor,
            grid_spacing=self.grid_spacing,
            boundary_sampling=self.boundary_sampling,
            strategy=self.layout_strategy,
        )

    def flight_time_map(self, airports, matrix, is_inside=None) -> FlightTimeMap:
        """Map session using the configured viewport, options, airport count and duration."""
        return FlightTimeMap(
            airports, matrix, self.viewport(), self.engine_options(),
            is_inside=is_inside,
            airport_count=self.default_airport_count,
            duration=self.transition_duration_ms,
        )


# Instantiate singleton settings object
settings = Settings()
