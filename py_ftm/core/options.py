"""
Engine options for the flight time map.

The engine never reads shared state: every call receives an EngineOptions
instance (or falls back to a default one). The defaults below are the
empirically tuned values the map has always shipped with.
"""

from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple

# Radial distortion: 0 = no distortion, 1 = full distortion
DEFAULT_DAMPING = 0.6

# Inverse-distance weighting exponent (higher = more local influence)
DEFAULT_INTERPOLATION_POWER = 2.5

# Travel times are raised to this power before MDS to compress outliers
DEFAULT_TIME_SCALE_EXPONENT = 0.7

# Unreachable entries become this multiple of the largest finite value
DEFAULT_UNREACHABLE_FACTOR = 1.5

# Rubber-sheet mesh sampling
DEFAULT_GRID_SPACING = 40.0
DEFAULT_BOUNDARY_SAMPLING = 25.0

DEFAULT_PADDING = 60.0

# Queries closer than this to a control point snap to it
SNAP_DISTANCE = 1.0

# Points closer than this to the origin are treated as co-located
MIN_GEO_DISTANCE = 1.0


class LayoutStrategy(str, Enum):
    """Algorithm used to turn travel times into positions."""

    RADIAL = "radial"
    MDS = "mds"


class Viewport(NamedTuple):
    """Screen-plane frame the engine lays points out in."""
    width: float
    height: float
    padding: float = DEFAULT_PADDING


@dataclass(frozen=True)
class EngineOptions:
    """Tunable parameters for distortion, interpolation and mesh sampling."""

    damping: float = DEFAULT_DAMPING
    interpolation_power: float = DEFAULT_INTERPOLATION_POWER
    time_scale_exponent: float = DEFAULT_TIME_SCALE_EXPONENT
    unreachable_factor: float = DEFAULT_UNREACHABLE_FACTOR
    grid_spacing: float = DEFAULT_GRID_SPACING
    boundary_sampling: float = DEFAULT_BOUNDARY_SAMPLING
    snap_distance: float = SNAP_DISTANCE
    min_geo_distance: float = MIN_GEO_DISTANCE
    strategy: LayoutStrategy = LayoutStrategy.RADIAL

    def __post_init__(self):
        if not 0.0 <= self.damping <= 1.0:
            raise ValueError(f"damping must be within [0, 1], got {self.damping}")
        if self.interpolation_power <= 0:
            raise ValueError(
                f"interpolation_power must be positive, got {self.interpolation_power}"
            )
        if self.time_scale_exponent <= 0:
            raise ValueError(
                f"time_scale_exponent must be positive, got {self.time_scale_exponent}"
            )
        if self.grid_spacing <= 0 or self.boundary_sampling <= 0:
            raise ValueError("grid_spacing and boundary_sampling must be positive")
        if self.unreachable_factor < 1.0:
            raise ValueError(
                f"unreachable_factor must be at least 1, got {self.unreachable_factor}"
            )
        # Accept plain strings from settings and request payloads
        object.__setattr__(self, "strategy", LayoutStrategy(self.strategy))


DEFAULT_OPTIONS = EngineOptions()
