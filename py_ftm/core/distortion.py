"""
Radial travel-time distortion.

Every airport keeps its compass direction from the selected origin; only its
distance changes. An airport reached faster than the network's average speed
is pulled towards the origin, a slower one is pushed away:

    expected = d_geo * (max_time / max_geo_distance)
    ratio    = time / expected
    new_d    = d_geo * (1 + (ratio - 1) * damping)

The origin itself never moves. Unreachable airports, and airports sitting on
top of the origin, keep their geographic position.
"""

import numpy as np
import structlog

from .mds import compute_mds_positions
from .models import as_positions
from .options import DEFAULT_OPTIONS, EngineOptions, LayoutStrategy, Viewport

logger = structlog.get_logger()


def _check_origin(origin_index: int, n: int) -> None:
    if not 0 <= origin_index < n:
        raise ValueError(f"origin index {origin_index} out of range for {n} airports")


def compute_radial_positions(times_row, geo_positions, origin_index: int,
                             options: EngineOptions = DEFAULT_OPTIONS) -> np.ndarray:
    """
    Reposition airports radially around the origin according to travel time.

    Args:
        times_row: Travel times from the origin to every airport
        geo_positions: Geographic screen positions, (N, 2)
        origin_index: Index of the origin in geo_positions
        options: Engine options (damping, co-location threshold)

    Returns:
        (N, 2) positions in input order. Deterministic: the same input
        always yields the same output.
    """
    geo = as_positions(geo_positions, "geo_positions")
    times = np.asarray(times_row, dtype=float).reshape(-1)
    n = len(geo)

    if len(times) != n:
        raise ValueError(f"travel time row has {len(times)} entries but there are {n} airports")
    _check_origin(origin_index, n)

    result = geo.copy()
    origin = geo[origin_index]

    offsets = geo - origin
    geo_dist = np.hypot(offsets[:, 0], offsets[:, 1])

    positive_dist = geo_dist[geo_dist > 0]
    usable_times = times[np.isfinite(times) & (times > 0)]
    if len(positive_dist) == 0 or len(usable_times) == 0:
        logger.debug("Nothing to distort", airports=n, origin_index=origin_index)
        return result

    max_geo_dist = positive_dist.max()
    max_time = usable_times.max()
    time_per_dist = max_time / max_geo_dist

    movable = np.isfinite(times) & (geo_dist >= options.min_geo_distance)
    movable[origin_index] = False

    angles = np.arctan2(offsets[movable, 1], offsets[movable, 0])
    dist = geo_dist[movable]

    expected = dist * time_per_dist
    ratio = times[movable] / expected
    new_dist = dist * (1.0 + (ratio - 1.0) * options.damping)

    result[movable, 0] = origin[0] + np.cos(angles) * new_dist
    result[movable, 1] = origin[1] + np.sin(angles) * new_dist

    logger.debug("Radial layout computed", airports=n, origin_index=origin_index,
                 distorted=int(movable.sum()), skipped=int(n - 1 - movable.sum()))
    return result


def compute_distorted_layout(matrix_row, original_positions, origin_index: int,
                             viewport: Viewport,
                             options: EngineOptions = DEFAULT_OPTIONS) -> np.ndarray:
    """Radial layout entry point used by the coordination layer.

    The viewport is accepted for interface symmetry with the MDS path; the
    radial method works in the geographic frame and needs no refitting.
    """
    return compute_radial_positions(matrix_row, original_positions, origin_index, options)


def compute_positions(travel_times, geo_positions, origin_index: int,
                      viewport: Viewport,
                      options: EngineOptions = DEFAULT_OPTIONS) -> np.ndarray:
    """
    Compute display positions from a full travel-time matrix.

    Dispatches on options.strategy: the radial method (default) only reads the
    origin's row, the MDS method embeds the whole matrix.
    """
    times = np.asarray(travel_times, dtype=float)
    geo = as_positions(geo_positions, "geo_positions")
    n = len(geo)
    if times.size == 0:
        times = times.reshape(0, 0)
    if times.shape != (n, n):
        raise ValueError(
            f"travel time matrix shape {times.shape} does not match {n} positions"
        )
    _check_origin(origin_index, n)

    if options.strategy == LayoutStrategy.MDS:
        return compute_mds_positions(times, geo, viewport, options)
    return compute_distorted_layout(times[origin_index], geo, origin_index, viewport, options)
