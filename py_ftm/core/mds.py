"""
Classical multidimensional scaling and geographic alignment.

This is the auxiliary layout path: it embeds a whole travel-time matrix in
the plane instead of distorting around a single origin. Eigenvectors only
fix the axes up to rotation and sign, so the result is aligned back onto
the geographic layout (Procrustes with a reflection search) before use.

Pipeline used by compute_mds_positions():
1. sanitize_distances - unreachable entries become 1.5x the largest time
2. power_scale        - time ** 0.7 compresses outliers such as Honolulu
3. symmetrize         - MDS needs d(a, b) == d(b, a)
4. classical_mds      - double centering + SVD
5. scale_to_viewport  - uniform fit with padding
6. align_to_geography - north up, west left
"""

import math
from typing import Optional, Tuple

import numpy as np
import structlog

from .models import AlignmentTransform, as_positions
from .options import DEFAULT_OPTIONS, EngineOptions, Viewport

logger = structlog.get_logger()

# Radius of the fallback circle when the decomposition fails
FALLBACK_RADIUS = 100.0

# (flip_x, flip_y) combinations searched during alignment
REFLECTIONS = ((False, False), (True, False), (False, True), (True, True))


def classical_mds(distances, dimensions: int = 2) -> np.ndarray:
    """
    Embed a distance matrix in `dimensions` coordinates.

    The squared distances are double centered into a Gram matrix B, whose
    singular vectors scaled by sqrt(singular value) give the coordinates
    (for a symmetric PSD matrix singular values equal eigenvalues).

    Args:
        distances: NxN symmetric, finite distance matrix
        dimensions: Output dimensionality

    Returns:
        (N, dimensions) coordinate array. If the decomposition fails the
        points are spread evenly on a circle instead.
    """
    d = np.asarray(distances, dtype=float)
    n = len(d)

    if n == 0:
        return np.zeros((0, dimensions))
    if n == 1:
        return np.zeros((1, dimensions))
    if d.shape != (n, n):
        raise ValueError(f"distance matrix must be square, got shape {d.shape}")

    d2 = -0.5 * d * d

    # Double centering: subtract row/column means, add back the grand mean
    row_means = d2.mean(axis=1, keepdims=True)
    col_means = d2.mean(axis=0, keepdims=True)
    grand_mean = d2.mean()
    b = d2 - row_means - col_means + grand_mean

    if not np.all(np.isfinite(b)):
        logger.warning("Non-finite Gram matrix, using circle layout", size=n)
        return circle_layout(n, dimensions)

    try:
        u, s, _ = np.linalg.svd(b)
    except np.linalg.LinAlgError as e:
        logger.warning("SVD failed, using circle layout", size=n, error=str(e))
        return circle_layout(n, dimensions)

    result = np.zeros((n, dimensions))
    k = min(dimensions, len(s))
    scale = np.sqrt(np.maximum(0.0, s[:k]))
    result[:, :k] = u[:, :k] * scale
    return result


def circle_layout(n: int, dimensions: int = 2, radius: float = FALLBACK_RADIUS) -> np.ndarray:
    """Points evenly spaced on a circle; extra dimensions are zero."""
    angles = 2 * np.pi * np.arange(n) / max(n, 1)
    result = np.zeros((n, dimensions))
    result[:, 0] = np.cos(angles) * radius
    if dimensions > 1:
        result[:, 1] = np.sin(angles) * radius
    return result


def sanitize_distances(distances, factor: float = 1.5) -> np.ndarray:
    """
    Replace infinite/NaN entries with factor x the largest finite value.

    Always returns a new array; the input is never modified.
    """
    d = np.array(distances, dtype=float)
    finite = np.isfinite(d)
    max_finite = max(0.0, float(d[finite].max())) if finite.any() else 0.0
    d[~finite] = max_finite * factor
    return d


def power_scale(distances, power: float = 0.7) -> np.ndarray:
    """Raise every distance to `power` (negatives clamp to 0)."""
    return np.power(np.maximum(0.0, np.asarray(distances, dtype=float)), power)


def symmetrize(distances) -> np.ndarray:
    """Average each route with its reverse."""
    d = np.asarray(distances, dtype=float)
    return (d + d.T) / 2.0


def scale_to_viewport(positions, viewport: Viewport) -> np.ndarray:
    """
    Uniformly scale and center positions inside the viewport.

    Aspect ratio is preserved (one scale factor for both axes). A zero
    extent on an axis is treated as 1 so coincident points never divide
    by zero; they land in the middle of the viewport.
    """
    pts = as_positions(positions)
    if len(pts) == 0:
        return pts

    mins = pts.min(axis=0)
    ranges = pts.max(axis=0) - mins
    ranges[ranges == 0] = 1.0

    width, height, padding = viewport
    scale = min((width - 2 * padding) / ranges[0], (height - 2 * padding) / ranges[1])

    extent = (pts.max(axis=0) - mins) * scale
    offset = (np.array([width, height]) - extent) / 2 - mins * scale
    return pts * scale + offset


def centroid(points) -> np.ndarray:
    pts = as_positions(points)
    return pts.mean(axis=0)


def find_optimal_rotation(source, target) -> float:
    """Least-squares rotation angle taking centered source onto centered target.

    theta = atan2(sum(x1*y2 - x2*y1), sum(x1*x2 + y1*y2))
    """
    s = as_positions(source)
    t = as_positions(target)
    num = np.sum(s[:, 0] * t[:, 1] - t[:, 0] * s[:, 1])
    den = np.sum(s[:, 0] * t[:, 0] + s[:, 1] * t[:, 1])
    return math.atan2(num, den)


def apply_rotation(points, angle: float) -> np.ndarray:
    pts = as_positions(points)
    cos, sin = math.cos(angle), math.sin(angle)
    return np.column_stack([
        pts[:, 0] * cos - pts[:, 1] * sin,
        pts[:, 0] * sin + pts[:, 1] * cos,
    ])


def sum_squared_error(points1, points2) -> float:
    diff = as_positions(points1) - as_positions(points2)
    return float(np.sum(diff * diff))


def compute_alignment(positions, reference) -> Optional[AlignmentTransform]:
    """
    Find the reflection + rotation + translation best mapping positions onto reference.

    All four axis-reflection combinations are tried; each gets its optimal
    rotation and the lowest total squared error wins.

    Args:
        positions: Computed layout, (N, 2)
        reference: Geographic layout in the same order, (N, 2)

    Returns:
        The transform, or None for an empty layout.
    """
    pts = as_positions(positions)
    ref = as_positions(reference, "reference")
    if len(pts) != len(ref):
        raise ValueError(
            f"cannot align {len(pts)} positions to {len(ref)} reference positions"
        )
    if len(pts) == 0:
        return None
    if len(pts) == 1:
        # No orientation is defined for a single point: snap it
        return AlignmentTransform(
            rotation=0.0, flip_x=False, flip_y=False,
            source_centroid=tuple(pts[0]), target_centroid=tuple(ref[0]),
        )

    src_centroid = pts.mean(axis=0)
    ref_centroid = ref.mean(axis=0)
    src_centered = pts - src_centroid
    ref_centered = ref - ref_centroid

    best: Tuple[float, bool, bool, float] = (math.inf, False, False, 0.0)
    for flip_x, flip_y in REFLECTIONS:
        flipped = src_centered * np.array([-1.0 if flip_x else 1.0, -1.0 if flip_y else 1.0])
        rotation = find_optimal_rotation(flipped, ref_centered)
        error = sum_squared_error(apply_rotation(flipped, rotation), ref_centered)
        if error < best[0]:
            best = (error, flip_x, flip_y, rotation)

    error, flip_x, flip_y, rotation = best
    logger.debug("Alignment found", rotation=rotation, flip_x=flip_x,
                 flip_y=flip_y, error=error)
    return AlignmentTransform(
        rotation=rotation, flip_x=flip_x, flip_y=flip_y,
        source_centroid=tuple(src_centroid), target_centroid=tuple(ref_centroid),
        error=error,
    )


def align_to_geography(positions, reference) -> np.ndarray:
    """Apply compute_alignment() to positions."""
    transform = compute_alignment(positions, reference)
    if transform is None:
        return np.zeros((0, 2))
    return transform.apply(positions)


def compute_mds_positions(travel_times, geo_positions, viewport: Viewport,
                          options: EngineOptions = DEFAULT_OPTIONS) -> np.ndarray:
    """
    Full MDS layout: sanitize, compress, embed, fit and align.

    Args:
        travel_times: NxN travel-time matrix (non-finite = unreachable)
        geo_positions: Geographic screen positions used for alignment
        viewport: Target frame
        options: Engine options (exponent and unreachable factor)

    Returns:
        (N, 2) positions in the same order as geo_positions
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
    if n == 0:
        return np.zeros((0, 2))

    distances = sanitize_distances(times, options.unreachable_factor)
    distances = power_scale(distances, options.time_scale_exponent)
    distances = symmetrize(distances)

    coords = classical_mds(distances, dimensions=2)
    fitted = scale_to_viewport(coords, viewport)
    aligned = align_to_geography(fitted, geo)

    logger.info("MDS layout computed", airports=n)
    return aligned
