"""Rubber-sheet mesh: Delaunay triangulation and inverse-distance deformation."""

from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np
import structlog
from scipy.spatial import Delaunay, QhullError

from .models import PointCategory, as_positions
from .options import DEFAULT_OPTIONS, EngineOptions, Viewport

logger = structlog.get_logger()

ContainmentPredicate = Callable[[float, float], bool]


@dataclass
class Mesh:
    """Control, boundary and interior points plus their triangulation.

    Points are stored in that order: the first control_count rows are the
    airports (same order as the caller's airport list), then the fixed
    viewport-edge samples, then the landmass grid.
    """
    points: np.ndarray               # (N, 2) resting positions
    point_types: np.ndarray          # PointCategory per point
    codes: Tuple[str, ...]           # Airport codes, one per control point
    control_count: int
    width: float
    height: float
    triangulation: Optional[Delaunay] = field(default=None, repr=False)

    @property
    def triangles(self) -> np.ndarray:
        """(T, 3) point indices, empty when triangulation failed."""
        if self.triangulation is None:
            return np.zeros((0, 3), dtype=int)
        return self.triangulation.simplices

    @property
    def control_mask(self) -> np.ndarray:
        return self.point_types == PointCategory.CONTROL

    @property
    def boundary_mask(self) -> np.ndarray:
        return self.point_types == PointCategory.BOUNDARY

    @property
    def interior_mask(self) -> np.ndarray:
        return self.point_types == PointCategory.INTERIOR

    @property
    def control_points(self) -> np.ndarray:
        return self.points[:self.control_count]

    def should_rebuild(self, codes: Sequence[str], viewport: Viewport) -> bool:
        """The mesh is only valid for one airport subset and viewport size."""
        same_size = self.width == viewport.width and self.height == viewport.height
        return not (same_size and self.codes == tuple(codes))


def get_boundary_points(width: float, height: float, spacing: float) -> np.ndarray:
    """
    Sample the four viewport edges.

    Top and bottom edges run from x=0 to x=width inclusive; the left and right
    edges fill in y=spacing..height (exclusive) so corners are not repeated.

    Args:
        width: Viewport width
        height: Viewport height
        spacing: Sampling interval along each edge

    Returns:
        Array of [x, y] boundary coordinates
    """
    xs = np.arange(0.0, width + 1e-9, spacing)
    ys = np.arange(spacing, height, spacing)

    top = np.column_stack([xs, np.zeros_like(xs)])
    bottom = np.column_stack([xs, np.full_like(xs, height)])
    left = np.column_stack([np.zeros_like(ys), ys])
    right = np.column_stack([np.full_like(ys, width), ys])
    return np.vstack([top, bottom, left, right])


def get_interior_grid(width: float, height: float, spacing: float,
                      is_inside: Optional[ContainmentPredicate] = None) -> np.ndarray:
    """
    Regular grid strictly inside the viewport, optionally clipped to the landmass.

    Args:
        width: Viewport width
        height: Viewport height
        spacing: Grid interval
        is_inside: (x, y) -> bool landmass test; None keeps every grid point

    Returns:
        Array of [x, y] grid coordinates
    """
    xs = np.arange(spacing, width, spacing)
    ys = np.arange(spacing, height, spacing)
    gx, gy = np.meshgrid(xs, ys, indexing="ij")
    points = np.column_stack([gx.ravel(), gy.ravel()]).astype(float)

    if is_inside is not None and len(points):
        keep = np.fromiter((is_inside(float(x), float(y)) for x, y in points),
                           dtype=bool, count=len(points))
        points = points[keep]
    return points.reshape(-1, 2)


def triangulate(points: np.ndarray) -> Optional[Delaunay]:
    """Delaunay triangulation, or None when Qhull cannot build one."""
    if len(points) < 3:
        return None
    try:
        return Delaunay(points)
    except (QhullError, ValueError) as e:
        logger.warning("Triangulation failed", points=len(points), error=str(e))
        return None


def build_mesh(airports, viewport: Viewport,
               is_inside: Optional[ContainmentPredicate] = None,
               options: EngineOptions = DEFAULT_OPTIONS,
               codes: Optional[Sequence[str]] = None) -> Mesh:
    """
    Build the rubber-sheet mesh for a set of airports.

    Args:
        airports: Airport control positions (pairs or Points)
        viewport: Frame whose edges are pinned
        is_inside: Landmass containment predicate for the interior grid
        options: Sampling intervals
        codes: Airport codes; taken from Points when omitted

    Returns:
        Mesh with control points first, then boundary, then interior points
    """
    if codes is None:
        codes = [getattr(a, "code", str(i)) for i, a in enumerate(airports)]
    controls = as_positions(airports, "airports")
    if len(codes) != len(controls):
        raise ValueError(f"{len(codes)} codes given for {len(controls)} airports")

    boundary = get_boundary_points(viewport.width, viewport.height, options.boundary_sampling)
    interior = get_interior_grid(viewport.width, viewport.height, options.grid_spacing, is_inside)

    points = np.vstack([controls, boundary, interior])
    point_types = np.concatenate([
        np.full(len(controls), PointCategory.CONTROL, dtype=np.int8),
        np.full(len(boundary), PointCategory.BOUNDARY, dtype=np.int8),
        np.full(len(interior), PointCategory.INTERIOR, dtype=np.int8),
    ])

    mesh = Mesh(
        points=points,
        point_types=point_types,
        codes=tuple(codes),
        control_count=len(controls),
        width=viewport.width,
        height=viewport.height,
        triangulation=triangulate(points),
    )
    logger.info("Mesh built", controls=len(controls), boundary=len(boundary),
                interior=len(interior), triangles=len(mesh.triangles))
    return mesh


def generate_or_reuse_mesh(existing: Optional[Mesh], airports, viewport: Viewport,
                           is_inside: Optional[ContainmentPredicate] = None,
                           options: EngineOptions = DEFAULT_OPTIONS,
                           codes: Optional[Sequence[str]] = None) -> Mesh:
    """Rebuild the mesh only when the airport subset or viewport changed."""
    if codes is None:
        codes = [getattr(a, "code", str(i)) for i, a in enumerate(airports)]
    if existing is None or existing.should_rebuild(codes, viewport):
        return build_mesh(airports, viewport, is_inside, options, codes)
    logger.debug("Reusing existing mesh", controls=existing.control_count)
    return existing


def interpolate_positions(queries, originals, targets,
                          power: float = DEFAULT_OPTIONS.interpolation_power,
                          snap_distance: float = DEFAULT_OPTIONS.snap_distance) -> np.ndarray:
    """
    Move query points by the inverse-distance weighted control displacement.

    Each control point i contributes its displacement (target - original) with
    weight 1 / distance(i, q) ** power. A query within snap_distance of a
    control point lands exactly on that point's target.

    Args:
        queries: Points to move, (M, 2)
        originals: Control resting positions, (K, 2)
        targets: Control target positions, (K, 2)
        power: Weighting exponent
        snap_distance: Snap radius

    Returns:
        (M, 2) moved positions. With no control points nothing moves.
    """
    q = as_positions(queries, "queries")
    orig = as_positions(originals, "originals")
    tgt = as_positions(targets, "targets")
    if len(orig) != len(tgt):
        raise ValueError(f"{len(orig)} control originals but {len(tgt)} targets")
    if len(orig) == 0 or len(q) == 0:
        return q.copy()

    displacement = tgt - orig
    dist = np.hypot(q[:, None, 0] - orig[None, :, 0], q[:, None, 1] - orig[None, :, 1])

    nearest = dist.argmin(axis=1)
    nearest_dist = dist[np.arange(len(q)), nearest]
    snapped = nearest_dist < snap_distance

    # Normalise by the nearest distance so very distant queries keep finite weights
    safe_nearest = np.where(snapped, 1.0, nearest_dist)
    with np.errstate(divide="ignore", invalid="ignore"):
        weights = (safe_nearest[:, None] / dist) ** power
    weights[snapped] = 0.0
    weights[~np.isfinite(weights)] = 0.0

    total = weights.sum(axis=1)
    total[total == 0] = 1.0
    result = q + (weights @ displacement) / total[:, None]

    result[snapped] = tgt[nearest[snapped]]
    return result


def interpolate_position(x: float, y: float, originals, targets,
                         power: float = DEFAULT_OPTIONS.interpolation_power) -> Tuple[float, float]:
    """Single-point form of interpolate_positions()."""
    moved = interpolate_positions([[x, y]], originals, targets, power)
    return float(moved[0, 0]), float(moved[0, 1])


def deform_mesh(mesh: Mesh, control_originals, control_targets,
                options: EngineOptions = DEFAULT_OPTIONS) -> np.ndarray:
    """
    Deformed position of every mesh point.

    Control points move to their targets, boundary points stay pinned and
    interior points follow the controls by inverse-distance weighting.

    Args:
        mesh: Mesh from build_mesh()
        control_originals: Resting airport positions, one per control point
        control_targets: Target airport positions, one per control point
        options: Interpolation power and snap radius

    Returns:
        (N, 2) positions aligned with mesh.points
    """
    originals = as_positions(control_originals, "control_originals")
    targets = as_positions(control_targets, "control_targets")
    if len(originals) != mesh.control_count or len(targets) != mesh.control_count:
        raise ValueError(
            f"mesh has {mesh.control_count} control points but got "
            f"{len(originals)} originals and {len(targets)} targets"
        )

    deformed = mesh.points.copy()
    deformed[:mesh.control_count] = targets

    interior = mesh.interior_mask
    if interior.any():
        deformed[interior] = interpolate_positions(
            mesh.points[interior], originals, targets,
            options.interpolation_power, options.snap_distance,
        )
    return deformed


def barycentric_coords(p, a, b, c) -> Optional[Tuple[float, float, float]]:
    """
    Barycentric weights of p relative to triangle (a, b, c).

    Returns:
        (u, v, w) with p = u*a + v*b + w*c, or None when the triangle has
        no area.
    """
    p, a, b, c = (np.asarray(v, dtype=float) for v in (p, a, b, c))
    v0 = c - a
    v1 = b - a
    v2 = p - a

    dot00 = v0 @ v0
    dot01 = v0 @ v1
    dot02 = v0 @ v2
    dot11 = v1 @ v1
    dot12 = v1 @ v2

    denom = dot00 * dot11 - dot01 * dot01
    if not np.isfinite(denom) or abs(denom) <= 1e-12 * dot00 * dot11:
        return None

    w = (dot11 * dot02 - dot01 * dot12) / denom
    v = (dot00 * dot12 - dot01 * dot02) / denom
    u = 1.0 - v - w
    return float(u), float(v), float(w)


def locate_triangles(mesh: Mesh, queries) -> np.ndarray:
    """Index of the triangle containing each query, -1 outside the hull."""
    q = as_positions(queries, "queries")
    if mesh.triangulation is None or len(q) == 0:
        return np.full(len(q), -1, dtype=int)
    return np.asarray(mesh.triangulation.find_simplex(q), dtype=int)


def transform_points(queries, mesh: Mesh, deformed_positions,
                     options: EngineOptions = DEFAULT_OPTIONS) -> np.ndarray:
    """
    Carry arbitrary points through the deformed mesh.

    Points inside a triangle are mapped with their barycentric weights onto
    the triangle's deformed vertices. Points outside the hull, or inside a
    degenerate triangle, fall back to inverse-distance weighting against the
    airport control points.

    Args:
        queries: Points to transform, (M, 2)
        mesh: The mesh
        deformed_positions: Output of deform_mesh() for this mesh
        options: Interpolation settings for the fallback

    Returns:
        (M, 2) transformed positions
    """
    q = as_positions(queries, "queries")
    deformed = as_positions(deformed_positions, "deformed_positions")
    if len(deformed) != len(mesh.points):
        raise ValueError(
            f"{len(deformed)} deformed positions for a mesh of {len(mesh.points)} points"
        )

    result = np.empty_like(q)
    simplices = locate_triangles(mesh, q)
    fallback: List[int] = []

    for i, simplex in enumerate(simplices):
        if simplex < 0:
            fallback.append(i)
            continue
        i0, i1, i2 = mesh.triangles[simplex]
        bary = barycentric_coords(q[i], mesh.points[i0], mesh.points[i1], mesh.points[i2])
        if bary is None:
            fallback.append(i)
            continue
        u, v, w = bary
        result[i] = u * deformed[i0] + v * deformed[i1] + w * deformed[i2]

    if fallback:
        logger.debug("Transforming points outside the mesh", count=len(fallback))
        result[fallback] = interpolate_positions(
            q[fallback],
            mesh.control_points,
            deformed[:mesh.control_count],
            options.interpolation_power,
            options.snap_distance,
        )
    return result


def transform_point(x: float, y: float, mesh: Mesh, deformed_positions,
                    options: EngineOptions = DEFAULT_OPTIONS) -> Tuple[float, float]:
    """Single-point form of transform_points()."""
    moved = transform_points([[x, y]], mesh, deformed_positions, options)
    return float(moved[0, 0]), float(moved[0, 1])


def triangle_vertices(mesh: Mesh, positions=None) -> np.ndarray:
    """(T, 3, 2) vertex coordinates of every triangle, for a mesh overlay."""
    pts = mesh.points if positions is None else as_positions(positions)
    return pts[mesh.triangles]
