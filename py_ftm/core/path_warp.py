"""
Continuous warping of vector geometry (state outlines).

State boundaries are not mesh points: every vertex of an outline is moved
directly with the inverse-distance formula as it streams through the
projection. A warp is a plain per-point function, so it slots into
shapely.ops.transform or any other coordinate pipeline.

Animated transitions use a progress value t in [0, 1] that scales every
control displacement linearly: t=0 is the geographic map, t=1 the fully
distorted one.
"""

from typing import Callable, Optional, Tuple

import numpy as np
import structlog
from shapely.geometry.base import BaseGeometry
from shapely.ops import transform

from .mesh_deformer import interpolate_positions
from .models import as_positions
from .options import DEFAULT_OPTIONS, EngineOptions

logger = structlog.get_logger()

Projection = Callable[[float, float], Optional[Tuple[float, float]]]


def _progress_targets(originals: np.ndarray, targets: np.ndarray, t: float) -> np.ndarray:
    t = float(np.clip(t, 0.0, 1.0))
    return originals + (targets - originals) * t


def warp_points(points, originals, targets, t: float = 1.0,
                power: float = DEFAULT_OPTIONS.interpolation_power,
                snap_distance: float = DEFAULT_OPTIONS.snap_distance) -> np.ndarray:
    """Warp sample points by the control displacement scaled to progress t."""
    orig = as_positions(originals, "control_originals")
    tgt = as_positions(targets, "control_targets")
    if len(orig) != len(tgt):
        raise ValueError(f"{len(orig)} control originals but {len(tgt)} targets")
    return interpolate_positions(points, orig, _progress_targets(orig, tgt, t),
                                 power, snap_distance)


def warp_continuous_path(path_samples, control_originals, control_targets,
                         t: float = 1.0,
                         options: EngineOptions = DEFAULT_OPTIONS) -> np.ndarray:
    """
    Warp the sampled points of a boundary curve.

    Args:
        path_samples: Points along the curve, (M, 2)
        control_originals: Resting airport positions, (K, 2)
        control_targets: Distorted airport positions, (K, 2)
        t: Transition progress, clipped to [0, 1]
        options: Interpolation power and snap radius

    Returns:
        (M, 2) warped samples in input order
    """
    return warp_points(path_samples, control_originals, control_targets, t,
                       options.interpolation_power, options.snap_distance)


class PathWarper:
    """
    Per-point warp transform for a fixed set of control displacements.

    Instances are callables taking (x, y) as scalars or coordinate sequences,
    which is the signature shapely.ops.transform expects.
    """

    def __init__(self, control_originals, control_targets, t: float = 1.0,
                 options: EngineOptions = DEFAULT_OPTIONS):
        self.originals = as_positions(control_originals, "control_originals")
        self.targets = as_positions(control_targets, "control_targets")
        if len(self.originals) != len(self.targets):
            raise ValueError(
                f"{len(self.originals)} control originals but {len(self.targets)} targets"
            )
        self.t = float(np.clip(t, 0.0, 1.0))
        self.options = options
        self._effective = _progress_targets(self.originals, self.targets, self.t)

    def at(self, t: float) -> "PathWarper":
        """The same warp at another transition progress."""
        return PathWarper(self.originals, self.targets, t, self.options)

    def warp_array(self, points) -> np.ndarray:
        return interpolate_positions(points, self.originals, self._effective,
                                     self.options.interpolation_power,
                                     self.options.snap_distance)

    def __call__(self, x, y, z=None):
        scalar = np.ndim(x) == 0
        xs = np.atleast_1d(np.asarray(x, dtype=float))
        ys = np.atleast_1d(np.asarray(y, dtype=float))
        warped = self.warp_array(np.column_stack([xs, ys]))

        if scalar:
            out = (float(warped[0, 0]), float(warped[0, 1]))
        else:
            out = (warped[:, 0], warped[:, 1])
        if z is not None:
            return out + (z,)
        return out

    def warp_geometry(self, geometry: BaseGeometry) -> BaseGeometry:
        """Warp every vertex of a shapely geometry."""
        return transform(self, geometry)


class ProjectedWarp:
    """
    Projection followed by a warp, for geometry still in lon/lat.

    Points the projection cannot place (it returns None) are passed through
    unchanged so one bad vertex never breaks an outline.
    """

    def __init__(self, projection: Projection, warper: PathWarper):
        self.projection = projection
        self.warper = warper

    def _project(self, lon: float, lat: float) -> Optional[Tuple[float, float]]:
        projected = self.projection(lon, lat)
        if projected is None:
            return None
        return (float(projected[0]), float(projected[1]))

    def __call__(self, x, y, z=None):
        if np.ndim(x) == 0:
            projected = self._project(x, y)
            if projected is None:
                out = (float(x), float(y))
            else:
                out = self.warper(*projected)
            return out if z is None else out + (z,)

        xs = np.asarray(x, dtype=float).copy()
        ys = np.asarray(y, dtype=float).copy()
        if len(xs) == 0:
            return (xs, ys)

        projected = [self._project(lon, lat) for lon, lat in zip(xs, ys)]
        placed = np.array([p is not None for p in projected])
        if placed.any():
            points = np.array([p for p in projected if p is not None])
            xs[placed], ys[placed] = self.warper(points[:, 0], points[:, 1])
        return (xs, ys) if z is None else (xs, ys, z)

    def warp_geometry(self, geometry: BaseGeometry) -> BaseGeometry:
        return transform(self, geometry)


def warp_geometry(geometry: BaseGeometry, control_originals, control_targets,
                  t: float = 1.0, options: EngineOptions = DEFAULT_OPTIONS,
                  projection: Optional[Projection] = None) -> BaseGeometry:
    """Warp a shapely geometry, projecting it first when a projection is given."""
    warper = PathWarper(control_originals, control_targets, t, options)
    if projection is not None:
        return ProjectedWarp(projection, warper).warp_geometry(geometry)
    return warper.warp_geometry(geometry)
