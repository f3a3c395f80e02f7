"""Landmass outline helpers: GeoJSON loading, projection and containment."""

from typing import Callable, Iterable, Optional, Tuple

import numpy as np
import structlog
from shapely.geometry import Point, shape
from shapely.geometry.base import BaseGeometry
from shapely.ops import transform, unary_union
from shapely.prepared import prep

logger = structlog.get_logger()

# FIPS ids left off the contiguous-US map: Alaska, Hawaii, Puerto Rico
NON_CONTIGUOUS_STATE_IDS = ("02", "15", "72")


def load_landmass(geojson: dict, exclude_ids: Iterable[str] = ()) -> BaseGeometry:
    """
    Union a GeoJSON FeatureCollection, Feature or bare geometry into one shape.

    Args:
        geojson: Parsed GeoJSON mapping
        exclude_ids: Feature ids to leave out

    Returns:
        Shapely geometry covering every kept feature
    """
    excluded = {str(i) for i in exclude_ids}
    kind = geojson.get("type")

    if kind == "FeatureCollection":
        features = geojson.get("features", [])
    elif kind == "Feature":
        features = [geojson]
    else:
        return shape(geojson)

    shapes = [
        shape(f["geometry"])
        for f in features
        if f.get("geometry") and str(f.get("id")) not in excluded
    ]
    logger.debug("Landmass loaded", features=len(features), kept=len(shapes))
    return unary_union(shapes)


def project_geometry(geometry: BaseGeometry,
                     projection: Callable[[float, float], Optional[Tuple[float, float]]]
                     ) -> BaseGeometry:
    """Run a (lon, lat) -> (x, y) projection over every vertex.

    Vertices the projection rejects keep their raw coordinates.
    """
    def project_one(lon, lat):
        projected = projection(lon, lat)
        return (lon, lat) if projected is None else (projected[0], projected[1])

    def project(xs, ys, zs=None):
        if np.ndim(xs) == 0:
            return project_one(xs, ys)
        pairs = [project_one(lon, lat) for lon, lat in zip(xs, ys)]
        return tuple(zip(*pairs)) if pairs else ((), ())

    return transform(project, geometry)


def containment_predicate(geometry: BaseGeometry) -> Callable[[float, float], bool]:
    """(x, y) -> bool test for the interior grid of the mesh."""
    prepared = prep(geometry)

    def is_inside(x: float, y: float) -> bool:
        return prepared.contains(Point(x, y))

    return is_inside
