"""
Data structures shared by the distortion engine and the mesh deformer.

Positions are screen-plane coordinates produced by an external map
projection. Travel times are minutes; any non-finite entry marks an
unreachable destination.
"""

import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import structlog

logger = structlog.get_logger()


class PointCategory:
    """Role of a point inside the rubber-sheet mesh."""
    CONTROL = 0     # Airport, moves to its computed target
    BOUNDARY = 1    # Viewport edge sample, never moves
    INTERIOR = 2    # Landmass grid sample, follows the controls by interpolation

    NAMES = {CONTROL: "control", BOUNDARY: "boundary", INTERIOR: "interior"}


@dataclass
class Point:
    """A located airport.

    geo_x/geo_y are fixed once the projection has run; x/y hold the
    currently displayed position and change on every recompute.
    """
    code: str
    geo_x: float
    geo_y: float
    x: Optional[float] = None
    y: Optional[float] = None
    category: int = PointCategory.CONTROL
    hub: Optional[str] = None  # large / medium / small

    def __post_init__(self):
        if self.x is None:
            self.x = self.geo_x
        if self.y is None:
            self.y = self.geo_y

    @property
    def geo_position(self) -> Tuple[float, float]:
        return (self.geo_x, self.geo_y)

    @property
    def position(self) -> Tuple[float, float]:
        return (self.x, self.y)

    def move_to(self, x: float, y: float) -> None:
        self.x = float(x)
        self.y = float(y)

    def reset(self) -> None:
        """Return to the geographic position."""
        self.x = self.geo_x
        self.y = self.geo_y


def as_positions(positions, name: str = "positions") -> np.ndarray:
    """Coerce (x, y) pairs or Points into an (N, 2) float array.

    Points contribute their geographic position.
    """
    if len(positions) and isinstance(positions[0], Point):
        arr = np.array([p.geo_position for p in positions], dtype=float)
    else:
        arr = np.asarray(positions, dtype=float)
    if arr.size == 0:
        return np.zeros((0, 2), dtype=float)
    if arr.ndim != 2 or arr.shape[1] != 2:
        raise ValueError(f"{name} must be a sequence of (x, y) pairs, got shape {arr.shape}")
    return arr


@dataclass(frozen=True, eq=False)
class TravelTimeMatrix:
    """Immutable snapshot of door-to-door travel times between airports.

    times[i][j] is the time from codes[i] to codes[j]; the matrix need not
    be symmetric. direct[i][j] is True when the route is a nonstop flight.
    """
    codes: Tuple[str, ...]
    times: np.ndarray
    direct: Optional[np.ndarray] = None
    _index: Dict[str, int] = field(default=None, repr=False, compare=False)

    def __post_init__(self):
        codes = tuple(self.codes)
        times = np.array(self.times, dtype=float)
        n = len(codes)

        if times.size == 0:
            times = times.reshape(0, 0)
        if times.ndim != 2 or times.shape[0] != times.shape[1]:
            raise ValueError(f"travel time matrix must be square, got shape {times.shape}")
        if times.shape[0] != n:
            raise ValueError(
                f"travel time matrix has {times.shape[0]} rows but {n} airport codes"
            )

        if self.direct is None:
            direct = np.zeros((n, n), dtype=bool)
        else:
            direct = np.array(self.direct, dtype=bool)
            if direct.size == 0:
                direct = direct.reshape(0, 0)
        if direct.shape != times.shape:
            raise ValueError(
                f"direct flight flags have shape {direct.shape}, expected {times.shape}"
            )

        finite = np.isfinite(times)
        if np.any(times[finite] < 0):
            raise ValueError("travel times must be non-negative")
        diagonal = np.diag(times)
        if n and not np.all(diagonal == 0):
            bad = [codes[i] for i in np.flatnonzero(diagonal != 0)]
            raise ValueError(f"travel time from an airport to itself must be 0: {bad}")
        if len(set(codes)) != n:
            raise ValueError("airport codes must be unique")

        times.setflags(write=False)
        direct.setflags(write=False)
        object.__setattr__(self, "codes", codes)
        object.__setattr__(self, "times", times)
        object.__setattr__(self, "direct", direct)
        object.__setattr__(self, "_index", {code: i for i, code in enumerate(codes)})

    def __len__(self) -> int:
        return len(self.codes)

    def index_of(self, code: str) -> int:
        """Position of code in the matrix, -1 when unknown."""
        return self._index.get(code, -1)

    def row(self, code: str) -> np.ndarray:
        """Travel times from code to every airport."""
        idx = self.index_of(code)
        if idx < 0:
            raise KeyError(f"unknown airport code: {code}")
        return self.times[idx]

    def travel_time(self, from_code: str, to_code: str) -> Optional[float]:
        """Travel time in minutes, None if either code is unknown."""
        i, j = self.index_of(from_code), self.index_of(to_code)
        if i < 0 or j < 0:
            return None
        return float(self.times[i, j])

    def has_direct_flight(self, from_code: str, to_code: str) -> bool:
        i, j = self.index_of(from_code), self.index_of(to_code)
        if i < 0 or j < 0:
            return False
        return bool(self.direct[i, j])

    def travel_times_from(self, code: str) -> Dict[str, float]:
        """Map of destination code to travel time for one origin."""
        idx = self.index_of(code)
        if idx < 0:
            return {}
        return {dest: float(t) for dest, t in zip(self.codes, self.times[idx])}

    def sub_matrix(self, codes: Sequence[str]) -> "TravelTimeMatrix":
        """Restrict the matrix to codes, in that order. Unknown codes are skipped."""
        indices = [self.index_of(c) for c in codes]
        indices = [i for i in indices if i >= 0]
        ix = np.ix_(indices, indices)
        return TravelTimeMatrix(
            codes=tuple(self.codes[i] for i in indices),
            times=self.times[ix],
            direct=self.direct[ix],
        )

    def sanitized(self, factor: float = 1.5) -> np.ndarray:
        """Writable copy of the times with unreachable entries replaced."""
        from .mds import sanitize_distances

        return sanitize_distances(self.times, factor)

    @classmethod
    def from_dict(cls, data: dict) -> "TravelTimeMatrix":
        """Build from the JSON exchange layout (null = unreachable)."""
        try:
            codes = data["airports"]
            raw = data["matrix"]
        except KeyError as e:
            raise ValueError(f"matrix data is missing the {e.args[0]!r} key") from None

        times = [
            [math.inf if value is None else float(value) for value in row]
            for row in raw
        ]
        direct = data.get("directFlights")
        if direct is not None:
            direct = [[bool(value) for value in row] for row in direct]
        else:
            direct = np.zeros((len(codes), len(codes)), dtype=bool)

        matrix = cls(codes=tuple(codes), times=times, direct=direct)
        logger.debug("Travel time matrix loaded", airports=len(matrix))
        return matrix

    def to_dict(self) -> dict:
        return {
            "airports": list(self.codes),
            "matrix": [
                [float(t) if np.isfinite(t) else None for t in row]
                for row in self.times
            ],
            "directFlights": self.direct.tolist(),
        }


@dataclass(frozen=True)
class AlignmentTransform:
    """Reflection, rotation and translation mapping a layout onto geography.

    Points are centred on source_centroid, optionally mirrored on each axis,
    rotated by `rotation` radians and moved to target_centroid.
    """
    rotation: float
    flip_x: bool
    flip_y: bool
    source_centroid: Tuple[float, float]
    target_centroid: Tuple[float, float]
    error: float = 0.0

    def apply(self, points) -> np.ndarray:
        pts = as_positions(points)
        if len(pts) == 0:
            return pts
        centered = pts - np.asarray(self.source_centroid)
        if self.flip_x:
            centered[:, 0] = -centered[:, 0]
        if self.flip_y:
            centered[:, 1] = -centered[:, 1]
        cos, sin = math.cos(self.rotation), math.sin(self.rotation)
        rotated = np.column_stack([
            centered[:, 0] * cos - centered[:, 1] * sin,
            centered[:, 0] * sin + centered[:, 1] * cos,
        ])
        return rotated + np.asarray(self.target_centroid)

    def is_identity(self, tol: float = 1e-6) -> bool:
        """True when the transform neither mirrors, rotates nor translates."""
        angle = math.atan2(math.sin(self.rotation), math.cos(self.rotation))
        shift = np.subtract(self.target_centroid, self.source_centroid)
        return (
            not self.flip_x
            and not self.flip_y
            and abs(angle) <= tol
            and bool(np.all(np.abs(shift) <= tol))
        )


def points_from_records(records: List[dict]) -> List[Point]:
    """Build Points from {code, x, y[, hub]} records."""
    return [
        Point(code=r["code"], geo_x=float(r["x"]), geo_y=float(r["y"]), hub=r.get("hub"))
        for r in records
    ]
