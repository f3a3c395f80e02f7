"""
Coordination of the flight time map.

FlightTimeMap holds what the renderer needs between interactions (the
immutable travel-time snapshot, the ranked airports, the chosen origin and
display options) and answers each interaction with explicit results: target
positions, a transition to sample, and for rubber-sheet mode the warp and
deformed mesh. Drawing and frame scheduling stay with the caller.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple

import numpy as np
import structlog

from .distortion import compute_positions
from .mesh_deformer import ContainmentPredicate, Mesh, deform_mesh, generate_or_reuse_mesh
from .models import Point, TravelTimeMatrix
from .options import DEFAULT_OPTIONS, EngineOptions, Viewport
from .path_warp import PathWarper
from .transitions import DEFAULT_DURATION_MS, Transition, TransitionManager

logger = structlog.get_logger()


class DisplayMode(str, Enum):
    GEOGRAPHIC = "geographic"
    FLIGHT_TIME = "flight_time"


class VisualStyle(str, Enum):
    POINTS = "points"              # Only airports move
    RUBBER_SHEET = "rubber_sheet"  # Airports and state outlines move together


@dataclass(eq=False)
class LayoutUpdate:
    """Everything the renderer needs to animate one interaction."""
    codes: Tuple[str, ...]
    originals: np.ndarray
    targets: np.ndarray
    transition: Transition
    warper: Optional[PathWarper] = None
    mesh: Optional[Mesh] = None
    mesh_positions: Optional[np.ndarray] = None


class FlightTimeMap:
    """
    Session state for one map view.

    Args:
        airports: All airports, ranked (the filter keeps the first N)
        matrix: Travel-time snapshot; never modified
        viewport: Screen frame
        options: Engine options passed to every computation
        is_inside: Landmass containment predicate for the mesh grid
        airport_count: Initial filter size, all airports when None
        duration: Transition length in milliseconds
    """

    def __init__(self, airports: Sequence[Point], matrix: TravelTimeMatrix,
                 viewport: Viewport, options: EngineOptions = DEFAULT_OPTIONS,
                 is_inside: Optional[ContainmentPredicate] = None,
                 airport_count: Optional[int] = None,
                 duration: float = DEFAULT_DURATION_MS):
        self.all_airports: List[Point] = list(airports)
        self.matrix = matrix
        self.viewport = viewport
        self.options = options
        self.is_inside = is_inside

        self.mode = DisplayMode.GEOGRAPHIC
        self.style = VisualStyle.RUBBER_SHEET
        self.selected_origin: Optional[str] = None

        self.transitions = TransitionManager(duration=duration)
        self._mesh: Optional[Mesh] = None
        self.airports: List[Point] = []
        self.apply_airport_filter(len(self.all_airports) if airport_count is None else airport_count)

    @property
    def codes(self) -> Tuple[str, ...]:
        return tuple(a.code for a in self.airports)

    def geo_positions(self) -> np.ndarray:
        if not self.airports:
            return np.zeros((0, 2))
        return np.array([a.geo_position for a in self.airports], dtype=float)

    def current_positions(self) -> np.ndarray:
        if not self.airports:
            return np.zeros((0, 2))
        return np.array([a.position for a in self.airports], dtype=float)

    def apply_airport_filter(self, count: int) -> List[Point]:
        """Keep the top `count` airports and snap them back to geography."""
        count = max(0, int(count))
        self.airports = self.all_airports[:count]
        for airport in self.airports:
            airport.reset()
        self.transitions.set_positions(self.geo_positions())
        logger.info("Airport filter applied", count=len(self.airports))
        return self.airports

    def select_origin(self, code: Optional[str]) -> int:
        """Choose the origin airport; returns its index or -1 if not shown."""
        self.selected_origin = code
        index = self.origin_index()
        if code is not None and index < 0:
            logger.warning("Origin is not among the displayed airports", origin=code)
        return index

    def set_mode(self, mode) -> None:
        self.mode = DisplayMode(mode)

    def set_style(self, style) -> None:
        self.style = VisualStyle(style)

    def set_viewport(self, viewport: Viewport) -> None:
        self.viewport = viewport

    def origin_index(self) -> int:
        if self.selected_origin is None:
            return -1
        for i, airport in enumerate(self.airports):
            if airport.code == self.selected_origin:
                return i
        return -1

    def current_matrix(self) -> TravelTimeMatrix:
        """Travel times restricted to the displayed airports."""
        return self.matrix.sub_matrix(self.codes)

    def current_times(self) -> np.ndarray:
        """NxN times aligned with the displayed airports; missing codes are unreachable."""
        indices = [self.matrix.index_of(code) for code in self.codes]
        n = len(indices)
        times = np.full((n, n), np.inf)
        np.fill_diagonal(times, 0.0)
        known = [i for i, idx in enumerate(indices) if idx >= 0]
        src = [indices[i] for i in known]
        times[np.ix_(known, known)] = self.matrix.times[np.ix_(src, src)]
        return times

    def compute_target_positions(self) -> np.ndarray:
        """Geographic positions, or the travel-time layout around the origin."""
        geo = self.geo_positions()
        origin_index = self.origin_index()
        if self.mode == DisplayMode.GEOGRAPHIC or origin_index < 0:
            return geo
        return compute_positions(self.current_times(), geo, origin_index,
                                 self.viewport, self.options)

    def mesh(self) -> Mesh:
        """Rubber-sheet mesh for the displayed airports, rebuilt only when needed."""
        self._mesh = generate_or_reuse_mesh(
            self._mesh, self.geo_positions(), self.viewport,
            self.is_inside, self.options, self.codes,
        )
        return self._mesh

    def update(self, now: float) -> LayoutUpdate:
        """
        Recompute the layout after an interaction and start animating to it.

        Any transition still in flight is interrupted; the new targets win.
        """
        originals = self.geo_positions()
        targets = self.compute_target_positions()
        transition = self.transitions.begin(targets, now)

        for airport, (x, y) in zip(self.airports, targets):
            airport.move_to(x, y)

        result = LayoutUpdate(
            codes=self.codes,
            originals=originals,
            targets=targets,
            transition=transition,
        )
        if self.style == VisualStyle.RUBBER_SHEET:
            result.warper = PathWarper(originals, targets, 1.0, self.options)
            result.mesh = self.mesh()
            result.mesh_positions = deform_mesh(result.mesh, originals, targets, self.options)

        logger.info("Layout updated", origin=self.selected_origin, mode=self.mode.value,
                    style=self.style.value, airports=len(targets))
        return result

    def warp_at(self, now: float) -> PathWarper:
        """Warp matching the airports' animated positions at `now`."""
        return PathWarper(self.geo_positions(), self.transitions.positions_at(now),
                          1.0, self.options)
