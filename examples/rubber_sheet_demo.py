#!/usr/bin/env python3
"""
Demo script showing the flight time map on a handful of US airports.
"""

import numpy as np
from shapely.geometry import Polygon

from py_ftm.config import settings
from py_ftm.core import (
    DisplayMode,
    EngineOptions,
    FlightTimeMap,
    LayoutStrategy,
    TravelTimeMatrix,
    Viewport,
    containment_predicate,
    points_from_records,
)

# Screen positions as produced by an Albers USA projection at 975x610
AIRPORTS = [
    {"code": "ATL", "x": 690.0, "y": 400.0, "hub": "large"},
    {"code": "ORD", "x": 620.0, "y": 220.0, "hub": "large"},
    {"code": "DFW", "x": 470.0, "y": 430.0, "hub": "large"},
    {"code": "DEN", "x": 350.0, "y": 260.0, "hub": "large"},
    {"code": "LAX", "x": 110.0, "y": 350.0, "hub": "large"},
    {"code": "JFK", "x": 850.0, "y": 190.0, "hub": "large"},
    {"code": "SEA", "x": 120.0, "y": 60.0, "hub": "large"},
    {"code": "BOZ", "x": 270.0, "y": 140.0, "hub": "small"},
]

# Door-to-door minutes; BOZ has few connections
TIMES = {
    "matrix": [
        [0, 140, 150, 220, 300, 160, 330, 420],
        [140, 0, 170, 170, 280, 150, 270, 300],
        [150, 170, 0, 140, 220, 230, 280, 360],
        [220, 170, 140, 0, 160, 260, 190, 150],
        [300, 280, 220, 160, 0, 330, 190, 330],
        [160, 150, 230, 260, 330, 0, 380, None],
        [330, 270, 280, 190, 190, 380, 0, 280],
        [420, 300, 360, 150, 330, 450, 280, 0],
    ],
}

# Rough outline of the contiguous states in screen space
LANDMASS = Polygon([
    (60, 40), (320, 30), (560, 120), (900, 110), (930, 260),
    (820, 380), (760, 560), (520, 560), (300, 470), (80, 400),
])


def describe(codes, before, after):
    for code, (x0, y0), (x1, y1) in zip(codes, before, after):
        shift = np.hypot(x1 - x0, y1 - y0)
        print(f"  {code}: ({x0:6.1f}, {y0:6.1f}) -> ({x1:6.1f}, {y1:6.1f})  moved {shift:5.1f}")


def main():
    """Demonstrate radial and MDS layouts plus the rubber-sheet mesh."""
    print("Flight Time Map Demo")
    print("=" * 40)

    airports = points_from_records(AIRPORTS)
    matrix = TravelTimeMatrix.from_dict({"airports": [a["code"] for a in AIRPORTS], **TIMES})
    viewport = Viewport(975, 610, 60)

    flight_map = settings.flight_time_map(airports, matrix,
                                          is_inside=containment_predicate(LANDMASS))
    flight_map.set_mode(DisplayMode.FLIGHT_TIME)

    for origin in ("ATL", "DEN"):
        print(f"\nRadial layout from {origin}:")
        print("-" * 30)
        flight_map.select_origin(origin)
        update = flight_map.update(now=0.0)
        describe(update.codes, update.originals, update.targets)

        mesh = update.mesh
        moved = np.hypot(*(update.mesh_positions - mesh.points).T)
        print(f"  Mesh: {len(mesh.points)} points, {len(mesh.triangles)} triangles")
        print(f"  Interior points moved on average {moved[mesh.interior_mask].mean():.1f}")

        outline = update.warper.warp_geometry(LANDMASS)
        print(f"  Landmass area {LANDMASS.area:.0f} -> {outline.area:.0f}")

    print("\nMDS layout of the whole network:")
    print("-" * 30)
    mds_map = FlightTimeMap(airports, matrix, viewport,
                            EngineOptions(strategy=LayoutStrategy.MDS))
    mds_map.set_mode(DisplayMode.FLIGHT_TIME)
    mds_map.select_origin("ATL")
    update = mds_map.update(now=0.0)
    describe(update.codes, update.originals, update.targets)

    print("\nDemo complete!")


if __name__ == "__main__":
    main()
