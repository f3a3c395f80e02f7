"""Shared fixtures for flight time map tests."""

import math

import numpy as np
import pytest

from py_ftm.core.models import Point, TravelTimeMatrix
from py_ftm.core.options import Viewport


@pytest.fixture
def viewport():
    return Viewport(width=200, height=100, padding=10)


@pytest.fixture
def three_airports():
    """Origin O, fast nonstop destination A and slow connecting destination B."""
    positions = np.array([
        [500.0, 300.0],  # O
        [800.0, 300.0],  # A, 300 units east
        [500.0, 400.0],  # B, 100 units south
    ])
    times = np.array([0.0, 120.0, 300.0])
    return positions, times


@pytest.fixture
def airports():
    """Five ranked airports in screen coordinates."""
    return [
        Point(code="ATL", geo_x=600.0, geo_y=380.0, hub="large"),
        Point(code="ORD", geo_x=560.0, geo_y=200.0, hub="large"),
        Point(code="DEN", geo_x=350.0, geo_y=250.0, hub="large"),
        Point(code="LAX", geo_x=120.0, geo_y=330.0, hub="large"),
        Point(code="BOS", geo_x=820.0, geo_y=150.0, hub="medium"),
    ]


@pytest.fixture
def matrix():
    """Travel times for the airports fixture; BOS cannot reach LAX."""
    inf = math.inf
    codes = ("ATL", "ORD", "DEN", "LAX", "BOS")
    times = [
        [0, 110, 200, 290, 150],
        [110, 0, 150, 260, 130],
        [200, 150, 0, 140, 280],
        [290, 260, 140, 0, 330],
        [150, 130, 280, inf, 0],
    ]
    direct = [
        [False, True, True, True, True],
        [True, False, True, True, True],
        [True, True, False, True, False],
        [True, True, True, False, False],
        [True, True, False, False, False],
    ]
    return TravelTimeMatrix(codes=codes, times=times, direct=direct)
