"""Tests for the map coordination layer."""

import numpy as np
import pytest

from py_ftm.core.coordinator import DisplayMode, FlightTimeMap, VisualStyle
from py_ftm.core.distortion import compute_radial_positions
from py_ftm.core.models import Point
from py_ftm.core.options import EngineOptions, LayoutStrategy, Viewport


@pytest.fixture
def map_viewport():
    return Viewport(975, 610, 60)


@pytest.fixture
def flight_map(airports, matrix, map_viewport):
    return FlightTimeMap(airports, matrix, map_viewport, duration=1000.0)


class TestFilterAndSelection:
    """Test airport filtering and origin selection."""

    def test_defaults(self, flight_map, airports):
        assert flight_map.mode == DisplayMode.GEOGRAPHIC
        assert flight_map.style == VisualStyle.RUBBER_SHEET
        assert flight_map.codes == ("ATL", "ORD", "DEN", "LAX", "BOS")
        np.testing.assert_array_equal(
            flight_map.current_positions(), [a.geo_position for a in airports]
        )

    def test_filter_keeps_top_ranked(self, flight_map):
        shown = flight_map.apply_airport_filter(3)
        assert [a.code for a in shown] == ["ATL", "ORD", "DEN"]
        assert flight_map.current_matrix().codes == ("ATL", "ORD", "DEN")

    def test_filter_resets_positions(self, flight_map):
        flight_map.set_mode("flight_time")
        flight_map.select_origin("ORD")
        flight_map.update(now=0.0)
        assert not np.allclose(flight_map.current_positions(), flight_map.geo_positions())

        flight_map.apply_airport_filter(5)
        np.testing.assert_array_equal(flight_map.current_positions(), flight_map.geo_positions())
        assert not flight_map.transitions.is_transitioning

    def test_initial_filter(self, airports, matrix, map_viewport):
        flight_map = FlightTimeMap(airports, matrix, map_viewport, airport_count=2)
        assert flight_map.codes == ("ATL", "ORD")

    def test_select_origin(self, flight_map):
        assert flight_map.select_origin("DEN") == 2
        assert flight_map.select_origin("SFO") == -1
        assert flight_map.select_origin(None) == -1

    def test_origin_filtered_out(self, flight_map):
        flight_map.select_origin("BOS")
        flight_map.apply_airport_filter(3)
        assert flight_map.origin_index() == -1

    def test_invalid_mode(self, flight_map):
        with pytest.raises(ValueError):
            flight_map.set_mode("sideways")


class TestTargetPositions:
    """Test layout computation for the displayed airports."""

    def test_geographic_mode(self, flight_map):
        flight_map.select_origin("ORD")
        np.testing.assert_array_equal(
            flight_map.compute_target_positions(), flight_map.geo_positions()
        )

    def test_flight_time_mode(self, flight_map, matrix):
        flight_map.set_mode(DisplayMode.FLIGHT_TIME)
        flight_map.select_origin("ORD")
        geo = flight_map.geo_positions()
        np.testing.assert_allclose(
            flight_map.compute_target_positions(),
            compute_radial_positions(matrix.times[1], geo, 1),
        )

    def test_flight_time_without_origin(self, flight_map):
        flight_map.set_mode(DisplayMode.FLIGHT_TIME)
        np.testing.assert_array_equal(
            flight_map.compute_target_positions(), flight_map.geo_positions()
        )

    def test_mds_strategy(self, airports, matrix, map_viewport):
        options = EngineOptions(strategy=LayoutStrategy.MDS)
        flight_map = FlightTimeMap(airports, matrix, map_viewport, options)
        flight_map.set_mode(DisplayMode.FLIGHT_TIME)
        flight_map.select_origin("ATL")
        targets = flight_map.compute_target_positions()
        assert targets.shape == (5, 2)
        assert np.all(np.isfinite(targets))

    def test_times_for_airport_missing_from_matrix(self, airports, matrix, map_viewport):
        extra = airports[:2] + [Point("SFO", 50.0, 300.0)]
        flight_map = FlightTimeMap(extra, matrix, map_viewport)
        times = flight_map.current_times()

        np.testing.assert_array_equal(times[:2, :2], [[0, 110], [110, 0]])
        assert times[2, 2] == 0
        assert np.isinf(times[0, 2]) and np.isinf(times[2, 1])

        flight_map.set_mode(DisplayMode.FLIGHT_TIME)
        flight_map.select_origin("ATL")
        targets = flight_map.compute_target_positions()
        np.testing.assert_array_equal(targets[2], [50.0, 300.0])


class TestUpdate:
    """Test interaction updates."""

    def test_points_style(self, flight_map):
        flight_map.set_style(VisualStyle.POINTS)
        flight_map.set_mode(DisplayMode.FLIGHT_TIME)
        flight_map.select_origin("ATL")
        update = flight_map.update(now=0.0)

        assert update.codes == flight_map.codes
        assert update.warper is None and update.mesh is None
        np.testing.assert_allclose(update.transition.positions_at(0.0), update.originals)
        np.testing.assert_allclose(update.transition.positions_at(1000.0), update.targets)
        np.testing.assert_allclose(flight_map.current_positions(), update.targets)

    def test_rubber_sheet_style(self, flight_map):
        flight_map.set_mode(DisplayMode.FLIGHT_TIME)
        flight_map.select_origin("ATL")
        update = flight_map.update(now=0.0)

        n = len(update.codes)
        assert update.mesh.control_count == n
        np.testing.assert_allclose(update.mesh_positions[:n], update.targets)
        boundary = update.mesh.boundary_mask
        np.testing.assert_array_equal(update.mesh_positions[boundary], update.mesh.points[boundary])

        for (gx, gy), target in zip(update.originals, update.targets):
            assert update.warper(gx, gy) == pytest.approx(tuple(target))

    def test_mesh_reused_for_same_airports(self, flight_map):
        first = flight_map.update(now=0.0).mesh
        flight_map.set_mode(DisplayMode.FLIGHT_TIME)
        flight_map.select_origin("DEN")
        assert flight_map.update(now=10.0).mesh is first

        flight_map.apply_airport_filter(4)
        assert flight_map.update(now=20.0).mesh is not first

    def test_new_interaction_interrupts(self, flight_map):
        flight_map.set_mode(DisplayMode.FLIGHT_TIME)
        flight_map.select_origin("ATL")
        first = flight_map.update(now=0.0)
        flight_map.select_origin("LAX")
        second = flight_map.update(now=500.0)

        assert first.transition.cancelled
        np.testing.assert_allclose(second.transition.start, first.transition.positions_at(500.0))
        np.testing.assert_allclose(flight_map.transitions.positions_at(2000.0), second.targets)

    def test_warp_at_follows_animation(self, flight_map):
        flight_map.set_mode(DisplayMode.FLIGHT_TIME)
        flight_map.select_origin("ORD")
        update = flight_map.update(now=0.0)

        at_start = flight_map.warp_at(0.0)
        gx, gy = update.originals[0]
        assert at_start(gx, gy) == pytest.approx((gx, gy))

        at_end = flight_map.warp_at(1000.0)
        assert at_end(gx, gy) == pytest.approx(tuple(update.targets[0]))
