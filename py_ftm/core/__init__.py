"""
Core geometry for the flight time map.
"""

from .options import EngineOptions, LayoutStrategy, Viewport
from .models import AlignmentTransform, Point, PointCategory, TravelTimeMatrix, points_from_records
from .distortion import compute_distorted_layout, compute_positions, compute_radial_positions
from .mds import align_to_geography, classical_mds, compute_mds_positions, scale_to_viewport
from .mesh_deformer import Mesh, build_mesh, deform_mesh, transform_point, transform_points
from .path_warp import PathWarper, ProjectedWarp, warp_continuous_path, warp_geometry
from .landmass import containment_predicate, load_landmass, project_geometry
from .transitions import Transition, TransitionManager
from .coordinator import DisplayMode, FlightTimeMap, LayoutUpdate, VisualStyle

__all__ = ['EngineOptions', 'LayoutStrategy', 'Viewport',
           'AlignmentTransform', 'Point', 'PointCategory', 'TravelTimeMatrix', 'points_from_records',
           'compute_distorted_layout', 'compute_positions', 'compute_radial_positions',
           'align_to_geography', 'classical_mds', 'compute_mds_positions', 'scale_to_viewport',
           'Mesh', 'build_mesh', 'deform_mesh', 'transform_point', 'transform_points',
           'PathWarper', 'ProjectedWarp', 'warp_continuous_path', 'warp_geometry',
           'containment_predicate', 'load_landmass', 'project_geometry',
           'Transition', 'TransitionManager',
           'DisplayMode', 'FlightTimeMap', 'LayoutUpdate', 'VisualStyle']
