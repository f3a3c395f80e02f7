"""FastAPI main application."""

import dataclasses
import logging
import math
from typing import Any, Dict, List, Optional, Tuple

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .. import __version__
from ..config import settings
from ..core.distortion import compute_distorted_layout
from ..core.landmass import containment_predicate, load_landmass
from ..core.mds import compute_mds_positions
from ..core.mesh_deformer import build_mesh, deform_mesh, transform_points
from ..core.models import PointCategory
from ..core.options import EngineOptions, Viewport
from ..core.path_warp import warp_continuous_path

# Configure logging
logging.basicConfig(format="%(message)s", level=getattr(logging, settings.log_level.upper(), logging.INFO))
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer() if settings.log_format == "json"
        else structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()

# Initialize FastAPI app
app = FastAPI(
    title="Flight Time Map API",
    description="Travel-time distortion of airport maps",
    version=__version__,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

Coordinate = Tuple[float, float]


# Request/Response models
class ViewportModel(BaseModel):
    """Screen frame; defaults come from settings."""

    width: float = Field(default_factory=lambda: settings.map_width, gt=0, le=settings.max_map_width)
    height: float = Field(default_factory=lambda: settings.map_height, gt=0, le=settings.max_map_height)
    padding: float = Field(default_factory=lambda: settings.map_padding, ge=0)

    def to_viewport(self) -> Viewport:
        return Viewport(self.width, self.height, self.padding)


class OptionOverrides(BaseModel):
    """Per-request overrides of the configured engine options."""

    damping: Optional[float] = Field(None, description="Radial distortion damping in [0, 1]")
    interpolation_power: Optional[float] = Field(None, description="Inverse-distance weighting power")
    time_scale_exponent: Optional[float] = Field(None, description="Exponent applied before MDS")
    grid_spacing: Optional[float] = Field(None, ge=settings.min_mesh_spacing,
                                          description="Interior mesh grid spacing")
    boundary_sampling: Optional[float] = Field(None, ge=settings.min_mesh_spacing,
                                               description="Edge sampling interval")

    def apply(self) -> EngineOptions:
        overrides = {k: v for k, v in self.model_dump().items() if v is not None}
        return dataclasses.replace(settings.engine_options(), **overrides)


class RadialLayoutRequest(BaseModel):
    """Travel times from one origin; null means unreachable."""

    matrix_row: List[Optional[float]]
    positions: List[Coordinate]
    origin_index: int = Field(..., ge=0)
    viewport: ViewportModel = Field(default_factory=ViewportModel)
    options: OptionOverrides = Field(default_factory=OptionOverrides)


class MDSLayoutRequest(BaseModel):
    """Full travel-time matrix; null means unreachable."""

    matrix: List[List[Optional[float]]]
    positions: List[Coordinate]
    viewport: ViewportModel = Field(default_factory=ViewportModel)
    options: OptionOverrides = Field(default_factory=OptionOverrides)


class LayoutResponse(BaseModel):
    positions: List[Coordinate]


class MeshRequest(BaseModel):
    """Airport displacement plus an optional landmass outline in screen coordinates."""

    control_originals: List[Coordinate]
    control_targets: List[Coordinate]
    codes: Optional[List[str]] = None
    landmass: Optional[Dict[str, Any]] = Field(None, description="GeoJSON in screen coordinates")
    viewport: ViewportModel = Field(default_factory=ViewportModel)
    options: OptionOverrides = Field(default_factory=OptionOverrides)


class MeshResponse(BaseModel):
    points: List[Coordinate]
    categories: List[str]
    triangles: List[Tuple[int, int, int]]
    deformed: List[Coordinate]


class TransformRequest(MeshRequest):
    queries: List[Coordinate]


class WarpRequest(BaseModel):
    samples: List[Coordinate]
    control_originals: List[Coordinate]
    control_targets: List[Coordinate]
    t: float = Field(1.0, ge=0, le=1, description="Transition progress")
    options: OptionOverrides = Field(default_factory=OptionOverrides)


class PointsResponse(BaseModel):
    points: List[Coordinate]


def _times(values: List[Optional[float]]) -> List[float]:
    return [math.inf if v is None else v for v in values]


def _pairs(array) -> List[Coordinate]:
    return [(float(x), float(y)) for x, y in array]


def _build_mesh(request: MeshRequest, options: EngineOptions):
    is_inside = None
    if request.landmass is not None:
        is_inside = containment_predicate(load_landmass(request.landmass))
    codes = request.codes
    if codes is None:
        codes = [str(i) for i in range(len(request.control_originals))]
    return build_mesh(request.control_originals, request.viewport.to_viewport(),
                      is_inside, options, codes)


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    """Malformed input shapes are the only errors the engine raises."""
    logger.warning("Rejected request", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=422, content={"detail": str(exc)})


# API endpoints
@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Flight Time Map API",
        "version": __version__,
        "status": "running"
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "strategy": settings.layout_strategy.value}


@app.post("/layout/radial", response_model=LayoutResponse)
async def radial_layout(request: RadialLayoutRequest):
    """Distort airport positions around the origin by travel time."""
    options = request.options.apply()
    positions = compute_distorted_layout(
        _times(request.matrix_row), request.positions, request.origin_index,
        request.viewport.to_viewport(), options,
    )
    logger.info("Radial layout served", airports=len(positions), origin_index=request.origin_index)
    return LayoutResponse(positions=_pairs(positions))


@app.post("/layout/mds", response_model=LayoutResponse)
async def mds_layout(request: MDSLayoutRequest):
    """Embed the whole matrix with classical MDS, aligned to geography."""
    options = request.options.apply()
    times = [_times(row) for row in request.matrix]
    positions = compute_mds_positions(times, request.positions,
                                      request.viewport.to_viewport(), options)
    logger.info("MDS layout served", airports=len(positions))
    return LayoutResponse(positions=_pairs(positions))


@app.post("/mesh/deform", response_model=MeshResponse)
async def mesh_deform(request: MeshRequest):
    """Build the rubber-sheet mesh and deform it by the airport displacement."""
    options = request.options.apply()
    mesh = _build_mesh(request, options)
    deformed = deform_mesh(mesh, request.control_originals, request.control_targets, options)
    return MeshResponse(
        points=_pairs(mesh.points),
        categories=[PointCategory.NAMES[int(c)] for c in mesh.point_types],
        triangles=[tuple(int(i) for i in tri) for tri in mesh.triangles],
        deformed=_pairs(deformed),
    )


@app.post("/transform", response_model=PointsResponse)
async def transform(request: TransformRequest):
    """Carry arbitrary points through the deformed mesh."""
    options = request.options.apply()
    mesh = _build_mesh(request, options)
    deformed = deform_mesh(mesh, request.control_originals, request.control_targets, options)
    moved = transform_points(request.queries, mesh, deformed, options)
    return PointsResponse(points=_pairs(moved))


@app.post("/warp", response_model=PointsResponse)
async def warp(request: WarpRequest):
    """Warp boundary samples at transition progress t."""
    options = request.options.apply()
    warped = warp_continuous_path(request.samples, request.control_originals,
                                  request.control_targets, request.t, options)
    return PointsResponse(points=_pairs(warped))


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
