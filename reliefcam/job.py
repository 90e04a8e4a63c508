"""Toolpath generation for a whole job: every tool, the walls and the cutout."""

import logging
from dataclasses import dataclass, field
from typing import Callable

from .cutout import plan_cutout
from .geometry import StockFootprint
from .heightmap import HeightMap
from .mesh import TriangleMesh
from .paths import PathCollection
from .raster import PassKind, RasterParams, ScanDirection, plan_raster
from .tools import Tool
from .walls import reconstruct_walls

logger = logging.getLogger(__name__)

MIN_CUTOUT_DEPTH = 0.01
SINGLE_BAND = 5000.0  # band depth for tools following the first one


@dataclass
class JobConfig:
    """Parameters for a complete job."""
    tools: list[Tool]  # index 0 is the finishing tool; processed from the last index down
    cutout_depth: float | None = None  # None derives the depth from the model
    stock_to_leave: float = 0.0  # left by roughing passes
    z_offset: float = 0.0  # shifts the scaled model up or down
    finishing_pass: bool = False  # add a cross-direction pass with the finishing tool
    finishing_stepover: float | None = None
    retract_height: float = 5.0
    cutout: bool = True
    roughing_radius_factor: float = 1.0


@dataclass
class JobResult:
    """Everything produced for one job."""
    collections: list[PathCollection]
    depth: float
    footprint: StockFootprint
    advisories: list[str] = field(default_factory=list)

    @property
    def segment_count(self) -> int:
        return sum(c.segment_count() for c in self.collections)


def run_job(
    mesh: TriangleMesh,
    config: JobConfig,
    progress: Callable[[float], None] | None = None,
) -> JobResult:
    """Generate all toolpaths for a mesh.

    Tools run largest first: every tool but the finishing one roughs with
    stock to leave, and only the first tool into the stock is limited to
    its depth per pass. The finishing tool also gets the wall pass and,
    when a cutout depth is known, cuts the part free.

    Args:
        mesh: Model to machine
        config: Job parameters
        progress: Optional callback receiving percent complete per pass

    Returns:
        Generated path collections in machining order
    """
    if not config.tools:
        raise ValueError("A job needs at least one tool")

    advisories: list[str] = []

    def advise(message: str) -> None:
        logger.warning(message)
        advisories.append(message)

    if mesh.is_empty:
        advise("Mesh has no triangles; machining an empty model")

    oracle = HeightMap(mesh)
    oracle.normalize()

    depth = config.cutout_depth
    cutout = config.cutout
    if depth is None or depth < MIN_CUTOUT_DEPTH:
        depth = oracle.model_height()
        cutout = False
        advise(f"No cutout depth set, using model height {depth:.2f} and skipping the cutout")

    oracle.scale(depth, config.z_offset)
    footprint = StockFootprint.from_size(oracle.footprint_x(), oracle.footprint_y())
    logger.info(
        "Stock %.1f x %.1f, depth %.2f, %d triangles",
        footprint.width, footprint.height, depth, len(oracle),
    )

    collections = []
    direction = ScanDirection.ROWS
    order = list(reversed(range(len(config.tools))))
    for stage, i in enumerate(order):
        tool = config.tools[i]
        finishing = i == 0
        step_depth = tool.max_depth_per_pass if stage == 0 else SINGLE_BAND
        logger.info("Create toolpaths for tool %s", tool.name)

        params = RasterParams(
            pass_kind=PassKind.FINISHING if finishing else PassKind.ROUGHING,
            direction=direction,
            depth=depth,
            step_depth=step_depth,
            stock_to_leave=config.stock_to_leave,
            retract_height=config.retract_height,
            cutout=cutout,
            stepover=config.finishing_stepover if finishing else None,
            roughing_radius_factor=config.roughing_radius_factor,
        )
        collections.append(plan_raster(oracle, footprint, tool, params, progress))

        if finishing and config.finishing_pass:
            params.direction = direction.crossed()
            collections.append(plan_raster(oracle, footprint, tool, params, progress))

        if finishing:
            walls = reconstruct_walls(
                oracle, footprint, tool, depth, step_depth, config.retract_height
            )
            if not walls.is_empty:
                collections.append(walls)

        direction = direction.crossed()

    if cutout:
        tool = config.tools[0]
        ramp = plan_cutout(footprint, tool, depth, tool.max_depth_per_pass, config.retract_height)
        if not ramp.is_empty:
            collections.append(ramp)

    return JobResult(
        collections=collections,
        depth=depth,
        footprint=footprint,
        advisories=advisories,
    )
