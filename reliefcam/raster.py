"""Zigzag raster toolpaths over a height map."""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from .geometry import StockFootprint
from .paths import PathCollection, PathContext
from .sampler import sample_height
from .slicer import extend_smoothed
from .tools import Tool

logger = logging.getLogger(__name__)

ROUGHING_JUMP = 0.5  # height change that triggers a re-sample while roughing
LINE_JUMP = 0.5  # height change that needs a raise point inside a line
TURNAROUND_JUMP = 0.1  # same, for the move onto the next line
REFINE_FRACTION = 1 / 3
CORNER_REACH = 0.9  # fraction of the tool radius reaching past a stock corner


class PassKind(Enum):
    """Roughing leaves stock for later tools, finishing cuts to the surface."""
    ROUGHING = "roughing"
    FINISHING = "finishing"


class ScanDirection(Enum):
    """Orientation of the raster lines."""
    ROWS = "rows"  # lines along X, stepping in Y
    COLUMNS = "columns"  # lines along Y, stepping in X

    def crossed(self) -> "ScanDirection":
        return ScanDirection.COLUMNS if self is ScanDirection.ROWS else ScanDirection.ROWS


@dataclass
class RasterParams:
    """Parameters for a raster pass."""
    pass_kind: PassKind
    direction: ScanDirection
    depth: float  # cutout depth; model heights are measured up from -depth
    step_depth: float  # depth of each band
    stock_to_leave: float = 0.0  # only honoured while roughing
    retract_height: float = 5.0
    cutout: bool = True  # a perimeter cutout follows, so overshoot the stock
    stepover: float | None = None  # None uses the tool's stepover for the pass
    roughing_radius_factor: float = 1.0  # widens the roughing probe radius


def overshoot(tool: Tool, params: RasterParams) -> float:
    """Distance the raster runs past the stock edges."""
    if params.cutout:
        return CORNER_REACH * tool.radius
    if params.pass_kind is PassKind.ROUGHING:
        return 0.0
    return CORNER_REACH * tool.radius / 2


def axis_steps(lo: float, hi: float, step: float) -> list[float]:
    """Positions from lo to hi at the given step, always ending on hi."""
    if hi <= lo:
        return [lo]
    steps = [lo]
    while steps[-1] + step < hi - 1e-9:
        steps.append(steps[-1] + step)
    steps.append(hi)
    return steps


def outside_corner(footprint: StockFootprint, x: float, y: float, reach: float) -> bool:
    """True if a point is diagonally past a stock corner by more than reach."""
    if x < footprint.min_x:
        dx = footprint.min_x - x
    elif x > footprint.max_x:
        dx = x - footprint.max_x
    else:
        return False
    if y < footprint.min_y:
        dy = footprint.min_y - y
    elif y > footprint.max_y:
        dy = y - footprint.max_y
    else:
        return False
    return math.hypot(dx, dy) > reach


def plan_raster(
    oracle,
    footprint: StockFootprint,
    tool: Tool,
    params: RasterParams,
    progress: Callable[[float], None] | None = None,
) -> PathCollection:
    """Generate a zigzag raster covering the whole stock footprint.

    Args:
        oracle: Height oracle for the normalised model
        footprint: Stock footprint to cover
        tool: Cutting tool
        params: Raster parameters
        progress: Optional callback receiving percent complete

    Returns:
        Collection with one layer per depth band
    """
    ctx = PathContext.start("STL path", tool, params.step_depth, params.retract_height)
    roughing = params.pass_kind is PassKind.ROUGHING

    stepover = params.stepover
    if not stepover:
        stepover = tool.stepover if roughing else tool.finishing_stepover()
    if stepover <= 0:
        raise ValueError(f"Tool {tool.id}: stepover must be positive, got {stepover}")

    leave = params.stock_to_leave if roughing else 0.0
    radius = tool.radius * params.roughing_radius_factor + leave if roughing else tool.radius
    margin = overshoot(tool, params)
    region = footprint.expanded(margin)

    if params.direction is ScanDirection.ROWS:
        along = (region.min_x, region.max_x)
        lines = axis_steps(region.min_y, region.max_y, stepover)
    else:
        along = (region.min_y, region.max_y)
        lines = axis_steps(region.min_x, region.max_x, stepover)

    reach = CORNER_REACH * tool.radius

    def to_xy(u: float, v: float) -> tuple[float, float]:
        if params.direction is ScanDirection.ROWS:
            return u, v
        return v, u

    def height_at(u: float, v: float) -> float:
        x, y = to_xy(u, v)
        return sample_height(oracle, x, y, radius, tool)

    for n, v in enumerate(lines):
        if n % 2 == 0:
            start, end, step = along[0], along[1], stepover
        else:
            start, end, step = along[1], along[0], -stepover

        last_h = None
        prev_u = start
        u = start
        while True:
            x, y = to_xy(u, v)
            if not outside_corner(footprint, x, y, reach):
                h = height_at(u, v)
                if roughing and last_h is not None and abs(h - last_h) > ROUGHING_JUMP:
                    u = prev_u + step * REFINE_FRACTION
                    x, y = to_xy(u, v)
                    h = height_at(u, v)

                jump = TURNAROUND_JUMP if last_h is None else LINE_JUMP
                extend_smoothed(ctx, x, y, -params.depth + h + leave, jump)
                last_h = h
                prev_u = u

            if abs(u - end) < 1e-9:
                break
            u = u + step
            if (u - end) * step > -1e-9:
                u = end

        if progress is not None:
            progress(100.0 * (n + 1) / len(lines))

    logger.info(
        "%s raster (%s) with %s: %d lines, %d segments in %d bands",
        params.pass_kind.value.capitalize(), params.direction.value, tool.name,
        len(lines), ctx.collection.segment_count(), len(ctx.collection),
    )
    return ctx.collection
