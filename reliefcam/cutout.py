"""Perimeter cutout with a spiral entry ramp."""

import logging
import math

from .geometry import StockFootprint, ring_edges
from .paths import PathCollection, PathContext
from .slicer import extend
from .tools import Tool

logger = logging.getLogger(__name__)

FINAL_LAYER = 0  # slicer bands start at 1


def plan_cutout(
    footprint: StockFootprint,
    tool: Tool,
    cutout_depth: float,
    step_depth: float | None = None,
    retract_height: float = 5.0,
) -> PathCollection:
    """Cut the part free along the stock perimeter.

    The final-depth loop goes into its own layer. The ramp is planned
    climbing from the final depth around the perimeter at a constant
    gradient, one depth-of-cut per lap, until it breaks the surface. Its
    levels are flagged to be cut backwards, so on the machine each band is
    a spiral descending from the surface without a plunge.

    Args:
        footprint: Stock footprint
        tool: Cutting tool; its depth per pass sets the gradient
        cutout_depth: Final depth (positive)
        step_depth: Band depth for the ramp, defaults to the tool depth per pass
        retract_height: Safe Z

    Returns:
        Collection holding the loop and the ramp, empty for a zero-length perimeter
    """
    if step_depth is None:
        step_depth = tool.max_depth_per_pass
    ctx = PathContext.start("Cutout path", tool, step_depth, retract_height, level_name=None)

    perimeter = footprint.expanded(tool.diameter / 2).to_shapely()
    circumference = perimeter.exterior.length
    if circumference == 0:
        logger.warning("Cutout perimeter has zero length, skipping cutout")
        return ctx.collection

    edges = ring_edges(perimeter)
    current_depth = -cutout_depth

    final = ctx.collection.layer(FINAL_LAYER, tool, current_depth).level("Cutout")
    for start, end in edges:
        final.add_segment(start, end, current_depth, current_depth)

    gradient = abs(tool.max_depth_per_pass) / circumference
    extend(ctx, edges[0][0][0], edges[0][0][1], current_depth)

    laps = 0
    while current_depth < 0:
        laps += 1
        for start, end in edges:
            if current_depth >= 0:
                break
            rise = gradient * math.dist(start, end)
            extend(ctx, end[0], end[1], current_depth + rise)
            current_depth += rise

    for layer in ctx.collection:
        if layer.index != FINAL_LAYER:
            for level in layer.levels:
                level.reverse_cut = True

    logger.info(
        "Cutout with %s: perimeter %.1f, %d ramp laps to depth %.2f",
        tool.name, circumference, laps, cutout_depth,
    )
    return ctx.collection
