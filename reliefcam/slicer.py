"""Depth-band slicing of 3-D moves.

Every move a planner makes goes through :func:`extend`. A move below the
stock surface is cut once per depth band: first at its own depth, then
repeatedly raised by the pass depth until it clears the surface. Each copy
lands in the layer of its band, so a downstream orderer can finish a band
across the whole job before stepping down.
"""

import math

from .paths import PathContext

# Moves shorter than this are dropped
MIN_MOVE = 1e-6
# XY travel below this counts as a pure plunge or retract
VERTICAL_XY = 1e-4
# Z at or above this is treated as the stock surface
SURFACE_Z = -1e-5
# Banded Z values snap up to 1/20 of a unit
BAND_STEPS = 20


def snap_up(z: float, steps: int = BAND_STEPS) -> float:
    """Round z up to the band grid."""
    return math.ceil(z * steps) / steps


def extend(ctx: PathContext, x2: float, y2: float, z2: float) -> None:
    """Move the cursor to (x2, y2, z2), recording the cut in every band it crosses."""
    cursor = ctx.cursor
    x1, y1, z1 = cursor.x, cursor.y, cursor.z

    if not cursor.first and math.dist((x1, y1, z1), (x2, y2, z2)) < MIN_MOVE:
        return

    cursor.x, cursor.y, cursor.z = x2, y2, z2
    if cursor.first:
        cursor.first = False
        return

    if math.hypot(x2 - x1, y2 - y1) < VERTICAL_XY:
        z1 = min(z1, ctx.retract_height)
        z2 = min(z2, ctx.retract_height)

    index = 0
    while z1 < SURFACE_Z or z2 < SURFACE_Z:
        index += 1

        layer = ctx.collection.layer(index, ctx.tool, ctx.step_depth)
        layer.level(ctx.level_name).add_segment((x1, y1), (x2, y2), z1, z2)

        z1 = snap_up(z1 + ctx.step_depth)
        z2 = snap_up(z2 + ctx.step_depth)


def extend_smoothed(ctx: PathContext, x: float, y: float, z: float, max_jump: float) -> None:
    """Like extend, but step around height jumps larger than max_jump.

    A rise is climbed in place before moving sideways and a drop is taken
    after arriving, so the cutter never moves diagonally into a wall.
    """
    cursor = ctx.cursor
    if not cursor.first and abs(z - cursor.z) > max_jump:
        if z > cursor.z:
            extend(ctx, cursor.x, cursor.y, z)
        else:
            extend(ctx, x, y, cursor.z)
    extend(ctx, x, y, z)
