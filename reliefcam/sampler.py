"""Tool-compensated surface height sampling."""

import math

import numpy as np

from .tools import Tool

# Unit ring of 16 probes at 22.5 degree spacing; the first four are axis aligned
_ANGLES = np.radians(np.concatenate([
    [0.0, 90.0, 180.0, 270.0],
    [a for a in np.arange(0.0, 360.0, 22.5) if a % 90.0 != 0.0],
]))
RING = np.column_stack([np.cos(_ANGLES), np.sin(_ANGLES)])
AXIS_PROBES = 4

RADIUS_SHRINK = 1.5
MIN_RING_RADIUS = 0.4
FLAT_RADIUS = 0.6  # below this a flat axis probe ends the search
FLAT_TOLERANCE = 0.1
RESOLUTION = 100  # results round up to 1/100 unit


def ceil_to_grid(z: float, resolution: int = RESOLUTION) -> float:
    """Round z up so the tool is never placed below the contact surface."""
    return math.ceil(z * resolution) / resolution


def sample_height(oracle, x: float, y: float, radius: float, tool: Tool) -> float:
    """Highest Z at which a tool of the given radius centred on (x, y) touches the surface.

    The oracle is probed at the centre and on rings of shrinking radius.
    Ring probes are lowered by the tool's radial offset so rounded and
    pointed cutters only see what their profile can reach.

    Args:
        oracle: Height oracle with a ``height(x, y)`` method
        x, y: Tool centre
        radius: Effective tool radius (may include stock to leave)
        tool: Tool whose profile compensates the ring probes

    Returns:
        Contact height, rounded up to 1/100 unit
    """
    centre = oracle.height(x, y)
    d = max(0.0, centre)

    r = radius
    loss = tool.radial_offset(r)
    for dx, dy in RING[:AXIS_PROBES]:
        d = max(d, oracle.height(x + dx * r, y + dy * r) - loss)
    if r < FLAT_RADIUS and d - centre < FLAT_TOLERANCE:
        return ceil_to_grid(d)

    for dx, dy in RING[AXIS_PROBES:]:
        d = max(d, oracle.height(x + dx * r, y + dy * r) - loss)

    for _ in range(2):
        r = r / RADIUS_SHRINK
        if r < MIN_RING_RADIUS:
            break
        loss = tool.radial_offset(r)
        for dx, dy in RING:
            d = max(d, oracle.height(x + dx * r, y + dy * r) - loss)

    return ceil_to_grid(d)
