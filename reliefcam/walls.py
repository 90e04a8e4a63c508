"""Finishing passes along steep walls.

The height map supplies wall cross-sections as loose segments. They are
linked into chains through their endpoints and each chain is cut as one
continuous path at the foot of the wall.
"""

import logging
import math
from collections import defaultdict

from .geometry import StockFootprint
from .heightmap import SegmentState, WallSegment, endpoint_key
from .paths import PathCollection, PathContext
from .sampler import sample_height
from .slicer import extend, extend_smoothed
from .tools import Tool

logger = logging.getLogger(__name__)

MAX_BACKTRACK = 150  # hops walked backwards looking for a chain start
SAMPLE_SPACING = 0.1
WALL_JUMP = 0.2
CLEARANCE = 0.9  # fraction of the tool radius probed next to the wall


def count_usable(segments: list[WallSegment]) -> int:
    """Count usable segments up to the sentinel."""
    count = 0
    for segment in segments:
        if segment.state is SegmentState.SENTINEL:
            break
        if segment.state is SegmentState.USABLE:
            count += 1
    return count


class _EndpointIndex:
    """Usable segments keyed by quantized start and end points."""

    def __init__(self, segments: list[WallSegment], usable: list[int]):
        self.segments = segments
        self.starts: dict[tuple, set[int]] = defaultdict(set)
        self.ends: dict[tuple, set[int]] = defaultdict(set)
        for i in usable:
            self._add(i)

    def _add(self, i: int) -> None:
        self.starts[endpoint_key(self.segments[i].start)].add(i)
        self.ends[endpoint_key(self.segments[i].end)].add(i)

    def discard(self, i: int) -> None:
        self.starts[endpoint_key(self.segments[i].start)].discard(i)
        self.ends[endpoint_key(self.segments[i].end)].discard(i)

    def flip(self, i: int) -> None:
        self.discard(i)
        self.segments[i].flip()
        self._add(i)

    def successor(self, i: int) -> int | None:
        """Next usable segment starting where i ends, flipping a reversed one."""
        key = endpoint_key(self.segments[i].end)
        following = self.starts.get(key)
        if following:
            return min(following)
        reversed_ = self.ends.get(key)
        if reversed_:
            candidate = min(reversed_)
            self.flip(candidate)
            return candidate
        return None


def _chain_start(segments: list[WallSegment], i: int) -> int:
    """Walk back-links from i to the earliest usable segment, stopping on cycles."""
    visited = {i}
    current = i
    for _ in range(MAX_BACKTRACK):
        back = segments[current].back
        if back < 0 or back >= len(segments) or back in visited:
            break
        candidate = segments[back]
        if candidate.state is not SegmentState.USABLE:
            break
        if endpoint_key(candidate.end) != endpoint_key(segments[current].start):
            break
        visited.add(back)
        current = back
    return current


def chain_segments(segments: list[WallSegment]) -> list[list[int]]:
    """Link usable segments into chains, consuming each exactly once.

    Args:
        segments: Segment array ending with a sentinel; states and
            orientations are updated in place

    Returns:
        Chains as lists of segment indices, in cutting order
    """
    total = count_usable(segments)
    usable = []
    for i, segment in enumerate(segments):
        if segment.state is SegmentState.SENTINEL:
            break
        if segment.state is SegmentState.USABLE:
            usable.append(i)

    index = _EndpointIndex(segments, usable)
    chains = []
    for i in usable:
        if segments[i].state is not SegmentState.USABLE:
            continue

        current = _chain_start(segments, i)
        chain = []
        while current is not None:
            segments[current].state = SegmentState.CONSUMED
            index.discard(current)
            chain.append(current)
            current = index.successor(current)
        chains.append(chain)

    logger.debug("Linked %d wall segments into %d chains", total, len(chains))
    return chains


def reconstruct_walls(
    oracle,
    footprint: StockFootprint,
    tool: Tool,
    depth: float,
    step_depth: float,
    retract_height: float = 5.0,
) -> PathCollection:
    """Cut continuous finishing paths along the steep walls of the model.

    Args:
        oracle: Height oracle for the normalised model
        footprint: Stock footprint
        tool: Finishing tool
        depth: Cutout depth; model heights are measured up from -depth
        step_depth: Band depth
        retract_height: Safe Z used between chains

    Returns:
        Collection of wall paths; empty for tools that need no wall pass
    """
    ctx = PathContext.start("Vertical walls", tool, step_depth, retract_height)
    if not tool.needs_wall_finishing:
        logger.debug("Skipping wall finishing for %s", tool.name)
        return ctx.collection

    segments = oracle.vertical_segments(tool.radius)
    chains = chain_segments(segments)
    clearance = tool.radius * CLEARANCE

    def cut_to(x: float, y: float) -> None:
        cursor = ctx.cursor
        z = 0.0
        # the perimeter cutout takes care of the outside of the stock
        if footprint.contains(x, y):
            z = -depth + sample_height(oracle, x, y, clearance, tool)
        if z >= 0:
            # nothing left to cut here, this stretch is not wall
            if cursor.z < retract_height:
                extend(ctx, cursor.x, cursor.y, retract_height)
            return
        if cursor.z >= retract_height:
            extend(ctx, x, y, retract_height)
        extend_smoothed(ctx, x, y, z, WALL_JUMP)

    for chain in chains:
        first = segments[chain[0]]
        if not ctx.cursor.first:
            extend(ctx, ctx.cursor.x, ctx.cursor.y, retract_height)
        extend(ctx, first.start[0], first.start[1], retract_height)

        for i in chain:
            segment = segments[i]
            steps = max(1, math.ceil(segment.length / SAMPLE_SPACING))
            (x0, y0), (x1, y1) = segment.start, segment.end
            for k in range(steps):
                t = k / steps
                cut_to(x0 + (x1 - x0) * t, y0 + (y1 - y0) * t)
            # exact end vertex
            cut_to(x1, y1)

    logger.info(
        "Wall finishing with %s: %d chains, %d segments",
        tool.name, len(chains), ctx.collection.segment_count(),
    )
    return ctx.collection
