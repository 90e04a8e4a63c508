"""Surface height queries over a triangle mesh."""

import logging
import math
from collections import defaultdict
from dataclasses import dataclass
from enum import Enum

import numpy as np

from .mesh import TriangleMesh

logger = logging.getLogger(__name__)

# Triangles whose unit normal has less vertical component than this are walls
STEEP_NORMAL_Z = 0.1


class SegmentState(Enum):
    USABLE = "usable"
    CONSUMED = "consumed"
    SENTINEL = "sentinel"  # marks the end of a segment array


@dataclass
class WallSegment:
    """Cross-section of a steep surface, offset to the tool contact radius."""
    start: tuple[float, float]
    end: tuple[float, float]
    back: int = -1  # index of a segment guessed to end where this one starts
    state: SegmentState = SegmentState.USABLE

    @classmethod
    def sentinel(cls) -> "WallSegment":
        return cls((0.0, 0.0), (0.0, 0.0), -1, SegmentState.SENTINEL)

    @property
    def length(self) -> float:
        return math.hypot(self.end[0] - self.start[0], self.end[1] - self.start[1])

    def flip(self) -> None:
        """Reverse the segment in place."""
        self.start, self.end = self.end, self.start


def endpoint_key(point: tuple[float, float]) -> tuple[float, float]:
    """Quantize a point to the 2-decimal grid used to match endpoints."""
    # + 0.0 folds -0.0 into 0.0
    return (round(point[0], 2) + 0.0, round(point[1], 2) + 0.0)


class HeightMap:
    """Height oracle for a normalised mesh.

    Heights are measured from the bottom of the model; once scaled the top
    of the model sits at the cutout depth. Points not covered by any
    triangle read as 0.
    """

    def __init__(self, mesh: TriangleMesh, cell_size: float | None = None):
        self.vertices = np.array(mesh.vertices, dtype=np.float64)
        self._requested_cell = cell_size
        self._cells: dict[tuple[int, int], np.ndarray] | None = None
        self._cell = 1.0

    def __len__(self) -> int:
        return len(self.vertices)

    def normalize(self) -> None:
        """Move the mesh so its bounding box starts at the origin."""
        if len(self.vertices) == 0:
            return
        minimum = self.vertices.reshape(-1, 3).min(axis=0)
        self.vertices -= minimum
        self._cells = None

    def scale(self, target_depth: float, z_offset: float = 0.0) -> None:
        """Scale Z so the model height equals target_depth, then shift by z_offset."""
        if len(self.vertices) == 0:
            return
        height = self.model_height()
        if height > 0 and target_depth > 0:
            self.vertices[:, :, 2] *= target_depth / height
        self.vertices[:, :, 2] += z_offset
        self._cells = None

    def model_height(self) -> float:
        if len(self.vertices) == 0:
            return 0.0
        z = self.vertices[:, :, 2]
        return float(z.max() - z.min())

    def footprint_x(self) -> float:
        if len(self.vertices) == 0:
            return 0.0
        return float(self.vertices[:, :, 0].max())

    def footprint_y(self) -> float:
        if len(self.vertices) == 0:
            return 0.0
        return float(self.vertices[:, :, 1].max())

    def _build_index(self) -> None:
        """Bucket triangles on a uniform XY grid by their bounding boxes."""
        self._cells = {}
        if len(self.vertices) == 0:
            return

        xy = self.vertices[:, :, :2]
        lo = xy.min(axis=1)
        hi = xy.max(axis=1)
        if self._requested_cell:
            self._cell = self._requested_cell
        else:
            extent = float(max(hi.max(axis=0).max() - lo.min(axis=0).min(), 1.0))
            # Aim for a few dozen triangles per cell on dense meshes
            self._cell = max(extent / math.sqrt(max(len(xy), 1)) * 4, extent / 512, 0.25)

        buckets: dict[tuple[int, int], list[int]] = defaultdict(list)
        first = np.floor(lo / self._cell).astype(int)
        last = np.floor(hi / self._cell).astype(int)
        for index, ((i0, j0), (i1, j1)) in enumerate(zip(first, last)):
            for i in range(i0, i1 + 1):
                for j in range(j0, j1 + 1):
                    buckets[(i, j)].append(index)

        self._cells = {key: np.array(value) for key, value in buckets.items()}
        logger.debug(
            "Indexed %d triangles into %d cells of %.3f", len(xy), len(self._cells), self._cell
        )

    def height(self, x: float, y: float) -> float:
        """Highest surface point above (x, y), 0 where the mesh has no cover."""
        if self._cells is None:
            self._build_index()
        candidates = self._cells.get((math.floor(x / self._cell), math.floor(y / self._cell)))
        if candidates is None:
            return 0.0

        tri = self.vertices[candidates]
        a = tri[:, 0, :2]
        v0 = tri[:, 1, :2] - a
        v1 = tri[:, 2, :2] - a
        v2 = np.array([x, y]) - a

        d00 = np.einsum("ij,ij->i", v0, v0)
        d01 = np.einsum("ij,ij->i", v0, v1)
        d11 = np.einsum("ij,ij->i", v1, v1)
        d20 = np.einsum("ij,ij->i", v2, v0)
        d21 = np.einsum("ij,ij->i", v2, v1)
        denom = d00 * d11 - d01 * d01

        flat = np.abs(denom) > 1e-12
        if not flat.any():
            return 0.0
        safe = np.where(flat, denom, 1.0)
        v = (d11 * d20 - d01 * d21) / safe
        w = (d00 * d21 - d01 * d20) / safe
        u = 1.0 - v - w

        eps = 1e-9
        inside = flat & (u >= -eps) & (v >= -eps) & (w >= -eps)
        if not inside.any():
            return 0.0
        z = u * tri[:, 0, 2] + v * tri[:, 1, 2] + w * tri[:, 2, 2]
        return max(float(z[inside].max()), 0.0)

    def vertical_segments(self, radius: float) -> list[WallSegment]:
        """Extract steep-surface cross-sections offset outward by radius.

        Each near-vertical triangle contributes the XY projection of its
        widest edge, pushed away from the wall along the horizontal part of
        its normal. Segments run with the wall on their left hand side.
        The returned list ends with a sentinel entry.
        """
        segments: list[WallSegment] = []
        seen: set = set()

        for tri in self.vertices:
            normal = np.cross(tri[1] - tri[0], tri[2] - tri[0])
            length = np.linalg.norm(normal)
            if length < 1e-12:
                continue
            normal = normal / length
            if abs(normal[2]) >= STEEP_NORMAL_Z:
                continue

            outward = normal[:2]
            outward_length = np.linalg.norm(outward)
            if outward_length < 1e-12:
                continue
            outward = outward / outward_length

            xy = tri[:, :2]
            pairs = [(0, 1), (1, 2), (0, 2)]
            a, b = max(pairs, key=lambda p: np.linalg.norm(xy[p[0]] - xy[p[1]]))
            start = xy[a] + outward * radius
            end = xy[b] + outward * radius
            if np.linalg.norm(end - start) < 1e-3:
                continue

            # Counter-clockwise around the solid when seen from above
            direction = np.array([-outward[1], outward[0]])
            if np.dot(end - start, direction) < 0:
                start, end = end, start

            start = (float(start[0]), float(start[1]))
            end = (float(end[0]), float(end[1]))
            key = (endpoint_key(start), endpoint_key(end))
            if key in seen:
                continue
            seen.add(key)
            segments.append(WallSegment(start, end))

        ends = {endpoint_key(s.end): i for i, s in enumerate(segments)}
        for segment in segments:
            segment.back = ends.get(endpoint_key(segment.start), -1)

        logger.debug("Found %d wall segments at radius %.3f", len(segments), radius)
        segments.append(WallSegment.sentinel())
        return segments
