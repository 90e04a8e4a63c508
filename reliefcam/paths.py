"""Toolpath containers: collections of depth layers of ramp segments."""

from dataclasses import dataclass, field
from typing import Iterator

import numpy as np

from .tools import Tool


@dataclass
class RampSegment:
    """A polyline cut while Z moves linearly from z_start to z_end."""
    points: np.ndarray  # Nx2 array of (x, y)
    z_start: float
    z_end: float

    def points_3d(self) -> np.ndarray:
        """Polyline with Z interpolated along its length."""
        n = len(self.points)
        z = np.linspace(self.z_start, self.z_end, n) if n > 1 else np.array([self.z_start])
        return np.column_stack([self.points, z])

    def reversed(self) -> "RampSegment":
        """The same cut run from its end back to its start."""
        return RampSegment(self.points[::-1].copy(), self.z_end, self.z_start)


@dataclass
class ToolLevel:
    """Geometry cut by one tool inside a depth layer."""
    level: int
    tool_id: str
    diameter: float
    offset: float
    depth: float
    name: str | None = None
    no_sort: bool = True  # raw paths keep their emission order
    reverse_cut: bool = False  # cut last segment first, each one backwards
    segments: list[RampSegment] = field(default_factory=list)

    def add_segment(
        self,
        start: tuple[float, float],
        end: tuple[float, float],
        z_start: float,
        z_end: float,
    ) -> RampSegment:
        segment = RampSegment(np.array([start, end], dtype=float), z_start, z_end)
        self.segments.append(segment)
        return segment


@dataclass
class DepthLayer:
    """All cuts that fall into one quantized depth band."""
    index: int
    depth: float  # pass depth (step depth) of the band
    tool_id: str
    diameter: float
    levels: list[ToolLevel] = field(default_factory=list)

    def level(self, name: str | None = None) -> ToolLevel:
        """Level 0, created on first use."""
        if not self.levels:
            self.levels.append(ToolLevel(
                level=0,
                tool_id=self.tool_id,
                diameter=self.diameter,
                offset=self.diameter,
                depth=self.depth,
                name=name,
            ))
        return self.levels[0]


class PathCollection:
    """Named set of depth layers produced by one planning pass."""

    def __init__(self, name: str):
        self.name = name
        self._layers: dict[int, DepthLayer] = {}

    def __repr__(self) -> str:
        return f"PathCollection({self.name!r}, layers={len(self._layers)}, segments={self.segment_count()})"

    def __iter__(self) -> Iterator[DepthLayer]:
        return iter(self._layers.values())

    def __len__(self) -> int:
        return len(self._layers)

    def __contains__(self, index: int) -> bool:
        return index in self._layers

    def __getitem__(self, index: int) -> DepthLayer:
        return self._layers[index]

    @property
    def is_empty(self) -> bool:
        return self.segment_count() == 0

    @property
    def indices(self) -> list[int]:
        return list(self._layers)

    def layer(self, index: int, tool: Tool, depth: float) -> DepthLayer:
        """Get the layer for a band, creating it the first time it is touched."""
        layer = self._layers.get(index)
        if layer is None:
            layer = DepthLayer(index=index, depth=depth, tool_id=tool.id, diameter=tool.diameter)
            self._layers[index] = layer
        return layer

    def segments(self) -> Iterator[tuple[DepthLayer, RampSegment]]:
        for layer in self._layers.values():
            for level in layer.levels:
                for segment in level.segments:
                    yield layer, segment

    def segment_count(self) -> int:
        return sum(len(level.segments) for layer in self._layers.values() for level in layer.levels)


@dataclass
class PlanningCursor:
    """Last position handed to the slicer."""
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    first: bool = True

    def place(self, x: float, y: float, z: float) -> None:
        """Move the cursor without cutting."""
        self.x, self.y, self.z = x, y, z
        self.first = False


@dataclass
class PathContext:
    """State threaded through one planning pass."""
    collection: PathCollection
    tool: Tool
    step_depth: float  # depth of each band
    retract_height: float = 5.0
    level_name: str | None = "Manual toolpath"
    cursor: PlanningCursor = field(default_factory=PlanningCursor)

    @classmethod
    def start(
        cls,
        name: str,
        tool: Tool,
        step_depth: float,
        retract_height: float = 5.0,
        level_name: str | None = "Manual toolpath",
    ) -> "PathContext":
        """Fresh collection and cursor for a new pass."""
        return cls(PathCollection(name), tool, step_depth, retract_height, level_name)
