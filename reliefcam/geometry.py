"""Stock footprint geometry."""

from dataclasses import dataclass

import numpy as np
from shapely.geometry import Polygon


@dataclass
class BoundingBox:
    """Axis-aligned bounding box."""
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @classmethod
    def from_size(cls, size_x: float, size_y: float) -> "BoundingBox":
        """Footprint of a stock block with its corner at the origin."""
        return cls(0.0, 0.0, float(size_x), float(size_y))

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    def expanded(self, margin: float) -> "BoundingBox":
        """Grow (or shrink, for negative margins) the box on every side."""
        return BoundingBox(
            self.min_x - margin,
            self.min_y - margin,
            self.max_x + margin,
            self.max_y + margin,
        )

    def contains(self, x: float, y: float, tolerance: float = 1e-6) -> bool:
        return (
            self.min_x - tolerance <= x <= self.max_x + tolerance
            and self.min_y - tolerance <= y <= self.max_y + tolerance
        )

    def corners(self) -> np.ndarray:
        """Corner points, counter-clockwise from (min_x, min_y)."""
        return np.array([
            (self.min_x, self.min_y),
            (self.max_x, self.min_y),
            (self.max_x, self.max_y),
            (self.min_x, self.max_y),
        ])

    def to_shapely(self) -> Polygon:
        """Convert to Shapely geometry."""
        return Polygon(self.corners())


# The stock is described by the footprint of the normalised model
StockFootprint = BoundingBox


def ring_edges(polygon: Polygon) -> list[tuple[tuple[float, float], tuple[float, float]]]:
    """Split the exterior ring of a polygon into (start, end) edges."""
    coords = [(float(x), float(y)) for x, y in polygon.exterior.coords]
    return list(zip(coords[:-1], coords[1:]))
