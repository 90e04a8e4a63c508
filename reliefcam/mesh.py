"""STL mesh loading and writing."""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import numpy as np

logger = logging.getLogger(__name__)

# Packed binary record: normal, three vertices, attribute byte count
STL_RECORD = np.dtype([
    ("normal", "<f4", (3,)),
    ("vertices", "<f4", (3, 3)),
    ("attribute", "<u2"),
])
STL_HEADER_SIZE = 80

_FLOAT = r"([-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?)"
_VECTOR = re.compile(rf"^\s*{_FLOAT}\s+{_FLOAT}\s+{_FLOAT}\s*$")


class AxisTransform(Enum):
    """Coordinate swap applied while loading."""
    IDENTITY = "none"
    SWAP_YZ = "yz"
    SWAP_XZ = "xz"

    @property
    def order(self) -> list[int]:
        if self is AxisTransform.SWAP_YZ:
            return [0, 2, 1]
        if self is AxisTransform.SWAP_XZ:
            return [2, 1, 0]
        return [0, 1, 2]


@dataclass
class TriangleMesh:
    """Triangulated surface, as read from an STL file."""
    vertices: np.ndarray  # Nx3x3: triangle, vertex, coordinate
    normals: np.ndarray  # Nx3

    @classmethod
    def empty(cls) -> "TriangleMesh":
        return cls(np.zeros((0, 3, 3)), np.zeros((0, 3)))

    def __len__(self) -> int:
        return len(self.vertices)

    @property
    def is_empty(self) -> bool:
        return len(self.vertices) == 0

    def bounds(self) -> np.ndarray:
        """Bounding box as a 2x3 array of (min, max) rows."""
        if self.is_empty:
            return np.zeros((2, 3))
        flat = self.vertices.reshape(-1, 3)
        return np.vstack([flat.min(axis=0), flat.max(axis=0)])

    def transformed(self, transform: AxisTransform) -> "TriangleMesh":
        """Return a copy with coordinates swapped according to transform."""
        order = transform.order
        return TriangleMesh(
            vertices=self.vertices[:, :, order].copy(),
            normals=self.normals[:, order].copy(),
        )


def load_stl(path: Path, transform: AxisTransform = AxisTransform.IDENTITY) -> TriangleMesh:
    """Load a binary or ASCII STL file.

    A file that cannot be opened yields an empty mesh; a truncated or
    malformed file yields the triangles read before the damage.

    Args:
        path: STL file to read
        transform: Axis swap applied to every vertex and normal

    Returns:
        The loaded mesh
    """
    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError as e:
        logger.error("Failed to open file %s: %s", path, e)
        return TriangleMesh.empty()

    if _looks_like_ascii(data):
        mesh = _parse_ascii(data.decode("ascii", errors="replace"), path)
    else:
        mesh = _parse_binary(data, path)

    logger.info("Loaded %d triangles from %s", len(mesh), path.name)
    if transform is not AxisTransform.IDENTITY:
        mesh = mesh.transformed(transform)
    return mesh


def _looks_like_ascii(data: bytes) -> bool:
    # Some binary exporters also start their header with "solid"
    head = data[:1024].lstrip()
    return head.startswith(b"solid") and b"facet" in head


def _parse_binary(data: bytes, path: Path) -> TriangleMesh:
    if len(data) < STL_HEADER_SIZE + 4:
        logger.warning("STL file %s too short", path)
        return TriangleMesh.empty()

    count = int(np.frombuffer(data, dtype="<u4", count=1, offset=STL_HEADER_SIZE)[0])
    body = data[STL_HEADER_SIZE + 4:]
    available = len(body) // STL_RECORD.itemsize
    if available < count:
        logger.warning(
            "STL file %s truncated: %d of %d triangles present", path, available, count
        )
        count = available

    records = np.frombuffer(body, dtype=STL_RECORD, count=count)
    return TriangleMesh(
        vertices=records["vertices"].astype(np.float64),
        normals=records["normal"].astype(np.float64),
    )


def _parse_ascii(text: str, path: Path) -> TriangleMesh:
    lines = [line.strip() for line in text.splitlines()]
    vertices: list[list[list[float]]] = []
    normals: list[list[float]] = []

    i = 0
    while i < len(lines):
        line = lines[i]
        if not line.startswith("facet"):
            i += 1
            continue

        facet = _parse_facet(lines[i:i + 7])
        if facet is None:
            logger.warning(
                "Malformed facet at line %d of %s, keeping %d triangles", i + 1, path, len(vertices)
            )
            break
        normal, tri = facet
        normals.append(normal)
        vertices.append(tri)
        i += 7

    if not vertices:
        return TriangleMesh.empty()

    # Round through float32 so ASCII and binary copies of a model compare equal
    return TriangleMesh(
        vertices=np.array(vertices, dtype=np.float32).astype(np.float64),
        normals=np.array(normals, dtype=np.float32).astype(np.float64),
    )


def _parse_facet(block: list[str]):
    """Parse facet normal / outer loop / 3 vertices / endloop / endfacet."""
    if len(block) < 7:
        return None
    if not block[0].startswith("facet normal") or block[1] != "outer loop":
        return None
    if not block[5].startswith("endloop") or not block[6].startswith("endfacet"):
        return None

    normal = _parse_vector(block[0][len("facet normal"):])
    tri = [_parse_vector(v[len("vertex"):]) if v.startswith("vertex") else None for v in block[2:5]]
    if normal is None or any(v is None for v in tri):
        return None
    return normal, tri


def _parse_vector(text: str) -> list[float] | None:
    match = _VECTOR.match(text)
    if not match:
        return None
    return [float(g) for g in match.groups()]


def write_stl_binary(mesh: TriangleMesh, path: Path, header: str = "reliefcam") -> None:
    """Write a mesh as a binary STL file."""
    records = np.zeros(len(mesh), dtype=STL_RECORD)
    records["normal"] = mesh.normals
    records["vertices"] = mesh.vertices
    with open(path, "wb") as f:
        f.write(header.encode("ascii")[:STL_HEADER_SIZE].ljust(STL_HEADER_SIZE, b"\0"))
        f.write(np.array([len(mesh)], dtype="<u4").tobytes())
        f.write(records.tobytes())


def write_stl_ascii(mesh: TriangleMesh, path: Path, name: str = "reliefcam") -> None:
    """Write a mesh as an ASCII STL file."""
    with open(path, "w") as f:
        f.write(f"solid {name}\n")
        for normal, tri in zip(mesh.normals, mesh.vertices):
            f.write("  facet normal {:.9e} {:.9e} {:.9e}\n".format(*normal))
            f.write("    outer loop\n")
            for vertex in tri:
                f.write("      vertex {:.9e} {:.9e} {:.9e}\n".format(*vertex))
            f.write("    endloop\n")
            f.write("  endfacet\n")
        f.write(f"endsolid {name}\n")
