"""G-code generation for GRBL controllers."""

from dataclasses import dataclass
from enum import Enum
from io import StringIO
from pathlib import Path
from typing import Optional

from .paths import PathCollection, RampSegment
from .tools import Tool


class Units(Enum):
    MM = "mm"
    INCH = "inch"


@dataclass
class GCodeSettings:
    """Settings for G-code generation."""
    units: Units = Units.MM
    safe_z: float = 5.0  # Safe retract height
    feed_rate: Optional[float] = None  # Override tool feed rate
    plunge_rate: Optional[float] = None  # Override tool plunge rate
    spindle_rpm: Optional[int] = None  # Override tool RPM


UNIT_CODES = {
    Units.MM: "G21 ; Units: mm",
    Units.INCH: "G20 ; Units: inches",
}
SPINDLE_DWELL = 2  # seconds


class GCodeBuilder:
    """Builds GRBL programs, dropping moves to where the machine already is."""

    def __init__(self, settings: Optional[GCodeSettings] = None):
        self.settings = settings or GCodeSettings()
        self.buffer = StringIO()
        self._spindle_running: bool = False
        self._position: dict[str, float] = {}  # last commanded value per axis

    def _write(self, line: str) -> None:
        self.buffer.write(line + "\n")

    def _format_coord(self, value: float) -> str:
        return f"{value:.4f}".rstrip("0").rstrip(".")

    def _same(self, axis: str, value: float) -> bool:
        known = self._position.get(axis)
        return known is not None and abs(known - value) < 0.0001

    def _move(self, code: str, feed: Optional[float] = None, **axes: float) -> "GCodeBuilder":
        """Write a G0/G1 over the given axes unless every axis is already there."""
        if all(self._same(axis, value) for axis, value in axes.items()):
            return self
        words = [code] + [f"{axis}{self._format_coord(value)}" for axis, value in axes.items()]
        if feed is not None:
            words.append(f"F{self._format_coord(feed)}")
        self._write(" ".join(words))
        self._position.update(axes)
        return self

    def at(self, x: float, y: float, z: float) -> bool:
        """True if the machine is already at (x, y, z)."""
        return self._same("X", x) and self._same("Y", y) and self._same("Z", z)

    def header(self, comment: str = "") -> "GCodeBuilder":
        """Title comments, units and absolute XY-plane mode."""
        lines = ["; reliefcam G-code"]
        if comment:
            lines.append(f"; {comment}")
        lines += [
            "",
            UNIT_CODES[self.settings.units],
            "G90 ; Absolute positioning",
            "G17 ; XY plane selection",
            "",
        ]
        for line in lines:
            self._write(line)
        return self

    def footer(self) -> "GCodeBuilder":
        """Stop the spindle, park over the origin and end the program."""
        self._write("")
        self.spindle_off().rapid_z(self.settings.safe_z)
        self._write("G0 X0 Y0 ; Return to origin")
        self._write("M30 ; Program end")
        return self

    def comment(self, text: str) -> "GCodeBuilder":
        self._write(f"; {text}")
        return self

    def spindle_on(self, rpm: int) -> "GCodeBuilder":
        self._write(f"M3 S{rpm} ; Spindle on CW")
        self._write(f"G4 P{SPINDLE_DWELL} ; Dwell {SPINDLE_DWELL} seconds for spindle")
        self._spindle_running = True
        return self

    def spindle_off(self) -> "GCodeBuilder":
        if self._spindle_running:
            self._write("M5 ; Spindle off")
            self._spindle_running = False
        return self

    def tool_change(self, tool: Tool) -> "GCodeBuilder":
        """Retract, stop and pause so the operator can swap tools."""
        self.rapid_z(self.settings.safe_z)
        self.spindle_off()
        self.comment(f"Tool change: {tool.name} ({tool.diameter:g}mm)")
        self._write("M0 ; Pause for tool change")
        self.spindle_on(self.settings.spindle_rpm or tool.spindle_rpm)
        return self

    def rapid_xy(self, x: float, y: float) -> "GCodeBuilder":
        return self._move("G0", X=x, Y=y)

    def rapid_z(self, z: float) -> "GCodeBuilder":
        return self._move("G0", Z=z)

    def plunge(self, z: float, feed: float) -> "GCodeBuilder":
        return self._move("G1", feed, Z=z)

    def linear_xyz(self, x: float, y: float, z: float, feed: float) -> "GCodeBuilder":
        return self._move("G1", feed, X=x, Y=y, Z=z)

    def cut_ramp(self, segment: RampSegment, tool: Tool) -> "GCodeBuilder":
        """Cut a ramp segment, linking to it directly when already at its start.

        Args:
            segment: Polyline with entry and exit Z
            tool: Tool to use for feeds
        """
        feed = self.settings.feed_rate or tool.feed_rate
        plunge = self.settings.plunge_rate or tool.plunge_rate
        points = segment.points_3d()
        x0, y0, z0 = points[0]

        if not self.at(x0, y0, z0):
            self.rapid_z(self.settings.safe_z)
            self.rapid_xy(x0, y0)
            self.plunge(z0, plunge)

        for x, y, z in points[1:]:
            self.linear_xyz(x, y, z, feed)
        return self

    def get_gcode(self) -> str:
        """Get the generated G-code as a string."""
        return self.buffer.getvalue()

    def save(self, path: Path) -> None:
        """Save G-code to a file."""
        with open(path, "w") as f:
            f.write(self.get_gcode())


def collections_to_gcode(
    collections: list[PathCollection],
    tools: list[Tool],
    settings: GCodeSettings | None = None,
    job_name: str | None = None,
) -> str:
    """Convert path collections to a G-code program.

    Layers of each collection are cut from the shallowest band down to the
    deepest. Segments inside a level keep their order unless the level is
    flagged ``reverse_cut``, as the cutout ramp is.

    Args:
        collections: Collections in machining order
        tools: Tools referenced by the collections
        settings: Output settings
        job_name: Name for the header comment
    """
    builder = GCodeBuilder(settings)
    by_id = {tool.id: tool for tool in tools}

    builder.header(job_name or "Relief toolpaths")
    current_tool = None

    for collection in collections:
        builder.comment(collection.name)
        layers = sorted(collection, key=lambda layer: layer.index, reverse=True)
        for layer in layers:
            tool = by_id[layer.tool_id]
            if tool is not current_tool:
                if current_tool is None:
                    builder.comment(f"Tool: {tool.name} ({tool.diameter:g}mm)")
                    builder.spindle_on(builder.settings.spindle_rpm or tool.spindle_rpm)
                else:
                    builder.tool_change(tool)
                current_tool = tool

            builder.comment(f"Band {layer.index}")
            for level in layer.levels:
                if level.reverse_cut:
                    segments = [segment.reversed() for segment in reversed(level.segments)]
                else:
                    segments = level.segments
                for segment in segments:
                    builder.cut_ramp(segment, tool)

        builder.rapid_z(builder.settings.safe_z)

    builder.footer()
    return builder.get_gcode()
