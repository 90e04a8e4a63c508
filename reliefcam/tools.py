"""Tool library management for end mills, ball-nose cutters and v-bits."""

import math
import sqlite3
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional


class ToolType(Enum):
    ENDMILL = "endmill"
    BALLNOSE = "ballnose"
    VBIT = "vbit"


@dataclass
class EndMill:
    """Flat end mill."""
    id: str
    name: str
    diameter: float  # mm
    feed_rate: float  # mm/min
    plunge_rate: float  # mm/min
    spindle_rpm: int
    flute_count: int = 2
    stepover_percent: float = 40.0  # percentage of diameter
    max_depth_per_pass: float = 2.0  # mm
    tool_type: ToolType = field(default=ToolType.ENDMILL)

    def __post_init__(self):
        if self.diameter <= 0:
            raise ValueError(f"Tool {self.id}: diameter must be positive, got {self.diameter}")
        if self.max_depth_per_pass <= 0:
            raise ValueError(
                f"Tool {self.id}: max depth per pass must be positive, got {self.max_depth_per_pass}"
            )

    @property
    def radius(self) -> float:
        return self.diameter / 2

    @property
    def stepover(self) -> float:
        """Calculate stepover distance in mm."""
        return self.diameter * (self.stepover_percent / 100.0)

    @property
    def is_ballnose(self) -> bool:
        return self.tool_type == ToolType.BALLNOSE

    @property
    def is_vbit(self) -> bool:
        return self.tool_type == ToolType.VBIT

    @property
    def needs_wall_finishing(self) -> bool:
        """Straight-sided cutters leave steep walls that need their own pass."""
        return True

    def radial_offset(self, r: float) -> float:
        """Height the cutting profile loses at distance r from the tool axis."""
        return 0.0

    def finishing_stepover(self, override: float | None = None) -> float:
        """Stepover used for the final surface pass."""
        if override is not None and override > 0:
            return override
        stepover = self.stepover
        if stepover > 0.2:
            stepover = stepover / 1.42
        return stepover


@dataclass
class BallNose(EndMill):
    """Ball-nose end mill; the tip is a hemisphere of the tool radius."""
    tool_type: ToolType = field(default=ToolType.BALLNOSE)

    @property
    def needs_wall_finishing(self) -> bool:
        return False

    def finishing_stepover(self, override: float | None = None) -> float:
        if override is not None and override > 0:
            return override
        # the rounded tip leaves scallops, so halve again
        return super().finishing_stepover() / 2

    def radial_offset(self, r: float) -> float:
        radius = self.radius
        if r >= radius:
            return radius
        return radius - math.sqrt(radius * radius - r * r)


@dataclass
class VBit(EndMill):
    """V-bit engraving cutter."""
    angle: float = 60.0  # included angle in degrees
    tip_diameter: float = 0.0  # flat tip diameter, 0 for sharp
    tool_type: ToolType = field(default=ToolType.VBIT)

    @property
    def needs_wall_finishing(self) -> bool:
        return False

    def radial_offset(self, r: float) -> float:
        flank = r - self.tip_diameter / 2
        if flank <= 0:
            return 0.0
        return flank / math.tan(math.radians(self.angle / 2))


# Type alias for any tool
Tool = EndMill | BallNose | VBit


class ToolLibrary:
    """SQLite-based persistent storage for tools."""

    # id, type, name, diameter, feed, plunge, rpm, flutes, stepover %, depth per pass, angle, tip
    DEFAULT_TOOLS = [
        ("em-6mm-2f", "endmill", "6mm 2-Flute End Mill", 6.0, 1000.0, 300.0, 12000, 2, 40.0, 2.0, None, None),
        ("em-3mm-2f", "endmill", "3mm 2-Flute End Mill", 3.0, 800.0, 200.0, 15000, 2, 40.0, 1.5, None, None),
        ("bn-3mm-2f", "ballnose", "3mm Ball-Nose", 3.0, 800.0, 200.0, 15000, 2, 25.0, 1.0, None, None),
        ("vb-60deg", "vbit", "60° V-Bit", 12.0, 600.0, 150.0, 12000, 2, 10.0, 1.0, 60.0, 0.0),
        ("vb-90deg", "vbit", "90° V-Bit", 12.0, 500.0, 120.0, 10000, 2, 10.0, 1.0, 90.0, 0.0),
    ]

    def __init__(self, db_path: Optional[Path] = None):
        if db_path is None:
            config_dir = Path.home() / ".config" / "reliefcam"
            config_dir.mkdir(parents=True, exist_ok=True)
            db_path = config_dir / "tools.db"

        self.db_path = db_path
        self._init_db()

    def _get_conn(self) -> sqlite3.Connection:
        """Get a database connection."""
        return sqlite3.connect(self.db_path)

    def _init_db(self) -> None:
        """Initialize database schema and default tools."""
        with self._get_conn() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS tools (
                    id TEXT PRIMARY KEY,
                    tool_type TEXT NOT NULL,
                    name TEXT NOT NULL,
                    diameter REAL NOT NULL,
                    feed_rate REAL NOT NULL,
                    plunge_rate REAL NOT NULL,
                    spindle_rpm INTEGER NOT NULL,
                    flute_count INTEGER DEFAULT 2,
                    stepover_percent REAL DEFAULT 40.0,
                    max_depth_per_pass REAL DEFAULT 2.0,
                    angle REAL,
                    tip_diameter REAL
                )
            """)

            cursor.execute("SELECT COUNT(*) FROM tools")
            if cursor.fetchone()[0] == 0:
                cursor.executemany("""
                    INSERT INTO tools
                    (id, tool_type, name, diameter, feed_rate, plunge_rate, spindle_rpm,
                     flute_count, stepover_percent, max_depth_per_pass, angle, tip_diameter)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """, self.DEFAULT_TOOLS)

            conn.commit()

    @staticmethod
    def _from_row(row) -> Tool:
        common = dict(
            id=row[0], name=row[2], diameter=row[3], feed_rate=row[4],
            plunge_rate=row[5], spindle_rpm=row[6], flute_count=row[7],
            stepover_percent=row[8], max_depth_per_pass=row[9],
        )
        tool_type = ToolType(row[1])
        if tool_type == ToolType.VBIT:
            return VBit(**common, angle=row[10], tip_diameter=row[11] or 0.0)
        if tool_type == ToolType.BALLNOSE:
            return BallNose(**common)
        return EndMill(**common)

    def add(self, tool: Tool) -> None:
        """Add or update a tool."""
        angle = tool.angle if isinstance(tool, VBit) else None
        tip = tool.tip_diameter if isinstance(tool, VBit) else None
        with self._get_conn() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                INSERT OR REPLACE INTO tools
                (id, tool_type, name, diameter, feed_rate, plunge_rate, spindle_rpm,
                 flute_count, stepover_percent, max_depth_per_pass, angle, tip_diameter)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (tool.id, tool.tool_type.value, tool.name, tool.diameter, tool.feed_rate,
                  tool.plunge_rate, tool.spindle_rpm, tool.flute_count, tool.stepover_percent,
                  tool.max_depth_per_pass, angle, tip))
            conn.commit()

    def remove(self, tool_id: str) -> None:
        """Remove a tool by ID."""
        with self._get_conn() as conn:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM tools WHERE id = ?", (tool_id,))
            conn.commit()

    def get(self, tool_id: str) -> Optional[Tool]:
        """Get a tool by ID."""
        with self._get_conn() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM tools WHERE id = ?", (tool_id,))
            row = cursor.fetchone()
            if row:
                return self._from_row(row)
            return None

    def get_endmills(self) -> list[Tool]:
        """Get all flat and ball-nose end mills, largest first."""
        with self._get_conn() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT * FROM tools WHERE tool_type != 'vbit' ORDER BY diameter DESC, name"
            )
            return [self._from_row(row) for row in cursor.fetchall()]

    def get_all(self) -> list[Tool]:
        """Get all tools."""
        with self._get_conn() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM tools ORDER BY name")
            return [self._from_row(row) for row in cursor.fetchall()]
