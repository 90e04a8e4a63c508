"""Command line entry point: STL model in, G-code out."""

import argparse
import logging
import sys
from pathlib import Path

from .gcode import GCodeSettings, collections_to_gcode
from .job import JobConfig, run_job
from .mesh import AxisTransform, load_stl
from .progress import ProgressBar
from .tools import ToolLibrary

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="reliefcam",
        description="Generate 3D relief milling toolpaths from an STL model.",
    )
    parser.add_argument("input", type=Path, help="STL file (binary or ASCII)")
    parser.add_argument(
        "-o", "--output", type=Path, default=None,
        help="G-code output (default: <input>.nc)",
    )
    parser.add_argument(
        "-t", "--tool", action="append", dest="tools", default=None,
        help="Tool id from the library, largest first; the last one finishes "
             "(default: em-6mm-2f em-3mm-2f)",
    )
    parser.add_argument(
        "--tool-db", type=Path, default=None,
        help="Tool library database (default: ~/.config/reliefcam/tools.db)",
    )
    parser.add_argument("--list-tools", action="store_true", help="List library tools and exit")
    parser.add_argument(
        "-d", "--depth", type=float, default=None,
        help="Cutout depth in mm (default: model height, without cutout)",
    )
    parser.add_argument("--stock-to-leave", type=float, default=0.0,
                        help="Material left by roughing passes (mm)")
    parser.add_argument("--z-offset", type=float, default=0.0,
                        help="Shift the scaled model up or down (mm)")
    parser.add_argument("--finishing", action="store_true",
                        help="Add a cross-direction finishing pass")
    parser.add_argument("--finishing-stepover", type=float, default=None,
                        help="Stepover for finishing passes (mm)")
    parser.add_argument("--safe-z", type=float, default=5.0, help="Retract height (mm)")
    parser.add_argument("--no-cutout", action="store_true",
                        help="Do not cut the part free along the perimeter")
    parser.add_argument("--roughing-radius-factor", type=float, default=1.0,
                        help="Scale the roughing probe radius (2.0 looks a full diameter wide)")
    parser.add_argument(
        "--transform", choices=[t.value for t in AxisTransform], default="none",
        help="Swap axes while loading the model",
    )
    parser.add_argument(
        "--preview", nargs="?", const="", default=None, metavar="PNG",
        help="Show a 3D preview, or save it to PNG",
    )
    parser.add_argument("-q", "--quiet", action="store_true", help="Only report problems")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Application entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        level = logging.DEBUG
    elif args.quiet:
        level = logging.WARNING
    else:
        level = logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    library = ToolLibrary(args.tool_db)
    if args.list_tools:
        for tool in library.get_all():
            print(f"{tool.id:12s} {tool.tool_type.value:9s} {tool.diameter:6.2f}mm  {tool.name}")
        return 0

    tool_ids = args.tools or ["em-6mm-2f", "em-3mm-2f"]
    tools = []
    for tool_id in tool_ids:
        tool = library.get(tool_id)
        if tool is None:
            parser.error(f"Unknown tool: {tool_id}")
        tools.append(tool)

    mesh = load_stl(args.input, AxisTransform(args.transform))

    config = JobConfig(
        # the command line lists tools largest first, the job wants the finisher at 0
        tools=list(reversed(tools)),
        cutout_depth=args.depth,
        stock_to_leave=args.stock_to_leave,
        z_offset=args.z_offset,
        finishing_pass=args.finishing,
        finishing_stepover=args.finishing_stepover,
        retract_height=args.safe_z,
        cutout=not args.no_cutout,
        roughing_radius_factor=args.roughing_radius_factor,
    )

    progress = ProgressBar(quiet=args.quiet)
    result = run_job(mesh, config, progress)
    progress.clear()

    output = args.output or args.input.with_suffix(".nc")
    gcode = collections_to_gcode(
        result.collections,
        tools,
        GCodeSettings(safe_z=args.safe_z),
        job_name=f"{args.input.name}, depth {result.depth:.2f}mm",
    )
    output.write_text(gcode)
    logger.info(
        "Wrote %d segments in %d collections to %s",
        result.segment_count, len(result.collections), output,
    )

    if args.preview is not None:
        from .preview3d import render_preview
        render_preview(
            result.collections,
            Path(args.preview) if args.preview else None,
            title=args.input.name,
        )

    return 0


if __name__ == "__main__":
    sys.exit(main())
