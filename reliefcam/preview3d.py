"""3D preview for visualizing toolpaths as wireframes."""

from pathlib import Path
from typing import Optional

import numpy as np
from matplotlib.backends.backend_agg import FigureCanvasAgg
from matplotlib.figure import Figure

from .paths import PathCollection

COLORS = ["tab:blue", "tab:green", "tab:orange", "tab:purple", "tab:red", "tab:brown"]


def plot_collections(figure: Figure, collections: list[PathCollection], title: str) -> None:
    """Plot every ramp segment of the collections as 3D wireframes."""
    figure.clear()
    ax = figure.add_subplot(111, projection="3d")

    all_points = []
    legend = []
    for n, collection in enumerate(collections):
        color = COLORS[n % len(COLORS)]
        count = 0
        for _, segment in collection.segments():
            pts = segment.points_3d()
            ax.plot(pts[:, 0], pts[:, 1], pts[:, 2], color=color, linewidth=0.6, alpha=0.7)
            all_points.append(pts)
            count += 1
        if count:
            legend.append(f"{collection.name}: {count}")

    ax.set_xlabel("X (mm)")
    ax.set_ylabel("Y (mm)")
    ax.set_zlabel("Z (mm)")

    # Equal aspect across X and Y, with Z kept readable
    if all_points:
        stacked = np.vstack(all_points)
        ranges = stacked.max(axis=0) - stacked.min(axis=0)
        max_range = max(ranges.max(), 1e-9)
        ax.set_box_aspect([
            ranges[0] / max_range or 1,
            ranges[1] / max_range or 1,
            ranges[2] / max_range if ranges[2] > 0 else 0.3,
        ])

    ax.set_title(f"{title}\n{', '.join(legend)}" if legend else title)


def render_preview(
    collections: list[PathCollection],
    output: Optional[Path] = None,
    title: str = "Toolpaths",
) -> None:
    """Save a wireframe preview to output, or show it in a window when output is None."""
    if output is not None:
        figure = Figure(figsize=(10, 7))
        FigureCanvasAgg(figure)
        plot_collections(figure, collections, title)
        figure.savefig(output, dpi=100)
        return

    import matplotlib.pyplot as plt

    figure = plt.figure(figsize=(10, 7))
    plot_collections(figure, collections, title)
    plt.show()
