"""Text progress indicator."""

import sys
from typing import TextIO


class ProgressBar:
    """Single-line progress bar rewritten in place."""

    WIDTH = 40

    def __init__(self, stream: TextIO | None = None, quiet: bool = False):
        self.stream = stream or sys.stderr
        self.quiet = quiet

    def render(self, percent: float) -> str:
        filled = sum(1 for i in range(self.WIDTH) if i * 100.0 / self.WIDTH < percent)
        return "Progress =[" + "#" * filled + "-" * (self.WIDTH - filled) + "]="

    def __call__(self, percent: float) -> None:
        if self.quiet:
            return
        self.stream.write(self.render(percent) + "     \r")
        self.stream.flush()

    def clear(self) -> None:
        if self.quiet:
            return
        self.stream.write(" " * (self.WIDTH + 20) + "\r")
        self.stream.flush()
