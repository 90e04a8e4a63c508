"""Relief milling toolpaths from triangulated surface models."""

__version__ = "0.1.0"
