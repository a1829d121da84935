"""Core functionality for plot3dvtk."""

from plot3dvtk.core.config import ConversionConfig

__all__ = ["ConversionConfig"]
