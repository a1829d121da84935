"""Command-line interface for plot3dvtk."""
