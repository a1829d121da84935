"""Main entry point for running plot3dvtk as a module."""

import sys

if __name__ == "__main__":
    from plot3dvtk.cli.app import main
    sys.exit(main())
