#!/usr/bin/env python3
"""PyInstaller entrypoint for a standalone fleetcore binary.

This thin wrapper reuses the project CLI so that a frozen, single-file
binary can be built for distribution.
"""

from fleetcore.cli import main


if __name__ == "__main__":
    main()
