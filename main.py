#!/usr/bin/env python3
"""
Main entry point for the Landsat 8 pan-sharpened mosaic builder.

All functionality lives in the panmosaic/ package; this script only forwards
to its command line interface.
"""
import sys

from panmosaic.cli import main


if __name__ == "__main__":
    sys.exit(main())
