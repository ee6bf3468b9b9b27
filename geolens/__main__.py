#!/usr/bin/env python3
"""
geolens - GEO dataset downloader and query engine

Entry point for running as a module: python -m geolens
"""

from geolens.cli import app

if __name__ == "__main__":
    app()
