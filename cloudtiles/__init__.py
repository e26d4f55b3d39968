"""
Reading and writing PMTiles v3 archives over local and remote byte-range sources.
"""

__version__ = "0.1.0"
