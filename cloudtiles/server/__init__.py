"""
HTTP server for the tiles of a single archive.
"""
