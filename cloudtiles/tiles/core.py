"""
Errors raised while encoding or decoding archives.
"""


class PMTilesError(Exception):
    pass


class InvalidHeaderError(PMTilesError):
    """Raised when the fixed-size header cannot be parsed."""

    pass


class UnsupportedCompressionError(PMTilesError):
    pass


class CompressionError(PMTilesError):
    pass


class InvalidCoordinateError(PMTilesError, ValueError):
    pass


class OutOfZoomRangeError(InvalidCoordinateError):
    """Raised when a zoom level is outside of the archive's zoom range."""

    pass


class InvalidTileIdError(PMTilesError, ValueError):
    pass


class DirectoryDecodeError(PMTilesError):
    """
    Raised for a directory or metadata blob that cannot be decoded. This is
    distinct from a tile simply not being present in the archive.
    """

    pass
