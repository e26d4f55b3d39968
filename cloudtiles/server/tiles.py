"""
Endpoints for the archive and its tiles.
"""

from typing import Any

from fastapi import APIRouter, HTTPException, Request, Response

from cloudtiles.archive.metadata import TileJSON
from cloudtiles.tiles.core import InvalidCoordinateError
from cloudtiles.tiles.header import Header

tiles_router = APIRouter(tags=["Tiles"])

CACHE_CONTROL = "public, max-age=86400"


@tiles_router.get(
    "/header",
    response_model=Header,
    summary="Get the header of the archive.",
    description="Retrieve the decoded fixed-size header: section offsets, tile counts, compression, tile type, zoom range, bounds and center.",
)
def get_header(request: Request):
    return request.app.reader.header


@tiles_router.get(
    "/metadata",
    summary="Get the JSON metadata of the archive.",
    description="Retrieve the archive's metadata block exactly as written by the tile generator.",
)
def get_metadata(request: Request) -> dict[str, Any]:
    return request.app.reader.get_metadata()


@tiles_router.get(
    "/tilejson.json",
    response_model=TileJSON,
    response_model_exclude_none=True,
    summary="Get a TileJSON document for the archive.",
    description="Describe the archive as TileJSON 3.0.0, with a tile URL template pointing back at this server.",
)
def get_tilejson(request: Request):
    reader = request.app.reader
    extension = reader.header.tile_type.extension
    template = f"{request.base_url}tiles/" + "{z}/{x}/{y}." + extension

    return TileJSON.from_archive(
        header=reader.header,
        metadata=reader.get_metadata_model(),
        tile_urls=[template],
    )


@tiles_router.get(
    "/tiles/{z}/{x}/{y}.{ext}",
    summary="Get a tile.",
    description="Retrieve the decompressed payload of a tile. Tiles that are not in the archive return 404; coordinates outside of the archive's zoom range or the tile grid return 400.",
)
def get_tile(z: int, x: int, y: int, ext: str, request: Request):
    reader = request.app.reader
    tile_type = reader.header.tile_type

    if ext != tile_type.extension:
        raise HTTPException(
            status_code=404,
            detail=f"Tiles in this archive have the extension '{tile_type.extension}'",
        )

    try:
        data = reader.get_tile(z, x, y)
    except InvalidCoordinateError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if data is None:
        raise HTTPException(status_code=404, detail=f"Tile {z}/{x}/{y} not found")

    return Response(
        content=data,
        media_type=tile_type.media_type,
        headers={"Cache-Control": CACHE_CONTROL},
    )
