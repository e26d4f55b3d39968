"""
Models for the JSON metadata block and for TileJSON documents describing an
archive.
"""

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from cloudtiles.tiles.header import Header


ZoomLevel = Annotated[int, Field(ge=0, le=31)]


class VectorLayer(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    fields: dict[str, str] = Field(default_factory=dict)
    "Attribute names mapped to their type (String, Number or Boolean)."
    description: str | None = None
    minzoom: ZoomLevel | None = None
    maxzoom: ZoomLevel | None = None


class PMTilesMetadata(BaseModel):
    """
    The commonly used keys of the metadata block. Any other keys written by
    tile generators are kept as extra fields.
    """

    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    name: str | None = None
    description: str | None = None
    attribution: str | None = None
    type: Literal["overlay", "baselayer"] | None = None
    version: str | None = None
    vector_layers: list[VectorLayer] | None = None

    def to_json(self) -> bytes:
        return self.model_dump_json(exclude_none=True).encode("utf-8")


class TileJSON(BaseModel):
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    tilejson: str = "3.0.0"
    tiles: list[str]
    vector_layers: list[VectorLayer] | None = None
    name: str | None = None
    description: str | None = None
    attribution: str | None = None
    version: str | None = None
    scheme: Literal["xyz", "tms"] = "xyz"
    minzoom: ZoomLevel | None = None
    maxzoom: ZoomLevel | None = None
    bounds: list[float] | None = None
    "West, south, east, north in degrees."
    center: list[float] | None = None
    "Longitude, latitude and (optionally) zoom."

    @field_validator("tiles")
    @classmethod
    def at_least_one_url(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("TileJSON requires at least one tile URL")

        return value

    @classmethod
    def from_archive(
        cls, header: Header, metadata: PMTilesMetadata, tile_urls: list[str]
    ) -> "TileJSON":
        """
        Describe an archive from its header and metadata, serving tiles at
        ``tile_urls`` (templates containing ``{z}``, ``{x}`` and ``{y}``).
        """
        return cls(
            tiles=tile_urls,
            vector_layers=metadata.vector_layers,
            name=metadata.name,
            description=metadata.description,
            attribution=metadata.attribution,
            version=metadata.version,
            minzoom=header.min_zoom,
            maxzoom=header.max_zoom,
            bounds=list(header.bounds),
            center=list(header.center),
        )
