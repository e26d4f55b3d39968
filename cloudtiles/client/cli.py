"""
CLI components (using typer)
"""

import json
import logging
import sys
from pathlib import Path
from typing import Optional

import structlog
import typer
from rich.console import Console
from rich.table import Table

CONSOLE = Console()

APP = typer.Typer()


@APP.callback()
def configure(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug events."),
):
    """
    Read, inspect and serve PMTiles archives.
    """
    # Logs go to stderr so that tiles can be piped from stdout.
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.DEBUG if verbose else logging.WARNING
        ),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )


@APP.command()
def info(archive: str):
    """
    Show the header of an archive.
    """
    from cloudtiles.settings import settings

    with settings.open_reader(archive) as reader:
        header = reader.header

        table = Table(title=archive)
        table.add_column("Field")
        table.add_column("Value")

        table.add_row("Tile type", header.tile_type.name)
        table.add_row("Tile compression", header.tile_compression.name)
        table.add_row("Internal compression", header.internal_compression.name)
        table.add_row("Zoom levels", f"{header.min_zoom} to {header.max_zoom}")
        table.add_row("Bounds", ", ".join(f"{x:.7f}" for x in header.bounds))
        table.add_row(
            "Center", f"{header.center[0]:.7f}, {header.center[1]:.7f} (z{header.center[2]})"
        )
        table.add_row("Addressed tiles", str(header.addressed_tiles_count))
        table.add_row("Tile entries", str(header.tile_entries_count))
        table.add_row("Tile contents", str(header.tile_contents_count))
        table.add_row("Clustered", str(header.clustered))
        table.add_row("Root directory", f"{header.root_length} bytes at {header.root_offset}")
        table.add_row(
            "Metadata", f"{header.metadata_length} bytes at {header.metadata_offset}"
        )
        table.add_row(
            "Leaf directories",
            f"{header.leaf_directory_length} bytes at {header.leaf_directory_offset}",
        )
        table.add_row(
            "Tile data", f"{header.tile_data_length} bytes at {header.tile_data_offset}"
        )

        CONSOLE.print(table)


@APP.command()
def metadata(archive: str):
    """
    Print the JSON metadata of an archive.
    """
    from cloudtiles.settings import settings

    with settings.open_reader(archive) as reader:
        CONSOLE.print_json(json.dumps(reader.get_metadata()))


@APP.command()
def tile(
    archive: str,
    z: int,
    x: int,
    y: int,
    output: Optional[Path] = typer.Option(None, help="File to write to; stdout if unset."),
):
    """
    Extract the (decompressed) payload of a single tile.
    """
    from cloudtiles.settings import settings
    from cloudtiles.tiles.core import InvalidCoordinateError

    with settings.open_reader(archive) as reader:
        try:
            data = reader.get_tile(z, x, y)
        except InvalidCoordinateError as e:
            CONSOLE.print(f"[red]{e}[/red]")
            raise typer.Exit(code=2)

    if data is None:
        CONSOLE.print(f"[yellow]Tile {z}/{x}/{y} is not in the archive[/yellow]")
        raise typer.Exit(code=1)

    if output is None:
        sys.stdout.buffer.write(data)
        sys.stdout.buffer.flush()
    else:
        output.write_bytes(data)
        CONSOLE.print(f"Wrote {len(data)} bytes to {output}")


@APP.command("copy")
def copy_archive(
    source: str,
    destination: Path,
    tile_compression: Optional[str] = typer.Option(
        None, help="none, gzip, brotli or zstd. Defaults to the compression of the source."
    ),
    internal_compression: str = typer.Option(
        "gzip", help="Compression of the directories and metadata."
    ),
):
    """
    Copy an archive to a local file, optionally changing its compression.
    """
    from cloudtiles.settings import settings
    from cloudtiles.tiles.header import Compression

    def parse(value: str) -> Compression:
        try:
            return Compression[value.upper()]
        except KeyError:
            raise typer.BadParameter(f"Unknown compression '{value}'")

    with settings.open_reader(source) as reader:
        header = reader.header

        with settings.create_writer(
            destination,
            tile_type=header.tile_type,
            tile_compression=(
                parse(tile_compression)
                if tile_compression is not None
                else header.tile_compression
            ),
            internal_compression=parse(internal_compression),
            min_zoom=header.min_zoom,
            max_zoom=header.max_zoom,
            bounds=header.bounds,
            center=header.center,
        ) as writer:
            for tile, data in reader.iter_tiles():
                writer.add_tile(tile.z, tile.x, tile.y, data)

            writer.set_metadata(reader.get_raw_metadata())
            written = writer.complete()

    CONSOLE.print(
        f"Copied {written.addressed_tiles_count} tiles "
        f"({written.tile_contents_count} distinct) to {destination}"
    )


@APP.command()
def serve(
    archive: Optional[str] = typer.Argument(None, help="Defaults to CLOUDTILES_ARCHIVE."),
    host: str = "127.0.0.1",
    port: int = 8000,
):
    """
    Start the tile server for an archive.
    """
    from uvicorn import run

    from cloudtiles.server.app import app
    from cloudtiles.settings import settings

    if archive is not None:
        settings.archive = archive

    run(app, host=host, port=port)


def main():
    global APP

    APP()
