"""
Main server app.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..settings import settings
from .tiles import tiles_router


async def lifespan(app: FastAPI):
    """
    Lifespan event handler for the FastAPI app. Opens the archive on startup
    and closes it, with its sources and caches, on shutdown.
    """

    settings.setup_app(app=app)

    yield

    app.reader.close()


tags_metadata = [
    {
        "name": "Tiles",
        "description": "Operations to retrieve the header and metadata of the archive, as well as the tiles themselves.",
    },
]

app = FastAPI(lifespan=lifespan, openapi_tags=tags_metadata)

if settings.add_cors:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.include_router(tiles_router)
