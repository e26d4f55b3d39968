import pytest
from fastapi.testclient import TestClient

from cloudtiles.server.app import app
from cloudtiles.settings import settings


@pytest.fixture
def client(vector_archive, monkeypatch):
    monkeypatch.setattr(settings, "archive", str(vector_archive))

    with TestClient(app) as client:
        yield client


def test_get_tile(client):
    response = client.get("/tiles/1/1/0.mvt")

    assert response.status_code == 200
    assert response.content == b"tile 1/1/0"
    assert response.headers["content-type"] == "application/vnd.mapbox-vector-tile"
    assert "max-age" in response.headers["cache-control"]


def test_tiles_are_served_decompressed(client):
    response = client.get("/tiles/0/0/0.mvt")

    assert response.content == b"root tile"
    assert "content-encoding" not in response.headers


def test_missing_tile(client):
    assert client.get("/tiles/2/0/0.mvt").status_code == 404


def test_wrong_extension(client):
    assert client.get("/tiles/0/0/0.png").status_code == 404


@pytest.mark.parametrize("path", ["/tiles/12/0/0.mvt", "/tiles/1/5/0.mvt"])
def test_invalid_coordinates(client, path):
    assert client.get(path).status_code == 400


def test_header(client):
    response = client.get("/header")

    assert response.status_code == 200
    header = response.json()
    assert header["min_zoom"] == 0
    assert header["max_zoom"] == 2
    assert header["addressed_tiles_count"] == 6
    assert header["tile_type"] == 1


def test_metadata(client):
    response = client.get("/metadata")

    assert response.status_code == 200
    assert response.json()["name"] == "Test tiles"


def test_tilejson(client):
    response = client.get("/tilejson.json")

    assert response.status_code == 200
    tilejson = response.json()
    assert tilejson["tilejson"] == "3.0.0"
    assert tilejson["tiles"] == ["http://testserver/tiles/{z}/{x}/{y}.mvt"]
    assert tilejson["name"] == "Test tiles"
    assert tilejson["minzoom"] == 0
    assert tilejson["maxzoom"] == 2
    assert tilejson["bounds"] == [-10.0, -5.0, 10.0, 5.0]
    assert tilejson["vector_layers"][0]["id"] == "roads"
    assert "description" not in tilejson
