"""Tests for the artifact server.

Uses TestClient against an app backed by a temporary store.
"""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from wasmhost.store import ArtifactStore, StoreReadError
from web.app import create_app
from web.routers.artifacts import content_type_for, split_filename


@pytest.fixture
def store(tmp_path):
    return ArtifactStore(tmp_path / "store")


@pytest.fixture
def client(store):
    with TestClient(create_app(store=store)) as test_client:
        yield test_client


@pytest.fixture
def published(store):
    """Two complete artifact sets, alpha and beta."""
    for name in ("alpha", "beta"):
        store.publish(
            name,
            {
                "wasm": f"\0asm-{name}".encode(),
                "js": f"// loader {name}".encode(),
                "ts": f"// wrapper {name}".encode(),
            },
        )
    return store


class TestHelpers:
    """Tests for filename and content type helpers."""

    def test_split_at_last_dot(self):
        assert split_filename("alpha.wasm") == ("alpha", "wasm")
        assert split_filename("v1.2.wasm") == ("v1.2", "wasm")

    def test_split_without_dot(self):
        assert split_filename("README") == ("README", "")

    @pytest.mark.parametrize(
        ("extension", "expected"),
        [
            ("wasm", "application/wasm"),
            ("js", "application/javascript"),
            ("ts", "application/typescript"),
            ("WASM", "application/octet-stream"),
            ("unknownext", "application/octet-stream"),
            ("", "application/octet-stream"),
        ],
    )
    def test_content_type_for(self, extension, expected):
        assert content_type_for(extension) == expected


class TestIndex:
    """Tests for GET /."""

    def test_lists_wasm_modules_only(self, client, published):
        response = client.get("/")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/html")
        body = response.text
        assert '<a href="/alpha.wasm">alpha.wasm</a>' in body
        assert '<a href="/beta.wasm">beta.wasm</a>' in body
        assert "alpha.js" not in body
        assert "alpha.ts" not in body

    def test_empty_store(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert "No modules have been published yet." in response.text

    def test_hidden_staging_files_not_listed(self, client, published, store):
        (store.root / ".staging-abc123").write_bytes(b"partial")
        assert ".staging" not in client.get("/").text

    def test_enumeration_failure(self, client, store):
        with patch.object(
            ArtifactStore, "list", side_effect=StoreReadError("Failed to list")
        ):
            response = client.get("/")
        assert response.status_code == 500
        assert response.text == "500 Internal Error"


class TestDownload:
    """Tests for GET /{name}.{ext}."""

    def test_wasm_bytes(self, client, published):
        response = client.get("/alpha.wasm")
        assert response.status_code == 200
        assert response.headers["content-type"] == "application/wasm"
        assert response.content == b"\0asm-alpha"

    def test_loader_and_wrapper_reachable(self, client, published):
        """Loaders and wrappers are not listed but can be fetched by name."""
        js = client.get("/beta.js")
        assert js.status_code == 200
        assert js.headers["content-type"].startswith("application/javascript")
        assert js.content == b"// loader beta"

        ts = client.get("/beta.ts")
        assert ts.status_code == 200
        assert ts.headers["content-type"].startswith("application/typescript")

    def test_missing_artifact(self, client, published):
        response = client.get("/missing.wasm")
        assert response.status_code == 404
        assert response.headers["content-type"].startswith("text/plain")
        assert response.text == "404 Not Found"

    def test_unknown_extension(self, client, store):
        store.put("alpha", "unknownext", b"blob")
        response = client.get("/alpha.unknownext")
        assert response.status_code == 200
        assert response.headers["content-type"] == "application/octet-stream"
        assert response.content == b"blob"

    def test_extension_match_is_exact(self, client, store):
        store.put("alpha", "WASM", b"blob")
        response = client.get("/alpha.WASM")
        assert response.status_code == 200
        assert response.headers["content-type"] == "application/octet-stream"

    def test_hidden_name_is_not_found(self, client, store):
        store.root.mkdir(parents=True)
        (store.root / ".staging-abc").write_bytes(b"partial")
        assert client.get("/.staging-abc").status_code == 404

    def test_read_failure(self, client, published):
        with patch.object(
            ArtifactStore, "open", side_effect=StoreReadError("Failed to read")
        ):
            response = client.get("/alpha.wasm")
        assert response.status_code == 500
        assert response.text == "500 Internal Error"

    def test_large_artifact_streams_whole(self, client, store):
        payload = bytes(range(256)) * 1024
        store.put("big", "wasm", payload)
        response = client.get("/big.wasm")
        assert response.content == payload


class TestFrameworkErrors:
    """Errors raised outside the artifact handlers are plain text too."""

    def test_nested_path_not_found(self, client):
        response = client.get("/a/b.wasm")
        assert response.status_code == 404
        assert response.text == "404 Not Found"

    def test_post_not_allowed(self, client, published):
        response = client.post("/alpha.wasm")
        assert response.status_code == 405
        assert response.text == "405 Method Not Allowed"

    def test_no_docs_routes(self, client):
        assert client.get("/docs").status_code == 404
        assert client.get("/openapi.json").status_code == 404

    def test_unhandled_error_is_500(self, store):
        app = create_app(store=store)
        with patch.object(ArtifactStore, "list", side_effect=RuntimeError("boom")):
            with TestClient(app, raise_server_exceptions=False) as test_client:
                response = test_client.get("/")
        assert response.status_code == 500
        assert response.text == "500 Internal Error"
