import pytest
from fastapi.testclient import TestClient

from sanding_history_web_app.app import create_asset_app
from sanding_history_web_app.assets import InMemoryAssetBundle
from sanding_history_web_app.conftest import APP_JS
from sanding_history_web_app.conftest import INDEX_HTML
from sanding_history_web_app.resolver import AssetResolver


@pytest.fixture
def client(asset_bundle: InMemoryAssetBundle) -> TestClient:
    return TestClient(create_asset_app(AssetResolver(asset_bundle)))


def test_serves_javascript_verbatim(client: TestClient) -> None:
    response = client.get("/app.js")

    assert response.status_code == 200
    assert response.content == APP_JS
    assert response.headers["content-type"].startswith("application/javascript")


def test_serves_index_at_root(client: TestClient) -> None:
    response = client.get("/")

    assert response.status_code == 200
    assert response.content == INDEX_HTML
    assert response.headers["content-type"].startswith("text/html")


def test_unknown_route_gets_application_shell(client: TestClient) -> None:
    response = client.get("/unknown/route")

    assert response.status_code == 200
    assert response.content == INDEX_HTML
    assert response.headers["content-type"].startswith("text/html")


def test_query_string_is_ignored(client: TestClient) -> None:
    response = client.get("/app.js", params={"v": "3"})

    assert response.content == APP_JS


@pytest.mark.parametrize("path", ["/docs", "/redoc", "/openapi.json"])
def test_framework_routes_do_not_shadow_client_routes(client: TestClient, path: str) -> None:
    response = client.get(path)

    assert response.status_code == 200
    assert response.content == INDEX_HTML


def test_directory_request_serves_directory_index(client: TestClient) -> None:
    response = client.get("/docs/")

    assert response.content == b"<html>docs</html>"


def test_encoded_traversal_stays_inside_bundle(client: TestClient) -> None:
    response = client.get("/%2e%2e/%2e%2e/app.js")

    assert response.status_code == 200
    assert response.content == APP_JS


def test_head_request_reports_content_length(client: TestClient) -> None:
    response = client.head("/app.js")

    assert response.status_code == 200
    assert response.headers["content-length"] == str(len(APP_JS))


@pytest.mark.parametrize("method", ["POST", "PUT", "DELETE"])
def test_non_read_methods_are_rejected(client: TestClient, method: str) -> None:
    response = client.request(method, "/app.js")

    assert response.status_code == 405


@pytest.mark.parametrize(
    ("request_path", "expected"),
    [
        ("/a%2520b.js", b"space-named"),
        ("/what%3F.txt", b"question-named"),
        ("/hash%23.txt", b"hash-named"),
        ("/a%20b.js", INDEX_HTML),
    ],
)
def test_file_names_with_reserved_characters_are_decoded_once(request_path: str, expected: bytes) -> None:
    bundle = InMemoryAssetBundle(
        {
            "/index.html": INDEX_HTML,
            "/a%20b.js": b"space-named",
            "/what?.txt": b"question-named",
            "/hash#.txt": b"hash-named",
        }
    )
    client = TestClient(create_asset_app(AssetResolver(bundle)))

    response = client.get(request_path)

    assert response.status_code == 200
    assert response.content == expected
