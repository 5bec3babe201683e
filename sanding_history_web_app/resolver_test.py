import pytest

from sanding_history_web_app.assets import InMemoryAssetBundle
from sanding_history_web_app.conftest import APP_JS
from sanding_history_web_app.conftest import INDEX_HTML
from sanding_history_web_app.resolver import AssetResolver
from sanding_history_web_app.resolver import normalize_request_path


@pytest.fixture
def resolver(asset_bundle: InMemoryAssetBundle) -> AssetResolver:
    return AssetResolver(asset_bundle)


@pytest.mark.parametrize(
    ("raw_path", "expected"),
    [
        ("", "/index.html"),
        ("/", "/index.html"),
        ("/app.js", "/app.js"),
        ("app.js", "/app.js"),
        ("/app.js?v=3", "/app.js"),
        ("/app.js#section", "/app.js"),
        ("/a/./b/../app.js", "/a/app.js"),
        ("/../../etc/passwd", "/etc/passwd"),
        ("//app.js", "/app.js"),
        ("/%61pp.js", "/app.js"),
        ("/docs/", "/docs/"),
        ("/docs/../", "/index.html"),
        ("/..\\..\\app.js", "/app.js"),
    ],
)
def test_normalize_request_path(raw_path: str, expected: str) -> None:
    assert normalize_request_path(raw_path) == expected


def test_resolves_existing_asset_verbatim(resolver: AssetResolver) -> None:
    asset = resolver.resolve("/app.js")

    assert asset.content == APP_JS
    assert asset.content_type == "application/javascript"


def test_root_resolves_to_index(resolver: AssetResolver) -> None:
    assert resolver.resolve("/").content == INDEX_HTML
    assert resolver.resolve("").content == INDEX_HTML


@pytest.mark.parametrize(
    "raw_path",
    [
        "/unknown/route",
        "/history/42",
        "/a/b/c/d/e/f/g/h",
        "/app.js/extra",
        "/%ff%fe",
        "/with\x00nul",
        "/assets/missing.js",
    ],
)
def test_unknown_paths_fall_back_to_root_document(resolver: AssetResolver, raw_path: str) -> None:
    asset = resolver.resolve(raw_path)

    assert asset.content == INDEX_HTML
    assert asset.content_type == "text/html"


@pytest.mark.parametrize(
    "raw_path",
    [
        "/../app.js",
        "/../../../../app.js",
        "/assets/../../app.js",
        "/%2e%2e/%2e%2e/app.js",
    ],
)
def test_traversal_is_clamped_to_bundle_root(resolver: AssetResolver, raw_path: str) -> None:
    assert resolver.resolve(raw_path).content == APP_JS


def test_traversal_never_leaves_the_bundle(resolver: AssetResolver, asset_bundle: InMemoryAssetBundle) -> None:
    known_contents = {asset_bundle.get(path).content for path in asset_bundle.paths}  # type: ignore[union-attr]

    for raw_path in ["/../../etc/passwd", "/../conftest.py", "/..%2f..%2fetc/hosts", "/assets/../../../"]:
        assert resolver.resolve(raw_path).content in known_contents


def test_directory_path_serves_directory_index(resolver: AssetResolver) -> None:
    assert resolver.resolve("/docs/").content == b"<html>docs</html>"


def test_directory_path_without_index_falls_back(resolver: AssetResolver) -> None:
    assert resolver.resolve("/assets/").content == INDEX_HTML


def test_lookup_distinguishes_fallback(resolver: AssetResolver) -> None:
    assert resolver.lookup("/app.js") is not None
    assert resolver.lookup("/history/42") is None
