from pathlib import Path

import pytest

from sanding_history_web_app.assets import InMemoryAssetBundle

INDEX_HTML = b"<html>shell</html>"
APP_JS = b"console.log(1)"


@pytest.fixture
def asset_bundle() -> InMemoryAssetBundle:
    """The bundle from the end-to-end scenario, plus a nested directory with its own index."""
    return InMemoryAssetBundle(
        {
            "/index.html": (INDEX_HTML, "text/html"),
            "/app.js": (APP_JS, "application/javascript"),
            "/assets/style.css": b"body { margin: 0 }",
            "/docs/index.html": b"<html>docs</html>",
        }
    )


@pytest.fixture
def dist_dir(tmp_path: Path) -> Path:
    """A built frontend directory laid out like the output of the frontend build."""
    dist = tmp_path / "frontend-dist"
    (dist / "assets").mkdir(parents=True)
    (dist / "index.html").write_bytes(INDEX_HTML)
    (dist / "assets" / "index-abc123.js").write_bytes(APP_JS)
    (dist / "assets" / "index-abc123.css").write_bytes(b"body { margin: 0 }")
    (dist / "favicon.svg").write_bytes(b"<svg/>")
    return dist
