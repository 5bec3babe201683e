from urllib.parse import quote

from fastapi import FastAPI
from fastapi import Request
from fastapi.responses import Response

from sanding_history_web_app.resolver import AssetResolver


def _raw_request_path(request: Request) -> str:
    # The resolver does its own percent-decoding, so hand it the path as sent.
    raw_path = request.scope.get("raw_path")
    if raw_path is None:
        return quote(request.url.path)
    return raw_path.decode("latin-1")


def create_asset_app(resolver: AssetResolver, title: str = "sanding-history-web-app") -> FastAPI:
    """Create the FastAPI app that serves the bundled frontend.

    Every GET/HEAD path is answered from the bundle, with unknown paths getting the
    application shell. The OpenAPI and docs routes are disabled so that they never
    shadow client-side routes.
    """
    app = FastAPI(title=title, docs_url=None, redoc_url=None, openapi_url=None)

    @app.api_route("/{path:path}", methods=["GET", "HEAD"])
    async def serve_asset(request: Request) -> Response:
        """Serve the pre-built frontend."""
        asset = resolver.resolve(_raw_request_path(request))
        return Response(content=asset.content, media_type=asset.content_type)

    return app
