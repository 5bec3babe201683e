import posixpath
from typing import Final
from urllib.parse import unquote

from sanding_history_web_app.assets import AssetBundle
from sanding_history_web_app.data_types import BundledAsset
from sanding_history_web_app.data_types import ROOT_DOCUMENT_PATH

_DIRECTORY_INDEX_NAME: Final[str] = "index.html"


def normalize_request_path(raw_path: str) -> str:
    """Turn a raw request target into a bundle key.

    Drops the query string and fragment, percent-decodes, and collapses '.' and
    '..' segments without ever climbing above the root. A trailing slash is kept
    so callers can tell directory-like requests apart.
    """
    path = raw_path.split("?", 1)[0].split("#", 1)[0]
    path = unquote(path, errors="surrogateescape").replace("\\", "/")
    is_directory = path.endswith("/")

    # normpath leaves a leading '//' alone, so root the path with a single slash first
    normalized = posixpath.normpath("/" + path.lstrip("/"))
    if normalized == "/":
        return ROOT_DOCUMENT_PATH
    if is_directory:
        normalized += "/"
    return normalized


class AssetResolver:
    """Maps request paths to bundle content with single-page-application fallback.

    resolve() never reports "not found": anything the bundle does not contain is
    answered with the root document, so client-side routes such as /history/42
    still load the application shell.
    """

    def __init__(self, bundle: AssetBundle) -> None:
        self._bundle = bundle

    @property
    def bundle(self) -> AssetBundle:
        return self._bundle

    def lookup(self, raw_path: str) -> BundledAsset | None:
        """Return the bundle entry the path names, or None if the fallback would apply."""
        path = normalize_request_path(raw_path)
        if path.endswith("/"):
            return self._bundle.get(path + _DIRECTORY_INDEX_NAME)
        return self._bundle.get(path)

    def resolve(self, raw_path: str) -> BundledAsset:
        asset = self.lookup(raw_path)
        if asset is None:
            return self._bundle.root_document
        return asset
