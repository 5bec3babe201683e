"""The bundled frontend: an immutable mapping from request path to file content.

The bundle is produced by the frontend build (`npm run build` writes frontend-dist/)
and loaded into memory once at process start. After loading nothing mutates it,
so every request handler reads it concurrently without locking.
"""

import mimetypes
import sys
from abc import ABC
from abc import abstractmethod
from collections.abc import Mapping
from pathlib import Path
from pathlib import PurePosixPath
from types import MappingProxyType
from typing import Final

from loguru import logger

from sanding_history_web_app.data_types import BundledAsset
from sanding_history_web_app.data_types import ROOT_DOCUMENT_PATH
from sanding_history_web_app.errors import AssetBundleLoadError
from sanding_history_web_app.log_utils import log_span

FRONTEND_DIST_DIR_NAME: Final[str] = "frontend-dist"

DEFAULT_CONTENT_TYPE: Final[str] = "application/octet-stream"

# Checked before the platform MIME table, whose answers for these vary across systems.
_CONTENT_TYPES_BY_SUFFIX: Final[Mapping[str, str]] = MappingProxyType(
    {
        ".html": "text/html; charset=utf-8",
        ".htm": "text/html; charset=utf-8",
        ".js": "application/javascript",
        ".mjs": "application/javascript",
        ".css": "text/css; charset=utf-8",
        ".json": "application/json",
        ".map": "application/json",
        ".svg": "image/svg+xml",
        ".wasm": "application/wasm",
        ".ico": "image/x-icon",
        ".txt": "text/plain; charset=utf-8",
        ".woff": "font/woff",
        ".woff2": "font/woff2",
    }
)


def guess_content_type(path: str) -> str:
    """Infer the Content-Type of a bundled file from its extension."""
    suffix = PurePosixPath(path).suffix.lower()
    if suffix in _CONTENT_TYPES_BY_SUFFIX:
        return _CONTENT_TYPES_BY_SUFFIX[suffix]
    if suffix:
        mime_type, _ = mimetypes.guess_type(f"file{suffix}", strict=False)
        if mime_type is not None:
            return mime_type
    return DEFAULT_CONTENT_TYPE


def _normalize_key(path: str) -> str:
    return "/" + path.replace("\\", "/").lstrip("/")


class AssetBundle(ABC):
    """Read-only view of the bundled frontend files."""

    @abstractmethod
    def get(self, path: str) -> BundledAsset | None:
        """Return the asset stored at exactly this path, or None if there is none."""

    @property
    @abstractmethod
    def paths(self) -> tuple[str, ...]:
        """All asset paths in the bundle, sorted."""

    @property
    def root_document(self) -> BundledAsset:
        """The application shell served for the root path and for unknown paths."""
        asset = self.get(ROOT_DOCUMENT_PATH)
        assert asset is not None, "bundles are validated to contain the root document when built"
        return asset


class InMemoryAssetBundle(AssetBundle):
    """Asset bundle built from a mapping of path to content.

    Values are either raw bytes (the content type is inferred from the extension)
    or a (content, content_type) pair to set the content type explicitly.
    """

    def __init__(self, files: Mapping[str, bytes | tuple[bytes, str]], source: str = "<memory>") -> None:
        assets: dict[str, BundledAsset] = {}
        for raw_path, value in files.items():
            path = _normalize_key(raw_path)
            if isinstance(value, tuple):
                content, content_type = value
            else:
                content, content_type = value, guess_content_type(path)
            assets[path] = BundledAsset(path=path, content=bytes(content), content_type=content_type)

        if ROOT_DOCUMENT_PATH not in assets:
            raise AssetBundleLoadError(source, f"missing root document {ROOT_DOCUMENT_PATH}")
        root_content_type = assets[ROOT_DOCUMENT_PATH].content_type
        if not root_content_type.startswith("text/html"):
            raise AssetBundleLoadError(
                source, f"root document {ROOT_DOCUMENT_PATH} must be HTML, not {root_content_type}"
            )

        self._source = source
        self._assets: Mapping[str, BundledAsset] = MappingProxyType(assets)
        self._paths = tuple(sorted(assets))

    @property
    def source(self) -> str:
        return self._source

    def get(self, path: str) -> BundledAsset | None:
        return self._assets.get(path)

    @property
    def paths(self) -> tuple[str, ...]:
        return self._paths

    def __len__(self) -> int:
        return len(self._assets)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(source={self._source!r}, assets={len(self._assets)})"


class DirectoryAssetBundle(InMemoryAssetBundle):
    """Asset bundle read once from a built frontend directory."""

    @classmethod
    def load(cls, dist_dir: Path) -> "DirectoryAssetBundle":
        """Read every file under dist_dir into memory.

        Raises AssetBundleLoadError if the directory is missing, unreadable, or
        lacks index.html. Entries that resolve outside dist_dir (e.g. through a
        symlink) are skipped.
        """
        source = str(dist_dir)
        if not dist_dir.exists():
            raise AssetBundleLoadError(source, "directory does not exist")
        if not dist_dir.is_dir():
            raise AssetBundleLoadError(source, "not a directory")

        with log_span("Loading asset bundle from {}", source):
            root = dist_dir.resolve()
            files: dict[str, bytes] = {}
            try:
                for file_path in sorted(root.rglob("*")):
                    if not file_path.is_file():
                        continue
                    resolved = file_path.resolve()
                    if not resolved.is_relative_to(root):
                        logger.warning("Skipping {}: it points outside the bundle directory", file_path)
                        continue
                    key = "/" + file_path.relative_to(root).as_posix()
                    files[key] = file_path.read_bytes()
            except OSError as e:
                raise AssetBundleLoadError(source, f"cannot read bundle files: {e}") from e

            bundle = cls(files, source=source)

        logger.debug("Loaded {} assets from {}", len(bundle), source)
        return bundle


def find_packaged_dist_dir() -> Path | None:
    """Find the frontend-dist directory, checking dev and installed locations."""
    possible_paths = [
        # Development: <repo>/frontend-dist, next to the package directory
        Path(__file__).parent.parent / FRONTEND_DIST_DIR_NAME,
        # Installed: share directory of the environment
        Path(sys.prefix) / "share" / "sanding_history_web_app" / FRONTEND_DIST_DIR_NAME,
    ]
    for p in possible_paths:
        if p.exists() and p.is_dir():
            return p
    return None


def load_asset_bundle(dist_dir: Path | None = None) -> AssetBundle:
    """Load the frontend bundle from dist_dir, or from the packaged location if not given."""
    if dist_dir is None:
        dist_dir = find_packaged_dist_dir()
        if dist_dir is None:
            raise AssetBundleLoadError(
                FRONTEND_DIST_DIR_NAME,
                "no built frontend found; run 'npm run build' or pass an explicit dist directory",
            )
    return DirectoryAssetBundle.load(dist_dir.expanduser())
