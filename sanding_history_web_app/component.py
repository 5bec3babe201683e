from collections.abc import Callable
from typing import Final

import pluggy
from loguru import logger

from sanding_history_web_app.app import create_asset_app
from sanding_history_web_app.assets import AssetBundle
from sanding_history_web_app.assets import load_asset_bundle
from sanding_history_web_app.data_types import ComponentFactory
from sanding_history_web_app.data_types import ComponentModel
from sanding_history_web_app.data_types import DEFAULT_DRAIN_DEADLINE_SECONDS
from sanding_history_web_app.data_types import WebAppConfig
from sanding_history_web_app.data_types import WebServerState
from sanding_history_web_app.errors import WebServerAlreadyStartedError
from sanding_history_web_app.primitives import ComponentName
from sanding_history_web_app.resolver import AssetResolver
from sanding_history_web_app.server import WebServer

hookimpl = pluggy.HookimplMarker("sanding_history_web_app")

COMPONENT_API: Final[str] = "generic"

COMPONENT_MODEL: Final[ComponentModel] = ComponentModel(
    namespace="mattmacf",
    family="sanding-history-web-app",
    name="sanding-history-web-app",
)


class SandingHistoryWebApp:
    """The sanding history web UI as a host-managed component.

    start() loads the bundled frontend and begins serving it on the configured
    port; close() drains and releases the port. A bundle that fails to load is
    raised from start() and the server never begins listening.
    """

    def __init__(
        self,
        name: ComponentName,
        config: WebAppConfig,
        bundle_loader: Callable[[WebAppConfig], AssetBundle] | None = None,
    ) -> None:
        self._name = name
        self._config = config
        self._bundle_loader = bundle_loader or _load_configured_bundle
        self._server: WebServer | None = None

    @property
    def name(self) -> ComponentName:
        return self._name

    @property
    def config(self) -> WebAppConfig:
        return self._config

    @property
    def state(self) -> WebServerState:
        if self._server is None:
            return WebServerState.IDLE
        return self._server.state

    @property
    def url(self) -> str | None:
        return self._server.url if self._server is not None else None

    def start(self) -> None:
        if self._server is not None:
            raise WebServerAlreadyStartedError(self._name, self._server.state)

        bundle = self._bundle_loader(self._config)
        app = create_asset_app(AssetResolver(bundle), title=str(COMPONENT_MODEL))
        server = WebServer(app, name=self._name)
        server.start(self._config.port, host=self._config.host)
        self._server = server
        logger.info(
            "Component {} ({}) serving {} assets at {}",
            self._name,
            COMPONENT_MODEL,
            len(bundle.paths),
            server.url,
        )

    def close(self, deadline_seconds: float = DEFAULT_DRAIN_DEADLINE_SECONDS) -> None:
        if self._server is None:
            return
        self._server.close(deadline_seconds)


def _load_configured_bundle(config: WebAppConfig) -> AssetBundle:
    return load_asset_bundle(config.dist_dir)


def create_sanding_history_web_app(name: ComponentName, config: WebAppConfig) -> SandingHistoryWebApp:
    return SandingHistoryWebApp(name, config)


@hookimpl
def register_component_model() -> tuple[ComponentModel, ComponentFactory]:
    """Register the sanding history web app component."""
    return (COMPONENT_MODEL, create_sanding_history_web_app)
