class SandingHistoryWebAppError(Exception):
    """Base exception for all sanding-history-web-app errors."""

    ...


class AssetBundleLoadError(SandingHistoryWebAppError):
    """Raised when the asset bundle cannot be located or is structurally invalid."""

    def __init__(self, source: str, reason: str) -> None:
        self.source = source
        self.reason = reason
        super().__init__(f"Cannot load asset bundle from {source}: {reason}")


class WebServerError(SandingHistoryWebAppError):
    """Base class for web server lifecycle errors."""

    ...


class WebServerBindError(WebServerError, OSError):
    """Raised when the listening socket cannot be bound (port in use, permission denied)."""

    def __init__(self, host: str, port: int, reason: str) -> None:
        self.host = host
        self.port = port
        self.reason = reason
        super().__init__(f"Cannot bind {host}:{port}: {reason}")

    def __str__(self) -> str:
        return f"Cannot bind {self.host}:{self.port}: {self.reason}"


class WebServerAlreadyStartedError(WebServerError, RuntimeError):
    """Raised when start() is called on a server that has already left the IDLE state."""

    def __init__(self, name: str, state: str) -> None:
        self.name = name
        self.state = state
        super().__init__(f"Web server '{name}' cannot be started from state {state}")


class WebServerStartupError(WebServerError, RuntimeError):
    """Raised when the socket was bound but the server failed to begin accepting connections."""

    ...


class ComponentRegistryError(SandingHistoryWebAppError):
    """Base class for component registration errors."""

    ...


class UnknownComponentModelError(ComponentRegistryError, KeyError):
    """Raised when no component is registered under the requested model."""

    def __init__(self, model: str) -> None:
        self.model = model
        super().__init__(f"No component registered for model '{model}'")

    def __str__(self) -> str:
        return f"No component registered for model '{self.model}'"


class DuplicateComponentModelError(ComponentRegistryError, ValueError):
    """Raised when two plugins register a component under the same model."""

    def __init__(self, model: str) -> None:
        self.model = model
        super().__init__(f"Component model '{model}' is already registered")
