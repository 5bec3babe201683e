from collections.abc import Callable
from enum import StrEnum
from enum import auto
from pathlib import Path
from typing import Final
from typing import Protocol
from typing import Self

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field

from sanding_history_web_app.primitives import ComponentName
from sanding_history_web_app.primitives import ListenPort

ROOT_DOCUMENT_PATH: Final[str] = "/index.html"

DEFAULT_PORT: Final[int] = 8888

DEFAULT_HOST: Final[str] = "0.0.0.0"

DEFAULT_DRAIN_DEADLINE_SECONDS: Final[float] = 5.0


class UpperCaseStrEnum(StrEnum):
    """A StrEnum whose auto() values are the uppercased member names."""

    @staticmethod
    def _generate_next_value_(
        name: str,
        start: int,
        count: int,
        last_values: list[str],
    ) -> str:
        return name.upper()


class FrozenModel(BaseModel):
    """Base class for immutable pydantic models that prevent attribute mutation after construction."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        arbitrary_types_allowed=False,
    )


class WebServerState(UpperCaseStrEnum):
    """Lifecycle state of a web server. Only start() and close() move between states."""

    IDLE = auto()
    LISTENING = auto()
    DRAINING = auto()
    CLOSED = auto()


class BundledAsset(FrozenModel):
    """A single file of the bundled frontend, with its content type fixed at load time."""

    path: str = Field(description="Absolute request path of the asset (e.g. /assets/app.js)")
    content: bytes = Field(description="Raw file content")
    content_type: str = Field(description="Value for the Content-Type response header")


class ComponentModel(FrozenModel):
    """Identity of a component kind, written as namespace:family:name."""

    namespace: str
    family: str
    name: str

    @classmethod
    def from_string(cls, value: str) -> Self:
        parts = value.split(":")
        if len(parts) != 3 or not all(parts):
            raise ValueError(f"Component model must look like namespace:family:name, got {value!r}")
        namespace, family, name = parts
        return cls(namespace=namespace, family=family, name=name)

    def __str__(self) -> str:
        return f"{self.namespace}:{self.family}:{self.name}"


class WebAppConfig(FrozenModel):
    """Configuration the host passes when it builds the web app component."""

    port: ListenPort = Field(
        default=ListenPort(DEFAULT_PORT),
        description="TCP port to bind. 0 lets the operating system pick an ephemeral port",
    )
    host: str = Field(default=DEFAULT_HOST, description="Address to bind the listening socket to")
    dist_dir: Path | None = Field(
        default=None,
        description="Directory holding the built frontend. Defaults to the packaged frontend-dist",
    )


class Component(Protocol):
    """What the host needs from a component: a name and a start/close lifecycle."""

    @property
    def name(self) -> ComponentName: ...

    def start(self) -> None: ...

    def close(self, deadline_seconds: float = DEFAULT_DRAIN_DEADLINE_SECONDS) -> None: ...


ComponentFactory = Callable[[ComponentName, WebAppConfig], Component]
