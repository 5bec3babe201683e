import pytest
from pydantic import BaseModel
from pydantic import ValidationError

from sanding_history_web_app.primitives import ComponentName
from sanding_history_web_app.primitives import DrainDeadline
from sanding_history_web_app.primitives import ListenPort


class TestListenPort:
    def test_zero_port_means_ephemeral(self) -> None:
        assert ListenPort(0) == 0

    def test_max_port(self) -> None:
        assert ListenPort(65535) == 65535

    def test_negative_port_raises(self) -> None:
        with pytest.raises(ValueError, match="Port must be between"):
            ListenPort(-1)

    def test_too_large_port_raises(self) -> None:
        with pytest.raises(ValueError, match="Port must be between"):
            ListenPort(65536)

    def test_validates_inside_pydantic_model(self) -> None:
        class _Model(BaseModel):
            port: ListenPort

        assert isinstance(_Model(port=8888).port, ListenPort)
        with pytest.raises(ValidationError):
            _Model(port=70000)


class TestDrainDeadline:
    def test_zero_is_allowed(self) -> None:
        assert DrainDeadline(0) == 0.0

    def test_negative_raises(self) -> None:
        with pytest.raises(ValueError, match="must be >= 0"):
            DrainDeadline(-0.5)


class TestComponentName:
    def test_strips_whitespace(self) -> None:
        assert ComponentName("  web-ui ") == "web-ui"

    def test_empty_raises(self) -> None:
        with pytest.raises(ValueError, match="cannot be empty"):
            ComponentName("   ")
