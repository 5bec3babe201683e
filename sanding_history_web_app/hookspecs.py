import pluggy

from sanding_history_web_app.data_types import ComponentFactory
from sanding_history_web_app.data_types import ComponentModel

hookspec = pluggy.HookspecMarker("sanding_history_web_app")


@hookspec
def register_component_model() -> tuple[ComponentModel, ComponentFactory] | None:
    """Register a component kind with the host.

    Plugins implement this hook to advertise a component model together with the
    factory the host calls to build an instance of it.

    Return a tuple of (model, factory), or None if not registering anything.
    The factory is called as factory(name, config) and must return an object
    with start() and close(deadline_seconds) methods.
    """
