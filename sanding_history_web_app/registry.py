import pluggy
from loguru import logger

import sanding_history_web_app.component as web_app_component_module
from sanding_history_web_app import hookspecs
from sanding_history_web_app.data_types import Component
from sanding_history_web_app.data_types import ComponentFactory
from sanding_history_web_app.data_types import ComponentModel
from sanding_history_web_app.data_types import WebAppConfig
from sanding_history_web_app.errors import DuplicateComponentModelError
from sanding_history_web_app.errors import UnknownComponentModelError
from sanding_history_web_app.primitives import ComponentName

PLUGIN_PROJECT_NAME = "sanding_history_web_app"


class ComponentRegistry:
    """Component models known to the host, and the factories that build them.

    Built once during bootstrap by create_component_registry() and passed to
    whatever needs it; nothing is registered as a side effect of importing a module.
    """

    def __init__(self) -> None:
        self._factories: dict[ComponentModel, ComponentFactory] = {}

    def register(self, model: ComponentModel, factory: ComponentFactory) -> None:
        if model in self._factories:
            raise DuplicateComponentModelError(str(model))
        self._factories[model] = factory
        logger.debug("Registered component model {}", model)

    def get(self, model: ComponentModel) -> ComponentFactory:
        try:
            return self._factories[model]
        except KeyError:
            raise UnknownComponentModelError(str(model)) from None

    def build(self, model: ComponentModel, name: ComponentName, config: WebAppConfig) -> Component:
        """Build a component instance. The caller owns its start/close lifecycle."""
        return self.get(model)(name, config)

    @property
    def models(self) -> tuple[ComponentModel, ...]:
        return tuple(self._factories)

    def __contains__(self, model: object) -> bool:
        return model in self._factories


def create_plugin_manager() -> pluggy.PluginManager:
    """Create a plugin manager with the built-in component and any installed plugins loaded.

    External packages can add components by registering an entry point in the
    "sanding_history_web_app" group.
    """
    pm = pluggy.PluginManager(PLUGIN_PROJECT_NAME)
    pm.add_hookspecs(hookspecs)
    pm.register(web_app_component_module, name="sanding-history-web-app")
    pm.load_setuptools_entrypoints(PLUGIN_PROJECT_NAME)
    return pm


def create_component_registry(pm: pluggy.PluginManager) -> ComponentRegistry:
    """Collect every register_component_model hook result into a new registry."""
    registry = ComponentRegistry()
    for registration in pm.hook.register_component_model():
        if registration is not None:
            model, factory = registration
            registry.register(model, factory)
    return registry
