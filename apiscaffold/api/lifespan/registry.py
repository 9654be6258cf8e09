"""Ordered component registry for the lifespan manager."""
from typing import Dict, Iterator, List, Optional
import structlog

from .base import BaseLifecycleComponent
from ...core.exceptions import DependencyConfigurationError

logger = structlog.get_logger(__name__)


class ComponentRegistry:
    """
    Holds component instances in registration order.

    Registration order is the startup order; shutdown walks it backwards.
    A component may only depend on components registered before it, which
    also rules out dependency cycles.
    """

    def __init__(self):
        self._components: List[BaseLifecycleComponent] = []
        self._component_map: Dict[str, BaseLifecycleComponent] = {}

    def register(self, component: BaseLifecycleComponent) -> BaseLifecycleComponent:
        """
        Append a component.

        Raises:
            TypeError: If component doesn't inherit from BaseLifecycleComponent
            DependencyConfigurationError: On a duplicate or unnamed component,
                or a dependency that is not registered yet
        """
        if not isinstance(component, BaseLifecycleComponent):
            raise TypeError(
                f"{type(component).__name__} must inherit from BaseLifecycleComponent"
            )

        if component.name == BaseLifecycleComponent.name:
            raise DependencyConfigurationError(
                type(component).__name__, "component must define a 'name' attribute"
            )

        if component.name in self._component_map:
            raise DependencyConfigurationError(component.name, "already registered")

        for dep in component.depends_on:
            if dep not in self._component_map:
                raise DependencyConfigurationError(
                    component.name,
                    f"depends on '{dep}' which is not registered before it. "
                    f"Registered: {self.names()}"
                )

        self._components.append(component)
        self._component_map[component.name] = component

        logger.debug(
            "component_registered",
            name=component.name,
            position=len(self._components),
            depends_on=component.depends_on
        )

        return component

    def get_by_name(self, name: str) -> Optional[BaseLifecycleComponent]:
        return self._component_map.get(name)

    def names(self) -> List[str]:
        return [c.name for c in self._components]

    def in_startup_order(self) -> List[BaseLifecycleComponent]:
        return list(self._components)

    def in_shutdown_order(self) -> List[BaseLifecycleComponent]:
        return list(reversed(self._components))

    def __iter__(self) -> Iterator[BaseLifecycleComponent]:
        return iter(self._components)

    def __len__(self) -> int:
        return len(self._components)
