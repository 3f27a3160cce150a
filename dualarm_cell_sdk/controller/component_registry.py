"""Planning components and their coordination flags.

The registry is the only place the ``in_motion`` and ``should_replan`` flags
are written. Motion code and background workers share one registry instance.
"""

import threading
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Tuple

from omegaconf import DictConfig, OmegaConf

from ..errors import UnknownComponentError


@dataclass
class PlanningComponent:
    """An addressable motion group: one arm or a coordinated pair.

    ``members`` lists the single-arm components a combined group is built
    from; it is empty for a single arm.
    """
    id: str
    end_effector_id: str = ""
    home_configuration: List[float] = field(default_factory=list)
    members: Tuple[str, ...] = ()
    in_motion: bool = False
    should_replan: bool = False

    @property
    def is_group(self) -> bool:
        return bool(self.members)


class ComponentRegistry:
    def __init__(self, components: Iterable[PlanningComponent] = ()):
        self._lock = threading.Lock()
        self._components: Dict[str, PlanningComponent] = {}
        for component in components:
            if component.id in self._components:
                raise ValueError(f"Duplicate planning component id '{component.id}'")
            self._components[component.id] = component

    @classmethod
    def from_config(cls, cfg: DictConfig) -> "ComponentRegistry":
        """
        Build the registry from the ``components`` section of the cell config.

        :param cfg, DictConfig: full cell configuration
        :return: ComponentRegistry
        """
        components = []
        for component_id, entry in cfg.components.items():
            entry = OmegaConf.to_container(entry, resolve=True)
            components.append(PlanningComponent(
                id=str(component_id),
                end_effector_id=entry.get("end_effector", ""),
                home_configuration=[float(q) for q in entry.get("home", [])],
                members=tuple(entry.get("members", ())),
            ))
        registry = cls(components)
        for component in components:
            for member in component.members:
                if member not in registry:
                    raise ValueError(f"Component '{component.id}' lists unknown member '{member}'")
        return registry

    def __contains__(self, component_id) -> bool:
        return component_id in self._components

    def __repr__(self):
        return f"<ComponentRegistry {self.ids()}>"

    def get(self, component_id: str) -> PlanningComponent:
        try:
            return self._components[component_id]
        except KeyError:
            raise UnknownComponentError(component_id) from None

    def ids(self) -> List[str]:
        return list(self._components)

    def leaf_ids(self, component_id: str) -> Tuple[str, ...]:
        """Single-arm components making up ``component_id`` (itself for a single arm)."""
        component = self.get(component_id)
        return component.members if component.members else (component.id,)

    # ---- should_replan: one-shot signal ----

    def set_should_replan(self, component_id: str, value: bool = True):
        component = self.get(component_id)
        with self._lock:
            component.should_replan = bool(value)

    def consume_should_replan(self, component_id: str) -> bool:
        """
        Read and clear the replan signal in one step.

        Repeated sets before a consume coalesce into one signal.

        :return: bool, True if a replan was requested since the last consume
        """
        component = self.get(component_id)
        with self._lock:
            requested = component.should_replan
            component.should_replan = False
        return requested

    def request_replan(self, *component_ids: str):
        """Raise the replan signal on the given components, or on all of them."""
        targets = [self.get(cid) for cid in component_ids] if component_ids else list(self._components.values())
        with self._lock:
            for component in targets:
                component.should_replan = True

    # ---- in_motion: advisory lock ----

    def set_in_motion(self, component_id: str, value: bool):
        component = self.get(component_id)
        with self._lock:
            component.in_motion = bool(value)

    def is_in_motion(self, component_id: str) -> bool:
        component = self.get(component_id)
        with self._lock:
            return component.in_motion

    def try_begin_motion(self, component_id: str) -> bool:
        """
        Set ``in_motion`` unless it is already set.

        :return: bool, False if a goal is already in flight for the component
        """
        component = self.get(component_id)
        with self._lock:
            if component.in_motion:
                return False
            component.in_motion = True
            return True
