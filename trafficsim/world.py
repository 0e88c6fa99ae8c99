"""A small entity/component store with parent links and on-set observers."""

from __future__ import annotations

from collections import defaultdict
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple, Type, TypeVar

from trafficsim.model import (
    EntityId,
    Intersection,
    IntersectionRoads,
    Lane,
    LaneCars,
    Road,
    RoadLanes,
)

T = TypeVar("T")

# Components that are added automatically alongside another component.
_COMPANIONS: Dict[type, Tuple[type, ...]] = {
    Lane: (LaneCars,),
    Road: (RoadLanes,),
    Intersection: (IntersectionRoads,),
}


class World:
    """Stores entities, their components and their parent relationships."""

    def __init__(self) -> None:
        self._next_id = 1
        self._components: Dict[EntityId, Dict[type, Any]] = {}
        self._parents: Dict[EntityId, Optional[EntityId]] = {}
        self._children: Dict[EntityId, List[EntityId]] = defaultdict(list)
        self._observers: Dict[type, List[Callable[[EntityId, Any], None]]] = defaultdict(list)

    def __contains__(self, entity: object) -> bool:
        return entity in self._components

    def _require(self, entity: Optional[EntityId]) -> Dict[type, Any]:
        if entity is None or entity not in self._components:
            raise KeyError(f"entity {entity!r} does not exist")
        return self._components[entity]

    def entity(self, parent: Optional[EntityId] = None) -> EntityId:
        """Create a new entity, optionally as a child of ``parent``."""
        if parent is not None:
            self._require(parent)
        entity = self._next_id
        self._next_id += 1
        self._components[entity] = {}
        self._parents[entity] = parent
        if parent is not None:
            self._children[parent].append(entity)
        return entity

    def set(self, entity: EntityId, component: Any) -> EntityId:
        """Store a component on an entity and notify observers of its type."""
        components = self._require(entity)
        kind = type(component)
        components[kind] = component
        for companion in _COMPANIONS.get(kind, ()):
            components.setdefault(companion, companion())
        for callback in list(self._observers[kind]):
            callback(entity, component)
        return entity

    def get(self, entity: Optional[EntityId], kind: Type[T]) -> T:
        """Return a component; raise KeyError if the entity does not have it."""
        components = self._require(entity)
        try:
            return components[kind]
        except KeyError:
            raise KeyError(f"entity {entity} has no {kind.__name__}") from None

    def try_get(self, entity: Optional[EntityId], kind: Type[T]) -> Optional[T]:
        """Return a component, or None if the entity or component is missing."""
        if entity is None:
            return None
        return self._components.get(entity, {}).get(kind)

    def has(self, entity: Optional[EntityId], kind: type) -> bool:
        return self.try_get(entity, kind) is not None

    def remove(self, entity: EntityId, kind: type) -> None:
        """Remove a component from an entity if present."""
        self._require(entity).pop(kind, None)

    def parent(self, entity: Optional[EntityId]) -> Optional[EntityId]:
        if entity is None:
            return None
        return self._parents.get(entity)

    def children(self, entity: EntityId) -> List[EntityId]:
        self._require(entity)
        return list(self._children.get(entity, ()))

    def delete(self, entity: EntityId) -> None:
        """Delete an entity together with all its descendants."""
        self._require(entity)
        self.delete_children(entity)
        parent = self._parents.pop(entity)
        if parent is not None and parent in self._children:
            self._children[parent].remove(entity)
        self._children.pop(entity, None)
        del self._components[entity]

    def delete_children(self, entity: EntityId) -> None:
        """Delete every descendant of an entity, keeping the entity itself."""
        self._require(entity)
        for child in list(self._children.get(entity, ())):
            self.delete(child)

    def query(self, *args: type) -> Iterator[Tuple[Any, ...]]:
        """Yield ``(entity, component, ...)`` for entities having every given kind."""
        for entity in sorted(self._components):
            components = self._components.get(entity)
            if components is None:
                continue
            if all(kind in components for kind in args):
                yield (entity, *(components[kind] for kind in args))

    def on_set(self, kind: type, callback: Callable[[EntityId, Any], None]) -> None:
        """Call ``callback(entity, component)`` whenever a ``kind`` component is set."""
        self._observers[kind].append(callback)