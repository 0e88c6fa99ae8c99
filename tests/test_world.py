import pytest

from trafficsim.model import (
    Corner,
    Intersection,
    IntersectionRoads,
    Lane,
    LaneCars,
    Road,
    RoadLanes,
)
from trafficsim.world import World


def test_entities_are_unique_and_alive():
    world = World()
    a, b = world.entity(), world.entity()
    assert a != b
    assert a in world and b in world


def test_set_and_get_component():
    world = World()
    e = world.entity()
    lane = Lane(length=20.0)
    assert world.set(e, lane) == e
    assert world.get(e, Lane) is lane
    assert world.has(e, Lane)


def test_get_missing_component_raises():
    world = World()
    e = world.entity()
    with pytest.raises(KeyError):
        world.get(e, Corner)


def test_get_on_null_entity_raises():
    world = World()
    with pytest.raises(KeyError):
        world.get(None, Lane)


def test_try_get_returns_none_when_missing():
    world = World()
    e = world.entity()
    assert world.try_get(e, Corner) is None
    assert world.try_get(None, Corner) is None
    assert world.has(None, Lane) is False


def test_companion_components_are_added():
    world = World()
    lane, road, crossing = world.entity(), world.entity(), world.entity()
    world.set(lane, Lane())
    world.set(road, Road())
    world.set(crossing, Intersection())
    assert len(world.get(lane, LaneCars)) == 0
    assert world.get(road, RoadLanes).lanes == [None, None]
    assert world.get(crossing, IntersectionRoads).next_reservation == 0


def test_companion_not_replaced_on_reset():
    world = World()
    e = world.entity()
    world.set(e, Road())
    lanes = world.get(e, RoadLanes)
    lanes[0] = 5
    world.set(e, Road(length=3.0))
    assert world.get(e, RoadLanes)[0] == 5


def test_on_set_observer_receives_entity_and_component():
    world = World()
    seen = []
    world.on_set(Corner, lambda entity, comp: seen.append((entity, comp.radius)))
    e = world.entity()
    world.set(e, Corner(radius=4.0))
    world.set(world.entity(), Lane())
    assert seen == [(e, 4.0)]


def test_observer_sees_companion_already_present():
    world = World()
    found = []
    world.on_set(Road, lambda entity, _: found.append(world.has(entity, RoadLanes)))
    world.set(world.entity(), Road())
    assert found == [True]


def test_remove_component():
    world = World()
    e = world.entity()
    world.set(e, Corner())
    world.remove(e, Corner)
    assert not world.has(e, Corner)


def test_parent_and_children():
    world = World()
    root = world.entity()
    child = world.entity(root)
    assert world.parent(child) == root
    assert world.parent(root) is None
    assert world.children(root) == [child]


def test_delete_removes_descendants():
    world = World()
    root = world.entity()
    child = world.entity(root)
    grandchild = world.entity(child)
    world.delete(child)
    assert child not in world
    assert grandchild not in world
    assert world.children(root) == []


def test_delete_children_keeps_entity():
    world = World()
    root = world.entity()
    kids = [world.entity(root) for _ in range(3)]
    world.delete_children(root)
    assert root in world
    assert all(k not in world for k in kids)
    assert world.children(root) == []


def test_delete_unknown_entity_raises():
    world = World()
    with pytest.raises(KeyError):
        world.delete(12345)


def test_query_filters_and_orders_by_entity():
    world = World()
    a, b, c = world.entity(), world.entity(), world.entity()
    world.set(c, Lane(length=3.0))
    world.set(a, Lane(length=1.0))
    world.set(b, Corner())
    world.set(c, Corner(radius=2.0))
    results = list(world.query(Lane))
    assert [entity for entity, _ in results] == [a, c]
    both = list(world.query(Lane, Corner))
    assert len(both) == 1
    entity, lane, corner = both[0]
    assert (entity, lane.length, corner.radius) == (c, 3.0, 2.0)


def test_query_skips_entities_deleted_during_iteration():
    world = World()
    first, second = world.entity(), world.entity()
    world.set(first, Corner())
    world.set(second, Corner())
    visited = []
    for entity, _ in world.query(Corner):
        visited.append(entity)
        if entity == first:
            world.delete(second)
    assert visited == [first]