"""Building the road network: roads, their lanes, intersections and their connections."""

from __future__ import annotations

import math
from typing import List, Optional, Sequence, Tuple

from trafficsim.model import (
    Connection,
    Corner,
    Direction,
    EntityId,
    Intersection,
    IntersectionMovement,
    IntersectionRoads,
    Lane,
    LaneTrafficLight,
    Road,
    RoadLanes,
    TrafficLight,
)
from trafficsim.transform import Matrix, Position, Rotation, Transform, identity, translate
from trafficsim.world import World

_CONNECT_ROADS = "connect_roads"
_CONNECT_INTERSECTIONS = "connect_intersections"
_LANE_TRANSFORMS = "lane_transforms"

_LIGHT_HEIGHT = 2.5
_LIGHT_OFFSET = 1.5

# Roads created on an intersection: connection, the two incoming directions it
# joins, length in lane widths, corner, inverted corner, rotation about y.
_INTERSECTION_ROADS = (
    (Connection.TOP_TO_BOTTOM, Direction.TOP, Direction.BOTTOM, 2, False, False, math.pi * 1.5),
    (Connection.LEFT_TO_RIGHT, Direction.LEFT, Direction.RIGHT, 2, False, False, math.pi),
    (Connection.TOP_TO_LEFT, Direction.LEFT, Direction.TOP, 1, True, True, math.pi / 2),
    (Connection.TOP_TO_RIGHT, Direction.RIGHT, Direction.TOP, 1, True, False, math.pi),
    (Connection.BOTTOM_TO_RIGHT, Direction.RIGHT, Direction.BOTTOM, 1, True, True, math.pi * 1.5),
    (Connection.BOTTOM_TO_LEFT, Direction.LEFT, Direction.BOTTOM, 1, True, False, None),
)

# Outgoing options (left, straight, right) for each incoming direction, given as
# (intersection road, lane index), plus traffic light placement (x sign, z sign, y rotation).
_MOVEMENTS = (
    (
        Direction.TOP,
        ((Connection.TOP_TO_RIGHT, 0), (Connection.TOP_TO_BOTTOM, 0), (Connection.TOP_TO_LEFT, 0)),
        (-1, 1, None),
    ),
    (
        Direction.BOTTOM,
        ((Connection.BOTTOM_TO_LEFT, 0), (Connection.TOP_TO_BOTTOM, 1), (Connection.BOTTOM_TO_RIGHT, 0)),
        (1, -1, math.pi),
    ),
    (
        Direction.LEFT,
        ((Connection.TOP_TO_LEFT, 1), (Connection.LEFT_TO_RIGHT, 0), (Connection.BOTTOM_TO_LEFT, 1)),
        (-1, -1, math.pi * 1.5),
    ),
    (
        Direction.RIGHT,
        ((Connection.BOTTOM_TO_RIGHT, 1), (Connection.LEFT_TO_RIGHT, 1), (Connection.TOP_TO_RIGHT, 1)),
        (1, 1, math.pi * 0.5),
    ),
)

# Intersection roads linking two incoming roads: lane 0 leads to the second, lane 1 to the first.
_OUTGOING = (
    (Direction.TOP, Direction.BOTTOM, Connection.TOP_TO_BOTTOM),
    (Direction.LEFT, Direction.RIGHT, Connection.LEFT_TO_RIGHT),
    (Direction.TOP, Direction.RIGHT, Connection.TOP_TO_RIGHT),
    (Direction.TOP, Direction.LEFT, Connection.TOP_TO_LEFT),
    (Direction.BOTTOM, Direction.RIGHT, Connection.BOTTOM_TO_RIGHT),
    (Direction.BOTTOM, Direction.LEFT, Connection.BOTTOM_TO_LEFT),
)


class Network:
    """Creates lanes for roads and intersections and wires them together."""

    def __init__(self, world: World) -> None:
        self.world = world
        self.roads_root = world.entity()
        self.cars_root = world.entity()
        self._pending: set = set()
        world.on_set(Corner, self._on_corner_set)
        world.on_set(Road, lambda entity, _road: self.create_road(entity))
        world.on_set(Intersection, lambda entity, _intersection: self.create_intersection(entity))

    def _on_corner_set(self, entity: EntityId, corner: Corner) -> None:
        lane = self.world.try_get(entity, Lane)
        if lane is None:
            lane = Lane()
            self.world.set(entity, lane)
        lane.length = corner.radius * math.pi * 0.5

    def add_road(
        self,
        road: Road,
        position: Optional[Position] = None,
        rotation: Optional[Rotation] = None,
    ) -> EntityId:
        """Create a road entity; its lanes are created immediately."""
        entity = self.world.entity()
        self.world.set(entity, position if position is not None else Position())
        if rotation is not None:
            self.world.set(entity, rotation)
        self.world.set(entity, road)
        return entity

    def add_intersection(
        self,
        intersection: Intersection,
        position: Optional[Position] = None,
        rotation: Optional[Rotation] = None,
    ) -> EntityId:
        """Create an intersection entity; its roads are created immediately."""
        entity = self.world.entity()
        self.world.set(entity, position if position is not None else Position())
        if rotation is not None:
            self.world.set(entity, rotation)
        self.world.set(entity, intersection)
        return entity

    def create_road(self, entity: EntityId) -> None:
        """(Re)create the two lanes of a road, one per direction."""
        world = self.world
        road = world.get(entity, Road)
        road_lanes = world.get(entity, RoadLanes)

        for lane in road_lanes.lanes:
            if lane is not None and lane in world:
                world.delete(lane)

        left = world.entity(self.roads_root)
        right = world.entity(self.roads_root)
        width = road.lane_width

        if not road.corner:
            world.set(left, Lane(road.length, width, road.max_speed, None, entity))
            world.set(left, Position(0.0, 0.0, width / 2))
            world.set(left, Rotation(0.0, math.pi, 0.0))

            world.set(right, Lane(road.length, width, road.max_speed, None, entity))
            world.set(right, Position(0.0, 0.0, -(width / 2)))
        else:
            # Corner lanes are limited by their radius so cars slow down in sharp turns.
            left_radius = width * 1.5
            left_speed = min(left_radius / 50, road.max_speed)
            world.set(left, Lane(road.length, width, left_speed, None, entity))
            world.set(left, Position(width / 2, 0.0, width / 2))
            world.set(left, Corner(left_radius, True))

            right_radius = width / 2
            right_speed = min(right_radius / 30, road.max_speed)
            world.set(right, Lane(road.length, width, right_speed, None, entity))
            world.set(right, Position(-width / 2, 0.0, -width / 2))
            world.set(right, Corner(right_radius))

        road_lanes.lanes = [right, left] if road.invert_corner else [left, right]
        self._pending.update((_CONNECT_ROADS, _LANE_TRANSFORMS))

    def _delete_road_lanes(self, road: Optional[EntityId]) -> None:
        road_lanes = self.world.try_get(road, RoadLanes)
        if road_lanes is None:
            return
        for lane in road_lanes.lanes:
            if lane is not None and lane in self.world:
                self.world.delete(lane)

    def create_intersection(self, entity: EntityId) -> None:
        """(Re)create the roads on an intersection between its incoming roads."""
        world = self.world
        intersection = world.get(entity, Intersection)
        roads = world.get(entity, IntersectionRoads)

        for road in roads.roads:
            self._delete_road_lanes(road)
        for movement in roads.movements:
            if movement is not None and movement in world:
                world.delete(movement)
        world.delete_children(entity)
        roads.roads = [None] * len(Connection)
        roads.movements = [None] * len(Direction)

        connected = {d: intersection.roads[d].road is not None for d in Direction}
        width = intersection.lane_width
        for connection, first, second, widths, corner, invert, angle in _INTERSECTION_ROADS:
            if not (connected[first] and connected[second]):
                continue
            child = world.entity(entity)
            world.set(child, Position())
            if angle is not None:
                world.set(child, Rotation(0.0, angle, 0.0))
            world.set(
                child,
                Road(width * widths, width, intersection.max_speed, corner, invert),
            )
            roads.roads[connection] = child

        self._pending.add(_CONNECT_INTERSECTIONS)

    def connect_roads(self) -> None:
        """Link the lanes of roads to the lanes of the roads they continue into."""
        self._pending.discard(_CONNECT_ROADS)
        world = self.world
        for _entity, road, road_lanes in list(world.query(Road, RoadLanes)):
            following = road.next.road
            if following is None or following not in world:
                continue
            next_lanes = world.try_get(following, RoadLanes)
            if next_lanes is None:
                continue
            edge = road.next.edge
            left = world.try_get(next_lanes[edge], Lane)
            if left is not None:
                left.next = road_lanes[edge]
            if edge >= 1:
                right = world.try_get(road_lanes[edge - 1], Lane)
                if right is not None:
                    right.next = next_lanes[edge - 1]

    def connect_intersections(self) -> None:
        """Link incoming lanes to intersection lanes, adding movements and traffic lights."""
        self._pending.discard(_CONNECT_INTERSECTIONS)
        for entity, intersection, roads in list(self.world.query(Intersection, IntersectionRoads)):
            self._connect_intersection(entity, intersection, roads)

    def _connect_intersection(
        self, entity: EntityId, intersection: Intersection, roads: IntersectionRoads
    ) -> None:
        world = self.world

        def road(direction: Direction) -> Optional[EntityId]:
            connected = intersection.roads[direction].road
            return connected if connected is not None and connected in world else None

        def road_lane(direction: Direction, flip: bool = False) -> Optional[EntityId]:
            edge = intersection.roads[direction].edge
            if flip:
                edge = 1 - edge
            return world.get(road(direction), RoadLanes)[edge]

        def intersection_lane(connection: Connection, index: int) -> Optional[EntityId]:
            on_road = roads[connection]
            if on_road is None:
                return None
            return world.get(on_road, RoadLanes)[index]

        def movement(direction: Direction, lanes: Sequence[Optional[EntityId]]) -> Tuple[EntityId, bool]:
            present = [lane for lane in lanes if lane is not None]
            if len(present) == 1:
                return present[0], False
            created = world.entity(self.roads_root)
            world.set(created, IntersectionMovement(entity, tuple(lanes)))
            roads.movements[direction] = created
            return created, True

        width = intersection.lane_width
        for direction, options, (x_sign, z_sign, angle) in _MOVEMENTS:
            if road(direction) is None:
                continue
            lanes: List[Optional[EntityId]] = [intersection_lane(c, i) for c, i in options]
            incoming = road_lane(direction, True)
            target, intersect = movement(direction, lanes)
            world.get(incoming, Lane).next = target
            if not intersect:
                continue
            light = world.entity(entity)
            world.set(light, TrafficLight(2))
            world.set(
                light,
                Position(
                    x_sign * (width + _LIGHT_OFFSET),
                    _LIGHT_HEIGHT,
                    z_sign * (width + _LIGHT_OFFSET),
                ),
            )
            if angle is not None:
                world.set(light, Rotation(0.0, angle, 0.0))
            lane_light = world.try_get(incoming, LaneTrafficLight)
            if lane_light is None:
                lane_light = LaneTrafficLight()
                world.set(incoming, lane_light)
            lane_light.light = light

        for first, second, connection in _OUTGOING:
            if road(first) is None or road(second) is None:
                continue
            world.get(intersection_lane(connection, 0), Lane).next = road_lane(second)
            world.get(intersection_lane(connection, 1), Lane).next = road_lane(first)

    def _world_matrix(self, entity: Optional[EntityId]) -> Matrix:
        if entity is None:
            return identity()
        matrix = self._world_matrix(self.world.parent(entity))
        position = self.world.try_get(entity, Position)
        if position is not None:
            matrix = translate(matrix, tuple(position))
        rotation = self.world.try_get(entity, Rotation)
        if rotation is not None:
            matrix = rotation.apply_to(matrix)
        return matrix

    def set_lane_transforms(self) -> None:
        """Compute the world transform of every road and of the lanes on it."""
        self._pending.discard(_LANE_TRANSFORMS)
        world = self.world
        for entity, _road, road_lanes in list(world.query(Road, RoadLanes)):
            road_matrix = self._world_matrix(entity)
            world.set(entity, Transform(road_matrix))
            for lane in road_lanes.lanes:
                if lane is None or lane not in world:
                    continue
                position = world.try_get(lane, Position) or Position()
                matrix = translate(road_matrix, tuple(position))
                rotation = world.try_get(lane, Rotation)
                if rotation is not None:
                    matrix = rotation.apply_to(matrix)
                world.set(lane, Transform(matrix))

    def finalize(self) -> None:
        """Run whichever connection and transform passes are pending."""
        if _CONNECT_ROADS in self._pending:
            self.connect_roads()
        if _CONNECT_INTERSECTIONS in self._pending:
            self.connect_intersections()
        if _LANE_TRANSFORMS in self._pending:
            self.set_lane_transforms()