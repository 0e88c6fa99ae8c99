"""Stepping the traffic simulation: lane ticks, end-of-lane behaviour and car movement."""

from __future__ import annotations

import dataclasses
import logging
import math
import random
from dataclasses import dataclass
from typing import Optional

from trafficsim.driving import accelerate_cars, set_driving_state, set_target_speeds
from trafficsim.lanes import (
    add_car_to_lane,
    car_fits_in_destination_lane,
    find_next_lane,
    intersection_from_lane,
    min_distance_for_speed,
    wait_for_lane,
)
from trafficsim.model import (
    TRAFFIC_LIGHT_GREEN_TICKS,
    TRAFFIC_LIGHT_ORANGE_TICKS,
    Car,
    CarState,
    Corner,
    EndOfLaneState,
    EntityId,
    IntersectionMovement,
    IntersectionRoads,
    Lane,
    LaneCars,
    LaneTrafficLight,
    TrafficLight,
    TrafficLightState,
)
from trafficsim.transform import Transform, rotate, translate
from trafficsim.world import World

log = logging.getLogger(__name__)

# Lanes are processed once every LANE_TICKS steps, spread out by entity id.
LANE_TICKS = 8
DEFAULT_DELTA_TIME = 0.016

_CAR_HEIGHT = 0.5


@dataclass
class Color:
    r: float = 0.0
    g: float = 0.0
    b: float = 0.0


_DEFAULT_COLOR = Color(0.4, 1.0, 0.1)
_STATE_COLORS = {
    CarState.ACCELERATING: Color(0.4, 1.0, 0.1),
    CarState.BREAKING: Color(1.0, 0.4, 0.1),
    CarState.BREAKING_HARD: Color(1.0, 0.4, 0.1),
    CarState.STOPPED: Color(1.0, 0.1, 0.0),
    CarState.CRASHED: Color(0.0, 0.0, 0.0),
}

_PASSIVE_STATES = (
    EndOfLaneState.MOVE_ON_INTERSECTION,
    EndOfLaneState.MOVE_ON_PROTECTED_INTERSECTION,
    EndOfLaneState.ON_INTERSECTION,
    EndOfLaneState.ON_PROTECTED_INTERSECTION,
)


class Simulation:
    """Advances every lane and the cars on it, one frame per step."""

    def __init__(
        self,
        world: World,
        rng: Optional[random.Random] = None,
        delta_time: float = DEFAULT_DELTA_TIME,
    ) -> None:
        self.world = world
        self.rng = rng if rng is not None else random.Random()
        self.delta_time = delta_time
        self.lane_tick = 0
        self.ticks = 0

    def step(self) -> None:
        """Run one frame of the simulation."""
        self.lane_tick = (self.lane_tick + 1) % LANE_TICKS
        self.progress_cars()
        self._set_target_speeds()
        self.handle_traffic_lights()
        self.initiate_end_of_lane()
        self.set_end_of_lane_state()
        self._set_driving_states()
        self._accelerate()
        self.update_car_entities()
        self.move_cars_to_next_lane()
        self.ticks += 1

    def lane_due(self, lane_entity: EntityId) -> bool:
        """Whether a lane is processed in the current tick."""
        return (lane_entity & (LANE_TICKS - 1)) == self.lane_tick

    def progress_cars(self) -> None:
        """Move every car forward along its lane by its speed."""
        for _entity, cars in list(self.world.query(LaneCars)):
            for car in cars:
                car.position += car.speed

    def _set_target_speeds(self) -> None:
        for entity, _lane, cars in list(self.world.query(Lane, LaneCars)):
            if cars and self.lane_due(entity):
                set_target_speeds(self.world, entity)

    def _set_driving_states(self) -> None:
        for entity, _lane, cars in list(self.world.query(Lane, LaneCars)):
            if self.lane_due(entity):
                set_driving_state(cars)

    def _accelerate(self) -> None:
        for _entity, cars in list(self.world.query(LaneCars)):
            accelerate_cars(cars, self.delta_time)

    def _set_light(self, light: Optional[EntityId], state: int) -> None:
        if light is not None and light in self.world:
            self.world.set(light, TrafficLight(state))

    def handle_traffic_lights(self) -> None:
        """Reserve intersections for lanes with traffic lights and cycle the lights."""
        world = self.world
        for entity, lane, cars, lane_light in list(
            world.query(Lane, LaneCars, LaneTrafficLight)
        ):
            if not self.lane_due(entity) or lane_light.light is None:
                continue

            movement = world.get(lane.next, IntersectionMovement)
            roads = world.get(movement.intersection, IntersectionRoads)
            state = lane_light.state

            if state is TrafficLightState.DEFAULT:
                if cars:
                    lane_light.reservation = roads.reserve()
                    lane_light.state = TrafficLightState.RESERVED
            elif state is TrafficLightState.RESERVED:
                if not cars:
                    lane_light.state = TrafficLightState.DEFAULT
                    roads.release(lane_light.reservation)
                elif lane_light.reservation == roads.current_reservation:
                    lane_light.state = TrafficLightState.ACQUIRED
                    lane_light.timer = TRAFFIC_LIGHT_GREEN_TICKS
                    self._set_light(lane_light.light, 0)
            elif state is TrafficLightState.ACQUIRED:
                lane_light.timer -= 1
                if not lane_light.timer:
                    lane_light.state = TrafficLightState.RELEASING
                    lane_light.timer = TRAFFIC_LIGHT_ORANGE_TICKS
                    self._set_light(lane_light.light, 1)
            elif state is TrafficLightState.RELEASING:
                lane_light.timer -= 1
                if not lane_light.timer:
                    roads.release(lane_light.reservation)
                    lane_light.state = TrafficLightState.DEFAULT
                    self._set_light(lane_light.light, 2)

    def initiate_end_of_lane(self) -> None:
        """Start end-of-lane behaviour for front cars close to the end of their lane."""
        world = self.world
        for entity, lane, cars in list(world.query(Lane, LaneCars)):
            if not self.lane_due(entity) or not cars or lane.next is None:
                continue

            car = cars[0]
            if car.eol_state is not EndOfLaneState.DEFAULT:
                continue

            min_distance = max(min_distance_for_speed(car.speed), 1.0)
            if lane.length - car.position > min_distance:
                continue

            if world.has(entity, LaneTrafficLight):
                movement = world.get(lane.next, IntersectionMovement)
                car.eol_state = EndOfLaneState.WAIT_FOR_PROTECTED_INTERSECTION
                car.next_lane = find_next_lane(movement, self.rng)
            elif not world.has(lane.next, Lane):
                car.eol_state = EndOfLaneState.RESERVE_INTERSECTION

    def set_end_of_lane_state(self) -> None:
        """Advance the intersection handling state of each lane's front car."""
        world = self.world
        for entity, lane, cars in list(world.query(Lane, LaneCars)):
            if not self.lane_due(entity) or not cars:
                continue

            car = cars[0]
            if car.eol_state is EndOfLaneState.DEFAULT:
                car.wait_count = 0
                continue
            if car.eol_state in _PASSIVE_STATES:
                continue

            movement = world.get(lane.next, IntersectionMovement)
            roads = world.get(movement.intersection, IntersectionRoads)

            if car.eol_state is EndOfLaneState.RESERVE_INTERSECTION:
                car.reservation = roads.reserve()
                car.next_lane = find_next_lane(movement, self.rng)
                car.eol_state = EndOfLaneState.WAIT_FOR_INTERSECTION
                car.target_speed = 0.0
            elif car.eol_state is EndOfLaneState.WAIT_FOR_INTERSECTION:
                if roads.current_reservation == car.reservation:
                    # Only enter when the destination has room, to avoid gridlock.
                    if car_fits_in_destination_lane(world, car.next_lane, car):
                        car.eol_state = EndOfLaneState.MOVE_ON_INTERSECTION
                    else:
                        roads.release(car.reservation)
                        car.eol_state = EndOfLaneState.RESERVE_INTERSECTION
                else:
                    wait_for_lane(car, movement, self.rng)
            elif car.eol_state is EndOfLaneState.WAIT_FOR_PROTECTED_INTERSECTION:
                lane_light = world.try_get(entity, LaneTrafficLight)
                if lane_light is not None and lane_light.state is TrafficLightState.ACQUIRED:
                    if car_fits_in_destination_lane(world, car.next_lane, car):
                        car.eol_state = EndOfLaneState.MOVE_ON_PROTECTED_INTERSECTION
                    else:
                        wait_for_lane(car, movement, self.rng)

    def update_car_entities(self) -> None:
        """Copy car position, rotation, state and colour onto the car entities."""
        world = self.world
        for entity, lane, cars, transform in list(world.query(Lane, LaneCars, Transform)):
            corner = world.try_get(entity, Corner)
            for car, car_entity in zip(cars.cars, cars.entities):
                if car_entity is None or car_entity not in world:
                    continue

                x, z, angle = 0.0, 0.0, 0.0
                if corner is None:
                    x = car.position - lane.length / 2.0
                else:
                    # Corner lanes trace a quarter circle.
                    position = car.position
                    if corner.invert_direction:
                        position = lane.length - position
                    angle = (position / lane.length) * (math.pi / 2)
                    x = math.sin(angle) * corner.radius - corner.radius
                    z = math.cos(angle) * corner.radius - corner.radius

                matrix = translate(transform.value, (x, _CAR_HEIGHT, z))
                matrix = rotate(matrix, angle, (0.0, 1.0, 0.0))
                world.set(car_entity, Transform(matrix))
                world.set(car_entity, dataclasses.replace(car))
                color = _STATE_COLORS.get(car.state, _DEFAULT_COLOR)
                world.set(car_entity, dataclasses.replace(color))

    def move_cars_to_next_lane(self) -> None:
        """Move cars that passed the end of their lane onto the following lane."""
        world = self.world
        for entity, lane, cars in list(world.query(Lane, LaneCars)):
            leaving = next(
                (index for index, car in enumerate(cars) if car.position < lane.length),
                len(cars),
            )
            if not leaving:
                continue

            if lane.next is not None:
                moving = list(zip(cars.cars[:leaving], cars.entities[:leaving]))
                for car, car_entity in moving:
                    self._move_car(entity, lane, car, car_entity)
            else:
                log.error("no lane to move to!")

            cars.remove_front(leaving)

    def _move_car(
        self,
        lane_entity: EntityId,
        lane: Lane,
        car: Car,
        car_entity: Optional[EntityId],
    ) -> None:
        world = self.world
        target = lane.next
        eol = EndOfLaneState.DEFAULT

        if car.eol_state is EndOfLaneState.MOVE_ON_INTERSECTION:
            target = car.next_lane
            eol = EndOfLaneState.ON_INTERSECTION
        elif car.eol_state is EndOfLaneState.MOVE_ON_PROTECTED_INTERSECTION:
            target = car.next_lane
            eol = EndOfLaneState.ON_PROTECTED_INTERSECTION
        elif car.eol_state is EndOfLaneState.ON_INTERSECTION:
            # Leaving the intersection: admit the next reservation.
            intersection = intersection_from_lane(world, lane_entity)
            world.get(intersection, IntersectionRoads).release(car.reservation)
        elif car.eol_state is EndOfLaneState.ON_PROTECTED_INTERSECTION:
            pass  # the reservation is held by the lane's traffic light
        elif car.eol_state is not EndOfLaneState.DEFAULT:
            log.error(
                "car %s doesn't have the right state to move on intersection", car_entity
            )

        try:
            add_car_to_lane(
                world,
                target,
                car_entity,
                car.position - lane.length,
                car.speed,
                car.target_speed,
                car.state,
                eol,
                car.reservation,
            )
        except (ValueError, KeyError) as error:
            log.error("%s", error)